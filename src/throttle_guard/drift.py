"""
Drift detection: compares an observed temperature target with the accepted values
"""

from typing import Optional

from .models import Classification, PowerSource


def classify(observation: Optional[int], desired_max_temp: int, battery_delta: int) -> Classification:
    """
    CORRECT iff the observation is the AC target or the battery target.
    A missing observation (probe failure) is INCORRECT.
    """
    if observation is None:
        return Classification.INCORRECT
    if observation in (desired_max_temp, desired_max_temp + battery_delta):
        return Classification.CORRECT
    return Classification.INCORRECT


def classify_for_power_source(
    observation: Optional[int],
    desired_max_temp: int,
    battery_delta: int,
    power_source: PowerSource
) -> Classification:
    """Accept only the value for the current power source; falls back to classify() when unknown"""
    if power_source is PowerSource.UNKNOWN:
        return classify(observation, desired_max_temp, battery_delta)

    expected = desired_max_temp if power_source is PowerSource.AC else desired_max_temp + battery_delta
    if observation is not None and observation == expected:
        return Classification.CORRECT
    return Classification.INCORRECT
