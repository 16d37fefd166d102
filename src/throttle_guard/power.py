"""
Power source detection via psutil
"""

import logging

import psutil

from .models import PowerSource

logger = logging.getLogger(__name__)


def read_power_source() -> PowerSource:
    """AC, BATTERY, or UNKNOWN when the platform reports no battery"""
    try:
        battery = psutil.sensors_battery()
    except (AttributeError, NotImplementedError, OSError) as e:
        logger.debug(f"Power source unavailable: {e}")
        return PowerSource.UNKNOWN

    if battery is None or battery.power_plugged is None:
        return PowerSource.UNKNOWN
    return PowerSource.AC if battery.power_plugged else PowerSource.BATTERY
