import unittest

from throttle_guard.drift import classify, classify_for_power_source
from throttle_guard.models import Classification, PowerSource


class TestClassify(unittest.TestCase):
    def test_reference_values(self) -> None:
        self.assertIs(classify(98, 98, -5), Classification.CORRECT)
        self.assertIs(classify(93, 98, -5), Classification.CORRECT)
        self.assertIs(classify(80, 98, -5), Classification.INCORRECT)
        self.assertIs(classify(100, 98, -5), Classification.INCORRECT)

    def test_only_the_two_accepted_values_are_correct(self) -> None:
        for desired, delta in [(98, -5), (95, 0), (90, 3)]:
            accepted = {desired, desired + delta}
            for observation in range(60, 111):
                expected = Classification.CORRECT if observation in accepted else Classification.INCORRECT
                self.assertIs(classify(observation, desired, delta), expected, (observation, desired, delta))

    def test_missing_observation_is_incorrect(self) -> None:
        self.assertIs(classify(None, 98, -5), Classification.INCORRECT)


class TestClassifyForPowerSource(unittest.TestCase):
    def test_ac_accepts_only_ac_target(self) -> None:
        self.assertIs(classify_for_power_source(98, 98, -5, PowerSource.AC), Classification.CORRECT)
        self.assertIs(classify_for_power_source(93, 98, -5, PowerSource.AC), Classification.INCORRECT)

    def test_battery_accepts_only_battery_target(self) -> None:
        self.assertIs(classify_for_power_source(93, 98, -5, PowerSource.BATTERY), Classification.CORRECT)
        self.assertIs(classify_for_power_source(98, 98, -5, PowerSource.BATTERY), Classification.INCORRECT)

    def test_unknown_source_accepts_either(self) -> None:
        self.assertIs(classify_for_power_source(98, 98, -5, PowerSource.UNKNOWN), Classification.CORRECT)
        self.assertIs(classify_for_power_source(93, 98, -5, PowerSource.UNKNOWN), Classification.CORRECT)
        self.assertIs(classify_for_power_source(None, 98, -5, PowerSource.AC), Classification.INCORRECT)


if __name__ == "__main__":
    unittest.main()
