import subprocess
import types
import unittest
from pathlib import Path
from unittest import mock

from throttle_guard import probe as probe_module
from throttle_guard.errors import ProbeError
from throttle_guard.probe import SettingsProbe, parse_temperature_target, summarize_stderr

UNDERVOLT_OUTPUT = """\
temperature target: -2 (98C)
core: -99.61 mV
gpu: -24.41 mV
cache: -99.61 mV
uncore: -39.06 mV
analogio: 0.0 mV
powerlimit: 45.0W (short: 0.00244140625s - enabled) / 45.0W (long: 28.0s - enabled) [locked]
turbo: enable
"""

TRACEBACK = """\
Traceback (most recent call last):
  File "/usr/local/bin/undervolt", line 8, in <module>
    sys.exit(main())
OSError: [Errno 2] No such file or directory: '/dev/cpu/0/msr'
"""


def completed(returncode=0, stdout="", stderr=""):
    return types.SimpleNamespace(returncode=returncode, stdout=stdout, stderr=stderr)


class TestParseTemperatureTarget(unittest.TestCase):
    def test_parses_value_in_parentheses(self) -> None:
        self.assertEqual(parse_temperature_target(UNDERVOLT_OUTPUT), 98)

    def test_reset_value(self) -> None:
        self.assertEqual(parse_temperature_target("temperature target: -20 (80C)\n"), 80)

    def test_missing_field(self) -> None:
        self.assertIsNone(parse_temperature_target("core: -99.61 mV\n"))
        self.assertIsNone(parse_temperature_target(""))

    def test_field_without_value(self) -> None:
        self.assertIsNone(parse_temperature_target("temperature target: unavailable\n"))


class TestSettingsProbe(unittest.TestCase):
    def setUp(self) -> None:
        self.probe = SettingsProbe(Path("/usr/local/bin/undervolt"), timeout=3.5)

    def test_read_runs_undervolt_with_timeout(self) -> None:
        with mock.patch.object(probe_module.subprocess, "run", return_value=completed(stdout=UNDERVOLT_OUTPUT)) as run_mock:
            value = self.probe.read()

        self.assertEqual(value, 98)
        self.assertEqual(run_mock.call_args.args[0], ["/usr/local/bin/undervolt", "-r"])
        self.assertEqual(run_mock.call_args.kwargs["timeout"], 3.5)

    def test_read_runs_tool_in_its_own_session(self) -> None:
        with mock.patch.object(probe_module.subprocess, "run", return_value=completed(stdout=UNDERVOLT_OUTPUT)) as run_mock:
            self.probe.read()

        self.assertTrue(run_mock.call_args.kwargs["start_new_session"])

    def test_multi_line_stderr_becomes_single_line_reason(self) -> None:
        failure = completed(returncode=1, stderr=TRACEBACK)
        with mock.patch.object(probe_module.subprocess, "run", return_value=failure):
            with self.assertRaises(ProbeError) as ctx:
                self.probe.read()

        self.assertNotIn("\n", ctx.exception.reason)
        self.assertTrue(ctx.exception.reason.startswith("exit code 1: Traceback (most recent call last): File"))
        self.assertIn("OSError: [Errno 2] No such file or directory: '/dev/cpu/0/msr'", ctx.exception.reason)

    def test_long_stderr_is_truncated(self) -> None:
        self.assertEqual(len(summarize_stderr("x" * 500)), 200)
        self.assertEqual(summarize_stderr(None), "")

    def test_unparsable_output_raises(self) -> None:
        with mock.patch.object(probe_module.subprocess, "run", return_value=completed(stdout="garbage")):
            with self.assertRaises(ProbeError) as ctx:
                self.probe.read()
        self.assertIn("no temperature target", ctx.exception.reason)

    def test_non_zero_exit_raises(self) -> None:
        failure = completed(returncode=1, stderr="OSError: [Errno 1] Operation not permitted")
        with mock.patch.object(probe_module.subprocess, "run", return_value=failure):
            with self.assertRaises(ProbeError) as ctx:
                self.probe.read()
        self.assertIn("exit code 1", ctx.exception.reason)

    def test_timeout_raises(self) -> None:
        timeout = subprocess.TimeoutExpired(cmd="undervolt", timeout=3.5)
        with mock.patch.object(probe_module.subprocess, "run", side_effect=timeout):
            with self.assertRaises(ProbeError) as ctx:
                self.probe.read()
        self.assertIn("timed out", ctx.exception.reason)

    def test_missing_tool_raises(self) -> None:
        with mock.patch.object(probe_module.subprocess, "run", side_effect=FileNotFoundError()):
            with self.assertRaises(ProbeError) as ctx:
                self.probe.read()
        self.assertIn("not found", ctx.exception.reason)

    def test_permission_denied_raises(self) -> None:
        with mock.patch.object(probe_module.subprocess, "run", side_effect=PermissionError()):
            with self.assertRaises(ProbeError) as ctx:
                self.probe.read()
        self.assertIn("permission denied", ctx.exception.reason)


if __name__ == "__main__":
    unittest.main()
