#!/usr/bin/env python3
"""
Tests for the project test suite runner.
"""

import unittest
from unittest.mock import patch

from rita_ci.build.suite_runner import SuiteRunner
from rita_ci.utils.process_utils import CommandResult

CARGO_OUTPUT = """\
   Compiling althea_types v0.1.0
    Finished test [unoptimized + debuginfo] target(s) in 42.10s
     Running unittests src/lib.rs

running 12 tests
test result: ok. 12 passed; 0 failed; 0 ignored; 0 measured; 0 filtered out; finished in 0.01s

running 30 tests
test result: FAILED. 28 passed; 2 failed; 1 ignored; 0 measured; 0 filtered out; finished in 1.20s
"""


class TestSuiteRunner(unittest.TestCase):
    """Test cases for SuiteRunner"""

    def setUp(self):
        self.runner = SuiteRunner("/src/althea_rs", echo=False)

    def test_defaults(self):
        self.assertEqual(self.runner.test_command, ["cargo", "test", "--all"])
        self.assertEqual(self.runner.test_threads, 1)

    def test_build_environment(self):
        self.assertEqual(self.runner.build_environment(), {"RUST_TEST_THREADS": "1"})
        runner = SuiteRunner("/src", test_threads=4)
        self.assertEqual(runner.build_environment(), {"RUST_TEST_THREADS": "4"})

    def test_parse_summary(self):
        self.assertEqual(SuiteRunner.parse_summary(CARGO_OUTPUT), (40, 2))

    def test_parse_summary_no_results(self):
        self.assertEqual(SuiteRunner.parse_summary("error: could not compile `rita`"), (0, 0))

    @patch('rita_ci.build.suite_runner.run_command')
    def test_run_success(self, mock_run):
        mock_run.return_value = CommandResult(["cargo"], 0, "test result: ok. 5 passed; 0 failed;", 10.0)

        result = self.runner.run()
        self.assertTrue(result.success)
        self.assertEqual(result.tests_passed, 5)
        self.assertEqual(result.duration, 10.0)

        args, kwargs = mock_run.call_args
        self.assertEqual(args[0], ["cargo", "test", "--all"])
        self.assertEqual(kwargs['cwd'], "/src/althea_rs")
        self.assertEqual(kwargs['env'], {"RUST_TEST_THREADS": "1"})

    @patch('rita_ci.build.suite_runner.run_command')
    def test_run_failure_uses_exit_code(self, mock_run):
        mock_run.return_value = CommandResult(["cargo"], 101, CARGO_OUTPUT, 60.0)

        result = self.runner.run()
        self.assertFalse(result.success)
        self.assertEqual(result.returncode, 101)
        self.assertEqual(result.tests_failed, 2)


if __name__ == '__main__':
    unittest.main()
