#!/usr/bin/env python3
"""
Tests for the rita-ci command-line interface.
"""

import json
import logging
import os
import shutil
import tempfile
import unittest
from pathlib import Path
from unittest.mock import patch

from rita_ci.build.ci_pipeline import PipelineResult, StageResult
from rita_ci.runtime.kernel_module import ModuleStatus
from rita_ci.scripts import run_ci


class TestCommandLine(unittest.TestCase):
    """Test cases for the CLI entry point."""

    def setUp(self):
        self.temp_dir = tempfile.mkdtemp()
        container = Path(self.temp_dir) / "integration-tests" / "container"
        container.mkdir(parents=True)
        (container / "Dockerfile").write_text("FROM ubuntu\n")

    def tearDown(self):
        shutil.rmtree(self.temp_dir, ignore_errors=True)

    def test_no_command_prints_help(self):
        with patch('sys.stdout'):
            self.assertEqual(run_ci.main([]), 0)

    @patch('rita_ci.scripts.run_ci.CIPipeline')
    def test_run_returns_pipeline_exit_code(self, mock_pipeline_cls):
        mock_pipeline_cls.return_value.run.return_value = PipelineResult(
            success=False,
            exit_code=101,
            stages=[StageResult("tests", False, returncode=101, message="8 passed, 2 failed")],
            failed_stage="tests"
        )

        with patch('builtins.print'):
            code = run_ci.main(["run", "--repo", self.temp_dir])

        self.assertEqual(code, 101)
        config = mock_pipeline_cls.call_args[0][0]
        self.assertEqual(Path(config.repo_path), Path(self.temp_dir).resolve())

    @patch('rita_ci.scripts.run_ci.CIPipeline')
    def test_run_options_reach_config(self, mock_pipeline_cls):
        mock_pipeline_cls.return_value.run.return_value = PipelineResult(success=True, exit_code=0)

        with patch.dict(os.environ, {"NODES": "3"}), patch('builtins.print'):
            code = run_ci.main([
                "run", "--repo", self.temp_dir, "--skip-tests", "--always-cleanup",
                "--timeout", "900", "--log-dir", os.path.join(self.temp_dir, "logs")
            ])

        self.assertEqual(code, 0)
        config = mock_pipeline_cls.call_args[0][0]
        self.assertEqual(config.nodes, "3")
        self.assertTrue(config.skip_tests)
        self.assertTrue(config.always_cleanup)
        self.assertEqual(config.command_timeout, 900)
        self.assertEqual(mock_pipeline_cls.call_args[1]['log_dir'], os.path.join(self.temp_dir, "logs"))

    @patch('rita_ci.scripts.run_ci.CIPipeline')
    def test_nodes_argument_beats_environment(self, mock_pipeline_cls):
        mock_pipeline_cls.return_value.run.return_value = PipelineResult(success=True, exit_code=0)

        with patch.dict(os.environ, {"NODES": "3"}), patch('builtins.print'):
            run_ci.main(["run", "--repo", self.temp_dir, "--nodes", "9"])

        self.assertEqual(mock_pipeline_cls.call_args[0][0].nodes, "9")

    @patch('rita_ci.scripts.run_ci.CIPipeline')
    def test_run_rejects_invalid_config(self, mock_pipeline_cls):
        shutil.rmtree(Path(self.temp_dir) / "integration-tests")

        with patch('builtins.print'):
            code = run_ci.main(["run", "--repo", self.temp_dir])

        self.assertEqual(code, 1)
        mock_pipeline_cls.assert_not_called()

    @patch('rita_ci.scripts.run_ci.KernelModuleChecker')
    def test_check_module(self, mock_checker_cls):
        mock_checker_cls.return_value.check.return_value = ModuleStatus(
            "wireguard", False, False, "The container can't load modules into the host kernel"
        )

        with patch('builtins.print') as mock_print:
            code = run_ci.main(["check-module"])

        self.assertEqual(code, 1)
        mock_checker_cls.assert_called_once_with("wireguard")
        mock_print.assert_any_call("The container can't load modules into the host kernel")

    def test_save_config(self):
        config_file = os.path.join(self.temp_dir, "ci.json")

        with patch('builtins.print'):
            code = run_ci.main(["save-config", "--save-config", config_file,
                                "--repo", self.temp_dir, "--nodes", "6"])

        self.assertEqual(code, 0)
        with open(config_file) as f:
            data = json.load(f)
        self.assertEqual(data["nodes"], "6")
        self.assertEqual(data["image_tag"], "rita-test")

    @patch('rita_ci.scripts.run_ci.SourceArchiver')
    def test_package_error_exits_1(self, mock_archiver_cls):
        mock_archiver_cls.return_value.create_archive.side_effect = RuntimeError("git archive failed")

        with patch('builtins.print') as mock_print:
            code = run_ci.main(["package", "--repo", self.temp_dir])

        self.assertEqual(code, 1)
        mock_print.assert_any_call("\n❌ Error: git archive failed")

    @patch('rita_ci.scripts.run_ci.CIPipeline')
    def test_interrupt(self, mock_pipeline_cls):
        mock_pipeline_cls.return_value.run.side_effect = KeyboardInterrupt

        with patch('builtins.print'):
            code = run_ci.main(["run", "--repo", self.temp_dir])

        self.assertEqual(code, run_ci.EXIT_INTERRUPTED)

    def test_verbose_accepted_on_run(self):
        parser = run_ci.create_parser()
        self.assertTrue(parser.parse_args(["run", "--verbose"]).verbose)
        self.assertTrue(parser.parse_args(["--verbose", "run"]).verbose)
        self.assertFalse(parser.parse_args(["run"]).verbose)

    @patch('rita_ci.scripts.run_ci.setup_logging')
    @patch('rita_ci.scripts.run_ci.CIPipeline')
    def test_run_verbose_enables_debug_logging(self, mock_pipeline_cls, mock_setup_logging):
        mock_pipeline_cls.return_value.run.return_value = PipelineResult(success=True, exit_code=0)

        with patch('builtins.print'):
            code = run_ci.main(["run", "--repo", self.temp_dir, "--verbose"])

        self.assertEqual(code, 0)
        mock_setup_logging.assert_called_once_with(logging.DEBUG)

    @patch('rita_ci.scripts.run_ci.DockerRunner')
    @patch('rita_ci.scripts.run_ci.find_binary', return_value=None)
    def test_info(self, mock_find, mock_docker_cls):
        mock_docker_cls.return_value.check_docker_available.return_value = (False, "Docker not found")

        with patch.dict(os.environ, {"NODES": ""}), patch('builtins.print') as mock_print:
            code = run_ci.main(["info", "--repo", self.temp_dir])

        self.assertEqual(code, 0)
        mock_print.assert_any_call("  NODES=None")
        mock_print.assert_any_call("  BACKOFF_FACTOR=1.5")


if __name__ == '__main__':
    unittest.main()
