#!/usr/bin/env python3
"""
Project test suite execution.

Runs the cargo workspace tests single-threaded; several tests bind fixed
ports and share global state.
"""

import re
import logging
from dataclasses import dataclass
from typing import Dict, List, Optional, Tuple

from rita_ci.utils.process_utils import run_command

logger = logging.getLogger(__name__)

TEST_RESULT_PATTERN = re.compile(
    r"test result: \w+\. (\d+) passed; (\d+) failed"
)


@dataclass
class SuiteResult:
    """Test suite result information"""
    success: bool
    returncode: int
    duration: float
    tests_passed: int
    tests_failed: int
    output: str = ""


class SuiteRunner:
    """Runs the project test suite"""

    def __init__(self, repo_path: str, test_command: Optional[List[str]] = None,
                 test_threads: int = 1, timeout: Optional[float] = None, echo: bool = True):
        self.repo_path = repo_path
        self.test_command = list(test_command) if test_command else ["cargo", "test", "--all"]
        self.test_threads = test_threads
        self.timeout = timeout
        self.echo = echo

    def build_environment(self) -> Dict[str, str]:
        """Environment overrides for the test run"""
        return {"RUST_TEST_THREADS": str(self.test_threads)}

    @staticmethod
    def parse_summary(output: str) -> Tuple[int, int]:
        """Sum passed/failed counts over every 'test result:' line"""
        passed = 0
        failed = 0
        for match in TEST_RESULT_PATTERN.finditer(output):
            passed += int(match.group(1))
            failed += int(match.group(2))
        return passed, failed

    def run(self) -> SuiteResult:
        """Run the test suite in the repository root"""
        logger.info(f"Running test suite in {self.repo_path} with {self.test_threads} thread(s)")

        result = run_command(
            self.test_command,
            cwd=self.repo_path,
            env=self.build_environment(),
            timeout=self.timeout,
            echo=self.echo
        )

        passed, failed = self.parse_summary(result.output)

        if result.success:
            logger.info(f"Test suite passed: {passed} passed, {failed} failed")
        else:
            logger.error(f"Test suite failed with exit code {result.returncode}: "
                         f"{passed} passed, {failed} failed")

        return SuiteResult(
            success=result.success,
            returncode=result.returncode,
            duration=result.duration,
            tests_passed=passed,
            tests_failed=failed,
            output=result.output
        )
