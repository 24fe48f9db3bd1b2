#!/usr/bin/env python3
"""
Integration CI Pipeline

Runs the CI stages in order: project tests, kernel module check, source
packaging, container build, container run and tarball cleanup. The first
failing stage ends the run and its exit code becomes the run's exit code.
"""

import json
import time
from dataclasses import dataclass, field, asdict
from datetime import datetime
from pathlib import Path
from typing import Callable, Dict, List, Optional, Union

from rita_ci.build.source_archive import ArchiveError, ArchiveInfo, SourceArchiver
from rita_ci.build.suite_runner import SuiteRunner
from rita_ci.config.ci_config import CIConfig
from rita_ci.runtime.docker_runner import DockerRunner
from rita_ci.runtime.kernel_module import KernelModuleChecker
from rita_ci.utils.file_utils import ensure_directory
from rita_ci.utils.log_utils import get_log_file, setup_logging

STAGES = [
    "tests",
    "kernel_module",
    "package",
    "container_build",
    "container_run",
    "cleanup"
]


@dataclass
class StageResult:
    """Result of a single pipeline stage"""
    name: str
    success: bool
    returncode: Optional[int] = None
    duration: float = 0.0
    message: str = ""
    skipped: bool = False


@dataclass
class PipelineProgress:
    """Pipeline progress tracking"""
    stage: str
    current_step: int
    total_steps: int
    percentage: float
    message: str


@dataclass
class PipelineResult:
    """Pipeline result information"""
    success: bool
    exit_code: int
    stages: List[StageResult] = field(default_factory=list)
    total_time: float = 0.0
    failed_stage: Optional[str] = None
    archive: Optional[ArchiveInfo] = None
    log_file: str = ""

    def stage(self, name: str) -> Optional[StageResult]:
        return next((s for s in self.stages if s.name == name), None)

    def to_dict(self) -> Dict:
        return {
            'success': self.success,
            'exit_code': self.exit_code,
            'failed_stage': self.failed_stage,
            'total_time': self.total_time,
            'stages': [asdict(s) for s in self.stages],
            'archive': asdict(self.archive) if self.archive else None,
            'log_file': self.log_file,
            'timestamp': datetime.now().isoformat()
        }


class CIPipeline:
    """Sequential integration CI run"""

    def __init__(self, config: CIConfig,
                 suite_runner: Optional[SuiteRunner] = None,
                 module_checker: Optional[KernelModuleChecker] = None,
                 archiver: Optional[SourceArchiver] = None,
                 docker_runner: Optional[DockerRunner] = None,
                 log_dir: Optional[Union[str, Path]] = None):
        self.config = config
        self.logger = setup_logging(log_dir=log_dir)

        self.suite_runner = suite_runner or SuiteRunner(
            config.repo_path,
            test_command=config.test_command,
            test_threads=config.test_threads,
            timeout=config.command_timeout
        )
        self.module_checker = module_checker or KernelModuleChecker(config.kernel_module)
        self.archiver = archiver or SourceArchiver(config.repo_path, timeout=config.command_timeout)
        self.docker_runner = docker_runner or DockerRunner(timeout=config.command_timeout)

        self.progress_callback: Optional[Callable[[PipelineProgress], None]] = None
        self.archive: Optional[ArchiveInfo] = None

    def set_progress_callback(self, callback: Callable[[PipelineProgress], None]):
        """Set progress callback function"""
        self.progress_callback = callback

    def _update_progress(self, stage: str, step: int, message: str):
        """Update pipeline progress"""
        total = len(STAGES)
        percentage = (step / total) * 100 if total > 0 else 0

        progress = PipelineProgress(
            stage=stage,
            current_step=step,
            total_steps=total,
            percentage=percentage,
            message=message
        )

        self.logger.info(f"[{stage}] {message} ({step}/{total})")

        if self.progress_callback:
            self.progress_callback(progress)

    def run_tests(self) -> StageResult:
        """Stage 1: project test suite"""
        if self.config.skip_tests:
            self.logger.warning("Skipping project tests")
            return StageResult("tests", True, skipped=True, message="skipped")

        result = self.suite_runner.run()
        return StageResult(
            "tests",
            result.success,
            returncode=result.returncode,
            message=f"{result.tests_passed} passed, {result.tests_failed} failed"
        )

    def check_kernel_module(self) -> StageResult:
        """Stage 2: the kernel module must be loadable from here"""
        status = self.module_checker.check()
        if not status.available:
            print(status.message, flush=True)
            self.logger.error(status.message)
            return StageResult("kernel_module", False, returncode=1, message=status.message)

        return StageResult("kernel_module", True, returncode=0, message=status.message)

    def package_source(self) -> StageResult:
        """Stage 3: tarball of the committed tree into the container folder"""
        try:
            self.archive = self.archiver.create_archive(
                self.config.archive_path,
                prefix=self.config.archive_prefix,
                ref=self.config.archive_ref
            )
        except ArchiveError as e:
            return StageResult("package", False, returncode=e.returncode, message=str(e))

        return StageResult(
            "package",
            True,
            returncode=0,
            message=f"{self.archive.path} ({self.archive.size} bytes)"
        )

    def build_container(self) -> StageResult:
        """Stage 4a: docker build in the container folder"""
        result = self.docker_runner.build_image(
            self.config.docker_folder,
            self.config.image_tag,
            self.config.build_args()
        )
        return StageResult(
            "container_build",
            result.success,
            returncode=result.returncode,
            message=f"image {self.config.image_tag}" if result.success else result.tail()
        )

    def run_container(self) -> StageResult:
        """Stage 4b: docker run of the integration image"""
        result = self.docker_runner.run_container(
            self.config.image_tag,
            privileged=self.config.privileged,
            tty=self.config.tty,
            cwd=self.config.docker_folder
        )
        return StageResult(
            "container_run",
            result.success,
            returncode=result.returncode,
            message="integration tests passed" if result.success else result.tail()
        )

    def cleanup(self) -> StageResult:
        """Remove the source tarball"""
        removed = self.archiver.remove_archive(self.config.archive_path)
        return StageResult(
            "cleanup",
            True,
            returncode=0,
            message="archive removed" if removed else "no archive to remove"
        )

    def _execute_stage(self, name: str, handler: Callable[[], StageResult]) -> StageResult:
        """Run a stage, turning exceptions into a failed result"""
        start = time.time()
        try:
            result = handler()
        except Exception as e:
            self.logger.error(f"Stage {name} failed with exception: {e}")
            result = StageResult(name, False, message=str(e))

        result.duration = time.time() - start
        if result.skipped:
            self.logger.info(f"Stage {name} skipped")
        elif result.success:
            self.logger.info(f"Stage {name} completed in {result.duration:.1f}s")
        else:
            self.logger.error(f"Stage {name} failed after {result.duration:.1f}s")
        return result

    def run(self) -> PipelineResult:
        """Main pipeline function"""
        start_time = time.time()
        stages: List[StageResult] = []
        failed_stage = None
        exit_code = 0

        handlers = {
            "tests": self.run_tests,
            "kernel_module": self.check_kernel_module,
            "package": self.package_source,
            "container_build": self.build_container,
            "container_run": self.run_container,
            "cleanup": self.cleanup
        }

        self.logger.info("Starting integration CI run")
        self.logger.info(f"Repository: {self.config.repo_path}")
        self.logger.info(f"Container folder: {self.config.docker_folder}")
        self.logger.info(f"NODES: {self.config.nodes}")

        try:
            for step, name in enumerate(STAGES, 1):
                self._update_progress(name, step, f"Running stage {name}")
                result = self._execute_stage(name, handlers[name])
                stages.append(result)

                if not result.success:
                    failed_stage = name
                    exit_code = result.returncode if result.returncode else 1
                    break
        finally:
            cleaned = any(s.name == "cleanup" for s in stages)
            if self.config.always_cleanup and not cleaned and self.config.archive_path.exists():
                self.logger.info("Removing source archive after failed run")
                stages.append(self._execute_stage("cleanup", self.cleanup))

        total_time = time.time() - start_time
        success = failed_stage is None

        if success:
            self.logger.info(f"Integration CI run completed successfully in {total_time:.1f} seconds")
        else:
            self.logger.error(f"Integration CI run failed at stage {failed_stage} "
                              f"with exit code {exit_code} after {total_time:.1f} seconds")

        result = PipelineResult(
            success=success,
            exit_code=exit_code,
            stages=stages,
            total_time=total_time,
            failed_stage=failed_stage,
            archive=self.archive,
            log_file=get_log_file(self.logger)
        )

        if self.config.report_dir:
            self.save_report(result, self.config.report_dir)

        return result

    def save_report(self, result: PipelineResult, report_dir: Union[str, Path]) -> Path:
        """Write the run result as JSON"""
        ensure_directory(report_dir)
        timestamp = datetime.now().strftime('%Y%m%d_%H%M%S')
        report_file = Path(report_dir) / f"ci_report_{timestamp}.json"

        with open(report_file, 'w') as f:
            json.dump(result.to_dict(), f, indent=2)

        self.logger.info(f"Report written to {report_file}")
        return report_file
