#!/usr/bin/env python3
"""
Docker integration for the CI runner.

Builds the integration test image from the container folder and runs it
privileged so the test network can be created inside it.
"""

import logging
import subprocess
from pathlib import Path
from typing import Dict, List, Optional, Tuple, Union

from rita_ci.utils.process_utils import CommandResult, run_command

logger = logging.getLogger(__name__)


class DockerRunner:
    """Builds and runs the integration test container."""

    def __init__(self, docker_binary: str = "docker", timeout: Optional[float] = None,
                 echo: bool = True):
        """
        Initialize Docker runner.

        Args:
            docker_binary: Docker client executable
            timeout: Per-command timeout in seconds, None to wait forever
            echo: Stream docker output to the console
        """
        self.docker_binary = docker_binary
        self.timeout = timeout
        self.echo = echo

    def check_docker_available(self) -> Tuple[bool, str]:
        """
        Check if the Docker client is installed.

        Returns:
            Tuple of (available, version string or error)
        """
        try:
            result = subprocess.run([self.docker_binary, '--version'],
                                    capture_output=True, text=True, timeout=10)
        except (subprocess.TimeoutExpired, FileNotFoundError):
            return False, "Docker not found or not responding"

        if result.returncode == 0:
            return True, result.stdout.strip()
        return False, result.stderr.strip() or "Docker not available"

    def check_daemon_running(self) -> bool:
        """Check if the Docker daemon answers."""
        try:
            result = subprocess.run([self.docker_binary, 'info'],
                                    capture_output=True, text=True, timeout=10)
            return result.returncode == 0
        except (subprocess.TimeoutExpired, FileNotFoundError):
            return False

    def build_command(self, context_dir: Union[str, Path], tag: str,
                      build_args: Dict[str, str]) -> List[str]:
        """docker build command line with context_dir as the build context."""
        cmd = [self.docker_binary, "build", "-t", tag]
        for name, value in build_args.items():
            cmd.extend(["--build-arg", f"{name}={value}"])
        cmd.append(str(Path(context_dir).absolute()))
        return cmd

    def run_command(self, tag: str, privileged: bool = True, tty: bool = True) -> List[str]:
        """docker run command line for an image."""
        cmd = [self.docker_binary, "run"]
        if privileged:
            cmd.append("--privileged")
        if tty:
            cmd.append("-t")
        cmd.append(tag)
        return cmd

    def build_image(self, context_dir: Union[str, Path], tag: str,
                    build_args: Dict[str, str]) -> CommandResult:
        """Build the image from context_dir."""
        logger.info(f"Building image {tag} from {context_dir}")
        result = run_command(
            self.build_command(context_dir, tag, build_args),
            cwd=context_dir,
            timeout=self.timeout,
            echo=self.echo
        )

        if result.success:
            logger.info(f"Image {tag} built in {result.duration:.1f}s")
        else:
            logger.error(f"docker build failed with exit code {result.returncode}")
        return result

    def run_container(self, tag: str, privileged: bool = True, tty: bool = True,
                      cwd: Optional[Union[str, Path]] = None) -> CommandResult:
        """Run the image and wait for the container to exit."""
        logger.info(f"Running container from image {tag}")
        result = run_command(
            self.run_command(tag, privileged=privileged, tty=tty),
            cwd=cwd,
            timeout=self.timeout,
            echo=self.echo
        )

        if result.success:
            logger.info(f"Container {tag} passed in {result.duration:.1f}s")
        else:
            logger.error(f"docker run failed with exit code {result.returncode}")
        return result
