"""
Host runtime checks and container execution for the CI run.

This module provides:
- Kernel module availability checks
- Docker image build and container run
"""

from .kernel_module import KernelModuleChecker, ModuleStatus
from .docker_runner import DockerRunner

__all__ = ['KernelModuleChecker', 'ModuleStatus', 'DockerRunner']
