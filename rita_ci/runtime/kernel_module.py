#!/usr/bin/env python3
"""
Kernel module check for the integration test container.

The integration container creates WireGuard tunnels in the host kernel, so
the module has to be loadable from the host before the container starts.
"""

import logging
import subprocess
from dataclasses import dataclass
from pathlib import Path
from typing import List, Tuple

logger = logging.getLogger(__name__)


@dataclass
class ModuleStatus:
    """Outcome of a kernel module check."""
    name: str
    available: bool
    loaded_before: bool
    message: str = ""


class KernelModuleChecker:
    """Checks that a kernel module is loaded or can be loaded with modprobe."""

    WIREGUARD_URL = "https://www.wireguard.com/"

    def __init__(self, module_name: str = "wireguard", proc_modules: str = "/proc/modules"):
        """
        Initialize kernel module checker.

        Args:
            module_name: Name of the module passed to modprobe
            proc_modules: Path of the loaded modules table
        """
        self.module_name = module_name
        self.proc_modules = Path(proc_modules)

    def loaded_modules(self) -> List[str]:
        """Names of currently loaded modules."""
        if not self.proc_modules.exists():
            return []

        try:
            with open(self.proc_modules, 'r') as f:
                return [line.split()[0] for line in f if line.strip()]
        except OSError as e:
            logger.warning(f"Cannot read {self.proc_modules}: {e}")
            return []

    def is_loaded(self) -> bool:
        """Check if the module is currently loaded."""
        # /proc/modules lists names with underscores
        return self.module_name.replace('-', '_') in self.loaded_modules()

    def load_module(self) -> Tuple[bool, str]:
        """
        Load the module with modprobe.

        Returns:
            Tuple of (success, error output)
        """
        logger.info(f"+ modprobe {self.module_name}")
        try:
            result = subprocess.run(
                ["modprobe", self.module_name],
                capture_output=True,
                text=True
            )
        except FileNotFoundError:
            return False, "modprobe not found"
        except PermissionError as e:
            return False, str(e)

        if result.returncode != 0:
            return False, result.stderr.strip() or f"modprobe exited with code {result.returncode}"

        return True, ""

    def remediation_message(self) -> str:
        """Instructions printed when the module cannot be loaded."""
        return (
            "The container can't load modules into the host kernel\n"
            f"Please install WireGuard {self.WIREGUARD_URL} and load the kernel module "
            f"using 'sudo modprobe {self.module_name}'"
        )

    def check(self) -> ModuleStatus:
        """
        Make sure the module is available, loading it if needed.

        modprobe is always attempted; it is a no-op for a loaded module and
        fails when the caller cannot load modules at all.
        """
        loaded_before = self.is_loaded()
        success, error = self.load_module()

        if success:
            logger.info(f"Kernel module {self.module_name} is available")
            return ModuleStatus(
                name=self.module_name,
                available=True,
                loaded_before=loaded_before,
                message=f"Kernel module {self.module_name} is available"
            )

        logger.error(f"Failed to load kernel module {self.module_name}: {error}")
        return ModuleStatus(
            name=self.module_name,
            available=False,
            loaded_before=loaded_before,
            message=self.remediation_message()
        )
