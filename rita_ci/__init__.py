"""
Integration CI runner for the rita router firmware.

Runs the test suite, checks the WireGuard kernel module, packages the
source tree and drives the Docker integration test container.
"""

__version__ = "0.1.0"
