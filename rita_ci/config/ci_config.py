#!/usr/bin/env python3
"""
CI run configuration.

Holds the values the integration run passes to cargo, modprobe, git and
docker, and loads/saves them as JSON. The only environment input is
NODES, which follows the shell ``${NODES:=None}`` rule.
"""

import os
import json
from dataclasses import dataclass, field, fields, asdict
from pathlib import Path
from typing import Dict, List, Mapping, Optional, Tuple

DEFAULT_NODES = "None"
CONTAINER_FOLDER = Path("integration-tests") / "container"


@dataclass
class CIConfig:
    """Configuration for an integration CI run"""
    repo_path: str
    docker_folder: str = ""
    nodes: str = DEFAULT_NODES
    image_tag: str = "rita-test"
    archive_name: str = "rita.tar.gz"
    archive_prefix: str = "althea_rs/"
    archive_ref: str = "HEAD"
    kernel_module: str = "wireguard"
    test_command: List[str] = field(default_factory=lambda: ["cargo", "test", "--all"])
    test_threads: int = 1
    speedtest_throughput: str = "20"
    speedtest_duration: str = "15"
    initial_poll_interval: str = "5"
    backoff_factor: str = "1.5"
    verbose: str = "1"
    privileged: bool = True
    tty: bool = True
    skip_tests: bool = False
    always_cleanup: bool = False
    command_timeout: Optional[float] = None
    report_dir: Optional[str] = None

    def __post_init__(self):
        if not self.docker_folder:
            self.docker_folder = str(Path(self.repo_path) / CONTAINER_FOLDER)

    @property
    def archive_path(self) -> Path:
        """Location of the source tarball inside the container build context"""
        return Path(self.docker_folder) / self.archive_name

    def build_args(self) -> Dict[str, str]:
        """Build arguments passed to docker build, in command line order"""
        return {
            "NODES": str(self.nodes),
            "SPEEDTEST_THROUGHPUT": str(self.speedtest_throughput),
            "SPEEDTEST_DURATION": str(self.speedtest_duration),
            "INITIAL_POLL_INTERVAL": str(self.initial_poll_interval),
            "BACKOFF_FACTOR": str(self.backoff_factor),
            "VERBOSE": str(self.verbose),
        }


def resolve_nodes(environ: Optional[Mapping[str, str]] = None) -> str:
    """NODES from the environment; unset or empty means "None"."""
    if environ is None:
        environ = os.environ
    return environ.get("NODES") or DEFAULT_NODES


def create_default_config(repo_path: str, environ: Optional[Mapping[str, str]] = None) -> CIConfig:
    """Default configuration for a repository checkout"""
    return CIConfig(
        repo_path=str(Path(repo_path).resolve()),
        nodes=resolve_nodes(environ)
    )


def load_ci_config(config_file: str, environ: Optional[Mapping[str, str]] = None) -> CIConfig:
    """
    Load configuration from a JSON file.

    Relative repo_path and docker_folder values are resolved against the
    directory holding the file. NODES set in the environment takes
    precedence over the file.

    Args:
        config_file: Path to the JSON configuration
        environ: Environment mapping, defaults to os.environ

    Returns:
        Loaded CIConfig
    """
    config_path = Path(config_file)
    if not config_path.exists():
        raise FileNotFoundError(f"Configuration file not found: {config_file}")

    with open(config_path, 'r') as f:
        config_data = json.load(f)

    if not isinstance(config_data, dict):
        raise ValueError(f"Configuration must be a JSON object: {config_file}")

    known = {f.name for f in fields(CIConfig)}
    unknown = sorted(set(config_data) - known)
    if unknown:
        raise ValueError(f"Unknown configuration keys: {unknown}")

    if "repo_path" not in config_data:
        raise ValueError("Configuration is missing repo_path")

    base_dir = config_path.parent.resolve()
    for key in ("repo_path", "docker_folder"):
        value = config_data.get(key)
        if value and not Path(value).is_absolute():
            config_data[key] = str(base_dir / value)

    if environ is None:
        environ = os.environ
    if environ.get("NODES"):
        config_data["nodes"] = environ["NODES"]

    return CIConfig(**config_data)


def save_ci_config(config: CIConfig, config_file: str):
    """Save configuration to a JSON file"""
    with open(config_file, 'w') as f:
        json.dump(asdict(config), f, indent=2)


def validate_config(config: CIConfig) -> Tuple[bool, List[str]]:
    """
    Check a configuration before a run.

    Returns:
        Tuple of (valid, list of issues)
    """
    issues = []

    if not Path(config.repo_path).is_dir():
        issues.append(f"Repository not found: {config.repo_path}")

    docker_folder = Path(config.docker_folder)
    if not docker_folder.is_dir():
        issues.append(f"Container folder not found: {config.docker_folder}")
    elif not (docker_folder / "Dockerfile").exists():
        issues.append(f"No Dockerfile in container folder: {config.docker_folder}")

    if not config.test_command and not config.skip_tests:
        issues.append("Test command is empty")

    if config.test_threads < 1:
        issues.append(f"test_threads must be positive, got {config.test_threads}")

    numeric_args = {
        "SPEEDTEST_THROUGHPUT": config.speedtest_throughput,
        "SPEEDTEST_DURATION": config.speedtest_duration,
        "INITIAL_POLL_INTERVAL": config.initial_poll_interval,
        "BACKOFF_FACTOR": config.backoff_factor,
        "VERBOSE": config.verbose,
    }
    for name, value in numeric_args.items():
        try:
            float(value)
        except (TypeError, ValueError):
            issues.append(f"Build argument {name} is not numeric: {value!r}")

    if config.command_timeout is not None and config.command_timeout <= 0:
        issues.append(f"command_timeout must be positive, got {config.command_timeout}")

    return len(issues) == 0, issues
