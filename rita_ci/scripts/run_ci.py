#!/usr/bin/env python3
"""
Integration CI Script

Command-line interface for the integration CI run: project tests, kernel
module check, source packaging and the Docker integration container.
"""

import sys
import logging
import argparse
from pathlib import Path
from typing import List, Optional

from rita_ci.build.ci_pipeline import CIPipeline, PipelineProgress, PipelineResult
from rita_ci.build.source_archive import SourceArchiver
from rita_ci.config.ci_config import (
    CIConfig,
    create_default_config,
    load_ci_config,
    save_ci_config,
    validate_config
)
from rita_ci.runtime.docker_runner import DockerRunner
from rita_ci.runtime.kernel_module import KernelModuleChecker
from rita_ci.utils.log_utils import setup_logging
from rita_ci.utils.process_utils import find_binary

EXIT_INTERRUPTED = 130


class ProgressDisplay:
    """Stage headers for the command-line interface"""

    def __init__(self):
        self.last_stage = ""

    def update_progress(self, progress: PipelineProgress):
        if progress.stage != self.last_stage:
            print(f"\n=== {progress.stage.upper()} ({progress.current_step}/{progress.total_steps}) ===",
                  flush=True)
            self.last_stage = progress.stage


def print_banner():
    """Print run banner"""
    print("=" * 70)
    print("Rita Integration CI")
    print("=" * 70)
    print()


def build_config(args) -> CIConfig:
    """Effective configuration: defaults, then config file, then arguments"""
    if getattr(args, 'config', None):
        config = load_ci_config(args.config)
        if args.repo:
            config.repo_path = str(Path(args.repo).resolve())
    else:
        config = create_default_config(args.repo or str(Path.cwd()))

    if getattr(args, 'nodes', None):
        config.nodes = args.nodes
    if getattr(args, 'skip_tests', False):
        config.skip_tests = True
    if getattr(args, 'always_cleanup', False):
        config.always_cleanup = True
    if getattr(args, 'timeout', None):
        config.command_timeout = args.timeout
    if getattr(args, 'report_dir', None):
        config.report_dir = args.report_dir

    return config


def print_result(result: PipelineResult):
    """Print per-stage summary"""
    print("\nCI Result:")
    for stage in result.stages:
        if stage.skipped:
            mark = "⏭️ "
        else:
            mark = "✅" if stage.success else "❌"
        print(f"  {mark} {stage.name:<16} {stage.duration:7.1f}s  {stage.message.splitlines()[0] if stage.message else ''}")

    print(f"Total Time: {result.total_time:.1f} seconds")
    if result.log_file:
        print(f"Log File: {result.log_file}")


def run_pipeline(args) -> int:
    """Run every stage and return the run's exit code"""
    print_banner()
    config = build_config(args)

    valid, issues = validate_config(config)
    if not valid:
        print("❌ Configuration validation failed:")
        for issue in issues:
            print(f"  - {issue}")
        return 1

    pipeline = CIPipeline(config, log_dir=args.log_dir)
    display = ProgressDisplay()
    pipeline.set_progress_callback(display.update_progress)

    result = pipeline.run()
    print_result(result)

    if result.success:
        print("\n✅ Integration CI passed!")
    else:
        print(f"\n❌ Integration CI failed at stage {result.failed_stage} (exit code {result.exit_code})")

    return result.exit_code


def check_module(args) -> int:
    """Kernel module check on its own"""
    checker = KernelModuleChecker(args.module)
    status = checker.check()

    if status.available:
        print(f"✅ {status.message}")
        return 0

    print(status.message)
    return 1


def package_source(args) -> int:
    """Create the source tarball without running anything else"""
    config = build_config(args)
    output = args.output or str(config.archive_path)

    archiver = SourceArchiver(config.repo_path)
    info = archiver.create_archive(output, prefix=config.archive_prefix, ref=config.archive_ref)

    print(f"Archive: {info.path}")
    print(f"Ref: {info.ref}")
    print(f"Prefix: {info.prefix}")
    print(f"Members: {info.members}")
    print(f"Size: {info.size} bytes")
    print(f"SHA256: {info.checksum}")
    return 0


def show_info(args) -> int:
    """Show CI environment information"""
    print_banner()
    config = build_config(args)

    print(f"Repository: {config.repo_path}")
    print(f"Container folder: {config.docker_folder}")

    for tool in ("git", "cargo", "modprobe"):
        path = find_binary(tool)
        print(f"{'✅' if path else '❌'} {tool}: {path or 'not found'}")

    docker = DockerRunner()
    available, version = docker.check_docker_available()
    print(f"{'✅' if available else '❌'} docker: {version}")
    if available:
        running = docker.check_daemon_running()
        print(f"{'✅' if running else '❌'} docker daemon: {'running' if running else 'not running'}")

    checker = KernelModuleChecker(config.kernel_module)
    loaded = checker.is_loaded()
    print(f"{'✅' if loaded else '❌'} kernel module {config.kernel_module}: {'loaded' if loaded else 'not loaded'}")

    print("\nBuild arguments:")
    for name, value in config.build_args().items():
        print(f"  {name}={value}")

    valid, issues = validate_config(config)
    if not valid:
        print("\nConfiguration issues:")
        for issue in issues:
            print(f"  - {issue}")

    return 0


def save_config(args) -> int:
    """Write the effective configuration to a file"""
    config = build_config(args)
    save_ci_config(config, args.save_config)
    print(f"Configuration saved to {args.save_config}")
    return 0


def create_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description="Integration CI runner for rita",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  # Full run from the repository root
  rita-ci run

  # Run against a specific topology without the cargo tests
  NODES=5 rita-ci run --skip-tests

  # Only check that WireGuard can be loaded
  rita-ci check-module

  # Show tools, module state and build arguments
  rita-ci info
        """
    )
    parser.add_argument('--verbose', action='store_true', help='Debug logging')

    subparsers = parser.add_subparsers(dest='command', help='Available commands')

    run_parser = subparsers.add_parser('run', help='Run the full CI sequence')
    run_parser.add_argument('--repo', help='Repository root (default: current directory)')
    run_parser.add_argument('--config', help='Load configuration from JSON file')
    run_parser.add_argument('--nodes', help='NODES build argument (overrides environment)')
    run_parser.add_argument('--skip-tests', action='store_true', help='Skip the project test suite')
    run_parser.add_argument('--always-cleanup', action='store_true',
                            help='Remove the source tarball even when the container fails')
    run_parser.add_argument('--timeout', type=float, help='Per-command timeout in seconds')
    run_parser.add_argument('--report-dir', help='Write a JSON report to this directory')
    run_parser.add_argument('--log-dir', help='Write a run log to this directory')
    # SUPPRESS keeps a top-level --verbose from being reset by the subcommand default
    run_parser.add_argument('--verbose', action='store_true', default=argparse.SUPPRESS,
                            help='Debug logging')

    module_parser = subparsers.add_parser('check-module', help='Check the kernel module')
    module_parser.add_argument('--module', default='wireguard', help='Module name (default: wireguard)')

    package_parser = subparsers.add_parser('package', help='Create the source tarball')
    package_parser.add_argument('--repo', help='Repository root (default: current directory)')
    package_parser.add_argument('--config', help='Load configuration from JSON file')
    package_parser.add_argument('--output', help='Tarball path (default: container folder)')

    info_parser = subparsers.add_parser('info', help='Show CI environment information')
    info_parser.add_argument('--repo', help='Repository root (default: current directory)')
    info_parser.add_argument('--config', help='Load configuration from JSON file')

    save_parser = subparsers.add_parser('save-config', help='Save configuration')
    save_parser.add_argument('--save-config', required=True, help='Configuration file to save')
    save_parser.add_argument('--repo', help='Repository root (default: current directory)')
    save_parser.add_argument('--nodes', help='NODES build argument')

    return parser


def main(argv: Optional[List[str]] = None) -> int:
    """Main function"""
    parser = create_parser()
    args = parser.parse_args(argv)

    if not args.command:
        parser.print_help()
        return 0

    setup_logging(logging.DEBUG if args.verbose else logging.INFO)

    commands = {
        'run': run_pipeline,
        'check-module': check_module,
        'package': package_source,
        'info': show_info,
        'save-config': save_config
    }

    try:
        return commands[args.command](args)
    except KeyboardInterrupt:
        print("\n\n⚠️  Run interrupted by user")
        return EXIT_INTERRUPTED
    except Exception as e:
        print(f"\n❌ Error: {e}")
        return 1


if __name__ == "__main__":
    sys.exit(main())
