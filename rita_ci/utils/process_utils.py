#!/usr/bin/env python3
"""
External command execution for the CI runner.

Every stage of the pipeline is a call to an external tool. Commands are
echoed before they run, their combined output is streamed to the console
and collected, and the elapsed time is logged once they finish.
"""

import os
import shlex
import signal
import subprocess
import shutil
import threading
import time
import logging
from dataclasses import dataclass
from typing import Dict, IO, List, Optional, Union

logger = logging.getLogger(__name__)

# Shell conventions for commands that never produced an exit status
EXIT_NOT_FOUND = 127
EXIT_NOT_EXECUTABLE = 126
EXIT_TIMEOUT = 124

# Seconds to wait for the output reader once the process group is gone
READER_GRACE = 5.0


@dataclass
class CommandResult:
    """Result of an external command."""
    command: List[str]
    returncode: int
    output: str = ""
    duration: float = 0.0
    timed_out: bool = False
    
    @property
    def success(self) -> bool:
        return self.returncode == 0
        
    def tail(self, lines: int = 20) -> str:
        """Last lines of the command output, for error summaries."""
        return '\n'.join(self.output.splitlines()[-lines:])


def format_command(command: List[str]) -> str:
    """Render a command as a shell-quoted line."""
    return ' '.join(shlex.quote(str(arg)) for arg in command)


def _pump_output(stream: IO[str], output_lines: List[str], echo: bool):
    """Copy process output into a list, echoing it as it arrives."""
    for line in iter(stream.readline, ''):
        line = line.rstrip('\r\n')
        output_lines.append(line)
        if echo:
            print(line, flush=True)
    stream.close()


def _kill_process_group(process: subprocess.Popen):
    """Kill the command and every process it started in its session."""
    try:
        os.killpg(process.pid, signal.SIGKILL)
    except (ProcessLookupError, PermissionError):
        process.kill()
    process.wait()


def run_command(command: List[str], cwd: Optional[Union[str, os.PathLike]] = None,
                env: Optional[Dict[str, str]] = None, timeout: Optional[float] = None,
                echo: bool = True) -> CommandResult:
    """
    Run an external command and capture its combined output.
    
    Args:
        command: Command and arguments
        cwd: Working directory
        env: Extra environment variables merged over the current environment
        timeout: Seconds before the process is killed, None to wait forever
        echo: Stream output lines to stdout while collecting them
        
    Returns:
        CommandResult with the exit status and collected output
    """
    full_env = os.environ.copy()
    if env:
        full_env.update(env)
        
    command = [str(arg) for arg in command]
    logger.info(f"+ {format_command(command)}")
    if cwd:
        logger.debug(f"Working directory: {cwd}")
        
    start_time = time.time()
    
    try:
        process = subprocess.Popen(
            command,
            cwd=cwd,
            env=full_env,
            stdout=subprocess.PIPE,
            stderr=subprocess.STDOUT,
            encoding="utf-8",
            errors="replace",
            bufsize=1,
            start_new_session=True
        )
    except FileNotFoundError as e:
        logger.error(f"Command not found: {command[0]} ({e})")
        return CommandResult(command, EXIT_NOT_FOUND, str(e), time.time() - start_time)
    except PermissionError as e:
        logger.error(f"Command not executable: {command[0]} ({e})")
        return CommandResult(command, EXIT_NOT_EXECUTABLE, str(e), time.time() - start_time)
        
    output_lines: List[str] = []
    reader = threading.Thread(
        target=_pump_output,
        args=(process.stdout, output_lines, echo),
        daemon=True
    )
    reader.start()
    
    timed_out = False
    try:
        returncode = process.wait(timeout=timeout)
    except subprocess.TimeoutExpired:
        _kill_process_group(process)
        timed_out = True
        returncode = EXIT_TIMEOUT
    except KeyboardInterrupt:
        # The child runs in its own session and never sees the terminal's SIGINT
        _kill_process_group(process)
        reader.join(READER_GRACE)
        raise

    if timed_out:
        reader.join(READER_GRACE)
    elif timeout is not None:
        # Children left behind can hold the pipe open after the command exits
        reader.join(max(0.0, start_time + timeout - time.time()))
        if reader.is_alive():
            logger.warning(f"Output of {command[0]} still open after exit, killing leftover processes")
            _kill_process_group(process)
            reader.join(READER_GRACE)
    else:
        reader.join()

    duration = time.time() - start_time
    
    if timed_out:
        logger.error(f"Command timed out after {timeout} seconds: {command[0]}")
    else:
        logger.info(f"{command[0]} finished with exit code {returncode} in {duration:.1f}s")
        
    return CommandResult(
        command=command,
        returncode=returncode,
        output='\n'.join(list(output_lines)),
        duration=duration,
        timed_out=timed_out
    )


def find_binary(binary_name: str) -> Optional[str]:
    """Find an executable in PATH."""
    return shutil.which(binary_name)
