#!/usr/bin/env python3
"""
Runs a single remediation command and captures its output
"""

import re
import subprocess
import time
from typing import List, Optional

from constants import (
    SHELL_COMMAND_MARKER,
    SHELL_PREFIXES,
    SHELL_PROGRAM,
    SPAWN_FAILURE_EXIT_CODE,
)
from models import ExecutionResult, Fix

# Double quotes group words; backslashes and apostrophes are literal
ARGUMENT = re.compile(r'(?:"[^"]*"?|[^\s"]+)+')


class CommandExecutor:
    """Spawns commands without an intermediate shell (PowerShell scripts excepted)"""

    def __init__(self, cwd: Optional[str] = None, timeout: Optional[float] = None):
        self.cwd = cwd
        # None waits for the process indefinitely
        self.timeout = timeout

    def run(self, command: str) -> ExecutionResult:
        """Run a raw command string"""
        return self.run_fix(Fix(command=command))

    def run_fix(self, fix: Fix) -> ExecutionResult:
        """Run the command of a fix; spawn errors are reported, never raised"""
        started = time.monotonic()
        try:
            argv = self.build_argv(fix.command)
            completed = subprocess.run(
                argv,
                cwd=self.cwd,
                stdin=subprocess.DEVNULL,
                capture_output=True,
                text=True,
                errors="replace",
                timeout=self.timeout,
                check=False,
            )
        except subprocess.TimeoutExpired as e:
            return self._failure(fix, f"Command timed out after {e.timeout}s", started)
        except (OSError, ValueError) as e:
            return self._failure(fix, f"Failed to start command: {e}", started)

        return ExecutionResult(
            fix=fix,
            executed=True,
            exit_code=completed.returncode,
            stdout=completed.stdout or "",
            stderr=completed.stderr or "",
            duration_ms=self._elapsed_ms(started),
        )

    @staticmethod
    def build_argv(command: str) -> List[str]:
        """Split a command into program and arguments"""
        trimmed = command.strip()
        if not trimmed:
            raise ValueError("empty command")

        if trimmed.lower().startswith(SHELL_PREFIXES):
            marker = trimmed.lower().find(SHELL_COMMAND_MARKER.lower())
            if marker != -1:
                script = trimmed[marker + len(SHELL_COMMAND_MARKER):].strip()
                return [SHELL_PROGRAM, "-Command", script]

        parts = trimmed.split(None, 1)
        args = ARGUMENT.findall(parts[1]) if len(parts) > 1 else []
        return [parts[0]] + [arg.replace('"', "") for arg in args]

    def _failure(self, fix: Fix, message: str, started: float) -> ExecutionResult:
        return ExecutionResult(
            fix=fix,
            executed=True,
            exit_code=SPAWN_FAILURE_EXIT_CODE,
            stderr=message,
            duration_ms=self._elapsed_ms(started),
        )

    @staticmethod
    def _elapsed_ms(started: float) -> int:
        return int((time.monotonic() - started) * 1000)
