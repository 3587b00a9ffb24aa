#!/usr/bin/env python3
"""
Constants for CI Heal
"""

# Anthropic Messages API
ANTHROPIC_API_URL = "https://api.anthropic.com/v1/messages"
ANTHROPIC_API_VERSION = "2023-06-01"
DEFAULT_MODEL = "claude-3-5-sonnet-20241022"
DEFAULT_MAX_TOKENS = 4000
DEFAULT_TEMPERATURE = 0.1
REQUEST_TIMEOUT = 60

# Only the tail of the build log is sent to the model
LOG_TAIL_CHARS = 5000

# Minimum diagnosis confidence (0-10) before fixes are executed
CONFIDENCE_THRESHOLD = 7

# Exit code reported when a command could not be started at all
SPAWN_FAILURE_EXIT_CODE = -1

# Commands allowed to run, matched as case-insensitive prefixes
SAFE_COMMANDS = frozenset({
    "dotnet restore", "dotnet build", "dotnet test", "dotnet clean",
    "npm install", "npm update", "npm run build", "npm run test",
    "git checkout", "git reset", "git clean",
    "powershell -Command", "pwsh -Command",
})

# Substrings that reject a command outright, even if its prefix is allowed
FORBIDDEN_PATTERNS = frozenset({
    "rm -rf", "Remove-Item -Recurse -Force", "format c:",
    "sudo", "runas", "net user", "reg delete",
})

# Commands that hand their script to PowerShell instead of being split
SHELL_PREFIXES = ("powershell", "pwsh")
SHELL_COMMAND_MARKER = "-Command"
SHELL_PROGRAM = "pwsh"

# Title printed above every analysis report
CI_HEAL_REPORT_TITLE = "🩺 **CI Heal Analysis**"
