#!/usr/bin/env python3
"""
Allow/deny policy gating which remediation commands may run
"""

from typing import Iterable, Optional

from constants import FORBIDDEN_PATTERNS, SAFE_COMMANDS


class SafetyPolicy:
    """Default-deny command policy: forbidden substrings win over allowed prefixes"""

    def __init__(self, allowed_prefixes: Iterable[str] = SAFE_COMMANDS,
                 forbidden_patterns: Iterable[str] = FORBIDDEN_PATTERNS):
        self.allowed_prefixes = frozenset(p.lower() for p in allowed_prefixes)
        self.forbidden_patterns = frozenset(p.lower() for p in forbidden_patterns)

    def is_safe(self, command: str) -> bool:
        """Return True only if the command may be executed"""
        return self.explain(command) is None

    def explain(self, command: str) -> Optional[str]:
        """Return why a command is rejected, or None when it is allowed"""
        if not isinstance(command, str) or not command.strip():
            return "empty command"

        lowered = command.lower()
        for pattern in self.forbidden_patterns:
            if pattern in lowered:
                return f"contains forbidden pattern '{pattern}'"

        trimmed = lowered.strip()
        if any(trimmed.startswith(prefix) for prefix in self.allowed_prefixes):
            return None

        return "not in safe command list"
