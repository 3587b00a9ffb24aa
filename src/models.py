#!/usr/bin/env python3
"""
Data models for CI Heal
"""

import json
import math
from dataclasses import dataclass, field
from enum import Enum
from types import MappingProxyType
from typing import Any, Dict, List, Mapping, Optional

from constants import LOG_TAIL_CHARS


class RiskLevel(str, Enum):
    """Risk label attached to a diagnosis or a single fix"""
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"
    UNKNOWN = "unknown"

    @classmethod
    def parse(cls, value: Any) -> "RiskLevel":
        if isinstance(value, cls):
            return value
        if isinstance(value, str):
            try:
                return cls(value.strip().lower())
            except ValueError:
                pass
        return cls.UNKNOWN


def _pick(data: Dict[str, Any], name: str, default: Any = "") -> Any:
    """Look a field up by snake_case, camelCase or PascalCase name"""
    parts = name.split("_")
    camel = parts[0] + "".join(p.capitalize() for p in parts[1:])
    pascal = "".join(p.capitalize() for p in parts)
    for key in (name, camel, pascal):
        if key in data:
            return data[key]
    return default


def _text(value: Any) -> str:
    return value if isinstance(value, str) else ("" if value is None else str(value))


@dataclass(frozen=True)
class FailureContext:
    """One failed pipeline step, as handed to the analysis oracle"""
    step_name: str
    error_message: str
    logs: str
    repository: str = ""
    branch: str = ""
    commit: str = ""
    context: Mapping[str, Any] = field(default_factory=dict)

    def __post_init__(self):
        object.__setattr__(self, "logs", (self.logs or "")[-LOG_TAIL_CHARS:])
        object.__setattr__(self, "context", MappingProxyType(dict(self.context or {})))

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "FailureContext":
        if not isinstance(data, dict):
            raise ValueError("Failure context must be a JSON object")
        extra = _pick(data, "context", {}) or {}
        if not isinstance(extra, dict):
            raise ValueError("Failure context 'context' must be a JSON object")
        return cls(
            step_name=_text(_pick(data, "step_name")),
            error_message=_text(_pick(data, "error_message")),
            logs=_text(_pick(data, "logs")),
            repository=_text(_pick(data, "repository")),
            branch=_text(_pick(data, "branch")),
            commit=_text(_pick(data, "commit")),
            context=extra,
        )

    @classmethod
    def from_json(cls, payload: str) -> "FailureContext":
        try:
            data = json.loads(payload)
        except (ValueError, TypeError) as e:
            raise ValueError(f"Invalid failure context JSON: {e}") from e
        return cls.from_dict(data)


@dataclass(frozen=True)
class Fix:
    """A single remediation command proposed by the oracle"""
    command: str
    description: str = ""
    risk_level: RiskLevel = RiskLevel.UNKNOWN
    type: str = ""

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Fix":
        return cls(
            command=_text(data.get("command")),
            description=_text(data.get("description")),
            risk_level=RiskLevel.parse(data.get("risk_level")),
            type=_text(data.get("type")),
        )


@dataclass
class Diagnosis:
    """Structured answer of the analysis oracle"""
    root_cause: str = ""
    confidence: int = 0
    fixes: List[Fix] = field(default_factory=list)
    can_automate: bool = False
    reasoning: str = ""
    risk_level: RiskLevel = RiskLevel.UNKNOWN

    @classmethod
    def from_dict(cls, data: Any) -> "Diagnosis":
        """Build a diagnosis, degrading malformed fields to safe defaults"""
        if not isinstance(data, dict):
            return cls.unavailable("Analysis response was not a JSON object")

        confidence = data.get("confidence", 0)
        if isinstance(confidence, bool) or not isinstance(confidence, (int, float)):
            confidence = 0
        elif isinstance(confidence, float) and not math.isfinite(confidence):
            confidence = 0
        confidence = int(max(0, min(10, confidence)))

        raw_fixes = data.get("fixes")
        if not isinstance(raw_fixes, list):
            raw_fixes = []
        fixes = [Fix.from_dict(item) for item in raw_fixes if isinstance(item, dict)]

        return cls(
            root_cause=_text(data.get("root_cause")),
            confidence=confidence,
            fixes=fixes,
            can_automate=data.get("can_automate") is True,
            reasoning=_text(data.get("reasoning")),
            risk_level=RiskLevel.parse(data.get("risk_level")),
        )

    @classmethod
    def unavailable(cls, reason: str) -> "Diagnosis":
        return cls(root_cause=f"Failed to analyze: {reason}")


@dataclass
class ExecutionResult:
    """Outcome of one attempted fix"""
    fix: Fix
    executed: bool
    exit_code: Optional[int] = None
    stdout: str = ""
    stderr: str = ""
    duration_ms: int = 0

    @property
    def succeeded(self) -> bool:
        return self.executed and self.exit_code == 0

    @classmethod
    def skipped(cls, fix: Fix) -> "ExecutionResult":
        return cls(fix=fix, executed=False)


@dataclass
class HealingOutcome:
    """Terminal result of one healing run"""
    healed: bool
    diagnosis: Diagnosis
    results: List[ExecutionResult] = field(default_factory=list)
    attempted: bool = False

    @property
    def suggested_fixes(self) -> List[Fix]:
        """Fixes left for a human when automation was not attempted"""
        return [] if self.attempted else list(self.diagnosis.fixes)
