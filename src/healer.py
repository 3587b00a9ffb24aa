#!/usr/bin/env python3
"""
Healing orchestration: analyze, decide, execute approved fixes
"""

from typing import Optional

from anthropic_client import AnalysisOracle
from command_executor import CommandExecutor
from constants import CONFIDENCE_THRESHOLD, SPAWN_FAILURE_EXIT_CODE
from models import Diagnosis, ExecutionResult, FailureContext, HealingOutcome
from safety_policy import SafetyPolicy


class HealingOrchestrator:
    """Runs one healing attempt for a failed pipeline step.

    The oracle only needs ``analyze(context) -> Diagnosis`` and the executor
    only ``run_fix(fix) -> ExecutionResult``, so tests can pass fakes for both.
    Fixes run strictly in the order the oracle returned them and the run stops
    at the first executed fix that exits non-zero.
    """

    def __init__(self, oracle, policy: Optional[SafetyPolicy] = None,
                 executor: Optional[CommandExecutor] = None,
                 confidence_threshold: int = CONFIDENCE_THRESHOLD):
        self.oracle = oracle
        self.policy = policy or SafetyPolicy()
        self.executor = executor or CommandExecutor()
        self.confidence_threshold = confidence_threshold

    @classmethod
    def create(cls, api_key: str, model: Optional[str] = None,
               max_tokens: Optional[int] = None, cwd: Optional[str] = None,
               command_timeout: Optional[float] = None,
               confidence_threshold: int = CONFIDENCE_THRESHOLD) -> "HealingOrchestrator":
        """Build a fresh oracle/policy/executor set for one run"""
        oracle_kwargs = {}
        if model:
            oracle_kwargs["model"] = model
        if max_tokens:
            oracle_kwargs["max_tokens"] = max_tokens
        return cls(
            AnalysisOracle(api_key, **oracle_kwargs),
            policy=SafetyPolicy(),
            executor=CommandExecutor(cwd=cwd, timeout=command_timeout),
            confidence_threshold=confidence_threshold,
        )

    def heal(self, failure: FailureContext) -> HealingOutcome:
        diagnosis = self._analyze(failure)

        if not self.should_automate(diagnosis):
            print(f"⚠️  Automated healing not recommended "
                  f"(confidence: {diagnosis.confidence}, can_automate: {diagnosis.can_automate})")
            return HealingOutcome(healed=False, diagnosis=diagnosis)

        print(f"🔧 Attempting automated healing with {len(diagnosis.fixes)} fix(es)...")
        results = []
        for fix in diagnosis.fixes:
            reason = self.policy.explain(fix.command)
            if reason:
                print(f"⏭️  Skipping unsafe command ({reason}): {fix.command}")
                results.append(ExecutionResult.skipped(fix))
                continue

            print(f"🔧 Executing fix: {fix.description}")
            print(f"   Command: {fix.command}")
            result = self._execute(fix)
            results.append(result)

            if not result.succeeded:
                print(f"❌ Fix failed with exit code {result.exit_code}: {fix.description}")
                if result.stderr:
                    print(f"   Error: {result.stderr.strip()[:500]}")
                return HealingOutcome(healed=False, diagnosis=diagnosis, results=results, attempted=True)

            print(f"✅ Fix completed in {result.duration_ms}ms: {fix.description}")

        return HealingOutcome(healed=True, diagnosis=diagnosis, results=results, attempted=True)

    def should_automate(self, diagnosis: Diagnosis) -> bool:
        return diagnosis.can_automate and diagnosis.confidence >= self.confidence_threshold

    def _analyze(self, failure: FailureContext) -> Diagnosis:
        try:
            return self.oracle.analyze(failure)
        except Exception as e:
            print(f"❌ Analysis failed: {e}")
            return Diagnosis.unavailable(str(e))

    def _execute(self, fix) -> ExecutionResult:
        try:
            return self.executor.run_fix(fix)
        except Exception as e:
            return ExecutionResult(fix=fix, executed=True, exit_code=SPAWN_FAILURE_EXIT_CODE, stderr=str(e))
