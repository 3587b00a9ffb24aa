#!/usr/bin/env python3
"""
Tests for the healing orchestrator
"""

import unittest
from unittest.mock import Mock, patch
import os
import sys

import requests

# Add src to path for imports
sys.path.insert(0, os.path.join(os.path.dirname(__file__), "..", "src"))

from anthropic_client import AnalysisOracle
from constants import SPAWN_FAILURE_EXIT_CODE
from healer import HealingOrchestrator
from models import Diagnosis, ExecutionResult, FailureContext, Fix


class FakeOracle:
    def __init__(self, diagnosis):
        self.diagnosis = diagnosis
        self.calls = 0

    def analyze(self, failure):
        self.calls += 1
        return self.diagnosis


class FakeExecutor:
    """Returns scripted exit codes keyed by command"""

    def __init__(self, exit_codes=None):
        self.exit_codes = exit_codes or {}
        self.commands = []

    def run_fix(self, fix):
        self.commands.append(fix.command)
        return ExecutionResult(fix=fix, executed=True, exit_code=self.exit_codes.get(fix.command, 0))


def make_diagnosis(commands, confidence=9, can_automate=True):
    return Diagnosis(
        root_cause="stale packages",
        confidence=confidence,
        fixes=[Fix(command=c, description=f"run {c}") for c in commands],
        can_automate=can_automate,
    )


class TestHealingOrchestrator(unittest.TestCase):
    """Test the analyze/decide/execute flow"""

    def setUp(self):
        self.failure = FailureContext(step_name="Build", error_message="error CS0246", logs="...")
        self.executor = FakeExecutor()

    def heal(self, diagnosis):
        orchestrator = HealingOrchestrator(FakeOracle(diagnosis), executor=self.executor)
        return orchestrator.heal(self.failure)

    def test_all_fixes_succeed(self):
        """Test every safe fix runs in order and the pipeline is healed"""
        outcome = self.heal(make_diagnosis(["dotnet clean", "dotnet restore", "dotnet build"]))

        self.assertTrue(outcome.healed)
        self.assertTrue(outcome.attempted)
        self.assertEqual(self.executor.commands, ["dotnet clean", "dotnet restore", "dotnet build"])
        self.assertEqual(len(outcome.results), 3)
        self.assertTrue(all(r.succeeded for r in outcome.results))
        self.assertEqual(outcome.suggested_fixes, [])

    def test_cannot_automate(self):
        """Test no command runs when the oracle says automation is unsafe"""
        outcome = self.heal(make_diagnosis(["dotnet restore"], can_automate=False))

        self.assertFalse(outcome.healed)
        self.assertFalse(outcome.attempted)
        self.assertEqual(outcome.results, [])
        self.assertEqual(self.executor.commands, [])
        self.assertEqual([f.command for f in outcome.suggested_fixes], ["dotnet restore"])

    def test_low_confidence(self):
        """Test no command runs below the confidence threshold"""
        outcome = self.heal(make_diagnosis(["dotnet restore"], confidence=6))

        self.assertFalse(outcome.healed)
        self.assertEqual(outcome.results, [])
        self.assertEqual(self.executor.commands, [])

    def test_confidence_at_threshold(self):
        """Test the threshold itself is enough"""
        outcome = self.heal(make_diagnosis(["dotnet restore"], confidence=7))

        self.assertTrue(outcome.healed)
        self.assertEqual(self.executor.commands, ["dotnet restore"])

    def test_unsafe_fix_skipped(self):
        """Test an unsafe fix in the middle is skipped and the run continues"""
        outcome = self.heal(make_diagnosis(["dotnet restore", "sudo rm -rf /", "dotnet build"]))

        self.assertTrue(outcome.healed)
        self.assertEqual(len(outcome.results), 3)
        self.assertEqual([r.executed for r in outcome.results], [True, False, True])
        self.assertIsNone(outcome.results[1].exit_code)
        self.assertEqual(self.executor.commands, ["dotnet restore", "dotnet build"])

    def test_fail_fast(self):
        """Test the first failing fix stops the run"""
        self.executor.exit_codes = {"dotnet restore": 1}
        outcome = self.heal(make_diagnosis(["dotnet restore", "dotnet build"]))

        self.assertFalse(outcome.healed)
        self.assertTrue(outcome.attempted)
        self.assertEqual(len(outcome.results), 1)
        self.assertEqual(outcome.results[0].exit_code, 1)
        self.assertEqual(self.executor.commands, ["dotnet restore"])

    def test_results_never_exceed_fixes(self):
        """Test there is at most one result per fix"""
        self.executor.exit_codes = {"dotnet build": 2}
        diagnosis = make_diagnosis(["echo hi", "dotnet restore", "dotnet build", "dotnet test"])
        outcome = self.heal(diagnosis)

        self.assertLessEqual(len(outcome.results), len(diagnosis.fixes))
        self.assertEqual([r.executed for r in outcome.results], [False, True, True])
        self.assertFalse(outcome.healed)

    def test_oracle_connection_error(self):
        """Test an unreachable oracle yields no automation and no execution"""
        session = Mock()
        session.post.side_effect = requests.ConnectionError("no route to host")
        oracle = AnalysisOracle("key", session=session)
        orchestrator = HealingOrchestrator(oracle, executor=self.executor)

        outcome = orchestrator.heal(self.failure)

        self.assertFalse(outcome.healed)
        self.assertEqual(outcome.results, [])
        self.assertEqual(outcome.diagnosis.confidence, 0)
        self.assertFalse(outcome.diagnosis.can_automate)
        self.assertEqual(self.executor.commands, [])

    def test_oracle_exception_contained(self):
        """Test an exception from a custom oracle does not escape heal()"""
        oracle = Mock()
        oracle.analyze.side_effect = RuntimeError("boom")
        outcome = HealingOrchestrator(oracle, executor=self.executor).heal(self.failure)

        self.assertFalse(outcome.healed)
        self.assertIn("boom", outcome.diagnosis.root_cause)

    def test_executor_exception_contained(self):
        """Test an exception from the executor is recorded as a failed fix"""
        executor = Mock()
        executor.run_fix.side_effect = RuntimeError("fork failed")
        orchestrator = HealingOrchestrator(FakeOracle(make_diagnosis(["dotnet build", "dotnet test"])),
                                           executor=executor)

        outcome = orchestrator.heal(self.failure)

        self.assertFalse(outcome.healed)
        self.assertEqual(len(outcome.results), 1)
        self.assertEqual(outcome.results[0].exit_code, SPAWN_FAILURE_EXIT_CODE)
        self.assertEqual(outcome.results[0].stderr, "fork failed")

    def test_custom_threshold(self):
        """Test the confidence threshold is configurable"""
        orchestrator = HealingOrchestrator(FakeOracle(make_diagnosis(["dotnet build"], confidence=5)),
                                           executor=self.executor, confidence_threshold=5)
        self.assertTrue(orchestrator.heal(self.failure).healed)

    @patch("healer.AnalysisOracle")
    def test_create(self, mock_oracle):
        """Test create() wires a fresh oracle, policy and executor"""
        orchestrator = HealingOrchestrator.create("key", model="m", max_tokens=100, cwd="/src", command_timeout=30)

        mock_oracle.assert_called_once_with("key", model="m", max_tokens=100)
        self.assertEqual(orchestrator.executor.cwd, "/src")
        self.assertEqual(orchestrator.executor.timeout, 30)
        self.assertEqual(orchestrator.confidence_threshold, 7)


if __name__ == "__main__":
    unittest.main()
