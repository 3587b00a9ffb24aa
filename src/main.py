#!/usr/bin/env python3
"""
CI Heal - AI-Powered self-healing for failed CI pipelines
"""

import os
import sys
from typing import List, Optional

from constants import CI_HEAL_REPORT_TITLE, CONFIDENCE_THRESHOLD, DEFAULT_MAX_TOKENS, DEFAULT_MODEL
from github_client import GitHubClient
from healer import HealingOrchestrator
from models import FailureContext, HealingOutcome


class SelfHealing:
    """Main class for CI Heal functionality"""

    def __init__(self, api_key: Optional[str] = None):
        self.api_key = api_key or os.getenv("INPUT_ANTHROPIC_API_KEY")
        self.model = os.getenv("INPUT_MODEL", DEFAULT_MODEL)
        self.max_tokens = int(os.getenv("INPUT_MAX_TOKENS", str(DEFAULT_MAX_TOKENS)))
        self.confidence_threshold = int(os.getenv("INPUT_CONFIDENCE_THRESHOLD", str(CONFIDENCE_THRESHOLD)))
        timeout = os.getenv("INPUT_COMMAND_TIMEOUT")
        self.command_timeout = float(timeout) if timeout else None
        self.working_directory = os.getenv("INPUT_WORKING_DIRECTORY") or None
        self.retry_on_heal = os.getenv("INPUT_RETRY_ON_HEAL", "false").lower() in ("true", "1", "yes")

        # GitHub context, only needed when the failure is read from a workflow run
        self.github_token = os.getenv("INPUT_GITHUB_TOKEN")
        self.repository = os.getenv("GITHUB_REPOSITORY")
        self.run_id = os.getenv("GITHUB_RUN_ID")

        if not self.api_key:
            raise ValueError("Missing Anthropic API key")

    def create_orchestrator(self) -> HealingOrchestrator:
        return HealingOrchestrator.create(
            self.api_key,
            model=self.model,
            max_tokens=self.max_tokens,
            cwd=self.working_directory,
            command_timeout=self.command_timeout,
            confidence_threshold=self.confidence_threshold,
        )

    def create_github_client(self) -> GitHubClient:
        if not all([self.github_token, self.repository, self.run_id]):
            raise ValueError("Missing required GitHub environment variables")
        return GitHubClient(self.github_token, self.repository, self.run_id)

    def run(self, failure_json: Optional[str] = None) -> int:
        """Heal one failure and return the process exit code"""
        github = None
        if failure_json is not None:
            failure = FailureContext.from_json(failure_json)
        else:
            github = self.create_github_client()
            failure = github.get_failure_context()
            if failure is None:
                print("✅ No failures detected in this workflow run")
                return 0

        print("🔍 Analyzing pipeline failure...")
        outcome = self.create_orchestrator().heal(failure)
        print(self.format_report(outcome))

        if not outcome.healed:
            print("❌ Automated healing failed" if outcome.attempted else "❌ Manual intervention needed")
            return 1

        print("✅ Pipeline successfully healed!")
        if self.retry_on_heal and github is not None:
            github.rerun_failed_jobs()
        return 0

    def format_report(self, outcome: HealingOutcome) -> str:
        """Format the diagnosis and execution results as markdown"""
        diagnosis = outcome.diagnosis
        report = f"{CI_HEAL_REPORT_TITLE}\n\n"
        report += f"- **Root Cause:** {diagnosis.root_cause}\n"
        report += f"- **Confidence:** {diagnosis.confidence}/10\n"
        report += f"- **Risk Level:** {diagnosis.risk_level.value}\n"
        report += f"- **Can Automate:** {diagnosis.can_automate}\n"
        if diagnosis.reasoning:
            report += f"- **Reasoning:** {diagnosis.reasoning}\n"

        if outcome.suggested_fixes:
            report += "\n**Suggested fixes:**\n"
            for fix in outcome.suggested_fixes:
                report += f"  - {fix.description}: `{fix.command}` ({fix.risk_level.value})\n"

        if outcome.results:
            report += "\n**Executed fixes:**\n"
            for result in outcome.results:
                if not result.executed:
                    status = "⏭️ skipped (unsafe)"
                elif result.succeeded:
                    status = f"✅ exit 0 in {result.duration_ms}ms"
                else:
                    status = f"❌ exit {result.exit_code} in {result.duration_ms}ms"
                report += f"  - `{result.fix.command}` → {status}\n"

        return report


def main(argv: Optional[List[str]] = None) -> int:
    """Entry point for CI Heal

    Usage: main.py [<anthropic-api-key> <failure-context-json>]
    """
    # Windows runners may pipe stdout as cp1252, which cannot encode the emoji output
    if hasattr(sys.stdout, "reconfigure"):
        sys.stdout.reconfigure(errors="replace")

    args = sys.argv[1:] if argv is None else argv
    if len(args) not in (0, 2):
        print("Usage: main.py <anthropic-api-key> <failure-context-json>")
        return 1

    try:
        if args:
            return SelfHealing(args[0]).run(args[1])
        return SelfHealing().run()
    except Exception as e:
        print(f"❌ CI Heal failed: {e}")
        import traceback
        traceback.print_exc()
        return 1


if __name__ == "__main__":
    sys.exit(main())
