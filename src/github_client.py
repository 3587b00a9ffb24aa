#!/usr/bin/env python3
"""
GitHub client utilities
"""

import os
from typing import List, Optional

import requests
from github import Github, GithubException

from constants import LOG_TAIL_CHARS
from models import FailureContext


class GitHubClient:
    def __init__(self, github_token: str, repository: str, run_id: str):
        self.github_token = github_token
        self.repository = repository
        self.run_id = run_id
        self.github = Github(self.github_token)
        self.sha = os.getenv("GITHUB_SHA", "")
        self.branch = os.getenv("GITHUB_HEAD_REF") or os.getenv("GITHUB_REF_NAME", "")

    def _headers(self) -> dict:
        return {
            "Authorization": f"token {self.github_token}",
            "Accept": "application/vnd.github.v3+json"
        }

    def get_failure_context(self) -> Optional[FailureContext]:
        """Build a failure context from the first failed step of the current workflow run"""
        jobs_url = f"https://api.github.com/repos/{self.repository}/actions/runs/{self.run_id}/jobs"
        try:
            response = requests.get(jobs_url, headers=self._headers(), timeout=30)
        except requests.RequestException as e:
            print(f"Error getting jobs: {e}")
            return None

        if response.status_code != 200:
            print(f"Error getting jobs: {response.status_code}")
            return None

        for job in response.json().get("jobs", []):
            if job.get("conclusion") not in ("failure", "timed_out"):
                continue

            failed_steps = self._failed_step_names(job)
            step_name = failed_steps[0] if failed_steps else job.get("name", "Unknown Step")
            print(f"🚨 Found failed job '{job.get('name')}' at step '{step_name}'")

            return FailureContext(
                step_name=step_name,
                error_message=f"Step '{step_name}' finished with conclusion '{job.get('conclusion')}'",
                logs=self.get_job_logs(job["id"]),
                repository=self.repository,
                branch=self.branch or job.get("head_branch", ""),
                commit=self.sha or job.get("head_sha", ""),
                context={
                    "job_name": job.get("name", "Unknown Job"),
                    "run_id": self.run_id,
                    "conclusion": job.get("conclusion"),
                    "failed_steps": failed_steps,
                },
            )

        return None

    @staticmethod
    def _failed_step_names(job: dict) -> List[str]:
        return [
            step.get("name", "Unknown Step")
            for step in job.get("steps", [])
            if step.get("conclusion") == "failure"
        ]

    def get_job_logs(self, job_id: int) -> str:
        """Get the tail of the logs for a specific job"""
        try:
            url = f"https://api.github.com/repos/{self.repository}/actions/jobs/{job_id}/logs"
            response = requests.get(url, headers=self._headers(), timeout=30)

            if response.status_code == 200:
                return response.text[-LOG_TAIL_CHARS:]
            return f"Could not retrieve logs (status: {response.status_code})"

        except requests.RequestException as e:
            return f"Error retrieving logs: {str(e)}"

    def rerun_failed_jobs(self) -> bool:
        """Ask GitHub to re-run the failed jobs of this workflow run"""
        try:
            repo = self.github.get_repo(self.repository)
            run = repo.get_workflow_run(int(self.run_id))
            if run.rerun_failed_jobs():
                print(f"🔁 Requested re-run of failed jobs for run {self.run_id}")
                return True
            print(f"⚠️  GitHub declined to re-run run {self.run_id}")
            return False
        except (GithubException, ValueError) as e:
            print(f"Error requesting re-run: {e}")
            return False
