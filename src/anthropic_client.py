#!/usr/bin/env python3
"""
Anthropic client that turns a pipeline failure into a structured diagnosis
"""

import json
import re
from typing import Optional

import requests

from constants import (
    ANTHROPIC_API_URL,
    ANTHROPIC_API_VERSION,
    DEFAULT_MAX_TOKENS,
    DEFAULT_MODEL,
    DEFAULT_TEMPERATURE,
    LOG_TAIL_CHARS,
    REQUEST_TIMEOUT,
)
from models import Diagnosis, FailureContext

ERROR_INDICATORS = [
    "ERROR", "FAILED", "Error:", "error:", "Exception:", "Traceback",
    "error CS", "error NU", "error MSB", "npm ERR!", "##[error]", "FAIL:",
]

MAX_ERROR_BLOCKS = 5
CODE_FENCE = re.compile(r"```(?:json)?", re.IGNORECASE)


class AnalysisOracle:
    """Client for the Anthropic Messages API"""

    def __init__(self, api_key: str, model: str = DEFAULT_MODEL,
                 max_tokens: int = DEFAULT_MAX_TOKENS,
                 temperature: float = DEFAULT_TEMPERATURE,
                 timeout: int = REQUEST_TIMEOUT,
                 session: Optional[requests.Session] = None):
        self.api_key = api_key
        self.model = model
        self.max_tokens = max_tokens
        self.temperature = temperature
        self.timeout = timeout
        self.url = ANTHROPIC_API_URL
        self.session = session or requests.Session()

    def analyze(self, failure: FailureContext) -> Diagnosis:
        """Diagnose a failure; never raises, degrades to a zero-confidence diagnosis"""
        print(f"🔍 Analyzing failure in step '{failure.step_name}' ({failure.repository}@{failure.branch})...")

        prompt = self._create_prompt(failure)
        try:
            text = self._post_analysis_request(self._create_headers(), self._create_data(prompt))
        except (requests.RequestException, ValueError, KeyError, IndexError, TypeError) as e:
            print(f"❌ Error calling Anthropic API: {e}")
            return Diagnosis.unavailable(str(e))

        return self._parse_diagnosis(text)

    def _create_prompt(self, failure: FailureContext) -> str:
        """Create prompt for the AI model"""
        logs = failure.logs[-LOG_TAIL_CHARS:]
        error_context = self._extract_error_context(logs)
        return f"""You are an expert DevOps engineer analyzing a CI/CD pipeline failure in a .NET/C# project.

Pipeline Context:
- Repository: {failure.repository}
- Branch: {failure.branch}
- Commit: {failure.commit}
- Failed Step: {failure.step_name}
- Error Message: {failure.error_message}
- Additional Context: {json.dumps(dict(failure.context), default=str)}

Error Highlights:
{error_context}

Build Logs (last {LOG_TAIL_CHARS} chars):
```
{logs}
```

Focus on common .NET/C# pipeline issues:
1. NuGet package restoration problems
2. Build configuration errors
3. Test failures and flaky tests
4. Dependency version conflicts
5. PowerShell script execution issues
6. Environment variable problems

Please analyze this failure and provide:
1. Root cause analysis
2. Confidence level (1-10) in your diagnosis
3. Step-by-step fix recommendations (prefer PowerShell/dotnet CLI commands), in the order they must run
4. Risk assessment of suggested fixes
5. Whether the fix can be automated safely

Respond ONLY in this JSON format:
{{
  "root_cause": "detailed explanation of the root cause",
  "confidence": 8,
  "fixes": [
    {{
      "command": "dotnet restore --force",
      "description": "Force restore NuGet packages",
      "risk_level": "low",
      "type": "dependency"
    }}
  ],
  "can_automate": true,
  "reasoning": "explanation of why this fix is recommended",
  "risk_level": "low"
}}"""

    def _create_headers(self) -> dict:
        """Create headers for the HTTP request"""
        return {
            "x-api-key": self.api_key,
            "anthropic-version": ANTHROPIC_API_VERSION,
            "content-type": "application/json",
        }

    def _create_data(self, prompt: str) -> dict:
        """Create data payload for the HTTP request"""
        return {
            "model": self.model,
            "max_tokens": self.max_tokens,
            "temperature": self.temperature,
            "messages": [{"role": "user", "content": prompt}],
        }

    def _post_analysis_request(self, headers: dict, data: dict) -> str:
        """Post the analysis request and return the text of the first content block"""
        response = self.session.post(
            url=self.url,
            headers=headers,
            json=data,
            timeout=self.timeout
        )
        response.raise_for_status()
        result = response.json()
        text = result["content"][0]["text"]
        if not isinstance(text, str):
            raise TypeError("Response content text is not a string")
        return text

    def _parse_diagnosis(self, text: str) -> Diagnosis:
        """Strip markdown fences from the model output and parse it"""
        cleaned = CODE_FENCE.sub("", text).strip()
        try:
            data = json.loads(cleaned)
        except ValueError as e:
            print(f"❌ Failed to parse analysis JSON: {e}")
            print(f"   Raw content: {cleaned[:200]}...")
            return Diagnosis.unavailable(f"invalid JSON in analysis response ({e})")

        diagnosis = Diagnosis.from_dict(data)
        print(f"✅ Parsed diagnosis: confidence {diagnosis.confidence}/10, {len(diagnosis.fixes)} fix(es)")
        return diagnosis

    def _extract_error_context(self, logs: str) -> str:
        """Extract lines around error indicators, merging overlapping windows"""
        if not logs:
            return "No logs available"

        lines = logs.split("\n")
        hits = [
            i for i, line in enumerate(lines)
            if any(indicator.lower() in line.lower() for indicator in ERROR_INDICATORS)
        ]

        if not hits:
            return "\n".join(line.strip() for line in lines[-10:] if line.strip())

        ranges = []
        for idx in hits:
            start, end = max(0, idx - 3), min(len(lines), idx + 4)
            if ranges and start <= ranges[-1][1]:
                ranges[-1] = (ranges[-1][0], end)
            else:
                ranges.append((start, end))

        marked = set(hits)
        blocks = []
        for start, end in ranges[-MAX_ERROR_BLOCKS:]:
            block = "\n".join(
                f"{'>>> ' if i in marked else '    '}{lines[i].rstrip()}" for i in range(start, end)
            )
            blocks.append(f"[Log lines {start + 1}-{end}]\n{block}")

        return "\n---\n".join(blocks)
