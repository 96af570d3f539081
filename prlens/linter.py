"""Run third-party linters on one file and normalize their findings.

Python files go through ``ruff``, JavaScript/TypeScript through ``eslint``;
other languages have no linter and report no findings.
"""

from __future__ import annotations

import json
import logging
from typing import Any, Dict, List

from .models import LintFinding
from .parser import detect_language
from .process import ExternalProcessError
from .session import ReviewContext

logger = logging.getLogger(__name__)

LINTER_COMMANDS: Dict[str, List[str]] = {
    "python": ["ruff", "check", "--output-format=json", "--no-fix", "--exit-zero"],
    "javascript": ["npx", "--no-install", "eslint", "--format", "json"],
    "typescript": ["npx", "--no-install", "eslint", "--format", "json"],
    "tsx": ["npx", "--no-install", "eslint", "--format", "json"],
}


def _ruff_findings(payload: Any) -> List[LintFinding]:
    findings: List[LintFinding] = []
    for item in payload:
        location = item.get("location") or {}
        code = item.get("code")
        findings.append(LintFinding(
            line=int(location.get("row", 0)),
            column=int(location.get("column", 0)),
            message=item.get("message", ""),
            rule_id=code or "syntax-error",
            # ruff reports unparsable code without a rule code
            severity="error" if code is None else "warning",
        ))
    return findings


def _eslint_findings(payload: Any) -> List[LintFinding]:
    findings: List[LintFinding] = []
    for file_report in payload:
        for msg in file_report.get("messages", []):
            findings.append(LintFinding(
                line=int(msg.get("line", 0)),
                column=int(msg.get("column", 0)),
                message=msg.get("message", ""),
                rule_id=msg.get("ruleId") or "eslint",
                severity="error" if msg.get("severity") == 2 else "warning",
            ))
    return findings


def lint_file(ctx: ReviewContext, path: str) -> List[LintFinding]:
    """Lint *path* of the working copy.

    Raises:
        FileNotFoundError: If the file doesn't exist.
        ExternalProcessError: If the linter cannot run or prints no JSON.
    """
    full_path = ctx.resolve(path)
    if not full_path.is_file():
        raise FileNotFoundError(f"File not found: {path}")
    language = detect_language(path)
    base_command = LINTER_COMMANDS.get(language)
    if base_command is None:
        logger.debug("No linter configured for %s (%s)", path, language)
        return []

    command = [*base_command, str(full_path)]
    result = ctx.runner(command, ctx.workdir)
    # eslint exits 1 when it reports problems
    if result.exit_code not in (0, 1):
        raise ExternalProcessError(command, result.exit_code, result.stderr)
    try:
        payload = json.loads(result.stdout or "[]")
    except json.JSONDecodeError as exc:
        raise ExternalProcessError(command, result.exit_code, f"unexpected linter output: {exc}") from exc

    if language == "python":
        return _ruff_findings(payload)
    return _eslint_findings(payload)
