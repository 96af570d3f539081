"""External-process capability and the git collaborator built on it.

Everything that shells out goes through a ``ProcessRunner`` callable so the
core can be exercised with a fake runner instead of a real checkout.
"""

from __future__ import annotations

import logging
import subprocess  # nosec B404
from dataclasses import dataclass
from pathlib import Path
from typing import Callable, List, Optional, Sequence

logger = logging.getLogger(__name__)


@dataclass
class ProcessResult:
    stdout: str
    exit_code: int
    stderr: str = ""


ProcessRunner = Callable[[Sequence[str], Path], ProcessResult]


class ExternalProcessError(RuntimeError):
    """An external command could not be started or exited unsuccessfully."""

    def __init__(self, args: Sequence[str], exit_code: Optional[int], detail: str = "") -> None:
        self.args_list = list(args)
        self.exit_code = exit_code
        self.detail = detail.strip()
        command = " ".join(self.args_list)
        if exit_code is None:
            message = f"Could not run '{command}': {self.detail}"
        else:
            message = f"'{command}' exited with code {exit_code}"
            if self.detail:
                message += f": {self.detail}"
        super().__init__(message)


def run_process(args: Sequence[str], cwd: Path) -> ProcessResult:
    """Default runner: blocking ``subprocess.run`` without a timeout."""
    try:
        result = subprocess.run(  # nosec B603
            list(args),
            cwd=cwd,
            capture_output=True,
            text=True,
            encoding="utf-8",
            errors="replace",
            check=False,
        )
    except (FileNotFoundError, PermissionError, NotADirectoryError) as exc:
        raise ExternalProcessError(args, None, str(exc)) from exc
    return ProcessResult(stdout=result.stdout or "", exit_code=result.returncode, stderr=result.stderr or "")


class GitClient:
    """Thin wrapper over the git commands the review tools need."""

    def __init__(self, workdir: Path, runner: ProcessRunner = run_process) -> None:
        self.workdir = workdir
        self.runner = runner

    def _run(self, args: List[str], ok_codes: Sequence[int] = (0,)) -> ProcessResult:
        command = ["git", *args]
        logger.debug("Running %s", " ".join(command))
        result = self.runner(command, self.workdir)
        if result.exit_code not in ok_codes:
            raise ExternalProcessError(command, result.exit_code, result.stderr)
        return result

    def diff(self, base: str, head: str, path: str, context_lines: Optional[int] = None) -> str:
        args = ["diff"]
        if context_lines is not None:
            args.append(f"-U{context_lines}")
        args += [base, head, "--", path]
        return self._run(args).stdout

    def grep_fixed(self, text: str, revision: str) -> str:
        # git grep exits 1 when nothing matches
        return self._run(["grep", "-F", "-n", "-e", text, revision], ok_codes=(0, 1)).stdout

    def grep(self, pattern: str, file_pattern: Optional[str] = None) -> str:
        args = ["grep", "-n", "-e", pattern]
        if file_pattern:
            args += ["--", file_pattern]
        return self._run(args, ok_codes=(0, 1)).stdout

    def commit_exists(self, sha: str) -> bool:
        result = self.runner(["git", "cat-file", "-e", f"{sha}^{{commit}}"], self.workdir)
        return result.exit_code == 0

    def show_stat(self, sha: str) -> str:
        return self._run(["show", "--stat", "--pretty=format:%H%n%an%n%ae%n%at%n%s%n%b", sha]).stdout

    def show(self, sha: str, file_path: Optional[str] = None) -> str:
        args = ["show", "--format=%H%n%an <%ae>%n%at%n%s%n%b", sha]
        if file_path:
            args += ["--", file_path]
        return self._run(args).stdout

    def file_log(self, path: str, limit: int) -> str:
        return self._run([
            "log", f"--max-count={limit}", "--pretty=format:%h - %an, %ar : %s", "--", path,
        ]).stdout

    def range_log(self, base: str, head: str, limit: int) -> str:
        return self._run([
            "log", f"--max-count={limit}", "--pretty=format:%H|%an|%ae|%at|%s", f"{base}..{head}",
        ]).stdout

    def branches(self) -> str:
        return self._run(["branch", "-vv"]).stdout

    def name_status(self, base: str, head: str) -> str:
        return self._run(["diff", "--name-status", base, head]).stdout
