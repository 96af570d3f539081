"""Per-review context handed to every tool."""

from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path
from typing import List, Optional

from .config import DEFAULT_BASE_REF, DEFAULT_HEAD_REF, Limits
from .models import FileChange
from .process import GitClient, ProcessRunner, run_process


@dataclass
class ReviewContext:
    """Working copy, diff range and collaborators for one review."""
    workdir: Path
    base_sha: str = DEFAULT_BASE_REF
    head_sha: str = DEFAULT_HEAD_REF
    files: List[FileChange] = field(default_factory=list)
    limits: Limits = field(default_factory=Limits)
    runner: ProcessRunner = run_process
    git: Optional[GitClient] = None

    def __post_init__(self):
        self.workdir = Path(self.workdir).resolve()
        if self.git is None:
            self.git = GitClient(self.workdir, self.runner)

    def resolve(self, rel_path: str) -> Path:
        """Absolute path of *rel_path* inside the working copy.

        Raises:
            ValueError: If the path escapes the working copy.
        """
        full_path = (self.workdir / rel_path).resolve()
        if full_path != self.workdir and self.workdir not in full_path.parents:
            raise ValueError(f"Path escapes the repository: {rel_path}")
        return full_path

    def read_text(self, rel_path: str) -> str:
        """Read a working-copy file.

        Raises:
            ValueError: If the path escapes the working copy.
            FileNotFoundError: If the file doesn't exist.
        """
        full_path = self.resolve(rel_path)
        if not full_path.is_file():
            raise FileNotFoundError(f"File not found: {rel_path}")
        return full_path.read_text(encoding="utf-8", errors="replace")


_STATUS_CODES = {"A": "added", "M": "modified", "D": "removed", "R": "renamed"}


def parse_name_status(output: str) -> List[FileChange]:
    """``git diff --name-status`` lines to :class:`FileChange` records.

    Renames and copies report the new path; unknown codes count as modified.
    """
    changes: List[FileChange] = []
    for line in output.splitlines():
        parts = line.split("\t")
        if len(parts) < 2 or not parts[0]:
            continue
        status = _STATUS_CODES.get(parts[0][0], "modified")
        changes.append(FileChange(filename=parts[-1], status=status))
    return changes
