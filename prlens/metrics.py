"""Line-based and structural code metrics."""

from __future__ import annotations

import math
from typing import Dict, Iterable, List, Optional, Tuple

from .models import FunctionInfo, Metrics

# Line-comment prefixes and block delimiters per language tag.
_HASH = (("#",), None)
_SLASH = (("//",), ("/*", "*/"))
COMMENT_SYNTAX: Dict[str, Tuple[Tuple[str, ...], Optional[Tuple[str, str]]]] = {
    "python": _HASH,
    "ruby": (("#",), ("=begin", "=end")),
    "shell": _HASH,
    "yaml": _HASH,
    "toml": _HASH,
    "r": _HASH,
    "perl": _HASH,
    "javascript": _SLASH,
    "typescript": _SLASH,
    "tsx": _SLASH,
    "go": _SLASH,
    "rust": _SLASH,
    "java": _SLASH,
    "c": _SLASH,
    "cpp": _SLASH,
    "c_sharp": _SLASH,
    "php": (("//", "#"), ("/*", "*/")),
    "swift": _SLASH,
    "kotlin": _SLASH,
    "scala": _SLASH,
    "sql": (("--",), ("/*", "*/")),
    "lua": (("--",), ("--[[", "]]")),
}


def count_lines(content: str) -> int:
    return len(content.splitlines())


def lexical_comment_lines(content: str, language: str) -> int:
    """Count lines that hold a comment, by scanning prefixes and block delimiters."""
    prefixes, block = COMMENT_SYNTAX.get(language, ((), None))
    count = 0
    in_block = False
    for raw in content.splitlines():
        line = raw.strip()
        if in_block:
            count += 1
            if block and block[1] in line:
                in_block = False
            continue
        if not line:
            continue
        if block and line.startswith(block[0]):
            count += 1
            if block[1] not in line[len(block[0]):]:
                in_block = True
            continue
        if any(line.startswith(p) for p in prefixes):
            count += 1
    return count


def comment_ratio(comment_lines: int, total_lines: int) -> float:
    if total_lines <= 0:
        return 0.0
    return min(max(comment_lines / total_lines, 0.0), 1.0)


def maintainability_index(complexity: int, lines_of_code: int, ratio: float) -> float:
    """Composite maintainability score in [0, 100].

    Variant of the classic index without the Halstead volume term:
    ``171 - 0.23*CC - 16.2*ln(LOC) + 50*sin(sqrt(2.4*CM))`` normalised to 100.
    """
    raw = (
        171
        - 0.23 * complexity
        - 16.2 * math.log(max(lines_of_code, 1))
        + 50 * math.sin(math.sqrt(2.4 * ratio))
    )
    return round(min(max(raw * 100 / 171, 0.0), 100.0), 1)


def lexical_metrics(content: str, language: str) -> Metrics:
    """Metrics available without a syntax tree."""
    total = count_lines(content)
    return Metrics(
        lines_of_code=total,
        complexity=0,
        maintainability_index=None,
        function_count=0,
        class_count=0,
        comment_ratio=comment_ratio(lexical_comment_lines(content, language), total),
    )


def structural_metrics(
    content: str,
    functions: List[FunctionInfo],
    class_count: int,
    comment_line_numbers: Iterable[int],
) -> Metrics:
    total = count_lines(content)
    complexity = sum(f.complexity for f in functions)
    ratio = comment_ratio(len(set(comment_line_numbers)), total)
    return Metrics(
        lines_of_code=total,
        complexity=complexity,
        maintainability_index=maintainability_index(complexity, total, ratio),
        function_count=len(functions),
        class_count=class_count,
        comment_ratio=ratio,
    )
