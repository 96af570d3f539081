"""Function lookup inside a Unit and lexical call-site discovery."""

from __future__ import annotations

import re
from typing import Dict, List, Optional

from .models import CallSite, FunctionInfo, Unit
from .process import GitClient

_GREP_LINE = re.compile(r"^(?P<path>[^:]+):(?P<line>\d+):(?P<text>.*)$")


def locate(unit: Unit, name: str) -> Optional[FunctionInfo]:
    """First function named exactly *name* in declaration order, else None."""
    for func in unit.functions:
        if func.name == name:
            return func
    return None


def parse_grep_output(output: str, revision: Optional[str] = None) -> List[CallSite]:
    """Turn ``git grep -n`` output into call sites.

    When grepping a revision every line is prefixed with ``<revision>:``.
    Lines that do not look like ``path:line:text`` are skipped.
    """
    prefix = f"{revision}:" if revision else ""
    sites: List[CallSite] = []
    for raw in output.splitlines():
        if prefix and raw.startswith(prefix):
            raw = raw[len(prefix):]
        match = _GREP_LINE.match(raw)
        if match is None:
            continue
        sites.append(CallSite(
            path=match.group("path"),
            line=int(match.group("line")),
            text=match.group("text").strip(),
        ))
    return sites


def find_calls(git: GitClient, function_name: str, revision: str) -> List[CallSite]:
    """Every tracked line at *revision* containing the literal ``name(``.

    Lexical by nature: matches in comments, strings and same-named symbols
    are included, aliased or reflective calls are missed.
    """
    output = git.grep_fixed(f"{function_name}(", revision)
    return parse_grep_output(output, revision)


def group_by_file(sites: List[CallSite]) -> Dict[str, List[CallSite]]:
    grouped: Dict[str, List[CallSite]] = {}
    for site in sites:
        grouped.setdefault(site.path, []).append(site)
    return grouped
