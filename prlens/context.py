"""Carve line windows around call sites from the live working copy."""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Dict, List, Optional, Tuple

from .models import CallSite, ContextLine, ContextWindow
from .parser import detect_language
from .type_inference import infer_argument_types, supports_type_inference

logger = logging.getLogger(__name__)


def extract_window(lines: List[str], line: int, context_lines: int) -> List[ContextLine]:
    """Lines ``[line - k, line + k]`` clipped to the file bounds."""
    start = max(1, line - context_lines)
    end = min(len(lines), line + context_lines)
    return [
        ContextLine(number=i, text=lines[i - 1], is_target=(i == line))
        for i in range(start, end + 1)
    ]


def _read(workdir: Path, rel_path: str) -> Tuple[Optional[str], Optional[str]]:
    try:
        return (workdir / rel_path).read_text(encoding="utf-8", errors="replace"), None
    except OSError as exc:
        logger.warning("Could not read %s for call-site context: %s", rel_path, exc)
        return None, str(exc)


def extract_contexts(
    workdir: Path,
    sites: List[CallSite],
    function_name: str,
    context_lines: int,
    type_search_window: int = 50,
) -> List[ContextWindow]:
    """One window per site; unreadable files give a per-site error window.

    Files are read from the current working copy, not from the revision the
    sites were discovered at, so a window may fall short of the site line.
    """
    contents: Dict[str, Tuple[Optional[str], Optional[str]]] = {}
    windows: List[ContextWindow] = []
    for site in sites:
        if site.path not in contents:
            contents[site.path] = _read(workdir, site.path)
        content, error = contents[site.path]
        if content is None:
            windows.append(ContextWindow(site=site, error=error))
            continue

        lines = content.splitlines()
        window = ContextWindow(site=site, lines=extract_window(lines, site.line, context_lines))
        language = detect_language(site.path)
        if supports_type_inference(language):
            window.hints = infer_argument_types(
                content, site.line, function_name, language, window=type_search_window,
            )
        windows.append(window)
    return windows
