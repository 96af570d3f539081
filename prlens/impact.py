"""Breaking-change report for one function: definition plus every call site."""

from __future__ import annotations

import logging
import posixpath
from typing import List, Optional

from .callsites import find_calls, group_by_file, locate
from .context import extract_contexts
from .models import CallSite, ContextWindow, FunctionInfo
from .parser import fence_language, parse
from .session import ReviewContext

logger = logging.getLogger(__name__)


def impact_band(call_count: int) -> str:
    """Qualitative band used only to phrase the recommendation."""
    if call_count > 10:
        return "high"
    if call_count > 5:
        return "medium"
    return "low"


def _normalise_path(path: str) -> str:
    return posixpath.normpath(path.replace("\\", "/"))


def _render_definition(func: FunctionInfo) -> List[str]:
    return [
        "### Function Definition\n",
        f"**Line**: {func.line}",
        f"**Parameters**: {', '.join(func.params) if func.params else '(none)'}",
        f"**Returns**: {func.return_type or 'N/A'}",
        f"**Async**: {'Yes' if func.is_async else 'No'}",
        f"**Exported**: {'Yes' if func.is_exported else 'No'}",
        f"**Complexity**: {func.complexity}\n",
    ]


def _render_window(window: ContextWindow) -> List[str]:
    site = window.site
    if window.error is not None:
        return [f"⚠️ Could not read file context for line {site.line}: {window.error}\n"]
    if not window.lines:
        return [f"⚠️ Line {site.line} is past the end of the current `{site.path}`.\n"]

    out = [f"**Call at line {site.line}**:\n", "```" + fence_language(site.path)]
    for ctx_line in window.lines:
        marker = "→" if ctx_line.is_target else " "
        out.append(f"{marker} {ctx_line.number:>4} | {ctx_line.text}")
    out.append("```")
    if window.hints:
        out.append("")
        out.append("**Type Information**:")
        for hint in window.hints:
            out.append(f"- `{hint.expression}`: {hint.type}")
    out.append("")
    return out


def _recommendations(call_count: int) -> List[str]:
    out = [
        "**Recommendations**:",
        "- Review all call sites before changing function signature",
        "- Check if parameter types/order match your changes",
        "- Add deprecation warnings if this is a public API",
    ]
    band = impact_band(call_count)
    if band == "high":
        out.append(f"- ⚠️ **High impact**: {call_count} call sites - consider backward compatibility")
    elif band == "medium":
        out.append(f"- ⚠️ **Medium impact**: {call_count} call sites - thorough testing recommended")
    else:
        out.append(f"- ✅ **Low impact**: {call_count} call sites - manageable refactoring")
    return out


def analyze_impact(
    ctx: ReviewContext,
    function_name: str,
    file_path: str,
    context_lines: int,
    revision: Optional[str] = None,
) -> str:
    """Markdown impact report for *function_name* defined in *file_path*.

    Raises:
        ExternalProcessError: If call-site discovery via git fails.
    """
    revision = revision or ctx.head_sha
    file_path = _normalise_path(file_path)
    lines: List[str] = [
        f"## Function Impact Analysis: {function_name}",
        f"**Definition**: `{file_path}`",
        f"**Context**: ±{context_lines} lines around each call\n",
    ]

    definition: Optional[FunctionInfo] = None
    try:
        unit = parse(ctx.read_text(file_path), file_path)
    except (OSError, ValueError) as exc:
        logger.warning("Impact analysis without definition for %s: %s", function_name, exc)
        lines.append(f"⚠️ Could not parse function definition: {exc}\n")
    else:
        definition = locate(unit, function_name)
        if definition is not None:
            lines.extend(_render_definition(definition))
        elif unit.ast is None:
            lines.append(f"⚠️ Structural parsing unavailable for `{file_path}`; definition details omitted.\n")
        else:
            lines.append(f"⚠️ Function `{function_name}` not found in `{file_path}`.\n")

    sites: List[CallSite] = find_calls(ctx.git, function_name, revision)
    if definition is not None:
        sites = [
            s for s in sites
            if not (_normalise_path(s.path) == file_path and s.line == definition.line)
        ]

    lines.append("### Call Sites\n")
    if not sites:
        lines.append(
            "✅ No call sites found: 0 call sites "
            "(function may be unused or only called dynamically)\n"
        )
        return "\n".join(lines)

    grouped = group_by_file(sites)
    lines.append(f"Found **{len(sites)}** call site(s) across **{len(grouped)}** file(s)\n")

    cap = ctx.limits.impact_max_sites
    ordered = [site for file_sites in grouped.values() for site in file_sites]
    shown = ordered[:cap]
    windows = extract_contexts(
        ctx.workdir, shown, function_name, context_lines, ctx.limits.type_search_window,
    )

    current_file: Optional[str] = None
    for window in windows:
        if window.site.path != current_file:
            current_file = window.site.path
            count = len(grouped[current_file])
            lines.append("---\n")
            lines.append(f"#### `{current_file}` ({count} call{'s' if count > 1 else ''})\n")
        lines.extend(_render_window(window))

    remaining = len(sites) - len(shown)
    if remaining > 0:
        lines.append(f"\n... and **{remaining}** more call site(s) not shown")
        lines.append("💡 **Tip**: Use `search_code` or `find_function_callers` for a complete list")

    lines.append("---\n")
    lines.append("### Breaking Change Analysis\n")
    lines.append(
        f"**Total Impact**: {len(sites)} call site(s) would be affected by changes to this function\n"
    )
    lines.extend(_recommendations(len(sites)))
    return "\n".join(lines)
