"""Fixed catalog of review tools and the dispatcher that runs them.

Each catalog entry pairs a pydantic argument model (the contract the
orchestrator sees as JSON schema) with a handler ``(ctx, args) -> str``.
:meth:`ToolDispatcher.dispatch` is the single boundary where failures turn
into data: it never raises.
"""

from __future__ import annotations

import logging
import math
import typing
from dataclasses import dataclass
from datetime import datetime, timezone
from types import MappingProxyType
from typing import Any, Callable, Dict, List, Mapping, Optional, Tuple, Type

from pydantic import BaseModel, Field, ValidationError

from .callsites import find_calls, locate
from .impact import analyze_impact
from .linter import lint_file
from .metrics import count_lines
from .models import LintFinding, ToolInvocation, ToolResult, Unit
from .parser import parse
from .process import ExternalProcessError
from .session import ReviewContext

logger = logging.getLogger(__name__)


class InvalidInvocation(Exception):
    """Unknown tool, or arguments that do not satisfy its contract."""


# ═══════════════════════════════════════════════════════════════
# Tool input schemas (Pydantic v2)
# ═══════════════════════════════════════════════════════════════

class NoInput(BaseModel):
    pass


class PathInput(BaseModel):
    path: str = Field(..., min_length=1, description="Path to the file relative to repository root")


class FileDiffInput(PathInput):
    context_lines: int = Field(3, ge=0, description="Number of context lines around changes (default: 3)")


class FunctionInput(BaseModel):
    function_name: str = Field(..., min_length=1, description="Name of the function")
    file_path: str = Field(..., min_length=1, description="Path to the file containing the function")


class ImpactInput(FunctionInput):
    context_lines: int = Field(
        5, ge=0, description="Number of lines to show before and after each call (default: 5)",
    )


class SearchInput(BaseModel):
    pattern: str = Field(..., min_length=1, description="Pattern to search for (supports regex)")
    file_pattern: Optional[str] = Field(
        None, description='File pattern to search in (e.g., "*.ts", "src/**/*.js")',
    )


class CommitInput(BaseModel):
    sha: str = Field(..., min_length=1, description="Commit SHA (can be short or full)")


class CommitDiffInput(CommitInput):
    file_path: Optional[str] = Field(None, description="Optional: filter diff to specific file only")


class FileHistoryInput(PathInput):
    limit: int = Field(10, ge=1, description="Maximum number of commits to return (default: 10)")


class CommitsListInput(BaseModel):
    limit: int = Field(50, ge=1, description="Maximum number of commits to return (default: 50)")


class DiffChunkInput(PathInput):
    chunk_index: int = Field(..., ge=0, description="Which chunk to read (0-based index)")
    lines_per_chunk: int = Field(100, ge=1, description="Number of diff lines per chunk (default: 100)")


_JSON_TYPES: Dict[Any, str] = {str: "string", int: "integer", bool: "boolean", float: "number"}


@dataclass(frozen=True)
class ToolSpec:
    name: str
    description: str
    args_model: Type[BaseModel]
    handler: Callable[[ReviewContext, Any], str]

    def schema(self) -> Dict[str, Any]:
        """JSON-schema description handed to the orchestrator."""
        properties: Dict[str, Any] = {}
        required: List[str] = []
        for field_name, info in self.args_model.model_fields.items():
            annotation = info.annotation
            candidates = [a for a in typing.get_args(annotation) if a is not type(None)]
            if candidates:
                annotation = candidates[0]
            properties[field_name] = {
                "type": _JSON_TYPES.get(annotation, "string"),
                "description": info.description or "",
            }
            if info.is_required():
                required.append(field_name)
        return {
            "name": self.name,
            "description": self.description,
            "parameters": {"type": "object", "properties": properties, "required": required},
        }

    def validate(self, arguments: Mapping[str, Any]) -> BaseModel:
        """Check *arguments* against the contract and fill in defaults.

        Raises:
            InvalidInvocation: Missing or invalid arguments.
        """
        # null means "use the default"
        provided = {k: v for k, v in arguments.items() if v is not None}
        try:
            return self.args_model.model_validate(provided)
        except ValidationError as exc:
            problems = []
            for err in exc.errors():
                loc = ".".join(str(p) for p in err["loc"]) or "arguments"
                if err["type"] == "missing":
                    problems.append(f"missing required argument '{loc}'")
                else:
                    problems.append(f"'{loc}': {err['msg']}")
            raise InvalidInvocation(f"Invalid arguments for {self.name}: {'; '.join(problems)}") from exc


# ═══════════════════════════════════════════════════════════════
# FILE & STRUCTURE TOOLS
# ═══════════════════════════════════════════════════════════════

def _read_file(ctx: ReviewContext, args: PathInput) -> str:
    content = ctx.read_text(args.path)
    return f"```\nFile: {args.path}\nLines: {count_lines(content)}\n\n{content}\n```"


def _get_file_diff(ctx: ReviewContext, args: FileDiffInput) -> str:
    output = ctx.git.diff(ctx.base_sha, ctx.head_sha, args.path, args.context_lines)
    if not output.strip():
        return f"No changes in {args.path}"
    return f"```diff\n{output}\n```"


def _parse_file(ctx: ReviewContext, path: str) -> Unit:
    return parse(ctx.read_text(path), path)


def render_unit(path: str, unit: Unit) -> str:
    """Markdown report of a parsed file, with a degraded-mode note when needed."""
    metrics = unit.metrics
    lines: List[str] = [f"## AST Analysis: {path}\n"]
    if unit.ast is None:
        lines.append("⚠️ **Note**: Full AST parsing not available for this file.")
        lines.append("Showing basic metrics only.\n")

    maintainability = metrics.maintainability_index
    lines.append("### Metrics")
    lines.append(f"- Language: {unit.language}")
    lines.append(f"- Lines of code: {metrics.lines_of_code}")
    lines.append(f"- Complexity: {metrics.complexity}")
    lines.append(f"- Maintainability: {maintainability if maintainability is not None else 'N/A'}")
    lines.append(f"- Functions: {metrics.function_count}")
    lines.append(f"- Classes: {metrics.class_count}")
    lines.append(f"- Comment ratio: {metrics.comment_ratio * 100:.1f}%\n")

    if unit.functions:
        lines.append(f"### Functions ({len(unit.functions)})")
        for func in unit.functions:
            lines.append(f"- **{func.name}** (line {func.line})")
            lines.append(f"  - Params: {', '.join(func.params) or 'none'}")
            if func.return_type:
                lines.append(f"  - Returns: {func.return_type}")
            lines.append(f"  - Complexity: {func.complexity}")
            lines.append(f"  - Async: {'yes' if func.is_async else 'no'}")
            lines.append(f"  - Exported: {'yes' if func.is_exported else 'no'}")
            if func.calls:
                lines.append(f"  - Calls: {', '.join(func.calls)}")
        lines.append("")
    elif unit.ast is None:
        lines.append("### Functions")
        lines.append("Could not extract function details - structural parsing is unavailable for this file.")
        lines.append(f"Basic metrics were computed from {metrics.lines_of_code} lines.")
        lines.append("**Recommendation**: Use read_file() or get_file_diff() to review the code manually.\n")
    else:
        lines.append("### Functions")
        lines.append("No functions found.\n")

    if unit.classes:
        lines.append(f"### Classes ({len(unit.classes)})")
        for cls in unit.classes:
            lines.append(f"- **{cls.name}** (line {cls.line})")
        lines.append("")

    if unit.dependencies:
        lines.append(f"### Dependencies ({len(unit.dependencies)})")
        for dep in unit.dependencies:
            kind = "📦 external" if dep.is_external else "📁 local"
            lines.append(f"- {kind}: {dep.source} (line {dep.line})")
            if dep.specifiers:
                lines.append(f"  - Imports: {', '.join(dep.specifiers)}")
    return "\n".join(lines)


def _analyze_file_ast(ctx: ReviewContext, args: PathInput) -> str:
    unit = _parse_file(ctx, args.path)
    logger.debug(
        "Parsed %s: structural=%s functions=%d dependencies=%d",
        args.path, unit.ast is not None, len(unit.functions), len(unit.dependencies),
    )
    return render_unit(args.path, unit)


def _not_found(unit: Unit, function_name: str, file_path: str) -> str:
    message = f"Function {function_name} not found in {file_path}"
    if unit.ast is None:
        message += " (structural parsing unavailable for this file)"
    return message


def _find_function_callers(ctx: ReviewContext, args: FunctionInput) -> str:
    sites = find_calls(ctx.git, args.function_name, ctx.head_sha)
    if not sites:
        return f"No callers found for {args.function_name}"

    cap = ctx.limits.callers_max_results
    lines = [f"## Callers of {args.function_name}\n", f"Found {len(sites)} potential call sites:\n"]
    lines.extend(f"- {site}" for site in sites[:cap])
    if len(sites) > cap:
        lines.append(f"\n... and {len(sites) - cap} more")
    return "\n".join(lines)


def _find_function_dependencies(ctx: ReviewContext, args: FunctionInput) -> str:
    unit = _parse_file(ctx, args.file_path)
    func = locate(unit, args.function_name)
    if func is None:
        return _not_found(unit, args.function_name, args.file_path)

    lines = [f"## Dependencies of {args.function_name}\n"]
    if func.calls:
        lines.append(f"Directly calls {len(func.calls)} function(s):\n")
        lines.extend(f"- {call}" for call in func.calls)
    else:
        lines.append("This function does not call any other functions.")
    return "\n".join(lines)


def _analyze_function_complexity(ctx: ReviewContext, args: FunctionInput) -> str:
    unit = _parse_file(ctx, args.file_path)
    func = locate(unit, args.function_name)
    if func is None:
        return _not_found(unit, args.function_name, args.file_path)

    lines = [
        f"## Complexity Analysis: {args.function_name}\n",
        f"File: {args.file_path}",
        f"Line: {func.line}\n",
        "### Metrics",
        f"- Cyclomatic Complexity: {func.complexity}",
        f"- Parameters: {len(func.params)}",
        f"- Async: {'Yes' if func.is_async else 'No'}",
        f"- Exported: {'Yes' if func.is_exported else 'No'}",
        f"- Function calls: {len(func.calls)}",
        "\n### Assessment",
    ]
    if func.complexity <= 5:
        lines.append("✅ Low complexity - Easy to understand and maintain")
    elif func.complexity <= 10:
        lines.append("⚠️ Moderate complexity - Consider refactoring if it grows")
    elif func.complexity <= 20:
        lines.append("❌ High complexity - Should be refactored")
    else:
        lines.append("🔴 Very high complexity - Refactoring required")
    return "\n".join(lines)


_SEVERITY_ORDER = {"error": 0, "warning": 1, "info": 2}
_SEVERITY_ICONS = {"error": "❌", "warning": "⚠️"}


def _run_linter(ctx: ReviewContext, args: PathInput) -> str:
    findings = lint_file(ctx, args.path)
    if not findings:
        return f"✅ No linter issues found in {args.path}"

    grouped: Dict[str, List[LintFinding]] = {}
    for finding in findings:
        grouped.setdefault(finding.severity, []).append(finding)

    cap = ctx.limits.lint_max_per_severity
    lines = [f"## Linter Results: {args.path}\n", f"Found {len(findings)} issue(s):\n"]
    for severity in sorted(grouped, key=lambda s: _SEVERITY_ORDER.get(s, len(_SEVERITY_ORDER))):
        items = grouped[severity]
        lines.append(f"### {_SEVERITY_ICONS.get(severity, 'ℹ️')} {severity.upper()} ({len(items)})\n")
        for item in items[:cap]:
            lines.append(f"- Line {item.line}:{item.column} - {item.message} (`{item.rule_id}`)")
        if len(items) > cap:
            lines.append(f"\n... and {len(items) - cap} more {severity} issues")
        lines.append("")
    return "\n".join(lines)


def _search_code(ctx: ReviewContext, args: SearchInput) -> str:
    matches = ctx.git.grep(args.pattern, args.file_pattern).strip().splitlines()
    if not matches:
        return f"No matches found for pattern: {args.pattern}"

    cap = ctx.limits.search_max_results
    lines = [f"## Search Results for: {args.pattern}\n", f"Found {len(matches)} match(es):\n"]
    lines.extend(f"- {match}" for match in matches[:cap])
    if len(matches) > cap:
        lines.append(f"\n... and {len(matches) - cap} more matches")
    return "\n".join(lines)


# ═══════════════════════════════════════════════════════════════
# GIT TOOLS
# ═══════════════════════════════════════════════════════════════

def _get_commit_info(ctx: ReviewContext, args: CommitInput) -> str:
    if not ctx.git.commit_exists(args.sha):
        return f"Commit {args.sha} not found"
    return f"```\n{ctx.git.show_stat(args.sha)}\n```"


def _get_file_history(ctx: ReviewContext, args: FileHistoryInput) -> str:
    output = ctx.git.file_log(args.path, args.limit)
    if not output.strip():
        return f"No history found for {args.path}"
    return f"## File History: {args.path}\n\n{output}"


def _format_timestamp(raw: str) -> str:
    try:
        return datetime.fromtimestamp(int(raw), tz=timezone.utc).date().isoformat()
    except (ValueError, OverflowError, OSError):
        return "unknown"


def _get_commits_list(ctx: ReviewContext, args: CommitsListInput) -> str:
    output = ctx.git.range_log(ctx.base_sha, ctx.head_sha, args.limit)
    commits = output.strip().splitlines()
    if not commits:
        return "No commits found in this pull request"

    lines = [
        "## Commits in Pull Request\n",
        "| Hash | Author | Email | Date | Message |",
        "|------|--------|-------|------|---------|",
    ]
    for commit in commits:
        parts = commit.split("|")
        if len(parts) < 5:
            continue
        sha, author, email, timestamp = parts[:4]
        message = "|".join(parts[4:])
        lines.append(f"| `{sha[:7]}` | {author} | {email} | {_format_timestamp(timestamp)} | {message} |")
    lines.append(f"\n**Total commits**: {len(commits)}")
    return "\n".join(lines)


def _get_commit_diff(ctx: ReviewContext, args: CommitDiffInput) -> str:
    if not ctx.git.commit_exists(args.sha):
        return f"Commit {args.sha} not found"
    output = ctx.git.show(args.sha, args.file_path)
    if not output.strip():
        if args.file_path:
            return f"No changes found in commit {args.sha} for file {args.file_path}"
        return f"Commit {args.sha} not found"

    max_lines = ctx.limits.commit_diff_max_lines
    lines = output.split("\n")
    if len(lines) > max_lines:
        truncated = "\n".join(lines[:max_lines])
        return (
            f"```diff\n{truncated}\n\n"
            f"... (truncated: commit diff was {len(lines)} lines, showing first {max_lines})\n"
            "Use read_large_diff_chunk to read specific files in chunks if needed.\n```"
        )
    return f"```diff\n{output}\n```"


def total_chunks(total_lines: int, lines_per_chunk: int) -> int:
    return math.ceil(total_lines / lines_per_chunk)


def chunk_bounds(total_lines: int, chunk_index: int, lines_per_chunk: int) -> Optional[Tuple[int, int]]:
    """0-based ``[start, end)`` of a chunk, or None when out of range."""
    if chunk_index < 0 or chunk_index >= total_chunks(total_lines, lines_per_chunk):
        return None
    start = chunk_index * lines_per_chunk
    return start, min(start + lines_per_chunk, total_lines)


def _read_large_diff_chunk(ctx: ReviewContext, args: DiffChunkInput) -> str:
    output = ctx.git.diff(ctx.base_sha, ctx.head_sha, args.path)
    if not output.strip():
        return f"No changes found for {args.path}"

    diff_lines = output.splitlines()
    total = total_chunks(len(diff_lines), args.lines_per_chunk)
    bounds = chunk_bounds(len(diff_lines), args.chunk_index, args.lines_per_chunk)
    if bounds is None:
        return f"Invalid chunk index {args.chunk_index}. File has {total} chunks (0-{total - 1})"

    start, end = bounds
    lines = [
        f"## Diff Chunk for: {args.path}",
        f"**Chunk**: {args.chunk_index + 1}/{total}",
        f"**Lines**: {start + 1}-{end} of {len(diff_lines)}",
        "",
        "```diff",
        *diff_lines[start:end],
        "```",
    ]
    if args.chunk_index < total - 1:
        lines.append("")
        lines.append(f"💡 **Tip**: Use chunk_index={args.chunk_index + 1} to read the next chunk")
    return "\n".join(lines)


def _get_pr_context(ctx: ReviewContext, args: NoInput) -> str:
    counts = {status: 0 for status in ("added", "modified", "removed", "renamed")}
    for change in ctx.files:
        if change.status in counts:
            counts[change.status] += 1

    lines = [
        "## Pull Request Context\n",
        f"**Base**: {ctx.base_sha[:7]}",
        f"**Head**: {ctx.head_sha[:7]}",
        f"**Working Directory**: {ctx.workdir}",
        f"**Files Changed**: {len(ctx.files)}",
        "\n**File Changes**:",
        f"- ✅ Added: {counts['added']}",
        f"- ✏️ Modified: {counts['modified']}",
        f"- ❌ Removed: {counts['removed']}",
        f"- ↔️ Renamed: {counts['renamed']}",
    ]
    try:
        branches = ctx.git.branches().strip()
    except ExternalProcessError as exc:
        logger.debug("Branch info unavailable: %s", exc)
        branches = ""
    if branches:
        lines.extend(["\n**Branch Info**:", "```", branches, "```"])
    return "\n".join(lines)


def _analyze_function_impact(ctx: ReviewContext, args: ImpactInput) -> str:
    return analyze_impact(ctx, args.function_name, args.file_path, args.context_lines)


# ═══════════════════════════════════════════════════════════════
# Catalog
# ═══════════════════════════════════════════════════════════════

_SPECS = (
    ToolSpec(
        "read_file",
        "Read the complete content of a file from the repository. "
        "Use this to see the full context of a file.",
        PathInput, _read_file,
    ),
    ToolSpec(
        "get_file_diff",
        "Get the git diff for a specific file. Shows what was changed (additions/deletions).",
        FileDiffInput, _get_file_diff,
    ),
    ToolSpec(
        "analyze_file_ast",
        "Perform deep AST analysis on a file. Returns functions, classes, imports, and code metrics.",
        PathInput, _analyze_file_ast,
    ),
    ToolSpec(
        "find_function_callers",
        "Find all places where a function is called. Useful for understanding the impact of changes.",
        FunctionInput, _find_function_callers,
    ),
    ToolSpec(
        "find_function_dependencies",
        "Find all functions that a given function depends on (calls).",
        FunctionInput, _find_function_dependencies,
    ),
    ToolSpec(
        "run_linter",
        "Run linter on a file to find potential issues, style violations, and code quality problems.",
        PathInput, _run_linter,
    ),
    ToolSpec(
        "search_code",
        "Search for a pattern in the codebase using grep. Useful for finding similar patterns or usages.",
        SearchInput, _search_code,
    ),
    ToolSpec(
        "get_commit_info",
        "Get detailed information about a specific commit, including message, author, and files changed.",
        CommitInput, _get_commit_info,
    ),
    ToolSpec(
        "get_file_history",
        "Get the recent commit history for a specific file.",
        FileHistoryInput, _get_file_history,
    ),
    ToolSpec(
        "analyze_function_complexity",
        "Analyze cyclomatic complexity and other metrics for a specific function.",
        FunctionInput, _analyze_function_complexity,
    ),
    ToolSpec(
        "get_commits_list",
        "Get the list of commits in the pull request with hash, author, date, and message.",
        CommitsListInput, _get_commits_list,
    ),
    ToolSpec(
        "get_commit_diff",
        "Get the full diff for a specific commit by its hash.",
        CommitDiffInput, _get_commit_diff,
    ),
    ToolSpec(
        "read_large_diff_chunk",
        "Read a portion of a large diff in chunks to avoid token limits.",
        DiffChunkInput, _read_large_diff_chunk,
    ),
    ToolSpec(
        "get_pr_context",
        "Get context about the pull request: diff range, changed-file counts, and branch info.",
        NoInput, _get_pr_context,
    ),
    ToolSpec(
        "analyze_function_impact",
        "Analyze every call site of a function with surrounding context and inferred argument "
        "types, to judge whether a signature change would break callers.",
        ImpactInput, _analyze_function_impact,
    ),
)

TOOLS: Mapping[str, ToolSpec] = MappingProxyType({spec.name: spec for spec in _SPECS})


def _describe(exc: BaseException) -> str:
    return str(exc) or type(exc).__name__


class ToolDispatcher:
    """Validates, routes and executes tool invocations for one review."""

    def __init__(self, context: ReviewContext, tools: Mapping[str, ToolSpec] = TOOLS) -> None:
        self.context = context
        self._tools = tools

    def catalog(self) -> List[Dict[str, Any]]:
        return [spec.schema() for spec in self._tools.values()]

    def _resolve(self, invocation: ToolInvocation) -> Tuple[ToolSpec, BaseModel]:
        if not isinstance(invocation.name, str):
            raise InvalidInvocation(f"Tool name must be a string, got {type(invocation.name).__name__}")
        spec = self._tools.get(invocation.name)
        if spec is None:
            raise InvalidInvocation(
                f"Unknown operation: {invocation.name}. "
                f"Available tools: {', '.join(self._tools)}"
            )
        arguments = invocation.arguments or {}
        if not isinstance(arguments, Mapping):
            raise InvalidInvocation(f"Arguments for {invocation.name} must be an object")
        return spec, spec.validate(arguments)

    def dispatch(self, invocation: ToolInvocation) -> ToolResult:
        """Run *invocation*; every failure comes back as an error result."""
        name = invocation.name
        try:
            spec, args = self._resolve(invocation)
        except InvalidInvocation as exc:
            logger.warning("Rejected invocation: %s", exc)
            return ToolResult(name=name, error=str(exc))

        logger.debug("Dispatching %s with %s", name, args.model_dump())
        try:
            text = spec.handler(self.context, args)
        except ExternalProcessError as exc:
            logger.warning("%s: external command failed: %s", name, exc)
            return ToolResult(name=name, error=_describe(exc))
        except (OSError, ValueError) as exc:
            logger.warning("%s failed: %s", name, exc)
            return ToolResult(name=name, error=_describe(exc))
        except Exception as exc:
            logger.exception("Unexpected failure in tool %s", name)
            return ToolResult(name=name, error=f"{type(exc).__name__}: {exc}")
        return ToolResult(name=name, text=text)
