"""Core data models shared by the parser, the analyzers, and the tool layer."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Dict, List, Literal, Optional


@dataclass
class FunctionInfo:
    name: str
    line: int
    params: List[str] = field(default_factory=list)
    return_type: Optional[str] = None
    is_async: bool = False
    is_exported: bool = False
    complexity: int = 1
    calls: List[str] = field(default_factory=list)


@dataclass
class ClassInfo:
    name: str
    line: int


@dataclass
class DependencyInfo:
    source: str
    line: int
    is_external: bool
    specifiers: List[str] = field(default_factory=list)


@dataclass
class Metrics:
    lines_of_code: int = 0
    complexity: int = 0
    maintainability_index: Optional[float] = None
    function_count: int = 0
    class_count: int = 0
    comment_ratio: float = 0.0


@dataclass
class Unit:
    """One parsed file.

    ``ast`` holds the tree-sitter tree when a structural backend succeeded
    and is ``None`` otherwise; in that case the function, class and
    dependency lists are empty and only line-based metrics are present.
    """
    language: str
    metrics: Metrics
    functions: List[FunctionInfo] = field(default_factory=list)
    classes: List[ClassInfo] = field(default_factory=list)
    dependencies: List[DependencyInfo] = field(default_factory=list)
    ast: Optional[Any] = None

    @property
    def is_structural(self) -> bool:
        return self.ast is not None


@dataclass
class CallSite:
    path: str
    line: int
    text: str

    def __str__(self) -> str:
        return f"{self.path}:{self.line}:{self.text}"


@dataclass
class TypeHint:
    expression: str
    type: str


@dataclass
class ContextLine:
    number: int
    text: str
    is_target: bool = False


@dataclass
class ContextWindow:
    """Lines carved around one call site, or the reason they could not be."""
    site: CallSite
    lines: List[ContextLine] = field(default_factory=list)
    hints: List[TypeHint] = field(default_factory=list)
    error: Optional[str] = None


@dataclass
class FileChange:
    filename: str
    status: Literal["added", "modified", "removed", "renamed"] = "modified"


@dataclass
class LintFinding:
    line: int
    column: int
    message: str
    rule_id: str
    severity: str = "warning"


@dataclass
class ToolInvocation:
    name: str
    arguments: Dict[str, Any] = field(default_factory=dict)


@dataclass
class ToolResult:
    """Outcome of one invocation: exactly one of ``text`` and ``error``."""
    name: str
    text: Optional[str] = None
    error: Optional[str] = None

    def __post_init__(self):
        if (self.text is None) == (self.error is None):
            raise ValueError("ToolResult needs exactly one of text or error")

    @property
    def ok(self) -> bool:
        return self.error is None
