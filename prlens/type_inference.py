"""Heuristic argument-type inference around a call site.

Raw-text pattern search, no symbol table: the hints are best-effort, may
be partial, and an argument whose type cannot be found is simply left out.
Only languages with optional static annotations are supported.
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from typing import Callable, List, Optional, Tuple

from .models import TypeHint

_IDENT = re.compile(r"^[A-Za-z_$][\w$]*$")
_LITERALS = {"true", "false", "null", "undefined", "None", "True", "False", "NaN"}


@dataclass(frozen=True)
class _TypeSyntax:
    receivers: Tuple[str, ...]
    # Templates formatted with the escaped identifier, in priority order:
    # typed local declaration, typed parameter, bare ``name: Type``.
    patterns: Tuple[str, ...]
    trailing_comment: str
    record_body: Callable[[str, str], Optional[str]]
    property_pattern: str


def _ecma_record_body(content: str, type_name: str) -> Optional[str]:
    match = re.search(
        rf"(?:interface|type|class)\s+{re.escape(type_name)}\b[^{{=;]*[={{]([^}}]*)\}}",
        content,
        re.DOTALL,
    )
    return match.group(1) if match else None


def _python_record_body(content: str, type_name: str) -> Optional[str]:
    lines = content.splitlines()
    header = re.compile(rf"^(\s*)class\s+{re.escape(type_name)}\b.*:\s*(#.*)?$")
    for idx, line in enumerate(lines):
        match = header.match(line)
        if match is None:
            continue
        indent = len(match.group(1))
        body: List[str] = []
        for follower in lines[idx + 1:]:
            if not follower.strip():
                continue
            if len(follower) - len(follower.lstrip()) <= indent:
                break
            body.append(follower)
        return "\n".join(body)
    return None


_TYPESCRIPT = _TypeSyntax(
    receivers=("this",),
    patterns=(
        r"(?:const|let|var)\s+{name}\s*:\s*([^=;\n]+)",
        r"[,(]\s*(?:(?:public|private|protected|readonly)\s+)*{name}\s*\??\s*:\s*([^,)=\n]+)",
        r"(?<![\w$.]){name}\s*:\s*([^;,\n]+)",
    ),
    trailing_comment=r"//.*$",
    record_body=_ecma_record_body,
    property_pattern=r"(?<![\w$]){name}\s*\??\s*:\s*([^;,\n}}]+)",
)

_PYTHON = _TypeSyntax(
    receivers=("self", "cls"),
    patterns=(
        r"^\s*{name}\s*:\s*([^=\n#]+?)\s*=",
        r"[,(]\s*{name}\s*:\s*([^,)=\n#]+)",
        r"(?<![\w.]){name}\s*:\s*([^=,)\n#]+)",
    ),
    trailing_comment=r"#.*$",
    record_body=_python_record_body,
    property_pattern=r"^\s*{name}\s*:\s*([^=\n#]+)",
)

TYPE_SYNTAX = {
    "typescript": _TYPESCRIPT,
    "tsx": _TYPESCRIPT,
    "python": _PYTHON,
}


def supports_type_inference(language: str) -> bool:
    return language in TYPE_SYNTAX


def split_call_arguments(line: str, function_name: str) -> List[str]:
    """Argument texts of the first ``function_name(`` call on *line*.

    Splits on top-level commas only; an argument list that continues past
    the end of the line is cut there.
    """
    match = re.search(rf"(?<![\w$]){re.escape(function_name)}\s*\(", line)
    if match is None:
        return []
    args: List[str] = []
    current: List[str] = []
    depth = 0
    quote: Optional[str] = None
    escaped = False
    for ch in line[match.end():]:
        if quote:
            current.append(ch)
            if escaped:
                escaped = False
            elif ch == "\\":
                escaped = True
            elif ch == quote:
                quote = None
            continue
        if ch in "'\"`":
            quote = ch
        elif ch in "([{":
            depth += 1
        elif ch in ")]}":
            if depth == 0:
                break
            depth -= 1
        elif ch == "," and depth == 0:
            args.append("".join(current).strip())
            current = []
            continue
        current.append(ch)
    args.append("".join(current).strip())
    return [a for a in args if a]


def _normalise(argument: str, language: str) -> str:
    expr = argument.strip()
    if language == "python":
        keyword = re.match(r"^[A-Za-z_]\w*\s*=(?!=)\s*(.+)$", expr)
        if keyword:
            expr = keyword.group(1)
    expr = re.sub(r"^(?:\.\.\.|\*\*|\*|await\s+)", "", expr).strip()
    return expr.replace("?.", ".")


def _clean(found: str, syntax: _TypeSyntax) -> str:
    found = re.sub(syntax.trailing_comment, "", found).strip()
    return found.rstrip("{").strip()


def _find_type(
    lines: List[str], call_index: int, name: str, syntax: _TypeSyntax, window: int,
) -> Optional[str]:
    start = max(0, call_index - window + 1)
    escaped = re.escape(name)
    for template in syntax.patterns:
        pattern = re.compile(template.format(name=escaped))
        for idx in range(min(call_index, len(lines) - 1), start - 1, -1):
            match = pattern.search(lines[idx])
            if match:
                found = _clean(match.group(1), syntax)
                if found:
                    return found
    return None


def _property_type(content: str, type_name: str, prop: str, syntax: _TypeSyntax) -> Optional[str]:
    if not _IDENT.match(type_name):
        return None
    body = syntax.record_body(content, type_name)
    if body is None:
        return None
    pattern = re.compile(syntax.property_pattern.format(name=re.escape(prop)), re.MULTILINE)
    match = pattern.search(body)
    if match is None:
        return None
    return _clean(match.group(1), syntax) or None


def infer_argument_types(
    content: str,
    call_line: int,
    function_name: str,
    language: str,
    window: int = 50,
) -> List[TypeHint]:
    """Guess the types of the arguments passed at *call_line* (1-based)."""
    syntax = TYPE_SYNTAX.get(language)
    lines = content.splitlines()
    if syntax is None or not 1 <= call_line <= len(lines):
        return []

    call_index = call_line - 1
    hints: List[TypeHint] = []
    for argument in split_call_arguments(lines[call_index], function_name):
        expr = _normalise(argument, language)
        base = re.split(r"[.\[(]", expr, maxsplit=1)[0].strip()
        if not _IDENT.match(base) or base in _LITERALS or base in syntax.receivers:
            continue

        base_type = _find_type(lines, call_index, base, syntax, window)
        if base_type is None:
            continue

        parts = expr.split(".")
        if len(parts) == 2 and _IDENT.match(parts[1].strip()):
            prop = parts[1].strip()
            prop_type = _property_type(content, base_type, prop, syntax)
            if prop_type is not None:
                hints.append(TypeHint(expression=f"{base}.{prop}", type=f"{prop_type} (from {base_type})"))
            else:
                hints.append(TypeHint(expression=base, type=base_type))
        else:
            hints.append(TypeHint(expression=expr, type=base_type))
    return hints
