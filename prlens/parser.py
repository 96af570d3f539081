"""Per-language source adapters built on Tree-sitter.

Every file goes through :func:`parse`, which picks an adapter from the
registry by language tag:

- **structural** adapters (Python, JavaScript, TypeScript, TSX) parse the
  source into a Tree-sitter tree and extract functions, classes, imports
  and comment lines from it;
- the **lexical** adapter handles everything else with line counting and
  comment scanning only.

A structural parse that fails for any reason (grammar package missing,
syntax errors in the tree, unexpected exception while walking) degrades to
the lexical result instead of raising.
"""

from __future__ import annotations

import importlib
import logging
from abc import ABC, abstractmethod
from functools import lru_cache
from pathlib import PurePosixPath
from typing import Any, Dict, List, Optional, Set, Tuple

from .metrics import lexical_metrics, structural_metrics
from .models import ClassInfo, DependencyInfo, FunctionInfo, Unit

logger = logging.getLogger(__name__)

# ---------------------------------------------------------------------------
# Language <-> file-extension mapping (extensible)
# ---------------------------------------------------------------------------
LANGUAGE_MAP: Dict[str, str] = {
    ".py": "python",
    ".pyi": "python",
    ".js": "javascript",
    ".mjs": "javascript",
    ".cjs": "javascript",
    ".jsx": "javascript",
    ".ts": "typescript",
    ".mts": "typescript",
    ".cts": "typescript",
    ".tsx": "tsx",
    ".go": "go",
    ".rs": "rust",
    ".java": "java",
    ".rb": "ruby",
    ".cpp": "cpp",
    ".cc": "cpp",
    ".hpp": "cpp",
    ".c": "c",
    ".h": "c",
    ".cs": "c_sharp",
    ".php": "php",
    ".swift": "swift",
    ".kt": "kotlin",
    ".kts": "kotlin",
    ".scala": "scala",
    ".sh": "shell",
    ".bash": "shell",
    ".sql": "sql",
    ".lua": "lua",
    ".yml": "yaml",
    ".yaml": "yaml",
    ".toml": "toml",
    ".r": "r",
    ".pl": "perl",
}

# Markdown fence names where they differ from the language tag
_FENCE_NAMES: Dict[str, str] = {
    "c_sharp": "csharp",
    "shell": "bash",
    "text": "",
}


def detect_language(filename: str) -> str:
    """Return the language tag for *filename* (``"text"`` when unknown)."""
    return LANGUAGE_MAP.get(PurePosixPath(filename).suffix.lower(), "text")


def fence_language(filename: str) -> str:
    if filename.lower().endswith(".jsx"):
        return "jsx"
    language = detect_language(filename)
    return _FENCE_NAMES.get(language, language)


class StructuralParseError(Exception):
    """Raised inside a structural adapter when no usable tree can be built."""


# ===================================================================
# Adapter interface and registry
# ===================================================================

class LanguageAdapter(ABC):
    """Turns raw source text of one language into a :class:`Unit`."""

    supports_structural_parse: bool = False

    def __init__(self, language: str) -> None:
        self.language = language

    @abstractmethod
    def parse(self, content: str) -> Unit:
        ...


class LexicalAdapter(LanguageAdapter):
    """Fallback for languages without a grammar: line-based metrics only."""

    def parse(self, content: str) -> Unit:
        return Unit(language=self.language, metrics=lexical_metrics(content, self.language))


_ADAPTERS: Dict[str, LanguageAdapter] = {}


def register_adapter(adapter: LanguageAdapter) -> None:
    _ADAPTERS[adapter.language] = adapter


def get_adapter(language: str) -> LanguageAdapter:
    adapter = _ADAPTERS.get(language)
    if adapter is None:
        return LexicalAdapter(language)
    return adapter


def parse(content: str, filename: str) -> Unit:
    """Parse *content* of *filename* into a :class:`Unit`. Never raises."""
    language = detect_language(filename)
    adapter = get_adapter(language)
    try:
        return adapter.parse(content)
    except Exception as exc:
        logger.warning("Adapter %s failed on %s: %s", language, filename, exc)
        return Unit(language=language, metrics=lexical_metrics(content, language))


# ===================================================================
# Tree-sitter adapter
# ===================================================================

# Map language name -> (module providing the grammar, capsule factory)
_GRAMMAR_MODULES: Dict[str, Tuple[str, str]] = {
    "python": ("tree_sitter_python", "language"),
    "javascript": ("tree_sitter_javascript", "language"),
    "typescript": ("tree_sitter_typescript", "language_typescript"),
    "tsx": ("tree_sitter_typescript", "language_tsx"),
}


@lru_cache(maxsize=None)
def _load_language(language: str) -> Any:
    from tree_sitter import Language

    mod_name, factory = _GRAMMAR_MODULES[language]
    try:
        mod = importlib.import_module(mod_name)
    except ImportError as exc:
        logger.warning(
            "Grammar package '%s' not installed for language '%s'. "
            "Install with: pip install %s",
            mod_name, language, mod_name.replace("_", "-"),
        )
        raise StructuralParseError(f"grammar for {language} unavailable") from exc
    ts_lang = Language(getattr(mod, factory)())
    logger.debug("Loaded tree-sitter grammar for %s", language)
    return ts_lang


class TreeSitterAdapter(LanguageAdapter):
    """Structural adapter: real syntax tree, full extraction."""

    supports_structural_parse = True

    def __init__(self, language: str, extractor_cls: type) -> None:
        super().__init__(language)
        self._extractor_cls = extractor_cls

    def parse(self, content: str) -> Unit:
        try:
            tree = self._build_tree(content)
            extractor = self._extractor_cls()
            extractor.visit(tree.root_node)
        except Exception as exc:
            logger.warning(
                "Structural parse failed for %s source, using line metrics only: %s",
                self.language, exc,
            )
            return Unit(language=self.language, metrics=lexical_metrics(content, self.language))

        metrics = structural_metrics(
            content,
            extractor.functions,
            len(extractor.classes),
            extractor.comment_lines,
        )
        return Unit(
            language=self.language,
            metrics=metrics,
            functions=extractor.functions,
            classes=extractor.classes,
            dependencies=extractor.dependencies,
            ast=tree,
        )

    def _build_tree(self, content: str) -> Any:
        from tree_sitter import Parser as TSParser

        parser = TSParser(_load_language(self.language))
        tree = parser.parse(content.encode("utf-8"))
        if tree.root_node.has_error:
            raise StructuralParseError("syntax errors in source")
        return tree


# ===================================================================
# Extractors
# ===================================================================

def _text(node: Any) -> str:
    return node.text.decode("utf-8", errors="replace")


def _line(node: Any) -> int:
    return node.start_point[0] + 1


def _unquote(raw: str) -> str:
    return raw.strip().strip("'\"`")


class _Extractor:
    """Walks one tree and collects records in declaration order."""

    DECISION_TYPES: Set[str] = set()

    def __init__(self) -> None:
        self.functions: List[FunctionInfo] = []
        self.classes: List[ClassInfo] = []
        self.dependencies: List[DependencyInfo] = []
        self.comment_lines: Set[int] = set()

    def visit(self, root: Any) -> None:
        # explicit stack: generated sources nest deeper than the recursion limit
        stack = [root]
        while stack:
            node = stack.pop()
            if node.type == "comment":
                start, end = node.start_point[0], node.end_point[0]
                self.comment_lines.update(range(start + 1, end + 2))
            elif self.is_function(node):
                record = self.function_record(node)
                if record is not None:
                    self.functions.append(record)
            else:
                self.collect(node)
            stack.extend(reversed(node.children))

    # -- hooks --------------------------------------------------------
    def is_function(self, node: Any) -> bool:
        raise NotImplementedError

    def function_record(self, node: Any) -> Optional[FunctionInfo]:
        raise NotImplementedError

    def collect(self, node: Any) -> None:
        """Record classes and dependencies declared by *node*."""

    def is_decision(self, node: Any) -> bool:
        return node.type in self.DECISION_TYPES

    def call_name(self, node: Any) -> Optional[str]:
        return None

    # -- shared -------------------------------------------------------
    def scan_body(self, body: Any) -> Tuple[int, List[str]]:
        """Return (decision points, callee names) of *body*.

        Does not descend into nested functions that get their own record.
        """
        decisions = 0
        calls: List[str] = []
        stack = [body] if body is not None else []
        while stack:
            node = stack.pop()
            if self.is_decision(node):
                decisions += 1
            name = self.call_name(node)
            if name and name not in calls:
                calls.append(name)
            stack.extend(ch for ch in reversed(node.children) if not self.is_function(ch))
        return decisions, calls


class PythonExtractor(_Extractor):

    DECISION_TYPES = {
        "if_statement",
        "elif_clause",
        "for_statement",
        "while_statement",
        "except_clause",
        "conditional_expression",
        "boolean_operator",
        "for_in_clause",
        "if_clause",
        "case_clause",
    }

    def is_function(self, node: Any) -> bool:
        return node.type == "function_definition"

    def is_decision(self, node: Any) -> bool:
        if node.type == "case_clause":
            pattern = node.named_children[0] if node.named_children else None
            return pattern is None or _text(pattern).strip() != "_"
        return node.type in self.DECISION_TYPES

    def function_record(self, node: Any) -> Optional[FunctionInfo]:
        name_node = node.child_by_field_name("name")
        if name_node is None:
            return None
        name = _text(name_node)
        return_node = node.child_by_field_name("return_type")
        decisions, calls = self.scan_body(node.child_by_field_name("body"))
        return FunctionInfo(
            name=name,
            line=_line(node),
            params=self._params(node.child_by_field_name("parameters")),
            return_type=_text(return_node) if return_node is not None else None,
            is_async=any(ch.type == "async" for ch in node.children),
            is_exported=not name.startswith("_"),
            complexity=decisions + 1,
            calls=calls,
        )

    @staticmethod
    def _params(params_node: Any) -> List[str]:
        names: List[str] = []
        if params_node is None:
            return names
        for param in params_node.named_children:
            if param.type in ("identifier", "list_splat_pattern", "dictionary_splat_pattern"):
                names.append(_text(param))
            elif param.type in ("default_parameter", "typed_default_parameter"):
                name_node = param.child_by_field_name("name")
                if name_node is not None:
                    names.append(_text(name_node))
            elif param.type == "typed_parameter":
                inner = param.named_children[0] if param.named_children else None
                if inner is not None:
                    names.append(_text(inner))
        return names

    def call_name(self, node: Any) -> Optional[str]:
        if node.type != "call":
            return None
        func = node.child_by_field_name("function")
        return _resolve_python_call_name(func) if func is not None else None

    def collect(self, node: Any) -> None:
        if node.type == "class_definition":
            name_node = node.child_by_field_name("name")
            if name_node is not None:
                self.classes.append(ClassInfo(name=_text(name_node), line=_line(node)))
        elif node.type == "import_statement":
            for sub in node.children_by_field_name("name"):
                mod = sub.child_by_field_name("name") if sub.type == "aliased_import" else sub
                if mod is None:
                    continue
                source = _text(mod)
                self.dependencies.append(DependencyInfo(
                    source=source,
                    line=_line(node),
                    is_external=True,
                    specifiers=[source.split(".")[-1]],
                ))
        elif node.type == "import_from_statement":
            mod_node = node.child_by_field_name("module_name")
            if mod_node is None:
                return
            specifiers: List[str] = []
            for sub in node.children_by_field_name("name"):
                target = sub.child_by_field_name("name") if sub.type == "aliased_import" else sub
                if target is not None:
                    specifiers.append(_text(target))
            if any(ch.type == "wildcard_import" for ch in node.children):
                specifiers.append("*")
            self.dependencies.append(DependencyInfo(
                source=_text(mod_node),
                line=_line(node),
                is_external=mod_node.type != "relative_import",
                specifiers=specifiers,
            ))


class EcmaScriptExtractor(_Extractor):
    """JavaScript, TypeScript and TSX share one grammar family."""

    DECISION_TYPES = {
        "if_statement",
        "for_statement",
        "for_in_statement",
        "while_statement",
        "do_statement",
        "switch_case",
        "catch_clause",
        "ternary_expression",
    }
    SHORT_CIRCUIT = {"&&", "||", "??"}
    DECLARATIONS = {"function_declaration", "generator_function_declaration", "method_definition"}
    EXPRESSIONS = {"arrow_function", "function_expression", "function", "generator_function"}
    BINDINGS = {"variable_declarator", "public_field_definition", "field_definition"}

    def is_function(self, node: Any) -> bool:
        if not node.is_named:
            return False
        if node.type in self.DECLARATIONS:
            return node.child_by_field_name("body") is not None
        if node.type in self.EXPRESSIONS:
            return self._binding_name(node) is not None
        return False

    def _binding_name(self, node: Any) -> Optional[Any]:
        parent = node.parent
        if parent is None or parent.type not in self.BINDINGS:
            return None
        name_node = parent.child_by_field_name("name") or parent.child_by_field_name("property")
        if name_node is None or name_node.type not in (
            "identifier", "property_identifier", "private_property_identifier",
        ):
            return None
        return name_node

    def is_decision(self, node: Any) -> bool:
        if node.type == "binary_expression":
            operator = node.child_by_field_name("operator")
            return operator is not None and operator.type in self.SHORT_CIRCUIT
        return node.type in self.DECISION_TYPES

    def function_record(self, node: Any) -> Optional[FunctionInfo]:
        if node.type in self.DECLARATIONS:
            name_node = node.child_by_field_name("name")
        else:
            name_node = self._binding_name(node)
        if name_node is None:
            return None
        return_node = node.child_by_field_name("return_type")
        return_type = _text(return_node).lstrip(":").strip() if return_node is not None else None
        decisions, calls = self.scan_body(node.child_by_field_name("body"))
        return FunctionInfo(
            name=_text(name_node),
            line=_line(node),
            params=self._params(node),
            return_type=return_type or None,
            is_async=any(ch.type == "async" for ch in node.children),
            is_exported=self._is_exported(node),
            complexity=decisions + 1,
            calls=calls,
        )

    @staticmethod
    def _params(func_node: Any) -> List[str]:
        single = func_node.child_by_field_name("parameter")
        if single is not None:
            return [_text(single)]
        params_node = func_node.child_by_field_name("parameters")
        names: List[str] = []
        if params_node is None:
            return names
        for param in params_node.named_children:
            if param.type in ("required_parameter", "optional_parameter"):
                pattern = param.child_by_field_name("pattern")
                if pattern is not None:
                    names.append(_text(pattern))
            elif param.type == "assignment_pattern":
                left = param.child_by_field_name("left")
                if left is not None:
                    names.append(_text(left))
            elif param.type != "comment":
                names.append(_text(param))
        return names

    @staticmethod
    def _is_exported(node: Any) -> bool:
        current = node.parent
        while current is not None and current.type in (
            "variable_declarator", "lexical_declaration", "variable_declaration",
        ):
            current = current.parent
        return current is not None and current.type == "export_statement"

    def call_name(self, node: Any) -> Optional[str]:
        if node.type != "call_expression":
            return None
        func = node.child_by_field_name("function")
        return _resolve_ecma_call_name(func) if func is not None else None

    def collect(self, node: Any) -> None:
        if node.type in ("class_declaration", "abstract_class_declaration"):
            name_node = node.child_by_field_name("name")
            if name_node is not None:
                self.classes.append(ClassInfo(name=_text(name_node), line=_line(node)))
        elif node.type in ("import_statement", "export_statement"):
            source_node = node.child_by_field_name("source")
            if source_node is None:
                return
            self._add_dependency(_unquote(_text(source_node)), _line(node), self._import_names(node))
        elif node.type == "call_expression":
            func = node.child_by_field_name("function")
            args = node.child_by_field_name("arguments")
            if func is None or args is None or _text(func) != "require":
                return
            first = args.named_children[0] if args.named_children else None
            if first is None or first.type != "string":
                return
            self._add_dependency(_unquote(_text(first)), _line(node), self._require_names(node))

    def _add_dependency(self, source: str, line: int, specifiers: List[str]) -> None:
        self.dependencies.append(DependencyInfo(
            source=source,
            line=line,
            is_external=not source.startswith((".", "/")),
            specifiers=specifiers,
        ))

    @staticmethod
    def _import_names(node: Any) -> List[str]:
        names: List[str] = []

        def _walk(n: Any) -> None:
            if n.type in ("import_specifier", "export_specifier"):
                name_node = n.child_by_field_name("name")
                if name_node is not None:
                    names.append(_text(name_node))
                return
            if n.type == "namespace_import":
                names.append(_text(n))
                return
            if n.type == "import_clause":
                for ch in n.named_children:
                    if ch.type == "identifier":
                        names.append(_text(ch))
                    else:
                        _walk(ch)
                return
            for ch in n.named_children:
                _walk(ch)

        for child in node.named_children:
            if child.type != "string":
                _walk(child)
        return names

    @staticmethod
    def _require_names(call_node: Any) -> List[str]:
        parent = call_node.parent
        if parent is None or parent.type != "variable_declarator":
            return []
        name_node = parent.child_by_field_name("name")
        if name_node is None:
            return []
        if name_node.type == "identifier":
            return [_text(name_node)]
        return [
            _text(ch) for ch in name_node.named_children
            if ch.type in ("shorthand_property_identifier_pattern", "identifier")
        ]


# ===================================================================
# Shared Helpers
# ===================================================================

def _resolve_python_call_name(func_node: Any) -> Optional[str]:
    """Resolve a Python call-function node to a dotted name string."""
    if func_node.type == "identifier":
        return _text(func_node)
    if func_node.type == "attribute":
        parts: List[str] = []
        current = func_node
        while current is not None and current.type == "attribute":
            attr = current.child_by_field_name("attribute")
            if attr is not None:
                parts.append(_text(attr))
            current = current.child_by_field_name("object")
        if current is not None and current.type == "identifier":
            parts.append(_text(current))
        return ".".join(reversed(parts)) if parts else None
    if func_node.type == "call":
        inner = func_node.child_by_field_name("function")
        if inner is not None:
            return _resolve_python_call_name(inner)
    return None


def _resolve_ecma_call_name(func_node: Any) -> Optional[str]:
    """Resolve a JS/TS call-function node to a dotted name string."""
    if func_node.type in ("identifier", "this", "super"):
        return _text(func_node)
    if func_node.type == "member_expression":
        parts: List[str] = []
        current = func_node
        while current is not None and current.type == "member_expression":
            prop = current.child_by_field_name("property")
            if prop is not None:
                parts.append(_text(prop))
            current = current.child_by_field_name("object")
        if current is not None and current.type in ("identifier", "this"):
            parts.append(_text(current))
        return ".".join(reversed(parts)) if parts else None
    if func_node.type == "call_expression":
        inner = func_node.child_by_field_name("function")
        if inner is not None:
            return _resolve_ecma_call_name(inner)
    return None


register_adapter(TreeSitterAdapter("python", PythonExtractor))
register_adapter(TreeSitterAdapter("javascript", EcmaScriptExtractor))
register_adapter(TreeSitterAdapter("typescript", EcmaScriptExtractor))
register_adapter(TreeSitterAdapter("tsx", EcmaScriptExtractor))
