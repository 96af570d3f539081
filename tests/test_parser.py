"""Tests for the language adapters and the parse entry point."""

import pytest

from prlens.parser import (
    LexicalAdapter,
    detect_language,
    fence_language,
    get_adapter,
    parse,
)


def _by_name(unit, name):
    return next(f for f in unit.functions if f.name == name)


class TestLanguageDetection:

    @pytest.mark.parametrize("filename,expected", [
        ("src/app.ts", "typescript"),
        ("src/App.tsx", "tsx"),
        ("lib/index.js", "javascript"),
        ("pkg/mod.py", "python"),
        ("main.go", "go"),
        ("README", "text"),
        ("notes.unknownext", "text"),
    ])
    def test_detect_language(self, filename, expected):
        assert detect_language(filename) == expected

    def test_fence_language(self):
        assert fence_language("a.jsx") == "jsx"
        assert fence_language("a.cs") == "csharp"
        assert fence_language("run.sh") == "bash"
        assert fence_language("LICENSE") == ""

    def test_registry_flags(self):
        """Only grammar-backed languages advertise structural parsing."""
        assert get_adapter("typescript").supports_structural_parse
        assert get_adapter("python").supports_structural_parse
        go = get_adapter("go")
        assert isinstance(go, LexicalAdapter)
        assert not go.supports_structural_parse


class TestTypeScriptParsing:

    def test_functions_extracted(self, sample_ts_code: str):
        unit = parse(sample_ts_code, "src/sample.ts")

        assert unit.ast is not None
        assert [f.name for f in unit.functions] == ["add", "greet", "total"]

        add = _by_name(unit, "add")
        assert add.line == 6
        assert add.params == ["a", "b"]
        assert add.return_type == "number"
        assert add.is_exported
        assert not add.is_async
        assert add.complexity == 1

    def test_arrow_function_bound_to_const(self, sample_ts_code: str):
        greet = _by_name(parse(sample_ts_code, "src/sample.ts"), "greet")

        assert greet.is_async
        assert greet.is_exported
        assert greet.params == ["name"]
        assert greet.return_type == "Promise<string>"
        # if + &&
        assert greet.complexity == 3
        assert "helper" in greet.calls

    def test_method_complexity(self, sample_ts_code: str):
        total = _by_name(parse(sample_ts_code, "src/sample.ts"), "total")

        assert total.complexity == 2
        assert not total.is_exported

    def test_classes_and_dependencies(self, sample_ts_code: str):
        unit = parse(sample_ts_code, "src/sample.ts")

        assert [c.name for c in unit.classes] == ["Cart"]
        deps = {d.source: d for d in unit.dependencies}
        assert deps["fs"].is_external
        assert deps["fs"].specifiers == ["readFile"]
        assert not deps["./utils"].is_external
        assert deps["lodash"].is_external
        assert deps["lodash"].specifiers == ["lodash"]

    def test_metrics(self, sample_ts_code: str):
        unit = parse(sample_ts_code, "src/sample.ts")
        metrics = unit.metrics

        assert metrics.function_count == 3
        assert metrics.class_count == 1
        assert metrics.complexity == 1 + 3 + 2
        assert metrics.lines_of_code == len(sample_ts_code.splitlines())
        assert metrics.comment_ratio > 0
        assert metrics.maintainability_index is not None
        assert 0 <= metrics.maintainability_index <= 100

    def test_syntax_error_degrades(self):
        """Broken sources fall back to line metrics instead of raising."""
        unit = parse("export function broken( {\n  return ;;\n", "src/broken.ts")

        assert unit.ast is None
        assert unit.functions == []
        assert unit.classes == []
        assert unit.dependencies == []
        assert unit.metrics.maintainability_index is None
        assert unit.metrics.lines_of_code == 2


class TestPythonParsing:

    def test_functions_extracted(self, sample_python_code: str):
        unit = parse(sample_python_code, "pkg/greeter.py")

        assert unit.ast is not None
        greet = _by_name(unit, "greet")
        assert greet.params == ["self", "name"]
        assert greet.return_type == "str"
        assert greet.is_exported
        assert greet.complexity == 3
        assert greet.calls == ["len", "helper", "os.path.join"]

    def test_async_private_function(self, sample_python_code: str):
        fetch = _by_name(parse(sample_python_code, "pkg/greeter.py"), "_fetch")

        assert fetch.is_async
        assert not fetch.is_exported
        assert fetch.params == ["url", "*args", "**kwargs"]
        assert fetch.complexity == 2

    def test_imports(self, sample_python_code: str):
        deps = {d.source: d for d in parse(sample_python_code, "pkg/greeter.py").dependencies}

        assert deps["os"].is_external
        assert not deps[".utils"].is_external
        assert deps[".utils"].specifiers == ["helper"]
        assert deps["typing"].specifiers == ["List"]

    def test_nested_function_not_counted_in_parent(self):
        code = (
            "def outer(x):\n"
            "    def inner(y):\n"
            "        if y:\n"
            "            return 1\n"
            "        return 2\n"
            "    return inner(x)\n"
        )
        unit = parse(code, "nested.py")

        assert _by_name(unit, "outer").complexity == 1
        assert _by_name(unit, "inner").complexity == 2
        assert _by_name(unit, "outer").calls == ["inner"]


class TestLexicalFallback:

    def test_unsupported_language_never_raises(self):
        code = "package main\n\n// entry\nfunc main() {\n}\n"
        unit = parse(code, "cmd/main.go")

        assert unit.language == "go"
        assert unit.ast is None
        assert not unit.is_structural
        assert unit.functions == []
        assert unit.metrics.lines_of_code == 5
        assert unit.metrics.comment_ratio == pytest.approx(1 / 5)
        assert unit.metrics.maintainability_index is None

    def test_empty_content(self):
        unit = parse("", "empty.txt")

        assert unit.metrics.lines_of_code == 0
        assert unit.metrics.comment_ratio == 0.0


class TestDeepNesting:

    def test_long_python_expression(self):
        """Deeply nested but valid code keeps its structural parse."""
        code = "def f():\n    return " + " + ".join(["1"] * 1500) + "\n"
        unit = parse(code, "deep.py")

        assert unit.ast is not None
        assert [f.name for f in unit.functions] == ["f"]
        assert unit.functions[0].complexity == 1

    def test_long_short_circuit_chain(self):
        code = "function g(a) {\n  return " + " && ".join(["a"] * 1500) + ";\n}\n"
        unit = parse(code, "deep.js")

        assert unit.ast is not None
        assert _by_name(unit, "g").complexity == 1500
