"""Tests for heuristic argument-type inference."""

from prlens.type_inference import infer_argument_types, split_call_arguments, supports_type_inference


def test_split_call_arguments_top_level_only():
    line = "const r = foo(a, bar(b, c), 'x,y', {k: 1, j: 2});"
    assert split_call_arguments(line, "foo") == ["a", "bar(b, c)", "'x,y'", "{k: 1, j: 2}"]


def test_split_call_arguments_requires_whole_identifier():
    assert split_call_arguments("food(a)", "foo") == []


def test_supported_languages():
    assert supports_type_inference("typescript")
    assert supports_type_inference("tsx")
    assert supports_type_inference("python")
    assert not supports_type_inference("javascript")
    assert not supports_type_inference("go")


def test_property_type_resolved_through_interface():
    content = (
        "interface Cart {\n"
        "  total: number;\n"
        "}\n"
        "function checkout(cart: Cart) {\n"
        "  return add(cart.total, 5);\n"
        "}\n"
    )
    hints = infer_argument_types(content, 5, "add", "typescript")

    assert len(hints) == 1
    assert hints[0].expression == "cart.total"
    assert hints[0].type == "number (from Cart)"


def test_declarations_and_parameters():
    content = (
        "function run(count: string) {\n"
        "  const count2: number = 1;\n"
        "  let id: UserId = make();\n"
        "  save(id, count);\n"
        "}\n"
    )
    hints = {h.expression: h.type for h in infer_argument_types(content, 4, "save", "typescript")}

    assert hints == {"id": "UserId", "count": "string"}


def test_literals_and_receivers_skipped():
    content = "class A {\n  go() {\n    send(this, true, 42, 'x');\n  }\n}\n"
    assert infer_argument_types(content, 3, "send", "typescript") == []


def test_unknown_property_falls_back_to_base_type():
    content = "const user: User = load();\nshow(user.name);\n"
    hints = infer_argument_types(content, 2, "show", "typescript")

    assert [(h.expression, h.type) for h in hints] == [("user", "User")]


def test_search_window_limits_lookback():
    content = "const far: Distant = x;\n" + "\n" * 60 + "use(far);\n"
    call_line = len(content.splitlines())

    assert infer_argument_types(content, call_line, "use", "typescript", window=50) == []
    assert infer_argument_types(content, call_line, "use", "typescript", window=100)[0].type == "Distant"


def test_python_annotations():
    content = (
        "class Cart:\n"
        "    total: float\n"
        "\n"
        "\n"
        "def run(cart: Cart, retries: int = 3):\n"
        "    process(cart.total, attempts=retries)\n"
    )
    hints = {h.expression: h.type for h in infer_argument_types(content, 6, "process", "python")}

    assert hints == {"cart.total": "float (from Cart)", "retries": "int"}


def test_out_of_range_line():
    assert infer_argument_types("foo(a)\n", 10, "foo", "typescript") == []
