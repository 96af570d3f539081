"""Tests for function lookup and git-grep call-site discovery."""

from prlens.callsites import find_calls, group_by_file, locate, parse_grep_output
from prlens.models import CallSite, FunctionInfo, Metrics, Unit
from prlens.parser import parse


def test_locate_first_match():
    unit = Unit(
        language="python",
        metrics=Metrics(),
        functions=[FunctionInfo("run", 3), FunctionInfo("stop", 8), FunctionInfo("run", 12)],
    )
    assert locate(unit, "run").line == 3
    assert locate(unit, "missing") is None


def test_locate_is_idempotent(sample_ts_code: str):
    unit = parse(sample_ts_code, "src/sample.ts")
    assert locate(unit, "greet") == locate(unit, "greet")


def test_locate_on_degraded_unit():
    unit = parse("fn main() {}\n", "main.rs")
    assert locate(unit, "main") is None


def test_parse_grep_output_strips_revision():
    output = (
        "HEAD:src/a.ts:10:  foo(1);\n"
        "HEAD:src/b.ts:2:const x = foo(y); // note: later\n"
    )
    sites = parse_grep_output(output, "HEAD")

    assert sites == [
        CallSite("src/a.ts", 10, "foo(1);"),
        CallSite("src/b.ts", 2, "const x = foo(y); // note: later"),
    ]


def test_parse_grep_output_without_revision():
    sites = parse_grep_output("lib/x.py:4:    foo()\n")
    assert sites == [CallSite("lib/x.py", 4, "foo()")]


def test_parse_grep_output_skips_noise():
    output = "Binary file img.png matches\n\nsrc/a.ts:notanumber:foo(\n"
    assert parse_grep_output(output) == []


def test_call_site_str():
    assert str(CallSite("src/a.ts", 3, "foo()")) == "src/a.ts:3:foo()"


def test_find_calls_uses_literal_grep(review_ctx, fake_runner):
    fake_runner.add(["git", "grep"], stdout="HEAD:src/a.ts:1:bar()\n")

    sites = find_calls(review_ctx.git, "bar", "HEAD")

    assert sites == [CallSite("src/a.ts", 1, "bar()")]
    assert fake_runner.calls[-1] == ("git", "grep", "-F", "-n", "-e", "bar(", "HEAD")


def test_find_calls_no_matches(review_ctx, fake_runner):
    fake_runner.add(["git", "grep"], exit_code=1)
    assert find_calls(review_ctx.git, "bar", "HEAD") == []


def test_group_by_file_preserves_order():
    sites = [CallSite("b.ts", 1, ""), CallSite("a.ts", 5, ""), CallSite("b.ts", 9, "")]
    grouped = group_by_file(sites)

    assert list(grouped) == ["b.ts", "a.ts"]
    assert [s.line for s in grouped["b.ts"]] == [1, 9]


def test_find_calls_name_is_never_an_option(review_ctx, fake_runner):
    find_calls(review_ctx.git, "-O", "HEAD")

    assert fake_runner.calls[-1] == ("git", "grep", "-F", "-n", "-e", "-O(", "HEAD")
