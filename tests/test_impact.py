"""Tests for context windows and the function impact report."""

from prlens.config import Limits
from prlens.context import extract_contexts, extract_window
from prlens.impact import analyze_impact, impact_band
from prlens.models import CallSite


class TestContextWindows:

    def test_window_clipped_to_file(self):
        lines = ["a", "b", "c", "d", "e"]
        window = extract_window(lines, 1, 3)

        assert [l.number for l in window] == [1, 2, 3, 4]
        assert [l.is_target for l in window] == [True, False, False, False]

    def test_window_past_end_is_empty(self):
        assert extract_window(["a", "b"], 10, 2) == []

    def test_zero_context(self):
        window = extract_window(["a", "b", "c"], 2, 0)
        assert [(l.number, l.text) for l in window] == [(2, "b")]

    def test_unreadable_file_gives_error_window(self, review_ctx):
        windows = extract_contexts(review_ctx.workdir, [CallSite("gone.ts", 3, "f()")], "f", 2)

        assert len(windows) == 1
        assert windows[0].error is not None
        assert windows[0].lines == []

    def test_hints_only_for_typed_languages(self, review_ctx, make_file):
        make_file("a.js", "const x = 1;\nf(x);\n")
        make_file("b.ts", "const x: Count = 1;\nf(x);\n")
        sites = [CallSite("a.js", 2, "f(x);"), CallSite("b.ts", 2, "f(x);")]

        js, ts = extract_contexts(review_ctx.workdir, sites, "f", 1)

        assert js.hints == []
        assert [(h.expression, h.type) for h in ts.hints] == [("x", "Count")]


def test_impact_band():
    assert impact_band(0) == "low"
    assert impact_band(5) == "low"
    assert impact_band(6) == "medium"
    assert impact_band(10) == "medium"
    assert impact_band(11) == "high"


class TestAnalyzeImpact:

    def test_cart_scenario(self, cart_repo):
        report = analyze_impact(cart_repo, "add", "src/math.ts", 2)

        assert "## Function Impact Analysis: add" in report
        assert "**Parameters**: a, b" in report
        assert "Found **3** call site(s) across **2** file(s)" in report
        assert "#### `src/cart.ts` (2 calls)" in report
        assert "#### `src/app.ts` (1 call)" in report
        assert "→    9 |   return add(cart.total, 5);" in report
        assert "- `cart.total`: number (from Cart)" in report
        assert "→   12 | export const tally = (x, y) => add(x, y);" in report
        # unannotated arguments are left out of the type hints
        assert "`x`" not in report
        assert "`y`" not in report
        assert "**Total Impact**: 3 call site(s)" in report
        assert "Low impact" in report
        # the definition line itself is not a call site
        assert "src/math.ts:1" not in report
        assert "#### `src/math.ts`" not in report

    def test_no_call_sites(self, review_ctx, fake_runner, make_file):
        make_file("src/math.ts", "export function add(a: number, b: number): number {\n  return a + b;\n}\n")
        fake_runner.add(["git", "grep"], stdout="HEAD:src/math.ts:1:export function add(a: number, b: number): number {\n")

        report = analyze_impact(review_ctx, "add", "src/math.ts", 5)

        assert "0 call sites" in report
        assert "Breaking Change Analysis" not in report

    def test_sites_capped(self, cart_repo):
        cart_repo.limits = Limits(impact_max_sites=2)

        report = analyze_impact(cart_repo, "add", "src/math.ts", 1)

        assert "Found **3** call site(s)" in report
        assert "... and **1** more call site(s) not shown" in report
        assert "#### `src/app.ts`" not in report

    def test_missing_definition_file(self, cart_repo):
        report = analyze_impact(cart_repo, "add", "src/nope.ts", 1)

        assert "Could not parse function definition" in report
        assert "Found **4** call site(s)" in report

    def test_function_not_in_file(self, cart_repo):
        report = analyze_impact(cart_repo, "subtract", "src/math.ts", 1)

        assert "Function `subtract` not found in `src/math.ts`" in report
