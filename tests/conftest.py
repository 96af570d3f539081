"""Pytest configuration and fixtures for prlens tests."""

import shutil
import tempfile
from pathlib import Path
from typing import Generator, List, Sequence, Tuple

import pytest

from prlens.process import ProcessResult
from prlens.session import ReviewContext


class FakeRunner:
    """Process runner that answers from canned responses instead of spawning.

    Responses are matched by command prefix; the most recently added match
    wins and unmatched commands succeed with empty output.
    """

    def __init__(self):
        self.calls: List[Tuple[str, ...]] = []
        self._responses: List[Tuple[Tuple[str, ...], ProcessResult]] = []

    def add(self, prefix: Sequence[str], stdout: str = "", exit_code: int = 0, stderr: str = "") -> None:
        self._responses.append((tuple(prefix), ProcessResult(stdout, exit_code, stderr)))

    def __call__(self, args: Sequence[str], cwd: Path) -> ProcessResult:
        command = tuple(args)
        self.calls.append(command)
        for prefix, result in reversed(self._responses):
            if command[:len(prefix)] == prefix:
                return result
        return ProcessResult("", 0)


@pytest.fixture(autouse=True)
def _isolated_config(tmp_path: Path, monkeypatch):
    """Never read the developer's real ~/.prlens/config.toml."""
    monkeypatch.setattr("prlens.config.CONFIG_FILE", tmp_path / "no-config.toml")


@pytest.fixture
def temp_dir() -> Generator[Path, None, None]:
    """Create a temporary directory for tests."""
    tmp = Path(tempfile.mkdtemp())
    yield tmp
    shutil.rmtree(tmp, ignore_errors=True)


@pytest.fixture
def fake_runner() -> FakeRunner:
    return FakeRunner()


@pytest.fixture
def review_ctx(temp_dir: Path, fake_runner: FakeRunner) -> ReviewContext:
    """Review context over an empty working copy, with git faked."""
    return ReviewContext(workdir=temp_dir, base_sha="base1234567", head_sha="HEAD", runner=fake_runner)


def write_file(root: Path, rel_path: str, content: str) -> Path:
    """Write *content* under *root*, creating parent directories."""
    path = root / rel_path
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(content)
    return path


@pytest.fixture
def sample_ts_code() -> str:
    """Sample TypeScript module for testing the parser."""
    return '''import { readFile } from "fs";
import { helper } from "./utils";
const lodash = require("lodash");

// Adds numbers
export function add(a: number, b: number): number {
  return a + b;
}

export const greet = async (name: string): Promise<string> => {
  if (name && name.length > 0) {
    return helper(name);
  }
  return "anon";
};

class Cart {
  total(items: number[]): number {
    let sum = 0;
    for (const item of items) {
      sum += item;
    }
    return sum;
  }
}
'''


@pytest.fixture
def sample_python_code() -> str:
    """Sample Python module for testing the parser."""
    return '''import os
from .utils import helper
from typing import List as L


class Greeter:
    def greet(self, name: str = "x") -> str:
        if name and len(name) > 3:
            return helper(name)
        return os.path.join(name)


async def _fetch(url, *args, **kwargs):
    # fetch it
    for a in args:
        pass
    return url
'''


CART_MATH_TS = '''export function add(a: number, b: number): number {
  return a + b;
}
'''

CART_TS = '''import { add } from "./math";

interface Cart {
  total: number;
  items: string[];
}

export function checkout(cart: Cart): number {
  return add(cart.total, 5);
}

export const tally = (x, y) => add(x, y);
'''

CART_APP_TS = '''import { add } from "./math";

console.log(add(2, 3));
'''

CART_GREP = "\n".join([
    "HEAD:src/math.ts:1:export function add(a: number, b: number): number {",
    "HEAD:src/cart.ts:9:  return add(cart.total, 5);",
    "HEAD:src/cart.ts:12:export const tally = (x, y) => add(x, y);",
    "HEAD:src/app.ts:3:console.log(add(2, 3));",
]) + "\n"


@pytest.fixture
def cart_repo(review_ctx: ReviewContext, fake_runner: FakeRunner) -> ReviewContext:
    """Working copy where ``add`` is defined once and called three times."""
    write_file(review_ctx.workdir, "src/math.ts", CART_MATH_TS)
    write_file(review_ctx.workdir, "src/cart.ts", CART_TS)
    write_file(review_ctx.workdir, "src/app.ts", CART_APP_TS)
    fake_runner.add(["git", "grep", "-F", "-n", "-e", "add("], stdout=CART_GREP)
    return review_ctx


@pytest.fixture
def make_file(review_ctx: ReviewContext):
    """Write a file into the review working copy."""
    def _make(rel_path: str, content: str) -> Path:
        return write_file(review_ctx.workdir, rel_path, content)
    return _make
