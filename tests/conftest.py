"""
Pytest Configuration and Fixtures.

Includes:
- Syspath patching for local imports.
- A fresh metadata bus and tracer for every test, so facts published by one
  test never leak into the next.
- Helpers running a single filter over s-expression source.
"""

import sys
from pathlib import Path
from typing import Callable, Optional

import pytest

# Add src to path so we can import 'rails2js' without installing it
src_path = Path(__file__).parent.parent / "src"
sys.path.insert(0, str(src_path))

from rails2js.config import RuntimeConfig  # noqa: E402
from rails2js.core.bus import MetadataBus, reset_bus  # noqa: E402
from rails2js.core.context import RewriterContext  # noqa: E402
from rails2js.core.engine import RewriteEngine  # noqa: E402
from rails2js.core.hooks import get_filter  # noqa: E402
from rails2js.core.node import Node  # noqa: E402
from rails2js.core.sexp import read_sexp  # noqa: E402
from rails2js.core.tracer import TraceLogger, reset_tracer  # noqa: E402


@pytest.fixture(autouse=True)
def fresh_bus() -> MetadataBus:
  """Every test starts a new whole-program run."""
  reset_tracer()
  return reset_bus()


@pytest.fixture
def bus(fresh_bus: MetadataBus) -> MetadataBus:
  return fresh_bus


@pytest.fixture
def config() -> RuntimeConfig:
  return RuntimeConfig()


@pytest.fixture
def make_context(bus: MetadataBus) -> Callable[..., RewriterContext]:
  """Factory for rewriter contexts sharing the test's bus."""

  def _make(path: Optional[str] = None, **overrides) -> RewriterContext:
    return RewriterContext(RuntimeConfig(**overrides), bus=bus, tracer=TraceLogger(), file_path=path)

  return _make


@pytest.fixture
def context(make_context) -> RewriterContext:
  return make_context()


@pytest.fixture
def run_filter(make_context) -> Callable[..., Node]:
  """
  Runs one registered filter over s-expression source (or a Node).

  Usage: ``run_filter("model", "(class ...)", path="app/models/article.rb")``.
  """

  def _run(name: str, source, path: Optional[str] = None, **overrides) -> Node:
    tree = read_sexp(source) if isinstance(source, str) else source
    ctx = make_context(path, **overrides)
    return get_filter(name)().transform(tree, ctx)

  return _run


@pytest.fixture
def engine(bus: MetadataBus) -> RewriteEngine:
  return RewriteEngine(RuntimeConfig(), bus=bus)


def contains(node, predicate: Callable[[Node], bool]) -> bool:
  """True if any node of the tree satisfies ``predicate``."""
  if not isinstance(node, Node):
    return False
  if predicate(node):
    return True
  return any(contains(c, predicate) for c in node.children)


def find_all(node, predicate: Callable[[Node], bool]) -> list:
  """Every node of the tree satisfying ``predicate``, pre-order."""
  found = []
  if not isinstance(node, Node):
    return found
  if predicate(node):
    found.append(node)
  for child in node.children:
    found.extend(find_all(child, predicate))
  return found
