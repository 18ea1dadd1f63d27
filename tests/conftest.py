"""
Pytest Configuration and Fixtures.

Includes:
- Syspath patching for local imports.
- Helpers that expand a source snippet and execute it in a fresh namespace.
- Console isolation so tests capturing log output do not leak handlers.
"""

import sys
import textwrap
from pathlib import Path
from typing import Any, Callable, Dict, List, Optional

import pytest

# Add src to path so we can import 'tested_trait' without installing it
src_path = Path(__file__).parent.parent / "src"
sys.path.insert(0, str(src_path))

from tested_trait.config import ExpanderConfig  # noqa: E402
from tested_trait.expander import expand_source  # noqa: E402
from tested_trait.utils.console import reset_console  # noqa: E402


@pytest.fixture
def expand():
  """Returns a function expanding a dedented snippet to source text."""

  def _expand(code: str, config: Optional[ExpanderConfig] = None) -> str:
    return expand_source(textwrap.dedent(code), config=config)

  return _expand


@pytest.fixture
def run_expanded(expand):
  """
  Returns a function that expands a snippet, executes it and returns the
  resulting namespace.
  """

  def _run(code: str, config: Optional[ExpanderConfig] = None) -> Dict[str, Any]:
    namespace: Dict[str, Any] = {"__name__": "expanded_snippet"}
    exec(compile(expand(code, config), "<expanded>", "exec"), namespace)
    return namespace

  return _run


@pytest.fixture
def generated():
  """Returns a function listing synthesized test functions of a namespace, in definition order."""

  def _generated(namespace: Dict[str, Any], prefix: str = "test_trait_impl_") -> List[Callable[[], None]]:
    return [value for name, value in namespace.items() if name.startswith(prefix) and callable(value)]

  return _generated


@pytest.fixture(autouse=True)
def isolate_console():
  """
  Restores the default console after each test so recording consoles set by
  one test do not capture the logs of the next.
  """
  yield
  reset_console()
