"""
Identifier generation shared by both expansions.

Holds the fixed name of the hidden method that couples the two transforms,
the reserved local names used inside generated code, and the process-wide
counter that keeps synthesized test names unique.
"""

import itertools
import threading
from typing import Optional

import libcst as cst

#: Name of the generated classmethod that runs every associated test.
HIDDEN_METHOD = "_tested_trait_test_all"

#: Prefix reserved for identifiers introduced by generated code.
RESERVED_PREFIX = "_tested_trait"

#: Name bound to the implementing type inside the hidden method.
SELF_PARAM = f"{RESERVED_PREFIX}_cls"

#: Local alias of :mod:`tested_trait.runtime` inside the hidden method.
RUNTIME_ALIAS = f"{RESERVED_PREFIX}_runtime"

#: Local that receives the value of result-returning tests.
RESULT_LOCAL = f"{RESERVED_PREFIX}_result"

_GENSYM = itertools.count()
_GENSYM_LOCK = threading.Lock()


def gensym() -> int:
  """
  Returns the next value of the process-wide counter.

  Concurrent callers never observe the same value.

  Returns:
      int: A value never returned before in this process.
  """
  with _GENSYM_LOCK:
    return next(_GENSYM)


def dotted_name(node: cst.BaseExpression) -> Optional[str]:
  """
  Flattens a Name/Attribute chain into a dotted string.

  Args:
      node: The expression to flatten.

  Returns:
      Optional[str]: ``"a.b.c"`` for an attribute chain, or None if the
      expression is anything else.
  """
  if isinstance(node, cst.Name):
    return node.value
  if isinstance(node, cst.Attribute):
    base = dotted_name(node.value)
    if base:
      return f"{base}.{node.attr.value}"
  return None


def last_segment(node: cst.BaseExpression) -> str:
  """
  Extracts the final path segment of an interface expression.

  ``pkg.mod.Foo`` and ``Foo[int]`` both yield ``Foo``.

  Args:
      node: The interface expression.

  Returns:
      str: The short name, or ``"Trait"`` when none can be derived.
  """
  if isinstance(node, cst.Name):
    return node.value
  if isinstance(node, cst.Attribute):
    return node.attr.value
  if isinstance(node, cst.Subscript):
    return last_segment(node.value)
  if isinstance(node, cst.Call):
    return last_segment(node.func)
  return "Trait"


def code_of(node: cst.CSTNode) -> str:
  """Renders a single node back to source text."""
  return cst.Module(body=[]).code_for_node(node).strip()


def synthesized_name(interface: cst.BaseExpression, prefix: str = "") -> str:
  """
  Builds a unique name for a synthesized test function.

  Args:
      interface: Expression naming the interface under test.
      prefix: Discovery prefix prepended to the name (empty to opt out).

  Returns:
      str: e.g. ``test_trait_impl_Allocator_3``.
  """
  return f"{prefix}trait_impl_{last_segment(interface)}_{gensym()}"
