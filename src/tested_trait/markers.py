"""
Marker Recognition.

Decorators such as ``@test`` or ``@tested_trait.should_panic(expected="x")``
carry the configuration of both expansions. This module recognises them on
LibCST nodes and strips them from decorator lists, so later stages only deal
with the parsed values, never with decorator syntax.
"""

from typing import List, Sequence, Tuple

import libcst as cst

from tested_trait.enums import Marker
from tested_trait.naming import dotted_name

DEFAULT_ALIASES = ("tested_trait", "tt")

_ABSTRACT_MARKERS = {"abstractmethod", "abc.abstractmethod"}
_BINDING_DECORATORS = {"staticmethod", "classmethod"}


class MarkerMatcher:
  """
  Matches decorator expressions against :class:`Marker` names.

  Attributes:
      aliases (Tuple[str, ...]): Module names a marker may be qualified with.
  """

  def __init__(self, aliases: Sequence[str] = DEFAULT_ALIASES):
    self.aliases = tuple(aliases)

  def _spellings(self, marker: Marker) -> List[str]:
    return [marker.value, *(f"{alias}.{marker.value}" for alias in self.aliases)]

  def match(self, decorator: cst.Decorator, marker: Marker) -> bool:
    """
    Checks whether a decorator is the given marker, with or without a call.

    Args:
        decorator: The decorator node.
        marker: The marker to look for.

    Returns:
        bool: True on a match.
    """
    expr = decorator.decorator
    target = expr.func if isinstance(expr, cst.Call) else expr
    return dotted_name(target) in self._spellings(marker)

  def is_bare(self, decorator: cst.Decorator, marker: Marker) -> bool:
    """True if the decorator is the marker written without a call."""
    return self.match(decorator, marker) and not isinstance(decorator.decorator, cst.Call)

  def strip(
    self, decorators: Sequence[cst.Decorator], *markers: Marker
  ) -> Tuple[List[cst.Decorator], List[cst.Decorator]]:
    """
    Splits a decorator list into kept and removed decorators.

    Args:
        decorators: The original decorator list.
        *markers: Markers to remove.

    Returns:
        Tuple[List, List]: ``(kept, removed)``, both in original order.
    """
    kept: List[cst.Decorator] = []
    removed: List[cst.Decorator] = []
    for decorator in decorators:
      if any(self.match(decorator, marker) for marker in markers):
        removed.append(decorator)
      else:
        kept.append(decorator)
    return kept, removed


def call_args(decorator: cst.Decorator) -> Sequence[cst.Arg]:
  """Arguments of a decorator call, or an empty sequence for a bare decorator."""
  expr = decorator.decorator
  if isinstance(expr, cst.Call):
    return expr.args
  return ()


def is_abstract_marker(decorator: cst.Decorator) -> bool:
  return dotted_name(decorator.decorator) in _ABSTRACT_MARKERS


def is_binding_decorator(decorator: cst.Decorator) -> bool:
  """True for ``@staticmethod`` / ``@classmethod``, which tests do not need."""
  return dotted_name(decorator.decorator) in _BINDING_DECORATORS
