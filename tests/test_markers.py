"""
Tests for marker recognition on decorator nodes.
"""

from typing import List

import libcst as cst

from tested_trait.enums import Marker
from tested_trait.markers import MarkerMatcher, call_args, is_abstract_marker, is_binding_decorator


def decorators(*sources: str) -> List[cst.Decorator]:
  code = "".join(f"@{src}\n" for src in sources) + "def f():\n    pass\n"
  return list(cst.parse_statement(code).decorators)


def test_bare_and_qualified_spellings():
  matcher = MarkerMatcher()

  for deco in decorators("test", "tested_trait.test", "tt.test"):
    assert matcher.match(deco, Marker.TEST)
    assert matcher.is_bare(deco, Marker.TEST)


def test_call_matches_but_is_not_bare():
  matcher = MarkerMatcher()
  (deco,) = decorators('tt.should_panic(expected="x")')

  assert matcher.match(deco, Marker.SHOULD_PANIC)
  assert not matcher.is_bare(deco, Marker.SHOULD_PANIC)
  assert [arg.keyword.value for arg in call_args(deco)] == ["expected"]


def test_unknown_alias_not_matched():
  matcher = MarkerMatcher(["contracts"])
  tt_deco, contracts_deco = decorators("tt.test", "contracts.test")

  assert not matcher.match(tt_deco, Marker.TEST)
  assert matcher.match(contracts_deco, Marker.TEST)


def test_similar_names_not_matched():
  matcher = MarkerMatcher()
  decos = decorators("test_impl", "tests", "pytest.mark.test", "other.test")

  assert not any(matcher.match(d, Marker.TEST) for d in decos)
  assert matcher.match(decos[0], Marker.TEST_IMPL)


def test_strip_keeps_order():
  matcher = MarkerMatcher()
  decos = decorators("first", "test", "requires(A)", "last", "requires(B)")

  kept, removed = matcher.strip(decos, Marker.TEST, Marker.REQUIRES)
  assert kept == [decos[0], decos[3]]
  assert removed == [decos[1], decos[2], decos[4]]


def test_call_args_of_bare_decorator():
  (deco,) = decorators("test")

  assert call_args(deco) == ()


def test_abstract_and_binding_decorators():
  abstract, qualified, static, cls, other = decorators(
    "abstractmethod", "abc.abstractmethod", "staticmethod", "classmethod", "property"
  )

  assert is_abstract_marker(abstract)
  assert is_abstract_marker(qualified)
  assert not is_abstract_marker(other)
  assert is_binding_decorator(static)
  assert is_binding_decorator(cls)
  assert not is_binding_decorator(other)
