"""
Tests for the runtime helpers called by generated code.
"""

import abc
from typing import Generic, Protocol, TypeVar, runtime_checkable

import pytest

from tested_trait import runtime
from tested_trait.runtime import (
  Concrete,
  Err,
  Ok,
  Outcome,
  Panic,
  PanicPayloadError,
  UnsatisfiedRequirement,
  UnwrapError,
  catch_unwind,
  check_requirements,
  expect_panic,
  expect_unit,
  panic_any,
  unwrap,
)

T = TypeVar("T")


class Shape(abc.ABC):
  @abc.abstractmethod
  def area(self): ...


class Square(Shape):
  def area(self):
    return 1


class Boxed(Shape, Generic[T]):
  def area(self):
    return 0


class SupportsArea(Protocol):
  def area(self): ...


@runtime_checkable
class Named(Protocol):
  name: str


class Disc(SupportsArea):
  def area(self):
    return 3


class Label:
  name: str


# --- Markers ---


def test_markers_are_identity_decorators():
  class Plain:
    pass

  def fn():
    pass

  assert runtime.tested_trait(Plain) is Plain
  assert runtime.tested_trait()(Plain) is Plain
  assert runtime.test_impl(Plain) is Plain
  assert runtime.test_impl((Plain, Shape))(Plain) is Plain
  assert runtime.test(fn) is fn
  assert runtime.should_panic(fn) is fn
  assert runtime.should_panic("boom")(fn) is fn
  assert runtime.should_panic(expected="boom")(fn) is fn
  assert runtime.requires(Concrete)(fn) is fn
  assert runtime.run_inline(Plain) is Plain


def test_markers_hidden_from_collection():
  assert runtime.test.__test__ is False
  assert runtime.test_impl.__test__ is False
  assert runtime.tested_trait.__test__ is False


# --- Results ---


def test_unwrap_ok():
  assert unwrap(Ok(3)) == 3
  assert unwrap(Ok()) is None


def test_unwrap_err():
  with pytest.raises(UnwrapError, match="called `unwrap\\(\\)` on an `Err` value: 'boom'") as exc:
    unwrap(Err("boom"))

  assert exc.value.error == "boom"
  assert isinstance(exc.value, AssertionError)


def test_unwrap_foreign_result():
  class Foreign:
    def unwrap(self):
      return "payload"

  assert unwrap(Foreign()) == "payload"


def test_unwrap_non_result():
  with pytest.raises(TypeError, match="expected a result value, found int"):
    unwrap(5)


# --- Panics ---


def test_catch_unwind_completed():
  outcome = catch_unwind(lambda x: x + 1, 1)

  assert outcome.completed
  assert outcome.value == 2
  assert outcome.payload is None


def test_catch_unwind_captures_exception():
  outcome = catch_unwind(int, "not a number")

  assert not outcome.completed
  assert isinstance(outcome.exception, ValueError)
  assert "not a number" in outcome.payload


def test_catch_unwind_lets_interrupts_through():
  def interrupted():
    raise KeyboardInterrupt()

  with pytest.raises(KeyboardInterrupt):
    catch_unwind(interrupted)


def test_panic_any_payload():
  outcome = catch_unwind(panic_any, {"code": 7})

  assert isinstance(outcome.exception, Panic)
  assert outcome.payload == {"code": 7}


def test_expect_panic_requires_panic():
  with pytest.raises(AssertionError, match="test did not panic as expected"):
    expect_panic(Outcome(value=None))


def test_expect_panic_substring():
  expect_panic(Outcome(exception=ValueError("ahhhhh")), "ahhh")

  with pytest.raises(AssertionError, match="panic did not contain expected string"):
    expect_panic(Outcome(exception=ValueError("nope")), "ahhh")


def test_expect_panic_any_payload_without_expectation():
  expect_panic(catch_unwind(panic_any, 42))


def test_expect_panic_non_text_payload():
  with pytest.raises(PanicPayloadError, match="non-string value of type int"):
    expect_panic(catch_unwind(panic_any, 42), "42")


def test_expect_unit():
  expect_unit(None, "fine")

  with pytest.raises(TypeError, match="associated test `chatty` returned 'hi'"):
    expect_unit("hi", "chatty")


# --- Requirements ---


def test_concrete_requirement():
  check_requirements(Square, Concrete)

  with pytest.raises(UnsatisfiedRequirement, match="`Shape` does not satisfy requirement `Concrete`"):
    check_requirements(Shape, Concrete)


def test_class_requirement():
  check_requirements(Square, Shape)

  with pytest.raises(UnsatisfiedRequirement):
    check_requirements(Square, int)


def test_generic_alias_implementer():
  check_requirements(Boxed[int], Concrete, Shape)


def test_generic_alias_requirement():
  check_requirements(Boxed[int], Generic[T])


def test_predicate_requirement():
  check_requirements(Square, lambda cls: cls.__name__ == "Square")

  with pytest.raises(UnsatisfiedRequirement):
    check_requirements(Square, lambda cls: False)


def test_invalid_requirement():
  with pytest.raises(TypeError, match="invalid requirement: 3"):
    check_requirements(Square, 3)


def test_protocol_requirement_nominal():
  check_requirements(Disc, SupportsArea)


def test_protocol_requirement_structural():
  check_requirements(Square, Concrete, SupportsArea)

  with pytest.raises(UnsatisfiedRequirement, match="SupportsArea"):
    check_requirements(Label, SupportsArea)


def test_runtime_protocol_with_data_member():
  check_requirements(Label, Named)

  with pytest.raises(UnsatisfiedRequirement, match="Named"):
    check_requirements(Square, Named)
