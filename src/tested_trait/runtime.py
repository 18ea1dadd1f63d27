"""
Runtime Support for Expanded Code.

Two audiences use this module:

1.  **Authors of annotated modules** import the markers (``tested_trait``,
    ``test_impl``, ``test``, ``should_panic``, ``requires``, ``run_inline``)
    and the result types ``Ok`` / ``Err``. Markers are consumed by the
    expander; left unexpanded they are identity decorators, so annotated
    modules import cleanly either way.
2.  **Generated code** calls the helpers below (``check_requirements``,
    ``expect_unit``, ``unwrap``, ``catch_unwind``, ``expect_panic``) from the
    hidden ``_tested_trait_test_all`` method.

Failures of the tested implementation raise ``AssertionError`` subclasses;
misuse (unsatisfied requirements, non-text panic payloads, wrong return
values) raises ``TypeError`` subclasses, so the two are told apart in test
reports.
"""

import inspect
import typing
from dataclasses import dataclass
from typing import Any, Callable, Generic, Optional, TypeVar, Union

T = TypeVar("T")
E = TypeVar("E")

# --- Markers ---


def tested_trait(cls=None):
  """Marks an interface whose ``@test`` methods become associated tests."""
  if cls is None:
    return lambda inner: inner
  return cls


def test_impl(*instantiations):
  """
  Marks an implementation to test against its interface's associated tests.

  Usable bare (``@test_impl``) or with ``(Type, Interface)`` pairs.
  """
  if len(instantiations) == 1 and inspect.isclass(instantiations[0]):
    return instantiations[0]
  return lambda cls: cls


def test(fn):
  """Marks an interface method as an associated test."""
  return fn


def should_panic(fn=None, expected: Optional[str] = None):
  """
  Marks an associated test that must raise.

  Spellings: ``@should_panic``, ``@should_panic("text")`` and
  ``@should_panic(expected="text")``.
  """
  if callable(fn):
    return fn
  return lambda inner: inner


def requires(*requirements):
  """Adds requirements the implementing type must meet for one test."""
  return lambda fn: fn


def run_inline(cls):
  """Runs the generated tests where the implementation is defined."""
  return cls


# Imported into test modules, where pytest would otherwise collect them.
tested_trait.__test__ = False
test_impl.__test__ = False
test.__test__ = False


# --- Results ---


@dataclass(frozen=True)
class Ok(Generic[T]):
  value: T = None


@dataclass(frozen=True)
class Err(Generic[E]):
  error: E = None


Result = Union[Ok[T], Err[E]]


class UnwrapError(AssertionError):
  """A result-returning test produced its failure variant."""

  def __init__(self, error: Any):
    super().__init__(f"called `unwrap()` on an `Err` value: {error!r}")
    self.error = error


def unwrap(value: Any) -> Any:
  """
  Unwraps a result value or fails loudly.

  Accepts :class:`Ok` / :class:`Err` and any object with an ``unwrap()``
  method (third-party result types).

  Args:
      value: The value returned by a test.

  Returns:
      Any: The success payload.

  Raises:
      UnwrapError: If ``value`` is an :class:`Err`.
      TypeError: If ``value`` is not a result.
  """
  if isinstance(value, Ok):
    return value.value
  if isinstance(value, Err):
    raise UnwrapError(value.error)
  method = getattr(value, "unwrap", None)
  if callable(method):
    return method()
  raise TypeError(f"expected a result value, found {type(value).__name__}")


# --- Panics ---


class Panic(Exception):
  """An exception carrying an arbitrary payload (see :func:`panic_any`)."""

  def __init__(self, payload: Any):
    super().__init__(payload)
    self.payload = payload


def panic_any(payload: Any) -> typing.NoReturn:
  """Raises with ``payload`` as-is rather than a text message."""
  raise Panic(payload)


class PanicPayloadError(TypeError):
  """A should-panic test raised with a payload that is not text."""


@dataclass(frozen=True)
class Outcome:
  """
  Result of :func:`catch_unwind`: normal completion or the raised exception.
  """

  value: Any = None
  exception: Optional[Exception] = None

  @property
  def completed(self) -> bool:
    return self.exception is None

  @property
  def payload(self) -> Any:
    """The panic payload: ``Panic.payload``, otherwise the exception message."""
    if isinstance(self.exception, Panic):
      return self.exception.payload
    if self.exception is not None:
      return str(self.exception)
    return None


def catch_unwind(fn: Callable[..., Any], *args: Any, **kwargs: Any) -> Outcome:
  """
  Calls ``fn`` and captures any exception it raises.

  Only ``Exception`` subclasses are captured; ``KeyboardInterrupt`` and
  ``SystemExit`` propagate.

  Returns:
      Outcome: The return value, or the captured exception.
  """
  try:
    value = fn(*args, **kwargs)
  except Exception as exc:
    return Outcome(exception=exc)
  return Outcome(value=value)


def panic_message(payload: Any) -> str:
  """
  Extracts text from a panic payload.

  Raises:
      PanicPayloadError: If the payload is not a string.
  """
  if isinstance(payload, str):
    return payload
  raise PanicPayloadError(f"expected panic with string value, found non-string value of type {type(payload).__name__}")


def expect_panic(outcome: Outcome, expected: Optional[str] = None) -> None:
  """
  Checks the outcome of a should-panic test.

  Args:
      outcome: Captured outcome of the test body.
      expected: Substring the panic message must contain, if given.

  Raises:
      AssertionError: If the body completed, or the message lacks ``expected``.
      PanicPayloadError: If ``expected`` is given and the payload is not text.
  """
  if outcome.completed:
    raise AssertionError("test did not panic as expected")
  if expected is None:
    return
  message = panic_message(outcome.payload)
  if expected not in message:
    raise AssertionError(
      f"panic did not contain expected string\n      panic message: {message!r}\n expected substring: {expected!r}"
    )


def expect_unit(value: Any, name: str) -> None:
  """
  Checks that a standard test returned nothing.

  Raises:
      TypeError: If the test returned a value other than None.
  """
  if value is not None:
    raise TypeError(
      f"associated test `{name}` returned {value!r}; tests without a result annotation must return None"
    )


# --- Requirements ---


class _ConcreteRequirement:
  def __repr__(self) -> str:
    return "Concrete"


#: The implementing type can be instantiated (it is not abstract).
Concrete = _ConcreteRequirement()


class UnsatisfiedRequirement(TypeError):
  """The implementing type does not meet a requirement of the associated tests."""

  def __init__(self, implementer: Any, requirement: Any):
    super().__init__(f"`{_type_name(implementer)}` does not satisfy requirement `{_type_name(requirement)}`")
    self.implementer = implementer
    self.requirement = requirement


def check_requirements(implementer: Any, *requirements: Any) -> None:
  """
  Verifies the implementing type against every requirement.

  A requirement is :data:`Concrete`, a class (or generic alias) the type must
  subclass, or a predicate called with the type.
  A protocol class is met by subclassing it or by providing every member it
  declares, whether or not it is ``runtime_checkable``.

  Args:
      implementer: The implementing type, possibly a generic alias such as ``Boxed[int]``.
      *requirements: The requirements to check.

  Raises:
      UnsatisfiedRequirement: On the first unmet requirement.
  """
  target = typing.get_origin(implementer) or implementer
  for requirement in requirements:
    if requirement is Concrete:
      satisfied = not inspect.isabstract(target)
    elif typing.get_origin(requirement) is not None:
      satisfied = _is_subtype(target, typing.get_origin(requirement))
    elif inspect.isclass(requirement):
      satisfied = _is_subtype(target, requirement)
    elif callable(requirement):
      satisfied = bool(requirement(implementer))
    else:
      raise TypeError(f"invalid requirement: {requirement!r}")
    if not satisfied:
      raise UnsatisfiedRequirement(implementer, requirement)


_PROTOCOL_INTERNALS = frozenset({"_is_protocol", "_is_runtime_protocol"})


def _protocol_members(proto: type) -> typing.Set[str]:
  members = set()
  for base in proto.__mro__:
    if base in (object, typing.Protocol, typing.Generic):
      continue
    for name in list(vars(base)) + list(getattr(base, "__annotations__", {})):
      if name.startswith("__") or name.startswith("_abc_") or name.startswith("_tested_trait"):
        continue
      if name not in _PROTOCOL_INTERNALS:
        members.add(name)
  return members


def _is_subtype(target: Any, cls: type) -> bool:
  if not getattr(cls, "_is_protocol", False):
    return issubclass(target, cls)
  if cls in getattr(target, "__mro__", ()):
    return True
  # issubclass() raises for protocols that are not runtime_checkable or that declare data members
  declared = set()
  for base in getattr(target, "__mro__", ()):
    declared.update(getattr(base, "__annotations__", {}))
  return all(hasattr(target, name) or name in declared for name in _protocol_members(cls))


def _type_name(obj: Any) -> str:
  if inspect.isclass(obj):
    return obj.__qualname__
  return repr(obj)
