"""
Interface Annotator.

Expands ``@tested_trait`` on an interface class. Methods marked ``@test`` are
removed from the class body and compiled into a single hidden classmethod,
``_tested_trait_test_all``, that runs every one of them against the class it
is invoked for.

Input::

    @tested_trait
    class Allocator(Protocol):
        def alloc(self, size: int, align: int) -> int: ...

        @test
        @requires(Default)
        def alloc_respects_alignment(Self):
            assert Self().alloc(10, 4) % 4 == 0

Output (abridged)::

    class Allocator(Protocol):
        def alloc(self, size: int, align: int) -> int: ...

        @classmethod
        def _tested_trait_test_all(_tested_trait_cls):
            import tested_trait.runtime as _tested_trait_runtime
            _tested_trait_runtime.check_requirements(
                _tested_trait_cls, _tested_trait_runtime.Concrete, Default)
            print('running 1 test for implementation of Allocator')

            def alloc_respects_alignment(Self):
                assert Self().alloc(10, 4) % 4 == 0
            print('test Allocator::alloc_respects_alignment')
            _tested_trait_runtime.expect_unit(
                alloc_respects_alignment(_tested_trait_cls), 'alloc_respects_alignment')

The pipeline runs in four stages: ``parse`` -> ``analyze`` -> ``lower`` ->
``codegen``.
"""

from dataclasses import dataclass, field
from typing import Dict, List, Optional, Sequence, Union

import libcst as cst

from tested_trait.config import ExpanderConfig
from tested_trait.diagnostics import ExpansionError
from tested_trait.enums import DiagnosticKind, Marker
from tested_trait.markers import MarkerMatcher, call_args, is_abstract_marker, is_binding_decorator
from tested_trait.naming import HIDDEN_METHOD, RESERVED_PREFIX, RESULT_LOCAL, RUNTIME_ALIAS, SELF_PARAM, code_of

MACRO = "tested_trait"


@dataclass(frozen=True)
class Standard:
  """The test must complete and return None."""


@dataclass(frozen=True)
class ReturnsResult:
  """The test returns a result value that is unwrapped."""

  output: cst.BaseExpression


@dataclass(frozen=True)
class ShouldPanic:
  """The test must raise; ``expected`` is an optional substring of the payload."""

  expected: Optional[cst.BaseExpression] = None


TestKind = Union[Standard, ReturnsResult, ShouldPanic]


@dataclass
class AssociatedTest:
  """
  One ``@test`` method pulled out of an interface.
  """

  kind: TestKind
  name: cst.Name
  requirements: List[cst.BaseExpression]
  function: cst.FunctionDef
  """The method with its markers stripped, ready to be nested."""

  takes_type: bool
  """Whether the function receives the implementing type as its argument."""


@dataclass
class TraitModel:
  trait_defn: cst.ClassDef
  tests: List[AssociatedTest] = field(default_factory=list)


@dataclass
class TraitIr:
  trait_defn: cst.ClassDef
  new_items: List[cst.BaseStatement] = field(default_factory=list)


def expand_tested_trait(
  args: Sequence[cst.Arg],
  item: cst.CSTNode,
  config: Optional[ExpanderConfig] = None,
) -> cst.ClassDef:
  """
  Rewrites an interface definition so it carries its associated tests.

  Args:
      args: Arguments given to the ``@tested_trait`` marker (must be empty).
      item: The annotated statement, with the marker already removed.
      config: Expander configuration (marker aliases).

  Returns:
      cst.ClassDef: The test-free interface with the hidden method appended.

  Raises:
      ExpansionError: On malformed input or a rule violation.
  """
  config = config or ExpanderConfig()
  ast = parse(args, item)
  model = analyze(ast, MarkerMatcher(config.module_aliases))
  ir = lower(model)
  return codegen(ir)


def parse(args: Sequence[cst.Arg], item: cst.CSTNode) -> cst.ClassDef:
  if args:
    raise ExpansionError(DiagnosticKind.MALFORMED_ARGUMENTS, f"@{MACRO} takes no arguments", node=args[0])
  if not isinstance(item, cst.ClassDef):
    raise ExpansionError(
      DiagnosticKind.UNEXPECTED_CONSTRUCT,
      f"@{MACRO} can only be used to annotate trait definitions",
      node=item,
    )
  return item


def analyze(trait_defn: cst.ClassDef, matcher: MarkerMatcher) -> TraitModel:
  """
  Separates associated tests from the rest of the interface body.

  Args:
      trait_defn: The interface class.
      matcher: Recogniser for marker decorators.

  Returns:
      TraitModel: The interface without its tests, plus the tests in order.

  Raises:
      ExpansionError: If a test is malformed or a name is reused.
  """
  block = _as_indented_block(trait_defn.body)
  items: List[cst.BaseStatement] = []
  tests: List[AssociatedTest] = []

  for stmt in block.body:
    if isinstance(stmt, cst.FunctionDef) and any(matcher.is_bare(d, Marker.TEST) for d in stmt.decorators):
      tests.append(_analyze_test(stmt, matcher))
    else:
      items.append(stmt)

  # Check the same name isn't used for multiple tests
  seen: Dict[str, AssociatedTest] = {}
  for test in tests:
    first = seen.setdefault(test.name.value, test)
    if first is not test:
      raise ExpansionError(
        DiagnosticKind.DUPLICATE_TEST_NAME,
        f"the test `{test.name.value}` is defined multiple times",
        node=test.name,
        notes=[(f"`{test.name.value}` first defined here", first.name)],
      )

  return TraitModel(
    trait_defn=trait_defn.with_changes(body=block.with_changes(body=items)),
    tests=tests,
  )


def _analyze_test(item: cst.FunctionDef, matcher: MarkerMatcher) -> AssociatedTest:
  name = item.name.value

  if item.asynchronous is not None:
    raise ExpansionError(DiagnosticKind.UNEXPECTED_CONSTRUCT, "associated tests cannot be async", node=item)
  if name.startswith(RESERVED_PREFIX):
    raise ExpansionError(
      DiagnosticKind.UNEXPECTED_CONSTRUCT,
      f"test names starting with `{RESERVED_PREFIX}` are reserved",
      node=item.name,
    )
  if any(is_abstract_marker(d) for d in item.decorators) or _is_stub(item.body):
    raise ExpansionError(DiagnosticKind.MISSING_TEST_BODY, "associated @test functions must have a body", node=item)

  takes_type = _takes_type(item)

  returns_result = _result_annotation(item.returns)
  should_panic = _should_panic(item, matcher)
  if returns_result is not None and should_panic is not None:
    raise ExpansionError(
      DiagnosticKind.CONFLICTING_TEST_KIND,
      "@should_panic tests cannot return a result",
      node=item,
    )

  kind: TestKind
  if should_panic is not None:
    kind = should_panic
  elif returns_result is not None:
    kind = ReturnsResult(output=returns_result)
  else:
    kind = Standard()

  requirements: List[cst.BaseExpression] = []
  for decorator in item.decorators:
    if matcher.match(decorator, Marker.REQUIRES):
      for arg in call_args(decorator):
        if arg.keyword is not None or arg.star:
          raise ExpansionError(DiagnosticKind.MALFORMED_ARGUMENTS, "invalid @requires syntax", node=arg)
        requirements.append(arg.value)

  kept, _ = matcher.strip(item.decorators, Marker.TEST, Marker.SHOULD_PANIC, Marker.REQUIRES)
  function = item.with_changes(decorators=[d for d in kept if not is_binding_decorator(d)])

  return AssociatedTest(
    kind=kind,
    name=item.name,
    requirements=requirements,
    function=function,
    takes_type=takes_type,
  )


def _as_indented_block(body: cst.BaseSuite) -> cst.IndentedBlock:
  if isinstance(body, cst.IndentedBlock):
    return body
  # ``class Foo(Protocol): ...`` on one line
  return cst.IndentedBlock(body=[cst.SimpleStatementLine(body=list(body.body))])


def _is_stub(body: cst.BaseSuite) -> bool:
  """True if a function body is only ``...`` (after an optional docstring)."""
  if isinstance(body, cst.SimpleStatementSuite):
    small = list(body.body)
  else:
    small = []
    for stmt in body.body:
      if not isinstance(stmt, cst.SimpleStatementLine):
        return False
      small.extend(stmt.body)

  if small and isinstance(small[0], cst.Expr) and isinstance(small[0].value, (cst.SimpleString, cst.ConcatenatedString)):
    small = small[1:]
  return len(small) == 1 and isinstance(small[0], cst.Expr) and isinstance(small[0].value, cst.Ellipsis)


def _takes_type(item: cst.FunctionDef) -> bool:
  params = item.params
  positional = [*params.posonly_params, *params.params]
  has_star = isinstance(params.star_arg, (cst.Param, cst.ParamStar))
  if has_star or params.kwonly_params or params.star_kwarg is not None or len(positional) > 1:
    raise ExpansionError(
      DiagnosticKind.INVALID_TEST_SIGNATURE,
      f"associated test `{item.name.value}` must take no parameters or only the implementing type",
      node=item.params,
    )
  return len(positional) == 1


def _result_annotation(returns: Optional[cst.Annotation]) -> Optional[cst.BaseExpression]:
  # def test(): ...
  if returns is None:
    return None
  annotation = returns.annotation
  # def test() -> None: ...
  if isinstance(annotation, cst.Name) and annotation.value == "None":
    return None
  if isinstance(annotation, cst.SimpleString) and annotation.evaluated_value == "None":
    return None
  # def test() -> Result[None, str]: ...
  # Assume any other annotation is a result
  return annotation


def _should_panic(item: cst.FunctionDef, matcher: MarkerMatcher) -> Optional[ShouldPanic]:
  markers = [d for d in item.decorators if matcher.match(d, Marker.SHOULD_PANIC)]
  if not markers:
    return None
  if len(markers) > 1:
    raise ExpansionError(DiagnosticKind.MALFORMED_ARGUMENTS, "@should_panic may only be applied once", node=markers[1])

  args = call_args(markers[0])
  # @should_panic / @should_panic()
  if not args:
    return ShouldPanic()
  if len(args) == 1 and not args[0].star:
    arg = args[0]
    # @should_panic("ahhh")
    if arg.keyword is None:
      return ShouldPanic(expected=arg.value)
    # @should_panic(expected="ahhh")
    if arg.keyword.value == "expected":
      return ShouldPanic(expected=arg.value)
  raise ExpansionError(DiagnosticKind.MALFORMED_ARGUMENTS, "invalid @should_panic syntax", node=markers[0])


def lower(model: TraitModel) -> TraitIr:
  """
  Compiles the associated tests into the hidden classmethod.

  Args:
      model: The analysed interface.

  Returns:
      TraitIr: The interface plus the statements to append to its body.
  """
  trait_name = model.trait_defn.name.value
  num_tests = len(model.tests)
  plural = "" if num_tests == 1 else "s"
  summary = f"running {num_tests} test{plural} for implementation of {trait_name}"

  body: List[cst.BaseStatement] = [
    cst.parse_statement(f"import tested_trait.runtime as {RUNTIME_ALIAS}"),
    _expr_stmt(
      cst.Call(
        func=_runtime("check_requirements"),
        args=[cst.Arg(value=cst.Name(SELF_PARAM)), *(cst.Arg(value=req) for req in _requirements(model.tests))],
      )
    ),
    cst.parse_statement(f"print({summary!r})"),
  ]
  for test in model.tests:
    body.extend(_run_block(trait_name, test))

  test_all_fn = cst.FunctionDef(
    name=cst.Name(HIDDEN_METHOD),
    params=cst.Parameters(params=[cst.Param(name=cst.Name(SELF_PARAM))]),
    body=cst.IndentedBlock(body=body),
    decorators=[cst.Decorator(decorator=cst.Name("classmethod"))],
    leading_lines=[cst.EmptyLine(indent=False)],
  )
  return TraitIr(trait_defn=model.trait_defn, new_items=[test_all_fn])


def _requirements(tests: Sequence[AssociatedTest]) -> List[cst.BaseExpression]:
  """``Concrete`` followed by every test's requirements, de-duplicated in order."""
  union: List[cst.BaseExpression] = [_runtime("Concrete")]
  seen = {code_of(union[0])}
  for test in tests:
    for req in test.requirements:
      key = code_of(req)
      if key not in seen:
        seen.add(key)
        union.append(req)
  return union


def _run_block(trait_name: str, test: AssociatedTest) -> List[cst.BaseStatement]:
  name = test.name.value
  comments = [line for line in test.function.leading_lines if line.comment is not None]
  function = test.function.with_changes(leading_lines=[cst.EmptyLine(indent=False), *comments])
  label = f"test {trait_name}::{name}"
  progress = cst.parse_statement(f"print({label!r})")

  type_args = [cst.Arg(value=cst.Name(SELF_PARAM))] if test.takes_type else []
  kind = test.kind

  if isinstance(kind, Standard):
    run_test = [
      _expr_stmt(
        cst.Call(
          func=_runtime("expect_unit"),
          args=[
            cst.Arg(value=cst.Call(func=cst.Name(name), args=type_args)),
            cst.Arg(value=cst.SimpleString(repr(name))),
          ],
        )
      )
    ]
  elif isinstance(kind, ReturnsResult):
    run_test = [
      cst.SimpleStatementLine(
        body=[
          cst.AnnAssign(
            target=cst.Name(RESULT_LOCAL),
            annotation=cst.Annotation(annotation=kind.output),
            value=cst.Call(func=cst.Name(name), args=type_args),
          )
        ]
      ),
      _expr_stmt(cst.Call(func=_runtime("unwrap"), args=[cst.Arg(value=cst.Name(RESULT_LOCAL))])),
    ]
  else:
    outcome = cst.Call(func=_runtime("catch_unwind"), args=[cst.Arg(value=cst.Name(name)), *type_args])
    expect_args = [cst.Arg(value=outcome)]
    if kind.expected is not None:
      expect_args.append(cst.Arg(value=kind.expected))
    run_test = [_expr_stmt(cst.Call(func=_runtime("expect_panic"), args=expect_args))]

  return [function, progress, *run_test]


def _runtime(attr: str) -> cst.Attribute:
  return cst.Attribute(value=cst.Name(RUNTIME_ALIAS), attr=cst.Name(attr))


def _expr_stmt(expr: cst.BaseExpression) -> cst.SimpleStatementLine:
  return cst.SimpleStatementLine(body=[cst.Expr(value=expr)])


def codegen(ir: TraitIr) -> cst.ClassDef:
  body = ir.trait_defn.body
  return ir.trait_defn.with_changes(body=body.with_changes(body=[*body.body, *ir.new_items]))
