"""
Implementation Instantiator.

Expands ``@test_impl`` on a class implementing an interface. The class is
emitted unchanged, followed by one test function per concrete instantiation;
each function calls the interface's hidden ``_tested_trait_test_all`` method
for one implementing type.

A non-generic implementation implies its single instantiation::

    @test_impl
    class SystemAllocator(Allocator): ...

    # emits
    def test_trait_impl_Allocator_0():
        Allocator._tested_trait_test_all.__func__(SystemAllocator)

A generic implementation must list its instantiations as
``(Type, Interface)`` pairs::

    @test_impl((Boxed[int], Wrapper), (Boxed[str], Wrapper))
    class Boxed(Wrapper, Generic[T]): ...

``@run_inline`` drops the discovery prefix and calls the generated functions
right away, for classes defined where pytest cannot collect them (inside a
function body, a doctest, ...).
"""

from dataclasses import dataclass, field
from typing import AbstractSet, FrozenSet, List, Optional, Sequence, Set, Tuple

import libcst as cst

from tested_trait.config import ExpanderConfig
from tested_trait.diagnostics import ExpansionError
from tested_trait.enums import DiagnosticKind, Marker
from tested_trait.markers import MarkerMatcher
from tested_trait.naming import HIDDEN_METHOD, code_of, dotted_name, synthesized_name

MACRO = "test_impl"

_GENERIC_BASES = {"Generic", "typing.Generic", "Protocol", "typing.Protocol", "typing_extensions.Protocol"}

_TYPE_VAR_FACTORIES = {
  f"{module}{factory}"
  for module in ("", "typing.", "typing_extensions.")
  for factory in ("TypeVar", "ParamSpec", "TypeVarTuple")
}


@dataclass
class ConcreteImpl:
  """
  One ``(implementing type, interface)`` pair to generate a test for.
  """

  implementer: cst.BaseExpression
  trait: cst.BaseExpression


@dataclass
class ImplAst:
  trait_impl: cst.ClassDef
  concrete_impls: List[ConcreteImpl]
  args_node: Optional[cst.CSTNode] = None


@dataclass
class ImplModel:
  trait_impl: cst.ClassDef
  concrete_impls: List[ConcreteImpl]
  run_inline: bool = False


@dataclass
class SynthesizedTest:
  name: str
  body: cst.BaseStatement


@dataclass
class ImplIr:
  trait_impl: cst.ClassDef
  tests: List[SynthesizedTest] = field(default_factory=list)
  run_inline: bool = False


class TypeVarCollector(cst.CSTVisitor):
  """
  Records names bound to ``TypeVar(...)``, ``ParamSpec(...)`` or
  ``TypeVarTuple(...)`` anywhere in a module.
  """

  def __init__(self):
    super().__init__()
    self.names: Set[str] = set()

  def visit_Assign(self, node: cst.Assign) -> None:
    if isinstance(node.value, cst.Call) and dotted_name(node.value.func) in _TYPE_VAR_FACTORIES:
      for target in node.targets:
        if isinstance(target.target, cst.Name):
          self.names.add(target.target.value)


class _NameCollector(cst.CSTVisitor):
  def __init__(self):
    super().__init__()
    self.names: List[str] = []

  def visit_Name(self, node: cst.Name) -> None:
    self.names.append(node.value)


def collect_type_vars(module: cst.Module) -> FrozenSet[str]:
  """
  Finds the type variables a module defines.

  Args:
      module: The parsed module.

  Returns:
      FrozenSet[str]: Names assigned from a type-variable factory.
  """
  collector = TypeVarCollector()
  module.visit(collector)
  return frozenset(collector.names)


def expand_test_impl(
  args: Sequence[cst.Arg],
  item: cst.CSTNode,
  config: Optional[ExpanderConfig] = None,
  type_vars: AbstractSet[str] = frozenset(),
) -> List[cst.BaseStatement]:
  """
  Instantiates an interface's associated tests for an implementation.

  Args:
      args: Arguments given to the ``@test_impl`` marker.
      item: The annotated statement, with the marker already removed.
      config: Expander configuration (discovery prefix, marker aliases).
      type_vars: Type variables defined by the enclosing module. A base
          subscripted with one (``Foo[T]``) makes the implementation generic.

  Returns:
      List[cst.BaseStatement]: The implementation, the synthesized test
      functions and, with ``@run_inline``, the calls running them.

  Raises:
      ExpansionError: On malformed input or a rule violation.
  """
  config = config or ExpanderConfig()
  ast = parse(args, item)
  model = analyze(ast, MarkerMatcher(config.module_aliases), type_vars)
  ir = lower(model, config.test_prefix)
  return codegen(ir)


def parse(args: Sequence[cst.Arg], item: cst.CSTNode) -> ImplAst:
  if not isinstance(item, cst.ClassDef):
    raise ExpansionError(
      DiagnosticKind.UNEXPECTED_CONSTRUCT,
      f"@{MACRO} can only be used to annotate trait implementations",
      node=item,
    )

  concrete_impls = []
  for arg in args:
    value = arg.value
    if (
      arg.keyword is not None
      or arg.star
      or not isinstance(value, cst.Tuple)
      or len(value.elements) != 2
      or not all(isinstance(el, cst.Element) for el in value.elements)
    ):
      raise ExpansionError(
        DiagnosticKind.INVALID_ARGUMENTS,
        f"@{MACRO} received invalid arguments: expected (Type, Interface) pairs",
        node=arg,
      )
    implementer, trait = (el.value for el in value.elements)
    concrete_impls.append(ConcreteImpl(implementer=implementer, trait=trait))

  return ImplAst(trait_impl=item, concrete_impls=concrete_impls, args_node=args[0] if args else None)


def analyze(ast: ImplAst, matcher: MarkerMatcher, type_vars: AbstractSet[str] = frozenset()) -> ImplModel:
  """
  Resolves the list of concrete instantiations to test.

  Args:
      ast: The parsed implementation and marker arguments.
      matcher: Recogniser for marker decorators.
      type_vars: Type variables defined by the enclosing module.

  Returns:
      ImplModel: The implementation (markers stripped) and its instantiations.

  Raises:
      ExpansionError: For negative implementations and mismatched instantiation lists.
  """
  trait_impl = ast.trait_impl
  concrete_impls = list(ast.concrete_impls)

  trait, generic_params = _split_bases(trait_impl, type_vars)

  implementer = cst.Name(trait_impl.name.value)
  if not generic_params:
    if concrete_impls:
      raise ExpansionError(
        DiagnosticKind.UNEXPECTED_CONCRETE_LIST,
        f"@{MACRO} on a non-generic implementation does not support specifying concrete implementations",
        node=ast.args_node,
      )
    concrete_impls.append(ConcreteImpl(implementer=implementer, trait=trait))
  elif not concrete_impls:
    suggestion = f"@{MACRO}(({implementer.value}[{', '.join(generic_params)}], {code_of(trait)}))"
    raise ExpansionError(
      DiagnosticKind.MISSING_INSTANTIATIONS,
      f"@{MACRO} on a generic implementation requires specifying concrete implementations with {suggestion}",
      node=trait_impl.name,
      notes=[("associated tests for this generic implementation can only be instantiated for concrete types", None)],
    )

  kept, removed = matcher.strip(trait_impl.decorators, Marker.RUN_INLINE)
  return ImplModel(
    trait_impl=trait_impl.with_changes(decorators=kept),
    concrete_impls=concrete_impls,
    run_inline=bool(removed),
  )


def _split_bases(trait_impl: cst.ClassDef, type_vars: AbstractSet[str]) -> Tuple[cst.BaseExpression, List[str]]:
  """
  Finds the implemented interface and the implementation's type parameters.

  Type parameters come from PEP 695 syntax, ``Generic[...]`` / ``Protocol[...]``
  bases, and known type variables used in any other subscripted base.

  Returns:
      Tuple: The interface expression and the names of the type parameters
      (empty for a non-generic implementation).
  """
  generic_params: List[str] = []
  type_parameters = getattr(trait_impl, "type_parameters", None)
  if type_parameters is not None:
    generic_params.extend(tp.param.name.value for tp in type_parameters.params)

  trait = None
  for base in trait_impl.bases:
    if base.keyword is not None or base.star:
      continue
    value = base.value
    if isinstance(value, cst.UnaryOperation) and isinstance(value.operator, cst.BitInvert):
      raise ExpansionError(
        DiagnosticKind.UNSUPPORTED_NEGATIVE_IMPL,
        f"@{MACRO} does not support negative trait implementations",
        node=value,
      )
    if isinstance(value, cst.Subscript) and dotted_name(value.value) in _GENERIC_BASES:
      # class Boxed(Wrapper, Generic[T])
      for element in value.slice:
        if isinstance(element.slice, cst.Index):
          param = code_of(element.slice.value)
          if param not in generic_params:
            generic_params.append(param)
      continue
    if dotted_name(value) in _GENERIC_BASES:
      continue
    if isinstance(value, cst.Subscript):
      # class Unit(Foo[T]) is generic over T
      collector = _NameCollector()
      for element in value.slice:
        element.visit(collector)
      for name in collector.names:
        if name in type_vars and name not in generic_params:
          generic_params.append(name)
    if trait is None:
      trait = value

  if trait is None:
    raise ExpansionError(
      DiagnosticKind.UNEXPECTED_CONSTRUCT,
      f"@{MACRO} can only be used to annotate trait implementations",
      node=trait_impl.name,
    ).with_context("the implemented interface must be listed as a base class")
  return trait, generic_params


def lower(model: ImplModel, test_prefix: str) -> ImplIr:
  """
  Synthesizes one test function body per concrete instantiation.

  Args:
      model: The analysed implementation.
      test_prefix: Discovery prefix; ignored when ``run_inline`` is set.

  Returns:
      ImplIr: The implementation and its synthesized tests.
  """
  prefix = "" if model.run_inline else test_prefix
  tests = []
  for concrete in model.concrete_impls:
    # Interface._tested_trait_test_all.__func__(Implementer)
    hidden = cst.Attribute(
      value=cst.Attribute(value=_parenthesize(concrete.trait), attr=cst.Name(HIDDEN_METHOD)),
      attr=cst.Name("__func__"),
    )
    call = cst.Call(func=hidden, args=[cst.Arg(value=concrete.implementer)])
    tests.append(
      SynthesizedTest(
        name=synthesized_name(concrete.trait, prefix),
        body=cst.SimpleStatementLine(body=[cst.Expr(value=call)]),
      )
    )
  return ImplIr(trait_impl=model.trait_impl, tests=tests, run_inline=model.run_inline)


def _parenthesize(expr: cst.BaseExpression) -> cst.BaseExpression:
  if isinstance(expr, (cst.Name, cst.Attribute, cst.Subscript, cst.Call)) or expr.lpar:
    return expr
  return expr.with_changes(lpar=[cst.LeftParen()], rpar=[cst.RightParen()])


def codegen(ir: ImplIr) -> List[cst.BaseStatement]:
  statements: List[cst.BaseStatement] = [ir.trait_impl]
  for test in ir.tests:
    statements.append(
      cst.FunctionDef(
        name=cst.Name(test.name),
        params=cst.Parameters(),
        body=cst.IndentedBlock(body=[test.body]),
        leading_lines=[cst.EmptyLine(indent=False)],
      )
    )
  if ir.run_inline:
    for i, test in enumerate(ir.tests):
      statements.append(
        cst.SimpleStatementLine(
          body=[cst.Expr(value=cst.Call(func=cst.Name(test.name)))],
          leading_lines=[cst.EmptyLine(indent=False)] if i == 0 else [],
        )
      )
  return statements
