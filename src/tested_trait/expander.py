"""
Module Expansion Engine.

Python has no macro stage, so the substitution a compiler would perform at
the annotation site happens here, as a source-to-source rewrite of a whole
module:

1.  **Parsing**: the module is parsed into a LibCST tree with position metadata.
2.  **Discovery**: classes decorated with ``@tested_trait`` or ``@test_impl``
    are found at any depth (module level, inside functions, inside ``if``
    blocks).
3.  **Expansion**: the marker is removed and the class handed to the
    Interface Annotator or the Implementation Instantiator; the result is
    spliced in place of the class.
4.  **Reporting**: the first diagnostic aborts the expansion. Its node
    references are resolved to source positions before it propagates, and no
    partial output is produced.
"""

import logging
from typing import AbstractSet, List, Optional, Tuple, Union

import libcst as cst
from libcst.metadata import MetadataWrapper, PositionProvider
from pydantic import BaseModel, Field

from tested_trait.annotator import expand_tested_trait
from tested_trait.config import ExpanderConfig
from tested_trait.diagnostics import Diagnostic, ExpansionError, Span
from tested_trait.enums import DiagnosticKind, Marker
from tested_trait.instantiator import collect_type_vars, expand_test_impl
from tested_trait.markers import MarkerMatcher, call_args

logger = logging.getLogger(__name__)

_ENTRY_MARKERS = (Marker.TESTED_TRAIT, Marker.TEST_IMPL)


class ExpansionResult(BaseModel):
  """
  Structured result of expanding a single module.
  """

  code: str = Field(default="", description="The expanded source code.")
  errors: List[str] = Field(default_factory=list, description="Rendered diagnostics.")
  diagnostics: List[Diagnostic] = Field(default_factory=list, description="Diagnostics, unrendered.")
  success: bool = Field(default=True, description="True if every annotated class was expanded.")
  expanded_traits: List[str] = Field(default_factory=list, description="Names of expanded interfaces.")
  expanded_impls: List[str] = Field(default_factory=list, description="Names of expanded implementations.")

  @property
  def has_errors(self) -> bool:
    return len(self.errors) > 0


class TraitExpander(cst.CSTTransformer):
  """
  Replaces every marked class of a module with its expansion.

  Must be run through a :class:`~libcst.metadata.MetadataWrapper` so
  diagnostics can be located.

  Attributes:
      expanded_traits (List[str]): Interfaces expanded so far, in order.
      expanded_impls (List[str]): Implementations expanded so far, in order.
  """

  METADATA_DEPENDENCIES = (PositionProvider,)

  def __init__(
    self,
    config: Optional[ExpanderConfig] = None,
    filename: str = "<string>",
    type_vars: AbstractSet[str] = frozenset(),
  ):
    super().__init__()
    self.config = config or ExpanderConfig()
    self.filename = filename
    self.type_vars = type_vars
    self.matcher = MarkerMatcher(self.config.module_aliases)
    self.expanded_traits: List[str] = []
    self.expanded_impls: List[str] = []
    self._marked_depth = 0

  def _span(self, node: cst.CSTNode) -> Optional[Span]:
    pos = self.get_metadata(PositionProvider, node, None)
    if pos is None:
      return None
    return Span(
      filename=self.filename,
      line=pos.start.line,
      column=pos.start.column + 1,
      end_line=pos.end.line,
      end_column=pos.end.column + 1,
    )

  def _find_marker(self, decorators) -> Optional[Tuple[Marker, cst.Decorator]]:
    found = [(marker, d) for d in decorators for marker in _ENTRY_MARKERS if self.matcher.match(d, marker)]
    if len(found) > 1:
      raise ExpansionError(
        DiagnosticKind.UNEXPECTED_CONSTRUCT,
        "@tested_trait and @test_impl may only be applied once, and not to the same class",
        node=found[1][1],
      )
    return found[0] if found else None

  def visit_ClassDef(self, node: cst.ClassDef) -> Optional[bool]:
    try:
      marker = self._find_marker(node.decorators)
      if marker is not None:
        if self._marked_depth:
          raise ExpansionError(
            DiagnosticKind.UNEXPECTED_CONSTRUCT,
            f"@{marker[0].value} cannot be used inside another expanded class",
            node=marker[1],
          )
        self._marked_depth += 1
    except ExpansionError as err:
      raise err.locate(self._span, fallback=self._span(node))
    return True

  def leave_ClassDef(
    self, original_node: cst.ClassDef, updated_node: cst.ClassDef
  ) -> Union[cst.ClassDef, cst.FlattenSentinel]:
    marker = self._find_marker(original_node.decorators)
    if marker is None:
      return updated_node
    self._marked_depth -= 1

    kind, decorator = marker
    item = original_node.with_changes(decorators=[d for d in original_node.decorators if d is not decorator])
    name = original_node.name.value
    try:
      if kind is Marker.TESTED_TRAIT:
        expanded = expand_tested_trait(call_args(decorator), item, self.config)
        self.expanded_traits.append(name)
        logger.debug(f"Expanded @tested_trait on '{name}'")
        return expanded

      statements = expand_test_impl(call_args(decorator), item, self.config, self.type_vars)
      self.expanded_impls.append(name)
      logger.debug(f"Expanded @test_impl on '{name}' into {len(statements) - 1} statement(s)")
      return cst.FlattenSentinel(statements)
    except ExpansionError as err:
      raise err.locate(self._span, fallback=self._span(original_node))

  def visit_FunctionDef(self, node: cst.FunctionDef) -> Optional[bool]:
    # Markers on anything but a class are rejected by the pipelines' parse stage.
    try:
      marker = self._find_marker(node.decorators)
      if marker is not None:
        kind, decorator = marker
        expand = expand_tested_trait if kind is Marker.TESTED_TRAIT else expand_test_impl
        expand(call_args(decorator), node, self.config)
    except ExpansionError as err:
      raise err.locate(self._span, fallback=self._span(node))
    return True


class Expander:
  """
  Expands annotated modules.

  Example:
      >>> expander = Expander()
      >>> result = expander.run(source)
      >>> if result.success:
      ...     print(result.code)
  """

  def __init__(self, config: Optional[ExpanderConfig] = None):
    self.config = config or ExpanderConfig()

  def expand(self, code: str, filename: str = "<string>") -> Tuple[str, TraitExpander]:
    """
    Expands a module, raising on the first diagnostic.

    Args:
        code: Module source.
        filename: Name used in diagnostic spans.

    Returns:
        Tuple[str, TraitExpander]: The expanded source and the transformer
        (which records what was expanded).

    Raises:
        ExpansionError: On invalid syntax or any expansion failure.
    """
    try:
      module = cst.parse_module(code)
    except cst.ParserSyntaxError as e:
      err = ExpansionError(DiagnosticKind.INVALID_SYNTAX, e.message)
      err.diagnostic.span = Span(
        filename=filename,
        line=e.raw_line,
        column=e.raw_column + 1,
        end_line=e.raw_line,
        end_column=e.raw_column + 1,
      )
      raise err

    transformer = TraitExpander(self.config, filename=filename, type_vars=collect_type_vars(module))
    expanded = MetadataWrapper(module).visit(transformer)
    return expanded.code, transformer

  def run(self, code: str, filename: str = "<string>") -> ExpansionResult:
    """
    Expands a module, reporting diagnostics in the result instead of raising.

    Args:
        code: Module source.
        filename: Name used in diagnostic spans.

    Returns:
        ExpansionResult: The expanded code, or the diagnostic that stopped it.
    """
    try:
      expanded, transformer = self.expand(code, filename)
    except ExpansionError as err:
      logger.debug(f"Expansion of {filename} failed: {err.kind.value}")
      return ExpansionResult(
        code=code,
        errors=[str(err)],
        diagnostics=[err.diagnostic],
        success=False,
      )
    return ExpansionResult(
      code=expanded,
      expanded_traits=transformer.expanded_traits,
      expanded_impls=transformer.expanded_impls,
    )


def expand_source(code: str, filename: str = "<string>", config: Optional[ExpanderConfig] = None) -> str:
  """
  Expands every ``@tested_trait`` and ``@test_impl`` class in a module.

  Args:
      code: Module source.
      filename: Name used in diagnostic spans.
      config: Expander configuration. Defaults are used if None.

  Returns:
      str: The expanded source.

  Raises:
      ExpansionError: On invalid syntax or any expansion failure.
  """
  expanded, _ = Expander(config).expand(code, filename)
  return expanded
