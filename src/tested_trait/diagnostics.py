"""
Compile-time diagnostics.

Every stage of both expansions reports failures by raising
:class:`ExpansionError`. The error keeps references to the offending CST
nodes so the module expander can resolve them to source positions once the
failing stage has unwound.
"""

from typing import Callable, List, Optional, Sequence, Tuple

import libcst as cst
from pydantic import BaseModel, Field

from tested_trait.enums import DiagnosticKind


class Span(BaseModel):
  """
  A region of source text. Lines and columns are 1-based.
  """

  filename: str = Field(default="<string>", description="Source file the span points into.")
  line: int = Field(description="First line of the span.")
  column: int = Field(description="First column of the span.")
  end_line: int = Field(description="Last line of the span.")
  end_column: int = Field(description="Column just past the end of the span.")

  def render(self) -> str:
    return f"{self.filename}:{self.line}:{self.column}"


class Note(BaseModel):
  """
  Secondary context attached to a diagnostic.
  """

  message: str
  span: Optional[Span] = None


class Diagnostic(BaseModel):
  """
  A fatal expansion failure, as reported to the user.
  """

  kind: DiagnosticKind
  message: str
  span: Optional[Span] = None
  notes: List[Note] = Field(default_factory=list)

  def render(self) -> str:
    """
    Formats the diagnostic in a compiler-like layout.

    Returns:
        str: ``file:line:col: error[Kind]: message`` followed by one line per note.
    """
    location = f"{self.span.render()}: " if self.span else ""
    lines = [f"{location}error[{self.kind.value}]: {self.message}"]
    for note in self.notes:
      where = f" ({note.span.render()})" if note.span else ""
      lines.append(f"  note{where}: {note.message}")
    return "\n".join(lines)


Locator = Callable[[cst.CSTNode], Optional[Span]]


class ExpansionError(Exception):
  """
  Raised when an annotated class cannot be expanded.

  Attributes:
      diagnostic (Diagnostic): The user-facing report.
      node (Optional[cst.CSTNode]): The node the primary message points at.
      note_nodes (List[Optional[cst.CSTNode]]): One node (or None) per note.
  """

  def __init__(
    self,
    kind: DiagnosticKind,
    message: str,
    node: Optional[cst.CSTNode] = None,
    notes: Sequence[Tuple[str, Optional[cst.CSTNode]]] = (),
  ):
    super().__init__(message)
    self.node = node
    self.note_nodes = [note_node for _, note_node in notes]
    self.diagnostic = Diagnostic(
      kind=kind,
      message=message,
      notes=[Note(message=note_message) for note_message, _ in notes],
    )

  @property
  def kind(self) -> DiagnosticKind:
    return self.diagnostic.kind

  @property
  def message(self) -> str:
    return self.diagnostic.message

  def with_context(self, message: str, node: Optional[cst.CSTNode] = None) -> "ExpansionError":
    """
    Appends a note to the diagnostic.

    Args:
        message: Text of the note.
        node: Optional node the note points at.

    Returns:
        ExpansionError: ``self``, for chaining in ``raise`` statements.
    """
    self.diagnostic.notes.append(Note(message=message))
    self.note_nodes.append(node)
    return self

  def locate(self, locator: Locator, fallback: Optional[Span] = None) -> "ExpansionError":
    """
    Resolves node references to spans.

    Spans already set are left untouched, so the innermost locator wins.

    Args:
        locator: Maps a node to its span, or None if the node is unknown.
        fallback: Span used for the primary message when its node is unknown.

    Returns:
        ExpansionError: ``self``.
    """
    if self.diagnostic.span is None:
      span = locator(self.node) if self.node is not None else None
      self.diagnostic.span = span or fallback
    for note, note_node in zip(self.diagnostic.notes, self.note_nodes):
      if note.span is None and note_node is not None:
        note.span = locator(note_node)
    return self

  def __str__(self) -> str:
    return self.diagnostic.render()
