"""
Enumerations for tested-trait.

This module defines the closed sets of markers recognised in annotated source
and the categories of diagnostics raised while expanding them.
"""

from enum import Enum


class Marker(str, Enum):
  """
  Decorator markers understood by the expander.

  Each value is the bare decorator name. Markers may also be spelled through a
  configured module alias (e.g. ``@tested_trait.test``).
  """

  TESTED_TRAIT = "tested_trait"
  TEST_IMPL = "test_impl"
  TEST = "test"
  SHOULD_PANIC = "should_panic"
  REQUIRES = "requires"
  RUN_INLINE = "run_inline"


class DiagnosticKind(str, Enum):
  """
  Categories of expansion failures.

  Input-shape errors come first, semantic-rule violations second.
  """

  INVALID_SYNTAX = "InvalidSyntax"
  MALFORMED_ARGUMENTS = "MalformedArguments"
  INVALID_ARGUMENTS = "InvalidArguments"
  UNEXPECTED_CONSTRUCT = "UnexpectedConstruct"
  UNSUPPORTED_NEGATIVE_IMPL = "UnsupportedNegativeImpl"

  MISSING_TEST_BODY = "MissingTestBody"
  INVALID_TEST_SIGNATURE = "InvalidTestSignature"
  CONFLICTING_TEST_KIND = "ConflictingTestKind"
  DUPLICATE_TEST_NAME = "DuplicateTestName"
  UNEXPECTED_CONCRETE_LIST = "UnexpectedConcreteList"
  MISSING_INSTANTIATIONS = "MissingInstantiations"
