"""
tested-trait Package.

Interfaces that carry their own conformance tests. An interface class marked
``@tested_trait`` declares ``@test`` methods; every class marked
``@test_impl`` that implements it gets those tests generated as pytest
functions, run against the implementing type.

Usage
-----

Annotated module
^^^^^^^^^^^^^^^^

.. code-block:: python

    from typing import Protocol
    from tested_trait import tested_trait, test_impl, test, should_panic

    @tested_trait
    class Stack(Protocol):
        def push(self, item): ...
        def pop(self): ...

        @test
        def pop_returns_last_pushed(Self):
            s = Self()
            s.push(1)
            s.push(2)
            assert s.pop() == 2

        @test
        @should_panic("empty")
        def pop_on_empty_raises(Self):
            Self().pop()

    @test_impl
    class ListStack(Stack):
        ...

Expansion
^^^^^^^^^

.. code-block:: python

    from tested_trait import expand_source
    print(expand_source(open("stack.py").read()))

or ``tested-trait expand stack.py``, or :func:`tested_trait.loader.load_module`
to import the expanded module directly.
"""

from tested_trait.annotator import expand_tested_trait
from tested_trait.config import ConfigError, ExpanderConfig
from tested_trait.diagnostics import Diagnostic, ExpansionError, Span
from tested_trait.enums import DiagnosticKind
from tested_trait.expander import Expander, ExpansionResult, expand_source
from tested_trait.instantiator import expand_test_impl
from tested_trait.runtime import (
  Concrete,
  Err,
  Ok,
  Result,
  panic_any,
  requires,
  run_inline,
  should_panic,
  test,
  test_impl,
  tested_trait,
)

__version__ = "0.1.0"

__all__ = [
  "Concrete",
  "ConfigError",
  "Diagnostic",
  "DiagnosticKind",
  "Err",
  "Expander",
  "ExpanderConfig",
  "ExpansionError",
  "ExpansionResult",
  "Ok",
  "Result",
  "Span",
  "expand_source",
  "expand_test_impl",
  "expand_tested_trait",
  "panic_any",
  "requires",
  "run_inline",
  "should_panic",
  "test",
  "test_impl",
  "tested_trait",
  "__version__",
]
