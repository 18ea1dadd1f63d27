"""
Logging and Console Utilities.

Output of the CLI goes through the standard ``logging`` library under the
``tested_trait`` logger, rendered by ``rich``. The console behind the handler
is held by a proxy so tests can swap it for a recording console with
:func:`set_console`.

Attributes:
    console (_ConsoleProxy): Stable reference to the active Rich Console.
"""

import logging
from typing import Any

from rich.console import Console
from rich.logging import RichHandler
from rich.markup import escape
from rich.theme import Theme

from tested_trait.diagnostics import Diagnostic

LOGGER_NAME = "tested_trait"

SUCCESS_LEVEL_NUM = 25
logging.addLevelName(SUCCESS_LEVEL_NUM, "SUCCESS")

_THEME = Theme(
  {
    "logging.level.success": "green",
    "path": "bold blue",
    "diag.error": "bold red",
    "diag.note": "cyan",
  }
)


class _ConsoleProxy:
  """
  Forwards to a swappable ``rich`` Console and keeps the package logger's
  handler bound to it.
  """

  def __init__(self) -> None:
    self._backend: Console = Console(theme=_THEME, stderr=True)
    self._configure_logging()

  @property
  def backend(self) -> Console:
    return self._backend

  def set_backend(self, new_console: Console) -> None:
    self._backend = new_console
    self._configure_logging()

  def reset(self) -> None:
    self.set_backend(Console(theme=_THEME, stderr=True))

  def _configure_logging(self) -> None:
    # Replace our previous handler, leaving any others alone.
    logger = logging.getLogger(LOGGER_NAME)
    for handler in list(logger.handlers):
      if isinstance(handler, RichHandler):
        logger.removeHandler(handler)

    logger.addHandler(
      RichHandler(
        console=self._backend,
        show_time=False,
        show_path=False,
        markup=True,
        rich_tracebacks=True,
      )
    )
    logger.propagate = False

  def print(self, *args: Any, **kwargs: Any) -> None:
    self._backend.print(*args, **kwargs)

  def __getattr__(self, name: str) -> Any:
    return getattr(self._backend, name)


console = _ConsoleProxy()


def set_console(new_console: Console) -> None:
  """
  Routes console output and package logging to ``new_console``.

  Args:
      new_console (Console): E.g. ``Console(record=True)`` to capture output.
  """
  console.set_backend(new_console)


def reset_console() -> None:
  console.reset()


def get_console() -> Console:
  return console.backend


def set_level(level: str) -> None:
  """Sets the level of the package logger (e.g. ``"DEBUG"``)."""
  logging.getLogger(LOGGER_NAME).setLevel(level)


def log_info(msg: str) -> None:
  logging.getLogger(LOGGER_NAME).info(msg, extra={"markup": True})


def log_success(msg: str) -> None:
  logging.getLogger(LOGGER_NAME).log(SUCCESS_LEVEL_NUM, msg, extra={"markup": True})


def log_warning(msg: str) -> None:
  logging.getLogger(LOGGER_NAME).warning(msg, extra={"markup": True})


def log_error(msg: str) -> None:
  logging.getLogger(LOGGER_NAME).error(msg, extra={"markup": True})


def log_diagnostic(diagnostic: Diagnostic) -> None:
  """
  Logs a diagnostic at error level, one record for the message and its notes.

  Args:
      diagnostic (Diagnostic): The diagnostic to report.
  """
  lines = diagnostic.render().splitlines()
  head = f"[diag.error]{escape(lines[0])}[/diag.error]"
  notes = "".join(f"\n[diag.note]{escape(line)}[/diag.note]" for line in lines[1:])
  log_error(head + notes)
