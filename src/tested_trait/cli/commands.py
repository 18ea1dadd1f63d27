"""
CLI Command Handlers.

Implements ``tested-trait expand`` and ``tested-trait check``. Both accept a
single file or a directory (searched recursively for ``*.py``) and report
every diagnostic, continuing past failing files so one run shows them all.
"""

from pathlib import Path
from typing import Dict, List, Optional

from rich.table import Table

from tested_trait.config import ExpanderConfig
from tested_trait.expander import Expander, ExpansionResult
from tested_trait.utils.console import (
  console,
  log_diagnostic,
  log_error,
  log_info,
  log_success,
  log_warning,
  set_level,
)


def handle_expand(
  input_path: Path,
  output_path: Optional[Path],
  test_prefix: Optional[str] = None,
  log_level: Optional[str] = None,
) -> int:
  """
  Handles the 'expand' command execution.

  Args:
      input_path: Source file or directory to expand.
      output_path: Destination file or directory. A single file is printed
          to stdout when omitted; a directory requires it.
      test_prefix: Override for the discovery prefix of synthesized tests.
      log_level: Override for the logger level.

  Returns:
      int: Exit code (0 for success, 1 for failure).
  """
  config = _load_config(input_path, test_prefix, log_level)
  if config is None:
    return 1

  results: Dict[str, ExpansionResult] = {}
  expander = Expander(config)

  if input_path.is_file():
    results[input_path.name] = _expand_single_file(expander, input_path, output_path, write=True)
  else:
    if not output_path:
      log_error("Directory expansion requires --out destination directory.")
      return 1

    py_files = _collect_sources(input_path)
    if not py_files:
      log_warning(f"No .py files found in {input_path}")
      return 0

    log_info(f"Expanding {len(py_files)} files from {input_path}...")
    for src_file in py_files:
      rel_path = src_file.relative_to(input_path)
      results[str(rel_path)] = _expand_single_file(expander, src_file, output_path / rel_path, write=True)

  if len(results) > 1:
    _print_batch_summary(results)
  return 1 if any(r.has_errors for r in results.values()) else 0


def handle_check(
  input_path: Path,
  test_prefix: Optional[str] = None,
  log_level: Optional[str] = None,
) -> int:
  """
  Handles the 'check' command: expands without writing anything.

  Args:
      input_path: Source file or directory to check.
      test_prefix: Override for the discovery prefix of synthesized tests.
      log_level: Override for the logger level.

  Returns:
      int: 0 if every file expands cleanly, 1 otherwise.
  """
  config = _load_config(input_path, test_prefix, log_level)
  if config is None:
    return 1

  expander = Expander(config)
  sources = [input_path] if input_path.is_file() else _collect_sources(input_path)
  results = {str(src): _expand_single_file(expander, src, None, write=False) for src in sources}

  failed = [name for name, result in results.items() if result.has_errors]
  if failed:
    log_error(f"{len(failed)} of {len(results)} file(s) failed to expand.")
    return 1

  traits = sum(len(r.expanded_traits) for r in results.values())
  impls = sum(len(r.expanded_impls) for r in results.values())
  log_success(f"Checked {len(results)} file(s): {traits} interface(s), {impls} implementation(s).")
  return 0


def _load_config(input_path: Path, test_prefix: Optional[str], log_level: Optional[str]) -> Optional[ExpanderConfig]:
  if not input_path.exists():
    log_error(f"Input not found: {input_path}")
    return None

  config = ExpanderConfig.load(
    test_prefix=test_prefix,
    log_level=log_level,
    search_path=input_path if input_path.is_dir() else input_path.parent,
  )
  set_level(config.log_level)
  return config


def _collect_sources(root: Path) -> List[Path]:
  return sorted(root.rglob("*.py"))


def _expand_single_file(
  expander: Expander,
  input_path: Path,
  output_path: Optional[Path],
  write: bool,
) -> ExpansionResult:
  """
  Expands one file and reports its diagnostics.

  Args:
      expander: The configured expander.
      input_path: Source file path.
      output_path: Destination file path, or None for stdout.
      write: False to only report diagnostics.

  Returns:
      ExpansionResult: Result object containing status and code.
  """
  try:
    code = input_path.read_text(encoding="utf-8")
  except (OSError, UnicodeDecodeError) as e:
    log_error(f"Failed to read {input_path}: {e}")
    return ExpansionResult(success=False, errors=[str(e)])

  result = expander.run(code, filename=str(input_path))
  for diagnostic in result.diagnostics:
    log_diagnostic(diagnostic)

  if result.has_errors or not write:
    return result

  if output_path:
    output_path.parent.mkdir(parents=True, exist_ok=True)
    output_path.write_text(result.code, encoding="utf-8")
    log_success(f"Expanded: [path]{input_path}[/path] -> [path]{output_path}[/path]")
  else:
    print(result.code, end="")
  return result


def _print_batch_summary(results: Dict[str, ExpansionResult]) -> None:
  table = Table(title="Expansion Summary")
  table.add_column("File", style="cyan")
  table.add_column("Interfaces", justify="right")
  table.add_column("Implementations", justify="right")
  table.add_column("Status")

  for name, result in results.items():
    status = "[red]failed[/red]" if result.has_errors else "[green]ok[/green]"
    table.add_row(name, str(len(result.expanded_traits)), str(len(result.expanded_impls)), status)

  console.print(table)
