"""
Main Entry Point for the tested-trait CLI.

This module handles argument parsing and dispatches to the command handlers
defined in `tested_trait.cli.commands`.
"""

import argparse
import sys
from pathlib import Path
from typing import List, Optional

from pydantic import ValidationError

from tested_trait import __version__
from tested_trait.cli import commands
from tested_trait.config import ConfigError
from tested_trait.utils.console import log_error


def main(argv: Optional[List[str]] = None) -> int:
  """
  Main CLI entry point.

  Args:
      argv: Optional list of command line arguments (defaults to sys.argv).

  Returns:
      int: Exit code (0 for success, non-zero for failure).
  """
  parser = argparse.ArgumentParser(description="tested-trait: interfaces that carry their own conformance tests")
  parser.add_argument("--version", action="version", version=f"%(prog)s {__version__}")

  # Options shared by every subcommand
  common = argparse.ArgumentParser(add_help=False)
  common.add_argument("--prefix", default=None, help="Discovery prefix for generated tests (default: from toml)")
  common.add_argument("--log-level", default=None, help="Logger level, e.g. DEBUG (default: from toml)")

  subparsers = parser.add_subparsers(dest="command", required=True)

  # --- Command: EXPAND ---
  cmd_exp = subparsers.add_parser("expand", parents=[common], help="Expand annotated classes in a file or directory")
  cmd_exp.add_argument("path", type=Path, help="Input source file or directory")
  cmd_exp.add_argument("--out", type=Path, help="Output destination (file or dir); stdout for a file if omitted")

  # --- Command: CHECK ---
  cmd_chk = subparsers.add_parser("check", parents=[common], help="Report expansion diagnostics without writing")
  cmd_chk.add_argument("path", type=Path, help="Input source file or directory")

  args = parser.parse_args(argv)

  try:
    if args.command == "expand":
      return commands.handle_expand(args.path, args.out, args.prefix, args.log_level)

    elif args.command == "check":
      return commands.handle_check(args.path, args.prefix, args.log_level)
  except ConfigError as e:
    log_error(str(e))
    return 1
  except ValidationError as e:
    log_error(f"Invalid configuration: {e}")
    return 1

  return 1


if __name__ == "__main__":
  sys.exit(main())
