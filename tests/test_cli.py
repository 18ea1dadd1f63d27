"""
Tests for the command-line interface.

Verifies:
1. Argument parsing dispatches to the right handler with the right values.
2. ``expand`` prints a single file, writes files and mirrors directories.
3. ``check`` reports diagnostics through the logger and sets the exit code.
4. Missing inputs and invalid overrides fail cleanly.
"""

from pathlib import Path
from unittest.mock import patch

import pytest

from tested_trait import __version__
from tested_trait.cli.__main__ import main

GOOD = """\
from tested_trait import test, test_impl, tested_trait

@tested_trait
class Named:
    @test
    def has_name(Self):
        assert Self.__name__

@test_impl
class Thing(Named):
    pass
"""

BAD = """\
from tested_trait import test_impl

@test_impl
class Lonely:
    pass
"""


@pytest.fixture
def good_file(tmp_path) -> Path:
  path = tmp_path / "good.py"
  path.write_text(GOOD, encoding="utf-8")
  return path


@pytest.fixture
def bad_file(tmp_path) -> Path:
  path = tmp_path / "bad.py"
  path.write_text(BAD, encoding="utf-8")
  return path


def test_version(capsys):
  with pytest.raises(SystemExit) as exc:
    main(["--version"])

  assert exc.value.code == 0
  assert __version__ in capsys.readouterr().out


def test_dispatch_expand(tmp_path):
  with patch("tested_trait.cli.commands.handle_expand", return_value=0) as mock_handler:
    ret = main(["expand", str(tmp_path), "--out", str(tmp_path / "out"), "--prefix", "test_c_"])

  assert ret == 0
  mock_handler.assert_called_once_with(tmp_path, tmp_path / "out", "test_c_", None)


def test_dispatch_check(tmp_path):
  with patch("tested_trait.cli.commands.handle_check", return_value=1) as mock_handler:
    ret = main(["check", str(tmp_path), "--log-level", "DEBUG"])

  assert ret == 1
  mock_handler.assert_called_once_with(tmp_path, None, "DEBUG")


def test_expand_file_to_stdout(good_file, capsys):
  ret = main(["expand", str(good_file)])

  assert ret == 0
  out = capsys.readouterr().out
  assert "def _tested_trait_test_all(_tested_trait_cls):" in out
  assert "def test_trait_impl_Named_" in out


def test_expand_file_to_out(good_file, tmp_path):
  dest = tmp_path / "build" / "good_expanded.py"

  ret = main(["expand", str(good_file), "--out", str(dest)])

  assert ret == 0
  assert "Named._tested_trait_test_all.__func__(Thing)" in dest.read_text(encoding="utf-8")


def test_expand_directory(tmp_path):
  src = tmp_path / "src"
  (src / "pkg").mkdir(parents=True)
  (src / "pkg" / "good.py").write_text(GOOD, encoding="utf-8")
  (src / "plain.py").write_text("x = 1\n", encoding="utf-8")
  out = tmp_path / "out"

  ret = main(["expand", str(src), "--out", str(out)])

  assert ret == 0
  assert "_tested_trait_test_all" in (out / "pkg" / "good.py").read_text(encoding="utf-8")
  assert (out / "plain.py").read_text(encoding="utf-8") == "x = 1\n"


def test_expand_directory_requires_out(tmp_path):
  with patch("tested_trait.cli.commands.log_error") as mock_log:
    ret = main(["expand", str(tmp_path)])

  assert ret == 1
  assert "requires --out" in mock_log.call_args[0][0]


def test_expand_failure_writes_nothing(bad_file, tmp_path):
  dest = tmp_path / "bad_expanded.py"

  ret = main(["expand", str(bad_file), "--out", str(dest)])

  assert ret == 1
  assert not dest.exists()


def test_check_success(good_file):
  with patch("tested_trait.cli.commands.log_success") as mock_log:
    ret = main(["check", str(good_file)])

  assert ret == 0
  assert "1 interface(s), 1 implementation(s)" in mock_log.call_args[0][0]


def test_check_reports_diagnostics(bad_file):
  with patch("tested_trait.cli.commands.log_diagnostic") as mock_diag:
    ret = main(["check", str(bad_file.parent)])

  assert ret == 1
  diagnostic = mock_diag.call_args[0][0]
  assert diagnostic.span.filename == str(bad_file)
  assert diagnostic.span.line == 4


def test_missing_input(tmp_path):
  with patch("tested_trait.cli.commands.log_error") as mock_log:
    ret = main(["check", str(tmp_path / "nope.py")])

  assert ret == 1
  assert "Input not found" in mock_log.call_args[0][0]


def test_invalid_prefix_override(good_file):
  with patch("tested_trait.cli.__main__.log_error") as mock_log:
    ret = main(["expand", str(good_file), "--prefix", "check_"])

  assert ret == 1
  assert "Invalid configuration" in mock_log.call_args[0][0]


def test_module_entry_point():
  import tested_trait.__main__ as entry

  assert entry.main is main


def test_malformed_pyproject(good_file):
  (good_file.parent / "pyproject.toml").write_text("[tool.tested_trait\n", encoding="utf-8")

  with patch("tested_trait.cli.__main__.log_error") as mock_log:
    ret = main(["check", str(good_file)])

  assert ret == 1
  assert "Malformed" in mock_log.call_args[0][0]


def test_unreadable_file_fails_check(good_file):
  (good_file.parent / "latin1.py").write_bytes(b"name = '\xe9'\n")

  with patch("tested_trait.cli.commands.log_error") as mock_log:
    ret = main(["check", str(good_file.parent)])

  assert ret == 1
  assert "Failed to read" in mock_log.call_args_list[0][0][0]
