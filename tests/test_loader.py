"""
Tests for importing annotated files through the expander.
"""

import sys
import textwrap

import pytest

from tested_trait.config import ExpanderConfig
from tested_trait.diagnostics import ExpansionError
from tested_trait.loader import load_module

SOURCE = """\
from dataclasses import dataclass

from tested_trait import test, test_impl, tested_trait


@tested_trait
class Area:
    def area(self) -> float: ...

    @test
    def default_is_zero(Self):
        assert Self().area() == 0


@test_impl
@dataclass
class Rect(Area):
    w: float = 0
    h: float = 0

    def area(self) -> float:
        return self.w * self.h
"""


@pytest.fixture
def source_file(tmp_path):
  path = tmp_path / "areas.py"
  path.write_text(SOURCE, encoding="utf-8")
  yield path
  sys.modules.pop("tested_trait_areas", None)


def test_load_module_runs_generated_tests(source_file):
  module = load_module(source_file)

  assert module.__name__ == "tested_trait_areas"
  assert module.__file__ == str(source_file)
  assert sys.modules["tested_trait_areas"] is module

  generated = [value for name, value in vars(module).items() if name.startswith("test_trait_impl_Area_")]
  assert len(generated) == 1
  generated[0]()


def test_load_module_custom_name_and_prefix(source_file):
  module = load_module(source_file, name="custom_areas", config=ExpanderConfig(test_prefix="test_contract_"))
  try:
    assert any(name.startswith("test_contract_trait_impl_Area_") for name in vars(module))
  finally:
    sys.modules.pop("custom_areas", None)


def test_load_module_reads_pyproject(source_file):
  (source_file.parent / "pyproject.toml").write_text('[tool.tested_trait]\ntest_prefix = "testcase_"\n')

  module = load_module(source_file)

  assert any(name.startswith("testcase_trait_impl_Area_") for name in vars(module))


def test_load_module_missing_file(tmp_path):
  with pytest.raises(FileNotFoundError):
    load_module(tmp_path / "missing.py")


def test_load_module_expansion_error(tmp_path):
  path = tmp_path / "broken.py"
  path.write_text("from tested_trait import tested_trait\n\n@tested_trait(1)\nclass Broken:\n    pass\n")

  with pytest.raises(ExpansionError):
    load_module(path)
  assert "tested_trait_broken" not in sys.modules


def test_load_module_unregisters_on_failure(tmp_path):
  path = tmp_path / "explodes.py"
  path.write_text(textwrap.dedent("raise RuntimeError('at import')\n"))

  with pytest.raises(RuntimeError, match="at import"):
    load_module(path)
  assert "tested_trait_explodes" not in sys.modules
