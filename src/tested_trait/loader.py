"""
Expanded Module Loader.

Imports a Python file after expanding it, so annotated test modules can be
collected without writing the expansion to disk. Typical use from a
``conftest.py``::

    from tested_trait.loader import load_module

    allocators = load_module(Path(__file__).parent / "allocator_contract.py")
    globals().update(
        {name: obj for name, obj in vars(allocators).items() if name.startswith("test_")}
    )
"""

import importlib.util
import sys
from pathlib import Path
from types import ModuleType
from typing import Optional, Union

from tested_trait.config import ExpanderConfig
from tested_trait.expander import expand_source


def load_module(
  path: Union[str, Path],
  name: Optional[str] = None,
  config: Optional[ExpanderConfig] = None,
) -> ModuleType:
  """
  Expands and executes a source file as a fresh module.

  The module is registered in ``sys.modules`` before execution (dataclasses
  and pickling look classes up there) and removed again if execution fails.

  Args:
      path: The ``.py`` file to load.
      name: Module name to register. Defaults to ``tested_trait_<stem>``.
      config: Expander configuration. Loaded from the file's pyproject.toml if None.

  Returns:
      ModuleType: The executed module.

  Raises:
      FileNotFoundError: If ``path`` is not a file.
      ExpansionError: If the file cannot be expanded.
  """
  path = Path(path)
  if not path.is_file():
    raise FileNotFoundError(f"No such source file: {path}")

  config = config or ExpanderConfig.load(search_path=path.parent)
  code = expand_source(path.read_text(encoding="utf-8"), filename=str(path), config=config)

  module_name = name or f"tested_trait_{path.stem}"
  spec = importlib.util.spec_from_loader(module_name, loader=None, origin=str(path))
  module = importlib.util.module_from_spec(spec)
  module.__file__ = str(path)

  sys.modules[module_name] = module
  try:
    exec(compile(code, str(path), "exec"), module.__dict__)
  except BaseException:
    sys.modules.pop(module_name, None)
    raise
  return module
