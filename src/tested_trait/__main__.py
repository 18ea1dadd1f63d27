"""
Entry point for module execution (``python -m tested_trait``).

This module delegates execution to the CLI handler in ``tested_trait.cli.__main__``.
"""

import sys
from tested_trait.cli.__main__ import main

if __name__ == "__main__":
  sys.exit(main())
