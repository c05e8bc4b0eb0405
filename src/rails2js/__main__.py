"""
Entry point for module execution (``python -m rails2js``).

This module delegates execution to the CLI handler in ``rails2js.cli.__main__``.
"""

import sys
from rails2js.cli.__main__ import main

if __name__ == "__main__":
  sys.exit(main())
