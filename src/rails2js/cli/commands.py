"""
CLI Command Handlers Facade.

This module re-exports handlers from ``rails2js.cli.handlers`` so the
dispatcher (and tests patching it) has a single import point.
"""

from rails2js.cli.handlers.convert import (
  handle_convert,
  _convert_program,
  _print_batch_summary,
)
from rails2js.cli.handlers.inspect import handle_inspect

__all__ = [
  "_convert_program",
  "_print_batch_summary",
  "handle_convert",
  "handle_inspect",
]
