from .convert import handle_convert, _convert_program, _print_batch_summary
from .inspect import handle_inspect

__all__ = [
  "_convert_program",
  "_print_batch_summary",
  "handle_convert",
  "handle_inspect",
]
