"""
Main Entry Point for the rails2js CLI.

This module handles argument parsing and dispatches to specific command
handlers defined in `rails2js.cli.commands`.
"""

import argparse
import sys
from pathlib import Path
from typing import List, Optional

from rails2js import __version__
from rails2js.cli import commands
from rails2js.config import parse_cli_key_values
from rails2js.enums import ImportMode, TargetEnvironment
from rails2js.utils.console import set_verbose


def _split_filters(raw: Optional[str]) -> Optional[List[str]]:
  if raw is None:
    return None
  return [name.strip() for name in raw.split(",") if name.strip()]


def main(argv: Optional[List[str]] = None) -> int:
  """
  Main CLI entry point.

  Parses arguments via argparse and calls the appropriate handler function.

  Args:
      argv: Optional list of command line arguments (defaults to sys.argv).

  Returns:
      int: Exit code (0 for success, non-zero for failure).
  """
  parser = argparse.ArgumentParser(description="rails2js: Rule-driven Ruby-to-JavaScript tree rewriter")
  parser.add_argument("--version", action="version", version=f"%(prog)s {__version__}")
  parser.add_argument("-v", "--verbose", action="store_true", help="Show filter decisions (debug logging)")

  subparsers = parser.add_subparsers(dest="command", required=True)

  # --- Command: CONVERT ---
  cmd_conv = subparsers.add_parser("convert", help="Rewrite an s-expression dump or a directory of them")
  cmd_conv.add_argument("path", type=Path, help="Input .sexp file or directory")
  cmd_conv.add_argument("--out", type=Path, help="Output destination (file or dir)")
  cmd_conv.add_argument(
    "--import-mode",
    choices=[m.value for m in ImportMode],
    default=None,
    help="Generated import style (default: from toml, else eject)",
  )
  cmd_conv.add_argument(
    "--target-env",
    choices=[e.value for e in TargetEnvironment],
    default=None,
    help="Runtime targeted by broadcast lowering (default: from toml, else browser)",
  )
  cmd_conv.add_argument(
    "--filters",
    default=None,
    help="Comma-separated filter names to enable (default: all)",
  )
  cmd_conv.add_argument(
    "--strict",
    action="store_true",
    default=None,
    help="Abort on the first filter error instead of recording it (Overrides config)",
  )
  cmd_conv.add_argument(
    "--json-trace", type=Path, default=None, help="Dump full execution trace (events per file) to a JSON file."
  )
  cmd_conv.add_argument(
    "--config",
    nargs="*",
    help="Filter configuration flags in key=value format (e.g. foo=1 bar=True)",
  )

  # --- Command: INSPECT ---
  cmd_insp = subparsers.add_parser("inspect", help="Show the facts each unit publishes")
  cmd_insp.add_argument("path", type=Path, help="Input .sexp file or directory")
  cmd_insp.add_argument(
    "--import-mode",
    choices=[m.value for m in ImportMode],
    default=None,
    help="Generated import style",
  )

  args = parser.parse_args(argv)
  set_verbose(args.verbose)

  if args.command == "convert":
    return commands.handle_convert(
      args.path,
      args.out,
      args.import_mode,
      args.target_env,
      _split_filters(args.filters),
      args.strict,
      parse_cli_key_values(args.config),
      json_trace_path=args.json_trace,
    )

  elif args.command == "inspect":
    return commands.handle_inspect(args.path, import_mode=args.import_mode)

  return 0


if __name__ == "__main__":
  sys.exit(main())
