"""
Convert Command Handler.

This module implements the logic for the ``rails2js convert`` command.
It orchestrates:
1. Configuration loading (TOML + CLI overrides, external filter discovery).
2. Source discovery (one ``.sexp`` file or a directory of them).
3. A whole-program run through the Engine (models first).
4. Output writing and trace logging.
"""

import json
from pathlib import Path
from typing import Any, Dict, List, Optional

from rich.table import Table

from rails2js.config import RuntimeConfig
from rails2js.core.conversion_result import ConversionResult
from rails2js.core.engine import RewriteEngine
from rails2js.utils.console import (
  console,
  log_error,
  log_info,
  log_success,
  log_warning,
  unit_text,
)

SOURCE_SUFFIX = ".sexp"


def logical_path(path: Path) -> str:
  """
  Source path the dump stands for: ``article_test.rb.sexp`` -> ``article_test.rb``.

  Dumps named without the original extension keep their name.
  """
  text = path.as_posix()
  stem = text[: -len(SOURCE_SUFFIX)] if text.endswith(SOURCE_SUFFIX) else text
  return stem if Path(stem).suffix else text


def discover_sources(input_path: Path) -> Dict[str, Path]:
  """
  Maps logical source paths to dump files.

  A directory is searched recursively; paths are made relative to it so unit
  detection sees ``app/models/article.rb``.
  """
  if input_path.is_file():
    return {logical_path(input_path): input_path}
  return {logical_path(f.relative_to(input_path)): f for f in sorted(input_path.rglob(f"*{SOURCE_SUFFIX}"))}


def handle_convert(
  input_path: Path,
  output_path: Optional[Path],
  import_mode: Optional[str],
  target_env: Optional[str],
  filters: Optional[List[str]],
  strict: Optional[bool],
  plugin_settings: Dict[str, Any],
  json_trace_path: Optional[Path] = None,
) -> int:
  """
  Handles the 'convert' command execution.

  Args:
      input_path: Path to the source dump or directory to convert.
      output_path: Where rewritten trees should be saved (file or directory).
      import_mode: Override for the import mode ('eject' or 'virtual').
      target_env: Override for the target environment.
      filters: Override for the enabled filter list.
      strict: If True, filter errors abort the run.
      plugin_settings: Dictionary of filter configuration flags.
      json_trace_path: Optional path to dump execution traces as JSON.

  Returns:
      int: Exit code (0 for success, 1 for failure).
  """
  if not input_path.exists():
    log_error(f"Input not found: {input_path}")
    return 1

  try:
    config = RuntimeConfig.load(
      import_mode=import_mode,
      target_env=target_env,
      filters=filters,
      strict_mode=strict,
      plugin_settings=plugin_settings,
      search_path=input_path if input_path.is_dir() else input_path.parent,
    )
  except ValueError as e:
    log_error(f"Invalid configuration: {e}")
    return 1

  sources = discover_sources(input_path)
  if not sources:
    log_warning(f"No {SOURCE_SUFFIX} files found in {input_path}")
    return 0

  if input_path.is_dir():
    if not output_path:
      log_error("Directory conversion requires --out destination directory.")
      return 1
    log_info(f"Processing {len(sources)} files from {input_path}...")

  try:
    results = _convert_program(sources, config)
  except Exception as e:
    log_error(f"Conversion aborted: {e}")
    return 1

  if json_trace_path:
    _write_trace(json_trace_path, results)

  for logical, result in results.items():
    if not result.success:
      continue
    if input_path.is_file():
      if output_path:
        _write_output(output_path, result)
        log_success(f"Rewrote: [path]{input_path}[/path] -> [path]{output_path}[/path]")
      else:
        print(result.code)
    else:
      rel = sources[logical].relative_to(input_path)
      _write_output(output_path / rel, result)

  _print_batch_summary(results)
  return 0 if all(r.success for r in results.values()) else 1


def _convert_program(sources: Dict[str, Path], config: RuntimeConfig) -> Dict[str, ConversionResult]:
  """
  Reads every dump and runs them as one program.

  Args:
      sources: Logical path -> dump file.
      config: Runtime configuration object.

  Returns:
      Dict[str, ConversionResult]: Results keyed by logical path.
  """
  texts = {}
  for logical, file in sources.items():
    with open(file, "rt", encoding="utf-8") as f:
      texts[logical] = f.read()
  engine = RewriteEngine(config)
  return engine.run_program_text(texts)


def _write_output(path: Path, result: ConversionResult) -> None:
  path.parent.mkdir(parents=True, exist_ok=True)
  with open(path, "wt", encoding="utf-8") as f:
    f.write(result.code)
    f.write("\n")


def _write_trace(path: Path, results: Dict[str, ConversionResult]) -> None:
  try:
    path.parent.mkdir(parents=True, exist_ok=True)
    with open(path, "wt", encoding="utf-8") as f:
      json.dump({name: r.trace_events for name, r in results.items()}, f, indent=2)
    log_info(f"Trace saved to [path]{path}[/path]")
  except OSError as e:
    log_error(f"Failed to write trace: {e}")


def _print_batch_summary(results: Dict[str, ConversionResult]) -> None:
  """
  Renders a summary table of conversion results to the console.

  Args:
      results: Dictionary mapping logical paths to conversion results.
  """
  total = len(results)
  successes = sum(1 for r in results.values() if r.success and not r.has_errors)
  failures = total - successes

  if failures == 0:
    log_success(f"Batch Complete: {successes}/{total} files rewritten.")
    return

  table = Table(title="Conversion Report")
  table.add_column("File", style="cyan")
  table.add_column("Unit", style="kind")
  table.add_column("Status", justify="center")
  table.add_column("Issues", style="red")

  for filename, res in results.items():
    if res.success and not res.has_errors:
      continue
    status = "Failed" if not res.success else "Warnings"
    issues = "; ".join(res.errors) if res.errors else "Unknown Error"
    table.add_row(filename, unit_text(res.unit_kind), status, issues)

  console.print(table)
  console.print(f"\n[bold]Summary:[/bold] {successes} Passed, {failures} with Issues.")
