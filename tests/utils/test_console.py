"""
Tests for Centralized Logging Utility and Injection Mechanics.

Verifies:
1. Singleton proxy correctness.
2. Injection capabilities (`set_console`).
3. Standard logging wrappers and verbosity switching.
4. Injected consoles resolve the named styles used by report tables.
"""

import logging

import pytest
from rich.console import Console
from rich.table import Table

from rails2js.enums import UnitKind
from rails2js.utils.console import (
  UNIT_STYLES,
  console,
  get_console,
  log_error,
  log_info,
  log_success,
  log_warning,
  reset_console,
  set_console,
  set_verbose,
  unit_text,
)


@pytest.fixture(autouse=True)
def cleanup_console():
  """Ensures console is reset to stdout after every test."""
  reset_console()
  yield
  set_verbose(False)
  reset_console()


def test_console_proxy_forwards():
  assert callable(console.print)
  assert hasattr(console, "export_text")
  assert isinstance(get_console(), Console)


def test_logging_follows_injected_console():
  capture = Console(record=True, width=200)
  set_console(capture)

  log_info("Processing 3 files")
  log_success("Batch Complete")
  log_warning("No facts for 'Article'")
  log_error("Input not found")

  output = capture.export_text()
  assert "Processing 3 files" in output
  assert "Batch Complete" in output
  assert "No facts for 'Article'" in output
  assert "Input not found" in output


def test_reset_restores_fresh_backend():
  temp = Console()
  set_console(temp)
  assert get_console() is temp
  reset_console()
  assert get_console() is not temp


def test_verbose_switches_root_level():
  set_verbose(True)
  assert logging.getLogger().level == logging.DEBUG
  set_verbose(False)
  assert logging.getLogger().level == logging.INFO


def test_injected_console_resolves_named_styles():
  capture = Console(record=True, width=200)
  set_console(capture)
  for name in ("path", "unit", "kind", "unit.model", "unit.other"):
    assert capture.get_style(name) is not None

  table = Table(title="Report")
  table.add_column("Unit", style="kind")
  table.add_row(unit_text("controller"))
  console.print(table)
  assert "controller" in capture.export_text()


def test_unit_text_styles():
  assert unit_text("model").style == "unit.model"
  assert unit_text("widget").style == "kind"
  assert set(UNIT_STYLES) == {k.value for k in UnitKind}
