"""
Tests for CLI argument handling.

Verifies that the dispatcher forwards parsed arguments to the command
handlers unchanged, and that invalid usage exits through argparse.
"""

from pathlib import Path
from unittest.mock import patch

import pytest

from rails2js.cli.__main__ import main


@patch("rails2js.cli.commands.handle_convert")
def test_convert_forwards_arguments(mock_handle):
  mock_handle.return_value = 0
  code = main(
    [
      "convert",
      "app",
      "--out",
      "dist",
      "--import-mode",
      "virtual",
      "--target-env",
      "node",
      "--filters",
      "model, logger",
      "--strict",
      "--config",
      "depth=2",
      "loud=true",
      "--json-trace",
      "trace.json",
    ]
  )

  assert code == 0
  mock_handle.assert_called_once()
  args, kwargs = mock_handle.call_args
  assert args == (Path("app"), Path("dist"), "virtual", "node", ["model", "logger"], True, {"depth": 2, "loud": True})
  assert kwargs == {"json_trace_path": Path("trace.json")}


@patch("rails2js.cli.commands.handle_convert")
def test_convert_defaults_defer_to_config(mock_handle):
  mock_handle.return_value = 0
  main(["convert", "article.rb.sexp"])

  args, kwargs = mock_handle.call_args
  assert args == (Path("article.rb.sexp"), None, None, None, None, None, {})
  assert kwargs == {"json_trace_path": None}


@patch("rails2js.cli.commands.handle_inspect")
def test_inspect_forwards_arguments(mock_handle):
  mock_handle.return_value = 0
  main(["inspect", "app", "--import-mode", "eject"])
  mock_handle.assert_called_once_with(Path("app"), import_mode="eject")


def test_unknown_import_mode_is_rejected():
  with pytest.raises(SystemExit):
    main(["convert", "app", "--import-mode", "bundled"])


def test_command_is_required():
  with pytest.raises(SystemExit):
    main([])
