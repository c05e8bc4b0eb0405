"""
rails2js Package.

A rule-driven tree rewriter that lowers Ruby on Rails applications (models,
controllers, views, routes, seeds and tests) into JavaScript module trees for
an async-only runtime.

The parser and the printer are external collaborators; trees are exchanged as
s-expressions.

Usage
-----

Simple Conversion
^^^^^^^^^^^^^^^^^

.. code-block:: python

    import rails2js
    out = rails2js.convert('(send (send (const nil :Rails) :logger) :info (str "saved"))')
    print(out)
    # (send!
    #   (lvar :console)
    #   :info
    #   (str "saved"))

Whole Program
^^^^^^^^^^^^^

.. code-block:: python

    from rails2js import RewriteEngine, RuntimeConfig

    engine = RewriteEngine(RuntimeConfig(import_mode="virtual"))
    results = engine.run_program_text({"app/models/article.rb": model_sexp, "test/models/article_test.rb": test_sexp})
"""

from typing import Any, Dict, Optional

from rails2js.config import RuntimeConfig
from rails2js.core.conversion_result import ConversionResult
from rails2js.core.engine import RewriteEngine

__version__ = "0.1.0"


def convert(
  sexp: str,
  path: Optional[str] = None,
  import_mode: str = "eject",
  target_env: str = "browser",
  strict: bool = False,
  plugin_settings: Optional[Dict[str, Any]] = None,
) -> str:
  """
  Rewrites one s-expression tree.

  This is a convenience wrapper around ``RewriteEngine`` with a fresh
  metadata bus, so no facts from other files are available. Use
  ``RewriteEngine.run_program_text`` for whole-program runs.

  Args:
      sexp (str): The parsed source tree as s-expression text.
      path (str, optional): Source path, used for unit detection.
      import_mode (str): ``eject`` or ``virtual``.
      target_env (str): ``browser``, ``node`` or ``edge``.
      strict (bool): If True, filter errors raise instead of being recorded.
      plugin_settings (dict, optional): Extra settings passed to filters.

  Returns:
      str: The rewritten tree as s-expression text.

  Raises:
      ValueError: If the rewrite failed.
  """
  config = RuntimeConfig(
    import_mode=import_mode,
    target_env=target_env,
    strict_mode=strict,
    plugin_settings=plugin_settings or {},
  )
  engine = RewriteEngine(config)
  result = engine.run_text(sexp, path)

  if not result.success:
    raise ValueError(f"Conversion failed: {result.errors}")

  return result.code


__all__ = [
  "ConversionResult",
  "RewriteEngine",
  "RuntimeConfig",
  "convert",
  "__version__",
]
