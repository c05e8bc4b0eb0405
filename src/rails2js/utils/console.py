"""
Console and Logging Setup.

Every message the rewriter shows a user (batch progress, bus misses, report
tables) is either a ``logging`` record or a rich renderable printed through
the module-level ``console``. Both end up on one Rich Console, which tests and
embedding callers replace with :func:`set_console`.

Named styles used in markup and table columns live in :data:`THEME`. Each
structural unit kind has its own ``unit.<kind>`` style so reports color files
by what the rewriter took them to be.

Attributes:
    console (_ConsoleProxy): Stable handle on the active Rich Console.
    THEME (Theme): Styles every backend is given.
"""

import logging
from typing import Any

from rich.console import Console
from rich.logging import RichHandler
from rich.text import Text
from rich.theme import Theme

from rails2js.enums import UnitKind

# Between INFO (20) and WARNING (30)
SUCCESS_LEVEL_NUM = 25
logging.addLevelName(SUCCESS_LEVEL_NUM, "SUCCESS")


def _success(self, message, *args, **kwargs):
  """Method injected into Logger to support logger.success()."""
  if self.isEnabledFor(SUCCESS_LEVEL_NUM):
    self._log(SUCCESS_LEVEL_NUM, message, args, **kwargs)


logging.Logger.success = _success

UNIT_STYLES = {
  UnitKind.MODEL.value: "bold magenta",
  UnitKind.CONTROLLER.value: "bold cyan",
  UnitKind.VIEW.value: "green",
  UnitKind.ROUTES.value: "yellow",
  UnitKind.SEEDS.value: "blue",
  UnitKind.TEST.value: "bright_black",
  UnitKind.OTHER.value: "white",
}

THEME = Theme(
  {
    "logging.level.success": "green",
    "info": "dim cyan",
    "warning": "yellow",
    "error": "bold red",
    "success": "green",
    "path": "bold blue",
    "unit": "bold magenta",
    "kind": "cyan",
    **{f"unit.{kind}": style for kind, style in UNIT_STYLES.items()},
  }
)


class _ConsoleProxy:
  """
  Forwards printing to a swappable Rich Console.

  A backend handed in from outside is given :data:`THEME` on top of its own
  theme, and the root logger's RichHandler is re-pointed at it.
  """

  def __init__(self) -> None:
    self._backend: Console = Console(theme=THEME)
    self._attach_handler()

  def set_backend(self, new_console: Console) -> None:
    new_console.push_theme(THEME)
    self._backend = new_console
    self._attach_handler()

  def reset(self) -> None:
    self._backend = Console(theme=THEME)
    self._attach_handler()

  @property
  def backend(self) -> Console:
    return self._backend

  def _attach_handler(self) -> None:
    root_logger = logging.getLogger()
    for handler in list(root_logger.handlers):
      if isinstance(handler, RichHandler):
        root_logger.removeHandler(handler)
    root_logger.setLevel(logging.INFO)
    root_logger.addHandler(
      RichHandler(
        console=self._backend,
        show_time=False,
        show_path=False,
        markup=True,
        rich_tracebacks=True,
      )
    )

  def print(self, *args: Any, **kwargs: Any) -> None:
    self._backend.print(*args, **kwargs)

  def __getattr__(self, name: str) -> Any:
    return getattr(self._backend, name)


console = _ConsoleProxy()


def set_console(new_console: Console) -> None:
  """
  Routes console output and logging to ``new_console``.

  Args:
      new_console (Console): Any Rich Console, e.g. ``Console(record=True)``.
  """
  console.set_backend(new_console)


def reset_console() -> None:
  """Goes back to a fresh stdout console."""
  console.reset()


def get_console() -> Console:
  return console.backend


def set_verbose(enabled: bool) -> None:
  """Lowers the root log level to DEBUG so filter decisions are shown."""
  logging.getLogger().setLevel(logging.DEBUG if enabled else logging.INFO)


def unit_text(kind: str) -> Text:
  """
  Renders a unit kind in its own style.

  Args:
      kind: A :class:`UnitKind` value. Unrecognized kinds use the plain
          ``kind`` style.

  Returns:
      Text: A styled cell for report tables.
  """
  style = f"unit.{kind}" if kind in UNIT_STYLES else "kind"
  return Text(kind, style=style)


def log_info(msg: str) -> None:
  logging.info(f"ℹ️  {msg}", extra={"markup": True})


def log_success(msg: str) -> None:
  logging.log(SUCCESS_LEVEL_NUM, f"✅ {msg}", extra={"markup": True})


def log_warning(msg: str) -> None:
  logging.warning(f"⚠️  {msg}", extra={"markup": True})


def log_error(msg: str) -> None:
  logging.error(f"❌ {msg}", extra={"markup": True})
