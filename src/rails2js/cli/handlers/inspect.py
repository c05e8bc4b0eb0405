"""
Inspect Command Handler.

Runs a program through the engine and renders the facts each unit published
on the metadata bus: model associations, enums, scopes and callbacks,
controller actions and guards, and the resolved route table.
"""

from pathlib import Path
from typing import Optional

from rich.table import Table

from rails2js.cli.handlers.convert import discover_sources
from rails2js.config import RuntimeConfig
from rails2js.core.bus import MetadataBus
from rails2js.core.engine import RewriteEngine
from rails2js.core.metadata import ControllerFacts, RoutesFacts
from rails2js.enums import UnitKind
from rails2js.utils.console import console, log_error, log_warning


def handle_inspect(input_path: Path, import_mode: Optional[str] = None) -> int:
  """
  Handles the 'inspect' command.

  Args:
      input_path: A dump file or a directory of dumps.
      import_mode: Optional import mode override.

  Returns:
      int: Exit code.
  """
  if not input_path.exists():
    log_error(f"Input not found: {input_path}")
    return 1

  sources = discover_sources(input_path)
  if not sources:
    log_warning(f"No source dumps found in {input_path}")
    return 0

  config = RuntimeConfig.load(
    import_mode=import_mode,
    search_path=input_path if input_path.is_dir() else input_path.parent,
  )
  engine = RewriteEngine(config)
  texts = {}
  for logical, file in sources.items():
    with open(file, "rt", encoding="utf-8") as f:
      texts[logical] = f.read()
  results = engine.run_program_text(texts)

  failed = [name for name, r in results.items() if not r.success]
  for name in failed:
    log_warning(f"{name}: {'; '.join(results[name].errors)}")

  render_bus(engine.bus)
  return 0


def render_bus(bus: MetadataBus) -> None:
  """Prints one table per fact group."""
  if not len(bus):
    console.print("[warning]No units published facts.[/warning]")
    return

  models = bus.models()
  if models:
    table = Table(title="Models")
    table.add_column("Model", style="unit")
    table.add_column("Associations")
    table.add_column("Enums")
    table.add_column("Scopes")
    table.add_column("Validations")
    table.add_column("Callbacks")
    for name, facts in models.items():
      table.add_row(
        name,
        ", ".join(f"{a.kind.value} {a.name}" for a in facts.associations),
        ", ".join(f"{e.field}({', '.join(e.values)})" for e in facts.enums),
        ", ".join(s.name for s in facts.scopes),
        ", ".join(v.field for v in facts.validations),
        ", ".join(f"{c.phase}:{c.method or 'block'}" for c in facts.callbacks),
      )
    console.print(table)

  controllers = [f for f in bus.units(UnitKind.CONTROLLER) if isinstance(f, ControllerFacts)]
  if controllers:
    table = Table(title="Controllers")
    table.add_column("Controller", style="unit")
    table.add_column("Model", style="kind")
    table.add_column("Actions")
    table.add_column("Guards")
    for facts in controllers:
      guards = []
      for guard in facts.guards:
        if guard.only:
          guards.append(f"{guard.method} only {', '.join(guard.only)}")
        elif guard.except_:
          guards.append(f"{guard.method} except {', '.join(guard.except_)}")
        else:
          guards.append(guard.method)
      table.add_row(facts.name, facts.model or "", ", ".join(facts.actions), "; ".join(guards))
    console.print(table)

  for facts in bus.units(UnitKind.ROUTES):
    if not isinstance(facts, RoutesFacts):
      continue
    table = Table(title="Routes")
    table.add_column("Verb", style="kind")
    table.add_column("Path")
    table.add_column("Target")
    table.add_column("Helper", style="path")
    for route in facts.routes:
      table.add_row(route.verb, route.path, f"{route.controller}#{route.action}", route.helper or "")
    console.print(table)
