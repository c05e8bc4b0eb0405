"""
Rewrite Trace Logger.

This module records the step-by-step execution of a rewrite run. It captures:
1. Lifecycle Phases (Collection, Rewriting per unit and per filter).
2. Unit detection (which filter claimed which unit).
3. Await-coloring decisions and metadata bus traffic.
4. Tree mutations (top-level node A replaced by node B).

The output is a structured list of Event Log dictionaries suitable for JSON serialization.
"""

import time
import uuid
from enum import Enum
from typing import Any, Dict, List, Optional
from dataclasses import dataclass, field, asdict


class TraceEventType(str, Enum):
  PHASE_START = "phase_start"
  PHASE_END = "phase_end"
  UNIT_DETECTED = "unit_detected"
  AWAIT_COLORED = "await_colored"
  BUS_WRITE = "bus_write"
  BUS_MISS = "bus_miss"
  AST_MUTATION = "ast_mutation"
  ANALYSIS_WARNING = "analysis_warning"
  INSPECTION = "inspection"


@dataclass
class TraceEvent:
  id: str
  type: TraceEventType
  timestamp: float
  description: str
  parent_id: Optional[str] = None
  metadata: Dict[str, Any] = field(default_factory=dict)


class TraceLogger:
  """
  Records rewrite events for inspection.
  Designed to be injected into the Engine and the filters through the context.
  """

  def __init__(self):
    self._events: List[TraceEvent] = []
    self._active_phases: List[str] = []  # Stack of phase IDs

  def start_phase(self, name: str, description: str = "") -> str:
    """Starts a nested phase (e.g., 'Rewrite app/models/article.rb'). Returns Phase ID."""
    phase_id = str(uuid.uuid4())
    parent = self._active_phases[-1] if self._active_phases else None

    event = TraceEvent(
      id=phase_id,
      type=TraceEventType.PHASE_START,
      timestamp=time.time(),
      description=name,
      parent_id=parent,
      metadata={"detail": description},
    )
    self._events.append(event)
    self._active_phases.append(phase_id)
    return phase_id

  def end_phase(self):
    """Ends the current active phase."""
    if not self._active_phases:
      return

    phase_id = self._active_phases.pop()
    event = TraceEvent(
      id=str(uuid.uuid4()),
      type=TraceEventType.PHASE_END,
      timestamp=time.time(),
      description="End Phase",
      parent_id=phase_id,
    )
    self._events.append(event)

  def log_unit(self, unit_name: str, unit_kind: str, filter_name: str):
    """Logs that a filter recognized a structural unit."""
    self._log_simple(
      TraceEventType.UNIT_DETECTED,
      f"{filter_name} claimed {unit_kind} '{unit_name}'",
      {"unit": unit_name, "kind": unit_kind, "filter": filter_name},
    )

  def log_await(self, expression: str, rule: str):
    """Logs an await-coloring decision."""
    self._log_simple(TraceEventType.AWAIT_COLORED, f"Awaited {expression}", {"rule": rule})

  def log_bus_write(self, unit_name: str, unit_kind: str):
    self._log_simple(TraceEventType.BUS_WRITE, f"Published {unit_kind} '{unit_name}'", {"unit": unit_name})

  def log_bus_miss(self, unit_name: str, fallback: str):
    """Logs a lookup of an unknown unit and the conservative choice taken."""
    self._log_simple(TraceEventType.BUS_MISS, f"No facts for '{unit_name}'", {"fallback": fallback})

  def log_mutation(self, node_type: str, before: str, after: str):
    """Logs a tree transformation."""
    self._log_simple(TraceEventType.AST_MUTATION, f"Transformed {node_type}", {"before": before, "after": after})

  def log_warning(self, message: str):
    self._log_simple(TraceEventType.ANALYSIS_WARNING, message, {"level": "warning"})

  def log_inspection(self, node_str: str, outcome: str, detail: str = ""):
    """Logs a decision point where no change occurred."""
    self._log_simple(TraceEventType.INSPECTION, f"Inspecting '{node_str}'", {"outcome": outcome, "detail": detail})

  def _log_simple(self, evt_type: TraceEventType, desc: str, meta: Dict[str, Any]):
    parent = self._active_phases[-1] if self._active_phases else None
    self._events.append(
      TraceEvent(
        id=str(uuid.uuid4()), type=evt_type, timestamp=time.time(), description=desc, parent_id=parent, metadata=meta
      )
    )

  def export(self) -> List[Dict[str, Any]]:
    """Returns list of dicts for JSON serialization."""
    return [asdict(e) for e in self._events]


# Global/Contextual instance for ease of access from deep filter helpers.
_GLOBAL_TRACER = TraceLogger()


def get_tracer() -> TraceLogger:
  return _GLOBAL_TRACER


def reset_tracer():
  global _GLOBAL_TRACER
  _GLOBAL_TRACER = TraceLogger()
