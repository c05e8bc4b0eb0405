"""
Cross-Unit Metadata Bus.

A run-scoped registry keyed by unit name. One unit's filter publishes its
facts (a :class:`~rails2js.core.metadata.UnitFacts` subclass) and later
units read them, e.g. a test file asks whether ``comments`` is an association
of ``Article`` before deciding to await ``article.comments.count``.

Rules:

- Write-once per unit. Re-publishing identical facts is a no-op; publishing
  different facts for the same name raises :class:`BusWriteError`.
- Lookups never raise. A missing unit yields the :data:`UNKNOWN` marker and
  callers degrade to their conservative choice (await when in doubt).
- The bus lives for one whole-program run; :func:`reset_bus` starts a new one.
"""

import logging
from typing import Dict, Iterator, List, Optional, Set, Union

from rails2js.core.metadata import AssociationRecord, ModelFacts, UnitFacts
from rails2js.enums import ImportMode, UnitKind

logger = logging.getLogger(__name__)


class _Unknown:
  """Marker returned for lookups of units the bus has never seen."""

  _instance: Optional["_Unknown"] = None

  def __new__(cls) -> "_Unknown":
    if cls._instance is None:
      cls._instance = super().__new__(cls)
    return cls._instance

  def __bool__(self) -> bool:
    return False

  def __repr__(self) -> str:
    return "UNKNOWN"


UNKNOWN = _Unknown()

Lookup = Union[UnitFacts, _Unknown]


class BusWriteError(RuntimeError):
  """Raised when a unit publishes conflicting facts twice in one run."""


class MetadataBus:
  """
  Typed registry of per-unit facts.

  Attributes:
      import_mode: How generated imports address other units.
  """

  def __init__(self, import_mode: ImportMode = ImportMode.EJECT) -> None:
    self.import_mode = import_mode
    self._units: Dict[str, UnitFacts] = {}

  def register(self, facts: UnitFacts) -> None:
    """
    Publishes the facts of one unit.

    Args:
        facts: The unit's collected facts.

    Raises:
        BusWriteError: If different facts were already published under this name.
    """
    existing = self._units.get(facts.name)
    if existing is not None:
      if existing == facts:
        return
      raise BusWriteError(f"Unit '{facts.name}' already published different facts")
    logger.debug("bus: published %s '%s'", facts.kind.value, facts.name)
    self._units[facts.name] = facts

  def lookup(self, name: str) -> Lookup:
    """Returns the facts for ``name``, or :data:`UNKNOWN`."""
    return self._units.get(name, UNKNOWN)

  def model(self, name: str) -> Union[ModelFacts, _Unknown, None]:
    """
    Returns model facts for ``name``.

    Returns:
        ModelFacts if ``name`` is a known model, None if it is a known unit of
        another kind, :data:`UNKNOWN` if the bus has never seen it.
    """
    facts = self._units.get(name)
    if facts is None:
      return UNKNOWN
    return facts if isinstance(facts, ModelFacts) else None

  def is_model(self, name: str) -> Optional[bool]:
    """Tri-state model check: True, False, or None when unknown."""
    facts = self.model(name)
    if facts is UNKNOWN:
      return None
    return facts is not None

  def models(self) -> Dict[str, ModelFacts]:
    return {k: v for k, v in self._units.items() if isinstance(v, ModelFacts)}

  def units(self, kind: Optional[UnitKind] = None) -> List[UnitFacts]:
    return [f for f in self._units.values() if kind is None or f.kind == kind]

  def association_names(self) -> Set[str]:
    """Every association accessor name declared by any known model."""
    return {a.name for m in self.models().values() for a in m.associations}

  def find_association(self, name: str, owner: Optional[str] = None) -> Optional[AssociationRecord]:
    """
    Finds an association by accessor name.

    Args:
        name: Accessor name.
        owner: Restrict the search to this model, when the owner is known.
    """
    candidates = [self.models().get(owner)] if owner else list(self.models().values())
    for facts in candidates:
      if facts is None:
        continue
      assoc = facts.association(name)
      if assoc is not None:
        return assoc
    return None

  def file_path(self, name: str) -> Optional[str]:
    facts = self._units.get(name)
    return facts.file_path if facts is not None else None

  def __contains__(self, name: str) -> bool:
    return name in self._units

  def __len__(self) -> int:
    return len(self._units)

  def __iter__(self) -> Iterator[str]:
    return iter(self._units)


_GLOBAL_BUS = MetadataBus()


def get_bus() -> MetadataBus:
  return _GLOBAL_BUS


def reset_bus(import_mode: ImportMode = ImportMode.EJECT) -> MetadataBus:
  """Starts a fresh run-scoped bus and returns it."""
  global _GLOBAL_BUS
  _GLOBAL_BUS = MetadataBus(import_mode)
  return _GLOBAL_BUS
