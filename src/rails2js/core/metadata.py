"""
Declarative Fact Records.

Pydantic models for the facts the collection pass extracts from a unit
before any rewriting happens. The same records are exported to the
cross-unit metadata bus, so they must stay plain data: captured lambda bodies
are stored as :class:`~rails2js.core.node.Node` values, which are immutable
and safe to share.
"""

from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field, InstanceOf

from rails2js.core.inflector import classify, pluralize, underscore
from rails2js.core.node import Node
from rails2js.enums import AssociationKind, UnitKind


class _Record(BaseModel):
  model_config = ConfigDict(arbitrary_types_allowed=True, frozen=True)


class AssociationRecord(_Record):
  """
  A relationship declared on a data-model unit.

  Attributes:
      kind: Relationship direction.
      name: Accessor name (``comments``, ``author``).
      target: Target model class name.
      foreign_key: Column holding the key.
      options: Remaining declared modifiers (``dependent``, ``as``, ``default``...).
  """

  kind: AssociationKind
  name: str
  target: str
  foreign_key: str
  options: Dict[str, Any] = Field(default_factory=dict)

  @classmethod
  def derive(
    cls,
    kind: AssociationKind,
    name: str,
    owner: str,
    options: Optional[Dict[str, Any]] = None,
  ) -> "AssociationRecord":
    """
    Builds a record, deriving the target and foreign key by convention.

    Args:
        kind: Relationship direction.
        name: Accessor name as declared.
        owner: Class name of the declaring model.
        options: Declared options. ``class_name`` and ``foreign_key`` override
            the conventions; ``as`` names the polymorphic interface on the
            other side.

    Returns:
        AssociationRecord: The populated record.
    """
    opts = dict(options or {})
    target = opts.pop("class_name", None) or classify(name)
    explicit_fk = opts.pop("foreign_key", None)
    if explicit_fk:
      fk = str(explicit_fk)
    elif kind in (AssociationKind.BELONGS_TO, AssociationKind.POLYMORPHIC):
      fk = f"{name}_id"
    elif opts.get("as"):
      fk = f"{opts['as']}_id"
    else:
      fk = f"{underscore(owner.split('::')[-1])}_id"
    return cls(kind=kind, name=name, target=target, foreign_key=fk, options=opts)

  @property
  def is_collection(self) -> bool:
    return self.kind == AssociationKind.HAS_MANY

  @property
  def type_column(self) -> Optional[str]:
    """Discriminator column for polymorphic associations."""
    if self.kind == AssociationKind.POLYMORPHIC:
      return f"{self.name}_type"
    return None


class ValidationRecord(_Record):
  """Constraint rules attached to one field (``presence``, ``length``...)."""

  field: str
  rules: Dict[str, Any] = Field(default_factory=dict)


class CallbackRecord(_Record):
  """
  A lifecycle hook registration.

  Exactly one of ``method`` (a named method to invoke) or ``body`` (a
  captured block body) is set.
  """

  phase: str
  method: Optional[str] = None
  body: Optional[InstanceOf[Node]] = None
  options: Dict[str, Any] = Field(default_factory=dict)


class EnumRecord(_Record):
  """
  An enumerated-value declaration.

  Attributes:
      field: Backing attribute name.
      values: Ordered name -> stored value map.
      prefix: Naming prefix for predicates and scopes, if declared.
      scopes: False when query-scope generation was suppressed.
      default: Declared default value name, if any.
  """

  field: str
  values: Dict[str, Any]
  prefix: Optional[str] = None
  scopes: bool = True
  default: Optional[str] = None

  @property
  def table_name(self) -> str:
    """Name of the frozen constant table (pluralized field)."""
    return pluralize(self.field)

  def method_name(self, value_name: str) -> str:
    return f"{self.prefix}_{value_name}" if self.prefix else value_name

  @property
  def default_value(self) -> Any:
    """
    Stored value new instances start with: the first declared value.

    A ``default:`` option is recorded in ``default`` but does not change the
    runtime default table.
    """
    if not self.values:
      return None
    return next(iter(self.values.values()))


class ScopeRecord(_Record):
  """A named query scope and its captured lambda."""

  name: str
  params: List[str] = Field(default_factory=list)
  body: Optional[InstanceOf[Node]] = None

  @property
  def is_property(self) -> bool:
    """Zero-parameter scopes lower to static getters."""
    return not self.params


class GuardRecord(_Record):
  """
  A precondition (``before_action``) with its only/except guard.

  An empty ``only`` admits every action not listed in ``except_``.
  """

  method: str
  only: List[str] = Field(default_factory=list)
  except_: List[str] = Field(default_factory=list)

  def admits(self, action: str) -> bool:
    if self.only:
      return action in self.only
    return action not in self.except_


class RouteRecord(_Record):
  """One resolved route (verb + path -> controller action)."""

  verb: str
  path: str
  controller: str
  action: str
  helper: Optional[str] = None


def enum_scope(enums: List[EnumRecord], name: str) -> Optional[ScopeRecord]:
  """Synthetic zero-parameter scope for an enum value name, if one is generated."""
  for record in enums:
    if record.scopes and any(record.method_name(v) == name for v in record.values):
      return ScopeRecord(name=name)
  return None


class UnitFacts(_Record):
  """Base for per-unit fact groups published on the metadata bus."""

  name: str
  kind: UnitKind
  file_path: Optional[str] = None


class ModelFacts(UnitFacts):
  """Facts published by a data-model unit."""

  kind: UnitKind = UnitKind.MODEL
  table_name: str = ""
  associations: List[AssociationRecord] = Field(default_factory=list)
  validations: List[ValidationRecord] = Field(default_factory=list)
  callbacks: List[CallbackRecord] = Field(default_factory=list)
  enums: List[EnumRecord] = Field(default_factory=list)
  scopes: List[ScopeRecord] = Field(default_factory=list)
  attachments: Dict[str, str] = Field(default_factory=dict)
  nested_attributes: List[str] = Field(default_factory=list)
  methods: List[str] = Field(default_factory=list)

  def association(self, name: str) -> Optional[AssociationRecord]:
    for assoc in self.associations:
      if assoc.name == name:
        return assoc
    return None

  def scope(self, name: str) -> Optional[ScopeRecord]:
    """Declared scope, or the zero-argument scope generated for an enum value."""
    for scope in self.scopes:
      if scope.name == name:
        return scope
    return enum_scope(self.enums, name)

  @property
  def enum_predicates(self) -> List[str]:
    """Generated ``x?`` predicate names (synchronous in the target)."""
    return [f"{e.method_name(v)}?" for e in self.enums for v in e.values]

  @property
  def enum_bangs(self) -> List[str]:
    """Generated ``x!`` setter names."""
    return [f"{e.method_name(v)}!" for e in self.enums for v in e.values]

  @property
  def enum_defaults(self) -> Dict[str, Any]:
    return {e.field: e.default_value for e in self.enums if e.values}


class ControllerFacts(UnitFacts):
  """Facts published by a controller unit."""

  kind: UnitKind = UnitKind.CONTROLLER
  model: Optional[str] = None
  actions: List[str] = Field(default_factory=list)
  guards: List[GuardRecord] = Field(default_factory=list)


class RoutesFacts(UnitFacts):
  """Facts published by the routes unit."""

  kind: UnitKind = UnitKind.ROUTES
  routes: List[RouteRecord] = Field(default_factory=list)
  helpers: Dict[str, str] = Field(default_factory=dict)
