"""
Rewriter Context Module.

This module provides the two state containers threaded through the filters:

- :class:`RewriterContext` lives for one source file. It carries the runtime
  configuration, the run-scoped metadata bus, the tracer and the comment side
  table.
- :class:`UnitContext` lives for one structural unit (one class, one module,
  one route block). It is created fresh by :meth:`RewriterContext.enter_unit`
  every time a unit is entered, so no state can leak from a previous class in
  the same file, even if that earlier run was interrupted.
"""

from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Set

from rails2js.config import RuntimeConfig
from rails2js.core.bus import MetadataBus, get_bus
from rails2js.core.comments import CommentTable
from rails2js.core.metadata import (
  AssociationRecord,
  CallbackRecord,
  EnumRecord,
  GuardRecord,
  ScopeRecord,
  ValidationRecord,
  enum_scope,
)
from rails2js.core.node import Node
from rails2js.core.tracer import TraceLogger, get_tracer
from rails2js.enums import ImportMode, TargetEnvironment, UnitKind


@dataclass
class UnitContext:
  """
  Working state for one structural unit.

  Attributes:
      name: Unit (class/module) name.
      kind: Detected unit category.
      associations: Collected association records, in declaration order.
      validations: Collected validation records.
      callbacks: Collected lifecycle hooks, in declaration order.
      enums: Collected enum declarations.
      scopes: Collected query scopes.
      guards: Collected preconditions (controllers).
      attachments: ``has_one_attached``/``has_many_attached`` name -> kind.
      nested_attributes: Associations accepting nested attributes.
      public_methods: Public method name -> ``def`` node.
      private_methods: Private method name -> ``def`` node, for inlining.
      defined_methods: Every explicitly defined instance method name.
      referenced_names: External names used by the output (drives imports).
      in_class_method: True while rewriting a ``def self.x`` body.
      in_callback: True while rewriting a synthesized callback body.
      uses_associations: Set when a callback body touched an association.
      extras: Filter-specific scratch values.
  """

  name: str
  kind: UnitKind
  file_path: Optional[str] = None
  superclass: Optional[str] = None
  associations: List[AssociationRecord] = field(default_factory=list)
  validations: List[ValidationRecord] = field(default_factory=list)
  callbacks: List[CallbackRecord] = field(default_factory=list)
  enums: List[EnumRecord] = field(default_factory=list)
  scopes: List[ScopeRecord] = field(default_factory=list)
  guards: List[GuardRecord] = field(default_factory=list)
  attachments: Dict[str, str] = field(default_factory=dict)
  nested_attributes: List[str] = field(default_factory=list)
  broadcasts: List[Node] = field(default_factory=list)
  public_methods: Dict[str, Node] = field(default_factory=dict)
  private_methods: Dict[str, Node] = field(default_factory=dict)
  defined_methods: Set[str] = field(default_factory=set)
  referenced_names: Set[str] = field(default_factory=set)
  in_class_method: bool = False
  in_callback: bool = False
  uses_associations: bool = False
  extras: Dict[str, Any] = field(default_factory=dict)

  def association(self, name: str) -> Optional[AssociationRecord]:
    for assoc in self.associations:
      if assoc.name == name:
        return assoc
    return None

  def scope(self, name: str) -> Optional[ScopeRecord]:
    for scope in self.scopes:
      if scope.name == name:
        return scope
    return enum_scope(self.enums, name)


class RewriterContext:
  """
  Shared state container for one file's pass through the pipeline.
  """

  def __init__(
    self,
    config: RuntimeConfig,
    bus: Optional[MetadataBus] = None,
    tracer: Optional[TraceLogger] = None,
    file_path: Optional[str] = None,
    comments: Optional[CommentTable] = None,
  ):
    """
    Initializes the context.

    Args:
        config: The runtime configuration for the run.
        bus: The run-scoped metadata bus. Defaults to the global bus.
        tracer: Event recorder. Defaults to the global tracer.
        file_path: Source path of the file being rewritten, if known.
        comments: Comment side table produced by the parser.
    """
    self.config = config
    self.bus = bus if bus is not None else get_bus()
    self.tracer = tracer if tracer is not None else get_tracer()
    self.file_path = file_path
    self.comments = comments if comments is not None else CommentTable()
    self.unit: Optional[UnitContext] = None

  @property
  def import_mode(self) -> ImportMode:
    return self.config.import_mode

  @property
  def target_env(self) -> TargetEnvironment:
    return self.config.target_env

  def enter_unit(self, name: str, kind: UnitKind, superclass: Optional[str] = None) -> UnitContext:
    """
    Starts a new structural unit with empty working state.

    Args:
        name: Unit name.
        kind: Unit category.
        superclass: Declared superclass name, if any.

    Returns:
        UnitContext: The fresh unit state (also stored as ``self.unit``).
    """
    self.unit = UnitContext(name=name, kind=kind, file_path=self.file_path, superclass=superclass)
    return self.unit

  def exit_unit(self) -> None:
    self.unit = None
