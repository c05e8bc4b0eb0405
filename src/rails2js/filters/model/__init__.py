"""
Data-Model Filter.

Rewrites ``class X < ApplicationRecord`` into an exported class whose body is
assembled from the collected declarations:

1.  ``table_name`` and the public methods/class-level code, in source order.
2.  Association accessors, ``_resolveDefaults``, the static ``associations``
    map, attachment getters and the ``destroy`` cascade.
3.  ``validate()``, callback invokers, scopes, enum members and defaults.
4.  ``broadcasts_to`` callbacks, nested-attribute setters and the private
    methods registered as callbacks.

The collected facts are published on the metadata bus before the body is
rewritten, so later units (controllers, tests) can consult them.
"""

import logging
from typing import Any, List, Optional

from rails2js.core.builders import call, const, export_node, import_node, self_assign, self_prop
from rails2js.core.collectors import (
  MODEL_DECLARATIONS,
  collect_model,
  declaration,
  is_private_marker,
  model_facts,
  table_name_for,
)
from rails2js.core.hooks import register_filter
from rails2js.core.inflector import underscore
from rails2js.core.node import Node, body_statements, const_name, is_node, make_body, s
from rails2js.core.units import is_model_class
from rails2js.enums import AssociationKind, UnitKind
from rails2js.filters.base import FilterBase
from rails2js.filters.model.associations import AssociationMixin
from rails2js.filters.model.broadcasts import BROADCAST_METHODS, BroadcastMixin, broadcast_partials, uses_broadcasts
from rails2js.filters.model.callbacks import CallbackMixin
from rails2js.filters.model.enums import EnumMixin
from rails2js.filters.model.scopes import ScopeMixin
from rails2js.filters.model.validations import ValidationMixin

logger = logging.getLogger(__name__)

# Class methods that need an explicit ``self`` inside ``def self.x``.
AR_CLASS_METHODS = frozenset(
  [
    "create",
    "create!",
    "new",
    "build",
    "find",
    "find_by",
    "find_by!",
    "find_each",
    "find_in_batches",
    "find_or_create_by",
    "find_or_create_by!",
    "find_or_initialize_by",
    "find_sole_by",
    "where",
    "all",
    "first",
    "last",
    "take",
    "count",
    "sum",
    "average",
    "minimum",
    "maximum",
    "exists?",
    "any?",
    "none?",
    "many?",
    "one?",
    "order",
    "group",
    "limit",
    "offset",
    "select",
    "distinct",
    "joins",
    "includes",
    "left_outer_joins",
    "preload",
    "eager_load",
    "pluck",
    "pick",
    "ids",
    "destroy_all",
    "delete_all",
    "update_all",
    "transaction",
  ]
)

SKIPPED_DECLARATIONS = MODEL_DECLARATIONS | {"include"}


@register_filter("model", order=10)
class ModelFilter(
  AssociationMixin,
  EnumMixin,
  ScopeMixin,
  ValidationMixin,
  CallbackMixin,
  BroadcastMixin,
  FilterBase,
):
  """
  Lowers data-model classes. Other classes pass through, except for the
  query-method renames in :meth:`on_send`, which apply everywhere.
  """

  def on_class(self, node: Node) -> Any:
    if not is_model_class(node) or self.unit is not None:
      return super().process_children(node)
    name_node, superclass, body = node.children
    name = const_name(name_node)
    superclass_name = const_name(superclass)

    with self.unit_scope(name, UnitKind.MODEL, superclass_name) as unit:
      collect_model(body, unit)
      table_name = table_name_for(name_node)
      self.context.bus.register(model_facts(unit, table_name))
      self.context.tracer.log_bus_write(name, UnitKind.MODEL.value)

      new_body = self.transform_model_body(body, table_name)
      leaf = name.split("::")[-1]
      exported = export_node(node.updated(children=[const(leaf), superclass, new_body]))
      self.carry_comments(node, exported)
      statements = [*self.model_imports(body, superclass_name, new_body), exported]
      if unit.broadcasts:
        statements.append(self.render_partial_assignment())
      return s("begin", *statements)

  # -- body assembly --------------------------------------------------------

  def transform_model_body(self, body: Any, table_name: str) -> Optional[Node]:
    unit = self.unit
    members: List[Any] = [self_assign("table_name", s("str", table_name))]

    in_private = False
    for stmt in body_statements(body):
      if stmt is None:
        continue
      if is_private_marker(stmt):
        in_private = True
        continue
      call_node = declaration(stmt)
      if is_node(stmt, "send") and call_node is not None and call_node.children[1] in SKIPPED_DECLARATIONS:
        continue
      if in_private and is_node(stmt, "def"):
        continue
      members.append(self.process(stmt))

    for assoc in unit.associations:
      members.extend(self.association_members(assoc))
    members.append(self.resolve_defaults_method())
    members.append(self.associations_table())
    for attachment, kind in unit.attachments.items():
      members.append(self.attachment_getter(attachment, kind))
    members.append(self.destroy_method())
    members.append(self.validate_method())
    members.extend(self.callback_invokers())
    for scope in unit.scopes:
      members.append(self.scope_member(scope))
    for record in unit.enums:
      members.extend(self.enum_members(record))
    members.append(self.enum_defaults())
    for declared in unit.broadcasts:
      members.extend(self.broadcasts_to_callbacks(declared))
    nested_options = unit.extras.get("nested_options", {})
    for nested in unit.nested_attributes:
      members.extend(self.nested_attribute_members(nested, nested_options.get(nested, {})))
    for method in self.callback_methods():
      members.append(self.process(method))
    return make_body(members)

  def model_imports(self, body: Any, superclass_name: Optional[str], new_body: Any) -> List[Node]:
    unit = self.unit
    superclass_leaf = (superclass_name or "ApplicationRecord").split("::")[-1]
    names = [superclass_leaf]
    kinds = {assoc.kind for assoc in unit.associations}
    if AssociationKind.HAS_MANY in kinds:
      names.append("CollectionProxy")
    if unit.associations:
      names.append("modelRegistry")
    if kinds & {AssociationKind.BELONGS_TO, AssociationKind.POLYMORPHIC}:
      names.append("Reference")
    if AssociationKind.HAS_ONE in kinds:
      names.append("HasOneReference")
    imports = [import_node(f"./{underscore(superclass_leaf)}.js", names)]

    if uses_broadcasts(body) or unit.broadcasts:
      imports.append(import_node(self.library_path("rails"), ["BroadcastChannel"]))
      partials = broadcast_partials(body)
      if unit.broadcasts and self.model_partial() not in partials:
        partials.append(self.model_partial())
      if partials:
        imports.append(import_node(self.partial_import_path(partials[0]), ["render"]))

    if unit.attachments:
      imports.append(import_node(self.library_path("active_storage"), ["hasOneAttached", "hasManyAttached"]))

    imports.extend(self.imports_for_models(self.referenced_models(new_body, exclude=[unit.name.split("::")[-1]])))
    return imports

  # -- hooks ----------------------------------------------------------------

  def on_send(self, node: Node) -> Any:
    receiver, method, args = node.children[0], node.children[1], node.children[2:]
    unit = self.unit
    in_model = unit is not None and unit.kind == UnitKind.MODEL and receiver is None

    if in_model:
      inlined = self.enum_call(method) if not args else None
      if inlined is not None:
        return inlined
      if unit.in_class_method and (method in AR_CLASS_METHODS or unit.scope(method) is not None):
        return self.process(node.updated(children=[s("self"), method, *args]))

    if method == "any?" and not args and is_node(receiver, "send") and self._const_rooted(receiver):
      return self.process(call(receiver, "any"))
    if method == "find_by!":
      return self.process(call(receiver, "findByBang", *args))

    if not in_model:
      return super().on_send(node)

    if method in BROADCAST_METHODS:
      lowered = self.broadcast_call(method, list(args))
      if lowered is not None:
        return lowered
    return super().on_send(node)

  def _const_rooted(self, node: Any) -> bool:
    while is_node(node, "send"):
      node = node.children[0]
    return is_node(node, "const")

  def on_block(self, node: Node) -> Any:
    unit = self.unit
    if unit is None or unit.kind != UnitKind.MODEL or not self.is_callback_block(node):
      return super().process_children(node)
    phase = node.children[0].children[1]
    registration = self.callback_registration(phase, node.children[2] or s("nil"))
    return self.carry_comments(node, registration)

  def on_def(self, node: Node) -> Any:
    unit = self.unit
    if unit is None or unit.kind != UnitKind.MODEL or node.kind not in ("def", "defm"):
      return super().process_children(node)
    name, params, body = node.children
    locals_ = [p.children[0] for p in params.children if is_node(p) and p.children] if is_node(params, "args") else []
    body = self._explicit_associations(body, locals_)
    processed = self.process_children(node.updated(children=[name, params, body]))
    return self.carry_comments(node, self.color(processed, mark_functions=True))

  def on_defs(self, node: Node) -> Any:
    unit = self.unit
    if unit is None or unit.kind != UnitKind.MODEL or node.kind != "defs":
      return super().process_children(node)
    unit.in_class_method = True
    try:
      processed = self.process_children(node)
    finally:
      unit.in_class_method = False
    return self.carry_comments(node, self.color(processed, mark_functions=True))

  def _explicit_associations(self, node: Any, locals_: List[str]) -> Any:
    """Bare association reads inside instance methods become ``this.<name>``."""
    if not isinstance(node, Node):
      return node
    if node.kind in ("def", "defs"):
      return node
    if node.kind == "lvasgn":
      locals_.append(node.children[0])
    if (
      node.kind == "send"
      and node.children[0] is None
      and len(node.children) == 2
      and node.children[1] not in locals_
      and self.unit.association(node.children[1]) is not None
    ):
      return self_prop(node.children[1])
    return node.updated(children=[self._explicit_associations(c, locals_) for c in node.children])
