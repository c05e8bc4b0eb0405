"""
Association Lowering Mixin.

Synthesizes accessor pairs for declared relationships:

- ``has_many``: a getter that builds a ``CollectionProxy`` once and caches it
  in a private field, plus a setter overwriting that field (used by preloads).
- ``belongs_to``: a getter returning the cached record, ``null`` for an empty
  foreign key, or a lazily resolving ``Reference``; the setter updates the
  cache and the foreign-key attribute.
- ``has_one``: like ``belongs_to`` but resolved through a ``HasOneReference``
  with an explicit loaded flag, plus ``create_<name>``.
- polymorphic ``belongs_to``: also maintains the ``<name>_type`` column.

Target classes are looked up through ``modelRegistry`` by name, so mutually
associated models never import each other.
"""

from typing import Any, Dict, List, Optional

from rails2js.core.builders import (
  await_expr,
  call,
  const,
  hash_of,
  lvar,
  prop,
  self_assign,
  self_prop,
)
from rails2js.core.metadata import AssociationRecord
from rails2js.core.node import Node, is_node, s
from rails2js.enums import AssociationKind


def registry_ref(target: Any) -> Node:
  """``modelRegistry["Comment"]``; ``target`` may be a name or an expression."""
  key = s("str", target) if isinstance(target, str) else target
  return s("send", lvar("modelRegistry"), "[]", key)


def attribute_ref(column: str, receiver: Optional[Node] = None) -> Node:
  """``this.attributes["article_id"]``."""
  return s("send", prop(receiver or s("self"), "attributes"), "[]", s("str", column))


def attribute_write(column: str, value: Node) -> Node:
  return s("send", self_prop("attributes"), "[]=", s("str", column), value)


def _cache_callback(*statements: Node) -> Node:
  body = statements[0] if len(statements) == 1 else s("begin", *statements)
  return s("block", s("send", None, "proc"), s("args", s("arg", "v")), body)


def _value_or_nil(expr: Node) -> Node:
  return s("if", lvar("value"), expr, s("nil"))


class AssociationMixin:
  """
  Generators for association members. Expects ``self.unit`` to be a model unit.
  """

  def association_members(self, assoc: AssociationRecord) -> List[Node]:
    if assoc.kind == AssociationKind.HAS_MANY:
      return self._has_many_members(assoc)
    if assoc.kind == AssociationKind.HAS_ONE:
      return self._has_one_members(assoc)
    if assoc.kind == AssociationKind.POLYMORPHIC:
      return self._polymorphic_members(assoc)
    return self._belongs_to_members(assoc)

  def _owner_name(self) -> str:
    return self.unit.name.split("::")[-1]

  def _has_many_members(self, assoc: AssociationRecord) -> List[Node]:
    cache = f"_{assoc.name}"
    meta: Dict[str, Any] = {"name": assoc.name, "type": "has_many", "foreignKey": assoc.foreign_key}
    poly = assoc.options.get("as")
    if poly:
      meta["foreignType"] = f"{poly}_type"
      meta["ownerType"] = self._owner_name()
    if isinstance(assoc.options.get("through"), str):
      meta["through"] = assoc.options["through"]
    proxy = s("send", const("CollectionProxy"), "new", s("self"), hash_of(meta), registry_ref(assoc.target))
    getter = s(
      "defget",
      assoc.name,
      s("args"),
      s(
        "begin",
        s("if", self_prop(cache), s("return", self_prop(cache)), None),
        s("return", self_assign(cache, proxy)),
      ),
    )
    setter = s("def", f"{assoc.name}=", s("args", s("arg", "value")), self_assign(cache, lvar("value")))
    return [getter, setter]

  def _belongs_to_members(self, assoc: AssociationRecord) -> List[Node]:
    cache = f"_{assoc.name}"
    fk = assoc.foreign_key
    reference = s(
      "send",
      const("Reference"),
      "new",
      registry_ref(assoc.target),
      attribute_ref(fk),
      _cache_callback(self_assign(cache, lvar("v"))),
    )
    getter = s(
      "defget",
      assoc.name,
      s("args"),
      s(
        "begin",
        s("if", self_prop(cache), s("return", self_prop(cache)), None),
        s("if", s("send", attribute_ref(fk), "!"), s("return", s("nil")), None),
        s("return", reference),
      ),
    )
    setter = s(
      "def",
      f"{assoc.name}=",
      s("args", s("arg", "value")),
      s(
        "begin",
        self_assign(cache, lvar("value")),
        attribute_write(fk, _value_or_nil(prop(lvar("value"), "id"))),
      ),
    )
    fk_getter = s("defget", fk, s("args"), s("autoreturn", attribute_ref(fk)))
    return [getter, setter, fk_getter]

  def _polymorphic_members(self, assoc: AssociationRecord) -> List[Node]:
    cache = f"_{assoc.name}"
    fk = assoc.foreign_key
    type_column = assoc.type_column
    reference = s(
      "send",
      const("Reference"),
      "new",
      registry_ref(attribute_ref(type_column)),
      attribute_ref(fk),
      _cache_callback(self_assign(cache, lvar("v"))),
    )
    getter = s(
      "defget",
      assoc.name,
      s("args"),
      s(
        "begin",
        s("if", self_prop(cache), s("return", self_prop(cache)), None),
        s("if", s("send", attribute_ref(fk), "!"), s("return", s("nil")), None),
        s("return", reference),
      ),
    )
    setter = s(
      "def",
      f"{assoc.name}=",
      s("args", s("arg", "value")),
      s(
        "begin",
        self_assign(cache, lvar("value")),
        attribute_write(fk, _value_or_nil(prop(lvar("value"), "id"))),
        attribute_write(type_column, _value_or_nil(prop(prop(lvar("value"), "constructor"), "name"))),
      ),
    )
    fk_getter = s("defget", fk, s("args"), s("autoreturn", attribute_ref(fk)))
    type_getter = s("defget", type_column, s("args"), s("autoreturn", attribute_ref(type_column)))
    return [getter, setter, fk_getter, type_getter]

  def _has_one_members(self, assoc: AssociationRecord) -> List[Node]:
    cache = f"_{assoc.name}"
    loaded = f"_{assoc.name}_loaded"
    fk = assoc.foreign_key
    conditions = s("hash", s("pair", s("sym", fk), self_prop("id")))
    reference = s(
      "send",
      const("HasOneReference"),
      "new",
      registry_ref(assoc.target),
      conditions,
      _cache_callback(self_assign(cache, lvar("v")), self_assign(loaded, s("true"))),
    )
    getter = s(
      "defget",
      assoc.name,
      s("args"),
      s(
        "begin",
        s("if", self_prop(loaded), s("return", self_prop(cache)), None),
        s("return", reference),
      ),
    )
    setter = s(
      "def",
      f"{assoc.name}=",
      s("args", s("arg", "value")),
      s("begin", self_assign(cache, lvar("value")), self_assign(loaded, s("true"))),
    )
    created = call(
      registry_ref(assoc.target),
      "create",
      s("hash", s("kwsplat", lvar("attrs")), s("pair", s("sym", fk), self_prop("id"))),
    )
    create_method = s(
      "async",
      f"create_{assoc.name}",
      s("args", s("optarg", "attrs", s("hash"))),
      s(
        "begin",
        self_assign(assoc.name, await_expr(created)),
        s("return", self_prop(cache)),
      ),
    )
    return [getter, setter, create_method]

  def associations_table(self) -> Optional[Node]:
    """Static ``associations`` map consumed by eager loading."""
    if not self.unit.associations:
      return None
    pairs = []
    for assoc in self.unit.associations:
      kind = "belongs_to" if assoc.kind == AssociationKind.POLYMORPHIC else assoc.kind.value
      props: Dict[str, Any] = {"type": kind, "model": assoc.target, "foreignKey": assoc.foreign_key}
      if assoc.kind == AssociationKind.POLYMORPHIC:
        props["polymorphic"] = True
      poly = assoc.options.get("as")
      if poly:
        props["foreignType"] = f"{poly}_type"
        props["ownerType"] = self._owner_name()
      pairs.append(s("pair", s("sym", assoc.name), hash_of(props)))
    return self_assign("associations", s("hash", *pairs))

  def resolve_defaults_method(self) -> Optional[Node]:
    """
    ``_resolveDefaults()`` filling empty ``belongs_to`` keys from their
    ``default:`` lambdas before save.
    """
    statements = []
    for assoc in self.unit.associations:
      default = assoc.options.get("default")
      if assoc.kind != AssociationKind.BELONGS_TO or not is_node(default, "block"):
        continue
      value = self._default_lambda_body(default.children[2])
      statements.append(
        s(
          "if",
          s("send", attribute_ref(assoc.foreign_key), "!"),
          self_assign(assoc.name, await_expr(value)),
          None,
        )
      )
    if not statements:
      return None
    body = statements[0] if len(statements) == 1 else s("begin", *statements)
    return s("async", "_resolveDefaults", s("args"), body)

  def _default_lambda_body(self, node: Any) -> Any:
    """Bare reads become ``this.x`` (awaited for associations); zero-arg chains read properties."""
    if not isinstance(node, Node):
      return node
    if node.kind == "send":
      receiver, method, args = node.children[0], node.children[1], node.children[2:]
      new_args = [self._default_lambda_body(a) for a in args]
      if receiver is None:
        if not args:
          base = self_prop(method)
          if self.unit.association(method) is not None:
            return s("begin", await_expr(base))
          return base
        return s("send", s("self"), method, *new_args)
      new_receiver = self._default_lambda_body(receiver)
      if not args:
        return prop(new_receiver, method)
      return node.updated(children=[new_receiver, method, *new_args])
    return node.updated(children=[self._default_lambda_body(c) for c in node.children])

  def destroy_method(self) -> Optional[Node]:
    """``destroy()`` cascading over ``dependent: :destroy`` associations."""
    dependent = [a for a in self.unit.associations if a.options.get("dependent") == "destroy"]
    if not dependent or "destroy" in self.unit.defined_methods:
      return None
    statements: List[Node] = []
    for assoc in dependent:
      if assoc.is_collection:
        statements.append(
          s(
            "for_of",
            s("lvasgn", "record"),
            await_expr(self_prop(assoc.name)),
            await_expr(call(lvar("record"), "destroy")),
          )
        )
      else:
        statements.append(s("lvasgn", "record", await_expr(self_prop(assoc.name))))
        statements.append(s("if", lvar("record"), await_expr(call(lvar("record"), "destroy")), None))
    statements.append(s("zsuper"))
    return s("async", "destroy", s("args"), s("autoreturn", s("begin", *statements)))

  def attachment_getter(self, name: str, kind: str) -> Node:
    helper = "hasOneAttached" if kind == "has_one_attached" else "hasManyAttached"
    return s("defget", name, s("args"), s("autoreturn", s("send", None, helper, s("self"), s("str", name))))

  def nested_attribute_members(self, name: str, options: Dict[str, Any]) -> List[Node]:
    """Setter buffering ``<name>_attributes`` plus the static registration call."""
    pending = self_prop("_pending_nested_attributes")
    setter = s(
      "def",
      f"{name}_attributes=",
      s("args", s("arg", "value")),
      s(
        "begin",
        s("if", s("send", pending, "!"), self_assign("_pending_nested_attributes", s("hash")), None),
        s("send", pending, f"{name}=", lvar("value")),
      ),
    )
    args: List[Node] = [s("str", name)]
    if options:
      args.append(hash_of(options))
    registration = s("send", const(self._owner_name()), "accepts_nested_attributes_for", *args)
    return [setter, registration]
