"""
Enum Lowering Mixin.

For ``enum :status, [:draft, :published]`` a model receives:

- ``Model.statuses``: a frozen name -> value table.
- ``is_draft`` / ``is_published`` predicate getters, unless the class already
  defines a method of that name.
- ``Model.draft`` / ``Model.published`` static scope getters, unless
  ``scopes: false`` was declared.
- ``draft!`` / ``published!`` methods persisting the new value.
- one ``_enumDefaults`` table for all enums: the first declared value of each.
"""

from typing import List, Optional, Set

from rails2js.core.builders import call, const, literal, self_assign, self_prop
from rails2js.core.metadata import EnumRecord
from rails2js.core.node import Node, s


def predicate_name(method_name: str) -> str:
  return f"is_{method_name}"


def _strip_suffix(name: str) -> str:
  return name[:-1] if name.endswith(("?", "!")) else name


class EnumMixin:
  """
  Generators for enum members. Expects ``self.unit`` to be a model unit.
  """

  def _explicit_names(self) -> Set[str]:
    names = set()
    for name in self.unit.defined_methods:
      base = _strip_suffix(name)
      names.add(base)
      if base.startswith("is_"):
        names.add(base[3:])
    return names

  def enum_members(self, record: EnumRecord) -> List[Node]:
    members: List[Node] = []
    explicit = self._explicit_names()
    table = s("hash", *[s("pair", s("sym", name), literal(value)) for name, value in record.values.items()])
    members.append(self_assign(record.table_name, s("send", const("Object"), "freeze", table)))

    for name, value in record.values.items():
      method_name = record.method_name(name)
      if method_name in explicit:
        continue
      check = s("send", self_prop(record.field), "===", literal(value))
      members.append(s("defget", predicate_name(method_name), s("args"), s("autoreturn", check)))
      if record.scopes:
        query = call(s("self"), "where", s("hash", s("pair", s("sym", record.field), literal(value))))
        members.append(s("defp", s("self"), method_name, s("args"), s("autoreturn", query)))
      update = call(s("self"), "update", s("hash", s("pair", s("sym", record.field), literal(value))))
      members.append(s("async", f"{method_name}!", s("args"), s("autoreturn", s("send", None, "await", update))))
    return members

  def enum_defaults(self) -> Optional[Node]:
    pairs = [
      s("pair", s("sym", record.field), literal(record.default_value)) for record in self.unit.enums if record.values
    ]
    if not pairs:
      return None
    return self_assign("_enumDefaults", s("hash", *pairs))

  def enum_call(self, method: str) -> Optional[Node]:
    """
    Inlines a bare enum predicate or bang call inside the model.

    ``published?`` becomes ``this.status === "published"`` and ``published!``
    becomes ``await this.update({status: "published"})``.
    """
    if not method.endswith(("?", "!")):
      return None
    base = method[:-1]
    for record in self.unit.enums:
      for name, value in record.values.items():
        if record.method_name(name) != base:
          continue
        if method.endswith("?"):
          return s("send", self_prop(record.field), "===", literal(value))
        update = call(s("self"), "update", s("hash", s("pair", s("sym", record.field), literal(value))))
        return s("send", None, "await", update)
    return None

  def enum_scope_names(self) -> List[str]:
    return [record.method_name(name) for record in self.unit.enums if record.scopes for name in record.values]
