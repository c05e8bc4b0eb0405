"""
Scope Lowering Mixin.

``scope :published, -> { where(status: "published") }`` becomes a static
getter (``defp``) because the lambda takes no parameters, while
``scope :by, ->(user) { where(user: user) }`` becomes a static method
(``defs``). Inside scope bodies receiver-less calls target the class, and
references to other zero-parameter scopes (including enum scopes) read as
properties.
"""

from typing import Any, List

from rails2js.core.builders import prop
from rails2js.core.metadata import ScopeRecord
from rails2js.core.node import Node, is_node, s


class ScopeMixin:
  """
  Generators for scope members. Expects ``self.unit`` to be a model unit.
  """

  def getter_scope_names(self) -> List[str]:
    """Scopes lowered to static getters: zero-parameter and enum scopes."""
    names = [scope.name for scope in self.unit.scopes if scope.is_property]
    names.extend(self.enum_scope_names())
    return names

  def scope_member(self, scope: ScopeRecord) -> Node:
    body = self.transform_scope_body(scope.body) if scope.body is not None else s("nil")
    if scope.is_property:
      return s("defp", s("self"), scope.name, s("args"), s("autoreturn", body))
    params = s("args", *[s("arg", p) for p in scope.params])
    return s("defs", s("self"), scope.name, params, s("autoreturn", body))

  def transform_scope_body(self, node: Any) -> Any:
    """
    Rewrites a captured scope lambda body.

    ``arel_table[:c]`` collapses to the column name; implicit-self calls get
    an explicit ``self`` receiver; zero-argument getter scope references
    become property reads.
    """
    if not isinstance(node, Node):
      return node
    if node.kind != "send":
      return node.updated(children=[self.transform_scope_body(c) for c in node.children])

    receiver, method, args = node.children[0], node.children[1], node.children[2:]
    if (
      method == "[]"
      and is_node(receiver, "send")
      and receiver.children[0] is None
      and receiver.children[1] == "arel_table"
      and len(args) == 1
      and is_node(args[0], "sym")
    ):
      return s("str", args[0].children[0])

    new_receiver = s("self") if receiver is None else self.transform_scope_body(receiver)
    new_args = [self.transform_scope_body(a) for a in args]
    if not new_args and method in self.getter_scope_names():
      return prop(new_receiver, method)
    return node.updated(children=[new_receiver, method, *new_args])
