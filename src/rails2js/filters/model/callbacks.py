"""
Callback Lowering Mixin.

Two registration styles are supported:

- Named methods (``before_save :normalize``) produce one invoker method per
  phase calling each registered method in order. Private methods used as
  callbacks are kept, with bare attribute reads made explicit on ``this``.
- Blocks (``after_create_commit do ... end``) become a static registration
  ``Model.after_create_commit(($record) => ...)``. Inside the body, ``self``
  and record attributes are read from the explicit ``$record`` parameter and
  association reads are awaited, which makes the closure asynchronous.
"""

import re
from typing import Any, Dict, List, Optional

from rails2js.core.builders import arrow, await_expr, call, const, prop
from rails2js.core.coloring import contains_await
from rails2js.core.collectors import CALLBACK_PHASES
from rails2js.core.node import Node, is_node, s

RECORD_PARAM = "$record"

# Receiver-less calls that are never attribute reads.
BARE_SEND_EXCEPTIONS = frozenset(
  [
    "puts",
    "print",
    "raise",
    "fail",
    "return",
    "break",
    "next",
    "lambda",
    "proc",
    "loop",
    "Array",
    "Hash",
    "String",
    "Integer",
    "Float",
    "freeze_time",
    "travel_to",
    "travel_back",
  ]
)

_METHOD_NAME = re.compile(r"\A[a-z_]")


def record_ref() -> Node:
  return s("lvar", RECORD_PARAM)


def rewrite_bare_sends(node: Any, locals_: List[str]) -> Any:
  """
  Gives receiver-less calls an explicit ``self`` receiver.

  Names bound as locals (parameters, assignments, block arguments) and the
  :data:`BARE_SEND_EXCEPTIONS` are left alone.
  """
  if not isinstance(node, Node):
    return node
  if node.kind == "send":
    receiver, method, args = node.children[0], node.children[1], node.children[2:]
    if (
      receiver is None
      and method not in locals_
      and method not in BARE_SEND_EXCEPTIONS
      and isinstance(method, str)
      and _METHOD_NAME.match(method)
    ):
      return node.updated(children=[s("self"), method, *[rewrite_bare_sends(a, locals_) for a in args]])
  elif node.kind == "lvasgn":
    locals_ = [*locals_, node.children[0]]
  elif node.kind == "block":
    head, params, body = node.children
    block_locals = list(locals_)
    if is_node(params, "args"):
      block_locals.extend(p.children[0] for p in params.children if is_node(p) and p.children)
    return node.updated(children=[rewrite_bare_sends(head, locals_), params, rewrite_bare_sends(body, block_locals)])
  return node.updated(children=[rewrite_bare_sends(c, locals_) for c in node.children])


def is_record_attribute(method: str) -> bool:
  """Conventional attribute readers: ``id``, foreign keys and timestamps."""
  return method == "id" or method.endswith("_id") or method.endswith("_at")


class CallbackMixin:
  """
  Generators for lifecycle callbacks. Expects ``self.unit`` to be a model unit.
  """

  def callback_phases(self) -> Dict[str, List[str]]:
    """Phase -> registered method names, in declaration order."""
    phases: Dict[str, List[str]] = {}
    for record in self.unit.callbacks:
      if record.method is not None:
        phases.setdefault(record.phase, []).append(record.method)
    return phases

  def callback_invokers(self) -> List[Node]:
    invokers = []
    for phase, methods in self.callback_phases().items():
      calls = [call(s("self"), name) for name in methods]
      body = calls[0] if len(calls) == 1 else s("begin", *calls)
      invokers.append(s("defm", phase, s("args"), body))
    return invokers

  def callback_methods(self) -> List[Node]:
    """Private methods registered as callbacks, rewritten to explicit ``this`` reads."""
    registered = {name for names in self.callback_phases().values() for name in names}
    methods = []
    for name, node in self.unit.private_methods.items():
      if name not in registered:
        continue
      params = node.children[1]
      locals_ = [p.children[0] for p in params.children if is_node(p) and p.children] if is_node(params, "args") else []
      body = rewrite_bare_sends(node.children[2], locals_)
      methods.append(s("defm", name, params, body))
    return methods

  def is_callback_block(self, node: Node) -> bool:
    head = node.children[0] if node.children else None
    return is_node(head, "send") and head.children[0] is None and head.children[1] in CALLBACK_PHASES

  def callback_registration(self, phase: str, body: Any) -> Node:
    """
    ``Model.<phase>((async) ($record) => body)``.

    The body is rewritten against ``$record``, passed through the model's own
    hooks (broadcast lowering), then await-colored.
    """
    self.unit.uses_associations = False
    self.unit.in_callback = True
    try:
      rewritten = self.transform_callback_body(body)
      processed = self.process(rewritten)
    finally:
      self.unit.in_callback = False
    colored = self.color(processed)
    is_async = self.unit.uses_associations or contains_await(colored)
    closure = arrow([RECORD_PARAM], colored, is_async=is_async)
    return s("send", const(self._owner_name()), phase, closure)

  def transform_callback_body(self, node: Any) -> Any:
    if not isinstance(node, Node):
      return node
    if node.kind == "self":
      return record_ref()
    if node.kind in ("lvar", "ivar"):
      return node
    if node.kind != "send":
      return node.updated(children=[self.transform_callback_body(c) for c in node.children])

    receiver, method, args = node.children[0], node.children[1], node.children[2:]
    new_args = [self.transform_callback_body(a) for a in args]
    if receiver is None or is_node(receiver, "self"):
      association = self._callback_association(method)
      if association is not None and not args:
        return association
      if receiver is None:
        if is_record_attribute(method) and not args:
          return prop(record_ref(), method)
        if method == "broadcast_json_to":
          return node.updated(children=[record_ref(), method, *new_args])
        return node.updated(children=[None, method, *new_args])
      if not args:
        return prop(record_ref(), method)
      return node.updated(children=[record_ref(), method, *new_args])
    return node.updated(children=[self.transform_callback_body(receiver), method, *new_args])

  def _callback_association(self, method: str) -> Optional[Node]:
    if self.unit.association(method) is None:
      return None
    self.unit.uses_associations = True
    return s("begin", await_expr(prop(record_ref(), method)))
