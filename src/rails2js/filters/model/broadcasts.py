"""
Real-time Broadcast Lowering Mixin.

Handles both forms of turbo-stream broadcasting found in models:

- ``broadcasts_to ->(record) { stream }, inserts_by: :prepend`` declares
  three commit callbacks (create: append/prepend, update: replace,
  destroy: remove).
- Explicit ``broadcast_<action>_to(channel, target:, partial:, locals:)``
  calls, usually inside callbacks. ``_later`` variants are deferred with
  ``setTimeout``.

Every broadcast becomes ``BroadcastChannel.broadcast(channel, html)`` where
``html`` is a ``<turbo-stream>`` template string. Rendered content comes from
the model's partial, imported as ``render``.
"""

from typing import Any, Dict, List, Optional

from rails2js.core.builders import arrow, await_expr, const, hash_of, lvar, prop
from rails2js.core.collectors import lambda_params, trailing_options
from rails2js.core.inflector import pluralize, underscore
from rails2js.core.node import Node, is_node, s
from rails2js.filters.model.callbacks import RECORD_PARAM, record_ref

BROADCAST_TO_ACTION = {
  "broadcast_replace_to": "replace",
  "broadcast_replace_later_to": "replace",
  "broadcast_append_to": "append",
  "broadcast_append_later_to": "append",
  "broadcast_prepend_to": "prepend",
  "broadcast_prepend_later_to": "prepend",
  "broadcast_update_to": "update",
  "broadcast_update_later_to": "update",
  "broadcast_remove_to": "remove",
  "broadcast_remove_later_to": "remove",
  "broadcast_before_to": "before",
  "broadcast_after_to": "after",
}

BROADCAST_METHODS = frozenset([*BROADCAST_TO_ACTION, "broadcast_json_to"])

# Minimal render context for partials rendered outside a request.
_BROADCAST_CONTEXT = {"authenticityToken": "", "flash": {}, "contentFor": {}}


def _stream(action: str, target: Any, content: Optional[Node] = None) -> Node:
  """``<turbo-stream action=... target=...>`` template string."""
  if isinstance(target, str):
    head = [s("str", f'<turbo-stream action="{action}" target="{target}"')]
  else:
    head = [s("str", f'<turbo-stream action="{action}" target="'), s("begin", target), s("str", '"')]
  if content is None:
    tail = [s("str", "></turbo-stream>")]
  else:
    tail = [s("str", "><template>"), s("begin", content), s("str", "</template></turbo-stream>")]
  return _merge_strings(s("dstr", *head, *tail))


def _merge_strings(dstr: Node) -> Node:
  parts: List[Node] = []
  for part in dstr.children:
    if parts and is_node(part, "str") and is_node(parts[-1], "str"):
      parts[-1] = s("str", parts[-1].children[0] + part.children[0])
    else:
      parts.append(part)
  if len(parts) == 1:
    return parts[0]
  return dstr.updated(children=parts)


def uses_broadcasts(node: Any) -> bool:
  if not isinstance(node, Node):
    return False
  if node.kind == "send" and len(node.children) > 1 and node.children[1] in BROADCAST_METHODS:
    return True
  return any(uses_broadcasts(c) for c in node.children)


def broadcast_partials(node: Any, found: Optional[List[str]] = None) -> List[str]:
  """``partial:`` paths of explicit broadcast calls, first-seen order."""
  found = [] if found is None else found
  if not isinstance(node, Node):
    return found
  if node.kind == "send" and len(node.children) > 1 and node.children[1] in BROADCAST_METHODS:
    partial = trailing_options(list(node.children[2:])).get("partial")
    if isinstance(partial, str) and partial not in found:
      found.append(partial)
  for child in node.children:
    broadcast_partials(child, found)
  return found


class BroadcastMixin:
  """
  Generators for broadcast callbacks. Expects ``self.unit`` to be a model unit.
  """

  def _model_key(self) -> str:
    return underscore(self._owner_name())

  def model_partial(self) -> str:
    """Conventional partial of the model: ``Article`` -> ``articles/article``."""
    key = self._model_key()
    return f"{pluralize(key)}/{key}"

  def _receiver(self) -> Node:
    return record_ref() if self.unit.in_callback else s("self")

  def broadcast_call(self, method: str, args: List[Any]) -> Optional[Node]:
    """Lowers one explicit ``broadcast_*_to`` call, or None to leave it alone."""
    action = BROADCAST_TO_ACTION.get(method)
    if action is None or not args:
      return None
    self.unit.extras["uses_broadcast"] = True
    channel, target, partial, local_values = args[0], None, None, None
    for arg in args[1:]:
      if not is_node(arg, "hash"):
        continue
      for pair in arg.children:
        if not is_node(pair, "pair"):
          continue
        key = pair.children[0].children[0] if is_node(pair.children[0], "sym", "str") else None
        if key == "target":
          target = pair.children[1]
        elif key == "partial":
          partial = pair.children[1]
        elif key == "locals":
          local_values = pair.children[1]

    html = self._explicit_stream(action, target, partial, local_values)
    broadcast = s("send", const("BroadcastChannel"), "broadcast", self.process(channel), html)
    if "_later" in method:
      return s("send", None, "setTimeout", arrow([], broadcast), s("int", 0))
    return broadcast

  def _static_target(self, target: Any) -> Optional[str]:
    if is_node(target, "str", "sym"):
      return str(target.children[0])
    return None

  def _explicit_stream(self, action: str, target: Any, partial: Any, local_values: Any) -> Node:
    receiver = self._receiver()
    static = self._static_target(target)
    if action == "remove":
      if static is not None:
        return _stream(action, static)
      if target is not None:
        return _stream(action, self.process(target))
      dom_id = s("dstr", s("str", f"{self._model_key()}_"), s("begin", prop(receiver, "id")))
      return _stream(action, dom_id)

    if is_node(partial, "str"):
      content = self._partial_render(local_values, receiver)
    else:
      content = s("send", receiver, "toHTML")
    return _stream(action, static if static is not None else self.process(target), content)

  def _partial_render(self, local_values: Any, receiver: Node) -> Node:
    pairs = []
    if is_node(local_values, "hash"):
      for pair in local_values.children:
        if not is_node(pair, "pair"):
          continue
        key, value = pair.children
        pairs.append(s("pair", key, receiver if is_node(value, "self") else self.process(value)))
    return s("send", None, "render", s("hash"), s("hash", *pairs))

  # -- broadcasts_to --------------------------------------------------------

  def broadcasts_to_callbacks(self, declaration: Node) -> List[Node]:
    """The three commit callbacks declared by one ``broadcasts_to``."""
    args = list(declaration.children[2:])
    stream_lambda = args[0]
    params = lambda_params(stream_lambda)
    options = trailing_options(args[1:])
    stream = self._stream_expression(stream_lambda.children[2], params[0] if params else None)

    create_action = "prepend" if options.get("inserts_by") == "prepend" else "append"
    target = options.get("target") or pluralize(self._model_key())
    return [
      self._broadcast_callback("after_create_commit", create_action, stream, str(target)),
      self._broadcast_callback("after_update_commit", "replace", stream, None),
      self._broadcast_callback("after_destroy_commit", "remove", stream, None),
    ]

  def _stream_expression(self, node: Any, param: Optional[str]) -> Any:
    """Rebinds the lambda parameter (and bare attribute reads) to ``$record``."""
    if not isinstance(node, Node):
      return node
    if node.kind == "lvar":
      return record_ref() if param is not None and node.children[0] == param else node
    if node.kind == "send" and node.children[0] is None:
      return prop(record_ref(), node.children[1])
    return node.updated(children=[self._stream_expression(c, param) for c in node.children])

  def _broadcast_callback(self, phase: str, action: str, stream: Any, target: Optional[str]) -> Node:
    receiver = record_ref()
    dom_id = s("dstr", s("str", f"{self._model_key()}_"), s("begin", prop(receiver, "id")))
    if action == "remove":
      html = _stream(action, dom_id)
    else:
      render_context: Dict[str, Any] = {"$context": hash_of(_BROADCAST_CONTEXT), self._model_key(): receiver}
      content = await_expr(s("send", None, "render", hash_of(render_context)))
      html = _stream(action, target if target is not None else dom_id, content)
    broadcast = s("send", const("BroadcastChannel"), "broadcast", stream, html)
    closure = arrow([RECORD_PARAM], broadcast, is_async=action != "remove")
    return s("send", const(self._owner_name()), phase, closure)

  def render_partial_assignment(self) -> Node:
    """``Model.renderPartial = render`` so other models can broadcast this one."""
    return s("send", const(self._owner_name()), "renderPartial=", lvar("render"))

  def partial_import_path(self, partial: str) -> str:
    """``messages/message`` -> ``../views/messages/_message.js``."""
    parts = partial.split("/")
    return self.view_path("/".join([*parts[:-1], f"_{parts[-1]}"]))
