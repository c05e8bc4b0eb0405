"""
Controller Filter.

Lowers ``class ArticlesController < ApplicationController`` into an exported
module with one asynchronous function per public action:

1.  Applicable ``before_action`` bodies are inlined ahead of the action body.
2.  Instance variables become locals; request parameters become named
    function parameters.
3.  ``redirect_to``/``render``/``head``/``respond_to`` become result records
    (``{redirect: ...}``, ``{render: ...}``) with an explicit ``return``.
4.  Read-style actions preload to-many associations of the primary record and
    end with a call into the compiled view module.
"""

import logging
from typing import Any, List, Optional

from rails2js.core.bindings import instance_variables, ivar_name
from rails2js.core.builders import await_expr, call, const, lvar, prop
from rails2js.core.bus import UNKNOWN
from rails2js.core.collectors import (
  CONTROLLER_DECLARATIONS,
  collect_controller,
  controller_facts,
  controller_model,
  declaration,
  is_private_marker,
)
from rails2js.core.hooks import register_filter
from rails2js.core.inflector import pluralize, underscore
from rails2js.core.metadata import ModelFacts
from rails2js.core.node import Node, body_statements, const_name, hash_get, hash_pairs, is_call, is_node, make_body, s
from rails2js.core.units import is_controller_class
from rails2js.core.walker import Walker
from rails2js.enums import UnitKind
from rails2js.filters.base import FilterBase, const_references

logger = logging.getLogger(__name__)

# Action names that collide with target-language reserved words.
ACTION_RENAMES = {"new": "$new"}

READ_ACTIONS = frozenset(["show", "edit"])
WRITE_ACTIONS = frozenset(["create", "update", "destroy"])
ID_ACTIONS = frozenset(["show", "edit", "update", "destroy"])

RESULT_KEYS = frozenset(["redirect", "render", "json", "turbo_stream", "head"])

TURBO_STREAM_MIME = "text/vnd.turbo-stream.html"

HTTP_STATUS = {
  "ok": 200,
  "created": 201,
  "accepted": 202,
  "no_content": 204,
  "moved_permanently": 301,
  "found": 302,
  "see_other": 303,
  "not_modified": 304,
  "bad_request": 400,
  "unauthorized": 401,
  "forbidden": 403,
  "not_found": 404,
  "unprocessable_entity": 422,
  "unprocessable_content": 422,
  "internal_server_error": 500,
}

# Constant suffixes that never name a model.
NON_MODEL_SUFFIXES = ("Controller", "Views", "TurboStreams")


def is_params(node: Any) -> bool:
  return is_call(node, "nil", "params") and len(node.children) == 2


def params_key(node: Any) -> Optional[str]:
  """``params[:key]`` -> ``"key"``; None for any other shape."""
  if not is_node(node, "send") or len(node.children) != 3 or node.children[1] != "[]":
    return None
  if not is_params(node.children[0]) or not is_node(node.children[2], "sym", "str"):
    return None
  return str(node.children[2].children[0])


def params_keys(node: Any, found: Optional[List[str]] = None) -> List[str]:
  """Keys read through ``params[...]`` anywhere in ``node``, first-seen order."""
  found = [] if found is None else found
  if not isinstance(node, Node):
    return found
  key = params_key(node)
  if key is not None:
    if key not in found:
      found.append(key)
    return found
  for child in node.children:
    params_keys(child, found)
  return found


def is_strong_params_chain(node: Any) -> bool:
  """``params.require(:x).permit(...)`` and its prefixes."""
  while is_node(node, "send") and node.children[1] in ("require", "permit", "fetch"):
    node = node.children[0]
    if is_params(node):
      return True
  return False


def status_code(node: Any) -> Node:
  """``:unprocessable_entity`` -> ``422``; other values pass through."""
  if is_node(node, "sym") and node.children[0] in HTTP_STATUS:
    return s("int", HTTP_STATUS[node.children[0]])
  return node


def is_result_record(node: Any) -> bool:
  return is_node(node, "hash") and any(key in RESULT_KEYS for key, _ in hash_pairs(node))


def explicit_returns(node: Any) -> Any:
  """
  Prefixes result records in statement position with ``return``.

  A leading-brace literal would otherwise print as a block. Descends into
  statement sequences and both branches of conditionals.
  """
  if is_result_record(node):
    return s("return", node)
  if is_node(node, "begin", "autoreturn"):
    return node.updated(children=[explicit_returns(c) for c in node.children])
  if is_node(node, "if"):
    cond, then_branch, else_branch = node.children
    return node.updated(children=[cond, explicit_returns(then_branch), explicit_returns(else_branch)])
  return node


def accept_header() -> Node:
  headers = prop(prop(lvar("context"), "request"), "headers")
  return s("or", prop(headers, "accept"), s("str", ""))


def accepts_turbo_stream() -> Node:
  return call(s("begin", accept_header()), "includes", s("str", TURBO_STREAM_MIME))


def format_name(node: Any) -> Optional[str]:
  """``format.html { }`` / ``format.turbo_stream`` -> the format name."""
  head = node.children[0] if is_node(node, "block") else node
  if is_node(head, "send") and is_node(head.children[0], "lvar"):
    return head.children[1]
  return None


class ActionBodyRewriter(Walker):
  """
  Rewrites one action (or inlined precondition) body into its function form.
  """

  def __init__(self, controller: "ControllerFilter", action: str):
    self.controller = controller
    self.action = action

  def on_ivar(self, node: Node) -> Node:
    return lvar(ivar_name(node.children[0]))

  def on_ivasgn(self, node: Node) -> Node:
    return s("lvasgn", ivar_name(node.children[0]), *self.process_all(node.children[1:]))

  def on_send(self, node: Node) -> Any:
    receiver, method, args = node.children[0], node.children[1], list(node.children[2:])
    if receiver is None and method == "redirect_to":
      return self.redirect_to(args)
    if receiver is None and method == "render":
      lowered = self.render(args)
      if lowered is not None:
        return lowered
    if receiver is None and method == "head" and args:
      return s("hash", s("pair", s("sym", "head"), status_code(args[0])))

    key = params_key(node)
    if key is not None:
      return lvar(key)
    if method == "expect" and is_params(receiver) and args:
      if is_node(args[0], "sym", "str"):
        return lvar(str(args[0].children[0]))
      return lvar("params")
    if receiver is None and isinstance(method, str) and method.endswith("_params") and not args:
      return self.strong_params(method)
    if is_strong_params_chain(node):
      return lvar("params")
    return super().on_send(node)

  def on_block(self, node: Node) -> Any:
    if is_call(node.children[0], "nil", "respond_to"):
      return self.respond_to(node.children[2])
    return self.process_children(node)

  # -- parameters -----------------------------------------------------------

  def strong_params(self, method: str) -> Node:
    """Inlines the private ``*_params`` method, or reads the whole bag."""
    definition = self.controller.unit.private_methods.get(method)
    if definition is None or definition.children[2] is None:
      return lvar("params")
    return self.process(definition.children[2])

  # -- results --------------------------------------------------------------

  def redirect_to(self, args: List[Any]) -> Node:
    if not args:
      return s("hash", s("pair", s("sym", "redirect"), s("str", "/")))
    pairs = [s("pair", s("sym", "redirect"), self.redirect_path(args[0]))]
    options = args[1] if len(args) > 1 and is_node(args[1], "hash") else None
    for flash in ("notice", "alert"):
      value = hash_get(options, flash)
      if value is not None:
        pairs.append(s("pair", s("sym", flash), self.process(value)))
    status = hash_get(options, "status")
    if status is not None:
      pairs.append(s("pair", s("sym", "status"), status_code(status)))
    return s("hash", *pairs)

  def redirect_path(self, target: Any) -> Any:
    if is_node(target, "ivar", "lvar"):
      name = ivar_name(target.children[0])
      return s("dstr", s("str", f"/{pluralize(name)}/"), s("begin", prop(lvar(name), "id")))
    if is_call(target, "nil") and isinstance(target.children[1], str) and target.children[1].endswith("_path"):
      resource = target.children[1][: -len("_path")]
      helper_args = target.children[2:]
      if not helper_args:
        return s("str", "/" if resource == "root" else f"/{resource}")
      if len(helper_args) == 1 and is_node(helper_args[0], "ivar", "lvar"):
        name = ivar_name(helper_args[0].children[0])
        return s("dstr", s("str", f"/{pluralize(resource)}/"), s("begin", prop(lvar(name), "id")))
    return self.process(target)

  def render(self, args: List[Any]) -> Optional[Node]:
    if not args:
      return None
    first = args[0]
    options = first if is_node(first, "hash") else (args[1] if len(args) > 1 and is_node(args[1], "hash") else None)
    pairs = []
    if is_node(first, "sym", "str"):
      key = self.controller.model_key
      pairs.append(s("pair", s("sym", "render"), self.controller.view_call(str(first.children[0]), [key])))
    elif hash_get(options, "json") is not None:
      pairs.append(s("pair", s("sym", "json"), self.process(hash_get(options, "json"))))
    else:
      return None
    status = hash_get(options, "status")
    if status is not None:
      pairs.append(s("pair", s("sym", "status"), status_code(status)))
    return s("hash", *pairs)

  # -- respond_to -----------------------------------------------------------

  def respond_to(self, body: Any) -> Any:
    """
    Collapses ``respond_to`` into its HTML branch, dispatching on the Accept
    header when a turbo-stream branch exists.
    """
    if is_node(body, "if"):
      cond, then_branch, else_branch = body.children
      return body.updated(children=[self.process(cond), self.respond_to(then_branch), self.respond_to(else_branch)])
    if is_node(body, "block"):
      return self.process(body.children[2]) if format_name(body) in ("html", "turbo_stream") else self.process(body)
    if is_node(body, "send") and format_name(body) == "turbo_stream":
      return self.turbo_stream_template()
    if not is_node(body, "begin"):
      return self.process(body)

    html, stream, template = None, None, False
    for child in body.children:
      fmt = format_name(child)
      if is_node(child, "block") and fmt == "html":
        html = child
      elif is_node(child, "block") and fmt == "turbo_stream":
        stream = child
      elif is_node(child, "send") and fmt == "turbo_stream":
        template = True

    if template:
      stream_result = self.turbo_stream_template()
      if html is None:
        return stream_result
      return s("if", accepts_turbo_stream(), stream_result, self.process(html.children[2]))
    if html is not None and stream is not None:
      return s("if", accepts_turbo_stream(), self.process(stream.children[2]), self.process(html.children[2]))
    if html is not None:
      return self.process(html.children[2])
    if stream is not None:
      return self.process(stream.children[2])
    return body.updated(children=[self.respond_to(c) for c in body.children])

  def turbo_stream_template(self) -> Node:
    """``{turbo_stream: ArticleTurboStreams.create({$context, article})}``."""
    controller = self.controller
    controller.unit.extras["needs_turbo_streams"] = True
    key = controller.model_key
    props = s("hash", s("pair", s("sym", "$context"), lvar("context")), s("pair", s("sym", key), lvar(key)))
    action = ACTION_RENAMES.get(self.action, self.action)
    return s("hash", s("pair", s("sym", "turbo_stream"), call(const(controller.turbo_module), action, props)))


@register_filter("controller", order=20)
class ControllerFilter(FilterBase):
  """
  Lowers controller classes into modules of async action functions.
  """

  def on_class(self, node: Node) -> Any:
    if not is_controller_class(node) or self.unit is not None:
      return self.process_children(node)
    name_node, superclass, body = node.children
    name = const_name(name_node)

    with self.unit_scope(name, UnitKind.CONTROLLER, const_name(superclass)) as unit:
      collect_controller(body, unit)
      model = controller_model(name)
      unit.extras["model"] = model
      self.context.bus.register(controller_facts(unit, model))
      self.context.tracer.log_bus_write(name, UnitKind.CONTROLLER.value)

      new_body = self.transform_controller_body(body)
      exported = s("export", s("module", name_node, new_body))
      self.carry_comments(node, exported)
      imports = self.controller_imports(new_body)
      return s("begin", *imports, exported) if imports else exported

  # -- naming ---------------------------------------------------------------

  @property
  def model(self) -> str:
    return self.unit.extras["model"]

  @property
  def model_key(self) -> str:
    return underscore(self.model)

  @property
  def resource_plural(self) -> str:
    base = self.unit.name.split("::")[-1]
    return underscore(base[: -len("Controller")] if base.endswith("Controller") else base)

  @property
  def views_module(self) -> str:
    return f"{self.model}Views"

  @property
  def turbo_module(self) -> str:
    return f"{self.model}TurboStreams"

  def view_call(self, action: str, names: List[str]) -> Node:
    """``ArticleViews.show({$context: context, article})``."""
    self.unit.extras["needs_views"] = True
    pairs = [s("pair", s("sym", "$context"), lvar("context"))]
    pairs.extend(s("pair", s("sym", name), lvar(name)) for name in names)
    return call(const(self.views_module), ACTION_RENAMES.get(action, action), s("hash", *pairs))

  # -- body assembly --------------------------------------------------------

  def transform_controller_body(self, body: Any) -> Optional[Node]:
    members: List[Any] = []
    in_private = False
    for stmt in body_statements(body):
      if stmt is None:
        continue
      if is_private_marker(stmt):
        in_private = True
        continue
      call_node = declaration(stmt)
      if is_node(stmt, "send") and call_node is not None and call_node.children[1] in CONTROLLER_DECLARATIONS:
        continue
      if is_node(stmt, "def"):
        if not in_private:
          members.append(self.carry_comments(stmt, self.action_function(stmt)))
        continue
      members.append(self.process(stmt))
    return make_body(members)

  def action_function(self, node: Node) -> Node:
    """Assembles one action: guards, body, preloads, view call, returns."""
    action, _, body = node.children
    unit = self.unit
    guard_bodies = []
    for guard in unit.guards:
      definition = unit.private_methods.get(guard.method)
      if guard.admits(action) and definition is not None:
        guard_bodies.append(definition.children[2])

    keys: List[str] = []
    ivars = set()
    for source in [*guard_bodies, body]:
      params_keys(source, keys)
      ivars.update(instance_variables(source))
    locals_ = sorted(ivars)

    rewriter = ActionBodyRewriter(self, action)
    statements: List[Any] = []
    for guard_body in guard_bodies:
      statements.extend(body_statements(rewriter.process(guard_body)))
    statements.extend(body_statements(rewriter.process(body)))

    if action not in WRITE_ACTIONS:
      if action in READ_ACTIONS:
        statements.extend(self.association_preloads(locals_))
      statements.append(self.view_call(action, locals_))

    assembled = make_body(statements) or s("nil")
    colored = self.colorer(extra_models=[self.model]).process(assembled)
    logger.debug("controller: assembled %s#%s with %d guard(s)", unit.name, action, len(guard_bodies))
    return s(
      "asyncs",
      s("self"),
      ACTION_RENAMES.get(action, action),
      self.action_params(action, keys),
      s("autoreturn", explicit_returns(colored)),
    )

  def action_params(self, action: str, keys: List[str]) -> Node:
    """``context``, inferred parameter keys, then the positional id/params."""
    params = [s("arg", "context")]
    params.extend(s("arg", key) for key in sorted(keys) if key != "id")
    if action in ID_ACTIONS or (action not in WRITE_ACTIONS and "id" in keys):
      params.append(s("arg", "id"))
    if action in ("create", "update"):
      params.append(s("arg", "params"))
    return s("args", *params)

  def association_preloads(self, locals_: List[str]) -> List[Node]:
    """``article.comments = await article.comments`` for each to-many association."""
    key = self.model_key
    if key not in locals_:
      return []
    facts = self.context.bus.model(self.model)
    if facts is UNKNOWN:
      self.context.tracer.log_bus_miss(self.model, "no association preloads")
    if not isinstance(facts, ModelFacts):
      return []
    return [
      s("send", lvar(key), f"{assoc.name}=", await_expr(prop(lvar(key), assoc.name)))
      for assoc in facts.associations
      if assoc.is_collection
    ]

  # -- imports --------------------------------------------------------------

  def controller_imports(self, body: Any) -> List[Node]:
    imports = self.imports_for_models(sorted(self.model_references(body)))
    if self.unit.extras.get("needs_views"):
      imports.append(s("import", self.view_path(self.resource_plural), self.views_module))
    if self.unit.extras.get("needs_turbo_streams"):
      imports.append(s("import", self.view_path(f"{self.resource_plural}_turbo_streams"), self.turbo_module))
    return imports

  def model_references(self, body: Any) -> List[str]:
    """
    Constants in the rewritten body treated as models.

    Unknown constants are imported too: a missing import of a real model
    breaks the module, while a stray one only names an absent export.
    """
    oracle = self.colorer(extra_models=[self.model]).oracle
    return [
      name
      for name in const_references(body)
      if not name.endswith(NON_MODEL_SUFFIXES) and oracle.is_model(name)
    ]
