"""
Routes Filter.

Lowers ``Rails.application.routes.draw do ... end`` into the application's
router setup module:

- ``Router.root``/``Router.resources``/``Router.<verb>`` registration calls.
- One exported path helper function per named route (``article_path(a)``).
- ``setupFormHandlers`` configuration and ``Application.configure``.

The resolved routes and helper names are published on the metadata bus so
views can import path helpers from this module.
"""

import logging
from typing import Any, Dict, List, Optional, Tuple

from rails2js.core.builders import const, lvar, prop
from rails2js.core.collectors import name_list
from rails2js.core.hooks import register_filter
from rails2js.core.inflector import camelize, singularize, underscore
from rails2js.core.metadata import RouteRecord, RoutesFacts
from rails2js.core.node import Node, body_statements, hash_pairs, is_call, is_node, s
from rails2js.core.units import is_routes_block
from rails2js.enums import ImportMode, UnitKind
from rails2js.filters.base import FilterBase
from rails2js.filters.controller import ACTION_RENAMES

logger = logging.getLogger(__name__)

# (action, verb, suffix) for plural and singular resources.
RESOURCE_ROUTES = [
  ("index", "GET", ""),
  ("new", "GET", "/new"),
  ("create", "POST", ""),
  ("show", "GET", "/:id"),
  ("edit", "GET", "/:id/edit"),
  ("update", "PATCH", "/:id"),
  ("destroy", "DELETE", "/:id"),
]
SINGULAR_RESOURCE_ROUTES = [
  ("show", "GET", ""),
  ("new", "GET", "/new"),
  ("create", "POST", ""),
  ("edit", "GET", "/edit"),
  ("update", "PATCH", ""),
  ("destroy", "DELETE", ""),
]

VERBS = ("get", "post", "patch", "put", "delete")


def controller_class(resource: str) -> str:
  """``blog_posts`` -> ``BlogPostsController``."""
  return f"{camelize(resource)}Controller"


def split_target(target: str) -> Tuple[str, str]:
  """``"articles#index"`` -> ``("articles", "index")``."""
  controller, _, action = target.partition("#")
  return controller, action or "index"


class RoutesCollector:
  """
  Resolves the routes DSL into route records, path helpers and the nested
  resource tree used for router registration.
  """

  def __init__(self) -> None:
    self.routes: List[RouteRecord] = []
    self.helpers: Dict[str, Tuple[str, List[str]]] = {}
    self.resources: List[Dict[str, Any]] = []
    self.verb_routes: List[Tuple[str, str, str, str]] = []
    self.root: Optional[str] = None
    self.root_controller: Optional[str] = None
    self._nesting: List[Tuple[str, str]] = []
    self._scopes: List[Dict[str, Any]] = []

  def collect(self, body: Any) -> "RoutesCollector":
    for stmt in body_statements(body):
      if is_call(stmt, "nil"):
        self._statement(stmt.children[1], list(stmt.children[2:]), None)
      elif is_node(stmt, "block") and is_call(stmt.children[0], "nil"):
        head = stmt.children[0]
        self._statement(head.children[1], list(head.children[2:]), stmt.children[2])
    return self

  def _statement(self, method: str, args: List[Any], body: Any) -> None:
    if method == "root":
      self._root(args)
    elif method in VERBS:
      self._verb(method, args)
    elif method == "resources":
      self._resources(args, body)
    elif method == "resource":
      self._singular_resource(args, body)
    elif method in ("member", "collection") and body is not None and self._scopes:
      self._member_routes(method, body)
    else:
      logger.debug("routes: skipping '%s'", method)

  # -- entries --------------------------------------------------------------

  def _add(self, verb: str, path: str, resource: str, action: str, helper: Optional[str] = None) -> None:
    self.routes.append(
      RouteRecord(
        verb=verb,
        path=path,
        controller=controller_class(resource),
        action=ACTION_RENAMES.get(action, action),
        helper=helper,
      )
    )

  def _helper(self, name: str, path: str, params: List[str]) -> None:
    self.helpers.setdefault(name, (path, params))

  def _target(self, args: List[Any]) -> Optional[str]:
    for arg in args:
      if is_node(arg, "str"):
        return arg.children[0]
      for key, value in hash_pairs(arg):
        if key == "to" and is_node(value, "str"):
          return value.children[0]
    return None

  def _root(self, args: List[Any]) -> None:
    target = self._target(args)
    if target is None:
      return
    resource, action = split_target(target)
    self.root = f"/{resource}"
    self.root_controller = controller_class(resource)
    self._add("GET", "/", resource, action, "root_path")
    self._helper("root_path", "/", [])

  def _verb(self, verb: str, args: List[Any]) -> None:
    path, target, alias = None, None, None
    for arg in args:
      if is_node(arg, "str", "sym") and path is None:
        path = "/" + str(arg.children[0]).lstrip("/")
      for key, value in hash_pairs(arg):
        if key == "to" and is_node(value, "str"):
          target = value.children[0]
        elif key == "as" and is_node(value, "sym", "str"):
          alias = str(value.children[0])
        elif isinstance(key, str) and key.startswith("/") and is_node(value, "str"):
          # get "/login" => "sessions#new"
          path, target = key, value.children[0]
    if path is None or target is None:
      return
    resource, action = split_target(target)
    helper = f"{alias}_path" if alias else None
    self._add(verb.upper(), path, resource, action, helper)
    self.verb_routes.append((verb, path, controller_class(resource), ACTION_RENAMES.get(action, action)))
    if helper:
      self._helper(helper, path, [])

  def _options(self, args: List[Any]) -> Tuple[Optional[List[str]], List[str]]:
    only, except_ = None, []
    for arg in args[1:]:
      for key, value in hash_pairs(arg):
        if key == "only":
          only = name_list(value)
        elif key == "except":
          except_ = name_list(value)
    return only, except_

  def _prefix(self) -> str:
    return "".join(f"/{name}/:{param}" for name, param in self._nesting)

  def _nesting_params(self) -> List[str]:
    return [param[: -len("_id")] for _, param in self._nesting]

  # -- resources ------------------------------------------------------------

  def _resources(self, args: List[Any], body: Any) -> None:
    if not args or not is_node(args[0], "sym", "str"):
      return
    name = str(args[0].children[0])
    singular = singularize(name)
    only, except_ = self._options(args)
    actions = [a for a, _, _ in RESOURCE_ROUTES if (only is None or a in only) and a not in except_]
    resource_path = f"{self._prefix()}/{name}"

    info = {"name": name, "controller": controller_class(name), "only": only, "nested": []}
    (self._scopes[-1]["nested"] if self._scopes else self.resources).append(info)

    params = self._nesting_params()
    collection_helper = f"{name}_path" if singular != name else f"{name}_index_path"
    for action, verb, suffix in RESOURCE_ROUTES:
      if action not in actions:
        continue
      if action in ("index", "create"):
        helper = collection_helper
      elif action == "new":
        helper = f"new_{singular}_path"
      elif action == "edit":
        helper = f"edit_{singular}_path"
      else:
        helper = f"{singular}_path"
      self._add(verb, f"{resource_path}{suffix}", name, action, helper)

    if "index" in actions or "create" in actions:
      self._helper(collection_helper, resource_path, params)
    if "new" in actions:
      self._helper(f"new_{singular}_path", f"{resource_path}/new", params)
    if {"show", "update", "destroy"} & set(actions):
      self._helper(f"{singular}_path", f"{resource_path}/:id", [*params, singular])
    if "edit" in actions:
      self._helper(f"edit_{singular}_path", f"{resource_path}/:id/edit", [*params, singular])

    if body is not None:
      self._nested(info, name, f"{singular}_id", resource_path, singular, body)

  def _singular_resource(self, args: List[Any], body: Any) -> None:
    if not args or not is_node(args[0], "sym", "str"):
      return
    name = str(args[0].children[0])
    only, except_ = self._options(args)
    actions = [a for a, _, _ in SINGULAR_RESOURCE_ROUTES if (only is None or a in only) and a not in except_]
    resource_path = f"{self._prefix()}/{name}"
    controller_resource = f"{name}s" if singularize(name) == name else name
    params = self._nesting_params()
    for action, verb, suffix in SINGULAR_RESOURCE_ROUTES:
      if action in actions:
        helper = {"new": f"new_{name}_path", "edit": f"edit_{name}_path"}.get(action, f"{name}_path")
        self._add(verb, f"{resource_path}{suffix}", controller_resource, action, helper)
    if {"show", "create", "update", "destroy"} & set(actions):
      self._helper(f"{name}_path", resource_path, params)
    if "new" in actions:
      self._helper(f"new_{name}_path", f"{resource_path}/new", params)
    if "edit" in actions:
      self._helper(f"edit_{name}_path", f"{resource_path}/edit", params)
    if body is not None:
      info = {"name": name, "controller": controller_class(controller_resource), "only": only, "nested": []}
      self._nested(info, name, f"{name}_id", resource_path, name, body)
      # Resources nested in a singular resource register with the enclosing scope.
      (self._scopes[-1]["nested"] if self._scopes else self.resources).extend(info["nested"])

  def _nested(self, info: Dict[str, Any], name: str, param: str, resource_path: str, singular: str, body: Any) -> None:
    self._nesting.append((name, param))
    self._scopes.append({**info, "path": resource_path, "singular": singular})
    try:
      self.collect(body)
    finally:
      self._scopes.pop()
      self._nesting.pop()

  def _member_routes(self, kind: str, body: Any) -> None:
    scope = self._scopes[-1]
    name, singular = scope["name"], scope["singular"]
    # Nesting includes the current resource itself.
    parent_params = self._nesting_params()[:-1]
    for stmt in body_statements(body):
      if not (is_call(stmt, "nil") and stmt.children[1] in VERBS and len(stmt.children) > 2):
        continue
      action_node = stmt.children[2]
      if not is_node(action_node, "sym", "str"):
        continue
      action = str(action_node.children[0])
      if kind == "member":
        path = f"{scope['path']}/:id/{action}"
        helper = f"{action}_{singular}_path"
        params = [*parent_params, singular]
      else:
        path = f"{scope['path']}/{action}"
        helper = f"{action}_{name}_path"
        params = parent_params
      self._add(stmt.children[1].upper(), path, name, action, helper)
      self.verb_routes.append((stmt.children[1], path, scope["controller"], action))
      self._helper(helper, path, params)


def path_helper(name: str, path: str, params: List[str]) -> Node:
  """``article_path(article)`` -> ``"/articles/" + extract_id(article)``."""
  parts: List[Node] = []
  remaining = path
  for param in params[:-1] if ":id" in path else params:
    marker = f":{param}_id"
    if marker in remaining:
      before, remaining = remaining.split(marker, 1)
      if before:
        parts.append(s("str", before))
      parts.append(s("begin", s("send", None, "extract_id", lvar(param))))
  if ":id" in remaining and params:
    before, after = remaining.split(":id", 1)
    if before:
      parts.append(s("str", before))
    parts.append(s("begin", s("send", None, "extract_id", lvar(params[-1]))))
    remaining = after
  if remaining:
    parts.append(s("str", remaining))
  body = parts[0] if len(parts) == 1 and is_node(parts[0], "str") else s("dstr", *parts)
  return s("export", s("def", name, s("args", *[s("arg", p) for p in params]), s("autoreturn", body)))


def extract_id_helper() -> Node:
  """``extract_id(obj)``: a record's id, or the value itself."""
  obj = lvar("obj")
  return s("def", "extract_id", s("args", s("arg", "obj")), s("autoreturn", s("or", s("and", obj, prop(obj, "id")), obj)))


@register_filter("routes", order=40)
class RoutesFilter(FilterBase):
  """
  Lowers the routes draw block into router setup and path helpers.
  """

  def on_block(self, node: Node) -> Any:
    if not is_routes_block(node) or self.unit is not None:
      return self.process_children(node)
    with self.unit_scope("routes", UnitKind.ROUTES):
      collected = RoutesCollector().collect(node.children[2])
      self.context.bus.register(
        RoutesFacts(
          name="routes",
          file_path=self.context.file_path,
          routes=collected.routes,
          helpers={name: path for name, (path, _) in collected.helpers.items()},
        )
      )
      self.context.tracer.log_bus_write("routes", UnitKind.ROUTES.value)
      logger.debug("routes: %d route(s), %d helper(s)", len(collected.routes), len(collected.helpers))
      module = s("begin", *self.routes_module(collected))
      return self.carry_comments(node, module)

  def specifier(self, eject: str, virtual: str) -> str:
    return virtual if self.context.import_mode == ImportMode.VIRTUAL else eject

  def routes_module(self, collected: RoutesCollector) -> List[Node]:
    statements: List[Node] = [
      s("import", self.specifier("../lib/rails.js", "juntos:rails"), "Router", "Application", "setupFormHandlers"),
      s("import", self.specifier("./schema.js", "juntos:schema"), "Schema"),
      s("import", self.specifier("../db/seeds.js", "juntos:seeds"), "Seeds"),
    ]
    controllers: List[str] = []
    for resource in self._flatten(collected.resources):
      controllers.append(resource["controller"])
    for _, _, controller, _ in collected.verb_routes:
      controllers.append(controller)
    if collected.root_controller:
      controllers.append(collected.root_controller)
    for controller in dict.fromkeys(controllers):
      file = f"{underscore(controller[: -len('Controller')])}_controller"
      statements.append(s("import", self.specifier(f"../app/controllers/{file}.js", f"juntos:controllers/{file}"), controller))

    if collected.helpers:
      statements.append(extract_id_helper())
      for name, (path, params) in collected.helpers.items():
        statements.append(path_helper(name, path, params))

    if collected.root:
      statements.append(s("send", const("Router"), "root", s("str", collected.root)))
    for resource in collected.resources:
      statements.append(self.resources_call(resource))
    for verb, path, controller, action in collected.verb_routes:
      statements.append(s("send", const("Router"), verb, s("str", path), const(controller), s("str", action)))

    statements.append(s("send", None, "setupFormHandlers", s("array", *self.form_handlers(collected.resources))))
    statements.append(
      s(
        "send",
        const("Application"),
        "configure",
        s("hash", s("pair", s("sym", "schema"), const("Schema")), s("pair", s("sym", "seeds"), const("Seeds"))),
      )
    )
    statements.append(s("export", s("array", const("Application"))))
    return statements

  def _flatten(self, resources: List[Dict[str, Any]]) -> List[Dict[str, Any]]:
    flat = []
    for resource in resources:
      flat.append(resource)
      flat.extend(self._flatten(resource["nested"]))
    return flat

  def resources_call(self, resource: Dict[str, Any]) -> Node:
    args: List[Any] = [s("str", resource["name"]), const(resource["controller"])]
    options = self._resource_options(resource)
    if options:
      args.append(s("hash", *options))
    return s("send", const("Router"), "resources", *args)

  def _resource_options(self, resource: Dict[str, Any]) -> List[Node]:
    options = []
    if resource["only"] is not None:
      options.append(s("pair", s("sym", "only"), s("array", *[s("str", a) for a in resource["only"]])))
    if resource["nested"]:
      nested = []
      for child in resource["nested"]:
        pairs = [s("pair", s("sym", "name"), s("str", child["name"])), s("pair", s("sym", "controller"), const(child["controller"]))]
        pairs.extend(self._resource_options(child))
        nested.append(s("hash", *pairs))
      options.append(s("pair", s("sym", "nested"), s("array", *nested)))
    return options

  def form_handlers(self, resources: List[Dict[str, Any]], parent: Optional[str] = None) -> List[Node]:
    configs = []
    for resource in resources:
      singular = singularize(resource["name"])
      pairs = [s("pair", s("sym", "resource"), s("str", resource["name"]))]
      if parent is not None:
        pairs.append(s("pair", s("sym", "parent"), s("str", parent)))
        confirm = f"Delete this {singular}?"
      else:
        confirm = f"Are you sure you want to delete this {singular}?"
      pairs.append(s("pair", s("sym", "confirmDelete"), s("str", confirm)))
      configs.append(s("hash", *pairs))
      configs.extend(self.form_handlers(resource["nested"], resource["name"]))
    return configs
