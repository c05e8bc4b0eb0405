"""
View Filter.

Compiled templates arrive as buffer programs::

    _buf = ::String.new
    _buf << "<h1>".freeze
    _buf << (@article.title).to_s
    _buf.to_s

The filter turns such a program into an exported ``render`` function whose
destructured parameters are the template's instance variables and undefined
locals, and whose body concatenates into a string buffer. Rails view helpers
with a direct counterpart (partials, forms, flash, ``content_for``,
``turbo_stream_from``) are lowered along the way; the remaining helpers are
imported from the runtime library.
"""

import logging
import re
from pathlib import PurePosixPath
from typing import Any, List, Optional, Set, Tuple

from rails2js.core.bindings import ivar_name
from rails2js.core.builders import assign_attr, call, const, lvar, prop
from rails2js.core.bus import UNKNOWN
from rails2js.core.hooks import register_filter
from rails2js.core.inflector import is_plural, pluralize, singularize
from rails2js.core.metadata import RoutesFacts
from rails2js.core.node import Node, body_statements, hash_get, hash_pairs, is_node, make_body, s
from rails2js.core.units import is_template_program
from rails2js.core.walker import BlockPassLowering
from rails2js.enums import ImportMode, TargetEnvironment, UnitKind
from rails2js.filters.base import FilterBase

logger = logging.getLogger(__name__)

CONTEXT_PARAM = "$context"

BUFFER_APPENDS = frozenset(["<<", "append=", "safe_append=", "concat"])

# Runtime helpers kept as calls and imported from the runtime library.
RUNTIME_HELPERS = frozenset(["dom_id", "truncate", "pluralize", "link_to", "button_to", "time_ago_in_words"])

# Receiver-less names that are helpers, never template locals.
HELPER_NAMES = frozenset(
  [
    *RUNTIME_HELPERS,
    "render",
    "form_with",
    "form_for",
    "content_for",
    "notice",
    "alert",
    "raw",
    "turbo_stream_from",
    "turbo_frame_tag",
    "String",
    "Array",
    "Hash",
    "Integer",
    "Float",
  ]
)

INPUT_TYPES = {
  "text_field": "text",
  "email_field": "email",
  "password_field": "password",
  "number_field": "number",
  "hidden_field": "hidden",
  "date_field": "date",
  "url_field": "url",
  "telephone_field": "tel",
}

# Module that server-rendered pages load to subscribe to broadcasts.
SUBSCRIBE_MODULE_URL = "/lib/rails.js"

_LOCAL_NAME = re.compile(r"\A[a-z_][a-z0-9_]*\Z")


def template_names(program: Node, bufvar: str) -> Tuple[List[str], List[str]]:
  """
  Scans a template for the names it expects from its caller.

  Returns:
      Sorted instance variable names (without ``@``) and sorted locals that
      are read but never assigned.
  """
  ivars: List[str] = []
  reads: List[str] = []
  assigned: List[str] = []

  def scan(node: Any) -> None:
    if not isinstance(node, Node):
      return
    if node.kind == "ivar":
      ivars.append(ivar_name(node.children[0]))
    elif node.kind == "lvasgn":
      assigned.append(node.children[0])
    elif node.kind == "lvar" and node.children[0] != bufvar:
      reads.append(node.children[0])
    elif node.kind == "send" and node.children[0] is None and len(node.children) == 2:
      name = node.children[1]
      if isinstance(name, str) and _LOCAL_NAME.match(name) and name not in HELPER_NAMES and not name.endswith("_path"):
        reads.append(name)
    elif node.kind in ("arg", "kwarg", "optarg", "blockarg", "restarg"):
      assigned.append(node.children[0])
    for child in node.children:
      scan(child)

  scan(program)
  locals_ = sorted({name for name in reads if name not in assigned})
  return sorted(set(ivars)), locals_


def humanize(field: str) -> str:
  if field.endswith("_id"):
    field = field[: -len("_id")]
  return field.replace("_", " ").capitalize()


def _merge_strings(parts: List[Any]) -> Node:
  merged: List[Any] = []
  for part in parts:
    if isinstance(part, str):
      part = s("str", part)
    if merged and is_node(part, "str") and is_node(merged[-1], "str"):
      merged[-1] = s("str", merged[-1].children[0] + part.children[0])
    else:
      merged.append(part)
  if len(merged) == 1 and is_node(merged[0], "str"):
    return merged[0]
  return s("dstr", *[p if is_node(p, "str") else s("begin", p) for p in merged])


@register_filter("view", order=30)
class ViewFilter(BlockPassLowering, FilterBase):
  """
  Lowers compiled template programs into ``render`` functions.
  """

  def on_begin(self, node: Node) -> Any:
    if self.unit is not None or not is_template_program(node):
      return self.process_children(node)
    bufvar = node.children[0].children[0]
    name = self.template_name()

    with self.unit_scope(name, UnitKind.VIEW) as unit:
      ivars, locals_ = template_names(node, bufvar)
      unit.extras.update(
        bufvar=bufvar,
        locals=set(locals_),
        runtime=[],
        path_helpers=[],
        partials={},
        form=None,
      )
      statements: List[Any] = []
      for child in node.children:
        statements.extend(body_statements(self.process(child)))

      params = [CONTEXT_PARAM, *ivars, *[n for n in locals_ if n not in ivars]]
      render = s("def", "render", s("args", *[s("kwarg", p) for p in params]), s("autoreturn", make_body(statements)))
      exported = s("export", render)
      self.carry_comments(node, exported)
      logger.debug("view: %s takes %s", name, ", ".join(params))
      return s("begin", *self.view_imports(), exported)

  def template_name(self) -> str:
    """``app/views/articles/index.html.erb`` -> ``articles/index``."""
    path = self.context.file_path
    if not path:
      return "template"
    parts = PurePosixPath(path).parts
    parts = parts[parts.index("views") + 1 :] if "views" in parts else parts[-1:]
    *dirs, leaf = parts
    return "/".join([*dirs, leaf.split(".")[0]])

  def _in_view(self) -> bool:
    return self.unit is not None and self.unit.kind == UnitKind.VIEW

  # -- buffer ---------------------------------------------------------------

  def on_lvasgn(self, node: Node) -> Any:
    if self._in_view() and node.children[0] == self.unit.extras["bufvar"]:
      return node.updated(children=[node.children[0], s("str", "")])
    return self.process_children(node)

  def on_ivar(self, node: Node) -> Any:
    if self._in_view():
      return lvar(ivar_name(node.children[0]))
    return node

  def buffer_append(self, arg: Any) -> Optional[Node]:
    """``_buf << x`` -> ``_buf += x``, with ``freeze``/``to_s`` stripped."""
    if arg is None:
      return None
    if is_node(arg, "block"):
      lowered = self.block_helper(arg.children[0], arg.children[1], arg.children[2])
      if lowered is not None:
        return lowered
    if is_node(arg, "send") and arg.children[1] == "freeze" and len(arg.children) == 2:
      arg = arg.children[0]
    if is_node(arg, "send") and arg.children[1] == "to_s" and len(arg.children) == 2:
      inner = arg.children[0]
      while is_node(inner, "begin") and len(inner.children) == 1:
        inner = inner.children[0]
      value = self.process(inner)
      if not is_node(value, "str", "dstr"):
        value = s("send", None, "String", value)
    else:
      value = self.process(arg)
    return self.append(value)

  def append(self, value: Any) -> Node:
    return s("op_asgn", s("lvasgn", self.unit.extras["bufvar"]), "+", value)

  def on_block(self, node: Node) -> Any:
    if not self._in_view():
      return self.process_children(node)
    head = node.children[0]
    bufvar = self.unit.extras["bufvar"]
    if (
      is_node(head, "send")
      and is_node(head.children[0], "lvar")
      and head.children[0].children[0] == bufvar
      and head.children[1] in BUFFER_APPENDS
      and len(head.children) == 3
    ):
      lowered = self.block_helper(head.children[2], node.children[1], node.children[2])
      if lowered is not None:
        return lowered
    return self.process_children(node)

  # -- calls ----------------------------------------------------------------

  def on_send(self, node: Node) -> Any:
    if not self._in_view():
      return super().on_send(node)
    unit = self.unit
    receiver, method, args = node.children[0], node.children[1], list(node.children[2:])
    bufvar = unit.extras["bufvar"]

    if is_node(receiver, "lvar") and receiver.children[0] == bufvar:
      if method in BUFFER_APPENDS:
        return self.buffer_append(args[0] if args else None)
      if method == "to_s" and not args:
        return receiver
    form = unit.extras["form"]
    if form is not None and is_node(receiver, "lvar") and receiver.children[0] == form[0]:
      lowered = self.form_field(method, args)
      if lowered is not None:
        return lowered
    if method in ("freeze", "html_safe") and not args and receiver is not None:
      return self.process(receiver)
    if receiver is not None:
      return super().on_send(node)

    if method == "raw" and len(args) == 1:
      return self.process(args[0])
    if not args and method in unit.extras["locals"]:
      return lvar(method)
    if method in ("notice", "alert") and not args:
      return call(prop(lvar(CONTEXT_PARAM), "flash"), f"consume{method.capitalize()}")
    if method == "content_for" and args:
      return self.content_for(args)
    if method == "render" and args:
      lowered = self.render_partial(args)
      if lowered is not None:
        return lowered
    if method == "turbo_stream_from" and args:
      return self.turbo_stream_from(args[0])
    if method in RUNTIME_HELPERS:
      self._record("runtime", method)
    elif isinstance(method, str) and method.endswith("_path"):
      self._record("path_helpers", method)
    return super().on_send(node)

  def _record(self, bucket: str, name: str) -> None:
    names = self.unit.extras[bucket]
    if name not in names:
      names.append(name)

  def content_for(self, args: List[Any]) -> Node:
    """Stores into, or reads from, ``$context.contentFor``."""
    store = prop(lvar(CONTEXT_PARAM), "contentFor")
    key = str(args[0].children[0]) if is_node(args[0], "sym", "str") else "main"
    if len(args) > 1:
      return assign_attr(store, key, self.process(args[1]))
    return s("or", prop(store, key), s("str", ""))

  def turbo_stream_from(self, channel: Any) -> Node:
    """
    Subscribes the page to a broadcast channel.

    In the browser the runtime subscribes directly. Server targets render an
    inline module script that subscribes once the page loads.
    """
    channel = self.process(channel)
    if self.context.target_env == TargetEnvironment.BROWSER:
      self._record("runtime", "TurboBroadcast")
      return call(const("TurboBroadcast"), "subscribe", channel)
    return _merge_strings(
      [
        f'<script type="module">import {{ TurboBroadcast }} from "{SUBSCRIBE_MODULE_URL}"; TurboBroadcast.subscribe(',
        call(const("JSON"), "stringify", channel),
        ")</script>",
      ]
    )

  # -- partials -------------------------------------------------------------

  def render_partial(self, args: List[Any]) -> Optional[Node]:
    """
    ``render "form", article: @article`` -> ``_form_module.render({article})``.

    Rendering a plural record variable maps each element through the
    singular partial.
    """
    first = args[0]
    partial: Optional[str] = None
    local_pairs: List[Tuple[str, Any]] = []
    collection = None

    if is_node(first, "str"):
      partial = first.children[0]
      options = args[1] if len(args) > 1 and is_node(args[1], "hash") else None
      explicit = hash_get(options, "locals")
      local_pairs = hash_pairs(explicit if explicit is not None else options)
    elif is_node(first, "hash"):
      partial_node = hash_get(first, "partial")
      partial = partial_node.children[0] if is_node(partial_node, "str") else None
      local_pairs = hash_pairs(hash_get(first, "locals"))
      collection = hash_get(first, "collection")
    elif is_node(first, "ivar", "lvar") or self._is_local_read(first):
      name = ivar_name(first.children[0]) if not is_node(first, "send") else first.children[1]
      if is_plural(name):
        partial = f"{name}/{singularize(name)}"
        collection = first
      else:
        partial = f"{pluralize(name)}/{name}"
        local_pairs = [(name, first)]

    if partial is None:
      return None
    module = self.partial_module(partial)
    if collection is not None:
      item = singularize(partial.split("/")[-1])
      each = s(
        "block",
        s("send", self.process(collection), "map"),
        s("args", s("arg", item)),
        call(lvar(module), "render", s("hash", s("pair", s("sym", item), lvar(item)))),
      )
      return call(each, "join", s("str", ""))
    pairs = [s("pair", s("sym", str(key)), self.process(value)) for key, value in local_pairs if isinstance(key, str)]
    return call(lvar(module), "render", s("hash", *pairs))

  def _is_local_read(self, node: Any) -> bool:
    return (
      is_node(node, "send")
      and node.children[0] is None
      and len(node.children) == 2
      and node.children[1] in self.unit.extras["locals"]
    )

  def partial_module(self, partial: str) -> str:
    """Records a partial import and returns its module binding name."""
    leaf = partial.split("/")[-1]
    module = f"_{leaf}_module"
    self.unit.extras["partials"][module] = self.partial_specifier(partial)
    return module

  def partial_specifier(self, partial: str) -> str:
    """Specifier of a partial relative to the current template's directory."""
    parts = partial.split("/")
    directory = "/".join(parts[:-1])
    current = "/".join(self.unit.name.split("/")[:-1])
    if not directory:
      directory = current
    target = f"{directory}/_{parts[-1]}" if directory else f"_{parts[-1]}"
    if self.context.import_mode == ImportMode.VIRTUAL:
      return f"juntos:views/{target}"
    if directory == current:
      return f"./_{parts[-1]}.js"
    return f"../{target}.js" if current else f"./{target}.js"

  # -- forms ----------------------------------------------------------------

  def block_helper(self, helper: Any, params: Any, body: Any) -> Optional[Node]:
    """Lowers ``form_with``/``form_for`` blocks that write into the buffer."""
    if not (is_node(helper, "send") and helper.children[0] is None and helper.children[1] in ("form_with", "form_for")):
      return None
    block_var = params.children[0].children[0] if is_node(params, "args") and params.children else "form"
    args = list(helper.children[2:])
    model_node = hash_get(args[-1], "model") if args and is_node(args[-1], "hash") else None
    if model_node is None and args and not is_node(args[0], "hash"):
      model_node = args[0]
    url_node = hash_get(args[-1], "url") if args and is_node(args[-1], "hash") else None

    model_key = None
    model_expr = None
    if is_node(model_node, "ivar", "lvar") or self._is_local_read(model_node):
      model_key = ivar_name(model_node.children[0]) if not is_node(model_node, "send") else model_node.children[1]
      model_expr = lvar(model_key)

    if url_node is not None:
      action: Any = self.process(url_node)
    elif model_expr is not None:
      collection_path = f"/{pluralize(model_key)}"
      action = s(
        "if",
        prop(model_expr, "id"),
        _merge_strings([f"{collection_path}/", prop(model_expr, "id")]),
        s("str", collection_path),
      )
    else:
      action = s("str", "")

    opening = [f'<form action="', action, '" method="post">']
    if model_expr is not None:
      opening.append(s("if", prop(model_expr, "id"), s("str", '<input type="hidden" name="_method" value="patch">'), s("str", "")))

    saved = self.unit.extras["form"]
    self.unit.extras["form"] = (block_var, model_key, model_expr)
    try:
      inner = body_statements(self.process(body))
    finally:
      self.unit.extras["form"] = saved
    return s("begin", self.append(_merge_strings(opening)), *inner, self.append(s("str", "</form>")))

  def form_field(self, method: str, args: List[Any]) -> Optional[Node]:
    """Form-builder calls on the block variable become literal HTML."""
    _, model_key, model_expr = self.unit.extras["form"]
    field = str(args[0].children[0]) if args and is_node(args[0], "sym", "str") else None
    options = args[-1] if args and is_node(args[-1], "hash") else None
    css = hash_get(options, "class")
    css_attr = f' class="{css.children[0]}"' if is_node(css, "str") else ""

    if method == "submit":
      if args and is_node(args[0], "str"):
        label: Any = args[0].children[0]
      elif model_key is not None:
        noun = humanize(model_key)
        label = s("if", prop(model_expr, "id"), s("str", f"Update {noun}"), s("str", f"Create {noun}"))
      else:
        label = "Submit"
      return _merge_strings([f'<input type="submit" value="', label, f'"{css_attr}>'])
    if field is None:
      return None

    name = f"{model_key}[{field}]" if model_key else field
    dom = f"{model_key}_{field}" if model_key else field
    value = s("or", prop(model_expr, field), s("str", "")) if model_expr is not None else s("str", "")

    if method == "label":
      text = args[1].children[0] if len(args) > 1 and is_node(args[1], "str") else humanize(field)
      return _merge_strings([f'<label for="{dom}"{css_attr}>{text}</label>'])
    if method in INPUT_TYPES:
      return _merge_strings(
        [f'<input type="{INPUT_TYPES[method]}" name="{name}" id="{dom}" value="', value, f'"{css_attr}>']
      )
    if method in ("text_area", "textarea"):
      return _merge_strings([f'<textarea name="{name}" id="{dom}"{css_attr}>', value, "</textarea>"])
    if method in ("check_box", "checkbox"):
      checked = s("if", prop(model_expr, field), s("str", " checked"), s("str", "")) if model_expr is not None else ""
      return _merge_strings(
        [
          f'<input name="{name}" type="hidden" value="0"><input type="checkbox" name="{name}" id="{dom}" value="1"',
          checked,
          f"{css_attr}>",
        ]
      )
    return None

  # -- imports --------------------------------------------------------------

  def route_helpers(self) -> Set[str]:
    """Path helpers the routes unit published, empty when it has not run."""
    facts = self.context.bus.lookup("routes")
    if facts is UNKNOWN:
      self.context.tracer.log_bus_miss("routes", "path helpers from the runtime library")
    return set(facts.helpers) if isinstance(facts, RoutesFacts) else set()

  def routes_specifier(self) -> str:
    if self.context.import_mode == ImportMode.VIRTUAL:
      return "juntos:routes"
    return "../../config/routes.js"

  def view_imports(self) -> List[Node]:
    extras = self.unit.extras
    imports = []
    if extras["runtime"]:
      imports.append(s("import", self.library_path("rails"), *sorted(extras["runtime"])))
    known = self.route_helpers() if extras["path_helpers"] else set()
    routed = sorted(h for h in extras["path_helpers"] if h in known)
    generic = sorted(h for h in extras["path_helpers"] if h not in known)
    if routed:
      imports.append(s("import", self.routes_specifier(), *routed))
    if generic:
      imports.append(s("import", self.library_path("url_helpers"), *generic))
    for module, specifier in sorted(extras["partials"].items()):
      imports.append(s("import_all", specifier, module))
    return imports
