"""
Test Suite Filter.

Translates Minitest-style test classes into describe/it suites:

1.  ``class ArticleTest < ActiveSupport::TestCase`` becomes
    ``describe("Article", () => {...})``. Spec-style files that already use
    ``describe`` at the top level are handled the same way.
2.  ``test "x" do`` / ``it`` / ``specify`` / ``def test_x`` become async
    ``it`` callbacks; ``setup``/``teardown`` (and ``before``/``after``) become
    lifecycle hooks. Instance variables become locals, with ``let``
    declarations at suite scope for those assigned in ``setup``.
3.  Assertions lower to ``expect(...)`` matchers.
4.  ``articles(:one)`` fixture references become ``articles("one")``.
5.  Integration requests (``get articles_url``) invoke the controller action
    directly and keep its result in ``response``.

Await coloring consults the metadata bus. Statement-level calls on records
are awaited unless they are known to be synchronous (setters, enum
predicates); enum bang setters persist and are awaited; reads of declared
associations are awaited before being handed to ``expect``. When the bus has
no facts, the conservative choice is to await.
"""

import logging
import re
from typing import Any, Dict, List, Optional, Set

from rails2js.core.bus import UNKNOWN
from rails2js.core.builders import arrow, await_expr, call, const, import_node, lvar, prop
from rails2js.core.coloring import await_node, is_await
from rails2js.core.hooks import register_filter
from rails2js.core.inflector import camelize, is_plural, pluralize, underscore
from rails2js.core.metadata import RoutesFacts
from rails2js.core.node import (
  Node,
  body_statements,
  const_name,
  hash_pairs,
  is_call,
  is_node,
  literal_value,
  make_body,
  retag,
  s,
  sym_value,
)
from rails2js.core.units import is_test_class
from rails2js.core.walker import BlockPassLowering, Walker
from rails2js.enums import ImportMode, UnitKind
from rails2js.filters.base import FilterBase, const_references
from rails2js.filters.controller import ACTION_RENAMES
from rails2js.filters.model.enums import predicate_name

logger = logging.getLogger(__name__)

TEST_BLOCKS = frozenset(["test", "it", "specify"])
SUITE_BLOCKS = frozenset(["describe", "context"])
HTTP_METHODS = frozenset(["get", "post", "patch", "put", "delete", "head"])
VERB_ACTIONS = {"post": "create", "patch": "update", "put": "update", "delete": "destroy"}
PRIMITIVE_KINDS = ("str", "int", "float", "true", "false", "nil", "sym")
IGNORED_REQUIRES = ("test_helper", "application_system_test_case", "rails_helper", "spec_helper")
FRAMEWORK_NAMES = ("describe", "it", "test", "expect", "beforeEach", "afterEach", "beforeAll", "afterAll")

SUCCESS_STATUSES = frozenset(["success", "ok", "no_content", "created", "accepted"])
REDIRECT_STATUSES = frozenset(["redirect", "moved_permanently", "found", "see_other"])

FIXTURE_MODULES = {ImportMode.EJECT: "../fixtures.js", ImportMode.VIRTUAL: "juntos:fixtures"}
NON_MODEL_SUFFIXES = ("Controller", "Test", "TestCase")


def suite_label(class_name: str) -> str:
  """``ArticleTest`` -> ``Article``; ``ArticlesControllerTest`` -> ``ArticlesController``."""
  short = class_name.split("::")[-1]
  return short[: -len("Test")] if short.endswith("Test") and short != "Test" else short


def test_method_label(name: str) -> str:
  return name[len("test_") :].replace("_", " ")


def expect(subject: Any) -> Node:
  return s("send", None, "expect", subject)


def matcher(subject: Any, name: str, *args: Any, negate: bool = False) -> Node:
  """``expect(subject)[.not].name(args)``; zero-argument matchers keep their parentheses."""
  target = expect(subject)
  if negate:
    target = prop(target, "not")
  return s("send", target, name, *args) if args else call(target, name)


def is_primitive(node: Any) -> bool:
  return is_node(node, *PRIMITIVE_KINDS)


def assigned_ivars(node: Any, found: Optional[List[str]] = None) -> List[str]:
  """Instance variables assigned anywhere in ``node``, first-seen order, without ``@``."""
  found = [] if found is None else found
  if not isinstance(node, Node):
    return found
  if node.kind == "ivasgn":
    name = node.children[0].lstrip("@")
    if name not in found:
      found.append(name)
  for child in node.children:
    assigned_ivars(child, found)
  return found


def is_fixture_ref(node: Node) -> bool:
  """``articles(:one)``: a receiver-less plural call with one symbol/string key."""
  if not is_call(node, "nil") or len(node.children) != 3:
    return False
  name = node.children[1]
  if not isinstance(name, str) or not re.match(r"[a-z]", name) or name.startswith(("assert", "refute")):
    return False
  return is_node(node.children[2], "sym", "str") and (is_plural(name) or name.endswith("s"))


def describe_label(call_node: Node) -> str:
  """``describe Article`` or ``describe "Article"``."""
  subject = call_node.children[2] if len(call_node.children) > 2 else None
  if is_node(subject, "const"):
    return const_name(subject)
  value = literal_value(subject)
  return str(value) if value is not None else "suite"


def is_url_helper(name: Any) -> bool:
  return isinstance(name, str) and name.endswith("_url")


def is_ignored_require(node: Node) -> bool:
  if not (is_call(node, "nil", "require") and len(node.children) == 3):
    return False
  target = literal_value(node.children[2])
  return isinstance(target, str) and target.split("/")[-1] in IGNORED_REQUIRES


def status_category(node: Any) -> Optional[str]:
  """Maps an ``assert_response`` status to ``success``, ``redirect`` or ``error``."""
  if is_node(node, "sym"):
    status = node.children[0]
    if status in SUCCESS_STATUSES:
      return "success"
    if status in REDIRECT_STATUSES:
      return "redirect"
    return "error"
  if is_node(node, "int"):
    code = node.children[0]
    if 300 <= code < 400:
      return "redirect"
    return "error" if code >= 400 else "success"
  return None


class HelperAwaiter(Walker):
  """Awaits receiver-less calls to suite helpers that became asynchronous."""

  def __init__(self, names: Set[str]):
    self.names = names

  def on_send(self, node: Node) -> Any:
    processed = super().on_send(node)
    if (
      is_node(processed, "send")
      and not is_await(processed)
      and processed.children[0] is None
      and processed.children[1] in self.names
    ):
      return await_node(processed, force_call=True)
    return processed


@register_filter("testsuite", order=70)
class TestSuiteFilter(BlockPassLowering, FilterBase):
  """Lowers test classes into describe/it suites."""

  # -- unit entry -----------------------------------------------------------

  def on_class(self, node: Node) -> Any:
    if not is_test_class(node) or self.unit is not None:
      return self.process_children(node)
    name_node, superclass, body = node.children
    name = const_name(name_node)

    with self.unit_scope(name, UnitKind.TEST, const_name(superclass)) as unit:
      unit.extras["integration"] = "IntegrationTest" in (unit.superclass or "")
      unit.extras["controller"] = suite_label(name) if name.endswith("ControllerTest") else None
      describe = self.suite(suite_label(name), self.suite_body(body))
      self.carry_comments(node, describe)
      imports = self.test_imports(describe)
      return s("begin", *imports, describe) if imports else describe

  def on_block(self, node: Node) -> Any:
    method = self.block_method(node)
    if self.unit is None:
      if method == "describe" and self.is_test_file():
        label = describe_label(node.children[0])
        with self.unit_scope(label, UnitKind.TEST):
          self.unit.extras["integration"] = False
          self.unit.extras["controller"] = None
          describe = self.nested_suite(node)
          imports = self.test_imports(describe)
          return s("begin", *imports, describe) if imports else describe
      return self.process_children(node)
    if self.unit.kind != UnitKind.TEST:
      return self.process_children(node)

    call_node, body = node.children[0], node.children[2]
    args = call_node.children[2:] if is_node(call_node, "send") else []
    if method in TEST_BLOCKS:
      label = self.process(args[0]) if args else s("str", "")
      return self.test_case(label, body)
    if method in SUITE_BLOCKS:
      return self.nested_suite(node)
    if method in ("setup", "teardown"):
      return self.lifecycle("beforeEach" if method == "setup" else "afterEach", body)
    if method in ("before", "after"):
      scope = "All" if any(sym_value(a) in ("all", "context") for a in args) else "Each"
      return self.lifecycle(f"{method}{scope}", body)
    if method in ("assert_raises", "assert_raise"):
      return self.assert_raises(args, body)
    if method in ("assert_difference", "assert_no_difference"):
      lowered = self.assert_difference(args, body, no_difference=method == "assert_no_difference")
      return lowered if lowered is not None else self.process_children(node)
    return self.process_children(node)

  def on_send(self, node: Node) -> Any:
    if is_ignored_require(node):
      return None
    if self.unit is None or self.unit.kind != UnitKind.TEST:
      return super().on_send(node)

    receiver, method, args = node.children[0], node.children[1], list(node.children[2:])
    if receiver is None:
      assertion = self.assertion(method, args)
      if assertion is not None:
        return assertion
      if method in HTTP_METHODS and args and self.unit.extras.get("integration"):
        return self.http_request(method, args)
      if method == "assert_response" and args:
        return self.assert_response(args[0])
      if method == "assert_redirected_to" and args:
        return self.assert_redirected_to(args[0])
      if is_url_helper(method):
        return self.path_helper(method, args)
      if is_fixture_ref(node):
        return self.fixture_ref(node)

    if isinstance(method, str) and method.endswith("?") and receiver is not None and method in self.enum_predicates():
      return prop(self.process(receiver), predicate_name(method[:-1]))
    return super().on_send(node)

  def on_ivar(self, node: Node) -> Node:
    return lvar(node.children[0].lstrip("@"))

  def on_ivasgn(self, node: Node) -> Node:
    return s("lvasgn", node.children[0].lstrip("@"), *self.process_all(node.children[1:]))

  def on_def(self, node: Node) -> Any:
    if self.unit is None or self.unit.kind != UnitKind.TEST or node.kind != "def":
      return self.process_children(node)
    name, body = node.children[0], node.children[2]
    if name.startswith("test_"):
      return self.test_case(s("str", test_method_label(name)), body)
    if name == "setup":
      return self.lifecycle("beforeEach", body)
    if name == "teardown":
      return self.lifecycle("afterEach", body)
    return self.color(self.process_children(node), mark_functions=True)

  # -- suite structure ------------------------------------------------------

  def is_test_file(self) -> bool:
    path = self.context.file_path or ""
    return path.endswith(("_test.rb", "_spec.rb", "_test.sexp", "_spec.sexp"))

  @staticmethod
  def block_method(node: Node) -> Optional[str]:
    call_node = node.children[0] if node.children else None
    if is_call(call_node, "nil"):
      return call_node.children[1]
    return None

  def suite(self, label: str, body: Any) -> Node:
    self.use("describe")
    return s("block", s("send", None, "describe", s("str", label)), s("args"), body)

  def nested_suite(self, node: Node) -> Node:
    call_node = node.children[0]
    self.use("describe")
    head = s("send", None, "describe", s("str", describe_label(call_node)))
    return s("block", head, s("args"), self.suite_body(node.children[2]))

  def suite_body(self, body: Any) -> Optional[Node]:
    """
    Rewrites the statements of a suite.

    Helper methods are rewritten first so calls to the ones that became
    asynchronous can be awaited wherever they appear.
    """
    stmts = body_statements(body)
    helpers: Dict[int, Any] = {}
    async_helpers = self.unit.extras.setdefault("async_helpers", set())
    for index, stmt in enumerate(stmts):
      if is_node(stmt, "def") and not stmt.children[0].startswith("test_") and stmt.children[0] not in ("setup", "teardown"):
        helpers[index] = self.process(stmt)
        if is_node(helpers[index], "async"):
          async_helpers.add(stmt.children[0])

    out: List[Any] = []
    for index, stmt in enumerate(stmts):
      processed = helpers[index] if index in helpers else self.process(stmt)
      if processed is None:
        continue
      # Lifecycle hooks come back with their suite-scope declarations.
      out.extend(processed.children if is_node(processed, "begin") and self.is_declaration_group(processed) else [processed])
    suite = make_body(out)
    return HelperAwaiter(async_helpers).process(suite) if async_helpers else suite

  @staticmethod
  def is_declaration_group(node: Node) -> bool:
    return any(is_node(c, "lvasgn") and len(c.children) == 1 for c in node.children)

  def use(self, name: str) -> None:
    self.unit.extras.setdefault("framework", set()).add(name)

  # -- test bodies ----------------------------------------------------------

  def test_body(self, body: Any) -> Any:
    """Statement awaits, then rewriting, then await coloring."""
    if body is None:
      return None
    prepared = self.await_statements(body)
    return self.color(self.process(prepared))

  def test_case(self, label: Any, body: Any) -> Node:
    self.use("it")
    return s("async_block", s("send", None, "it", label), s("args"), self.test_body(body))

  def lifecycle(self, hook: str, body: Any) -> Node:
    """``setup`` and friends; ivars assigned by the hook get suite-scope ``let`` declarations."""
    self.use(hook)
    block = s("async_block", s("send", None, hook), s("args"), self.test_body(body))
    names = assigned_ivars(body)
    if not names:
      return block
    declared = self.unit.extras.setdefault("declared", set())
    declarations = [s("lvasgn", name) for name in names if name not in declared]
    declared.update(names)
    return s("begin", *declarations, block) if declarations else block

  def enum_predicates(self) -> Set[str]:
    return {p for facts in self.context.bus.models().values() for p in facts.enum_predicates}

  def enum_bangs(self) -> Set[str]:
    return {b for facts in self.context.bus.models().values() for b in facts.enum_bangs}

  def is_sync_statement(self, node: Node) -> bool:
    method = node.children[1]
    if not isinstance(method, str) or method.endswith("=") or not re.match(r"[a-z_]", method):
      return True
    if method in self.enum_bangs():
      return False
    return method in self.enum_predicates()

  def await_statements(self, body: Any) -> Any:
    """
    Forces calls with a receiver in statement position to be awaited calls.

    ``card.close`` as a statement has side effects; unless the bus says the
    method is synchronous it becomes ``await card.close()``.
    """
    if body is None:
      return None
    out = []
    for stmt in body_statements(body):
      if is_node(stmt, "send") and stmt.children[0] is not None and not self.is_sync_statement(stmt):
        logger.debug("testsuite: awaiting statement call '%s'", stmt.children[1])
        out.append(retag(stmt, "await").with_hints(force_call=True))
      else:
        out.append(stmt)
    return make_body(out)

  def subject(self, node: Any) -> Any:
    """
    Processes an ``expect`` subject, awaiting association reads.

    ``comment.article`` is awaited when ``article`` is a declared association
    somewhere on the bus. With no model facts at all, plural accessor names
    are assumed to be collections and awaited.
    """
    processed = self.process(node)
    if not (is_node(node, "send") and len(node.children) == 2 and is_node(node.children[0], "lvar", "ivar", "send")):
      return processed
    name = node.children[1]
    if not isinstance(name, str) or name.endswith(("?", "!")):
      return processed
    if name in self.context.bus.association_names():
      return await_expr(processed)
    if not self.context.bus.models() and is_plural(name):
      self.context.tracer.log_bus_miss(name, "awaited as association")
      return await_expr(processed)
    return processed

  # -- assertions -----------------------------------------------------------

  def assertion(self, method: str, args: List[Any]) -> Optional[Node]:
    """Lowers a receiver-less assertion call, or returns None."""
    if not isinstance(method, str) or not method.startswith(("assert", "refute")) or not args:
      return None
    self.use("expect")
    first = args[0]
    second = args[1] if len(args) > 1 else None

    if method == "assert":
      return matcher(self.subject(first), "toBeTruthy")
    if method in ("assert_not", "refute"):
      return matcher(self.subject(first), "toBeFalsy")
    if method in ("assert_equal", "assert_not_equal", "refute_equal") and second is not None:
      name = "toBe" if is_primitive(first) else "toEqual"
      return matcher(self.subject(second), name, self.process(first), negate=method != "assert_equal")
    if method == "assert_nil":
      return matcher(self.subject(first), "toBeNull")
    if method in ("assert_not_nil", "refute_nil"):
      return matcher(self.subject(first), "toBeNull", negate=True)
    if method in ("assert_includes", "assert_not_includes", "refute_includes") and second is not None:
      return matcher(self.subject(first), "toContain", self.process(second), negate=method != "assert_includes")
    if method in ("assert_empty", "assert_not_empty", "refute_empty"):
      return matcher(self.subject(first), "toHaveLength", s("int", 0), negate=method != "assert_empty")
    if method in ("assert_match", "assert_no_match", "refute_match") and second is not None:
      return matcher(self.process(second), "toMatch", self.process(first), negate=method != "assert_match")
    if method in ("assert_instance_of", "assert_kind_of") and second is not None:
      return matcher(self.process(second), "toBeInstanceOf", self.process(first))
    if method == "assert_in_delta" and second is not None:
      return matcher(self.process(second), "toBeCloseTo", self.process(first))
    if method == "assert_predicate" and second is not None:
      predicate = sym_value(second)
      if predicate is None:
        return None
      receiver = self.process(first)
      if predicate in self.enum_predicates():
        check = prop(receiver, predicate_name(predicate[:-1]))
      else:
        check = call(receiver, predicate)
      return matcher(check, "toBeTruthy")
    if method == "assert_respond_to" and second is not None:
      member = sym_value(second) or literal_value(second)
      if member is None:
        return None
      kind = s("send", None, "typeof", prop(self.process(first), str(member)))
      return matcher(kind, "toBe", s("str", "function"))
    if method == "assert_operator" and len(args) >= 3:
      operator = sym_value(second)
      if operator is None:
        return None
      return matcher(s("send", self.process(first), operator, self.process(args[2])), "toBeTruthy")
    return None

  def assert_raises(self, args: List[Any], body: Any) -> Node:
    """``assert_raises(Err) { ... }`` -> ``await expect(async () => {...}).rejects.toThrow(Err)``."""
    self.use("expect")
    fn = arrow([], self.test_body(body), is_async=True)
    rejects = prop(expect(fn), "rejects")
    errors = self.process_all(args)
    check = s("send", rejects, "toThrow", *errors) if errors else call(rejects, "toThrow")
    return await_expr(check)

  def count_expression(self, node: Any) -> Optional[Node]:
    """``"Article.count"`` or ``-> { article.comments.count }`` as an awaited count."""
    if is_node(node, "str"):
      parts = node.children[0].split(".")
      if len(parts) != 2:
        return None
      return await_node(call(const(parts[0]), parts[1]), force_call=True)
    if is_node(node, "block") and (is_node(node.children[0], "lambda") or is_call(node.children[0], "nil", "lambda")):
      counted = self.color(self.process(node.children[2]))
      if is_node(counted, "send") and counted.children[0] is not None:
        return await_node(counted, force_call=True)
      return counted
    return None

  def assert_difference(self, args: List[Any], body: Any, no_difference: bool = False) -> Optional[Node]:
    """
    ``assert_difference("Article.count") { ... }`` becomes a before/after
    count comparison around the rewritten block.
    """
    count = self.count_expression(args[0]) if args else None
    if count is None:
      return None
    delta: Any = s("int", 0 if no_difference else 1)
    if len(args) > 1 and not no_difference and not is_node(args[1], "hash"):
      delta = self.process(args[1])

    counter = self.unit.extras.get("count_vars", 0) + 1
    self.unit.extras["count_vars"] = counter
    suffix = "" if counter == 1 else str(counter)
    before, after = f"countBefore{suffix}", f"countAfter{suffix}"
    self.use("expect")
    return s(
      "begin",
      s("lvasgn", before, count),
      *body_statements(self.test_body(body)),
      s("lvasgn", after, count),
      s("send", expect(s("send", lvar(after), "-", lvar(before))), "toBe", delta),
    )

  # -- fixtures and urls ----------------------------------------------------

  def fixture_ref(self, node: Node) -> Node:
    table = node.children[1]
    self.unit.extras.setdefault("fixtures", set()).add(table)
    return s("send", None, table, s("str", str(node.children[2].children[0])))

  def path_helper(self, method: str, args: List[Any]) -> Node:
    """``article_url(@article)`` -> ``article_path(article)``."""
    name = method[: -len("_url")] + "_path"
    self.unit.extras.setdefault("path_helpers", set()).add(name)
    processed = self.process_all(args)
    return s("send", None, name, *processed) if processed else call(None, name)

  # -- integration requests -------------------------------------------------

  def route_target(self, verb: str, helper: str) -> Optional[Dict[str, Any]]:
    """Resolves a path helper and verb against the routes published on the bus."""
    facts = self.context.bus.lookup("routes")
    if facts is UNKNOWN or not isinstance(facts, RoutesFacts):
      self.context.tracer.log_bus_miss("routes", "url helper parsed heuristically")
      return None
    wanted = {"put": "PATCH"}.get(verb, verb.upper())
    for route in facts.routes:
      if route.helper == helper and route.verb == wanted:
        return {"controller": route.controller, "action": route.action}
    return None

  def guess_target(self, verb: str, helper: str, positional: int) -> Dict[str, Any]:
    """
    Parses ``new_article``, ``edit_article``, ``articles``, ``article`` and
    nested ``article_comments`` helper names.
    """
    name = helper[: -len("_path")]
    if name == "root" and self.unit.extras.get("controller"):
      return {"controller": self.unit.extras["controller"], "action": "index"}
    prefix = None
    for candidate in ("new", "edit"):
      if name.startswith(candidate + "_"):
        prefix, name = candidate, name[len(candidate) + 1 :]
    singular = not is_plural(name)
    # Nested helpers pass the parent record first.
    needs_parent = positional >= (2 if singular else 1) or (prefix == "new" and positional >= 1)
    if "_" in name and needs_parent:
      name = name.split("_", 1)[1]
      singular = not is_plural(name)
    controller = camelize(pluralize(name) if singular else name) + "Controller"
    if prefix is not None:
      action = prefix
    elif verb == "get":
      action = "show" if singular else "index"
    else:
      action = VERB_ACTIONS.get(verb, verb)
    return {"controller": controller, "action": ACTION_RENAMES.get(action, action)}

  def http_request(self, verb: str, args: List[Any]) -> Node:
    """
    ``post articles_url, params: {...}`` ->
    ``response = await ArticlesController.create(context(), params)``.
    """
    url, options = args[0], args[1] if len(args) > 1 else None
    if not (is_call(url, "nil") and (is_url_helper(url.children[1]) or str(url.children[1]).endswith("_path"))):
      return self.process_children(s("send", None, verb, *args))
    helper = url.children[1]
    helper = helper[: -len("_url")] + "_path" if is_url_helper(helper) else helper
    positional = [a for a in url.children[2:] if not is_node(a, "hash")]
    query = [a for a in url.children[2:] if is_node(a, "hash")]

    target = self.route_target(verb, helper) or self.guess_target(verb, helper, len(positional))
    self.unit.extras.setdefault("controllers", set()).add(target["controller"])
    self.unit.extras["uses_context"] = True

    context_pairs = [pair for h in query for pair in h.children]
    params = None
    for key, value in hash_pairs(options):
      if key == "params":
        params = self.process(value)
      elif key == "as":
        fmt = sym_value(value)
        context_pairs.append(s("pair", s("sym", "format"), s("str", fmt) if fmt else self.process(value)))
    context_call = call(None, "context", self.process(s("hash", *context_pairs))) if context_pairs else call(None, "context")

    action_args = [context_call, *[prop(self.process(a), "id") for a in positional]]
    if params is not None:
      action_args.append(params)
    invoke = call(const(target["controller"]), target["action"], *action_args)
    logger.debug("testsuite: %s %s -> %s.%s", verb, helper, target["controller"], target["action"])
    return s("lvasgn", "response", await_expr(invoke))

  def assert_response(self, status: Any) -> Optional[Node]:
    category = status_category(status)
    if category is None:
      return None
    self.use("expect")
    response = lvar("response")
    if category == "success":
      return matcher(prop(response, "redirect"), "toBeUndefined")
    if category == "redirect":
      return matcher(prop(response, "redirect"), "toBeDefined")
    return matcher(prop(response, "render"), "toBeDefined")

  def assert_redirected_to(self, target: Any) -> Node:
    """Both sides go through ``String()``: path helpers return objects."""
    self.use("expect")
    url = self.process(target)
    if is_call(url, "nil") and len(url.children) == 2:
      url = url.with_hints(force_call=True)
    redirect = call(None, "String", prop(lvar("response"), "redirect"))
    return s("send", expect(redirect), "toBe", call(None, "String", url))

  # -- imports --------------------------------------------------------------

  def test_imports(self, tree: Node) -> List[Node]:
    extras = self.unit.extras
    imports: List[Node] = []
    used = extras.get("framework", set())
    framework = [name for name in FRAMEWORK_NAMES if name in used]
    if framework:
      imports.append(import_node("vitest", framework))

    oracle = self.colorer().oracle
    controllers = extras.get("controllers", set())
    models = [
      name
      for name in const_references(tree)
      if name not in controllers and not name.endswith(NON_MODEL_SUFFIXES) and oracle.is_model(name)
    ]
    imports.extend(self.imports_for_models(models, from_dir="../../app"))

    for controller in sorted(controllers):
      imports.append(import_node(self.controller_path(controller), [controller]))
    helpers = sorted(extras.get("path_helpers", set()))
    if helpers:
      imports.append(import_node(self.routes_path(), helpers))
    if extras.get("uses_context"):
      imports.append(import_node(self.library_path("test_helpers"), ["context"]))
    fixtures = sorted(extras.get("fixtures", set()))
    if fixtures:
      imports.append(import_node(FIXTURE_MODULES[self.context.import_mode], fixtures))
    return imports

  def controller_path(self, controller: str) -> str:
    if self.context.import_mode == ImportMode.VIRTUAL:
      return f"juntos:controllers/{underscore(controller)}"
    return f"../../app/controllers/{underscore(controller)}.js"

  def routes_path(self) -> str:
    if self.context.import_mode == ImportMode.VIRTUAL:
      return "juntos:routes"
    return "../../config/routes.js"
