"""
Await Coloring.

Data access is synchronous in the source framework but asynchronous in the
target runtime, whose storage layer is async-only. This module decides which
call expressions must be awaited, wraps them in an ``await`` node, and marks
enclosing closures asynchronous when their bodies now suspend.

Classification of a call ``recv.method(args)``:

1. ``recv`` is a known model constant and ``method`` is a terminal query
   method: await.
2. ``recv`` is a call chain rooted at a known model constant (or at an
   association accessor) and the outermost ``method`` is terminal: await the
   outermost call only, and strip awaits from every inner link. Inner links
   (``where``, ``order``) return lazy, chainable relations; awaiting them
   would resolve the relation too early.
3. ``recv`` is a local or instance variable and ``method`` mutates or reloads
   the record: await.
4. ``recv`` is an association accessor call (``article.comments``) and
   ``method`` is an association proxy method: await. Accessors reached through
   ``[]`` are plain indexing and never qualify.

Rule 2 is resolved first because the walk is outermost-first: once the
outermost link of a chain is classified, its inner links are rebuilt without
coloring, so no chain ever carries two awaits.

Missing facts degrade conservatively: a constant the metadata bus has never
heard of is treated as a model when it looks like one, and an accessor with
no declaration is treated as an association when its name is plural.
"""

import logging
from typing import Any, Iterable, List, Optional, Set, Tuple

from rails2js.core.bus import UNKNOWN, MetadataBus
from rails2js.core.context import RewriterContext, UnitContext
from rails2js.core.inflector import is_plural
from rails2js.core.metadata import ModelFacts, ScopeRecord
from rails2js.core.node import Node, const_name, is_node, retag, s
from rails2js.core.tracer import TraceLogger
from rails2js.core.walker import Walker

logger = logging.getLogger(__name__)

# Methods that execute a query when called on a model class or relation.
TERMINAL_QUERY_METHODS = frozenset(
  [
    "all",
    "find",
    "find_by",
    "find_by!",
    "findByBang",
    "where",
    "first",
    "last",
    "take",
    "count",
    "sum",
    "average",
    "minimum",
    "maximum",
    "create",
    "create!",
    "order",
    "distinct",
    "pluck",
    "ids",
    "exists?",
    "any",
    "find_each",
    "find_in_batches",
    "update_all",
    "destroy_all",
    "delete_all",
  ]
)

# Record methods that hit storage.
INSTANCE_MUTATION_METHODS = frozenset(
  ["save", "save!", "update", "update!", "destroy", "destroy!", "reload", "touch", "valid?", "invalid?"]
)

# Methods of a collection proxy that resolve asynchronously.
ASSOCIATION_PROXY_METHODS = frozenset(
  [
    "find",
    "create",
    "create!",
    "build",
    "count",
    "size",
    "length",
    "first",
    "last",
    "take",
    "where",
    "order",
    "limit",
    "exists?",
    "empty?",
    "any?",
    "none?",
    "pluck",
    "ids",
    "destroy_all",
    "delete_all",
  ]
)

# Relation builders that never execute on their own.
CHAINABLE_QUERY_METHODS = frozenset(
  [
    "includes",
    "joins",
    "left_joins",
    "left_outer_joins",
    "preload",
    "eager_load",
    "limit",
    "offset",
    "select",
    "group",
    "having",
    "reorder",
    "rewhere",
    "unscope",
    "references",
    "readonly",
    "not",
    "or",
    "none",
    "where",
    "order",
    "distinct",
    "all",
  ]
)

# Block forms of test frameworks that manage their own asynchrony.
RESERVED_BLOCK_FORMS = frozenset(
  [
    "describe",
    "context",
    "it",
    "test",
    "specify",
    "before",
    "after",
    "setup",
    "teardown",
    "beforeEach",
    "afterEach",
    "beforeAll",
    "afterAll",
    "expect",
    "assert_raises",
    "assert_difference",
    "assert_no_difference",
    "assert_changes",
    "assert_no_changes",
    "accept_confirm",
    "dismiss_confirm",
  ]
)

# Constants that are never data models, even when the bus has no facts.
NON_MODEL_CONSTANTS = frozenset(
  [
    "Rails",
    "ActiveRecord",
    "ActiveSupport",
    "ApplicationRecord",
    "ApplicationController",
    "Time",
    "Date",
    "DateTime",
    "JSON",
    "Math",
    "File",
    "Dir",
    "Hash",
    "Array",
    "String",
    "Integer",
    "Float",
    "Struct",
    "Object",
    "Kernel",
    "Process",
    "ENV",
    "URI",
    "Base64",
    "SecureRandom",
    "I18n",
    "Set",
    "Regexp",
    "Proc",
    "BroadcastChannel",
    "Turbo",
    "Router",
    "Application",
    "CollectionProxy",
    "Reference",
    "HasOneReference",
  ]
)

# Scopes with their own function boundary; awaits inside them are accounted for there.
SEPARATE_SCOPES = frozenset(["async", "asyncs", "async_block", "def", "defs", "defm", "defget", "defp"])

VARIABLE_KINDS = ("lvar", "ivar")


def is_await(node: Any) -> bool:
  """True for an await-colored node: ``(await ...)`` or ``(send nil :await x)``."""
  if not isinstance(node, Node):
    return False
  if node.kind == "await":
    return True
  return node.kind == "send" and len(node.children) == 3 and node.children[0] is None and node.children[1] == "await"


def await_node(node: Node, force_call: bool = False, force_property: bool = False) -> Node:
  """
  Wraps ``node`` in an await marker.

  Call nodes are retagged ``await`` (keeping receiver, method and arguments);
  any other expression becomes ``(send nil :await expr)``. Already-awaited
  nodes are returned unchanged.
  """
  if is_await(node):
    return node
  if node.kind == "send":
    hint_call = force_call or node.force_call
    hint_prop = force_property and not hint_call
    return retag(node, "await").with_hints(force_call=hint_call, force_property=hint_prop or node.force_property)
  return s("send", None, "await", node)


def strip_await(node: Any) -> Any:
  """Removes await coloring from one node (not from its descendants)."""
  if not is_await(node):
    return node
  if node.kind == "await":
    return retag(node, "send")
  return node.children[2]


def contains_await(node: Any) -> bool:
  """
  Checks whether a subtree suspends.

  The scan does not descend into nested scopes that have their own function
  boundary (async closures, method definitions): their awaits are accounted
  for by their own marking. A body that is itself such a scope never suspends.
  """
  if not isinstance(node, Node) or node.kind in SEPARATE_SCOPES:
    return False
  if is_await(node):
    return True
  return any(contains_await(child) for child in node.children)


def block_method(block: Node) -> Optional[str]:
  """Method name of the call a block is attached to."""
  call = block.children[0] if block.children else None
  if is_node(call, "send", "csend", "await") and len(call.children) > 1:
    return call.children[1]
  if is_node(call, "lambda"):
    return "lambda"
  return None


def propagate_async(block: Node) -> Node:
  """
  Retags a closure ``block`` as ``async_block`` when its body suspends.

  Blocks of reserved test-framework forms are returned unchanged.
  """
  if not is_node(block, "block") or len(block.children) < 3:
    return block
  if block_method(block) in RESERVED_BLOCK_FORMS:
    return block
  if contains_await(block.children[2]):
    return retag(block, "async_block")
  return block


def chain_links(node: Node) -> Tuple[List[Node], Any]:
  """
  Splits a call chain into links (outermost first) and its root receiver.

  Await markers on links are looked through, so a previously colored inner
  link is still recognized as part of the chain.
  """
  links: List[Node] = []
  current: Any = node
  while True:
    if is_await(current) and current.kind == "send":
      current = current.children[2]
      continue
    if is_node(current, "send", "csend", "await") and current.children[0] is not None:
      links.append(current)
      current = current.children[0]
      continue
    break
  return links, current


class ModelOracle:
  """
  Answers "is this a model / association / scope?" from local and bus facts.

  Args:
      bus: The run-scoped metadata bus.
      unit: The unit currently being rewritten, whose own facts take priority.
      extra_models: Names known to be models without bus entries.
      tracer: Optional tracer for recording conservative fallbacks.
  """

  def __init__(
    self,
    bus: MetadataBus,
    unit: Optional[UnitContext] = None,
    extra_models: Iterable[str] = (),
    tracer: Optional[TraceLogger] = None,
  ):
    self.bus = bus
    self.unit = unit
    self.extra_models: Set[str] = set(extra_models)
    self.tracer = tracer
    self._reported: Set[str] = set()

  def is_model(self, name: Optional[str]) -> bool:
    if not name:
      return False
    if name in self.extra_models:
      return True
    if self.unit is not None and self.unit.kind.value == "model" and name == self.unit.name:
      return True
    verdict = self.bus.is_model(name)
    if verdict is not None:
      return verdict
    if name.split("::")[0] in NON_MODEL_CONSTANTS or not name[:1].isupper():
      return False
    if name.endswith("Controller"):
      return False
    if self.tracer is not None and name not in self._reported:
      self._reported.add(name)
      self.tracer.log_bus_miss(name, "treated as model")
    return True

  def model_facts(self, name: str) -> Optional[ModelFacts]:
    facts = self.bus.model(name)
    if facts is UNKNOWN or facts is None:
      return None
    return facts

  def is_association(self, accessor: str) -> bool:
    if accessor == "[]":
      return False
    if self.unit is not None and self.unit.association(accessor) is not None:
      return True
    if accessor in self.bus.association_names():
      return True
    return is_plural(accessor)

  def association_target(self, accessor: str) -> Optional[str]:
    if self.unit is not None:
      local = self.unit.association(accessor)
      if local is not None:
        return local.target
    assoc = self.bus.find_association(accessor)
    return assoc.target if assoc is not None else None

  def scope(self, model: Optional[str], name: str) -> Optional[ScopeRecord]:
    """Finds a declared scope on ``model`` (or on the current unit when ``model`` is None)."""
    if model is None or (self.unit is not None and model == self.unit.name):
      if self.unit is not None:
        local = self.unit.scope(name)
        if local is not None:
          return local
      if model is None:
        return None
    facts = self.model_facts(model)
    return facts.scope(name) if facts is not None else None


class AwaitColorer(Walker):
  """
  Walker applying the classification rules and closure propagation.

  Args:
      oracle: Source of model/association/scope facts.
      tracer: Optional tracer for coloring decisions.
      mark_functions: Also retag ``def``/``defs`` whose bodies suspend as
          ``async``/``asyncs``.
  """

  def __init__(self, oracle: ModelOracle, tracer: Optional[TraceLogger] = None, mark_functions: bool = False):
    self.oracle = oracle
    self.tracer = tracer
    self.mark_functions = mark_functions

  @classmethod
  def for_context(cls, context: RewriterContext, extra_models: Iterable[str] = (), **kwargs: Any) -> "AwaitColorer":
    """Builds a colorer wired to a rewriter context's bus, unit and tracer."""
    oracle = ModelOracle(context.bus, context.unit, extra_models, context.tracer)
    return cls(oracle, context.tracer, **kwargs)

  # -- classification -------------------------------------------------------

  def chain_origin(self, receiver: Any) -> Optional[Tuple[str, Optional[str]]]:
    """
    Classifies the root of a receiver chain.

    Returns:
        ``("model", name)`` for a chain rooted at a model constant,
        ``("association", target)`` for a chain rooted at an association
        accessor on a variable, or None.
    """
    if is_await(receiver) and receiver.kind == "send":
      receiver = receiver.children[2]
    if is_node(receiver, "const"):
      name = const_name(receiver)
      return ("model", name) if self.oracle.is_model(name) else None
    if not is_node(receiver, "send", "csend", "await"):
      return None
    links, root = chain_links(receiver)
    if is_node(root, "const"):
      name = const_name(root)
      if self.oracle.is_model(name):
        return ("model", name)
      return None
    # Association chain: var.accessor(.chainable)*
    if not links:
      return None
    accessor = links[-1]
    if not (is_node(root, *VARIABLE_KINDS, "self") and len(accessor.children) == 2):
      return None
    if not self.oracle.is_association(accessor.children[1]):
      return None
    for link in links[:-1]:
      method = link.children[1]
      if method not in ASSOCIATION_PROXY_METHODS and method not in CHAINABLE_QUERY_METHODS:
        return None
    return ("association", self.oracle.association_target(accessor.children[1]))

  def classify(self, node: Node) -> Optional[str]:
    """
    Applies the classification rules to one call node.

    Returns:
        The name of the matching rule (``"model-terminal"``, ``"chain"``,
        ``"instance"``, ``"association"``), or None for no coloring.
    """
    if not is_node(node, "send", "await") or len(node.children) < 2:
      return None
    receiver, method = node.children[0], node.children[1]
    if receiver is None:
      return None
    if is_await(receiver) and receiver.kind == "send":
      receiver = receiver.children[2]

    if is_node(receiver, "send", "csend", "await") and method in TERMINAL_QUERY_METHODS:
      origin = self.chain_origin(receiver)
      if origin is not None and origin[0] == "model":
        return "chain"

    if is_node(receiver, "const") and method in TERMINAL_QUERY_METHODS:
      if self.oracle.is_model(const_name(receiver)):
        return "model-terminal"

    if is_node(receiver, *VARIABLE_KINDS) and method in INSTANCE_MUTATION_METHODS:
      return "instance"

    if is_node(receiver, "send", "csend", "await") and method in ASSOCIATION_PROXY_METHODS:
      origin = self.chain_origin(receiver)
      if origin is not None and origin[0] == "association":
        return "association"
    return None

  # -- rewriting ------------------------------------------------------------

  def _scope_hint(self, node: Node, model: Optional[str]) -> Node:
    """Applies property/call syntax to a reference of a declared scope."""
    if not is_node(node, "send", "await") or len(node.children) < 2:
      return node
    scope = self.oracle.scope(model, node.children[1])
    if scope is None:
      return node
    if scope.is_property and len(node.children) == 2:
      return node.with_hints(force_call=False, force_property=True)
    return node.with_hints(force_call=True, force_property=False)

  def _rebuild_chain(self, receiver: Any, origin: Optional[Tuple[str, Optional[str]]]) -> Any:
    """
    Rebuilds a receiver chain with every link uncolored.

    Link arguments are still processed, since they may hold their own
    independent queries.
    """
    if is_await(receiver):
      receiver = strip_await(receiver)
    if not is_node(receiver, "send", "csend") or receiver.children[0] is None:
      return self.process(receiver)
    model = origin[1] if origin else None
    inner = self._rebuild_chain(receiver.children[0], origin)
    args = self.process_all(receiver.children[2:])
    link = receiver.updated(children=[inner, receiver.children[1], *args])
    return self._scope_hint(link, model)

  def _log(self, node: Node, rule: str) -> None:
    method = node.children[1]
    logger.debug("await (%s): %s", rule, method)
    if self.tracer is not None:
      self.tracer.log_await(str(method), rule)

  def on_send(self, node: Node) -> Any:
    children = node.children
    if len(children) < 2:
      return self.process_children(node)
    if is_await(node) and node.kind == "send":
      return node.updated(children=[None, "await", self._visit_awaited(children[2])])

    rule = self.classify(node)
    receiver, method, args = children[0], children[1], children[2:]

    if rule is not None:
      origin = self.chain_origin(receiver) if rule in ("chain", "association") else None
      new_receiver = self._rebuild_chain(receiver, origin) if origin else self.process(strip_await(receiver))
      new_node = node.updated(kind="send", children=[new_receiver, method, *self.process_all(args)])
      if rule == "model-terminal":
        new_node = self._scope_hint(new_node, const_name(receiver))
      self._log(node, rule)
      return await_node(new_node, force_call=not new_node.force_property)

    # A model-rooted chain ending in a builder: keep every link uncolored.
    if is_node(receiver, "send", "csend", "await") and method in CHAINABLE_QUERY_METHODS:
      origin = self.chain_origin(receiver)
      if origin is not None:
        new_receiver = self._rebuild_chain(receiver, origin)
        return node.updated(children=[new_receiver, method, *self.process_all(args)])

    # Scope reference on a model. A zero-argument reference to a property
    # scope is an awaited read; a parameterized scope is always a call.
    if is_node(receiver, "const") and node.kind == "send":
      name = const_name(receiver)
      scope = self.oracle.scope(name, method) if self.oracle.is_model(name) else None
      if scope is not None:
        if scope.is_property and not args:
          self._log(node, "scope")
          return await_node(node.with_hints(force_property=True))
        return self._scope_hint(self.process_children(node), name)

    processed = super().on_send(node)
    if is_node(processed, "send", "await") and processed.children[0] is None and len(processed.children) >= 2:
      # Bare scope references inside the model itself.
      return self._scope_hint(processed, None)
    return processed

  def _visit_awaited(self, expr: Any) -> Any:
    """Processes the operand of an explicit ``await`` without re-coloring it."""
    if is_node(expr, "send") and self.classify(expr) is not None:
      colored = self.process(expr)
      return strip_await(colored)
    return self.process(expr)

  def on_block(self, node: Node) -> Any:
    processed = self.process_children(node)
    if processed.kind == "block":
      return propagate_async(processed)
    return processed

  def on_def(self, node: Node) -> Any:
    processed = self.process_children(node)
    if self.mark_functions and processed.kind in ("def", "defm") and contains_await(processed.children[-1]):
      return retag(processed, "async")
    return processed

  def on_defs(self, node: Node) -> Any:
    processed = self.process_children(node)
    if self.mark_functions and processed.kind == "defs" and contains_await(processed.children[-1]):
      return retag(processed, "asyncs")
    return processed


def color(node: Any, context: RewriterContext, extra_models: Iterable[str] = (), mark_functions: bool = False) -> Any:
  """Applies await coloring to a subtree using a context's facts."""
  return AwaitColorer.for_context(context, extra_models, mark_functions=mark_functions).process(node)
