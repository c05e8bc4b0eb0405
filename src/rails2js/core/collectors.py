"""
Metadata Collection Pass.

Single linear scans over the top-level statements of one class body that
turn declarative calls (``has_many``, ``validates``, ``scope``,
``before_action``...) into fact records on a :class:`UnitContext`.

Collection never rewrites: every ``collect_*`` entry point returns the body it
was given. Method bodies are not searched; the only nested structure captured
is the lambda attached to a declaration (scope bodies, association defaults,
broadcast stream expressions). Unrecognized statements are simply skipped and
later pass through the rewrite untouched.
"""

import logging
from typing import Any, Dict, List, Optional

from rails2js.core.context import UnitContext
from rails2js.core.inflector import classify, singularize, underscore, pluralize
from rails2js.core.metadata import (
  AssociationRecord,
  CallbackRecord,
  ControllerFacts,
  EnumRecord,
  GuardRecord,
  ModelFacts,
  ScopeRecord,
  ValidationRecord,
)
from rails2js.core.node import Node, body_statements, const_name, is_node, literal_value, s, sym_value
from rails2js.enums import AssociationKind

logger = logging.getLogger(__name__)

CALLBACK_PHASES = (
  "before_validation",
  "after_validation",
  "before_save",
  "after_save",
  "before_create",
  "after_create",
  "before_update",
  "after_update",
  "before_destroy",
  "after_destroy",
  "after_commit",
  "after_create_commit",
  "after_update_commit",
  "after_destroy_commit",
  "after_save_commit",
  "after_touch",
)

ASSOCIATION_DECLARATIONS = {
  "has_many": AssociationKind.HAS_MANY,
  "has_one": AssociationKind.HAS_ONE,
  "belongs_to": AssociationKind.BELONGS_TO,
}

# Declarations consumed by collection; the rewrite drops them from the class body.
MODEL_DECLARATIONS = frozenset(
  [
    "has_many",
    "has_one",
    "belongs_to",
    "validates",
    "scope",
    "broadcasts_to",
    "has_one_attached",
    "has_many_attached",
    "has_rich_text",
    "store",
    "enum",
    "accepts_nested_attributes_for",
    *CALLBACK_PHASES,
  ]
)

CONTROLLER_DECLARATIONS = frozenset(["before_action", "skip_before_action"])

LAMBDA_CALLS = ("lambda", "proc")


def scalar_value(node: Any) -> Any:
  """Unwraps literal nodes to Python scalars; other nodes are returned as-is."""
  if is_node(node, "sym", "str", "int", "float"):
    return node.children[0]
  if is_node(node, "true"):
    return True
  if is_node(node, "false"):
    return False
  if is_node(node, "nil"):
    return None
  return node


def hash_options(node: Any) -> Dict[str, Any]:
  """Symbol-keyed ``hash`` node to a dict of scalar values (nested hashes become dicts)."""
  options: Dict[str, Any] = {}
  if not is_node(node, "hash"):
    return options
  for pair in node.children:
    if not is_node(pair, "pair"):
      continue
    key, value = pair.children
    name = sym_value(key) if is_node(key, "sym") else literal_value(key)
    if name is None:
      continue
    if is_node(value, "hash"):
      options[name] = hash_options(value)
    elif is_node(value, "array") and all(is_node(c, "sym", "str", "int") for c in value.children):
      options[name] = [literal_value(c) for c in value.children]
    else:
      options[name] = scalar_value(value)
  return options


def trailing_options(args: List[Any]) -> Dict[str, Any]:
  options: Dict[str, Any] = {}
  for arg in args:
    if is_node(arg, "hash"):
      options.update(hash_options(arg))
  return options


def name_list(node: Any) -> List[str]:
  """``:show`` or ``[:show, :edit]`` (symbols or strings) to a name list."""
  if is_node(node, "sym", "str"):
    return [node.children[0]]
  if is_node(node, "array"):
    return [c.children[0] for c in node.children if is_node(c, "sym", "str")]
  if isinstance(node, list):
    return [str(v) for v in node]
  if isinstance(node, str):
    return [node]
  return []


def is_lambda(node: Any) -> bool:
  """True for ``-> { }`` / ``lambda { }`` / ``proc { }`` block literals."""
  if not is_node(node, "block") or not node.children:
    return False
  head = node.children[0]
  if is_node(head, "lambda"):
    return True
  return is_node(head, "send") and head.children[0] is None and head.children[1] in LAMBDA_CALLS


def lambda_params(node: Node) -> List[str]:
  """Parameter names of a lambda block literal."""
  params = node.children[1]
  if not is_node(params, "args"):
    return []
  return [p.children[0] for p in params.children if is_node(p) and p.children]


def declaration(stmt: Any) -> Optional[Node]:
  """
  The receiver-less call of a top-level declaration statement.

  For ``after_save do ... end`` the block's call is returned.
  """
  if is_node(stmt, "send") and stmt.children[0] is None:
    return stmt
  if is_node(stmt, "block") and is_node(stmt.children[0], "send") and stmt.children[0].children[0] is None:
    return stmt.children[0]
  return None


def is_private_marker(stmt: Any) -> bool:
  return is_node(stmt, "send") and stmt.children[0] is None and stmt.children[1] == "private" and len(stmt.children) == 2


def collect_methods(body: Any, unit: UnitContext) -> Any:
  """Records public, private and defined instance methods of a class body."""
  in_private = False
  for stmt in body_statements(body):
    if is_private_marker(stmt):
      in_private = True
      continue
    if is_node(stmt, "def"):
      name = stmt.children[0]
      unit.defined_methods.add(name)
      if in_private:
        unit.private_methods[name] = stmt
      else:
        unit.public_methods[name] = stmt
  return body


class ModelCollector:
  """
  Collects the declarations of a data-model class body into ``unit``.
  """

  def __init__(self, unit: UnitContext):
    self.unit = unit

  def collect(self, body: Any) -> Any:
    collect_methods(body, self.unit)
    for stmt in body_statements(body):
      call = declaration(stmt)
      if call is None:
        continue
      method, args = call.children[1], list(call.children[2:])
      if method in ASSOCIATION_DECLARATIONS:
        self._association(ASSOCIATION_DECLARATIONS[method], args)
      elif method in ("has_one_attached", "has_many_attached"):
        self._attachment(method, args)
      elif method == "validates":
        self._validation(args)
      elif method == "scope":
        self._scope(args)
      elif method == "enum":
        self._enum(args)
      elif method == "accepts_nested_attributes_for":
        self._nested_attributes(args)
      elif method == "broadcasts_to":
        if args and is_lambda(args[0]):
          self.unit.broadcasts.append(call)
      elif method in CALLBACK_PHASES:
        self._callback(method, args, stmt if is_node(stmt, "block") else None)
    return body

  def _association(self, kind: AssociationKind, args: List[Any]) -> None:
    name = sym_value(args[0]) if args else None
    if name is None:
      return
    options = trailing_options(args[1:])
    if kind == AssociationKind.BELONGS_TO and options.pop("polymorphic", False) is True:
      kind = AssociationKind.POLYMORPHIC
    if isinstance(options.get("class_name"), str):
      options["class_name"] = options["class_name"].split("::")[-1]
    record = AssociationRecord.derive(kind, name, self.unit.name, options)
    self.unit.associations.append(record)

  def _attachment(self, method: str, args: List[Any]) -> None:
    name = sym_value(args[0]) if args else None
    if name is not None:
      self.unit.attachments[name] = method

  def _validation(self, args: List[Any]) -> None:
    fields = [a.children[0] for a in args if is_node(a, "sym")]
    rules = trailing_options(args)
    for field_name in fields:
      self.unit.validations.append(ValidationRecord(field=field_name, rules=rules))

  def _scope(self, args: List[Any]) -> None:
    if len(args) < 2:
      return
    name = sym_value(args[0])
    body = args[1]
    if name is None:
      return
    if is_lambda(body):
      record = ScopeRecord(name=name, params=lambda_params(body), body=body.children[2])
    else:
      record = ScopeRecord(name=name, params=[], body=None)
    self.unit.scopes.append(record)

  def _enum(self, args: List[Any]) -> None:
    if not args:
      return
    options: Dict[str, Any] = {}
    if is_node(args[0], "sym") and len(args) >= 2:
      field_name = args[0].children[0]
      values = enum_values(args[1])
      if len(args) > 2:
        options = trailing_options(args[2:])
    elif is_node(args[0], "hash"):
      # enum status: [...], _prefix: true
      field_name, values = None, None
      for pair in args[0].children:
        key = sym_value(pair.children[0]) if is_node(pair, "pair") else None
        if key is None:
          continue
        if key.startswith("_") or field_name is not None:
          options[key.lstrip("_")] = scalar_value(pair.children[1])
          continue
        field_name, values = key, enum_values(pair.children[1])
    else:
      return
    if field_name is None or values is None:
      return

    prefix = options.get("prefix")
    if prefix is True:
      prefix = field_name
    elif prefix is False:
      prefix = None
    default = options.get("default")
    record = EnumRecord(
      field=field_name,
      values=values,
      prefix=str(prefix) if prefix else None,
      scopes=options.get("scopes", True) is not False,
      default=str(default) if isinstance(default, str) else None,
    )
    self.unit.enums.append(record)

  def _nested_attributes(self, args: List[Any]) -> None:
    name = sym_value(args[0]) if args else None
    if name is None:
      return
    self.unit.nested_attributes.append(name)
    self.unit.extras.setdefault("nested_options", {})[name] = trailing_options(args[1:])

  def _callback(self, phase: str, args: List[Any], block: Optional[Node]) -> None:
    options = trailing_options(args)
    for arg in args:
      if is_node(arg, "sym"):
        self.unit.callbacks.append(CallbackRecord(phase=phase, method=arg.children[0], options=options))
    if block is not None:
      self.unit.callbacks.append(CallbackRecord(phase=phase, body=block.children[2] or s("nil"), options=options))


def enum_values(node: Any) -> Optional[Dict[str, Any]]:
  """
  Reads the value list of an enum declaration.

  ``[:a, :b]`` / ``%w[a b]`` map to integer positions, ``{a: 0, b: 5}``
  keeps the declared values, and ``%w[a b].index_by(&:itself)`` maps each
  name to itself.
  """
  if is_node(node, "send") and node.children[1] == "index_by" and is_node(node.children[0], "array"):
    names = [literal_value(c) for c in node.children[0].children]
    return {str(n): str(n) for n in names if n is not None}
  if is_node(node, "array"):
    names = [literal_value(c) for c in node.children]
    return {str(n): i for i, n in enumerate(names) if n is not None}
  if is_node(node, "hash"):
    values = {}
    for key, value in hash_options(node).items():
      values[str(key)] = value
    return values or None
  return None


def collect_model(body: Any, unit: UnitContext) -> Any:
  """Runs the model collection scan; returns ``body`` unchanged."""
  ModelCollector(unit).collect(body)
  logger.debug(
    "collected model %s: %d associations, %d scopes, %d enums",
    unit.name,
    len(unit.associations),
    len(unit.scopes),
    len(unit.enums),
  )
  return body


def table_name_for(class_node: Node) -> str:
  """
  Conventional table name of a model class.

  ``Article`` gives ``articles``; a nested ``Card::NotNow`` is prefixed with
  its parent: ``card_not_nows``.
  """
  name = const_name(class_node) or ""
  parts = name.split("::")
  leaf = underscore(parts[-1])
  if len(parts) > 1:
    return pluralize(f"{underscore(parts[-2])}_{leaf}")
  return pluralize(leaf)


def model_facts(unit: UnitContext, table_name: str) -> ModelFacts:
  """Bus-ready facts of a collected model unit."""
  return ModelFacts(
    name=unit.name,
    file_path=unit.file_path,
    table_name=table_name,
    associations=list(unit.associations),
    validations=list(unit.validations),
    callbacks=[c for c in unit.callbacks if c.method is not None],
    enums=list(unit.enums),
    scopes=list(unit.scopes),
    attachments=dict(unit.attachments),
    nested_attributes=list(unit.nested_attributes),
    methods=sorted(unit.defined_methods),
  )


class ControllerCollector:
  """
  Collects guards and the method table of a controller class body.

  ``skip_before_action`` narrows a previously declared guard: with ``only``
  the listed actions are excluded, without it the guard is removed.
  """

  def __init__(self, unit: UnitContext):
    self.unit = unit

  def collect(self, body: Any) -> Any:
    collect_methods(body, self.unit)
    for stmt in body_statements(body):
      call = declaration(stmt)
      if call is None or call.children[1] not in CONTROLLER_DECLARATIONS:
        continue
      args = list(call.children[2:])
      names = [a.children[0] for a in args if is_node(a, "sym")]
      options = {}
      for arg in args:
        if is_node(arg, "hash"):
          for pair in arg.children:
            key = sym_value(pair.children[0]) if is_node(pair, "pair") else None
            if key in ("only", "except"):
              options[key] = name_list(pair.children[1])
      if call.children[1] == "before_action":
        for name in names:
          self.unit.guards.append(GuardRecord(method=name, only=options.get("only", []), except_=options.get("except", [])))
      else:
        self._skip(names, options)
    return body

  def _skip(self, names: List[str], options: Dict[str, List[str]]) -> None:
    kept = []
    for guard in self.unit.guards:
      if guard.method not in names:
        kept.append(guard)
        continue
      if "only" in options:
        if guard.only:
          remaining = [a for a in guard.only if a not in options["only"]]
          if remaining:
            kept.append(guard.model_copy(update={"only": remaining}))
        else:
          kept.append(guard.model_copy(update={"except_": [*guard.except_, *options["only"]]}))
      elif "except" in options:
        allowed = [a for a in options["except"] if guard.admits(a)]
        if allowed:
          kept.append(guard.model_copy(update={"only": allowed, "except_": []}))
    self.unit.guards = kept


def collect_controller(body: Any, unit: UnitContext) -> Any:
  """Runs the controller collection scan; returns ``body`` unchanged."""
  ControllerCollector(unit).collect(body)
  return body


def controller_model(controller_name: str) -> str:
  """``ArticlesController`` to ``Article``; ``Admin::PeopleController`` to ``Person``."""
  base = controller_name.split("::")[-1]
  if base.endswith("Controller"):
    base = base[: -len("Controller")]
  return classify(singularize(underscore(base)))


def controller_facts(unit: UnitContext, model: Optional[str]) -> ControllerFacts:
  return ControllerFacts(
    name=unit.name,
    file_path=unit.file_path,
    model=model,
    actions=list(unit.public_methods),
    guards=list(unit.guards),
  )
