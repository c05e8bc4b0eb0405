"""
Validation Lowering Mixin.

Collected validation records become one ``validate()`` instance method that
calls the runtime's ``validates_*_of`` helpers, one call per supported rule.
Unsupported rule shapes are skipped.
"""

from typing import Any, List, Optional

from rails2js.core.builders import literal
from rails2js.core.metadata import ValidationRecord
from rails2js.core.node import Node, is_node, s


def _rule_call(helper: str, field: str, *options: Node) -> Node:
  return s("send", s("self"), helper, s("str", field), *options)


def _pairs(options: dict) -> Node:
  return s("hash", *[s("pair", s("sym", k), literal(v)) for k, v in options.items()])


class ValidationMixin:
  """
  Generator for the ``validate`` method. Expects ``self.unit`` to be a model unit.
  """

  def validation_calls(self, record: ValidationRecord) -> List[Node]:
    calls: List[Node] = []
    field = record.field
    for rule, options in record.rules.items():
      if rule == "presence" and options is True:
        calls.append(_rule_call("validates_presence_of", field))
      elif rule == "length" and isinstance(options, dict):
        calls.append(_rule_call("validates_length_of", field, _pairs(options)))
      elif rule == "uniqueness" and options is True:
        calls.append(_rule_call("validates_uniqueness_of", field))
      elif rule == "format" and isinstance(options, dict) and options.get("with") is not None:
        pattern = options["with"]
        value = pattern if is_node(pattern, "regexp") else s("regexp", s("str", str(pattern)), s("regopt"))
        calls.append(_rule_call("validates_format_of", field, s("hash", s("pair", s("sym", "with"), value))))
      elif rule == "numericality" and options is True:
        calls.append(_rule_call("validates_numericality_of", field))
      elif rule == "numericality" and isinstance(options, dict):
        calls.append(_rule_call("validates_numericality_of", field, _pairs(options)))
      elif rule == "inclusion" and isinstance(options, dict) and isinstance(options.get("in"), list):
        values = s("array", *[s("str", str(v)) for v in options["in"]])
        calls.append(_rule_call("validates_inclusion_of", field, s("hash", s("pair", s("sym", "in"), values))))
    return calls

  def validate_method(self) -> Optional[Node]:
    calls: List[Any] = []
    for record in self.unit.validations:
      calls.extend(self.validation_calls(record))
    if not calls:
      return None
    return s("defm", "validate", s("args"), s("begin", *calls))
