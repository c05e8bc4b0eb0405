"""
Logger Filter.

``Rails.logger.info "x"`` and receiver-less ``logger.warn "x"`` become
``console.<level>`` calls. Applies in every unit kind.
"""

from typing import Any

from rails2js.core.builders import call, lvar
from rails2js.core.hooks import register_filter
from rails2js.core.node import Node, const_name, is_node
from rails2js.filters.base import FilterBase

CONSOLE_LEVELS = {
  "debug": "debug",
  "info": "info",
  "warn": "warn",
  "error": "error",
  "fatal": "error",
  "unknown": "log",
}


def is_logger(node: Any) -> bool:
  """``Rails.logger`` or a receiver-less ``logger``."""
  if not is_node(node, "send") or len(node.children) != 2 or node.children[1] != "logger":
    return False
  receiver = node.children[0]
  return receiver is None or const_name(receiver) == "Rails"


@register_filter("logger", order=60)
class LoggerFilter(FilterBase):
  """Maps Rails logger calls onto the console."""

  def on_send(self, node: Node) -> Any:
    receiver, method = node.children[0], node.children[1]
    level = CONSOLE_LEVELS.get(method) if isinstance(method, str) else None
    if level is not None and is_logger(receiver):
      return call(lvar("console"), level, *self.process_all(node.children[2:]))
    return super().on_send(node)
