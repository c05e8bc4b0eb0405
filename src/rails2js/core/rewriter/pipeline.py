"""
Orchestration logic for executing sequential rewriter passes.

This module provides the ``RewriterPipeline``, which manages the sequential
execution of multiple ``RewriterPass`` instances over a shared Context.
"""

import logging
from typing import List

from rails2js.core.context import RewriterContext
from rails2js.core.node import Node
from rails2js.core.rewriter.interface import RewriterPass

logger = logging.getLogger(__name__)


class RewriterPipeline:
  """
  Manages a sequence of rewriting passes and executes them in order.
  """

  def __init__(self, passes: List[RewriterPass]) -> None:
    """
    Initializes the pipeline with a list of passes.

    Args:
        passes: Sequenced list of passes to execute.
    """
    self.passes = passes

  def run(self, tree: Node, context: RewriterContext) -> Node:
    """
    Executes all registered passes sequentially on the tree.

    Args:
        tree: The source tree to transform.
        context: The shared execution state containing the bus and config.

    Returns:
        The fully transformed tree.
    """
    current = tree
    for pass_instance in self.passes:
      context.tracer.start_phase(f"Filter {pass_instance.name}")
      try:
        result = pass_instance.transform(current, context)
      finally:
        context.tracer.end_phase()
      if result is not current:
        logger.debug("filter '%s' rewrote the tree", pass_instance.name)
      current = result
    return current
