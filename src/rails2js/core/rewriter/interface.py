"""
Interface definition for Rewriter Passes.

This module defines the abstract base class that every filter implements to
be compatible with the ``RewriterPipeline``.
"""

from abc import ABC, abstractmethod

from rails2js.core.context import RewriterContext
from rails2js.core.node import Node


class RewriterPass(ABC):
  """
  Abstract contract for a transformation pass in the rewriting pipeline.

  Passes encapsulate one domain of rewrite rules (models, controllers,
  routes...) and are executed sequentially by the pipeline. A pass must be
  transparent for trees it does not recognize.

  Attributes:
      name: Registry name of the pass.
  """

  name: str = ""

  @abstractmethod
  def transform(self, tree: Node, context: RewriterContext) -> Node:
    """
    Executes the transformation logic on the given tree.

    Args:
        tree: The input tree (one source file).
        context: The shared rewriter context containing configuration and state.

    Returns:
        The transformed tree.
    """
    pass
