"""
Rewriter package.

Exposes the pass interface and the sequential pipeline runner.
"""

from rails2js.core.rewriter.interface import RewriterPass
from rails2js.core.rewriter.pipeline import RewriterPipeline

__all__ = ["RewriterPass", "RewriterPipeline"]
