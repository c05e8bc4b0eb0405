"""
Data structures representing the output of the rewrite pipeline.

This module defines the `ConversionResult` Pydantic model, which encapsulates
the rewritten tree, its s-expression rendering, any errors encountered, and
the execution trace logs.
"""

from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field, InstanceOf

from rails2js.core.node import Node


class ConversionResult(BaseModel):
  """
  Container for the results of a rewrite job.
  """

  model_config = ConfigDict(arbitrary_types_allowed=True)

  code: str = Field(default="", description="The rewritten tree as s-expression text (printer input).")
  tree: Optional[InstanceOf[Node]] = Field(default=None, description="The rewritten target tree.")
  unit_kind: str = Field(default="other", description="Detected structural unit kind.")
  unit_name: Optional[str] = Field(default=None, description="Detected unit name, if any.")
  errors: List[str] = Field(default_factory=list, description="List of error messages encountered.")
  success: bool = Field(
    default=True,
    description="True if the pipeline completed without fatal crashes.",
  )
  trace_events: List[Dict[str, Any]] = Field(default_factory=list, description="Execution trace log data.")

  @property
  def has_errors(self) -> bool:
    """
    Check if the result contains any error messages.

    Returns:
        True if one or more errors are present.
    """
    return len(self.errors) > 0
