"""
Turn processing pipeline.

Composable stages for one conversational turn: load context, generate the
reply, extract facts, update the specification, recompute completeness and
persist.
"""

from .base import TurnStage
from .context import PipelineContext
from .pipeline import TurnPipeline
from .result import TurnResult

__all__ = [
    "TurnStage",
    "PipelineContext",
    "TurnPipeline",
    "TurnResult",
]
