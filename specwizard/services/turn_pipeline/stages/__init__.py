"""
Pipeline stages for turn processing.

Each stage encapsulates one logical step of a conversational turn. Stages
execute sequentially in the TurnPipeline orchestrator.
"""

from .context_loading_stage import ContextLoadingStage
from .generation_stage import GenerationStage
from .extraction_stage import ExtractionStage
from .specification_update_stage import SpecificationUpdateStage
from .completeness_stage import CompletenessStage
from .persistence_stage import PersistenceStage

__all__ = [
    "ContextLoadingStage",
    "GenerationStage",
    "ExtractionStage",
    "SpecificationUpdateStage",
    "CompletenessStage",
    "PersistenceStage",
]
