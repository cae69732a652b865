"""
Stage contract for the turn pipeline.

A stage reads fields earlier stages filled in on the PipelineContext, adds
its own, and hands the context on. `requires` names the fields a stage
cannot run without.
"""

from abc import ABC, abstractmethod
from typing import TYPE_CHECKING, Tuple

if TYPE_CHECKING:
    from .context import PipelineContext


class TurnStage(ABC):
    """One step of a conversational turn."""

    requires: Tuple[str, ...] = ()

    @abstractmethod
    async def process(self, context: "PipelineContext") -> "PipelineContext":
        """Run the stage against the context and return it."""

    @property
    def stage_name(self) -> str:
        return self.__class__.__name__

    def check_requirements(self, context: "PipelineContext") -> None:
        """
        Raises:
            RuntimeError: If a required context field is still unset
        """
        missing = [name for name in self.requires if getattr(context, name) is None]
        if missing:
            raise RuntimeError(
                f"Pipeline contract violation: {self.stage_name} needs "
                f"{', '.join(missing)} from an earlier stage."
            )
