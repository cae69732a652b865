# noqa
from specwizard.llm.prompts.conversation import (
    get_conversation_system_prompt,
    get_stage_prompt,
    get_captured_section,
    get_missing_section,
)

__all__ = [
    "get_conversation_system_prompt",
    "get_stage_prompt",
    "get_captured_section",
    "get_missing_section",
]
