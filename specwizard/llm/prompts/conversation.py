"""
Prompts for the requirements conversation.

The system prompt for a turn is assembled from:
- A fixed persona shared by every stage
- The stage prompt for the current conversation stage
- An optional project-type hint
- What the specification has captured so far (do not ask again)
- The sections still missing
- Locked decisions (never re-litigated)
- Business-language guidance

All text is plain English; the generator is never asked for JSON here.
"""

from typing import Dict, List

from specwizard.domain.models.completeness import ProjectType
from specwizard.domain.models.conversation import ConversationContext, ConversationStage
from specwizard.domain.models.session import active_locked_sections
from specwizard.services.conversation_stage import format_locked_sections

SECTION_RULE = "-" * 40

BASE_PERSONA = """You are a product partner helping a small-business owner describe the
software they want built. You will turn the conversation into a specification
that a development team can quote and build from.

Your rules:
- Ask at most three closely related questions per message
- Keep replies short and practical
- Challenge vagueness once; if the user pushes back, accept their answer and move on
- Propose sensible defaults instead of asking the user to design the system
- Ask about WHAT they need and WHY, never HOW it will be built
- Never ask about tech stack, hosting, team or development timeline"""

STAGE_PROMPTS: Dict[ConversationStage, str] = {
    ConversationStage.INITIAL: """CURRENT PHASE: Getting started

Find out, at a high level, what the user wants to build and the problem it
solves. Do not go into detailed features yet. Ask the single most important
next question.""",
    ConversationStage.DISCOVERY: """CURRENT PHASE: Discovery

Establish who will use the software, what each kind of user needs to get
done, and what the core flow looks like. Agree on what belongs in the first
version. Do not ask about performance, infrastructure or security yet.""",
    ConversationStage.REFINEMENT: """CURRENT PHASE: Refinement

Map how people will move through the system, step by step. Pin down the
features and rules the system must follow. Suggest standard flows for this
kind of project and ask the user to confirm or correct them. Only raise
speed, security or reliability when it matters for the flow being discussed.""",
    ConversationStage.VALIDATION: """CURRENT PHASE: Validation

Read back what has been captured as a short bullet list. Point out anything
missing or contradictory and ask the user to settle open decisions about
what is being built.""",
    ConversationStage.COMPLETION: """CURRENT PHASE: Completion

Give a brief final recap of the project: overview, users and key features.
Tell the user their specification is complete and ready to submit for a
quote. Do not open new topics.""",
}

PROJECT_TYPE_HINTS: Dict[ProjectType, str] = {
    ProjectType.BOOKING_SYSTEM: """This is a booking system. Make sure the conversation covers time
slots, availability, capacity, cancellations and reminders.""",
    ProjectType.ECOMMERCE: """This is an online shop. Make sure the conversation covers the product
catalogue, pricing, the basket, payments, delivery and returns.""",
    ProjectType.CRM: """This is a customer management system. Make sure the conversation covers
what is tracked per customer, follow-ups and reporting.""",
    ProjectType.MOBILE_APP: """This is a mobile app. Make sure the conversation covers which phones it
runs on, what works without a connection and push notifications.""",
    ProjectType.API: """This is a service other systems call. Make sure the conversation covers
who calls it, what they ask for, and who is allowed access.""",
    ProjectType.WEBSITE: """This is a website. Make sure the conversation covers the pages, who
updates the content and how people find the site.""",
}

# Words the generator should not use with a non-technical audience.
TECHNICAL_JARGON: List[str] = [
    "API",
    "endpoint",
    "database schema",
    "backend",
    "frontend",
    "microservice",
    "deployment",
    "authentication token",
    "CRUD",
    "latency",
]

LANGUAGE_GUIDELINES = f"""LANGUAGE GUIDELINES:
- Use plain business language any small-business owner understands
- Avoid technical jargon such as: {', '.join(TECHNICAL_JARGON)}
- If a technical idea is unavoidable, explain it in business terms
- Focus on business outcomes and user needs"""


def get_stage_prompt(stage: ConversationStage) -> str:
    return STAGE_PROMPTS[stage]


def get_captured_section(context: ConversationContext) -> str:
    """
    Summary of facts already captured, so the generator does not ask again.

    Returns an empty string when nothing has been captured.
    """
    summary = context.specification.plain_summary
    lines = []
    if summary.overview:
        lines.append(f"- Overview: {summary.overview}")
    if summary.target_users:
        lines.append(f"- Users: {summary.target_users}")
    if summary.key_features:
        lines.append(f"- Features: {', '.join(summary.key_features)}")
    if summary.integrations:
        lines.append(f"- Integrations: {', '.join(summary.integrations)}")
    if summary.flows:
        lines.append(f"- User flows: {'; '.join(summary.flows)}")
    if summary.rules_and_constraints:
        lines.append(f"- Rules: {'; '.join(summary.rules_and_constraints)}")
    if summary.non_functional:
        lines.append(f"- Quality needs: {'; '.join(summary.non_functional)}")
    if not lines:
        return ""
    return (
        "ALREADY CAPTURED (do not ask about these again, build on them):\n"
        + "\n".join(lines)
    )


def get_missing_section(context: ConversationContext) -> str:
    missing = context.completeness.missing_sections
    if not missing:
        return "NOTHING REQUIRED IS MISSING. Confirm details and close gaps only."
    topics = ", ".join(topic.replace("-", " ") for topic in missing)
    return f"STILL MISSING (steer towards these, one at a time): {topics}"


def get_conversation_system_prompt(context: ConversationContext) -> str:
    """
    Compose the system prompt for one conversational turn.

    Args:
        context: Pruned conversation context for the turn

    Returns:
        System prompt string for the text generator
    """
    parts = [BASE_PERSONA, SECTION_RULE, get_stage_prompt(context.stage)]

    hint = PROJECT_TYPE_HINTS.get(context.project_type)
    if hint:
        parts.append(hint)

    captured = get_captured_section(context)
    if captured:
        parts.append(captured)

    parts.append(get_missing_section(context))

    locked = active_locked_sections(context.locked_sections)
    if locked:
        parts.append(format_locked_sections(locked))

    parts.append(LANGUAGE_GUIDELINES)
    return "\n\n".join(parts)
