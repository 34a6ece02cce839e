"""AI Agents package."""

from opsdesk.agents.intent_agent import (
    GeminiIntentParser,
    IntentParserInterface,
    extract_payloads,
)

__all__ = [
    "GeminiIntentParser",
    "IntentParserInterface",
    "extract_payloads",
]
