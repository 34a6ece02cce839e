"""
Intent Parser for OpsDesk

DESIGN DECISION: The LLM is a TRANSLATOR, not an actor.

It turns a dictated or typed sentence ("déjeuner équipe 45 euros",
"réunion chantier jeudi 10h") into JSON. That JSON is handed back to the
controller as loosely-typed dicts and goes through the same validation,
authorship resolution and insufficient-funds check as a manual entry.

CRITICAL BOUNDARIES:
- CAN: classify the sentence as RECAP, EVENT or EXPENSE and fill fields
- CANNOT: write anything, choose the author, or skip the funds check
- If the model fails or returns garbage, the result is zero intents
"""

import json
from abc import ABC, abstractmethod
from datetime import date
from typing import Any, Optional

import google.generativeai as genai
import structlog

from opsdesk.config import GeminiSettings, get_settings
from opsdesk.models.entities import CurrencyCode, User


logger = structlog.get_logger(__name__)


class IntentParserInterface(ABC):
    """Anything that turns text into zero or more raw intent payloads."""

    @abstractmethod
    async def parse(self, text: str, actor: User) -> list[dict]:
        """
        Parse one utterance.

        Returns:
            Raw payloads, each with at least a ``category`` key.
            An empty list when nothing could be understood.
        """
        pass


def extract_payloads(text: str) -> list[dict]:
    """
    Pull intent objects out of a model response.

    Accepts a bare object, an array of objects, an ``{"intents": [...]}``
    wrapper, or any of those surrounded by prose or code fences.
    Non-object items are dropped.
    """
    text = (text or "").strip()
    if not text:
        return []

    data: Any = None
    try:
        data = json.loads(text)
    except json.JSONDecodeError:
        # Find JSON in response
        starts = [i for i in (text.find("["), text.find("{")) if i >= 0]
        if not starts:
            return []
        start = min(starts)
        end = max(text.rfind("]"), text.rfind("}")) + 1
        if end <= start:
            return []
        try:
            data = json.loads(text[start:end])
        except json.JSONDecodeError:
            return []

    if isinstance(data, dict) and isinstance(data.get("intents"), list):
        data = data["intents"]
    if isinstance(data, dict):
        data = [data]
    if not isinstance(data, list):
        return []
    return [item for item in data if isinstance(item, dict)]


class GeminiIntentParser(IntentParserInterface):
    """
    Gemini-backed intent parser.

    RESPONSIBILITIES:
    - Classify each request in the utterance
    - Rephrase work reports professionally
    - Resolve relative dates into ISO 8601

    BOUNDARIES:
    - NEVER persists data
    - NEVER decides who the author is
    """

    def __init__(self, settings: Optional[GeminiSettings] = None):
        self._settings = settings or get_settings().gemini
        self._configure_genai()

    def _configure_genai(self):
        """Configure Google Generative AI."""
        genai.configure(api_key=self._settings.api_key)
        self._model = genai.GenerativeModel(
            model_name=self._settings.model_name,
            generation_config={
                "temperature": self._settings.temperature,
                "max_output_tokens": self._settings.max_tokens,
                "response_mime_type": "application/json",
            }
        )

    def _build_prompt(self, text: str, actor: User) -> str:
        currencies = ", ".join(c.value for c in CurrencyCode)
        return f"""Tu es un assistant pour une application de suivi de chantier.
Utilisateur : {actor.name}. Date du jour : {date.today().isoformat()}.

Analyse : "{text}"

Réponds uniquement en JSON : un tableau d'objets, un objet par demande.

1. Travail / chantier -> "category": "RECAP"
   - "title": court
   - "description": reformulé de façon professionnelle
   - "type": "DAILY" ou "WEEKLY"

2. Rendez-vous / agenda -> "category": "EVENT"
   - "title": titre
   - "date": ISO 8601 (YYYY-MM-DDTHH:mm:ss)
   - "description": détails

3. Argent / achat -> "category": "EXPENSE"
   - "amount": nombre
   - "reason": motif
   - "currency": une valeur parmi {currencies}

Si rien ne correspond, réponds []."""

    async def parse(self, text: str, actor: User) -> list[dict]:
        prompt = self._build_prompt(text, actor)
        try:
            response = await self._model.generate_content_async(prompt)
            payloads = extract_payloads(response.text)
        except Exception as e:
            logger.warning("intent_parse_failed", error=str(e), actor_id=actor.id)
            return []

        logger.info("intent_parsed", count=len(payloads), actor_id=actor.id)
        return payloads
