# services/ai.py
import json
import logging
from datetime import date, datetime
from typing import Any, Dict, List, Optional

import httpx
from pydantic import ValidationError as PydanticValidationError

from venti.core.config import settings
from venti.core.exceptions import UpstreamError
from venti.schemas.functions import SOS_MARKER, HistoryMessage, PersonaMessage

logger = logging.getLogger(__name__)
PERSONAS = ("Liam", "Chloe", "Maya")
MAX_GROUP_REPLIES = 3


# =====================================================================
# GENERATIVE LANGUAGE API CLIENT
# =====================================================================


class GeminiClient:
    """Calls the generateContent endpoint of the generative language API."""

    def __init__(
        self,
        api_key: str,
        model: str = "gemini-2.5-flash",
        base_url: str = "https://generativelanguage.googleapis.com/v1beta",
        timeout: float = 60.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> None:
        self.api_key = api_key
        self.model = model
        self.base_url = base_url.rstrip("/")
        self._client = httpx.AsyncClient(
            headers={"x-goog-api-key": api_key, "content-type": "application/json"},
            timeout=timeout,
            transport=transport,
        )

    @staticmethod
    def _parse_text(raw: dict) -> str:
        candidates = raw.get("candidates") or []
        if not candidates:
            raise UpstreamError("The language model returned no candidates")
        parts = candidates[0].get("content", {}).get("parts", [])
        return "".join(part.get("text", "") for part in parts)

    async def generate(
        self,
        contents: List[Dict[str, Any]],
        system_instruction: Optional[str] = None,
        response_schema: Optional[Dict[str, Any]] = None,
    ) -> str:
        """Send contents and return the concatenated text of the first candidate."""
        if not self.api_key:
            raise UpstreamError("Generative language API key is not configured", status_code=503)

        body: Dict[str, Any] = {"contents": contents}
        if system_instruction:
            body["systemInstruction"] = {"parts": [{"text": system_instruction}]}
        if response_schema:
            body["generationConfig"] = {
                "responseMimeType": "application/json",
                "responseSchema": response_schema,
            }

        url = f"{self.base_url}/models/{self.model}:generateContent"
        try:
            resp = await self._client.post(url, json=body)
            resp.raise_for_status()
        except httpx.HTTPStatusError as exc:
            logger.warning(f"Language model request failed with {exc.response.status_code}")
            raise UpstreamError("The language model request failed") from exc
        except httpx.TransportError as exc:
            logger.warning(f"Language model unreachable: {exc}")
            raise UpstreamError("The language model is unreachable") from exc
        return self._parse_text(resp.json())

    async def close(self) -> None:
        await self._client.aclose()


_gemini_client: Optional[GeminiClient] = None


def get_gemini_client() -> GeminiClient:
    """FastAPI dependency returning the process-wide client."""
    global _gemini_client
    if _gemini_client is None:
        _gemini_client = GeminiClient(
            api_key=settings.GEMINI_API_KEY,
            model=settings.GEMINI_MODEL,
            base_url=settings.GEMINI_API_URL,
            timeout=settings.GEMINI_TIMEOUT_SECONDS,
        )
    return _gemini_client


# =====================================================================
# PROMPTS
# =====================================================================

PROGRAM_DETAILS = {
    "healing": "The user is focused on calm healing, meditations, and journaling.",
    "glow-up": 'The user is on a "Glow-Up Challenge", focusing on fitness, hydration, and self-care.',
    "no-contact": 'The user is in a "No Contact Bootcamp", working on managing urges and not contacting their ex.',
}


def companion_instruction(user_data: Dict[str, Any]) -> str:
    name = user_data.get("name") or "friend"
    chapter = user_data.get("ex_name") or "that chapter"
    reason = (user_data.get("breakup_context") or {}).get("reason", "")
    program = PROGRAM_DETAILS.get(user_data.get("program") or "", "The user has not selected a program yet.")

    return (
        "You are Venti, an empathetic and supportive AI companion.\n"
        f"Your user's name is {name}. You are helping them through a breakup.\n"
        f'The chapter of their life involving their ex is called "{chapter}".\n'
        f'Reason for breakup: "{reason}".\n'
        f"Their chosen 30-day program: {program}\n"
        "Listen, validate their feelings, and gently reframe pain into motivation "
        "aligned with their program. Do not give medical advice.\n"
        "If the user expresses thoughts of self-harm or suicide, or seems to be in "
        "immediate crisis, point them to the SOS feature in the app and end your "
        f"response with the trigger command {SOS_MARKER}"
    )


def _day_label(value: Any) -> str:
    if isinstance(value, (date, datetime)):
        return value.strftime("%Y-%m-%d")
    return str(value)[:10]


def weekly_summary_prompt(entries: List[Dict[str, Any]], moods: List[Dict[str, Any]]) -> str:
    mood_lines = "\n".join(
        f"Date: {_day_label(m.get('date'))}, Mood: {m.get('mood')}/10" for m in moods
    ) or "No mood entries this week."
    entry_lines = "\n\n".join(
        f'Date: {_day_label(e.get("created_at"))}, Content: "{e.get("content", "")}"' for e in entries
    ) or "No journal entries this week."

    return (
        "You are Venti, an AI companion writing a gentle, supportive summary of a "
        "user's last week of journaling and mood logs. They are going through a breakup.\n\n"
        f"- Moods (1=worst, 10=best):\n{mood_lines}\n\n"
        f"- Journal Entries:\n{entry_lines}\n\n"
        "Write 2-3 short paragraphs: acknowledge their effort, connect what they wrote "
        "to their mood scores, highlight one moment of strength, and end with gentle "
        "encouragement. Address the user directly and do not use their name."
    )


def community_chat_prompt(history: List[PersonaMessage]) -> str:
    transcript = "\n".join(f"{m.name}: {m.text}" for m in history)
    return (
        "You moderate an AI-simulated breakup support group with three personas:\n"
        "- Liam: empathetic and validating.\n"
        "- Chloe: practical, gently challenges negative thoughts.\n"
        "- Maya: hopeful and forward-looking.\n"
        "Reply to the user's latest message with a JSON array of 1 to 3 objects, "
        "each with a 'name' (Liam, Chloe or Maya) and a 'text' of 1-2 sentences.\n\n"
        f"Chat History:\n{transcript}\n"
    )


def community_story_prompt(topic: str) -> str:
    return (
        f'Based on the topic "{topic}", write a short (3-4 paragraphs), anonymous and '
        "hopeful first-person story from someone who went through something similar and "
        "is now healing. Focus on a small moment of realization and end on an empowering note."
    )


PERSONA_SCHEMA = {
    "type": "ARRAY",
    "items": {
        "type": "OBJECT",
        "properties": {"name": {"type": "STRING"}, "text": {"type": "STRING"}},
    },
}


# =====================================================================
# SERVICE
# =====================================================================


class CompanionAIService:
    """Text-in/text-out wrappers used by the generative functions."""

    async def reply(
        self,
        client: GeminiClient,
        new_message: str,
        history: List[HistoryMessage],
        user_data: Dict[str, Any],
    ) -> str:
        contents = [
            {"role": "model" if m.role == "model" else "user", "parts": [{"text": m.text}]}
            for m in history
        ]
        contents.append({"role": "user", "parts": [{"text": new_message}]})
        return await client.generate(contents, system_instruction=companion_instruction(user_data))

    async def weekly_summary(
        self, client: GeminiClient, entries: List[Dict[str, Any]], moods: List[Dict[str, Any]]
    ) -> str:
        prompt = weekly_summary_prompt(entries, moods)
        return await client.generate([{"role": "user", "parts": [{"text": prompt}]}])

    async def community_chat(
        self, client: GeminiClient, history: List[PersonaMessage]
    ) -> List[PersonaMessage]:
        prompt = community_chat_prompt(history)
        raw = await client.generate(
            [{"role": "user", "parts": [{"text": prompt}]}],
            response_schema=PERSONA_SCHEMA,
        )
        try:
            items = json.loads(raw.strip())
            messages = [PersonaMessage.model_validate(item) for item in items]
        except (json.JSONDecodeError, TypeError, PydanticValidationError) as exc:
            raise UpstreamError("The language model returned malformed group messages") from exc

        messages = [m for m in messages if m.name in PERSONAS][:MAX_GROUP_REPLIES]
        if not messages:
            raise UpstreamError("The language model returned no group messages")
        return messages

    async def community_story(self, client: GeminiClient, topic: str) -> str:
        prompt = community_story_prompt(topic)
        return await client.generate([{"role": "user", "parts": [{"text": prompt}]}])


companion_ai_service = CompanionAIService()
