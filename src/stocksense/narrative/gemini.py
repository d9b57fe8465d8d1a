"""
Gemini Narrative Service.

Default narrative-generation collaborator for the Analysis Aggregator. Sends
the structured analysis to the Gemini ``generateContent`` endpoint and returns
the generated insight text. One attempt per call; no retries.
"""

import json
from typing import Any, Dict, Optional

import httpx
from loguru import logger

from stocksense.config import Settings, get_settings
from stocksense.domain.exceptions import NarrativeError, NarrativeUnavailableError

SYSTEM_INSTRUCTION = (
    "Generate a brief, actionable insight combining technical and fundamental "
    "analysis."
)


def build_prompt(context: Dict[str, Any]) -> str:
    """Render the aggregator context as the user prompt."""
    technical = {
        "symbol": context.get("symbol"),
        "price": context.get("price"),
        "indicators": context.get("technicals", {}),
        "readings": context.get("readings", []),
        "patterns": context.get("patterns", []),
    }
    fundamental = context.get("fundamentals") or {}
    return (
        f"Technical: {json.dumps(technical, default=str)}. "
        f"Fundamental: {json.dumps(fundamental, default=str)}"
    )


class GeminiNarrativeClient:
    """
    Async ``(context) -> str`` collaborator backed by Gemini.

    Usage:
        client = GeminiNarrativeClient()
        result = await engine.analyze(series, narrative_fn=client)
    """

    def __init__(
        self,
        settings: Settings | None = None,
        http_client: Optional[httpx.AsyncClient] = None,
    ):
        """
        Initialize the GeminiNarrativeClient.

        Args:
            settings: Optional Settings object. Defaults to get_settings().
            http_client: Optional shared AsyncClient. When omitted a client is
                opened per call with the configured timeout.
        """
        self.settings = settings or get_settings()
        self.http_client = http_client

    @property
    def endpoint(self) -> str:
        return (
            f"{self.settings.GEMINI_API_URL}/models/"
            f"{self.settings.GEMINI_MODEL}:generateContent"
        )

    def _payload(self, context: Dict[str, Any]) -> Dict[str, Any]:
        return {
            "systemInstruction": {"parts": [{"text": SYSTEM_INSTRUCTION}]},
            "contents": [{"role": "user", "parts": [{"text": build_prompt(context)}]}],
        }

    async def __call__(self, context: Dict[str, Any]) -> str:
        """
        Generate an insight for one analysis context.

        Raises:
            NarrativeUnavailableError: If no API key is configured.
            NarrativeError: If the response carries no text.
            httpx.HTTPError: On transport failures or non-2xx responses.
        """
        if not self.settings.narrative_enabled:
            raise NarrativeUnavailableError("GEMINI_API_KEY is not configured")

        headers = {
            "x-goog-api-key": self.settings.GEMINI_API_KEY.get_secret_value(),
            "Content-Type": "application/json",
        }
        payload = self._payload(context)

        logger.debug(f"Requesting narrative for {context.get('symbol')} from {self.endpoint}")

        if self.http_client is not None:
            response = await self.http_client.post(
                self.endpoint, json=payload, headers=headers
            )
        else:
            async with httpx.AsyncClient(
                timeout=self.settings.NARRATIVE_TIMEOUT_SECONDS
            ) as client:
                response = await client.post(self.endpoint, json=payload, headers=headers)

        response.raise_for_status()
        return self._extract_text(response.json())

    @staticmethod
    def _extract_text(body: Dict[str, Any]) -> str:
        try:
            parts = body["candidates"][0]["content"]["parts"]
        except (KeyError, IndexError, TypeError) as e:
            raise NarrativeError(
                f"Unexpected Gemini response shape: {str(body)[:200]}"
            ) from e

        text = "".join(part.get("text", "") for part in parts if isinstance(part, dict))
        if not text.strip():
            raise NarrativeError("Gemini returned an empty response")
        return text
