"""
Blessing text shown once the Moon has been found.

The text comes from a remote text-generation model. Any failure there is
recovered locally with a fixed message and never reaches the session.
"""

import os
from typing import Optional, Protocol
import logging

import requests

logger = logging.getLogger(__name__)


DEFAULT_BLESSING = "May the moon's gentle light bring peace and wonder to your night."

BLESSING_PROMPT = (
    "Write a short, poetic one-sentence blessing for someone "
    "who has just found the moon in the sky."
)

GEMINI_API_URL = "https://generativelanguage.googleapis.com/v1beta/models/{model}:generateContent"


class BlessingProvider(Protocol):
    def fetch(self) -> str:
        ...


class GeminiBlessingProvider:
    """Generates blessings through the Gemini REST API."""

    def __init__(
        self,
        api_key: Optional[str],
        model: str = "gemini-2.5-flash",
        temperature: float = 0.8,
        max_output_tokens: int = 50,
        timeout: float = 10.0,
        session: Optional[requests.Session] = None,
    ):
        self.api_key = api_key
        self.model = model
        self.temperature = temperature
        self.max_output_tokens = max_output_tokens
        self.timeout = timeout
        self._session = session or requests.Session()

    @classmethod
    def from_env(cls, env_var: str = "GEMINI_API_KEY", **kwargs) -> "GeminiBlessingProvider":
        return cls(api_key=os.environ.get(env_var), **kwargs)

    def fetch(self) -> str:
        """
        Request one blessing.

        Raises:
            RuntimeError: If no API key is configured
            requests.RequestException: On transport or HTTP errors
            ValueError: If the response carries no text
        """
        if not self.api_key:
            raise RuntimeError("No API key configured for blessing provider")

        payload = {
            "contents": [{"parts": [{"text": BLESSING_PROMPT}]}],
            "generationConfig": {
                "temperature": self.temperature,
                "maxOutputTokens": self.max_output_tokens,
            },
        }
        response = self._session.post(
            GEMINI_API_URL.format(model=self.model),
            params={"key": self.api_key},
            json=payload,
            timeout=self.timeout,
        )
        response.raise_for_status()

        try:
            parts = response.json()["candidates"][0]["content"]["parts"]
        except (KeyError, IndexError, TypeError) as e:
            raise ValueError(f"Unexpected blessing response: {e}") from e

        text = "".join(part.get("text", "") for part in parts).strip()
        if not text:
            raise ValueError("Empty blessing response")
        return text


def receive_blessing(provider: Optional[BlessingProvider]) -> str:
    """
    Fetch a blessing, falling back to DEFAULT_BLESSING on any failure.

    Args:
        provider: Blessing provider, or None when none is configured

    Returns:
        Blessing text
    """
    if provider is None:
        logger.info("No blessing provider configured, using fallback blessing")
        return DEFAULT_BLESSING

    try:
        text = provider.fetch()
    except Exception as e:
        logger.warning(f"Error fetching moon blessing: {e}")
        return DEFAULT_BLESSING

    if not text or not text.strip():
        logger.warning("Blessing provider returned empty text, using fallback")
        return DEFAULT_BLESSING
    return text.strip()
