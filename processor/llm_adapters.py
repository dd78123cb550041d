"""Extraction service adapters.

Adapters send a prompt plus a response schema and return raw text only.
They do not validate, parse, or interpret outputs; EventNormalizer does.
"""
import logging
from typing import Optional

import requests

logger = logging.getLogger(__name__)


class BaseAdapter:
    """Common contract: generate(prompt, schema, api_key) -> str."""

    def __init__(self, name: str, model: str):
        self.name = name
        self.model = model

    def generate(self, prompt: str, schema: dict, api_key: str) -> str:
        """
        Ask the extraction service for JSON matching schema.

        Subclasses must override this; the base implementation raises.

        Returns:
            Raw response text, empty when the service produced nothing

        Raises:
            requests.RequestException: If the service call fails
            ValueError: If the service reply has an unexpected shape
        """
        raise NotImplementedError()


class GeminiAdapter(BaseAdapter):
    """Gemini generateContent over REST with a structured JSON response."""

    API_URL = "https://generativelanguage.googleapis.com/v1beta/models/{model}:generateContent"

    def __init__(
        self,
        model: str = 'gemini-2.5-pro',
        timeout: int = 30,
        session: Optional[requests.Session] = None
    ):
        super().__init__('gemini', model)
        self.timeout = timeout
        self.session = session or requests.Session()

    def generate(self, prompt: str, schema: dict, api_key: str) -> str:
        payload = {
            'contents': [{'parts': [{'text': prompt}]}],
            'generationConfig': {
                'responseMimeType': 'application/json',
                'responseSchema': schema
            }
        }
        logger.info(f"Calling {self.name} model {self.model}")

        try:
            response = self.session.post(
                self.API_URL.format(model=self.model),
                json=payload,
                headers={'x-goog-api-key': api_key},
                timeout=self.timeout
            )
            response.raise_for_status()
            body = response.json()
        except (requests.RequestException, ValueError) as e:
            logger.error(f"{self.name} call failed: {e}")
            raise

        if not isinstance(body, dict):
            raise ValueError(f"Unexpected {self.name} response: {type(body).__name__} body")
        candidates = body.get('candidates') or []
        if not isinstance(candidates, list):
            raise ValueError(f"Unexpected {self.name} response: candidates is not a list")
        if not candidates:
            return ''

        candidate = candidates[0] if isinstance(candidates[0], dict) else {}
        content = candidate.get('content')
        parts = content.get('parts') if isinstance(content, dict) else None
        # A blocked candidate (e.g. finishReason SAFETY) carries no content
        if not isinstance(parts, list) or not all(isinstance(part, dict) for part in parts):
            reason = candidate.get('finishReason', 'unknown')
            logger.error(f"{self.name} returned no usable content (finishReason: {reason})")
            raise ValueError(f"Unexpected {self.name} response: no content parts (finishReason: {reason})")
        return ''.join(part.get('text') or '' for part in parts)
