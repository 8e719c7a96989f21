"""Multimodal inference clients for reading catalog page images."""

import os
import time
from abc import ABC, abstractmethod

from google import genai
from google.genai import types

from ..logger import logger
from .errors import PermanentServiceError


class InferenceClient(ABC):
    """Sends a page image plus instructions to a model and returns its text."""

    @abstractmethod
    def infer(
        self,
        image: bytes,
        instruction: str,
        response_schema: dict,
        mime_type: str = "image/jpeg",
    ) -> str:
        """Run one extraction request.

        Args:
            image: Encoded page image.
            instruction: Brand-specific extraction instructions.
            response_schema: Schema the response JSON must follow.
            mime_type: MIME type of the image.

        Returns:
            Raw response text, expected to be JSON.

        Raises:
            Exception: Service errors. They must carry enough information
                (status code, status string or message) for the error
                classifier to tell rate limits from bad requests.
        """


class GeminiClient(InferenceClient):
    """Inference client backed by Google Gemini structured output."""

    DEFAULT_MODEL = "gemini-2.5-flash"

    def __init__(self, api_key: str | None = None, model: str | None = None):
        """Initialize the Gemini client.

        Args:
            api_key: Gemini API key. Falls back to GEMINI_API_KEY, then GOOGLE_API_KEY.
            model: Gemini model name. Falls back to GEMINI_MODEL, then gemini-2.5-flash.

        Raises:
            ValueError: If no API key is available.
        """
        api_key = api_key or os.getenv("GEMINI_API_KEY") or os.getenv("GOOGLE_API_KEY")
        if not api_key:
            raise ValueError(
                "Gemini API key required: provide api_key or set GEMINI_API_KEY"
            )
        self._client = genai.Client(api_key=api_key)
        self._model = model or os.getenv("GEMINI_MODEL", self.DEFAULT_MODEL)

    @property
    def model(self) -> str:
        return self._model

    def infer(
        self,
        image: bytes,
        instruction: str,
        response_schema: dict,
        mime_type: str = "image/jpeg",
    ) -> str:
        start = time.perf_counter()
        response = self._client.models.generate_content(
            model=self._model,
            contents=[
                types.Part.from_bytes(data=image, mime_type=mime_type),
                instruction,
            ],
            config=types.GenerateContentConfig(
                response_mime_type="application/json",
                response_schema=response_schema,
            ),
        )
        duration_ms = (time.perf_counter() - start) * 1000

        text = response.text
        if not text or not text.strip():
            raise PermanentServiceError("Gemini returned an empty response")

        logger.debug(
            "inference complete",
            model=self._model,
            response_chars=len(text),
            duration_ms=round(duration_ms, 2),
        )
        return text
