"""
Gemini Client

Wrapper for the Vertex AI Gemini model that answers the assistant backend
endpoints.  When credentials are missing the client reports itself
unavailable; the health endpoint then fails and the assistants fall back
to their offline behaviour.
"""

from __future__ import annotations

import json
import logging
import os

from app.config import settings

logger = logging.getLogger(__name__)

# Sampling defaults for clinical chat: low temperature, short answers
CHAT_TEMPERATURE = 0.3
CHAT_MAX_OUTPUT_TOKENS = 1024


class GeminiClient:
    """Wrapper around the Vertex AI Gemini generative model.

    Initializes Vertex AI on construction.  If the project cannot be
    resolved or the SDK fails to initialise, ``is_available`` is False and
    ``generate`` returns None.
    """

    def __init__(self) -> None:
        self._initialized = False
        self._initialize()

    def _resolve_project(self) -> str | None:
        """Return the GCP project ID from settings or the credentials file."""
        if settings.GOOGLE_CLOUD_PROJECT:
            return settings.GOOGLE_CLOUD_PROJECT
        creds_path = os.environ.get("GOOGLE_APPLICATION_CREDENTIALS", "")
        if creds_path and os.path.isfile(creds_path):
            with open(creds_path, encoding="utf-8") as f:
                return json.load(f).get("project_id")
        return None

    def _initialize(self) -> None:
        project = self._resolve_project()
        if not project:
            logger.warning("GCP project not found - assistant backend unavailable")
            return

        try:
            import vertexai

            vertexai.init(project=project, location=settings.GOOGLE_CLOUD_LOCATION)
            self._initialized = True
            logger.info("Gemini client initialized (model %s)", settings.GEMINI_MODEL)
        except Exception as exc:
            logger.warning("Gemini initialization failed: %s", exc)
            self._initialized = False

    @property
    def is_available(self) -> bool:
        """Return True if Gemini is ready to accept requests."""
        return self._initialized

    async def generate(
        self,
        system_prompt: str,
        user_prompt: str,
        temperature: float = CHAT_TEMPERATURE,
        max_output_tokens: int = CHAT_MAX_OUTPUT_TOKENS,
    ) -> str | None:
        """Generate one assistant reply.

        Args:
            system_prompt: The system-level instruction (patient context).
            user_prompt: The conversation history and the doctor's message.
            temperature: Sampling temperature.
            max_output_tokens: Maximum tokens in the response.

        Returns:
            The generated text, or None if the client is unavailable.
        """
        if not self._initialized:
            return None

        from vertexai.generative_models import Content, GenerativeModel, Part

        model = GenerativeModel(
            settings.GEMINI_MODEL,
            system_instruction=system_prompt,
        )
        response = await model.generate_content_async(
            contents=[Content(role="user", parts=[Part.from_text(user_prompt)])],
            generation_config={
                "temperature": temperature,
                "max_output_tokens": max_output_tokens,
            },
        )
        return response.text


# ---------------------------------------------------------------------------
# Global singleton
# ---------------------------------------------------------------------------
gemini_client = GeminiClient()
