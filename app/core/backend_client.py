"""
Assistant Backend Client

Async HTTP client for the remote assistant contracts:
  POST /api/ai-assistant/chat          consultation-scoped chat
  POST /api/ai-assistant/general-chat  floating assistant chat
  GET  /api/health                     health check
  POST /api/ai-summaries/generate      AI document generation
  POST /api/appointments               appointment creation

Any transport error, non-2xx status or malformed payload is raised as
BackendError, except for the health check which simply reports False.
"""

from __future__ import annotations

import logging
from typing import Any, Optional

import httpx
from pydantic import ValidationError

from app.config import settings
from app.models.schemas import (
    AppointmentRequest,
    ChatReply,
    ConsultationChatRequest,
    GeneralChatRequest,
    HistoryMessage,
    SummaryRequest,
    SummaryResponse,
    SummaryType,
)

logger = logging.getLogger(__name__)

CHAT_PATH = "/api/ai-assistant/chat"
GENERAL_CHAT_PATH = "/api/ai-assistant/general-chat"
HEALTH_PATH = "/api/health"
APPOINTMENTS_PATH = "/api/appointments"
SUMMARIES_PATH = "/api/ai-summaries/generate"


class BackendError(Exception):
    """A remote call failed or returned an unusable response."""

    def __init__(self, message: str, status_code: Optional[int] = None) -> None:
        super().__init__(message)
        self.status_code = status_code


class AssistantBackendClient:
    """Thin wrapper around ``httpx.AsyncClient`` for the assistant backend.

    One request per call, no retries.  The optional auth token is attached
    as an opaque bearer header.
    """

    def __init__(
        self,
        base_url: str | None = None,
        timeout: float | None = None,
        auth_token: str | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        token = settings.BACKEND_AUTH_TOKEN if auth_token is None else auth_token
        headers = {"Accept": "application/json"}
        if token:
            headers["Authorization"] = f"Bearer {token}"

        self._client = httpx.AsyncClient(
            base_url=base_url or settings.BACKEND_URL,
            timeout=settings.BACKEND_TIMEOUT_SECONDS if timeout is None else timeout,
            headers=headers,
            transport=transport,
        )

    async def aclose(self) -> None:
        await self._client.aclose()

    async def _post(self, path: str, payload: dict[str, Any]) -> Any:
        try:
            response = await self._client.post(path, json=payload)
        except httpx.HTTPError as exc:
            raise BackendError(f"POST {path} failed: {exc}") from exc

        if not response.is_success:
            raise BackendError(
                f"POST {path} returned HTTP {response.status_code}",
                status_code=response.status_code,
            )
        try:
            return response.json()
        except ValueError as exc:
            raise BackendError(f"POST {path} returned invalid JSON") from exc

    @staticmethod
    def _reply_text(data: Any, path: str) -> str:
        if not isinstance(data, dict) or not isinstance(data.get("response"), str):
            raise BackendError(f"POST {path} response has no 'response' field")
        return ChatReply(response=data["response"]).response

    async def chat(
        self,
        consultation_id: int,
        message: str,
        message_history: list[HistoryMessage],
    ) -> str:
        """Send a consultation-scoped message and return the assistant reply."""
        request = ConsultationChatRequest(
            consultation_id=consultation_id,
            message=message,
            message_history=message_history,
        )
        data = await self._post(CHAT_PATH, request.model_dump(mode="json", by_alias=True))
        return self._reply_text(data, CHAT_PATH)

    async def general_chat(
        self,
        message: str,
        message_history: list[HistoryMessage],
    ) -> str:
        """Send a message to the general (floating) assistant."""
        request = GeneralChatRequest(message=message, message_history=message_history)
        data = await self._post(
            GENERAL_CHAT_PATH, request.model_dump(mode="json", by_alias=True),
        )
        return self._reply_text(data, GENERAL_CHAT_PATH)

    async def health(self) -> bool:
        """Return True when the backend answers the health check with 2xx."""
        try:
            response = await self._client.get(HEALTH_PATH)
        except httpx.HTTPError as exc:
            logger.info("Health check failed: %s", exc)
            return False
        return response.is_success

    async def create_appointment(self, appointment: AppointmentRequest) -> dict[str, Any]:
        """Create an appointment and return the created record."""
        data = await self._post(
            APPOINTMENTS_PATH, appointment.model_dump(mode="json", by_alias=True),
        )
        if not isinstance(data, dict):
            raise BackendError(f"POST {APPOINTMENTS_PATH} returned no record")
        return data

    async def generate_summary(
        self,
        consultation_id: int,
        summary_type: SummaryType,
    ) -> SummaryResponse:
        """Ask the backend to write and store an AI document for a consultation."""
        request = SummaryRequest(consultation_id=consultation_id, summary_type=summary_type)
        data = await self._post(SUMMARIES_PATH, request.model_dump(mode="json", by_alias=True))
        try:
            return SummaryResponse.model_validate(data)
        except ValidationError as exc:
            raise BackendError(f"POST {SUMMARIES_PATH} returned no summary") from exc


# ---------------------------------------------------------------------------
# Global singleton
# ---------------------------------------------------------------------------
backend_client = AssistantBackendClient()
