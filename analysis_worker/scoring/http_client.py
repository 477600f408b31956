"""HTTP client for the scoring service.

Transport failures are tagged here: 429 and 5xx responses, timeouts and
dropped connections become RetryableError; every other failure is a
FatalError.
"""

from __future__ import annotations

import asyncio
import logging
import os
import ssl
from typing import Any, Optional

import aiohttp
import certifi
from pydantic import ValidationError as PydanticValidationError

from analysis_worker.exceptions import FatalError, RetryableError
from analysis_worker.models import ScoreResult

logger = logging.getLogger(__name__)

RETRYABLE_STATUSES = frozenset({429, 500, 502, 503, 504})


def error_for_status(status: int, body: str) -> Exception | None:
    """Map a non-2xx response to a tagged error; None for success."""
    if 200 <= status < 300:
        return None
    snippet = body[:200]
    if status in RETRYABLE_STATUSES:
        return RetryableError(f"HTTP {status} from scoring service: {snippet}")
    return FatalError(f"HTTP {status} from scoring service: {snippet}")


def parse_score_payload(payload: Any) -> Optional[ScoreResult]:
    if payload is None:
        return None
    if not isinstance(payload, dict):
        raise FatalError(f"Unexpected scoring response type: {type(payload).__name__}")
    try:
        return ScoreResult.model_validate(payload)
    except PydanticValidationError as exc:
        raise FatalError(f"Malformed scoring response: {exc}") from exc


class HttpScoringClient:
    def __init__(
        self,
        base_url: str,
        api_key: Optional[str] = None,
        timeout: Optional[float] = 120.0,
        verify_ssl: bool = True,
    ):
        self.base_url = base_url.rstrip("/")
        self._api_key = api_key if api_key is not None else os.getenv("SCORING_API_KEY")
        self._timeout = timeout
        self.verify_ssl = verify_ssl

    def ssl_context(self) -> ssl.SSLContext | bool:
        """certifi-backed context, or False when verification is turned off."""
        if not self.verify_ssl:
            return False
        return ssl.create_default_context(cafile=certifi.where())

    def _headers(self) -> dict[str, str]:
        headers = {"Content-Type": "application/json"}
        if self._api_key:
            headers["Authorization"] = f"Bearer {self._api_key.strip()}"
        return headers

    async def score_call(
        self,
        call_id: str,
        transcript: str,
        agent_label: str,
        person_label: str,
        force_reprocess: bool = False,
    ) -> Optional[ScoreResult]:
        body = {
            "call_id": call_id,
            "transcription": transcript,
            "agent_name": agent_label,
            "client_name": person_label,
            "force_reprocess": force_reprocess,
        }
        try:
            connector = aiohttp.TCPConnector(ssl=self.ssl_context())
            async with aiohttp.ClientSession(connector=connector) as session:
                async with session.post(
                    f"{self.base_url}/analyze",
                    json=body,
                    headers=self._headers(),
                    timeout=aiohttp.ClientTimeout(total=self._timeout),
                ) as response:
                    text = await response.text()
                    error = error_for_status(response.status, text)
                    if error is not None:
                        raise error
                    try:
                        payload = await response.json(content_type=None)
                    except ValueError as exc:
                        raise FatalError(f"Scoring response is not JSON: {text[:200]}") from exc
        except asyncio.TimeoutError as exc:
            raise RetryableError(f"timeout calling scoring service for {call_id}") from exc
        except aiohttp.ClientConnectionError as exc:
            raise RetryableError(f"network error calling scoring service: {exc}") from exc
        except aiohttp.ClientError as exc:
            raise FatalError(f"Scoring request failed: {exc}") from exc
        logger.debug("Scoring response for %s: %s", call_id, payload)
        return parse_score_payload(payload)
