"""
Remote Expense Parser

Sends the user's sentence to the language-understanding endpoint and turns
the response envelope into ExpenseRecords.

Protocol:
    POST <endpoint>   {"prompt": "<text>"}
    200               {"data": [<wire expense>, ...] | null, "raw": "<text>" | null}

CRITICAL BOUNDARIES:
1. The endpoint is an untrusted black box - every element is transcoded
   and the response is admitted all-or-nothing
2. Exactly ONE primary request per parse() call - no automatic retry
3. On failure, the same body is re-sent once in a detached task purely to
   capture the raw payload in the logs. Nothing awaits it and its errors
   never reach the caller.
"""

import asyncio
import json
from typing import Optional

import httpx
import structlog
from pydantic import ValidationError

from tapmoney.config import ParserSettings, get_settings
from tapmoney.models.expense import ExpenseRecord, ResponseEnvelope
from tapmoney.services.parser.errors import (
    DecodeError,
    IngestionError,
    MalformedEnvelope,
    PartialOrFullDecodeFailure,
    TransportFailure,
)
from tapmoney.services.parser.transcoder import Transcoder


logger = structlog.get_logger(__name__)
diagnostics = structlog.get_logger("tapmoney.diagnostics")


class RemoteParser:
    """
    Client for the remote expense-parsing endpoint.

    Args:
        settings: Endpoint, timeout and diagnostic configuration.
                  Defaults to the environment configuration.
        client: Shared httpx client. If None, the parser creates one
                and owns it (closed by aclose()).
        transcoder: Wire decoder. Defaults to one honoring
                    settings.strict_timestamps.
    """

    def __init__(
        self,
        settings: Optional[ParserSettings] = None,
        client: Optional[httpx.AsyncClient] = None,
        transcoder: Optional[Transcoder] = None,
    ):
        self._settings = settings or get_settings().parser
        self._owns_client = client is None
        self._client = client or httpx.AsyncClient(
            timeout=httpx.Timeout(self._settings.timeout_seconds)
        )
        self._transcoder = transcoder or Transcoder(
            strict=self._settings.strict_timestamps
        )
        self._diagnostic_tasks: set[asyncio.Task] = set()

    @property
    def endpoint(self) -> str:
        return self._settings.endpoint_url

    async def parse(self, prompt: str) -> list[ExpenseRecord]:
        """
        Parse a free-form sentence into records.

        Returns:
            The decoded records in response order. An empty list means the
            exchange worked but the model produced no structured output.

        Raises:
            TransportFailure: endpoint unreachable, timeout or non-2xx
            MalformedEnvelope: body is not the expected envelope
            PartialOrFullDecodeFailure: any element failed to decode
        """
        records, _ = await self.parse_with_raw(prompt)
        return records

    async def parse_with_raw(
        self,
        prompt: str,
    ) -> tuple[list[ExpenseRecord], Optional[str]]:
        """
        Like parse(), but also returns the envelope's `raw` text.

        The raw text is what the model produced instead of structure; the
        pipeline keeps it on EmptyResult for the audit trail.
        """
        body = {"prompt": prompt}
        try:
            envelope = await self._request_envelope(body)
            return self._decode_envelope(envelope), envelope.raw
        except IngestionError as e:
            logger.warning(
                "remote_parse_failed",
                error_kind=type(e).__name__,
                error=str(e),
            )
            self._schedule_diagnostic_capture(body)
            raise

    async def _request_envelope(self, body: dict) -> ResponseEnvelope:
        try:
            response = await self._client.post(
                self._settings.endpoint_url,
                json=body,
                headers={"Content-Type": "application/json"},
                timeout=self._settings.timeout_seconds,
            )
            response.raise_for_status()
        except httpx.TimeoutException as e:
            raise TransportFailure(
                f"request timed out after {self._settings.timeout_seconds:g}s"
            ) from e
        except httpx.HTTPStatusError as e:
            raise TransportFailure(
                f"endpoint answered HTTP {e.response.status_code}",
                status_code=e.response.status_code,
            ) from e
        except httpx.HTTPError as e:
            raise TransportFailure(f"could not reach endpoint: {e}") from e

        try:
            payload = response.json()
        except (json.JSONDecodeError, UnicodeDecodeError) as e:
            raise MalformedEnvelope(f"response is not valid JSON: {e}") from e

        if not isinstance(payload, dict):
            raise MalformedEnvelope(
                f"expected a JSON object, got {type(payload).__name__}"
            )

        try:
            return ResponseEnvelope.model_validate(payload)
        except ValidationError as e:
            raise MalformedEnvelope(f"unexpected envelope shape: {e.errors()[0]['msg']}") from e

    def _decode_envelope(self, envelope: ResponseEnvelope) -> list[ExpenseRecord]:
        if not envelope.has_data:
            diagnostics.warning(
                "remote_payload_undecodable",
                raw=envelope.raw if envelope.raw is not None else "<no raw data>",
            )
            return []

        records = []
        total = len(envelope.data)
        for index, element in enumerate(envelope.data):
            try:
                records.append(self._transcoder.decode(element))
            except DecodeError as e:
                raise PartialOrFullDecodeFailure(index, e, total) from e

        logger.info("remote_parse_completed", record_count=len(records))
        return records

    def _schedule_diagnostic_capture(self, body: dict) -> None:
        """Fire-and-forget re-send of a failed request, for the logs only."""
        if not self._settings.diagnostics_enabled:
            return
        task = asyncio.create_task(self._capture_raw_payload(body))
        self._diagnostic_tasks.add(task)
        task.add_done_callback(self._diagnostic_tasks.discard)

    async def _capture_raw_payload(self, body: dict) -> None:
        try:
            response = await self._client.post(
                self._settings.endpoint_url,
                json=body,
                headers={"Content-Type": "application/json"},
                timeout=self._settings.timeout_seconds,
            )
            diagnostics.warning(
                "remote_payload_captured",
                status_code=response.status_code,
                raw=response.text,
            )
        except Exception as e:
            # Best effort: the capture must never surface to the caller.
            logger.debug("diagnostic_capture_failed", error=str(e))

    async def wait_for_diagnostics(self) -> None:
        """Let pending diagnostic captures finish (used at shutdown and in tests)."""
        if self._diagnostic_tasks:
            await asyncio.gather(*list(self._diagnostic_tasks), return_exceptions=True)

    async def aclose(self) -> None:
        """Cancel pending diagnostic captures and close the owned client."""
        for task in list(self._diagnostic_tasks):
            task.cancel()
        await self.wait_for_diagnostics()
        if self._owns_client:
            await self._client.aclose()
