"""Async client for the hosted Trails workflow API."""

from __future__ import annotations

import logging
from typing import Any, Dict, Optional, Type, TypeVar

import httpx
from pydantic import BaseModel, ValidationError

from ..config import settings
from ..types.trails import (
    EvaluationRequest,
    EvaluationResponse,
    ExecutionQueryRequest,
    ExecutionQueryResponse,
    ExecutionRequest,
    ReadNodeResponse,
    ReadRequest,
)


logger = logging.getLogger(__name__)

ModelT = TypeVar("ModelT", bound=BaseModel)


class TrailsAPIError(Exception):
    """A Trails request failed in transport or returned a non-success status."""

    def __init__(
        self,
        message: str,
        *,
        status_code: Optional[int] = None,
        body: Optional[str] = None,
    ) -> None:
        super().__init__(message)
        self.status_code = status_code
        self.body = body

    @property
    def retryable(self) -> bool:
        # Transport failures and 5xx can be retried by the user; 4xx cannot.
        return self.status_code is None or self.status_code >= 500


class TrailsProvider:
    """Thin wrapper around the four Trails endpoints the crowdfund flow uses.

    Every call is a single POST with no retry; failures surface as
    :class:`TrailsAPIError` so callers can decide how to degrade.
    """

    name = "trails"

    def __init__(
        self,
        *,
        base_url: Optional[str] = None,
        trail_id: Optional[str] = None,
        version_id: Optional[str] = None,
        app_id: Optional[str] = None,
        timeout_s: Optional[float] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> None:
        self.base_url = (base_url or settings.trails_base_url).rstrip("/")
        self.trail_id = trail_id or settings.trail_id
        self.version_id = version_id or settings.trail_version_id
        self.app_id = app_id or settings.trail_app_id
        self.timeout_s = timeout_s or settings.request_timeout_seconds
        self._transport = transport

    @property
    def trail_path(self) -> str:
        return f"/trails/{self.trail_id}/versions/{self.version_id}"

    def _headers(self) -> Dict[str, str]:
        return {
            "Content-Type": "application/json",
            "Herd-Trail-App-Id": self.app_id,
        }

    async def _post(self, label: str, path: str, payload: Dict[str, Any]) -> httpx.Response:
        url = f"{self.trail_path}{path}"
        try:
            async with httpx.AsyncClient(
                base_url=self.base_url,
                timeout=self.timeout_s,
                transport=self._transport,
            ) as client:
                response = await client.post(url, json=payload, headers=self._headers())
        except httpx.RequestError as exc:
            logger.warning("Trails %s request failed: %s", label, exc)
            raise TrailsAPIError(f"{label} API unreachable: {exc}") from exc

        if response.is_error:
            body = response.text
            logger.warning("Trails %s returned %s: %s", label, response.status_code, body[:200])
            raise TrailsAPIError(
                f"{label} API failed: {response.status_code} - {body}",
                status_code=response.status_code,
                body=body,
            )
        return response

    @staticmethod
    def _parse(label: str, model: Type[ModelT], response: httpx.Response) -> ModelT:
        try:
            return model.model_validate(response.json())
        except (ValueError, ValidationError) as exc:
            raise TrailsAPIError(
                f"{label} API returned an unexpected payload: {exc}",
                status_code=response.status_code,
                body=response.text,
            ) from exc

    async def get_evaluation(self, step_number: int, request: EvaluationRequest) -> EvaluationResponse:
        """Get transaction calldata for a step."""
        resp = await self._post(
            "Evaluation",
            f"/steps/{step_number}/evaluations",
            request.to_payload(),
        )
        return self._parse("Evaluation", EvaluationResponse, resp)

    async def save_execution(self, request: ExecutionRequest) -> None:
        """Record a transaction hash against the wallet's execution."""
        await self._post("Execution", "/executions", request.to_payload())

    async def query_executions(self, request: ExecutionQueryRequest) -> ExecutionQueryResponse:
        """Query execution history; an empty address list returns every wallet."""
        resp = await self._post("Execution query", "/executions/query", request.to_payload())
        return self._parse("Execution query", ExecutionQueryResponse, resp)

    async def read_node(self, node_id: str, request: ReadRequest) -> ReadNodeResponse:
        """Get data outputs from a read node."""
        resp = await self._post("Read", f"/nodes/{node_id}/read", request.to_payload())
        return self._parse("Read", ReadNodeResponse, resp)

    async def health_check(self) -> Dict[str, Any]:
        try:
            await self.query_executions(ExecutionQueryRequest(wallet_addresses=[]))
            return {"status": "healthy", "trail_id": self.trail_id}
        except TrailsAPIError as exc:
            return {"status": "unavailable", "trail_id": self.trail_id, "error": str(exc)}


_provider: Optional[TrailsProvider] = None


def get_trails_provider() -> TrailsProvider:
    global _provider
    if _provider is None:
        _provider = TrailsProvider()
    return _provider
