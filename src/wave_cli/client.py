"""
HTTP client for the Wave container provisioning service.

Every request goes through ``retry_with_backoff``: connection failures and the
service's "temporarily unavailable" status codes are retried, any other non-200
answer is a protocol error and surfaces at once.
"""

import asyncio
import json
import logging
from typing import Any, Dict, Optional, Type, TypeVar

import httpx
from pydantic import ValidationError as PydanticValidationError

from .config import ClientConfig, PollConfig
from .core.exceptions import ProtocolError, TransientNetworkError, ValidationError
from .models import (
    BuildStatus,
    ContainerInspectRequest,
    ServiceInfo,
    ServiceInfoResponse,
    SubmitContainerRequest,
    SubmitContainerResponse,
    WaveModel,
)
from .runtime.poller import AwaitOutcome, await_completion
from .runtime.retry_manager import RetryState, retry_with_backoff

log = logging.getLogger(__name__)

ModelT = TypeVar("ModelT", bound=WaveModel)

REQUEST_HEADERS = {
    "Content-Type": "application/json",
    "Accept": "application/json",
}

BODY_PREVIEW_CHARS = 500


def should_await(response: SubmitContainerResponse) -> Optional[str]:
    """
    Decide whether a submission needs to be polled for completion.

    A build is awaited only when the service returned an identifier to poll and
    has not already decided the outcome. Cached or mirrored images, and answers
    carrying no identifier at all, are reported as they are.

    Returns:
        The identifier to poll, or None when there is nothing to wait for
    """
    if response.succeeded is not None:
        return None
    return response.build_id or response.request_id


def _check_endpoint(endpoint: str) -> None:
    try:
        scheme = httpx.URL(endpoint).scheme
    except httpx.InvalidURL as e:
        raise ValidationError(f"Invalid Wave endpoint: {endpoint} - {e}") from e
    if scheme not in ("http", "https"):
        raise ValidationError(
            f"Invalid Wave endpoint: {endpoint} - expected an http or https URL"
        )


class WaveClient:
    """Async client for the Wave service API.

    Example:
        async with WaveClient(ClientConfig.from_env()) as client:
            response = await client.submit(request)
    """

    def __init__(
        self,
        config: Optional[ClientConfig] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        """Initialize the client.

        Args:
            config: Client configuration. Defaults to ``ClientConfig()``.
            transport: Optional httpx transport, used to stub the service.
        """
        self.config = config or ClientConfig()
        self.endpoint = self.config.endpoint.rstrip("/")
        _check_endpoint(self.endpoint)
        self._transport = transport
        self._client: Optional[httpx.AsyncClient] = None

    async def __aenter__(self) -> "WaveClient":
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        await self.close()

    async def close(self) -> None:
        if self._client is not None and not self._client.is_closed:
            await self._client.aclose()
        self._client = None

    def _get_client(self) -> httpx.AsyncClient:
        if self._client is None or self._client.is_closed:
            self._client = httpx.AsyncClient(
                headers=REQUEST_HEADERS,
                timeout=httpx.Timeout(None, connect=self.config.connect_timeout),
                follow_redirects=False,
                transport=self._transport,
            )
        return self._client

    @staticmethod
    def _log_retry(state: RetryState) -> None:
        log.debug(
            f"Wave connection failure - attempt: {state.attempt}/{state.max_attempts} "
            f"- next try in {state.delay:.2f}s - cause: {state.failure}"
        )

    async def _send(
        self, method: str, path: str, payload: Optional[Dict[str, Any]] = None
    ) -> httpx.Response:
        """Send a request under the retry policy and require a 200 answer."""
        url = f"{self.endpoint}{path}"
        client = self._get_client()
        retryable = self.config.retry.retryable_status_codes

        async def attempt() -> httpx.Response:
            response = await client.request(method, url, json=payload)
            if response.status_code in retryable:
                raise TransientNetworkError(
                    f"Unexpected server response code {response.status_code} "
                    f"- message: {response.text[:BODY_PREVIEW_CHARS]}",
                    status_code=response.status_code,
                )
            return response

        log.debug(f"Wave request: {method} {url}")
        response = await retry_with_backoff(
            attempt, config=self.config.retry, on_retry=self._log_retry
        )
        log.debug(
            f"Wave response: statusCode={response.status_code}; "
            f"body={response.text[:BODY_PREVIEW_CHARS]}"
        )

        if response.status_code != 200:
            raise ProtocolError(
                f"Wave invalid response: [{response.status_code}] {response.text}",
                status_code=response.status_code,
                body=response.text,
            )
        return response

    @staticmethod
    def _decode(response: httpx.Response, model: Type[ModelT]) -> ModelT:
        try:
            return model.model_validate(response.json())
        except (json.JSONDecodeError, PydanticValidationError) as e:
            raise ProtocolError(
                f"Unexpected {model.__name__} payload: {e}",
                status_code=response.status_code,
                body=response.text,
            ) from e

    async def submit(self, request: SubmitContainerRequest) -> SubmitContainerResponse:
        """Submit a container request."""
        response = await self._send(
            "POST", "/v1alpha2/container", request.to_payload()
        )
        return self._decode(response, SubmitContainerResponse)

    async def inspect(self, request: ContainerInspectRequest) -> Dict[str, Any]:
        """Inspect a container image; returns the raw container spec."""
        response = await self._send("POST", "/v1alpha1/inspect", request.to_payload())
        try:
            body = response.json()
        except json.JSONDecodeError as e:
            raise ProtocolError(
                f"Unexpected inspect payload: {e}", status_code=200, body=response.text
            ) from e
        if not isinstance(body, dict):
            raise ProtocolError(
                "Unexpected inspect payload: not a JSON object",
                status_code=200,
                body=response.text,
            )
        return body

    async def build_status(self, build_id: str) -> BuildStatus:
        """Fetch the current status of a build."""
        response = await self._send("GET", f"/v1alpha1/builds/{build_id}/status")
        return self._decode(response, BuildStatus)

    async def service_info(self) -> ServiceInfo:
        response = await self._send("GET", "/service-info")
        return self._decode(response, ServiceInfoResponse).service_info

    async def await_build(
        self,
        build_id: str,
        poll: Optional[PollConfig] = None,
        cancel_event: Optional[asyncio.Event] = None,
    ) -> AwaitOutcome:
        """Poll a build until it reaches a terminal status.

        Raises:
            BuildTimeoutError: If the build is still pending at the deadline.
        """
        return await await_completion(
            self.build_status,
            build_id,
            config=poll or self.config.poll,
            cancel_event=cancel_event,
        )
