"""
Admin API client for the Credentials Service.
"""

from typing import Any, Dict, Optional, Type, TypeVar, TYPE_CHECKING

import httpx
from pydantic import BaseModel

from shared.errors import (
    AccessLayerException,
    AdminAPIRejection,
    AdminAPIResponseError,
    MAX_DETAIL_BODY_LENGTH,
    TransientNetworkError,
)
from shared.logging import get_logger
from shared.retry import RetryPolicy
from .models import BucketInfo, KeyInfo

if TYPE_CHECKING:  # pragma: no cover - imported for typing only
    from shared.metrics import MetricsCollector


M = TypeVar("M", bound=BaseModel)

BUCKET_INFO_PATH = "/v2/GetBucketInfo"
KEY_INFO_PATH = "/v2/GetKeyInfo"
HEALTH_PATH = "/health"


class AdminAPIClient:
    """Client for the storage cluster's admin (control-plane) API.

    Every request carries the static bearer token given at construction and
    goes through ``retry_policy``, which retries transport failures only.
    Any received response outside 2xx raises ``AdminAPIRejection``.
    """

    def __init__(
        self,
        base_url: str,
        token: str,
        *,
        retry_policy: Optional[RetryPolicy] = None,
        timeout: float = 10.0,
        client: Optional[httpx.AsyncClient] = None,
        metrics: Optional["MetricsCollector"] = None,
    ) -> None:
        self.base_url = base_url.rstrip('/')
        self.retry_policy = retry_policy or RetryPolicy(name="admin_api", metrics=metrics)
        self.metrics = metrics
        self.logger = get_logger("credentials.admin.client")

        self._headers = {"Authorization": f"Bearer {token}"}
        self._owns_client = client is None
        self._client = client or httpx.AsyncClient(timeout=timeout)

    async def close(self) -> None:
        """Close the underlying HTTP client if this instance created it."""
        if self._owns_client:
            await self._client.aclose()

    async def __aenter__(self) -> "AdminAPIClient":
        return self

    async def __aexit__(self, *exc_info) -> None:
        await self.close()

    async def get_bucket_info_by_alias(self, alias: str, *, deadline: Optional[float] = None) -> BucketInfo:
        """Fetch bucket details, including its key grants, by global alias."""
        response = await self._request(
            "GET", BUCKET_INFO_PATH, {"globalAlias": alias},
            endpoint="get_bucket_info", deadline=deadline
        )
        return self._decode(response, BucketInfo, "get_bucket_info")

    async def get_key_info(
        self,
        access_key_id: str,
        reveal_secret: bool = False,
        *,
        deadline: Optional[float] = None,
    ) -> KeyInfo:
        """Fetch access key details, optionally including the secret key."""
        params: Dict[str, Any] = {"id": access_key_id}
        if reveal_secret:
            params["showSecretKey"] = "true"

        response = await self._request(
            "GET", KEY_INFO_PATH, params,
            endpoint="get_key_info", deadline=deadline
        )
        return self._decode(response, KeyInfo, "get_key_info")

    async def health_check(self) -> bool:
        """Check if the admin API is reachable and healthy."""
        try:
            response = await self._request("GET", HEALTH_PATH, None, endpoint="health")
        except (AccessLayerException, httpx.HTTPError) as exc:
            self.logger.warning("Admin API health check failed", error=str(exc))
            return False
        return 200 <= response.status_code < 300

    async def _request(
        self,
        method: str,
        path: str,
        params: Optional[Dict[str, Any]],
        *,
        endpoint: str,
        deadline: Optional[float] = None,
    ) -> httpx.Response:
        url = f"{self.base_url}{path}"

        async def send() -> httpx.Response:
            self.logger.debug("Admin API request", method=method, path=path)
            return await self._client.request(method, url, params=params, headers=self._headers)

        try:
            return await self.retry_policy.execute(send, deadline=deadline, label=f"admin.{endpoint}")
        except TransientNetworkError:
            self._count(endpoint, "transport_error")
            raise

    def _decode(self, response: httpx.Response, model: Type[M], endpoint: str) -> M:
        """Map a response onto ``model`` or raise the matching terminal error."""
        if not 200 <= response.status_code < 300:
            self._count(endpoint, "rejected")
            self.logger.warning(
                "Admin API rejected request",
                endpoint=endpoint,
                status_code=response.status_code,
                response=response.text[:MAX_DETAIL_BODY_LENGTH]
            )
            raise AdminAPIRejection(response.status_code, response.text, path=response.request.url.path)

        try:
            result = model.model_validate(response.json())
        except ValueError as exc:
            self._count(endpoint, "bad_response")
            self.logger.error("Failed to decode admin API response", endpoint=endpoint, error=str(exc))
            raise AdminAPIResponseError(
                f"Failed to decode {endpoint} response",
                details={"endpoint": endpoint, "error": str(exc)}
            ) from exc

        self._count(endpoint, "ok")
        return result

    def _count(self, endpoint: str, outcome: str) -> None:
        if self.metrics is not None:
            self.metrics.increment_counter("admin_api_requests_total", endpoint=endpoint, outcome=outcome)
