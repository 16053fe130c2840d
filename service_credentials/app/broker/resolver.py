"""
Bucket credential broker for the Credentials Service.
"""

import asyncio
import time
from typing import Dict, Iterable, Optional, TYPE_CHECKING

from shared.errors import (
    AccessLayerException,
    AdminAPIRejection,
    AdminAPIResponseError,
    DeadlineExceededError,
    NoEligibleCredentialError,
    SecretUnavailableError,
)
from shared.logging import get_logger
from ..admin.client import AdminAPIClient
from ..admin.models import AccessKeyGrant
from ..cache.ttl_cache import TTLCache
from .models import ResolvedCredential

if TYPE_CHECKING:  # pragma: no cover - imported for typing only
    from shared.metrics import MetricsCollector


CACHE_KEY_PREFIX = "key:"
DEFAULT_CREDENTIAL_TTL = 3600.0


def cache_key_for(bucket_name: str) -> str:
    return f"{CACHE_KEY_PREFIX}{bucket_name}"


def select_grant(grants: Iterable[AccessKeyGrant]) -> Optional[AccessKeyGrant]:
    """Return the first grant, in control-plane order, with both read and write.

    Read-only, write-only and owner-only grants are skipped even when a
    read-only caller could use them.
    """
    for grant in grants:
        if grant.permissions.read_write:
            return grant
    return None


class CredentialBroker:
    """Resolves bucket names into cached access key credentials.

    On a cache miss the broker asks the control plane which keys are granted on
    the bucket, picks the first read+write grant, fetches that key's secret and
    caches the pair for ``ttl`` seconds. Concurrent misses for the same bucket
    are collapsed: one task resolves and the others share its credential or
    its error. If that task is cancelled or runs out of its own deadline, the
    next waiter resolves in its place. A waiter never waits past its own
    deadline. A failed or cancelled resolution caches nothing.

    A cached credential is trusted until it expires, even if the key is revoked
    or its permissions change in the meantime. Key management call sites should
    call ``invalidate`` after mutating a key or its bucket grants.
    """

    def __init__(
        self,
        admin_client: AdminAPIClient,
        cache: TTLCache[ResolvedCredential],
        *,
        ttl: float = DEFAULT_CREDENTIAL_TTL,
        metrics: Optional["MetricsCollector"] = None,
    ) -> None:
        if ttl <= 0:
            raise ValueError("ttl must be positive")
        self.admin_client = admin_client
        self.cache = cache
        self.ttl = ttl
        self.metrics = metrics
        self.logger = get_logger("credentials.broker")

        # Resolves to the credential, the leader's error, or None when the
        # leader gave up for reasons of its own and a waiter should take over.
        self._inflight: Dict[str, "asyncio.Future[Optional[ResolvedCredential]]"] = {}

    async def resolve_bucket_credentials(
        self,
        bucket_name: str,
        *,
        deadline: Optional[float] = None,
    ) -> ResolvedCredential:
        """Return the credential to use for ``bucket_name``.

        Raises ``NoEligibleCredentialError``, ``SecretUnavailableError``,
        ``AdminAPIRejection``, ``AdminAPIResponseError``,
        ``TransientNetworkError`` or ``DeadlineExceededError``; never returns a
        partial or empty credential.
        """
        cache_key = cache_key_for(bucket_name)

        cached = self.cache.get(cache_key)
        if cached is not None:
            self._count("cache_hits_total", cache_type="credentials")
            self.logger.debug("Credential cache hit", bucket=bucket_name)
            return cached

        while True:
            pending = self._inflight.get(cache_key)
            if pending is None:
                return await self._lead(bucket_name, cache_key, deadline)

            credential = await self._wait_for_leader(pending, bucket_name, deadline)
            if credential is not None:
                self.logger.debug("Credential resolved by concurrent request", bucket=bucket_name)
                return credential

            # The leader was cancelled or hit its own deadline.
            cached = self.cache.get(cache_key)
            if cached is not None:
                return cached

    def invalidate(self, bucket_name: str) -> bool:
        """Drop the cached credential for ``bucket_name``."""
        removed = self.cache.delete(cache_key_for(bucket_name))
        self.logger.info("Invalidated bucket credential", bucket=bucket_name, removed=removed)
        return removed

    async def _resolve(
        self,
        bucket_name: str,
        cache_key: str,
        deadline: Optional[float],
    ) -> ResolvedCredential:
        start = time.perf_counter()
        outcome = "error"
        try:
            credential = await self._fetch(bucket_name, deadline)
            self.cache.set(cache_key, credential, self.ttl)
            outcome = "ok"
            self.logger.info(
                "Resolved bucket credential",
                bucket=bucket_name,
                access_key_id=credential.access_key_id,
                ttl=self.ttl
            )
            return credential
        except asyncio.CancelledError:
            outcome = "cancelled"
            self.logger.info("Credential resolution cancelled", bucket=bucket_name)
            raise
        except AccessLayerException as exc:
            outcome = exc.code.lower()
            self.logger.warning(
                "Credential resolution failed",
                bucket=bucket_name,
                code=exc.code,
                error=exc.message
            )
            raise
        finally:
            self._count("credential_resolutions_total", outcome=outcome)
            if self.metrics is not None:
                self.metrics.observe_histogram(
                    "credential_resolution_duration_seconds",
                    time.perf_counter() - start,
                    outcome=outcome
                )

    async def _fetch(self, bucket_name: str, deadline: Optional[float]) -> ResolvedCredential:
        bucket = await self.admin_client.get_bucket_info_by_alias(bucket_name, deadline=deadline)

        grant = select_grant(bucket.keys)
        if grant is None:
            raise NoEligibleCredentialError(bucket_name)

        try:
            key_info = await self.admin_client.get_key_info(
                grant.access_key_id, reveal_secret=True, deadline=deadline
            )
        except (AdminAPIRejection, AdminAPIResponseError) as exc:
            raise SecretUnavailableError(bucket_name, grant.access_key_id, reason=exc.message) from exc

        if not key_info.secret_access_key:
            raise SecretUnavailableError(bucket_name, grant.access_key_id)

        return ResolvedCredential(
            access_key_id=key_info.access_key_id or grant.access_key_id,
            secret_key=key_info.secret_access_key,
        )

    async def _lead(
        self,
        bucket_name: str,
        cache_key: str,
        deadline: Optional[float],
    ) -> ResolvedCredential:
        """Resolve ``bucket_name`` and publish the outcome to concurrent waiters."""
        outcome: "asyncio.Future[Optional[ResolvedCredential]]" = asyncio.get_running_loop().create_future()
        self._inflight[cache_key] = outcome
        self._count("cache_misses_total", cache_type="credentials")
        try:
            credential = await self._resolve(bucket_name, cache_key, deadline)
        except Exception as exc:
            # The leader's deadline is its own; waiters keep theirs.
            if not isinstance(exc, DeadlineExceededError):
                outcome.set_exception(exc)
                # Waiters may all have gone; do not report the error as unretrieved.
                outcome.exception()
            raise
        else:
            outcome.set_result(credential)
            return credential
        finally:
            if not outcome.done():
                outcome.set_result(None)
            if self._inflight.get(cache_key) is outcome:
                del self._inflight[cache_key]

    async def _wait_for_leader(
        self,
        pending: "asyncio.Future[Optional[ResolvedCredential]]",
        bucket_name: str,
        deadline: Optional[float],
    ) -> Optional[ResolvedCredential]:
        """Wait for a concurrent resolution, bounded by the caller's deadline.

        ``asyncio.wait`` never cancels ``pending``, so a waiter that times out
        or is cancelled leaves the leader running.
        """
        timeout = None
        if deadline is not None:
            timeout = deadline - asyncio.get_running_loop().time()
        if timeout is None or timeout > 0:
            done, _ = await asyncio.wait({pending}, timeout=timeout)
            if done:
                return pending.result()

        self.logger.warning("Deadline exceeded waiting for concurrent resolution", bucket=bucket_name)
        raise DeadlineExceededError(
            "Deadline exceeded waiting for concurrent credential resolution",
            details={"bucket": bucket_name},
        )

    def _count(self, metric_name: str, **labels) -> None:
        if self.metrics is not None:
            self.metrics.increment_counter(metric_name, **labels)
