"""Factory for the configured quota store."""

from flowchart_server.adapters.quota.base import AbstractQuotaStore
from flowchart_server.adapters.quota.in_memory import InMemoryQuotaStore, parse_seed
from flowchart_server.adapters.quota.postgrest import PostgrestQuotaStore
from flowchart_server.core.config import settings
from flowchart_server.core.errors import ValidationAppError


def create_quota_store() -> AbstractQuotaStore:
    """Instantiate the quota store selected by ``QUOTA_BACKEND``.

    Raises:
        ValidationAppError: If the backend is unknown or misconfigured.
    """
    backend = settings.quota.backend.lower()

    if backend == "memory":
        try:
            return InMemoryQuotaStore(parse_seed(settings.quota.seed))
        except ValueError as exc:
            raise ValidationAppError(
                code="quota_invalid_seed",
                message=str(exc),
            ) from exc

    if backend == "postgrest":
        if not settings.quota.url or not settings.quota.service_key:
            raise ValidationAppError(
                code="quota_missing_credentials",
                message="postgrest quota backend requires QUOTA_URL and QUOTA_SERVICE_KEY",
            )
        return PostgrestQuotaStore(
            base_url=settings.quota.url,
            service_key=settings.quota.service_key,
            table=settings.quota.table,
            identity_column=settings.quota.identity_column,
            timeout_seconds=settings.quota.timeout_seconds,
            decrement_rpc=settings.quota.decrement_rpc,
        )

    raise ValidationAppError(
        code="quota_unknown_backend",
        message=f"Unknown quota backend: '{backend}'. Supported backends: postgrest, memory",
    )
