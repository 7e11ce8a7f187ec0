"""Request pipeline behind the code_to_flowchart tool.

Stages run strictly in order and every failure ends the request:

1. rate limit the identity
2. reject empty code (no I/O yet)
3. check the identity has turns left
4. generate the document
5. debit one turn
6. return the document with its metadata

A failed generation is never billed. A successful generation whose debit fails
is discarded: nothing is returned that was not paid for.
"""

from __future__ import annotations

import asyncio
import logging
from datetime import datetime, timezone
from typing import Awaitable, TypeVar

from flowchart_server.adapters.rate_limit.base import AbstractRateLimiter
from flowchart_server.core.errors import AppError, not_subscribed, timed_out
from flowchart_server.core.logging import hash_identity
from flowchart_server.core.rate_limit import admit
from flowchart_server.schemas.flowchart import FlowchartMetadata, FlowchartResult
from flowchart_server.services.generation_service import GenerationService, ensure_code
from flowchart_server.services.quota_service import QuotaGate

logger = logging.getLogger(__name__)

T = TypeVar("T")


class FlowchartService:
    """Orchestrates admission, quota and generation for one tool call.

    Attributes:
        generator: Generation service.
        quota: Quota gate.
        limiter: Rate limiter; None uses the process-wide limiter.
        timeout_seconds: Upper bound for each external call.
    """

    def __init__(
        self,
        generator: GenerationService,
        quota: QuotaGate,
        *,
        limiter: AbstractRateLimiter | None = None,
        timeout_seconds: float = 60.0,
    ) -> None:
        self.generator = generator
        self.quota = quota
        self.limiter = limiter
        self.timeout_seconds = timeout_seconds

    async def _bounded(self, stage: str, call: Awaitable[T]) -> T:
        try:
            return await asyncio.wait_for(call, timeout=self.timeout_seconds)
        except asyncio.TimeoutError as exc:
            logger.warning(
                "flowchart.timeout",
                extra={"stage": stage, "timeout_seconds": self.timeout_seconds},
            )
            raise timed_out(stage, self.timeout_seconds) from exc

    async def convert(self, code: str, identity: str) -> FlowchartResult:
        """Run the pipeline for one request.

        Args:
            code: Source code to draw.
            identity: Caller email, trusted as given.

        Returns:
            FlowchartResult: The billed document with its metadata.

        Raises:
            AppError: The category of the first failing stage.
        """
        identity_hash = hash_identity(identity)
        stage = "rate_limit"
        try:
            admit(identity, self.limiter)

            stage = "validation"
            ensure_code(code)

            stage = "quota_check"
            if not await self._bounded(stage, self.quota.has_remaining_turns(identity)):
                raise not_subscribed()

            stage = "generation"
            html = await self._bounded(stage, self.generator.generate(code))

            stage = "quota_decrement"
            try:
                remaining = await self._bounded(stage, self.quota.decrement_turn(identity))
            except AppError:
                logger.error(
                    "flowchart.discarded_unbilled",
                    extra={"identity_hash": identity_hash, "document_chars": len(html)},
                )
                raise
        except AppError as exc:
            logger.warning(
                "flowchart.failed",
                extra={
                    "identity_hash": identity_hash,
                    "stage": stage,
                    "error_code": exc.code,
                },
            )
            raise

        result = FlowchartResult(
            html=html,
            metadata=FlowchartMetadata(
                generated_at=datetime.now(timezone.utc),
                code_length=len(code),
            ),
        )
        logger.info(
            "flowchart.completed",
            extra={
                "identity_hash": identity_hash,
                "code_length": result.metadata.code_length,
                "remaining_turns": remaining,
            },
        )
        return result
