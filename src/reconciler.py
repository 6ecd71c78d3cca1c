"""
Managed Reconciler - runs reconciliation passes for managed records.

A pass connects to the external system, observes the external resource and
issues at most one corrective action (create, update or delete). Errors are
never retried within a pass: the result carries a requeue delay with
exponential backoff and the caller runs the pass again later.
"""

import asyncio
import logging
import random
import time
from dataclasses import dataclass
from typing import Any, List, Optional

from config import ControllerConfig
from errors import (
    CreateError,
    DeleteError,
    DescribeError,
    ExternalConnectError,
    ReconcileError,
    ReconcilePassTimeout,
    UpdateError,
    WrongRecordKindError,
)
from events import EventReason, EventRecorder, ReconcileEvent
from plugins.base import ExternalClient, ExternalConnector
from resources import (
    DeletionPolicy,
    creating,
    deleting,
    reconcile_error,
    reconcile_success,
    unavailable,
)

logger = logging.getLogger(__name__)

# Requeue delay after a successful create/update/delete, to confirm the change
SHORT_WAIT = 30

_ERROR_REASONS = {
    ExternalConnectError: EventReason.CANNOT_CONNECT,
    DescribeError: EventReason.CANNOT_OBSERVE,
    CreateError: EventReason.CANNOT_CREATE,
    UpdateError: EventReason.CANNOT_UPDATE,
    DeleteError: EventReason.CANNOT_DELETE,
    ReconcilePassTimeout: EventReason.RECONCILE_TIMEOUT,
}


@dataclass
class ReconcileResult:
    """Result of a single reconciliation pass."""

    success: bool = False
    message: str = ""
    requeue_after: Optional[float] = None
    action: str = "none"  # none, create, update, delete
    external_name_assigned: bool = False
    late_initialized: bool = False
    # The record may be forgotten: deletion was requested and nothing is left
    finalized: bool = False
    error: Optional[ReconcileError] = None


def calculate_backoff(
    retry_count: int,
    base_delay: float = 60,
    max_delay: float = 3600,
    jitter_factor: float = 0.1,
) -> float:
    """
    Exponential backoff with jitter.

    base_delay * 2^retry_count (exponent capped at 10), capped at max_delay,
    then varied by ±jitter_factor to avoid retrying in lockstep.
    """
    delay = min(base_delay * (2 ** min(retry_count, 10)), max_delay)
    return delay * (1 + random.uniform(-jitter_factor, jitter_factor))


class ManagedReconciler:
    """
    Reconciles records of one kind using an ExternalConnector.

    The reconciler holds no per-record state between passes; everything it
    learns is written to the record itself.
    """

    def __init__(
        self,
        connector: ExternalConnector,
        config: Optional[ControllerConfig] = None,
        recorder: Optional[EventRecorder] = None,
    ):
        self.connector = connector
        self.config = config or ControllerConfig()
        self.recorder = recorder or EventRecorder()
        self.semaphore = asyncio.Semaphore(self.config.max_concurrent_reconciles)

    async def reconcile(self, record: Any) -> ReconcileResult:
        """
        Run one reconciliation pass for a record.

        The pass is aborted when it exceeds ``pass_timeout``. Cancelling the
        calling task aborts the in-flight external call and propagates.

        Raises:
            WrongRecordKindError: If the record is not of the connector's kind.
        """
        if getattr(record, "kind", None) != self.connector.kind:
            raise WrongRecordKindError(
                f"{type(record).__name__} cannot be reconciled by the "
                f"{self.connector.kind} reconciler"
            )

        start_time = time.monotonic()
        try:
            result = await asyncio.wait_for(
                self._reconcile(record), timeout=self.config.pass_timeout
            )
        except asyncio.TimeoutError:
            result = await self._failed(
                record,
                ReconcilePassTimeout(
                    f"reconciliation pass exceeded {self.config.pass_timeout}s"
                ),
            )

        duration = time.monotonic() - start_time
        logger.debug(
            f"Reconciled {record.kind}/{record.name} in {duration:.2f}s: "
            f"success={result.success} action={result.action}"
        )
        return result

    async def reconcile_many(self, records: List[Any]) -> List[ReconcileResult]:
        """
        Reconcile records concurrently, bounded by max_concurrent_reconciles.

        Each record gets its own pass and its own external client. The caller
        must not pass the same record twice. A pass that raises is reported
        as a failed result; the other passes still run to completion.
        """

        async def _bounded(record: Any) -> ReconcileResult:
            async with self.semaphore:
                return await self.reconcile(record)

        outcomes = await asyncio.gather(
            *(_bounded(r) for r in records), return_exceptions=True
        )

        results: List[ReconcileResult] = []
        for record, outcome in zip(records, outcomes):
            if isinstance(outcome, ReconcileResult):
                results.append(outcome)
                continue
            if not isinstance(outcome, Exception):
                # Cancellation of a single pass
                raise outcome

            name = getattr(record, "name", type(record).__name__)
            logger.error(f"Error reconciling {name}: {outcome}", exc_info=outcome)
            err = (
                outcome
                if isinstance(outcome, ReconcileError)
                else ReconcileError(cause=outcome)
            )
            results.append(ReconcileResult(success=False, message=str(err), error=err))

        return results

    async def _reconcile(self, record: Any) -> ReconcileResult:
        try:
            external = await self.connector.connect(record)
        except ExternalConnectError as e:
            return await self._failed(record, e)

        try:
            observation = await external.observe(record)
        except DescribeError as e:
            return await self._failed(record, e)

        if record.deletion_requested:
            return await self._reconcile_deletion(
                record, external, observation.resource_exists
            )

        if not observation.resource_exists:
            return await self._create(record, external)

        if observation.resource_up_to_date:
            record.status.set_conditions(reconcile_success())
            return self._succeeded(
                record,
                "External resource is up to date",
                late_initialized=observation.resource_late_initialized,
            )

        return await self._update(
            record, external, observation.resource_late_initialized
        )

    async def _create(self, record: Any, external: ExternalClient) -> ReconcileResult:
        record.status.set_conditions(creating())
        try:
            creation = await external.create(record)
        except CreateError as e:
            return await self._failed(record, e, action="create")

        await self.recorder.record(
            ReconcileEvent.normal(
                EventReason.CREATED_EXTERNAL_RESOURCE,
                record.kind,
                record.name,
                f"Successfully requested creation of external resource "
                f"{creation.external_name}",
            )
        )
        record.status.set_conditions(reconcile_success())
        return self._succeeded(
            record,
            "Successfully requested creation of external resource",
            requeue_after=SHORT_WAIT,
            action="create",
            external_name_assigned=creation.external_name_assigned,
        )

    async def _update(
        self, record: Any, external: ExternalClient, late_initialized: bool
    ) -> ReconcileResult:
        try:
            await external.update(record)
        except UpdateError as e:
            return await self._failed(record, e, action="update")

        await self.recorder.record(
            ReconcileEvent.normal(
                EventReason.UPDATED_EXTERNAL_RESOURCE,
                record.kind,
                record.name,
                "Successfully requested update of external resource",
            )
        )
        record.status.set_conditions(reconcile_success())
        return self._succeeded(
            record,
            "Successfully requested update of external resource",
            requeue_after=SHORT_WAIT,
            action="update",
            late_initialized=late_initialized,
        )

    async def _reconcile_deletion(
        self, record: Any, external: ExternalClient, exists: bool
    ) -> ReconcileResult:
        record.status.set_conditions(deleting())

        orphan = record.spec.deletion_policy == DeletionPolicy.ORPHAN
        if not exists or orphan:
            record.status.set_conditions(reconcile_success())
            message = (
                "External resource orphaned"
                if exists
                else "External resource does not exist"
            )
            result = self._succeeded(record, message)
            result.finalized = True
            result.requeue_after = None
            return result

        try:
            await external.delete(record)
        except DeleteError as e:
            return await self._failed(record, e, action="delete")

        await self.recorder.record(
            ReconcileEvent.normal(
                EventReason.DELETED_EXTERNAL_RESOURCE,
                record.kind,
                record.name,
                "Successfully requested deletion of external resource",
            )
        )
        record.status.set_conditions(reconcile_success())
        # The next pass confirms the resource is gone before finalizing
        return self._succeeded(
            record,
            "Successfully requested deletion of external resource",
            requeue_after=SHORT_WAIT,
            action="delete",
        )

    def _succeeded(
        self,
        record: Any,
        message: str,
        requeue_after: Optional[float] = None,
        action: str = "none",
        external_name_assigned: bool = False,
        late_initialized: bool = False,
    ) -> ReconcileResult:
        record.status.retry_count = 0
        return ReconcileResult(
            success=True,
            message=message,
            requeue_after=(
                requeue_after
                if requeue_after is not None
                else self.config.reconcile_interval
            ),
            action=action,
            external_name_assigned=external_name_assigned,
            late_initialized=late_initialized,
        )

    async def _failed(
        self, record: Any, err: ReconcileError, action: str = "none"
    ) -> ReconcileResult:
        reason = next(
            (r for cls, r in _ERROR_REASONS.items() if isinstance(err, cls)),
            EventReason.CANNOT_OBSERVE,
        )
        await self.recorder.record(
            ReconcileEvent.warning(reason, record.kind, record.name, err)
        )

        if isinstance(err, ExternalConnectError):
            record.status.set_conditions(unavailable())
        record.status.set_conditions(reconcile_error(err))

        requeue_after = calculate_backoff(
            record.status.retry_count,
            base_delay=self.config.backoff_base_delay,
            max_delay=self.config.backoff_max_delay,
            jitter_factor=self.config.backoff_jitter_factor,
        )
        record.status.retry_count += 1

        return ReconcileResult(
            success=False,
            message=str(err),
            requeue_after=requeue_after,
            action=action,
            error=err,
        )
