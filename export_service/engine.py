"""Export engine coordinating type resolution, authorization and job lifecycle."""

from __future__ import annotations

import threading
from functools import partial
from typing import Dict, List, Optional, Tuple

import structlog
from structlog.stdlib import BoundLogger

from .jobs import BackgroundJobRunner, CancelOutcome, CancellationToken
from .models import (
    ExportableSearchResult,
    ExportDataQuery,
    ExportDataRequest,
    ExportJobStatus,
    ExportProviderInfo,
    ExportPushNotification,
    utcnow,
)
from .notifications import NotificationChannel
from .providers import ExportProviderSet
from .registry import ExportedTypeDefinition, KnownExportTypesRegistry, short_type_name
from .security import AuthorizationGate, PolicyFunc, Principal, permission_policy
from .storage import LocalExportFileStorage
from .tasks import process_export_job


class ExportEngine:
    """Entry point for every export operation exposed over HTTP."""

    def __init__(
        self,
        registry: KnownExportTypesRegistry,
        gate: AuthorizationGate,
        providers: ExportProviderSet,
        storage: LocalExportFileStorage,
        channel: NotificationChannel,
        runner: BackgroundJobRunner,
        default_page_size: int = 50,
        download_url: str = "/api/export/download/{file_name}",
        logger: Optional[BoundLogger] = None,
    ) -> None:
        self.registry = registry
        self.gate = gate
        self.providers = providers
        self.storage = storage
        self.channel = channel
        self.runner = runner
        self.default_page_size = default_page_size
        self.download_url = download_url
        self.logger = logger or structlog.get_logger("export_engine")

        self._job_notifications: Dict[str, ExportPushNotification] = {}
        # Re-entrant: runner.cancel may report evictions while cancel() holds it.
        self._lock = threading.RLock()
        self.runner.add_eviction_listener(self._forget_jobs)

    def register_export_type(
        self,
        definition: ExportedTypeDefinition,
        policy: Optional[PolicyFunc] = None,
    ) -> ExportedTypeDefinition:
        """Register a type together with its ``<name>ExportDataPolicy``.

        Without an explicit policy the principal must hold the type's
        ``required_permission``.
        """
        self.registry.register(definition)
        resolved_policy = policy or definition.policy or permission_policy(definition.required_permission)
        policy_name = self.gate.register_policy(definition.name, resolved_policy)
        self.logger.info("export_type_registered", export_type=definition.name, policy=policy_name)
        return definition

    def known_types(self) -> List[ExportedTypeDefinition]:
        return self.registry.list_registered()

    def describe_providers(self) -> List[ExportProviderInfo]:
        return self.providers.describe()

    def _prepared_query(self, query: ExportDataQuery) -> ExportDataQuery:
        if query.take:
            return query
        return query.model_copy(update={"take": self.default_page_size})

    def _admit(
        self, request: ExportDataRequest, principal: Principal
    ) -> Tuple[ExportedTypeDefinition, ExportDataQuery]:
        # Lookup has no side effects, so it may run ahead of the policy check.
        definition = self.registry.resolve(request.export_type_name)
        query = self._prepared_query(request.data_query)
        self.gate.ensure_authorized(principal, query, definition.name)
        return definition, query

    def preview(self, request: ExportDataRequest, principal: Principal) -> ExportableSearchResult:
        """Fetch a single page of the requested data along with the total count."""
        definition, query = self._admit(request, principal)

        data_source = definition.create_data_source(query)
        items = data_source.fetch_page()
        return ExportableSearchResult(total_count=data_source.total_count(), results=items)

    def start(self, request: ExportDataRequest, principal: Principal) -> ExportPushNotification:
        """Accept an export run and enqueue it; returns the job's notification."""
        definition, query = self._admit(request, principal)
        request = request.model_copy(update={"data_query": query})
        provider = self.providers.create(request)

        notification = ExportPushNotification(
            creator=principal.user_name,
            title=f"{short_type_name(definition.name)} export",
            description="Starting export task...",
        )
        self.channel.send(notification)

        work = partial(self._execute, request, notification, definition, provider)
        with self._lock:
            try:
                job_id = self.runner.enqueue(work)
            except Exception as exc:
                self._send_enqueue_failure(notification, exc)
                raise
            notification.job_id = job_id
            self._job_notifications[job_id] = notification
            # Dropped by the channel if the worker already reported progress.
            self.channel.send(notification)

        self.logger.info(
            "export_job_created",
            job_id=job_id,
            export_type=definition.name,
            provider=provider.type_name,
            user=principal.user_name,
        )
        return notification.model_copy(deep=True)

    def _send_enqueue_failure(self, notification: ExportPushNotification, exc: Exception) -> None:
        failed = notification.model_copy(
            deep=True,
            update={
                "status": ExportJobStatus.FAILED,
                "description": "Export failed",
                "finished": utcnow(),
                "errors": [*notification.errors, str(exc)],
            },
        )
        self.channel.send(failed)
        self.logger.error("export_job_enqueue_failed", notification_id=notification.id, error=str(exc))

    def _forget_jobs(self, job_ids: List[str]) -> None:
        """Drop notifications of jobs the runner no longer remembers."""
        with self._lock:
            for job_id in job_ids:
                notification = self._job_notifications.pop(job_id, None)
                if notification is not None:
                    self.channel.discard(notification.id)

    def _execute(self, request, notification, definition, provider, job_id: str, token: CancellationToken):
        return process_export_job(
            job_id,
            token,
            request,
            notification,
            definition,
            provider,
            self.storage,
            self.channel,
            self.logger,
            download_url=self.download_url,
        )

    def cancel(self, job_id: str) -> CancelOutcome:
        """Best-effort cancellation; unknown or finished jobs are ignored."""
        with self._lock:
            outcome = self.runner.cancel(job_id)
            notification = self._job_notifications.get(job_id)

            if outcome == CancelOutcome.REMOVED and notification is not None:
                cancelled = notification.model_copy(
                    deep=True,
                    update={
                        "status": ExportJobStatus.CANCELLED,
                        "description": "Export was cancelled",
                        "finished": utcnow(),
                    },
                )
                self.channel.send(cancelled)
                self.logger.info("export_job_cancelled", job_id=job_id, before_start=True)
        return outcome

    def get_job_notification(self, job_id: str) -> Optional[ExportPushNotification]:
        with self._lock:
            notification = self._job_notifications.get(job_id)
        if notification is None:
            return None
        return self.channel.get(notification.id)

    def shutdown(self) -> None:
        """Cancel outstanding jobs and stop the worker pool."""
        for job_id in self.runner.active_job_ids():
            self.cancel(job_id)
        self.runner.shutdown()


__all__ = ["ExportEngine"]
