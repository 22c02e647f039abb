"""Background task body executing a single export job."""

from __future__ import annotations

from structlog.stdlib import BoundLogger

from .errors import ExportCancelled
from .jobs import CancellationToken
from .models import ExportDataRequest, ExportJobStatus, ExportPushNotification, utcnow
from .notifications import NotificationChannel
from .providers import ExportProvider
from .registry import ExportedTypeDefinition
from .storage import LocalExportFileStorage


def output_file_name(job_id: str, provider: ExportProvider) -> str:
    return f"{job_id}{provider.file_extension}"


def process_export_job(
    job_id: str,
    token: CancellationToken,
    request: ExportDataRequest,
    notification: ExportPushNotification,
    definition: ExportedTypeDefinition,
    provider: ExportProvider,
    storage: LocalExportFileStorage,
    channel: NotificationChannel,
    logger: BoundLogger,
    download_url: str = "/api/export/download/{file_name}",
) -> ExportJobStatus:
    """Execute an export job and report its lifecycle through ``channel``.

    Errors never propagate: they end up in the terminal notification. The
    output is written to a staged file and only published when every page was
    written, so a failed or cancelled run leaves nothing downloadable.
    """
    notification = notification.model_copy(deep=True, update={"job_id": job_id})
    log = logger.bind(job_id=job_id, export_type=definition.name, provider=provider.type_name)

    notification.status = ExportJobStatus.RUNNING
    notification.description = "Export task is running..."
    channel.send(notification)
    log.info("export_job_started")

    file_name = output_file_name(job_id, provider)
    # Paging restarts from the first record; ``take`` is the batch size.
    query = request.data_query.model_copy(update={"skip": 0})

    try:
        data_source = definition.create_data_source(query)
        notification.total_count = data_source.total_count()

        with storage.stage(file_name) as staged:
            provider.begin(staged.stream)
            for page in data_source.iter_pages(checkpoint=token.raise_if_cancelled):
                provider.write_page(page)
                notification.processed_count += len(page)
                notification.description = (
                    f"{notification.processed_count} of {notification.total_count} have been exported"
                )
                channel.send(notification)
            token.raise_if_cancelled()
            provider.finish()
            staged.publish()
    except ExportCancelled:
        notification.status = ExportJobStatus.CANCELLED
        notification.description = "Export was cancelled"
        notification.finished = utcnow()
        channel.send(notification)
        log.info("export_job_cancelled", processed=notification.processed_count)
        return ExportJobStatus.CANCELLED
    except Exception as exc:
        notification.status = ExportJobStatus.FAILED
        notification.description = "Export failed"
        notification.errors.append(str(exc))
        notification.finished = utcnow()
        channel.send(notification)
        log.error("export_job_failed", error=str(exc))
        return ExportJobStatus.FAILED

    notification.status = ExportJobStatus.COMPLETED
    notification.description = "Export finished"
    notification.file_name = file_name
    notification.download_url = download_url.format(file_name=file_name)
    notification.finished = utcnow()
    channel.send(notification)
    log.info("export_job_completed", file_name=file_name, processed=notification.processed_count)
    return ExportJobStatus.COMPLETED


__all__ = ["output_file_name", "process_export_job"]
