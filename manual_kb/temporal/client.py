"""Submitting manuals for durable processing."""

from typing import Any, Dict, Optional
from uuid import UUID

from temporalio.client import Client as TemporalClient
from temporalio.client import WorkflowHandle
from temporalio.common import WorkflowIDReusePolicy

from manual_kb.core.config import settings
from manual_kb.models.pipeline_models import ProcessingOptions
from manual_kb.temporal.workflows import ProcessManualWorkflow


async def get_temporal_client() -> TemporalClient:
    return await TemporalClient.connect(
        f"{settings.temporal_host}:{settings.temporal_port}",
        namespace=settings.temporal_namespace,
    )


def workflow_id_for(document_id: UUID) -> str:
    return f"process-manual-{document_id}"


async def start_manual_processing(
    client: TemporalClient,
    document_id: UUID,
    options: Optional[ProcessingOptions] = None,
) -> WorkflowHandle:
    """Start processing one document; a finished run for the same document may be restarted."""
    payload: Dict[str, Any] = {
        "document_id": str(document_id),
        "options": (options or ProcessingOptions()).model_dump(),
    }
    return await client.start_workflow(
        ProcessManualWorkflow.run,
        payload,
        id=workflow_id_for(document_id),
        task_queue=settings.temporal_task_queue,
        id_reuse_policy=WorkflowIDReusePolicy.ALLOW_DUPLICATE,
    )
