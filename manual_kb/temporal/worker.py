"""Temporal worker serving manual ingestion.

Connects with retries, then polls the configured task queue for
ProcessManualWorkflow runs and process_manual activities.
"""

import asyncio

from temporalio.client import Client
from temporalio.worker import Worker
from temporalio.worker.workflow_sandbox import SandboxedWorkflowRunner, SandboxRestrictions

from manual_kb.core.config import settings
from manual_kb.core.database import close_database, init_database
from manual_kb.temporal.activities import process_manual
from manual_kb.temporal.workflows import ProcessManualWorkflow
from manual_kb.utils.logging import get_logger

logger = get_logger(__name__)


async def connect_client(max_retries: int = 5, retry_delay: int = 5) -> Client:
    """Connect to the Temporal server, retrying on failure."""
    for attempt in range(max_retries):
        try:
            logger.info(
                f"Connecting to Temporal server at {settings.temporal_host}:{settings.temporal_port} "
                f"(Attempt {attempt + 1}/{max_retries})"
            )
            return await Client.connect(
                target_host=f"{settings.temporal_host}:{settings.temporal_port}",
                namespace=settings.temporal_namespace,
            )
        except Exception as e:
            if attempt < max_retries - 1:
                logger.warning(f"Connection attempt {attempt + 1} failed: {e}. Retrying in {retry_delay}s...")
                await asyncio.sleep(retry_delay)
            else:
                logger.error(f"Failed to connect to Temporal server after {max_retries} attempts: {e}")
                raise


def build_worker(client: Client) -> Worker:
    return Worker(
        client,
        task_queue=settings.temporal_task_queue,
        workflows=[ProcessManualWorkflow],
        activities=[process_manual],
        max_concurrent_activities=settings.pipeline.max_concurrent_documents,
        workflow_runner=SandboxedWorkflowRunner(
            restrictions=SandboxRestrictions.default.with_passthrough_all_modules()
        ),
    )


async def main():
    """Start the Temporal worker."""
    await init_database(create_missing_tables=settings.db.create_missing_tables)
    client = await connect_client()
    worker = build_worker(client)

    logger.info(f"Worker polling task queue '{settings.temporal_task_queue}'")
    try:
        await worker.run()
    finally:
        await close_database()


if __name__ == "__main__":
    try:
        asyncio.run(main())
    except KeyboardInterrupt:
        logger.info("\nWorker stopped by user")
    except Exception as e:
        logger.error(f"Worker failed: {e}", exc_info=True)
        raise
