"""Workflow running the ingestion pipeline for one manual."""

from datetime import timedelta
from typing import Any, Dict, Optional

from temporalio import workflow
from temporalio.common import RetryPolicy
from temporalio.exceptions import ActivityError

PROCESS_MANUAL_TIMEOUT = timedelta(hours=4)


@workflow.defn
class ProcessManualWorkflow:
    """Runs ``process_manual`` exactly once.

    A failed run is not retried here; submitting the document again is the
    retry mechanism.
    """

    def __init__(self):
        self._status = "initialized"
        self._document_id: Optional[str] = None
        self._result: Optional[Dict[str, Any]] = None
        self._error: Optional[str] = None

    @workflow.query
    def get_status(self) -> dict:
        """Query handler for status updates."""
        return {
            "status": self._status,
            "document_id": self._document_id,
            "result": self._result,
            "error": self._error,
        }

    @workflow.run
    async def run(self, payload: Dict[str, Any]) -> dict:
        self._document_id = payload["document_id"]
        options = payload.get("options") or {}
        self._status = "processing"

        try:
            self._result = await workflow.execute_activity(
                "process_manual",
                args=[self._document_id, options],
                start_to_close_timeout=PROCESS_MANUAL_TIMEOUT,
                retry_policy=RetryPolicy(maximum_attempts=1),
            )
        except ActivityError as e:
            self._status = "failed"
            self._error = str(e.cause or e)
            raise

        self._status = "completed"
        return self._result
