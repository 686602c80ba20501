"""Workflow control routes: start, status and terminate."""

from __future__ import annotations

import logging
from typing import Any, Dict

from fastapi import APIRouter, Body, Depends, Request
from fastapi.responses import JSONResponse

from ..runtime import WorkflowClient

logger = logging.getLogger(__name__)

router = APIRouter()


def get_client(request: Request) -> WorkflowClient:
    return request.app.state.services.client


def _error(e: Exception) -> JSONResponse:
    return JSONResponse(status_code=500, content={"error": str(e)})


@router.get("/")
async def root():
    return {"message": "Workflow is running"}


@router.post("/workflow/start")
async def start_workflow(
    payload: Dict[str, Any] = Body(...),
    client: WorkflowClient = Depends(get_client),
):
    """Schedule a new pipeline instance for ``payload``.

    Any JSON object is accepted; one without a ``query`` string fails in the
    validation step and completes with ``processed: false``.
    """
    try:
        workflow_id = await client.schedule_new_workflow(payload)
    except Exception as e:
        logger.exception(f"Failed to start workflow: {e}")
        return _error(e)
    return {
        "message": "Workflow started successfully",
        "workflow_id": workflow_id,
    }


@router.get("/workflow/status/{workflow_id}")
async def workflow_status(
    workflow_id: str, client: WorkflowClient = Depends(get_client)
):
    """Report the runtime status, or a not-found payload for unknown ids."""
    try:
        state = await client.get_workflow_state(workflow_id)
    except Exception as e:
        logger.exception(f"Failed to get workflow status: {e}")
        return _error(e)
    if state is None:
        return {"error": "Workflow not found", "workflow_id": workflow_id}
    return {"workflow_id": workflow_id, "status": state.status.value}


@router.post("/workflow/terminate/{workflow_id}")
async def terminate_workflow(
    workflow_id: str, client: WorkflowClient = Depends(get_client)
):
    try:
        await client.terminate_workflow(workflow_id)
    except Exception as e:
        logger.exception(f"Failed to terminate workflow: {e}")
        return _error(e)
    return {"message": "Workflow terminated successfully"}
