"""Job API: submit jobs, read the latest record per kind."""

from fastapi import APIRouter, Depends
from fastapi.responses import JSONResponse
from typing import Optional

from pagebrief.api.deps import get_orchestrator
from pagebrief.jobs.models import JobAck, JobKind, JobRecord, JobRequest
from pagebrief.jobs.orchestrator import JobOrchestrator
from pagebrief.processing.presentation import JobView, render_job_view

router = APIRouter()


def ack_response(ack: JobAck) -> JSONResponse:
    """202 for accepted jobs, 409 when the orchestrator refused the request."""
    return JSONResponse(
        status_code=202 if ack.accepted else 409,
        content=ack.model_dump(),
    )


@router.post("/jobs", response_model=JobAck, status_code=202)
async def submit_job(
    request: JobRequest,
    orchestrator: JobOrchestrator = Depends(get_orchestrator),
):
    """Submit a job. Progress is published to the state store, not returned here."""
    return ack_response(orchestrator.submit(request))


@router.get("/jobs/{kind}", response_model=JobRecord)
async def get_job(kind: JobKind, orchestrator: JobOrchestrator = Depends(get_orchestrator)):
    return orchestrator.get_status(kind)


@router.get("/jobs/{kind}/view", response_model=JobView)
async def get_job_view(
    kind: JobKind,
    summary_type: Optional[str] = None,
    orchestrator: JobOrchestrator = Depends(get_orchestrator),
):
    """Render-ready status message, error flag and display text for a kind."""
    return render_job_view(orchestrator.get_status(kind), summary_type)
