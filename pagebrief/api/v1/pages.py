"""Page convenience endpoints: extract text, summarize a page in one call."""

from fastapi import APIRouter, Depends, HTTPException
from pydantic import BaseModel
from typing import Optional

from pagebrief.api.deps import get_orchestrator, get_settings
from pagebrief.api.v1.jobs import ack_response
from pagebrief.config import Settings
from pagebrief.extraction.page_text import extract_page_text, require_usable_text
from pagebrief.jobs.errors import InsufficientInputError
from pagebrief.jobs.models import JobKind, JobRequest, SummaryLength, SummaryType
from pagebrief.jobs.orchestrator import JobOrchestrator

router = APIRouter()


class ExtractRequest(BaseModel):
    html: Optional[str] = None
    selection: Optional[str] = None


class ExtractResponse(BaseModel):
    text: str


class SummarizePageRequest(BaseModel):
    html: Optional[str] = None
    text: Optional[str] = None
    selection: Optional[str] = None
    type: SummaryType = SummaryType.TLDR
    length: SummaryLength = SummaryLength.SHORT


@router.post("/extract", response_model=ExtractResponse)
async def extract(request: ExtractRequest):
    """Return the normalized text of a page (selection first, then article, then body)."""
    return ExtractResponse(text=extract_page_text(request.html, request.selection))


@router.post("/summarize-page")
async def summarize_page(
    request: SummarizePageRequest,
    orchestrator: JobOrchestrator = Depends(get_orchestrator),
    settings: Settings = Depends(get_settings),
):
    """Extract page text and submit a summarize job.

    Convenience wrapper around POST /jobs. Pages with too little text are
    refused here and never reach the orchestrator.
    """
    if request.html is None and request.text is None and request.selection is None:
        raise HTTPException(
            status_code=400,
            detail="One of html, text or selection must be provided",
        )

    raw = request.text if request.text is not None else extract_page_text(request.html, request.selection)
    try:
        page_text = require_usable_text(raw, settings.min_input_chars)
    except InsufficientInputError as exc:
        raise HTTPException(status_code=400, detail=str(exc))

    ack = orchestrator.submit(JobRequest(
        kind=JobKind.SUMMARIZE,
        input_text=page_text,
        parameters={"type": request.type.value, "length": request.length.value},
    ))
    return ack_response(ack)
