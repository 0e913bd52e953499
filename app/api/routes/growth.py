from __future__ import annotations

from dataclasses import replace
from datetime import date
from typing import Any, Dict, Optional

from fastapi import APIRouter, Depends, HTTPException, Request

from app.schemas.growth import (
    AnalysisOut,
    AnalyzeRequest,
    BatchAnalyzeRequest,
    BatchAnalyzeResponse,
    BatchItemOut,
    HistoryEntryOut,
    HistoryResponse,
    TrendOut,
)
from app.services.growth_service import BatchItem, BatchOutcome, GrowthAssessmentService, trend_to_payload
from app.services.growth_store import analysis_to_payload, measurement_to_payload
from growth.errors import GrowthAssessmentError
from growth.types import Indicator, parse_sex


router = APIRouter(prefix="/growth", tags=["growth"])


def get_service(request: Request) -> GrowthAssessmentService:
    service = getattr(request.app.state, "service", None)
    if service is None:
        # WHO reference not available; fail these endpoints without killing the API
        raise HTTPException(
            status_code=503,
            detail="WHO growth reference data not loaded. Check server configuration (who_lms_dir)",
        )
    return service


@router.post("/analyze", response_model=AnalysisOut)
def analyze(req: AnalyzeRequest, service: GrowthAssessmentService = Depends(get_service)) -> AnalysisOut:
    subject = req.subject.to_domain()
    measurement = req.measurement.to_domain(subject.id)
    result = service.analyze(subject, measurement, save=req.save is not False)
    return AnalysisOut(**analysis_to_payload(result))


@router.post("/batch-analyze", response_model=BatchAnalyzeResponse)
def batch_analyze(
    req: BatchAnalyzeRequest, service: GrowthAssessmentService = Depends(get_service)
) -> BatchAnalyzeResponse:
    """Posyandu session: each child is analyzed independently; one bad row never fails the batch."""
    items = []
    # per request item: an index into `items`, or the outcome of a rejected subject
    slots = []
    for item in req.items:
        try:
            subject = item.subject.to_domain()
        except GrowthAssessmentError as e:
            slots.append(BatchOutcome(subject_id=item.subject.subject_id, error=type(e).__name__, detail=str(e)))
            continue
        measurement = item.measurement.to_domain(subject.id)
        if req.location and not measurement.location:
            measurement = replace(measurement, location=req.location)
        slots.append(len(items))
        items.append(BatchItem(subject, measurement, save=item.save))

    outcomes = service.batch_analyze(items, save=req.save)
    ordered = [outcomes[s] if isinstance(s, int) else s for s in slots]
    out = [
        BatchItemOut(
            subject_id=o.subject_id,
            ok=o.ok,
            analysis=AnalysisOut(**analysis_to_payload(o.analysis)) if o.ok else None,
            error=o.error,
            detail=o.detail,
        )
        for o in ordered
    ]

    succeeded = sum(1 for r in out if r.ok)
    return BatchAnalyzeResponse(total=len(out), succeeded=succeeded, failed=len(out) - succeeded, results=out)


@router.get("/dashboard")
def dashboard(service: GrowthAssessmentService = Depends(get_service)) -> Dict[str, Any]:
    return service.dashboard()


@router.get("/chart/{indicator}/{sex}")
def chart(indicator: str, sex: str, service: GrowthAssessmentService = Depends(get_service)) -> Dict[str, Any]:
    try:
        ind = Indicator(indicator)
    except ValueError:
        raise HTTPException(status_code=404, detail=f"unknown indicator: {indicator}")
    partition = parse_sex(sex)
    curves = service.chart(ind, partition)
    return {"indicator": ind.value, "sex": partition.value, "rows": curves.to_dict(orient="records")}


@router.get("/{subject_id}/history", response_model=HistoryResponse)
def history(
    subject_id: str,
    start: Optional[date] = None,
    end: Optional[date] = None,
    service: GrowthAssessmentService = Depends(get_service),
) -> HistoryResponse:
    entries = service.history(subject_id, start=start, end=end)
    value = [
        HistoryEntryOut(
            measurement=measurement_to_payload(e.measurement),
            analysis=AnalysisOut(**analysis_to_payload(e.analysis)),
        )
        for e in entries
    ]
    return HistoryResponse(subject_id=subject_id, value=value, Count=len(value))


@router.get("/{subject_id}/trend", response_model=TrendOut)
def trend(subject_id: str, service: GrowthAssessmentService = Depends(get_service)) -> TrendOut:
    return TrendOut(**trend_to_payload(service.trend(subject_id)))
