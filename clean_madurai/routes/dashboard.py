from __future__ import annotations

import json
import logging
from typing import Annotated, Any, Iterator

from fastapi import APIRouter, Depends, Query, Response
from fastapi.encoders import jsonable_encoder
from fastapi.responses import StreamingResponse

from clean_madurai.auth import require_role
from clean_madurai.config import settings
from clean_madurai.database import get_store
from clean_madurai.domain import Role
from clean_madurai.errors import EngineError
from clean_madurai.http_errors import to_http_exception
from clean_madurai.routes.common import get_complaint_service
from clean_madurai.services.analytics_service import export_frame, export_rows, status_counts, unassigned_queue
from clean_madurai.services.complaint_service import ComplaintService
from clean_madurai.services.document_store import DocumentStore
from clean_madurai.services.refresh import DashboardFeed, strategy_for
from clean_madurai.services.session_service import Session

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/dashboard", tags=["dashboard"])


@router.get("/admin")
def admin_dashboard(
    _: Annotated[Session, Depends(require_role(Role.ADMIN))],
    store: Annotated[DocumentStore, Depends(get_store)],
    latest: int = settings.dashboard_latest_count,
):
    try:
        dashboard = DashboardFeed(store, latest=latest).snapshot()
    except EngineError as ex:
        raise to_http_exception(ex, fallback="Unable to load admin data right now.") from ex
    return {**dashboard, "poll_interval_s": settings.dashboard_poll_interval_s}


def _ndjson(first: dict[str, Any], rest: Iterator[dict[str, Any]]) -> Iterator[str]:
    yield json.dumps(jsonable_encoder(first)) + "\n"
    try:
        for snapshot in rest:
            yield json.dumps(jsonable_encoder(snapshot)) + "\n"
    except EngineError as ex:
        # Headers are already sent; end the stream and let the client reconnect.
        logger.warning("Dashboard stream stopped: %s", ex)


@router.get("/admin/stream")
def admin_dashboard_stream(
    _: Annotated[Session, Depends(require_role(Role.ADMIN))],
    store: Annotated[DocumentStore, Depends(get_store)],
    max_updates: int = Query(1, ge=1, le=settings.dashboard_stream_max_updates),
    latest: int = settings.dashboard_latest_count,
):
    """
    Newline-delimited dashboard snapshots, one per refresh tick.
    Stores with change subscriptions push a snapshot per change; others are polled.
    """
    updates = DashboardFeed(store, strategy_for(store), latest=latest).updates(max_updates=max_updates)
    try:
        first = next(updates)
    except EngineError as ex:
        raise to_http_exception(ex, fallback="Unable to load admin data right now.") from ex
    return StreamingResponse(_ndjson(first, updates), media_type="application/x-ndjson")


@router.get("/officer")
def officer_dashboard(
    session: Annotated[Session, Depends(require_role(Role.OFFICER))],
    svc: Annotated[ComplaintService, Depends(get_complaint_service)],
):
    try:
        complaints = svc.by_ward(session, session.account.ward)
    except EngineError as ex:
        raise to_http_exception(ex, fallback="Unable to load ward complaints right now.") from ex
    mine = [c for c in complaints if c.assigned_officer_id == session.account.id]
    return {
        "ward": session.account.ward,
        "stats": status_counts(complaints),
        "complaints": [c.to_public() for c in complaints],
        "assigned_to_me": [c.to_public() for c in mine],
        "unassigned": [c.to_public() for c in unassigned_queue(complaints)],
    }


@router.get("/citizen")
def citizen_dashboard(
    session: Annotated[Session, Depends(require_role(Role.CITIZEN))],
    svc: Annotated[ComplaintService, Depends(get_complaint_service)],
):
    try:
        complaints = svc.by_reporter(session, session.account.id)
    except EngineError as ex:
        raise to_http_exception(ex, fallback="Unable to load your complaints right now.") from ex
    return {"stats": status_counts(complaints), "complaints": [c.to_public() for c in complaints]}


@router.get("/export")
def export_complaints(
    session: Annotated[Session, Depends(require_role(Role.ADMIN))],
    svc: Annotated[ComplaintService, Depends(get_complaint_service)],
    format: str = "json",
):
    try:
        complaints = svc.all(session)
    except EngineError as ex:
        raise to_http_exception(ex) from ex
    if format.lower() == "csv":
        csv = export_frame(complaints).to_csv(index=False)
        return Response(
            content=csv,
            media_type="text/csv",
            headers={"Content-Disposition": 'attachment; filename="complaints.csv"'},
        )
    return {"rows": export_rows(complaints)}
