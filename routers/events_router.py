import logging
from fastapi import APIRouter, Depends, Request
from sqlalchemy.orm import Session
import crud
import experiments
from database import get_db
from dependencies import get_current_user, get_optional_user_id
from errors import ApiError
from rate_limit import limiter, WRITE_RATE_LIMIT
from schemas import AnalyticsEventRequest, ConversionRequest, ErrorReport

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api", tags=["events"])


@router.post("/analytics/events", status_code=201)
@limiter.limit(WRITE_RATE_LIMIT)
def track_event(request: Request, body: AnalyticsEventRequest, user_id=Depends(get_optional_user_id),
                db: Session = Depends(get_db)):
    event_data = dict(body.event_data)
    event_data["user_agent"] = request.headers.get("user-agent")
    event_data["referer"] = request.headers.get("referer")
    try:
        event = crud.record_event(db, body.event_name, user_id, event_data, body.session_id)
    except Exception:
        logger.error("Failed to store analytics event", exc_info=True)
        db.rollback()
        raise ApiError(500, "Failed to store event")
    logger.info(f"[ANALYTICS] {body.event_name} user={user_id}")
    return {"success": True, "id": event.id}


@router.post("/errors", status_code=201)
@limiter.limit(WRITE_RATE_LIMIT)
def report_error(request: Request, body: ErrorReport, user_id=Depends(get_optional_user_id),
                 db: Session = Depends(get_db)):
    if body.level == "error":
        logger.error(f"Client error reported from {body.service}: {body.message}")
    try:
        event = crud.record_event(db, "application_error", user_id, body.model_dump(), body.session_id)
    except Exception:
        logger.error("Failed to store error report", exc_info=True)
        db.rollback()
        raise ApiError(500, "Failed to store error report")
    return {"success": True, "id": event.id}


@router.get("/experiments/{experiment_id}")
def experiment_variant(experiment_id: str, user=Depends(get_current_user), db: Session = Depends(get_db)):
    assignment = experiments.get_variant(experiment_id, user.id)
    if assignment is None:
        return {"experimentId": experiment_id, "variant": None, "data": None}

    crud.record_event(db, "experiment_exposure", user.id,
                      {"experiment_id": experiment_id, "variant": assignment["variant"]})
    return {"experimentId": experiment_id, **assignment}


@router.post("/experiments/{experiment_id}/conversion")
def experiment_conversion(experiment_id: str, body: ConversionRequest, user=Depends(get_current_user),
                          db: Session = Depends(get_db)):
    assignment = experiments.get_variant(experiment_id, user.id)
    if assignment is None:
        raise ApiError(404, "Experiment not running")

    crud.record_event(db, "experiment_conversion", user.id,
                      {"experiment_id": experiment_id, "variant": assignment["variant"], **body.event_data})
    return {"success": True, "variant": assignment["variant"]}
