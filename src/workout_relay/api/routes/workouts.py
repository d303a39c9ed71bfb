"""Inbox read routes for the presentation layer."""
from datetime import datetime
from typing import List, Optional
from uuid import UUID

from fastapi import APIRouter, Depends, HTTPException, Query, Response
from pydantic import BaseModel

from workout_relay.inbox.reconciler import WorkoutInbox, get_inbox
from workout_relay.models.payload import WorkoutPayload
from workout_relay.transfer import codec

router = APIRouter()


class WorkoutSummary(BaseModel):
    id: UUID
    sport: Optional[str]
    start: datetime
    end: datetime
    duration: float
    distance_meters: Optional[float]
    avg_hr: Optional[float]
    split_count: int
    summary: str


class ReloadResponse(BaseModel):
    count: int


def _summarize(payload: WorkoutPayload) -> WorkoutSummary:
    return WorkoutSummary(
        id=payload.id,
        sport=payload.sport,
        start=payload.start,
        end=payload.end,
        duration=payload.duration,
        distance_meters=payload.distance_meters,
        avg_hr=payload.avg_hr,
        split_count=len(payload.km_splits or ()),
        summary=payload.summary_line(),
    )


@router.get("/", response_model=List[WorkoutSummary])
def list_workouts(
    limit: int = Query(20, ge=0),
    offset: int = Query(0, ge=0),
    inbox: WorkoutInbox = Depends(get_inbox),
):
    """List received workouts, newest first."""
    return [_summarize(p) for p in inbox.items[offset:offset + limit]]


@router.post("/reload", response_model=ReloadResponse)
def reload_inbox(inbox: WorkoutInbox = Depends(get_inbox)):
    """Rescan the inbox directory (e.g. when the list view appears)."""
    return ReloadResponse(count=len(inbox.reload()))


@router.get("/{workout_id}")
def get_workout(workout_id: UUID, inbox: WorkoutInbox = Depends(get_inbox)):
    """Full payload in wire format."""
    payload = inbox.get(workout_id)
    if payload is None:
        raise HTTPException(status_code=404, detail="Workout not found")
    return Response(content=codec.encode(payload), media_type="application/json")
