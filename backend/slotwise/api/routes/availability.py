"""Working pattern, vacations, holidays, preferences and user settings."""
from __future__ import annotations

from datetime import date
from typing import List, Optional
from uuid import UUID

from fastapi import APIRouter, Depends, HTTPException, Query, Request, Response, status
from pydantic import ValidationError
from sqlalchemy import asc
from sqlalchemy.orm import Session

from slotwise.api.schemas.availability import (
    HolidayOut,
    PreferenceCreate,
    PreferenceOut,
    UserSettingsOut,
    UserSettingsUpdate,
    VacationCreate,
    VacationOut,
    WorkDayOut,
    WorkScheduleResponse,
    WorkScheduleUpdate,
)
from slotwise.core.config import settings
from slotwise.db.deps import get_db
from slotwise.db.models.learned_preference import LearnedPreference
from slotwise.db.models.user import User
from slotwise.db.models.work_schedule import UserVacation, UserWorkSchedule
from slotwise.observability.tracing import trace
from slotwise.scheduling.holidays import holidays_in_range
from slotwise.services.blocked_times import DEFAULT_WORK_WEEK
from slotwise.services.preferences import parse_preference
from slotwise.services.user_service import get_or_create_user

router = APIRouter(prefix="/user")


@router.get("/work-schedule", response_model=WorkScheduleResponse, tags=["availability"])
def get_work_schedule(
    http_request: Request,
    user_id: UUID = Query(...),
    db: Session = Depends(get_db),
) -> WorkScheduleResponse:
    request_id = getattr(http_request.state, "request_id", None)
    rows = {
        row.day_of_week: row
        for row in db.query(UserWorkSchedule).filter(UserWorkSchedule.user_id == user_id).all()
    }
    days: List[WorkDayOut] = []
    for default in DEFAULT_WORK_WEEK:
        row = rows.get(default.day_of_week)
        if row is None:
            days.append(
                WorkDayOut(
                    day_of_week=default.day_of_week,
                    is_working=default.is_working,
                    start_time=default.start_time,
                    end_time=default.end_time,
                    location=default.location,
                    commute_to_min=None,
                    commute_from_min=None,
                )
            )
            continue
        days.append(
            WorkDayOut(
                day_of_week=row.day_of_week,
                is_working=bool(row.is_working),
                start_time=row.start_time,
                end_time=row.end_time,
                location=row.location,
                commute_to_min=row.commute_to_min,
                commute_from_min=row.commute_from_min,
            )
        )
    return WorkScheduleResponse(days=days, configured=bool(rows), request_id=request_id or "")


@router.put("/work-schedule", response_model=WorkScheduleResponse, tags=["availability"])
def put_work_schedule(
    payload: WorkScheduleUpdate,
    http_request: Request,
    db: Session = Depends(get_db),
) -> WorkScheduleResponse:
    """Upsert the given weekdays; days not in the payload keep their current values."""
    request_id = getattr(http_request.state, "request_id", None)
    try:
        with trace(
            "user.work_schedule.update",
            metadata={"days": [day.day_of_week for day in payload.days]},
            user_id=str(payload.user_id),
            request_id=request_id,
        ):
            get_or_create_user(db, payload.user_id)
            existing = {
                row.day_of_week: row
                for row in db.query(UserWorkSchedule).filter(UserWorkSchedule.user_id == payload.user_id).all()
            }
            for day in payload.days:
                row = existing.get(day.day_of_week)
                if row is None:
                    row = UserWorkSchedule(user_id=payload.user_id, day_of_week=day.day_of_week)
                    existing[day.day_of_week] = row
                row.is_working = day.is_working
                row.start_time = day.start_time if day.is_working else None
                row.end_time = day.end_time if day.is_working else None
                row.location = day.location
                row.commute_to_min = day.commute_to_min
                row.commute_from_min = day.commute_from_min
                db.add(row)
            db.commit()
    except Exception:
        db.rollback()
        raise
    return get_work_schedule(http_request, user_id=payload.user_id, db=db)


@router.get("/vacations", response_model=List[VacationOut], tags=["availability"])
def list_vacations(
    user_id: UUID = Query(...),
    include_past: bool = Query(default=False),
    today: Optional[date] = Query(default=None),
    db: Session = Depends(get_db),
) -> List[VacationOut]:
    query = db.query(UserVacation).filter(UserVacation.user_id == user_id)
    if not include_past:
        query = query.filter(UserVacation.end_date >= (today or date.today()))
    rows = query.order_by(asc(UserVacation.start_date)).all()
    return [VacationOut(id=row.id, start_date=row.start_date, end_date=row.end_date, note=row.note) for row in rows]


@router.post("/vacations", response_model=VacationOut, status_code=status.HTTP_201_CREATED, tags=["availability"])
def create_vacation(payload: VacationCreate, db: Session = Depends(get_db)) -> VacationOut:
    try:
        get_or_create_user(db, payload.user_id)
        row = UserVacation(
            user_id=payload.user_id,
            start_date=payload.start_date,
            end_date=payload.end_date,
            note=payload.note,
        )
        db.add(row)
        db.commit()
    except Exception:
        db.rollback()
        raise
    db.refresh(row)
    return VacationOut(id=row.id, start_date=row.start_date, end_date=row.end_date, note=row.note)


@router.delete("/vacations/{vacation_id}", status_code=status.HTTP_204_NO_CONTENT, tags=["availability"])
def delete_vacation(
    vacation_id: UUID,
    user_id: UUID = Query(...),
    db: Session = Depends(get_db),
) -> Response:
    row = db.get(UserVacation, vacation_id)
    if not row:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Vacation not found")
    if row.user_id != user_id:
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Vacation does not belong to user")
    try:
        db.delete(row)
        db.commit()
    except Exception:
        db.rollback()
        raise
    return Response(status_code=status.HTTP_204_NO_CONTENT)


@router.get("/settings", response_model=UserSettingsOut, tags=["availability"])
def get_user_settings(
    http_request: Request,
    user_id: UUID = Query(...),
    db: Session = Depends(get_db),
) -> UserSettingsOut:
    user = db.get(User, user_id)
    if not user:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="User not found")
    return _serialize_settings(user, getattr(http_request.state, "request_id", None))


@router.put("/settings", response_model=UserSettingsOut, tags=["availability"])
def put_user_settings(
    payload: UserSettingsUpdate,
    http_request: Request,
    db: Session = Depends(get_db),
) -> UserSettingsOut:
    try:
        user = get_or_create_user(db, payload.user_id)
        if payload.country is not None:
            user.country = payload.country
        if payload.available_time_start is not None:
            user.available_time_start = payload.available_time_start
        if payload.available_time_end is not None:
            user.available_time_end = payload.available_time_end
        if "family_id" in payload.model_fields_set:
            user.family_id = payload.family_id
        start = user.available_time_start if user.available_time_start is not None else settings.default_day_start_hour
        end = user.available_time_end if user.available_time_end is not None else settings.default_day_end_hour
        if end <= start:
            raise HTTPException(
                status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
                detail="available_time_end must be after available_time_start",
            )
        db.add(user)
        db.commit()
    except Exception:
        db.rollback()
        raise
    db.refresh(user)
    return _serialize_settings(user, getattr(http_request.state, "request_id", None))


@router.get("/holidays", response_model=List[HolidayOut], tags=["availability"])
def list_holidays(
    start: date = Query(...),
    end: date = Query(...),
    user_id: Optional[UUID] = Query(default=None),
    country: Optional[str] = Query(default=None),
    db: Session = Depends(get_db),
) -> List[HolidayOut]:
    if end < start:
        raise HTTPException(status_code=status.HTTP_422_UNPROCESSABLE_ENTITY, detail="end must not be before start")
    code = country
    if code is None and user_id is not None:
        user = db.get(User, user_id)
        code = user.country if user else None
    return [
        HolidayOut(date=holiday.date, observed=holiday.effective_date, name=holiday.name)
        for holiday in holidays_in_range(code or settings.default_country, start, end)
    ]


@router.get("/preferences", response_model=List[PreferenceOut], tags=["availability"])
def list_preferences(user_id: UUID = Query(...), db: Session = Depends(get_db)) -> List[PreferenceOut]:
    rows = (
        db.query(LearnedPreference)
        .filter(LearnedPreference.user_id == user_id)
        .order_by(asc(LearnedPreference.created_at))
        .all()
    )
    return [_serialize_preference(row) for row in rows]


@router.post("/preferences", response_model=PreferenceOut, status_code=status.HTTP_201_CREATED, tags=["availability"])
def create_preference(payload: PreferenceCreate, db: Session = Depends(get_db)) -> PreferenceOut:
    try:
        parsed = parse_preference(payload.kind, payload.value)
    except ValidationError as exc:
        raise HTTPException(status_code=status.HTTP_422_UNPROCESSABLE_ENTITY, detail=exc.errors(include_url=False))

    value = parsed.model_dump(mode="json", exclude={"kind"})
    try:
        get_or_create_user(db, payload.user_id)
        row = LearnedPreference(
            user_id=payload.user_id,
            kind=payload.kind,
            value=value,
            confidence=payload.confidence,
            is_active=True,
        )
        db.add(row)
        db.commit()
    except Exception:
        db.rollback()
        raise
    db.refresh(row)
    return _serialize_preference(row)


@router.delete("/preferences/{preference_id}", status_code=status.HTTP_204_NO_CONTENT, tags=["availability"])
def deactivate_preference(
    preference_id: UUID,
    user_id: UUID = Query(...),
    db: Session = Depends(get_db),
) -> Response:
    row = db.get(LearnedPreference, preference_id)
    if not row:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Preference not found")
    if row.user_id != user_id:
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Preference does not belong to user")
    try:
        row.is_active = False
        db.add(row)
        db.commit()
    except Exception:
        db.rollback()
        raise
    return Response(status_code=status.HTTP_204_NO_CONTENT)


def _serialize_settings(user: User, request_id: Optional[str]) -> UserSettingsOut:
    return UserSettingsOut(
        user_id=user.id,
        country=user.country or settings.default_country,
        available_time_start=user.available_time_start
        if user.available_time_start is not None
        else settings.default_day_start_hour,
        available_time_end=user.available_time_end
        if user.available_time_end is not None
        else settings.default_day_end_hour,
        family_id=user.family_id,
        request_id=request_id or "",
    )


def _serialize_preference(row: LearnedPreference) -> PreferenceOut:
    return PreferenceOut(
        id=row.id,
        kind=row.kind,
        value=dict(row.value or {}),
        confidence=float(row.confidence),
        is_active=bool(row.is_active),
    )
