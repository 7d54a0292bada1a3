"""Practices 기능 API 라우터입니다. 요청을 검증하고 반복 시리즈 서비스로 비즈니스 로직을 위임합니다."""

from datetime import date
from typing import Callable, List, Optional
from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.orm import Session
from practice_app.database import get_db
from practice_app.schemas.practice import (
    EditPlanOut, PracticeCreate, PracticeOut, PracticeUpdate, RecurringPracticeCreate, OperationResult,
)
from practice_app.services.series_edit_service import EditScope, SeriesEditController
from practice_app.services.series_service import PersistenceError, PracticeNotFound, SeriesRepository

router = APIRouter(prefix="/api/practices", tags=["practices"])

_ERROR_STATUS = {
    "validation": 400,
    "not_found": 404,
    "choice_required": 409,
    "persistence": 500,
    "partial_series": 500,
}

# 수정 요청에서 명시적으로 null을 보내 비울 수 있는 필드
_CLEARABLE_FIELDS = {
    "description",
    "end_time",
    "location_name",
    "location_address",
    "location_lat",
    "location_lng",
    "rsvp_visibility_hours",
    "rsvp_deadline",
    "food_location_name",
    "food_location_address",
}


def get_today_provider() -> Callable[[], date]:
    return date.today


def get_series_repository(
    db: Session = Depends(get_db),
    today: Callable[[], date] = Depends(get_today_provider),
) -> SeriesRepository:
    return SeriesRepository(db, today=today)


def get_series_controller(repository: SeriesRepository = Depends(get_series_repository)) -> SeriesEditController:
    return SeriesEditController(repository)


def _unwrap(result: OperationResult) -> OperationResult:
    if not result.success:
        raise HTTPException(status_code=_ERROR_STATUS.get(result.error_type, 500), detail=result.error)
    return result


def _storage_error(exc: PersistenceError) -> HTTPException:
    return HTTPException(status_code=500, detail=f"연습 데이터를 처리하지 못했습니다: {exc}")


def _load(repository: SeriesRepository, practice_id: int):
    try:
        return repository.get_practice(practice_id)
    except PracticeNotFound:
        raise HTTPException(status_code=404, detail="연습을 찾을 수 없습니다.")
    except PersistenceError as exc:
        raise _storage_error(exc)


def _update_payload(data: PracticeUpdate) -> dict:
    payload = data.model_dump(exclude_none=True)
    for name in _CLEARABLE_FIELDS & data.model_fields_set:
        payload[name] = getattr(data, name)
    return payload


@router.get("", response_model=List[PracticeOut])
def list_practices(
    date_from: Optional[date] = None,
    date_to: Optional[date] = None,
    repository: SeriesRepository = Depends(get_series_repository),
):
    try:
        return repository.list_practices(date_from=date_from, date_to=date_to)
    except PersistenceError as exc:
        raise _storage_error(exc)


@router.post("", response_model=PracticeOut)
def create_practice(data: PracticeCreate, repository: SeriesRepository = Depends(get_series_repository)):
    try:
        return repository.create_practice(data.model_dump())
    except PersistenceError as exc:
        raise _storage_error(exc)


@router.post("/recurring")
def create_recurring_practice(
    data: RecurringPracticeCreate,
    controller: SeriesEditController = Depends(get_series_controller),
):
    result = _unwrap(controller.create_recurring_practice(data.practice.model_dump(), data.recurrence))
    return {"success": True, "data": result.data, "instance_count": result.instance_count}


@router.get("/{practice_id}", response_model=PracticeOut)
def get_practice(practice_id: int, repository: SeriesRepository = Depends(get_series_repository)):
    return _load(repository, practice_id)


@router.get("/{practice_id}/edit-plan", response_model=EditPlanOut)
def get_edit_plan(practice_id: int, controller: SeriesEditController = Depends(get_series_controller)):
    practice = _load(controller.repository, practice_id)
    plan = controller.plan_edit(practice)
    return EditPlanOut(
        practice_id=practice.practice_id,
        requires_choice=plan.requires_choice,
        parent_practice_id=practice.parent_practice_id,
    )


@router.get("/{practice_id}/parent", response_model=Optional[PracticeOut])
def get_parent_practice(practice_id: int, repository: SeriesRepository = Depends(get_series_repository)):
    _load(repository, practice_id)
    try:
        return repository.get_parent_practice(practice_id)
    except PersistenceError as exc:
        raise _storage_error(exc)


@router.get("/{practice_id}/series", response_model=List[PracticeOut])
def get_series(practice_id: int, repository: SeriesRepository = Depends(get_series_repository)):
    practice = _load(repository, practice_id)
    parent_id = practice.parent_practice_id or practice.practice_id
    parent = _load(repository, parent_id)
    if not parent.is_recurring:
        raise HTTPException(status_code=400, detail="반복 연습 시리즈가 아닙니다.")
    try:
        return [parent, *repository.get_series_instances(parent_id)]
    except PersistenceError as exc:
        raise _storage_error(exc)


@router.put("/{practice_id}", response_model=PracticeOut)
def update_practice(
    practice_id: int,
    data: PracticeUpdate,
    scope: Optional[EditScope] = None,
    controller: SeriesEditController = Depends(get_series_controller),
):
    practice = _load(controller.repository, practice_id)
    result = _unwrap(controller.apply_edit(practice, _update_payload(data), scope))
    if result.data is None:
        # 시리즈 수정은 개수만 돌려주므로 최신 행을 다시 읽는다.
        return _load(controller.repository, practice_id)
    return result.data


@router.put("/{practice_id}/series")
def update_practice_series(
    practice_id: int,
    data: PracticeUpdate,
    controller: SeriesEditController = Depends(get_series_controller),
):
    practice = _load(controller.repository, practice_id)
    if not practice.parent_practice_id and not practice.is_recurring:
        raise HTTPException(status_code=400, detail="반복 연습 시리즈가 아닙니다.")
    result = _unwrap(controller.apply_edit(practice, _update_payload(data), EditScope.SERIES))
    return {"success": True, "updated": result.affected}


@router.delete("/{practice_id}")
def delete_practice(
    practice_id: int,
    scope: Optional[EditScope] = None,
    controller: SeriesEditController = Depends(get_series_controller),
):
    practice = _load(controller.repository, practice_id)
    result = _unwrap(controller.apply_delete(practice, scope))
    return {"success": True, "deleted": result.affected, "message": "삭제되었습니다."}


@router.delete("/{practice_id}/series")
def delete_practice_series(practice_id: int, controller: SeriesEditController = Depends(get_series_controller)):
    practice = _load(controller.repository, practice_id)
    if not practice.parent_practice_id and not practice.is_recurring:
        raise HTTPException(status_code=400, detail="반복 연습 시리즈가 아닙니다.")
    result = _unwrap(controller.apply_delete(practice, EditScope.SERIES))
    return {"success": True, "deleted": result.affected}
