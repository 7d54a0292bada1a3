"""반복 연습 수정/삭제 범위(이 회차만 / 시리즈 전체)를 결정하고 저장소로 위임하는 서비스입니다."""

from __future__ import annotations

import enum
import logging
from dataclasses import dataclass
from typing import Any, Mapping, Optional

from practice_app.models.practice import Practice
from practice_app.schemas.practice import OperationResult, PracticeOut
from practice_app.services.recurrence_service import RecurrenceRuleError
from practice_app.services.series_service import (
    PartialSeriesFailure,
    PersistenceError,
    PracticeNotFound,
    SeriesRepository,
)

logger = logging.getLogger(__name__)


class EditScope(str, enum.Enum):
    SINGLE = "single"
    SERIES = "series"


@dataclass(frozen=True)
class EditPlan:
    requires_choice: bool


def is_series_member(instance: Practice) -> bool:
    return instance.parent_practice_id is not None or instance.is_recurring is True


def series_parent_id(instance: Practice) -> int:
    # 자식 회차는 부모 id, 부모는 자기 id
    if instance.parent_practice_id is not None:
        return instance.parent_practice_id
    return instance.practice_id


@dataclass
class EditSession:
    """한 번의 수정 시도 동안만 유지되는 화면 상태. 저장하지 않는다."""

    subject_id: Optional[int] = None
    choice_shown: bool = False

    def needs_prompt(self, instance: Practice) -> bool:
        if instance.practice_id != self.subject_id:
            self.subject_id = instance.practice_id
            self.choice_shown = False
        if not is_series_member(instance) or self.choice_shown:
            return False
        self.choice_shown = True
        return True

    def reset(self):
        self.subject_id = None
        self.choice_shown = False


def _failure(exc: Exception) -> OperationResult:
    if isinstance(exc, RecurrenceRuleError):
        error_type = "validation"
    elif isinstance(exc, PracticeNotFound):
        error_type = "not_found"
    elif isinstance(exc, PartialSeriesFailure):
        error_type = "partial_series"
    else:
        error_type = "persistence"
    return OperationResult(success=False, error=str(exc), error_type=error_type)


def _dump(practice: Practice) -> dict:
    return PracticeOut.model_validate(practice).model_dump(mode="json")


class SeriesEditController:
    """화면 계층이 사용하는 진입점. 모든 공개 메서드는 OperationResult를 반환하고 도메인 예외를 밖으로 던지지 않는다."""

    _DOMAIN_ERRORS = (RecurrenceRuleError, PersistenceError)

    def __init__(self, repository: SeriesRepository):
        self.repository = repository

    def plan_edit(self, instance: Practice) -> EditPlan:
        return EditPlan(requires_choice=is_series_member(instance))

    def create_recurring_practice(self, template: Mapping[str, Any], rule) -> OperationResult:
        try:
            parent, instances = self.repository.create_series(template, rule)
        except self._DOMAIN_ERRORS as exc:
            return _failure(exc)
        return OperationResult(success=True, data=_dump(parent), instance_count=len(instances))

    def update_single_instance(self, practice_id: int, updates: Mapping[str, Any]) -> OperationResult:
        try:
            practice = self.repository.update_single_instance(practice_id, updates)
        except self._DOMAIN_ERRORS as exc:
            return _failure(exc)
        return OperationResult(success=True, data=_dump(practice))

    def update_entire_series(self, parent_id: int, updates: Mapping[str, Any]) -> OperationResult:
        try:
            updated = self.repository.update_entire_series(parent_id, updates)
        except self._DOMAIN_ERRORS as exc:
            return _failure(exc)
        return OperationResult(success=True, affected=updated)

    def delete_single_instance(self, practice_id: int) -> OperationResult:
        try:
            removed = self.repository.delete_single_instance(practice_id)
        except self._DOMAIN_ERRORS as exc:
            return _failure(exc)
        return OperationResult(success=True, affected=removed)

    def delete_entire_series(self, parent_id: int) -> OperationResult:
        try:
            removed = self.repository.delete_entire_series(parent_id)
        except self._DOMAIN_ERRORS as exc:
            return _failure(exc)
        return OperationResult(success=True, affected=removed)

    def _choice_required(self) -> OperationResult:
        return OperationResult(
            success=False,
            error="반복 연습입니다. '이 회차만' 또는 '시리즈 전체' 중 하나를 선택해 주세요.",
            error_type="choice_required",
        )

    def _resolve_scope(self, scope) -> Optional[EditScope]:
        try:
            return EditScope(scope)
        except ValueError:
            return None

    def _invalid_scope(self, scope) -> OperationResult:
        return OperationResult(
            success=False,
            error=f"알 수 없는 수정 범위입니다: {scope}",
            error_type="validation",
        )

    def apply_edit(
        self,
        instance: Practice,
        updates: Mapping[str, Any],
        scope: Optional[EditScope] = None,
    ) -> OperationResult:
        if not is_series_member(instance):
            try:
                practice = self.repository.update_practice(instance.practice_id, updates)
            except self._DOMAIN_ERRORS as exc:
                return _failure(exc)
            return OperationResult(success=True, data=_dump(practice))

        if scope is None:
            return self._choice_required()
        resolved = self._resolve_scope(scope)
        if resolved is None:
            return self._invalid_scope(scope)
        if resolved is EditScope.SINGLE:
            return self.update_single_instance(instance.practice_id, updates)
        logger.debug("series edit of %s resolved to parent %s", instance.practice_id, series_parent_id(instance))
        return self.update_entire_series(series_parent_id(instance), updates)

    def apply_delete(self, instance: Practice, scope: Optional[EditScope] = None) -> OperationResult:
        if not is_series_member(instance):
            return self.delete_single_instance(instance.practice_id)
        if scope is None:
            return self._choice_required()
        resolved = self._resolve_scope(scope)
        if resolved is None:
            return self._invalid_scope(scope)
        if resolved is EditScope.SINGLE:
            return self.delete_single_instance(instance.practice_id)
        return self.delete_entire_series(series_parent_id(instance))
