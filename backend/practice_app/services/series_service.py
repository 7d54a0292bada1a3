"""Practice Series 도메인 서비스 레이어입니다. 반복 연습 시리즈의 생성/수정/삭제와 데이터 접근 흐름을 캡슐화합니다."""

from __future__ import annotations

import logging
from contextlib import contextmanager
from datetime import date
from typing import Any, Callable, Dict, List, Mapping, Optional, Tuple

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from practice_app.config import settings
from practice_app.models.practice import Practice
from practice_app.services.recurrence_service import generate_instances, validate_rule

logger = logging.getLogger(__name__)

# 시리즈 일괄 수정에서 절대 전파하지 않는 필드 (각 회차는 자기 날짜를 유지)
SERIES_PROTECTED_FIELDS = frozenset({
    "date",
    "original_date",
    "practice_id",
    "parent_practice_id",
    "is_recurring",
    "is_exception",
    "recurrence_pattern",
    "recurrence_days",
    "recurrence_end_date",
    "recurrence_count",
})

# 단일 수정에서 호출자가 바꿀 수 없는 구조 필드
STRUCTURAL_FIELDS = frozenset({
    "practice_id",
    "parent_practice_id",
    "is_recurring",
    "is_exception",
    "original_date",
})


class PersistenceError(Exception):
    """저장소 경계에서 발생한 실패(네트워크, 제약 조건, 미존재 등)."""


class PracticeNotFound(PersistenceError):
    def __init__(self, practice_id: int):
        super().__init__(f"연습을 찾을 수 없습니다. (id={practice_id})")
        self.practice_id = practice_id


class PartialSeriesFailure(PersistenceError):
    """부모 작업은 반영됐지만 회차 작업이 실패해 시리즈가 불일치할 수 있는 경우."""

    def __init__(self, message: str, parent_id: int):
        super().__init__(message)
        self.parent_id = parent_id


def _clean_updates(updates: Mapping[str, Any], blocked: frozenset) -> Dict[str, Any]:
    return {k: v for k, v in dict(updates).items() if k not in blocked}


class SeriesRepository:
    """반복 연습 시리즈 저장소. DB 세션과 기준 날짜(today) 공급자를 주입받는다."""

    def __init__(self, db: Session, today: Callable[[], date] = date.today):
        self.db = db
        self.today = today

    @contextmanager
    def _guard(self, action: str, parent_id: Optional[int] = None):
        """DB 오류를 도메인 오류로 바꾼다. parent_id가 있으면 부모 저장 이후 단계의 실패다."""
        try:
            yield
        except SQLAlchemyError as exc:
            self.db.rollback()
            logger.exception("practice %s failed", action)
            if parent_id is not None:
                raise PartialSeriesFailure(
                    f"{action} 단계에서 실패했습니다. 시리즈(id={parent_id})를 확인해 주세요: {exc}",
                    parent_id,
                ) from exc
            raise PersistenceError(f"{action} 처리에 실패했습니다: {exc}") from exc

    # ------------------------------------------------------------------ reads

    def get_practice(self, practice_id: int) -> Practice:
        with self._guard("lookup"):
            practice = self.db.query(Practice).filter(Practice.practice_id == practice_id).first()
        if not practice:
            raise PracticeNotFound(practice_id)
        return practice

    def list_practices(self, date_from: Optional[date] = None, date_to: Optional[date] = None) -> List[Practice]:
        with self._guard("list"):
            q = self.db.query(Practice)
            if date_from:
                q = q.filter(Practice.date >= date_from)
            if date_to:
                q = q.filter(Practice.date <= date_to)
            return q.order_by(Practice.date.asc(), Practice.start_time.asc()).all()

    def get_parent_practice(self, practice_id: int) -> Optional[Practice]:
        instance = self.get_practice(practice_id)
        if instance.parent_practice_id is None:
            return None
        with self._guard("parent lookup"):
            return self.db.query(Practice).filter(Practice.practice_id == instance.parent_practice_id).first()

    def get_series_instances(self, parent_id: int) -> List[Practice]:
        with self._guard("series lookup"):
            return (
                self.db.query(Practice)
                .filter(Practice.parent_practice_id == parent_id)
                .order_by(Practice.date.asc())
                .all()
            )

    def _count_children(self, parent_id: int) -> int:
        with self._guard("instance count"):
            return self.db.query(Practice).filter(Practice.parent_practice_id == parent_id).count()

    # ----------------------------------------------------------------- writes

    def _save(self, action: str, practice: Optional[Practice] = None):
        with self._guard(action):
            self.db.commit()
            if practice is not None:
                self.db.refresh(practice)

    def create_practice(self, template: Mapping[str, Any]) -> Practice:
        payload = _clean_updates(template, STRUCTURAL_FIELDS)
        practice = Practice(**payload, is_recurring=False, is_exception=False)
        self.db.add(practice)
        self._save("create", practice)
        return practice

    def create_series(self, template: Mapping[str, Any], rule) -> Tuple[Practice, List[Practice]]:
        """부모(첫 회차)를 먼저 저장한 뒤 전개된 회차를 한 번의 배치로 저장한다."""
        validate_rule(rule, max_count=settings.RECURRENCE_MAX_COUNT)

        # 규칙 스냅샷은 rule에서만 채운다.
        payload = _clean_updates(template, SERIES_PROTECTED_FIELDS - {"date"})
        parent = Practice(
            **payload,
            is_recurring=True,
            is_exception=False,
            original_date=payload.get("date"),
            recurrence_pattern=rule.pattern,
            recurrence_days=list(rule.days) if rule.days else None,
            recurrence_end_date=rule.end_date,
            recurrence_count=rule.count,
        )
        self.db.add(parent)
        with self._guard("series parent create"):
            self.db.flush()
            parent_id = parent.practice_id
            self.db.commit()
        with self._guard("series parent refresh", parent_id=parent_id):
            self.db.refresh(parent)

        rows = generate_instances(
            parent,
            rule,
            parent_id=parent_id,
            max_instances=settings.RECURRENCE_MAX_INSTANCES,
            horizon_days=settings.RECURRENCE_HORIZON_DAYS,
        )
        instances = [Practice(**row) for row in rows]
        if instances:
            with self._guard("instance batch insert", parent_id=parent_id):
                self.db.add_all(instances)
                self.db.commit()
                for instance in instances:
                    self.db.refresh(instance)

        logger.info("created practice series %s with %d instances", parent_id, len(instances))
        return parent, instances

    def update_practice(self, practice_id: int, updates: Mapping[str, Any]) -> Practice:
        practice = self.get_practice(practice_id)
        for k, v in _clean_updates(updates, STRUCTURAL_FIELDS).items():
            setattr(practice, k, v)
        self._save("update", practice)
        return practice

    def update_single_instance(self, practice_id: int, updates: Mapping[str, Any]) -> Practice:
        """해당 회차만 수정하고, 실제 변경 여부와 무관하게 예외 회차로 표시한다."""
        practice = self.get_practice(practice_id)
        for k, v in _clean_updates(updates, STRUCTURAL_FIELDS).items():
            setattr(practice, k, v)
        practice.is_exception = True
        self._save("instance update", practice)
        return practice

    def update_entire_series(self, parent_id: int, updates: Mapping[str, Any]) -> int:
        """부모와 오늘 이후의 예외가 아닌 회차를 수정한다. 수정된 자식 회차 수를 반환한다."""
        parent = self.get_practice(parent_id)
        payload = _clean_updates(updates, SERIES_PROTECTED_FIELDS)
        if not payload:
            return 0

        for k, v in payload.items():
            setattr(parent, k, v)
        self._save("series parent update")

        with self._guard("bulk instance update", parent_id=parent_id):
            updated = (
                self.db.query(Practice)
                .filter(
                    Practice.parent_practice_id == parent_id,
                    Practice.is_exception == False,
                    Practice.date >= self.today(),
                )
                .update(payload, synchronize_session=False)
            )
            self.db.commit()

        logger.info("updated practice series %s: parent + %d instances", parent_id, updated)
        return updated

    def delete_single_instance(self, practice_id: int) -> int:
        """한 회차만 삭제한다. 부모를 지정하면 소유한 회차도 cascade로 함께 삭제된다."""
        practice = self.get_practice(practice_id)
        removed = 1 + self._count_children(practice_id)
        with self._guard("instance delete"):
            self.db.delete(practice)
            self.db.commit()
        return removed

    def delete_entire_series(self, parent_id: int) -> int:
        """부모를 삭제하면 FK cascade로 모든 회차가 함께 삭제된다. 삭제된 행 수를 반환한다."""
        parent = self.get_practice(parent_id)
        removed = 1 + self._count_children(parent_id)
        with self._guard("series delete"):
            self.db.delete(parent)
            self.db.commit()
        logger.info("deleted practice series %s (%d rows)", parent_id, removed)
        return removed
