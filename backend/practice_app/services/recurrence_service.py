"""반복 연습 회차 전개 로직입니다. 기준 연습과 반복 규칙으로 날짜별 회차 payload를 만듭니다.

I/O가 없는 순수 함수만 둡니다. 날짜는 타임존 없는 달력 날짜(date)로만 다룹니다.
"""

from __future__ import annotations

import calendar
import logging
from dataclasses import dataclass, field
from datetime import date, timedelta
from typing import Any, Dict, List, Mapping, Optional, Sequence

logger = logging.getLogger(__name__)

PATTERNS = ("daily", "weekly", "biweekly", "monthly")
WEEKDAY_PATTERNS = ("weekly", "biweekly")
WEEKDAY_LABELS = ("Sun", "Mon", "Tue", "Wed", "Thu", "Fri", "Sat")

DEFAULT_MAX_INSTANCES = 52
DEFAULT_MAX_COUNT = 52
DEFAULT_HORIZON_DAYS = 730

# 회차 생성 시 템플릿에서 그대로 복사하는 필드
TEMPLATE_FIELDS = (
    "title",
    "description",
    "practice_type",
    "start_time",
    "end_time",
    "location_name",
    "location_address",
    "location_lat",
    "location_lng",
    "max_capacity",
    "is_visible_to_members",
    "rsvp_visibility_hours",
    "rsvp_deadline",
    "food_location_name",
    "food_location_address",
    "created_by",
)


class RecurrenceRuleError(ValueError):
    """반복 규칙 형태가 잘못되어 전개를 시작할 수 없는 경우."""


@dataclass(frozen=True)
class RecurrenceRule:
    pattern: str
    days: Sequence[int] = field(default_factory=tuple)
    end_date: Optional[date] = None
    count: Optional[int] = None


def validate_rule(rule, max_count: int = DEFAULT_MAX_COUNT) -> None:
    """규칙이 전개 가능한 형태인지 검사한다. 자동 보정하지 않고 RecurrenceRuleError를 올린다."""
    if rule.pattern not in PATTERNS:
        raise RecurrenceRuleError(f"지원하지 않는 반복 주기입니다: {rule.pattern}")
    days = list(rule.days or [])
    if rule.pattern in WEEKDAY_PATTERNS:
        if not days:
            raise RecurrenceRuleError("매주/격주 반복은 요일을 하나 이상 선택해야 합니다.")
        invalid = [d for d in days if not isinstance(d, int) or isinstance(d, bool) or d < 0 or d > 6]
        if invalid:
            raise RecurrenceRuleError(f"요일 값은 0(일)~6(토) 사이여야 합니다: {invalid}")
    if rule.end_date is not None and rule.count is not None:
        raise RecurrenceRuleError("종료 날짜와 반복 횟수는 하나만 지정할 수 있습니다.")
    if rule.count is not None and not (1 <= rule.count <= max_count):
        raise RecurrenceRuleError(f"반복 횟수는 1~{max_count} 사이여야 합니다.")


def weekday_index(value: date) -> int:
    """0=일요일 .. 6=토요일."""
    return value.isoweekday() % 7


def week_start(value: date) -> date:
    return value - timedelta(days=weekday_index(value))


def is_eligible(candidate: date, anchor: date, rule) -> bool:
    if rule.pattern == "daily":
        return True
    if rule.pattern == "weekly":
        return weekday_index(candidate) in rule.days
    if rule.pattern == "biweekly":
        if weekday_index(candidate) not in rule.days:
            return False
        # 기준 회차가 속한 주를 0주차로 보고 짝수 주차만 허용
        weeks = (week_start(candidate) - week_start(anchor)).days // 7
        return weeks % 2 == 0
    if rule.pattern == "monthly":
        return candidate.day == anchor.day
    return False


def _month_offset(anchor: date, months: int) -> tuple[int, int]:
    index = anchor.year * 12 + (anchor.month - 1) + months
    return index // 12, index % 12 + 1


def _monthly_dates(anchor: date, rule, limit: Optional[int], horizon: date) -> List[date]:
    # 해당 월에 기준 일자가 없으면(예: 31일) 그 달은 건너뛴다.
    dates: List[date] = []
    months = 1
    while limit is None or len(dates) < limit:
        year, month = _month_offset(anchor, months)
        months += 1
        month_start = date(year, month, 1)
        if month_start > horizon:
            break
        if rule.end_date is not None and month_start > rule.end_date:
            break
        if anchor.day > calendar.monthrange(year, month)[1]:
            continue
        candidate = date(year, month, anchor.day)
        if candidate > horizon:
            break
        if rule.end_date is not None and candidate > rule.end_date:
            break
        dates.append(candidate)
    return dates


def expand_dates(
    anchor: date,
    rule,
    max_instances: int = DEFAULT_MAX_INSTANCES,
    horizon_days: int = DEFAULT_HORIZON_DAYS,
) -> List[date]:
    """기준일 다음 날부터 규칙에 맞는 날짜를 오름차순으로 반환한다. 기준일 자체는 포함하지 않는다."""
    # 개수 상한은 종료 조건이 하나도 없을 때만 적용한다.
    if rule.count is not None:
        limit = rule.count
    elif rule.end_date is not None:
        limit = None
    else:
        limit = max_instances
    horizon = anchor + timedelta(days=horizon_days)
    assert horizon > anchor, "horizon_days must be positive"

    if rule.pattern == "monthly":
        return _monthly_dates(anchor, rule, limit, horizon)

    dates: List[date] = []
    cursor = anchor + timedelta(days=1)
    while limit is None or len(dates) < limit:
        if rule.end_date is not None and cursor > rule.end_date:
            break
        if cursor > horizon:
            break
        if is_eligible(cursor, anchor, rule):
            dates.append(cursor)
        cursor += timedelta(days=1)
    return dates


def _template_value(template: Any, name: str) -> Any:
    if isinstance(template, Mapping):
        return template.get(name)
    return getattr(template, name, None)


def generate_instances(
    template: Any,
    rule,
    parent_id: Optional[int] = None,
    max_instances: int = DEFAULT_MAX_INSTANCES,
    horizon_days: int = DEFAULT_HORIZON_DAYS,
) -> List[Dict[str, Any]]:
    """템플릿(dict 또는 모델)을 규칙에 따라 회차 payload 목록으로 전개한다.

    parent_id는 부모 저장 전이면 None으로 두고 호출자가 나중에 채운다.
    """
    anchor = _template_value(template, "date")
    if anchor is None:
        raise RecurrenceRuleError("기준 날짜(date)가 없는 템플릿은 전개할 수 없습니다.")

    base = {name: _template_value(template, name) for name in TEMPLATE_FIELDS}
    instances = []
    for occurrence in expand_dates(anchor, rule, max_instances=max_instances, horizon_days=horizon_days):
        payload = dict(base)
        payload.update(
            date=occurrence,
            original_date=occurrence,
            status="scheduled",
            is_recurring=False,
            is_exception=False,
            parent_practice_id=parent_id,
        )
        instances.append(payload)
    logger.debug("expanded %s rule from %s into %d instances", rule.pattern, anchor, len(instances))
    return instances


def describe_recurrence(rule) -> str:
    """화면 표시용 반복 규칙 요약 (예: "Weekly on Mon, Wed, Fri, 5 times")."""
    if rule.pattern == "daily":
        text = "Daily"
    elif rule.pattern == "monthly":
        text = "Monthly"
    else:
        labels = ", ".join(WEEKDAY_LABELS[d] for d in sorted(set(rule.days or [])))
        prefix = "Weekly" if rule.pattern == "weekly" else "Every other week"
        text = f"{prefix} on {labels}" if labels else prefix

    if rule.count is not None:
        suffix = "time" if rule.count == 1 else "times"
        return f"{text}, {rule.count} {suffix}"
    if rule.end_date is not None:
        return f"{text} until {rule.end_date.isoformat()}"
    return text
