"""반복 규칙 전개(주기별 날짜 계산, 종료 조건, 안전 상한) 회귀 테스트."""

from datetime import date, timedelta

import pytest

from practice_app.services.recurrence_service import (
    RecurrenceRule,
    RecurrenceRuleError,
    describe_recurrence,
    expand_dates,
    generate_instances,
    validate_rule,
    weekday_index,
)
from tests.conftest import make_template

MONDAY = date(2024, 6, 3)


def _days(*values):
    return [date.fromisoformat(v) for v in values]


def test_weekday_index_is_sunday_based():
    assert weekday_index(date(2024, 6, 2)) == 0  # Sunday
    assert weekday_index(MONDAY) == 1
    assert weekday_index(date(2024, 6, 8)) == 6  # Saturday


def test_weekly_selected_days_with_count():
    rule = RecurrenceRule("weekly", days=[1, 3, 5], count=5)
    assert expand_dates(MONDAY, rule) == _days(
        "2024-06-05", "2024-06-07", "2024-06-10", "2024-06-12", "2024-06-14"
    )


def test_weekly_dates_only_fall_on_selected_weekdays():
    rule = RecurrenceRule("weekly", days=[0, 2, 4], count=30)
    dates = expand_dates(MONDAY, rule)
    assert len(dates) == 30
    assert all(weekday_index(d) in (0, 2, 4) for d in dates)


def test_biweekly_every_other_monday_until_end_date():
    rule = RecurrenceRule("biweekly", days=[1], end_date=date(2024, 7, 15))
    assert expand_dates(MONDAY, rule) == _days("2024-06-17", "2024-07-01", "2024-07-15")


def test_biweekly_multiple_days_keep_fourteen_day_gap_per_weekday():
    rule = RecurrenceRule("biweekly", days=[1, 3], count=6)
    dates = expand_dates(MONDAY, rule)
    assert dates == _days(
        "2024-06-05", "2024-06-17", "2024-06-19", "2024-07-01", "2024-07-03", "2024-07-15"
    )
    for weekday in (1, 3):
        bucket = [d for d in dates if weekday_index(d) == weekday]
        gaps = {(b - a).days for a, b in zip(bucket, bucket[1:])}
        assert gaps == {14}


def test_biweekly_cadence_is_anchored_to_first_occurrence_week():
    rule = RecurrenceRule("biweekly", days=[1], count=2)
    assert expand_dates(MONDAY, rule) == _days("2024-06-17", "2024-07-01")
    assert expand_dates(date(2024, 6, 10), rule) == _days("2024-06-24", "2024-07-08")


def test_biweekly_includes_later_days_of_anchor_week():
    rule = RecurrenceRule("biweekly", days=[6], count=2)
    assert expand_dates(MONDAY, rule) == _days("2024-06-08", "2024-06-22")


def test_biweekly_sunday_anchor_starts_its_own_week():
    rule = RecurrenceRule("biweekly", days=[0], count=2)
    assert expand_dates(date(2024, 6, 2), rule) == _days("2024-06-16", "2024-06-30")


def test_daily_dates_are_consecutive_and_exclude_anchor():
    dates = expand_dates(MONDAY, RecurrenceRule("daily", count=10))
    assert len(dates) == 10
    assert dates[0] == MONDAY + timedelta(days=1)
    assert all((b - a).days == 1 for a, b in zip(dates, dates[1:]))


def test_end_date_is_inclusive_and_never_exceeded():
    end = date(2024, 6, 20)
    dates = expand_dates(MONDAY, RecurrenceRule("daily", end_date=end))
    assert dates[-1] == end
    assert all(d <= end for d in dates)
    assert len(dates) == 17


def test_end_date_before_anchor_yields_nothing():
    assert expand_dates(MONDAY, RecurrenceRule("daily", end_date=date(2024, 6, 1))) == []


def test_without_end_condition_caps_at_52_instances():
    assert len(expand_dates(MONDAY, RecurrenceRule("daily"))) == 52
    weekly = expand_dates(MONDAY, RecurrenceRule("weekly", days=[1]))
    assert len(weekly) == 52
    assert weekly[-1] == MONDAY + timedelta(weeks=52)


def test_end_date_is_not_cut_off_by_instance_cap():
    dates = expand_dates(MONDAY, RecurrenceRule("daily", end_date=date(2024, 12, 31)))
    assert len(dates) == 211
    assert dates[0] == date(2024, 6, 4)
    assert dates[-1] == date(2024, 12, 31)

    monthly = expand_dates(date(2024, 1, 15), RecurrenceRule("monthly", end_date=date(2029, 1, 15)), max_instances=3)
    assert len(monthly) == 23
    assert monthly[-1] == date(2025, 12, 15)


def test_two_year_horizon_bounds_expansion():
    dates = expand_dates(MONDAY, RecurrenceRule("daily"), max_instances=5000)
    assert len(dates) == 730
    assert dates[-1] == MONDAY + timedelta(days=730)


def test_monthly_skips_months_without_anchor_day():
    rule = RecurrenceRule("monthly", count=3)
    assert expand_dates(date(2024, 1, 31), rule) == _days("2024-03-31", "2024-05-31", "2024-07-31")


def test_monthly_leap_day_depends_on_year():
    rule = RecurrenceRule("monthly", count=2)
    assert expand_dates(date(2024, 1, 29), rule) == _days("2024-02-29", "2024-03-29")
    assert expand_dates(date(2023, 1, 29), rule) == _days("2023-03-29", "2023-04-29")


def test_monthly_keeps_anchor_day_across_year_boundary():
    rule = RecurrenceRule("monthly", end_date=date(2025, 2, 15))
    dates = expand_dates(date(2024, 10, 15), rule)
    assert dates == _days("2024-11-15", "2024-12-15", "2025-01-15", "2025-02-15")
    assert all(d.day == 15 for d in dates)


def test_expansion_is_idempotent_and_strictly_increasing():
    rule = RecurrenceRule("biweekly", days=[2, 4, 6], count=20)
    first = expand_dates(MONDAY, rule)
    assert first == expand_dates(MONDAY, rule)
    assert all(a < b for a, b in zip(first, first[1:]))


def test_generate_instances_copies_template_fields():
    template = make_template()
    rows = generate_instances(template, RecurrenceRule("weekly", days=[1], count=2))

    assert [row["date"] for row in rows] == _days("2024-06-10", "2024-06-17")
    for row in rows:
        assert row["original_date"] == row["date"]
        assert row["status"] == "scheduled"
        assert row["is_exception"] is False
        assert row["is_recurring"] is False
        assert row["parent_practice_id"] is None
        assert row["title"] == template["title"]
        assert row["food_location_name"] == "Cafe Dock"
        assert row["rsvp_visibility_hours"] == 48


def test_generate_instances_binds_parent_id_when_given():
    rows = generate_instances(make_template(), RecurrenceRule("daily", count=3), parent_id=42)
    assert {row["parent_practice_id"] for row in rows} == {42}


def test_generate_instances_requires_anchor_date():
    with pytest.raises(RecurrenceRuleError):
        generate_instances(make_template(date=None), RecurrenceRule("daily", count=1))


@pytest.mark.parametrize(
    "rule",
    [
        RecurrenceRule("weekly", days=[]),
        RecurrenceRule("biweekly", days=[], count=3),
        RecurrenceRule("weekly", days=[7], count=3),
        RecurrenceRule("weekly", days=[1], end_date=date(2024, 7, 1), count=3),
        RecurrenceRule("daily", count=0),
        RecurrenceRule("daily", count=53),
        RecurrenceRule("yearly", count=2),
    ],
)
def test_validate_rule_rejects_malformed_rules(rule):
    with pytest.raises(RecurrenceRuleError):
        validate_rule(rule)


def test_validate_rule_accepts_open_ended_and_ignores_days_for_daily():
    validate_rule(RecurrenceRule("daily"))
    validate_rule(RecurrenceRule("monthly", days=[3], count=12))
    validate_rule(RecurrenceRule("daily", days=[9], count=2))
    validate_rule(RecurrenceRule("monthly", days=[-1, 7], count=2))


def test_describe_recurrence():
    assert describe_recurrence(RecurrenceRule("weekly", days=[5, 1, 3], count=5)) == "Weekly on Mon, Wed, Fri, 5 times"
    assert describe_recurrence(RecurrenceRule("biweekly", days=[1], end_date=date(2024, 7, 15))) == (
        "Every other week on Mon until 2024-07-15"
    )
    assert describe_recurrence(RecurrenceRule("monthly", count=1)) == "Monthly, 1 time"
    assert describe_recurrence(RecurrenceRule("daily")) == "Daily"
