from datetime import datetime, timedelta, timezone

from app.pms.modules.calendar.rrule import CUSTOM_LABEL, RRuleService

rr = RRuleService()


def test_generate_rrule_defaults_interval():
    assert rr.generate_rrule("daily") == "RRULE:FREQ=DAILY;INTERVAL=1"


def test_generate_rrule_with_days_count_and_until():
    rule = rr.generate_rrule("weekly", interval=2, byweekday=[0, 2, 4], count=6)
    assert rule == "RRULE:FREQ=WEEKLY;INTERVAL=2;BYDAY=MO,WE,FR;COUNT=6"
    until = datetime(2026, 3, 1, 9, 0, tzinfo=timezone(timedelta(hours=7)))
    assert rr.generate_rrule("monthly", until=until).endswith("UNTIL=20260301T020000Z")


def test_expand_recurrence_within_range():
    start = datetime(2026, 1, 5, 9, 0)
    occurrences = rr.expand_recurrence(
        "RRULE:FREQ=DAILY;INTERVAL=1", start, datetime(2026, 1, 6), datetime(2026, 1, 8, 23, 59)
    )
    assert occurrences == [datetime(2026, 1, d, 9, 0) for d in (6, 7, 8)]


def test_expand_recurrence_honours_count():
    start = datetime(2026, 1, 5, 9, 0)
    occurrences = rr.expand_recurrence("RRULE:FREQ=WEEKLY;COUNT=2", start, start, start + timedelta(days=60))
    assert occurrences == [start, start + timedelta(days=7)]


def test_expand_invalid_rule_falls_back_to_start():
    start = datetime(2026, 1, 5, 9, 0)
    assert rr.expand_recurrence("nonsense", start, datetime(2026, 1, 1), datetime(2026, 1, 31)) == [start]
    assert rr.expand_recurrence("nonsense", start, datetime(2026, 2, 1), datetime(2026, 2, 28)) == []


def test_is_valid_rrule():
    assert rr.is_valid_rrule("RRULE:FREQ=MONTHLY;INTERVAL=1")
    assert not rr.is_valid_rrule("FREQ=SOMETIMES")


def test_next_occurrence():
    start = datetime(2026, 1, 5, 9, 0)
    nxt = rr.get_next_occurrence("RRULE:FREQ=WEEKLY;INTERVAL=1", start, datetime(2026, 1, 6))
    assert nxt == datetime(2026, 1, 12, 9, 0)
    assert rr.get_next_occurrence("garbage", start, start) is None


def test_describe_recurrence():
    assert rr.describe_recurrence("RRULE:FREQ=DAILY;INTERVAL=1") == "every day"
    assert rr.describe_recurrence("RRULE:FREQ=WEEKLY;INTERVAL=2;BYDAY=MO,FR") == "every 2 weeks on Monday, Friday"
    assert rr.describe_recurrence("RRULE:FREQ=MONTHLY;INTERVAL=1;COUNT=3") == "every month for 3 times"
    assert rr.describe_recurrence("RRULE:FREQ=YEARLY;INTERVAL=1;UNTIL=20270105T000000Z") == "every year until January 5, 2027"
    assert rr.describe_recurrence("not a rule") == CUSTOM_LABEL


def test_common_patterns_are_valid():
    patterns = rr.get_common_patterns()
    assert len(patterns) == 5
    assert all(rr.is_valid_rrule(p["value"]) for p in patterns)
