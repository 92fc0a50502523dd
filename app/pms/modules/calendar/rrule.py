"""
RRULE helpers for calendar events (RFC 5545 strings, parsed with dateutil).

All datetimes are naive UTC, like the event columns. Aware inputs are
converted first; UNTIL values carrying a "Z" are read as naive UTC.
"""
from __future__ import annotations

from datetime import datetime

from dateutil.rrule import rrule, rrulestr

from app.pms.utils import to_naive_utc

FREQUENCIES = ("daily", "weekly", "monthly", "yearly")
# 0 = Monday ... 6 = Sunday
WEEKDAY_CODES = ("MO", "TU", "WE", "TH", "FR", "SA", "SU")
WEEKDAY_NAMES = {
    "MO": "Monday",
    "TU": "Tuesday",
    "WE": "Wednesday",
    "TH": "Thursday",
    "FR": "Friday",
    "SA": "Saturday",
    "SU": "Sunday",
}
_UNITS = {"DAILY": "day", "WEEKLY": "week", "MONTHLY": "month", "YEARLY": "year"}

CUSTOM_LABEL = "Lặp lại tùy chỉnh"


def _parse(rule: str, start: datetime | None = None):
    parsed = rrulestr(rule, dtstart=start, ignoretz=True)
    if start is not None and isinstance(parsed, rrule):
        # A DTSTART inside the string never wins over the event's own start.
        parsed = parsed.replace(dtstart=start)
    return parsed


def _fields(rule: str) -> dict[str, str]:
    body = rule.strip()
    for line in body.splitlines():
        if line.upper().startswith("RRULE:"):
            body = line[len("RRULE:"):]
            break
    fields = {}
    for part in body.split(";"):
        key, _, value = part.partition("=")
        if key:
            fields[key.strip().upper()] = value.strip()
    return fields


class RRuleService:
    def generate_rrule(
        self,
        frequency: str,
        *,
        interval: int | None = None,
        until: datetime | None = None,
        count: int | None = None,
        byweekday: list[int] | None = None,
    ) -> str:
        if frequency not in FREQUENCIES:
            raise ValueError(f"Unknown frequency: {frequency}")
        parts = [f"FREQ={frequency.upper()}", f"INTERVAL={interval or 1}"]
        days = [WEEKDAY_CODES[d] for d in (byweekday or []) if 0 <= d < len(WEEKDAY_CODES)]
        if days:
            parts.append("BYDAY=" + ",".join(days))
        if count:
            parts.append(f"COUNT={count}")
        if until is not None:
            parts.append("UNTIL=" + to_naive_utc(until).strftime("%Y%m%dT%H%M%SZ"))
        return "RRULE:" + ";".join(parts)

    def expand_recurrence(
        self,
        rule: str,
        start: datetime,
        range_start: datetime,
        range_end: datetime,
    ) -> list[datetime]:
        """Occurrences in [range_start, range_end]. An unparsable rule yields the start alone, if in range."""
        start = to_naive_utc(start)
        range_start = to_naive_utc(range_start)
        range_end = to_naive_utc(range_end)
        try:
            parsed = _parse(rule, start)
        except (ValueError, TypeError):
            return [start] if range_start <= start <= range_end else []
        return list(parsed.between(range_start, range_end, inc=True))

    def is_valid_rrule(self, rule: str) -> bool:
        try:
            _parse(rule)
        except (ValueError, TypeError):
            return False
        return True

    def get_next_occurrence(self, rule: str, start: datetime, after: datetime) -> datetime | None:
        try:
            parsed = _parse(rule, to_naive_utc(start))
        except (ValueError, TypeError):
            return None
        return parsed.after(to_naive_utc(after), inc=True)

    def describe_recurrence(self, rule: str) -> str:
        if not self.is_valid_rrule(rule):
            return CUSTOM_LABEL
        fields = _fields(rule)
        unit = _UNITS.get(fields.get("FREQ", ""))
        if unit is None:
            return CUSTOM_LABEL
        interval = int(fields.get("INTERVAL") or 1)
        text = f"every {unit}" if interval == 1 else f"every {interval} {unit}s"
        days = [WEEKDAY_NAMES[d] for d in fields.get("BYDAY", "").split(",") if d in WEEKDAY_NAMES]
        if days:
            text += " on " + ", ".join(days)
        if fields.get("COUNT"):
            count = int(fields["COUNT"])
            text += f" for {count} time" + ("" if count == 1 else "s")
        elif fields.get("UNTIL"):
            until = datetime.strptime(fields["UNTIL"][:8], "%Y%m%d")
            text += " until " + until.strftime("%B %d, %Y").replace(" 0", " ")
        return text

    def get_common_patterns(self) -> list[dict[str, str]]:
        return [
            {"label": "Hàng ngày", "value": self.generate_rrule("daily")},
            {"label": "Hàng tuần", "value": self.generate_rrule("weekly")},
            {"label": "Các ngày trong tuần", "value": self.generate_rrule("weekly", byweekday=[0, 1, 2, 3, 4])},
            {"label": "Hàng tháng", "value": self.generate_rrule("monthly")},
            {"label": "Hàng năm", "value": self.generate_rrule("yearly")},
        ]
