from __future__ import annotations

from datetime import datetime
from typing import Literal

from app.pms.validation import Dto


class GenerateReportDto(Dto):
    type: Literal["WEEKLY", "MONTHLY", "CUSTOM"]
    format: Literal["PDF", "EXCEL"]
    project_id: str | None = None
    # Required when type is CUSTOM; checked by ReportService.calculate_date_range.
    start_date: datetime | None = None
    end_date: datetime | None = None
