"""
Date values exposed to email templates.

Provides the ``date``/``date.formatted``/``date.short`` variables used by
contact and single-send variable sets, and the wider ``dates.*`` family
(month names, quarters, seasons, ...) for subject lines and bodies.
"""
import calendar
from datetime import datetime
from typing import Optional

from sendemail.models import TemplateVariables


_SEASONS = {
    12: "Winter", 1: "Winter", 2: "Winter",
    3: "Spring", 4: "Spring", 5: "Spring",
    6: "Summer", 7: "Summer", 8: "Summer",
    9: "Fall", 10: "Fall", 11: "Fall",
}


def _quarter(month: int) -> int:
    return (month - 1) // 3 + 1


def build_date_vars(now: Optional[datetime] = None) -> TemplateVariables:
    """
    Build the basic date variables.

    Args:
        now: Reference time. Defaults to datetime.now().

    Returns:
        ``date`` (ISO, e.g. 2026-02-26), ``date.formatted`` (February 26, 2026)
        and ``date.short`` (2/26/2026).
    """
    now = now or datetime.now()
    return {
        "date": now.strftime("%Y-%m-%d"),
        "date.formatted": f"{now.strftime('%B')} {now.day}, {now.year}",
        "date.short": f"{now.month}/{now.day}/{now.year}",
    }


def build_dates_vars(now: Optional[datetime] = None) -> TemplateVariables:
    """
    Build all ``dates.*`` template variables.

    Call this once per message build to get fresh values.

    Example:
        >>> build_dates_vars(datetime(2026, 2, 26))["dates.lastMonth"]
        'January'
    """
    now = now or datetime.now()
    last_month = 12 if now.month == 1 else now.month - 1
    quarter = _quarter(now.month)

    return {
        "dates.date": now.strftime("%m-%d-%y"),
        "dates.twoDigitYear": now.strftime("%y"),
        "dates.month": calendar.month_name[now.month],
        "dates.monthShort": calendar.month_abbr[now.month],
        "dates.lastMonth": calendar.month_name[last_month],
        "dates.lastMonthShort": calendar.month_abbr[last_month],
        "dates.quarter": quarter,
        "dates.lastQuarter": 4 if quarter == 1 else quarter - 1,
        "dates.year": str(now.year),
        "dates.lastYear": str(now.year - 1),
        "dates.nextYear": str(now.year + 1),
        "dates.day": now.strftime("%d"),
        "dates.monthNumber": now.strftime("%m"),
        "dates.fullDate": now.strftime("%m-%d-%Y"),
        "dates.slashDate": now.strftime("%m/%d/%y"),
        "dates.terminalDate": now.strftime("%m/%d/%Y"),
        "dates.isoDate": now.strftime("%Y-%m-%d"),
        "dates.season": _SEASONS[now.month],
        "dates.isLeapYear": 1 if calendar.isleap(now.year) else 0,
    }
