# workshop_billing/business_logic/schedule_advancer.py

from datetime import date, timedelta
from typing import Optional

from dateutil.relativedelta import relativedelta

from workshop_billing.constants import Frequency

# relativedelta clamps to the last day of the target month (Jan 31 + 1 month -> Feb 28/29,
# Feb 29 + 1 year -> Feb 28) instead of rolling over into the next month.
_STEPS = {
    Frequency.WEEKLY: timedelta(days=7),
    Frequency.BIWEEKLY: timedelta(days=14),
    Frequency.MONTHLY: relativedelta(months=1),
    Frequency.QUARTERLY: relativedelta(months=3),
    Frequency.YEARLY: relativedelta(years=1),
}


def next_run_date(current: date, frequency: Frequency) -> date:
    """The run date following current for the given frequency."""
    return current + _STEPS[frequency]


def is_past_end(run_date: date, end_date: Optional[date]) -> bool:
    """True when a run on run_date would fall after the agreement's end date."""
    return end_date is not None and run_date > end_date
