# core/plans.py
import calendar
from dataclasses import dataclass
from datetime import date, timedelta
from enum import Enum
from typing import Dict, List

from core.errors import ValidationError

PAISE_PER_RUPEE = 100


class PlanType(str, Enum):
    FULL_MONTH = "full_month"
    HALF_MONTH = "half_month"
    DOUBLE_TIME = "double_time"
    SINGLE_TIME = "single_time"


@dataclass(frozen=True)
class Plan:
    id: PlanType
    price: int  # rupees
    duration_days: int = 0
    duration_months: int = 0

    @property
    def label(self) -> str:
        return self.id.value.replace("_", " ").title()

    def expiry_for(self, join_date: date) -> date:
        if self.duration_months:
            return add_months(join_date, self.duration_months)
        return join_date + timedelta(days=self.duration_days)


PLAN_CATALOG: Dict[PlanType, Plan] = {
    PlanType.FULL_MONTH: Plan(PlanType.FULL_MONTH, price=2600, duration_months=1),
    PlanType.HALF_MONTH: Plan(PlanType.HALF_MONTH, price=1300, duration_days=15),
    PlanType.DOUBLE_TIME: Plan(PlanType.DOUBLE_TIME, price=2600, duration_months=1),
    PlanType.SINGLE_TIME: Plan(PlanType.SINGLE_TIME, price=1500, duration_months=1),
}


def add_months(start: date, months: int) -> date:
    """Add calendar months, clamping to the last day of the target month."""
    month_index = start.month - 1 + months
    year = start.year + month_index // 12
    month = month_index % 12 + 1
    day = min(start.day, calendar.monthrange(year, month)[1])
    return date(year, month, day)


def get_plan(plan_id: str) -> Plan:
    try:
        return PLAN_CATALOG[PlanType(plan_id)]
    except ValueError:
        raise ValidationError(f"Unknown plan '{plan_id}'")


def plan_price(plan_id: str) -> int:
    return get_plan(plan_id).price


def list_plans() -> List[Plan]:
    return list(PLAN_CATALOG.values())


def to_minor_units(amount: int) -> int:
    """Rupees -> paise, as the gateway expects."""
    return int(amount) * PAISE_PER_RUPEE
