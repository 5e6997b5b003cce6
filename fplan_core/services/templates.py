from __future__ import annotations

import datetime as dt
import uuid
from typing import List, Optional, Union

from fplan_core.domain.errors import InvalidEventError
from fplan_core.domain.models import FREQUENCY_STEP, OneTimeEvent, RecurringEvent

TAX_EMOJI = "🏛️"


def _event_id(prefix: str) -> str:
    return f"{prefix}-{uuid.uuid4().hex[:12]}"


def _check_rate(tax_rate: float) -> None:
    if not 0.0 <= tax_rate < 1.0:
        raise InvalidEventError(f"Tax rate must be within [0, 1), got {tax_rate}")


def create_salary_income(
    *,
    description: str,
    gross_monthly_salary: float,
    start_date: dt.date,
    end_date: Optional[dt.date] = None,
    tax_rate: float = 0.0,
    frequency: str = "monthly",
    emoji: Optional[str] = None,
    auto_create_tax_events: bool = False,
    tax_payment_frequency: str = "monthly",
) -> List[RecurringEvent]:
    """
    Net salary as a recurring income, plus an optional linked tax payment.

    The tax event covers the gross monthly tax times the months between
    payments, so a quarterly payer pays three months of tax at once.
    """
    _check_rate(tax_rate)
    if tax_payment_frequency not in FREQUENCY_STEP:
        raise InvalidEventError(f"Unknown tax payment frequency {tax_payment_frequency!r}")
    salary_id = _event_id("salary")
    tax_id = _event_id("tax") if auto_create_tax_events and tax_rate > 0 else None
    net = gross_monthly_salary * (1 - tax_rate)

    events = [
        RecurringEvent(
            id=salary_id,
            description=description,
            amount=net,
            frequency=frequency,
            start_date=start_date,
            end_date=end_date,
            emoji=emoji or "💼",
            tags=("income", "salary"),
            metadata={"grossAmount": gross_monthly_salary, "taxRate": tax_rate, "netAmount": net, "type": "salary"},
            linked_event_ids=(tax_id,) if tax_id else (),
        )
    ]
    if tax_id:
        tax = gross_monthly_salary * tax_rate * FREQUENCY_STEP[tax_payment_frequency]
        events.append(
            RecurringEvent(
                id=tax_id,
                description=f"Tax payment for {description}",
                amount=-tax,
                frequency=tax_payment_frequency,
                start_date=start_date,
                end_date=end_date,
                emoji=TAX_EMOJI,
                tags=("expense", "tax"),
                metadata={"taxRate": tax_rate, "linkedSalaryId": salary_id, "type": "income-tax"},
                linked_event_ids=(salary_id,),
            )
        )
    return events


def create_freelance_income(
    *,
    description: str,
    start_date: dt.date,
    monthly_rate: Optional[float] = None,
    project_amount: Optional[float] = None,
    is_one_time: bool = False,
    tax_rate: float = 0.0,
    end_date: Optional[dt.date] = None,
    frequency: str = "monthly",
    emoji: Optional[str] = None,
    auto_create_tax_events: bool = False,
) -> List[Union[RecurringEvent, OneTimeEvent]]:
    """
    Freelance work, either a one-time project paid on ``start_date`` or an
    ongoing monthly rate. Ongoing work settles its self-employment tax
    quarterly; a project settles it in the same month.
    """
    _check_rate(tax_rate)
    freelance_id = _event_id("freelance")
    tax_id = _event_id("tax") if auto_create_tax_events and tax_rate > 0 else None
    events: List[Union[RecurringEvent, OneTimeEvent]] = []

    if is_one_time and project_amount:
        net = project_amount * (1 - tax_rate)
        events.append(
            OneTimeEvent(
                id=freelance_id,
                description=description,
                date=start_date,
                amount=net,
                emoji=emoji or "🎨",
                tags=("income", "freelance", "project"),
                metadata={"grossAmount": project_amount, "taxRate": tax_rate, "netAmount": net, "type": "freelance-project"},
                linked_event_ids=(tax_id,) if tax_id else (),
            )
        )
        if tax_id:
            events.append(
                OneTimeEvent(
                    id=tax_id,
                    description=f"Tax payment for {description}",
                    date=start_date,
                    amount=-(project_amount * tax_rate),
                    emoji=TAX_EMOJI,
                    tags=("expense", "tax"),
                    metadata={"taxRate": tax_rate, "linkedFreelanceId": freelance_id, "type": "self-employment-tax"},
                    linked_event_ids=(freelance_id,),
                )
            )
    elif monthly_rate:
        net = monthly_rate * (1 - tax_rate)
        events.append(
            RecurringEvent(
                id=freelance_id,
                description=description,
                amount=net,
                frequency=frequency,
                start_date=start_date,
                end_date=end_date,
                emoji=emoji or "🎨",
                tags=("income", "freelance"),
                metadata={"grossAmount": monthly_rate, "taxRate": tax_rate, "netAmount": net, "type": "freelance-recurring"},
                linked_event_ids=(tax_id,) if tax_id else (),
            )
        )
        if tax_id:
            events.append(
                RecurringEvent(
                    id=tax_id,
                    description=f"Quarterly tax for {description}",
                    amount=-(monthly_rate * tax_rate * 3),
                    frequency="quarterly",
                    start_date=start_date,
                    end_date=end_date,
                    emoji=TAX_EMOJI,
                    tags=("expense", "tax", "estimated"),
                    metadata={"taxRate": tax_rate, "linkedFreelanceId": freelance_id, "type": "self-employment-tax"},
                    linked_event_ids=(freelance_id,),
                )
            )
    return events


def create_tax_event(
    *,
    description: str,
    amount: float,
    start_date: dt.date,
    is_one_time: bool = False,
    frequency: str = "yearly",
    end_date: Optional[dt.date] = None,
    linked_income_event_id: Optional[str] = None,
    emoji: Optional[str] = None,
) -> Union[RecurringEvent, OneTimeEvent]:
    """A standalone tax payment; the amount is always booked as an outflow."""
    common = dict(
        id=_event_id("tax"),
        description=description,
        amount=-abs(amount),
        emoji=emoji or TAX_EMOJI,
        tags=("expense", "tax"),
        metadata={"type": "custom-tax"},
        linked_event_ids=(linked_income_event_id,) if linked_income_event_id else (),
    )
    if is_one_time:
        return OneTimeEvent(date=start_date, **common)
    return RecurringEvent(frequency=frequency, start_date=start_date, end_date=end_date, **common)
