"""Service-charge demands: payments, late-payment penalties and reminders.

Penalty policy: a demand is in breach once ``due_date + grace_period_days`` is
on or before the run date and money is still outstanding. Each breach is
charged at most once per reminder cycle; ``penalty_cycle`` records the
``reminders_sent`` count at the time of the last automatic penalty, so a
second run without an intervening reminder leaves the demand untouched.
Cumulative penalties never exceed ``max_penalty_amount`` when one is set.
"""

from __future__ import annotations

import logging
from datetime import date, timedelta
from decimal import Decimal
from typing import Dict, FrozenSet, List, Optional

from ..constants import (
    FLATS,
    INCOME,
    SERVICE_CHARGE_DEMANDS,
    DemandStatus,
    IncomeSource,
    NotificationKind,
    PenaltyType,
)
from ..core.errors import InvalidTransition, ReminderLimitReached, ValidationFailure
from ..schemas.schemas import (
    DemandCreate,
    DemandGenerate,
    Flat,
    FlatCreate,
    IncomeEntry,
    PaymentCreate,
    PaymentRecord,
    PenaltyConfig,
    ReminderConfig,
    ServiceChargeDemand,
)
from .context import WorkflowContext

logger = logging.getLogger(__name__)

CENT = Decimal("0.01")
ZERO = Decimal("0")

DEMAND_TRANSITIONS: Dict[DemandStatus, FrozenSet[DemandStatus]] = {
    DemandStatus.ISSUED: frozenset({DemandStatus.PARTIALLY_PAID, DemandStatus.PAID, DemandStatus.OVERDUE}),
    DemandStatus.PARTIALLY_PAID: frozenset({DemandStatus.PAID, DemandStatus.OVERDUE}),
    DemandStatus.OVERDUE: frozenset({DemandStatus.PAID}),
    DemandStatus.PAID: frozenset(),
}

DEMAND_LINK = "/service-charges/{demand_id}"


def _ensure_decimal(amount: Decimal | float | int | str | None) -> Decimal:
    if amount is None:
        return ZERO
    if isinstance(amount, Decimal):
        return amount
    return Decimal(str(amount))


def _money(amount: Decimal | float | int | str | None) -> Decimal:
    return _ensure_decimal(amount).quantize(CENT)


def _recalculate(demand: ServiceChargeDemand) -> None:
    demand.total_amount_due = _money(demand.total_amount_due)
    demand.amount_paid = _money(demand.amount_paid)
    demand.outstanding_amount = demand.total_amount_due - demand.amount_paid


def _move_status(demand: ServiceChargeDemand, target: DemandStatus) -> bool:
    if demand.status == target:
        return False
    if target not in DEMAND_TRANSITIONS[demand.status]:
        raise InvalidTransition(demand.status.value, target)
    demand.status = target
    return True


def _persist(ctx: WorkflowContext, demand: ServiceChargeDemand, *fields: str) -> ServiceChargeDemand:
    include = {"updated_at", "total_amount_due", "amount_paid", "outstanding_amount", *fields}
    ctx.store.update(SERVICE_CHARGE_DEMANDS, demand.id, demand.model_dump(mode="json", include=include))
    return demand


def _record_income(
    ctx: WorkflowContext,
    demand: ServiceChargeDemand,
    amount: Decimal,
    source: IncomeSource,
    description: str,
    on: date,
) -> IncomeEntry:
    entry = IncomeEntry(
        building_id=demand.building_id,
        income_date=on,
        amount=amount,
        source=source,
        description=description,
        related_demand_id=demand.id,
        recorded_by=ctx.actor_id,
        created_at=ctx.now(),
    )
    ctx.store.create(INCOME, entry.model_dump(mode="json"))
    return entry


def _default_penalty_config(ctx: WorkflowContext) -> PenaltyConfig:
    return PenaltyConfig(grace_period_days=ctx.settings.default_grace_period_days)


def _default_reminders_config(ctx: WorkflowContext) -> ReminderConfig:
    return ReminderConfig(
        reminder_days=list(ctx.settings.default_reminder_days),
        max_reminders=ctx.settings.default_max_reminders,
    )


def _status_for_payment(demand: ServiceChargeDemand) -> DemandStatus:
    if demand.amount_paid >= demand.total_amount_due:
        return DemandStatus.PAID
    if demand.status == DemandStatus.OVERDUE:
        return DemandStatus.OVERDUE
    if demand.amount_paid > ZERO:
        return DemandStatus.PARTIALLY_PAID
    return demand.status


def create_demand(ctx: WorkflowContext, payload: DemandCreate) -> ServiceChargeDemand:
    now = ctx.now()
    base_amount = payload.base_amount
    if base_amount is None:
        base_amount = _ensure_decimal(payload.area_sq_ft) * _ensure_decimal(payload.rate_applied)
    base_amount = _money(base_amount)
    ground_rent = _money(payload.ground_rent_amount)

    demand = ServiceChargeDemand(
        building_id=ctx.building_id,
        flat_id=payload.flat_id,
        flat_number=payload.flat_number,
        resident_id=payload.resident_id,
        resident_name=payload.resident_name,
        financial_period=payload.financial_period,
        area_sq_ft=payload.area_sq_ft,
        rate_applied=payload.rate_applied,
        base_amount=base_amount,
        ground_rent_amount=ground_rent,
        total_amount_due=base_amount + ground_rent,
        amount_paid=payload.amount_paid,
        due_date=payload.due_date,
        issued_date=payload.issued_date or now.date(),
        notes=payload.notes,
        issued_by=ctx.actor_id,
        penalty_config=payload.penalty_config or _default_penalty_config(ctx),
        reminders_config=payload.reminders_config or _default_reminders_config(ctx),
        created_at=now,
        updated_at=now,
    )
    _recalculate(demand)
    if demand.total_amount_due <= ZERO:
        raise ValidationFailure("A demand must be for more than zero.")
    if demand.amount_paid > demand.total_amount_due:
        raise ValidationFailure("Amount paid cannot exceed the total amount due.")
    _move_status(demand, _status_for_payment(demand))

    ctx.store.create(SERVICE_CHARGE_DEMANDS, demand.model_dump(mode="json"))
    logger.info(
        "Issued demand %s for flat %s (%s): %s due %s",
        demand.id,
        demand.flat_number or demand.flat_id,
        demand.financial_period,
        demand.total_amount_due,
        demand.due_date.isoformat(),
    )
    return demand


def generate_demands(ctx: WorkflowContext, payload: DemandGenerate) -> List[ServiceChargeDemand]:
    """Issue one demand per flat in the building for ``financial_period``.

    Flats that already have a demand for the period are skipped, so a repeated
    run only fills gaps.
    """
    flats = ctx.load_all(FLATS, Flat)
    if not flats:
        raise ValidationFailure("No flats found for this building.")

    period_demands = ctx.load_all(
        SERVICE_CHARGE_DEMANDS, ServiceChargeDemand, financial_period=payload.financial_period
    )
    existing = {demand.flat_id for demand in period_demands}
    created: List[ServiceChargeDemand] = []
    for flat in sorted(flats, key=lambda item: item.flat_number):
        if flat.id in existing:
            logger.debug("Flat %s already has a %s demand", flat.flat_number, payload.financial_period)
            continue
        ground_rent = flat.ground_rent if payload.include_ground_rent else ZERO
        if _money(flat.area_sq_ft * payload.rate_per_sq_ft + ground_rent) <= ZERO:
            logger.warning("Skipping flat %s: nothing to charge for %s", flat.flat_number, payload.financial_period)
            continue
        created.append(
            create_demand(
                ctx,
                DemandCreate(
                    flat_id=flat.id,
                    flat_number=flat.flat_number,
                    resident_id=flat.resident_id,
                    resident_name=flat.resident_name,
                    financial_period=payload.financial_period,
                    area_sq_ft=flat.area_sq_ft,
                    rate_applied=payload.rate_per_sq_ft,
                    ground_rent_amount=ground_rent,
                    due_date=payload.due_date,
                    penalty_config=payload.penalty_config,
                    reminders_config=payload.reminders_config,
                ),
            )
        )
    logger.info("Generated %s demands for %s in building %s", len(created), payload.financial_period, ctx.building_id)
    return created


def register_flat(ctx: WorkflowContext, payload: FlatCreate) -> Flat:
    flat = Flat(building_id=ctx.building_id, **payload.model_dump())
    ctx.store.create(FLATS, flat.model_dump(mode="json"))
    return flat


def list_flats(ctx: WorkflowContext) -> List[Flat]:
    return sorted(ctx.load_all(FLATS, Flat), key=lambda flat: flat.flat_number)


def get_demand(ctx: WorkflowContext, demand_id: str) -> ServiceChargeDemand:
    return ctx.load(SERVICE_CHARGE_DEMANDS, demand_id, ServiceChargeDemand)


def list_demands(ctx: WorkflowContext, status: Optional[DemandStatus] = None) -> List[ServiceChargeDemand]:
    demands = ctx.load_all(SERVICE_CHARGE_DEMANDS, ServiceChargeDemand, status=status)
    return sorted(demands, key=lambda demand: demand.due_date, reverse=True)


def list_income(ctx: WorkflowContext, source: Optional[IncomeSource] = None) -> List[IncomeEntry]:
    entries = ctx.load_all(INCOME, IncomeEntry, source=source)
    return sorted(entries, key=lambda entry: entry.income_date, reverse=True)


def record_payment(ctx: WorkflowContext, demand_id: str, payload: PaymentCreate) -> ServiceChargeDemand:
    demand = get_demand(ctx, demand_id)
    if demand.status == DemandStatus.PAID:
        raise ValidationFailure("This demand has already been paid in full.")
    amount = _money(payload.amount)
    if amount > demand.outstanding_amount:
        raise ValidationFailure(
            f"Payment of {amount} exceeds the outstanding amount of {demand.outstanding_amount}."
        )

    now = ctx.now()
    payment_date = payload.payment_date or now.date()
    record = PaymentRecord(
        payment_date=payment_date,
        amount=amount,
        method=payload.method,
        reference=payload.reference,
        notes=payload.notes,
        recorded_by=ctx.actor_id,
        recorded_at=now,
    )
    demand.amount_paid = demand.amount_paid + amount
    demand.payment_history = [*demand.payment_history, record]
    _recalculate(demand)
    _move_status(demand, _status_for_payment(demand))
    demand.updated_at = now

    _persist(ctx, demand, "status", "payment_history")
    _record_income(
        ctx,
        demand,
        amount,
        IncomeSource.BUILDING_CHARGES,
        f"Payment for {demand.flat_number} - {demand.financial_period}",
        payment_date,
    )
    logger.info("Recorded payment of %s against demand %s (%s)", amount, demand.id, demand.status.value)
    return demand


def calculate_penalty(demand: ServiceChargeDemand) -> Decimal:
    """Penalty owed for one breach, per the demand's penalty configuration."""
    config = demand.penalty_config
    outstanding = _ensure_decimal(demand.outstanding_amount)
    if outstanding <= ZERO:
        return ZERO

    penalty = ZERO
    if config.type in (PenaltyType.FLAT, PenaltyType.BOTH):
        penalty += _ensure_decimal(config.flat_amount)
    if config.type in (PenaltyType.PERCENTAGE, PenaltyType.BOTH) and config.percentage:
        penalty += outstanding * _ensure_decimal(config.percentage) / Decimal("100")

    if config.max_penalty_amount is not None:
        remaining = _ensure_decimal(config.max_penalty_amount) - _ensure_decimal(demand.penalty_amount_applied)
        penalty = min(penalty, max(remaining, ZERO))
    return _money(penalty)


def is_in_breach(demand: ServiceChargeDemand, as_of: date) -> bool:
    if demand.status == DemandStatus.PAID or demand.outstanding_amount <= ZERO:
        return False
    grace = timedelta(days=demand.penalty_config.grace_period_days)
    return demand.due_date + grace <= as_of


def penalized_this_cycle(demand: ServiceChargeDemand) -> bool:
    return demand.penalty_cycle is not None and demand.penalty_cycle >= demand.reminders_sent


def _add_penalty(demand: ServiceChargeDemand, amount: Decimal) -> None:
    demand.penalty_amount_applied = _money(demand.penalty_amount_applied + amount)
    demand.total_amount_due = demand.total_amount_due + amount
    _recalculate(demand)


def check_and_apply_penalties(ctx: WorkflowContext, as_of: Optional[date] = None) -> List[str]:
    """Mark breached demands Overdue and charge each breach once per reminder cycle.

    Returns the ids of demands that received a penalty on this run.
    """
    as_of = as_of or ctx.now().date()
    penalized: List[str] = []

    for demand in list_demands(ctx):
        if not is_in_breach(demand, as_of):
            continue

        status_changed = _move_status(demand, DemandStatus.OVERDUE)
        penalty = ZERO if penalized_this_cycle(demand) else calculate_penalty(demand)
        if penalty <= ZERO and not status_changed:
            continue

        now = ctx.now()
        demand.updated_at = now
        if penalty > ZERO:
            _add_penalty(demand, penalty)
            demand.penalty_cycle = demand.reminders_sent
            demand.penalty_applied_at = now

        _persist(ctx, demand, "status", "penalty_amount_applied", "penalty_cycle", "penalty_applied_at")

        if penalty > ZERO:
            _record_income(
                ctx,
                demand,
                penalty,
                IncomeSource.PENALTY,
                f"Late payment penalty for {demand.flat_number} - {demand.financial_period}",
                as_of,
            )
            penalized.append(demand.id)
            logger.info("Applied penalty of %s to demand %s", penalty, demand.id)
        else:
            logger.info("Demand %s is overdue", demand.id)

    return penalized


def apply_manual_penalty(ctx: WorkflowContext, demand_id: str, amount: Decimal) -> ServiceChargeDemand:
    demand = get_demand(ctx, demand_id)
    if demand.status == DemandStatus.PAID:
        raise ValidationFailure("Cannot add a penalty to a demand that has been paid.")
    amount = _money(amount)
    if amount <= ZERO:
        raise ValidationFailure("Penalty amount must be positive.")

    now = ctx.now()
    _add_penalty(demand, amount)
    demand.penalty_applied_at = now
    demand.updated_at = now
    _persist(ctx, demand, "penalty_amount_applied", "penalty_applied_at")
    _record_income(
        ctx,
        demand,
        amount,
        IncomeSource.PENALTY,
        f"Manual penalty for {demand.flat_number} - {demand.financial_period}",
        now.date(),
    )
    logger.info("Applied manual penalty of %s to demand %s", amount, demand.id)
    return demand


def send_reminder(ctx: WorkflowContext, demand_id: str) -> ServiceChargeDemand:
    demand = get_demand(ctx, demand_id)
    if demand.status == DemandStatus.PAID:
        raise ValidationFailure("No reminder needed: the demand has been paid.")
    max_reminders = demand.reminders_config.max_reminders
    if demand.reminders_sent >= max_reminders:
        raise ReminderLimitReached(demand.id, max_reminders)

    now = ctx.now()
    demand.reminders_sent += 1
    demand.last_reminder_sent_at = now
    demand.updated_at = now
    _persist(ctx, demand, "reminders_sent", "last_reminder_sent_at")

    if demand.resident_id:
        ctx.notifier.notify(
            demand.resident_id,
            title=f"Service charge reminder - {demand.financial_period}",
            message=(
                f"{demand.outstanding_amount} {ctx.settings.currency} is outstanding for flat "
                f"{demand.flat_number}, due {demand.due_date:%d %b %Y}."
            ),
            kind=NotificationKind.REMINDER,
            link_url=DEMAND_LINK.format(demand_id=demand.id),
        )
    else:
        logger.warning("Demand %s has no resident to remind", demand.id)
    logger.info("Sent reminder %s/%s for demand %s", demand.reminders_sent, max_reminders, demand.id)
    return demand
