from datetime import date
from decimal import Decimal

import pytest

from buildingdesk.constants import SERVICE_CHARGE_DEMANDS, DemandStatus, IncomeSource, PenaltyType
from buildingdesk.core.errors import ReminderLimitReached, ValidationFailure
from buildingdesk.models.models import Notification
from buildingdesk.schemas.schemas import (
    DemandCreate,
    DemandGenerate,
    FlatCreate,
    PaymentCreate,
    PenaltyConfig,
    ReminderConfig,
)
from buildingdesk.services import service_charges as service_charge_service

AS_OF = date(2024, 3, 11)


def _issue(ctx, **overrides):
    payload = {
        "flat_id": "flat-4",
        "flat_number": "4",
        "resident_id": "resident-1",
        "financial_period": "2024",
        "base_amount": Decimal("3500"),
        "amount_paid": Decimal("2000"),
        "due_date": date(2024, 2, 1),
        "penalty_config": PenaltyConfig(type=PenaltyType.FLAT, flat_amount=Decimal("100")),
    }
    payload.update(overrides)
    return service_charge_service.create_demand(ctx, DemandCreate(**payload))


def test_outstanding_is_total_less_paid(ctx):
    demand = _issue(ctx)

    assert demand.total_amount_due == Decimal("3500.00")
    assert demand.amount_paid == Decimal("2000.00")
    assert demand.outstanding_amount == Decimal("1500.00")
    assert demand.status == DemandStatus.PARTIALLY_PAID


def test_base_amount_defaults_to_area_times_rate(ctx):
    demand = _issue(
        ctx,
        base_amount=None,
        amount_paid=Decimal("0"),
        area_sq_ft=Decimal("850"),
        rate_applied=Decimal("2.50"),
        ground_rent_amount=Decimal("250"),
    )

    assert demand.base_amount == Decimal("2125.00")
    assert demand.total_amount_due == Decimal("2375.00")
    assert demand.status == DemandStatus.ISSUED


def test_paid_amount_cannot_exceed_total(ctx, store):
    with pytest.raises(ValidationFailure):
        _issue(ctx, amount_paid=Decimal("4000"))
    assert store.list(SERVICE_CHARGE_DEMANDS) == []


def test_penalty_applied_to_overdue_demand(ctx):
    demand = _issue(ctx)

    penalized = service_charge_service.check_and_apply_penalties(ctx, AS_OF)

    assert penalized == [demand.id]
    demand = service_charge_service.get_demand(ctx, demand.id)
    assert demand.status == DemandStatus.OVERDUE
    assert demand.penalty_amount_applied == Decimal("100.00")
    assert demand.total_amount_due == Decimal("3600.00")
    assert demand.outstanding_amount == Decimal("1600.00")
    assert demand.outstanding_amount == demand.total_amount_due - demand.amount_paid

    income = service_charge_service.list_income(ctx, source=IncomeSource.PENALTY)
    assert [entry.amount for entry in income] == [Decimal("100.00")]


def test_penalty_run_is_idempotent(ctx):
    demand = _issue(ctx)
    service_charge_service.check_and_apply_penalties(ctx, AS_OF)
    before = service_charge_service.get_demand(ctx, demand.id)

    assert service_charge_service.check_and_apply_penalties(ctx, AS_OF) == []
    assert service_charge_service.check_and_apply_penalties(ctx, date(2024, 3, 20)) == []

    after = service_charge_service.get_demand(ctx, demand.id)
    assert after.total_amount_due == before.total_amount_due == Decimal("3600.00")
    assert after.penalty_amount_applied == Decimal("100.00")
    assert len(service_charge_service.list_income(ctx, source=IncomeSource.PENALTY)) == 1


def test_no_penalty_before_grace_period_ends(ctx):
    demand = _issue(
        ctx,
        penalty_config=PenaltyConfig(type=PenaltyType.FLAT, flat_amount=Decimal("100"), grace_period_days=45),
    )

    assert service_charge_service.check_and_apply_penalties(ctx, AS_OF) == []
    assert service_charge_service.get_demand(ctx, demand.id).status == DemandStatus.PARTIALLY_PAID
    # due 1 Feb + 45 days is 17 Mar; the breach starts on that day
    assert service_charge_service.check_and_apply_penalties(ctx, date(2024, 3, 17)) == [demand.id]


def test_percentage_penalty_is_capped_cumulatively(ctx):
    demand = _issue(
        ctx,
        penalty_config=PenaltyConfig(
            type=PenaltyType.BOTH,
            flat_amount=Decimal("25"),
            percentage=Decimal("10"),
            max_penalty_amount=Decimal("200"),
        ),
    )

    service_charge_service.check_and_apply_penalties(ctx, AS_OF)
    demand = service_charge_service.get_demand(ctx, demand.id)
    # 25 + 10% of 1500
    assert demand.penalty_amount_applied == Decimal("175.00")

    service_charge_service.send_reminder(ctx, demand.id)
    service_charge_service.check_and_apply_penalties(ctx, AS_OF)
    demand = service_charge_service.get_demand(ctx, demand.id)
    assert demand.penalty_amount_applied == Decimal("200.00")
    assert demand.outstanding_amount == Decimal("1700.00")


def test_reminder_opens_a_new_penalty_cycle(ctx):
    demand = _issue(ctx)
    service_charge_service.check_and_apply_penalties(ctx, AS_OF)

    service_charge_service.send_reminder(ctx, demand.id)

    assert service_charge_service.check_and_apply_penalties(ctx, AS_OF) == [demand.id]
    assert service_charge_service.get_demand(ctx, demand.id).total_amount_due == Decimal("3700.00")


def test_reminders_stop_at_the_configured_limit(ctx, db_session):
    demand = _issue(ctx, reminders_config=ReminderConfig(max_reminders=2))

    service_charge_service.send_reminder(ctx, demand.id)
    demand = service_charge_service.send_reminder(ctx, demand.id)
    assert demand.reminders_sent == 2
    assert demand.status == DemandStatus.PARTIALLY_PAID

    with pytest.raises(ReminderLimitReached):
        service_charge_service.send_reminder(ctx, demand.id)
    assert service_charge_service.get_demand(ctx, demand.id).reminders_sent == 2

    reminders = db_session.query(Notification).filter(Notification.user_id == "resident-1").all()
    assert [notification.kind for notification in reminders] == ["reminder", "reminder"]


def test_payments_move_demand_to_paid(ctx):
    demand = _issue(ctx)

    with pytest.raises(ValidationFailure):
        service_charge_service.record_payment(ctx, demand.id, PaymentCreate(amount=Decimal("1500.01")))

    demand = service_charge_service.record_payment(
        ctx, demand.id, PaymentCreate(amount=Decimal("1500.00"), payment_date=date(2024, 1, 30))
    )

    assert demand.status == DemandStatus.PAID
    assert demand.outstanding_amount == Decimal("0.00")
    assert len(demand.payment_history) == 1
    with pytest.raises(ValidationFailure):
        service_charge_service.record_payment(ctx, demand.id, PaymentCreate(amount=Decimal("1")))
    with pytest.raises(ValidationFailure):
        service_charge_service.send_reminder(ctx, demand.id)
    assert service_charge_service.check_and_apply_penalties(ctx, AS_OF) == []

    income = service_charge_service.list_income(ctx, source=IncomeSource.BUILDING_CHARGES)
    assert [entry.amount for entry in income] == [Decimal("1500.00")]


def test_partial_payment_keeps_overdue_demand_overdue(ctx):
    demand = _issue(ctx)
    service_charge_service.check_and_apply_penalties(ctx, AS_OF)

    demand = service_charge_service.record_payment(ctx, demand.id, PaymentCreate(amount=Decimal("600")))

    assert demand.status == DemandStatus.OVERDUE
    assert demand.outstanding_amount == Decimal("1000.00")


def test_manual_penalty(ctx):
    demand = _issue(ctx)

    demand = service_charge_service.apply_manual_penalty(ctx, demand.id, Decimal("35"))

    assert demand.penalty_amount_applied == Decimal("35.00")
    assert demand.outstanding_amount == Decimal("1535.00")
    assert demand.status == DemandStatus.PARTIALLY_PAID


def test_generate_demands_once_per_flat(ctx, make_context):
    service_charge_service.register_flat(
        ctx, FlatCreate(flat_number="1", area_sq_ft=Decimal("850"), ground_rent=Decimal("250"))
    )
    service_charge_service.register_flat(ctx, FlatCreate(flat_number="2", area_sq_ft=Decimal("1000")))
    request = DemandGenerate(
        financial_period="2024-25",
        rate_per_sq_ft=Decimal("2.50"),
        due_date=date(2024, 4, 30),
        include_ground_rent=True,
    )

    created = service_charge_service.generate_demands(ctx, request)

    assert [demand.total_amount_due for demand in created] == [Decimal("2375.00"), Decimal("2500.00")]
    assert service_charge_service.generate_demands(ctx, request) == []
    assert len(service_charge_service.list_demands(ctx)) == 2

    with pytest.raises(ValidationFailure):
        service_charge_service.generate_demands(make_context(building_id="building-2"), request)


def test_zero_total_demand_is_rejected(ctx):
    with pytest.raises(ValidationFailure):
        _issue(ctx, base_amount=Decimal("0"), amount_paid=Decimal("0"))

    assert ctx.store.list(SERVICE_CHARGE_DEMANDS) == []


def test_generate_demands_skips_flats_with_nothing_to_charge(ctx):
    service_charge_service.register_flat(ctx, FlatCreate(flat_number="1", area_sq_ft=Decimal("850")))
    service_charge_service.register_flat(ctx, FlatCreate(flat_number="B1"))

    created = service_charge_service.generate_demands(
        ctx,
        DemandGenerate(financial_period="2024-25", rate_per_sq_ft=Decimal("2.00"), due_date=date(2024, 4, 30)),
    )

    assert [demand.flat_number for demand in created] == ["1"]
    assert created[0].total_amount_due == Decimal("1700.00")
