from datetime import datetime, timezone
from itertools import product

import pytest
from pydantic import ValidationError

from buildingdesk.constants import ActivityAction, EventStatus, TicketStatus, WorkOrderStatus
from buildingdesk.core.errors import InvalidTransition
from buildingdesk.schemas.schemas import BuildingEvent, Ticket, WorkOrder
from buildingdesk.services.workflow import (
    EVENT_TRANSITIONS,
    TICKET_TRANSITIONS,
    WORK_ORDER_TRANSITIONS,
    append_activity,
    available_actions,
    can_transition,
    is_terminal,
    request_transition,
)

NOW = datetime(2024, 3, 11, 9, 0, tzinfo=timezone.utc)


def _ticket(status: TicketStatus = TicketStatus.NEW) -> Ticket:
    return Ticket(building_id="b1", title="Leaking tap", requested_by="resident-1", status=status)


def _work_order(status: WorkOrderStatus = WorkOrderStatus.TRIAGE) -> WorkOrder:
    return WorkOrder(building_id="b1", title="Fix tap", created_by="manager-1", status=status)


def _event(status: EventStatus = EventStatus.SCHEDULED) -> BuildingEvent:
    return BuildingEvent(
        building_id="b1",
        title="Plumber visit",
        start_date=datetime(2024, 3, 11, 8, 0, tzinfo=timezone.utc),
        end_date=datetime(2024, 3, 11, 10, 0, tzinfo=timezone.utc),
        status=status,
    )


FACTORIES = [
    (TicketStatus, TICKET_TRANSITIONS, _ticket),
    (WorkOrderStatus, WORK_ORDER_TRANSITIONS, _work_order),
    (EventStatus, EVENT_TRANSITIONS, _event),
]


def _all_pairs():
    for status_type, table, factory in FACTORIES:
        for current, target in product(status_type, status_type):
            yield pytest.param(factory, table, current, target, id=f"{current.value}->{target.value}")


@pytest.mark.parametrize("factory,table,current,target", list(_all_pairs()))
def test_request_transition_follows_edge_table(factory, table, current, target):
    entity = factory(current)
    append_activity(entity, ActivityAction.CREATED, "created", "seed", now=NOW)
    before = list(entity.activity_log)

    if target in table[current]:
        request_transition(entity, target, "manager-1", now=NOW)
        assert entity.status == target
        assert len(entity.activity_log) == len(before) + 1
        assert entity.activity_log[: len(before)] == before
        entry = entity.activity_log[-1]
        assert entry.action == ActivityAction.STATUS_CHANGED
        assert entry.performed_by == "manager-1"
        assert entry.payload.previous_status == current.value
        assert entry.payload.new_status == target.value
    else:
        with pytest.raises(InvalidTransition):
            request_transition(entity, target, "manager-1", now=NOW)
        assert entity.status == current
        assert entity.activity_log == before


def test_new_ticket_cannot_jump_to_work_order():
    ticket = _ticket()

    with pytest.raises(InvalidTransition) as excinfo:
        request_transition(ticket, TicketStatus.WORK_ORDER, "manager-1", now=NOW)

    assert excinfo.value.current_status == "New Ticket"
    assert excinfo.value.target_status == "Work Order"
    assert ticket.status == TicketStatus.NEW
    assert ticket.activity_log == []


def test_scheduled_work_order_can_be_cancelled():
    work_order = _work_order(WorkOrderStatus.SCHEDULED)

    request_transition(work_order, WorkOrderStatus.CANCELLED, "manager-1", note="Supplier unavailable", now=NOW)

    assert work_order.status == WorkOrderStatus.CANCELLED
    assert len(work_order.activity_log) == 1
    entry = work_order.activity_log[0]
    assert entry.timestamp == NOW
    assert entry.description == "Status changed from Scheduled to Cancelled: Supplier unavailable"
    assert entry.payload.note == "Supplier unavailable"


def test_request_transition_accepts_status_values_as_strings():
    ticket = _ticket()

    request_transition(ticket, "Manager Review", "manager-1", now=NOW)

    assert ticket.status == TicketStatus.MANAGER_REVIEW


def test_request_transition_rejects_unknown_and_foreign_statuses():
    ticket = _ticket(TicketStatus.COMPLETE)

    with pytest.raises(InvalidTransition):
        request_transition(ticket, "Archived", "manager-1", now=NOW)
    # Work-order "Closed" is a different status even though the label matches.
    with pytest.raises(InvalidTransition):
        request_transition(ticket, WorkOrderStatus.CLOSED, "manager-1", now=NOW)
    assert ticket.status == TicketStatus.COMPLETE
    assert ticket.activity_log == []


def test_completing_ticket_stamps_completed_date():
    ticket = _ticket(TicketStatus.WORK_ORDER)

    request_transition(ticket, TicketStatus.COMPLETE, "manager-1", now=NOW)

    assert ticket.completed_date == NOW


def test_resolving_work_order_stamps_resolved_at():
    work_order = _work_order(WorkOrderStatus.SCHEDULED)

    request_transition(work_order, WorkOrderStatus.RESOLVED, "manager-1", now=NOW)

    assert work_order.resolved_at == NOW


@pytest.mark.parametrize("status_type,table", [(s, t) for s, t, _ in FACTORIES])
def test_available_actions_match_allowed_transitions(status_type, table):
    for status in status_type:
        actions = available_actions(status)
        assert {action.target_status for action in actions} == {target.value for target in table[status]}
        assert all(action.label for action in actions)
        assert is_terminal(status) == (actions == [])


def test_terminal_statuses_offer_no_actions():
    assert available_actions(TicketStatus.CLOSED) == []
    assert available_actions(WorkOrderStatus.CLOSED) == []
    assert available_actions(WorkOrderStatus.CANCELLED) == []


def test_ticket_actions_from_new():
    labels = {action.label: action.target_status for action in available_actions(TicketStatus.NEW)}

    assert labels == {"Start Review": "Manager Review", "Close Ticket": "Closed"}


def test_can_transition_requires_matching_status_kind():
    assert can_transition(TicketStatus.COMPLETE, TicketStatus.CLOSED)
    assert not can_transition(TicketStatus.COMPLETE, WorkOrderStatus.CLOSED)
    assert not can_transition(EventStatus.SCHEDULED, EventStatus.COMPLETED)


def test_activity_log_entries_are_immutable():
    ticket = _ticket()
    entry = append_activity(ticket, ActivityAction.CREATED, "created", "resident-1", now=NOW)

    with pytest.raises(ValidationError):
        entry.description = "changed"
