"""Tests for StationTask — monotonic transitions and idempotent reports."""

import json

import pytest
from coordination.order.events import (
    StationTaskAdvanced,
    StationTaskCancelled,
    StationTaskOpened,
    StationTicketPublished,
)
from coordination.order.order import Order
from coordination.order.station_task import StationTask
from protean.exceptions import ValidationError
from shared.errors import InvalidTransition
from shared.tickets import PreparationStatus, StationKind


def _make_task(station=StationKind.KITCHEN):
    order = Order.submit(
        [
            {"product_ref": "burger", "quantity": 2, "station_affinity": "food"},
            {"product_ref": "latte", "quantity": 1, "station_affinity": "beverage"},
        ]
    )
    return StationTask.open(str(order.id), station, order.items_for(station))


def _advance(task, *statuses):
    for index, status in enumerate(statuses):
        task.apply_status(status, f"tok-{status}-{index}")
    return task


class TestOpen:
    def test_task_opens_pending_and_unpublished(self):
        task = _make_task()
        assert task.status == PreparationStatus.PENDING.value
        assert task.ticket_published is False
        assert task.publish_attempts == 0

    def test_task_snapshots_station_items(self):
        task = _make_task()
        lines = json.loads(task.items)
        assert [(line["product_ref"], line["quantity"]) for line in lines] == [("burger", 2)]
        assert json.loads(task.line_item_ids) == [lines[0]["line_item_id"]]

    def test_open_raises_event(self):
        task = _make_task(StationKind.BARISTA)
        events = [e for e in task._events if isinstance(e, StationTaskOpened)]
        assert len(events) == 1
        assert events[0].station == "barista"
        assert events[0].task_id == str(task.id)

    def test_ticket_message(self):
        task = _make_task()
        message = task.ticket_message()
        assert message.order_id == str(task.order_id)
        assert message.task_id == str(task.id)
        assert message.station == "kitchen"
        assert message.items[0].product_ref == "burger"


class TestValidTransitions:
    def test_pending_to_in_progress(self):
        task = _advance(_make_task(), "InProgress")
        assert task.status == "InProgress"

    def test_full_lifecycle(self):
        task = _advance(_make_task(), "InProgress", "Ready", "Collected")
        assert task.status == "Collected"
        assert task.is_terminal

    def test_transition_recorded(self):
        task = _make_task()
        task.apply_status("InProgress", "tok-1")
        assert task.last_token == "tok-1"
        assert len(task.transitions) == 1
        assert task.transitions[0].from_status == "Pending"
        assert task.transitions[0].to_status == "InProgress"

    def test_advance_raises_event(self):
        task = _make_task()
        task._events.clear()
        task.apply_status("InProgress", "tok-1")
        assert len(task._events) == 1
        event = task._events[0]
        assert isinstance(event, StationTaskAdvanced)
        assert event.previous_status == "Pending"
        assert event.status == "InProgress"
        assert event.idempotency_token == "tok-1"

    @pytest.mark.parametrize(
        "path",
        [[], ["InProgress"], ["InProgress", "Ready"]],
    )
    def test_cancel_from_non_terminal(self, path):
        task = _advance(_make_task(), *path)
        task._events.clear()
        assert task.apply_status("Cancelled", "tok-cancel") is True
        assert task.status == "Cancelled"
        assert isinstance(task._events[-1], StationTaskCancelled)


class TestInvalidTransitions:
    def test_skip_forward_rejected(self):
        with pytest.raises(InvalidTransition):
            _make_task().apply_status("Ready", "tok-1")

    def test_regression_rejected(self):
        task = _advance(_make_task(), "InProgress", "Ready")
        with pytest.raises(InvalidTransition):
            task.apply_status("InProgress", "tok-new")
        assert task.status == "Ready"

    def test_same_status_with_new_token_rejected(self):
        task = _advance(_make_task(), "InProgress")
        with pytest.raises(InvalidTransition):
            task.apply_status("InProgress", "tok-other")

    def test_collected_is_terminal(self):
        task = _advance(_make_task(), "InProgress", "Ready", "Collected")
        with pytest.raises(InvalidTransition):
            task.apply_status("Cancelled", "tok-cancel")

    def test_cancelled_is_terminal(self):
        task = _advance(_make_task(), "Cancelled")
        with pytest.raises(InvalidTransition):
            task.apply_status("InProgress", "tok-late")

    def test_unknown_status_rejected(self):
        with pytest.raises(ValidationError):
            _make_task().apply_status("Burnt", "tok-1")

    def test_missing_token_rejected(self):
        with pytest.raises(ValidationError):
            _make_task().apply_status("InProgress", "")


class TestIdempotence:
    def test_duplicate_token_is_noop(self):
        task = _make_task()
        assert task.apply_status("InProgress", "tok-1") is True
        task._events.clear()

        assert task.apply_status("InProgress", "tok-1") is False
        assert task.status == "InProgress"
        assert len(task.transitions) == 1
        assert task._events == []

    def test_old_token_after_task_moved_on_is_noop(self):
        task = _make_task()
        task.apply_status("InProgress", "tok-1")
        task.apply_status("Ready", "tok-2")

        assert task.apply_status("InProgress", "tok-1") is False
        assert task.status == "Ready"
        assert task.last_token == "tok-2"

    def test_duplicate_token_ignored_even_for_other_status(self):
        task = _make_task()
        task.apply_status("InProgress", "tok-1")
        assert task.apply_status("Collected", "tok-1") is False
        assert task.status == "InProgress"


class TestPublishing:
    def test_mark_published(self):
        task = _make_task()
        task._events.clear()
        task.mark_published("1-1", attempts=2)

        assert task.ticket_published is True
        assert task.ticket_message_id == "1-1"
        assert task.publish_attempts == 2
        assert isinstance(task._events[0], StationTicketPublished)

    def test_mark_published_twice_is_noop(self):
        task = _make_task()
        task.mark_published("1-1", attempts=1)
        task._events.clear()
        task.mark_published("1-2", attempts=1)

        assert task.ticket_message_id == "1-1"
        assert task._events == []

    def test_publish_failure_counts_attempts(self):
        task = _make_task()
        task.record_publish_failure(3)
        assert task.ticket_published is False
        assert task.publish_attempts == 3
