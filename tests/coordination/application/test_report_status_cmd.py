"""Application tests for station status reports."""

import json
from unittest.mock import patch

import pytest
from coordination.order.repository import ConcurrentTaskUpdate
from coordination.order.reporting import report_station_status
from coordination.order.station_task import StationTask
from coordination.order.status import get_order_status
from coordination.order.submission import SubmitOrder
from protean import current_domain
from protean.exceptions import ObjectNotFoundError, ValidationError
from shared.errors import InvalidTransition, TransientDeliveryFailure


@pytest.fixture()
def order_id():
    items = [
        {"product_ref": "burger", "quantity": 1, "station_affinity": "food"},
        {"product_ref": "latte", "quantity": 1, "station_affinity": "beverage"},
    ]
    return current_domain.process(SubmitOrder(items=json.dumps(items)), asynchronous=False)


def _task(order_id, station):
    return current_domain.repository_for(StationTask).find_for(order_id, station)


class TestApplyReport:
    def test_ack_applied(self, order_id):
        ack = report_station_status(order_id, "kitchen", "InProgress", "k-1")
        assert ack == {"applied": True, "status": "InProgress"}

    def test_task_updated(self, order_id):
        report_station_status(order_id, "kitchen", "InProgress", "k-1")
        task = _task(order_id, "kitchen")
        assert task.status == "InProgress"
        assert task.last_token == "k-1"

    def test_other_station_untouched(self, order_id):
        report_station_status(order_id, "kitchen", "InProgress", "k-1")
        assert _task(order_id, "barista").status == "Pending"

    def test_aggregate_status_follows(self, order_id):
        report_station_status(order_id, "kitchen", "InProgress", "k-1")
        assert get_order_status(order_id)["aggregate_status"] == "Preparing"


class TestDuplicateReports:
    def test_duplicate_is_acknowledged_not_applied(self, order_id):
        report_station_status(order_id, "kitchen", "InProgress", "k-1")
        ack = report_station_status(order_id, "kitchen", "InProgress", "k-1")
        assert ack == {"applied": False, "status": "InProgress"}
        assert len(_task(order_id, "kitchen").transitions) == 1

    def test_late_duplicate_after_advance(self, order_id):
        report_station_status(order_id, "kitchen", "InProgress", "k-1")
        report_station_status(order_id, "kitchen", "Ready", "k-2")

        ack = report_station_status(order_id, "kitchen", "InProgress", "k-1")
        assert ack == {"applied": False, "status": "Ready"}
        assert _task(order_id, "kitchen").status == "Ready"


class TestRejectedReports:
    def test_regression_rejected(self, order_id):
        report_station_status(order_id, "kitchen", "InProgress", "k-1")
        report_station_status(order_id, "kitchen", "Ready", "k-2")
        with pytest.raises(InvalidTransition):
            report_station_status(order_id, "kitchen", "InProgress", "k-3")
        assert _task(order_id, "kitchen").status == "Ready"

    def test_skip_rejected(self, order_id):
        with pytest.raises(InvalidTransition):
            report_station_status(order_id, "barista", "Collected", "b-1")

    def test_unknown_order(self):
        with pytest.raises(ObjectNotFoundError):
            report_station_status("no-such-order", "kitchen", "InProgress", "k-1")

    def test_station_not_on_order(self):
        items = [{"product_ref": "burger", "quantity": 1, "station_affinity": "food"}]
        kitchen_only = current_domain.process(SubmitOrder(items=json.dumps(items)), asynchronous=False)
        with pytest.raises(ObjectNotFoundError):
            report_station_status(kitchen_only, "barista", "InProgress", "b-1")

    def test_unknown_status(self, order_id):
        with pytest.raises(ValidationError):
            report_station_status(order_id, "kitchen", "Burnt", "k-1")


class TestConcurrentUpdate:
    def test_stale_save_is_refused(self, order_id):
        repo = current_domain.repository_for(StationTask)
        stale = repo.find_for(order_id, "kitchen")

        report_station_status(order_id, "kitchen", "InProgress", "k-1")

        expected = stale.last_token
        stale.apply_status("InProgress", "k-other")
        with pytest.raises(ConcurrentTaskUpdate):
            repo.save_transition(stale, expected)
        assert _task(order_id, "kitchen").last_token == "k-1"

    def test_concurrent_update_is_transient(self):
        assert issubclass(ConcurrentTaskUpdate, TransientDeliveryFailure)

    def test_reports_on_one_task_are_serialised(self, order_id):
        from coordination.order import reporting

        with patch.object(reporting, "task_lock", wraps=reporting.task_lock) as lock:
            report_station_status(order_id, "kitchen", "InProgress", "k-1")
        lock.assert_called_once_with(order_id, "kitchen")


RANK = {"Submitted": 0, "Preparing": 1, "Ready": 2, "Completed": 3}


def _poll_after_each(order_id, reports):
    seen = [get_order_status(order_id)["aggregate_status"]]
    for station, status, token in reports:
        report_station_status(order_id, station, status, token)
        seen.append(get_order_status(order_id)["aggregate_status"])
    return seen


class TestAggregateStatusOverTime:
    def test_full_journey_only_moves_forward(self, order_id):
        seen = _poll_after_each(
            order_id,
            [
                ("barista", "InProgress", "b-1"),
                ("kitchen", "InProgress", "k-1"),
                ("barista", "Ready", "b-2"),
                ("kitchen", "Ready", "k-2"),
                ("barista", "Collected", "b-3"),
                ("kitchen", "Collected", "k-3"),
            ],
        )
        assert seen == ["Submitted", "Preparing", "Preparing", "Preparing", "Ready", "Ready", "Completed"]

    def test_station_cancel_after_start_stays_preparing(self, order_id):
        seen = _poll_after_each(
            order_id,
            [
                ("kitchen", "InProgress", "k-1"),
                ("kitchen", "Cancelled", "k-2"),
            ],
        )
        assert seen == ["Submitted", "Preparing", "Preparing"]

    def test_station_cancel_before_start(self, order_id):
        seen = _poll_after_each(
            order_id,
            [
                ("kitchen", "Cancelled", "k-1"),
                ("barista", "InProgress", "b-1"),
                ("barista", "Ready", "b-2"),
                ("barista", "Collected", "b-3"),
            ],
        )
        assert seen == ["Submitted", "Preparing", "Preparing", "Ready", "Completed"]

    def test_ranks_never_decrease(self, order_id):
        seen = _poll_after_each(
            order_id,
            [
                ("kitchen", "InProgress", "k-1"),
                ("barista", "InProgress", "b-1"),
                ("barista", "Ready", "b-2"),
                ("kitchen", "Cancelled", "k-2"),
                ("barista", "Collected", "b-3"),
            ],
        )
        ranks = [RANK[status] for status in seen]
        assert ranks == sorted(ranks)
        assert seen[-1] == "Completed"
