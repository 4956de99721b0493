"""Application tests for fan-out failures and the republish sweep."""

import json
import threading
import time
from unittest.mock import patch

import pytest
from coordination.order import fan_out
from coordination.order.fan_out import FanOutPool, RepublishPendingTickets, publish_ticket
from coordination.order.reporting import report_station_status
from coordination.order.station_task import StationTask
from coordination.order.status import get_order_status
from coordination.order.submission import SubmitOrder
from protean import current_domain


def _submit():
    items = [
        {"product_ref": "burger", "quantity": 1, "station_affinity": "food"},
        {"product_ref": "latte", "quantity": 1, "station_affinity": "beverage"},
    ]
    return current_domain.process(SubmitOrder(items=json.dumps(items)), asynchronous=False)


def _tasks(order_id):
    return current_domain.repository_for(StationTask).find_by_order(order_id)


class TestPublishExhaustion:
    def test_task_stays_unpublished(self, ticket_topic):
        ticket_topic.configure(fail_publishes=100)
        order_id = _submit()
        tasks = _tasks(order_id)
        assert not any(t.ticket_published for t in tasks)
        # DELIVERY_MAX_ATTEMPTS is 3 under test
        assert all(t.publish_attempts == 3 for t in tasks)

    def test_order_is_still_accepted(self, ticket_topic):
        ticket_topic.configure(fail_publishes=100)
        order_id = _submit()
        status = get_order_status(order_id)
        assert status["aggregate_status"] == "Submitted"
        assert {s["status"] for s in status["stations"]} == {"Pending"}
        assert not any(s["ticket_published"] for s in status["stations"])


class TestRepublishPendingTickets:
    def test_republishes_unpublished_tasks(self, ticket_topic):
        ticket_topic.configure(fail_publishes=100)
        order_id = _submit()

        ticket_topic.configure(fail_publishes=0)
        republished = current_domain.process(RepublishPendingTickets(), asynchronous=False)

        assert republished == 2
        assert all(t.ticket_published for t in _tasks(order_id))
        assert sorted(m.station for m in ticket_topic.published()) == ["barista", "kitchen"]

    def test_published_tasks_are_not_republished(self, ticket_topic):
        _submit()
        republished = current_domain.process(RepublishPendingTickets(), asynchronous=False)
        assert republished == 0
        assert len(ticket_topic.published()) == 2

    def test_limit(self, ticket_topic):
        ticket_topic.configure(fail_publishes=100)
        _submit()
        ticket_topic.configure(fail_publishes=0)
        assert current_domain.process(RepublishPendingTickets(limit=1), asynchronous=False) == 1

    def test_still_failing(self, ticket_topic):
        ticket_topic.configure(fail_publishes=100)
        order_id = _submit()
        assert current_domain.process(RepublishPendingTickets(), asynchronous=False) == 0
        assert all(t.publish_attempts == 6 for t in _tasks(order_id))


def _unpublished_kitchen_task(ticket_topic):
    ticket_topic.configure(fail_publishes=100)
    order_id = _submit()
    ticket_topic.configure(fail_publishes=0)
    kitchen = current_domain.repository_for(StationTask).find_for(order_id, "kitchen")
    return order_id, str(kitchen.id)


class TestBookkeepingAndStatusReports:
    def test_report_landing_before_save_is_kept(self, ticket_topic):
        order_id, task_id = _unpublished_kitchen_task(ticket_topic)
        original = StationTask.mark_published
        raced = []

        def mark_published_with_report(task, message_id, attempts):
            if not raced:
                raced.append(True)
                report_station_status(order_id, "kitchen", "InProgress", "race-1")
            return original(task, message_id, attempts)

        with patch.object(StationTask, "mark_published", mark_published_with_report):
            assert publish_ticket(task_id) is True

        task = current_domain.repository_for(StationTask).get(task_id)
        assert task.status == "InProgress"
        assert task.last_token == "race-1"
        assert task.ticket_published is True

    def test_report_from_another_thread_waits_for_bookkeeping(self, coordination_domain, ticket_topic):
        order_id, task_id = _unpublished_kitchen_task(ticket_topic)
        original = StationTask.mark_published
        blocked = []

        def _report():
            with coordination_domain.domain_context():
                report_station_status(order_id, "kitchen", "InProgress", "race-1")

        reporter = threading.Thread(target=_report)

        def mark_published_while_reporting(task, message_id, attempts):
            if not blocked:
                reporter.start()
                reporter.join(timeout=0.2)
                blocked.append(reporter.is_alive())
            return original(task, message_id, attempts)

        with patch.object(StationTask, "mark_published", mark_published_while_reporting):
            assert publish_ticket(task_id) is True
        reporter.join(timeout=5)

        assert blocked == [True]
        task = current_domain.repository_for(StationTask).get(task_id)
        assert task.status == "InProgress"
        assert task.last_token == "race-1"
        assert task.ticket_published is True

    def test_failure_bookkeeping_keeps_report(self, ticket_topic):
        order_id, task_id = _unpublished_kitchen_task(ticket_topic)
        ticket_topic.configure(fail_publishes=100)
        original = StationTask.record_publish_failure
        raced = []

        def record_failure_with_report(task, attempts):
            if not raced:
                raced.append(True)
                report_station_status(order_id, "kitchen", "InProgress", "race-1")
            return original(task, attempts)

        with patch.object(StationTask, "record_publish_failure", record_failure_with_report):
            assert publish_ticket(task_id) is False

        task = current_domain.repository_for(StationTask).get(task_id)
        assert task.status == "InProgress"
        assert task.publish_attempts == 6


class TestBackgroundDispatch:
    @pytest.fixture()
    def pool(self, monkeypatch, coordination_domain):
        monkeypatch.setenv("FAN_OUT_DISPATCH", "background")
        pool = FanOutPool(coordination_domain)
        monkeypatch.setattr(fan_out, "_pool_instance", pool)
        yield pool
        pool.shutdown()

    def test_submit_does_not_wait_for_publish(self, pool, ticket_topic, monkeypatch):
        monkeypatch.setenv("DELIVERY_INITIAL_INTERVAL", "0.5")
        monkeypatch.setenv("DELIVERY_MAX_INTERVAL", "0.5")
        ticket_topic.configure(fail_publishes=2)

        started = time.monotonic()
        order_id = _submit()
        assert time.monotonic() - started < 0.5

        assert pool.drain(timeout=10)
        assert all(t.ticket_published for t in _tasks(order_id))

    def test_dispatcher_hands_tasks_to_pool(self, pool):
        with patch.object(pool, "submit") as submit:
            order_id = _submit()
        assert submit.call_count == 2
        assert sorted(call.args[0] for call in submit.call_args_list) == sorted(str(t.id) for t in _tasks(order_id))

    def test_failed_background_publish_left_for_sweep(self, pool, ticket_topic):
        ticket_topic.configure(fail_publishes=100)
        order_id = _submit()
        assert pool.drain(timeout=10)
        assert not any(t.ticket_published for t in _tasks(order_id))

        ticket_topic.configure(fail_publishes=0)
        assert current_domain.process(RepublishPendingTickets(), asynchronous=False) == 2

    def test_unexpected_error_is_contained(self, pool):
        with patch.object(fan_out, "publish_ticket", side_effect=RuntimeError("boom")):
            future = pool.submit("task-1")
            assert future.result(timeout=5) is False
