"""Stress test scenarios for the fan-out and reporting pipeline.

OrderFloodUser submits orders as fast as it can so the dispatcher and the
station workers fall behind. ReportStormUser hammers one order's tasks with
status reports, most of them duplicates, to load the idempotency check and
the per-task lock.
"""

import uuid

from locust import HttpUser, constant_pacing, task

from loadtests.data_generators import order_data


class OrderFloodUser(HttpUser):
    """Stress test: maximum order throughput.

    Every task submits a new order, so there are no sequential dependencies
    and no contention on a single task. Watch the unpublished ticket count
    and the station subscriptions' pending lists grow, then drain.
    """

    wait_time = constant_pacing(0.1)  # ~10 requests/sec per user

    @task(3)
    def submit_mixed_order(self):
        self.client.post("/orders", json=order_data(food=1, drinks=1), name="[STRESS] POST /orders (mixed)")

    @task(1)
    def submit_kitchen_order(self):
        self.client.post("/orders", json=order_data(food=2, drinks=0), name="[STRESS] POST /orders (kitchen)")

    @task(1)
    def submit_barista_order(self):
        self.client.post("/orders", json=order_data(food=0, drinks=2), name="[STRESS] POST /orders (barista)")


class ReportStormUser(HttpUser):
    """Stress test: duplicate status reports against the same tasks.

    Reports carry a small pool of tokens, so most are redeliveries that the
    coordinator must acknowledge without applying. 409s are expected once a
    task has moved past the reported status.
    """

    wait_time = constant_pacing(0.05)  # ~20 req/sec per user

    def on_start(self):
        resp = self.client.post("/orders", json=order_data(food=1, drinks=1), name="[STORM] POST /orders")
        self.order_id = resp.json()["order_id"] if resp.status_code == 201 else None
        self.tokens = {status: uuid.uuid4().hex for status in ("InProgress", "Ready")}

    @task
    def report(self):
        if self.order_id is None:
            return
        for station in ("kitchen", "barista"):
            for status, token in self.tokens.items():
                with self.client.put(
                    f"/orders/{self.order_id}/stations/{station}/status",
                    json={"status": status, "idempotency_token": token},
                    catch_response=True,
                    name="[STORM] PUT /orders/{id}/stations/{station}/status",
                ) as resp:
                    if resp.status_code in (200, 409):
                        resp.success()
