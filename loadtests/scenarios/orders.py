"""Order coordination load test scenarios.

Two stateful SequentialTaskSet journeys: an order prepared at every station
it touches until the coordinator reports it Completed, and an order that is
cancelled before the stations finish. Both run against a single process
serving the coordination and stations APIs, with station workers running.
"""

import time

from locust import HttpUser, SequentialTaskSet, between, task

from loadtests.data_generators import cancellation_data, order_data
from loadtests.helpers.response import extract_error_detail
from loadtests.helpers.state import OrderState

# Workers pull tickets asynchronously; give them a moment
TICKET_WAIT_SECONDS = 5.0
TICKET_POLL_INTERVAL = 0.25


def submit_order(taskset, payload) -> bool:
    with taskset.client.post(
        "/orders",
        json=payload,
        catch_response=True,
        name="POST /orders",
    ) as resp:
        if resp.status_code == 201:
            taskset.state.order_id = resp.json()["order_id"]
            return True
        resp.failure(f"Submit order failed: {resp.status_code} — {extract_error_detail(resp)}")
        return False


def find_tickets(taskset) -> None:
    """Wait until every station of the order holds its ticket."""
    state = taskset.state
    deadline = time.monotonic() + TICKET_WAIT_SECONDS
    while time.monotonic() < deadline:
        for station in state.stations:
            if station in state.ticket_ids:
                continue
            resp = taskset.client.get("/tickets", params={"station": station}, name="GET /tickets?station={station}")
            if resp.status_code != 200:
                continue
            for ticket in resp.json()["tickets"]:
                if ticket["order_id"] == state.order_id:
                    state.ticket_ids[station] = ticket["ticket_id"]
        if len(state.ticket_ids) == len(state.stations):
            return
        time.sleep(TICKET_POLL_INTERVAL)


class OrderPreparationJourney(SequentialTaskSet):
    """Submit -> Status -> Start -> Finish -> Collect at each station -> Status.

    The happy path. Every staff action reports to the coordinator, so this
    exercises fan-out, intake, status reporting and the status projection.
    """

    def on_start(self):
        self.state = OrderState()

    @task
    def submit(self):
        if not submit_order(self, order_data()):
            self.interrupt()

    @task
    def read_status(self):
        with self.client.get(
            f"/orders/{self.state.order_id}/status",
            catch_response=True,
            name="GET /orders/{id}/status",
        ) as resp:
            if resp.status_code == 200:
                self.state.stations = [entry["station"] for entry in resp.json()["stations"]]
            else:
                resp.failure(f"Order status failed: {resp.status_code} — {extract_error_detail(resp)}")
                self.interrupt()

    @task
    def wait_for_tickets(self):
        find_tickets(self)
        if len(self.state.ticket_ids) < len(self.state.stations):
            self.interrupt()

    @task
    def prepare(self):
        for station, ticket_id in self.state.ticket_ids.items():
            for action in ("start", "finish", "collect"):
                with self.client.put(
                    f"/tickets/{ticket_id}/{action}",
                    catch_response=True,
                    name=f"PUT /tickets/{{id}}/{action}",
                ) as resp:
                    if resp.status_code != 200:
                        resp.failure(
                            f"{action.capitalize()} {station} ticket failed: "
                            f"{resp.status_code} — {extract_error_detail(resp)}"
                        )
                        return

    @task
    def check_completed(self):
        with self.client.get(
            f"/orders/{self.state.order_id}/status",
            catch_response=True,
            name="GET /orders/{id}/status",
        ) as resp:
            if resp.status_code != 200:
                resp.failure(f"Order status failed: {resp.status_code} — {extract_error_detail(resp)}")
            elif resp.json()["aggregate_status"] != "Completed":
                resp.failure(f"Order not completed: {resp.json()['aggregate_status']}")

    @task
    def done(self):
        self.interrupt()


class OrderCancellationJourney(SequentialTaskSet):
    """Submit -> Cancel -> Cancel again (same token) -> Status -> Summary.

    The repeat cancel must be acknowledged without changing anything.
    """

    def on_start(self):
        self.state = OrderState()
        self.cancellation = cancellation_data()

    @task
    def submit(self):
        if not submit_order(self, order_data(food=1, drinks=1)):
            self.interrupt()

    @task
    def cancel(self):
        with self.client.put(
            f"/orders/{self.state.order_id}/cancel",
            json=self.cancellation,
            catch_response=True,
            name="PUT /orders/{id}/cancel",
        ) as resp:
            if resp.status_code != 200:
                resp.failure(f"Cancel order failed: {resp.status_code} — {extract_error_detail(resp)}")
                self.interrupt()

    @task
    def cancel_again(self):
        with self.client.put(
            f"/orders/{self.state.order_id}/cancel",
            json=self.cancellation,
            catch_response=True,
            name="PUT /orders/{id}/cancel",
        ) as resp:
            if resp.status_code != 200:
                resp.failure(f"Repeat cancel failed: {resp.status_code} — {extract_error_detail(resp)}")

    @task
    def check_cancelled(self):
        with self.client.get(
            f"/orders/{self.state.order_id}/status",
            catch_response=True,
            name="GET /orders/{id}/status",
        ) as resp:
            if resp.status_code != 200:
                resp.failure(f"Order status failed: {resp.status_code} — {extract_error_detail(resp)}")
            elif resp.json()["aggregate_status"] != "Cancelled":
                resp.failure(f"Order not cancelled: {resp.json()['aggregate_status']}")

    @task
    def read_summary(self):
        # The summary is a projection and may lag behind the status
        with self.client.get(
            f"/orders/{self.state.order_id}/summary",
            catch_response=True,
            name="GET /orders/{id}/summary",
        ) as resp:
            if resp.status_code in (200, 404):
                resp.success()
            else:
                resp.failure(f"Order summary failed: {resp.status_code} — {extract_error_detail(resp)}")

    @task
    def done(self):
        self.interrupt()


class OrderingUser(HttpUser):
    """Customers and station staff working through orders.

    Most orders are prepared to completion; some are cancelled.
    """

    wait_time = between(1, 3)
    tasks = {
        OrderPreparationJourney: 8,
        OrderCancellationJourney: 2,
    }
