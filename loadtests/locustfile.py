"""StationFlow Load Testing — Locust entry point.

Discovers all user classes from the scenarios package.
Run specific scenarios with Locust's class selection.

Usage:
    # All scenarios (web UI):
    locust -f loadtests/locustfile.py

    # Order journeys only:
    locust -f loadtests/locustfile.py OrderingUser

    # Stress test:
    locust -f loadtests/locustfile.py OrderFloodUser

    # Headless (CI mode):
    locust -f loadtests/locustfile.py OrderingUser --headless \
           -u 50 -r 5 -t 300s --csv=results/loadtest
"""

import logging
import time

import requests
from locust import events

# Import all user classes so Locust discovers them
from loadtests.helpers.response import extract_error_detail
from loadtests.scenarios.orders import OrderingUser  # noqa: F401
from loadtests.scenarios.stress import OrderFloodUser, ReportStormUser  # noqa: F401

logger = logging.getLogger("loadtest")


@events.request.add_listener
def on_request(request_type, name, response, exception, **_kw):
    """Log error details for every failed request.

    Extracts the API error body so you see "Cannot move kitchen task from
    Ready to InProgress" instead of just "409".
    """
    if exception:
        logger.error("[EXCEPTION] %s %s: %s", request_type, name, exception)
    elif response is not None and response.status_code >= 400:
        detail = extract_error_detail(response)
        logger.error("[%s] %s %s: %s", response.status_code, request_type, name, detail)


@events.test_start.add_listener
def on_test_start(environment, **_kwargs):
    print(f"\n[LOADTEST] Started at {time.strftime('%H:%M:%S')}")
    print(f"[LOADTEST] Target host: {environment.host}")
    print()


@events.test_stop.add_listener
def on_test_stop(environment, **_kwargs):
    """Report failed status reports left behind when the test ends."""
    print(f"\n[LOADTEST] Stopped at {time.strftime('%H:%M:%S')}")
    try:
        resp = requests.get(f"{environment.host}/tickets/failed-reports", timeout=5)
        failed = resp.json()
        print(f"[LOADTEST] Status reports awaiting an operator: {len(failed)}")
        for entry in failed[:10]:
            print(f"  {entry['station']} {entry['order_id']} {entry['status']}: {entry['reason']}")
        print()
    except (requests.RequestException, ValueError) as e:
        print(f"[LOADTEST] Could not fetch failed reports: {e}\n")
