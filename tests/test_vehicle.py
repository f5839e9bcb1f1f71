"""
Tests for the vehicle poller.

Verifies:
- A poll stores the latest location
- Failures keep the last known location
- start/stop runs and joins the background thread
- A failing update listener is logged, not fatal
"""

import threading

from conftest import make_location, sign_in_citizen, sign_in_staff
from client.vehicle import DEFAULT_POLL_SECONDS, VehiclePoller


class TestVehiclePoller:
    def test_default_interval(self, engine):
        assert VehiclePoller(engine).interval == DEFAULT_POLL_SECONDS == 30

    def test_poll_once(self, engine, session, backend):
        sign_in_staff(session, "supervisor")
        backend.location = make_location()
        assert VehiclePoller(engine).poll_once().name == "Truck 7"

    def test_failure_keeps_last_location(self, engine, session, backend):
        sign_in_staff(session, "admin")
        backend.location = make_location()
        poller = VehiclePoller(engine)
        poller.poll_once()

        backend.fail_vehicle = True
        assert poller.poll_once().name == "Truck 7"

    def test_no_report_keeps_last_location(self, engine, session, backend):
        sign_in_staff(session, "admin")
        backend.location = make_location()
        poller = VehiclePoller(engine)
        poller.poll_once()
        backend.location = None
        assert poller.location.name == "Truck 7"
        assert poller.poll_once().name == "Truck 7"

    def test_citizen_poll_gets_location(self, engine, session, backend):
        sign_in_citizen(session)
        backend.location = make_location()
        assert VehiclePoller(engine).poll_once().name == "Truck 7"

    def test_failing_listener_does_not_stop_polling(self, engine, session, backend):
        sign_in_citizen(session)
        backend.location = make_location()
        seen = []

        def listener(location):
            seen.append(location)
            raise RuntimeError("display gone")

        poller = VehiclePoller(engine, on_update=listener)
        assert poller.poll_once().name == "Truck 7"
        assert poller.poll_once().name == "Truck 7"
        assert len(seen) == 2

    def test_failing_listener_keeps_thread_alive(self, engine, session, backend):
        sign_in_staff(session, "supervisor")
        backend.location = make_location()
        calls = []
        second = threading.Event()

        def listener(location):
            calls.append(location)
            if len(calls) >= 2:
                second.set()
            raise RuntimeError("display gone")

        poller = VehiclePoller(engine, interval_seconds=0.01, on_update=listener)
        poller.start()
        assert second.wait(timeout=2)
        assert poller.is_running
        poller.stop(timeout=2)

    def test_start_and_stop(self, engine, session, backend):
        sign_in_staff(session, "supervisor")
        backend.location = make_location(name="Truck 9")
        updated = threading.Event()
        poller = VehiclePoller(engine, interval_seconds=0.01, on_update=lambda loc: updated.set())

        poller.start()
        assert updated.wait(timeout=2)
        poller.stop(timeout=2)

        assert not poller.is_running
        assert poller.location.name == "Truck 9"
        polls = len([c for c in backend.calls if c[0] == "vehicle"])
        assert polls >= 1
        # No further polls after stop.
        assert len([c for c in backend.calls if c[0] == "vehicle"]) == polls

    def test_stop_without_start(self, engine):
        VehiclePoller(engine).stop()
