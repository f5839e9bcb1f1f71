"""Background poller for the collection vehicle's last reported position."""
import logging
import threading
from typing import Callable, Optional

from core.backend import VehicleLocation
from core.errors import PortalError
from core.workflow import WorkflowEngine

logger = logging.getLogger(__name__)

DEFAULT_POLL_SECONDS = 30


class VehiclePoller:
    """Polls ``engine.vehicle_location()`` on a fixed interval until stopped.

    Failures are logged and the last known location is kept.
    """

    def __init__(
        self,
        engine: WorkflowEngine,
        interval_seconds: float = DEFAULT_POLL_SECONDS,
        on_update: Optional[Callable[[VehicleLocation], None]] = None,
    ) -> None:
        self.engine = engine
        self.interval = interval_seconds
        self.on_update = on_update
        self._location: Optional[VehicleLocation] = None
        self._stop_event = threading.Event()
        self._thread: Optional[threading.Thread] = None
        self._lock = threading.Lock()

    @property
    def location(self) -> Optional[VehicleLocation]:
        with self._lock:
            return self._location

    @property
    def is_running(self) -> bool:
        return self._thread is not None and self._thread.is_alive()

    def poll_once(self) -> Optional[VehicleLocation]:
        try:
            location = self.engine.vehicle_location()
        except PortalError as exc:
            logger.warning("Vehicle poll failed", extra={"error": str(exc)})
            return self.location

        if location is not None:
            with self._lock:
                self._location = location
            if self.on_update is not None:
                try:
                    self.on_update(location)
                except Exception:
                    logger.exception("Vehicle location listener failed")
        return self.location

    def start(self) -> None:
        if self.is_running:
            return
        self._stop_event.clear()
        self._thread = threading.Thread(target=self._run_loop, name="vehicle-poller", daemon=True)
        self._thread.start()
        logger.info("Vehicle poller started", extra={"interval": self.interval})

    def stop(self, timeout: Optional[float] = None) -> None:
        """Cancel the poll loop and wait for the thread to exit."""
        self._stop_event.set()
        if self._thread is not None and self._thread.is_alive():
            self._thread.join(timeout=timeout)
        self._thread = None
        logger.info("Vehicle poller stopped")

    def _run_loop(self) -> None:
        while not self._stop_event.is_set():
            self.poll_once()
            self._stop_event.wait(timeout=self.interval)
