"""Role dashboard state refreshed from the backend in one parallel batch."""
import logging
import threading
from concurrent.futures import ThreadPoolExecutor
from typing import Dict, List, Optional

from core.errors import PortalError
from core.workflow import Record, RecordKind, WorkflowEngine

logger = logging.getLogger(__name__)


class Dashboard:
    """Holds the collections visible to the signed-in role.

    ``refresh()`` fetches every visible collection concurrently and applies
    the results together. If any fetch fails nothing is applied and the
    previous collections stay on screen.
    """

    def __init__(self, engine: WorkflowEngine, max_workers: int = 4) -> None:
        self.engine = engine
        self.max_workers = max_workers
        self._collections: Dict[RecordKind, List[Record]] = {}
        self._lock = threading.Lock()
        self.last_error: Optional[Exception] = None

    @property
    def collections(self) -> Dict[RecordKind, List[Record]]:
        with self._lock:
            return dict(self._collections)

    def records(self, kind: RecordKind) -> List[Record]:
        with self._lock:
            return list(self._collections.get(kind, []))

    def counts(self) -> Dict[RecordKind, int]:
        with self._lock:
            return {kind: len(records) for kind, records in self._collections.items()}

    def refresh(self) -> bool:
        """Reload all visible collections; returns False when the refresh was discarded."""
        kinds = self.engine.visible_kinds()
        if not kinds:
            with self._lock:
                self._collections = {}
            return True

        try:
            with ThreadPoolExecutor(max_workers=min(self.max_workers, len(kinds))) as pool:
                futures = {kind: pool.submit(self.engine.list_records, kind) for kind in kinds}
                loaded = {kind: future.result() for kind, future in futures.items()}
        except PortalError as exc:
            self.last_error = exc
            logger.warning("Dashboard refresh failed; keeping previous data", extra={"error": str(exc)})
            return False

        with self._lock:
            self._collections = loaded
        self.last_error = None
        logger.info("Dashboard refreshed", extra={"kinds": [k.value for k in kinds]})
        return True

    def transition(self, kind: RecordKind, record_id: str, new_status) -> bool:
        """Change a record's status, then reload so the view reflects the backend."""
        self.engine.transition(kind, record_id, new_status)
        return self.refresh()
