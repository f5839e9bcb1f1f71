"""Environment-driven settings and wiring for portal clients."""
import os
from dataclasses import dataclass

from dotenv import load_dotenv

from client.http_backend import DEFAULT_TIMEOUT, HttpBackend
from client.vehicle import DEFAULT_POLL_SECONDS
from core.identity import FileSessionStore, MemorySessionStore, SessionManager
from core.workflow import WorkflowEngine


@dataclass(frozen=True)
class ClientSettings:
    base_url: str = "http://localhost:5000"
    timeout: float = DEFAULT_TIMEOUT
    session_file: str = ""
    vehicle_poll_seconds: float = DEFAULT_POLL_SECONDS

    @classmethod
    def from_env(cls) -> "ClientSettings":
        load_dotenv()
        return cls(
            base_url=os.getenv("SWM_API_URL", cls.base_url),
            timeout=float(os.getenv("SWM_API_TIMEOUT", DEFAULT_TIMEOUT)),
            session_file=os.getenv("SWM_SESSION_FILE", ""),
            vehicle_poll_seconds=float(os.getenv("VEHICLE_POLL_SECONDS", DEFAULT_POLL_SECONDS)),
        )


def build_services(settings: ClientSettings, http_session=None) -> tuple[SessionManager, WorkflowEngine]:
    """Wire one session manager and workflow engine against the REST backend."""
    backend = HttpBackend(settings.base_url, session=http_session, timeout=settings.timeout)
    store = FileSessionStore(settings.session_file) if settings.session_file else MemorySessionStore()
    session = SessionManager(backend, store)
    return session, WorkflowEngine(session, backend)
