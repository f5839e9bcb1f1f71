"""Client side of the portal: REST backend, dashboard state and vehicle tracking."""
from client.dashboard import Dashboard
from client.http_backend import HttpBackend
from client.vehicle import VehiclePoller

__all__ = ["Dashboard", "HttpBackend", "VehiclePoller"]
