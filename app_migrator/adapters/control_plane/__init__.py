"""Control-plane client adapters."""

from app_migrator.adapters.control_plane.fake import FakeControlPlane
from app_migrator.adapters.control_plane.http import CloudControllerClient

__all__ = ["CloudControllerClient", "FakeControlPlane"]
