"""ControlPlaneClient protocol for the remote API apps are migrated between.

The engine only needs a handful of lookups and one paged listing call. Each
method raises ``httpx.HTTPStatusError`` for error responses so callers can map
5xx statuses to ``RetryableError`` inside a retried operation.

Implementations:
- CloudControllerClient: adapters/control_plane/http.py
- FakeControlPlane: adapters/control_plane/fake.py (tests)
"""

from typing import Any, Dict, List, Optional, Protocol, runtime_checkable

from app_migrator.schemas import App, Domain, Org, Space, Stack


@runtime_checkable
class ControlPlaneClient(Protocol):
    """Protocol for the control-plane lookups used by the cache and exporters."""

    async def get_org_by_name(self, name: str) -> Org:
        """Fetch an org by name."""
        ...

    async def get_org_by_guid(self, guid: str) -> Org:
        """Fetch an org by guid."""
        ...

    async def get_space_by_name(self, name: str, org_guid: str) -> Space:
        """Fetch a space by name inside an org."""
        ...

    async def get_space_by_guid(self, guid: str) -> Space:
        """Fetch a space by guid."""
        ...

    async def list_apps_by_query(self, params: Dict[str, Any]) -> List[App]:
        """List apps matching a query.

        Args:
            params: Query parameters, e.g. ``{"q": ["name:web", "space_guid:..."],
                "results-per-page": 50, "page": 2}``

        Returns:
            The apps on the requested page (all apps when no page is given).
        """
        ...

    async def get_app_by_guid(self, guid: str) -> App:
        """Fetch an app by guid."""
        ...

    async def list_stacks_by_query(self, params: Dict[str, Any]) -> List[Stack]:
        """List stacks matching a query."""
        ...

    async def get_stack_by_guid(self, guid: str) -> Stack:
        """Fetch a stack by guid."""
        ...

    async def get_domain_by_name(self, name: str) -> Optional[Domain]:
        """Fetch a private domain by name, or None if there is none."""
        ...

    async def get_shared_domain_by_name(self, name: str) -> Optional[Domain]:
        """Fetch a shared domain by name, or None if there is none."""
        ...

    async def get_domain_by_guid(self, guid: str) -> Domain:
        """Fetch a private or shared domain by guid."""
        ...
