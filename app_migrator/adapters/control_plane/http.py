"""HTTP client for a Cloud Controller v2 style control-plane API.

Responses follow the v2 envelope::

    {
        "total_results": 2,
        "next_url": "/v2/apps?page=2&results-per-page=1",
        "resources": [{"metadata": {"guid": ..., "updated_at": ...}, "entity": {...}}]
    }

Error statuses surface as ``httpx.HTTPStatusError``; wrapping calls in the
retrying transport turns 5xx into retries. A 404 on a guid lookup and an empty
name lookup raise ``EntityNotFoundError``.
"""

from typing import Any, Dict, List, Optional

import httpx

from app_migrator.core.config import ControlPlaneConfig, MigrationDirection, MigratorSettings
from app_migrator.core.exceptions import EntityNotFoundError
from app_migrator.core.logging import ContextualLogger
from app_migrator.core.logging import logger as default_logger
from app_migrator.schemas import App, Domain, Org, Space, Stack


class CloudControllerClient:
    """ControlPlaneClient backed by ``httpx.AsyncClient``."""

    def __init__(
        self,
        config: ControlPlaneConfig,
        http_client: Optional[httpx.AsyncClient] = None,
        logger: Optional[ContextualLogger] = None,
    ):
        """Initialize the client.

        Args:
            config: API URL, token and TLS/timeout options
            http_client: Pre-built client (tests pass one with a mock transport)
            logger: Contextual logger
        """
        self.config = config
        self.logger = logger or default_logger.with_context(
            component="cloud_controller", api_url=config.api_url
        )
        headers = {"Accept": "application/json"}
        if config.token:
            headers["Authorization"] = f"bearer {config.token}"
        self._client = http_client or httpx.AsyncClient(
            base_url=config.api_url,
            headers=headers,
            verify=config.verify_ssl,
            timeout=config.request_timeout_seconds,
        )

    @classmethod
    def from_settings(
        cls,
        settings: MigratorSettings,
        direction: MigrationDirection,
        logger: Optional[ContextualLogger] = None,
    ) -> "CloudControllerClient":
        """Build a client for the source or target control plane."""
        config = settings.control_plane(direction)
        logger = logger or default_logger.with_context(
            component="cloud_controller",
            direction=MigrationDirection(direction).value,
            api_url=config.api_url,
        )
        return cls(config, logger=logger)

    async def __aenter__(self) -> "CloudControllerClient":
        """Enter the async context."""
        return self

    async def __aexit__(self, *exc_info) -> None:
        """Close the underlying HTTP client."""
        await self.aclose()

    async def aclose(self) -> None:
        """Close the underlying HTTP client."""
        await self._client.aclose()

    # -------------------------------------------------------------------------
    # Orgs and spaces
    # -------------------------------------------------------------------------

    async def get_org_by_name(self, name: str) -> Org:
        """Fetch an org by name."""
        resource = await self._get_one_by_name("/v2/organizations", "org", name)
        return _to_org(resource)

    async def get_org_by_guid(self, guid: str) -> Org:
        """Fetch an org by guid."""
        return _to_org(await self._get_resource(f"/v2/organizations/{guid}", "org", guid))

    async def get_space_by_name(self, name: str, org_guid: str) -> Space:
        """Fetch a space by name inside an org."""
        resource = await self._get_one_by_name(
            f"/v2/organizations/{org_guid}/spaces", "space", name, scope=f"org {org_guid}"
        )
        return _to_space(resource)

    async def get_space_by_guid(self, guid: str) -> Space:
        """Fetch a space by guid."""
        return _to_space(await self._get_resource(f"/v2/spaces/{guid}", "space", guid))

    # -------------------------------------------------------------------------
    # Apps
    # -------------------------------------------------------------------------

    async def list_apps_by_query(self, params: Dict[str, Any]) -> List[App]:
        """List apps; a ``page`` param fetches that page only, else every page."""
        resources = await self._list("/v2/apps", params)
        return [_to_app(resource) for resource in resources]

    async def get_app_by_guid(self, guid: str) -> App:
        """Fetch an app by guid."""
        return _to_app(await self._get_resource(f"/v2/apps/{guid}", "app", guid))

    # -------------------------------------------------------------------------
    # Stacks and domains
    # -------------------------------------------------------------------------

    async def list_stacks_by_query(self, params: Dict[str, Any]) -> List[Stack]:
        """List stacks matching a query."""
        resources = await self._list("/v2/stacks", params)
        return [_to_stack(resource) for resource in resources]

    async def get_stack_by_guid(self, guid: str) -> Stack:
        """Fetch a stack by guid."""
        return _to_stack(await self._get_resource(f"/v2/stacks/{guid}", "stack", guid))

    async def get_domain_by_name(self, name: str) -> Optional[Domain]:
        """Fetch a private domain by name."""
        resources = await self._list("/v2/private_domains", {"q": [f"name:{name}"]})
        return _to_domain(resources[0], shared=False) if resources else None

    async def get_shared_domain_by_name(self, name: str) -> Optional[Domain]:
        """Fetch a shared domain by name."""
        resources = await self._list("/v2/shared_domains", {"q": [f"name:{name}"]})
        return _to_domain(resources[0], shared=True) if resources else None

    async def get_domain_by_guid(self, guid: str) -> Domain:
        """Fetch a domain by guid, trying private domains before shared ones."""
        try:
            resource = await self._get_resource(f"/v2/private_domains/{guid}", "domain", guid)
        except EntityNotFoundError:
            resource = await self._get_resource(f"/v2/shared_domains/{guid}", "domain", guid)
            return _to_domain(resource, shared=True)
        return _to_domain(resource, shared=False)

    # -------------------------------------------------------------------------
    # Request helpers
    # -------------------------------------------------------------------------

    async def _get_json(self, url: str, params: Optional[Dict[str, Any]] = None) -> Dict[str, Any]:
        response = await self._client.get(url, params=params)
        response.raise_for_status()
        return response.json()

    async def _get_resource(self, url: str, kind: str, guid: str) -> Dict[str, Any]:
        try:
            return await self._get_json(url)
        except httpx.HTTPStatusError as e:
            if e.response.status_code == 404:
                raise EntityNotFoundError(kind, guid, count=0) from e
            raise

    async def _get_one_by_name(
        self, url: str, kind: str, name: str, scope: Optional[str] = None
    ) -> Dict[str, Any]:
        resources = await self._list(url, {"q": [f"name:{name}"]})
        if len(resources) != 1:
            raise EntityNotFoundError(kind, name, scope=scope, count=len(resources))
        return resources[0]

    async def _list(self, url: str, params: Dict[str, Any]) -> List[Dict[str, Any]]:
        """Collect resources; follows ``next_url`` unless a page was requested."""
        body = await self._get_json(url, params)
        resources = list(body.get("resources") or [])
        if "page" in params:
            return resources

        next_url = body.get("next_url")
        while next_url:
            self.logger.debug(f"Following {next_url}")
            body = await self._get_json(next_url)
            resources.extend(body.get("resources") or [])
            next_url = body.get("next_url")
        return resources


def _guid(resource: Dict[str, Any]) -> str:
    return resource["metadata"]["guid"]


def _to_org(resource: Dict[str, Any]) -> Org:
    return Org(guid=_guid(resource), name=resource["entity"]["name"])


def _to_space(resource: Dict[str, Any]) -> Space:
    entity = resource["entity"]
    return Space(
        guid=_guid(resource),
        name=entity["name"],
        organization_guid=entity["organization_guid"],
    )


def _to_app(resource: Dict[str, Any]) -> App:
    entity = resource["entity"]
    return App(
        guid=_guid(resource),
        name=entity["name"],
        space_guid=entity["space_guid"],
        stack_guid=entity.get("stack_guid"),
        state=entity.get("state"),
        updated_at=resource["metadata"].get("updated_at"),
    )


def _to_stack(resource: Dict[str, Any]) -> Stack:
    return Stack(guid=_guid(resource), name=resource["entity"]["name"])


def _to_domain(resource: Dict[str, Any], shared: bool) -> Domain:
    return Domain(guid=_guid(resource), name=resource["entity"]["name"], shared=shared)
