"""Read-through cache of control-plane entities.

Each entity kind has an ``EntityIndex`` keyed two ways: by guid (primary) and by
(name, parent scope) (secondary). Misses are fetched through the retrying
transport and stored in both indices under that kind's write lock. Entries are
never evicted; they are only overwritten, e.g. by ``put_app`` after an update.

Concurrent misses for the same key are not coalesced: each caller fetches and
stores, and the last write wins. Entities are reference data within one run,
so the duplicate values are equivalent.
"""

import asyncio
from enum import Enum
from typing import Any, Awaitable, Callable, Dict, Generic, Optional, Tuple, TypeVar

from app_migrator.core.exceptions import EntityNotFoundError
from app_migrator.core.logging import ContextualLogger
from app_migrator.core.logging import logger as default_logger
from app_migrator.core.protocols import ControlPlaneClient
from app_migrator.platform.transport import RetryingTransport
from app_migrator.schemas import App, ControlPlaneEntity, Domain, Org, Space, Stack

T = TypeVar("T", bound=ControlPlaneEntity)
R = TypeVar("R")

GLOBAL_SCOPE = ""


class EntityKind(str, Enum):
    """Kinds of entities held by the cache."""

    ORG = "org"
    SPACE = "space"
    APP = "app"
    STACK = "stack"
    DOMAIN = "domain"


class EntityIndex(Generic[T]):
    """Primary (guid) and secondary (name, scope) index for one entity kind.

    Every guid reachable through the secondary index is present in the primary
    index; an entity fetched by guid only may be missing from the secondary one.
    """

    def __init__(self, kind: EntityKind):
        """Create an empty index."""
        self.kind = kind
        self._by_guid: Dict[str, T] = {}
        self._by_name: Dict[Tuple[str, str], str] = {}

    def get_by_guid(self, guid: str) -> Optional[T]:
        """Return the cached entity for a guid, if any."""
        return self._by_guid.get(guid)

    def get_by_name(self, name: str, scope: str = GLOBAL_SCOPE) -> Optional[T]:
        """Return the cached entity for a (name, scope) pair, if any."""
        guid = self._by_name.get((name, scope))
        if guid is None:
            return None
        return self._by_guid.get(guid)

    def put(self, entity: T, scope: Optional[str] = GLOBAL_SCOPE) -> None:
        """Store an entity; a ``None`` scope stores it by guid only."""
        self._by_guid[entity.guid] = entity
        if scope is not None:
            self._by_name[(entity.name, scope)] = entity.guid

    def clear(self) -> None:
        """Drop every entry."""
        self._by_guid.clear()
        self._by_name.clear()

    def __len__(self) -> int:
        """Number of entities held by guid."""
        return len(self._by_guid)


class EntityCache:
    """Per-process read-through cache in front of a control-plane client.

    Constructed explicitly and passed to whoever needs it. Reads never await,
    so a hit returns a consistent snapshot without taking a lock; stores go
    through a lock per entity kind.
    """

    def __init__(
        self,
        client: ControlPlaneClient,
        transport: RetryingTransport,
        logger: Optional[ContextualLogger] = None,
    ):
        """Initialize the cache.

        Args:
            client: Control-plane client used on misses
            transport: Retrying transport wrapping every remote fetch
            logger: Contextual logger
        """
        self.client = client
        self.transport = transport
        self.logger = logger or default_logger.with_context(component="entity_cache")

        self._indices: Dict[EntityKind, EntityIndex] = {
            kind: EntityIndex(kind) for kind in EntityKind
        }
        self._locks: Dict[EntityKind, asyncio.Lock] = {kind: asyncio.Lock() for kind in EntityKind}

    # -------------------------------------------------------------------------
    # Generic contract
    # -------------------------------------------------------------------------

    async def get_by_name(self, kind: EntityKind, name: str, scope: str = GLOBAL_SCOPE) -> Any:
        """Look up an entity by name within its parent scope.

        Args:
            kind: Entity kind
            name: Entity name
            scope: Parent guid (org guid for spaces, space guid for apps); ignored
                for orgs, stacks and domains

        Raises:
            EntityNotFoundError: The control plane has no single match.
        """
        if kind is EntityKind.ORG:
            return await self.get_org_by_name(name)
        if kind is EntityKind.SPACE:
            return await self.get_space_by_name(name, scope)
        if kind is EntityKind.APP:
            return await self.get_app_by_name(name, scope)
        if kind is EntityKind.STACK:
            return await self.get_stack_by_name(name)
        return await self.get_domain_by_name(name)

    async def get_by_id(self, kind: EntityKind, guid: str) -> Any:
        """Look up an entity by guid."""
        if kind is EntityKind.ORG:
            return await self.get_org_by_guid(guid)
        if kind is EntityKind.SPACE:
            return await self.get_space_by_guid(guid)
        if kind is EntityKind.APP:
            return await self.get_app_by_guid(guid)
        if kind is EntityKind.STACK:
            return await self.get_stack_by_guid(guid)
        return await self.get_domain_by_guid(guid)

    async def put(
        self, kind: EntityKind, entity: ControlPlaneEntity, scope: str = GLOBAL_SCOPE
    ) -> None:
        """Overwrite an entry with a fresher copy (e.g. after create/update)."""
        async with self._locks[kind]:
            self._indices[kind].put(entity, scope)

    def reset(self) -> None:
        """Empty every index."""
        for index in self._indices.values():
            index.clear()

    def size(self, kind: EntityKind) -> int:
        """Number of cached entities of one kind."""
        return len(self._indices[kind])

    # -------------------------------------------------------------------------
    # Orgs
    # -------------------------------------------------------------------------

    async def get_org_by_name(self, name: str) -> Org:
        """Get an org by name."""
        cached = self._indices[EntityKind.ORG].get_by_name(name)
        if cached is not None:
            return cached

        org = await self._fetch(self.client.get_org_by_name, name)
        await self.put(EntityKind.ORG, org)
        return org

    async def get_org_by_guid(self, guid: str) -> Org:
        """Get an org by guid."""
        cached = self._indices[EntityKind.ORG].get_by_guid(guid)
        if cached is not None:
            return cached

        org = await self._fetch(self.client.get_org_by_guid, guid)
        await self.put(EntityKind.ORG, org)
        return org

    # -------------------------------------------------------------------------
    # Spaces
    # -------------------------------------------------------------------------

    async def get_space_by_name(self, name: str, org_guid: str) -> Space:
        """Get a space by name inside an org."""
        cached = self._indices[EntityKind.SPACE].get_by_name(name, org_guid)
        if cached is not None:
            return cached

        space = await self._fetch(self.client.get_space_by_name, name, org_guid)
        await self.put(EntityKind.SPACE, space, org_guid)
        return space

    async def get_space_by_guid(self, guid: str) -> Space:
        """Get a space by guid."""
        cached = self._indices[EntityKind.SPACE].get_by_guid(guid)
        if cached is not None:
            return cached

        space = await self._fetch(self.client.get_space_by_guid, guid)
        await self.put(EntityKind.SPACE, space, space.organization_guid)
        return space

    # -------------------------------------------------------------------------
    # Apps
    # -------------------------------------------------------------------------

    async def get_app_by_name(self, name: str, space_guid: str) -> App:
        """Get an app by name inside a space.

        Raises:
            EntityNotFoundError: Zero or several apps match.
        """
        cached = self._indices[EntityKind.APP].get_by_name(name, space_guid)
        if cached is not None:
            return cached

        params = {
            "q": [f"name:{name}", f"space_guid:{space_guid}"],
            "inline-relations-depth": 0,
        }
        apps = await self._fetch(self.client.list_apps_by_query, params)
        if len(apps) != 1:
            raise EntityNotFoundError(
                EntityKind.APP.value, name, scope=f"space {space_guid}", count=len(apps)
            )

        app = apps[0]
        await self.put(EntityKind.APP, app, space_guid)
        return app

    async def get_app_by_guid(self, guid: str) -> App:
        """Get an app by guid."""
        cached = self._indices[EntityKind.APP].get_by_guid(guid)
        if cached is not None:
            return cached

        app = await self._fetch(self.client.get_app_by_guid, guid)
        await self.put(EntityKind.APP, app, app.space_guid)
        return app

    async def put_app(self, app: App) -> App:
        """Store a freshly created or updated app, replacing any cached copy."""
        await self.put(EntityKind.APP, app, app.space_guid)
        return app

    # -------------------------------------------------------------------------
    # Stacks
    # -------------------------------------------------------------------------

    async def get_stack_by_name(self, name: str) -> Stack:
        """Get a stack by name.

        Raises:
            EntityNotFoundError: Zero or several stacks match.
        """
        cached = self._indices[EntityKind.STACK].get_by_name(name)
        if cached is not None:
            return cached

        stacks = await self._fetch(self.client.list_stacks_by_query, {"q": [f"name:{name}"]})
        if len(stacks) != 1:
            raise EntityNotFoundError(EntityKind.STACK.value, name, count=len(stacks))

        stack = stacks[0]
        await self.put(EntityKind.STACK, stack)
        return stack

    async def get_stack_by_guid(self, guid: str) -> Stack:
        """Get a stack by guid."""
        cached = self._indices[EntityKind.STACK].get_by_guid(guid)
        if cached is not None:
            return cached

        stack = await self._fetch(self.client.get_stack_by_guid, guid)
        await self.put(EntityKind.STACK, stack)
        return stack

    async def get_stack_guid_by_name(self, name: str) -> str:
        """Resolve a stack name to its guid."""
        return (await self.get_stack_by_name(name)).guid

    async def get_stack_name_by_guid(self, guid: str) -> str:
        """Resolve a stack guid to its name."""
        return (await self.get_stack_by_guid(guid)).name

    # -------------------------------------------------------------------------
    # Domains
    # -------------------------------------------------------------------------

    async def get_domain_by_name(self, name: str) -> Domain:
        """Get a domain by name, trying private domains before shared ones.

        Raises:
            EntityNotFoundError: Neither a private nor a shared domain exists.
        """
        cached = self._indices[EntityKind.DOMAIN].get_by_name(name)
        if cached is not None:
            return cached

        domain = await self._fetch(self.client.get_domain_by_name, name)
        if domain is None:
            self.logger.debug(f"No private domain named {name}, trying shared domains")
            domain = await self._fetch(self.client.get_shared_domain_by_name, name)
        if domain is None:
            raise EntityNotFoundError(EntityKind.DOMAIN.value, name)

        await self.put(EntityKind.DOMAIN, domain)
        return domain

    async def get_domain_by_guid(self, guid: str) -> Domain:
        """Get a private or shared domain by guid."""
        cached = self._indices[EntityKind.DOMAIN].get_by_guid(guid)
        if cached is not None:
            return cached

        domain = await self._fetch(self.client.get_domain_by_guid, guid)
        await self.put(EntityKind.DOMAIN, domain)
        return domain

    async def get_domain_guid_by_name(self, name: str) -> str:
        """Resolve a domain name to its guid."""
        return (await self.get_domain_by_name(name)).guid

    async def _fetch(self, call: Callable[..., Awaitable[R]], *args: Any) -> R:
        return await self.transport.call(call, *args)
