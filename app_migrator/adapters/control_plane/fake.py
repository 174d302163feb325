"""Fake control plane for testing.

Holds entities in memory, records every call, and can be scripted to fail or
to respond slowly, without any network.
"""

import asyncio
from collections import Counter, defaultdict, deque
from typing import Any, Deque, Dict, List, Optional, Tuple

from app_migrator.core.exceptions import EntityNotFoundError
from app_migrator.schemas import App, Domain, Org, Space, Stack

DEFAULT_RESULTS_PER_PAGE = 50


class FakeControlPlane:
    """Test implementation of ControlPlaneClient.

    Usage:
        fake = FakeControlPlane()
        fake.add_org(Org(guid="o1", name="acme"))
        fake.fail_next("get_org_by_name", RetryableError("boom"))

        cache = EntityCache(fake, transport)
        await cache.get_org_by_name("acme")

        assert fake.call_count("get_org_by_name") == 2
    """

    def __init__(self, latency: float = 0.0) -> None:
        """Initialize with empty state.

        Args:
            latency: Seconds every call sleeps before answering
        """
        self.latency = latency
        self.orgs: Dict[str, Org] = {}
        self.spaces: Dict[str, Space] = {}
        self.apps: Dict[str, App] = {}
        self.stacks: Dict[str, Stack] = {}
        self.private_domains: Dict[str, Domain] = {}
        self.shared_domains: Dict[str, Domain] = {}

        self.calls: List[Tuple[str, Tuple[Any, ...]]] = []  # ordered log of every call
        self._counts: Counter = Counter()
        self._failures: Dict[str, Deque[BaseException]] = defaultdict(deque)

    # Seeding

    def add_org(self, org: Org) -> Org:
        """Store an org."""
        self.orgs[org.guid] = org
        return org

    def add_space(self, space: Space) -> Space:
        """Store a space."""
        self.spaces[space.guid] = space
        return space

    def add_app(self, app: App) -> App:
        """Store an app; listing returns apps in insertion order."""
        self.apps[app.guid] = app
        return app

    def add_stack(self, stack: Stack) -> Stack:
        """Store a stack."""
        self.stacks[stack.guid] = stack
        return stack

    def add_domain(self, domain: Domain) -> Domain:
        """Store a private or shared domain, depending on ``domain.shared``."""
        target = self.shared_domains if domain.shared else self.private_domains
        target[domain.guid] = domain
        return domain

    def fail_next(self, method: str, *errors: BaseException) -> None:
        """Queue errors raised by the next calls to ``method``, one per call."""
        self._failures[method].extend(errors)

    # ControlPlaneClient

    async def get_org_by_name(self, name: str) -> Org:
        """Return the single org with this name."""
        await self._enter("get_org_by_name", name)
        return _exactly_one("org", name, [o for o in self.orgs.values() if o.name == name])

    async def get_org_by_guid(self, guid: str) -> Org:
        """Return the org with this guid."""
        await self._enter("get_org_by_guid", guid)
        return _by_guid("org", self.orgs, guid)

    async def get_space_by_name(self, name: str, org_guid: str) -> Space:
        """Return the single space with this name inside an org."""
        await self._enter("get_space_by_name", name, org_guid)
        matches = [
            s for s in self.spaces.values() if s.name == name and s.organization_guid == org_guid
        ]
        return _exactly_one("space", name, matches, scope=f"org {org_guid}")

    async def get_space_by_guid(self, guid: str) -> Space:
        """Return the space with this guid."""
        await self._enter("get_space_by_guid", guid)
        return _by_guid("space", self.spaces, guid)

    async def list_apps_by_query(self, params: Dict[str, Any]) -> List[App]:
        """Filter apps by ``q`` and slice out the requested page, if any."""
        await self._enter("list_apps_by_query", params)
        filters = _parse_filters(params)
        apps = [app for app in self.apps.values() if _matches(app, filters)]
        return _page(apps, params)

    async def get_app_by_guid(self, guid: str) -> App:
        """Return the app with this guid."""
        await self._enter("get_app_by_guid", guid)
        return _by_guid("app", self.apps, guid)

    async def list_stacks_by_query(self, params: Dict[str, Any]) -> List[Stack]:
        """Filter stacks by ``q``."""
        await self._enter("list_stacks_by_query", params)
        filters = _parse_filters(params)
        stacks = [stack for stack in self.stacks.values() if _matches(stack, filters)]
        return _page(stacks, params)

    async def get_stack_by_guid(self, guid: str) -> Stack:
        """Return the stack with this guid."""
        await self._enter("get_stack_by_guid", guid)
        return _by_guid("stack", self.stacks, guid)

    async def get_domain_by_name(self, name: str) -> Optional[Domain]:
        """Return the private domain with this name, if any."""
        await self._enter("get_domain_by_name", name)
        return next((d for d in self.private_domains.values() if d.name == name), None)

    async def get_shared_domain_by_name(self, name: str) -> Optional[Domain]:
        """Return the shared domain with this name, if any."""
        await self._enter("get_shared_domain_by_name", name)
        return next((d for d in self.shared_domains.values() if d.name == name), None)

    async def get_domain_by_guid(self, guid: str) -> Domain:
        """Return the private or shared domain with this guid."""
        await self._enter("get_domain_by_guid", guid)
        if guid in self.private_domains:
            return self.private_domains[guid]
        return _by_guid("domain", self.shared_domains, guid)

    # Test helpers

    def call_count(self, method: str) -> int:
        """Number of times ``method`` was called, failed calls included."""
        return self._counts[method]

    def calls_to(self, method: str) -> List[Tuple[Any, ...]]:
        """Arguments of every call to ``method``, in order."""
        return [args for name, args in self.calls if name == method]

    def clear(self) -> None:
        """Reset the call log and scripted failures; seeded entities stay."""
        self.calls.clear()
        self._counts.clear()
        self._failures.clear()

    async def _enter(self, method: str, *args: Any) -> None:
        self.calls.append((method, args))
        self._counts[method] += 1
        if self.latency:
            await asyncio.sleep(self.latency)
        pending = self._failures.get(method)
        if pending:
            raise pending.popleft()


def _exactly_one(kind: str, name: str, matches: List[Any], scope: Optional[str] = None) -> Any:
    if len(matches) != 1:
        raise EntityNotFoundError(kind, name, scope=scope, count=len(matches))
    return matches[0]


def _by_guid(kind: str, entities: Dict[str, Any], guid: str) -> Any:
    if guid not in entities:
        raise EntityNotFoundError(kind, guid)
    return entities[guid]


def _parse_filters(params: Dict[str, Any]) -> Dict[str, str]:
    queries = params.get("q") or []
    if isinstance(queries, str):
        queries = [queries]
    filters = {}
    for query in queries:
        field, _, value = query.partition(":")
        filters[field] = value
    return filters


def _matches(entity: Any, filters: Dict[str, str]) -> bool:
    return all(str(getattr(entity, field, None)) == value for field, value in filters.items())


def _page(entities: List[Any], params: Dict[str, Any]) -> List[Any]:
    if "page" not in params:
        return entities
    per_page = int(params.get("results-per-page", DEFAULT_RESULTS_PER_PAGE))
    start = (int(params["page"]) - 1) * per_page
    return entities[start : start + per_page]
