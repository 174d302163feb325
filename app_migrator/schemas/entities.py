"""Control-plane entities the migrator reads and caches."""

from typing import Optional

from pydantic import BaseModel, ConfigDict, Field


class ControlPlaneEntity(BaseModel):
    """Base for every entity: a stable guid and a human name."""

    model_config = ConfigDict(frozen=True)

    guid: str = Field(..., description="Stable identifier assigned by the control plane")
    name: str = Field(..., description="Human name, unique within the parent scope")


class Org(ControlPlaneEntity):
    """An organization."""


class Space(ControlPlaneEntity):
    """A space inside an organization."""

    organization_guid: str


class App(ControlPlaneEntity):
    """An application inside a space."""

    space_guid: str
    stack_guid: Optional[str] = None
    state: Optional[str] = None
    updated_at: Optional[str] = Field(None, description="RFC 3339 last-update timestamp")


class Stack(ControlPlaneEntity):
    """A root filesystem stack apps are staged on."""


class Domain(ControlPlaneEntity):
    """A private or shared routing domain."""

    shared: bool = False
