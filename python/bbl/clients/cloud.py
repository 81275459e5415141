"""
bbl/clients/cloud.py

Opens the cloud API clients an IaaS needs for env-id collision checks and zone
lookup, and closes their sessions on exit. IaaSes without lookups get none.
"""

from __future__ import annotations

from contextlib import asynccontextmanager
from typing import AsyncGenerator, List, Optional, Protocol

from pydantic import BaseModel, ConfigDict

from bbl.clients.aws import AWSClient
from bbl.clients.gcp import GCPClient
from bbl.models.providers import IaaSName
from bbl.models.state import State


class ZoneClient(Protocol):
    async def get_zones(self, region: str) -> List[str]: ...


class CloudClients(BaseModel):
    """Whatever lookups the current IaaS supports; absent ones are None."""

    model_config = ConfigDict(arbitrary_types_allowed=True)

    network_client: Optional[object] = None
    stack_client: Optional[object] = None
    zone_client: Optional[object] = None


@asynccontextmanager
async def cloud_clients(state: State) -> AsyncGenerator[CloudClients, None]:
    """Yield the clients for `state.iaas`, with their HTTP sessions open."""
    if state.iaas == IaaSName.gcp.value and state.gcp.service_account_key:
        async with GCPClient(state.gcp.parsed_key(), state.gcp.project_id) as gcp:
            yield CloudClients(network_client=gcp, zone_client=gcp)
    elif state.iaas == IaaSName.aws.value and state.aws.access_key_id:
        async with AWSClient(state.aws) as aws:
            yield CloudClients(stack_client=aws)
    else:
        yield CloudClients()


__all__ = ["CloudClients", "ZoneClient", "cloud_clients"]
