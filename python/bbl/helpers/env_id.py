"""
bbl/helpers/env_id.py

Resolves the env-id for an environment: keeps an existing one, validates a
requested one, or generates a fresh one, and refuses names already present in
the target cloud.
"""

from __future__ import annotations

import datetime
import re
import secrets
from typing import Callable, List, Optional, Protocol, Sequence

from bbl.errors import EnvIDCollisionError, UserError
from bbl.models.providers import IaaSName
from bbl.models.state import State
from bbl.utils.terraform.inputs import resource_env_id

LAKES: Sequence[str] = (
    "ontario", "erie", "huron", "superior", "michigan", "tahoe", "mead",
    "powell", "champlain", "okeechobee", "pontchartrain", "crater", "flathead",
    "yellowstone", "winnebago", "sakakawea", "oahe", "placid", "george",
    "shasta", "clear", "berryessa", "pyramid", "mono", "salton", "utah",
    "bear", "kentucky", "texoma", "toledo", "guntersville", "lanier",
    "moultrie", "seneca", "cayuga",
)

ENV_ID_PATTERN = re.compile(r"^(?:[a-zA-Z]|[a-zA-Z][-a-zA-Z0-9]*[a-zA-Z0-9])$")
DEFAULT_PREFIX = "bbl-env"


class NetworkClient(Protocol):
    async def get_networks(self, name: str) -> List[str]: ...


class StackClient(Protocol):
    async def stack_exists(self, stack_name: str) -> bool: ...

    async def check_exists(self, vpc_name: str) -> bool: ...


class EnvIDGenerator:
    """Generates `<prefix>-<lake>-<YYYY-MM-DDTHH:MMZ>` names."""

    def __init__(
        self,
        prefix: Optional[str] = None,
        now: Callable[[], datetime.datetime] = lambda: datetime.datetime.now(
            datetime.timezone.utc
        ),
    ) -> None:
        self._prefix = prefix or DEFAULT_PREFIX
        self._now = now

    def generate(self) -> str:
        lake = secrets.choice(LAKES)
        timestamp = self._now().astimezone(datetime.timezone.utc).strftime("%Y-%m-%dT%H:%MZ")
        return f"{self._prefix}-{lake}-{timestamp}"


class EnvIDManager:
    """Decides the env-id used by plan and up.

    Args:
        generator (EnvIDGenerator): Used when no name is supplied.
        network_client (Optional[NetworkClient]): GCP network lookups.
        stack_client (Optional[StackClient]): AWS stack/VPC lookups.
    """

    def __init__(
        self,
        generator: EnvIDGenerator,
        network_client: Optional[NetworkClient] = None,
        stack_client: Optional[StackClient] = None,
    ) -> None:
        self._generator = generator
        self._network_client = network_client
        self._stack_client = stack_client

    async def sync(self, state: State, name: str = "") -> str:
        """Return the effective env-id for `state`.

        An env-id already in state is returned untouched. Otherwise `name` is
        validated (or generated when empty) and checked against the cloud.

        Raises:
            UserError: If `name` is not a valid env-id.
            EnvIDCollisionError: If the cloud already has resources for it.
        """
        if state.env_id:
            return state.env_id

        if name:
            if not ENV_ID_PATTERN.match(name):
                raise UserError("Names must start with a letter and be alphanumeric or hyphenated.")
            env_id = name
        else:
            env_id = self._generator.generate()

        await self._check_collision(state.iaas, env_id)
        return env_id

    async def _check_collision(self, iaas: str, env_id: str) -> None:
        # Look up the names the templates will create, not the raw env-id.
        name = resource_env_id(env_id)
        if iaas == IaaSName.gcp.value and self._network_client is not None:
            if await self._network_client.get_networks(f"{name}-network"):
                raise EnvIDCollisionError(env_id)
        elif iaas == IaaSName.aws.value and self._stack_client is not None:
            if await self._stack_client.stack_exists(f"stack-{name}"):
                raise EnvIDCollisionError(env_id)
            if await self._stack_client.check_exists(f"{name}-vpc"):
                raise EnvIDCollisionError(env_id)
        # Azure: a `<env_id>-bosh-vn` lookup would go here; nothing is checked yet.


__all__ = [
    "LAKES",
    "ENV_ID_PATTERN",
    "NetworkClient",
    "StackClient",
    "EnvIDGenerator",
    "EnvIDManager",
]
