"""
bbl/commands/plan.py

`bbl plan`: resolve the env-id and write every bbl-owned artifact (create and
delete scripts, vendored manifests, terraform template and inputs, cloud and
runtime config) without running the engine or create-env.

Running plan twice leaves the state directory byte-identical.
"""

from __future__ import annotations

import logging
from typing import Optional

from pydantic import BaseModel

from bbl.cloudconfig.manager import CloudConfigManager
from bbl.cloudconfig.runtime_config import RuntimeConfigManager
from bbl.clients.cloud import ZoneClient
from bbl.deployment.manager import BoshManager
from bbl.errors import BBLError, StateDirError, UserError
from bbl.helpers.env_id import EnvIDManager
from bbl.models.providers import IaaSName
from bbl.models.state import State
from bbl.storage.patch_detector import PatchDetector
from bbl.storage.store import Store
from bbl.utils.terraform import TerraformManager

logger = logging.getLogger(__name__)


class PlanConfig(BaseModel):
    """Options shared by plan and up."""

    name: str = ""
    no_director: bool = False


def save(store: Store, state: State, stage: str) -> State:
    """Persist `state`, prefixing any failure with the stage it followed."""
    try:
        return store.set(state)
    except StateDirError as exc:
        raise StateDirError(f"Save state after {stage}: {exc}") from exc


class Plan:
    """Writes the plan for an environment.

    Args:
        store (Store): The state directory.
        env_id_manager (EnvIDManager): Resolves and checks the env-id.
        terraform_manager (TerraformManager): Renders the template and inputs.
        bosh_manager (BoshManager): Writes the create-env scripts.
        cloud_config_manager (CloudConfigManager): Writes cloud-config/.
        runtime_config_manager (RuntimeConfigManager): Writes runtime-config/.
        zone_client (Optional[ZoneClient]): Looks up GCP zones for the region.
    """

    def __init__(
        self,
        store: Store,
        env_id_manager: EnvIDManager,
        terraform_manager: TerraformManager,
        bosh_manager: BoshManager,
        cloud_config_manager: CloudConfigManager,
        runtime_config_manager: RuntimeConfigManager,
        zone_client: Optional[ZoneClient] = None,
    ) -> None:
        self._store = store
        self._env_id_manager = env_id_manager
        self._terraform_manager = terraform_manager
        self._bosh_manager = bosh_manager
        self._cloud_config_manager = cloud_config_manager
        self._runtime_config_manager = runtime_config_manager
        self._zone_client = zone_client

    def check_fast_fails(self, state: State, config: PlanConfig) -> None:
        """Refuse option changes an existing environment cannot take.

        Raises:
            UserError: For a renamed environment or a late `--no-director`.
        """
        if config.name and state.env_id and config.name != state.env_id:
            raise UserError(
                "The director name cannot be changed for an existing environment. "
                f"Current name is {state.env_id}."
            )
        if config.no_director and not state.no_director and state.bosh.director_address:
            raise UserError(
                'Director already exists, you must re-create your environment to use "--no-director"'
            )

    async def _sync_zones(self, state: State) -> None:
        if state.iaas != IaaSName.gcp.value or state.gcp.zones:
            return
        if self._zone_client is not None:
            state.gcp.zones = await self._zone_client.get_zones(state.gcp.region)
        if not state.gcp.zones and state.gcp.zone:
            state.gcp.zones = [state.gcp.zone]
        if not state.gcp.zone and state.gcp.zones:
            state.gcp.zone = state.gcp.zones[0]

    async def initialize_plan(self, state: State, config: PlanConfig) -> State:
        """Resolve the env-id, persist the state and write the plan files.

        Returns:
            State: The state as persisted.
        """
        updated = state.model_copy(deep=True)
        if config.no_director:
            updated.no_director = True
        await self._sync_zones(updated)

        updated.env_id = await self._env_id_manager.sync(updated, config.name)
        updated = save(self._store, updated, "sync")

        try:
            await self._bosh_manager.initialize_jumpbox(updated)
        except (BBLError, OSError) as exc:
            raise BBLError(f"Bosh manager initialize jumpbox: {exc}") from exc
        if not updated.no_director:
            try:
                await self._bosh_manager.initialize_director(updated)
            except (BBLError, OSError) as exc:
                raise BBLError(f"Bosh manager initialize director: {exc}") from exc

        try:
            await self._terraform_manager.init(updated)
        except UserError:
            raise
        except (BBLError, OSError) as exc:
            raise BBLError(f"Terraform manager init: {exc}") from exc

        try:
            await self._cloud_config_manager.initialize(updated)
            self._runtime_config_manager.initialize()
        except UserError:
            raise
        except (BBLError, OSError) as exc:
            raise BBLError(f"Cloud config manager initialize: {exc}") from exc

        return updated

    async def execute(self, state: State, config: PlanConfig) -> State:
        self.check_fast_fails(state, config)
        updated = await self.initialize_plan(state, config)
        PatchDetector(self._store.get_state_dir()).find()
        return updated


__all__ = ["Plan", "PlanConfig", "save"]
