"""
bbl/commands/up.py

`bbl up`: plan, pave the infrastructure, create the jumpbox and the director,
then apply the cloud-config and runtime-config.

State is saved after every stage. When a stage fails partway, the state carried
by the error is saved first so the next run resumes from what was created.
"""

from __future__ import annotations

import logging

from bbl.cloudconfig.manager import CloudConfigManager
from bbl.cloudconfig.runtime_config import RuntimeConfigManager
from bbl.commands.plan import Plan, PlanConfig, save
from bbl.deployment.manager import BoshManager
from bbl.errors import BBLError, PartialStateError, UserError
from bbl.models.state import State
from bbl.models.terraform import TerraformOutputs
from bbl.storage.patch_detector import PatchDetector
from bbl.storage.store import Store
from bbl.utils.terraform import TerraformManager

logger = logging.getLogger(__name__)


def save_partial(store: Store, exc: PartialStateError) -> None:
    """Save the state an interrupted stage left behind, keeping `exc` primary."""
    try:
        store.set(exc.state)
    except BBLError as save_exc:
        logger.error(f"failed to save state after error: {save_exc}")


class Up:
    """Reconciles the environment all the way to a running director."""

    def __init__(
        self,
        plan: Plan,
        store: Store,
        terraform_manager: TerraformManager,
        bosh_manager: BoshManager,
        cloud_config_manager: CloudConfigManager,
        runtime_config_manager: RuntimeConfigManager,
    ) -> None:
        self._plan = plan
        self._store = store
        self._terraform_manager = terraform_manager
        self._bosh_manager = bosh_manager
        self._cloud_config_manager = cloud_config_manager
        self._runtime_config_manager = runtime_config_manager

    async def apply_infrastructure(self, state: State) -> State:
        """Run the engine and save the state it produced."""
        try:
            state = await self._terraform_manager.apply(state)
        except PartialStateError as exc:
            save_partial(self._store, exc)
            raise
        return save(self._store, state, "terraform apply")

    async def outputs(self) -> TerraformOutputs:
        try:
            return await self._terraform_manager.get_outputs()
        except BBLError as exc:
            raise BBLError(f"Parse terraform outputs: {exc}") from exc

    async def create_director(self, state: State, outputs: TerraformOutputs) -> State:
        """Create the director, then push cloud-config and runtime-config to it."""
        try:
            state = await self._bosh_manager.create_director(state, outputs)
        except PartialStateError as exc:
            save_partial(self._store, exc)
            raise BBLError(f"Create bosh director: {exc}") from exc
        state = save(self._store, state, "create director")

        try:
            await self._cloud_config_manager.update(state, outputs)
        except BBLError as exc:
            raise BBLError(f"Update cloud config: {exc}") from exc
        try:
            await self._runtime_config_manager.update(state)
        except BBLError as exc:
            raise BBLError(f"Update runtime config: {exc}") from exc
        return state

    async def execute(self, state: State, config: PlanConfig) -> State:
        """Bring the environment up to date.

        Raises:
            UserError: For invalid options or credentials.
            BBLError: Naming the stage that failed.
        """
        self._plan.check_fast_fails(state, config)
        try:
            await self._terraform_manager.validate_version()
        except UserError:
            raise
        except BBLError as exc:
            raise BBLError(f"Terraform validate version: {exc}") from exc

        state = await self._plan.initialize_plan(state, config)
        PatchDetector(self._store.get_state_dir()).find()
        state = await self.apply_infrastructure(state)
        outputs = await self.outputs()

        try:
            state = await self._bosh_manager.create_jumpbox(state, outputs)
        except PartialStateError as exc:
            save_partial(self._store, exc)
            raise BBLError(f"Create jumpbox: {exc}") from exc
        state = save(self._store, state, "create jumpbox")

        if state.no_director:
            logger.info("step: skipping director creation (--no-director)")
            return state

        return await self.create_director(state, outputs)


__all__ = ["Up", "save_partial"]
