"""
bbl/deployment/manager.py

State-level wrapper around the create-env executor. Creates and deletes the
jumpbox and the director in order, records the jumpbox URL and the director
credentials in the state document, and wraps script failures in errors that
carry the state to persist.
"""

from __future__ import annotations

import logging
from typing import Any, Dict, Optional

from bbl.deployment.executor import (
    DIRECTOR_DEPLOYMENT,
    JUMPBOX_DEPLOYMENT,
    ROTATE_JUMPBOX_OPS_FILE,
    CreateEnvExecutor,
)
from bbl.deployment.vars import DeploymentVarsGenerator, director_name
from bbl.errors import BBLError, CreateEnvError, ManagerCreateError, ManagerDeleteError
from bbl.models.state import BOSH, State
from bbl.models.terraform import TerraformOutputs
from bbl.storage.store import Store
from bbl.utils.bosh_cli import jumpbox_proxy

logger = logging.getLogger(__name__)

DIRECTOR_USERNAME = "admin"


def director_credentials(vars_store: Dict[str, Any]) -> Dict[str, str]:
    """Pull the admin password and director TLS material out of a vars-store."""
    ssl = vars_store.get("director_ssl") or {}
    return {
        "director_password": str(vars_store.get("admin_password", "")),
        "director_ssl_ca": ssl.get("ca", ""),
        "director_ssl_certificate": ssl.get("certificate", ""),
        "director_ssl_private_key": ssl.get("private_key", ""),
    }


class BoshManager:
    """Creates, rotates and deletes the jumpbox and director.

    Args:
        executor (CreateEnvExecutor): Writes and runs the scripts.
        store (Store): The state directory.
        vars_generator (Optional[DeploymentVarsGenerator]): vars-file contents.
    """

    def __init__(
        self,
        executor: CreateEnvExecutor,
        store: Store,
        vars_generator: Optional[DeploymentVarsGenerator] = None,
    ) -> None:
        self._executor = executor
        self._store = store
        self._vars = vars_generator or DeploymentVarsGenerator()

    async def initialize_jumpbox(self, state: State) -> None:
        await self._executor.plan_jumpbox(state.iaas)

    async def initialize_director(self, state: State) -> None:
        await self._executor.plan_director(state.iaas)

    def is_jumpbox_initialized(self) -> bool:
        return self._executor.is_planned(JUMPBOX_DEPLOYMENT)

    def is_director_initialized(self) -> bool:
        return self._executor.is_planned(DIRECTOR_DEPLOYMENT)

    def get_jumpbox_deployment_vars(self, state: State, outputs: TerraformOutputs) -> str:
        return self._vars.jumpbox_vars(state, outputs)

    def get_director_deployment_vars(self, state: State, outputs: TerraformOutputs) -> str:
        return self._vars.director_vars(state, outputs)

    async def create_jumpbox(self, state: State, outputs: TerraformOutputs) -> State:
        """Run create-jumpbox and record the jumpbox URL.

        Raises:
            ManagerCreateError: Carrying the state as of the failure.
        """
        logger.info("step: creating jumpbox")
        updated = state.model_copy(deep=True)
        updated.jumpbox.url = outputs.get_string("jumpbox_url")
        await self._executor.write_deployment_vars(
            JUMPBOX_DEPLOYMENT, self._vars.jumpbox_vars(state, outputs)
        )
        try:
            await self._executor.create_env(JUMPBOX_DEPLOYMENT, updated)
        except CreateEnvError as exc:
            raise ManagerCreateError(f"Create jumpbox env: {exc}", updated, exc) from exc
        logger.info("step: created jumpbox")
        return updated

    async def rotate_jumpbox_ssh_key(self, state: State, outputs: TerraformOutputs) -> State:
        """Discard the jumpbox ssh key so create-jumpbox generates a new one.

        Raises:
            BBLError: If there is no jumpbox vars-store to rotate.
            ManagerCreateError: Carrying the state as of the failure.
        """
        logger.info("step: rotating jumpbox ssh key")
        vars_store = self._executor.read_vars_store(JUMPBOX_DEPLOYMENT)
        if not vars_store:
            raise BBLError("jumpbox vars-store not found; run `bbl up` first")
        vars_store.pop("jumpbox_ssh", None)
        self._executor.write_vars_store(JUMPBOX_DEPLOYMENT, vars_store)

        updated = state.model_copy(deep=True)
        await self._executor.write_deployment_vars(
            JUMPBOX_DEPLOYMENT, self._vars.jumpbox_vars(state, outputs)
        )
        ops_path = f"{self._store.get_state_dir()}/{ROTATE_JUMPBOX_OPS_FILE}"
        try:
            await self._executor.create_env(JUMPBOX_DEPLOYMENT, updated, extra_args=["-o", ops_path])
        except CreateEnvError as exc:
            raise ManagerCreateError(f"Rotate jumpbox ssh key: {exc}", updated, exc) from exc
        logger.info("step: rotated jumpbox ssh key")
        return updated

    async def create_director(self, state: State, outputs: TerraformOutputs) -> State:
        """Run create-director through the jumpbox and record its credentials.

        Raises:
            ManagerCreateError: Carrying the state as of the failure.
        """
        logger.info("step: creating bosh director")
        updated = state.model_copy(deep=True)
        await self._executor.write_deployment_vars(
            DIRECTOR_DEPLOYMENT, self._vars.director_vars(state, outputs)
        )
        try:
            async with jumpbox_proxy(state, self._store) as proxy_env:
                vars_store = await self._executor.create_env(
                    DIRECTOR_DEPLOYMENT, updated, extra_env=proxy_env
                )
        except BBLError as exc:
            raise ManagerCreateError(f"Create bosh director env: {exc}", updated, exc) from exc

        updated.bosh = updated.bosh.model_copy(
            update=dict(
                director_name=director_name(state),
                director_username=DIRECTOR_USERNAME,
                director_address=outputs.get_string("director_address"),
                **director_credentials(vars_store),
            )
        )
        logger.info("step: created bosh director")
        return updated

    async def delete_director(self, state: State) -> State:
        """Run delete-director when a director deployment exists.

        Raises:
            ManagerDeleteError: Carrying the state as of the failure.
        """
        updated = state.model_copy(deep=True)
        if not self._executor.deployment_exists(DIRECTOR_DEPLOYMENT):
            return updated
        logger.info("step: destroying bosh director")
        try:
            async with jumpbox_proxy(state, self._store) as proxy_env:
                await self._executor.delete_env(DIRECTOR_DEPLOYMENT, updated, extra_env=proxy_env)
        except BBLError as exc:
            raise ManagerDeleteError(str(exc), updated, exc) from exc
        updated.bosh = BOSH()
        logger.info("step: destroyed bosh director")
        return updated

    async def delete_jumpbox(self, state: State) -> State:
        """Run delete-jumpbox when a jumpbox deployment exists.

        Raises:
            ManagerDeleteError: Carrying the state as of the failure.
        """
        updated = state.model_copy(deep=True)
        if not self._executor.deployment_exists(JUMPBOX_DEPLOYMENT):
            return updated
        logger.info("step: destroying jumpbox")
        try:
            await self._executor.delete_env(JUMPBOX_DEPLOYMENT, updated)
        except CreateEnvError as exc:
            raise ManagerDeleteError(str(exc), updated, exc) from exc
        updated.jumpbox.url = ""
        logger.info("step: destroyed jumpbox")
        return updated


__all__ = ["BoshManager", "director_credentials", "DIRECTOR_USERNAME"]
