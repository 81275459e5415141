"""
bbl/cloudconfig/manager.py

Writes the base cloud-config and the IaaS ops file into `cloud-config/`, and
applies them to the director together with any user ops files.

Ops-file order is the interface for user overrides: `ops.yml` always comes
first, followed by every other `*.yml` in `cloud-config/` sorted by name.
"""

from __future__ import annotations

import glob
import logging
import os
from typing import Callable, List, Optional

import aiofiles

from bbl.cloudconfig.generators import ops_generator_for
from bbl.errors import BBLError, DirectorUnreachableError
from bbl.models.state import State
from bbl.models.terraform import TerraformOutputs
from bbl.storage.store import Store
from bbl.utils.async_command_runner import CommandError
from bbl.utils.bosh_cli import DEFAULT_BOSH_BINARY, BoshCLI, director_cli

logger = logging.getLogger(__name__)

ASSETS_DIR = os.path.join(os.path.dirname(os.path.abspath(__file__)), "assets")
CLOUD_CONFIG_FILE = "cloud-config.yml"
OPS_FILE = "ops.yml"
VARS_FILE = "cloud-config-vars.yml"
FILE_MODE = 0o644


async def _write(path: str, content: str) -> None:
    async with aiofiles.open(path, "w") as f:
        await f.write(content)
    os.chmod(path, FILE_MODE)


class CloudConfigManager:
    """Generates and applies the director's cloud-config.

    Args:
        store (Store): The state directory.
        bosh_binary (str): Director CLI executable.
        client_factory (Callable): Builds an authenticated director client;
            defaults to `director_cli`.
    """

    def __init__(
        self,
        store: Store,
        bosh_binary: str = DEFAULT_BOSH_BINARY,
        client_factory: Optional[Callable] = None,
    ) -> None:
        self._store = store
        self._bosh_binary = bosh_binary
        self._client_factory = client_factory or director_cli

    def _cloud_config_path(self) -> str:
        return os.path.join(self._store.get_cloud_config_dir(), CLOUD_CONFIG_FILE)

    def _ops_path(self) -> str:
        return os.path.join(self._store.get_cloud_config_dir(), OPS_FILE)

    def _vars_path(self) -> str:
        return os.path.join(self._store.get_vars_dir(), VARS_FILE)

    async def initialize(self, state: State) -> None:
        """Write cloud-config/cloud-config.yml and cloud-config/ops.yml."""
        generator = ops_generator_for(state)
        with open(os.path.join(ASSETS_DIR, CLOUD_CONFIG_FILE), "r") as f:
            base = f.read()
        await _write(self._cloud_config_path(), base)
        await _write(self._ops_path(), generator.generate_ops(state))

    def is_present_cloud_config(self) -> bool:
        return os.path.isfile(self._cloud_config_path()) and os.path.isfile(self._ops_path())

    def is_present_cloud_config_vars(self) -> bool:
        return os.path.isfile(self._vars_path())

    def ops_files(self) -> List[str]:
        """ops.yml, then every other user *.yml in cloud-config/, by name."""
        directory = self._store.get_cloud_config_dir()
        user_files = sorted(
            path
            for path in glob.glob(os.path.join(directory, "*.yml"))
            if os.path.basename(path) not in (CLOUD_CONFIG_FILE, OPS_FILE)
        )
        return [self._ops_path()] + user_files

    async def write_vars(self, state: State, outputs: TerraformOutputs) -> str:
        """Regenerate vars/cloud-config-vars.yml and return its path."""
        path = self._vars_path()
        await _write(path, ops_generator_for(state).generate_vars(state, outputs))
        return path

    async def interpolate(self, state: State, outputs: TerraformOutputs) -> str:
        """The fully rendered cloud-config, without contacting the director."""
        if not self.is_present_cloud_config():
            await self.initialize(state)
        vars_path = await self.write_vars(state, outputs)
        return await BoshCLI(self._bosh_binary).interpolate(
            self._cloud_config_path(), self.ops_files(), vars_path
        )

    async def update(self, state: State, outputs: TerraformOutputs) -> None:
        """Apply the cloud-config to the state's director.

        Raises:
            DirectorUnreachableError: If the director cannot be reached.
            BBLError: Prefixed "failed to update cloud-config: " on any other failure.
        """
        logger.info("step: generating cloud config")
        try:
            if not self.is_present_cloud_config():
                await self.initialize(state)
            vars_path = await self.write_vars(state, outputs)
        except (BBLError, OSError) as exc:
            raise BBLError(f"failed to update cloud-config: {exc}") from exc

        logger.info("step: applying cloud config")
        try:
            async with self._client_factory(state, self._store, self._bosh_binary) as cli:
                await cli.update_cloud_config(self._cloud_config_path(), self.ops_files(), vars_path)
        except DirectorUnreachableError as exc:
            raise DirectorUnreachableError(f"failed to update cloud-config: {exc}") from exc
        except (BBLError, CommandError) as exc:
            raise BBLError(f"failed to update cloud-config: {exc}") from exc


__all__ = ["CloudConfigManager", "CLOUD_CONFIG_FILE", "OPS_FILE", "VARS_FILE"]
