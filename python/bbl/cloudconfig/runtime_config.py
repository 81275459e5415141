"""
bbl/cloudconfig/runtime_config.py

The DNS runtime-config: vendored at plan time into
`runtime-config/runtime-config.yml` and applied as the `dns` config on up.
"""

from __future__ import annotations

import logging
import os
import shutil
from typing import Callable, Optional

from bbl.errors import BBLError, DirectorUnreachableError
from bbl.models.state import State
from bbl.storage.store import Store
from bbl.utils.async_command_runner import CommandError
from bbl.utils.bosh_cli import DEFAULT_BOSH_BINARY, director_cli

logger = logging.getLogger(__name__)

RUNTIME_CONFIG_FILE = "runtime-config.yml"
RUNTIME_CONFIG_NAME = "dns"
DNS_RUNTIME_CONFIG = os.path.join(
    os.path.dirname(os.path.dirname(os.path.abspath(__file__))),
    "deployment",
    "assets",
    "bosh-deployment",
    "runtime-configs",
    "dns.yml",
)


class RuntimeConfigManager:
    """Writes and applies the director runtime-config."""

    def __init__(
        self,
        store: Store,
        bosh_binary: str = DEFAULT_BOSH_BINARY,
        client_factory: Optional[Callable] = None,
    ) -> None:
        self._store = store
        self._bosh_binary = bosh_binary
        self._client_factory = client_factory or director_cli

    def path(self) -> str:
        return os.path.join(self._store.get_runtime_config_dir(), RUNTIME_CONFIG_FILE)

    def initialize(self) -> None:
        path = self.path()
        shutil.copyfile(DNS_RUNTIME_CONFIG, path)
        os.chmod(path, 0o644)

    async def update(self, state: State) -> None:
        """Apply runtime-config.yml to the state's director.

        Raises:
            DirectorUnreachableError: If the director cannot be reached.
            BBLError: Prefixed "failed to update runtime-config: " otherwise.
        """
        if not os.path.isfile(self.path()):
            self.initialize()
        logger.info("step: applying runtime config")
        try:
            async with self._client_factory(state, self._store, self._bosh_binary) as cli:
                await cli.update_runtime_config(self.path(), RUNTIME_CONFIG_NAME)
        except DirectorUnreachableError as exc:
            raise DirectorUnreachableError(f"failed to update runtime-config: {exc}") from exc
        except (BBLError, CommandError) as exc:
            raise BBLError(f"failed to update runtime-config: {exc}") from exc


__all__ = ["RuntimeConfigManager", "RUNTIME_CONFIG_NAME"]
