"""
bbl/commands/rotate.py

`bbl rotate`: replace the jumpbox ssh key and redeploy the director so it
trusts the new one.
"""

from __future__ import annotations

import logging

from bbl.commands.plan import save
from bbl.commands.up import Up, save_partial
from bbl.deployment.manager import BoshManager
from bbl.errors import BBLError, PartialStateError
from bbl.models.state import State
from bbl.storage.store import Store

logger = logging.getLogger(__name__)


class Rotate:
    def __init__(self, up: Up, store: Store, bosh_manager: BoshManager) -> None:
        self._up = up
        self._store = store
        self._bosh_manager = bosh_manager

    async def execute(self, state: State) -> State:
        """Rotate the key on an existing environment.

        Raises:
            BBLError: If there is no environment, or a create step fails.
        """
        if not state.jumpbox.url:
            raise BBLError("bbl state has not been set up; run `bbl up` first")

        outputs = await self._up.outputs()
        try:
            state = await self._bosh_manager.rotate_jumpbox_ssh_key(state, outputs)
        except PartialStateError as exc:
            save_partial(self._store, exc)
            raise
        state = save(self._store, state, "rotate jumpbox ssh key")

        if state.no_director:
            return state
        return await self._up.create_director(state, outputs)


__all__ = ["Rotate"]
