"""
bbl/commands/destroy.py

`bbl down` / `bbl destroy`: tear the environment down in the reverse of the
order `up` built it, then remove every bbl-managed file. User-managed files in
the state directory survive.
"""

from __future__ import annotations

import logging
from typing import Callable, Optional

from pydantic import BaseModel

from bbl.commands.plan import save
from bbl.commands.up import save_partial
from bbl.deployment.manager import BoshManager
from bbl.errors import PartialStateError, UserError
from bbl.models.state import State
from bbl.storage.store import Store
from bbl.utils.terraform import TerraformManager

logger = logging.getLogger(__name__)


class DestroyConfig(BaseModel):
    no_confirm: bool = False
    skip_if_missing: bool = False


def confirm_prompt(message: str) -> bool:
    """Ask on stdin; only an answer starting with "y" confirms."""
    answer = input(f"{message} (y/N): ")
    return answer.strip().lower().startswith("y")


class Destroy:
    """Deletes the director, the jumpbox and the infrastructure.

    Args:
        store (Store): The state directory.
        terraform_manager (TerraformManager): Destroys the infrastructure.
        bosh_manager (BoshManager): Runs the delete scripts.
        prompt (Optional[Callable[[str], bool]]): Confirmation callback.
    """

    def __init__(
        self,
        store: Store,
        terraform_manager: TerraformManager,
        bosh_manager: BoshManager,
        prompt: Optional[Callable[[str], bool]] = None,
    ) -> None:
        self._store = store
        self._terraform_manager = terraform_manager
        self._bosh_manager = bosh_manager
        self._prompt = prompt or confirm_prompt

    async def execute(self, state: State, config: DestroyConfig) -> State:
        """Destroy the environment described by `state`.

        Returns:
            State: The empty document, or `state` when the operator declined.

        Raises:
            UserError: If there is no environment and `--skip-if-missing` is unset.
            PartialStateError: After saving the state left by a failed stage.
        """
        if not state.env_id and not state.iaas:
            if config.skip_if_missing:
                logger.info("state file not found, and --skip-if-missing flag provided, exiting")
                return state
            raise UserError("bbl-state.json not found, ensure you're running this command in the proper state directory or create a new environment with bbl up")

        if not config.no_confirm:
            message = (
                f"Are you sure you want to delete infrastructure for {state.env_id}? "
                "This operation cannot be undone!"
            )
            if not self._prompt(message):
                return state

        try:
            if not state.no_director:
                state = await self._bosh_manager.delete_director(state)
                state = save(self._store, state, "delete director")
            state = await self._bosh_manager.delete_jumpbox(state)
            state = save(self._store, state, "delete jumpbox")
            state = await self._terraform_manager.destroy(state)
        except PartialStateError as exc:
            save_partial(self._store, exc)
            raise

        logger.info("step: cleaning up bbl-managed files")
        return save(self._store, State(), "destroy")


__all__ = ["Destroy", "DestroyConfig", "confirm_prompt"]
