"""
bbl/utils/terraform/manager.py

State-level wrapper around the executor: picks the template and inputs for the
state's IaaS, runs the engine, and records its output in `latest_tf_output`.
On engine failure the returned error carries the state to persist.
"""

from __future__ import annotations

import logging
from typing import Optional

from bbl.errors import BBLError, TerraformManagerError
from bbl.models.state import State
from bbl.models.terraform import TerraformOutputs
from bbl.utils.terraform.commands import ExecutorError, TerraformExecutor
from bbl.utils.terraform.inputs import InputGenerator
from bbl.utils.terraform.templates import TemplateGenerator

logger = logging.getLogger(__name__)

MINIMUM_VERSION = (0, 12, 0)


def _version_tuple(version: str) -> tuple:
    return tuple(int(part) for part in version.split("."))


class TerraformManager:
    """Plans, applies and destroys the infrastructure for a state.

    Args:
        executor (TerraformExecutor): Runs the engine.
        templates (Optional[TemplateGenerator]): Template selection.
        inputs (Optional[InputGenerator]): bbl.tfvars contents and credentials.
    """

    def __init__(
        self,
        executor: TerraformExecutor,
        templates: Optional[TemplateGenerator] = None,
        inputs: Optional[InputGenerator] = None,
    ) -> None:
        self._executor = executor
        self._templates = templates or TemplateGenerator()
        self._inputs = inputs or InputGenerator()

    async def init(self, state: State) -> None:
        """Write the template and tfvars without running the engine."""
        logger.info("step: generating terraform template")
        await self._executor.setup(
            self._templates.generate(state), self._inputs.generate(state)
        )

    async def apply(self, state: State) -> State:
        """Apply the infrastructure for `state`.

        Returns:
            State: A copy of `state` with `latest_tf_output` refreshed.

        Raises:
            TerraformManagerError: Holding the state to persist after a failure.
        """
        logger.info("step: generating terraform template")
        template = self._templates.generate(state)
        inputs = self._inputs.generate(state)
        updated = state.model_copy(deep=True)

        logger.info("step: applying terraform template")
        try:
            await self._executor.apply(template, inputs, self._inputs.credentials(state))
        except ExecutorError as exc:
            updated.latest_tf_output = self._with_error(exc)
            raise TerraformManagerError(str(exc), updated, exc) from exc

        updated.latest_tf_output = self._executor.latest_output
        logger.info("step: finished applying terraform template")
        return updated

    async def destroy(self, state: State) -> State:
        """Destroy the infrastructure for `state`; a no-op when none exists.

        Raises:
            TerraformManagerError: Holding the state to persist after a failure.
        """
        updated = state.model_copy(deep=True)
        if not self._executor.read_state():
            return updated

        logger.info("step: destroying infrastructure")
        try:
            await self._executor.destroy(
                self._templates.generate(state),
                self._inputs.generate(state),
                self._inputs.credentials(state),
            )
        except ExecutorError as exc:
            updated.latest_tf_output = self._with_error(exc)
            raise TerraformManagerError(str(exc), updated, exc) from exc

        updated.latest_tf_output = self._executor.latest_output
        logger.info("step: finished destroying infrastructure")
        return updated

    def _with_error(self, exc: ExecutorError) -> str:
        output = self._executor.latest_output
        separator = "" if not output or output.endswith("\n") else "\n"
        return f"{output}{separator}{exc.underlying}\n"

    async def get_outputs(self) -> TerraformOutputs:
        return TerraformOutputs(values=await self._executor.outputs())

    def is_paved(self) -> bool:
        return self._executor.is_paved()

    async def version(self) -> str:
        return await self._executor.version()

    async def validate_version(self) -> None:
        """Refuse engines older than the templates support.

        Raises:
            BBLError: If the installed terraform is too old.
        """
        version = await self._executor.version()
        if _version_tuple(version) < MINIMUM_VERSION:
            minimum = ".".join(str(part) for part in MINIMUM_VERSION)
            raise BBLError(
                f"Terraform version must be at least v{minimum}, found v{version}"
            )


__all__ = ["TerraformManager", "MINIMUM_VERSION"]
