"""
bbl/commands/lbs.py

Load-balancer verbs. `create-lbs` and `update-lbs` record the LB options in the
state document and re-run up; `delete-lbs` clears them and re-runs up; `lbs`
prints the LB addresses from the engine outputs.
"""

from __future__ import annotations

import logging
from typing import Callable, List, Optional

from pydantic import BaseModel

from bbl.commands.plan import PlanConfig
from bbl.commands.up import Up
from bbl.errors import UserError
from bbl.models.providers import IaaSName
from bbl.models.state import LB, State
from bbl.utils.terraform import TerraformManager

logger = logging.getLogger(__name__)

SUPPORTED_LB_IAAS = (IaaSName.aws.value, IaaSName.gcp.value)


class LBConfig(BaseModel):
    """LB flags. `cert`, `key` and `chain` are file paths."""

    type: str = ""
    cert: str = ""
    key: str = ""
    chain: str = ""
    domain: str = ""


def _read(path: str, flag: str) -> str:
    if not path:
        return ""
    try:
        with open(path, "r") as f:
            return f.read()
    except OSError as exc:
        raise UserError(f"Validate certificate: reading {flag} {path}: {exc}") from exc


def validate_lb_config(state: State, config: LBConfig) -> None:
    """Reject LB options the state's IaaS cannot provision.

    Raises:
        UserError: Describing the first invalid option.
    """
    if config.type not in ("cf", "concourse"):
        raise UserError("--type is required")
    if state.iaas not in SUPPORTED_LB_IAAS:
        raise UserError(f"{state.iaas} does not support load balancers")
    if config.type == "concourse" and config.domain:
        raise UserError(
            "--domain is not implemented for concourse load balancers. "
            "Remove the --domain flag and try again."
        )
    needs_cert = not (state.iaas == IaaSName.gcp.value and config.type == "concourse")
    if needs_cert and (not config.cert or not config.key):
        raise UserError("Validate certificate: --cert and --key are required")


def lb_from_config(config: LBConfig) -> LB:
    return LB(
        type=config.type,
        cert=_read(config.cert, "--cert"),
        key=_read(config.key, "--key"),
        chain=_read(config.chain, "--chain"),
        domain=config.domain,
    )


class CreateLBs:
    """Records LB options and re-applies the environment."""

    def __init__(self, up: Up) -> None:
        self._up = up

    async def execute(self, state: State, config: LBConfig) -> State:
        validate_lb_config(state, config)
        if state.lb.is_configured() and state.lb.type != config.type:
            raise UserError(
                f"The {state.lb.type} load balancer already exists. "
                "Run `bbl delete-lbs` before creating a different type."
            )
        updated = state.model_copy(deep=True)
        updated.lb = lb_from_config(config)
        return await self._up.execute(updated, PlanConfig())


class UpdateLBs:
    """Replaces the certificate or domain of the existing LB."""

    def __init__(self, up: Up) -> None:
        self._up = up

    async def execute(self, state: State, config: LBConfig) -> State:
        if not state.lb.is_configured():
            raise UserError("no load balancer found; run `bbl create-lbs` first")
        config = config.model_copy(update={"type": config.type or state.lb.type})
        validate_lb_config(state, config)
        updated = state.model_copy(deep=True)
        updated.lb = lb_from_config(config)
        return await self._up.execute(updated, PlanConfig())


class DeleteLBs:
    def __init__(self, up: Up) -> None:
        self._up = up

    async def execute(self, state: State) -> State:
        if not state.lb.is_configured():
            logger.info("no load balancers to delete")
            return state
        updated = state.model_copy(deep=True)
        updated.lb = LB()
        return await self._up.execute(updated, PlanConfig())


class LBs:
    """Prints the LB names and addresses the engine reported."""

    def __init__(
        self,
        terraform_manager: TerraformManager,
        output: Optional[Callable[[str], None]] = None,
    ) -> None:
        self._terraform_manager = terraform_manager
        self._output = output or print

    async def execute(self, state: State) -> List[str]:
        if not state.lb.is_configured():
            raise UserError("no lbs found")
        outputs = await self._terraform_manager.get_outputs()
        lines: List[str] = []
        if state.iaas == IaaSName.gcp.value:
            if state.lb.type == "cf":
                lines.append(f"CF Router LB: {outputs.get_string('router_lb_ip')}")
            else:
                lines.append(
                    f"Concourse LB: {outputs.get_string('concourse_target_pool')} "
                    f"({outputs.get_string('concourse_lb_ip')})"
                )
        elif state.iaas == IaaSName.aws.value:
            if state.lb.type == "cf":
                lines.append(
                    f"CF Router LB: {outputs.get_string('cf_router_lb_name')} "
                    f"[{outputs.get_string('cf_router_lb_url')}]"
                )
            else:
                lines.append(
                    f"Concourse LB: {outputs.get_string('concourse_lb_name')} "
                    f"[{outputs.get_string('concourse_lb_url')}]"
                )
        for line in lines:
            self._output(line)
        return lines


__all__ = [
    "LBConfig",
    "CreateLBs",
    "UpdateLBs",
    "DeleteLBs",
    "LBs",
    "validate_lb_config",
]
