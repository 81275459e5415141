"""
bbl/commands/state_query.py

Read-only verbs. Each one reads the loaded state document (and, for a few, the
engine outputs or vars-stores) and prints a single value to stdout; none of
them writes to the state directory.
"""

from __future__ import annotations

import os
import tempfile
from typing import Callable, Dict, List, Optional

from bbl.cloudconfig.manager import CloudConfigManager
from bbl.deployment.executor import DIRECTOR_DEPLOYMENT, JUMPBOX_DEPLOYMENT, CreateEnvExecutor
from bbl.deployment.manager import BoshManager
from bbl.errors import UserError
from bbl.models.state import BBL_VERSION, State
from bbl.storage.store import Store
from bbl.utils.bosh_cli import all_proxy_url, jumpbox_private_key
from bbl.utils.terraform import TerraformManager

Printer = Callable[[str], None]

ENV_ID = "environment id"
SSH_KEY = "ssh key"
DIRECTOR_SSH_KEY = "director ssh key"
JUMPBOX_ADDRESS = "jumpbox address"
DIRECTOR_ADDRESS = "director address"
DIRECTOR_USERNAME = "director username"
DIRECTOR_PASSWORD = "director password"
DIRECTOR_CA_CERT = "director ca cert"

# Verb name -> property it prints.
QUERY_VERBS: Dict[str, str] = {
    "env-id": ENV_ID,
    "ssh-key": SSH_KEY,
    "director-ssh-key": DIRECTOR_SSH_KEY,
    "jumpbox-address": JUMPBOX_ADDRESS,
    "director-address": DIRECTOR_ADDRESS,
    "director-username": DIRECTOR_USERNAME,
    "director-password": DIRECTOR_PASSWORD,
    "director-ca-cert": DIRECTOR_CA_CERT,
}

DIRECTOR_PROPERTIES = (
    DIRECTOR_SSH_KEY,
    DIRECTOR_USERNAME,
    DIRECTOR_PASSWORD,
    DIRECTOR_CA_CERT,
)


class StateQuery:
    """Prints one property of the environment.

    With `noDirector` set, every director property but the address is refused;
    the address then falls back to the engine's `external_ip` output.
    """

    def __init__(
        self,
        store: Store,
        executor: CreateEnvExecutor,
        terraform_manager: TerraformManager,
        property_name: str,
        output: Optional[Printer] = None,
    ) -> None:
        self._store = store
        self._executor = executor
        self._terraform_manager = terraform_manager
        self._property_name = property_name
        self._output = output or print

    async def value(self, state: State) -> str:
        if state.no_director and self._property_name in DIRECTOR_PROPERTIES:
            raise UserError("Error BBL does not manage this director.")

        name = self._property_name
        if name == ENV_ID:
            return state.env_id
        if name == SSH_KEY:
            return jumpbox_private_key(self._store)
        if name == DIRECTOR_SSH_KEY:
            ssh = self._executor.read_vars_store(DIRECTOR_DEPLOYMENT).get("jumpbox_ssh") or {}
            return ssh.get("private_key", "")
        if name == JUMPBOX_ADDRESS:
            return state.jumpbox.url
        if name == DIRECTOR_ADDRESS:
            if state.no_director:
                outputs = await self._terraform_manager.get_outputs()
                return outputs.get_string("external_ip")
            return state.bosh.director_address
        if name == DIRECTOR_USERNAME:
            return state.bosh.director_username
        if name == DIRECTOR_PASSWORD:
            return state.bosh.director_password
        if name == DIRECTOR_CA_CERT:
            return state.bosh.director_ssl_ca
        raise UserError(f"unknown property {name!r}")

    async def execute(self, state: State) -> str:
        """Print the property.

        Raises:
            UserError: When bbl does not manage the director, or the value is empty.
        """
        value = await self.value(state)
        if not value:
            raise UserError(
                f"Could not retrieve {self._property_name}, "
                "please make sure you are targeting the proper state dir."
            )
        self._output(value)
        return value


class PrintEnv:
    """Prints `export` lines that point the bosh CLI at this environment.

    The jumpbox key is written to a fresh private temp directory that outlives
    the command, so the printed BOSH_ALL_PROXY stays usable.
    """

    def __init__(self, store: Store, output: Optional[Printer] = None) -> None:
        self._store = store
        self._output = output or print

    def variables(self, state: State) -> Dict[str, str]:
        variables: Dict[str, str] = {}
        if not state.no_director:
            variables.update(
                BOSH_CLIENT=state.bosh.director_username,
                BOSH_CLIENT_SECRET=state.bosh.director_password,
                BOSH_CA_CERT=state.bosh.director_ssl_ca,
                BOSH_ENVIRONMENT=state.bosh.director_address,
            )

        key = jumpbox_private_key(self._store)
        if key and state.jumpbox.url:
            key_dir = tempfile.mkdtemp(prefix="bbl-jumpbox")
            key_path = os.path.join(key_dir, "bosh_jumpbox_private.key")
            with open(key_path, "w") as f:
                f.write(key)
            os.chmod(key_path, 0o600)
            variables["JUMPBOX_PRIVATE_KEY"] = key_path
            variables["BOSH_ALL_PROXY"] = all_proxy_url(state.jumpbox.url, key_path)
        return variables

    async def execute(self, state: State) -> List[str]:
        if not state.env_id:
            raise UserError(
                "Could not retrieve environment id, please make sure you are "
                "targeting the proper state dir."
            )
        lines = []
        for name, value in self.variables(state).items():
            if "\n" in value:
                value = f"'{value}'"
            lines.append(f"export {name}={value}")
        for line in lines:
            self._output(line)
        return lines


class DeploymentVars:
    """Prints the vars-file create-env would use for the jumpbox or director."""

    def __init__(
        self,
        bosh_manager: BoshManager,
        terraform_manager: TerraformManager,
        deployment: str,
        output: Optional[Printer] = None,
    ) -> None:
        self._bosh_manager = bosh_manager
        self._terraform_manager = terraform_manager
        self._deployment = deployment
        self._output = output or print

    async def execute(self, state: State) -> str:
        outputs = await self._terraform_manager.get_outputs()
        if self._deployment == JUMPBOX_DEPLOYMENT.name:
            content = self._bosh_manager.get_jumpbox_deployment_vars(state, outputs)
        else:
            if state.no_director:
                raise UserError("Error BBL does not manage this director.")
            content = self._bosh_manager.get_director_deployment_vars(state, outputs)
        self._output(content)
        return content


class CloudConfig:
    """Prints the interpolated cloud-config without touching the director."""

    def __init__(
        self,
        cloud_config_manager: CloudConfigManager,
        terraform_manager: TerraformManager,
        output: Optional[Printer] = None,
    ) -> None:
        self._cloud_config_manager = cloud_config_manager
        self._terraform_manager = terraform_manager
        self._output = output or print

    async def execute(self, state: State) -> str:
        if state.no_director:
            raise UserError("Error BBL does not manage this director.")
        outputs = await self._terraform_manager.get_outputs()
        content = await self._cloud_config_manager.interpolate(state, outputs)
        self._output(content)
        return content


class LatestError:
    """Prints the captured output of the last engine run."""

    def __init__(self, output: Optional[Printer] = None) -> None:
        self._output = output or print

    async def execute(self, state: State) -> str:
        self._output(state.latest_tf_output)
        return state.latest_tf_output


def version_line() -> str:
    return f"bbl {BBL_VERSION}"


__all__ = [
    "QUERY_VERBS",
    "StateQuery",
    "PrintEnv",
    "DeploymentVars",
    "CloudConfig",
    "LatestError",
    "version_line",
]
