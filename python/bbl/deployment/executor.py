"""
bbl/deployment/executor.py

Writes and runs the create-env scripts for the jumpbox and the director.

`plan_*` vendors the deployment manifests into the state directory and renders
`create-<name>.sh` / `delete-<name>.sh`. The scripts refer to the state
directory as ${BBL_STATE_DIR} and read credentials from BBL_* environment
variables, so their text depends only on the IaaS and is safe to commit.

`create_env` / `delete_env` run a user's `<verb>-<name>-override.sh` instead of
the bbl script when one exists.
"""

from __future__ import annotations

import logging
import os
import shutil
from contextlib import asynccontextmanager
from typing import AsyncGenerator, Dict, List, Optional

import aiofiles
import yaml
from pydantic import BaseModel

from bbl.errors import CreateEnvError
from bbl.models.providers import PROVIDER_MODEL_MAP, IaaSName
from bbl.models.state import State
from bbl.storage.store import Store
from bbl.utils.async_command_runner import CommandError, run_command_interactive
from bbl.utils.bosh_cli import DEFAULT_BOSH_BINARY, read_vars_store
from bbl.utils.ephemeral_file import ephemeral_file

logger = logging.getLogger(__name__)

ASSETS_DIR = os.path.join(os.path.dirname(os.path.abspath(__file__)), "assets")
SCRIPT_MODE = 0o700
ASSET_MODE = 0o644
VARS_FILE_MODE = 0o600
STATE_DIR_VAR = "${BBL_STATE_DIR}"

# bbl ops files layered onto the director manifest, per IaaS.
DIRECTOR_BBL_OPS_FILES: Dict[IaaSName, List[str]] = {
    IaaSName.gcp: ["bbl-ops-files/gcp/bosh-director-ephemeral-ip-ops.yml"],
    IaaSName.aws: ["bbl-ops-files/aws/bosh-director-ephemeral-ip-ops.yml"],
}
ROTATE_JUMPBOX_OPS_FILE = "bbl-ops-files/jumpbox/rotate-jumpbox-ssh-key.yml"


class Deployment(BaseModel):
    """File names belonging to one create-env deployment."""

    name: str
    manifest_dir: str
    manifest: str
    state_file: str
    vars_store: str
    vars_file: str
    ops_files: List[str] = []


JUMPBOX_DEPLOYMENT = Deployment(
    name="jumpbox",
    manifest_dir="jumpbox-deployment",
    manifest="jumpbox.yml",
    state_file="jumpbox-state.json",
    vars_store="jumpbox-vars-store.yml",
    vars_file="jumpbox-vars-file.yml",
)

DIRECTOR_DEPLOYMENT = Deployment(
    name="director",
    manifest_dir="bosh-deployment",
    manifest="bosh.yml",
    state_file="bosh-state.json",
    vars_store="director-vars-store.yml",
    vars_file="director-vars-file.yml",
    ops_files=["jumpbox-user.yml", "uaa.yml", "credhub.yml"],
)


def render_script(bosh_binary: str, command: str, args: List[str]) -> str:
    """Render a create-env/delete-env script that forwards extra arguments."""
    lines = [f"#!/bin/sh\n{bosh_binary} {command} \\\n"]
    lines += [f"  {arg} \\\n" for arg in args]
    lines.append('  "$@"\n')
    return "".join(lines)


class CreateEnvExecutor:
    """Plans and runs create-env for the jumpbox and the director.

    Args:
        store (Store): Provides the state directory layout.
        bosh_binary (str): The create-env binary written into the scripts.
        assets_dir (str): Root of the vendored deployment manifests.
    """

    def __init__(
        self,
        store: Store,
        bosh_binary: str = DEFAULT_BOSH_BINARY,
        assets_dir: str = ASSETS_DIR,
    ) -> None:
        self._store = store
        self._bosh_binary = bosh_binary
        self._assets_dir = assets_dir

    def _copy_assets(self, name: str, destination: str) -> None:
        shutil.copytree(os.path.join(self._assets_dir, name), destination, dirs_exist_ok=True)
        for root, _dirs, files in os.walk(destination):
            for file_name in files:
                os.chmod(os.path.join(root, file_name), ASSET_MODE)

    def _args(self, deployment: Deployment, iaas: IaaSName) -> List[str]:
        base = f"{STATE_DIR_VAR}/{deployment.manifest_dir}"
        args = [
            f"{base}/{deployment.manifest}",
            f"--state {STATE_DIR_VAR}/vars/{deployment.state_file}",
            f"--vars-store {STATE_DIR_VAR}/vars/{deployment.vars_store}",
            f"--vars-file {STATE_DIR_VAR}/vars/{deployment.vars_file}",
            f"-o {base}/{iaas.value}/cpi.yml",
        ]
        args += [f"-o {base}/{ops_file}" for ops_file in deployment.ops_files]
        if deployment.name == DIRECTOR_DEPLOYMENT.name:
            args += [f"-o {STATE_DIR_VAR}/{path}" for path in DIRECTOR_BBL_OPS_FILES.get(iaas, [])]
        for var in PROVIDER_MODEL_MAP[iaas].CREATE_ENV_VARS:
            args.append(var if var.startswith("--") else f"-v {var}")
        return args

    def _script_path(self, verb: str, deployment: Deployment) -> str:
        return os.path.join(self._store.get_state_dir(), f"{verb}-{deployment.name}.sh")

    def _override_path(self, verb: str, deployment: Deployment) -> str:
        return os.path.join(self._store.get_state_dir(), f"{verb}-{deployment.name}-override.sh")

    async def _write_script(self, path: str, content: str) -> None:
        async with aiofiles.open(path, "w") as f:
            await f.write(content)
        os.chmod(path, SCRIPT_MODE)

    async def _plan(self, deployment: Deployment, iaas_value: str) -> None:
        iaas = IaaSName(iaas_value)
        if deployment.name == JUMPBOX_DEPLOYMENT.name:
            self._copy_assets(deployment.manifest_dir, self._store.get_jumpbox_deployment_dir())
        else:
            self._copy_assets(deployment.manifest_dir, self._store.get_director_deployment_dir())
        self._copy_assets("bbl-ops-files", self._store.get_bbl_ops_files_dir())
        self._store.get_vars_dir()

        args = self._args(deployment, iaas)
        await self._write_script(
            self._script_path("create", deployment),
            render_script(self._bosh_binary, "create-env", args),
        )
        await self._write_script(
            self._script_path("delete", deployment),
            render_script(self._bosh_binary, "delete-env", args),
        )

    async def plan_jumpbox(self, iaas: str) -> None:
        """Vendor the jumpbox manifests and write create/delete-jumpbox.sh."""
        await self._plan(JUMPBOX_DEPLOYMENT, iaas)

    async def plan_director(self, iaas: str) -> None:
        """Vendor the director manifests and write create/delete-director.sh."""
        await self._plan(DIRECTOR_DEPLOYMENT, iaas)

    def is_planned(self, deployment: Deployment) -> bool:
        return os.path.isfile(self._script_path("create", deployment))

    def vars_store_path(self, deployment: Deployment) -> str:
        return os.path.join(self._store.get_vars_dir(), deployment.vars_store)

    def vars_file_path(self, deployment: Deployment) -> str:
        return os.path.join(self._store.get_vars_dir(), deployment.vars_file)

    def deployment_exists(self, deployment: Deployment) -> bool:
        return os.path.isfile(os.path.join(self._store.get_vars_dir(), deployment.state_file))

    async def write_deployment_vars(self, deployment: Deployment, content: str) -> None:
        """Write vars/<name>-vars-file.yml."""
        path = self.vars_file_path(deployment)
        async with aiofiles.open(path, "w") as f:
            await f.write(content)
        os.chmod(path, VARS_FILE_MODE)

    def read_deployment_vars(self, deployment: Deployment) -> str:
        try:
            with open(self.vars_file_path(deployment), "r") as f:
                return f.read()
        except FileNotFoundError:
            return ""

    def read_vars_store(self, deployment: Deployment) -> Dict:
        return read_vars_store(self.vars_store_path(deployment))

    def write_vars_store(self, deployment: Deployment, vars_store: Dict) -> None:
        path = self.vars_store_path(deployment)
        with open(path, "w") as f:
            yaml.safe_dump(vars_store, f, default_flow_style=False)
        os.chmod(path, VARS_FILE_MODE)

    @asynccontextmanager
    async def _script_env(
        self, state: State, deployment: Deployment
    ) -> AsyncGenerator[Dict[str, str], None]:
        vars_dir = self._store.get_vars_dir()
        env = {
            "BBL_STATE_DIR": self._store.get_state_dir(),
            "BBL_IAAS": state.iaas,
            "BBL_VARS_STORE": os.path.join(vars_dir, deployment.vars_store),
            "BBL_VARS_FILE": os.path.join(vars_dir, deployment.vars_file),
            "BBL_DEPLOYMENT_STATE": os.path.join(vars_dir, deployment.state_file),
        }
        env.update(state.provider_record().to_env_dict())
        if state.iaas == IaaSName.gcp.value:
            async with ephemeral_file(
                "service-account-key.json", state.gcp.service_account_key
            ) as key_path:
                env["BBL_GCP_SERVICE_ACCOUNT_KEY_PATH"] = key_path
                yield env
        else:
            yield env

    async def _run_script(
        self,
        verb: str,
        deployment: Deployment,
        state: State,
        extra_args: Optional[List[str]],
        extra_env: Optional[Dict[str, str]],
    ) -> None:
        script = self._override_path(verb, deployment)
        if os.path.isfile(script):
            logger.info(f"step: running {os.path.basename(script)}")
        else:
            script = self._script_path(verb, deployment)

        async with self._script_env(state, deployment) as env:
            env.update(extra_env or {})
            try:
                return_code = await run_command_interactive(
                    ["/bin/sh", script] + (extra_args or []), env=env
                )
            except CommandError as exc:
                raise CreateEnvError(f"Running {script}: {exc}") from exc
        if return_code != 0:
            raise CreateEnvError(f"Running {script}: exit status {return_code}", return_code)

    async def create_env(
        self,
        deployment: Deployment,
        state: State,
        extra_args: Optional[List[str]] = None,
        extra_env: Optional[Dict[str, str]] = None,
    ) -> Dict:
        """Run create-<name>.sh (or its override) and return the vars-store.

        Raises:
            CreateEnvError: If the script cannot be started or exits non-zero.
        """
        await self._run_script("create", deployment, state, extra_args, extra_env)
        return self.read_vars_store(deployment)

    async def delete_env(
        self,
        deployment: Deployment,
        state: State,
        extra_env: Optional[Dict[str, str]] = None,
    ) -> None:
        """Run delete-<name>.sh (or its override); skipped if never created.

        Raises:
            CreateEnvError: If the script exits non-zero.
        """
        if not self.deployment_exists(deployment):
            logger.info(f"no {deployment.name} deployment state found, skipping delete-env")
            return
        try:
            await self._run_script("delete", deployment, state, None, extra_env)
        except CreateEnvError as exc:
            raise CreateEnvError(
                f"Run bosh delete-env {deployment.name}: {exc}", exc.return_code
            ) from exc


__all__ = [
    "CreateEnvExecutor",
    "Deployment",
    "JUMPBOX_DEPLOYMENT",
    "DIRECTOR_DEPLOYMENT",
    "ROTATE_JUMPBOX_OPS_FILE",
    "render_script",
]
