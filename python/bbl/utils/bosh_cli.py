"""
bbl/utils/bosh_cli.py

Drives the director CLI (`bosh`) against a bootstrapped environment.

The director is only reachable through the jumpbox, so every client is built
inside `jumpbox_proxy`, which materializes the jumpbox private key as an
ephemeral file and exposes it via BOSH_ALL_PROXY. The key file is removed when
the block exits.

Usage example:
    async with director_cli(state, store) as cli:
        await cli.update_cloud_config(base, ops_files, vars_file)
"""

from __future__ import annotations

import logging
import os
from contextlib import asynccontextmanager
from typing import Any, AsyncGenerator, Dict, List, Optional

import yaml

from bbl.errors import BBLError, DirectorUnreachableError
from bbl.models.state import State
from bbl.storage.store import Store
from bbl.utils.async_command_runner import CommandError, run_command
from bbl.utils.ephemeral_file import ephemeral_file

logger = logging.getLogger(__name__)

DEFAULT_BOSH_BINARY = "bosh"
JUMPBOX_VARS_STORE = "jumpbox-vars-store.yml"


def read_vars_store(path: str) -> Dict[str, Any]:
    """Parse a create-env vars-store; a missing file reads as empty."""
    try:
        with open(path, "r") as f:
            content = yaml.safe_load(f)
    except FileNotFoundError:
        return {}
    return content if isinstance(content, dict) else {}


def jumpbox_private_key(store: Store) -> str:
    """The jumpbox user's private key from vars/jumpbox-vars-store.yml."""
    vars_store = read_vars_store(os.path.join(store.get_vars_dir(), JUMPBOX_VARS_STORE))
    ssh = vars_store.get("jumpbox_ssh") or {}
    return ssh.get("private_key", "") if isinstance(ssh, dict) else ""


def all_proxy_url(jumpbox_url: str, key_path: str) -> str:
    return f"ssh+socks5://jumpbox@{jumpbox_url}?private-key={key_path}"


@asynccontextmanager
async def jumpbox_proxy(state: State, store: Store) -> AsyncGenerator[Dict[str, str], None]:
    """Yield the BOSH_ALL_PROXY environment for tunnelling through the jumpbox.

    Raises:
        BBLError: If the jumpbox URL or private key is not available yet.
    """
    key = jumpbox_private_key(store)
    if not state.jumpbox.url or not key:
        raise BBLError("jumpbox is not available: missing url or ssh key")
    async with ephemeral_file("jumpbox.key", key) as key_path:
        yield {"BOSH_ALL_PROXY": all_proxy_url(state.jumpbox.url, key_path)}


class BoshCLI:
    """Thin wrapper over the `bosh` binary with a fixed environment."""

    def __init__(self, binary: str = DEFAULT_BOSH_BINARY, env: Optional[Dict[str, str]] = None) -> None:
        self._binary = binary
        self._env = env or {}

    async def run(self, args: List[str]) -> str:
        return await run_command(
            [self._binary, "--non-interactive"] + args, env=self._env, sensitive=True
        )

    async def env(self) -> str:
        return await self.run(["env"])

    async def update_cloud_config(
        self, cloud_config: str, ops_files: List[str], vars_file: str
    ) -> None:
        args = ["update-cloud-config", cloud_config, "--vars-file", vars_file]
        for ops_file in ops_files:
            args += ["-o", ops_file]
        await self.run(args)

    async def update_runtime_config(self, runtime_config: str, name: str) -> None:
        await self.run(["update-runtime-config", runtime_config, "--name", name])

    async def interpolate(self, base: str, ops_files: List[str], vars_file: str) -> str:
        """Render `base` with ops files and vars applied, without a director."""
        args = ["interpolate", base, "--vars-file", vars_file]
        for ops_file in ops_files:
            args += ["-o", ops_file]
        return await run_command([self._binary] + args, sensitive=True)


def director_env(state: State, ca_cert_path: str) -> Dict[str, str]:
    return {
        "BOSH_ENVIRONMENT": state.bosh.director_address,
        "BOSH_CLIENT": state.bosh.director_username,
        "BOSH_CLIENT_SECRET": state.bosh.director_password,
        "BOSH_CA_CERT": ca_cert_path,
    }


@asynccontextmanager
async def director_cli(
    state: State, store: Store, binary: str = DEFAULT_BOSH_BINARY
) -> AsyncGenerator[BoshCLI, None]:
    """Yield a BoshCLI authenticated against the state's director.

    Raises:
        DirectorUnreachableError: If the director does not answer `bosh env`.
    """
    if not state.bosh.director_address:
        raise DirectorUnreachableError("director address is not set; run `bbl up` first")

    async with jumpbox_proxy(state, store) as proxy_env:
        async with ephemeral_file("director-ca.crt", state.bosh.director_ssl_ca) as ca_path:
            env = director_env(state, ca_path)
            env.update(proxy_env)
            cli = BoshCLI(binary, env)
            try:
                await cli.env()
            except CommandError as exc:
                raise DirectorUnreachableError(
                    f"director at {state.bosh.director_address} is unreachable: {exc}"
                ) from exc
            logger.debug(f"connected to director {state.bosh.director_name}")
            yield cli


__all__ = [
    "BoshCLI",
    "DEFAULT_BOSH_BINARY",
    "all_proxy_url",
    "director_cli",
    "director_env",
    "jumpbox_private_key",
    "jumpbox_proxy",
    "read_vars_store",
]
