"""
bbl/utils/terraform/commands.py

Drives the terraform CLI inside a state directory. The executor renders
`terraform/bbl-template.tf` and `vars/bbl.tfvars`, runs the engine with the
state kept at `vars/terraform.tfstate`, and captures combined output into an
OutputBuffer so `bbl latest-error` can replay it.

Provider credentials are passed as TF_VAR_* environment variables and never
written to disk by this module.
"""

from __future__ import annotations

import glob
import json
import logging
import os
import re
from typing import Any, Dict, List, Optional

import aiofiles

from bbl.errors import BBLError
from bbl.models.terraform import OutputValue
from bbl.models.validator import validate_type
from bbl.storage.store import Store
from bbl.utils.async_command_runner import (
    CommandError,
    OutputBuffer,
    run_command,
    run_command_streaming,
)
from bbl.utils.terraform.binary import TerraformBinary

logger = logging.getLogger(__name__)

TEMPLATE_FILE = "bbl-template.tf"
TFVARS_FILE = "bbl.tfvars"
TFSTATE_FILE = "terraform.tfstate"
REDACTED_NOTICE = (
    "Some output has been redacted, use `bbl latest-error` to see it or run again with --debug"
)
VERSION_PATTERN = re.compile(r"\d+\.\d+\.\d+")


class ExecutorError(BBLError):
    """The engine failed. Carries whatever tfstate it left behind.

    Attributes:
        tf_state (str): Contents of vars/terraform.tfstate after the failure.
        underlying (Exception): The original failure.
        debug (bool): Whether output was already shown to the user.
    """

    def __init__(self, tf_state: str, underlying: Exception, debug: bool) -> None:
        message = str(underlying) if debug else f"{underlying}\n{REDACTED_NOTICE}"
        super().__init__(message)
        self.tf_state = tf_state
        self.underlying = underlying
        self.debug = debug


class ExecutorApplyError(ExecutorError):
    """`terraform apply` failed."""


class ExecutorDestroyError(ExecutorError):
    """`terraform destroy` failed."""


def format_tfvars(inputs: Dict[str, Any]) -> str:
    """Render a flat input map as a .tfvars document with sorted keys."""
    return "".join(f"{key}={json.dumps(inputs[key])}\n" for key in sorted(inputs))


class TerraformExecutor:
    """Runs terraform for one state directory.

    Args:
        binary (TerraformBinary): Resolves the executable.
        store (Store): Provides the terraform and vars directories.
        debug (bool): Stream engine output to stdout as it runs.
        buffer (Optional[OutputBuffer]): Receives combined engine output.
    """

    def __init__(
        self,
        binary: TerraformBinary,
        store: Store,
        debug: bool = False,
        buffer: Optional[OutputBuffer] = None,
    ) -> None:
        self._binary = binary
        self._store = store
        self._debug = debug
        self._buffer = buffer or OutputBuffer()

    @property
    def latest_output(self) -> str:
        return self._buffer.getvalue()

    def _state_path(self) -> str:
        return os.path.join(self._store.get_vars_dir(), TFSTATE_FILE)

    def _var_file_args(self) -> List[str]:
        vars_dir = self._store.get_vars_dir()
        user_tfvars = sorted(
            path
            for path in glob.glob(os.path.join(vars_dir, "*.tfvars"))
            if os.path.basename(path) != TFVARS_FILE
        )
        return [f"-var-file={path}" for path in [os.path.join(vars_dir, TFVARS_FILE)] + user_tfvars]

    async def setup(self, template: str, inputs: Dict[str, Any]) -> None:
        """Write the template and the bbl-owned tfvars file."""
        template_path = os.path.join(self._store.get_terraform_dir(), TEMPLATE_FILE)
        async with aiofiles.open(template_path, "w") as f:
            await f.write(template)
        os.chmod(template_path, 0o644)

        tfvars_path = os.path.join(self._store.get_vars_dir(), TFVARS_FILE)
        async with aiofiles.open(tfvars_path, "w") as f:
            await f.write(format_tfvars(inputs))
        os.chmod(tfvars_path, 0o644)

    async def _run(self, args: List[str], env: Optional[Dict[str, str]] = None) -> None:
        await run_command_streaming(
            [self._binary.path()] + args,
            buffer=self._buffer,
            echo=self._debug,
            env=env,
            cwd=self._store.get_terraform_dir(),
        )

    async def init(self) -> None:
        """Run `terraform init` in the terraform directory."""
        await self._run(["init", "-input=false", "-no-color"])

    def read_state(self) -> str:
        """Contents of vars/terraform.tfstate, or "" if there is none."""
        try:
            with open(self._state_path(), "r") as f:
                return f.read()
        except FileNotFoundError:
            return ""

    async def apply(
        self, template: str, inputs: Dict[str, Any], credentials: Dict[str, str]
    ) -> str:
        """Render and apply. Returns the resulting tfstate.

        Raises:
            ExecutorApplyError: Carrying the partial tfstate.
        """
        self._buffer.reset()
        await self.setup(template, inputs)
        try:
            await self.init()
            await self._run(
                ["apply", "-auto-approve", "-input=false", "-no-color", f"-state={self._state_path()}"]
                + self._var_file_args(),
                env=credentials,
            )
        except CommandError as exc:
            raise ExecutorApplyError(self.read_state(), exc, self._debug) from exc
        return self.read_state()

    async def destroy(
        self, template: str, inputs: Dict[str, Any], credentials: Dict[str, str]
    ) -> str:
        """Render and destroy. Returns the remaining tfstate.

        Raises:
            ExecutorDestroyError: Carrying the partial tfstate.
        """
        self._buffer.reset()
        await self.setup(template, inputs)
        try:
            await self.init()
            await self._run(
                ["destroy", "-auto-approve", "-input=false", "-no-color", f"-state={self._state_path()}"]
                + self._var_file_args(),
                env=credentials,
            )
        except CommandError as exc:
            raise ExecutorDestroyError(self.read_state(), exc, self._debug) from exc
        return self.read_state()

    async def outputs(self) -> Dict[str, Any]:
        """All outputs in the current tfstate as name -> value."""
        if not self.read_state():
            return {}
        try:
            raw = await run_command(
                [self._binary.path(), "output", "-json", f"-state={self._state_path()}"],
                cwd=self._store.get_terraform_dir(),
            )
            parsed = validate_type(
                json.loads(raw or "{}"), Dict[str, OutputValue], "terraform outputs"
            )
        except (CommandError, ValueError) as exc:
            raise BBLError(f"Get terraform outputs: {exc}") from exc
        return {name: output.value for name, output in parsed.items()}

    async def output(self, name: str) -> str:
        """A single output rendered as a string."""
        outputs = await self.outputs()
        if name not in outputs:
            raise BBLError(f"terraform output {name!r} not found")
        value = outputs[name]
        return value if isinstance(value, str) else json.dumps(value)

    async def version(self) -> str:
        """The engine version, e.g. "1.5.7"."""
        try:
            raw = await run_command([self._binary.path(), "version"])
        except CommandError as exc:
            raise BBLError(f"Get terraform version: {exc}") from exc
        match = VERSION_PATTERN.search(raw)
        if match is None:
            raise BBLError("Terraform version could not be parsed")
        return match.group(0)

    def is_paved(self) -> bool:
        """True when the tfstate holds at least one resource."""
        content = self.read_state()
        if not content:
            return False
        try:
            return bool(json.loads(content).get("resources"))
        except json.JSONDecodeError:
            return False


__all__ = [
    "ExecutorError",
    "ExecutorApplyError",
    "ExecutorDestroyError",
    "TerraformExecutor",
    "format_tfvars",
    "REDACTED_NOTICE",
    "TEMPLATE_FILE",
    "TFVARS_FILE",
    "TFSTATE_FILE",
]
