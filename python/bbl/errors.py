"""
bbl/errors.py

Exception hierarchy shared by every subsystem. The CLI maps `UserError` (and its
subclasses) to exit code 1 and every other `BBLError` to exit code 2.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Optional

if TYPE_CHECKING:
    from bbl.models.state import State


class BBLError(Exception):
    """Base class for every error raised deliberately by bbl."""


class UserError(BBLError):
    """Invalid input: a bad flag, env-id, IaaS, or missing credential."""


class EnvIDCollisionError(UserError):
    """The requested env-id is already in use in the target cloud."""

    def __init__(self, name: str) -> None:
        super().__init__(
            f"It looks like a bbl environment already exists with the name '{name}'. "
            "Please provide a different name."
        )
        self.name = name


class SchemaError(UserError):
    """The state file cannot be handled by this version of bbl."""


class StateDirError(BBLError):
    """I/O failure on the state directory itself."""


class DirectorUnreachableError(BBLError):
    """The director CLI could not be reached with the credentials in state."""


class PartialStateError(BBLError):
    """Failure after some work was done; `state` holds what must be persisted.

    Attributes:
        state (State): The state document as of the failure.
        underlying (Exception): The error that interrupted the stage.
    """

    def __init__(self, message: str, state: "State", underlying: Exception) -> None:
        super().__init__(message)
        self.state = state
        self.underlying = underlying


class TerraformManagerError(PartialStateError):
    """The engine failed; `state.latest_tf_output` holds its captured output."""


class ManagerCreateError(PartialStateError):
    """create-env failed for the jumpbox or the director."""


class ManagerDeleteError(PartialStateError):
    """delete-env failed for the jumpbox or the director."""


class CreateEnvError(BBLError):
    """A create/delete script exited non-zero.

    Attributes:
        return_code (Optional[int]): Exit status of the script, when known.
    """

    def __init__(self, message: str, return_code: Optional[int] = None) -> None:
        super().__init__(message)
        self.return_code = return_code


__all__ = [
    "BBLError",
    "UserError",
    "EnvIDCollisionError",
    "SchemaError",
    "StateDirError",
    "DirectorUnreachableError",
    "PartialStateError",
    "TerraformManagerError",
    "ManagerCreateError",
    "ManagerDeleteError",
    "CreateEnvError",
]
