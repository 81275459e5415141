"""
bbl/storage/store.py

Owns the state directory: writes `bbl-state.json` and hands out the canonical
subdirectories, creating them on demand.
"""

from __future__ import annotations

import os
import tempfile
import uuid
from typing import Callable, Optional

from bbl.errors import StateDirError
from bbl.models.state import BBL_VERSION, STATE_SCHEMA, State
from bbl.storage.garbage_collector import GarbageCollector

STATE_FILE_NAME = "bbl-state.json"
STATE_FILE_MODE = 0o644
DIR_MODE = 0o755


class Store:
    """Writes the state document and lays out the state directory.

    Args:
        directory (str): The state directory. Must already exist.
        garbage_collector (Optional[GarbageCollector]): Used when an empty
            state is set.
        new_id (Callable[[], str]): Produces the state id on first write.
    """

    def __init__(
        self,
        directory: str,
        garbage_collector: Optional[GarbageCollector] = None,
        new_id: Callable[[], str] = lambda: str(uuid.uuid4()),
    ) -> None:
        self._dir = directory
        self._garbage_collector = garbage_collector or GarbageCollector()
        self._new_id = new_id

    @property
    def state_file(self) -> str:
        return os.path.join(self._dir, STATE_FILE_NAME)

    def set(self, state: State) -> State:
        """Persist `state`, or clean the directory if `state` is empty.

        The written copy has `version` stamped to STATE_SCHEMA, `bblVersion` to
        the running version, and an `id` when it had none.

        Returns:
            State: The document as written (or the empty document).

        Raises:
            StateDirError: When the directory is missing or cannot be written.
        """
        if not os.path.isdir(self._dir):
            raise StateDirError(f"state directory {self._dir} does not exist")

        if state.is_empty():
            try:
                self._garbage_collector.remove(self._dir)
            except OSError as exc:
                raise StateDirError(f"Garbage collector clean up: {exc}") from exc
            return state

        stamped = state.model_copy(deep=True)
        stamped.version = STATE_SCHEMA
        stamped.bbl_version = BBL_VERSION
        if not stamped.id:
            try:
                stamped.id = self._new_id()
            except Exception as exc:
                raise StateDirError(f"Create state ID: {exc}") from exc

        self._write_atomic(stamped.to_json())
        return stamped

    def _write_atomic(self, content: str) -> None:
        fd, tmp_path = tempfile.mkstemp(dir=self._dir, prefix=".bbl-state-", suffix=".tmp")
        try:
            with os.fdopen(fd, "w") as f:
                f.write(content)
            os.chmod(tmp_path, STATE_FILE_MODE)
            os.replace(tmp_path, self.state_file)
        except OSError as exc:
            if os.path.exists(tmp_path):
                os.remove(tmp_path)
            raise StateDirError(f"writing {STATE_FILE_NAME}: {exc}") from exc

    def _get_dir(self, name: str, label: str) -> str:
        path = os.path.join(self._dir, name)
        if os.path.exists(path) and not os.path.isdir(path):
            raise StateDirError(f"Get {label} dir: not a directory")
        try:
            os.makedirs(path, mode=DIR_MODE, exist_ok=True)
        except OSError as exc:
            raise StateDirError(f"Get {label} dir: {exc}") from exc
        return path

    def get_state_dir(self) -> str:
        return self._dir

    def get_cloud_config_dir(self) -> str:
        return self._get_dir("cloud-config", "cloud-config")

    def get_runtime_config_dir(self) -> str:
        return self._get_dir("runtime-config", "runtime-config")

    def get_vars_dir(self) -> str:
        return self._get_dir("vars", "vars")

    def get_terraform_dir(self) -> str:
        return self._get_dir("terraform", "terraform")

    def get_director_deployment_dir(self) -> str:
        return self._get_dir("bosh-deployment", "director deployment")

    def get_jumpbox_deployment_dir(self) -> str:
        return self._get_dir("jumpbox-deployment", "jumpbox deployment")

    def get_bbl_ops_files_dir(self) -> str:
        return self._get_dir("bbl-ops-files", "bbl ops files")

    def get_old_bbl_dir(self) -> str:
        """The legacy `.bbl` directory. Not created."""
        return os.path.join(self._dir, ".bbl")


__all__ = ["Store", "STATE_FILE_NAME", "STATE_FILE_MODE", "DIR_MODE"]
