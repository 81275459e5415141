"""
bbl/storage/bootstrap.py

Loads `bbl-state.json` from a state directory and enforces the schema window.
"""

from __future__ import annotations

import json
import logging
import os
from typing import Any, Dict

from pydantic import ValidationError

from bbl.errors import SchemaError, StateDirError
from bbl.models.state import BBL_VERSION, FALLBACK_BBL_VERSION, STATE_SCHEMA, State
from bbl.storage.store import STATE_FILE_NAME

logger = logging.getLogger(__name__)

MINIMUM_SCHEMA = 3


class StateBootstrap:
    """Reads the state document, refusing schemas it cannot handle."""

    def __init__(self, schema: int = STATE_SCHEMA) -> None:
        self._schema = schema

    def get_state(self, directory: str) -> State:
        """Load the state document in `directory`.

        Returns:
            State: An empty document when there is no state file; otherwise the
            stored document, possibly tagged with an older schema version.

        Raises:
            SchemaError: If the stored version is below 3 or above STATE_SCHEMA.
            StateDirError: If the file cannot be read or parsed.
        """
        path = os.path.join(directory, STATE_FILE_NAME)
        try:
            with open(path, "r") as f:
                raw_text = f.read()
        except FileNotFoundError:
            return State()
        except OSError as exc:
            raise StateDirError(f"reading {STATE_FILE_NAME}: {exc}") from exc

        try:
            raw: Dict[str, Any] = json.loads(raw_text)
        except json.JSONDecodeError as exc:
            raise StateDirError(f"parsing {STATE_FILE_NAME}: {exc}") from exc
        if not isinstance(raw, dict):
            raise StateDirError(f"parsing {STATE_FILE_NAME}: top level is not an object")

        if not raw:
            return State(version=self._schema, bbl_version=BBL_VERSION)

        try:
            version = int(raw.get("version", 0))
        except (TypeError, ValueError) as exc:
            raise StateDirError(f"parsing {STATE_FILE_NAME}: invalid version: {exc}") from exc
        bbl_version = raw.get("bblVersion") or FALLBACK_BBL_VERSION

        if version < MINIMUM_SCHEMA:
            raise SchemaError(
                "Existing bbl environment is incompatible with bbl v3. "
                "Create a new environment with v3 to continue."
            )
        if version > self._schema:
            raise SchemaError(
                "Existing bbl environment was created with a newer version of bbl. "
                f"Please upgrade to bbl v{bbl_version}."
            )
        if version < self._schema:
            logger.warning(
                "Warning: Current schema version (%d) is newer than existing bbl "
                "environment schema (%d). Some things may not work as expected "
                "until you bbl up again.",
                self._schema,
                version,
            )

        raw["bblVersion"] = bbl_version
        try:
            return State.model_validate(raw)
        except ValidationError as exc:
            raise StateDirError(f"parsing {STATE_FILE_NAME}: {exc}") from exc


__all__ = ["StateBootstrap", "MINIMUM_SCHEMA"]
