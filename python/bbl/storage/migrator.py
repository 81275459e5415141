"""
bbl/storage/migrator.py

Forward-only migration of older state documents and directory layouts to the
current schema. Each step is idempotent: once its source is gone it does nothing.

Steps, in order:
    1) inline tfState             -> vars/terraform.tfstate
    2) inline jumpbox/bosh vars   -> vars/{jumpbox,director}-vars-store.yml
    3) inline jumpbox/bosh state  -> vars/{jumpbox,bosh}-state.json
    4) *-deployment-vars.yml      -> *-vars-file.yml
    5) vars/terraform.tfvars      -> vars/bbl.tfvars
    6) .bbl/cloudconfig/*         -> cloud-config/*
    7) terraform/template.tf      -> terraform/bbl-template.tf
"""

from __future__ import annotations

import json
import os
import shutil
from typing import Any, Callable, Dict, List, Optional

from bbl.errors import StateDirError
from bbl.models.state import State
from bbl.storage.store import Store

ENGINE_STATE_FILE = "terraform.tfstate"


class MigrationError(StateDirError):
    """A migration step failed; the message carries the step's prefix."""


def _write(path: str, content: str) -> None:
    with open(path, "w") as f:
        f.write(content)
    os.chmod(path, 0o644)


class Migrator:
    """Applies every migration step, then persists the result once."""

    def __init__(self, store: Store) -> None:
        self._store = store
        self._steps: List[Callable[[State, str], State]] = [
            self._migrate_terraform_state,
            self._migrate_jumpbox_vars,
            self._migrate_director_vars,
            self._migrate_jumpbox_state,
            self._migrate_director_state,
            self._migrate_jumpbox_vars_file,
            self._migrate_director_vars_file,
            self._migrate_terraform_vars,
            self._migrate_cloud_config_dir,
            self._migrate_terraform_template,
        ]

    def migrate(self, state: State) -> State:
        """Run all steps against `state` and save it.

        Args:
            state (State): The loaded document; an empty one is returned as-is.

        Returns:
            State: The migrated document as written by the store.

        Raises:
            MigrationError: With a step-specific prefix.
        """
        if state.is_empty():
            return state

        try:
            vars_dir = self._store.get_vars_dir()
        except StateDirError as exc:
            raise MigrationError(f"migrating state: {exc}") from exc

        migrated = state.model_copy(deep=True)
        for step in self._steps:
            migrated = step(migrated, vars_dir)

        try:
            return self._store.set(migrated)
        except StateDirError as exc:
            raise MigrationError(f"saving migrated state: {exc}") from exc

    def _migrate_terraform_state(self, state: State, vars_dir: str) -> State:
        if not state.tf_state:
            return state
        try:
            _write(os.path.join(vars_dir, ENGINE_STATE_FILE), state.tf_state)
        except OSError as exc:
            raise MigrationError(f"migrating terraform state: {exc}") from exc
        state.tf_state = ""
        return state

    def _migrate_vars_store(
        self, inline: str, vars_dir: str, name: str, label: str, legacy_label: str
    ) -> None:
        target = os.path.join(vars_dir, f"{name}-vars-store.yml")
        legacy = os.path.join(vars_dir, f"{name}-variables.yml")
        if inline:
            try:
                _write(target, inline)
            except OSError as exc:
                raise MigrationError(f"migrating {label} variables: {exc}") from exc
        elif os.path.isfile(legacy):
            try:
                os.rename(legacy, target)
            except OSError as exc:
                raise MigrationError(f"reading legacy {legacy_label} vars store: {exc}") from exc

    def _migrate_jumpbox_vars(self, state: State, vars_dir: str) -> State:
        self._migrate_vars_store(state.jumpbox.variables, vars_dir, "jumpbox", "jumpbox", "jumpbox")
        state.jumpbox.variables = ""
        return state

    def _migrate_director_vars(self, state: State, vars_dir: str) -> State:
        self._migrate_vars_store(state.bosh.variables, vars_dir, "director", "bosh", "director")
        state.bosh.variables = ""
        return state

    def _migrate_state_blob(
        self, blob: Optional[Dict[str, Any]], vars_dir: str, name: str, label: str
    ) -> None:
        if blob is None:
            return
        try:
            content = json.dumps(blob)
        except (TypeError, ValueError) as exc:
            raise MigrationError(f"marshalling {label} state: {exc}") from exc
        try:
            _write(os.path.join(vars_dir, f"{name}-state.json"), content)
        except OSError as exc:
            raise MigrationError(f"migrating {label} state: {exc}") from exc

    def _migrate_jumpbox_state(self, state: State, vars_dir: str) -> State:
        self._migrate_state_blob(state.jumpbox.state, vars_dir, "jumpbox", "jumpbox")
        state.jumpbox.state = None
        return state

    def _migrate_director_state(self, state: State, vars_dir: str) -> State:
        self._migrate_state_blob(state.bosh.state, vars_dir, "bosh", "bosh")
        state.bosh.state = None
        return state

    def _rename(self, directory: str, old: str, new: str, label: str) -> None:
        source = os.path.join(directory, old)
        if not os.path.isfile(source):
            return
        try:
            os.rename(source, os.path.join(directory, new))
        except OSError as exc:
            raise MigrationError(f"migrating {label}: {exc}") from exc

    def _migrate_jumpbox_vars_file(self, state: State, vars_dir: str) -> State:
        self._rename(
            vars_dir, "jumpbox-deployment-vars.yml", "jumpbox-vars-file.yml", "jumpbox vars file"
        )
        return state

    def _migrate_director_vars_file(self, state: State, vars_dir: str) -> State:
        self._rename(
            vars_dir, "director-deployment-vars.yml", "director-vars-file.yml", "director vars file"
        )
        return state

    def _migrate_terraform_vars(self, state: State, vars_dir: str) -> State:
        self._rename(vars_dir, "terraform.tfvars", "bbl.tfvars", "terraform vars")
        return state

    def _migrate_cloud_config_dir(self, state: State, vars_dir: str) -> State:
        old_bbl_dir = self._store.get_old_bbl_dir()
        legacy_dir = os.path.join(old_bbl_dir, "cloudconfig")
        if not os.path.isdir(old_bbl_dir):
            return state

        try:
            names = sorted(os.listdir(legacy_dir)) if os.path.isdir(legacy_dir) else []
        except OSError as exc:
            raise MigrationError(f"reading legacy .bbl dir contents: {exc}") from exc

        if names:
            try:
                cloud_config_dir = self._store.get_cloud_config_dir()
            except StateDirError as exc:
                raise MigrationError(f"getting cloud-config dir: {exc}") from exc
            for name in names:
                source = os.path.join(legacy_dir, name)
                if not os.path.isfile(source):
                    continue
                try:
                    with open(source, "r") as f:
                        content = f.read()
                    _write(os.path.join(cloud_config_dir, name), content)
                except OSError as exc:
                    raise MigrationError(f"migrating cloud config: {exc}") from exc

        try:
            shutil.rmtree(old_bbl_dir)
        except OSError as exc:
            raise MigrationError(f"removing legacy .bbl dir: {exc}") from exc
        return state

    def _migrate_terraform_template(self, state: State, vars_dir: str) -> State:
        terraform_dir = os.path.join(self._store.get_state_dir(), "terraform")
        if os.path.isdir(terraform_dir):
            self._rename(terraform_dir, "template.tf", "bbl-template.tf", "terraform template")
        return state


__all__ = ["Migrator", "MigrationError", "ENGINE_STATE_FILE"]
