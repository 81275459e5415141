"""
bbl/config.py

Loads the state for a command: bootstrap from `bbl-state.json`, migrate older
layouts, then fold in IaaS and credentials from GlobalSettings for the commands
that need them.
"""

from __future__ import annotations

import logging
import os
from typing import Any, Dict, Optional, Tuple

from bbl.errors import UserError
from bbl.models.providers import IAAS_LIST, IaaSName
from bbl.models.providers.gcp import GCPServiceAccountKey, read_service_account_key
from bbl.models.settings import GlobalSettings
from bbl.models.state import State
from bbl.storage.bootstrap import StateBootstrap
from bbl.storage.migrator import Migrator
from bbl.storage.store import Store

logger = logging.getLogger(__name__)

COMMANDS_REQUIRING_CREDENTIALS = frozenset(
    {"up", "down", "plan", "destroy", "create-lbs", "delete-lbs", "update-lbs", "rotate"}
)

_EMPTY: Tuple[Any, ...] = (None, "", [])


def validate_iaas(state: State) -> None:
    """Require a known IaaS and every credential it needs.

    Raises:
        UserError: Naming the IaaS choices or each missing flag.
    """
    if state.iaas not in {name.value for name in IaaSName}:
        raise UserError(f"--iaas [{IAAS_LIST}] must be provided or BBL_IAAS must be set")
    missing = state.provider_record().missing_flags()
    if missing:
        raise UserError(
            "\n".join(
                f"Missing {flag}. To see all required credentials run `bbl plan --help`."
                for flag in missing
            )
        )


def _settings_for(iaas: str, settings: GlobalSettings, record_fields: Any) -> Dict[str, Any]:
    values = {}
    for field in record_fields:
        value = getattr(settings, f"{iaas}_{field}", None)
        if value not in _EMPTY:
            values[field] = value
    return values


def _reject_change(label: str, current: str, requested: Optional[str]) -> None:
    if current and requested and requested != current:
        raise UserError(
            f"The {label} cannot be changed for an existing environment. "
            f"The current {label} is {current}."
        )


def merge_settings(state: State, settings: GlobalSettings) -> State:
    """Apply `--iaas` and credential flags/env to a copy of `state`.

    Existing environments keep their IaaS, region and GCP project.

    Raises:
        UserError: On an attempted change, or an unreadable GCP key.
    """
    updated = state.model_copy(deep=True)
    existing = bool(state.env_id)

    if settings.iaas:
        if existing:
            _reject_change("iaas type", state.iaas, settings.iaas)
        updated.iaas = settings.iaas
    if updated.iaas not in {name.value for name in IaaSName}:
        return updated

    record = updated.provider_record()
    values = _settings_for(updated.iaas, settings, type(record).model_fields)
    if existing:
        _reject_change("region", getattr(record, "region", ""), values.get("region"))

    if updated.iaas == IaaSName.gcp.value and "service_account_key" in values:
        try:
            key_json = read_service_account_key(values["service_account_key"])
            project_id = GCPServiceAccountKey.model_validate_json(key_json).project_id
        except ValueError as exc:
            raise UserError(str(exc)) from exc
        if existing:
            _reject_change("project ID", state.gcp.project_id, project_id)
        values["service_account_key"] = key_json
        values["project_id"] = project_id

    setattr(updated, updated.iaas, record.model_copy(update=values))
    return updated


class StateLoader:
    """Builds the Store and the loaded state for one invocation.

    Args:
        settings (GlobalSettings): Flags and environment.
        bootstrap (Optional[StateBootstrap]): Reads bbl-state.json.
    """

    def __init__(self, settings: GlobalSettings, bootstrap: Optional[StateBootstrap] = None) -> None:
        self._settings = settings
        self._bootstrap = bootstrap or StateBootstrap()

    def store(self) -> Store:
        state_dir = self._settings.resolved_state_dir()
        os.makedirs(state_dir, exist_ok=True)
        return Store(state_dir)

    def load(self, command: str) -> Tuple[State, Store]:
        """Load, migrate and (for mutating commands) validate the state.

        Raises:
            SchemaError: For a state file this bbl cannot read.
            UserError: For missing or conflicting IaaS configuration.
        """
        store = self.store()
        state = self._bootstrap.get_state(store.get_state_dir())
        state = Migrator(store).migrate(state)
        if command in COMMANDS_REQUIRING_CREDENTIALS:
            state = merge_settings(state, self._settings)
            validate_iaas(state)
        logger.debug(f"loaded state from {store.state_file}")
        return state, store


__all__ = [
    "COMMANDS_REQUIRING_CREDENTIALS",
    "StateLoader",
    "merge_settings",
    "validate_iaas",
]
