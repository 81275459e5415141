from __future__ import annotations

import json
from pathlib import Path

from bbl.models.state import STATE_SCHEMA, State
from bbl.storage.bootstrap import StateBootstrap
from bbl.storage.migrator import Migrator
from bbl.storage.store import Store


def _legacy_state(gcp_state: State, **changes: object) -> State:
    state = gcp_state.model_copy(deep=True)
    state.version = 8
    state.env_id = "legacy-env"
    for name, value in changes.items():
        setattr(state, name, value)
    return state


def test_inline_tf_state_moves_to_vars(store: Store, state_dir: Path, gcp_state: State) -> None:
    state = _legacy_state(gcp_state, tf_state="some-tf-state")

    migrated = Migrator(store).migrate(state)

    assert (state_dir / "vars" / "terraform.tfstate").read_text() == "some-tf-state"
    assert migrated.tf_state == ""
    assert migrated.version == STATE_SCHEMA
    on_disk = json.loads((state_dir / "bbl-state.json").read_text())
    assert on_disk["tfState"] == ""
    assert on_disk["version"] == STATE_SCHEMA


def test_migrating_twice_changes_nothing(store: Store, state_dir: Path, gcp_state: State) -> None:
    state = _legacy_state(gcp_state, tf_state="some-tf-state")
    state.jumpbox.variables = "jumpbox_ssh: {}\n"
    state.bosh.state = {"current_vm_cid": "vm-123"}

    once = Migrator(store).migrate(state)
    files_after_once = {
        path.name: path.read_text() for path in (state_dir / "vars").iterdir()
    }
    twice = Migrator(store).migrate(once)

    assert twice == once
    assert {
        path.name: path.read_text() for path in (state_dir / "vars").iterdir()
    } == files_after_once


def test_inline_deployment_artifacts_move_to_vars(store: Store, state_dir: Path, gcp_state: State) -> None:
    state = _legacy_state(gcp_state)
    state.jumpbox.variables = "jumpbox_ssh: {private_key: abc}\n"
    state.jumpbox.state = {"current_vm_cid": "jumpbox-vm"}
    state.bosh.variables = "admin_password: secret\n"
    state.bosh.state = {"current_vm_cid": "director-vm"}

    migrated = Migrator(store).migrate(state)

    vars_dir = state_dir / "vars"
    assert (vars_dir / "jumpbox-vars-store.yml").read_text() == "jumpbox_ssh: {private_key: abc}\n"
    assert (vars_dir / "director-vars-store.yml").read_text() == "admin_password: secret\n"
    assert json.loads((vars_dir / "jumpbox-state.json").read_text()) == {"current_vm_cid": "jumpbox-vm"}
    assert json.loads((vars_dir / "bosh-state.json").read_text()) == {"current_vm_cid": "director-vm"}
    assert migrated.jumpbox.variables == ""
    assert migrated.jumpbox.state is None
    assert migrated.bosh.variables == ""
    assert migrated.bosh.state is None


def test_legacy_file_names_are_renamed(store: Store, state_dir: Path, gcp_state: State) -> None:
    vars_dir = state_dir / "vars"
    vars_dir.mkdir()
    (vars_dir / "terraform.tfvars").write_text("env_id=\"legacy-env\"\n")
    (vars_dir / "jumpbox-deployment-vars.yml").write_text("internal_ip: 10.0.0.5\n")
    (vars_dir / "director-variables.yml").write_text("admin_password: secret\n")
    terraform_dir = state_dir / "terraform"
    terraform_dir.mkdir()
    (terraform_dir / "template.tf").write_text("# template\n")

    Migrator(store).migrate(_legacy_state(gcp_state))

    assert (vars_dir / "bbl.tfvars").read_text() == "env_id=\"legacy-env\"\n"
    assert (vars_dir / "jumpbox-vars-file.yml").read_text() == "internal_ip: 10.0.0.5\n"
    assert (vars_dir / "director-vars-store.yml").read_text() == "admin_password: secret\n"
    assert (terraform_dir / "bbl-template.tf").read_text() == "# template\n"
    assert not (vars_dir / "terraform.tfvars").exists()
    assert not (terraform_dir / "template.tf").exists()


def test_legacy_cloud_config_dir_moves(store: Store, state_dir: Path, gcp_state: State) -> None:
    legacy = state_dir / ".bbl" / "cloudconfig"
    legacy.mkdir(parents=True)
    (legacy / "cloud-config.yml").write_text("azs: []\n")
    (legacy / "ops.yml").write_text("[]\n")

    Migrator(store).migrate(_legacy_state(gcp_state))

    assert (state_dir / "cloud-config" / "cloud-config.yml").read_text() == "azs: []\n"
    assert (state_dir / "cloud-config" / "ops.yml").read_text() == "[]\n"
    assert not (state_dir / ".bbl").exists()


def test_empty_state_is_not_written(store: Store, state_dir: Path) -> None:
    assert Migrator(store).migrate(State()) == State()
    assert not (state_dir / "bbl-state.json").exists()


def test_migrated_state_reloads_as_current(store: Store, state_dir: Path, gcp_state: State) -> None:
    Migrator(store).migrate(_legacy_state(gcp_state, tf_state="some-tf-state"))
    reloaded = StateBootstrap().get_state(str(state_dir))
    assert reloaded.version == STATE_SCHEMA
    assert reloaded.tf_state == ""
