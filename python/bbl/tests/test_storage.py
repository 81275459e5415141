from __future__ import annotations

import json
import logging
import uuid
from pathlib import Path

import pytest

from bbl.errors import SchemaError, StateDirError
from bbl.models.state import BBL_VERSION, FALLBACK_BBL_VERSION, STATE_SCHEMA, State
from bbl.storage.bootstrap import StateBootstrap
from bbl.storage.ownership import Ownership, classify
from bbl.storage.patch_detector import PatchDetector
from bbl.storage.store import Store


def _touch(path: Path, content: str = "x") -> None:
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(content)


def test_set_stamps_version_and_assigns_id(store: Store, state_dir: Path, gcp_state: State) -> None:
    gcp_state.env_id = "demo"
    written = store.set(gcp_state)

    on_disk = json.loads((state_dir / "bbl-state.json").read_text())
    assert on_disk["version"] == STATE_SCHEMA
    assert on_disk["bblVersion"] == BBL_VERSION
    assert on_disk["envID"] == "demo"
    assert uuid.UUID(on_disk["id"]).version == 4
    assert written.id == on_disk["id"]
    assert (state_dir / "bbl-state.json").stat().st_mode & 0o777 == 0o644


def test_set_keeps_existing_id(store: Store, gcp_state: State) -> None:
    gcp_state.id = "existing-id"
    assert store.set(gcp_state).id == "existing-id"


def test_set_writes_tab_indented_json(store: Store, state_dir: Path, gcp_state: State) -> None:
    store.set(gcp_state)
    assert '\n\t"version"' in (state_dir / "bbl-state.json").read_text()


def test_set_missing_directory_fails(tmp_path: Path, gcp_state: State) -> None:
    with pytest.raises(StateDirError):
        Store(str(tmp_path / "missing")).set(gcp_state)


def test_set_empty_state_removes_only_bbl_managed_files(store: Store, state_dir: Path) -> None:
    bbl_files = [
        "bbl-state.json",
        "create-jumpbox.sh",
        "delete-director.sh",
        "vars/bbl.tfvars",
        "vars/jumpbox-state.json",
        "vars/director-vars-store.yml",
        "vars/terraform.tfstate.backup",
        "terraform/bbl-template.tf",
        "cloud-config/cloud-config.yml",
        "cloud-config/ops.yml",
        "runtime-config/runtime-config.yml",
        "jumpbox-deployment/jumpbox.yml",
        "bosh-deployment/gcp/cpi.yml",
        "bbl-ops-files/gcp/bosh-director-ephemeral-ip-ops.yml",
    ]
    user_files = [
        "create-director-override.sh",
        "vars/custom.tfvars",
        "terraform/my-resources.tf",
        "cloud-config/my-custom-ops.yml",
        "README.md",
    ]
    for name in bbl_files + user_files:
        _touch(state_dir / name)

    assert store.set(State()) == State()

    for name in bbl_files:
        assert not (state_dir / name).exists(), name
    for name in user_files:
        assert (state_dir / name).exists(), name
    assert not (state_dir / "runtime-config").exists()
    assert not (state_dir / "jumpbox-deployment").exists()


def test_typed_dirs_are_created(store: Store, state_dir: Path) -> None:
    assert Path(store.get_vars_dir()) == state_dir / "vars"
    assert Path(store.get_cloud_config_dir()).is_dir()
    assert Path(store.get_bbl_ops_files_dir()).is_dir()
    assert not Path(store.get_old_bbl_dir()).exists()


def test_typed_dir_that_is_a_file_fails(store: Store, state_dir: Path) -> None:
    (state_dir / "vars").write_text("not a directory")
    with pytest.raises(StateDirError, match="Get vars dir"):
        store.get_vars_dir()


def test_bootstrap_without_state_file_is_empty(state_dir: Path) -> None:
    assert StateBootstrap().get_state(str(state_dir)) == State()


def test_bootstrap_empty_document_is_current(state_dir: Path) -> None:
    (state_dir / "bbl-state.json").write_text("{}")
    state = StateBootstrap().get_state(str(state_dir))
    assert state.version == STATE_SCHEMA
    assert state.bbl_version == BBL_VERSION


def test_bootstrap_refuses_newer_schema(state_dir: Path) -> None:
    content = json.dumps({"version": STATE_SCHEMA + 5, "bblVersion": "9.9.9"})
    (state_dir / "bbl-state.json").write_text(content)

    with pytest.raises(SchemaError) as excinfo:
        StateBootstrap().get_state(str(state_dir))

    assert str(excinfo.value) == (
        "Existing bbl environment was created with a newer version of bbl. "
        "Please upgrade to bbl v9.9.9."
    )
    assert (state_dir / "bbl-state.json").read_text() == content


def test_bootstrap_refuses_schema_below_three(state_dir: Path) -> None:
    (state_dir / "bbl-state.json").write_text(json.dumps({"version": 2}))
    with pytest.raises(SchemaError, match="incompatible"):
        StateBootstrap().get_state(str(state_dir))


def test_bootstrap_older_schema_warns_and_defaults_bbl_version(
    state_dir: Path, caplog: pytest.LogCaptureFixture
) -> None:
    (state_dir / "bbl-state.json").write_text(json.dumps({"version": 8, "envID": "old-env"}))

    with caplog.at_level(logging.WARNING):
        state = StateBootstrap().get_state(str(state_dir))

    assert state.version == 8
    assert state.env_id == "old-env"
    assert state.bbl_version == FALLBACK_BBL_VERSION
    assert f"Current schema version ({STATE_SCHEMA})" in caplog.text


def test_bootstrap_unparseable_file_fails(state_dir: Path) -> None:
    (state_dir / "bbl-state.json").write_text("{not json")
    with pytest.raises(StateDirError):
        StateBootstrap().get_state(str(state_dir))


@pytest.mark.parametrize("content", ["[1]", '"text"', '{"version": "fourteen"}', '{"version": null}'])
def test_bootstrap_malformed_document_fails(state_dir: Path, content: str) -> None:
    (state_dir / "bbl-state.json").write_text(content)
    with pytest.raises(StateDirError, match="^parsing bbl-state.json: "):
        StateBootstrap().get_state(str(state_dir))


def test_written_state_loads_back_equal(store: Store, state_dir: Path, gcp_state: State) -> None:
    gcp_state.env_id = "demo"
    gcp_state.bosh.director_address = "https://10.0.0.6:25555"
    written = store.set(gcp_state)
    assert StateBootstrap().get_state(str(state_dir)) == written


@pytest.mark.parametrize(
    "path, expected",
    [
        ("bbl-state.json", Ownership.bbl),
        ("vars/bbl.tfvars", Ownership.bbl),
        ("vars/custom.tfvars", Ownership.user),
        ("terraform/bbl-template.tf", Ownership.bbl),
        ("terraform/extra.tf", Ownership.user),
        ("cloud-config/ops.yml", Ownership.bbl),
        ("cloud-config/extra-ops.yml", Ownership.user),
        ("create-jumpbox-override.sh", Ownership.user),
        ("create-jumpbox.sh", Ownership.bbl),
        ("bosh-deployment/bosh.yml", Ownership.bbl),
        ("notes.txt", Ownership.unknown),
        ("cloud-config/nested/extra.yml", Ownership.unknown),
    ],
)
def test_classify(path: str, expected: Ownership) -> None:
    assert classify(path) == expected


def test_patch_detector_reports_user_files(state_dir: Path) -> None:
    for name in (
        "create-director-override.sh",
        "cloud-config/ops.yml",
        "cloud-config/my-ops.yml",
        "terraform/bbl-template.tf",
        "terraform/extra.tf",
        "jumpbox-deployment/extra.yml",
    ):
        _touch(state_dir / name)

    assert PatchDetector(str(state_dir)).find() == [
        "cloud-config/my-ops.yml",
        "create-director-override.sh",
        "terraform/extra.tf",
    ]
