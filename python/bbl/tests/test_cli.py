from __future__ import annotations

import os
from pathlib import Path

import pytest

from bbl.cli.bbl import build_parser, main, settings_from_args
from bbl.models.state import State
from bbl.storage.store import Store


@pytest.fixture(autouse=True)
def clean_env(monkeypatch: pytest.MonkeyPatch) -> None:
    for name in list(os.environ):
        if name.startswith("BBL_"):
            monkeypatch.delenv(name)


def test_version(capsys: pytest.CaptureFixture) -> None:
    main(["version"])
    assert capsys.readouterr().out == "bbl 8.4.0\n"


def test_credential_flags_become_settings() -> None:
    args = build_parser().parse_args(
        ["--state-dir", "/tmp/env", "up", "--iaas", "gcp", "--gcp-region", "us-east1", "--name", "demo"]
    )

    settings = settings_from_args(args)

    assert settings.iaas == "gcp"
    assert settings.gcp_region == "us-east1"
    assert settings.name == "demo"
    assert settings.state_directory == "/tmp/env"
    assert not settings.debug


def test_absent_flags_keep_environment(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("BBL_GCP_REGION", "europe-west1")
    args = build_parser().parse_args(["plan", "--iaas", "gcp"])
    assert settings_from_args(args).gcp_region == "europe-west1"


def test_env_id_prints_value(tmp_path: Path, capsys: pytest.CaptureFixture) -> None:
    Store(str(tmp_path)).set(State(iaas="gcp", env_id="demo"))

    main(["--state-dir", str(tmp_path), "env-id"])

    assert capsys.readouterr().out == "demo\n"


def test_missing_value_exits_with_user_error(tmp_path: Path, capsys: pytest.CaptureFixture) -> None:
    with pytest.raises(SystemExit) as excinfo:
        main(["--state-dir", str(tmp_path), "director-address"])

    assert excinfo.value.code == 1
    assert "Could not retrieve director address" in capsys.readouterr().err


def test_up_without_iaas_exits_with_user_error(tmp_path: Path, capsys: pytest.CaptureFixture) -> None:
    with pytest.raises(SystemExit) as excinfo:
        main(["--state-dir", str(tmp_path), "up"])

    assert excinfo.value.code == 1
    assert "--iaas [gcp, aws, azure, vsphere, openstack, cloudstack] must be provided" in capsys.readouterr().err


def test_down_skip_if_missing_on_empty_directory(tmp_path: Path) -> None:
    main(["--state-dir", str(tmp_path), "down", "--skip-if-missing"])
    assert not (tmp_path / "bbl-state.json").exists()


def test_newer_state_exits_with_user_error(tmp_path: Path, capsys: pytest.CaptureFixture) -> None:
    (tmp_path / "bbl-state.json").write_text('{"version": 99, "bblVersion": "99.0.0"}')

    with pytest.raises(SystemExit) as excinfo:
        main(["--state-dir", str(tmp_path), "env-id"])

    assert excinfo.value.code == 1
    assert "Please upgrade to bbl v99.0.0." in capsys.readouterr().err


def test_engine_failure_exits_with_code_two(
    tmp_path: Path, fake_binaries, monkeypatch: pytest.MonkeyPatch, capsys: pytest.CaptureFixture
) -> None:
    monkeypatch.setenv("BBL_TERRAFORM_BINARY", fake_binaries.terraform)
    fake_binaries.fail_terraform("version")
    state_dir = tmp_path / "state"

    with pytest.raises(SystemExit) as excinfo:
        main(
            [
                "--state-dir", str(state_dir), "up", "--iaas", "aws",
                "--aws-access-key-id", "some-id", "--aws-secret-access-key", "some-secret",
                "--aws-region", "us-west-2", "--name", "demo",
            ]
        )

    assert excinfo.value.code == 2
    err = capsys.readouterr().err
    assert "\nTerraform validate version: Get terraform version: " in "\n" + err
    assert "Traceback" not in err
