from __future__ import annotations

import asyncio
import json
import logging
import uuid
from pathlib import Path
from typing import List

import pytest

from bbl.cloudconfig.manager import CloudConfigManager
from bbl.cloudconfig.runtime_config import RuntimeConfigManager
from bbl.commands.destroy import Destroy, DestroyConfig
from bbl.commands.lbs import LBConfig, LBs, validate_lb_config
from bbl.commands.plan import Plan, PlanConfig
from bbl.commands.rotate import Rotate
from bbl.commands.state_query import (
    DIRECTOR_ADDRESS,
    DIRECTOR_PASSWORD,
    ENV_ID,
    SSH_KEY,
    LatestError,
    PrintEnv,
    StateQuery,
)
from bbl.commands.up import Up
from bbl.deployment.executor import CreateEnvExecutor
from bbl.deployment.manager import BoshManager
from bbl.errors import BBLError, TerraformManagerError, UserError
from bbl.helpers.env_id import EnvIDGenerator, EnvIDManager
from bbl.models.state import LB, STATE_SCHEMA, State
from bbl.storage.bootstrap import StateBootstrap
from bbl.storage.store import Store
from bbl.utils.terraform import TerraformManager
from bbl.utils.terraform.binary import TerraformBinary
from bbl.utils.terraform.commands import TerraformExecutor

from conftest import snapshot


class Wiring:
    """The command objects the CLI would build, pointed at the fake binaries."""

    def __init__(self, store: Store, fake_binaries) -> None:
        self.store = store
        self.terraform_manager = TerraformManager(
            TerraformExecutor(TerraformBinary(fake_binaries.terraform), store)
        )
        self.executor = CreateEnvExecutor(store, fake_binaries.bosh)
        self.bosh_manager = BoshManager(self.executor, store)
        self.cloud_config_manager = CloudConfigManager(store, fake_binaries.bosh)
        self.runtime_config_manager = RuntimeConfigManager(store, fake_binaries.bosh)
        self.plan = Plan(
            store,
            EnvIDManager(EnvIDGenerator()),
            self.terraform_manager,
            self.bosh_manager,
            self.cloud_config_manager,
            self.runtime_config_manager,
        )
        self.up = Up(
            self.plan,
            store,
            self.terraform_manager,
            self.bosh_manager,
            self.cloud_config_manager,
            self.runtime_config_manager,
        )

    def destroy(self, prompt=None) -> Destroy:
        return Destroy(self.store, self.terraform_manager, self.bosh_manager, prompt=prompt)

    def query(self, property_name: str, printed: List[str]) -> StateQuery:
        return StateQuery(
            self.store, self.executor, self.terraform_manager, property_name, printed.append
        )


@pytest.fixture
def wiring(store: Store, fake_binaries) -> Wiring:
    return Wiring(store, fake_binaries)


def _load(state_dir: Path) -> State:
    return StateBootstrap().get_state(str(state_dir))


def test_plan_twice_is_byte_identical(wiring: Wiring, state_dir: Path, gcp_state: State) -> None:
    first = asyncio.run(wiring.plan.execute(gcp_state, PlanConfig(name="demo")))
    before = snapshot(state_dir)

    second = asyncio.run(wiring.plan.execute(first, PlanConfig(name="demo")))

    assert second == first
    assert snapshot(state_dir) == before
    assert "create-jumpbox.sh" in before
    assert "terraform/bbl-template.tf" in before
    assert "cloud-config/ops.yml" in before


def test_plan_does_not_run_engine_or_create_env(
    wiring: Wiring, fake_binaries, gcp_state: State
) -> None:
    asyncio.run(wiring.plan.execute(gcp_state, PlanConfig(name="demo")))
    assert fake_binaries.terraform_calls() == []
    assert fake_binaries.bosh_calls() == []


def test_plan_with_no_director_skips_director_scripts(
    wiring: Wiring, state_dir: Path, gcp_state: State
) -> None:
    state = asyncio.run(wiring.plan.execute(gcp_state, PlanConfig(name="demo", no_director=True)))

    assert state.no_director
    assert (state_dir / "create-jumpbox.sh").exists()
    assert not (state_dir / "create-director.sh").exists()


def test_plan_refuses_rename(wiring: Wiring, gcp_state: State) -> None:
    gcp_state.env_id = "demo"
    with pytest.raises(UserError) as excinfo:
        asyncio.run(wiring.plan.execute(gcp_state, PlanConfig(name="other")))
    assert str(excinfo.value) == (
        "The director name cannot be changed for an existing environment. Current name is demo."
    )


def test_plan_refuses_late_no_director(wiring: Wiring, gcp_state: State) -> None:
    gcp_state.env_id = "demo"
    gcp_state.bosh.director_address = "https://10.0.0.6:25555"
    with pytest.raises(UserError, match="--no-director"):
        asyncio.run(wiring.plan.execute(gcp_state, PlanConfig(no_director=True)))


def test_up_creates_environment(
    wiring: Wiring, fake_binaries, state_dir: Path, gcp_state: State
) -> None:
    asyncio.run(wiring.up.execute(gcp_state, PlanConfig(name="demo")))

    on_disk = json.loads((state_dir / "bbl-state.json").read_text())
    assert on_disk["version"] == STATE_SCHEMA
    assert on_disk["envID"] == "demo"
    assert on_disk["iaas"] == "gcp"
    assert uuid.UUID(on_disk["id"]).version == 4
    assert on_disk["bosh"]["directorAddress"] == "https://10.0.0.6:25555"
    assert on_disk["bosh"]["directorName"] == "bosh-demo"
    assert on_disk["jumpbox"]["url"] == "35.1.2.3:22"
    assert (state_dir / "vars" / "bbl.tfvars").is_file()
    assert (state_dir / "create-jumpbox.sh").is_file()
    assert (state_dir / "create-director.sh").is_file()

    bosh_commands = [call.split()[0] for call in fake_binaries.bosh_calls()]
    assert bosh_commands[:2] == ["create-env", "create-env"]
    assert any("update-cloud-config" in call for call in fake_binaries.bosh_calls())
    assert any("update-runtime-config" in call for call in fake_binaries.bosh_calls())


def test_up_with_no_director_stops_after_jumpbox(
    wiring: Wiring, fake_binaries, state_dir: Path, gcp_state: State
) -> None:
    state = asyncio.run(wiring.up.execute(gcp_state, PlanConfig(name="demo", no_director=True)))

    assert state.jumpbox.url == "35.1.2.3:22"
    assert state.bosh.director_address == ""
    assert len(fake_binaries.bosh_calls()) == 1


def test_up_saves_engine_output_on_failure(
    wiring: Wiring, fake_binaries, state_dir: Path, gcp_state: State
) -> None:
    fake_binaries.terraform_fail.write_text("")

    with pytest.raises(TerraformManagerError):
        asyncio.run(wiring.up.execute(gcp_state, PlanConfig(name="demo")))

    saved = _load(state_dir)
    assert saved.env_id == "demo"
    assert "Error: quota exceeded" in saved.latest_tf_output
    assert fake_binaries.bosh_calls() == []

    printed: List[str] = []
    asyncio.run(LatestError(printed.append).execute(saved))
    assert "Error: quota exceeded" in printed[0]


def test_up_resumes_from_partial_engine_state(
    wiring: Wiring, fake_binaries, state_dir: Path, gcp_state: State
) -> None:
    tfstate = state_dir / "vars" / "terraform.tfstate"
    fake_binaries.terraform_fail.write_text("")
    with pytest.raises(TerraformManagerError):
        asyncio.run(wiring.up.execute(gcp_state, PlanConfig(name="demo")))

    partial = json.loads(tfstate.read_text())
    assert partial["resources"] == [{"type": "google_compute_network"}]
    assert wiring.terraform_manager.is_paved()

    fake_binaries.terraform_fail.unlink()
    state = asyncio.run(wiring.up.execute(_load(state_dir), PlanConfig()))

    assert state.env_id == "demo"
    assert state.bosh.director_address == "https://10.0.0.6:25555"
    applies = [call for call in fake_binaries.terraform_calls() if call.startswith("apply")]
    assert len(applies) == 2
    assert all(f"-state={tfstate}" in call for call in applies)
    assert "Apply complete!" in _load(state_dir).latest_tf_output


def test_up_reports_user_supplied_files(
    wiring: Wiring, state_dir: Path, gcp_state: State, caplog: pytest.LogCaptureFixture
) -> None:
    (state_dir / "cloud-config").mkdir()
    (state_dir / "cloud-config" / "my-ops.yml").write_text("[]\n")

    with caplog.at_level(logging.WARNING):
        asyncio.run(wiring.up.execute(gcp_state, PlanConfig(name="demo")))

    assert "you've supplied the following files to bbl:" in caplog.text
    assert "cloud-config/my-ops.yml" in caplog.text


def test_up_reports_failed_outputs_as_stage_error(
    wiring: Wiring, fake_binaries, state_dir: Path, gcp_state: State
) -> None:
    fake_binaries.fail_terraform("output")

    with pytest.raises(BBLError, match="^Parse terraform outputs: Get terraform outputs: "):
        asyncio.run(wiring.up.execute(gcp_state, PlanConfig(name="demo")))

    assert _load(state_dir).env_id == "demo"
    assert fake_binaries.bosh_calls() == []


def test_up_saves_state_when_jumpbox_fails(
    wiring: Wiring, fake_binaries, state_dir: Path, gcp_state: State
) -> None:
    fake_binaries.bosh_fail.write_text("")

    with pytest.raises(BBLError, match="^Create jumpbox: "):
        asyncio.run(wiring.up.execute(gcp_state, PlanConfig(name="demo")))

    saved = _load(state_dir)
    assert saved.jumpbox.url == "35.1.2.3:22"
    assert saved.bosh.director_address == ""


def test_up_twice_keeps_env_id_and_id(wiring: Wiring, state_dir: Path, gcp_state: State) -> None:
    first = asyncio.run(wiring.up.execute(gcp_state, PlanConfig(name="demo")))
    second = asyncio.run(wiring.up.execute(_load(state_dir), PlanConfig()))

    assert second.env_id == first.env_id
    assert second.id == first.id


def test_rotate_replaces_jumpbox_key(
    wiring: Wiring, fake_binaries, state_dir: Path, gcp_state: State
) -> None:
    state = asyncio.run(wiring.up.execute(gcp_state, PlanConfig(name="demo")))
    calls_before = len(fake_binaries.bosh_calls())

    asyncio.run(Rotate(wiring.up, wiring.store, wiring.bosh_manager).execute(state))

    rotate_call = fake_binaries.bosh_calls()[calls_before]
    assert "rotate-jumpbox-ssh-key.yml" in rotate_call
    assert _load(state_dir).bosh.director_address == "https://10.0.0.6:25555"


def test_rotate_requires_environment(wiring: Wiring, gcp_state: State) -> None:
    with pytest.raises(BBLError, match="bbl up"):
        asyncio.run(Rotate(wiring.up, wiring.store, wiring.bosh_manager).execute(gcp_state))


def test_destroy_keeps_user_files_only(
    wiring: Wiring, fake_binaries, state_dir: Path, gcp_state: State
) -> None:
    state = asyncio.run(wiring.up.execute(gcp_state, PlanConfig(name="demo")))
    (state_dir / "cloud-config" / "my-custom-ops.yml").write_text("[]\n")

    result = asyncio.run(wiring.destroy().execute(state, DestroyConfig(no_confirm=True)))

    assert result == State()
    assert set(snapshot(state_dir)) == {"cloud-config/my-custom-ops.yml"}
    bosh_commands = [call.split()[0] for call in fake_binaries.bosh_calls()]
    assert bosh_commands.count("delete-env") == 2
    assert any(call.startswith("destroy") for call in fake_binaries.terraform_calls())


def test_declined_destroy_changes_nothing(
    wiring: Wiring, fake_binaries, state_dir: Path, gcp_state: State
) -> None:
    state = asyncio.run(wiring.up.execute(gcp_state, PlanConfig(name="demo")))
    before = snapshot(state_dir)
    prompts: List[str] = []

    def decline(message: str) -> bool:
        prompts.append(message)
        return False

    result = asyncio.run(wiring.destroy(prompt=decline).execute(state, DestroyConfig()))

    assert result == state
    assert snapshot(state_dir) == before
    assert prompts == [
        "Are you sure you want to delete infrastructure for demo? This operation cannot be undone!"
    ]


def test_destroy_without_environment(wiring: Wiring) -> None:
    with pytest.raises(UserError, match="bbl-state.json not found"):
        asyncio.run(wiring.destroy().execute(State(), DestroyConfig(no_confirm=True)))

    result = asyncio.run(
        wiring.destroy().execute(State(), DestroyConfig(no_confirm=True, skip_if_missing=True))
    )
    assert result == State()


def test_state_queries_after_up(wiring: Wiring, gcp_state: State) -> None:
    state = asyncio.run(wiring.up.execute(gcp_state, PlanConfig(name="demo")))
    printed: List[str] = []

    for name in (ENV_ID, DIRECTOR_ADDRESS, DIRECTOR_PASSWORD, SSH_KEY):
        asyncio.run(wiring.query(name, printed).execute(state))

    assert printed == [
        "demo",
        "https://10.0.0.6:25555",
        "some-admin-password",
        "some-jumpbox-private-key",
    ]


def test_director_queries_refused_without_director(wiring: Wiring, gcp_state: State) -> None:
    gcp_state.env_id = "demo"
    gcp_state.no_director = True
    with pytest.raises(UserError) as excinfo:
        asyncio.run(wiring.query(DIRECTOR_PASSWORD, []).execute(gcp_state))
    assert str(excinfo.value) == "Error BBL does not manage this director."


def test_empty_query_value_is_an_error(wiring: Wiring) -> None:
    with pytest.raises(UserError) as excinfo:
        asyncio.run(wiring.query(ENV_ID, []).execute(State()))
    assert str(excinfo.value) == (
        "Could not retrieve environment id, please make sure you are targeting the proper state dir."
    )


def test_print_env_exports_director_and_proxy(wiring: Wiring, gcp_state: State) -> None:
    state = asyncio.run(wiring.up.execute(gcp_state, PlanConfig(name="demo")))
    printed: List[str] = []

    asyncio.run(PrintEnv(wiring.store, printed.append).execute(state))

    exports = dict(line[len("export "):].split("=", 1) for line in printed)
    assert exports["BOSH_CLIENT"] == "admin"
    assert exports["BOSH_ENVIRONMENT"] == "https://10.0.0.6:25555"
    key_path = exports["JUMPBOX_PRIVATE_KEY"]
    assert Path(key_path).read_text() == "some-jumpbox-private-key"
    assert exports["BOSH_ALL_PROXY"] == f"ssh+socks5://jumpbox@35.1.2.3:22?private-key={key_path}"


def test_print_env_requires_environment(wiring: Wiring) -> None:
    with pytest.raises(UserError):
        asyncio.run(PrintEnv(wiring.store, lambda line: None).execute(State()))


def test_lb_validation(gcp_state: State) -> None:
    with pytest.raises(UserError, match="--type is required"):
        validate_lb_config(gcp_state, LBConfig())
    with pytest.raises(UserError, match="--domain is not implemented"):
        validate_lb_config(gcp_state, LBConfig(type="concourse", domain="example.com"))
    with pytest.raises(UserError, match="--cert and --key are required"):
        validate_lb_config(gcp_state, LBConfig(type="cf"))
    validate_lb_config(gcp_state, LBConfig(type="concourse"))


def test_lbs_prints_addresses(wiring: Wiring, fake_binaries, gcp_state: State) -> None:
    gcp_state.env_id = "demo"
    gcp_state.lb = LB(type="concourse")
    asyncio.run(wiring.terraform_manager.apply(gcp_state))
    fake_binaries.set_outputs({"concourse_target_pool": "demo-pool", "concourse_lb_ip": "35.9.9.9"})
    printed: List[str] = []

    asyncio.run(LBs(wiring.terraform_manager, printed.append).execute(gcp_state))

    assert printed == ["Concourse LB: demo-pool (35.9.9.9)"]


def test_lbs_without_lb(wiring: Wiring, gcp_state: State) -> None:
    with pytest.raises(UserError, match="no lbs found"):
        asyncio.run(LBs(wiring.terraform_manager).execute(gcp_state))
