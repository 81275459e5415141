from __future__ import annotations

import asyncio
from contextlib import asynccontextmanager
from pathlib import Path
from typing import List, Tuple

import pytest
import yaml

from bbl.cloudconfig.generators import azify, ops_generator_for
from bbl.cloudconfig.manager import CloudConfigManager
from bbl.cloudconfig.runtime_config import RuntimeConfigManager
from bbl.errors import BBLError, DirectorUnreachableError, UserError
from bbl.models.state import LB, State
from bbl.models.terraform import TerraformOutputs
from bbl.storage.store import Store

from conftest import GCP_OUTPUTS

OUTPUTS = TerraformOutputs(values=GCP_OUTPUTS)


class RecordingCLI:
    def __init__(self) -> None:
        self.cloud_configs: List[Tuple[str, List[str], str]] = []
        self.runtime_configs: List[Tuple[str, str]] = []

    async def update_cloud_config(self, cloud_config: str, ops_files: List[str], vars_file: str) -> None:
        self.cloud_configs.append((cloud_config, ops_files, vars_file))

    async def update_runtime_config(self, runtime_config: str, name: str) -> None:
        self.runtime_configs.append((runtime_config, name))


def _factory(cli: RecordingCLI):
    @asynccontextmanager
    async def factory(state, store, binary):
        yield cli

    return factory


def _unreachable_factory():
    @asynccontextmanager
    async def factory(state, store, binary):
        raise DirectorUnreachableError("director address is not set")
        yield

    return factory


def test_azify_reserves_gateway_neighbours_and_static_tail() -> None:
    assert azify(1, "us-east1-b", "10.0.16.0/20") == {
        "az1_name": "us-east1-b",
        "az1_gateway": "10.0.16.1",
        "az1_range": "10.0.16.0/20",
        "az1_reserved_1": "10.0.16.2-10.0.16.3",
        "az1_reserved_2": "10.0.31.255",
        "az1_static": "10.0.31.191-10.0.31.254",
    }


def test_azify_rejects_invalid_cidr() -> None:
    with pytest.raises(BBLError, match="invalid subnet cidr"):
        azify(1, "z", "not-a-cidr")


def test_gcp_ops_have_one_az_per_zone(gcp_state: State) -> None:
    gcp_state.gcp.zones = ["us-east1-b", "us-east1-c", "us-east1-d", "us-east1-e"]

    ops = yaml.safe_load(ops_generator_for(gcp_state).generate_ops(gcp_state))

    azs = [entry["value"]["name"] for entry in ops if entry["path"] == "/azs/-"]
    assert azs == ["z1", "z2", "z3"]
    networks = [entry["value"] for entry in ops if entry["path"] == "/networks/-"]
    assert [network["name"] for network in networks] == ["private", "default"]
    assert len(networks[0]["subnets"]) == 3


def test_gcp_vars_cover_every_az(gcp_state: State) -> None:
    gcp_state.gcp.zones = ["us-east1-b", "us-east1-c", "us-east1-d"]

    values = yaml.safe_load(ops_generator_for(gcp_state).generate_vars(gcp_state, OUTPUTS))

    assert values["az1_name"] == "us-east1-b"
    assert values["az2_gateway"] == "10.0.32.1"
    assert values["az3_range"] == "10.0.48.0/20"
    assert values["network"] == "demo-network"


def test_missing_subnet_output_is_an_error(gcp_state: State) -> None:
    outputs = TerraformOutputs(values={"network": "demo-network"})
    with pytest.raises(BBLError, match="az1 subnet cidr"):
        ops_generator_for(gcp_state).generate_vars(gcp_state, outputs)


def test_concourse_lb_adds_vm_extension(gcp_state: State) -> None:
    gcp_state.lb = LB(type="concourse")
    ops = yaml.safe_load(ops_generator_for(gcp_state).generate_ops(gcp_state))
    extensions = [entry["value"]["name"] for entry in ops if entry["path"] == "/vm_extensions/-"]
    assert extensions == ["lb"]


def test_aws_uses_subnet_mappings() -> None:
    state = State(iaas="aws")
    outputs = TerraformOutputs(
        values={
            "internal_az_subnet_cidr_mapping": {"us-west-2b": "10.0.32.0/20", "us-west-2a": "10.0.16.0/20"},
            "internal_az_subnet_id_mapping": {"us-west-2b": "subnet-b", "us-west-2a": "subnet-a"},
        }
    )

    values = yaml.safe_load(ops_generator_for(state).generate_vars(state, outputs))

    assert values["az1_name"] == "us-west-2a"
    assert values["az1_subnet"] == "subnet-a"
    assert values["az2_gateway"] == "10.0.32.1"


def test_invalid_iaas_is_a_user_error() -> None:
    with pytest.raises(UserError, match="invalid iaas"):
        ops_generator_for(State())


def test_ops_files_put_bbl_ops_first(store: Store, state_dir: Path, gcp_state: State) -> None:
    manager = CloudConfigManager(store)
    asyncio.run(manager.initialize(gcp_state))
    cloud_config_dir = state_dir / "cloud-config"
    (cloud_config_dir / "zz-ops.yml").write_text("[]\n")
    (cloud_config_dir / "aa-ops.yml").write_text("[]\n")
    (cloud_config_dir / "notes.txt").write_text("ignored\n")

    assert manager.ops_files() == [
        str(cloud_config_dir / "ops.yml"),
        str(cloud_config_dir / "aa-ops.yml"),
        str(cloud_config_dir / "zz-ops.yml"),
    ]


def test_update_applies_config_with_user_ops(store: Store, state_dir: Path, gcp_state: State) -> None:
    cli = RecordingCLI()
    manager = CloudConfigManager(store, client_factory=_factory(cli))
    (state_dir / "cloud-config").mkdir()
    (state_dir / "cloud-config" / "my-custom-ops.yml").write_text("[]\n")

    asyncio.run(manager.update(gcp_state, OUTPUTS))

    [(cloud_config, ops_files, vars_file)] = cli.cloud_configs
    assert cloud_config == str(state_dir / "cloud-config" / "cloud-config.yml")
    assert [Path(path).name for path in ops_files] == ["ops.yml", "my-custom-ops.yml"]
    assert vars_file == str(state_dir / "vars" / "cloud-config-vars.yml")
    assert yaml.safe_load(Path(vars_file).read_text())["az1_static"] == "10.0.31.191-10.0.31.254"


def test_update_reports_unreachable_director(store: Store, gcp_state: State) -> None:
    manager = CloudConfigManager(store, client_factory=_unreachable_factory())
    with pytest.raises(DirectorUnreachableError, match="failed to update cloud-config"):
        asyncio.run(manager.update(gcp_state, OUTPUTS))


def test_interpolate_runs_without_director(fake_binaries, store: Store, gcp_state: State) -> None:
    manager = CloudConfigManager(store, fake_binaries.bosh)

    rendered = asyncio.run(manager.interpolate(gcp_state, OUTPUTS))

    assert rendered == "azs: []"
    assert fake_binaries.bosh_calls()[0].startswith("interpolate ")


def test_runtime_config_is_applied_as_dns(store: Store, state_dir: Path, gcp_state: State) -> None:
    cli = RecordingCLI()
    manager = RuntimeConfigManager(store, client_factory=_factory(cli))

    asyncio.run(manager.update(gcp_state))

    assert cli.runtime_configs == [(str(state_dir / "runtime-config" / "runtime-config.yml"), "dns")]
    assert (state_dir / "runtime-config" / "runtime-config.yml").is_file()
