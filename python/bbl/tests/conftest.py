"""
bbl/tests/conftest.py

Shared fixtures: a store on a temp state directory, a GCP state, and fake
`terraform` / `bosh` executables (POSIX shell scripts) that record their
arguments and produce just enough output for the drivers.
"""

from __future__ import annotations

import json
import os
from pathlib import Path
from typing import Any, Dict

import pytest

from bbl.models.providers import GCPRecord
from bbl.models.state import State
from bbl.storage.store import Store

GCP_KEY = json.dumps(
    {
        "type": "service_account",
        "project_id": "some-project",
        "private_key": "not-a-real-key",
        "client_email": "bbl@some-project.iam.gserviceaccount.com",
    }
)

GCP_OUTPUTS: Dict[str, Any] = {
    "network": "demo-network",
    "subnetwork": "demo-subnet",
    "internal_tag_name": "demo-internal",
    "bosh_open_tag_name": "demo-bosh-open",
    "jumpbox_tag_name": "demo-jumpbox",
    "external_ip": "35.1.2.3",
    "jumpbox_url": "35.1.2.3:22",
    "internal_cidr": "10.0.0.0/16",
    "internal_gw": "10.0.0.1",
    "jumpbox_internal_ip": "10.0.0.5",
    "director_internal_ip": "10.0.0.6",
    "director_address": "https://10.0.0.6:25555",
    "subnet_cidr_1": "10.0.16.0/20",
    "subnet_cidr_2": "10.0.32.0/20",
    "subnet_cidr_3": "10.0.48.0/20",
}

FAKE_TERRAFORM = """#!/bin/sh
echo "$*" >> "{log}"
command="$1"
if [ -f "{fail_command}" ] && [ "$command" = "$(cat "{fail_command}")" ]; then
  echo "Error: $command failed" >&2
  exit 1
fi
state=""
for arg in "$@"; do
  case "$arg" in
    -state=*) state="${{arg#-state=}}" ;;
  esac
done
case "$command" in
  version)
    echo "Terraform v1.5.7"
    ;;
  init)
    echo "Initializing the backend..."
    ;;
  apply)
    echo '{{"version": 4, "resources": [{{"type": "google_compute_network"}}]}}' > "$state"
    if [ -f "{fail_marker}" ]; then
      echo "Error: quota exceeded"
      exit 1
    fi
    echo "Apply complete!"
    ;;
  destroy)
    echo '{{"version": 4, "resources": []}}' > "$state"
    echo "Destroy complete!"
    ;;
  output)
    cat "{outputs}"
    ;;
esac
exit 0
"""

FAKE_BOSH = """#!/bin/sh
echo "$*" >> "{log}"
if [ "$1" = "--non-interactive" ]; then
  shift
fi
command="$1"
shift
state=""
store=""
while [ $# -gt 0 ]; do
  case "$1" in
    --state) state="$2"; shift ;;
    --vars-store) store="$2"; shift ;;
  esac
  shift
done
if [ -f "{fail_marker}" ]; then
  echo "create-env failed"
  exit 3
fi
case "$command" in
  create-env)
    echo '{{"current_manifest_sha": "abc123"}}' > "$state"
    cat > "$store" <<'EOF'
admin_password: some-admin-password
jumpbox_ssh:
  private_key: some-jumpbox-private-key
  public_key: some-jumpbox-public-key
director_ssl:
  ca: some-director-ca
  certificate: some-director-cert
  private_key: some-director-key
EOF
    ;;
  delete-env)
    rm -f "$state"
    ;;
  interpolate)
    echo "azs: []"
    ;;
esac
exit 0
"""


def _write_executable(path: Path, content: str) -> str:
    path.write_text(content)
    path.chmod(0o755)
    return str(path)


@pytest.fixture
def state_dir(tmp_path: Path) -> Path:
    directory = tmp_path / "state"
    directory.mkdir()
    return directory


@pytest.fixture
def store(state_dir: Path) -> Store:
    return Store(str(state_dir))


@pytest.fixture
def gcp_state() -> State:
    return State(
        iaas="gcp",
        gcp=GCPRecord(
            service_account_key=GCP_KEY,
            project_id="some-project",
            region="us-east1",
            zone="us-east1-b",
        ),
    )


class FakeBinaries:
    """Paths of the fake executables plus their call logs and switches."""

    def __init__(self, root: Path) -> None:
        root.mkdir()
        self.root = root
        self.terraform_log = root / "terraform.log"
        self.bosh_log = root / "bosh.log"
        self.outputs_file = root / "outputs.json"
        self.terraform_fail = root / "terraform-fail"
        self.terraform_fail_command = root / "terraform-fail-command"
        self.bosh_fail = root / "bosh-fail"
        self.set_outputs(GCP_OUTPUTS)
        self.terraform = _write_executable(
            root / "terraform",
            FAKE_TERRAFORM.format(
                log=self.terraform_log,
                outputs=self.outputs_file,
                fail_marker=self.terraform_fail,
                fail_command=self.terraform_fail_command,
            ),
        )
        self.bosh = _write_executable(
            root / "bosh",
            FAKE_BOSH.format(log=self.bosh_log, fail_marker=self.bosh_fail),
        )

    def fail_terraform(self, command: str) -> None:
        """Make the fake terraform exit 1 whenever it runs `command`."""
        self.terraform_fail_command.write_text(command)

    def set_outputs(self, values: Dict[str, Any]) -> None:
        outputs = {
            name: {"sensitive": False, "type": "string", "value": value}
            for name, value in values.items()
        }
        self.outputs_file.write_text(json.dumps(outputs))

    def bosh_calls(self) -> list:
        if not self.bosh_log.exists():
            return []
        return self.bosh_log.read_text().splitlines()

    def terraform_calls(self) -> list:
        if not self.terraform_log.exists():
            return []
        return self.terraform_log.read_text().splitlines()


@pytest.fixture
def fake_binaries(tmp_path: Path) -> FakeBinaries:
    return FakeBinaries(tmp_path / "bin")


def snapshot(directory: Path) -> Dict[str, Any]:
    """Relative path -> (mode, bytes) for every file under `directory`."""
    files = {}
    for root, _dirs, names in os.walk(directory):
        for name in names:
            path = Path(root) / name
            files[str(path.relative_to(directory))] = (path.stat().st_mode, path.read_bytes())
    return files
