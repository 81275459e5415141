"""
bbl/deployment/vars.py

Builds the deterministic vars-files handed to create-env for the jumpbox and
the director. Inputs are the infrastructure outputs plus the non-secret parts
of the state's IaaS record; secrets reach create-env as `-v` arguments that
read the BBL_* environment, never through these files.
"""

from __future__ import annotations

from typing import Any, Callable, Dict

import yaml

from bbl.errors import UserError
from bbl.models.providers import IaaSName
from bbl.models.state import State
from bbl.models.terraform import TerraformOutputs

JUMPBOX = "jumpbox"
DIRECTOR = "director"

COMMON_OUTPUTS = ("internal_cidr", "internal_gw")


def director_name(state: State) -> str:
    return f"bosh-{state.env_id}"


def _gcp_vars(state: State, outputs: TerraformOutputs, deployment: str) -> Dict[str, Any]:
    tag = "jumpbox_tag_name" if deployment == JUMPBOX else "bosh_open_tag_name"
    return {
        "zone": state.gcp.zone,
        "network": outputs.get_string("network"),
        "subnetwork": outputs.get_string("subnetwork"),
        "tags": [outputs.get_string("internal_tag_name"), outputs.get_string(tag)],
        "project_id": state.gcp.project_id,
    }


def _aws_vars(state: State, outputs: TerraformOutputs, deployment: str) -> Dict[str, Any]:
    group = "jumpbox_security_group" if deployment == JUMPBOX else "internal_security_group"
    return {
        "region": state.aws.region,
        "az": outputs.get_string("az"),
        "subnet_id": outputs.get_string("subnet_id"),
        "default_key_name": outputs.get_string("default_key_name"),
        "default_security_groups": [outputs.get_string(group)],
        "private_key": outputs.get_string("private_key"),
        "iam_instance_profile": outputs.get_string("iam_instance_profile"),
    }


def _azure_vars(state: State, outputs: TerraformOutputs, deployment: str) -> Dict[str, Any]:
    return {
        "vnet_name": outputs.get_string("vnet_name"),
        "subnet_name": outputs.get_string("subnet_name"),
        "resource_group_name": outputs.get_string("resource_group_name"),
        "storage_account_name": outputs.get_string("storage_account_name"),
        "default_security_group": outputs.get_string("default_security_group"),
    }


def _vsphere_vars(state: State, outputs: TerraformOutputs, deployment: str) -> Dict[str, Any]:
    vsphere = state.vsphere
    return {
        "network_name": vsphere.network,
        "vcenter_cluster": vsphere.vcenter_cluster,
        "vcenter_dc": vsphere.vcenter_dc,
        "vcenter_ds": vsphere.vcenter_ds,
        "vcenter_ip": vsphere.vcenter_ip,
        "vcenter_rp": vsphere.vcenter_rp,
        "vcenter_disks": vsphere.vcenter_disks,
        "vcenter_vms": vsphere.vcenter_vms,
        "vcenter_templates": vsphere.vcenter_templates,
    }


def _openstack_vars(state: State, outputs: TerraformOutputs, deployment: str) -> Dict[str, Any]:
    openstack = state.openstack
    return {
        "auth_url": openstack.auth_url,
        "az": openstack.az,
        "net_id": outputs.get_string("net_id"),
        "default_key_name": outputs.get_string("default_key_name"),
        "default_security_groups": [outputs.get_string("security_group")],
        "private_key": outputs.get_string("private_key"),
        "openstack_project": openstack.project,
        "openstack_domain": openstack.domain,
        "region": openstack.region,
    }


def _cloudstack_vars(state: State, outputs: TerraformOutputs, deployment: str) -> Dict[str, Any]:
    return {
        "cloudstack_endpoint": state.cloudstack.endpoint,
        "zone": state.cloudstack.zone,
        "network_name": outputs.get_string("network_name"),
        "compute_offering": state.cloudstack.compute_offering,
    }


VARS_MAP: Dict[IaaSName, Callable[[State, TerraformOutputs, str], Dict[str, Any]]] = {
    IaaSName.gcp: _gcp_vars,
    IaaSName.aws: _aws_vars,
    IaaSName.azure: _azure_vars,
    IaaSName.vsphere: _vsphere_vars,
    IaaSName.openstack: _openstack_vars,
    IaaSName.cloudstack: _cloudstack_vars,
}


class DeploymentVarsGenerator:
    """Renders jumpbox-vars-file.yml and director-vars-file.yml contents."""

    def generate(self, state: State, outputs: TerraformOutputs, deployment: str) -> Dict[str, Any]:
        try:
            iaas = IaaSName(state.iaas)
        except ValueError as exc:
            raise UserError(f"invalid iaas: {state.iaas!r}") from exc

        values: Dict[str, Any] = {key: outputs.get_string(key) for key in COMMON_OUTPUTS}
        if deployment == JUMPBOX:
            values["internal_ip"] = outputs.get_string("jumpbox_internal_ip")
            values["external_ip"] = outputs.get_string("external_ip")
        else:
            values["internal_ip"] = outputs.get_string("director_internal_ip")
            values["director_name"] = director_name(state)
        values.update(VARS_MAP[iaas](state, outputs, deployment))
        return values

    def jumpbox_vars(self, state: State, outputs: TerraformOutputs) -> str:
        return yaml.safe_dump(self.generate(state, outputs, JUMPBOX), default_flow_style=False)

    def director_vars(self, state: State, outputs: TerraformOutputs) -> str:
        return yaml.safe_dump(self.generate(state, outputs, DIRECTOR), default_flow_style=False)


__all__ = ["DeploymentVarsGenerator", "director_name", "JUMPBOX", "DIRECTOR"]
