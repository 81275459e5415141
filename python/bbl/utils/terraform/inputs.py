"""
bbl/utils/terraform/inputs.py

Builds the non-secret terraform inputs written to `vars/bbl.tfvars`, dispatching
on the IaaS. Credentials are not inputs; they travel as TF_VAR_* environment
variables (see ProviderRecord.to_tf_env).
"""

from __future__ import annotations

import hashlib
import re
from typing import Any, Callable, Dict

from bbl.errors import UserError
from bbl.models.providers import IaaSName
from bbl.models.state import State

AWS_SHORT_ENV_ID_LENGTH = 20


def resource_env_id(env_id: str) -> str:
    """The env-id as used in cloud resource names: lowercase, no colons."""
    return env_id.lower().replace(":", "-")


def short_env_id(env_id: str) -> str:
    """An env-id short enough for AWS load balancer names."""
    name = resource_env_id(env_id)
    if len(name) <= AWS_SHORT_ENV_ID_LENGTH:
        return name
    digest = hashlib.sha1(name.encode()).hexdigest()[:7]
    return f"{name[:AWS_SHORT_ENV_ID_LENGTH - 8]}-{digest}"


def _lb_inputs(state: State) -> Dict[str, Any]:
    if state.lb.type != "cf":
        return {}
    inputs: Dict[str, Any] = {
        "ssl_certificate": state.lb.cert,
        "ssl_certificate_private_key": state.lb.key,
        "system_domain": state.lb.domain,
    }
    if state.iaas == IaaSName.aws.value:
        inputs["ssl_certificate_chain"] = state.lb.chain
    return inputs


def _gcp_inputs(state: State) -> Dict[str, Any]:
    return {
        "env_id": resource_env_id(state.env_id),
        "project_id": state.gcp.project_id,
        "region": state.gcp.region,
        "zone": state.gcp.zone,
    }


def _aws_inputs(state: State) -> Dict[str, Any]:
    return {
        "env_id": resource_env_id(state.env_id),
        "short_env_id": short_env_id(state.env_id),
        "region": state.aws.region,
    }


def _azure_inputs(state: State) -> Dict[str, Any]:
    simple = re.sub(r"[^a-z0-9]", "", state.env_id.lower())[:24]
    return {
        "env_id": resource_env_id(state.env_id),
        "simple_env_id": simple,
        "region": state.azure.region,
    }


def _vsphere_inputs(state: State) -> Dict[str, Any]:
    vsphere = state.vsphere
    return {
        "env_id": resource_env_id(state.env_id),
        "vsphere_subnet_cidr": vsphere.subnet_cidr,
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


def _openstack_inputs(state: State) -> Dict[str, Any]:
    openstack = state.openstack
    return {
        "env_id": resource_env_id(state.env_id),
        "auth_url": openstack.auth_url,
        "availability_zone": openstack.az,
        "ext_net_id": openstack.network_id,
        "ext_net_name": openstack.network_name,
        "tenant_name": openstack.project,
        "domain_name": openstack.domain,
        "region_name": openstack.region,
        "insecure": openstack.insecure or "false",
        "dns_nameservers": openstack.dns_name_servers,
    }


def _cloudstack_inputs(state: State) -> Dict[str, Any]:
    cloudstack = state.cloudstack
    return {
        "env_id": resource_env_id(state.env_id),
        "endpoint": cloudstack.endpoint,
        "zone": cloudstack.zone,
        "network_vpc_offering": cloudstack.network_vpc_offering,
        "compute_offering": cloudstack.compute_offering,
        "secure": cloudstack.secure,
        "iso_segment": cloudstack.iso_segment,
    }


INPUT_MAP: Dict[IaaSName, Callable[[State], Dict[str, Any]]] = {
    IaaSName.gcp: _gcp_inputs,
    IaaSName.aws: _aws_inputs,
    IaaSName.azure: _azure_inputs,
    IaaSName.vsphere: _vsphere_inputs,
    IaaSName.openstack: _openstack_inputs,
    IaaSName.cloudstack: _cloudstack_inputs,
}


class InputGenerator:
    """Computes bbl.tfvars contents for a state."""

    def generate(self, state: State) -> Dict[str, Any]:
        try:
            iaas = IaaSName(state.iaas)
        except ValueError as exc:
            raise UserError(f"invalid iaas: {state.iaas!r}") from exc
        inputs = INPUT_MAP[iaas](state)
        inputs.update(_lb_inputs(state))
        return inputs

    def credentials(self, state: State) -> Dict[str, str]:
        """TF_VAR_* environment carrying the IaaS credentials."""
        return state.provider_record().to_tf_env()


__all__ = ["InputGenerator", "resource_env_id", "short_env_id"]
