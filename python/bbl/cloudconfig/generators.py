"""
bbl/cloudconfig/generators.py

Per-IaaS cloud-config ops and vars.

`generate_ops(state)` depends only on the state and is written at plan time as
`cloud-config/ops.yml`; it refers to `((azN_*))` and output-named variables.
`generate_vars(state, outputs)` needs the engine outputs and is written to
`vars/cloud-config-vars.yml` right before the cloud-config is applied.
"""

from __future__ import annotations

import ipaddress
from typing import Any, Dict, List, Tuple, Type

import yaml

from bbl.errors import BBLError, UserError
from bbl.models.providers import IaaSName
from bbl.models.state import State
from bbl.models.terraform import TerraformOutputs

Op = Dict[str, Any]


def op(path: str, value: Any) -> Op:
    return {"type": "replace", "path": path, "value": value}


def azify(index: int, az_name: str, cidr: str) -> Dict[str, str]:
    """Subnet variables for availability zone `index` (1-based).

    Reserves the gateway's neighbours and the broadcast address, and sets aside
    the last 64 usable addresses as static IPs.

    Raises:
        BBLError: If `cidr` is not a valid network.
    """
    try:
        network = ipaddress.ip_network(cidr, strict=False)
    except ValueError as exc:
        raise BBLError(f"invalid subnet cidr {cidr!r}: {exc}") from exc
    return {
        f"az{index}_name": az_name,
        f"az{index}_gateway": str(network[1]),
        f"az{index}_range": cidr,
        f"az{index}_reserved_1": f"{network[2]}-{network[3]}",
        f"az{index}_reserved_2": str(network[-1]),
        f"az{index}_static": f"{network[-65]}-{network[-2]}",
    }


def subnet(index: int, cloud_properties: Dict[str, Any]) -> Dict[str, Any]:
    return {
        "az": f"z{index}",
        "gateway": f"((az{index}_gateway))",
        "range": f"((az{index}_range))",
        "reserved": [f"((az{index}_reserved_1))", f"((az{index}_reserved_2))"],
        "static": [f"((az{index}_static))"],
        "cloud_properties": cloud_properties,
    }


class OpsGenerator:
    """Base generator: one AZ on the internal network, no LB extensions."""

    AZ_KEY = "availability_zone"

    def az_count(self, state: State) -> int:
        return 1

    def az_cloud_properties(self, index: int) -> Dict[str, Any]:
        return {self.AZ_KEY: f"((az{index}_name))"}

    def subnet_cloud_properties(self, index: int) -> Dict[str, Any]:
        return {}

    def base_ops(self) -> List[Op]:
        return []

    def lb_ops(self, state: State) -> List[Op]:
        return []

    def generate_ops(self, state: State) -> str:
        count = self.az_count(state)
        ops = list(self.base_ops())
        for index in range(1, count + 1):
            ops.append(
                op("/azs/-", {"name": f"z{index}", "cloud_properties": self.az_cloud_properties(index)})
            )
        subnets = [subnet(index, self.subnet_cloud_properties(index)) for index in range(1, count + 1)]
        for name in ("private", "default"):
            ops.append(op("/networks/-", {"name": name, "type": "manual", "subnets": subnets}))
        ops += self.lb_ops(state)
        return yaml.safe_dump(ops, default_flow_style=False, sort_keys=False)

    def az_subnets(self, state: State, outputs: TerraformOutputs) -> List[Tuple[str, str]]:
        """(cloud AZ name, cidr) per bosh AZ."""
        return [("", outputs.get_string("internal_cidr"))]

    def generate_vars(self, state: State, outputs: TerraformOutputs) -> str:
        values: Dict[str, Any] = dict(outputs.values)
        for index, (az_name, cidr) in enumerate(self.az_subnets(state, outputs), start=1):
            if not cidr:
                raise BBLError(f"Missing terraform output for az{index} subnet cidr")
            values.update(azify(index, az_name, cidr))
        return yaml.safe_dump(values, default_flow_style=False)


class GCPOpsGenerator(OpsGenerator):
    AZ_KEY = "zone"

    def _zones(self, state: State) -> List[str]:
        return state.gcp.zones or [state.gcp.zone]

    def az_count(self, state: State) -> int:
        return min(len(self._zones(state)), 3)

    def subnet_cloud_properties(self, index: int) -> Dict[str, Any]:
        return {
            "ephemeral_external_ip": True,
            "network_name": "((network))",
            "subnetwork_name": "((subnetwork))",
            "tags": ["((internal_tag_name))"],
        }

    def base_ops(self) -> List[Op]:
        return [
            op("/compilation/vm_type", "large"),
            op("/vm_types/name=default/cloud_properties?", {"machine_type": "n1-standard-1", "root_disk_size_gb": 10}),
            op("/vm_types/name=minimal/cloud_properties?", {"machine_type": "e2-small", "root_disk_size_gb": 10}),
            op("/vm_types/name=small/cloud_properties?", {"machine_type": "n1-standard-1", "root_disk_size_gb": 10}),
            op("/vm_types/name=large/cloud_properties?", {"machine_type": "n1-standard-4", "root_disk_size_gb": 50}),
        ]

    def lb_ops(self, state: State) -> List[Op]:
        if state.lb.type == "concourse":
            return [op("/vm_extensions/-", {"name": "lb", "cloud_properties": {"target_pool": "((concourse_target_pool))"}})]
        if state.lb.type == "cf":
            return [
                op(
                    "/vm_extensions/-",
                    {
                        "name": "cf-router-network-properties",
                        "cloud_properties": {
                            "backend_service": "((router_backend_service))",
                            "tags": ["((router_backend_service))"],
                        },
                    },
                )
            ]
        return []

    def az_subnets(self, state: State, outputs: TerraformOutputs) -> List[Tuple[str, str]]:
        zones = self._zones(state)[: self.az_count(state)]
        return [
            (zone, outputs.get_string(f"subnet_cidr_{index}"))
            for index, zone in enumerate(zones, start=1)
        ]


class AWSOpsGenerator(OpsGenerator):
    AZ_COUNT = 3

    def az_count(self, state: State) -> int:
        return self.AZ_COUNT

    def subnet_cloud_properties(self, index: int) -> Dict[str, Any]:
        return {"subnet": f"((az{index}_subnet))", "security_groups": ["((internal_security_group))"]}

    def base_ops(self) -> List[Op]:
        return [
            op("/compilation/vm_type", "large"),
            op("/vm_types/name=default/cloud_properties?", {"instance_type": "m5.large", "ephemeral_disk": {"size": 25000}}),
            op("/vm_types/name=minimal/cloud_properties?", {"instance_type": "t3.small", "ephemeral_disk": {"size": 10240}}),
            op("/vm_types/name=small/cloud_properties?", {"instance_type": "t3.medium", "ephemeral_disk": {"size": 10240}}),
            op("/vm_types/name=large/cloud_properties?", {"instance_type": "m5.xlarge", "ephemeral_disk": {"size": 51200}}),
        ]

    def lb_ops(self, state: State) -> List[Op]:
        if state.lb.type == "concourse":
            return [op("/vm_extensions/-", {"name": "lb", "cloud_properties": {"elbs": ["((concourse_lb_name))"]}})]
        if state.lb.type == "cf":
            return [
                op(
                    "/vm_extensions/-",
                    {"name": "cf-router-network-properties", "cloud_properties": {"elbs": ["((cf_router_lb_name))"]}},
                )
            ]
        return []

    def az_subnets(self, state: State, outputs: TerraformOutputs) -> List[Tuple[str, str]]:
        cidrs = outputs.get_map("internal_az_subnet_cidr_mapping")
        return [(az, cidrs[az]) for az in sorted(cidrs)][: self.AZ_COUNT]

    def generate_vars(self, state: State, outputs: TerraformOutputs) -> str:
        values = yaml.safe_load(super().generate_vars(state, outputs))
        subnet_ids = outputs.get_map("internal_az_subnet_id_mapping")
        for index, az in enumerate(sorted(subnet_ids)[: self.AZ_COUNT], start=1):
            values[f"az{index}_subnet"] = subnet_ids[az]
        return yaml.safe_dump(values, default_flow_style=False)


class AzureOpsGenerator(OpsGenerator):
    def az_cloud_properties(self, index: int) -> Dict[str, Any]:
        return {}

    def subnet_cloud_properties(self, index: int) -> Dict[str, Any]:
        return {
            "virtual_network_name": "((vnet_name))",
            "subnet_name": "((subnet_name))",
            "security_group": "((default_security_group))",
        }

    def base_ops(self) -> List[Op]:
        return [
            op("/vm_types/name=default/cloud_properties?", {"instance_type": "Standard_D1_v2"}),
            op("/vm_types/name=large/cloud_properties?", {"instance_type": "Standard_D4_v2"}),
        ]


class VSphereOpsGenerator(OpsGenerator):
    def az_cloud_properties(self, index: int) -> Dict[str, Any]:
        return {"datacenters": [{"clusters": [{"((vcenter_cluster))": {}}]}]}

    def subnet_cloud_properties(self, index: int) -> Dict[str, Any]:
        return {"name": "((network_name))"}

    def base_ops(self) -> List[Op]:
        return [
            op("/vm_types/name=default/cloud_properties?", {"cpu": 2, "ram": 4096, "disk": 10240}),
            op("/vm_types/name=large/cloud_properties?", {"cpu": 4, "ram": 8192, "disk": 51200}),
        ]


class OpenStackOpsGenerator(OpsGenerator):
    def subnet_cloud_properties(self, index: int) -> Dict[str, Any]:
        return {"net_id": "((net_id))", "security_groups": ["((security_group))"]}

    def base_ops(self) -> List[Op]:
        return [
            op("/vm_types/name=default/cloud_properties?", {"instance_type": "m1.small"}),
            op("/vm_types/name=large/cloud_properties?", {"instance_type": "m1.xlarge"}),
        ]

    def az_subnets(self, state: State, outputs: TerraformOutputs) -> List[Tuple[str, str]]:
        return [(outputs.get_string("az"), outputs.get_string("internal_cidr"))]


class CloudStackOpsGenerator(OpsGenerator):
    def az_cloud_properties(self, index: int) -> Dict[str, Any]:
        return {}

    def subnet_cloud_properties(self, index: int) -> Dict[str, Any]:
        return {"name": "((network_name))"}

    def base_ops(self) -> List[Op]:
        return [
            op("/vm_types/name=default/cloud_properties?", {"compute_offering": "((compute_offering))"}),
        ]

    def az_subnets(self, state: State, outputs: TerraformOutputs) -> List[Tuple[str, str]]:
        return [(outputs.get_string("zone"), outputs.get_string("internal_cidr"))]


OPS_GENERATORS: Dict[IaaSName, Type[OpsGenerator]] = {
    IaaSName.gcp: GCPOpsGenerator,
    IaaSName.aws: AWSOpsGenerator,
    IaaSName.azure: AzureOpsGenerator,
    IaaSName.vsphere: VSphereOpsGenerator,
    IaaSName.openstack: OpenStackOpsGenerator,
    IaaSName.cloudstack: CloudStackOpsGenerator,
}


def ops_generator_for(state: State) -> OpsGenerator:
    """Pick the generator for `state.iaas`.

    Raises:
        UserError: For an unknown or missing IaaS.
    """
    try:
        return OPS_GENERATORS[IaaSName(state.iaas)]()
    except ValueError as exc:
        raise UserError(f"invalid iaas: {state.iaas!r}") from exc


__all__ = [
    "OpsGenerator",
    "GCPOpsGenerator",
    "AWSOpsGenerator",
    "AzureOpsGenerator",
    "VSphereOpsGenerator",
    "OpenStackOpsGenerator",
    "CloudStackOpsGenerator",
    "OPS_GENERATORS",
    "azify",
    "ops_generator_for",
]
