"""
filename: bbl/models/providers/vsphere.py

vSphere record of the state document.
"""

from typing import ClassVar, Dict, List

from pydantic import Field

from bbl.models.providers.base import ProviderRecord


class VSphereRecord(ProviderRecord):
    """vCenter endpoint, credentials and inventory locations."""

    network: str = ""
    subnet_cidr: str = Field(default="", alias="subnetCIDR")
    vcenter_cluster: str = Field(default="", alias="vcenterCluster")
    vcenter_dc: str = Field(default="", alias="vcenterDC")
    vcenter_ds: str = Field(default="", alias="vcenterDS")
    vcenter_ip: str = Field(default="", alias="vcenterIP")
    vcenter_user: str = Field(default="", alias="vcenterUser")
    vcenter_password: str = Field(default="", alias="vcenterPassword")
    vcenter_rp: str = Field(default="", alias="vcenterRP")
    vcenter_disks: str = Field(default="", alias="vcenterDisks")
    vcenter_vms: str = Field(default="", alias="vcenterVMs")
    vcenter_templates: str = Field(default="", alias="vcenterTemplates")

    REQUIRED: ClassVar[Dict[str, str]] = {
        "vcenter_user": "--vsphere-vcenter-user",
        "vcenter_password": "--vsphere-vcenter-password",
        "vcenter_ip": "--vsphere-vcenter-ip",
        "vcenter_dc": "--vsphere-vcenter-dc",
        "vcenter_cluster": "--vsphere-vcenter-cluster",
        "vcenter_rp": "--vsphere-vcenter-rp",
        "network": "--vsphere-network",
        "vcenter_ds": "--vsphere-vcenter-ds",
        "subnet_cidr": "--vsphere-subnet-cidr",
        "vcenter_disks": "--vsphere-vcenter-disks",
        "vcenter_vms": "--vsphere-vcenter-vms",
        "vcenter_templates": "--vsphere-vcenter-templates",
    }
    CREATE_ENV_VARS: ClassVar[List[str]] = [
        'vcenter_user="${BBL_VSPHERE_VCENTER_USER}"',
        'vcenter_password="${BBL_VSPHERE_VCENTER_PASSWORD}"',
    ]

    def to_env_dict(self) -> Dict[str, str]:
        return {
            "BBL_VSPHERE_VCENTER_USER": self.vcenter_user,
            "BBL_VSPHERE_VCENTER_PASSWORD": self.vcenter_password,
        }

    def to_tf_env(self) -> Dict[str, str]:
        return {
            "TF_VAR_vsphere_user": self.vcenter_user,
            "TF_VAR_vsphere_password": self.vcenter_password,
        }


__all__ = ["VSphereRecord"]
