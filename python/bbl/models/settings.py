"""
bbl/models/settings.py

Process-wide configuration. Every field maps to a `BBL_`-prefixed environment
variable (e.g. `BBL_IAAS`, `BBL_GCP_REGION`); command-line flags are passed as
init arguments and take precedence over the environment.

Credential fields are named `<iaas>_<record field>` so they line up with the
per-IaaS records of the state document.
"""

import os
from typing import List, Optional

from pydantic_settings import BaseSettings, SettingsConfigDict


class GlobalSettings(BaseSettings):
    """Settings for a single bbl invocation."""

    model_config = SettingsConfigDict(env_prefix="BBL_", extra="ignore")

    iaas: str = ""
    debug: bool = False
    state_directory: str = ""
    name: str = ""
    terraform_binary: str = ""
    bosh_binary: str = "bosh"
    test_env_id_prefix: str = ""

    aws_access_key_id: str = ""
    aws_secret_access_key: str = ""
    aws_region: str = ""

    azure_client_id: str = ""
    azure_client_secret: str = ""
    azure_region: str = ""
    azure_subscription_id: str = ""
    azure_tenant_id: str = ""

    gcp_service_account_key: str = ""
    gcp_region: str = ""
    gcp_zone: str = ""

    vsphere_network: str = ""
    vsphere_subnet_cidr: str = ""
    vsphere_vcenter_cluster: str = ""
    vsphere_vcenter_dc: str = ""
    vsphere_vcenter_ds: str = ""
    vsphere_vcenter_ip: str = ""
    vsphere_vcenter_user: str = ""
    vsphere_vcenter_password: str = ""
    vsphere_vcenter_rp: str = ""
    vsphere_vcenter_disks: str = ""
    vsphere_vcenter_vms: str = ""
    vsphere_vcenter_templates: str = ""

    openstack_auth_url: str = ""
    openstack_az: str = ""
    openstack_network_id: str = ""
    openstack_network_name: str = ""
    openstack_password: str = ""
    openstack_username: str = ""
    openstack_project: str = ""
    openstack_domain: str = ""
    openstack_region: str = ""
    openstack_cacert_file: str = ""
    openstack_insecure: str = ""
    openstack_dns_name_servers: List[str] = []

    cloudstack_endpoint: str = ""
    cloudstack_api_key: str = ""
    cloudstack_secret_access_key: str = ""
    cloudstack_zone: str = ""
    cloudstack_network_vpc_offering: str = ""
    cloudstack_compute_offering: str = ""
    cloudstack_secure: Optional[bool] = None
    cloudstack_iso_segment: Optional[bool] = None

    def resolved_state_dir(self) -> str:
        """Absolute state directory; the working directory when unset."""
        return os.path.abspath(self.state_directory or os.getcwd())


__all__ = ["GlobalSettings"]
