"""
filename: bbl/models/providers/openstack.py

OpenStack record of the state document.
"""

from typing import ClassVar, Dict, List

from pydantic import Field

from bbl.models.providers.base import ProviderRecord


class OpenStackRecord(ProviderRecord):
    """Keystone endpoint, credentials and the network bbl attaches to."""

    auth_url: str = Field(default="", alias="authURL")
    az: str = ""
    network_id: str = Field(default="", alias="networkID")
    network_name: str = Field(default="", alias="networkName")
    password: str = ""
    username: str = ""
    project: str = ""
    domain: str = ""
    region: str = ""
    cacert_file: str = Field(default="", alias="cacertFile")
    insecure: str = ""
    dns_name_servers: List[str] = Field(default_factory=list, alias="dnsNameServers")

    REQUIRED: ClassVar[Dict[str, str]] = {
        "auth_url": "--openstack-auth-url",
        "az": "--openstack-az",
        "network_id": "--openstack-network-id",
        "network_name": "--openstack-network-name",
        "password": "--openstack-password",
        "username": "--openstack-username",
        "project": "--openstack-project",
        "domain": "--openstack-domain",
    }
    CREATE_ENV_VARS: ClassVar[List[str]] = [
        'openstack_username="${BBL_OPENSTACK_USERNAME}"',
        'openstack_password="${BBL_OPENSTACK_PASSWORD}"',
    ]

    def to_env_dict(self) -> Dict[str, str]:
        return {
            "BBL_OPENSTACK_USERNAME": self.username,
            "BBL_OPENSTACK_PASSWORD": self.password,
        }

    def to_tf_env(self) -> Dict[str, str]:
        return {
            "TF_VAR_openstack_user_name": self.username,
            "TF_VAR_openstack_password": self.password,
        }


__all__ = ["OpenStackRecord"]
