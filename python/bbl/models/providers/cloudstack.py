"""
filename: bbl/models/providers/cloudstack.py

CloudStack record of the state document.
"""

from typing import ClassVar, Dict, List

from pydantic import Field

from bbl.models.providers.base import ProviderRecord


class CloudStackRecord(ProviderRecord):
    """CloudStack API endpoint, keys and offerings."""

    endpoint: str = ""
    api_key: str = Field(default="", alias="apiKey")
    secret_access_key: str = Field(default="", alias="secretAccessKey")
    zone: str = ""
    network_vpc_offering: str = Field(default="", alias="networkVpcOffering")
    compute_offering: str = Field(default="", alias="computeOffering")
    secure: bool = False
    iso_segment: bool = Field(default=False, alias="isoSegment")

    REQUIRED: ClassVar[Dict[str, str]] = {
        "endpoint": "--cloudstack-endpoint",
        "api_key": "--cloudstack-api-key",
        "secret_access_key": "--cloudstack-secret-access-key",
        "zone": "--cloudstack-zone",
        "network_vpc_offering": "--cloudstack-network-vpc-offering",
    }
    CREATE_ENV_VARS: ClassVar[List[str]] = [
        'cloudstack_api_key="${BBL_CLOUDSTACK_API_KEY}"',
        'cloudstack_secret_access_key="${BBL_CLOUDSTACK_SECRET_ACCESS_KEY}"',
    ]

    def to_env_dict(self) -> Dict[str, str]:
        return {
            "BBL_CLOUDSTACK_API_KEY": self.api_key,
            "BBL_CLOUDSTACK_SECRET_ACCESS_KEY": self.secret_access_key,
        }

    def to_tf_env(self) -> Dict[str, str]:
        return {
            "TF_VAR_cloudstack_api_key": self.api_key,
            "TF_VAR_cloudstack_secret_access_key": self.secret_access_key,
        }


__all__ = ["CloudStackRecord"]
