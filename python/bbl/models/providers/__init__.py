"""
bbl.models.providers

Unified aggregator import for:
- IaaSName
- The per-IaaS state records (AWSRecord, etc.)
- PROVIDER_MODEL_MAP, used wherever behaviour dispatches on the IaaS tag.
"""

from enum import Enum
from typing import Dict, Type

from bbl.models.providers.base import ProviderRecord
from bbl.models.providers.aws import AWSRecord
from bbl.models.providers.azure import AzureRecord
from bbl.models.providers.gcp import GCPRecord, GCPServiceAccountKey
from bbl.models.providers.vsphere import VSphereRecord
from bbl.models.providers.openstack import OpenStackRecord
from bbl.models.providers.cloudstack import CloudStackRecord


class IaaSName(str, Enum):
    gcp = "gcp"
    aws = "aws"
    azure = "azure"
    vsphere = "vsphere"
    openstack = "openstack"
    cloudstack = "cloudstack"


PROVIDER_MODEL_MAP: Dict[IaaSName, Type[ProviderRecord]] = {
    IaaSName.gcp: GCPRecord,
    IaaSName.aws: AWSRecord,
    IaaSName.azure: AzureRecord,
    IaaSName.vsphere: VSphereRecord,
    IaaSName.openstack: OpenStackRecord,
    IaaSName.cloudstack: CloudStackRecord,
}

IAAS_LIST = ", ".join(name.value for name in IaaSName)


__all__ = [
    "IaaSName",
    "IAAS_LIST",
    "ProviderRecord",
    "AWSRecord",
    "AzureRecord",
    "GCPRecord",
    "GCPServiceAccountKey",
    "VSphereRecord",
    "OpenStackRecord",
    "CloudStackRecord",
    "PROVIDER_MODEL_MAP",
]
