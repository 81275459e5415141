"""
filename: bbl/models/providers/azure.py

Azure record of the state document.
"""

from typing import ClassVar, Dict, List

from pydantic import Field

from bbl.models.providers.base import ProviderRecord


class AzureRecord(ProviderRecord):
    """Azure service principal and placement."""

    client_id: str = Field(default="", alias="clientId")
    client_secret: str = Field(default="", alias="clientSecret")
    region: str = ""
    subscription_id: str = Field(default="", alias="subscriptionId")
    tenant_id: str = Field(default="", alias="tenantId")

    REQUIRED: ClassVar[Dict[str, str]] = {
        "client_id": "--azure-client-id",
        "client_secret": "--azure-client-secret",
        "region": "--azure-region",
        "subscription_id": "--azure-subscription-id",
        "tenant_id": "--azure-tenant-id",
    }
    CREATE_ENV_VARS: ClassVar[List[str]] = [
        'client_id="${BBL_AZURE_CLIENT_ID}"',
        'client_secret="${BBL_AZURE_CLIENT_SECRET}"',
        'subscription_id="${BBL_AZURE_SUBSCRIPTION_ID}"',
        'tenant_id="${BBL_AZURE_TENANT_ID}"',
    ]

    def to_env_dict(self) -> Dict[str, str]:
        return {
            "BBL_AZURE_CLIENT_ID": self.client_id,
            "BBL_AZURE_CLIENT_SECRET": self.client_secret,
            "BBL_AZURE_SUBSCRIPTION_ID": self.subscription_id,
            "BBL_AZURE_TENANT_ID": self.tenant_id,
        }

    def to_tf_env(self) -> Dict[str, str]:
        return {
            "TF_VAR_client_id": self.client_id,
            "TF_VAR_client_secret": self.client_secret,
            "TF_VAR_subscription_id": self.subscription_id,
            "TF_VAR_tenant_id": self.tenant_id,
        }


__all__ = ["AzureRecord"]
