"""
filename: bbl/models/providers/gcp.py

GCP record of the state document, plus the service account key model used to
pull the project id out of the key and to sign API tokens.
"""

import json
import os
from typing import ClassVar, Dict, List

from pydantic import BaseModel, Field

from bbl.models.providers.base import ProviderRecord


class GCPServiceAccountKey(BaseModel):
    """The subset of a GCP service account key bbl reads."""

    type: str = "service_account"
    project_id: str
    private_key: str
    client_email: str
    token_uri: str = "https://oauth2.googleapis.com/token"


def read_service_account_key(value: str) -> str:
    """Accept a path to a key file or the key JSON itself; return the JSON text.

    Raises:
        ValueError: If the value is neither a readable file nor valid JSON.
    """
    if os.path.isfile(value):
        with open(value, "r") as f:
            value = f.read()
    try:
        json.loads(value)
    except json.JSONDecodeError as exc:
        raise ValueError(f"Unmarshalling service account key (must be valid json): {exc}") from exc
    return value


class GCPRecord(ProviderRecord):
    """GCP service account, project and placement."""

    service_account_key: str = Field(default="", alias="serviceAccountKey")
    project_id: str = Field(default="", alias="projectID")
    zone: str = ""
    region: str = ""
    zones: List[str] = Field(default_factory=list)

    REQUIRED: ClassVar[Dict[str, str]] = {
        "service_account_key": "--gcp-service-account-key",
        "region": "--gcp-region",
    }
    CREATE_ENV_VARS: ClassVar[List[str]] = [
        'project_id="${BBL_GCP_PROJECT_ID}"',
        '--var-file gcp_credentials_json="${BBL_GCP_SERVICE_ACCOUNT_KEY_PATH}"',
    ]

    def parsed_key(self) -> GCPServiceAccountKey:
        return GCPServiceAccountKey.model_validate_json(self.service_account_key)

    def to_env_dict(self) -> Dict[str, str]:
        # BBL_GCP_SERVICE_ACCOUNT_KEY_PATH is added by whoever materializes the key file.
        return {
            "BBL_GCP_PROJECT_ID": self.project_id,
            "BBL_GCP_ZONE": self.zone,
        }

    def to_tf_env(self) -> Dict[str, str]:
        return {"TF_VAR_credentials": self.service_account_key}


__all__ = ["GCPRecord", "GCPServiceAccountKey", "read_service_account_key"]
