"""
filename: bbl/models/providers/aws.py

AWS record of the state document.
"""

from typing import ClassVar, Dict, List

from pydantic import Field

from bbl.models.providers.base import ProviderRecord


class AWSRecord(ProviderRecord):
    """AWS credentials and placement."""

    access_key_id: str = Field(default="", alias="accessKeyId")
    secret_access_key: str = Field(default="", alias="secretAccessKey")
    region: str = ""

    REQUIRED: ClassVar[Dict[str, str]] = {
        "access_key_id": "--aws-access-key-id",
        "secret_access_key": "--aws-secret-access-key",
        "region": "--aws-region",
    }
    CREATE_ENV_VARS: ClassVar[List[str]] = [
        'access_key_id="${BBL_AWS_ACCESS_KEY_ID}"',
        'secret_access_key="${BBL_AWS_SECRET_ACCESS_KEY}"',
    ]

    def to_env_dict(self) -> Dict[str, str]:
        return {
            "BBL_AWS_ACCESS_KEY_ID": self.access_key_id,
            "BBL_AWS_SECRET_ACCESS_KEY": self.secret_access_key,
        }

    def to_tf_env(self) -> Dict[str, str]:
        return {
            "TF_VAR_access_key": self.access_key_id,
            "TF_VAR_secret_key": self.secret_access_key,
        }


__all__ = ["AWSRecord"]
