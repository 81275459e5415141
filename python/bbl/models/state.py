"""
bbl/models/state.py

The versioned state document persisted as `bbl-state.json`, with its nested
jumpbox, director and load-balancer records.

Field names on disk are camelCase (e.g. `bblVersion`, `envID`); Python code uses
snake_case attributes, and `to_json` always writes by alias.
"""

from __future__ import annotations

import json
from typing import Any, Dict, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

from bbl.models.providers import (
    IaaSName,
    ProviderRecord,
    AWSRecord,
    AzureRecord,
    GCPRecord,
    VSphereRecord,
    OpenStackRecord,
    CloudStackRecord,
)

STATE_SCHEMA = 14
BBL_VERSION = "8.4.0"
# bblVersion assumed for state files written before the field existed.
FALLBACK_BBL_VERSION = "5.1.0"

LB_TYPES = ("", "none", "cf", "concourse")


class Jumpbox(BaseModel):
    """Jumpbox record. Only `url` is current; the rest is migrated out to vars/."""

    model_config = ConfigDict(populate_by_name=True)

    url: str = ""
    variables: str = ""
    manifest: str = ""
    state: Optional[Dict[str, Any]] = None


class BOSH(BaseModel):
    """Director record: address, credentials and legacy inline artifacts."""

    model_config = ConfigDict(populate_by_name=True)

    director_name: str = Field(default="", alias="directorName")
    director_username: str = Field(default="", alias="directorUsername")
    director_password: str = Field(default="", alias="directorPassword")
    director_address: str = Field(default="", alias="directorAddress")
    director_ssl_ca: str = Field(default="", alias="directorSSLCA")
    director_ssl_certificate: str = Field(default="", alias="directorSSLCertificate")
    director_ssl_private_key: str = Field(default="", alias="directorSSLPrivateKey")
    state: Optional[Dict[str, Any]] = None
    variables: str = ""
    manifest: str = ""
    user_ops_file: str = Field(default="", alias="userOpsFile")


class LB(BaseModel):
    """Load balancer configuration."""

    type: str = ""
    cert: str = ""
    key: str = ""
    chain: str = ""
    domain: str = ""

    @field_validator("type")
    @classmethod
    def validate_type(cls, value: str) -> str:
        if value not in LB_TYPES:
            raise ValueError(f'"{value}" is not a valid lb type, valid lb types are: concourse, cf')
        return value

    def is_configured(self) -> bool:
        return self.type not in ("", "none")


class State(BaseModel):
    """The bbl state document.

    Attributes:
        version (int): Schema generation, never above STATE_SCHEMA.
        bbl_version (str): bbl version that last wrote the document.
        iaas (str): One of IaaSName, or "" before the first plan.
        id (str): UUID-v4, assigned on first write.
        env_id (str): Operator-visible environment name.
        no_director (bool): Only infrastructure is managed.
        tf_state (str): Legacy inline engine state, migrated to vars/.
        latest_tf_output (str): Captured output of the last engine run.
    """

    model_config = ConfigDict(populate_by_name=True)

    version: int = 0
    bbl_version: str = Field(default="", alias="bblVersion")
    iaas: str = ""
    id: str = ""
    no_director: bool = Field(default=False, alias="noDirector")
    aws: AWSRecord = Field(default_factory=AWSRecord)
    azure: AzureRecord = Field(default_factory=AzureRecord)
    gcp: GCPRecord = Field(default_factory=GCPRecord)
    vsphere: VSphereRecord = Field(default_factory=VSphereRecord)
    openstack: OpenStackRecord = Field(default_factory=OpenStackRecord)
    cloudstack: CloudStackRecord = Field(default_factory=CloudStackRecord)
    jumpbox: Jumpbox = Field(default_factory=Jumpbox)
    bosh: BOSH = Field(default_factory=BOSH)
    env_id: str = Field(default="", alias="envID")
    tf_state: str = Field(default="", alias="tfState")
    lb: LB = Field(default_factory=LB)
    latest_tf_output: str = Field(default="", alias="latestTFOutput")

    @field_validator("iaas")
    @classmethod
    def validate_iaas(cls, value: str) -> str:
        if value and value not in {name.value for name in IaaSName}:
            raise ValueError(f"unknown iaas {value!r}")
        return value

    @model_validator(mode="after")
    def check_single_provider(self) -> State:
        """Only the record matching `iaas` may hold values."""
        if not self.iaas:
            return self
        stray = [
            name.value
            for name in IaaSName
            if name.value != self.iaas and self.provider_record(name.value).is_populated()
        ]
        if stray:
            raise ValueError(
                f"state for iaas {self.iaas!r} also holds values for: {', '.join(stray)}"
            )
        return self

    def provider_record(self, iaas: Optional[str] = None) -> ProviderRecord:
        """Return the sub-record for `iaas` (defaults to this state's IaaS)."""
        name = IaaSName(iaas or self.iaas)
        record: ProviderRecord = getattr(self, name.value)
        return record

    def is_empty(self) -> bool:
        return self == State()

    def to_json(self) -> str:
        """Serialize with tab indentation, matching historical state files."""
        data = self.model_dump(by_alias=True, exclude_none=True)
        return json.dumps(data, indent="\t")

    @classmethod
    def from_json(cls, text: str) -> State:
        return cls.model_validate_json(text)


__all__ = [
    "STATE_SCHEMA",
    "BBL_VERSION",
    "FALLBACK_BBL_VERSION",
    "Jumpbox",
    "BOSH",
    "LB",
    "State",
]
