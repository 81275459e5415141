"""
bbl/models/providers/base.py

Common behaviour for the per-IaaS records held in the state document.
"""

from __future__ import annotations

from typing import ClassVar, Dict, List

from pydantic import BaseModel, ConfigDict


class ProviderRecord(BaseModel):
    """Base for a per-IaaS sub-record of the state document.

    Subclasses declare:
      - REQUIRED: field name -> command-line flag, for credential validation.
      - CREATE_ENV_VARS: `-v` arguments the create-env scripts pass, which refer
        to the environment variables produced by `to_env_dict`.
    """

    model_config = ConfigDict(populate_by_name=True)

    REQUIRED: ClassVar[Dict[str, str]] = {}
    CREATE_ENV_VARS: ClassVar[List[str]] = []

    def is_populated(self) -> bool:
        """True when any field differs from its default."""
        return bool(self.model_dump(exclude_defaults=True))

    def missing_flags(self) -> List[str]:
        """Flags for every required field that is still empty."""
        return [flag for field, flag in self.REQUIRED.items() if not getattr(self, field)]

    def to_env_dict(self) -> Dict[str, str]:
        """Environment consumed by the create-env scripts."""
        return {}

    def to_tf_env(self) -> Dict[str, str]:
        """Environment consumed by the infrastructure engine (TF_VAR_*)."""
        return {}


__all__ = ["ProviderRecord"]
