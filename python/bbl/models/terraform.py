"""
bbl/models/terraform.py

Models for what the infrastructure engine hands back:
 - OutputValue: one entry of `terraform output -json`.
 - TerraformOutputs: the flattened name -> value map consumed downstream.
"""

from __future__ import annotations

from typing import Any, Dict, List, Union

from pydantic import BaseModel, Field


class OutputValue(BaseModel):
    """Represents a Terraform output as printed by 'terraform output -json'.

    Attributes:
        sensitive: True if the output is marked sensitive.
        value: Arbitrary data from the Terraform output.
        type: Optional Terraform type hint (string, list, etc.).
    """

    sensitive: bool = False
    value: Any = None
    type: Union[str, List[Any], None] = None


class TerraformOutputs(BaseModel):
    """Engine outputs keyed by output name."""

    values: Dict[str, Any] = Field(default_factory=dict)

    def get_string(self, name: str) -> str:
        value = self.values.get(name)
        return "" if value is None else str(value)

    def get_list(self, name: str) -> List[Any]:
        value = self.values.get(name)
        return list(value) if isinstance(value, list) else []

    def get_map(self, name: str) -> Dict[str, Any]:
        value = self.values.get(name)
        return dict(value) if isinstance(value, dict) else {}


__all__ = ["OutputValue", "TerraformOutputs"]
