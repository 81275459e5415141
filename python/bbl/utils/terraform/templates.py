"""
bbl/utils/terraform/templates.py

Selects the terraform template for an environment: the IaaS base template plus,
when a load balancer is configured, the matching LB fragment.
"""

from __future__ import annotations

import os

from bbl.errors import UserError
from bbl.models.providers import IaaSName
from bbl.models.state import State

TEMPLATES_DIR = os.path.join(os.path.dirname(os.path.abspath(__file__)), "templates")


class TemplateGenerator:
    """Renders bbl-template.tf for a state."""

    def __init__(self, templates_dir: str = TEMPLATES_DIR) -> None:
        self._templates_dir = templates_dir

    def generate(self, state: State) -> str:
        """Return the template text for `state.iaas` and `state.lb`.

        Raises:
            UserError: For an unknown IaaS or an LB type the IaaS cannot host.
        """
        try:
            iaas = IaaSName(state.iaas)
        except ValueError as exc:
            raise UserError(f"invalid iaas: {state.iaas!r}") from exc

        parts = [self._read(f"{iaas.value}.tf")]
        if state.lb.is_configured():
            fragment = f"{iaas.value}-lb-{state.lb.type}.tf"
            if not os.path.isfile(os.path.join(self._templates_dir, fragment)):
                raise UserError(f"{state.lb.type} load balancers are not supported on {iaas.value}")
            parts.append(self._read(fragment))
        return "\n".join(parts)

    def _read(self, name: str) -> str:
        with open(os.path.join(self._templates_dir, name), "r") as f:
            return f.read()


__all__ = ["TemplateGenerator", "TEMPLATES_DIR"]
