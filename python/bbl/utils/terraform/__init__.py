"""
bbl.utils.terraform

Infrastructure engine driver: binary resolution, executor, template and input
generation, and the state-level manager.
"""

from bbl.utils.terraform.binary import TerraformBinary
from bbl.utils.terraform.commands import (
    ExecutorError,
    ExecutorApplyError,
    ExecutorDestroyError,
    TerraformExecutor,
)
from bbl.utils.terraform.inputs import InputGenerator
from bbl.utils.terraform.manager import TerraformManager
from bbl.utils.terraform.templates import TemplateGenerator

__all__ = [
    "TerraformBinary",
    "ExecutorError",
    "ExecutorApplyError",
    "ExecutorDestroyError",
    "TerraformExecutor",
    "InputGenerator",
    "TerraformManager",
    "TemplateGenerator",
]
