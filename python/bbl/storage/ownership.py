"""
bbl/storage/ownership.py

The single table that decides who owns each path in a state directory. Both the
garbage collector and the patch detector classify paths through this module.

Patterns are relative, '/'-separated, and matched segment by segment, so `*`
never crosses a directory boundary.
"""

from __future__ import annotations

import os
from enum import Enum
from fnmatch import fnmatchcase
from typing import List


class Ownership(str, Enum):
    bbl = "bbl"
    user = "user"
    unknown = "unknown"


BBL_MANAGED_FILES: List[str] = [
    "bbl-state.json",
    "create-jumpbox.sh",
    "create-director.sh",
    "delete-jumpbox.sh",
    "delete-director.sh",
    "vars/bbl.tfvars",
    "vars/*-state.json",
    "vars/*-vars-file.yml",
    "vars/*-vars-store.yml",
    "vars/cloud-config-vars.yml",
    "vars/terraform.tfstate*",
    "terraform/bbl-template.tf",
    "terraform/.terraform.lock.hcl",
    "cloud-config/cloud-config.yml",
    "cloud-config/ops.yml",
    "runtime-config/runtime-config.yml",
]

# Removed wholesale; never walked by the patch detector.
BBL_MANAGED_DIRS: List[str] = [
    "jumpbox-deployment",
    "bosh-deployment",
    "bbl-ops-files",
    ".terraform",
    "terraform/.terraform",
]

USER_MANAGED_FILES: List[str] = [
    "create-*-override.sh",
    "delete-*-override.sh",
    "vars/*.tfvars",
    "terraform/*.tf",
    "cloud-config/*.yml",
]

# Removed by the garbage collector only once nothing is left in them.
BBL_SUBDIRS: List[str] = ["vars", "terraform", "cloud-config", "runtime-config"]


def glob_match(rel_path: str, pattern: str) -> bool:
    """Match a relative path against a pattern, one path segment at a time."""
    parts = rel_path.replace(os.sep, "/").strip("/").split("/")
    pattern_parts = pattern.split("/")
    if len(parts) != len(pattern_parts):
        return False
    return all(fnmatchcase(part, pat) for part, pat in zip(parts, pattern_parts))


def in_bbl_managed_dir(rel_path: str) -> bool:
    normalized = rel_path.replace(os.sep, "/").strip("/")
    return any(
        normalized == directory or normalized.startswith(directory + "/")
        for directory in BBL_MANAGED_DIRS
    )


def is_bbl_managed(rel_path: str) -> bool:
    if in_bbl_managed_dir(rel_path):
        return True
    return any(glob_match(rel_path, pattern) for pattern in BBL_MANAGED_FILES)


def is_user_managed(rel_path: str) -> bool:
    """User-managed means a user glob matches and no bbl glob does."""
    if is_bbl_managed(rel_path):
        return False
    return any(glob_match(rel_path, pattern) for pattern in USER_MANAGED_FILES)


def classify(rel_path: str) -> Ownership:
    if is_bbl_managed(rel_path):
        return Ownership.bbl
    if is_user_managed(rel_path):
        return Ownership.user
    return Ownership.unknown


__all__ = [
    "Ownership",
    "BBL_MANAGED_FILES",
    "BBL_MANAGED_DIRS",
    "USER_MANAGED_FILES",
    "BBL_SUBDIRS",
    "glob_match",
    "in_bbl_managed_dir",
    "is_bbl_managed",
    "is_user_managed",
    "classify",
]
