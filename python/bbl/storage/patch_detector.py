"""
bbl/storage/patch_detector.py

Reports user-supplied files (ops files, override scripts, extra terraform) found
in the state directory. Read-only.
"""

from __future__ import annotations

import logging
import os
from typing import List

from bbl.storage.ownership import in_bbl_managed_dir, is_user_managed

logger = logging.getLogger(__name__)


class PatchDetector:
    """Finds user-managed files in a state directory."""

    def __init__(self, state_dir: str) -> None:
        self._state_dir = state_dir

    def find(self) -> List[str]:
        """Walk the state directory and log every user-managed file.

        Returns:
            List[str]: Relative paths of the user-managed files, sorted.
        """
        found: List[str] = []
        for root, dirs, files in os.walk(self._state_dir):
            rel_root = os.path.relpath(root, self._state_dir)
            rel_root = "" if rel_root == "." else rel_root
            # Prune directories bbl owns outright.
            dirs[:] = [d for d in dirs if not in_bbl_managed_dir(os.path.join(rel_root, d))]
            found.extend(
                rel
                for rel in (os.path.join(rel_root, name) for name in files)
                if is_user_managed(rel)
            )

        found.sort()
        if found:
            listing = "".join(f"\n\t{path}" for path in found)
            logger.warning("you've supplied the following files to bbl:%s", listing)
        return found


__all__ = ["PatchDetector"]
