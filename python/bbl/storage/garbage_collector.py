"""
bbl/storage/garbage_collector.py

Removes every bbl-managed artifact from a state directory and nothing else.
"""

from __future__ import annotations

import glob
import logging
import os
import shutil

from bbl.storage.ownership import BBL_MANAGED_DIRS, BBL_MANAGED_FILES, BBL_SUBDIRS

logger = logging.getLogger(__name__)


def _remove_file(path: str) -> None:
    try:
        os.remove(path)
    except FileNotFoundError:
        pass


class GarbageCollector:
    """Deletes bbl-managed files and directories, leaving user patches intact."""

    def remove(self, directory: str) -> None:
        """Remove bbl-managed paths under `directory`.

        Subdirectories left empty are removed as well; those still holding
        user-managed (or unknown) files stay.

        Args:
            directory (str): The state directory.

        Raises:
            OSError: For any failure other than a path already being gone.
        """
        for pattern in BBL_MANAGED_FILES:
            for path in glob.glob(os.path.join(directory, pattern)):
                if os.path.isfile(path) or os.path.islink(path):
                    _remove_file(path)

        for managed_dir in BBL_MANAGED_DIRS:
            path = os.path.join(directory, managed_dir)
            if os.path.isdir(path):
                shutil.rmtree(path)

        for subdir in BBL_SUBDIRS:
            path = os.path.join(directory, subdir)
            if os.path.isdir(path) and not os.listdir(path):
                os.rmdir(path)

        logger.debug("removed bbl-managed files from %s", directory)


__all__ = ["GarbageCollector"]
