"""
bbl/utils/terraform/binary.py

Locates the terraform binary. Resolution order:
    1) a user-supplied path (BBL_TERRAFORM_BINARY),
    2) the binary shipped in `binary_dist/`, extracted to a cached temp path,
    3) `terraform` on PATH.

The embedded copy carries its build time in `binary_dist/terraform-mod-time`
(unix seconds). The cached copy is replaced whenever it is older than that.
"""

from __future__ import annotations

import logging
import os
import shutil
import tempfile
from typing import Optional

from bbl.errors import BBLError, UserError

logger = logging.getLogger(__name__)

BINARY_DIST_DIR = os.path.join(os.path.dirname(os.path.abspath(__file__)), "binary_dist")
BINARY_NAME = "terraform"
MOD_TIME_NAME = "terraform-mod-time"


class TerraformBinary:
    """Resolves (and if needed materializes) the terraform executable."""

    def __init__(
        self,
        user_binary: str = "",
        dist_dir: str = BINARY_DIST_DIR,
        cache_path: Optional[str] = None,
    ) -> None:
        self._user_binary = user_binary
        self._dist_dir = dist_dir
        self._cache_path = cache_path or os.path.join(tempfile.gettempdir(), "bbl-terraform")

    def path(self) -> str:
        """Return an executable terraform path.

        Raises:
            UserError: If a user-supplied binary does not exist.
            BBLError: "missing terraform" when nothing can be found.
        """
        if self._user_binary:
            if not os.path.isfile(self._user_binary):
                raise UserError(f"terraform binary {self._user_binary} does not exist")
            return self._user_binary

        embedded = os.path.join(self._dist_dir, BINARY_NAME)
        if os.path.isfile(embedded):
            return self._extract(embedded)

        on_path = shutil.which(BINARY_NAME)
        if on_path:
            return on_path

        raise BBLError("missing terraform")

    def embedded_mod_time(self) -> float:
        mod_time_file = os.path.join(self._dist_dir, MOD_TIME_NAME)
        try:
            with open(mod_time_file, "r") as f:
                return float(f.read().strip())
        except (OSError, ValueError):
            return os.path.getmtime(os.path.join(self._dist_dir, BINARY_NAME))

    def _extract(self, embedded: str) -> str:
        mod_time = self.embedded_mod_time()
        if os.path.isfile(self._cache_path) and os.path.getmtime(self._cache_path) >= mod_time:
            return self._cache_path

        logger.debug("extracting terraform to %s", self._cache_path)
        tmp_path = f"{self._cache_path}.{os.getpid()}.tmp"
        try:
            shutil.copyfile(embedded, tmp_path)
            os.chmod(tmp_path, 0o755)
            os.utime(tmp_path, (mod_time, mod_time))
            os.replace(tmp_path, self._cache_path)
        except OSError as exc:
            if os.path.exists(tmp_path):
                os.remove(tmp_path)
            raise BBLError(f"extracting terraform: {exc}") from exc
        return self._cache_path


__all__ = ["TerraformBinary", "BINARY_DIST_DIR", "MOD_TIME_NAME"]
