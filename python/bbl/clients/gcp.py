"""
bbl/clients/gcp.py

Minimal asynchronous GCP compute client: exchanges a service-account JWT for an
access token, then lists networks by name (env-id collision check) and the
zones of a region.
"""

from __future__ import annotations

import base64
import json
import time
import urllib.parse
from types import TracebackType
from typing import Any, Dict, List, Optional, Type

import aiohttp
from cryptography.hazmat.primitives import hashes, serialization
from cryptography.hazmat.primitives.asymmetric import padding, rsa

from bbl.errors import BBLError
from bbl.models.providers import GCPServiceAccountKey
from bbl.utils.async_retry import async_retry

COMPUTE_URL = "https://compute.googleapis.com/compute/v1"
READONLY_SCOPE = "https://www.googleapis.com/auth/compute.readonly"


def _b64url(data: bytes) -> str:
    return base64.urlsafe_b64encode(data).rstrip(b"=").decode("ascii")


def build_jwt_assertion(key: GCPServiceAccountKey, now: Optional[int] = None) -> str:
    """Build the RS256-signed JWT used for the OAuth2 jwt-bearer grant."""
    issued_at = int(time.time()) if now is None else now
    header = {"alg": "RS256", "typ": "JWT"}
    claims = {
        "iss": key.client_email,
        "scope": READONLY_SCOPE,
        "aud": key.token_uri,
        "iat": issued_at,
        "exp": issued_at + 3600,
    }
    signing_input = (
        f"{_b64url(json.dumps(header).encode())}.{_b64url(json.dumps(claims).encode())}"
    )
    private_key = serialization.load_pem_private_key(key.private_key.encode(), password=None)
    if not isinstance(private_key, rsa.RSAPrivateKey):
        raise ValueError("service account private key is not an RSA key")
    signature = private_key.sign(signing_input.encode(), padding.PKCS1v15(), hashes.SHA256())
    return f"{signing_input}.{_b64url(signature)}"


class GCPClient:
    """Read-only compute API lookups for one project."""

    def __init__(self, key: GCPServiceAccountKey, project_id: str) -> None:
        self._key = key
        self._project_id = project_id
        self._session: Optional[aiohttp.ClientSession] = None
        self._token: Optional[str] = None

    async def __aenter__(self) -> GCPClient:
        self._session = aiohttp.ClientSession()
        return self

    async def __aexit__(
        self,
        exc_type: Optional[Type[BaseException]],
        exc_val: Optional[BaseException],
        exc_tb: Optional[TracebackType],
    ) -> None:
        if self._session:
            await self._session.close()
        self._session = None

    def _ensure_session(self) -> aiohttp.ClientSession:
        if self._session is None:
            raise RuntimeError("GCPClient must be used as an async context manager")
        return self._session

    @async_retry(retries=3, delay=1.0, retry_on=(aiohttp.ClientError,))
    async def _access_token(self) -> str:
        if self._token is not None:
            return self._token
        session = self._ensure_session()
        form = {
            "grant_type": "urn:ietf:params:oauth:grant-type:jwt-bearer",
            "assertion": build_jwt_assertion(self._key),
        }
        async with session.post(self._key.token_uri, data=form) as response:
            body = await response.text()
            if response.status != 200:
                raise BBLError(f"GCP token exchange failed with status {response.status}: {body}")
        token = json.loads(body).get("access_token")
        if not token:
            raise BBLError("GCP token exchange returned no access_token")
        self._token = token
        return token

    @async_retry(retries=3, delay=1.0, retry_on=(aiohttp.ClientError,))
    async def _get(self, path: str, what: str) -> Dict[str, Any]:
        session = self._ensure_session()
        token = await self._access_token()
        url = f"{COMPUTE_URL}/projects/{self._project_id}/{path}"
        async with session.get(url, headers={"Authorization": f"Bearer {token}"}) as response:
            body = await response.text()
            if response.status != 200:
                raise BBLError(f"{what} failed with status {response.status}: {body}")
        return json.loads(body)

    async def _get_json(self, path: str, what: str) -> Dict[str, Any]:
        """GET a compute API resource.

        Raises:
            BBLError: On a non-200 answer, a malformed body, or a network
                failure that outlasted the retries.
        """
        try:
            return await self._get(path, what)
        except (aiohttp.ClientError, ValueError) as exc:
            raise BBLError(f"{what}: {exc}") from exc

    async def get_networks(self, name: str) -> List[str]:
        """Names of the project's networks called exactly `name`."""
        query = urllib.parse.urlencode({"filter": f"name = {name}"})
        body = await self._get_json(f"global/networks?{query}", "listing GCP networks")
        return [item["name"] for item in body.get("items", []) if item.get("name") == name]

    async def get_zones(self, region: str) -> List[str]:
        """Zone names of `region`, sorted."""
        body = await self._get_json(f"regions/{region}", f"getting GCP region {region}")
        # Zones come back as resource URLs.
        return sorted(zone.rsplit("/", 1)[-1] for zone in body.get("zones", []))


__all__ = ["GCPClient", "build_jwt_assertion"]
