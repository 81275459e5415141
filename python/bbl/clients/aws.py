"""
bbl/clients/aws.py

Minimal asynchronous AWS query-API client used to check whether an environment
name is already taken: CloudFormation DescribeStacks and EC2 DescribeVpcs,
signed with AWS Signature Version 4 over aiohttp.
"""

from __future__ import annotations

import datetime
import hashlib
import hmac
import urllib.parse
import xml.etree.ElementTree as ET
from types import TracebackType
from typing import Dict, Optional, Tuple, Type

import aiohttp

from bbl.errors import BBLError
from bbl.models.providers import AWSRecord
from bbl.utils.async_retry import async_retry

CLOUDFORMATION_API_VERSION = "2010-05-15"
EC2_API_VERSION = "2016-11-15"


def _quote(value: str) -> str:
    return urllib.parse.quote(value, safe="-_.~")


def _canonical_query(params: Dict[str, str]) -> str:
    return "&".join(f"{_quote(k)}={_quote(v)}" for k, v in sorted(params.items()))


def _strip_namespaces(root: ET.Element) -> ET.Element:
    for element in root.iter():
        if "}" in element.tag:
            element.tag = element.tag.split("}", 1)[1]
    return root


class AWSClient:
    """Read-only CloudFormation/EC2 lookups for one region."""

    def __init__(self, record: AWSRecord) -> None:
        self._access_key_id = record.access_key_id
        self._secret_access_key = record.secret_access_key
        self._region = record.region
        self._session: Optional[aiohttp.ClientSession] = None
        self._signing_key_cache: Dict[str, bytes] = {}

    async def __aenter__(self) -> AWSClient:
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

    async def stack_exists(self, stack_name: str) -> bool:
        """True when CloudFormation knows a stack called `stack_name`."""
        status, body = await self._query(
            "cloudformation",
            {
                "Action": "DescribeStacks",
                "StackName": stack_name,
                "Version": CLOUDFORMATION_API_VERSION,
            },
        )
        if status == 200:
            return True
        if status == 400 and "does not exist" in body:
            return False
        raise BBLError(f"DescribeStacks failed with status {status}: {body}")

    async def check_exists(self, vpc_name: str) -> bool:
        """True when a VPC tagged `Name=<vpc_name>` exists."""
        status, body = await self._query(
            "ec2",
            {
                "Action": "DescribeVpcs",
                "Filter.1.Name": "tag:Name",
                "Filter.1.Value.1": vpc_name,
                "Version": EC2_API_VERSION,
            },
        )
        if status != 200:
            raise BBLError(f"DescribeVpcs failed with status {status}: {body}")
        try:
            root = _strip_namespaces(ET.fromstring(body))
        except ET.ParseError as exc:
            raise BBLError(f"DescribeVpcs returned malformed XML: {exc}") from exc
        vpc_set = root.find("vpcSet")
        return vpc_set is not None and len(vpc_set.findall("item")) > 0

    async def _query(self, service: str, params: Dict[str, str]) -> Tuple[int, str]:
        try:
            return await self._send(service, params)
        except aiohttp.ClientError as exc:
            raise BBLError(f"{params['Action']} request failed: {exc}") from exc

    @async_retry(retries=3, delay=1.0, retry_on=(aiohttp.ClientError,))
    async def _send(self, service: str, params: Dict[str, str]) -> Tuple[int, str]:
        if self._session is None:
            raise RuntimeError("AWSClient must be used as an async context manager")
        host = f"{service}.{self._region}.amazonaws.com"
        query = _canonical_query(params)
        url = f"https://{host}/?{query}"
        headers = self._sign_request_v4(service, host, query)
        async with self._session.get(url, headers=headers) as response:
            return response.status, await response.text()

    def _sign_request_v4(self, service: str, host: str, canonical_query: str) -> Dict[str, str]:
        now_utc = datetime.datetime.now(datetime.timezone.utc)
        amz_date = now_utc.strftime("%Y%m%dT%H%M%SZ")
        date_stamp = now_utc.strftime("%Y%m%d")

        payload_hash = hashlib.sha256(b"").hexdigest()
        canonical_headers = (
            f"host:{host}\n"
            f"x-amz-content-sha256:{payload_hash}\n"
            f"x-amz-date:{amz_date}\n"
        )
        signed_headers = "host;x-amz-content-sha256;x-amz-date"
        canonical_request = (
            f"GET\n/\n{canonical_query}\n{canonical_headers}\n{signed_headers}\n{payload_hash}"
        )
        cr_hash = hashlib.sha256(canonical_request.encode("utf-8")).hexdigest()

        algorithm = "AWS4-HMAC-SHA256"
        credential_scope = f"{date_stamp}/{self._region}/{service}/aws4_request"
        string_to_sign = f"{algorithm}\n{amz_date}\n{credential_scope}\n{cr_hash}"

        signature = hmac.new(
            self._get_signing_key(date_stamp, service),
            string_to_sign.encode("utf-8"),
            hashlib.sha256,
        ).hexdigest()

        return {
            "X-Amz-Date": amz_date,
            "X-Amz-Content-Sha256": payload_hash,
            "Authorization": (
                f"{algorithm} Credential={self._access_key_id}/{credential_scope}, "
                f"SignedHeaders={signed_headers}, Signature={signature}"
            ),
        }

    def _get_signing_key(self, date_stamp: str, service: str) -> bytes:
        cache_key = f"{date_stamp}-{self._region}-{service}"
        if cache_key in self._signing_key_cache:
            return self._signing_key_cache[cache_key]

        def _sign(key: bytes, msg: str) -> bytes:
            return hmac.new(key, msg.encode("utf-8"), hashlib.sha256).digest()

        k_date = _sign(b"AWS4" + self._secret_access_key.encode("utf-8"), date_stamp)
        k_region = _sign(k_date, self._region)
        k_service = _sign(k_region, service)
        k_signing = _sign(k_service, "aws4_request")
        self._signing_key_cache[cache_key] = k_signing
        return k_signing


__all__ = ["AWSClient"]
