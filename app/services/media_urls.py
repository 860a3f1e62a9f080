"""
media_urls.py - Resolve question image references to fetchable URLs

Question rows store either an absolute URL, a storage-relative URL or a bare
object path inside the assessment bucket. Object paths are probed on the
public endpoint first and signed when the bucket is private.

Provides:
- MediaUrlResolver(client, ...) - resolver with a per-load cache
- resolve(value) - one reference → absolute URL or None
"""

import logging
from typing import Any, Dict, Optional
from urllib.parse import quote

import httpx
from tenacity import retry, stop_after_attempt, wait_exponential, retry_if_exception_type

from app.config import settings

logger = logging.getLogger(__name__)

STORAGE_OBJECT_PREFIX = "storage/v1/object/"


@retry(
    stop=stop_after_attempt(3),
    wait=wait_exponential(multiplier=1, min=2, max=30),
    retry=retry_if_exception_type(httpx.TransportError),
    before_sleep=lambda retry_state: logger.warning(
        "Storage sign call failed (attempt %d), retrying: %s",
        retry_state.attempt_number,
        retry_state.outcome.exception(),
    ),
    reraise=True,
)
async def _post_sign(client: httpx.AsyncClient, url: str, headers: Dict[str, str], expires_in: int) -> httpx.Response:
    return await client.post(url, json={"expiresIn": expires_in}, headers=headers)


class MediaUrlResolver:
    """Resolves image references for one question-set load.

    The cache lives as long as the resolver, so build a fresh one per load.
    """

    def __init__(
        self,
        client: httpx.AsyncClient,
        base_url: Optional[str] = None,
        bucket: Optional[str] = None,
        service_key: Optional[str] = None,
        ttl_seconds: Optional[int] = None,
    ):
        self.client = client
        self.base_url = (settings.storage_url if base_url is None else base_url).rstrip("/")
        self.bucket = bucket or settings.assessment_bucket
        self.service_key = settings.storage_service_key if service_key is None else service_key
        self.ttl_seconds = ttl_seconds or settings.media_signed_url_ttl_seconds
        self._cache: Dict[str, Optional[str]] = {}

    def _headers(self) -> Dict[str, str]:
        if not self.service_key:
            return {}
        return {"apikey": self.service_key, "Authorization": f"Bearer {self.service_key}"}

    def _object_path(self, path: str) -> str:
        return quote(path.lstrip("/"), safe="/")

    async def resolve(self, value: Optional[str]) -> Optional[str]:
        raw = (value or "").strip()
        if not raw:
            return None
        if raw.startswith(("http://", "https://")):
            return raw
        if raw.startswith("/"):
            return f"{self.base_url}{raw}" if self.base_url else raw
        if raw.startswith(STORAGE_OBJECT_PREFIX):
            return f"{self.base_url}/{raw}" if self.base_url else None

        if raw in self._cache:
            return self._cache[raw]
        resolved = await self._resolve_object(raw)
        self._cache[raw] = resolved
        return resolved

    async def _resolve_object(self, path: str) -> Optional[str]:
        if not self.base_url:
            return None
        object_path = self._object_path(path)

        public_url = f"{self.base_url}/storage/v1/object/public/{self.bucket}/{object_path}"
        try:
            probe = await self.client.head(public_url)
            if probe.is_success:
                return public_url
        except httpx.HTTPError as e:
            logger.warning(f"Public probe failed for {path}: {e}")

        sign_url = f"{self.base_url}/storage/v1/object/sign/{self.bucket}/{object_path}"
        try:
            response = await _post_sign(self.client, sign_url, self._headers(), self.ttl_seconds)
            response.raise_for_status()
            payload: Any = response.json()
        except (httpx.HTTPError, ValueError) as e:
            logger.warning(f"Could not sign media path {path}: {e}")
            return None

        signed = None
        if isinstance(payload, dict):
            signed = payload.get("signedURL") or payload.get("signedUrl") or payload.get("url")
        if not signed:
            logger.warning(f"Sign response for {path} carried no URL")
            return None
        return self._absolute_signed_url(signed)

    def _absolute_signed_url(self, signed: str) -> str:
        if signed.startswith(("http://", "https://")):
            return signed
        if signed.startswith("/storage/v1/object/"):
            return f"{self.base_url}{signed}"
        if signed.startswith("/object/"):
            return f"{self.base_url}/storage/v1{signed}"
        return f"{self.base_url}/storage/v1/object/{signed.lstrip('/')}"


def build_storage_client() -> httpx.AsyncClient:
    return httpx.AsyncClient(timeout=settings.storage_timeout_seconds)
