# services/ipfs_service.py
"""
Content-addressed storage of credential metadata and documents on IPFS,
pinned through Pinata and read back through a chain of public gateways.
"""
import hashlib
import json
import logging
import time
from typing import Any, Dict, List, Optional, Sequence, Union

import httpx

from ..exceptions import ContentUnavailableError, ContentUploadError

Content = Union[Dict[str, Any], List[Any], bytes]


class PinataContentStore:
    """Pinata pinning client with ordered gateway fallback for retrieval"""

    def __init__(self, jwt: Optional[str], gateways: Sequence[str], api_url: str = "https://api.pinata.cloud",
                 timeout: float = 10.0, transport: Optional[httpx.AsyncBaseTransport] = None):
        """
        Args:
            jwt: Pinata API token
            gateways: Base URLs of the retrieval gateways, in priority order
            api_url: Base URL of the Pinata API
            timeout: Per-attempt timeout in seconds
            transport: Optional httpx transport, used by tests
        """
        if len(gateways) < 2:
            raise ValueError("At least two independent IPFS gateways are required")

        self.logger = logging.getLogger("PinataContentStore")
        self.jwt = jwt
        self.gateways = [g.rstrip("/") for g in gateways]
        self.api_url = api_url.rstrip("/")
        self.timeout = timeout
        self._transport = transport

    @classmethod
    def from_config(cls, config) -> 'PinataContentStore':
        return cls(
            jwt=config.PINATA_JWT,
            gateways=config.IPFS_GATEWAYS,
            api_url=config.PINATA_API_URL,
            timeout=config.IPFS_GATEWAY_TIMEOUT,
        )

    def _client(self) -> httpx.AsyncClient:
        # One client per operation: callers may run on different event loops
        return httpx.AsyncClient(timeout=self.timeout, transport=self._transport)

    def _auth_headers(self) -> Dict[str, str]:
        return {"Authorization": f"Bearer {self.jwt}"}

    async def put(self, content: Content, name: Optional[str] = None,
                  metadata: Optional[Dict[str, str]] = None) -> str:
        """
        Pins content and returns its CID. JSON objects go through
        pinJSONToIPFS, raw bytes through pinFileToIPFS.

        No retry happens here: a retried upload is the caller's decision.
        """
        if isinstance(content, (bytes, bytearray)):
            return await self.pin_file(bytes(content), name or f"document-{int(time.time())}", metadata)
        return await self.pin_json(content, name, metadata)

    async def pin_json(self, content, name: Optional[str] = None,
                       metadata: Optional[Dict[str, str]] = None) -> str:
        body = {
            "pinataContent": content,
            "pinataMetadata": {
                "name": name or f"credential-{int(time.time() * 1000)}",
                "keyvalues": metadata or {},
            },
            "pinataOptions": {"cidVersion": 1},
        }

        try:
            async with self._client() as client:
                response = await client.post(
                    f"{self.api_url}/pinning/pinJSONToIPFS", json=body, headers=self._auth_headers()
                )
                response.raise_for_status()
                cid = response.json()["IpfsHash"]
        except (httpx.HTTPError, KeyError, ValueError) as e:
            self.logger.error(f"JSON upload error: {e}")
            raise ContentUploadError(f"IPFS JSON upload failed: {e}") from e

        self.logger.info(f"JSON content pinned successfully: {cid}")
        return cid

    async def pin_file(self, data: bytes, name: str, metadata: Optional[Dict[str, str]] = None) -> str:
        files = {"file": (name, data)}
        form = {
            "pinataMetadata": json.dumps({"name": name, "keyvalues": metadata or {}}),
            "pinataOptions": json.dumps({"cidVersion": 1}),
        }

        try:
            async with self._client() as client:
                response = await client.post(
                    f"{self.api_url}/pinning/pinFileToIPFS", files=files, data=form, headers=self._auth_headers()
                )
                response.raise_for_status()
                cid = response.json()["IpfsHash"]
        except (httpx.HTTPError, KeyError, ValueError) as e:
            self.logger.error(f"File upload error: {e}")
            raise ContentUploadError(f"IPFS file upload failed: {e}") from e

        self.logger.info(f"File uploaded successfully: {cid}")
        return cid

    async def get(self, content_id: str) -> Content:
        """
        Retrieves content by CID, trying each gateway in order.

        Raises:
            ContentUnavailableError: when every gateway failed
        """
        attempts = []
        async with self._client() as client:
            for gateway in self.gateways:
                url = f"{gateway}/ipfs/{content_id}"
                try:
                    response = await client.get(url)
                    response.raise_for_status()
                except httpx.HTTPError as e:
                    self.logger.warning(f"Gateway attempt failed ({url}): {e!r}")
                    attempts.append((url, repr(e)))
                    continue

                self.logger.debug(f"Content retrieved from gateway: {url}")
                return self._decode(response)

        raise ContentUnavailableError(content_id, attempts)

    @staticmethod
    def _decode(response: httpx.Response) -> Content:
        if "json" in response.headers.get("content-type", ""):
            try:
                return response.json()
            except ValueError:
                pass
        return response.content

    def url_for(self, content_id: str) -> str:
        return f"{self.gateways[0]}/ipfs/{content_id}"

    async def pin_list(self, **filters) -> Dict[str, Any]:
        async with self._client() as client:
            response = await client.get(f"{self.api_url}/data/pinList", params=filters, headers=self._auth_headers())
            response.raise_for_status()
            return response.json()

    async def unpin(self, content_id: str) -> None:
        async with self._client() as client:
            response = await client.delete(f"{self.api_url}/pinning/unpin/{content_id}", headers=self._auth_headers())
            response.raise_for_status()
        self.logger.info(f"Content unpinned successfully: {content_id}")

    async def test_connection(self) -> bool:
        """Checks the Pinata credentials"""
        try:
            async with self._client() as client:
                response = await client.get(f"{self.api_url}/data/testAuthentication", headers=self._auth_headers())
                response.raise_for_status()
        except httpx.HTTPError as e:
            self.logger.error(f"Connection validation failed: {e}")
            return False
        return True


class LocalContentStore:
    """
    In-memory stand-in for the content store, used by demo sessions that
    have no pinning credentials.
    """

    def __init__(self, base_url: str = "https://local.acadchain/ipfs"):
        self.logger = logging.getLogger("LocalContentStore")
        self.base_url = base_url.rstrip("/")
        self._blobs: Dict[str, Content] = {}

    async def put(self, content: Content, name: Optional[str] = None,
                  metadata: Optional[Dict[str, str]] = None) -> str:
        if isinstance(content, (bytes, bytearray)):
            payload = bytes(content)
        else:
            payload = json.dumps(content, sort_keys=True, separators=(",", ":")).encode()

        content_id = "local-" + hashlib.sha256(payload).hexdigest()
        self._blobs = {**self._blobs, content_id: content}
        self.logger.info(f"Content stored locally: {content_id}")
        return content_id

    async def get(self, content_id: str) -> Content:
        if content_id not in self._blobs:
            raise ContentUnavailableError(content_id, [(self.url_for(content_id), "not stored locally")])
        return self._blobs[content_id]

    def url_for(self, content_id: str) -> str:
        return f"{self.base_url}/{content_id}"

    async def pin_list(self, **filters) -> Dict[str, Any]:
        return {"count": len(self._blobs), "rows": [{"ipfs_pin_hash": cid} for cid in self._blobs]}

    async def unpin(self, content_id: str) -> None:
        self._blobs = {cid: blob for cid, blob in self._blobs.items() if cid != content_id}

    async def test_connection(self) -> bool:
        return True
