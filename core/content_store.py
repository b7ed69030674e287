# core/content_store.py

"""
IPFS pinning through a prioritized chain of backends.

Backends are tried in order (Web3.Storage, Pinata, IPFS HTTP API); the
first success wins and the errors of the ones before it are logged.
"""

import hashlib
import json
import logging
import os
import time
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Dict, List, Optional

import httpx

from config import StorageConfig
from core.errors import StorageError
from security.input_validation import SecurityValidator

logger = logging.getLogger(__name__)


@dataclass
class StoredContent:
    """Where a blob landed"""
    cid: str
    url: str
    provider: str
    sha256: str
    size: int
    filename: str
    metadata: Dict = field(default_factory=dict)

    def to_dict(self) -> Dict:
        return {
            'cid': self.cid,
            'url': self.url,
            'provider': self.provider,
            'hash': self.sha256,
            'size': self.size,
            'filename': self.filename,
            'metadata': self.metadata
        }


class ContentStore(ABC):
    """One pinning backend; upload() returns the CID or raises"""

    name = "content-store"

    def __init__(self, client: httpx.Client):
        self.client = client

    @abstractmethod
    def upload(self, data: bytes, filename: str, metadata: Dict) -> str:
        """Pin data and return its CID"""


class Web3StorageBackend(ContentStore):

    name = "web3.storage"

    def __init__(self, client: httpx.Client, token: str,
                 endpoint: str = "https://api.web3.storage/upload"):
        super().__init__(client)
        self.token = token
        self.endpoint = endpoint

    def upload(self, data: bytes, filename: str, metadata: Dict) -> str:
        response = self.client.post(
            self.endpoint,
            content=data,
            headers={
                'Authorization': f"Bearer {self.token}",
                'X-Name': filename,
                'Content-Type': 'application/octet-stream'
            }
        )
        response.raise_for_status()
        return response.json()['cid']


class PinataBackend(ContentStore):

    name = "pinata"

    def __init__(self, client: httpx.Client, api_key: str, secret_key: str,
                 endpoint: str = "https://api.pinata.cloud/pinning/pinFileToIPFS"):
        super().__init__(client)
        self.api_key = api_key
        self.secret_key = secret_key
        self.endpoint = endpoint

    def upload(self, data: bytes, filename: str, metadata: Dict) -> str:
        pinata_metadata = {
            'name': filename,
            # Pinata keyvalues only accept scalar values
            'keyvalues': {k: v for k, v in metadata.items()
                          if isinstance(v, (str, int, float, bool))}
        }
        response = self.client.post(
            self.endpoint,
            files={'file': (filename, data)},
            data={
                'pinataMetadata': json.dumps(pinata_metadata),
                'pinataOptions': json.dumps({'cidVersion': 0})
            },
            headers={
                'pinata_api_key': self.api_key,
                'pinata_secret_api_key': self.secret_key
            }
        )
        response.raise_for_status()
        return response.json()['IpfsHash']


class IPFSHttpBackend(ContentStore):

    name = "ipfs-http"

    def __init__(self, client: httpx.Client, api_url: str,
                 project_id: Optional[str] = None,
                 project_secret: Optional[str] = None):
        super().__init__(client)
        self.api_url = api_url.rstrip('/')
        self.auth = (project_id, project_secret or "") if project_id else None

    def upload(self, data: bytes, filename: str, metadata: Dict) -> str:
        response = self.client.post(
            f"{self.api_url}/api/v0/add",
            params={'pin': 'true'},
            files={'file': (filename, data)},
            auth=self.auth
        )
        response.raise_for_status()
        return response.json()['Hash']


class ContentStoreChain:
    """Try each backend in priority order"""

    def __init__(self, backends: List[ContentStore],
                 gateway: str = "https://ipfs.io/ipfs/",
                 owned_client: Optional[httpx.Client] = None):
        self.backends = list(backends)
        self.gateway = gateway if gateway.endswith('/') else gateway + '/'
        # Closed by close(); a caller-supplied client stays with the caller
        self._owned_client = owned_client

    @classmethod
    def from_config(cls, config: StorageConfig,
                    client: Optional[httpx.Client] = None) -> 'ContentStoreChain':
        """Build backends for whichever credentials are present in the environment"""
        owned_client = None
        if client is None:
            client = owned_client = httpx.Client(timeout=httpx.Timeout(config.timeout_seconds))
        backends = []

        token = os.environ.get(config.web3_storage_token_env)
        if token:
            backends.append(Web3StorageBackend(client, token))

        api_key = os.environ.get(config.pinata_api_key_env)
        secret_key = os.environ.get(config.pinata_secret_key_env)
        if api_key and secret_key:
            backends.append(PinataBackend(client, api_key, secret_key))

        project_id = os.environ.get(config.ipfs_project_id_env)
        if project_id:
            backends.append(IPFSHttpBackend(
                client, config.ipfs_api_url, project_id,
                os.environ.get(config.ipfs_project_secret_env)
            ))

        if backends:
            logger.info("IPFS backends available: %s", ", ".join(b.name for b in backends))
        else:
            logger.info("No IPFS backends configured - files will be stored locally only")

        return cls(backends, gateway=config.gateway, owned_client=owned_client)

    @property
    def available(self) -> bool:
        return bool(self.backends)

    def close(self):
        if self._owned_client is not None:
            self._owned_client.close()
            self._owned_client = None

    def __enter__(self):
        return self

    def __exit__(self, *exc):
        self.close()

    def url_for(self, cid: str, gateway: Optional[str] = None) -> str:
        return f"{gateway or self.gateway}{cid}"

    def upload(self, data: bytes, filename: str,
               metadata: Optional[Dict] = None) -> Optional[StoredContent]:
        """
        Pin data with the first backend that succeeds

        Returns None when no backend is configured; raises StorageError
        with every backend's error when all of them fail.
        """
        metadata = metadata or {}
        filename = SecurityValidator.sanitize_filename(filename)

        if not self.backends:
            logger.info("Skipping IPFS upload of %s: no backends configured", filename)
            return None

        errors = []
        for backend in self.backends:
            try:
                logger.info("Uploading %s to %s", filename, backend.name)
                cid = backend.upload(data, filename, metadata)
            except (httpx.HTTPError, KeyError, TypeError, ValueError) as e:
                logger.warning("%s upload failed: %s", backend.name, e)
                errors.append(f"{backend.name}: {e}")
                continue

            return StoredContent(
                cid=cid,
                url=self.url_for(cid),
                provider=backend.name,
                sha256=hashlib.sha256(data).hexdigest(),
                size=len(data),
                filename=filename,
                metadata=metadata
            )

        raise StorageError(errors)

    def upload_metadata(self, metadata: Dict) -> Optional[StoredContent]:
        """Pin a JSON document"""
        payload = json.dumps(metadata, indent=2).encode('utf-8')
        filename = f"metadata_{int(time.time() * 1000)}.json"
        return self.upload(payload, filename, {'type': 'metadata'})


def build_nft_metadata(asset: Dict, stored: StoredContent,
                       frontend_url: str = "",
                       collection: str = "Digital Asset Marketplace") -> Dict:
    """ERC-721 style metadata document for a pinned asset"""
    creator = asset.get('creator') or {}
    if not isinstance(creator, dict):
        creator = {'username': str(creator)}

    return {
        'name': asset.get('title'),
        'description': asset.get('description'),
        'image': stored.url,
        'external_url': f"{frontend_url}/asset/{asset.get('id')}",
        'attributes': [
            {'trait_type': 'Creator', 'value': creator.get('username')},
            {'trait_type': 'Category', 'value': asset.get('category')},
            {'trait_type': 'License', 'value': asset.get('license')},
            {'trait_type': 'File Hash', 'value': stored.sha256},
            {'trait_type': 'Upload Date', 'value': asset.get('created_at')}
        ],
        'properties': {
            'files': [{
                'uri': stored.url,
                'type': asset.get('mimetype'),
                'cdn': False
            }],
            'category': asset.get('category'),
            'creators': [{
                'address': creator.get('wallet_address', ''),
                'share': 100
            }]
        },
        'collection': {'name': collection}
    }
