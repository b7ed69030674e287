# tests/test_content_store.py

import json

import httpx
import pytest

from config import StorageConfig
from core.content_store import (ContentStoreChain, IPFSHttpBackend, PinataBackend,
                                Web3StorageBackend, build_nft_metadata)
from core.errors import StorageError

CREDENTIAL_ENV = ("WEB3_STORAGE_TOKEN", "PINATA_API_KEY", "PINATA_SECRET_KEY",
                  "INFURA_PROJECT_ID", "INFURA_PROJECT_SECRET")


@pytest.fixture
def clean_env(monkeypatch):
    for name in CREDENTIAL_ENV:
        monkeypatch.delenv(name, raising=False)
    return monkeypatch


def routing_client(routes, calls):
    """Respond per host; a missing host answers 500"""
    def handler(request):
        calls.append(request.url.host)
        status, body = routes.get(request.url.host, (500, {"error": "down"}))
        return httpx.Response(status, json=body)
    return httpx.Client(transport=httpx.MockTransport(handler))


def test_first_backend_wins():
    calls = []
    client = routing_client({"api.web3.storage": (200, {"cid": "bafy123"})}, calls)
    chain = ContentStoreChain([Web3StorageBackend(client, "token"),
                               PinataBackend(client, "key", "secret")])

    stored = chain.upload(b"image-bytes", "art.png")

    assert stored.cid == "bafy123"
    assert stored.provider == "web3.storage"
    assert stored.url == "https://ipfs.io/ipfs/bafy123"
    assert calls == ["api.web3.storage"]


def test_falls_through_to_next_backend():
    calls = []
    client = routing_client({"api.pinata.cloud": (200, {"IpfsHash": "Qm456"})}, calls)
    chain = ContentStoreChain([Web3StorageBackend(client, "token"),
                               PinataBackend(client, "key", "secret")],
                              gateway="https://gateway.test/ipfs")

    stored = chain.upload(b"image-bytes", "art.png", {"creator": "alice", "tags": ["x"]})

    assert stored.provider == "pinata"
    assert stored.url == "https://gateway.test/ipfs/Qm456"
    assert stored.size == len(b"image-bytes")
    assert calls == ["api.web3.storage", "api.pinata.cloud"]


def test_ipfs_http_backend_request():
    seen = {}

    def handler(request):
        seen['url'] = request.url
        seen['auth'] = request.headers.get('Authorization')
        return httpx.Response(200, json={"Hash": "QmNode"})

    client = httpx.Client(transport=httpx.MockTransport(handler))
    backend = IPFSHttpBackend(client, "https://node.test:5001/", "project", "secret")

    assert backend.upload(b"data", "a.png", {}) == "QmNode"
    assert seen['url'].path == "/api/v0/add"
    assert seen['url'].params['pin'] == 'true'
    assert seen['auth'].startswith("Basic ")


def test_all_backends_failing_raises():
    client = routing_client({}, [])
    chain = ContentStoreChain([Web3StorageBackend(client, "token"),
                               PinataBackend(client, "key", "secret")])

    with pytest.raises(StorageError) as exc_info:
        chain.upload(b"data", "a.png")

    assert len(exc_info.value.errors) == 2


def test_malformed_response_counts_as_failure():
    client = routing_client({"api.web3.storage": (200, {"unexpected": True})}, [])
    chain = ContentStoreChain([Web3StorageBackend(client, "token")])

    with pytest.raises(StorageError):
        chain.upload(b"data", "a.png")


def test_non_object_response_counts_as_failure():
    client = routing_client({"api.web3.storage": (200, ["bafy"]),
                             "api.pinata.cloud": (200, {"IpfsHash": "QmPinata"})}, [])
    chain = ContentStoreChain([Web3StorageBackend(client, "token"),
                               PinataBackend(client, "key", "secret")])

    assert chain.upload(b"data", "a.png").cid == "QmPinata"

    alone = ContentStoreChain([Web3StorageBackend(client, "token")])
    with pytest.raises(StorageError):
        alone.upload(b"data", "a.png")


def test_close_releases_owned_client(clean_env):
    clean_env.setenv("WEB3_STORAGE_TOKEN", "token")

    with ContentStoreChain.from_config(StorageConfig()) as chain:
        owned = chain.backends[0].client
        assert not owned.is_closed

    assert owned.is_closed
    chain.close()


def test_close_leaves_caller_client_open(clean_env):
    clean_env.setenv("WEB3_STORAGE_TOKEN", "token")
    client = routing_client({}, [])

    with ContentStoreChain.from_config(StorageConfig(), client=client):
        pass

    assert not client.is_closed
    client.close()


def test_no_backends_returns_none():
    chain = ContentStoreChain([])

    assert not chain.available
    assert chain.upload(b"data", "a.png") is None


def test_filename_is_sanitized():
    client = routing_client({"api.web3.storage": (200, {"cid": "bafy"})}, [])
    chain = ContentStoreChain([Web3StorageBackend(client, "token")])

    stored = chain.upload(b"data", "../../etc/passwd")

    assert stored.filename == ".._.._etc_passwd"


def test_upload_metadata_pins_json():
    bodies = []

    def handler(request):
        bodies.append(request.content)
        return httpx.Response(200, json={"cid": "bafymeta"})

    client = httpx.Client(transport=httpx.MockTransport(handler))
    chain = ContentStoreChain([Web3StorageBackend(client, "token")])

    stored = chain.upload_metadata({"name": "Art"})

    assert stored.filename.startswith("metadata_")
    assert json.loads(bodies[0]) == {"name": "Art"}


def test_from_config_uses_present_credentials(clean_env):
    clean_env.setenv("PINATA_API_KEY", "key")
    clean_env.setenv("PINATA_SECRET_KEY", "secret")
    clean_env.setenv("INFURA_PROJECT_ID", "project")

    chain = ContentStoreChain.from_config(StorageConfig())

    assert [b.name for b in chain.backends] == ["pinata", "ipfs-http"]


def test_from_config_without_credentials(clean_env):
    assert not ContentStoreChain.from_config(StorageConfig()).available


def test_nft_metadata():
    client = routing_client({"api.web3.storage": (200, {"cid": "bafyart"})}, [])
    stored = ContentStoreChain([Web3StorageBackend(client, "token")]).upload(b"art", "art.png")
    asset = {
        'id': 'a1',
        'title': 'Sunset',
        'description': 'Orange sky',
        'category': 'photography',
        'license': 'standard',
        'mimetype': 'image/png',
        'creator': {'username': 'alice', 'wallet_address': '0xabc'}
    }

    metadata = build_nft_metadata(asset, stored, frontend_url="https://market.test")

    assert metadata['image'] == "https://ipfs.io/ipfs/bafyart"
    assert metadata['external_url'] == "https://market.test/asset/a1"
    assert {'trait_type': 'Creator', 'value': 'alice'} in metadata['attributes']
    assert metadata['properties']['creators'] == [{'address': '0xabc', 'share': 100}]
