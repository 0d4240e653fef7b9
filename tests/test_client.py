from unittest.mock import MagicMock

import pytest
import requests

from apigee2openapi.client import ApigeeClient
from apigee2openapi.errors import ApigeeApiError


def make_client(payload=None, content=b""):
    session = MagicMock()
    session.headers = {}
    response = MagicMock()
    response.json.return_value = payload
    response.content = content
    session.get.return_value = response
    return ApigeeClient("my-org", "token-123", base_url="https://example.test/v1/", session=session), session


class TestApigeeClient:
    def test_auth_headers(self):
        _, session = make_client()
        assert session.headers["Authorization"] == "Bearer token-123"
        assert session.headers["Accept"] == "application/json"

    def test_list_proxies(self):
        client, session = make_client({"proxies": [{"name": "orders", "revision": ["1", "2"]}]})
        assert client.list_proxies() == [{"name": "orders", "revision": ["1", "2"]}]
        session.get.assert_called_once_with(
            "https://example.test/v1/organizations/my-org/apis",
            params={"includeRevisions": "true"},
            timeout=30,
        )

    def test_list_proxies_empty(self):
        client, _ = make_client({})
        assert client.list_proxies() == []

    def test_latest_revision_is_numeric_max(self):
        client, _ = make_client(["2", "10", "9"])
        assert client.latest_revision("orders") == "10"

    def test_latest_revision_none(self):
        client, _ = make_client([])
        with pytest.raises(ApigeeApiError):
            client.latest_revision("orders")

    def test_get_bundle(self):
        client, session = make_client(content=b"PK zip")
        assert client.get_bundle("orders", "4") == b"PK zip"
        url = session.get.call_args[0][0]
        assert url == "https://example.test/v1/organizations/my-org/apis/orders/revisions/4"
        assert session.get.call_args[1]["params"] == {"format": "bundle"}

    def test_get_bundle_latest(self):
        client, session = make_client(["1", "3"], content=b"zip")
        client.get_bundle("orders")
        assert session.get.call_args[0][0].endswith("/apis/orders/revisions/3")

    def test_get_hostnames(self):
        client, _ = make_client({"environmentGroups": [
            {"name": "prod", "hostnames": ["api.example.com", "api2.example.com"]},
            {"name": "test", "hostnames": ["test.example.com"]},
            {"name": "empty"},
        ]})
        assert client.get_hostnames() == ["api.example.com", "api2.example.com", "test.example.com"]

    def test_http_error(self):
        client, session = make_client()
        session.get.return_value.raise_for_status.side_effect = requests.HTTPError(
            "404 Not Found", response=MagicMock(status_code=404))
        with pytest.raises(ApigeeApiError) as info:
            client.list_proxies()
        assert info.value.status_code == 404

    def test_connection_error(self):
        client, session = make_client()
        session.get.side_effect = requests.ConnectionError("refused")
        with pytest.raises(ApigeeApiError) as info:
            client.get_hostnames()
        assert info.value.status_code is None
