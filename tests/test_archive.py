from pathlib import Path

import pytest

from apigee2openapi.archive import ProxyArchive
from apigee2openapi.errors import ArchiveError

ORDERS_DIR = Path(__file__).parent / "fixtures" / "orders"


class TestProxyArchive:
    def test_from_bytes_keeps_zip_order(self, make_bundle):
        archive = ProxyArchive.from_bytes(make_bundle({
            "apiproxy/proxies/b.xml": "<b/>",
            "apiproxy/proxies/a.xml": "<a/>",
            "apiproxy/policies/p.xml": "<p/>",
        }))
        assert [name for name, _ in archive.endpoint_entries()] == [
            "apiproxy/proxies/b.xml", "apiproxy/proxies/a.xml",
        ]
        assert archive.policy_entries() == [("apiproxy/policies/p.xml", "<p/>")]

    def test_invalid_zip(self):
        with pytest.raises(ArchiveError):
            ProxyArchive.from_bytes(b"not a zip")

    def test_from_directory(self):
        archive = ProxyArchive.from_directory(ORDERS_DIR)
        assert "apiproxy/orders.xml" in archive
        assert len(archive.policy_entries()) == 3
        assert archive.detect_proxy_name() == "orders"

    def test_from_apiproxy_directory(self):
        archive = ProxyArchive.from_directory(ORDERS_DIR / "apiproxy")
        assert archive.names == ProxyArchive.from_directory(ORDERS_DIR).names

    def test_directory_without_apiproxy(self, tmp_path):
        with pytest.raises(ArchiveError):
            ProxyArchive.from_directory(tmp_path)

    def test_from_path(self, tmp_path, orders_bundle):
        bundle = tmp_path / "orders.zip"
        bundle.write_bytes(orders_bundle)
        assert ProxyArchive.from_path(bundle).detect_proxy_name() == "orders"
        assert ProxyArchive.from_path(ORDERS_DIR).detect_proxy_name() == "orders"

    def test_from_path_rejects_other_files(self, tmp_path):
        other = tmp_path / "notes.txt"
        other.write_text("hello")
        with pytest.raises(ArchiveError, match="zip or directory"):
            ProxyArchive.from_path(other)

    def test_read_text_missing(self):
        with pytest.raises(ArchiveError):
            ProxyArchive({}).read_text("apiproxy/x.xml")

    def test_detect_proxy_name_ambiguous(self):
        archive = ProxyArchive({"apiproxy/a.xml": "", "apiproxy/b.xml": ""})
        assert archive.detect_proxy_name() is None

    def test_detect_ignores_nested_entries(self):
        archive = ProxyArchive({"apiproxy/a.xml": "", "apiproxy/policies/p.xml": ""})
        assert archive.detect_proxy_name() == "a"

    def test_bom_stripped(self, make_bundle):
        archive = ProxyArchive.from_bytes(make_bundle({"apiproxy/a.xml": "\ufeff<APIProxy/>"}))
        assert archive.read_text("apiproxy/a.xml") == "<APIProxy/>"
