import io

import pytest

from apigee2openapi.web import create_app


@pytest.fixture
def client(tmp_path):
    app = create_app(workdir=tmp_path, hostnames=["api.example.com"])
    app.config["TESTING"] = True
    return app.test_client()


def upload(bundle, filename="orders.zip", **form):
    return dict(form, file=(io.BytesIO(bundle), filename))


class TestUploadUI:
    def test_index(self, client):
        response = client.get("/")
        assert response.status_code == 200
        assert b"<form" in response.data

    def test_convert_and_preview(self, client, orders_bundle, tmp_path):
        response = client.post("/", data=upload(orders_bundle), content_type="multipart/form-data")
        assert response.status_code == 200
        assert b"/swagger/orders.yaml" in response.data
        assert (tmp_path / "orders.yaml").is_file()

        page = client.get("/swagger/orders.yaml")
        assert page.status_code == 200
        assert b"/files/orders.yaml" in page.data

        spec = client.get("/files/orders.yaml")
        assert spec.status_code == 200
        assert b"openapi: 3.0.0" in spec.data

    def test_swagger_unknown_file(self, client):
        assert client.get("/swagger/missing.yaml").status_code == 404

    def test_invalid_upload(self, client):
        response = client.post("/", data=upload(b"not a zip"), content_type="multipart/form-data")
        assert response.status_code == 400


class TestConvertApi:
    def test_document_and_diagnostics(self, client, orders_bundle):
        response = client.post("/api/convert", data=upload(orders_bundle), content_type="multipart/form-data")
        assert response.status_code == 200
        body = response.get_json()
        assert body["document"]["servers"] == [{"url": "https://api.example.com"}]
        assert body["diagnostics"] == []

    def test_form_overrides(self, client, make_bundle, endpoint_xml):
        bundle = make_bundle({"apiproxy/proxies/default.xml": endpoint_xml()})
        response = client.post("/api/convert", content_type="multipart/form-data",
                               data=upload(bundle, name="bare", hostname="h.example.com"))
        body = response.get_json()
        assert body["document"]["info"]["title"] == "bare"
        assert body["document"]["servers"] == [{"url": "https://h.example.com"}]
        assert body["diagnostics"][0]["severity"] == "warning"

    def test_missing_file(self, client):
        response = client.post("/api/convert", data={}, content_type="multipart/form-data")
        assert response.status_code == 400
        assert "error" in response.get_json()
