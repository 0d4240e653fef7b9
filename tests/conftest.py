import io
import zipfile
from pathlib import Path

import pytest

FIXTURES = Path(__file__).parent / "fixtures"
ORDERS_DIR = FIXTURES / "orders"


def read_tree(root: Path) -> dict:
    """Bundle entries of an extracted fixture, keyed by archive name"""
    return {
        path.relative_to(root).as_posix(): path.read_text(encoding="utf-8")
        for path in sorted(root.rglob("*"))
        if path.is_file()
    }


def zip_entries(entries: dict) -> bytes:
    buffer = io.BytesIO()
    with zipfile.ZipFile(buffer, "w") as z:
        for name, text in entries.items():
            z.writestr(name, text)
    return buffer.getvalue()


def extract_variables(name, headers=(), queries=(), source=None):
    """ExtractVariables policy XML from (name, pattern) pairs"""
    rules = "".join(f'<Header name="{n}"><Pattern>{p}</Pattern></Header>' for n, p in headers)
    rules += "".join(f'<QueryParam name="{n}"><Pattern>{p}</Pattern></QueryParam>' for n, p in queries)
    if source is not None:
        rules += f"<Source>{source}</Source>"
    return f'<ExtractVariables name="{name}">{rules}</ExtractVariables>'


def proxy_endpoint(base_path="/v1/orders", preflow=(), flows=None, name="default"):
    """
    ProxyEndpoint XML

    ``flows`` is a list of (name, condition, request steps) tuples; None
    leaves the Flows element out entirely.
    """
    steps = "".join(f"<Step><Name>{s}</Name></Step>" for s in preflow)
    xml = f'<ProxyEndpoint name="{name}"><PreFlow name="PreFlow"><Request>{steps}</Request></PreFlow>'
    if flows is not None:
        xml += "<Flows>"
        for flow_name, condition, request_steps in flows:
            body = "".join(f"<Step><Name>{s}</Name></Step>" for s in request_steps)
            xml += f'<Flow name="{flow_name}"><Request>{body}</Request><Response/>'
            if condition:
                xml += f"<Condition>{condition}</Condition>"
            xml += "</Flow>"
        xml += "</Flows>"
    xml += f"<HTTPProxyConnection><BasePath>{base_path}</BasePath></HTTPProxyConnection></ProxyEndpoint>"
    return xml


@pytest.fixture
def make_bundle():
    """Zip bytes from a name -> text mapping"""
    return zip_entries


@pytest.fixture
def orders_entries():
    return read_tree(ORDERS_DIR)


@pytest.fixture
def orders_bundle(orders_entries):
    return zip_entries(orders_entries)


@pytest.fixture
def endpoint_xml():
    return proxy_endpoint


@pytest.fixture
def policy_xml():
    return extract_variables
