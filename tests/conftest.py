import http.client
import socket
import ssl

import pytest

from mooseserve.identity import generate_identity


def free_port():
    with socket.socket(socket.AF_INET, socket.SOCK_STREAM) as s:
        s.bind(("127.0.0.1", 0))
        return s.getsockname()[1]


def fetch(address, path, tls=False, method="GET"):
    """Send ``path`` verbatim and return ``(status, body)``."""
    host, port = address
    if tls:
        # Self-signed certificate, trust is not under test here.
        context = ssl.create_default_context()
        context.check_hostname = False
        context.verify_mode = ssl.CERT_NONE
        conn = http.client.HTTPSConnection(host, port, timeout=5, context=context)
    else:
        conn = http.client.HTTPConnection(host, port, timeout=5)
    try:
        conn.request(method, path)
        resp = conn.getresponse()
        return resp.status, resp.read()
    finally:
        conn.close()


@pytest.fixture(scope="session")
def identity():
    return generate_identity()


@pytest.fixture
def site(tmp_path):
    root = tmp_path / "site"
    (root / "subdir").mkdir(parents=True)
    (root / "index.html").write_text("<html>Hello</html>")
    (root / "regular.txt").write_text("Regular content")
    (root / "subdir" / "nested.txt").write_text("Nested content")
    return root
