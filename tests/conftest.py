"""
Pytest configuration and fixtures

Provides:
- test_config: Config built from an in-memory dict
- http_server: in-process HTTP server that records every request it receives
- tls_material / tls_server / mismatched_tls_server: generated CA and server
  certificates plus HTTPS variants of the recording server
"""

import base64
import datetime
import ipaddress
import json
import socket
import ssl
import threading
from http.server import BaseHTTPRequestHandler, ThreadingHTTPServer
from types import SimpleNamespace

import pytest
from cryptography import x509
from cryptography.hazmat.primitives import hashes, serialization
from cryptography.hazmat.primitives.asymmetric import ec
from cryptography.hazmat.primitives.serialization import pkcs12
from cryptography.x509.oid import ExtendedKeyUsageOID, NameOID

from httpbuilder.config import Config
from tests.test_helpers import create_test_config

PROTECTED_USER = "user"
PROTECTED_PASSWORD = "secret"
TRUST_STORE_PASSWORD = "changeit"


@pytest.fixture
def test_config():
    """Minimal test configuration"""
    return Config(create_test_config())


class RecordingHandler(BaseHTTPRequestHandler):
    """
    Request handler used by the local test servers

    Routes:
        /redirect       302 to /echo
        /protected      Basic auth (user/secret), 401 challenge otherwise
        /status/<code>  empty response with that status
        anything else   JSON echo of method, path, headers and body
    """

    protocol_version = "HTTP/1.1"

    def log_message(self, format, *args):
        pass

    def _send(self, code, body=b"", headers=None):
        self.send_response(code)
        for name, value in (headers or {}).items():
            self.send_header(name, value)
        self.send_header("Content-Length", str(len(body)))
        self.end_headers()
        self.wfile.write(body)

    def _handle(self):
        length = int(self.headers.get("Content-Length") or 0)
        body = self.rfile.read(length) if length else b""

        self.server.requests.append(
            {
                "method": self.command,
                "path": self.path,
                "headers": list(self.headers.items()),
                "body": body,
            }
        )

        path = self.path.split("?")[0]

        if path == "/redirect":
            self._send(302, headers={"Location": "/echo"})
        elif path == "/protected":
            credentials = f"{PROTECTED_USER}:{PROTECTED_PASSWORD}".encode()
            expected = "Basic " + base64.b64encode(credentials).decode()
            if self.headers.get("Authorization") == expected:
                self._send(200, b"welcome", {"Content-Type": "text/plain"})
            else:
                self._send(401, b"denied", {"WWW-Authenticate": 'Basic realm="test"'})
        elif path.startswith("/status/"):
            self._send(int(path.rsplit("/", 1)[1]))
        else:
            payload = {
                "method": self.command,
                "path": self.path,
                "headers": list(self.headers.items()),
                "body": body.decode("utf-8", errors="replace"),
            }
            self._send(
                200,
                json.dumps(payload).encode("utf-8"),
                {"Content-Type": "application/json; charset=utf-8"},
            )

    do_GET = _handle
    do_POST = _handle
    do_PUT = _handle
    do_DELETE = _handle


def _start_server(ssl_context=None):
    server = ThreadingHTTPServer(("127.0.0.1", 0), RecordingHandler)
    server.daemon_threads = True
    server.requests = []
    if ssl_context is not None:
        server.socket = ssl_context.wrap_socket(server.socket, server_side=True)

    thread = threading.Thread(target=server.serve_forever, daemon=True)
    thread.start()
    return server


def _stop_server(server):
    server.shutdown()
    server.server_close()


@pytest.fixture
def http_server():
    """Plain HTTP server on 127.0.0.1; server.base_url points at it"""
    server = _start_server()
    server.base_url = f"http://127.0.0.1:{server.server_address[1]}"
    yield server
    _stop_server(server)


@pytest.fixture
def unused_port():
    """A local port with nothing listening on it"""
    with socket.socket(socket.AF_INET, socket.SOCK_STREAM) as sock:
        sock.bind(("127.0.0.1", 0))
        return sock.getsockname()[1]


# TLS material


def _name(common_name):
    return x509.Name([x509.NameAttribute(NameOID.COMMON_NAME, common_name)])


def _make_ca(common_name):
    key = ec.generate_private_key(ec.SECP256R1())
    now = datetime.datetime.now(datetime.timezone.utc)
    cert = (
        x509.CertificateBuilder()
        .subject_name(_name(common_name))
        .issuer_name(_name(common_name))
        .public_key(key.public_key())
        .serial_number(x509.random_serial_number())
        .not_valid_before(now - datetime.timedelta(days=1))
        .not_valid_after(now + datetime.timedelta(days=30))
        .add_extension(x509.BasicConstraints(ca=True, path_length=None), critical=True)
        .add_extension(
            x509.KeyUsage(
                digital_signature=True,
                content_commitment=False,
                key_encipherment=False,
                data_encipherment=False,
                key_agreement=False,
                key_cert_sign=True,
                crl_sign=True,
                encipher_only=False,
                decipher_only=False,
            ),
            critical=True,
        )
        .add_extension(x509.SubjectKeyIdentifier.from_public_key(key.public_key()), critical=False)
        .sign(key, hashes.SHA256())
    )
    return key, cert


def _make_server_cert(ca_key, ca_cert, dns_names, ip_addresses=()):
    key = ec.generate_private_key(ec.SECP256R1())
    now = datetime.datetime.now(datetime.timezone.utc)
    alt_names = [x509.DNSName(name) for name in dns_names]
    alt_names += [x509.IPAddress(ipaddress.ip_address(ip)) for ip in ip_addresses]
    cert = (
        x509.CertificateBuilder()
        .subject_name(_name(dns_names[0]))
        .issuer_name(ca_cert.subject)
        .public_key(key.public_key())
        .serial_number(x509.random_serial_number())
        .not_valid_before(now - datetime.timedelta(days=1))
        .not_valid_after(now + datetime.timedelta(days=30))
        .add_extension(x509.SubjectAlternativeName(alt_names), critical=False)
        .add_extension(x509.BasicConstraints(ca=False, path_length=None), critical=True)
        .add_extension(
            x509.ExtendedKeyUsage([ExtendedKeyUsageOID.SERVER_AUTH]), critical=False
        )
        .add_extension(
            x509.AuthorityKeyIdentifier.from_issuer_public_key(ca_key.public_key()),
            critical=False,
        )
        .sign(ca_key, hashes.SHA256())
    )
    return key, cert


def _write_key_pair(directory, stem, key, cert):
    cert_path = directory / f"{stem}.pem"
    key_path = directory / f"{stem}.key"
    cert_path.write_bytes(cert.public_bytes(serialization.Encoding.PEM))
    key_path.write_bytes(
        key.private_bytes(
            serialization.Encoding.PEM,
            serialization.PrivateFormat.PKCS8,
            serialization.NoEncryption(),
        )
    )
    return cert_path, key_path


@pytest.fixture(scope="session")
def tls_material(tmp_path_factory):
    """
    Certificates for TLS tests

    Attributes:
        ca_pem: PEM bundle with the test CA
        ca_p12: PKCS#12 trust store with the test CA (password "changeit")
        other_ca_pem: PEM bundle with an unrelated CA
        server_cert / server_key: localhost certificate issued by the test CA
        mismatched_cert / mismatched_key: certificate for another host, same CA
    """
    directory = tmp_path_factory.mktemp("tls")

    ca_key, ca_cert = _make_ca("httpbuilder test CA")
    _other_key, other_ca_cert = _make_ca("unrelated CA")

    ca_pem = directory / "ca.pem"
    ca_pem.write_bytes(ca_cert.public_bytes(serialization.Encoding.PEM))

    other_ca_pem = directory / "other-ca.pem"
    other_ca_pem.write_bytes(other_ca_cert.public_bytes(serialization.Encoding.PEM))

    ca_p12 = directory / "truststore.p12"
    ca_p12.write_bytes(
        pkcs12.serialize_key_and_certificates(
            b"truststore",
            None,
            None,
            [ca_cert],
            serialization.BestAvailableEncryption(TRUST_STORE_PASSWORD.encode()),
        )
    )

    server_cert, server_key = _write_key_pair(
        directory, "server", *_make_server_cert(ca_key, ca_cert, ["localhost"])
    )
    mismatched_cert, mismatched_key = _write_key_pair(
        directory, "mismatched", *_make_server_cert(ca_key, ca_cert, ["other.example"])
    )

    return SimpleNamespace(
        directory=directory,
        ca_pem=ca_pem,
        ca_p12=ca_p12,
        other_ca_pem=other_ca_pem,
        server_cert=server_cert,
        server_key=server_key,
        mismatched_cert=mismatched_cert,
        mismatched_key=mismatched_key,
    )


def _tls_server(cert_path, key_path):
    context = ssl.SSLContext(ssl.PROTOCOL_TLS_SERVER)
    context.load_cert_chain(cert_path, key_path)
    server = _start_server(context)
    server.base_url = f"https://localhost:{server.server_address[1]}"
    return server


@pytest.fixture
def tls_server(tls_material):
    """HTTPS server presenting a valid certificate for localhost"""
    server = _tls_server(tls_material.server_cert, tls_material.server_key)
    yield server
    _stop_server(server)


@pytest.fixture
def mismatched_tls_server(tls_material):
    """HTTPS server on localhost presenting a certificate for other.example"""
    server = _tls_server(tls_material.mismatched_cert, tls_material.mismatched_key)
    yield server
    _stop_server(server)
