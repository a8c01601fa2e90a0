"""
TLS trust policies for outgoing requests

A policy owns an ssl.SSLContext plus the matching certificate-verification
flag and knows how to hand both to requests through a transport adapter.
Two policies exist:
- TrustAllPolicy: accept any certificate, skip hostname verification
- TrustStorePolicy: accept only certificates chaining to a given store
"""

import ssl
from collections.abc import Callable
from pathlib import Path
from typing import Any

from cryptography.hazmat.primitives.serialization import Encoding, pkcs12
from requests.adapters import HTTPAdapter

from .config import Config, config
from .exceptions import ConfigurationError, TLSConfigurationError
from .logging_config import get_module_logger

logger = get_module_logger("tls")

PEM_CERT_MARKER = b"-----BEGIN CERTIFICATE-----"

# (hostname, peer certificate as returned by SSLSocket.getpeercert()) -> accepted?
HostnameVerifier = Callable[[str, dict[str, Any]], bool]


class DefaultHostnameVerifier:
    """Standard RFC 6125 hostname check, done by the ssl module itself"""

    def __call__(self, hostname: str, peercert: dict[str, Any]) -> bool:
        # The ssl module already matched the hostname during the handshake
        return True

    def __repr__(self) -> str:
        return "DefaultHostnameVerifier()"


class NoopHostnameVerifier:
    """Accepts every hostname (the certificate chain is still verified)"""

    def __call__(self, hostname: str, peercert: dict[str, Any]) -> bool:
        return True

    def __repr__(self) -> str:
        return "NoopHostnameVerifier()"


def _verifying_socket_class(verifier: HostnameVerifier) -> type[ssl.SSLSocket]:
    """Build an SSLSocket subclass that runs verifier right after the handshake."""

    class VerifyingSSLSocket(ssl.SSLSocket):
        def do_handshake(self, block=False):
            super().do_handshake(block)
            hostname = self.server_hostname or ""
            if not verifier(hostname, self.getpeercert()):
                raise ssl.SSLCertVerificationError(
                    f"Hostname '{hostname}' rejected by {verifier!r}"
                )

    return VerifyingSSLSocket


def minimum_tls_version(config_obj: Config | None = None) -> ssl.TLSVersion:
    """
    Resolve the configured minimum protocol version

    Args:
        config_obj: Config object (optional, uses global config if None)

    Returns:
        ssl.TLSVersion member, e.g. TLSVersion.TLSv1_2 for "TLSv1.2"

    Raises:
        ConfigurationError: If the configured name is not a known TLS version
    """
    if config_obj is None:
        config_obj = config

    name = str(config_obj.get("tls.minimum_version", "TLSv1.2"))
    try:
        return ssl.TLSVersion[name.replace(".", "_")]
    except KeyError:
        raise ConfigurationError(
            f"unknown TLS version '{name}'", config_key="tls.minimum_version"
        ) from None


def load_trust_material(path: str | Path, password: str | None) -> str:
    """
    Read a trust store and return its certificates as PEM text

    PEM bundles are used as-is (they are never encrypted, so password is
    ignored). Anything else is treated as PKCS#12 and decrypted with password.

    Raises:
        TLSConfigurationError: On I/O errors, wrong password or an empty store
    """
    path = Path(path)
    try:
        data = path.read_bytes()
    except OSError as e:
        raise TLSConfigurationError(f"Can't read trust store {path}: {e}", path=str(path)) from e

    if PEM_CERT_MARKER in data:
        return data.decode("ascii", errors="ignore")

    try:
        _key, cert, additional_certs = pkcs12.load_key_and_certificates(
            data, password.encode("utf-8") if password else None
        )
    except (ValueError, TypeError) as e:
        raise TLSConfigurationError(
            f"Can't decrypt trust store {path}: {e}", path=str(path)
        ) from e

    certificates = [c for c in [cert, *additional_certs] if c is not None]
    if not certificates:
        raise TLSConfigurationError(f"Trust store {path} contains no certificates", path=str(path))

    return "".join(c.public_bytes(Encoding.PEM).decode("ascii") for c in certificates)


class TLSContextAdapter(HTTPAdapter):
    """
    Transport adapter that pins an SSL context on every connection pool

    requests otherwise builds its own context from the verify argument, so the
    adapter also forces the policy's verify flag on each send. A per-request
    verify argument can't widen a restricted trust store.
    """

    def __init__(
        self,
        ssl_context: ssl.SSLContext,
        verify: bool = True,
        assert_hostname: bool | None = None,
        **kwargs,
    ):
        # Must be set before HTTPAdapter.__init__ calls init_poolmanager
        self.ssl_context = ssl_context
        self.verify = verify
        self.assert_hostname = assert_hostname
        super().__init__(**kwargs)

    def _pool_kwargs(self, kwargs: dict[str, Any]) -> dict[str, Any]:
        kwargs["ssl_context"] = self.ssl_context
        if self.assert_hostname is not None:
            kwargs["assert_hostname"] = self.assert_hostname
        return kwargs

    def init_poolmanager(self, connections, maxsize, block=False, **pool_kwargs):
        super().init_poolmanager(connections, maxsize, block, **self._pool_kwargs(pool_kwargs))

    def proxy_manager_for(self, proxy, **proxy_kwargs):
        return super().proxy_manager_for(proxy, **self._pool_kwargs(proxy_kwargs))

    def send(self, request, **kwargs):
        kwargs["verify"] = self.verify
        return super().send(request, **kwargs)


class TLSPolicy:
    """Base class for TLS trust policies"""

    verify: bool = True

    def __init__(self, ssl_context: ssl.SSLContext):
        self.ssl_context = ssl_context

    def adapter(self) -> TLSContextAdapter:
        """Create a fresh adapter carrying this policy's context"""
        return TLSContextAdapter(self.ssl_context, verify=self.verify)


class TrustAllPolicy(TLSPolicy):
    """
    Accept any server certificate and skip hostname verification.

    Intended for test environments with self-signed certificates only.
    """

    verify = False

    def __init__(self, config_obj: Config | None = None):
        try:
            context = ssl.SSLContext(ssl.PROTOCOL_TLS_CLIENT)
            context.minimum_version = minimum_tls_version(config_obj)
            context.check_hostname = False
            context.verify_mode = ssl.CERT_NONE
        except (ssl.SSLError, ValueError) as e:
            raise TLSConfigurationError(
                f"Can't create SSL context trusting everything: {e}"
            ) from e

        logger.warning("TLS certificate verification disabled (trust-all policy)")
        super().__init__(context)

    def __repr__(self) -> str:
        return "TrustAllPolicy()"


class TrustStorePolicy(TLSPolicy):
    """
    Accept only certificates chaining to the certificates of a trust store.

    Hostnames are checked by verifier: DefaultHostnameVerifier leaves it to the
    ssl module, NoopHostnameVerifier skips the check, and any other callable
    decides after the handshake.
    """

    def __init__(
        self,
        path: str | Path,
        password: str | None,
        verifier: HostnameVerifier | None = None,
        config_obj: Config | None = None,
    ):
        self.path = Path(path)
        self.verifier = verifier if verifier is not None else DefaultHostnameVerifier()

        cadata = load_trust_material(self.path, password)

        try:
            context = ssl.SSLContext(ssl.PROTOCOL_TLS_CLIENT)
            context.minimum_version = minimum_tls_version(config_obj)
            context.verify_mode = ssl.CERT_REQUIRED
            context.load_verify_locations(cadata=cadata)
        except (ssl.SSLError, ValueError) as e:
            raise TLSConfigurationError(
                f"Can't create SSL context from trust store {self.path}: {e}", path=str(self.path)
            ) from e

        if not isinstance(self.verifier, DefaultHostnameVerifier):
            context.check_hostname = False
            if not isinstance(self.verifier, NoopHostnameVerifier):
                context.sslsocket_class = _verifying_socket_class(self.verifier)

        logger.info(f"Loaded trust store {self.path} (hostname verifier: {self.verifier!r})")
        super().__init__(context)

    def adapter(self) -> TLSContextAdapter:
        if isinstance(self.verifier, DefaultHostnameVerifier):
            return TLSContextAdapter(self.ssl_context, verify=True)
        # Stop urllib3 from matching hostnames on its own
        return TLSContextAdapter(self.ssl_context, verify=True, assert_hostname=False)

    def __repr__(self) -> str:
        return f"TrustStorePolicy(path={str(self.path)!r}, verifier={self.verifier!r})"
