"""
Fluent builder for single HTTP requests

Usage:
    response = (
        Http.post("https://example.com/api")
        .with_basic_auth("user", "secret")
        .with_preemptive_auth()
        .with_trust_all_certificates()
        .with_body('{"key": "value"}', ContentType.APPLICATION_JSON)
        .execute()
    )

Every execute() call snapshots the builder into an immutable RequestConfig,
builds a throwaway requests.Session from it, sends the request and closes
both the response and the session before returning.
"""

import re
from dataclasses import dataclass
from pathlib import Path
from urllib.parse import ParseResult, urlparse

import requests
from requests.cookies import cookiejar_from_dict
from requests.structures import CaseInsensitiveDict

from .auth import DEFAULT_PORTS, ChallengeBasicAuth, basic_auth_header
from .config import Config, config
from .exceptions import InvalidURL, TransportError, UnsupportedOperationError
from .logging_config import get_module_logger
from .response import HttpResponseParser
from .tls import HostnameVerifier, TLSPolicy, TrustAllPolicy, TrustStorePolicy
from .waiters import HttpWaiters

logger = get_module_logger("client")

METHODS = ("GET", "POST", "PUT", "DELETE")
ENTITY_ENCLOSING_METHODS = frozenset({"POST", "PUT"})

# RFC 3986 reg-name and IP literal characters, plus non-ASCII for IDNs
HOST_RE = re.compile(r"^[A-Za-z0-9\-._~%!$&'()*+,;=:\u0080-\U0010ffff]+$")


class ContentType:
    """Common Content-Type values for with_body()"""

    APPLICATION_JSON = "application/json; charset=UTF-8"
    APPLICATION_XML = "application/xml; charset=UTF-8"
    APPLICATION_FORM_URLENCODED = "application/x-www-form-urlencoded; charset=UTF-8"
    APPLICATION_OCTET_STREAM = "application/octet-stream"
    TEXT_PLAIN = "text/plain; charset=UTF-8"
    TEXT_HTML = "text/html; charset=UTF-8"
    TEXT_XML = "text/xml; charset=UTF-8"


def parse_url(url: str) -> ParseResult:
    """
    Parse and validate a request target

    Raises:
        InvalidURL: If the URL has no http(s) scheme, no host, a bad host
            or a bad port
    """
    if not isinstance(url, str) or not url.strip():
        raise InvalidURL(str(url), "empty URL")
    if any(ch.isspace() or ord(ch) < 0x20 or ord(ch) == 0x7F for ch in url.strip()):
        raise InvalidURL(url, "whitespace or control character in URL")

    try:
        parsed = urlparse(url.strip())
        # Accessing port validates it
        parsed.port
    except ValueError as e:
        raise InvalidURL(url, str(e)) from e

    if not parsed.scheme:
        raise InvalidURL(url, "no scheme")
    if parsed.scheme.lower() not in DEFAULT_PORTS:
        raise InvalidURL(url, f"unsupported scheme '{parsed.scheme}'")
    if not parsed.hostname:
        raise InvalidURL(url, "no host")
    if not HOST_RE.match(parsed.hostname):
        raise InvalidURL(url, f"illegal character in host '{parsed.hostname}'")

    return parsed


def charset_of(content_type: str | None) -> str:
    """Extract the charset parameter of a Content-Type value (UTF-8 if absent)"""
    if content_type:
        for param in content_type.split(";")[1:]:
            key, _, value = param.strip().partition("=")
            if key.lower() == "charset" and value:
                return value.strip('"')
    return "utf-8"


def fold_headers(headers: tuple[tuple[str, str], ...]) -> CaseInsensitiveDict:
    """Merge repeated header names into one comma-separated field, keeping order"""
    folded: CaseInsensitiveDict = CaseInsensitiveDict()
    for name, value in headers:
        if name in folded:
            folded[name] = f"{folded[name]}, {value}"
        else:
            folded[name] = value
    return folded


@dataclass(frozen=True)
class RequestConfig:
    """Immutable snapshot of an Http builder, taken when a request is sent"""

    method: str
    url: str
    host: str
    port: int
    headers: tuple[tuple[str, str], ...] = ()
    cookies: tuple[tuple[str, str], ...] = ()
    body: bytes | None = None
    content_type: str | None = None
    username: str | None = None
    password: str | None = None
    preemptive_auth: bool = False
    disable_redirect: bool = False
    tls_policy: TLSPolicy | None = None


class Http:
    """
    Builder for one GET, POST, PUT or DELETE request

    Configuration methods return self so calls can be chained. Only POST and
    PUT builders (EntityEnclosingHttp) accept a body.
    """

    def __init__(self, method: str, url: str, config_obj: Config | None = None):
        """
        Args:
            method: HTTP method, one of METHODS
            url: Absolute http or https URL
            config_obj: Config object (optional, uses global config if None)

        Raises:
            InvalidURL: If url can't be parsed
        """
        self.method = method.upper()
        if self.method not in METHODS:
            raise ValueError(f"Unsupported HTTP method: {method}")

        self._parsed_url = parse_url(url)
        self.url = url.strip()
        self.config = config_obj or config

        self._headers: list[tuple[str, str]] = []
        self._cookies: dict[str, str] = {}
        self._username: str | None = None
        self._password: str | None = None
        self._preemptive_auth = False
        self._disable_redirect = False
        self._tls_policy: TLSPolicy | None = None
        self._waiters = HttpWaiters(self)

    @staticmethod
    def create(method: str, url: str, config_obj: Config | None = None) -> "Http":
        """
        Create a builder for method and url

        Returns an EntityEnclosingHttp for POST and PUT, a plain Http otherwise.
        """
        if method.upper() in ENTITY_ENCLOSING_METHODS:
            return EntityEnclosingHttp(method, url, config_obj)
        return Http(method, url, config_obj)

    @staticmethod
    def get(url: str, config_obj: Config | None = None) -> "Http":
        return Http.create("GET", url, config_obj)

    @staticmethod
    def post(url: str, config_obj: Config | None = None) -> "EntityEnclosingHttp":
        return EntityEnclosingHttp("POST", url, config_obj)

    @staticmethod
    def put(url: str, config_obj: Config | None = None) -> "EntityEnclosingHttp":
        return EntityEnclosingHttp("PUT", url, config_obj)

    @staticmethod
    def delete(url: str, config_obj: Config | None = None) -> "Http":
        return Http.create("DELETE", url, config_obj)

    @property
    def host(self) -> str:
        return self._parsed_url.hostname or ""

    @property
    def port(self) -> int:
        """Explicit port of the URL, or the scheme's default port"""
        return self._parsed_url.port or DEFAULT_PORTS[self._parsed_url.scheme.lower()]

    @property
    def headers(self) -> list[tuple[str, str]]:
        """Headers in insertion order (copy)"""
        return list(self._headers)

    @property
    def cookies(self) -> dict[str, str]:
        return dict(self._cookies)

    @property
    def tls_policy(self) -> TLSPolicy | None:
        return self._tls_policy

    def with_basic_auth(self, username: str, password: str | None) -> "Http":
        """Store Basic credentials; applied when the request is sent"""
        self._username = username
        self._password = password
        return self

    def with_bearer_auth(self, token: str) -> "Http":
        """Set the Authorization header to a bearer token, replacing any earlier value"""
        self._set_header("Authorization", f"Bearer {token}")
        return self

    def with_preemptive_auth(self) -> "Http":
        """Send Basic credentials on the first attempt instead of after a 401"""
        self._preemptive_auth = True
        return self

    def with_disabled_redirects(self) -> "Http":
        """Return 3xx responses instead of following them"""
        self._disable_redirect = True
        return self

    def with_trust_all_certificates(self) -> "Http":
        """
        Accept any server certificate and skip hostname verification

        Raises:
            TLSConfigurationError: If the SSL context can't be created
        """
        self._tls_policy = TrustAllPolicy(self.config)
        return self

    def with_trust_store(
        self,
        path: str | Path,
        password: str | None,
        verifier: HostnameVerifier | None = None,
    ) -> "Http":
        """
        Trust only certificates chaining to the given trust store

        Args:
            path: PEM bundle or PKCS#12 file
            password: Password of a PKCS#12 store (ignored for PEM)
            verifier: Hostname verifier (DefaultHostnameVerifier if None)

        Raises:
            TLSConfigurationError: If the store can't be read or decrypted
        """
        self._tls_policy = TrustStorePolicy(path, password, verifier, self.config)
        return self

    def with_header(self, name: str, value: str) -> "Http":
        """Append a header; repeating a name adds another value"""
        self._headers.append((name, value))
        return self

    def with_cookie(self, name: str, value: str) -> "Http":
        """Set a cookie, replacing any earlier value of the same name"""
        self._cookies[name] = value
        return self

    def with_body(self, data: str | bytes, content_type: str) -> "Http":
        """
        Raises:
            UnsupportedOperationError: Always, GET and DELETE carry no body
        """
        raise UnsupportedOperationError(self.method)

    def _set_header(self, name: str, value: str):
        lowered = name.lower()
        self._headers = [(n, v) for n, v in self._headers if n.lower() != lowered]
        self._headers.append((name, value))

    def _body(self) -> tuple[bytes | None, str | None]:
        return None, None

    def snapshot(self) -> RequestConfig:
        """Freeze the current configuration"""
        body, content_type = self._body()
        return RequestConfig(
            method=self.method,
            url=self.url,
            host=self.host,
            port=self.port,
            headers=tuple(self._headers),
            cookies=tuple(self._cookies.items()),
            body=body,
            content_type=content_type,
            username=self._username,
            password=self._password,
            preemptive_auth=self._preemptive_auth,
            disable_redirect=self._disable_redirect,
            tls_policy=self._tls_policy,
        )

    def execute(self) -> HttpResponseParser:
        """
        Send the request and return the drained response

        Raises:
            TransportError: On connection, TLS or I/O failures
        """
        request_config = self.snapshot()
        logger.debug(f"{request_config.method} {request_config.url}")

        try:
            with build_session(request_config, self.config) as session:
                with session.request(
                    request_config.method,
                    request_config.url,
                    headers=request_headers(request_config),
                    data=request_config.body,
                    allow_redirects=not request_config.disable_redirect,
                    timeout=self.config.get("client.timeout"),
                ) as response:
                    parsed = HttpResponseParser.from_response(response)
        except requests.exceptions.RequestException as e:
            logger.error(f"{request_config.method} {request_config.url} failed: {e}")
            raise TransportError(request_config.url, e) from e

        logger.info(f"{request_config.method} {request_config.url} -> HTTP {parsed.code}")
        return parsed

    def waiters(self) -> HttpWaiters:
        """Polling helpers that repeatedly execute this request"""
        return self._waiters

    def __repr__(self) -> str:
        return f"<{type(self).__name__} {self.method} {self.url}>"


class EntityEnclosingHttp(Http):
    """Builder for methods that carry a request body (POST, PUT)"""

    def __init__(self, method: str, url: str, config_obj: Config | None = None):
        super().__init__(method, url, config_obj)
        if self.method not in ENTITY_ENCLOSING_METHODS:
            raise ValueError(f"{self.method} requests don't carry a body")

        self._data: bytes | None = None
        self._content_type: str | None = None

    def with_body(self, data: str | bytes, content_type: str) -> "EntityEnclosingHttp":
        """
        Set the request body, replacing any earlier one

        Strings are encoded with the charset parameter of content_type
        (UTF-8 when absent); bytes are sent verbatim.

        Raises:
            ValueError: If the charset is unknown or can't encode data
        """
        if isinstance(data, str):
            charset = charset_of(content_type)
            try:
                data = data.encode(charset)
            except LookupError as e:
                raise ValueError(
                    f"Unknown charset '{charset}' in content type '{content_type}'"
                ) from e
            except UnicodeEncodeError as e:
                raise ValueError(f"Body can't be encoded as '{charset}': {e}") from e
        self._data = data
        self._content_type = content_type
        return self

    def _body(self) -> tuple[bytes | None, str | None]:
        return self._data, self._content_type


def request_headers(request_config: RequestConfig) -> CaseInsensitiveDict:
    """
    Final header set for a request

    Preemptive Basic auth overwrites any Authorization header already present,
    and the body's content type applies unless a Content-Type header was set.
    """
    headers = fold_headers(request_config.headers)

    if (
        request_config.preemptive_auth
        and request_config.username is not None
        and request_config.password is not None
    ):
        headers["Authorization"] = basic_auth_header(
            request_config.username, request_config.password
        )

    if request_config.content_type and "Content-Type" not in headers:
        headers["Content-Type"] = request_config.content_type

    return headers


def build_session(
    request_config: RequestConfig, config_obj: Config | None = None
) -> requests.Session:
    """
    Assemble a transient session for one request

    Args:
        request_config: Snapshot of the request being sent
        config_obj: Config object (optional, uses global config if None)

    Returns:
        Session with TLS policy, credentials and cookies installed
    """
    if config_obj is None:
        config_obj = config

    session = requests.Session()
    # No proxies, netrc credentials or CA bundles from the environment
    session.trust_env = False

    user_agent = config_obj.get("client.user_agent")
    if user_agent:
        session.headers["User-Agent"] = user_agent

    if request_config.tls_policy is not None:
        session.mount("https://", request_config.tls_policy.adapter())

    if request_config.username is not None:
        session.auth = ChallengeBasicAuth(
            request_config.username,
            request_config.password,
            request_config.host,
            request_config.port,
        )

    if request_config.cookies:
        session.cookies = cookiejar_from_dict(dict(request_config.cookies))

    return session
