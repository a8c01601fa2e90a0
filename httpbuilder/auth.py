"""
Basic authentication helpers

Two flavours are supported:
- preemptive: the Authorization header is computed up front (basic_auth_header)
- challenge-response: credentials are only sent after the scoped host answers
  401 with a Basic challenge (ChallengeBasicAuth)
"""

import base64
from urllib.parse import urlparse

from requests.auth import AuthBase
from requests.cookies import extract_cookies_to_jar

from .logging_config import get_module_logger

logger = get_module_logger("auth")

DEFAULT_PORTS = {"http": 80, "https": 443}


def basic_auth_header(username: str, password: str) -> str:
    """
    Build a Basic Authorization header value

    Credentials are UTF-8 encoded and base64 encoded on a single line.

    Example:
        >>> basic_auth_header("user", "pass")
        'Basic dXNlcjpwYXNz'
    """
    token = base64.b64encode(f"{username}:{password}".encode()).decode("ascii")
    return f"Basic {token}"


class ChallengeBasicAuth(AuthBase):
    """
    Basic auth answered only on a 401 challenge from one host and port

    Modelled on requests' HTTPDigestAuth: a response hook inspects 401s and
    replays the request once with credentials. Requests that already carry an
    Authorization header are left alone.
    """

    def __init__(self, username: str, password: str | None, host: str, port: int):
        self.username = username
        self.password = password or ""
        self.host = host.lower()
        self.port = port

    def in_scope(self, url: str) -> bool:
        """Whether url targets the host and port these credentials belong to"""
        parsed = urlparse(url)
        host = (parsed.hostname or "").lower()
        port = parsed.port or DEFAULT_PORTS.get(parsed.scheme.lower())
        return host == self.host and port == self.port

    def handle_401(self, r, **kwargs):
        """Replay the request with credentials if the server asked for Basic auth"""
        if r.status_code != 401:
            return r

        if "Authorization" in r.request.headers or not self.in_scope(r.request.url):
            return r

        challenge = r.headers.get("www-authenticate", "")
        if "basic" not in challenge.lower():
            return r

        logger.debug(f"Answering Basic challenge from {self.host}:{self.port}")

        # Consume content and release the original connection
        # to allow our new request to reuse the same one.
        r.content
        r.close()

        prep = r.request.copy()
        extract_cookies_to_jar(prep._cookies, r.request, r.raw)
        prep.prepare_cookies(prep._cookies)
        prep.headers["Authorization"] = basic_auth_header(self.username, self.password)

        retried = r.connection.send(prep, **kwargs)
        retried.history.append(r)
        retried.request = prep
        return retried

    def __call__(self, r):
        r.register_hook("response", self.handle_401)
        return r

    def __eq__(self, other):
        return all(
            [
                self.username == getattr(other, "username", None),
                self.password == getattr(other, "password", None),
                self.host == getattr(other, "host", None),
                self.port == getattr(other, "port", None),
            ]
        )

    def __ne__(self, other):
        return not self == other
