"""Parsed, fully-drained HTTP responses."""

import json
from typing import Any

import requests
from requests.structures import CaseInsensitiveDict

from .exceptions import ResponseParseError


class HttpResponseParser:
    """
    Read-only view of a response whose body has already been read

    The underlying connection is released by the time callers see this object,
    so everything here works from the copied status, headers and bytes.
    """

    def __init__(
        self,
        code: int,
        headers: dict[str, str] | None = None,
        content: bytes = b"",
        url: str = "",
        reason: str = "",
        encoding: str | None = None,
    ):
        self.code = code
        self.headers = CaseInsensitiveDict(headers or {})
        self.content = content
        self.url = url
        self.reason = reason
        self.encoding = encoding

    @classmethod
    def from_response(cls, response: requests.Response) -> "HttpResponseParser":
        """Copy everything needed out of a requests.Response"""
        return cls(
            code=response.status_code,
            headers=dict(response.headers),
            content=response.content or b"",
            url=response.url,
            reason=response.reason or "",
            encoding=response.encoding,
        )

    @property
    def ok(self) -> bool:
        return 200 <= self.code < 300

    @property
    def text(self) -> str:
        """Body decoded with the response charset (UTF-8 when unknown)"""
        try:
            return self.content.decode(self.encoding or "utf-8", errors="replace")
        except LookupError:
            return self.content.decode("utf-8", errors="replace")

    def response(self) -> str:
        """Body as text"""
        return self.text

    def header(self, name: str) -> str | None:
        return self.headers.get(name)

    def json(self) -> Any:
        """
        Decode the body as JSON

        Raises:
            ResponseParseError: If the body is not valid JSON
        """
        try:
            return json.loads(self.text)
        except json.JSONDecodeError as e:
            raise ResponseParseError(
                f"Response from {self.url} is not valid JSON: {e}", body=self.text
            ) from e

    def __repr__(self) -> str:
        return f"<HttpResponseParser [{self.code}] {self.url}>"
