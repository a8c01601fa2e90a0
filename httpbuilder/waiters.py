"""
Polling helpers built on top of Http.execute()

Usage:
    Http.get(url).waiters().ok().timeout(30).wait()
"""

import time
from collections.abc import Callable
from typing import TYPE_CHECKING

from .config import Config, config
from .exceptions import TransportError, WaiterTimeoutError
from .logging_config import get_module_logger
from .response import HttpResponseParser

logger = get_module_logger("waiters")

if TYPE_CHECKING:
    from .client import Http

ResponseCondition = Callable[[HttpResponseParser], bool]


class Waiter:
    """
    Repeatedly executes one request until a condition on its response holds

    Transport errors while polling are treated as "not ready yet".
    """

    def __init__(
        self,
        http: "Http",
        condition: ResponseCondition,
        description: str = "",
        config_obj: Config | None = None,
    ):
        if config_obj is None:
            config_obj = config

        self.http = http
        self.condition = condition
        self.description = description or "condition"
        self._timeout = float(config_obj.get("waiters.timeout", 60))
        self._interval = float(config_obj.get("waiters.interval", 1))

    def timeout(self, seconds: float) -> "Waiter":
        """Give up after this many seconds"""
        self._timeout = seconds
        return self

    def interval(self, seconds: float) -> "Waiter":
        """Pause between polls"""
        self._interval = seconds
        return self

    def wait(self) -> bool:
        """
        Poll until the condition holds

        Returns:
            True once the condition is met

        Raises:
            WaiterTimeoutError: If the timeout elapses first
        """
        deadline = time.monotonic() + self._timeout
        last_response: HttpResponseParser | None = None
        last_error: TransportError | None = None
        attempt = 0

        while True:
            attempt += 1
            try:
                last_response = self.http.execute()
                last_error = None
                if self.condition(last_response):
                    logger.debug(
                        f"Waiting for {self.description} on {self.http.url} "
                        f"succeeded after {attempt} attempt(s)"
                    )
                    return True
                logger.debug(
                    f"Attempt {attempt}: {self.description} not met "
                    f"(HTTP {last_response.code})"
                )
            except TransportError as e:
                last_error = e
                logger.debug(f"Attempt {attempt}: {e}")

            remaining = deadline - time.monotonic()
            if remaining <= 0:
                logger.warning(
                    f"Gave up waiting for {self.description} on {self.http.url} "
                    f"after {attempt} attempt(s)"
                )
                raise WaiterTimeoutError(
                    self.http.url,
                    self._timeout,
                    last_response=last_response,
                    last_error=last_error,
                )

            time.sleep(min(self._interval, remaining))


class HttpWaiters:
    """Factory for waiters bound to one Http request"""

    def __init__(self, http: "Http"):
        self.http = http

    def _waiter(self, condition: ResponseCondition, description: str) -> Waiter:
        return Waiter(self.http, condition, description, config_obj=self.http.config)

    def ok(self) -> Waiter:
        """Wait for any 2xx status"""
        return self._waiter(lambda response: response.ok, "2xx status")

    def code(self, expected: int) -> Waiter:
        """Wait for one exact status code"""
        return self._waiter(lambda response: response.code == expected, f"status {expected}")

    def response_contains(self, *strings: str) -> Waiter:
        """Wait until the body contains every one of strings"""
        return self._waiter(
            lambda response: all(s in response.text for s in strings),
            f"body containing {list(strings)}",
        )

    def until(self, predicate: ResponseCondition, description: str = "") -> Waiter:
        """Wait for an arbitrary condition on the response"""
        return self._waiter(predicate, description or "custom condition")
