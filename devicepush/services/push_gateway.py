import logging
from dataclasses import dataclass
from typing import Optional

import httpx

from devicepush.schemas.registration import RegistrationRequest

logger = logging.getLogger(__name__)

REGISTER_TOKEN_PATH = "/register-token"


class RegistrationError(Exception):
    """Base class for failures of a single registration attempt."""


class NetworkFailure(RegistrationError):
    """Connection refused, DNS failure, timeout or any other transport error."""


class GatewayRejected(RegistrationError):
    def __init__(self, status_code: int, body: str = "") -> None:
        self.status_code = status_code
        self.body = body
        super().__init__(f"gateway responded with status {status_code}: {body[:200]}")


@dataclass(frozen=True)
class RegistrationResult:
    status_code: Optional[int] = None
    error: Optional[RegistrationError] = None

    @property
    def ok(self) -> bool:
        return self.error is None

    @classmethod
    def success(cls, status_code: int) -> "RegistrationResult":
        return cls(status_code=status_code)

    @classmethod
    def failure(cls, error: RegistrationError, status_code: Optional[int] = None) -> "RegistrationResult":
        return cls(status_code=status_code, error=error)


class PushGatewayClient:
    """HTTP client for the backend that stores user-to-token mappings.

    ``register`` makes exactly one attempt and reports the outcome as a
    ``RegistrationResult``; it never raises.
    """

    def __init__(
        self,
        base_url: str,
        *,
        timeout: float = 10.0,
        connect_timeout: float = 5.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> None:
        self.base_url = base_url.rstrip("/")
        self._timeout = httpx.Timeout(timeout, connect=connect_timeout)
        self._transport = transport

    @property
    def register_url(self) -> str:
        return f"{self.base_url}{REGISTER_TOKEN_PATH}"

    async def register(self, request: RegistrationRequest) -> RegistrationResult:
        headers = {"Content-Type": "application/json"}
        try:
            async with httpx.AsyncClient(timeout=self._timeout, transport=self._transport) as client:
                response = await client.post(self.register_url, json=request.to_wire(), headers=headers)
        except httpx.TimeoutException as exc:
            logger.warning(f"Token registration timed out against {self.register_url}")
            return RegistrationResult.failure(NetworkFailure(f"request timed out: {exc!r}"))
        except httpx.HTTPError as exc:
            logger.warning(f"Token registration could not reach {self.register_url}: {exc!r}")
            return RegistrationResult.failure(NetworkFailure(str(exc) or repr(exc)))
        except Exception as exc:
            logger.error(f"Unexpected error during token registration: {exc}", exc_info=True)
            return RegistrationResult.failure(NetworkFailure(repr(exc)))

        if response.is_success:
            return RegistrationResult.success(response.status_code)

        logger.warning(
            f"Token registration rejected (status {response.status_code}): {response.text[:200]}"
        )
        return RegistrationResult.failure(
            GatewayRejected(response.status_code, response.text),
            status_code=response.status_code,
        )
