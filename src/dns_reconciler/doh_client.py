"""
DNS-over-HTTPS client for IPv4 lookups.

This module provides an async client for the JSON flavour of DoH
(``application/dns-json``) with TLS enforcement, A-record extraction,
and failure reporting as values rather than exceptions.
"""

from dataclasses import dataclass, field
from typing import Any, Optional, Protocol
from urllib.parse import urlparse
import hashlib
import time

import httpx

from .audit_logger import AuditLogger
from .domain_input import to_query_name
from .enums import DoHErrorCode, DoHStatus, LogLevel
from .exceptions import NetworkError, ValidationError


# DNS resource record type for IPv4 addresses
A_RECORD_TYPE = 1


class Resolver(Protocol):
    """Anything that turns a domain into its IPv4 addresses."""

    async def resolve(self, domain: str) -> Optional[list[str]]:
        """Return a non-empty list of addresses, or None on failure."""
        ...


@dataclass
class DoHError:
    """Error information from a DoH query."""

    code: DoHErrorCode
    message: str
    http_status_code: Optional[int] = None


@dataclass
class DoHResponse:
    """Complete DoH query response."""

    domain: str
    status: DoHStatus
    http_status_code: int
    addresses: list[str] = field(default_factory=list)
    raw_response: Optional[Any] = None
    error: Optional[DoHError] = None
    response_time_ms: float = 0.0


class DoHClient:
    """
    Async DNS-over-HTTPS client with TLS enforcement.

    Queries a DoH JSON endpoint for A records. ``query`` returns a
    structured response; ``resolve`` reduces it to the resolver contract
    (addresses or None) and never raises.
    """

    def __init__(
        self,
        endpoint: str,
        timeout: float = 10.0,
        simulation_mode: bool = False,
        logger: Optional[AuditLogger] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> None:
        """
        Initialize the DoH client.

        Args:
            endpoint: DoH JSON endpoint URL (must be HTTPS)
            timeout: Request timeout in seconds
            simulation_mode: If True, no real network requests are made
            logger: Optional audit logger for failure diagnostics
            transport: Optional httpx transport (used by tests)
        """
        self._endpoint = endpoint
        self._timeout = timeout
        self._simulation_mode = simulation_mode
        self._logger = logger
        self._transport = transport
        self._client: Optional[httpx.AsyncClient] = None

    async def __aenter__(self) -> "DoHClient":
        """Async context manager entry."""
        self._ensure_client()
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        """Async context manager exit."""
        await self.close()

    @property
    def endpoint(self) -> str:
        return self._endpoint

    def _ensure_client(self) -> httpx.AsyncClient:
        if self._client is None:
            self._client = httpx.AsyncClient(
                verify=True,  # TLS certificate verification enforced
                timeout=httpx.Timeout(self._timeout),
                follow_redirects=True,
                transport=self._transport,
            )
        return self._client

    def _validate_endpoint_url(self, endpoint: str) -> None:
        """
        Validate that the endpoint uses HTTPS (TLS).

        Raises:
            NetworkError: If the endpoint does not use HTTPS
        """
        parsed = urlparse(endpoint)
        if parsed.scheme.lower() != "https":
            raise NetworkError(
                code=DoHErrorCode.TLS_ERROR.value,
                message=f"DoH endpoint must use HTTPS: {endpoint}",
                details={"endpoint": endpoint, "scheme": parsed.scheme},
            )

    @staticmethod
    def extract_addresses(json_data: Any) -> list[str]:
        """
        Pull IPv4 addresses out of a dns-json body.

        Only ``Answer`` entries with ``type == 1`` count. CNAME and other
        entries are ignored. Repeated addresses keep their first position.

        Args:
            json_data: Decoded JSON response body

        Returns:
            Ordered list of unique addresses (possibly empty)
        """
        if not isinstance(json_data, dict):
            return []

        answers = json_data.get("Answer")
        if not isinstance(answers, list):
            return []

        addresses: list[str] = []
        for answer in answers:
            if not isinstance(answer, dict):
                continue
            if answer.get("type") != A_RECORD_TYPE:
                continue
            data = answer.get("data")
            if isinstance(data, str) and data and data not in addresses:
                addresses.append(data)
        return addresses

    async def query(self, domain: str) -> DoHResponse:
        """
        Query the DoH endpoint for the A records of a domain.

        Args:
            domain: The domain as stored (IDN names are encoded for the query)

        Returns:
            DoHResponse with query results. Failures are described by
            ``status`` and ``error``; nothing is raised.
        """
        start_time = time.perf_counter()

        try:
            self._validate_endpoint_url(self._endpoint)
        except NetworkError as e:
            return self._error_response(domain, DoHErrorCode.TLS_ERROR, e.message, start_time)

        try:
            query_name = to_query_name(domain)
        except ValidationError as e:
            return self._error_response(domain, DoHErrorCode.INVALID_NAME, e.message, start_time)

        if self._simulation_mode:
            return self._create_simulation_response(domain, start_time)

        client = self._ensure_client()

        try:
            response = await client.get(
                self._endpoint,
                params={"name": query_name, "type": "A"},
                headers={"Accept": "application/dns-json"},
            )
        except httpx.TimeoutException:
            return self._error_response(
                domain,
                DoHErrorCode.TIMEOUT,
                f"DoH request timed out after {self._timeout}s",
                start_time,
            )
        except httpx.ConnectError as e:
            error_msg = str(e)
            if "ssl" in error_msg.lower() or "certificate" in error_msg.lower():
                return self._error_response(
                    domain, DoHErrorCode.TLS_ERROR, f"TLS connection error: {error_msg}", start_time
                )
            return self._error_response(
                domain, DoHErrorCode.NETWORK_ERROR, f"Connection error: {error_msg}", start_time
            )
        except httpx.HTTPError as e:
            return self._error_response(
                domain, DoHErrorCode.NETWORK_ERROR, f"HTTP error: {e}", start_time
            )
        except Exception as e:
            return self._error_response(
                domain, DoHErrorCode.NETWORK_ERROR, f"Unexpected error: {e}", start_time
            )

        response_time_ms = self._elapsed_ms(start_time)

        if not response.is_success:
            return DoHResponse(
                domain=domain,
                status=DoHStatus.ERROR,
                http_status_code=response.status_code,
                error=DoHError(
                    code=DoHErrorCode.HTTP_ERROR,
                    message=f"Unexpected HTTP status: {response.status_code}",
                    http_status_code=response.status_code,
                ),
                response_time_ms=response_time_ms,
            )

        try:
            json_data = response.json()
        except ValueError as e:
            return DoHResponse(
                domain=domain,
                status=DoHStatus.ERROR,
                http_status_code=response.status_code,
                error=DoHError(
                    code=DoHErrorCode.PARSE_ERROR,
                    message=f"Failed to parse DoH response: {e}",
                    http_status_code=response.status_code,
                ),
                response_time_ms=response_time_ms,
            )

        addresses = self.extract_addresses(json_data)
        return DoHResponse(
            domain=domain,
            status=DoHStatus.RESOLVED if addresses else DoHStatus.NO_RECORDS,
            http_status_code=response.status_code,
            addresses=addresses,
            raw_response=json_data,
            response_time_ms=response_time_ms,
        )

    async def resolve(self, domain: str) -> Optional[list[str]]:
        """
        Resolve a domain to its IPv4 addresses.

        Returns:
            Non-empty list of addresses, or None if the lookup failed or
            returned no A records
        """
        response = await self.query(domain)
        if response.status == DoHStatus.RESOLVED:
            return response.addresses

        self._log_failure(response)
        return None

    def _log_failure(self, response: DoHResponse) -> None:
        if self._logger is None:
            return
        data = {
            "domain": response.domain,
            "status": response.status.value,
            "http_status_code": response.http_status_code,
            "response_time_ms": response.response_time_ms,
        }
        if response.error is not None:
            data["error_code"] = response.error.code.value
            data["error_message"] = response.error.message
        self._logger.log(
            LogLevel.WARN,
            "DoHClient",
            f"Resolution failed for {response.domain}",
            data,
        )

    def _error_response(
        self,
        domain: str,
        code: DoHErrorCode,
        message: str,
        start_time: float,
    ) -> DoHResponse:
        return DoHResponse(
            domain=domain,
            status=DoHStatus.ERROR,
            http_status_code=0,
            error=DoHError(code=code, message=message),
            response_time_ms=self._elapsed_ms(start_time),
        )

    def _elapsed_ms(self, start_time: float) -> float:
        """Calculate elapsed time in milliseconds."""
        return (time.perf_counter() - start_time) * 1000

    def _create_simulation_response(
        self, domain: str, start_time: float
    ) -> DoHResponse:
        """Create a deterministic response for testing without network access."""
        # Documentation range 198.51.100.0/24, stable per domain
        digest = hashlib.sha256(domain.encode("utf-8")).digest()
        address = f"198.51.100.{digest[0] % 254 + 1}"
        return DoHResponse(
            domain=domain,
            status=DoHStatus.RESOLVED,
            http_status_code=200,
            addresses=[address],
            raw_response={"Status": 0, "Answer": [{"type": A_RECORD_TYPE, "data": address}]},
            response_time_ms=self._elapsed_ms(start_time),
        )

    async def close(self) -> None:
        """Close the HTTP client."""
        if self._client:
            await self._client.aclose()
            self._client = None
