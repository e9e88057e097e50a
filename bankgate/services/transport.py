"""
Transport Protocol - SOAP RPC channel used by bank drivers.

Drivers never talk to zeep/httpx directly; they get a Transport per
endpoint from a factory so tests can swap in a fake.
"""

import asyncio
from collections.abc import Callable, Mapping
from typing import Any, Protocol

import httpx
from structlog import get_logger
from zeep import AsyncClient
from zeep.exceptions import Error as ZeepError
from zeep.exceptions import Fault
from zeep.helpers import serialize_object
from zeep.transports import AsyncTransport

from bankgate.config import settings
from bankgate.exceptions import GatewayTransportError

logger = get_logger(__name__)


class Transport(Protocol):
    """
    Remote RPC channel bound to one endpoint and namespace.

    Any channel (SOAP, a test double, ...) must implement this interface.
    """

    endpoint: str
    namespace: str | None

    async def call(self, operation: str, payload: Mapping[str, Any]) -> Any:
        """
        Invoke a named remote operation.

        Args:
            operation: Remote operation name, e.g. "bpPayRequest"
            payload: Operation arguments by field name

        Returns:
            Plain response: a mapping, or a scalar for string/int results

        Raises:
            GatewayTransportError: On network failure, SOAP fault or malformed reply
        """
        ...

    async def aclose(self) -> None:
        """Release network resources."""
        ...


TransportFactory = Callable[[str, str | None], Transport]


class SoapTransport:
    """
    zeep-backed SOAP transport over httpx.

    The WSDL is fetched on first use, off the event loop.
    """

    def __init__(
        self,
        endpoint: str,
        namespace: str | None = None,
        timeout: float | None = None,
    ) -> None:
        """
        Initialize SOAP transport.

        Args:
            endpoint: WSDL URL of the bank service
            namespace: Target namespace, registered as the "tns" prefix
            timeout: Per-request timeout in seconds (defaults to settings)
        """
        self.endpoint = endpoint
        self.namespace = namespace or None
        self.timeout = timeout or settings.transport_timeout
        self._client: AsyncClient | None = None
        self._wsdl_http: httpx.Client | None = None

    def _build_client(self, http: httpx.AsyncClient) -> AsyncClient:
        wsdl_http = httpx.Client(timeout=self.timeout)
        try:
            transport = AsyncTransport(client=http, wsdl_client=wsdl_http)
            client = AsyncClient(self.endpoint, transport=transport)
        except Exception:
            wsdl_http.close()
            raise
        self._wsdl_http = wsdl_http
        if self.namespace:
            client.set_ns_prefix("tns", self.namespace)
        return client

    async def _get_client(self, operation: str) -> AsyncClient:
        if self._client is None:
            http = httpx.AsyncClient(timeout=self.timeout)
            try:
                self._client = await asyncio.to_thread(self._build_client, http)
            except (ZeepError, httpx.HTTPError, OSError) as exc:
                logger.error(
                    "soap_wsdl_load_failed",
                    endpoint=self.endpoint,
                    error=str(exc),
                    error_type=type(exc).__name__,
                )
                raise GatewayTransportError(operation, f"cannot load WSDL: {exc}") from exc
            finally:
                if self._client is None:
                    await http.aclose()
        return self._client

    async def call(self, operation: str, payload: Mapping[str, Any]) -> Any:
        """Invoke a SOAP operation and return its serialised result."""
        client = await self._get_client(operation)

        try:
            method = getattr(client.service, operation)
        except AttributeError as exc:
            logger.error("soap_operation_missing", endpoint=self.endpoint, operation=operation)
            raise GatewayTransportError(operation, "operation not defined in WSDL") from exc

        try:
            result = await method(**payload)
        except Fault as exc:
            logger.error(
                "soap_fault",
                endpoint=self.endpoint,
                operation=operation,
                fault_code=exc.code,
                error=exc.message,
            )
            raise GatewayTransportError(operation, f"SOAP fault: {exc.message}") from exc
        except (ZeepError, httpx.HTTPError) as exc:
            logger.error(
                "soap_call_failed",
                endpoint=self.endpoint,
                operation=operation,
                error=str(exc),
                error_type=type(exc).__name__,
            )
            raise GatewayTransportError(operation, str(exc)) from exc

        return serialize_object(result, dict)

    async def aclose(self) -> None:
        """Close both HTTP clients."""
        if self._client is not None:
            await self._client.transport.aclose()
            self._client = None
        if self._wsdl_http is not None:
            self._wsdl_http.close()
            self._wsdl_http = None


def soap_transport_factory(
    endpoint: str, namespace: str | None, timeout: float | None = None
) -> Transport:
    """Default factory: one SOAP transport per endpoint."""
    return SoapTransport(endpoint, namespace, timeout=timeout)
