"""
Pytest Configuration and Centralized Fixtures.

Provides reusable fakes and fixtures for testing:
- A recording fake transport with scripted per-operation responses
- Invoices in various states
- Parsian/Sadad settings and drivers wired to the fake transport
"""

import os
from collections.abc import Mapping
from decimal import Decimal
from typing import Any

import pytest

# Settings load at import time; pin them BEFORE importing bankgate modules
os.environ.setdefault("BANKGATE_DEFAULT_DRIVER", "parsian")
os.environ.setdefault("BANKGATE_METRICS_ENABLED", "true")

from bankgate.config import GatewaySettings, ParsianSettings, SadadSettings
from bankgate.exceptions import GatewayTransportError
from bankgate.models.domain import Invoice
from bankgate.services.parsian import ParsianDriver
from bankgate.services.sadad import SadadDriver

# ============================================================================
# Fake Transport
# ============================================================================


class FakeTransport:
    """
    Transport double that replays scripted responses and records calls.

    A scripted response that is an exception instance is raised instead of
    returned. A list of responses is consumed one per call.
    """

    def __init__(
        self,
        endpoint: str,
        namespace: str | None,
        responses: dict[str, Any],
        calls: list[tuple[str, str, dict[str, Any]]],
    ) -> None:
        self.endpoint = endpoint
        self.namespace = namespace
        self.responses = responses
        self.calls = calls
        self.closed = False

    async def call(self, operation: str, payload: Mapping[str, Any]) -> Any:
        self.calls.append((self.endpoint, operation, dict(payload)))
        if operation not in self.responses:
            raise GatewayTransportError(operation, "no scripted response")
        response = self.responses[operation]
        if isinstance(response, list):
            response = response.pop(0)
        if isinstance(response, BaseException):
            raise response
        return response

    async def aclose(self) -> None:
        self.closed = True


class FakeTransportFactory:
    """Builds FakeTransports sharing one script and one call log."""

    def __init__(self) -> None:
        self.responses: dict[str, Any] = {}
        self.calls: list[tuple[str, str, dict[str, Any]]] = []
        self.transports: list[FakeTransport] = []

    def __call__(self, endpoint: str, namespace: str | None) -> FakeTransport:
        transport = FakeTransport(endpoint, namespace, self.responses, self.calls)
        self.transports.append(transport)
        return transport

    def script(self, **responses: Any) -> "FakeTransportFactory":
        self.responses.update(responses)
        return self

    @property
    def operations(self) -> list[str]:
        return [operation for _, operation, _ in self.calls]

    def payload(self, operation: str) -> dict[str, Any]:
        for _, called, payload in self.calls:
            if called == operation:
                return payload
        raise AssertionError(f"{operation} was never called")


@pytest.fixture
def transport_factory() -> FakeTransportFactory:
    """Fresh fake transport factory per test."""
    return FakeTransportFactory()


# ============================================================================
# Invoice Fixtures
# ============================================================================


@pytest.fixture
def invoice() -> Invoice:
    """Standard invoice: 1000 Toman, fixed uuid."""
    return Invoice(amount=Decimal("1000"), uuid="inv-0001")


@pytest.fixture
def described_invoice() -> Invoice:
    """Invoice overriding the description and carrying a payer id."""
    return Invoice(
        amount=Decimal("250.5"),
        uuid="inv-0002",
        details={"description": "Tournament fee", "payerId": 77},
    )


# ============================================================================
# Settings Fixtures
# ============================================================================


@pytest.fixture
def parsian_settings() -> ParsianSettings:
    """Fully configured Parsian settings."""
    return ParsianSettings(
        api_purchase_url="https://pec.example/sale?wsdl",
        api_payment_url="https://pec.example/pay/",
        api_verification_url="https://pec.example/confirm?wsdl",
        api_namespace_url="https://pec.example/ns",
        login_account="login-123",
        callback_url="https://shop.example/callback/parsian",
        description="Parsian default",
    )


@pytest.fixture
def sadad_settings() -> SadadSettings:
    """Fully configured Sadad settings."""
    return SadadSettings(
        api_purchase_url="https://bpm.example/pgw?wsdl",
        api_payment_url="https://bpm.example/startpay",
        api_verification_url="https://bpm.example/pgw?wsdl",
        api_namespace_url="http://interfaces.core.sw.bps.com/",
        terminal_id="9001",
        username="merchant",
        password="secret",
        callback_url="https://shop.example/callback/sadad",
        description="Sadad default",
    )


@pytest.fixture
def gateway_settings(
    parsian_settings: ParsianSettings, sadad_settings: SadadSettings
) -> GatewaySettings:
    """Gateway settings with both drivers configured."""
    return GatewaySettings(
        default_driver="sadad",
        parsian=parsian_settings,
        sadad=sadad_settings,
    )


# ============================================================================
# Driver Fixtures
# ============================================================================


@pytest.fixture
def parsian_driver(
    invoice: Invoice,
    parsian_settings: ParsianSettings,
    transport_factory: FakeTransportFactory,
) -> ParsianDriver:
    """Parsian driver bound to the standard invoice and the fake transport."""
    return ParsianDriver(invoice, parsian_settings, transport_factory)


@pytest.fixture
def sadad_driver(
    invoice: Invoice,
    sadad_settings: SadadSettings,
    transport_factory: FakeTransportFactory,
) -> SadadDriver:
    """Sadad driver bound to the standard invoice and the fake transport."""
    return SadadDriver(invoice, sadad_settings, transport_factory)


@pytest.fixture
def sadad_callback() -> dict[str, str]:
    """Successful Sadad callback payload."""
    return {
        "RefId": "AF82041a2Bf6989c7fF9",
        "ResCode": "0",
        "SaleOrderId": "123456",
        "SaleReferenceId": "987654321",
    }
