"""
Gateway Configuration - Pydantic Settings for type-safe config.

Per-driver settings are immutable typed models.
FAIL FAST - Structural config is validated at startup; credentials are
checked lazily where a phase actually needs them.
"""

import sys

from pydantic import BaseModel, ConfigDict, field_validator, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

SUPPORTED_DRIVERS = ("parsian", "sadad")


class ConfigurationError(Exception):
    """Raised when critical configuration is missing or invalid."""

    pass


class DriverSettings(BaseModel):
    """Fields shared by every bank driver."""

    model_config = ConfigDict(frozen=True, extra="forbid")

    api_purchase_url: str = ""
    api_payment_url: str = ""
    api_verification_url: str = ""
    api_namespace_url: str = ""
    callback_url: str = ""
    description: str = ""

    @field_validator(
        "api_purchase_url",
        "api_payment_url",
        "api_verification_url",
        "callback_url",
    )
    @classmethod
    def validate_url(cls, value: str) -> str:
        """Reject non-HTTP URLs early; empty means 'not configured yet'."""
        value = value.strip()
        if value and not value.startswith(("http://", "https://")):
            raise ValueError(f"Expected an http(s) URL, got: {value[:40]}")
        return value

    def require(self, field: str) -> str:
        """
        Return a configured value or fail with a clear message.

        Raises:
            ConfigurationError: If the setting is empty
        """
        value = getattr(self, field)
        if value in ("", None):
            raise ConfigurationError(f"{type(self).__name__}.{field} is required but empty")
        return str(value)


class ParsianSettings(DriverSettings):
    """Parsian (PEC) token-flow gateway settings."""

    api_purchase_url: str = "https://pec.shaparak.ir/NewIPGServices/Sale/SaleService.asmx?wsdl"
    api_payment_url: str = "https://pec.shaparak.ir/NewIPG/"
    api_verification_url: str = (
        "https://pec.shaparak.ir/NewIPGServices/Confirm/ConfirmService.asmx?wsdl"
    )
    api_namespace_url: str = "https://pec.Shaparak.ir/NewIPGServices/Sale/SaleService"
    description: str = "payment using parsian"

    login_account: str = ""


class SadadSettings(DriverSettings):
    """Sadad verify/settle gateway settings."""

    api_purchase_url: str = "https://bpm.shaparak.ir/pgwchannel/services/pgw?wsdl"
    api_payment_url: str = "https://bpm.shaparak.ir/pgwchannel/startpay.mellat"
    api_verification_url: str = "https://bpm.shaparak.ir/pgwchannel/services/pgw?wsdl"
    api_namespace_url: str = "http://interfaces.core.sw.bps.com/"
    description: str = "payment using sadad"

    terminal_id: str = ""
    username: str = ""
    password: str = ""


class GatewaySettings(BaseSettings):
    """Gateway settings loaded from environment variables."""

    # Driver selection
    default_driver: str = "parsian"
    parsian: ParsianSettings = ParsianSettings()
    sadad: SadadSettings = SadadSettings()

    # Transport
    transport_timeout: float = 30.0  # seconds, per remote call

    # Logging
    log_level: str = "INFO"
    log_format: str = "json"  # json or console

    # Observability
    service_name: str = "bankgate"
    version: str = "0.1.0"
    metrics_enabled: bool = True

    model_config = SettingsConfigDict(
        env_prefix="BANKGATE_",
        env_nested_delimiter="__",
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    @field_validator("default_driver", mode="before")
    @classmethod
    def normalize_driver_name(cls, value: object) -> object:
        """Driver names are matched case-insensitively, like create_driver."""
        if isinstance(value, str):
            return value.strip().lower()
        return value

    @model_validator(mode="after")
    def validate_critical_config(self) -> "GatewaySettings":
        """
        FAIL FAST: Validate structural configuration at startup.

        Missing credentials are NOT checked here; the phase that needs them
        reports the gap at its call site.
        """
        errors: list[str] = []

        if self.default_driver not in SUPPORTED_DRIVERS:
            errors.append(
                f"DEFAULT_DRIVER must be one of {', '.join(SUPPORTED_DRIVERS)}, "
                f"got: {self.default_driver!r}"
            )

        if self.transport_timeout <= 0:
            errors.append(f"TRANSPORT_TIMEOUT must be positive, got: {self.transport_timeout}")

        if self.log_format not in ("json", "console"):
            errors.append(f"LOG_FORMAT must be 'json' or 'console', got: {self.log_format!r}")

        if errors:
            error_msg = "\n".join(
                [
                    "",
                    "=" * 60,
                    "CRITICAL GATEWAY CONFIGURATION ERROR",
                    "=" * 60,
                    *[f"  ✗ {e}" for e in errors],
                    "=" * 60,
                    "",
                ]
            )
            print(error_msg, file=sys.stderr)
            raise ConfigurationError(error_msg)

        return self

    def for_driver(self, name: str) -> DriverSettings:
        """Get the settings block of a named driver."""
        if name not in SUPPORTED_DRIVERS:
            raise ConfigurationError(f"No settings block for driver {name!r}")
        driver_settings: DriverSettings = getattr(self, name)
        return driver_settings


# Global settings instance - validates at import time
settings = GatewaySettings()


def get_settings() -> GatewaySettings:
    """Get gateway settings instance."""
    return settings
