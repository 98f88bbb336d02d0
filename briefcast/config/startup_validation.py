"""
Startup checks for Briefcast.

Each check inspects one external dependency and reports whether it is
usable. Required dependencies failing makes the run invalid; optional
ones only produce warnings, and the features that need them degrade.
"""

import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Callable, Optional

from sqlalchemy import text
from sqlalchemy.engine import Engine

from .settings import Settings

logger = logging.getLogger(__name__)

MIN_GEMINI_KEY_LENGTH = 20


class ServiceStatus(Enum):
    AVAILABLE = "available"
    DEGRADED = "degraded"
    UNAVAILABLE = "unavailable"


@dataclass(frozen=True)
class ValidationResult:
    """Outcome of one check."""
    service: str
    status: ServiceStatus
    message: str
    required: bool = True
    details: Optional[dict[str, Any]] = None

    @property
    def blocking(self) -> bool:
        return self.required and self.status == ServiceStatus.UNAVAILABLE

    @property
    def line(self) -> str:
        return f"[{self.service}] {self.message}"


@dataclass
class StartupValidation:
    """Results of every check, keyed by service name."""
    services: dict[str, ValidationResult] = field(default_factory=dict)

    def add_result(self, result: ValidationResult):
        self.services[result.service] = result

    @property
    def is_valid(self) -> bool:
        return not any(r.blocking for r in self.services.values())

    @property
    def errors(self) -> list[str]:
        return [r.line for r in self.services.values() if r.blocking]

    @property
    def warnings(self) -> list[str]:
        return [
            r.line for r in self.services.values()
            if r.status != ServiceStatus.AVAILABLE and not r.blocking
        ]

    def log_summary(self):
        available = [name for name, r in self.services.items() if r.status == ServiceStatus.AVAILABLE]
        logger.info(f"Startup checks: {len(available)}/{len(self.services)} services available")
        for line in self.errors:
            logger.error(f"❌ {line}")
        for line in self.warnings:
            logger.warning(f"⚠️  {line}")
        if self.is_valid:
            logger.info("✅ Startup validation passed")
        else:
            logger.error("Startup validation failed, briefing generation is disabled")


def validate_gemini_api(settings: Settings) -> ValidationResult:
    """Every configured key must look like a key; the client must build with the first."""
    service = "Gemini API"
    keys = settings.gemini_api_keys

    if not keys:
        return ValidationResult(
            service, ServiceStatus.UNAVAILABLE,
            "GEMINI_API_KEY is not set, scripts and audio cannot be generated",
        )

    too_short = [position for position, key in enumerate(keys) if len(key) < MIN_GEMINI_KEY_LENGTH]
    if too_short:
        return ValidationResult(
            service, ServiceStatus.UNAVAILABLE,
            f"GEMINI_API_KEY has {len(too_short)} malformed key(s)",
            details={"invalid_positions": too_short},
        )

    try:
        from google import genai
        genai.Client(api_key=keys[0])
    except Exception as e:
        return ValidationResult(service, ServiceStatus.UNAVAILABLE, f"Gemini client could not be created: {e}")

    return ValidationResult(
        service, ServiceStatus.AVAILABLE,
        f"{len(keys)} key(s) in rotation",
        details={"key_count": len(keys)},
    )


def validate_supabase(settings: Settings) -> ValidationResult:
    """Supabase backs audio storage and sign-in."""
    service = "Supabase"
    missing = [
        name for name, value in (
            ("SUPABASE_URL", settings.supabase_url),
            ("SUPABASE_SERVICE_KEY", settings.supabase_service_key),
        )
        if not value
    ]
    if missing:
        return ValidationResult(
            service, ServiceStatus.DEGRADED,
            f"{', '.join(missing)} not set, audio upload and sign-in are off",
            required=False,
            details={"missing": missing},
        )

    try:
        from supabase import create_client
        create_client(settings.supabase_url, settings.supabase_service_key)
    except Exception as e:
        return ValidationResult(service, ServiceStatus.DEGRADED, f"Supabase client could not be created: {e}", required=False)

    return ValidationResult(service, ServiceStatus.AVAILABLE, f"bucket {settings.storage_bucket}")


def validate_oauth_clients(settings: Settings) -> ValidationResult:
    """Token refresh needs the client credentials of each provider family."""
    service = "OAuth Clients"
    families = {
        "Google (gmail, calendar, youtube)": (settings.google_client_id, settings.google_client_secret),
        "Notion": (settings.notion_client_id, settings.notion_client_secret),
        "Slack": (settings.slack_client_id, settings.slack_client_secret),
    }
    missing = [family for family, pair in families.items() if not all(pair)]
    if missing:
        return ValidationResult(
            service, ServiceStatus.DEGRADED,
            f"no client credentials for {', '.join(missing)}; expired tokens there need reauthorization",
            required=False,
            details={"missing": missing},
        )
    return ValidationResult(service, ServiceStatus.AVAILABLE, "client credentials configured")


def validate_database(engine: Engine) -> ValidationResult:
    service = "Database"
    try:
        with engine.connect() as connection:
            connection.execute(text("SELECT 1"))
    except Exception as e:
        return ValidationResult(service, ServiceStatus.UNAVAILABLE, f"cannot connect: {e}")
    return ValidationResult(service, ServiceStatus.AVAILABLE, engine.url.get_backend_name())


SETTINGS_CHECKS: list[Callable[[Settings], ValidationResult]] = [
    validate_gemini_api,
    validate_supabase,
    validate_oauth_clients,
]


def run_startup_validation(settings: Settings, engine: Optional[Engine] = None) -> StartupValidation:
    """Run every check and log the summary."""
    validation = StartupValidation()
    for check in SETTINGS_CHECKS:
        validation.add_result(check(settings))
    if engine is not None:
        validation.add_result(validate_database(engine))
    validation.log_summary()
    return validation
