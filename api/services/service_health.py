"""
Service Health Registry for the bridge.

Tracks availability and degradation of the things reconciliation depends on:
- GHL contact search (may degrade to blind creation on 403/5xx)
- GHL contact creation
- GHL tagging and workflow enrollment
- Local SQLite database

Provides:
- Real-time service status tracking
- Degradation event recording (when fallbacks are used)
- /health/services endpoint data

Usage:
    from api.services.service_health import record_degradation, mark_service_failed

    # Search was denied, resolver fell back to creating the contact
    record_degradation("ghl_search", "resolve_contact", "create_contact", "HTTP 403")

    mark_service_failed("database", "disk I/O error", Severity.CRITICAL)
"""
import logging
import threading
from dataclasses import dataclass
from datetime import datetime, timezone, timedelta
from enum import Enum
from typing import Optional

logger = logging.getLogger(__name__)


class ServiceStatus(str, Enum):
    """Service availability status."""
    HEALTHY = "healthy"
    DEGRADED = "degraded"
    UNAVAILABLE = "unavailable"
    UNKNOWN = "unknown"


class Severity(str, Enum):
    """Severity levels."""
    CRITICAL = "critical"  # Reconciliation cannot make progress
    WARNING = "warning"    # Fallback available
    INFO = "info"          # Log only


# Service configuration: name -> (default severity, description)
SERVICE_CONFIG = {
    "ghl_search": (Severity.WARNING, "GHL contact search"),
    "ghl_create": (Severity.CRITICAL, "GHL contact creation"),
    "ghl_tags": (Severity.CRITICAL, "GHL contact tagging"),
    "ghl_workflow": (Severity.INFO, "GHL workflow enrollment"),
    "database": (Severity.CRITICAL, "Local SQLite database"),
}


@dataclass
class ServiceState:
    """Current state of a service."""
    status: ServiceStatus = ServiceStatus.UNKNOWN
    last_check: Optional[datetime] = None
    last_healthy: Optional[datetime] = None
    last_failed: Optional[datetime] = None
    failure_count: int = 0
    consecutive_failures: int = 0
    last_error: Optional[str] = None
    using_fallback: bool = False
    fallback_name: Optional[str] = None


@dataclass
class DegradationEvent:
    """Record of a degradation event (fallback used)."""
    timestamp: datetime
    service: str
    operation: str
    fallback_used: str
    original_error: Optional[str] = None


class ServiceHealthRegistry:
    """
    Registry tracking health of remote and local dependencies.

    Thread-safe. Maintains:
    - Current status of each service
    - Recent degradation events (last 24h)
    - Critical issues requiring attention
    """

    def __init__(self):
        self._states: dict[str, ServiceState] = {}
        self._degradation_events: list[DegradationEvent] = []
        self._state_lock = threading.Lock()
        self._event_lock = threading.Lock()

        for service in SERVICE_CONFIG:
            self._states[service] = ServiceState()

    def mark_healthy(self, service: str) -> None:
        """
        Mark a service as healthy.

        Resets consecutive failure count and updates timestamps.
        """
        with self._state_lock:
            if service not in self._states:
                self._states[service] = ServiceState()

            state = self._states[service]
            now = datetime.now(timezone.utc)

            was_unhealthy = state.status in (ServiceStatus.UNAVAILABLE, ServiceStatus.DEGRADED)

            state.status = ServiceStatus.HEALTHY
            state.last_check = now
            state.last_healthy = now
            state.consecutive_failures = 0
            state.using_fallback = False
            state.fallback_name = None

            if was_unhealthy:
                logger.info(f"Service recovered: {service}")

    def mark_failed(
        self,
        service: str,
        error: str,
        severity: Optional[Severity] = None,
    ) -> None:
        """Mark a service as unavailable and bump its failure counters."""
        now = datetime.now(timezone.utc)

        with self._state_lock:
            if service not in self._states:
                self._states[service] = ServiceState()

            state = self._states[service]
            was_healthy = state.status in (ServiceStatus.HEALTHY, ServiceStatus.UNKNOWN)

            state.status = ServiceStatus.UNAVAILABLE
            state.last_check = now
            state.last_failed = now
            state.failure_count += 1
            state.consecutive_failures += 1
            state.last_error = error[:500] if error else None

            if severity is None:
                severity = SERVICE_CONFIG.get(service, (Severity.WARNING, ""))[0]

            if was_healthy or state.consecutive_failures == 1:
                log = logger.error if severity == Severity.CRITICAL else logger.warning
                log(f"Service failed: {service} - {(error or '')[:100]}")

    def mark_degraded(
        self,
        service: str,
        fallback_name: str,
    ) -> None:
        """Mark a service as degraded (using fallback)."""
        with self._state_lock:
            if service not in self._states:
                self._states[service] = ServiceState()

            state = self._states[service]
            state.status = ServiceStatus.DEGRADED
            state.last_check = datetime.now(timezone.utc)
            state.using_fallback = True
            state.fallback_name = fallback_name

    def record_degradation(
        self,
        service: str,
        operation: str,
        fallback_used: str,
        original_error: Optional[str] = None,
    ) -> None:
        """Record a degradation event (fallback was used)."""
        event = DegradationEvent(
            timestamp=datetime.now(timezone.utc),
            service=service,
            operation=operation,
            fallback_used=fallback_used,
            original_error=original_error[:200] if original_error else None,
        )

        with self._event_lock:
            self._degradation_events.append(event)
            # Auto-cleanup old events (> 24h)
            cutoff = datetime.now(timezone.utc) - timedelta(hours=24)
            self._degradation_events = [
                e for e in self._degradation_events if e.timestamp > cutoff
            ]

        self.mark_degraded(service, fallback_used)

        logger.info(
            f"Degradation: {service}/{operation} -> {fallback_used}"
            + (f" (error: {original_error[:50]})" if original_error else "")
        )

    def get_state(self, service: str) -> Optional[ServiceState]:
        """Get current state of a service."""
        with self._state_lock:
            return self._states.get(service)

    def get_degradation_events(self, hours: int = 24) -> list[DegradationEvent]:
        """Get degradation events from the last N hours."""
        cutoff = datetime.now(timezone.utc) - timedelta(hours=hours)
        with self._event_lock:
            return [e for e in self._degradation_events if e.timestamp > cutoff]

    def get_critical_issues(self) -> list[tuple[str, str]]:
        """Get list of critical issues requiring attention."""
        issues = []
        with self._state_lock:
            for service, state in self._states.items():
                severity = SERVICE_CONFIG.get(service, (Severity.WARNING, ""))[0]
                if severity == Severity.CRITICAL and state.status == ServiceStatus.UNAVAILABLE:
                    issues.append((service, state.last_error or "Unknown error"))
        return issues

    def get_summary(self) -> dict:
        """
        Get summary of all service health for /health/services endpoint.

        Returns dict with:
        - overall_status: healthy/degraded/critical
        - services: dict of service -> status info
        - degradation_events: recent fallback usage
        - critical_issues: services needing immediate attention
        """
        with self._state_lock:
            services = {}
            for service, config in SERVICE_CONFIG.items():
                state = self._states.get(service, ServiceState())
                severity, description = config

                services[service] = {
                    "status": state.status.value,
                    "description": description,
                    "severity": severity.value,
                    "last_check": state.last_check.isoformat() if state.last_check else None,
                    "last_error": state.last_error,
                    "failure_count": state.failure_count,
                    "consecutive_failures": state.consecutive_failures,
                    "using_fallback": state.using_fallback,
                    "fallback_name": state.fallback_name,
                }

        events = self.get_degradation_events(hours=24)
        event_summaries = [
            {
                "timestamp": e.timestamp.isoformat(),
                "service": e.service,
                "operation": e.operation,
                "fallback": e.fallback_used,
                "error": e.original_error,
            }
            for e in events[-20:]  # Last 20 events
        ]

        critical_issues = self.get_critical_issues()

        with self._state_lock:
            has_degraded = any(
                s.status == ServiceStatus.DEGRADED for s in self._states.values()
            )
            has_unavailable = any(
                s.status == ServiceStatus.UNAVAILABLE for s in self._states.values()
            )

        if critical_issues:
            overall = "critical"
        elif has_unavailable or has_degraded:
            overall = "degraded"
        else:
            overall = "healthy"

        return {
            "overall_status": overall,
            "services": services,
            "degradation_events": event_summaries,
            "degradation_count_24h": len(events),
            "critical_issues": [
                {"service": svc, "error": err} for svc, err in critical_issues
            ],
            "checked_at": datetime.now(timezone.utc).isoformat(),
        }


# Module-level singleton accessor
_registry: Optional[ServiceHealthRegistry] = None
_registry_lock = threading.Lock()


def get_service_health() -> ServiceHealthRegistry:
    """Get the service health registry singleton."""
    global _registry
    if _registry is None:
        with _registry_lock:
            if _registry is None:
                _registry = ServiceHealthRegistry()
    return _registry


def reset_service_health() -> None:
    """Drop the registry singleton (tests)."""
    global _registry
    _registry = None


# Convenience functions for common operations

def record_degradation(
    service: str,
    operation: str,
    fallback_used: str,
    original_error: Optional[str] = None,
) -> None:
    """Record a degradation event (convenience wrapper)."""
    get_service_health().record_degradation(service, operation, fallback_used, original_error)


def mark_service_healthy(service: str) -> None:
    """Mark a service as healthy (convenience wrapper)."""
    get_service_health().mark_healthy(service)


def mark_service_failed(
    service: str,
    error: str,
    severity: Optional[Severity] = None,
) -> None:
    """Mark a service as failed (convenience wrapper)."""
    get_service_health().mark_failed(service, error, severity)
