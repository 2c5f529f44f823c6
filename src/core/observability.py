"""OpenTelemetry tracing, exported to Azure Monitor when enabled.

Call configure_observability() before FastAPI and httpx are imported so
their auto-instrumentation sees every request and provider call.

Spans carry sizes and counts only (input length, delta count, annotation
count). Submitted text, model output and suggestions never become span
attributes; link traces to logs through the correlation id instead.

Production setup: set ENABLE_OBSERVABILITY=true and
APPLICATIONINSIGHTS_CONNECTION_STRING, and install the ``observability``
extra (azure-monitor-opentelemetry).
"""

from __future__ import annotations

import logging
import os
from functools import lru_cache

from opentelemetry import trace


logger = logging.getLogger(__name__)

_ENV_ENABLE_OBSERVABILITY = "ENABLE_OBSERVABILITY"
_ENV_APP_INSIGHTS_CONN_STRING = "APPLICATIONINSIGHTS_CONNECTION_STRING"
_ENV_OTEL_SERVICE_NAME = "OTEL_SERVICE_NAME"
_TRUTHY = {"true", "1", "yes", "on"}

_DEFAULT_SERVICE_NAME = "corrector-backend"

# Health checks would otherwise dominate the trace volume
EXCLUDED_URLS = "health,health/,favicon.ico"


def _is_observability_enabled() -> bool:
    return os.getenv(_ENV_ENABLE_OBSERVABILITY, "false").lower() in _TRUTHY


def _get_connection_string() -> str | None:
    return os.getenv(_ENV_APP_INSIGHTS_CONN_STRING)


@lru_cache
def configure_observability() -> bool:
    """Install the Azure Monitor exporter once per process.

    Returns True only when tracing is enabled, a connection string is set
    and the exporter package configured successfully.
    """
    if not _is_observability_enabled():
        logger.info("Tracing export disabled (%s is not set)", _ENV_ENABLE_OBSERVABILITY)
        return False

    connection_string = _get_connection_string()
    if not connection_string:
        logger.warning(
            "%s is enabled but %s is missing; tracing export skipped",
            _ENV_ENABLE_OBSERVABILITY,
            _ENV_APP_INSIGHTS_CONN_STRING,
        )
        return False

    try:
        # Optional extra, imported only when export is requested
        from azure.monitor.opentelemetry import configure_azure_monitor
    except ImportError:
        logger.warning(
            "Tracing export requested but azure-monitor-opentelemetry is not "
            "installed; install corrector-backend[observability]"
        )
        return False

    service_name = os.getenv(_ENV_OTEL_SERVICE_NAME, _DEFAULT_SERVICE_NAME)
    os.environ.setdefault(_ENV_OTEL_SERVICE_NAME, service_name)
    os.environ.setdefault("OTEL_PYTHON_FASTAPI_EXCLUDED_URLS", EXCLUDED_URLS)

    try:
        configure_azure_monitor(connection_string=connection_string)
    except Exception:
        logger.exception("Azure Monitor exporter setup failed")
        return False

    logger.info("Tracing exported to Azure Monitor as '%s'", service_name)
    return True


def get_tracer(name: str) -> trace.Tracer:
    """Return a tracer; a no-op one when no SDK has been configured.

    Example:
        with get_tracer(__name__).start_as_current_span("relay.session") as span:
            span.set_attribute("relay.input_chars", len(source_text))
    """
    return trace.get_tracer(name)
