"""
===============================================================================
ARCHIVO: crosscutting/metrics.py
===============================================================================

CRC CARD (Módulo)
-------------------------------------------------------------------------------
Nombre:
    Métricas (Prometheus) — Observabilidad del cliente

Responsabilidades:
    - Definir contadores Prometheus en un registry propio.
    - Proveer funciones pequeñas y estables para registrar eventos.
    - Cuidar cardinalidad (NO user_id, NO paths con IDs, NO tokens).

Colaboradores:
    - application.session: resultado de bootstrap.
    - application.route_guard: decisiones del guard.
    - application.notifications: fallas de mutaciones remotas.
    - infrastructure.http.retry: reintentos de lecturas idempotentes.
    - infrastructure.storage: registros corruptos en el durable store.

Decisiones de diseño:
    - Registro propio (no el global) para que tests y múltiples instancias
      no colisionen al registrar.
===============================================================================
"""

from __future__ import annotations

from prometheus_client import (
    CONTENT_TYPE_LATEST,
    CollectorRegistry,
    Counter,
    generate_latest,
)

_registry = CollectorRegistry()

_session_bootstrap_total = Counter(
    "storefront_session_bootstrap_total",
    "Session bootstrap outcomes",
    ["outcome"],
    registry=_registry,
)

_guard_decisions_total = Counter(
    "storefront_guard_decisions_total",
    "Route guard decisions",
    ["kind"],
    registry=_registry,
)

_api_retries_total = Counter(
    "storefront_api_retries_total",
    "Retries of idempotent API reads",
    ["operation"],
    registry=_registry,
)

_notification_mutation_failures_total = Counter(
    "storefront_notification_mutation_failures_total",
    "Remote notification mutations that failed after the optimistic update",
    ["operation"],
    registry=_registry,
)

_storage_corrupt_records_total = Counter(
    "storefront_storage_corrupt_records_total",
    "Durable records that could not be parsed and were reset",
    ["key"],
    registry=_registry,
)


def record_session_bootstrap(outcome: str) -> None:
    _session_bootstrap_total.labels(outcome=outcome).inc()


def record_guard_decision(kind: str) -> None:
    _guard_decisions_total.labels(kind=kind).inc()


def record_api_retry(operation: str) -> None:
    _api_retries_total.labels(operation=operation).inc()


def record_notification_mutation_failure(operation: str) -> None:
    _notification_mutation_failures_total.labels(operation=operation).inc()


def record_storage_corrupt_record(key: str) -> None:
    _storage_corrupt_records_total.labels(key=key).inc()


def get_sample_value(name: str, labels: dict[str, str]) -> float:
    """Valor actual de una serie (0.0 si no existe). Útil en tests."""
    value = _registry.get_sample_value(name, labels)
    return float(value) if value is not None else 0.0


def render_metrics() -> tuple[bytes, str]:
    """Serializa el registry en formato texto Prometheus."""
    return generate_latest(_registry), CONTENT_TYPE_LATEST
