"""Prometheus metrics for the AdvisorHub service.

Business metrics: trades, lead pipeline, outbound messages
System metrics: HTTP traffic, circuit breakers
"""

from prometheus_client import Counter, Histogram, Gauge, Info

# ── Business Metrics ─────────────────────────────────────────

TRADES_CREATED = Counter(
    "advisorhub_trades_created_total",
    "Trade recommendations created",
    ["segment", "trade_type"],
)

TRADES_EXITED = Counter(
    "advisorhub_trades_exited_total",
    "Trade recommendations exited",
    ["segment", "outcome"],
)

LEAD_TRANSITIONS = Counter(
    "advisorhub_lead_transitions_total",
    "Lead stage transitions",
    ["from_stage", "to_stage"],
)

LEADS_IMPORTED = Counter(
    "advisorhub_leads_imported_total",
    "Leads inserted by CSV import",
)

CLIENTS_IMPORTED = Counter(
    "advisorhub_clients_imported_total",
    "Clients inserted by CSV import",
)

EMAILS_SENT = Counter(
    "advisorhub_emails_total",
    "Trade emails attempted",
    ["status"],
)

WHATSAPP_MESSAGES = Counter(
    "advisorhub_whatsapp_messages_total",
    "WhatsApp gateway messages attempted",
    ["status"],
)

WHATSAPP_LATENCY = Histogram(
    "advisorhub_whatsapp_latency_seconds",
    "WhatsApp gateway request latency",
    buckets=[0.05, 0.1, 0.25, 0.5, 1.0, 2.5, 5.0, 10.0],
)

# ── System Metrics ───────────────────────────────────────────

HTTP_REQUESTS = Counter(
    "advisorhub_http_requests_total",
    "Total HTTP requests to the API",
    ["method", "path", "status_code"],
)

HTTP_REQUEST_DURATION = Histogram(
    "advisorhub_http_request_duration_seconds",
    "HTTP request duration",
    ["method", "path"],
    buckets=[0.01, 0.05, 0.1, 0.25, 0.5, 1.0, 2.5],
)

CIRCUIT_BREAKER_STATE = Gauge(
    "advisorhub_circuit_breaker_state",
    "Circuit breaker state (0=closed, 1=open, 2=half_open)",
    ["name"],
)

APP_INFO = Info("advisorhub_app", "AdvisorHub application info")
