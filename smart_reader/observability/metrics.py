"""
Prometheus Metrics - Reading session metrics

Counts AI requests, ingestions and playback corrections.
"""

from prometheus_client import Counter, Gauge, Histogram, Info


# ─────────────────────────────────────────────
# AI METRICS
# ─────────────────────────────────────────────

AI_REQUEST_COUNT = Counter(
    'reader_ai_request_total',
    'Total number of AI collaborator calls',
    ['kind', 'status']  # kind: translation, summary, ...; status: success, degraded
)

AI_REQUEST_LATENCY = Histogram(
    'reader_ai_request_latency_seconds',
    'AI collaborator call latency in seconds',
    ['kind'],
    buckets=[0.25, 0.5, 1.0, 2.0, 5.0, 10.0, 30.0, 60.0]
)

SINGLE_FLIGHT_JOINS = Counter(
    'reader_single_flight_joins_total',
    'Requests that attached to an in-flight AI call instead of issuing one',
    ['kind']
)

AI_CACHE_HITS = Counter(
    'reader_ai_cache_hits_total',
    'Requests served from a cached AI artifact',
    ['kind']
)

# ─────────────────────────────────────────────
# LIBRARY METRICS
# ─────────────────────────────────────────────

INGESTION_COUNT = Counter(
    'reader_ingestion_total',
    'Total number of ingestion attempts',
    ['status']  # success, error
)

EXTRACTION_PAGES = Histogram(
    'reader_extraction_pages',
    'Pages per extracted document',
    buckets=[1, 5, 10, 25, 50, 100, 250, 500, 1000]
)

DOCUMENT_COUNT = Gauge(
    'reader_document_count',
    'Number of documents in the library'
)

# ─────────────────────────────────────────────
# PLAYBACK METRICS
# ─────────────────────────────────────────────

PLAYBACK_CORRECTIONS = Counter(
    'reader_playback_corrections_total',
    'State corrections made by speech engine reconciliation',
    ['reason']  # engine_silent, engine_speaking
)

# System info
SYSTEM_INFO = Info(
    'reader_system',
    'Reading session engine information'
)


def setup_metrics(environment: str = "development"):
    """Initialize metrics with default values"""
    SYSTEM_INFO.info({
        'version': '1.0.0',
        'environment': environment,
        'llm_provider': 'groq',
        'storage': 'sqlite',
    })


def record_ai_latency(kind: str, latency_seconds: float):
    """Record AI call latency"""
    AI_REQUEST_LATENCY.labels(kind=kind).observe(latency_seconds)
