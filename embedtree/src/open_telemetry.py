import logging
import sys
import time
import uuid
from contextlib import asynccontextmanager, contextmanager
from types import SimpleNamespace

# OpenTelemetry imports
from opentelemetry import metrics, trace
from opentelemetry.exporter.otlp.proto.grpc.metric_exporter import OTLPMetricExporter
from opentelemetry.exporter.otlp.proto.grpc.trace_exporter import OTLPSpanExporter
from opentelemetry.sdk.metrics import MeterProvider
from opentelemetry.sdk.metrics.export import PeriodicExportingMetricReader
from opentelemetry.sdk.resources import Resource
from opentelemetry.sdk.trace import TracerProvider
from opentelemetry.sdk.trace.export import BatchSpanProcessor
from opentelemetry.trace import SpanKind, Status, StatusCode

# OpenTelemetry logging imports
from opentelemetry._logs import set_logger_provider
from opentelemetry.exporter.otlp.proto.grpc._log_exporter import OTLPLogExporter
from opentelemetry.sdk._logs import LoggerProvider, LoggingHandler
from opentelemetry.sdk._logs.export import BatchLogRecordProcessor

# JSON logging for OpenTelemetry
from pythonjsonlogger import jsonlogger

logger = logging.getLogger(__name__)

METER_NAME = "embedtree_metrics"
TRACER_NAME = "embedtree_tracer"

# Discord calls are usually fast; the upper buckets catch rate limited retries
SYNC_LATENCY_BUCKETS = [10.0, 25.0, 50.0, 100.0, 250.0, 500.0, 1000.0, 2500.0, 5000.0, 10000.0, 30000.0]


def _docker_container_id() -> str | None:
    try:
        with open('/proc/self/cgroup', 'r') as f:
            for line in f:
                if '/docker/' in line:
                    return line.strip().split('/')[-1][:12]
    except OSError:
        pass
    return None


def _hostname_container_id() -> str | None:
    try:
        with open('/etc/hostname', 'r') as f:
            hostname = f.read().strip()
    except OSError:
        return None
    if len(hostname) == 12 and all(c in '0123456789abcdef' for c in hostname):
        return hostname
    return None


class Telemetry:
    """OTLP metrics, traces and logs for the renderer process."""

    def __init__(self, service_name, endpoint):
        self.service_name = service_name
        self.endpoint = endpoint

        self.resource = Resource.create({
            "service.name": self.service_name,
            "service.instance.id": self.get_container_id(),
        })

        self.setup_logging()
        self.metrics = self.setup_metrics()
        self.tracer = self.setup_tracing()

    def get_container_id(self):
        """Docker container ID when running in one, otherwise a random ID"""
        return _docker_container_id() or _hostname_container_id() or uuid.uuid4().hex[:12]

    def setup_logging(self):
        """Log to stdout and ship JSON log records to the collector."""
        root_logger = logging.getLogger()
        root_logger.setLevel(logging.INFO)

        console = logging.StreamHandler(sys.stdout)
        console.setFormatter(logging.Formatter('[%(name)s] %(message)s'))
        root_logger.addHandler(console)

        provider = LoggerProvider(resource=self.resource)
        provider.add_log_record_processor(
            BatchLogRecordProcessor(OTLPLogExporter(endpoint=self.endpoint, insecure=True))
        )
        set_logger_provider(provider)

        exported = LoggingHandler(level=logging.NOTSET, logger_provider=provider)
        exported.setFormatter(jsonlogger.JsonFormatter())
        root_logger.addHandler(exported)

        logger.info(f"Logging for {self.service_name} exported to {self.endpoint}")

    def setup_metrics(self):
        """Counters and histograms describing rendering and Discord synchronization"""
        reader = PeriodicExportingMetricReader(
            exporter=OTLPMetricExporter(endpoint=self.endpoint, insecure=True),
            export_interval_millis=15000,
        )
        metrics.set_meter_provider(MeterProvider(metric_readers=[reader], resource=self.resource))
        meter = metrics.get_meter(METER_NAME)

        def timer():
            started = time.monotonic()
            return lambda: (time.monotonic() - started) * 1000.0

        instruments = SimpleNamespace(
            render_changes=meter.create_counter(
                name="render_changes_total",
                description="Commits that changed a rendered message",
                unit="1",
            ),
            sync_operations=meter.create_counter(
                name="sync_operations_total",
                description="Discord calls made to keep messages in sync, by operation and outcome",
                unit="1",
            ),
            sync_latency=meter.create_histogram(
                name="sync_latency",
                description="Latency of Discord synchronization calls",
                unit="ms",
                explicit_bucket_boundaries_advisory=SYNC_LATENCY_BUCKETS,
            ),
            timer=timer,
        )
        logger.info(f"Metrics meter {METER_NAME} exporting to {self.endpoint}")
        return instruments

    def setup_tracing(self):
        provider = TracerProvider(resource=self.resource)
        provider.add_span_processor(BatchSpanProcessor(OTLPSpanExporter(endpoint=self.endpoint, insecure=True)))
        trace.set_tracer_provider(provider)

        logger.info(f"Tracer {TRACER_NAME} exporting to {self.endpoint}")
        return trace.get_tracer(TRACER_NAME)

    @contextmanager
    def _active_span(self, name, kind, attributes):
        span = self.tracer.start_span(name, kind=kind, attributes=attributes or {})
        with trace.use_span(span, end_on_exit=True, record_exception=False, set_status_on_exception=False):
            try:
                yield span
            except Exception as e:
                span.set_status(Status(StatusCode.ERROR))
                span.record_exception(e)
                raise
            span.set_status(Status(StatusCode.OK))

    @contextmanager
    def create_span(self, name, kind=SpanKind.INTERNAL, attributes=None):
        """Trace a block of synchronous code"""
        with self._active_span(name, kind, attributes) as span:
            yield span

    @asynccontextmanager
    async def async_create_span(self, name, kind=SpanKind.INTERNAL, attributes=None):
        """Trace a block of async code"""
        with self._active_span(name, kind, attributes) as span:
            yield span

    def record_sync_operation(self, operation: str, outcome: str, elapsed_ms: float | None = None):
        """Count a Discord synchronization call and record its latency"""
        try:
            attributes = {"operation": operation, "outcome": outcome}
            self.metrics.sync_operations.add(1, attributes)
            if elapsed_ms is not None:
                self.metrics.sync_latency.record(elapsed_ms, attributes)
        except Exception as e:
            logger.error(f"Error recording sync operation: {e}", exc_info=True)

    def increment_render_changes(self):
        """Count a commit that changed a rendered message"""
        try:
            self.metrics.render_changes.add(1)
        except Exception as e:
            logger.error(f"Error recording render change: {e}", exc_info=True)
