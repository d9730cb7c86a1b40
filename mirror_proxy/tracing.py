from typing import Sequence

from opentelemetry.sdk.trace import ReadableSpan
from opentelemetry.sdk.trace.export import SpanExporter, SpanExportResult

RELAY_CHUNK_EVENT = "http.response.body"


def is_relay_chunk_span(span: ReadableSpan) -> bool:
    """True for the ASGI send span emitted once per relayed body chunk."""
    return bool(span.attributes) and span.attributes.get("asgi.event.type") == RELAY_CHUNK_EVENT


class RelayChunkFilteringExporter(SpanExporter):
    """
    Drops per-chunk send spans before export.

    Streamed upstream bodies are relayed chunk by chunk, so a single large
    download would otherwise flood the collector with one span per chunk.
    The ``proxy_request`` span and the request-level ASGI spans still go out.
    """

    def __init__(self, exporter: SpanExporter):
        self.exporter = exporter

    def export(self, spans: Sequence[ReadableSpan]) -> SpanExportResult:
        kept = [span for span in spans if not is_relay_chunk_span(span)]
        if not kept:
            return SpanExportResult.SUCCESS
        return self.exporter.export(kept)

    def shutdown(self) -> None:
        self.exporter.shutdown()

    def force_flush(self, timeout_millis: int = 30000) -> bool:
        return self.exporter.force_flush(timeout_millis)
