from submittal_packet.telemetry.request_metrics import RequestMetrics
from submittal_packet.telemetry.tracing import generate_trace_id

__all__ = ["generate_trace_id", "RequestMetrics"]
