# src/rtlsim_core/tracing/__init__.py
from .tracer import TracePoint, WaveformTracer

__all__ = [
    "TracePoint",
    "WaveformTracer",
]
