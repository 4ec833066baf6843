"""
Hierarchical runtime tracing for the Sprout Measure pipeline.

Nested spans with timing, leveled events and named counters. Spans follow
the batch structure (image -> seed -> stage) so a trace reads like the
processing order.
"""

import functools
import hashlib
import json
import sys
import time
from collections import Counter
from contextlib import contextmanager
from datetime import datetime


class TracerConfig:
    """Output settings of the tracer."""

    def __init__(self):
        self.enabled = False
        self.level = "INFO"
        self.file_path = None
        self.json_output = False
        self._file_handle = None

    def configure(self, enabled=False, level="INFO", file_path=None, json_output=False):
        """Apply new settings, reopening the trace file if one is given."""
        self.close()
        self.enabled = enabled
        self.level = level.upper()
        self.file_path = file_path
        self.json_output = json_output
        if enabled and file_path:
            self._file_handle = open(file_path, "w", encoding="utf-8")

    def close(self):
        if self._file_handle:
            self._file_handle.close()
            self._file_handle = None


class Tracer:
    """
    Structured pipeline logger.

    Counters are tallied even while output is disabled so that data-quality
    totals (for example unassigned skeleton endpoints) are always available.
    """

    LEVELS = {"ERROR": 0, "WARN": 1, "INFO": 2, "DEBUG": 3}

    def __init__(self):
        self.config = TracerConfig()
        self.counters = Counter()
        self._span_stack = []

    @property
    def depth(self):
        return len(self._span_stack)

    def _should_log(self, level):
        if not self.config.enabled:
            return False
        return self.LEVELS.get(level, 2) <= self.LEVELS.get(self.config.level, 2)

    def _emit(self, line):
        print(line, file=sys.stderr)
        handle = self.config._file_handle
        if handle:
            handle.write(line + "\n")
            handle.flush()

    def _write(self, level, module, func, message, meta=None):
        if not self._should_log(level):
            return

        now = datetime.now()
        timestamp = f"{now:%H:%M:%S}.{now.microsecond // 1000:03d}"
        location = f"{module}:{func}" if func else module
        self._emit(f"{timestamp} {level:<5} {'  ' * self.depth}{location}  {message}")

        if self.config.json_output:
            self._emit(json.dumps({
                "timestamp": timestamp,
                "level": level,
                "depth": self.depth,
                "module": module,
                "function": func,
                "message": message,
                "meta": {k: summarize(v) for k, v in (meta or {}).items()},
            }))

    @contextmanager
    def span(self, name, module="", **meta):
        """
        Context manager for a traced span.

        Logs start and end with elapsed milliseconds. A failing span logs
        the exception type at ERROR level and re-raises.
        """
        if not self.config.enabled:
            yield
            return

        self._write("INFO", module, name, f"start {_format_meta(meta)}".strip())
        self._span_stack.append((name, module))
        start = time.perf_counter()
        try:
            yield
        except BaseException as e:
            self._span_stack.pop()
            elapsed = (time.perf_counter() - start) * 1000
            self._write("ERROR", module, name, f"failed dt={elapsed:.0f}ms error={type(e).__name__}: {str(e)[:100]}")
            raise
        self._span_stack.pop()
        elapsed = (time.perf_counter() - start) * 1000
        self._write("INFO", module, name, f"end ok dt={elapsed:.0f}ms")

    def event(self, message, level="INFO", **meta):
        """Log a one-off event within the current span."""
        if not self._should_log(level):
            return
        func, module = self._span_stack[-1] if self._span_stack else ("", "")
        self._write(level, module, func, f"{message} {_format_meta(meta)}".strip(), meta)

    def increment(self, name, amount=1):
        """Add to a named counter and return the new total."""
        self.counters[name] += amount
        return self.counters[name]

    def reset_counters(self):
        self.counters.clear()


def _format_meta(meta):
    return " ".join(f"{k}={summarize(v)}" for k, v in meta.items())


def _short_hash(data):
    return hashlib.md5(data).hexdigest()[:8]


def summarize(obj, max_len=200):
    """
    One-line description of a value for trace output, at most max_len chars.

    Masks and other arrays show dtype and shape, Regions their geometry,
    graphs their size. Unknown objects show only their type.
    """
    try:
        text = _describe(obj)
    except Exception:
        text = f"<{type(obj).__name__}>"
    return text if len(text) <= max_len else text[:max_len - 3] + "..."


def _describe(obj):
    import networkx as nx
    import numpy as np
    from pydantic import BaseModel

    name = type(obj).__name__

    if obj is None:
        return "None"
    if isinstance(obj, np.ndarray):
        # small arrays are hashed by content, large ones by shape only
        digest = _short_hash(obj.tobytes() if 0 < obj.size < 1000 else str(obj.shape).encode())
        return f"ndarray({obj.dtype},{'x'.join(map(str, obj.shape))},h={digest})"
    if isinstance(obj, nx.Graph):
        return f"{name}(nodes={obj.number_of_nodes()},edges={obj.number_of_edges()})"
    if isinstance(obj, BaseModel):
        if hasattr(obj, "bbox") and hasattr(obj, "area"):
            return f"{name}(label={obj.label},area={obj.area},bbox={list(obj.bbox)})"
        return f"{name}(fields={list(type(obj).model_fields)[:3]}...)"
    if isinstance(obj, str):
        return repr(obj) if len(obj) <= 50 else f"str(len={len(obj)},h={_short_hash(obj.encode())})"
    if isinstance(obj, (list, tuple)):
        first = f",first={type(obj[0]).__name__}" if obj else ""
        return f"{name}(len={len(obj)}{first})"
    if isinstance(obj, dict):
        return f"dict(len={len(obj)},keys=[{','.join(str(k) for k in list(obj)[:5])}])"
    if isinstance(obj, float):
        return f"{obj:.4g}"
    if isinstance(obj, (bool, int, np.integer, np.floating)):
        return str(obj)
    return f"<{name}>"


def trace(label=None):
    """Decorator running the wrapped function inside a span named label (or its name)."""
    def decorator(func):
        module = func.__module__.rsplit(".", 1)[-1] if func.__module__ else ""
        span_name = label or func.__name__

        @functools.wraps(func)
        def wrapper(*args, **kwargs):
            if not _tracer.config.enabled:
                return func(*args, **kwargs)
            with _tracer.span(span_name, module=module):
                return func(*args, **kwargs)

        return wrapper
    return decorator


_tracer = Tracer()


def get_tracer():
    """Get the global tracer instance."""
    return _tracer


def configure_tracer(enabled=False, level="INFO", file_path=None, json_output=False):
    """Configure the global tracer."""
    _tracer.config.configure(enabled=enabled, level=level, file_path=file_path, json_output=json_output)
