"""Logger built on logfire with composable output sinks."""

from __future__ import annotations

import contextlib
import os
from abc import abstractmethod
from datetime import UTC, datetime
from pathlib import Path
from typing import Any

from opentelemetry.proto.logs.v1 import logs_pb2
from opentelemetry.sdk.trace import ReadableSpan
from opentelemetry.sdk.trace.export import SpanExporter, SpanExportResult
from pydantic import Field, PrivateAttr, model_validator

from mergeflow.core.base import BaseConfig

_current_logger: Logger | None = None


class _LoggerProxy:
    """Forwards attribute access to the configured Logger.

    Before setup_logger() runs, every method is a no-op. The no-op
    returns a null context so ``with logger.span(...)`` also works
    when the engine is embedded without logging configured.
    """

    def __getattr__(self, name):
        if _current_logger is None:
            def _noop(*args, **kwargs):  # noqa: ARG001
                return contextlib.nullcontext()
            return _noop
        return getattr(_current_logger, name)

    def __enter__(self):
        if _current_logger is None:
            return self
        return _current_logger.__enter__()

    def __exit__(self, *args):
        if _current_logger is None:
            return False
        return _current_logger.__exit__(*args)


# Imported everywhere as ``from mergeflow.core.log import logger``
logger = _LoggerProxy()


# Level names mapped to OpenTelemetry severity numbers
LEVELS = {
    'spew': logs_pb2.SEVERITY_NUMBER_TRACE,
    'trace': logs_pb2.SEVERITY_NUMBER_TRACE3,
    'debug': logs_pb2.SEVERITY_NUMBER_DEBUG,
    'info': logs_pb2.SEVERITY_NUMBER_INFO,
    'warn': logs_pb2.SEVERITY_NUMBER_WARN,
    'error': logs_pb2.SEVERITY_NUMBER_ERROR,
    'fatal': logs_pb2.SEVERITY_NUMBER_FATAL,
}


def level_name(level_num: int) -> str:
    """Most severe level name whose threshold level_num reaches."""
    for name in ('fatal', 'error', 'warn', 'info', 'debug', 'trace', 'spew'):
        if level_num >= LEVELS[name]:
            return name
    return "unknown"


class LevelFilteringExporter(SpanExporter):
    """Forwards only spans at or above a minimum level."""

    def __init__(self, exporter: SpanExporter, min_level: str | None):
        self._exporter = exporter
        self._min_severity = LEVELS.get(
            (min_level or 'info').lower(), logs_pb2.SEVERITY_NUMBER_INFO
        )

    def export(self, spans: list[ReadableSpan]) -> SpanExportResult:
        filtered = [
            span for span in spans
            if (span.attributes or {}).get(
                'logfire.level_num', logs_pb2.SEVERITY_NUMBER_INFO
            ) >= self._min_severity
        ]
        if filtered:
            return self._exporter.export(filtered)
        return SpanExportResult.SUCCESS

    def shutdown(self) -> None:
        self._exporter.shutdown()

    def force_flush(self, timeout_millis: int = 30000) -> bool:
        return self._exporter.force_flush(timeout_millis)


# Span attributes that are plumbing rather than caller context
_INTERNAL_ATTRIBUTES = {
    'code.filepath', 'code.lineno', 'code.function',
    'logfire.msg', 'logfire.level_num', 'logfire.span_type',
    'logfire.msg_template', 'logfire.json_schema',
}
_INTERNAL_PREFIXES = ('otel.', 'telemetry.', 'service.', 'process.')


class Sink(BaseConfig):
    """One log destination.

    Sinks are config models, so closing the Logger cascades into
    every sink's close().
    """

    enabled: bool = Field(default=True, description="Enable this sink")
    level: str | None = Field(
        default=None,
        description=(
            "Log level for this sink. If None, inherits from "
            "Logger.level. Valid: spew, trace, debug, info, warn, "
            "error, fatal"
        )
    )
    escape_special_characters: bool = Field(
        default=False,
        description="Escape newlines/tabs in output"
    )
    format_template: str | None = Field(
        default=None,
        description=(
            "Format template with {timestamp}, {level}, {message}, "
            "{location}, {function}. None writes span JSON."
        )
    )

    _processor: Any = PrivateAttr(default=None)

    def _format_span(self, span) -> str:
        if not self.format_template:
            return span.to_json() + os.linesep

        attrs = span.attributes or {}
        filepath = attrs.get("code.filepath", "")
        message = attrs.get("logfire.msg", span.name)
        if self.escape_special_characters:
            message = (message
                .replace('\\', '\\\\')
                .replace('\n', '\\n')
                .replace('\r', '\\r')
                .replace('\t', '\\t')
            )

        try:
            formatted = self.format_template.format(
                timestamp=datetime.fromtimestamp(
                    span.start_time / 1e9, tz=UTC
                ),
                level=level_name(attrs.get(
                    "logfire.level_num", logs_pb2.SEVERITY_NUMBER_INFO
                )),
                message=message,
                location=(
                    f"{filepath}:{attrs.get('code.lineno', '')}"
                    if filepath else ""
                ),
                function=attrs.get("code.function", ""),
            )
        except KeyError as e:
            return f"ERROR: Invalid template field {e}\n"

        extra = {
            key: value for key, value in attrs.items()
            if key not in _INTERNAL_ATTRIBUTES
            and not key.startswith(_INTERNAL_PREFIXES)
        }
        if extra:
            formatted += " │ " + ' '.join(
                f"{k}={v!r}" for k, v in sorted(extra.items())
            )
        return formatted + '\n'

    @abstractmethod
    def create_processor(self, log_root: Path, session_name: str):
        """Return an OpenTelemetry span processor, or None when the
        sink is configured through logfire.configure() itself."""

    def close(self):
        if self._processor:
            with contextlib.suppress(Exception):
                self._processor.shutdown()


class ConsoleSink(Sink):
    """Console output through logfire's console exporter."""

    verbose: bool = Field(
        default=False,
        description="Show full span details"
    )
    colors: str = Field(
        default="auto",
        description="Color mode: auto, always, never"
    )

    def create_processor(self, log_root: Path, session_name: str):
        return None


class OTLPSink(Sink):
    """Export spans over OTLP gRPC (SigNoz, Jaeger, a collector)."""

    enabled: bool = Field(
        default=False,
        description="Enable OTLP export"
    )
    endpoint: str = Field(
        default="http://localhost:4317",
        description="OTLP gRPC endpoint"
    )
    insecure: bool = Field(
        default=True,
        description="Use insecure connection (no TLS)"
    )
    headers: dict[str, str] = Field(
        default_factory=dict,
        description="Optional headers for authentication"
    )

    def create_processor(self, log_root: Path, session_name: str):
        from opentelemetry.exporter.otlp.proto.grpc.trace_exporter import (
            OTLPSpanExporter,
        )
        from opentelemetry.sdk.trace.export import BatchSpanProcessor

        exporter = OTLPSpanExporter(
            endpoint=self.endpoint,
            insecure=self.insecure,
            headers=self.headers or None,
        )
        return BatchSpanProcessor(LevelFilteringExporter(exporter, self.level))


class FileSink(Sink):
    """Append formatted spans to a log file."""

    enabled: bool = Field(
        default=False,
        description="Enable file logging"
    )
    path: str = Field(
        default="{log_root}/{session_name}/mergeflow.log",
        description="Log file path template"
    )

    _file: Any = PrivateAttr(default=None)

    def create_processor(self, log_root: Path, session_name: str):
        from opentelemetry.sdk.trace.export import (
            BatchSpanProcessor,
            ConsoleSpanExporter,
        )

        log_path = Path(
            self.path.format(log_root=log_root, session_name=session_name)
        )
        log_path.parent.mkdir(parents=True, exist_ok=True)

        # Line buffered
        self._file = open(log_path, "a", buffering=1, encoding="utf-8")  # noqa: SIM115

        exporter = ConsoleSpanExporter(
            out=self._file,
            formatter=self._format_span
        )
        return BatchSpanProcessor(LevelFilteringExporter(exporter, self.level))

    def close(self):
        # Processor first: it flushes pending spans into the file
        super().close()
        if self._file and not self._file.closed:
            with contextlib.suppress(OSError):
                self._file.close()


class LogfireSink(Sink):
    """Logfire.dev cloud sink."""

    enabled: bool = Field(
        default=False,
        description="Send telemetry to logfire.dev cloud"
    )
    token: str | None = Field(
        default=None,
        description="API token (or use LOGFIRE_TOKEN env var)"
    )

    def create_processor(self, log_root: Path, session_name: str):
        return None


class Logger(BaseConfig):
    """Logger with composable output sinks.

    Closing the logger closes every sink through the BaseCloseable
    cascade.
    """

    level: str = Field(
        default="info",
        description=(
            "Default log level for all sinks. Individual sinks can "
            "override. Valid: spew, trace, debug, info, warn, error, "
            "fatal"
        )
    )
    console: ConsoleSink = Field(
        default_factory=ConsoleSink,
        description="Console output configuration"
    )
    otlp: OTLPSink = Field(
        default_factory=OTLPSink,
        description="OTLP export configuration"
    )
    file: FileSink = Field(
        default_factory=FileSink,
        description="File logging configuration"
    )
    logfire: LogfireSink = Field(
        default_factory=LogfireSink,
        description="Logfire.dev cloud configuration"
    )

    @model_validator(mode='after')
    def _cascade_level_to_sinks(self) -> Logger:
        for sink in (self.console, self.otlp, self.file):
            if sink.level is None:
                sink.level = self.level
        return self

    def setup(self, log_root: Path, session_name: str):
        """Create sink processors and configure logfire.

        Args:
            log_root: Root directory for log files
            session_name: Name of this resolution session (used in
                file paths and the service name)
        """
        import logfire
        from logfire import ConsoleOptions

        for sink in (self.console, self.otlp, self.file, self.logfire):
            if sink.enabled:
                sink._processor = sink.create_processor(log_root, session_name)

        processors = [
            sink._processor
            for sink in (self.otlp, self.file)
            if sink.enabled and sink._processor
        ]

        console_config = (
            ConsoleOptions(
                min_log_level=self.console.level,
                verbose=self.console.verbose,
                colors=self.console.colors,
                include_timestamps=True,
            )
            if self.console.enabled
            else False
        )

        logfire.configure(
            service_name=f"mergeflow-{session_name}",
            send_to_logfire=self.logfire.enabled,
            token=self.logfire.token if self.logfire.enabled else None,
            console=console_config,
            additional_span_processors=processors or None,
        )

    def info(self, msg: str, **kwargs):
        import logfire
        logfire.info(msg, **kwargs)

    def debug(self, msg: str, **kwargs):
        import logfire
        logfire.debug(msg, **kwargs)

    def trace(self, msg: str, **kwargs):
        import logfire
        logfire.log(
            level=LEVELS['trace'],
            msg_template=msg,
            attributes=kwargs or None
        )

    def spew(self, msg: str, **kwargs):
        """Below trace: subprocess plumbing and other noise."""
        import logfire
        logfire.log(
            level=LEVELS['spew'],
            msg_template=msg,
            attributes=kwargs or None
        )

    def warn(self, msg: str, **kwargs):
        import logfire
        logfire.warn(msg, **kwargs)

    warning = warn

    def error(self, msg: str, **kwargs):
        import logfire
        logfire.error(msg, **kwargs)

    def span(self, msg: str, **kwargs):
        """Span context manager around a multi-step operation.

        Usage:
            with logger.span("Resolving hunk", path=path):
                ...
        """
        import logfire
        return logfire.span(msg, **kwargs)

    def __getattr__(self, name):
        import logfire
        return getattr(logfire, name)


def setup_logger(
    log_root: Path,
    session_name: str,
    console: ConsoleSink | None = None,
    otlp: OTLPSink | None = None,
    file: FileSink | None = None,
    logfire: LogfireSink | None = None,
    level: str = "info",
) -> Logger:
    """Initialize the global logger singleton.

    Called by Config once settings are loaded; tests call it
    directly with console-only sinks.

    Returns:
        Logger: The initialized global logger instance
    """
    global _current_logger

    if _current_logger is not None:
        _current_logger.close()

    _current_logger = Logger(
        level=level,
        console=console or ConsoleSink(),
        otlp=otlp or OTLPSink(),
        file=file or FileSink(),
        logfire=logfire or LogfireSink(),
    )
    _current_logger.setup(log_root, session_name)
    return _current_logger
