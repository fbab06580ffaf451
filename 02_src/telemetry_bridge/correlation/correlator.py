"""Cross-telemetry correlation: logs, traces, metrics and service relationships."""

import asyncio
from typing import Any

from ..dependencies import DependencyService
from ..errors import (
    ErrorResult,
    PartialResultWarning,
    TelemetryError,
    ValidationError,
    error_from_exception,
    is_error_result,
)
from ..logging_config import get_logger
from ..models import (
    CorrelationContext,
    CorrelationOptions,
    CorrelationResult,
    LogRecord,
    MetricRecord,
    Trace,
)
from ..search import ISpanRepository
from ..timerange import TimeRange
from ..traces import TraceAnalyzer

logger = get_logger(__name__)

BranchResult = tuple[dict[str, Any], list[PartialResultWarning]]


def _message(exc: BaseException) -> str:
    return exc.message if isinstance(exc, TelemetryError) else str(exc)


def _check_options(options: CorrelationOptions | None) -> CorrelationOptions:
    options = options or CorrelationOptions()
    if options.max_results < 1:
        raise ValidationError(
            "max_results must be at least 1", {"max_results": options.max_results}
        )
    return options


class TelemetryCorrelator:
    """Stitches logs, traces and metrics around a trace id or a service."""

    def __init__(
        self,
        repository: ISpanRepository,
        trace_analyzer: TraceAnalyzer | None = None,
        dependency_service: DependencyService | None = None,
    ):
        self._repository = repository
        self._analyzer = trace_analyzer or TraceAnalyzer(repository)
        self._dependencies = dependency_service or DependencyService(repository)

    async def _logs_for_trace(
        self, trace: Trace, time_range: TimeRange, options: CorrelationOptions
    ) -> list[LogRecord]:
        span_ids = [s.span_id for s in trace.spans]
        return await self._repository.fetch_logs(
            time_range,
            trace_id=trace.trace_id,
            span_ids=span_ids,
            limit=options.max_results,
        )

    async def correlate_logs_with_trace(
        self,
        trace_id: str,
        time_range: TimeRange,
        options: CorrelationOptions | None = None,
    ) -> list[LogRecord] | ErrorResult:
        """Logs whose trace id or span id belongs to ``trace_id``.

        A trace that can't be analyzed is returned as its error result.
        """
        try:
            options = _check_options(options)
            trace = await self._analyzer.analyze_trace(trace_id)
            if is_error_result(trace):
                return trace
            return await self._logs_for_trace(trace, time_range, options)
        except TelemetryError as e:
            return e.to_result()
        except Exception as e:
            logger.exception("Unexpected error correlating logs with trace %s", trace_id)
            return error_from_exception(e)

    async def correlate_metrics_with_service(
        self,
        service: str,
        time_range: TimeRange,
        options: CorrelationOptions | None = None,
    ) -> list[MetricRecord] | ErrorResult:
        try:
            options = _check_options(options)
            return await self._repository.fetch_metrics(
                time_range, service, limit=options.max_results
            )
        except TelemetryError as e:
            return e.to_result()
        except Exception as e:
            logger.exception("Unexpected error correlating metrics with service %s", service)
            return error_from_exception(e)

    async def _trace_branch(
        self, trace_id: str, time_range: TimeRange, options: CorrelationOptions
    ) -> BranchResult:
        trace = await self._analyzer.analyze_trace(trace_id)
        if is_error_result(trace):
            return {}, [
                PartialResultWarning(field="traces", message=trace.message),
                PartialResultWarning(field="logs", message=trace.message),
            ]

        fields: dict[str, Any] = {"traces": [trace]}
        warnings: list[PartialResultWarning] = []
        try:
            fields["logs"] = await self._logs_for_trace(trace, time_range, options)
        except Exception as e:
            logger.warning(
                "Log correlation failed",
                extra={"context": {"trace_id": trace_id, "error": _message(e)}},
            )
            warnings.append(PartialResultWarning(field="logs", message=_message(e)))
        return fields, warnings

    async def _service_branch(
        self, service: str, time_range: TimeRange, options: CorrelationOptions
    ) -> BranchResult:
        metrics, relationships = await asyncio.gather(
            self._repository.fetch_metrics(time_range, service, limit=options.max_results),
            self._dependencies.service_dependencies(service, time_range),
            return_exceptions=True,
        )

        fields: dict[str, Any] = {}
        warnings: list[PartialResultWarning] = []
        for name, value in (("metrics", metrics), ("relationships", relationships)):
            if isinstance(value, BaseException):
                if not isinstance(value, Exception):
                    raise value
                warnings.append(PartialResultWarning(field=name, message=_message(value)))
            else:
                fields[name] = value
        return fields, warnings

    async def _resolve_trace_id(self, span_id: str) -> str | ErrorResult:
        context = await self._analyzer.span_lookup(span_id)
        if is_error_result(context):
            return context
        return context.span.trace_id

    async def correlate_across_telemetry(
        self,
        context: CorrelationContext,
        options: CorrelationOptions | None = None,
    ) -> CorrelationResult | ErrorResult:
        """Gather every signal applicable to ``context``.

        Logs and traces are fetched only for a trace (given directly or
        resolved from a span id); metrics and relationships only for a
        service. A failing sub-query leaves its field unset and adds a
        warning instead of failing the call.
        """
        try:
            options = _check_options(options)
        except ValidationError as e:
            return e.to_result()

        result = CorrelationResult()
        trace_id = context.trace_id
        if not trace_id and context.span_id:
            resolved = await self._resolve_trace_id(context.span_id)
            if is_error_result(resolved):
                result.warnings.append(
                    PartialResultWarning(field="traces", message=resolved.message)
                )
            else:
                trace_id = resolved

        branches = []
        if trace_id:
            branches.append(("traces", self._trace_branch(trace_id, context.time_range, options)))
        if context.service:
            branches.append(
                ("metrics", self._service_branch(context.service, context.time_range, options))
            )

        outcomes = await asyncio.gather(*(b for _, b in branches), return_exceptions=True)
        for (name, _), outcome in zip(branches, outcomes):
            if isinstance(outcome, BaseException):
                if not isinstance(outcome, Exception):
                    raise outcome
                logger.warning(
                    "Correlation branch failed",
                    extra={"context": {"branch": name, "error": _message(outcome)}},
                )
                result.warnings.append(PartialResultWarning(field=name, message=_message(outcome)))
                continue
            fields, warnings = outcome
            for key, value in fields.items():
                setattr(result, key, value)
            result.warnings.extend(warnings)

        if options.include_context:
            result.context = {
                "time_range": context.time_range.to_dict(),
                "trace_id": trace_id,
                "span_id": context.span_id,
                "service": context.service,
            }

        logger.info(
            "Correlated telemetry",
            extra={
                "context": {
                    "trace_id": trace_id,
                    "service": context.service,
                    "warnings": len(result.warnings),
                }
            },
        )
        return result
