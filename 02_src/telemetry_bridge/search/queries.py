"""Query DSL builders for Elasticsearch/OpenSearch requests."""

from typing import Any, Iterable

from ..schema import FIELD_ALIASES, LogicalField
from ..timerange import TimeRange

SPAN_ERROR_STATUS_VALUES = ("ERROR", "Error", "error", "STATUS_CODE_ERROR", 2)

# Painless runtime fields for grouping error spans without an index mapping change.
ERROR_MESSAGE_SCRIPT = """
if (doc.containsKey('exception.message') && doc['exception.message'].size() > 0) {
  emit(doc['exception.message'].value);
} else if (doc.containsKey('exception.type') && doc['exception.type'].size() > 0) {
  emit(doc['exception.type'].value);
} else if (doc.containsKey('error.message') && doc['error.message'].size() > 0) {
  emit(doc['error.message'].value);
} else if (doc.containsKey('http.status_code') && doc['http.status_code'].size() > 0) {
  emit("HTTP " + doc['http.status_code'].value);
} else if (doc.containsKey('span.name') && doc['span.name'].size() > 0) {
  emit("Error in " + doc['span.name'].value);
} else {
  emit("Unknown error");
}
"""

SERVICE_NAME_SCRIPT = """
for (String f : params.fields) {
  if (doc.containsKey(f) && doc[f].size() > 0) {
    emit(doc[f].value);
    return;
  }
}
emit("unknown");
"""


def term(field: str, value: Any) -> dict[str, Any]:
    return {"term": {field: value}}


def terms(field: str, values: Iterable[Any]) -> dict[str, Any]:
    return {"terms": {field: list(values)}}


def exists(field: str) -> dict[str, Any]:
    return {"exists": {"field": field}}


def time_range(time_range: TimeRange, field: str = "@timestamp") -> dict[str, Any]:
    return {"range": {field: {"gte": time_range.start_iso, "lte": time_range.end_iso}}}


def bool_query(
    must: list[dict] | None = None,
    should: list[dict] | None = None,
    filter: list[dict] | None = None,
    minimum_should_match: int | None = None,
) -> dict[str, Any]:
    body: dict[str, Any] = {}
    if must:
        body["must"] = must
    if filter:
        body["filter"] = filter
    if should:
        body["should"] = should
        body["minimum_should_match"] = (
            minimum_should_match if minimum_should_match is not None else 1
        )
    return {"bool": body}


def any_field(fields: Iterable[str], value: Any) -> dict[str, Any]:
    """Match ``value`` against any of ``fields``."""
    return bool_query(should=[term(f, value) for f in fields])


def any_alias(logical: LogicalField, value: Any) -> dict[str, Any]:
    """Match ``value`` against every alias of a logical field."""
    return any_field(FIELD_ALIASES[logical], value)


def any_alias_in(logical: LogicalField, values: Iterable[Any]) -> dict[str, Any]:
    values = list(values)
    return bool_query(should=[terms(f, values) for f in FIELD_ALIASES[logical]])


def error_span_filter() -> dict[str, Any]:
    clauses = [
        term(field, value)
        for field in FIELD_ALIASES[LogicalField.STATUS_CODE]
        for value in SPAN_ERROR_STATUS_VALUES
    ]
    clauses.append({"range": {"http.status_code": {"gte": 500}}})
    return bool_query(should=clauses)


def trace_spans_request(trace_id: str, size: int = 10000) -> dict[str, Any]:
    return {
        "size": size,
        "query": any_alias(LogicalField.TRACE_ID, trace_id),
        "sort": [{"@timestamp": {"order": "asc", "unmapped_type": "date"}}],
    }


def span_request(span_id: str) -> dict[str, Any]:
    return {"size": 1, "query": any_alias(LogicalField.SPAN_ID, span_id)}


def spans_page_request(
    window: TimeRange,
    page_size: int,
    search_after: list[Any] | None = None,
) -> dict[str, Any]:
    body: dict[str, Any] = {
        "size": page_size,
        "query": bool_query(filter=[time_range(window)]),
        "sort": [
            {"@timestamp": {"order": "asc", "unmapped_type": "date"}},
            {"_doc": {"order": "asc"}},
        ],
        "track_total_hits": False,
    }
    if search_after:
        body["search_after"] = search_after
    return body


def count_request(window: TimeRange) -> dict[str, Any]:
    return {
        "size": 0,
        "query": bool_query(filter=[time_range(window)]),
        "track_total_hits": True,
    }


def logs_request(
    window: TimeRange,
    trace_id: str | None = None,
    span_ids: Iterable[str] | None = None,
    service: str | None = None,
    limit: int = 10,
) -> dict[str, Any]:
    must = [time_range(window)]
    correlation: list[dict] = []
    if trace_id:
        correlation.append(any_alias(LogicalField.TRACE_ID, trace_id))
    span_ids = list(span_ids or [])
    if span_ids:
        correlation.append(any_alias_in(LogicalField.SPAN_ID, span_ids))
    if correlation:
        must.append(bool_query(should=correlation))
    if service:
        must.append(any_alias(LogicalField.SERVICE_NAME, service))
    return {
        "size": limit,
        "query": bool_query(must=must),
        "sort": [{"@timestamp": {"order": "desc", "unmapped_type": "date"}}],
    }


def metrics_request(window: TimeRange, service: str, limit: int = 10) -> dict[str, Any]:
    return {
        "size": limit,
        "query": bool_query(
            must=[time_range(window), any_alias(LogicalField.SERVICE_NAME, service)]
        ),
        "sort": [{"@timestamp": {"order": "desc", "unmapped_type": "date"}}],
    }


def _service_name_runtime_field() -> dict[str, Any]:
    return {
        "type": "keyword",
        "script": {
            "source": SERVICE_NAME_SCRIPT,
            "params": {"fields": list(FIELD_ALIASES[LogicalField.SERVICE_NAME])},
        },
    }


def services_request(window: TimeRange, limit: int = 1000) -> dict[str, Any]:
    """Span and error-span counts per service, largest first."""
    return {
        "size": 0,
        "query": bool_query(filter=[time_range(window)]),
        "runtime_mappings": {"service_name": _service_name_runtime_field()},
        "aggs": {
            "services": {
                "terms": {"field": "service_name", "size": limit, "order": {"_count": "desc"}},
                "aggs": {"errors": {"filter": error_span_filter()}},
            }
        },
    }


def error_buckets_request(window: TimeRange, limit: int = 10) -> dict[str, Any]:
    """Terms aggregation over error spans, one bucket per error message."""
    return {
        "size": 0,
        "query": bool_query(must=[time_range(window), error_span_filter()]),
        "runtime_mappings": {
            "error_message": {
                "type": "keyword",
                "script": {"source": ERROR_MESSAGE_SCRIPT},
            },
            "service_name": _service_name_runtime_field(),
        },
        "aggs": {
            "error_messages": {
                "terms": {"field": "error_message", "size": limit, "order": {"_count": "desc"}},
                "aggs": {
                    "services": {"terms": {"field": "service_name", "size": 10}},
                    "top_hit": {
                        "top_hits": {
                            "size": 1,
                            "sort": [{"@timestamp": {"order": "desc"}}],
                        }
                    },
                },
            }
        },
    }
