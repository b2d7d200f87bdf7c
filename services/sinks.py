"""Presentation of dispatch results to HTTP callers."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any, Dict, List, Protocol, Sequence

from models.errors import CALLER_FAULTS
from models.records import DispatchResult

LOGGER = logging.getLogger(__name__)

HTTP_OK = 200
HTTP_MULTI_STATUS = 207
HTTP_BAD_REQUEST = 400
HTTP_INTERNAL_ERROR = 500


class ResultSink(Protocol):
    def emit(self, results: Sequence[DispatchResult]) -> Any:
        ...


def outcome_body(result: DispatchResult) -> Dict[str, Any]:
    """JSON-ready representation of one result."""
    address = result.address
    return {
        "deviceAddress": {
            "projectId": address.project_id,
            "location": address.location,
            "registryId": address.registry_id,
            "deviceId": address.device_id,
        },
        "devicePath": result.device_path,
        "success": result.success,
        "attempts": result.attempts,
        "errorKind": result.error_kind.value if result.error_kind else None,
        "error": result.error,
        "completedAt": result.completed_at.isoformat(),
        "durationMs": result.duration_ms,
    }


def aggregate_status(results: Sequence[DispatchResult]) -> int:
    """Single HTTP status summarising a batch."""
    failures = [result for result in results if not result.success]
    if not failures:
        return HTTP_OK
    if len(failures) < len(results):
        return HTTP_MULTI_STATUS
    if all(result.error_kind in CALLER_FAULTS for result in failures):
        return HTTP_BAD_REQUEST
    return HTTP_INTERNAL_ERROR


@dataclass
class HttpReport:
    status_code: int
    body: List[Dict[str, Any]] = field(default_factory=list)


class HttpSink:
    """Turns results into an aggregate status and a per-device body."""

    def emit(self, results: Sequence[DispatchResult]) -> HttpReport:
        body: List[Dict[str, Any]] = []
        for result in results:
            try:
                body.append(outcome_body(result))
            except Exception:  # noqa: BLE001 - every result must be reported
                LOGGER.exception("Could not render dispatch result")
                body.append({"success": False, "error": "unrenderable result"})
        try:
            status_code = aggregate_status(results)
        except Exception:  # noqa: BLE001
            LOGGER.exception("Could not aggregate dispatch results")
            status_code = HTTP_INTERNAL_ERROR
        return HttpReport(status_code=status_code, body=body)

