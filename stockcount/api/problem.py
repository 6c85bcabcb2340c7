# stockcount/api/problem.py
from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Dict, List, Optional, Sequence, TypedDict

from stockcount.services.errors import LedgerError


class ProblemDetail(TypedDict, total=False):
    # 必填
    type: str  # validation|state|ledger
    # 可选：用于行内定位
    path: str  # e.g. order_by[1].dir
    reason: str


@dataclass(frozen=True)
class Problem:
    error_code: str
    message: str
    http_status: int
    context: Optional[Dict[str, Any]] = None
    details: Optional[List[ProblemDetail]] = None
    trace_id: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        out: Dict[str, Any] = {
            "error_code": self.error_code,
            "message": self.message,
            "http_status": int(self.http_status),
        }
        if self.context:
            out["context"] = self.context
        if self.details:
            out["details"] = self.details
        if self.trace_id:
            out["trace_id"] = self.trace_id
        return out


def make_problem(
    *,
    status_code: int,
    error_code: str,
    message: str,
    context: Optional[Dict[str, Any]] = None,
    details: Optional[Sequence[ProblemDetail]] = None,
    trace_id: Optional[str] = None,
) -> Dict[str, Any]:
    p = Problem(
        error_code=str(error_code),
        message=str(message),
        http_status=int(status_code),
        context=context,
        details=list(details) if details else None,
        trace_id=trace_id,
    )
    return p.to_dict()


def problem_from_ledger_error(
    exc: LedgerError,
    *,
    context: Optional[Dict[str, Any]] = None,
    trace_id: Optional[str] = None,
) -> Dict[str, Any]:
    """引擎错误 → Problem：error_code / http_status 取自异常类，context 合并请求信息。"""
    merged: Dict[str, Any] = dict(context or {})
    merged.update(exc.context)
    return make_problem(
        status_code=exc.http_status,
        error_code=exc.error_code,
        message=exc.message,
        context=merged,
        trace_id=trace_id,
    )
