# stockcount/services/errors.py
from __future__ import annotations

from typing import Any, Dict, Optional


class LedgerError(Exception):
    """库存台账引擎错误基类（error_code / http_status 供传输层映射 Problem）。"""

    error_code: str = "ledger_error"
    http_status: int = 500

    def __init__(self, message: str, *, context: Optional[Dict[str, Any]] = None) -> None:
        super().__init__(message)
        self.message = message
        self.context: Dict[str, Any] = dict(context or {})


class NotFound(LedgerError):
    """商品 / 批次 / 盘点 ID 不存在"""

    error_code = "not_found"
    http_status = 404


class InvalidArgument(LedgerError):
    """负数量、非法排序键、分页越界等；任何写入之前拒绝"""

    error_code = "invalid_argument"
    http_status = 422


class LedgerInconsistency(LedgerError):
    """对账补扣无法满足：台账与实物不一致，需人工介入"""

    error_code = "ledger_inconsistency"
    http_status = 409


class CountSessionClosed(LedgerError):
    """盘点已完成，不再接受录入"""

    error_code = "count_closed"
    http_status = 409


class TransactionConflict(LedgerError):
    """并发修改同一批次集合（序列化失败 / 死锁 / 锁超时），由调用方重试"""

    error_code = "transaction_conflict"
    http_status = 409
