# stockcount/models/count_session.py
from __future__ import annotations

from datetime import datetime
from typing import Optional

from sqlalchemy import Integer
from sqlalchemy.orm import Mapped, mapped_column

from stockcount.db.base import Base
from stockcount.db.types import UtcDateTime


class CountSession(Base):
    """
    盘点会话：

    - open      finished_at IS NULL
    - finished  finished_at 已写入（完成时触发对账）

    删除与状态无关，任意状态均可删除（级联 item_counts / count_drifts）。
    """

    __tablename__ = "count_sessions"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    started_at: Mapped[datetime] = mapped_column(UtcDateTime, nullable=False)
    finished_at: Mapped[Optional[datetime]] = mapped_column(UtcDateTime, nullable=True)

    @property
    def is_open(self) -> bool:
        return self.finished_at is None

    def __repr__(self) -> str:
        return f"<CountSession id={self.id} started={self.started_at} finished={self.finished_at}>"
