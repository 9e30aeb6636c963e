"""进度更新的数据模型。"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Optional

from pixel_regression.core.models import CaseOutcome


@dataclass(slots=True)
class ProgressUpdate:
    """调度过程中每完成一个用例发出的进度信息。"""

    total: int
    completed: int
    outcome: Optional[CaseOutcome] = None
    message: Optional[str] = None

    @property
    def finished(self) -> bool:
        return self.completed >= self.total
