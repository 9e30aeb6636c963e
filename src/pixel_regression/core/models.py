"""核心数据模型定义。"""

from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path
from typing import Optional

STATUS_PASS = "pass"
STATUS_FAIL = "fail"
STATUS_ERROR = "error"


@dataclass(slots=True, frozen=True)
class ImagePaths:
    """单个用例对应的四个文件路径。"""

    baseline: Path
    test: Path
    diff: Path
    mock: Path


@dataclass(slots=True, frozen=True)
class RegressionCase:
    """选中后的回归用例，运行期间不会被修改。"""

    name: str
    paths: ImagePaths


@dataclass(slots=True, frozen=True)
class ComparisonResult:
    """像素对比的结果。"""

    is_equal: bool
    difference: float


@dataclass(slots=True)
class CaseOutcome:
    """记录单个用例的结果（用于汇总/报告）。"""

    name: str
    status: str
    reason: Optional[str] = None
    difference: Optional[float] = None

    @property
    def passed(self) -> bool:
        return self.status == STATUS_PASS


@dataclass(slots=True)
class RunSummary:
    """一次运行的汇总结果。"""

    outcomes: list[CaseOutcome]
    passed: list[CaseOutcome]
    failed: list[CaseOutcome]
    errored: list[CaseOutcome]

    @property
    def success(self) -> bool:
        """全部用例通过时才算成功。"""

        return not self.failed and not self.errored

    def non_passing(self) -> list[CaseOutcome]:
        """按运行顺序返回所有未通过的用例。"""

        return [outcome for outcome in self.outcomes if not outcome.passed]
