"""单个用例的工作单元：渲染、写入、对比与差异图清理。"""

from __future__ import annotations

import logging
import math
import re
from dataclasses import dataclass

from pixel_regression.core.exceptions import ComparisonError, RenderError
from pixel_regression.core.models import (
    STATUS_ERROR,
    STATUS_FAIL,
    STATUS_PASS,
    CaseOutcome,
    RegressionCase,
)
from pixel_regression.core.paths import baseline_exists
from pixel_regression.processing.comparator import Comparator
from pixel_regression.processing.renderer import Renderer

LOGGER = logging.getLogger(__name__)

REASON_RENDER = "error during image rendering"
REASON_MISSING_BASELINE = "baseline image does not exist"
REASON_WRITE = "error during test image generation"
REASON_COMPARE = "comparison error"
REASON_CLEANUP = "artifact cleanup error"


@dataclass(slots=True, frozen=True)
class CaseTask:
    """描述单个用例的对比任务。"""

    case: RegressionCase
    threshold: float
    highlight_color: str


def run_case(task: CaseTask, renderer: Renderer, comparator: Comparator) -> CaseOutcome:
    """按顺序执行完整的对比流程，任何一步失败都以结果返回而不是抛出。"""

    case = task.case
    paths = case.paths

    try:
        image_bytes = renderer.render(case)
    except RenderError as exc:
        LOGGER.error("%s: %s", case.name, exc)
        return _error(case, REASON_RENDER)

    if not baseline_exists(paths):
        LOGGER.error("%s: 基准图不存在 %s", case.name, paths.baseline)
        return _error(case, REASON_MISSING_BASELINE)

    try:
        paths.test.parent.mkdir(parents=True, exist_ok=True)
        paths.test.write_bytes(image_bytes)
    except OSError as exc:
        LOGGER.error("%s: 写入候选图失败: %s", case.name, exc)
        return _error(case, REASON_WRITE)

    try:
        result = comparator.compare(
            paths.test,
            paths.baseline,
            paths.diff,
            highlight_color=task.highlight_color,
            tolerance=task.threshold,
        )
    except ComparisonError as exc:
        LOGGER.error("%s: %s", case.name, exc)
        return _error(case, REASON_COMPARE)

    if result.is_equal:
        try:
            paths.diff.unlink(missing_ok=True)
        except OSError as exc:
            LOGGER.error("%s: 删除差异图失败: %s", case.name, exc)
            return CaseOutcome(
                name=case.name, status=STATUS_ERROR, reason=REASON_CLEANUP, difference=result.difference
            )
        return CaseOutcome(name=case.name, status=STATUS_PASS, difference=result.difference)

    return CaseOutcome(
        name=case.name,
        status=STATUS_FAIL,
        reason=format_mismatch(result.difference, task.threshold),
        difference=result.difference,
    )


EXPONENT_PADDING_RE = re.compile(r"e([+-])0*(\d)")


def format_mismatch(difference: float, threshold: float) -> str:
    """以阈值倍数描述差异，保留 4 位有效数字（例如 5.000、1.000e+4）。"""

    ratio = difference / threshold if threshold > 0 else math.inf
    text = EXPONENT_PADDING_RE.sub(r"e\1\2", f"{ratio:#.4g}")
    return f"differs by {text} times the threshold"


def _error(case: RegressionCase, reason: str) -> CaseOutcome:
    return CaseOutcome(name=case.name, status=STATUS_ERROR, reason=reason)
