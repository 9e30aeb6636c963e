"""用例排序策略：避免 gl2d 用例之间的着色器冲突。"""

from __future__ import annotations

import logging
from typing import Sequence

from pixel_regression.core.config import RunConfig

LOGGER = logging.getLogger(__name__)

GL2D_PATTERN = "gl2d_*"

# 非 regl 实现的 gl2d 用例必须最先运行，否则会与 regl 的 program 绑定冲突。
CONFLICT_CASES = ("gl2d_pointcloud-basic", "gl2d_heatmapgl")


def needs_conflict_ordering(patterns: Sequence[str]) -> bool:
    return GL2D_PATTERN in patterns


def reorder_conflicting_cases(names: Sequence[str], priority: Sequence[str] = CONFLICT_CASES) -> list[str]:
    """将冲突用例按给定顺序交换到列表最前面，返回新列表。

    不存在的用例直接跳过，不占用前部位置；结果始终是输入的一个排列。
    """

    ordered = list(names)
    position = 0
    for name in priority:
        try:
            index = ordered.index(name)
        except ValueError:
            LOGGER.debug("冲突用例 %s 未被选中，跳过排序", name)
            continue
        ordered[position], ordered[index] = ordered[index], ordered[position]
        position += 1
    return ordered


def apply_ordering_policy(names: Sequence[str], config: RunConfig) -> list[str]:
    """仅在显式请求整个 gl2d 族时调整顺序，并在批量模式下给出警告。"""

    if not needs_conflict_ordering(config.patterns):
        return list(names)

    if not config.is_queue:
        LOGGER.warning("批量模式运行 gl2d 图片测试可能产生不可靠的结果，建议使用 --queue")

    LOGGER.info("对 gl2d 用例排序以避免 gl-shader 冲突")
    return reorder_conflicting_cases(names)
