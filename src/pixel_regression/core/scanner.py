"""用例目录扫描与筛选逻辑。"""

from __future__ import annotations

import logging
from fnmatch import fnmatchcase
from pathlib import Path
from typing import Iterable, Sequence

from pixel_regression.core.exceptions import InvalidConfigurationError

LOGGER = logging.getLogger(__name__)

# 以下用例在不同机器/不同运行之间渲染结果不稳定，默认运行时跳过。
UNTESTABLE_NAMES = frozenset({"font-wishlist"})
UNTESTABLE_PREFIXES = ("gl2d_", "mapbox_")

NEGATION_PREFIX = "!"


def load_catalog(mocks_dir: Path) -> list[str]:
    """列出 mock 目录下全部用例名（按名称排序）。"""

    if not mocks_dir.is_dir():
        raise InvalidConfigurationError(f"mock 目录不存在: {mocks_dir}")

    names = sorted(path.stem for path in mocks_dir.glob("*.json") if path.is_file())
    LOGGER.debug("在 %s 中发现 %d 个用例", mocks_dir, len(names))
    return names


def is_untestable(name: str) -> bool:
    return name in UNTESTABLE_NAMES or name.startswith(UNTESTABLE_PREFIXES)


def filter_untestable(names: Iterable[str]) -> list[str]:
    """剔除不可测试的用例，每个被剔除的用例单独记录日志。"""

    kept: list[str] = []
    LOGGER.info("过滤不可测试的用例：")
    for name in names:
        if is_untestable(name):
            LOGGER.info(" - %s", name)
            continue
        kept.append(name)
    return kept


def _matches_any(name: str, patterns: Sequence[str]) -> bool:
    return any(fnmatchcase(name, pattern) for pattern in patterns)


def select_cases(catalog: Sequence[str], patterns: Sequence[str]) -> list[str]:
    """根据 glob 模式从用例目录中选出待测用例。

    未提供模式时返回全部用例并过滤不可测试项；提供模式时按 glob 匹配，
    不再做过滤。以 ``!`` 开头的模式表示排除（仅支持 fnmatch 语法，不支持
    ``!(a|b)`` 形式的 extglob）。结果保持目录顺序且不含重复项。
    """

    if not patterns:
        return filter_untestable(_unique(catalog))

    include_patterns = [p for p in patterns if not p.startswith(NEGATION_PREFIX)]
    exclude_patterns = [p[len(NEGATION_PREFIX):] for p in patterns if p.startswith(NEGATION_PREFIX)]

    selected: list[str] = []
    for name in _unique(catalog):
        if include_patterns and not _matches_any(name, include_patterns):
            continue
        if exclude_patterns and _matches_any(name, exclude_patterns):
            continue
        selected.append(name)

    for pattern in include_patterns:
        if not any(fnmatchcase(name, pattern) for name in catalog):
            LOGGER.warning("模式 %s 没有匹配到任何用例", pattern)

    return selected


def _unique(names: Iterable[str]) -> list[str]:
    seen: set[str] = set()
    result: list[str] = []
    for name in names:
        if name in seen:
            continue
        seen.add(name)
        result.append(name)
    return result
