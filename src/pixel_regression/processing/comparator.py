"""像素级对比：计算差异度量并在不一致时输出差异图。"""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Protocol

import numpy as np
from PIL import Image

from pixel_regression.core.exceptions import ComparisonError
from pixel_regression.core.models import ComparisonResult
from pixel_regression.processing.image_loader import load_image, to_unit_array
from pixel_regression.utils.colors import parse_color

LOGGER = logging.getLogger(__name__)


class Comparator(Protocol):
    def compare(
        self,
        test_path: Path,
        baseline_path: Path,
        diff_path: Path,
        *,
        highlight_color: str,
        tolerance: float,
    ) -> ComparisonResult:
        ...


class PixelComparator:
    """基于归一化均方误差（MSE）的像素对比实现。

    差异值为全部通道逐像素差的平方均值，取值 [0, 1]。差异值不超过
    ``tolerance`` 时视为一致；否则在 ``diff_path`` 写出差异图：以基准图为
    底图，所有不同的像素涂成高亮色。
    """

    def compare(
        self,
        test_path: Path,
        baseline_path: Path,
        diff_path: Path,
        *,
        highlight_color: str,
        tolerance: float,
    ) -> ComparisonResult:
        test_image = load_image(test_path)
        try:
            baseline_image = load_image(baseline_path)
        except ComparisonError:
            test_image.close()
            raise

        try:
            if test_image.size != baseline_image.size:
                raise ComparisonError(
                    f"图片尺寸不一致: {test_image.size} != {baseline_image.size}"
                )

            test_array = to_unit_array(test_image)
            baseline_array = to_unit_array(baseline_image)
            difference = compute_difference(test_array, baseline_array)
            is_equal = difference <= tolerance
            LOGGER.debug("%s 差异值 %.6g（容差 %.6g）", test_path.name, difference, tolerance)

            if not is_equal:
                mask = np.any(test_array != baseline_array, axis=-1)
                _write_diff_image(baseline_image, mask, diff_path, highlight_color)

            return ComparisonResult(is_equal=is_equal, difference=difference)
        finally:
            test_image.close()
            baseline_image.close()


def compute_difference(left: np.ndarray, right: np.ndarray) -> float:
    """计算两幅归一化图像的均方误差。"""

    if left.size == 0:
        return 0.0
    return float(np.mean((left - right) ** 2))


def _write_diff_image(baseline: Image.Image, mask: np.ndarray, diff_path: Path, highlight_color: str) -> None:
    rgb = parse_color(highlight_color)
    canvas = np.array(baseline.convert("RGB"), dtype=np.uint8)
    canvas[mask] = rgb

    try:
        diff_path.parent.mkdir(parents=True, exist_ok=True)
        Image.fromarray(canvas).save(diff_path, format="PNG")
    except OSError as exc:
        raise ComparisonError(f"写入差异图失败: {diff_path}") from exc
