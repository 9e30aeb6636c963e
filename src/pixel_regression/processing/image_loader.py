"""对比前的图片加载与模式归一化。"""

from __future__ import annotations

import logging
from pathlib import Path

import numpy as np
from PIL import Image, UnidentifiedImageError

from pixel_regression.core.exceptions import ComparisonError

LOGGER = logging.getLogger(__name__)


class ImageLoadingError(ComparisonError):
    """图片加载失败。"""


def load_image(path: Path) -> Image.Image:
    """加载单张图片并统一转换为 RGBA。

    返回值为新的 Image 对象，调用者负责关闭。
    """

    try:
        with Image.open(path) as img:
            img.load()
            if img.mode != "RGBA":
                return img.convert("RGBA")
            return img.copy()
    except (UnidentifiedImageError, OSError) as exc:
        LOGGER.debug("无法识别图像文件 %s: %s", path, exc)
        raise ImageLoadingError(f"无法加载图像: {path}") from exc


def to_unit_array(image: Image.Image) -> np.ndarray:
    """转换为取值范围 [0, 1] 的浮点数组，形状为 (高, 宽, 通道)。"""

    return np.asarray(image, dtype=np.float64) / 255.0
