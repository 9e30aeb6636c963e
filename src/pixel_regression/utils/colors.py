"""颜色工具函数。"""

from __future__ import annotations

import re
from typing import Tuple

from PIL import ImageColor

from pixel_regression.core.exceptions import InvalidConfigurationError

HEX_COLOR_RE = re.compile(r"^#?([0-9a-fA-F]{3}|[0-9a-fA-F]{6})$")


def parse_hex_color(value: str) -> Tuple[int, int, int]:
    """将 HEX 字符串解析为 RGB 三元组。"""

    match = HEX_COLOR_RE.match(value.strip())
    if not match:
        raise InvalidConfigurationError(f"无法解析颜色值: {value}")

    hex_value = match.group(1)
    if len(hex_value) == 3:
        hex_value = "".join(ch * 2 for ch in hex_value)

    return int(hex_value[0:2], 16), int(hex_value[2:4], 16), int(hex_value[4:6], 16)


def parse_color(value: str) -> Tuple[int, int, int]:
    """解析高亮颜色，支持 HEX 与 CSS 颜色名（如 purple）。"""

    if not value:
        raise InvalidConfigurationError("颜色值不能为空")

    if HEX_COLOR_RE.match(value.strip()):
        return parse_hex_color(value)

    try:
        rgb = ImageColor.getrgb(value.strip())
    except ValueError as exc:
        raise InvalidConfigurationError(f"无法解析颜色值: {value}") from exc
    return rgb[0], rgb[1], rgb[2]
