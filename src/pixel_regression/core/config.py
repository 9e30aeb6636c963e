"""回归测试运行的配置模型。"""

from __future__ import annotations

import math
from dataclasses import dataclass, field
from pathlib import Path
from typing import Optional, Sequence

from pixel_regression.core.exceptions import InvalidConfigurationError
from pixel_regression.utils.colors import parse_color

RunMode = str  # batch | queue

VALID_MODES = {"batch", "queue"}
DEFAULT_THRESHOLD = 0.0001
DEFAULT_PARALLEL_LIMIT = 4


@dataclass(slots=True, frozen=True)
class PathsConfig:
    """用例、基准图与输出目录配置。"""

    mocks_dir: Path
    baselines_dir: Path
    output_dir: Path
    diff_dir: Optional[Path] = None
    image_format: str = "png"

    def resolved_diff_dir(self) -> Path:
        return self.diff_dir if self.diff_dir is not None else self.output_dir / "diffs"


@dataclass(slots=True, frozen=True)
class RunConfig:
    """单次回归运行的配置集合，运行期间不可变。"""

    paths: PathsConfig
    patterns: Sequence[str] = field(default_factory=tuple)
    mode: RunMode = "batch"
    parallel_limit: int = DEFAULT_PARALLEL_LIMIT
    threshold: float = DEFAULT_THRESHOLD
    highlight_color: str = "purple"
    server_url: str = "http://localhost:9010"
    request_timeout: float = 30.0
    report_path: Optional[Path] = None

    @property
    def is_queue(self) -> bool:
        return self.mode == "queue"

    def validate(self) -> None:
        """在调度开始前检查配置，失败时抛出 InvalidConfigurationError。"""

        if self.mode not in VALID_MODES:
            raise InvalidConfigurationError(f"未知的运行模式: {self.mode}")
        if not math.isfinite(self.threshold) or self.threshold < 0:
            raise InvalidConfigurationError(f"threshold 必须为非负有限数: {self.threshold}")
        if self.parallel_limit < 1:
            raise InvalidConfigurationError(f"parallel_limit 必须大于等于 1: {self.parallel_limit}")
        if self.request_timeout <= 0:
            raise InvalidConfigurationError("request_timeout 必须大于 0")
        parse_color(self.highlight_color)
