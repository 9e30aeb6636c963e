"""用例文件路径解析与输出目录管理。"""

from __future__ import annotations

import logging

from pixel_regression.core.config import PathsConfig
from pixel_regression.core.models import ImagePaths, RegressionCase

LOGGER = logging.getLogger(__name__)


class ImagePathResolver:
    """负责将用例名映射到基准图、候选图、差异图与 mock 文件。"""

    def __init__(self, config: PathsConfig) -> None:
        self.config = config
        self.mocks_dir = config.mocks_dir.resolve()
        self.baselines_dir = config.baselines_dir.resolve()
        self.output_dir = config.output_dir.resolve()
        self.diff_dir = config.resolved_diff_dir().resolve()

    def ensure_output_dirs(self) -> None:
        """创建候选图与差异图目录。"""

        self.output_dir.mkdir(parents=True, exist_ok=True)
        self.diff_dir.mkdir(parents=True, exist_ok=True)
        LOGGER.debug("输出目录: %s, 差异目录: %s", self.output_dir, self.diff_dir)

    def resolve(self, name: str) -> ImagePaths:
        suffix = self.config.image_format
        return ImagePaths(
            baseline=self.baselines_dir / f"{name}.{suffix}",
            test=self.output_dir / f"{name}.{suffix}",
            diff=self.diff_dir / f"diff-{name}.{suffix}",
            mock=self.mocks_dir / f"{name}.json",
        )

    def case(self, name: str) -> RegressionCase:
        return RegressionCase(name=name, paths=self.resolve(name))


def baseline_exists(paths: ImagePaths) -> bool:
    return paths.baseline.is_file()
