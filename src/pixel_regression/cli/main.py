"""命令行入口。"""

from __future__ import annotations

import logging
from pathlib import Path
from typing import List, Optional

import typer
from rich.progress import (
    BarColumn,
    MofNCompleteColumn,
    Progress,
    SpinnerColumn,
    TextColumn,
    TimeElapsedColumn,
)

from pixel_regression.core.config import DEFAULT_PARALLEL_LIMIT, DEFAULT_THRESHOLD, PathsConfig, RunConfig
from pixel_regression.core.exceptions import InvalidConfigurationError, RendererUnavailableError
from pixel_regression.core.progress import ProgressUpdate
from pixel_regression.core.report import format_summary
from pixel_regression.processing.pipeline import run_regression
from pixel_regression.processing.renderer import ImageServerRenderer
from pixel_regression.utils.logging import setup_logging

EXIT_FAILURE = 1
EXIT_CONFIG_ERROR = 2

EPILOG = """
示例：

  批量运行全部用例：  pixel-regression

  只运行 contour_nolines：  pixel-regression contour_nolines

  以队列方式运行全部 gl3d 用例：  pixel-regression "gl3d_*" --queue

  运行除 pie 以外的用例：  pixel-regression "!pie_*"

  排除多个族时请分别给出（不支持 "!(gl3d_*|pie_*)" 这类 extglob 写法）：  pixel-regression "!gl3d_*" "!pie_*"
"""

app = typer.Typer(
    help="图片像素对比回归测试工具。",
    context_settings={"help_option_names": ["-h", "--help", "--info"]},
    add_completion=False,
)


def _build_progress_callback(progress: Progress):
    task_id: Optional[int] = None

    def callback(update: ProgressUpdate) -> None:
        nonlocal task_id
        if update.total == 0:
            return
        if task_id is None:
            task_id = progress.add_task("对比图片", total=update.total)
        progress.update(task_id, completed=update.completed)
        outcome = update.outcome
        if outcome is not None and not outcome.passed:
            progress.log(f"[red]{outcome.name}[/red]: {outcome.reason}")

    return callback


@app.command(epilog=EPILOG)
def run_cli(  # noqa: PLR0913
    patterns: Optional[List[str]] = typer.Argument(None, help="选择用例的 glob 模式，可指定多个；不指定时运行全部可测试用例"),
    queue: bool = typer.Option(False, "--queue", help="逐个顺序运行，耗时更长，适合性能较弱的机器"),
    threshold: float = typer.Option(DEFAULT_THRESHOLD, "--threshold", help="差异容差"),
    parallel_limit: int = typer.Option(DEFAULT_PARALLEL_LIMIT, "--parallel-limit", help="批量模式下的最大并发数"),
    mocks_dir: Path = typer.Option(Path("test/image/mocks"), "--mocks-dir", help="mock 描述文件目录"),
    baselines_dir: Path = typer.Option(Path("test/image/baselines"), "--baselines-dir", help="基准图目录"),
    output_dir: Path = typer.Option(Path("build/test_images"), "--output-dir", help="候选图输出目录"),
    diff_dir: Optional[Path] = typer.Option(None, "--diff-dir", help="差异图目录，默认位于输出目录下的 diffs"),
    server_url: str = typer.Option("http://localhost:9010", "--server-url", help="图片服务器地址"),
    timeout: float = typer.Option(30.0, "--timeout", help="单次渲染请求超时（秒）"),
    highlight_color: str = typer.Option("purple", "--highlight-color", help="差异图中的高亮颜色"),
    report: Optional[Path] = typer.Option(None, "--report", help="CSV 报告输出路径"),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="输出调试日志"),
) -> None:
    """对选中的用例执行像素对比测试。"""

    setup_logging(logging.DEBUG if verbose else logging.INFO)
    logging.getLogger(__name__).debug("CLI 参数解析完成")

    config = RunConfig(
        paths=PathsConfig(
            mocks_dir=mocks_dir.expanduser(),
            baselines_dir=baselines_dir.expanduser(),
            output_dir=output_dir.expanduser(),
            diff_dir=diff_dir.expanduser() if diff_dir else None,
        ),
        patterns=tuple(patterns or ()),
        mode="queue" if queue else "batch",
        parallel_limit=parallel_limit,
        threshold=threshold,
        highlight_color=highlight_color,
        server_url=server_url,
        request_timeout=timeout,
        report_path=report.expanduser() if report else None,
    )

    try:
        config.validate()
    except InvalidConfigurationError as exc:
        typer.echo(f"配置错误：{exc}", err=True)
        raise typer.Exit(code=EXIT_CONFIG_ERROR) from exc

    renderer = ImageServerRenderer(config.server_url, timeout=config.request_timeout)

    progress = Progress(
        SpinnerColumn(),
        TextColumn("[bold blue]{task.description}"),
        BarColumn(),
        MofNCompleteColumn(),
        TimeElapsedColumn(),
    )

    try:
        with progress:
            summary = run_regression(config, renderer=renderer, progress_callback=_build_progress_callback(progress))
    except (InvalidConfigurationError, RendererUnavailableError) as exc:
        typer.echo(f"无法开始运行：{exc}", err=True)
        raise typer.Exit(code=EXIT_CONFIG_ERROR) from exc
    finally:
        renderer.close()

    typer.echo(format_summary(summary))
    if config.report_path is not None:
        typer.echo(f"报告文件：{config.report_path}")

    if not summary.success:
        raise typer.Exit(code=EXIT_FAILURE)


if __name__ == "__main__":
    app()
