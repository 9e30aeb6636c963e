"""回归流水线：选择用例、排序、调度执行并汇总结果。"""

from __future__ import annotations

import logging
from concurrent.futures import ThreadPoolExecutor, as_completed
from typing import Callable, Optional, Sequence

from pixel_regression.core.config import RunConfig
from pixel_regression.core.models import STATUS_ERROR, CaseOutcome, RunSummary
from pixel_regression.core.paths import ImagePathResolver
from pixel_regression.core.progress import ProgressUpdate
from pixel_regression.core.report import summarize, write_csv_report
from pixel_regression.core.scanner import load_catalog, select_cases
from pixel_regression.processing.comparator import Comparator, PixelComparator
from pixel_regression.processing.ordering import apply_ordering_policy
from pixel_regression.processing.renderer import ImageServerRenderer, Renderer
from pixel_regression.processing.worker import CaseTask, run_case

LOGGER = logging.getLogger(__name__)


ProgressCallback = Optional[Callable[[ProgressUpdate], None]]


def run_regression(
    config: RunConfig,
    renderer: Optional[Renderer] = None,
    comparator: Optional[Comparator] = None,
    progress_callback: ProgressCallback = None,
) -> RunSummary:
    """回归测试入口：选择、排序、执行对比并汇总。"""

    config.validate()
    resolver = ImagePathResolver(config.paths)

    LOGGER.info("开始扫描用例目录 %s", resolver.mocks_dir)
    catalog = load_catalog(resolver.mocks_dir)
    names = select_cases(catalog, config.patterns)
    names = apply_ordering_policy(names, config)
    LOGGER.info("选中 %d 个用例", len(names))

    if not names:
        _emit_progress(progress_callback, completed=0, total=0, message="没有需要测试的用例")
        return summarize([])

    owned_renderer: Optional[ImageServerRenderer] = None
    if renderer is None:
        owned_renderer = ImageServerRenderer(config.server_url, timeout=config.request_timeout)
        renderer = owned_renderer
    if comparator is None:
        comparator = PixelComparator()

    try:
        renderer.check_available()
        resolver.ensure_output_dirs()
        outcomes = run_cases(names, config, resolver, renderer, comparator, progress_callback)
    finally:
        if owned_renderer is not None:
            owned_renderer.close()

    summary = summarize(outcomes)

    if config.report_path is not None:
        _write_report(config, summary)
    return summary


def run_cases(
    names: Sequence[str],
    config: RunConfig,
    resolver: ImagePathResolver,
    renderer: Renderer,
    comparator: Comparator,
    progress_callback: ProgressCallback = None,
) -> list[CaseOutcome]:
    """执行所有用例，返回与输入顺序一一对应的结果。

    队列模式下严格按顺序逐个执行；批量模式下最多同时运行
    ``parallel_limit`` 个工作单元。
    """

    tasks = [
        CaseTask(
            case=resolver.case(name),
            threshold=config.threshold,
            highlight_color=config.highlight_color,
        )
        for name in names
    ]
    total = len(tasks)
    outcomes: list[Optional[CaseOutcome]] = [None] * total
    completed = 0

    _emit_progress(progress_callback, completed, total, "开始执行对比任务")

    if config.is_queue or config.parallel_limit <= 1:
        for index, task in enumerate(tasks):
            outcome = _run_guarded(task, renderer, comparator)
            outcomes[index] = outcome
            completed += 1
            _emit_progress(progress_callback, completed, total, outcome=outcome)
    else:
        with ThreadPoolExecutor(max_workers=config.parallel_limit, thread_name_prefix="case") as executor:
            future_map = {
                executor.submit(run_case, task, renderer, comparator): index for index, task in enumerate(tasks)
            }
            for future in as_completed(future_map):
                index = future_map[future]
                try:
                    outcome = future.result()
                except Exception as exc:  # noqa: BLE001
                    outcome = _worker_error(tasks[index], exc)
                outcomes[index] = outcome
                completed += 1
                _emit_progress(progress_callback, completed, total, outcome=outcome)

    return [outcome for outcome in outcomes if outcome is not None]


def _run_guarded(task: CaseTask, renderer: Renderer, comparator: Comparator) -> CaseOutcome:
    try:
        return run_case(task, renderer, comparator)
    except Exception as exc:  # noqa: BLE001
        return _worker_error(task, exc)


def _worker_error(task: CaseTask, exc: Exception) -> CaseOutcome:
    LOGGER.exception("用例 %s 执行异常：%s", task.case.name, exc)
    return CaseOutcome(name=task.case.name, status=STATUS_ERROR, reason=f"worker error: {exc}")


def _emit_progress(
    callback: ProgressCallback,
    completed: int,
    total: int,
    message: Optional[str] = None,
    outcome: Optional[CaseOutcome] = None,
) -> None:
    if not callback:
        return
    callback(ProgressUpdate(total=total, completed=completed, outcome=outcome, message=message))


def _write_report(config: RunConfig, summary: RunSummary) -> None:
    assert config.report_path is not None
    try:
        path = write_csv_report(summary.outcomes, config.report_path)
    except OSError as exc:
        LOGGER.error("写入报告失败：%s", exc)
        return
    LOGGER.info("报告已写入 %s", path)
