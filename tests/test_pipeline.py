"""调度与整体运行流程测试。"""

from __future__ import annotations

import csv
import io
import threading
import time
from pathlib import Path

import pytest
from PIL import Image

from pixel_regression.core.config import PathsConfig, RunConfig
from pixel_regression.core.exceptions import InvalidConfigurationError, RendererUnavailableError
from pixel_regression.core.models import ComparisonResult, RegressionCase
from pixel_regression.core.progress import ProgressUpdate
from pixel_regression.processing import pipeline
from pixel_regression.processing.pipeline import run_regression


def _png_bytes(color: str = "white") -> bytes:
    buffer = io.BytesIO()
    Image.new("RGB", (8, 8), color).save(buffer, format="PNG")
    return buffer.getvalue()


class RecordingRenderer:
    """记录调用顺序与最大并发数的假渲染器。"""

    def __init__(self, delay: float = 0.0, broken: set[str] | None = None, colors: dict[str, str] | None = None):
        self.delay = delay
        self.broken = broken or set()
        self.colors = colors or {}
        self.calls: list[str] = []
        self.available_checks = 0
        self._lock = threading.Lock()
        self._in_flight = 0
        self.max_in_flight = 0

    def check_available(self) -> None:
        self.available_checks += 1

    def render(self, case: RegressionCase) -> bytes:
        with self._lock:
            self.calls.append(case.name)
            self._in_flight += 1
            self.max_in_flight = max(self.max_in_flight, self._in_flight)
        try:
            if self.delay:
                time.sleep(self.delay)
            if case.name in self.broken:
                raise RuntimeError(f"renderer crashed on {case.name}")
            return _png_bytes(self.colors.get(case.name, "white"))
        finally:
            with self._lock:
                self._in_flight -= 1


class UnavailableRenderer(RecordingRenderer):
    def check_available(self) -> None:
        raise RendererUnavailableError("connection refused")


class EqualComparator:
    def compare(self, test_path, baseline_path, diff_path, *, highlight_color, tolerance):
        return ComparisonResult(is_equal=True, difference=0.0)


def make_workspace(tmp_path: Path, names: list[str], without_baseline: tuple[str, ...] = ()) -> PathsConfig:
    mocks = tmp_path / "mocks"
    baselines = tmp_path / "baselines"
    mocks.mkdir()
    baselines.mkdir()
    for name in names:
        (mocks / f"{name}.json").write_text('{"data": []}')
        if name not in without_baseline:
            (baselines / f"{name}.png").write_bytes(_png_bytes())
    return PathsConfig(mocks_dir=mocks, baselines_dir=baselines, output_dir=tmp_path / "out")


def make_config(paths: PathsConfig, **kwargs) -> RunConfig:
    return RunConfig(paths=paths, **kwargs)


def test_outcomes_map_one_to_one_in_selection_order(tmp_path: Path) -> None:
    names = ["bar_basic", "bar_stacked", "missing_case", "pie_simple"]
    paths = make_workspace(tmp_path, names, without_baseline=("missing_case",))
    renderer = RecordingRenderer(colors={"pie_simple": "black"})

    summary = run_regression(make_config(paths), renderer=renderer)

    assert [o.name for o in summary.outcomes] == names
    assert [o.status for o in summary.outcomes] == ["pass", "pass", "error", "fail"]
    assert not summary.success
    assert renderer.available_checks == 1
    assert (paths.output_dir / "diffs" / "diff-pie_simple.png").exists()
    assert not (paths.output_dir / "diffs" / "diff-bar_basic.png").exists()


def test_all_passing_run_succeeds(tmp_path: Path) -> None:
    paths = make_workspace(tmp_path, ["bar_basic", "pie_simple"])

    summary = run_regression(make_config(paths), renderer=RecordingRenderer())

    assert summary.success
    assert len(summary.passed) == 2


def test_queue_mode_runs_strictly_in_order(tmp_path: Path) -> None:
    names = [f"case_{idx:02d}" for idx in range(8)]
    paths = make_workspace(tmp_path, names)
    renderer = RecordingRenderer(delay=0.005)

    summary = run_regression(make_config(paths, mode="queue"), renderer=renderer, comparator=EqualComparator())

    assert renderer.calls == names
    assert renderer.max_in_flight == 1
    assert summary.success


def test_batch_mode_respects_parallel_limit(tmp_path: Path) -> None:
    names = [f"case_{idx:02d}" for idx in range(12)]
    paths = make_workspace(tmp_path, names)
    renderer = RecordingRenderer(delay=0.03)

    summary = run_regression(
        make_config(paths, mode="batch", parallel_limit=3), renderer=renderer, comparator=EqualComparator()
    )

    assert sorted(renderer.calls) == names
    assert 1 <= renderer.max_in_flight <= 3
    assert [o.name for o in summary.outcomes] == names


@pytest.mark.parametrize("mode", ["batch", "queue"])
def test_unexpected_worker_failure_does_not_abort_siblings(tmp_path: Path, mode: str) -> None:
    names = ["bar_basic", "crashy", "pie_simple"]
    paths = make_workspace(tmp_path, names)
    renderer = RecordingRenderer(broken={"crashy"})

    summary = run_regression(make_config(paths, mode=mode), renderer=renderer, comparator=EqualComparator())

    statuses = {o.name: o.status for o in summary.outcomes}
    assert statuses == {"bar_basic": "pass", "crashy": "error", "pie_simple": "pass"}
    assert summary.errored[0].reason is not None and "renderer crashed" in summary.errored[0].reason


def test_unavailable_renderer_is_fatal(tmp_path: Path) -> None:
    paths = make_workspace(tmp_path, ["bar_basic"])

    with pytest.raises(RendererUnavailableError):
        run_regression(make_config(paths), renderer=UnavailableRenderer())


def test_invalid_configuration_is_rejected_before_scheduling(tmp_path: Path) -> None:
    paths = make_workspace(tmp_path, ["bar_basic"])
    renderer = RecordingRenderer()

    with pytest.raises(InvalidConfigurationError):
        run_regression(make_config(paths, threshold=-1.0), renderer=renderer)
    with pytest.raises(InvalidConfigurationError):
        run_regression(make_config(paths, parallel_limit=0), renderer=renderer)

    assert renderer.calls == []


@pytest.mark.parametrize("threshold", [float("nan"), float("inf")])
def test_non_finite_threshold_is_rejected(tmp_path: Path, threshold: float) -> None:
    paths = make_workspace(tmp_path, ["bar_basic"])
    renderer = RecordingRenderer()

    with pytest.raises(InvalidConfigurationError):
        run_regression(make_config(paths, threshold=threshold), renderer=renderer)

    assert renderer.calls == []


class ClosableRenderer(RecordingRenderer):
    instances: list["ClosableRenderer"] = []

    def __init__(self, server_url: str, timeout: float = 30.0) -> None:
        super().__init__()
        self.server_url = server_url
        self.closed = False
        ClosableRenderer.instances.append(self)

    def close(self) -> None:
        self.closed = True


def test_default_renderer_is_closed_after_run(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    paths = make_workspace(tmp_path, ["bar_basic"])
    ClosableRenderer.instances = []
    monkeypatch.setattr(pipeline, "ImageServerRenderer", ClosableRenderer)

    summary = run_regression(make_config(paths, server_url="http://render.test"), comparator=EqualComparator())

    assert summary.success
    assert len(ClosableRenderer.instances) == 1
    created = ClosableRenderer.instances[0]
    assert created.server_url == "http://render.test"
    assert created.calls == ["bar_basic"]
    assert created.closed


def test_empty_selection_succeeds_without_rendering(tmp_path: Path) -> None:
    paths = make_workspace(tmp_path, ["bar_basic"])
    renderer = RecordingRenderer()

    summary = run_regression(make_config(paths, patterns=("scatter_*",)), renderer=renderer)

    assert summary.outcomes == []
    assert summary.success
    assert renderer.available_checks == 0


def test_progress_and_csv_report(tmp_path: Path) -> None:
    names = ["bar_basic", "missing_case"]
    paths = make_workspace(tmp_path, names, without_baseline=("missing_case",))
    report_path = tmp_path / "reports" / "report.csv"
    updates: list[ProgressUpdate] = []

    run_regression(
        make_config(paths, report_path=report_path),
        renderer=RecordingRenderer(),
        progress_callback=updates.append,
    )

    assert updates[-1].finished
    assert sum(1 for update in updates if update.outcome is not None) == 2

    with report_path.open(encoding="utf-8") as handle:
        rows = list(csv.DictReader(handle))
    assert [row["name"] for row in rows] == names
    assert rows[1]["status"] == "error"
    assert rows[1]["reason"] == "baseline image does not exist"
