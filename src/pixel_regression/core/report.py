"""结果汇总与报告生成。"""

from __future__ import annotations

import csv
from pathlib import Path
from typing import Iterable, Sequence

from pixel_regression.core.models import (
    STATUS_ERROR,
    STATUS_FAIL,
    STATUS_PASS,
    CaseOutcome,
    RunSummary,
)

HEADER = ["name", "status", "reason", "difference"]


def summarize(outcomes: Sequence[CaseOutcome]) -> RunSummary:
    """将逐个用例的结果汇总，决定整次运行是否成功。"""

    ordered = list(outcomes)
    return RunSummary(
        outcomes=ordered,
        passed=[o for o in ordered if o.status == STATUS_PASS],
        failed=[o for o in ordered if o.status == STATUS_FAIL],
        errored=[o for o in ordered if o.status == STATUS_ERROR],
    )


def format_summary(summary: RunSummary) -> str:
    lines = [
        f"共 {len(summary.outcomes)} 个用例：通过 {len(summary.passed)} 个，"
        f"失败 {len(summary.failed)} 个，错误 {len(summary.errored)} 个。"
    ]
    for outcome in summary.non_passing():
        lines.append(f"  [{outcome.status.upper()}] {outcome.name}: {outcome.reason or ''}")
    return "\n".join(lines)


def write_csv_report(outcomes: Iterable[CaseOutcome], report_path: Path) -> Path:
    """将运行结果写入 CSV 报告。"""

    report_path.parent.mkdir(parents=True, exist_ok=True)
    with report_path.open("w", newline="", encoding="utf-8") as handle:
        writer = csv.writer(handle)
        writer.writerow(HEADER)
        for record in outcomes:
            writer.writerow(
                [
                    record.name,
                    record.status,
                    record.reason or "",
                    _format_difference(record.difference),
                ]
            )
    return report_path


def _format_difference(value: float | None) -> str:
    if value is None:
        return ""
    return f"{value:.6g}"
