from __future__ import annotations

from pathlib import Path
import pandas as pd

from payroll_audit.records import latest_period, load_records, sorted_periods
from payroll_indicators.metrics import (
    compare_periods,
    department_totals,
    filter_records,
    monthly_evolution,
    period_overview,
    records_frame,
    records_summary,
    role_totals,
    salary_bands,
)


def build_indicators(records_path: Path, out_dir: Path) -> dict[str, Path]:
    records = load_records(records_path)
    df = records_frame(records)
    periods = sorted_periods(records)

    out_dir.mkdir(parents=True, exist_ok=True)
    written: dict[str, Path] = {}

    def _write(name: str, frame: pd.DataFrame) -> None:
        path = out_dir / f"{name}.csv"
        frame.to_csv(path, index=False)
        written[name] = path
        print(f"Wrote: {path}")

    _write("monthly_evolution", monthly_evolution(df))
    _write("overview", pd.DataFrame([period_overview(df)]))

    latest = latest_period(records)
    if latest is not None:
        year, month = latest
        _write("department_totals", department_totals(df, year, month))
        _write(
            "department_summary",
            pd.DataFrame(
                [
                    {"department": d, **records_summary(filter_records(df, year, month, department=d))}
                    for d in sorted(filter_records(df, year, month)["department"].unique())
                ]
            ),
        )
        _write("role_totals", role_totals(df, year, month))
        _write("salary_bands", salary_bands(df, year, month))
    else:
        print("[input] No payroll records; skipping period breakdowns.")

    # last two periods present, adjacent or not
    if len(periods) > 1:
        _write("period_comparison", compare_periods(df, periods[-2], periods[-1]))

    return written


def main() -> int:
    repo_root = Path(__file__).resolve().parents[2]
    records_path = repo_root / "data" / "sample" / "payroll_records.csv"
    out_dir = repo_root / "outputs" / "indicators"

    build_indicators(records_path, out_dir)
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
