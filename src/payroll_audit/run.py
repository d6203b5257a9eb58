from __future__ import annotations

from pathlib import Path
from typing import Optional, Tuple
import json
import pandas as pd

from payroll_audit.records import load_records, sorted_periods
from payroll_audit.rules import (
    AlertKind,
    AuditAlert,
    VARIATION_THRESHOLD_PCT,
    alerts_for_period,
    assign_alert_ids,
    run_all_checks,
)


ALERT_COLUMNS = [
    "alert_id",
    "kind",
    "severity",
    "title",
    "description",
    "tax_id",
    "name",
    "department",
    "year",
    "month",
    "evidence_count",
    "evidence",
    "next_action",
]

SEVERITY_ORDER = {"high": 0, "medium": 1, "low": 2}

THRESHOLDS = {
    AlertKind.CROSS_DEPARTMENT: {"expected": "one department per tax_id per month"},
    AlertKind.VARIATION: {
        "max_increase_pct": float(VARIATION_THRESHOLD_PCT),
        "compared": "consecutive months, net amounts summed per month",
    },
    AlertKind.ZERO_WITHHOLDING: {"expected": "net_amount < gross_amount when gross_amount > 0"},
    AlertKind.DUPLICATE: {"expected": "one record per tax_id, month and department"},
    AlertKind.NEW_HIRE: {"rule": "tax_id absent from the previous period"},
}

EXPLANATIONS = {
    AlertKind.CROSS_DEPARTMENT: "The same tax ID was paid by more than one department in the same month.",
    AlertKind.VARIATION: "Net pay increased above the threshold from one month to the next.",
    AlertKind.ZERO_WITHHOLDING: "Net pay equals gross pay, so no statutory withholding was applied.",
    AlertKind.DUPLICATE: "More than one payroll line shares tax ID, month and department.",
    AlertKind.NEW_HIRE: "The tax ID was not on the payroll in the previous period.",
}

NEXT_ACTIONS = {
    AlertKind.CROSS_DEPARTMENT: (
        "Confirm whether the payee legally holds concurrent positions in these departments. "
        "If not, identify which department's payment is improper and recover it."
    ),
    AlertKind.VARIATION: (
        "Check for a documented raise, promotion, bonus or back-pay for this month. "
        "If none exists, review the payroll inputs that changed the net amount."
    ),
    AlertKind.ZERO_WITHHOLDING: (
        "Verify whether the payment is legitimately exempt from withholding. "
        "Otherwise correct the deductions configuration and re-run."
    ),
    AlertKind.DUPLICATE: (
        "Compare the duplicated lines against disbursement records. "
        "If the payee was paid more than once, stop the extra payment and document the recovery."
    ),
    AlertKind.NEW_HIRE: (
        "Match the payee against appointment or hiring records for this period "
        "to rule out a ghost employee."
    ),
}


def _evidence_json(alert: AuditAlert) -> str:
    return json.dumps(
        {
            "records": [
                {
                    "tax_id": r.tax_id,
                    "name": r.name,
                    "role": r.role,
                    "department": r.department,
                    "year": r.year,
                    "month": r.month,
                    "gross_amount": float(r.gross_amount),
                    "net_amount": float(r.net_amount),
                }
                for r in alert.evidence
            ],
            "thresholds": THRESHOLDS[alert.kind],
            "explanation": EXPLANATIONS[alert.kind],
        },
        ensure_ascii=False,
    )


def alerts_to_frame(alerts: list[AuditAlert]) -> pd.DataFrame:
    rows = []
    for a, alert_id in zip(alerts, assign_alert_ids(alerts)):
        # variation evidence is (previous, current); identify by the later period
        who = a.evidence[-1] if a.kind is AlertKind.VARIATION else a.evidence[0]
        rows.append(
            {
                "alert_id": alert_id,
                "kind": a.kind.value,
                "severity": a.severity.value,
                "title": a.title,
                "description": a.description,
                "tax_id": who.tax_id,
                "name": who.name,
                "department": who.department,
                "year": who.year,
                "month": who.month,
                "evidence_count": len(a.evidence),
                "evidence": _evidence_json(a),
                "next_action": NEXT_ACTIONS[a.kind],
            }
        )

    return pd.DataFrame(rows, columns=ALERT_COLUMNS)


def summarise(alerts_df: pd.DataFrame) -> Tuple[pd.DataFrame, pd.DataFrame]:
    """
    Returns (counts by kind and severity, counts by severity).
    """
    if alerts_df.empty:
        return (
            pd.DataFrame(columns=["kind", "severity", "alert_count"]),
            pd.DataFrame(columns=["severity", "alert_count"]),
        )

    by_kind = (
        alerts_df.groupby(["kind", "severity"], as_index=False)
        .size()
        .rename(columns={"size": "alert_count"})
    )
    by_kind["sev_rank"] = by_kind["severity"].map(SEVERITY_ORDER)
    by_kind = (
        by_kind.sort_values(["sev_rank", "alert_count"], ascending=[True, False])
        .drop(columns=["sev_rank"])
        .reset_index(drop=True)
    )

    by_sev = (
        alerts_df.groupby("severity", as_index=False)
        .size()
        .rename(columns={"size": "alert_count"})
    )
    by_sev["sev_rank"] = by_sev["severity"].map(SEVERITY_ORDER)
    by_sev = by_sev.sort_values("sev_rank").drop(columns=["sev_rank"]).reset_index(drop=True)

    return by_kind, by_sev


def run_audit(
    records_path: Path,
    out_dir: Path,
    period: Optional[Tuple[int, int]] = None,
) -> pd.DataFrame:
    records = load_records(records_path)

    periods = sorted_periods(records)
    print(f"[input] Payroll records loaded: {len(records)}")
    if periods:
        first, last = periods[0], periods[-1]
        print(f"[input] Periods covered: {len(periods)} ({first[1]}/{first[0]} to {last[1]}/{last[0]})")
    blank = sum(1 for r in records if not r.tax_id or not r.name)
    print(f"[input] Rows with blank tax_id or name: {blank}")

    if period is None:
        alerts = run_all_checks(records)
    else:
        alerts = alerts_for_period(records, *period)

    alerts_df = alerts_to_frame(alerts)
    summary_df, severity_summary_df = summarise(alerts_df)

    modules_dir = out_dir / "modules"
    modules_dir.mkdir(parents=True, exist_ok=True)

    alerts_path = modules_dir / "audit_alerts.csv"
    alerts_df.to_csv(alerts_path, index=False)

    summary_path = out_dir / "summary.csv"
    summary_df.to_csv(summary_path, index=False)

    severity_summary_path = out_dir / "summary_by_severity.csv"
    severity_summary_df.to_csv(severity_summary_path, index=False)

    print(f"Wrote: {alerts_path}")
    print(f"Wrote: {summary_path}")
    print(f"Wrote: {severity_summary_path}")
    if not summary_df.empty:
        print(summary_df.to_string(index=False))

    return alerts_df


def main() -> int:
    repo_root = Path(__file__).resolve().parents[2]
    records_path = repo_root / "data" / "sample" / "payroll_records.csv"
    out_dir = repo_root / "outputs"

    run_audit(records_path, out_dir)
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
