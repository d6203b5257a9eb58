from __future__ import annotations

from pathlib import Path
from datetime import datetime
from typing import Optional
import json
import pandas as pd

from payroll_audit.rules import format_brl


SEVERITY_ORDER = {"high": 0, "medium": 1, "low": 2}

KIND_ORDER = ["cross_department", "variation", "zero_withholding", "duplicate", "new_hire"]


def _safe_json_loads(s: str | None) -> dict:
    if not s or not isinstance(s, str):
        return {}
    try:
        return json.loads(s)
    except ValueError:
        return {}


def _fmt_int(n: int) -> str:
    return f"{n:,}"


def _fmt_date_now() -> str:
    return datetime.now().strftime("%Y-%m-%d %H:%M")


def _sort_severity(s: str) -> int:
    return SEVERITY_ORDER.get(str(s).lower(), 99)


def _kind_name(kind: str) -> str:
    return {
        "cross_department": "Paid by multiple departments",
        "variation": "Net pay increase above 20%",
        "zero_withholding": "Net equals gross",
        "duplicate": "Duplicated in the month",
        "new_hire": "New on payroll",
    }.get(kind, kind)


def _pick_example_rows(df: pd.DataFrame, kind: str, max_rows: int = 3) -> pd.DataFrame:
    sub = df[df["kind"] == kind].copy()
    if sub.empty:
        return sub

    return sub.sort_values(["year", "month", "tax_id"], ascending=[False, False, True]).head(max_rows)


def _evolution_lines(evolution: pd.DataFrame) -> list[str]:
    lines = [
        "| Period | Gross | Net | Withholding | Headcount |",
        "|---|---:|---:|---:|---:|",
    ]
    for _, r in evolution.iterrows():
        lines.append(
            f"| {r['period']} | {format_brl(r['gross_total'])} | {format_brl(r['net_total'])} "
            f"| {format_brl(r['withholding_total'])} | {_fmt_int(int(r['headcount']))} |"
        )
    return lines


def build_report_md(
    alerts: pd.DataFrame,
    evolution: Optional[pd.DataFrame] = None,
    organisation_name: str = "Municipal Government",
) -> str:
    now = _fmt_date_now()

    if alerts.empty:
        return (
            "# Payroll Audit Findings Report\n\n"
            f"**{organisation_name}**\n\n"
            f"_Generated: {now}_\n\n"
            "No findings were produced for this run.\n"
        )

    alerts = alerts.copy()

    # Normalize
    for col in ["kind", "severity", "tax_id", "name", "department", "description", "next_action", "evidence"]:
        if col not in alerts.columns:
            alerts[col] = ""
    for col in ["year", "month"]:
        if col not in alerts.columns:
            alerts[col] = 0

    alerts["severity"] = alerts["severity"].astype(str).str.lower()
    alerts["kind"] = alerts["kind"].astype(str)
    alerts["tax_id"] = alerts["tax_id"].astype(str)

    total = len(alerts)
    sev_counts = alerts["severity"].value_counts()
    sev_map = {
        sev: int(sev_counts[sev])
        for sev in sorted(sev_counts.index, key=_sort_severity)
    }
    kind_counts = alerts["kind"].value_counts()

    lines: list[str] = []
    lines.append("# Payroll Audit Findings Report")
    lines.append("")
    lines.append(f"**{organisation_name}**")
    lines.append("")
    lines.append(f"_Generated: {now}_")
    lines.append("")
    lines.append("## Executive summary")
    lines.append("")
    lines.append(f"- Total findings: **{_fmt_int(total)}**")
    lines.append(
        "- Severity breakdown: "
        + ", ".join([f"**{k.upper()}** {_fmt_int(v)}" for k, v in sev_map.items()])
    )
    lines.append(f"- Distinct payees flagged: **{_fmt_int(alerts['tax_id'].nunique())}**")
    lines.append("")
    lines.append("**What this report is:** A set of payroll anomaly flags with evidence and next actions.")
    lines.append("**What this report is not:** A finding of fraud. Each flag needs confirmation against source documents.")
    lines.append("")

    lines.append("## Findings by check")
    lines.append("")
    for kind in KIND_ORDER:
        count = int(kind_counts.get(kind, 0))
        lines.append(f"- **{_kind_name(kind)}** (`{kind}`): {_fmt_int(count)}")
    lines.append("")

    if evolution is not None and not evolution.empty:
        lines.append("## Cost evolution")
        lines.append("")
        lines.extend(_evolution_lines(evolution))
        lines.append("")

    lines.append("## Recommended next actions (prioritised)")
    lines.append("")
    lines.append("1. **Address HIGH severity findings first** (duplicated lines, payees paid by several departments).")
    lines.append("2. **Confirm business context** for MEDIUM findings (raises, withholding exemptions).")
    lines.append("3. **Match LOW findings** against hiring records to rule out ghost employees.")
    lines.append("4. **Re-run after remediation** to confirm closure.")
    lines.append("")

    lines.append("## Appendix A — Examples with evidence (sample)")
    lines.append("")
    present = [k for k in KIND_ORDER if k in kind_counts.index]
    for kind in present:
        sub = _pick_example_rows(alerts, kind=kind, max_rows=3)
        if sub.empty:
            continue

        sev = str(sub.iloc[0].get("severity", "")).upper()
        lines.append(f"### {_kind_name(kind)} ({sev})")
        lines.append("")

        for _, row in sub.iterrows():
            evidence = _safe_json_loads(row.get("evidence"))
            explanation = evidence.get("explanation") or ""
            records = evidence.get("records") or []
            nxt = row.get("next_action", "") or ""

            lines.append(
                f"- **Payee:** {row.get('name', '')} (`{row.get('tax_id', '')}`)  "
                f"| **Department:** {row.get('department', '')}  "
                f"| **Period:** {row.get('month', '')}/{row.get('year', '')}"
            )
            lines.append(f"  - **Finding:** {row.get('description', '')}")
            if explanation:
                lines.append(f"  - **Evidence:** {explanation}")
            if records:
                lines.append(f"  - **Records:** {len(records)} payroll line(s)")
            if nxt:
                lines.append(f"  - **Next action:** {nxt}")
            lines.append("")

    lines.append("---")
    lines.append("### Notes")
    lines.append("- Variation flags only increases between consecutive months; pay cuts are not flagged.")
    lines.append("- New-on-payroll flags one line per record, so a new payee paid by two departments appears twice.")
    lines.append("")

    return "\n".join(lines)


def generate_audit_report(
    alerts_path: Path,
    report_path: Path,
    evolution_path: Optional[Path] = None,
    organisation_name: str = "Municipal Government",
) -> Path:
    if not alerts_path.exists():
        placeholder = (
            "# Payroll Audit Findings Report\n\n"
            "_Generated: (no audit alerts available)_\n\n"
            f"No audit alerts were found at `{alerts_path.name}`.\n\n"
            "- Run `python -m payroll_audit.run`\n"
            "- Then re-run `python -m reporting.run`\n"
        )
        report_path.parent.mkdir(parents=True, exist_ok=True)
        report_path.write_text(placeholder, encoding="utf-8")
        print(f"[report_md] {alerts_path.name} not found, wrote placeholder report to {report_path}")
        return report_path

    # Treat read failures as 'no findings'
    try:
        df = pd.read_csv(alerts_path, dtype={"tax_id": str})
    except (pd.errors.EmptyDataError, pd.errors.ParserError) as exc:
        print(f"[report_md] Warning: could not read {alerts_path}: {exc!r}")
        df = pd.DataFrame()

    evolution = None
    if evolution_path is not None and evolution_path.exists():
        evolution = pd.read_csv(evolution_path)

    md = build_report_md(df, evolution=evolution, organisation_name=organisation_name)
    report_path.parent.mkdir(parents=True, exist_ok=True)
    report_path.write_text(md, encoding="utf-8")

    print(f"Wrote: {report_path}")
    return report_path
