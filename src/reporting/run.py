from pathlib import Path
from reporting.report_md import generate_audit_report
from reporting.report_html import build_html_from_markdown


def main() -> int:
    repo_root = Path(__file__).resolve().parents[2]
    outputs = repo_root / "outputs"

    generate_audit_report(
        alerts_path=outputs / "modules" / "audit_alerts.csv",
        report_path=outputs / "report.md",
        # optional: only present after payroll_indicators.run
        evolution_path=outputs / "indicators" / "monthly_evolution.csv",
        organisation_name="Example Municipality",
    )

    build_html_from_markdown(
        md_path=outputs / "report.md",
        html_path=outputs / "report.html",
        page_title="Payroll Audit Findings Report",
    )

    print("Wrote outputs/report.md / report.html")
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
