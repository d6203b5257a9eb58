from __future__ import annotations
from pathlib import Path
from markdown import markdown


# ---------- HTML template ----------

REPORT_CSS = """
body { font-family: Arial, Helvetica, sans-serif; color: #1f2937; margin: 0; }
.report-container { max-width: 960px; margin: 2rem auto; padding: 0 1.5rem; }
h1 { color: #29417a; border-bottom: 2px solid #29417a; padding-bottom: .3rem; }
h2 { color: #29417a; margin-top: 2rem; }
table { border-collapse: collapse; width: 100%; font-size: .9rem; }
th { background: #29417a; color: #fff; text-align: left; padding: .4rem; }
td { border-bottom: 1px solid #e5e7eb; padding: .4rem; }
code { background: #f3f4f6; padding: 0 .2rem; }
"""

HTML_TEMPLATE = """<!DOCTYPE html>
<html lang="en">
<head>
  <meta charset="utf-8">
  <title>{title}</title>
  <style>{css}</style>
</head>
<body>
  <div class="report-container">
    {content}
  </div>
</body>
</html>
"""


def build_html_from_markdown(
    md_path: Path,
    html_path: Path,
    page_title: str = "Payroll Audit Findings Report",
) -> Path:
    """
    Convert the given Markdown file into a styled HTML file.
    """
    if not md_path.exists():
        raise FileNotFoundError(f"Markdown report not found: {md_path}")

    md_text = md_path.read_text(encoding="utf-8")
    # Use 'extra' + 'tables' so Markdown tables become proper <table> elements.
    content_html = markdown(md_text, extensions=["extra", "tables"])

    full_html = HTML_TEMPLATE.format(title=page_title, css=REPORT_CSS, content=content_html)

    html_path.parent.mkdir(parents=True, exist_ok=True)
    html_path.write_text(full_html, encoding="utf-8")

    return html_path
