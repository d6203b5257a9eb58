from decimal import Decimal

import pytest

from payroll_audit.records import PayrollRecord


@pytest.fixture
def make_record():
    """Factory for payroll records with sensible defaults."""

    def _make(
        tax_id="11122233344",
        name="Jane Doe",
        department="Health",
        year=2024,
        month=1,
        gross="1000.00",
        net="800.00",
        role="Clerk",
    ):
        return PayrollRecord(
            tax_id=tax_id,
            name=name,
            role=role,
            department=department,
            year=year,
            month=month,
            gross_amount=Decimal(str(gross)),
            net_amount=Decimal(str(net)),
        )

    return _make


@pytest.fixture
def mixed_records(make_record):
    """
    Two months of payroll containing one of each anomaly:

    - Jane Doe: net 1000 -> 1300 (variation)
    - John Roe: net == gross in January (zero withholding)
    - Carl Poe: two lines in Education in February (duplicate, new x2)
    - Dora Moe: Health and Education in February (cross-department, new x2)
    """
    return [
        make_record(tax_id="111", name="Jane Doe", month=1, gross="1250", net="1000"),
        make_record(tax_id="111", name="Jane Doe", month=2, gross="1600", net="1300"),
        make_record(tax_id="222", name="John Roe", month=1, gross="5000", net="5000"),
        make_record(tax_id="222", name="John Roe", month=2, gross="5000", net="4000"),
        make_record(tax_id="333", name="Carl Poe", department="Education", month=2, gross="2000", net="1600"),
        make_record(tax_id="333", name="Carl Poe", department="Education", month=2, gross="2000", net="1600"),
        make_record(tax_id="444", name="Dora Moe", department="Health", month=2, gross="3000", net="2500"),
        make_record(tax_id="444", name="Dora Moe", department="Education", month=2, gross="3000", net="2500"),
    ]


@pytest.fixture
def records_csv(tmp_path, mixed_records):
    """The mixed records written as a normalized CSV export."""
    lines = ["municipality,department,year,month,name,role,tax_id,gross_amount,net_amount"]
    for r in mixed_records:
        lines.append(
            f"Example,{r.department},{r.year},{r.month},{r.name},{r.role},"
            f"{r.tax_id},{r.gross_amount},{r.net_amount}"
        )
    path = tmp_path / "payroll_records.csv"
    path.write_text("\n".join(lines) + "\n", encoding="utf-8")
    return path
