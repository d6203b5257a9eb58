from __future__ import annotations

from dataclasses import dataclass
from decimal import Decimal
from pathlib import Path
from typing import Iterable, Optional, Tuple
import pandas as pd


REQUIRED_COLUMNS = {
    "tax_id",
    "name",
    "role",
    "department",
    "year",
    "month",
    "gross_amount",
    "net_amount",
}
TEXT_COLUMNS = ["tax_id", "name", "role", "department", "municipality"]


@dataclass(frozen=True)
class PayrollRecord:
    tax_id: str
    name: str
    role: str
    department: str
    year: int
    month: int
    gross_amount: Decimal
    net_amount: Decimal
    municipality: str = ""

    @property
    def month_index(self) -> int:
        return self.year * 12 + self.month

    @property
    def period(self) -> Tuple[int, int]:
        return (self.year, self.month)

    @property
    def natural_key(self) -> tuple[str, int, int, str]:
        return (self.tax_id, self.year, self.month, self.department)


def _require_cols(df: pd.DataFrame, required: set[str], name: str) -> None:
    missing = sorted(required - set(df.columns))
    if missing:
        raise ValueError(f"{name} missing required columns: {missing}")


def records_from_frame(df: pd.DataFrame, name: str = "payroll records") -> list[PayrollRecord]:
    """
    Build records from an already-normalized frame.

    Amounts go through ``str`` before ``Decimal`` so that values read as
    floats keep their printed precision.
    """
    _require_cols(df, REQUIRED_COLUMNS, name)

    df = df.copy()
    if "municipality" not in df.columns:
        df["municipality"] = ""

    for col in TEXT_COLUMNS:
        df[col] = df[col].fillna("").astype(str).str.strip()

    return [
        PayrollRecord(
            tax_id=row["tax_id"],
            name=row["name"],
            role=row["role"],
            department=row["department"],
            year=int(row["year"]),
            month=int(row["month"]),
            gross_amount=Decimal(str(row["gross_amount"]).strip()),
            net_amount=Decimal(str(row["net_amount"]).strip()),
            municipality=row["municipality"],
        )
        for _, row in df.iterrows()
    ]


def load_records(path: Path) -> list[PayrollRecord]:
    df = pd.read_csv(path, dtype=str, keep_default_na=False)
    return records_from_frame(df, name=Path(path).name)


def period_key(year: int, month: int) -> str:
    # zero-padded so string order is chronological
    return f"{year}-{month:02d}"


def sorted_periods(records: Iterable[PayrollRecord]) -> list[Tuple[int, int]]:
    return sorted({r.period for r in records})


def latest_period(records: Iterable[PayrollRecord]) -> Optional[Tuple[int, int]]:
    periods = sorted_periods(records)
    return periods[-1] if periods else None


def filter_period(records: Iterable[PayrollRecord], year: int, month: int) -> list[PayrollRecord]:
    return [r for r in records if r.period == (year, month)]
