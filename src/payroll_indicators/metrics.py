from __future__ import annotations

from typing import Iterable, Optional, Tuple
import pandas as pd

from payroll_audit.records import PayrollRecord, period_key


Period = Tuple[int, int]

FRAME_COLUMNS = [
    "tax_id",
    "name",
    "role",
    "department",
    "year",
    "month",
    "gross_amount",
    "net_amount",
]

SALARY_BAND_EDGES = [0.0, 2000.0, 5000.0, 10000.0, 20000.0, float("inf")]
SALARY_BAND_LABELS = [
    "Up to R$ 2.000",
    "R$ 2.000 - 5.000",
    "R$ 5.000 - 10.000",
    "R$ 10.000 - 20.000",
    "Above R$ 20.000",
]


def records_frame(records: Iterable[PayrollRecord]) -> pd.DataFrame:
    """
    Flat frame for descriptive analytics. Amounts become floats here; the
    audit checks keep working on the exact Decimal values.
    """
    rows = [
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
        for r in records
    ]
    df = pd.DataFrame(rows, columns=FRAME_COLUMNS)
    return df.astype({"year": "int64", "month": "int64", "gross_amount": "float64", "net_amount": "float64"})


def _period_rows(df: pd.DataFrame, period: Period) -> pd.DataFrame:
    year, month = period
    return df[(df["year"] == year) & (df["month"] == month)]


def _periods(df: pd.DataFrame) -> list[Period]:
    pairs = df[["year", "month"]].drop_duplicates().itertuples(index=False, name=None)
    return sorted((int(y), int(m)) for y, m in pairs)


def filter_records(
    df: pd.DataFrame,
    year: Optional[int] = None,
    month: Optional[int] = None,
    department: Optional[str] = None,
    search: str = "",
) -> pd.DataFrame:
    """
    Narrow the frame the way the dashboard filters do. ``None`` or an empty
    search leaves that dimension unfiltered. The search matches a
    case-insensitive substring of the name, or a substring of the tax ID.
    """
    mask = pd.Series(True, index=df.index)
    if year is not None:
        mask &= df["year"] == year
    if month is not None:
        mask &= df["month"] == month
    if department:
        mask &= df["department"] == department
    if search:
        term = search.strip()
        by_name = df["name"].str.lower().str.contains(term.lower(), regex=False)
        by_tax_id = df["tax_id"].str.contains(term, regex=False)
        mask &= by_name | by_tax_id
    return df[mask]


def records_summary(df: pd.DataFrame) -> dict:
    """
    Headline KPIs for whatever slice of records is passed in.
    Per-payee averages and the withholding share are 0 on an empty slice.
    """
    gross = float(df["gross_amount"].sum())
    net = float(df["net_amount"].sum())
    payees = int(df["tax_id"].nunique())

    return {
        "record_count": int(len(df)),
        "payee_count": payees,
        "department_count": int(df["department"].nunique()),
        "gross_total": gross,
        "net_total": net,
        "withholding_total": gross - net,
        "withholding_pct": (gross - net) / gross * 100 if gross > 0 else 0.0,
        "avg_gross_per_payee": gross / payees if payees > 0 else 0.0,
        "avg_net_per_payee": net / payees if payees > 0 else 0.0,
    }


def monthly_evolution(df: pd.DataFrame) -> pd.DataFrame:
    columns = ["period", "year", "month", "gross_total", "net_total", "withholding_total", "headcount"]
    if df.empty:
        return pd.DataFrame(columns=columns)

    out = (
        df.groupby(["year", "month"], as_index=False)
        .agg(
            gross_total=("gross_amount", "sum"),
            net_total=("net_amount", "sum"),
            headcount=("tax_id", "nunique"),
        )
        .sort_values(["year", "month"])
        .reset_index(drop=True)
    )
    out["withholding_total"] = out["gross_total"] - out["net_total"]
    out["period"] = [period_key(y, m) for y, m in zip(out["year"], out["month"])]
    return out[columns]


def department_totals(df: pd.DataFrame, year: int, month: int) -> pd.DataFrame:
    sub = _period_rows(df, (year, month))
    if sub.empty:
        return pd.DataFrame(columns=["department", "gross_total", "net_total", "record_count"])

    return (
        sub.groupby("department", as_index=False)
        .agg(
            gross_total=("gross_amount", "sum"),
            net_total=("net_amount", "sum"),
            record_count=("tax_id", "size"),
        )
        .sort_values("gross_total", ascending=False)
        .reset_index(drop=True)
    )


def role_totals(df: pd.DataFrame, year: int, month: int, top: int = 10) -> pd.DataFrame:
    sub = _period_rows(df, (year, month)).copy()
    if sub.empty:
        return pd.DataFrame(columns=["role", "record_count", "gross_total"])

    sub["role"] = sub["role"].where(sub["role"].str.strip() != "", "Not informed")
    return (
        sub.groupby("role", as_index=False)
        .agg(
            record_count=("tax_id", "size"),
            gross_total=("gross_amount", "sum"),
        )
        .sort_values(["record_count", "gross_total"], ascending=[False, False])
        .head(top)
        .reset_index(drop=True)
    )


def salary_bands(df: pd.DataFrame, year: int, month: int) -> pd.DataFrame:
    sub = _period_rows(df, (year, month))
    bands = pd.cut(
        sub["gross_amount"],
        bins=SALARY_BAND_EDGES,
        labels=SALARY_BAND_LABELS,
        right=True,
        include_lowest=True,
    )
    counts = bands.value_counts().reindex(SALARY_BAND_LABELS, fill_value=0)
    return pd.DataFrame({"band": SALARY_BAND_LABELS, "record_count": counts.astype(int).tolist()})


def headcount_movement(df: pd.DataFrame, previous: Period, current: Period) -> dict[str, int]:
    prev_ids = set(_period_rows(df, previous)["tax_id"])
    curr_ids = set(_period_rows(df, current)["tax_id"])
    return {
        "admissions": len(curr_ids - prev_ids),
        "departures": len(prev_ids - curr_ids),
    }


def period_overview(df: pd.DataFrame) -> dict:
    """
    Headline figures for the latest period against the one before it.
    """
    periods = _periods(df)
    overview: dict = {
        "period": None,
        "previous_period": None,
        **records_summary(df.iloc[0:0]),
        "previous_gross_total": 0.0,
        "gross_impact": 0.0,
        "gross_variation_pct": 0.0,
        "headcount": 0,
        "admissions": 0,
        "departures": 0,
    }
    if not periods:
        return overview

    current = periods[-1]
    previous: Optional[Period] = periods[-2] if len(periods) > 1 else None

    curr_rows = _period_rows(df, current)
    overview["period"] = period_key(*current)
    overview.update(records_summary(curr_rows))
    overview["headcount"] = overview["payee_count"]

    if previous is None:
        return overview

    prev_gross = float(_period_rows(df, previous)["gross_amount"].sum())
    overview["previous_period"] = period_key(*previous)
    overview["previous_gross_total"] = prev_gross
    overview["gross_impact"] = overview["gross_total"] - prev_gross
    if prev_gross > 0:
        overview["gross_variation_pct"] = (overview["gross_total"] - prev_gross) / prev_gross * 100
    overview.update(headcount_movement(df, previous, current))
    return overview


def _movement(in_a: bool, in_b: bool, diff: float) -> str:
    if in_b and not in_a:
        return "admission"
    if in_a and not in_b:
        return "departure"
    if diff > 0:
        return "increase"
    if diff < 0:
        return "decrease"
    return "unchanged"


def compare_periods(df: pd.DataFrame, period_a: Period, period_b: Period) -> pd.DataFrame:
    """
    Per-payee gross comparison between two periods.

    Gross amounts are summed per tax ID within each period. The percentage
    is relative to period A; a payee absent from A counts as +100% when paid
    in B.
    """
    columns = ["tax_id", "name", "gross_a", "gross_b", "variation_amount", "variation_pct", "movement"]

    def _per_payee(period: Period) -> pd.DataFrame:
        return (
            _period_rows(df, period)
            .groupby("tax_id", as_index=False, sort=False)
            .agg(name=("name", "last"), gross=("gross_amount", "sum"))
        )

    a = _per_payee(period_a)
    b = _per_payee(period_b)
    if a.empty and b.empty:
        return pd.DataFrame(columns=columns)

    merged = a.merge(b, on="tax_id", how="outer", suffixes=("_a", "_b"), indicator=True)
    merged["in_a"] = merged["_merge"].isin(["both", "left_only"])
    merged["in_b"] = merged["_merge"].isin(["both", "right_only"])
    merged["gross_a"] = merged["gross_a"].fillna(0.0).astype(float)
    merged["gross_b"] = merged["gross_b"].fillna(0.0).astype(float)
    merged["name"] = merged["name_b"].where(merged["in_b"], merged["name_a"])
    merged["variation_amount"] = merged["gross_b"] - merged["gross_a"]

    def _pct(row: pd.Series) -> float:
        if row["gross_a"] > 0:
            return row["variation_amount"] / row["gross_a"] * 100
        return 100.0 if row["gross_b"] > 0 else 0.0

    merged["variation_pct"] = merged.apply(_pct, axis=1)
    merged["movement"] = [
        _movement(in_a, in_b, diff)
        for in_a, in_b, diff in zip(merged["in_a"], merged["in_b"], merged["variation_amount"])
    ]

    merged["abs_variation"] = merged["variation_amount"].abs()
    merged = merged.sort_values("abs_variation", ascending=False, kind="stable")
    return merged[columns].reset_index(drop=True)
