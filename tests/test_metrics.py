"""Tests for the descriptive payroll indicators."""

import pandas as pd
import pytest

from payroll_indicators.metrics import (
    SALARY_BAND_LABELS,
    compare_periods,
    department_totals,
    filter_records,
    headcount_movement,
    monthly_evolution,
    period_overview,
    records_frame,
    records_summary,
    role_totals,
    salary_bands,
)
from payroll_indicators.run import build_indicators


@pytest.fixture
def frame(mixed_records):
    return records_frame(mixed_records)


class TestFilterRecords:
    def test_no_filters_keeps_everything(self, frame):
        assert len(filter_records(frame)) == 8

    def test_year_and_month(self, frame):
        out = filter_records(frame, year=2024, month=1)

        assert len(out) == 2
        assert set(out["tax_id"]) == {"111", "222"}

    def test_department(self, frame):
        out = filter_records(frame, month=2, department="Education")

        assert out["tax_id"].tolist() == ["333", "333", "444"]

    def test_search_name_ignores_case_and_padding(self, frame):
        assert set(filter_records(frame, search=" DORA ")["tax_id"]) == {"444"}
        assert len(filter_records(frame, search="doe")) == 2

    def test_search_tax_id(self, frame):
        out = filter_records(frame, search="22")

        assert out["name"].unique().tolist() == ["John Roe"]

    def test_no_match(self, frame):
        assert filter_records(frame, year=2023).empty
        assert filter_records(frame, search="zzz").empty


class TestRecordsSummary:
    def test_kpis(self, frame):
        summary = records_summary(filter_records(frame, month=2))

        assert summary["record_count"] == 6
        assert summary["payee_count"] == 4
        assert summary["department_count"] == 2
        assert summary["gross_total"] == pytest.approx(16600.0)
        assert summary["net_total"] == pytest.approx(13500.0)
        assert summary["withholding_total"] == pytest.approx(3100.0)
        assert summary["withholding_pct"] == pytest.approx(3100 / 16600 * 100)
        assert summary["avg_gross_per_payee"] == pytest.approx(4150.0)
        assert summary["avg_net_per_payee"] == pytest.approx(3375.0)

    def test_empty_slice_is_zero(self, frame):
        summary = records_summary(filter_records(frame, search="zzz"))

        assert summary["payee_count"] == 0
        assert summary["withholding_pct"] == 0.0
        assert summary["avg_gross_per_payee"] == 0.0
        assert summary["avg_net_per_payee"] == 0.0

    def test_zero_gross(self, make_record):
        summary = records_summary(records_frame([make_record(gross="0", net="0")]))

        assert summary["payee_count"] == 1
        assert summary["withholding_pct"] == 0.0
        assert summary["avg_net_per_payee"] == 0.0


class TestMonthlyEvolution:
    def test_totals_per_period(self, frame):
        evo = monthly_evolution(frame)

        assert evo["period"].tolist() == ["2024-01", "2024-02"]
        jan, feb = evo.to_dict("records")
        assert jan["gross_total"] == pytest.approx(6250.0)
        assert jan["net_total"] == pytest.approx(6000.0)
        assert jan["withholding_total"] == pytest.approx(250.0)
        assert jan["headcount"] == 2
        assert feb["gross_total"] == pytest.approx(16600.0)
        assert feb["headcount"] == 4

    def test_chronological_across_years(self, make_record):
        df = records_frame([make_record(year=2024, month=1), make_record(year=2023, month=12)])
        assert monthly_evolution(df)["period"].tolist() == ["2023-12", "2024-01"]

    def test_empty(self):
        assert monthly_evolution(records_frame([])).empty


class TestBreakdowns:
    def test_department_totals_largest_first(self, frame):
        out = department_totals(frame, 2024, 2)

        assert out["department"].tolist() == ["Health", "Education"]
        assert out["gross_total"].tolist() == pytest.approx([9600.0, 7000.0])
        assert out["record_count"].tolist() == [3, 3]

    def test_department_totals_unknown_period(self, frame):
        assert department_totals(frame, 2020, 1).empty

    def test_role_totals_blank_role(self, make_record):
        df = records_frame(
            [
                make_record(role="", tax_id="1"),
                make_record(role="", tax_id="2"),
                make_record(role="Nurse", tax_id="3"),
            ]
        )

        out = role_totals(df, 2024, 1)

        assert out["role"].tolist() == ["Not informed", "Nurse"]
        assert out["record_count"].tolist() == [2, 1]

    def test_role_totals_top(self, make_record):
        df = records_frame([make_record(role=f"Role {i}", tax_id=str(i)) for i in range(15)])
        assert len(role_totals(df, 2024, 1, top=10)) == 10

    def test_salary_bands_edges(self, make_record):
        df = records_frame(
            [
                make_record(gross="0"),
                make_record(gross="2000"),
                make_record(gross="2000.01"),
                make_record(gross="10000"),
                make_record(gross="25000"),
            ]
        )

        out = salary_bands(df, 2024, 1)

        assert out["band"].tolist() == SALARY_BAND_LABELS
        assert out["record_count"].tolist() == [2, 1, 1, 0, 1]


class TestHeadcount:
    def test_movement(self, frame):
        assert headcount_movement(frame, (2024, 1), (2024, 2)) == {"admissions": 2, "departures": 0}
        assert headcount_movement(frame, (2024, 2), (2024, 1)) == {"admissions": 0, "departures": 2}

    def test_overview(self, frame):
        overview = period_overview(frame)

        assert overview["period"] == "2024-02"
        assert overview["previous_period"] == "2024-01"
        assert overview["gross_total"] == pytest.approx(16600.0)
        assert overview["gross_impact"] == pytest.approx(10350.0)
        assert overview["gross_variation_pct"] == pytest.approx(165.6)
        assert overview["headcount"] == 4
        assert overview["admissions"] == 2
        assert overview["departures"] == 0
        assert overview["avg_net_per_payee"] == pytest.approx(3375.0)
        assert overview["avg_gross_per_payee"] == pytest.approx(4150.0)
        assert overview["department_count"] == 2
        assert overview["withholding_pct"] == pytest.approx(3100 / 16600 * 100)

    def test_overview_single_period(self, make_record):
        overview = period_overview(records_frame([make_record()]))

        assert overview["period"] == "2024-01"
        assert overview["previous_period"] is None
        assert overview["gross_variation_pct"] == 0.0

    def test_overview_empty(self):
        overview = period_overview(records_frame([]))

        assert overview["period"] is None
        assert overview["avg_net_per_payee"] == 0.0
        assert overview["withholding_pct"] == 0.0


class TestComparePeriods:
    def test_movements(self, make_record):
        df = records_frame(
            [
                make_record(tax_id="A", name="Ana", month=1, gross="1000"),
                make_record(tax_id="A", name="Ana", month=2, gross="1200"),
                make_record(tax_id="B", name="Bia", month=1, gross="1000"),
                make_record(tax_id="C", name="Caio", month=2, gross="500"),
                make_record(tax_id="D", name="Duda", month=1, gross="300"),
                make_record(tax_id="D", name="Duda", month=2, gross="300"),
            ]
        )

        out = compare_periods(df, (2024, 1), (2024, 2))

        assert out["tax_id"].tolist() == ["B", "C", "A", "D"]
        assert out["movement"].tolist() == ["departure", "admission", "increase", "unchanged"]
        assert out["variation_pct"].tolist() == pytest.approx([-100.0, 100.0, 20.0, 0.0])
        assert out["name"].tolist() == ["Bia", "Caio", "Ana", "Duda"]

    def test_gross_summed_per_payee(self, make_record):
        df = records_frame(
            [
                make_record(tax_id="A", month=1, gross="1000"),
                make_record(tax_id="A", month=2, department="Health", gross="600"),
                make_record(tax_id="A", month=2, department="Education", gross="300"),
            ]
        )

        [row] = compare_periods(df, (2024, 1), (2024, 2)).to_dict("records")

        assert row["gross_b"] == pytest.approx(900.0)
        assert row["variation_amount"] == pytest.approx(-100.0)
        assert row["movement"] == "decrease"

    def test_no_data(self, frame):
        assert compare_periods(frame, (2020, 1), (2020, 2)).empty


class TestBuildIndicators:
    def test_writes_tables(self, records_csv, tmp_path):
        written = build_indicators(records_csv, tmp_path / "indicators")

        assert set(written) == {
            "monthly_evolution",
            "overview",
            "department_totals",
            "department_summary",
            "role_totals",
            "salary_bands",
            "period_comparison",
        }

        summary = pd.read_csv(written["department_summary"])
        assert summary["department"].tolist() == ["Education", "Health"]
        assert summary["payee_count"].tolist() == [2, 3]
        assert summary["avg_net_per_payee"].tolist() == pytest.approx([2850.0, 2600.0])

        overview = pd.read_csv(written["overview"]).iloc[0]
        assert overview["period"] == "2024-02"
        assert overview["avg_net_per_payee"] == pytest.approx(3375.0)
