from __future__ import annotations

from dataclasses import dataclass, replace
from decimal import Decimal
from enum import Enum
from typing import Iterable
import hashlib

from payroll_audit.records import PayrollRecord, filter_period, period_key


VARIATION_THRESHOLD_PCT = Decimal("20")


class AlertKind(str, Enum):
    CROSS_DEPARTMENT = "cross_department"
    VARIATION = "variation"
    ZERO_WITHHOLDING = "zero_withholding"
    DUPLICATE = "duplicate"
    NEW_HIRE = "new_hire"


class Severity(str, Enum):
    HIGH = "high"
    MEDIUM = "medium"
    LOW = "low"


@dataclass(frozen=True)
class AuditAlert:
    kind: AlertKind
    severity: Severity
    title: str
    description: str
    evidence: tuple[PayrollRecord, ...]

    @property
    def alert_id(self) -> str:
        """
        Deterministic ID based on kind + the sorted keys of the evidence records.
        Stable across runs and input order.

        Variation evidence is keyed by (tax_id, year, month) only, since the
        record standing for a month depends on which line was seen first.
        Identical payroll lines produce identical IDs; ``assign_alert_ids``
        makes them unique within a list.
        """
        if self.kind is AlertKind.VARIATION:
            keys = [(r.tax_id, r.year, r.month) for r in self.evidence]
        else:
            keys = [r.natural_key for r in self.evidence]

        parts = [self.kind.value]
        for key in sorted(keys):
            parts.append("-".join(str(k) for k in key))

        canonical = "|".join(parts)
        return hashlib.sha1(canonical.encode("utf-8")).hexdigest()[:12]


def assign_alert_ids(alerts: Iterable[AuditAlert]) -> list[str]:
    """
    One unique ID per alert. The first alert with a given ``alert_id`` keeps
    it; repeats get the ID re-hashed with their occurrence number.
    """
    seen: dict[str, int] = {}
    ids: list[str] = []
    for a in alerts:
        base = a.alert_id
        n = seen.get(base, 0)
        seen[base] = n + 1
        if n == 0:
            ids.append(base)
        else:
            ids.append(hashlib.sha1(f"{base}#{n}".encode("utf-8")).hexdigest()[:12])
    return ids


def format_brl(amount: Decimal | float) -> str:
    # R$ 1.234,56
    text = f"{Decimal(amount):,.2f}"
    return "R$ " + text.replace(",", "_").replace(".", ",").replace("_", ".")


def _fmt_period(year: int, month: int) -> str:
    return f"{month}/{year}"


def run_cross_department_check(records: Iterable[PayrollRecord]) -> list[AuditAlert]:
    alerts: list[AuditAlert] = []

    grouped: dict[tuple[str, int, int], list[PayrollRecord]] = {}
    for r in records:
        grouped.setdefault((r.tax_id, r.year, r.month), []).append(r)

    for group in grouped.values():
        departments = list(dict.fromkeys(r.department for r in group))
        if len(departments) <= 1:
            continue

        first = group[0]
        alerts.append(
            AuditAlert(
                kind=AlertKind.CROSS_DEPARTMENT,
                severity=Severity.HIGH,
                title=f"Tax ID {first.tax_id} paid by multiple departments",
                description=(
                    f"{first.name} was paid by {', '.join(departments)} "
                    f"in the same month ({_fmt_period(first.year, first.month)})"
                ),
                evidence=tuple(group),
            )
        )

    return alerts


def run_variation_check(
    records: Iterable[PayrollRecord],
    threshold_pct: Decimal = VARIATION_THRESHOLD_PCT,
) -> list[AuditAlert]:
    """
    Flag net pay increases above ``threshold_pct`` between consecutive months.

    Net amounts are summed per payee and period first, so a payee paid by
    several departments in one month is compared on the combined figure.
    Decreases are not flagged. Periods separated by a gap are not compared.
    """
    alerts: list[AuditAlert] = []

    by_payee: dict[str, list[PayrollRecord]] = {}
    for r in records:
        by_payee.setdefault(r.tax_id, []).append(r)

    for payee_records in by_payee.values():
        # (year, month) -> representative record carrying the period sums
        by_month: dict[tuple[int, int], PayrollRecord] = {}
        for r in payee_records:
            key = (r.year, r.month)
            current = by_month.get(key)
            if current is None:
                by_month[key] = r
            else:
                by_month[key] = replace(
                    current,
                    gross_amount=current.gross_amount + r.gross_amount,
                    net_amount=current.net_amount + r.net_amount,
                )

        months = sorted(by_month.values(), key=lambda r: r.month_index)

        for prev, curr in zip(months, months[1:]):
            if curr.month_index - prev.month_index != 1:
                continue
            if prev.net_amount <= 0:
                continue

            variation = (curr.net_amount - prev.net_amount) / prev.net_amount * 100
            if variation <= threshold_pct:
                continue

            alerts.append(
                AuditAlert(
                    kind=AlertKind.VARIATION,
                    severity=Severity.MEDIUM,
                    title=f"Net pay variation of {variation:.1f}%",
                    description=(
                        f"{curr.name} ({curr.tax_id}): from {format_brl(prev.net_amount)} "
                        f"to {format_brl(curr.net_amount)} "
                        f"({_fmt_period(prev.year, prev.month)} → {_fmt_period(curr.year, curr.month)})"
                    ),
                    evidence=(prev, curr),
                )
            )

    return alerts


def run_zero_withholding_check(records: Iterable[PayrollRecord]) -> list[AuditAlert]:
    return [
        AuditAlert(
            kind=AlertKind.ZERO_WITHHOLDING,
            severity=Severity.MEDIUM,
            title="Net equals gross (no withholding)",
            description=(
                f"{r.name} ({r.tax_id}): {format_brl(r.gross_amount)} "
                f"in {_fmt_period(r.year, r.month)} - {r.department}"
            ),
            evidence=(r,),
        )
        for r in records
        if r.gross_amount > 0 and r.net_amount == r.gross_amount
    ]


def run_duplicate_check(records: Iterable[PayrollRecord]) -> list[AuditAlert]:
    grouped: dict[tuple[str, int, int, str], list[PayrollRecord]] = {}
    for r in records:
        grouped.setdefault(r.natural_key, []).append(r)

    alerts: list[AuditAlert] = []
    for group in grouped.values():
        if len(group) < 2:
            continue

        first = group[0]
        alerts.append(
            AuditAlert(
                kind=AlertKind.DUPLICATE,
                severity=Severity.HIGH,
                title="Tax ID duplicated in the month",
                description=(
                    f"{first.name} ({first.tax_id}) appears {len(group)}x in "
                    f"{first.department} - {_fmt_period(first.year, first.month)}"
                ),
                evidence=tuple(group),
            )
        )

    return alerts


def run_new_hire_check(records: Iterable[PayrollRecord]) -> list[AuditAlert]:
    """
    Flag every record whose tax ID was absent from the previous period
    present in the data. The first period never produces alerts.
    """
    alerts: list[AuditAlert] = []

    by_month: dict[str, list[PayrollRecord]] = {}
    for r in records:
        by_month.setdefault(period_key(r.year, r.month), []).append(r)

    period_keys = sorted(by_month)

    for prev_key, curr_key in zip(period_keys, period_keys[1:]):
        prev_tax_ids = {r.tax_id for r in by_month[prev_key]}

        for r in by_month[curr_key]:
            if r.tax_id in prev_tax_ids:
                continue

            alerts.append(
                AuditAlert(
                    kind=AlertKind.NEW_HIRE,
                    severity=Severity.LOW,
                    title=f"New on payroll: {r.name}",
                    description=(
                        f"{r.name} ({r.tax_id}) appeared for the first time in "
                        f"{r.department} - {_fmt_period(r.year, r.month)} "
                        f"(Gross: {format_brl(r.gross_amount)})"
                    ),
                    evidence=(r,),
                )
            )

    return alerts


def run_all_checks(records: Iterable[PayrollRecord]) -> list[AuditAlert]:
    records = list(records)
    return [
        *run_cross_department_check(records),
        *run_variation_check(records),
        *run_zero_withholding_check(records),
        *run_duplicate_check(records),
        *run_new_hire_check(records),
    ]


def alerts_touching_period(
    alerts: Iterable[AuditAlert],
    year: int,
    month: int,
) -> list[AuditAlert]:
    return [
        a for a in alerts
        if any(r.period == (year, month) for r in a.evidence)
    ]


def alerts_for_period(
    records: Iterable[PayrollRecord],
    year: int,
    month: int,
) -> list[AuditAlert]:
    """
    Alerts for a single period.

    Non-temporal checks only see that period's records. Variation and
    new-hire need the neighbouring periods, so they run on the full set and
    their alerts are kept when the evidence touches the period.
    """
    records = list(records)
    in_period = filter_period(records, year, month)

    return [
        *run_cross_department_check(in_period),
        *alerts_touching_period(run_variation_check(records), year, month),
        *run_zero_withholding_check(in_period),
        *run_duplicate_check(in_period),
        *alerts_touching_period(run_new_hire_check(records), year, month),
    ]


def count_by_kind(alerts: Iterable[AuditAlert]) -> dict[AlertKind, int]:
    counts = {kind: 0 for kind in AlertKind}
    for a in alerts:
        counts[a.kind] += 1
    return counts


def count_by_severity(alerts: Iterable[AuditAlert]) -> dict[Severity, int]:
    counts = {sev: 0 for sev in Severity}
    for a in alerts:
        counts[a.severity] += 1
    return counts
