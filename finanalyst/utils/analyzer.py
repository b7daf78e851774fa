from __future__ import annotations

from collections import defaultdict
from typing import Any, Dict, List, Optional, Tuple

from finanalyst.db.store import sort_records
from finanalyst.models.report import CategoryBreakdown, MonthlyTrend, TransactionStats


def _amount(record: Dict[str, Any]) -> float:
    return float(record.get("amount", 0))


class TransactionAnalyzer:
    """
    Read-only reporting over a list of transaction records: summary statistics,
    per-category breakdowns and monthly trends. Nothing here mutates the records
    passed in, so repeated calls over the same records give the same answer.
    """

    def __init__(self, precision: int = 2) -> None:
        self._precision = precision

    def _round(self, value: float) -> float:
        return round(value, self._precision)

    def stats(self, records: List[Dict[str, Any]]) -> TransactionStats:
        if not records:
            return TransactionStats()

        amounts = [_amount(record) for record in records]
        total = sum(amounts)
        return TransactionStats(
            total_transactions=len(amounts),
            total_amount=self._round(total),
            avg_amount=self._round(total / len(amounts)),
            min_amount=min(amounts),
            max_amount=max(amounts),
        )

    def category_breakdown(
        self,
        records: List[Dict[str, Any]],
        category: Optional[str] = None,
    ) -> List[CategoryBreakdown]:
        """
        Group by category with count, sum and average, largest sum first.
        Equal sums are ordered by category name.
        """
        groups: Dict[str, List[float]] = defaultdict(list)
        for record in records:
            if category is not None and record.get("category") != category:
                continue
            groups[record["category"]].append(_amount(record))

        breakdown = [
            CategoryBreakdown(
                category=name,
                count=len(amounts),
                total=self._round(sum(amounts)),
                avg=self._round(sum(amounts) / len(amounts)),
            )
            for name, amounts in groups.items()
        ]
        breakdown.sort(key=lambda item: item.category)
        breakdown.sort(key=lambda item: item.total, reverse=True)
        return breakdown

    def monthly_trends(self, records: List[Dict[str, Any]]) -> List[MonthlyTrend]:
        totals: Dict[Tuple[int, int, str], float] = defaultdict(float)
        for record in records:
            when = record["date"]
            totals[(when.year, when.month, record["category"])] += _amount(record)

        return [
            MonthlyTrend(year=year, month=month, category=category, total=self._round(total))
            for (year, month, category), total in sorted(totals.items())
        ]

    def recent(self, records: List[Dict[str, Any]], count: int = 5) -> List[Dict[str, Any]]:
        return sort_records(list(records), "date", "desc")[:count]
