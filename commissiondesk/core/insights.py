"""Rules-based performance insights for the admin analytics view."""
from __future__ import annotations

from dataclasses import dataclass
from decimal import Decimal
from typing import List, Sequence

from commissiondesk.core.formatting import format_money

REVIEW_COMMISSION_RATE = Decimal("20")
ABOVE_AVERAGE_MARGIN = Decimal("5")


@dataclass(frozen=True)
class CampaignPerformance:
    title: str
    total_sales: Decimal
    commission_rate: Decimal


@dataclass(frozen=True)
class SalesPersonPerformance:
    name: str
    total_sales: Decimal
    current_rate: Decimal


def _top(entries, attribute: str):
    # max() keeps the first of equal entries, i.e. input (creation) order
    best = max(entries, key=lambda entry: getattr(entry, attribute), default=None)
    if best is None or getattr(best, attribute) <= 0:
        return None
    return best


def build_insights(
    campaigns: Sequence[CampaignPerformance],
    sales_people: Sequence[SalesPersonPerformance],
) -> List[str]:
    insights: List[str] = []

    top_seller = _top(sales_people, "total_sales")
    if top_seller:
        insights.append(f"Top performer: {top_seller.name} with {format_money(top_seller.total_sales)} in sales.")

    top_campaign = _top(campaigns, "total_sales")
    if top_campaign:
        insights.append(f'Best campaign: "{top_campaign.title}" with {format_money(top_campaign.total_sales)} sales.')

    with_sales = [campaign for campaign in campaigns if campaign.total_sales > 0]
    if len(with_sales) > 1:
        costliest = max(with_sales, key=lambda campaign: campaign.commission_rate)
        if costliest.commission_rate > REVIEW_COMMISSION_RATE:
            insights.append(
                f'Review: "{costliest.title}" has a high {costliest.commission_rate:.1f}% commission rate.'
            )

    if sales_people:
        average = sum((person.current_rate for person in sales_people), Decimal("0")) / len(sales_people)
        above = [person for person in sales_people if person.current_rate > average + ABOVE_AVERAGE_MARGIN]
        if above:
            insights.append(f"{len(above)} sales person(s) above the average ({average:.1f}%) commission rate.")

    return insights
