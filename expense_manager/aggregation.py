"""
Expense Manager - Aggregation

PURPOSE: Totals, trends, and chart data for the dashboard views
SCOPE: Pure functions over in-memory expense and category dicts
DEPENDENCIES: None
"""

from collections import OrderedDict
from datetime import date, datetime
from typing import List, Dict, Any, Optional

from .config import config


def month_key(expense_date: str) -> str:
    """YYYY-MM key for a YYYY-MM-DD date string."""
    return expense_date[:7]


def format_month(month: str, long: bool = False) -> str:
    """Render a YYYY-MM key as 'Jun 2025' or 'June 2025'."""
    parsed = datetime.strptime(month + '-01', '%Y-%m-%d')
    return parsed.strftime('%B %Y' if long else '%b %Y')


def total_amount(expenses: List[Dict[str, Any]]) -> float:
    return sum(expense['amount'] for expense in expenses)


def monthly_totals(expenses: List[Dict[str, Any]]) -> Dict[str, float]:
    """Sum amounts per calendar month, oldest month first."""
    totals = {}
    for expense in expenses:
        key = month_key(expense['date'])
        totals[key] = totals.get(key, 0.0) + expense['amount']
    return OrderedDict(sorted(totals.items()))


def monthly_trend(expenses: List[Dict[str, Any]]) -> List[Dict[str, Any]]:
    """Line chart series: one point per month with spending."""
    return [
        {'month': month, 'amount': amount, 'display_month': format_month(month)}
        for month, amount in monthly_totals(expenses).items()
    ]


def available_months(expenses: List[Dict[str, Any]]) -> List[str]:
    """Months that have expenses, newest first."""
    return sorted({month_key(expense['date']) for expense in expenses}, reverse=True)


def filter_by_month(expenses: List[Dict[str, Any]], month: str) -> List[Dict[str, Any]]:
    return [expense for expense in expenses if month_key(expense['date']) == month]


def filter_by_date(expenses: List[Dict[str, Any]], expense_date: str) -> List[Dict[str, Any]]:
    return [expense for expense in expenses if expense['date'] == expense_date]


def category_breakdown(expenses: List[Dict[str, Any]],
                       categories: List[Dict[str, Any]]) -> List[Dict[str, Any]]:
    """Pie chart data: amount and percentage share per category.

    Categories without spending are left out, the rest are sorted by
    amount descending. Shares sum to 100 for any non-empty result.
    """
    amounts = {}
    for expense in expenses:
        amounts[expense['category_id']] = amounts.get(expense['category_id'], 0.0) + expense['amount']

    chart_data = [
        {'category': category, 'amount': amounts[category['id']]}
        for category in categories
        if amounts.get(category['id'], 0) > 0
    ]

    group_total = sum(data['amount'] for data in chart_data)
    for data in chart_data:
        data['percentage'] = data['amount'] / group_total * 100 if group_total > 0 else 0.0

    chart_data.sort(key=lambda data: data['amount'], reverse=True)
    return chart_data


def group_by_category(expenses: List[Dict[str, Any]],
                      categories: List[Dict[str, Any]]) -> List[Dict[str, Any]]:
    """Expenses bucketed under their category with a per-category total.

    Buckets follow the order of ``categories``; expenses whose category is
    unknown are skipped.
    """
    groups = OrderedDict(
        (category['id'], {'category': category, 'expenses': [], 'total': 0.0})
        for category in categories
    )
    for expense in expenses:
        group = groups.get(expense['category_id'])
        if group is not None:
            group['expenses'].append(expense)
            group['total'] += expense['amount']
    return [group for group in groups.values() if group['expenses']]


def recent_expenses(expenses: List[Dict[str, Any]], limit: int = None) -> List[Dict[str, Any]]:
    """Latest expenses by date, newest first."""
    limit = limit or config.RECENT_EXPENSES_LIMIT
    ordered = sorted(expenses, key=lambda expense: (expense['date'], expense.get('created_at', '')), reverse=True)
    return ordered[:limit]


def dashboard_summary(expenses: List[Dict[str, Any]], categories: List[Dict[str, Any]],
                      selected_month: Optional[str] = None,
                      selected_date: Optional[str] = None,
                      today: Optional[date] = None) -> Dict[str, Any]:
    """Everything the main page shows in one payload."""
    today = today or date.today()
    selected_date = selected_date or today.isoformat()
    selected_month = selected_month or today.isoformat()[:7]
    this_month = today.isoformat()[:7]

    month_expenses = filter_by_month(expenses, selected_month)
    date_expenses = filter_by_date(expenses, selected_date)

    return {
        'total_expenses': total_amount(expenses),
        'this_month_total': total_amount(filter_by_month(expenses, this_month)),
        'expense_count': len(expenses),
        'category_count': len(categories),
        'recent_expenses': recent_expenses(expenses),
        'available_months': available_months(expenses),
        'selected_month': selected_month,
        'selected_month_label': format_month(selected_month, long=True),
        'selected_date': selected_date,
        'overall_chart': {
            'total': total_amount(expenses),
            'segments': category_breakdown(expenses, categories),
        },
        'month_chart': {
            'total': total_amount(month_expenses),
            'segments': category_breakdown(month_expenses, categories),
        },
        'date_chart': {
            'total': total_amount(date_expenses),
            'segments': category_breakdown(date_expenses, categories),
        },
    }
