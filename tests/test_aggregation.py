"""Tests for the dashboard aggregations."""

from datetime import date

import pytest

from expense_manager import aggregation

GENERAL = {'id': 'cat-general', 'name': 'General', 'color': '#6B7280', 'is_default': True}
FOOD = {'id': 'cat-food', 'name': 'Food & Dining', 'color': '#EF4444', 'is_default': False}
TRAVEL = {'id': 'cat-travel', 'name': 'Transportation', 'color': '#3B82F6', 'is_default': False}
CATEGORIES = [GENERAL, FOOD, TRAVEL]


def make_expense(amount, day, category_id='cat-general', created_at=''):
    return {
        'id': f'exp-{day}-{amount}',
        'category_id': category_id,
        'amount': amount,
        'description': 'x',
        'date': day,
        'created_at': created_at,
    }


@pytest.fixture
def expenses():
    return [
        make_expense(10, '2025-01-15', 'cat-food'),
        make_expense(20, '2025-02-03', 'cat-general'),
        make_expense(30, '2025-02-20', 'cat-food'),
    ]


class TestMonthlyTotals:

    def test_groups_by_calendar_month(self, expenses):
        assert aggregation.monthly_totals(expenses) == {'2025-01': 10, '2025-02': 50}

    def test_oldest_month_first(self, expenses):
        assert list(aggregation.monthly_totals(list(reversed(expenses)))) == ['2025-01', '2025-02']

    def test_trend_series(self, expenses):
        trend = aggregation.monthly_trend(expenses)
        assert trend == [
            {'month': '2025-01', 'amount': 10, 'display_month': 'Jan 2025'},
            {'month': '2025-02', 'amount': 50, 'display_month': 'Feb 2025'},
        ]

    def test_empty(self):
        assert aggregation.monthly_totals([]) == {}
        assert aggregation.monthly_trend([]) == []

    def test_available_months_newest_first(self, expenses):
        assert aggregation.available_months(expenses) == ['2025-02', '2025-01']


class TestCategoryBreakdown:

    def test_shares_sum_to_hundred(self, expenses):
        segments = aggregation.category_breakdown(expenses, CATEGORIES)
        assert sum(seg['percentage'] for seg in segments) == pytest.approx(100.0)

    def test_sorted_by_amount_and_skips_empty_categories(self, expenses):
        segments = aggregation.category_breakdown(expenses, CATEGORIES)
        assert [seg['category']['id'] for seg in segments] == ['cat-food', 'cat-general']
        assert segments[0]['amount'] == 40
        assert segments[0]['percentage'] == pytest.approx(66.6667, rel=1e-4)

    def test_uneven_amounts(self):
        expenses = [make_expense(0.1, '2025-03-01', 'cat-food'),
                    make_expense(0.2, '2025-03-01', 'cat-travel'),
                    make_expense(33.33, '2025-03-01', 'cat-general')]
        segments = aggregation.category_breakdown(expenses, CATEGORIES)
        assert sum(seg['percentage'] for seg in segments) == pytest.approx(100.0)

    def test_single_category_is_whole_pie(self):
        segments = aggregation.category_breakdown([make_expense(5, '2025-03-01')], CATEGORIES)
        assert len(segments) == 1
        assert segments[0]['percentage'] == pytest.approx(100.0)

    def test_no_expenses(self):
        assert aggregation.category_breakdown([], CATEGORIES) == []


class TestListings:

    def test_group_by_category(self, expenses):
        groups = aggregation.group_by_category(expenses, CATEGORIES)
        assert [group['category']['id'] for group in groups] == ['cat-general', 'cat-food']
        assert groups[1]['total'] == 40
        assert len(groups[1]['expenses']) == 2

    def test_group_by_category_skips_unknown_category(self):
        groups = aggregation.group_by_category([make_expense(5, '2025-03-01', 'cat-gone')], CATEGORIES)
        assert groups == []

    def test_recent_expenses_limit_and_order(self):
        expenses = [make_expense(i + 1, f'2025-04-{i + 1:02d}') for i in range(8)]
        recent = aggregation.recent_expenses(expenses)
        assert len(recent) == 5
        assert [exp['date'] for exp in recent] == [
            '2025-04-08', '2025-04-07', '2025-04-06', '2025-04-05', '2025-04-04'
        ]

    def test_filters(self, expenses):
        assert aggregation.total_amount(aggregation.filter_by_month(expenses, '2025-02')) == 50
        assert aggregation.filter_by_date(expenses, '2025-01-15') == [expenses[0]]

    def test_month_filter_matches_whole_key(self):
        october = make_expense(7, '2025-10-03')
        assert aggregation.filter_by_month([october], '2025-1') == []
        assert aggregation.filter_by_month([october], '2025-10') == [october]


class TestDashboardSummary:

    def test_summary_for_selected_month(self, expenses):
        summary = aggregation.dashboard_summary(
            expenses, CATEGORIES, selected_month='2025-02', selected_date='2025-02-20', today=date(2025, 2, 25)
        )
        assert summary['total_expenses'] == 60
        assert summary['this_month_total'] == 50
        assert summary['selected_month_label'] == 'February 2025'
        assert summary['month_chart']['total'] == 50
        assert summary['date_chart']['total'] == 30
        assert [seg['category']['id'] for seg in summary['date_chart']['segments']] == ['cat-food']
        assert summary['available_months'] == ['2025-02', '2025-01']

    def test_defaults_to_today(self, expenses):
        summary = aggregation.dashboard_summary(expenses, CATEGORIES, today=date(2025, 1, 15))
        assert summary['selected_month'] == '2025-01'
        assert summary['selected_date'] == '2025-01-15'
        assert summary['date_chart']['total'] == 10
