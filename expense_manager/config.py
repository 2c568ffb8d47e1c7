"""
Expense Manager - Configuration and Constants

PURPOSE: Central configuration management for the application
SCOPE: Application settings, constants, and environment variables
DEPENDENCIES: None (foundational module)
"""

import os
import logging
from dataclasses import dataclass
from typing import List, Dict


@dataclass
class AppConfig:
    """Application configuration constants."""
    DB_FILE: str = 'expenses.db'
    DEFAULT_CURRENCY_CODE: str = 'USD'
    DEFAULT_CURRENCY_SYMBOL: str = '$'
    DEFAULT_CATEGORY_ICON: str = 'folder'
    SESSION_TTL_HOURS: int = 24 * 14
    RECENT_EXPENSES_LIMIT: int = 5
    LOG_LEVEL: str = 'INFO'
    STORAGE_TIMEOUT_SECONDS: float = 5.0
    STARTER_CATEGORIES: List[Dict[str, object]] = None
    CURRENCIES: List[Dict[str, str]] = None
    CATEGORY_COLORS: List[str] = None
    CATEGORY_ICONS: List[str] = None

    def __post_init__(self):
        self.DB_FILE = os.environ.get('EXPENSE_DB_FILE', self.DB_FILE)
        self.SESSION_TTL_HOURS = int(os.environ.get('EXPENSE_SESSION_TTL_HOURS', self.SESSION_TTL_HOURS))
        self.LOG_LEVEL = os.environ.get('EXPENSE_LOG_LEVEL', self.LOG_LEVEL).upper()
        self.STORAGE_TIMEOUT_SECONDS = float(os.environ.get('EXPENSE_STORAGE_TIMEOUT_SECONDS', self.STORAGE_TIMEOUT_SECONDS))

        if self.STARTER_CATEGORIES is None:
            # Exactly one entry is the default, and it must stay first in the batch
            self.STARTER_CATEGORIES = [
                {'name': 'General', 'color': '#6B7280', 'icon': 'folder', 'is_default': True},
                {'name': 'Food & Dining', 'color': '#EF4444', 'icon': 'utensils', 'is_default': False},
                {'name': 'Transportation', 'color': '#3B82F6', 'icon': 'car', 'is_default': False},
                {'name': 'Shopping', 'color': '#8B5CF6', 'icon': 'shopping-bag', 'is_default': False},
                {'name': 'Entertainment', 'color': '#10B981', 'icon': 'gamepad-2', 'is_default': False},
                {'name': 'Bills & Utilities', 'color': '#F59E0B', 'icon': 'home', 'is_default': False},
                {'name': 'Healthcare', 'color': '#EC4899', 'icon': 'heart', 'is_default': False},
                {'name': 'Education', 'color': '#14B8A6', 'icon': 'book', 'is_default': False},
            ]
        if self.CURRENCIES is None:
            self.CURRENCIES = [
                {'code': 'USD', 'symbol': '$', 'name': 'US Dollar'},
                {'code': 'EUR', 'symbol': '€', 'name': 'Euro'},
                {'code': 'GBP', 'symbol': '£', 'name': 'British Pound'},
                {'code': 'JPY', 'symbol': '¥', 'name': 'Japanese Yen'},
                {'code': 'CAD', 'symbol': 'C$', 'name': 'Canadian Dollar'},
                {'code': 'AUD', 'symbol': 'A$', 'name': 'Australian Dollar'},
                {'code': 'CHF', 'symbol': 'CHF', 'name': 'Swiss Franc'},
                {'code': 'CNY', 'symbol': '¥', 'name': 'Chinese Yuan'},
                {'code': 'INR', 'symbol': '₹', 'name': 'Indian Rupee'},
                {'code': 'KRW', 'symbol': '₩', 'name': 'South Korean Won'},
                {'code': 'SGD', 'symbol': 'S$', 'name': 'Singapore Dollar'},
                {'code': 'HKD', 'symbol': 'HK$', 'name': 'Hong Kong Dollar'},
            ]
        if self.CATEGORY_COLORS is None:
            self.CATEGORY_COLORS = [
                # Reds
                '#EF4444', '#DC2626', '#B91C1C', '#991B1B',
                # Oranges
                '#F97316', '#EA580C', '#C2410C', '#9A3412',
                # Yellows
                '#F59E0B', '#D97706', '#B45309', '#92400E',
                # Greens
                '#22C55E', '#16A34A', '#15803D', '#166534',
                '#84CC16', '#65A30D', '#4D7C0F', '#365314',
                # Teals
                '#14B8A6', '#0D9488', '#0F766E', '#134E4A',
                '#10B981', '#059669', '#047857', '#064E3B',
                # Blues
                '#3B82F6', '#2563EB', '#1D4ED8', '#1E40AF',
                '#06B6D4', '#0891B2', '#0E7490', '#155E75',
                '#0EA5E9', '#0284C7', '#0369A1', '#075985',
                # Purples
                '#8B5CF6', '#7C3AED', '#6D28D9', '#5B21B6',
                '#A855F7', '#9333EA', '#7E22CE', '#6B21A8',
                # Pinks
                '#EC4899', '#DB2777', '#BE185D', '#9D174D',
                '#C026D3', '#A21CAF', '#86198F', '#701A75',
                # Grays
                '#6B7280', '#4B5563', '#374151', '#1F2937',
            ]
        if self.CATEGORY_ICONS is None:
            self.CATEGORY_ICONS = [
                'folder', 'shopping-bag', 'car', 'home', 'utensils', 'plane',
                'gamepad-2', 'heart', 'book', 'music', 'camera', 'coffee',
                'shirt', 'fuel', 'stethoscope', 'graduation-cap', 'briefcase',
            ]

    def currency_symbol(self, currency_code: str):
        """Return the display symbol for a supported currency code, or None."""
        for currency in self.CURRENCIES:
            if currency['code'] == currency_code:
                return currency['symbol']
        return None


# Global configuration instance
config = AppConfig()

# Set up logging
logging.basicConfig(level=getattr(logging, config.LOG_LEVEL, logging.INFO))
logger = logging.getLogger(__name__)
