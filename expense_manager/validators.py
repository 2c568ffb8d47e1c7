"""
Expense Manager - Data Validation

PURPOSE: Data validation and business rule enforcement
SCOPE: Input validation, presentation policy checks, and form sanitizing
DEPENDENCIES: config.py
"""

import math
import re
from datetime import datetime
from typing import Dict, Any, List, Optional, Tuple

from .config import config

DATE_PATTERN = re.compile(r'^[0-9]{4}-[0-9]{2}-[0-9]{2}$')
MONTH_PATTERN = re.compile(r'^[0-9]{4}-[0-9]{2}$')
HEX_COLOR_PATTERN = re.compile(r'^#[0-9A-Fa-f]{6}$')
EMAIL_PATTERN = re.compile(r'^[^@\s]+@[^@\s]+\.[^@\s]+$')
MIN_PASSWORD_LENGTH = 6
MAX_EXPENSE_AMOUNT = 1e12


def is_valid_date(value: str) -> bool:
    """Check that a value is a calendar date in YYYY-MM-DD form."""
    if not isinstance(value, str) or not DATE_PATTERN.fullmatch(value):
        return False
    try:
        datetime.strptime(value, '%Y-%m-%d')
        return True
    except ValueError:
        return False


def is_valid_month(value: str) -> bool:
    """Check that a value is a YYYY-MM month key."""
    if not isinstance(value, str) or not MONTH_PATTERN.fullmatch(value):
        return False
    return is_valid_date(f"{value}-01")


def normalize_amount(value: Any) -> Optional[float]:
    """Amount as stored: a finite float rounded to cents, or None if unusable."""
    try:
        amount = round(float(value), 2)
    except (TypeError, ValueError, OverflowError):
        return None
    return amount if math.isfinite(amount) else None


def validate_expense_data(expense_data: Dict[str, Any]) -> Tuple[bool, List[str]]:
    """Validate expense data and return validation result with error messages."""
    errors = []

    # Check required fields
    if not expense_data.get('date'):
        errors.append("Date is required")
    elif not is_valid_date(expense_data['date']):
        errors.append("Date must be in YYYY-MM-DD format")

    raw_amount = expense_data.get('amount')
    amount = normalize_amount(raw_amount)
    if raw_amount is not None and raw_amount != '' and amount is None:
        errors.append("Amount must be a finite number")
    elif not amount or amount <= 0:
        errors.append("Amount must be greater than 0")
    elif amount >= MAX_EXPENSE_AMOUNT:
        errors.append("Amount is too large")

    if not expense_data.get('description', '').strip():
        errors.append("Description is required")

    if not expense_data.get('category_id', '').strip():
        errors.append("Category is required")

    return len(errors) == 0, errors


def validate_category_name(name: str) -> Tuple[bool, List[str]]:
    """Validate category name."""
    errors = []

    if not name or not name.strip():
        errors.append("Category name is required")
    elif len(name.strip()) > 100:
        errors.append("Category name must be 100 characters or less")

    return len(errors) == 0, errors


def validate_category_data(category_data: Dict[str, Any]) -> Tuple[bool, List[str]]:
    """Validate name, color and icon of a category form."""
    _, errors = validate_category_name(category_data.get('name', ''))

    color = category_data.get('color', '')
    if not color:
        errors.append("Color is required")
    elif not HEX_COLOR_PATTERN.match(color):
        errors.append("Color must be a hex value like #6B7280")

    icon = category_data.get('icon')
    if icon is not None and icon not in config.CATEGORY_ICONS:
        errors.append(f"Unknown icon: {icon}")

    return len(errors) == 0, errors


def used_colors(categories: List[Dict[str, Any]], exclude_id: Optional[str] = None) -> List[str]:
    """Colors already taken by the user's categories, ignoring the one being edited."""
    return [cat['color'] for cat in categories if cat['id'] != exclude_id]


def validate_category_color(color: str, categories: List[Dict[str, Any]],
                            exclude_id: Optional[str] = None) -> Tuple[bool, List[str]]:
    """Reject a color another category of the same user already uses."""
    errors = []

    if color.upper() in {c.upper() for c in used_colors(categories, exclude_id)}:
        errors.append("This color is already used by another category. Please select a different color.")

    return len(errors) == 0, errors


def available_colors(categories: List[Dict[str, Any]], exclude_id: Optional[str] = None) -> List[str]:
    """Palette colors not yet used by the user's categories."""
    taken = {c.upper() for c in used_colors(categories, exclude_id)}
    return [color for color in config.CATEGORY_COLORS if color.upper() not in taken]


def validate_currency_code(currency_code: str) -> Tuple[bool, List[str]]:
    errors = []

    if config.currency_symbol(currency_code) is None:
        errors.append(f"Unsupported currency: {currency_code}")

    return len(errors) == 0, errors


def validate_credentials(email: str, password: str) -> Tuple[bool, List[str]]:
    """Validate signup credentials."""
    errors = []

    if not email or not EMAIL_PATTERN.match(email):
        errors.append("A valid email address is required")

    if not password or len(password) < MIN_PASSWORD_LENGTH:
        errors.append(f"Password must be at least {MIN_PASSWORD_LENGTH} characters")

    return len(errors) == 0, errors


def sanitize_form_data(form_data: Dict[str, Any]) -> Dict[str, Any]:
    """Sanitize form data by stripping whitespace and converting types."""
    sanitized = {}

    for key, value in form_data.items():
        if isinstance(value, str):
            sanitized[key] = value.strip()
        else:
            sanitized[key] = value

    return sanitized
