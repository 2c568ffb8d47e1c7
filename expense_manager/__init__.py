"""
Expense Manager Backend Package

PURPOSE: Package initialization for the expense manager backend
SCOPE: Module imports and package configuration
"""

__version__ = "1.0.0"
__description__ = "Personal expense manager with protected default categories"

# Package imports for easier access
from .config import config
from .database import DatabaseManager
from .auth import IdentityManager
from .managers import ProfileManager, CategoryManager, ExpenseManager, provision_identity
from .validators import validate_expense_data, validate_category_data, validate_category_name

__all__ = [
    "config",
    "DatabaseManager",
    "IdentityManager",
    "ProfileManager",
    "CategoryManager",
    "ExpenseManager",
    "provision_identity",
    "validate_expense_data",
    "validate_category_data",
    "validate_category_name"
]
