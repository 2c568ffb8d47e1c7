"""
Expense Manager - Main FastAPI Application

PURPOSE: FastAPI routes, endpoints, and application setup
SCOPE: HTTP API layer and request/response handling
DEPENDENCIES: FastAPI, all expense_manager modules
"""

import logging
from contextlib import asynccontextmanager
from datetime import datetime, timezone
from typing import Optional

from fastapi import APIRouter, FastAPI, Form, Header, HTTPException, Query, Request
from fastapi.responses import JSONResponse

from .config import config
from .database import DatabaseManager
from .auth import IdentityManager
from .managers import ProfileManager, CategoryManager, ExpenseManager
from .errors import ExpenseTrackerError
from .validators import (
    available_colors,
    is_valid_date,
    is_valid_month,
    sanitize_form_data,
    used_colors,
    validate_category_color,
    validate_category_data,
    validate_category_name,
    validate_credentials,
    validate_currency_code,
    validate_expense_data,
)
from . import aggregation

logger = logging.getLogger(__name__)

router = APIRouter()


def _reject(errors):
    raise HTTPException(status_code=400, detail={"errors": errors})


async def current_user_id(request: Request, authorization: Optional[str]) -> str:
    """Resolve the caller's identity from the bearer token, never from the request body."""
    token = ''
    if authorization and authorization.lower().startswith('bearer '):
        token = authorization[len('bearer '):].strip()
    return await request.app.state.identity.resolve_token(token)


async def handle_domain_error(request: Request, exc: ExpenseTrackerError) -> JSONResponse:
    return JSONResponse(status_code=exc.status_code, content={"detail": exc.message, "error": exc.kind})


# ============================================================================
# AUTHENTICATION ENDPOINTS
# ============================================================================

@router.post("/auth/signup")
async def sign_up(request: Request, email: str = Form(...), password: str = Form(...)):
    """Register a new user; profile and starter categories are provisioned."""
    email = email.strip()
    is_valid, validation_errors = validate_credentials(email, password)
    if not is_valid:
        _reject(validation_errors)
    return await request.app.state.identity.sign_up(email, password)


@router.post("/auth/login")
async def sign_in(request: Request, email: str = Form(...), password: str = Form(...)):
    return await request.app.state.identity.sign_in(email, password)


@router.post("/auth/logout")
async def sign_out(request: Request, authorization: Optional[str] = Header(None)):
    user_id = await current_user_id(request, authorization)
    token = authorization[len('bearer '):].strip()
    await request.app.state.identity.sign_out(token)
    return {"success": True, "user_id": user_id}


# ============================================================================
# PROFILE ENDPOINTS
# ============================================================================

@router.get("/profile")
async def get_profile(request: Request, authorization: Optional[str] = Header(None)):
    """Get the caller's profile, created with default currency on first access."""
    user_id = await current_user_id(request, authorization)
    return await request.app.state.profiles.get_profile(user_id)


@router.put("/profile")
async def update_profile(request: Request, currency_code: str = Form(...),
                         authorization: Optional[str] = Header(None)):
    user_id = await current_user_id(request, authorization)
    currency_code = currency_code.strip().upper()
    is_valid, validation_errors = validate_currency_code(currency_code)
    if not is_valid:
        _reject(validation_errors)
    return await request.app.state.profiles.update_currency(user_id, currency_code)


@router.get("/currencies")
async def get_currencies():
    return config.CURRENCIES


# ============================================================================
# CATEGORY MANAGEMENT ENDPOINTS
# ============================================================================

@router.get("/categories")
async def get_categories(request: Request, authorization: Optional[str] = Header(None)):
    """Get the caller's categories, default first."""
    user_id = await current_user_id(request, authorization)
    return await request.app.state.categories.get_all_categories(user_id)


@router.get("/categories/colors")
async def get_category_colors(request: Request, exclude_id: Optional[str] = Query(None),
                              authorization: Optional[str] = Header(None)):
    """Palette colors split into used and available for the category form."""
    user_id = await current_user_id(request, authorization)
    categories = await request.app.state.categories.get_all_categories(user_id)
    return {
        "palette": config.CATEGORY_COLORS,
        "icons": config.CATEGORY_ICONS,
        "used": used_colors(categories, exclude_id),
        "available": available_colors(categories, exclude_id),
    }


@router.post("/categories")
async def add_category(
    request: Request,
    name: str = Form(...),
    color: str = Form(...),
    icon: str = Form(config.DEFAULT_CATEGORY_ICON),
    authorization: Optional[str] = Header(None)
):
    """Add a new expense category. New categories are never the default."""
    user_id = await current_user_id(request, authorization)
    category_data = sanitize_form_data({'name': name, 'color': color, 'icon': icon})

    is_valid, validation_errors = validate_category_data(category_data)
    if not is_valid:
        _reject(validation_errors)

    existing = await request.app.state.categories.get_all_categories(user_id)
    is_valid, validation_errors = validate_category_color(category_data['color'], existing)
    if not is_valid:
        _reject(validation_errors)

    return await request.app.state.categories.add_category(
        user_id, category_data['name'], category_data['color'], category_data['icon']
    )


@router.put("/categories/{category_id}")
async def update_category(
    request: Request,
    category_id: str,
    name: Optional[str] = Form(None),
    color: Optional[str] = Form(None),
    authorization: Optional[str] = Header(None)
):
    """Rename or recolor a category."""
    user_id = await current_user_id(request, authorization)
    updates = sanitize_form_data({'name': name, 'color': color})

    validation_errors = []
    if updates['name'] is not None:
        validation_errors += validate_category_name(updates['name'])[1]
    if updates['color'] is not None:
        _, color_errors = validate_category_data({'name': 'unchanged', 'color': updates['color']})
        validation_errors += color_errors
        if not color_errors:
            existing = await request.app.state.categories.get_all_categories(user_id)
            validation_errors += validate_category_color(updates['color'], existing, exclude_id=category_id)[1]
    if validation_errors:
        _reject(validation_errors)

    return await request.app.state.categories.update_category(
        user_id, category_id, name=updates['name'], color=updates['color']
    )


@router.delete("/categories/{category_id}")
async def delete_category(request: Request, category_id: str, authorization: Optional[str] = Header(None)):
    """Delete a category; its expenses move to the default category."""
    user_id = await current_user_id(request, authorization)
    result = await request.app.state.categories.delete_category(user_id, category_id)
    return {"success": True, **result}


@router.post("/categories/{category_id}/clear")
async def clear_category(request: Request, category_id: str, authorization: Optional[str] = Header(None)):
    """Delete every expense in a category, keeping the category."""
    user_id = await current_user_id(request, authorization)
    deleted_count = await request.app.state.categories.clear_category_expenses(user_id, category_id)
    return {"success": True, "deleted_count": deleted_count}


# ============================================================================
# EXPENSE MANAGEMENT ENDPOINTS
# ============================================================================

def _expense_form(date: str, amount: float, description: str, category_id: str) -> dict:
    expense_data = sanitize_form_data({
        'date': date, 'amount': amount, 'description': description, 'category_id': category_id
    })
    is_valid, validation_errors = validate_expense_data(expense_data)
    if not is_valid:
        _reject(validation_errors)
    return expense_data


@router.get("/expenses")
async def get_expenses(request: Request, authorization: Optional[str] = Header(None)):
    """Get all expenses, newest first."""
    user_id = await current_user_id(request, authorization)
    return await request.app.state.expenses.get_all_expenses(user_id)


@router.get("/expenses/{expense_id}")
async def get_expense(request: Request, expense_id: str, authorization: Optional[str] = Header(None)):
    user_id = await current_user_id(request, authorization)
    return await request.app.state.expenses.get_expense(user_id, expense_id)


@router.post("/expenses")
async def add_expense(
    request: Request,
    date: str = Form(...),
    amount: float = Form(...),
    description: str = Form(...),
    category_id: str = Form(...),
    authorization: Optional[str] = Header(None)
):
    user_id = await current_user_id(request, authorization)
    expense_data = _expense_form(date, amount, description, category_id)
    return await request.app.state.expenses.create_expense(user_id, expense_data)


@router.put("/expenses/{expense_id}")
async def update_expense(
    request: Request,
    expense_id: str,
    date: str = Form(...),
    amount: float = Form(...),
    description: str = Form(...),
    category_id: str = Form(...),
    authorization: Optional[str] = Header(None)
):
    """Update an existing expense."""
    user_id = await current_user_id(request, authorization)
    expense_data = _expense_form(date, amount, description, category_id)
    return await request.app.state.expenses.update_expense(user_id, expense_id, expense_data)


@router.delete("/expenses/{expense_id}")
async def delete_expense(request: Request, expense_id: str, authorization: Optional[str] = Header(None)):
    user_id = await current_user_id(request, authorization)
    await request.app.state.expenses.delete_expense(user_id, expense_id)
    return {"success": True, "detail": f"Expense with ID {expense_id} has been deleted."}


# ============================================================================
# SUMMARY AND CHART ENDPOINTS
# ============================================================================

def _check_month(month: Optional[str]) -> None:
    if month is not None and not is_valid_month(month):
        _reject(["Month must be in YYYY-MM format"])


@router.get("/dashboard")
async def get_dashboard(
    request: Request,
    month: Optional[str] = Query(None),
    date: Optional[str] = Query(None),
    authorization: Optional[str] = Header(None)
):
    """Totals, recent activity, and pie chart data for the main page."""
    user_id = await current_user_id(request, authorization)
    _check_month(month)
    if date is not None and not is_valid_date(date):
        _reject(["Date must be in YYYY-MM-DD format"])

    categories = await request.app.state.categories.get_all_categories(user_id)
    expenses = await request.app.state.expenses.get_all_expenses(user_id)
    profile = await request.app.state.profiles.get_profile(user_id)

    summary = aggregation.dashboard_summary(expenses, categories, selected_month=month, selected_date=date)
    summary['currency'] = profile['currency']
    return summary


@router.get("/summary")
async def get_summary(request: Request, month: Optional[str] = Query(None),
                      authorization: Optional[str] = Header(None)):
    """Expenses grouped by category, optionally for one month."""
    user_id = await current_user_id(request, authorization)
    _check_month(month)

    categories = await request.app.state.categories.get_all_categories(user_id)
    all_expenses = await request.app.state.expenses.get_all_expenses(user_id)
    expenses = aggregation.filter_by_month(all_expenses, month) if month else all_expenses

    return {
        "month": month,
        "available_months": aggregation.available_months(all_expenses),
        "total": aggregation.total_amount(expenses),
        "groups": aggregation.group_by_category(expenses, categories),
    }


@router.get("/trend")
async def get_trend(request: Request, authorization: Optional[str] = Header(None)):
    """Monthly spending series for the line chart."""
    user_id = await current_user_id(request, authorization)
    expenses = await request.app.state.expenses.get_all_expenses(user_id)
    return aggregation.monthly_trend(expenses)


# ============================================================================
# UTILITY ENDPOINTS
# ============================================================================

@router.get("/health")
async def health_check():
    """Health check endpoint for monitoring."""
    return {"status": "healthy", "timestamp": datetime.now(timezone.utc).isoformat()}


# ============================================================================
# APPLICATION SETUP
# ============================================================================

def create_app(db_file: str = None) -> FastAPI:
    """Build the application around one SQLite database file."""
    db_file = db_file or config.DB_FILE

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        await DatabaseManager(db_file).initialize_database()
        logger.info("Database initialized successfully.")
        yield

    app = FastAPI(title="Expense Manager", lifespan=lifespan)
    app.state.identity = IdentityManager(db_file)
    app.state.profiles = ProfileManager(db_file)
    app.state.categories = CategoryManager(db_file)
    app.state.expenses = ExpenseManager(db_file)
    app.add_exception_handler(ExpenseTrackerError, handle_domain_error)
    app.include_router(router)
    return app


app = create_app()


# ============================================================================
# APPLICATION ENTRY POINT
# ============================================================================

if __name__ == "__main__":
    import uvicorn
    uvicorn.run(app, host="0.0.0.0", port=8000)
