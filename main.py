import logging
from typing import Optional
from urllib.parse import urlencode

from fastapi import Depends, FastAPI, HTTPException, Request
from fastapi.responses import HTMLResponse, JSONResponse, RedirectResponse, Response
from fastapi.staticfiles import StaticFiles
from fastapi.templating import Jinja2Templates
from sqlalchemy.orm import Session

from allocation import AllocationStrategy
from config import get_settings
from csrf import generate_csrf_token, validate_csrf_token
from database import SessionLocal
from models import FrequencyType
from money import format_currency, parse_amount
from scheduler import SchedulerManager
from schemas import (
    AllocationRequest,
    AmountIn,
    BudgetCategoryIn,
    BudgetCategoryUpdate,
    DebtIn,
    IncomeIn,
    SavingsGoalIn,
)
from services import (
    AllocationApplyError,
    AllocationService,
    CategoryNotFound,
    CategoryService,
    DashboardService,
    DebtNotFound,
    DebtService,
    IncomeService,
    SavingsGoalNotFound,
    SavingsGoalService,
    category_to_dict,
    debt_to_dict,
    goal_to_dict,
    income_to_dict,
)

logger = logging.getLogger(__name__)

app = FastAPI(title="Budget Allocator")
app.mount("/static", StaticFiles(directory="static"), name="static")
templates = Jinja2Templates(directory="templates")


def _currency(cents: int) -> str:
    return format_currency(cents, get_settings().currency_code)


templates.env.filters["currency"] = _currency
templates.env.globals["csrf_token"] = generate_csrf_token
templates.env.globals["AllocationStrategy"] = AllocationStrategy


def get_db():
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


scheduler_manager = SchedulerManager()


@app.on_event("startup")
def startup_event():
    scheduler_manager.start()


@app.on_event("shutdown")
def shutdown_event():
    scheduler_manager.stop()


def render(request: Request, template: str, context: dict[str, object]) -> HTMLResponse:
    return templates.TemplateResponse(request, template, context)


def _budget_url(**params: str) -> str:
    query = urlencode({k: v for k, v in params.items() if v})
    return f"/budget?{query}" if query else "/budget"


NOT_FOUND_ERRORS = (CategoryNotFound, SavingsGoalNotFound, DebtNotFound)


def _bad_request(exc: ValueError) -> HTTPException:
    status = 404 if isinstance(exc, NOT_FOUND_ERRORS) else 400
    return HTTPException(status_code=status, detail=str(exc))


@app.get("/")
def index():
    return RedirectResponse(url="/budget", status_code=303)


@app.get("/budget", response_class=HTMLResponse)
def budget_page(request: Request, db: Session = Depends(get_db)):
    strategy_param = request.query_params.get("strategy") or AllocationStrategy.equal.value
    try:
        strategy = AllocationStrategy(strategy_param)
    except ValueError:
        strategy = AllocationStrategy.equal

    categories = CategoryService(db).tree()
    summary = DashboardService(db).summary()
    preview: Optional[dict[str, object]] = None
    error = request.query_params.get("error")
    try:
        preview = AllocationService(db).preview(strategy)
    except ValueError as exc:
        error = error or str(exc)
    total = float(summary["total_budget_percentage"])
    return render(
        request,
        "budget.html",
        {
            "categories": categories,
            "summary": summary,
            "total_percentage": total,
            "remaining_percentage": 100 - total,
            "strategy": strategy,
            "preview": preview,
            "error": error,
        },
    )


@app.post("/budget/allocate")
async def allocate_budget_form(request: Request, db: Session = Depends(get_db)):
    form = await request.form()
    if not validate_csrf_token(str(form.get("csrf_token", ""))):
        raise HTTPException(status_code=400, detail="Invalid CSRF token")
    try:
        strategy = AllocationStrategy(str(form.get("strategy") or ""))
        custom: dict[int, float] = {}
        for key, value in form.items():
            if key.startswith("custom_") and str(value).strip():
                custom[int(key.removeprefix("custom_"))] = float(str(value))
    except ValueError as exc:
        raise HTTPException(status_code=400, detail=str(exc)) from exc

    try:
        AllocationService(db).apply(strategy, custom)
    except AllocationApplyError as exc:
        logger.warning(f"allocate_form_partial_failure: failed={sorted(exc.failed)}")
        return RedirectResponse(url=_budget_url(error=str(exc)), status_code=303)
    except ValueError as exc:
        raise _bad_request(exc) from exc
    return RedirectResponse(url="/budget", status_code=303)


@app.post("/budget/income")
async def set_income_form(request: Request, db: Session = Depends(get_db)):
    form = await request.form()
    if not validate_csrf_token(str(form.get("csrf_token", ""))):
        raise HTTPException(status_code=400, detail="Invalid CSRF token")
    try:
        payload = IncomeIn(
            amount_cents=parse_amount(str(form.get("amount") or "")),
            frequency=FrequencyType(str(form.get("frequency") or "")),
        )
    except ValueError as exc:
        return RedirectResponse(url=_budget_url(error=str(exc)), status_code=303)
    IncomeService(db).set(payload)
    return RedirectResponse(url="/budget", status_code=303)


@app.post("/budget/categories/{category_id}/delete")
async def delete_category_form(
    category_id: int, request: Request, db: Session = Depends(get_db)
):
    form = await request.form()
    if not validate_csrf_token(str(form.get("csrf_token", ""))):
        raise HTTPException(status_code=400, detail="Invalid CSRF token")
    try:
        CategoryService(db).delete(category_id)
    except ValueError as exc:
        return RedirectResponse(url=_budget_url(error=str(exc)), status_code=303)
    return RedirectResponse(url="/budget", status_code=303)


@app.get("/api/budget-categories")
def api_list_categories(db: Session = Depends(get_db)):
    return CategoryService(db).tree()


@app.post("/api/budget-categories", status_code=201)
def api_create_category(payload: BudgetCategoryIn, db: Session = Depends(get_db)):
    try:
        category = CategoryService(db).create(payload)
    except ValueError as exc:
        raise _bad_request(exc) from exc
    return category_to_dict(category)


@app.put("/api/budget-categories/{category_id}")
def api_update_category(
    category_id: int, payload: BudgetCategoryUpdate, db: Session = Depends(get_db)
):
    try:
        category = CategoryService(db).update(category_id, payload)
    except ValueError as exc:
        raise _bad_request(exc) from exc
    return category_to_dict(category)


@app.delete("/api/budget-categories/{category_id}")
def api_delete_category(category_id: int, db: Session = Depends(get_db)):
    try:
        CategoryService(db).delete(category_id)
    except ValueError as exc:
        raise _bad_request(exc) from exc
    return {"success": True}


@app.post("/api/allocations/preview")
def api_preview_allocation(payload: AllocationRequest, db: Session = Depends(get_db)):
    try:
        return AllocationService(db).preview(payload.strategy, payload.custom)
    except ValueError as exc:
        raise _bad_request(exc) from exc


@app.post("/api/allocations/apply")
def api_apply_allocation(payload: AllocationRequest, db: Session = Depends(get_db)):
    try:
        result = AllocationService(db).apply(payload.strategy, payload.custom)
    except AllocationApplyError as exc:
        return JSONResponse(
            {
                "detail": str(exc),
                "failed": {str(k): v for k, v in exc.failed.items()},
                "applied": {str(k): v for k, v in exc.applied.items()},
            },
            status_code=500,
        )
    except ValueError as exc:
        raise _bad_request(exc) from exc
    return {
        "strategy": result.strategy.value,
        "applied": {str(k): v for k, v in result.applied.items()},
    }


@app.get("/api/income")
def api_get_income(db: Session = Depends(get_db)):
    service = IncomeService(db)
    income = service.current()
    return {
        "income": income_to_dict(income) if income else None,
        "daily_income_cents": service.daily_income_cents(),
    }


@app.put("/api/income")
def api_set_income(payload: IncomeIn, db: Session = Depends(get_db)):
    service = IncomeService(db)
    income = service.set(payload)
    return {
        "income": income_to_dict(income),
        "daily_income_cents": service.daily_income_cents(),
    }


@app.get("/api/savings-goals")
def api_list_goals(db: Session = Depends(get_db)):
    return [goal_to_dict(g) for g in SavingsGoalService(db).list_all()]


@app.post("/api/savings-goals", status_code=201)
def api_create_goal(payload: SavingsGoalIn, db: Session = Depends(get_db)):
    return goal_to_dict(SavingsGoalService(db).create(payload))


@app.put("/api/savings-goals/{goal_id}")
def api_update_goal(goal_id: int, payload: SavingsGoalIn, db: Session = Depends(get_db)):
    try:
        return goal_to_dict(SavingsGoalService(db).update(goal_id, payload))
    except ValueError as exc:
        raise _bad_request(exc) from exc


@app.post("/api/savings-goals/{goal_id}/contribute")
def api_contribute_goal(goal_id: int, payload: AmountIn, db: Session = Depends(get_db)):
    try:
        return goal_to_dict(SavingsGoalService(db).contribute(goal_id, payload.amount_cents))
    except ValueError as exc:
        raise _bad_request(exc) from exc


@app.delete("/api/savings-goals/{goal_id}")
def api_delete_goal(goal_id: int, db: Session = Depends(get_db)):
    try:
        SavingsGoalService(db).delete(goal_id)
    except ValueError as exc:
        raise _bad_request(exc) from exc
    return Response(status_code=204)


@app.get("/api/debts")
def api_list_debts(db: Session = Depends(get_db)):
    return [debt_to_dict(d) for d in DebtService(db).list_all()]


@app.post("/api/debts", status_code=201)
def api_create_debt(payload: DebtIn, db: Session = Depends(get_db)):
    return debt_to_dict(DebtService(db).create(payload))


@app.put("/api/debts/{debt_id}")
def api_update_debt(debt_id: int, payload: DebtIn, db: Session = Depends(get_db)):
    try:
        return debt_to_dict(DebtService(db).update(debt_id, payload))
    except ValueError as exc:
        raise _bad_request(exc) from exc


@app.post("/api/debts/{debt_id}/payments")
def api_record_payment(debt_id: int, payload: AmountIn, db: Session = Depends(get_db)):
    try:
        return debt_to_dict(DebtService(db).record_payment(debt_id, payload.amount_cents))
    except ValueError as exc:
        raise _bad_request(exc) from exc


@app.delete("/api/debts/{debt_id}")
def api_delete_debt(debt_id: int, db: Session = Depends(get_db)):
    try:
        DebtService(db).delete(debt_id)
    except ValueError as exc:
        raise _bad_request(exc) from exc
    return Response(status_code=204)


@app.get("/api/dashboard")
def api_dashboard(request: Request, db: Session = Depends(get_db)):
    force = request.query_params.get("refresh") == "1"
    return DashboardService(db).summary(force_refresh=force)


def main():
    import uvicorn

    uvicorn.run("main:app", host="0.0.0.0", port=8000, reload=False)


if __name__ == "__main__":
    main()
