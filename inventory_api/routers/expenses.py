from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from .. import crud, models, schemas
from ..dependencies import Pagination, get_db, pagination_params
from ..errors import not_found
from ..handlers import async_handler
from ..responses import created_response, deleted_response, paginated_response, success_response, updated_response

router = APIRouter(prefix="/api/expense", tags=["expenses"])


def expense_data(expense: models.Expense) -> dict:
    return schemas.ExpenseRead.model_validate(expense).model_dump(by_alias=True)


@router.post("", status_code=201)
@async_handler
async def create_expense(expense: schemas.ExpenseCreate, db: Session = Depends(get_db)):
    created = crud.create_expense(db, expense)
    return created_response("Expense created successfully", expense_data(created))


@router.get("")
@async_handler
async def list_expenses(pagination: Pagination = Depends(pagination_params), db: Session = Depends(get_db)):
    expenses, total = crud.list_expenses(db, pagination.page, pagination.limit, pagination.search_term)
    return paginated_response([expense_data(e) for e in expenses], pagination.page, pagination.limit, total)


@router.get("/{expense_id}")
@async_handler
async def get_expense(expense_id: int, db: Session = Depends(get_db)):
    expense = crud.get_expense(db, expense_id)
    if not expense:
        raise not_found("Expense")
    return success_response(200, "Success", expense_data(expense))


@router.put("/{expense_id}")
@async_handler
async def update_expense(expense_id: int, changes: schemas.ExpenseUpdate, db: Session = Depends(get_db)):
    expense = crud.update_expense(db, expense_id, changes)
    if not expense:
        raise not_found("Expense")
    return updated_response("Expense updated successfully", expense_data(expense))


@router.delete("/{expense_id}")
@async_handler
async def delete_expense(expense_id: int, db: Session = Depends(get_db)):
    if not crud.delete_expense(db, expense_id):
        raise not_found("Expense")
    return deleted_response("Expense deleted successfully")
