"""API Routes for expenses"""
from fastapi import APIRouter, HTTPException, Depends, Request, Query, Response
from typing import List, Annotated
from datetime import datetime
from services.expenses_service import MAX_AMOUNT, ExpenseService
from services.errors import ExpenseValidationError, UnknownIDError
from models.expense import Expense, ExpenseSummary, SummaryRange
import logging

# Pydantic models for request/response bodies
from pydantic import AwareDatetime, BaseModel, Field

class ExpenseInput(BaseModel):
    """Body of POST /expenses and PUT /expenses/{id}."""
    occurred_at: AwareDatetime = Field(..., description="When the expense happened, RFC 3339 with offset.")
    description: str = Field(..., min_length=1)
    amount: int = Field(..., gt=0, le=MAX_AMOUNT, description="Amount in cents.")

class ExpenseResponse(BaseModel):
    id: int
    created_at: datetime
    occurred_at: datetime
    description: str
    amount: int

    @classmethod
    def from_expense(cls, expense: Expense) -> "ExpenseResponse":
        return cls(
            id=expense.id,
            created_at=expense.created_at,
            occurred_at=expense.occurred_at,
            description=expense.description,
            amount=expense.amount,
        )

class ErrorResponse(BaseModel):
    code: int
    issues: List[str]

router = APIRouter()
logger = logging.getLogger(__name__)

STORAGE_UNAVAILABLE = "Database service not available."

# --- Dependency Functions ---
def get_expense_service(request: Request) -> ExpenseService:
    """Dependency to get the expense service from the request state."""
    service = getattr(request.state, "expense_service", None)
    if service is None:
        logger.error("Expense service not found in application state. Check the storage connection.")
        raise HTTPException(status_code=503, detail=[STORAGE_UNAVAILABLE])
    return service

def require_json_body(request: Request) -> None:
    """Rejects requests whose Content-Type is not application/json."""
    content_type = request.headers.get("content-type", "")
    if "application/json" not in content_type:
        logger.warning(f"Rejected {request.method} {request.url.path}: Content-Type is '{content_type}'.")
        raise HTTPException(status_code=400, detail=["'Content-Type' header missing 'application/json'"])

ExpenseServiceDep = Annotated[ExpenseService, Depends(get_expense_service)]

ERROR_RESPONSES = {
    400: {"model": ErrorResponse, "description": "Invalid input"},
    503: {"model": ErrorResponse, "description": "Storage unavailable"},
}
NOT_FOUND_RESPONSES = {**ERROR_RESPONSES, 404: {"model": ErrorResponse, "description": "Unknown expense id"}}

# --- API Routes ---

@router.get("/expenses", response_model=List[ExpenseResponse], summary="Get All Expenses", description="Retrieves every expense record in ascending id order.", responses=ERROR_RESPONSES)
async def get_expenses(service: ExpenseServiceDep) -> List[ExpenseResponse]:
    logger.info("GET /expenses endpoint called.")
    try:
        expenses = await service.get_all_expenses()
    except ConnectionError as ce:
        logger.error(f"Connection error fetching expenses: {ce}")
        raise HTTPException(status_code=503, detail=[STORAGE_UNAVAILABLE])
    except Exception as e:
        logger.exception(f"Unexpected error fetching expenses: {e}")
        raise HTTPException(status_code=500, detail=["An unexpected server error occurred while fetching expenses."])
    return [ExpenseResponse.from_expense(exp) for exp in expenses]

@router.post("/expenses", status_code=201, response_model=ExpenseResponse, summary="Create Expense", dependencies=[Depends(require_json_body)], responses=ERROR_RESPONSES)
async def create_expense(body: ExpenseInput, service: ExpenseServiceDep) -> ExpenseResponse:
    """
    Validates and stores a new expense. The response carries the assigned id
    and creation time.
    """
    logger.info(f"POST /expenses endpoint called: {body.description[:50]} ({body.amount})")
    try:
        expense = await service.create_expense(body.occurred_at, body.description, body.amount)
    except ExpenseValidationError as ve:
        logger.warning(f"Rejected new expense: {ve}")
        raise HTTPException(status_code=400, detail=[str(ve)])
    except ConnectionError as ce:
        logger.error(f"Connection error creating expense: {ce}")
        raise HTTPException(status_code=503, detail=[STORAGE_UNAVAILABLE])
    except Exception as e:
        logger.exception(f"Unexpected error creating expense: {e}")
        raise HTTPException(status_code=500, detail=["An unexpected server error occurred while creating the expense."])
    logger.info(f"Created expense {expense.id}.")
    return ExpenseResponse.from_expense(expense)

# Registered before /expenses/{expense_id} so "summary" is not read as an id
@router.get("/expenses/summary", response_model=ExpenseSummary, summary="Summarize Expenses", description="Totals expenses inside a time window.", responses=ERROR_RESPONSES)
async def summarize_expenses(
    service: ExpenseServiceDep,
    range_kind: SummaryRange = Query(SummaryRange.ALL_TIME, alias="range", description="Time window to summarize."),
    modifier: str = Query("", description="'2025-10' for custom_month, '2023' for custom_year, '2023-09,2024-09' for custom_range."),
) -> ExpenseSummary:
    logger.info(f"GET /expenses/summary endpoint called. Range '{range_kind.value}' modifier '{modifier}'")
    try:
        return await service.summarize_expenses(range_kind, modifier)
    except ExpenseValidationError as ve:
        logger.warning(f"Rejected summary request: {ve}")
        raise HTTPException(status_code=400, detail=[str(ve)])
    except ConnectionError as ce:
        logger.error(f"Connection error summarizing expenses: {ce}")
        raise HTTPException(status_code=503, detail=[STORAGE_UNAVAILABLE])
    except Exception as e:
        logger.exception(f"Unexpected error summarizing expenses: {e}")
        raise HTTPException(status_code=500, detail=["An unexpected server error occurred while summarizing expenses."])

@router.get("/expenses/{expense_id}", response_model=ExpenseResponse, summary="Get Expense", responses=NOT_FOUND_RESPONSES)
async def get_expense(expense_id: int, service: ExpenseServiceDep) -> ExpenseResponse:
    logger.info(f"GET /expenses/{expense_id} endpoint called.")
    try:
        expense = await service.get_expense_by_id(expense_id)
    except ExpenseValidationError as ve:
        raise HTTPException(status_code=400, detail=[str(ve)])
    except UnknownIDError as ue:
        logger.warning(f"Expense lookup failed: {ue}")
        raise HTTPException(status_code=404, detail=[str(ue)])
    except ConnectionError as ce:
        logger.error(f"Connection error fetching expense {expense_id}: {ce}")
        raise HTTPException(status_code=503, detail=[STORAGE_UNAVAILABLE])
    except Exception as e:
        logger.exception(f"Unexpected error fetching expense {expense_id}: {e}")
        raise HTTPException(status_code=500, detail=["An unexpected server error occurred while fetching the expense."])
    return ExpenseResponse.from_expense(expense)

@router.put("/expenses/{expense_id}", status_code=204, summary="Update Expense", dependencies=[Depends(require_json_body)], responses=NOT_FOUND_RESPONSES)
async def update_expense(expense_id: int, body: ExpenseInput, service: ExpenseServiceDep) -> Response:
    """Replaces amount, occurred_at and description. id and created_at never change."""
    logger.info(f"PUT /expenses/{expense_id} endpoint called.")
    try:
        await service.update_expense(expense_id, body.occurred_at, body.description, body.amount)
    except ExpenseValidationError as ve:
        logger.warning(f"Rejected update of expense {expense_id}: {ve}")
        raise HTTPException(status_code=400, detail=[str(ve)])
    except UnknownIDError as ue:
        logger.warning(f"Expense update failed: {ue}")
        raise HTTPException(status_code=404, detail=[str(ue)])
    except ConnectionError as ce:
        logger.error(f"Connection error updating expense {expense_id}: {ce}")
        raise HTTPException(status_code=503, detail=[STORAGE_UNAVAILABLE])
    except Exception as e:
        logger.exception(f"Unexpected error updating expense {expense_id}: {e}")
        raise HTTPException(status_code=500, detail=["An unexpected server error occurred while updating the expense."])
    return Response(status_code=204)

@router.delete("/expenses/{expense_id}", summary="Delete Expense", responses=NOT_FOUND_RESPONSES)
async def delete_expense(expense_id: int, service: ExpenseServiceDep):
    logger.warning(f"DELETE /expenses/{expense_id} endpoint called.")
    try:
        await service.delete_expense(expense_id)
    except ExpenseValidationError as ve:
        raise HTTPException(status_code=400, detail=[str(ve)])
    except UnknownIDError as ue:
        logger.warning(f"Expense delete failed: {ue}")
        raise HTTPException(status_code=404, detail=[str(ue)])
    except ConnectionError as ce:
        logger.error(f"Connection error deleting expense {expense_id}: {ce}")
        raise HTTPException(status_code=503, detail=[STORAGE_UNAVAILABLE])
    except Exception as e:
        logger.exception(f"Unexpected error deleting expense {expense_id}: {e}")
        raise HTTPException(status_code=500, detail=["An unexpected server error occurred while deleting the expense."])
    logger.info(f"Deleted expense {expense_id}.")
    return {"status": "success", "deleted_id": expense_id}

@router.get("/health", summary="Health Check")
async def health(request: Request):
    """Reports whether a storage backend is connected."""
    service = getattr(request.state, "expense_service", None)
    if service is None:
        raise HTTPException(status_code=503, detail=[STORAGE_UNAVAILABLE])
    return {"status": "ok", "storage": service.repository.name}
