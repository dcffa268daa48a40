"""ERP order intake endpoint.

External ERP systems push procurement orders here. Stored orders trigger a
reconciliation refresh through the store's change notifications.
"""

from typing import Any, Dict

from fastapi import APIRouter, Body, Request
from fastapi.responses import JSONResponse

from datastore.base import StoreError
from intake.erp_orders import DuplicateOrderError, receive_erp_order
from models.api_responses import ErrorResponse, IntakeResponse


router = APIRouter()


@router.post(
    "/orders",
    status_code=201,
    response_model=IntakeResponse,
    responses={400: {"model": IntakeResponse}, 409: {"model": ErrorResponse}, 500: {"model": ErrorResponse}},
)
def create_erp_order(request: Request, payload: Dict[str, Any] = Body(...)):
    """Validate and store an ERP procurement order."""
    store = request.app.state.store
    try:
        result = receive_erp_order(store, payload)
    except DuplicateOrderError as e:
        return JSONResponse(
            status_code=409,
            content=ErrorResponse(error=str(e)).model_dump(mode="json"),
        )
    except StoreError as e:
        return JSONResponse(
            status_code=500,
            content=ErrorResponse(error="Failed to process order", details=str(e)).model_dump(mode="json"),
        )

    response = IntakeResponse(**result.model_dump())
    if not result.success:
        return JSONResponse(status_code=400, content=response.model_dump(mode="json"))
    return JSONResponse(status_code=201, content=response.model_dump(mode="json"))
