from typing import Optional

from fastapi import APIRouter, Depends
from fastapi.responses import JSONResponse, Response

from app.checkout import CheckoutOrchestrator
from app.config import Settings, get_settings
from app.models import CheckoutRequest

router = APIRouter()

CORS_HEADERS = {
    "Access-Control-Allow-Origin": "*",
    "Access-Control-Allow-Methods": "POST, OPTIONS",
    "Access-Control-Allow-Headers": "Content-Type",
}


def get_orchestrator(settings: Settings = Depends(get_settings)) -> CheckoutOrchestrator:
    return CheckoutOrchestrator(settings)


def _respond(status_code: int, result) -> JSONResponse:
    return JSONResponse(status_code=status_code, content=result.to_body(), headers=CORS_HEADERS)


@router.post("/api/checkout")
def create_checkout(
    body: Optional[CheckoutRequest] = None,
    orchestrator: CheckoutOrchestrator = Depends(get_orchestrator)
):
    status_code, result = orchestrator.handle(body or CheckoutRequest())
    return _respond(status_code, result)


@router.post("/api/create-session")
def create_tabby_session(
    body: Optional[CheckoutRequest] = None,
    orchestrator: CheckoutOrchestrator = Depends(get_orchestrator)
):
    status_code, result = orchestrator.handle_tabby_session(body or CheckoutRequest())
    return _respond(status_code, result)


@router.options("/api/checkout")
@router.options("/api/create-session")
def preflight():
    return Response(status_code=200, headers=CORS_HEADERS)

