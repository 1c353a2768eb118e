from fastapi import APIRouter, Depends, HTTPException
from fastapi.concurrency import run_in_threadpool

from pix_checkout.auth import create_access_token, verify_token
from pix_checkout.config import MISSING_API_KEY_WARNING
from pix_checkout.dependencies import get_gateway, get_sessions, get_settings, get_store
from pix_checkout.errors import (
    ConfigurationError,
    GatewayBusinessError,
    NotFoundError,
    TransportError,
    ValidationError,
)
from pix_checkout.schemas import CheckoutView, CustomerForm, IntentOut, IntentRequest, LoginRequest
from pix_checkout.store import create_intent

router = APIRouter()


def _intent_out(intent, settings) -> IntentOut:
    return IntentOut(
        id=intent.id,
        amount=intent.amount,
        description=intent.description,
        created_at=intent.created_at,
        status=intent.status,
        checkout_url=f"{settings.public_base_url}/checkout/{intent.id}",
    )


async def _open_session(sessions, intent_id: str) -> CheckoutView:
    try:
        session_id, _ = await run_in_threadpool(sessions.open, intent_id)
    except NotFoundError as e:
        raise HTTPException(status_code=404, detail=str(e))
    return await sessions.view(session_id)


# ---- Admin ----

@router.post("/admin/login")
def login(body: LoginRequest, settings=Depends(get_settings)):
    token = create_access_token(settings, body.password)
    return {"access_token": token, "token_type": "bearer"}


@router.get("/admin/settings")
def admin_settings(settings=Depends(get_settings), auth=Depends(verify_token)):
    return {
        "api_key_configured": settings.api_key_configured,
        "warning": None if settings.api_key_configured else MISSING_API_KEY_WARNING,
    }


@router.post("/intents", status_code=201, response_model=IntentOut)
def create_intent_api(
    body: IntentRequest,
    store=Depends(get_store),
    settings=Depends(get_settings),
    auth=Depends(verify_token)
):
    try:
        intent = create_intent(store, settings, body.amount, body.description)
    except ConfigurationError as e:
        raise HTTPException(status_code=503, detail=str(e))
    except ValidationError as e:
        raise HTTPException(status_code=422, detail=str(e))

    return _intent_out(intent, settings)


@router.get("/intents", response_model=list[IntentOut])
def list_intents(store=Depends(get_store), settings=Depends(get_settings), auth=Depends(verify_token)):
    return [_intent_out(intent, settings) for intent in store.list()]


@router.delete("/intents/{intent_id}", status_code=204)
def delete_intent(intent_id: str, store=Depends(get_store), auth=Depends(verify_token)):
    store.delete(intent_id)


@router.post("/intents/{intent_id}/preview", response_model=CheckoutView)
async def preview_intent(intent_id: str, sessions=Depends(get_sessions), auth=Depends(verify_token)):
    return await _open_session(sessions, intent_id)


@router.get("/admin/payments/{payment_id}")
async def payment_details(payment_id: str, gateway=Depends(get_gateway), auth=Depends(verify_token)):
    try:
        result = await gateway.get_details(payment_id)
    except TransportError as e:
        raise HTTPException(status_code=502, detail=str(e))
    return result.model_dump(mode="json")


# ---- Checkout ----

@router.post("/checkout/{intent_id}", response_model=CheckoutView)
async def open_checkout(intent_id: str, sessions=Depends(get_sessions)):
    return await _open_session(sessions, intent_id)


@router.get("/checkout/sessions/{session_id}", response_model=CheckoutView)
async def checkout_view(session_id: str, sessions=Depends(get_sessions)):
    try:
        return await sessions.view(session_id)
    except NotFoundError as e:
        raise HTTPException(status_code=404, detail=str(e))


@router.post("/checkout/sessions/{session_id}/submit", response_model=CheckoutView)
async def submit_checkout(session_id: str, customer: CustomerForm, sessions=Depends(get_sessions)):
    try:
        session = sessions.get(session_id)
        await session.submit(customer)
        return await sessions.view(session_id)
    except NotFoundError as e:
        raise HTTPException(status_code=404, detail=str(e))
    except GatewayBusinessError as e:
        raise HTTPException(status_code=400, detail=e.message)
    except TransportError as e:
        raise HTTPException(status_code=502, detail=str(e))


@router.delete("/checkout/sessions/{session_id}", status_code=204)
async def close_checkout(session_id: str, sessions=Depends(get_sessions)):
    await sessions.close(session_id)
