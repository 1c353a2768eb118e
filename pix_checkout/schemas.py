import re
from datetime import datetime
from decimal import Decimal
from typing import Any, Optional

from pydantic import BaseModel, field_validator, model_validator


# ---- Gateway wire format ----

class CreatePaymentRequest(BaseModel):
    amount: Decimal
    description: Optional[str] = None
    customer_name: Optional[str] = None
    customer_cpf: Optional[str] = None
    customer_email: Optional[str] = None
    customer_phone: Optional[str] = None
    external_id: Optional[str] = None
    webhook_url: Optional[str] = None

    def to_payload(self) -> dict:
        payload = self.model_dump(exclude_none=True)
        payload["amount"] = float(self.amount)
        return payload


class CreatePaymentData(BaseModel):
    payment_id: str
    external_id: Optional[str] = None
    amount: Optional[Decimal] = None
    status: str = "pending"
    qr_code: str
    qr_image_url: Optional[str] = None
    expires_at: Optional[str] = None
    created_at: Optional[str] = None


class GatewayEnvelope(BaseModel):
    success: bool
    error: Optional[str] = None
    message: Optional[str] = None
    # whatever the gateway put under "data" on a failed call
    failure_data: Any = None

    @model_validator(mode="before")
    @classmethod
    def keep_failure_data_loose(cls, values):
        if isinstance(values, dict) and values.get("success") is False and "data" in values:
            values = dict(values)
            values["failure_data"] = values.pop("data")
        return values


class CreateResponse(GatewayEnvelope):
    data: Optional[CreatePaymentData] = None


class PaymentStatusData(BaseModel):
    payment_id: str
    external_id: Optional[str] = None
    amount: Optional[Decimal] = None
    status: str
    customer_name: Optional[str] = None
    customer_cpf: Optional[str] = None
    created_at: Optional[str] = None
    updated_at: Optional[str] = None


class StatusResponse(GatewayEnvelope):
    data: Optional[PaymentStatusData] = None


# ---- Admin / checkout surface ----

class CustomerForm(BaseModel):
    name: str
    cpf: str
    email: str
    phone: str = ""

    @property
    def cpf_digits(self) -> str:
        return re.sub(r"\D", "", self.cpf)


class LoginRequest(BaseModel):
    password: str


class IntentRequest(BaseModel):
    amount: str
    description: str = ""

    @field_validator("amount", mode="before")
    @classmethod
    def amount_as_text(cls, value):
        return str(value)


class IntentOut(BaseModel):
    id: str
    amount: Decimal
    description: str
    created_at: datetime
    status: str
    checkout_url: str


class CheckoutView(BaseModel):
    session_id: Optional[str] = None
    state: str
    intent_id: str
    description: Optional[str] = None
    amount: Optional[Decimal] = None
    payment_id: Optional[str] = None
    qr_code: Optional[str] = None
    qr_image_url: Optional[str] = None
    expires_at: Optional[str] = None
    payment_status: Optional[str] = None
    outcome: Optional[str] = None
    error: Optional[str] = None
    can_submit: bool = False
