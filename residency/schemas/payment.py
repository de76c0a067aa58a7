"""
Pydantic schemas for payment confirmation endpoints.
"""

from pydantic import BaseModel, ConfigDict, Field

from residency.db.base import MAX_ID


class BankTransferVerification(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    payment_id: int = Field(..., gt=0, le=MAX_ID, alias="paymentId")


class BankTransferVerified(BaseModel):
    bookingId: int
    confirmed: bool = True


class WebhookAck(BaseModel):
    received: bool = True
