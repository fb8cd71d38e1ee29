from typing import Any, List, Literal, Optional

from pydantic import BaseModel, Field


class IssueOtpIn(BaseModel):
    phone: str = Field(min_length=1)
    purpose: Literal["registration", "forgot_password"] = "registration"


class IssueOtpOut(BaseModel):
    success: bool = True
    message: str
    phone: str


class VerifyOtpIn(BaseModel):
    phone: str = Field(min_length=1)
    otp_code: str = Field(min_length=1)


class VerifyOtpOut(BaseModel):
    success: bool = True
    message: str
    session_id: str


class ResetPasswordIn(BaseModel):
    phone: str = Field(min_length=1)
    new_password: str = Field(min_length=1)
    session_id: str = Field(min_length=1)


class MessageOut(BaseModel):
    success: bool
    message: str


class SendSmsIn(BaseModel):
    phone: str = Field(min_length=1)
    message: str = Field(min_length=1)
    order_id: Optional[str] = None
    user_id: str = Field(min_length=1)


class SendSmsOut(BaseModel):
    success: bool
    message: str
    status: str
    notification_id: Optional[str] = None
    response: Optional[str] = None


class OrderNotificationIn(BaseModel):
    order_id: str = Field(min_length=1)
    order_type: Literal["print", "shop"]
    notification_type: Literal["new_order", "thank_you"]


class RecipientResultOut(BaseModel):
    phone: str
    success: bool
    status: str
    response: Optional[str] = None


class OrderNotificationOut(BaseModel):
    success: bool = True
    results: List[RecipientResultOut]


class BalanceOut(BaseModel):
    success: bool
    balance: Optional[float] = None
    raw: Any = None
    lowBalance: Optional[bool] = None
    error: Optional[str] = None

