"""
Subset of Telegram Bot API update objects consumed by the payment webhook.
Unknown fields are ignored so new Bot API versions do not break parsing.
"""
from pydantic import BaseModel, ConfigDict, Field


class TelegramUser(BaseModel):
    model_config = ConfigDict(extra="ignore")

    id: int
    username: str | None = None


class Chat(BaseModel):
    model_config = ConfigDict(extra="ignore")

    id: int


class PreCheckoutQuery(BaseModel):
    model_config = ConfigDict(extra="ignore", populate_by_name=True)

    id: str
    from_user: TelegramUser = Field(alias="from")
    currency: str
    total_amount: int
    invoice_payload: str


class SuccessfulPayment(BaseModel):
    model_config = ConfigDict(extra="ignore")

    currency: str
    total_amount: int
    invoice_payload: str
    telegram_payment_charge_id: str
    provider_payment_charge_id: str | None = None


class Message(BaseModel):
    model_config = ConfigDict(extra="ignore")

    message_id: int | None = None
    chat: Chat | None = None
    successful_payment: SuccessfulPayment | None = None


class Update(BaseModel):
    model_config = ConfigDict(extra="ignore")

    update_id: int | None = None
    message: Message | None = None
    pre_checkout_query: PreCheckoutQuery | None = None
