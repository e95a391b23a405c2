"""
Ledger error taxonomy.

Every error carries a stable machine code (mapped to HTTP status at the API
boundary) and a user-facing message. Services raise these; SettlementService
turns them into SettlementResult, the webhook handler only logs them.
"""
from typing import Any


class LedgerError(Exception):
    code = "ledger_error"
    message = "Xatolik yuz berdi"
    http_status = 500

    def __init__(self, message: str | None = None, detail: dict[str, Any] | None = None):
        self.message = message or self.message
        super().__init__(self.message)
        self.detail = detail or {}


class InsufficientFunds(LedgerError):
    code = "insufficient_funds"
    message = "Balans yetarli emas"
    http_status = 400


class ValidationFailed(LedgerError):
    code = "validation_error"
    message = "Noto'g'ri so'rov"
    http_status = 400


class BelowMinimum(ValidationFailed):
    code = "below_minimum"
    message = "Summa minimal qiymatdan kam"


class NotFound(LedgerError):
    code = "not_found"
    message = "Topilmadi"
    http_status = 404


class WalletNotFound(NotFound):
    code = "wallet_not_found"
    message = "Hamyon topilmadi"


class PackageNotFound(NotFound):
    code = "package_not_found"
    message = "Paket topilmadi"


class ContentNotFound(NotFound):
    code = "content_not_found"
    message = "Kontent topilmadi"


class GiftNotFound(NotFound):
    code = "gift_not_found"
    message = "Sovg'a topilmadi"


class CreatorNotFound(NotFound):
    code = "creator_not_found"
    message = "Kreator topilmadi"


class AlreadyExists(LedgerError):
    code = "already_exists"
    message = "Allaqachon mavjud"
    http_status = 400


class AlreadySubscribed(AlreadyExists):
    code = "already_subscribed"
    message = "Siz allaqachon obuna bo'lgansiz"


class AlreadyPurchased(AlreadyExists):
    code = "already_purchased"
    message = "Siz allaqachon sotib olgansiz"


class ExternalServiceError(LedgerError):
    code = "external_service_error"
    message = "Tashqi xizmat xatosi"
    http_status = 500


class PersistenceError(LedgerError):
    code = "persistence_error"
    message = "Ma'lumotlarni saqlashda xatolik"
    http_status = 500


def _all_error_classes(cls: type[LedgerError] = LedgerError):
    yield cls
    for sub in cls.__subclasses__():
        yield from _all_error_classes(sub)


def http_status_for(code: str | None) -> int:
    """HTTP status for an error code carried by a SettlementResult."""
    for cls in _all_error_classes():
        if cls.code == code:
            return cls.http_status
    return 500
