from .audit_log import AuditLog
from .creator_profile import CreatorProfile
from .gift import Gift, SentGift
from .paid_content import ContentPurchase, PaidContent
from .star_package import StarPackage
from .subscription import Subscription
from .tip import Tip
from .transaction import Transaction
from .wallet import Wallet
from .withdrawal_request import WithdrawalRequest

__all__ = [
    "AuditLog",
    "ContentPurchase",
    "CreatorProfile",
    "Gift",
    "PaidContent",
    "SentGift",
    "StarPackage",
    "Subscription",
    "Tip",
    "Transaction",
    "Wallet",
    "WithdrawalRequest",
]
