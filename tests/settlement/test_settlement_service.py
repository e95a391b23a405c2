"""Tests for SettlementService: tips, gifts, subscriptions, content unlocks, withdrawals."""
from datetime import datetime, timedelta, timezone
from unittest.mock import patch

import pytest
from sqlalchemy.exc import SQLAlchemyError


def _service(db, **overrides):
    from tanishuv.services.settlement.config import SettlementConfig
    from tanishuv.services.settlement.service import SettlementService

    config = SettlementConfig(
        commission_rate=0.10,
        min_tip=10,
        min_withdrawal=1000,
        withdrawal_fee_rate=0.02,
        withdrawal_fee_min=50,
        subscription_duration_days=30,
    ).model_copy(update=overrides)
    return SettlementService(db, config=config)


def _wallet(db, user_id):
    from tanishuv.services.wallets.service import WalletService

    return WalletService(db).get_wallet(user_id)


class TestSendTip:
    def test_tip_moves_net_to_receiver(self, db, fund):
        from tanishuv.models.tip import Tip
        from tanishuv.models.transaction import Transaction

        fund("alice", 100)
        result = _service(db).send_tip("alice", "bob", 50, message="rahmat")

        assert result.success is True
        assert (result.amount, result.fee, result.net_amount) == (50, 5, 45)
        assert result.message == "Tip muvaffaqiyatli yuborildi!"

        alice, bob = _wallet(db, "alice"), _wallet(db, "bob")
        assert alice.stars_balance == 50
        assert alice.total_spent == 50
        assert bob.stars_balance == 45
        assert bob.total_earned == 45

        rows = db.query(Transaction).all()
        assert sorted((r.user_id, r.type) for r in rows) == [("alice", "tip"), ("bob", "earning")]
        tip = db.query(Tip).one()
        assert tip.transaction_id == result.transaction_id
        assert tip.id == result.reference_id

    def test_insufficient_funds(self, db, fund):
        from tanishuv.models.transaction import Transaction

        fund("alice", 5)
        result = _service(db).send_tip("alice", "bob", 10)

        assert result.success is False
        assert result.error_code == "insufficient_funds"
        assert _wallet(db, "alice").stars_balance == 5
        assert db.query(Transaction).count() == 0

    def test_below_minimum(self, db, fund):
        fund("alice", 100)
        result = _service(db).send_tip("alice", "bob", 8)

        assert result.success is False
        assert result.error_code == "below_minimum"
        assert result.error == "Minimal tip: 10 Stars"
        assert _wallet(db, "alice").stars_balance == 100

    def test_creator_minimum_raises_floor(self, db, fund):
        from tanishuv.models.creator_profile import CreatorProfile

        db.add(CreatorProfile(user_id="bob", min_tip_amount=25))
        db.commit()
        fund("alice", 100)
        result = _service(db).send_tip("alice", "bob", 20)
        assert result.error_code == "below_minimum"
        assert result.error == "Minimal tip: 25 Stars"

    def test_tips_disabled(self, db, fund):
        from tanishuv.models.creator_profile import CreatorProfile

        db.add(CreatorProfile(user_id="bob", tips_enabled=False))
        db.commit()
        fund("alice", 100)
        result = _service(db).send_tip("alice", "bob", 20)
        assert result.error_code == "validation_error"

    def test_self_tip_rejected(self, db, fund):
        fund("alice", 100)
        result = _service(db).send_tip("alice", "alice", 20)
        assert result.error_code == "validation_error"
        assert _wallet(db, "alice").stars_balance == 100

    def test_non_integer_amount_rejected(self, db, fund):
        fund("alice", 100)
        assert _service(db).send_tip("alice", "bob", 12.5).error_code == "validation_error"
        assert _service(db).send_tip("alice", "bob", True).error_code == "validation_error"

    def test_storage_failure_rolls_back_debit(self, db, fund):
        fund("alice", 100)
        svc = _service(db)
        with patch.object(svc.ledger, "record", side_effect=SQLAlchemyError("disk full")):
            result = svc.send_tip("alice", "bob", 50)

        assert result.success is False
        assert result.error_code == "persistence_error"
        assert _wallet(db, "alice").stars_balance == 100
        assert _wallet(db, "bob") is None


class TestSendGift:
    def _gift(self, db, **kwargs):
        from tanishuv.models.gift import Gift

        gift = Gift(id=kwargs.get("id", "rose"), name="Atirgul", emoji="🌹", price=kwargs.get("price", 30),
                    is_active=kwargs.get("is_active", True))
        db.add(gift)
        db.commit()
        return gift

    def test_gift_settles_catalog_price(self, db, fund):
        from tanishuv.models.gift import SentGift

        self._gift(db)
        fund("alice", 100)
        result = _service(db).send_gift("alice", "bob", "rose", message="tabriklayman")

        assert result.success is True
        assert (result.amount, result.fee, result.net_amount) == (30, 3, 27)
        assert _wallet(db, "bob").stars_balance == 27
        sent = db.query(SentGift).one()
        assert sent.id == result.reference_id
        assert sent.gift_id == "rose"

    def test_inactive_gift_not_found(self, db, fund):
        self._gift(db, is_active=False)
        fund("alice", 100)
        result = _service(db).send_gift("alice", "bob", "rose")
        assert result.error_code == "gift_not_found"

    def test_unknown_gift(self, db, fund):
        fund("alice", 100)
        assert _service(db).send_gift("alice", "bob", "nope").error_code == "gift_not_found"

    def test_storage_failure_rolls_back_gift(self, db, fund):
        from tanishuv.models.gift import SentGift
        from tanishuv.models.transaction import Transaction

        self._gift(db)
        fund("alice", 100)
        svc = _service(db)
        with patch.object(svc.ledger, "record", side_effect=SQLAlchemyError("disk full")):
            result = svc.send_gift("alice", "bob", "rose")

        assert result.error_code == "persistence_error"
        assert _wallet(db, "alice").stars_balance == 100
        assert _wallet(db, "bob") is None
        assert db.query(Transaction).count() == 0
        assert db.query(SentGift).count() == 0


class TestSubscribe:
    def test_subscribe_with_profile_price(self, db, fund):
        from tanishuv.models.creator_profile import CreatorProfile
        from tanishuv.models.subscription import Subscription

        db.add(CreatorProfile(user_id="bob", subscription_enabled=True, subscription_price=200))
        db.commit()
        fund("alice", 500)

        result = _service(db).subscribe_to_creator("alice", "bob")
        assert result.success is True
        assert (result.amount, result.fee, result.net_amount) == (200, 20, 180)

        sub = db.query(Subscription).one()
        assert sub.status == "active"
        assert sub.price_paid == 200
        expires_at = sub.expires_at.replace(tzinfo=timezone.utc)
        assert expires_at > datetime.now(timezone.utc) + timedelta(days=29)

        profile = db.query(CreatorProfile).filter(CreatorProfile.user_id == "bob").one()
        db.refresh(profile)
        assert profile.total_subscribers == 1

    def _creator(self, db, price=100, enabled=True):
        from tanishuv.models.creator_profile import CreatorProfile

        db.add(CreatorProfile(user_id="bob", subscription_enabled=enabled, subscription_price=price))
        db.commit()

    def test_already_subscribed(self, db, fund):
        self._creator(db)
        fund("alice", 500)
        svc = _service(db)
        assert svc.subscribe_to_creator("alice", "bob").success is True

        again = svc.subscribe_to_creator("alice", "bob")
        assert again.success is False
        assert again.error_code == "already_subscribed"
        assert _wallet(db, "alice").stars_balance == 400

    def test_expired_subscription_renews_in_place(self, db, fund):
        from tanishuv.models.subscription import Subscription

        db.add(
            Subscription(
                subscriber_id="alice",
                creator_id="bob",
                price_paid=100,
                status="expired",
                expires_at=datetime.now(timezone.utc) - timedelta(days=1),
            )
        )
        db.commit()
        self._creator(db)
        fund("alice", 500)

        result = _service(db).subscribe_to_creator("alice", "bob", price=100)
        assert result.success is True
        sub = db.query(Subscription).one()
        db.refresh(sub)
        assert sub.status == "active"
        assert sub.renewed_at is not None

    def test_creator_without_subscriptions(self, db, fund):
        fund("alice", 500)
        result = _service(db).subscribe_to_creator("alice", "bob")
        assert result.error_code == "creator_not_found"

    def test_disabled_creator_rejected(self, db, fund):
        from tanishuv.models.subscription import Subscription

        self._creator(db, enabled=False)
        fund("alice", 500)
        result = _service(db).subscribe_to_creator("alice", "bob", price=100)

        assert result.error_code == "creator_not_found"
        assert db.query(Subscription).count() == 0
        assert _wallet(db, "alice").stars_balance == 500

    def test_caller_price_must_match_profile(self, db, fund):
        from tanishuv.models.subscription import Subscription

        self._creator(db, price=500)
        fund("alice", 1000)
        result = _service(db).subscribe_to_creator("alice", "bob", price=1)

        assert result.error_code == "validation_error"
        assert db.query(Subscription).count() == 0
        assert _wallet(db, "alice").stars_balance == 1000

    def test_storage_failure_rolls_back_subscription(self, db, fund):
        from tanishuv.models.creator_profile import CreatorProfile
        from tanishuv.models.subscription import Subscription
        from tanishuv.models.transaction import Transaction

        self._creator(db)
        fund("alice", 500)
        svc = _service(db)
        with patch.object(svc.ledger, "record", side_effect=SQLAlchemyError("disk full")):
            result = svc.subscribe_to_creator("alice", "bob")

        assert result.error_code == "persistence_error"
        assert _wallet(db, "alice").stars_balance == 500
        assert db.query(Transaction).count() == 0
        assert db.query(Subscription).count() == 0
        profile = db.query(CreatorProfile).filter(CreatorProfile.user_id == "bob").one()
        db.refresh(profile)
        assert not profile.total_subscribers


class TestPurchaseContent:
    def _content(self, db, price=40):
        from tanishuv.models.paid_content import PaidContent

        content = PaidContent(id="photo-1", creator_id="bob", type="photo", title="Tog'lar", price=price)
        db.add(content)
        db.commit()
        return content

    def test_unlock_once(self, db, fund):
        from tanishuv.models.paid_content import ContentPurchase, PaidContent

        self._content(db)
        fund("alice", 100)
        svc = _service(db)

        first = svc.purchase_content("alice", "photo-1")
        assert first.success is True
        assert (first.amount, first.fee, first.net_amount) == (40, 4, 36)

        second = svc.purchase_content("alice", "photo-1")
        assert second.success is False
        assert second.error_code == "already_purchased"

        assert _wallet(db, "alice").stars_balance == 60
        assert db.query(ContentPurchase).count() == 1
        content = db.get(PaidContent, "photo-1")
        db.refresh(content)
        assert content.purchase_count == 1

    def test_creator_cannot_buy_own_content(self, db, fund):
        self._content(db)
        fund("bob", 100)
        assert _service(db).purchase_content("bob", "photo-1").error_code == "validation_error"

    def test_missing_content(self, db, fund):
        fund("alice", 100)
        assert _service(db).purchase_content("alice", "nope").error_code == "content_not_found"

    def test_expired_content_not_sold(self, db, fund):
        content = self._content(db)
        content.expires_at = datetime.now(timezone.utc) - timedelta(hours=1)
        db.commit()
        fund("alice", 100)

        result = _service(db).purchase_content("alice", "photo-1")
        assert result.error_code == "content_not_found"
        assert _wallet(db, "alice").stars_balance == 100

    def test_storage_failure_rolls_back_purchase(self, db, fund):
        from tanishuv.models.paid_content import ContentPurchase, PaidContent
        from tanishuv.models.transaction import Transaction

        self._content(db)
        fund("alice", 100)
        svc = _service(db)
        with patch.object(svc.ledger, "record", side_effect=SQLAlchemyError("disk full")):
            result = svc.purchase_content("alice", "photo-1")

        assert result.error_code == "persistence_error"
        assert _wallet(db, "alice").stars_balance == 100
        assert db.query(Transaction).count() == 0
        assert db.query(ContentPurchase).count() == 0
        content = db.get(PaidContent, "photo-1")
        db.refresh(content)
        assert not content.purchase_count


class TestWithdrawal:
    def test_earmarks_without_touching_balance(self, db, fund):
        from tanishuv.models.audit_log import AuditLog
        from tanishuv.models.transaction import Transaction
        from tanishuv.models.withdrawal_request import WithdrawalRequest

        fund("alice", 2000)
        result = _service(db).request_withdrawal("alice", 1000, "card", {"card": "8600****1234"})

        assert result.success is True
        assert (result.amount, result.fee, result.net_amount) == (1000, 50, 950)

        wallet = _wallet(db, "alice")
        assert wallet.stars_balance == 2000
        assert wallet.pending_withdrawal == 1000

        request = db.query(WithdrawalRequest).one()
        assert request.id == result.reference_id
        assert request.status == "pending"
        assert db.query(Transaction).count() == 0
        assert db.query(AuditLog).filter(AuditLog.action == "withdrawal_requested").count() == 1

    def test_percentage_fee_above_floor(self, db, fund):
        fund("alice", 10000)
        result = _service(db).request_withdrawal("alice", 5000, "crypto")
        assert (result.fee, result.net_amount) == (100, 4900)

    def test_below_minimum(self, db, fund):
        fund("alice", 2000)
        result = _service(db).request_withdrawal("alice", 500, "card")
        assert result.success is False
        assert result.error_code == "below_minimum"
        assert result.error == "Minimal yechish: 1000 Stars"
        assert _wallet(db, "alice").pending_withdrawal == 0

    def test_more_than_available(self, db, fund):
        fund("alice", 1500)
        svc = _service(db)
        assert svc.request_withdrawal("alice", 1000, "card").success is True
        second = svc.request_withdrawal("alice", 1000, "card")
        assert second.error_code == "insufficient_funds"

    def test_unknown_method(self, db, fund):
        fund("alice", 2000)
        assert _service(db).request_withdrawal("alice", 1000, "cash").error_code == "validation_error"


class TestResultShape:
    def test_failure_from_error(self):
        from tanishuv.services.errors import InsufficientFunds
        from tanishuv.services.settlement.service import SettlementResult

        result = SettlementResult.failure(InsufficientFunds())
        assert result.success is False
        assert result.error_code == "insufficient_funds"
        assert result.error == "Balans yetarli emas"

    def test_config_from_settings(self):
        from tanishuv.core.config import settings
        from tanishuv.services.settlement.config import SettlementConfig

        config = SettlementConfig.from_settings()
        assert config.commission_rate == settings.commission_rate
        assert config.min_tip == settings.min_tip_stars
