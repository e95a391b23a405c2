"""Tests for CreatorService: profile settings, paid content, access rules."""
from datetime import datetime, timedelta, timezone

import pytest


class TestProfile:
    def test_upsert_creates_and_flags_wallet(self, db):
        from tanishuv.services.creators.service import CreatorService
        from tanishuv.services.wallets.service import WalletService

        profile = CreatorService(db).upsert_profile("bob", subscription_enabled=True, subscription_price=150)
        assert profile.subscription_price == 150
        assert WalletService(db).get_wallet("bob").is_creator is True

    def test_upsert_updates_in_place(self, db):
        from tanishuv.models.creator_profile import CreatorProfile
        from tanishuv.services.creators.service import CreatorService

        svc = CreatorService(db)
        svc.upsert_profile("bob", min_tip_amount=20)
        svc.upsert_profile("bob", tips_enabled=False)
        profile = db.query(CreatorProfile).one()
        assert profile.min_tip_amount == 20
        assert profile.tips_enabled is False

    def test_unknown_field_rejected(self, db):
        from tanishuv.services.creators.service import CreatorService
        from tanishuv.services.errors import ValidationFailed

        with pytest.raises(ValidationFailed):
            CreatorService(db).upsert_profile("bob", total_subscribers=1000)

    def test_bad_payout_method(self, db):
        from tanishuv.services.creators.service import CreatorService
        from tanishuv.services.errors import ValidationFailed

        with pytest.raises(ValidationFailed):
            CreatorService(db).upsert_profile("bob", payout_method="cash")


class TestContent:
    def test_invalid_type(self, db):
        from tanishuv.services.creators.service import CreatorService
        from tanishuv.services.errors import ValidationFailed

        with pytest.raises(ValidationFailed):
            CreatorService(db).create_content("bob", "hologram", 10)

    def test_price_must_be_positive(self, db):
        from tanishuv.services.creators.service import CreatorService
        from tanishuv.services.errors import ValidationFailed

        with pytest.raises(ValidationFailed):
            CreatorService(db).create_content("bob", "photo", 0)

    def test_inactive_content_not_found(self, db):
        from tanishuv.services.creators.service import CreatorService
        from tanishuv.services.errors import ContentNotFound

        svc = CreatorService(db)
        content = svc.create_content("bob", "photo", 10)
        content.is_active = False
        db.commit()
        with pytest.raises(ContentNotFound):
            svc.get_content(content.id)


class TestAccess:
    def _subscription(self, db, expires_in):
        from tanishuv.models.subscription import Subscription

        db.add(
            Subscription(
                subscriber_id="alice",
                creator_id="bob",
                price_paid=100,
                status="active",
                expires_at=datetime.now(timezone.utc) + expires_in,
            )
        )
        db.commit()

    def test_owner_always_has_access(self, db):
        from tanishuv.services.creators.service import CreatorService

        svc = CreatorService(db)
        content = svc.create_content("bob", "photo", 10)
        assert svc.has_access("bob", content) is True
        assert svc.has_access("alice", content) is False

    def test_subscriber_unlocks_free_for_subscribers(self, db):
        from tanishuv.services.creators.service import CreatorService

        svc = CreatorService(db)
        perk = svc.create_content("bob", "story", 10, is_free_for_subscribers=True)
        paid = svc.create_content("bob", "video", 50)
        self._subscription(db, timedelta(days=5))

        assert svc.is_subscribed("alice", "bob") is True
        assert svc.has_access("alice", perk) is True
        assert svc.has_access("alice", paid) is False

    def test_lapsed_subscription_not_counted(self, db):
        from tanishuv.services.creators.service import CreatorService

        self._subscription(db, timedelta(days=-1))
        assert CreatorService(db).is_subscribed("alice", "bob") is False
