"""
Creator monetization settings, paid content catalog and access checks.
"""
from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from tanishuv.db.session import get_db
from tanishuv.schemas.payments import (
    CreatorProfileIn,
    CreatorProfileOut,
    PaidContentIn,
    PaidContentOut,
)
from tanishuv.services.creators.service import CreatorService
from tanishuv.services.errors import CreatorNotFound, ValidationFailed

router = APIRouter(prefix="/creators", tags=["creators"])


def _profile_out(profile) -> dict:
    return CreatorProfileOut(
        user_id=profile.user_id,
        subscription_enabled=profile.subscription_enabled,
        subscription_price=profile.subscription_price,
        subscription_benefits=profile.subscription_benefits or [],
        default_photo_price=profile.default_photo_price,
        default_story_price=profile.default_story_price,
        default_message_price=profile.default_message_price,
        tips_enabled=profile.tips_enabled,
        min_tip_amount=profile.min_tip_amount,
        total_subscribers=profile.total_subscribers,
        total_content_sold=profile.total_content_sold,
        payout_method=profile.payout_method,
        min_payout_amount=profile.min_payout_amount,
    ).model_dump(by_alias=True)


def _content_out(content) -> dict:
    return PaidContentOut(
        id=content.id,
        creator_id=content.creator_id,
        type=content.type,
        title=content.title,
        description=content.description,
        price=content.price,
        preview_url=content.preview_url,
        is_free_for_subscribers=content.is_free_for_subscribers,
        purchase_count=content.purchase_count,
        created_at=content.created_at,
    ).model_dump(by_alias=True, mode="json")


@router.get("/{user_id}/profile")
def get_profile(user_id: str, db: Session = Depends(get_db)) -> dict:
    profile = CreatorService(db).get_profile(user_id)
    if profile is None:
        raise CreatorNotFound()
    return {"success": True, "profile": _profile_out(profile)}


@router.put("/{user_id}/profile")
def update_profile(user_id: str, body: CreatorProfileIn, db: Session = Depends(get_db)) -> dict:
    profile = CreatorService(db).upsert_profile(user_id, **body.model_dump(exclude_none=True))
    return {"success": True, "profile": _profile_out(profile)}


@router.post("/{user_id}/content")
def create_content(user_id: str, body: PaidContentIn, db: Session = Depends(get_db)) -> dict:
    content = CreatorService(db).create_content(
        user_id,
        body.type,
        body.price,
        title=body.title,
        description=body.description,
        preview_url=body.preview_url,
        content_urls=body.content_urls,
        is_free_for_subscribers=body.is_free_for_subscribers,
        expires_at=body.expires_at,
    )
    return {"success": True, "content": _content_out(content)}


@router.get("/{user_id}/content")
def list_content(user_id: str, limit: int = Query(50, ge=1, le=200), db: Session = Depends(get_db)) -> dict:
    items = CreatorService(db).list_content(user_id, limit=limit)
    return {"success": True, "content": [_content_out(c) for c in items]}


@router.get("/{creator_id}/access")
def check_access(
    creator_id: str,
    user_id: str | None = Query(None, alias="userId"),
    content_id: str | None = Query(None, alias="contentId"),
    db: Session = Depends(get_db),
) -> dict:
    """Subscription status for (userId, creator) and, with contentId, whether the content is unlocked."""
    if not user_id:
        raise ValidationFailed("userId kerak")
    service = CreatorService(db)
    response = {"success": True, "isSubscribed": service.is_subscribed(user_id, creator_id)}
    if content_id:
        content = service.get_content(content_id)
        if content.creator_id != creator_id:
            raise ValidationFailed("Kontent bu kreatorga tegishli emas")
        response["hasAccess"] = service.has_access(user_id, content)
    return response
