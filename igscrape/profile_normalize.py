from __future__ import annotations

from datetime import UTC, datetime
from enum import Enum
from typing import Any

from pydantic import model_validator

from igscrape.schemas import IGRecordModel, RawProfileData

RESTRICTED_CATEGORY = "Restricted Account"
WARNING_MISSING_ID = "Profile ID not found in source data"
WARNING_MISSING_COUNTS = "Profile counts not found in source data"
WARNING_MISSING_PICTURE = "Profile picture URL not found in source data"

_PRIVATE_KEYS = ("is_private", "isPrivate")
_RESTRICTED_KEYS = ("is_restricted", "isRestricted")
_ID_KEYS = ("id", "pk")
_TEXT_KEYS: dict[str, tuple[str, ...]] = {
    "full_name": ("full_name", "fullName"),
    "biography": ("biography", "bio"),
    "external_url": ("external_url", "externalUrl"),
    "profile_pic_url": ("profile_pic_url", "profilePicUrl"),
    "profile_pic_url_hd": ("profile_pic_url_hd", "profilePicUrlHd"),
    "category_name": ("category_name", "categoryName"),
    "business_category_name": ("business_category_name", "businessCategoryName"),
}
_VERIFIED_KEYS = ("is_verified", "isVerified")
_COUNT_KEYS: dict[str, tuple[str, ...]] = {
    "followers_count": ("edge_followed_by", "edgeFollowedBy"),
    "following_count": ("edge_follow", "edgeFollow"),
    "posts_count": ("edge_owner_to_timeline_media", "edgeOwnerToTimelineMedia"),
}


class ProfileAccess(str, Enum):
    public = "PUBLIC"
    private = "PRIVATE"
    restricted = "RESTRICTED"
    unknown = "UNKNOWN"


class NormalizedProfile(IGRecordModel):
    username: str
    access: ProfileAccess
    fetched_at: str
    id: str | None = None
    full_name: str | None = None
    biography: str | None = None
    external_url: str | None = None
    is_private: bool | None = None
    is_verified: bool | None = None
    followers_count: int | None = None
    following_count: int | None = None
    posts_count: int | None = None
    profile_pic_url: str | None = None
    profile_pic_url_hd: str | None = None
    category_name: str | None = None
    business_category_name: str | None = None

    @model_validator(mode="after")
    def validate_private_flag(self) -> "NormalizedProfile":
        if self.is_private is False:
            raise ValueError("is_private is either true or unset")
        if (self.is_private is True) != (self.access == ProfileAccess.private):
            raise ValueError("is_private must be set exactly when access is PRIVATE")
        return self


def _first_bool(data: RawProfileData, keys: tuple[str, ...]) -> bool | None:
    for key in keys:
        value = data.get(key)
        if isinstance(value, bool):
            return value
    return None


def _first_text(data: RawProfileData, keys: tuple[str, ...]) -> str | None:
    for key in keys:
        value = data.get(key)
        if isinstance(value, str) and value:
            return value
    return None


def _first_id(data: RawProfileData) -> str | None:
    for key in _ID_KEYS:
        value = data.get(key)
        if isinstance(value, bool):
            continue
        if isinstance(value, (str, int)) and str(value):
            return str(value)
    return None


def _edge_count(data: RawProfileData, keys: tuple[str, ...]) -> int | None:
    for key in keys:
        edge = data.get(key)
        if not isinstance(edge, dict):
            continue
        count = edge.get("count")
        if isinstance(count, bool) or not isinstance(count, (int, float)):
            continue
        if isinstance(count, float) and not count.is_integer():
            continue
        return int(count)
    return None


def _timestamp(now: datetime | None) -> str:
    current = now or datetime.now(UTC)
    if current.tzinfo is None:
        current = current.replace(tzinfo=UTC)
    return current.astimezone(UTC).isoformat().replace("+00:00", "Z")


def determine_access(data: RawProfileData) -> ProfileAccess:
    private_flag = _first_bool(data, _PRIVATE_KEYS)
    if private_flag is True:
        return ProfileAccess.private
    category = _first_text(data, _TEXT_KEYS["category_name"])
    if _first_bool(data, _RESTRICTED_KEYS) is True or category == RESTRICTED_CATEGORY:
        return ProfileAccess.restricted
    if private_flag is False:
        return ProfileAccess.public
    return ProfileAccess.unknown


def normalize_profile(
    data: RawProfileData,
    username: str,
    *,
    now: datetime | None = None,
) -> tuple[NormalizedProfile, list[str]]:
    """Map a raw profile payload onto ``NormalizedProfile``.

    Returns the record and the warnings describing signals the payload lacked.
    """
    access = determine_access(data)
    fields: dict[str, Any] = {
        "username": username,
        "access": access,
        "fetched_at": _timestamp(now),
        "is_private": True if access == ProfileAccess.private else None,
        "id": _first_id(data),
        "is_verified": _first_bool(data, _VERIFIED_KEYS),
    }
    for field_name, keys in _TEXT_KEYS.items():
        fields[field_name] = _first_text(data, keys)
    for field_name, keys in _COUNT_KEYS.items():
        fields[field_name] = _edge_count(data, keys)
    if fields["profile_pic_url_hd"] is None:
        fields["profile_pic_url_hd"] = fields["profile_pic_url"]

    normalized = NormalizedProfile(**fields)

    warnings: list[str] = []
    if normalized.id is None:
        warnings.append(WARNING_MISSING_ID)
    if normalized.followers_count is None and normalized.following_count is None and normalized.posts_count is None:
        warnings.append(WARNING_MISSING_COUNTS)
    if normalized.profile_pic_url is None:
        warnings.append(WARNING_MISSING_PICTURE)
    return normalized, warnings
