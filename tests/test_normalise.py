from datetime import datetime, timezone

import pytest

from brandscout.schemas import Platform, Profile
from data_collection.normalise import (
    content_from_payload,
    lookup,
    parse_count,
    parse_timestamp,
    profile_from_payload,
    profiles_from_payloads,
)


@pytest.mark.parametrize(
    "raw, expected",
    [
        (12345, 12345),
        ("12,345", 12345),
        ("1.2M", 1_200_000),
        ("3.4K followers", 3400),
        (None, 0),
        (True, 0),
        ([1, 2, 3], 3),
        ("n/a", 0),
    ],
)
def test_parse_count(raw, expected):
    assert parse_count(raw) == expected


def test_parse_timestamp_formats():
    expected = datetime(2023, 11, 14, 22, 13, 20, tzinfo=timezone.utc)
    assert parse_timestamp(1700000000) == expected
    assert parse_timestamp(1700000000000) == expected
    assert parse_timestamp("1700000000") == expected
    assert parse_timestamp("2023-11-14T22:13:20Z") == expected
    assert parse_timestamp("2023-11-14T22:13:20") == expected
    assert parse_timestamp("yesterday") is None
    assert parse_timestamp(None) is None


def test_lookup_walks_dotted_paths():
    raw = {"snippet": {"title": "Chan"}, "empty": ""}
    assert lookup(raw, "empty", "snippet.title") == "Chan"
    assert lookup(raw, "missing.path", default="x") == "x"


def test_instagram_profile():
    profile = profile_from_payload(Platform.instagram, {
        "username": "@Foo",
        "fullName": "Foo Bar",
        "biography": "Gym & coffee",
        "followersCount": "1.5k",
        "verified": True,
        "id": 42,
    })
    assert profile.handle == "Foo"
    assert profile.followers == 1500
    assert profile.verified
    assert profile.external_id == "42"
    assert profile.url == "https://www.instagram.com/Foo/"


def test_tiktok_author_meta():
    profile = profile_from_payload(Platform.tiktok, {
        "id": "video1",
        "authorMeta": {"name": "dancer", "nickName": "Dancer", "fans": 20000, "signature": "dance daily"},
    })
    assert profile.handle == "dancer"
    assert profile.display_name == "Dancer"
    assert profile.followers == 20000
    assert profile.biography == "dance daily"


def test_youtube_channel():
    profile = profile_from_payload(Platform.youtube, {
        "id": "UC123",
        "snippet": {"title": "Chan", "description": "tech reviews", "customUrl": "@chan"},
        "statistics": {"subscriberCount": "12000"},
    })
    assert profile.handle == "chan"
    assert profile.followers == 12000
    assert profile.external_id == "UC123"


def test_profiles_without_handle_are_dropped():
    assert profile_from_payload(Platform.instagram, {"followersCount": 10}) is None
    assert profile_from_payload(Platform.instagram, {"followersCount": 10}, handle="given").handle == "given"
    assert profiles_from_payloads(Platform.instagram, [{"username": "a"}, {"bio": "x"}, "junk"]) == [
        profile_from_payload(Platform.instagram, {"username": "a"})
    ]


def test_instagram_post():
    owner = Profile(platform=Platform.instagram, handle="me", followers=30000)
    item = content_from_payload(Platform.instagram, {
        "id": "1",
        "shortCode": "abc",
        "caption": "Leg day #ad",
        "likesCount": 10,
        "commentsCount": 2,
        "timestamp": "2024-05-01T10:00:00.000Z",
        "hashtags": ["ad"],
        "taggedUsers": [{"username": "brand"}],
        "title": "ignored",
    }, owner)
    assert item.url == "https://www.instagram.com/p/abc/"
    assert item.title == ""
    assert item.text == "Leg day #ad"
    assert (item.likes, item.comments) == (10, 2)
    assert item.tagged_accounts == ["brand"]
    assert item.owner_handle == "me"
    assert item.owner_followers == 30000
    assert item.published_at == datetime(2024, 5, 1, 10, 0, tzinfo=timezone.utc)


def test_youtube_video():
    item = content_from_payload(Platform.youtube, {
        "id": "vid1",
        "snippet": {"title": "My setup", "description": "Sponsored by Ridge", "publishedAt": "2024-05-01T10:00:00Z"},
        "statistics": {"viewCount": "1000", "likeCount": "50"},
    })
    assert item.url == "https://www.youtube.com/watch?v=vid1"
    assert item.text == "My setup\nSponsored by Ridge"
    assert item.views == 1000
    assert item.likes == 50


def test_content_without_id_is_dropped():
    assert content_from_payload(Platform.tiktok, {"text": "hello"}) is None
