import asyncio

from brandscout.pipeline.aggregation import deduplicate_within_brand
from brandscout.pipeline.extraction import PartnershipExtraction, engagement_of, mentions_from_content
from brandscout.pipeline.rules import INSTAGRAM, YOUTUBE
from brandscout.schemas import Platform, SignalKind

from .conftest import FakeFetcher, make_post, make_profile

CREATOR = make_profile("lifter", followers=40_000)


def test_each_branded_signal_is_a_mention():
    post = make_post(
        "p1",
        "Thanks to @gymshark for the gear! Use code GYM10 at gymshark.com #ad",
        likes=300,
        comments=20,
    )
    mentions = mentions_from_content(post, CREATOR, INSTAGRAM)
    assert [(m.brand, m.kind, m.discount_code) for m in mentions] == [
        ("Gymshark", SignalKind.tagged_account, None),
        ("Gymshark", SignalKind.discount_code, "GYM10"),
    ]

    [mention] = deduplicate_within_brand(mentions)
    assert mention.brand == "Gymshark"
    assert mention.brand_key == "gymshark"
    assert mention.discount_code == "GYM10"
    assert mention.sponsor_url == "gymshark.com"
    assert mention.engagement == 320
    assert mention.creator_handle == "lifter"
    assert mention.creator_followers == 40_000


def test_owner_followers_take_precedence():
    post = make_post("p1", "Love @ridge #ad", owner_followers=75_000)
    assert mentions_from_content(post, CREATOR, INSTAGRAM)[0].creator_followers == 75_000


def test_brandless_and_unsponsored_posts_yield_nothing():
    assert mentions_from_content(make_post("p1", "Leg day again"), CREATOR, INSTAGRAM) == []
    assert mentions_from_content(make_post("p2", "New video #ad"), CREATOR, INSTAGRAM) == []


def test_video_engagement_is_views():
    video = make_post("v1", "Sponsored by Ridge", title="My EDC", views=12_000, likes=400)
    assert engagement_of(video, YOUTUBE) == 12_000
    assert engagement_of(video, INSTAGRAM) == 400
    creator = make_profile("reviewer", platform=Platform.youtube)
    [mention] = mentions_from_content(video, creator, YOUTUBE)
    assert mention.brand == "Ridge"
    assert mention.engagement == 12_000


def test_failed_content_fetch_skips_only_that_creator():
    creators = [make_profile(f"creator{i}") for i in range(7)]
    content = {c.handle: [make_post(f"{c.handle}-1", "Love @ridge #ad", likes=10)] for c in creators}
    fetcher = FakeFetcher(content=content, failing_handles=["creator3"])
    mentions = asyncio.run(PartnershipExtraction(fetcher, INSTAGRAM).extract(creators))
    assert [m.creator_handle for m in mentions] == [c.handle for c in creators if c.handle != "creator3"]
    assert len(fetcher.content_calls) == 7
