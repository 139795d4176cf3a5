"""Per-platform parameters for the generic discovery pipeline.

Instagram, TikTok and YouTube share one pipeline; everything that differs
between them (curated fallback creators, how much content to read per
creator, which phrases count as a sponsorship indicator, how results are
ranked) is captured in a :class:`PlatformRules` value.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Dict, Tuple

from ..schemas import Platform, RankBy

# Brand resolution sources, tried in order until one yields a usable name.
MENTION = "mention"
TAGGED = "tagged"
PHRASE = "phrase"
CODE_WINDOW = "code_window"

SOCIAL_PRECEDENCE = (MENTION, TAGGED, PHRASE, CODE_WINDOW)
# Video descriptions are full of the creator's own @handles.
VIDEO_PRECEDENCE = (PHRASE, CODE_WINDOW)

SOCIAL_HASHTAGS = ("ad", "sponsored", "partner", "partnership", "collab", "ambassador")
SOCIAL_PHRASES = (
    "#ad",
    "#sponsored",
    "#partner",
    "paid partnership",
    "sponsored by",
    "thanks to @",
    "use code",
    "promo code",
    "link in bio",
    "ambassador",
)


@dataclass(frozen=True)
class PlatformRules:
    """Everything the pipeline needs to know about one platform."""

    platform: Platform
    fallback_creators: Dict[str, Tuple[str, ...]]
    content_per_creator: int
    sponsor_hashtags: Tuple[str, ...]
    sponsor_phrases: Tuple[str, ...]
    brand_precedence: Tuple[str, ...] = SOCIAL_PRECEDENCE
    engagement_from_views: bool = False
    rank_by: RankBy = RankBy.engagement
    max_opportunities: int = 20
    require_corroboration: bool = True
    default_niche: str = "fitness"

    related_limit: int = 100
    primary_success_threshold: int = 10
    primary_cap: int = 30
    fallback_cap: int = 20
    fallback_score: int = 85
    scoring_fallback_score: int = 75
    scoring_batch_size: int = 10
    finalist_count: int = 20
    extraction_batch_size: int = 5
    example_count: int = 3
    recent_days: int = 30
    brand_like_markers: Tuple[str, ...] = ("official", "shop", "store", "buy", "®", "©", "™")

    def niche_key(self, niche: str) -> str:
        """Map a free-text niche onto one of the curated fallback lists."""
        words = (niche or "").split()
        key = words[0].casefold() if words else ""
        return key if key in self.fallback_creators else self.default_niche

    def fallback_handles(self, niche: str) -> Tuple[str, ...]:
        return self.fallback_creators[self.niche_key(niche)][: self.fallback_cap]


INSTAGRAM = PlatformRules(
    platform=Platform.instagram,
    fallback_creators={
        "fitness": (
            "kayla_itsines", "whitneyysimmons", "alexia_clark", "massy.arias",
            "brittne_babe", "sumeet_sahni", "jenselter", "anllela_sagra",
            "michelle_lewin", "sommer_ray", "bakharnabieva", "niamhcoghlan_",
        ),
        "beauty": (
            "hudabeauty", "nikkietutorials", "jamescharles", "jeffreestar",
            "jackieaina", "patrickstarrr", "bretmanrock", "makeupbyjakejamie",
        ),
        "fashion": (
            "chiaraferragni", "negin_mirsalehi", "aimesong", "songofstyle",
            "camilacoelho", "weworewhat", "sincerelyjules", "blaireadiebee",
        ),
        "food": (
            "halfbakedharvest", "minimalistbaker", "thefeedfeed", "foodnetwork",
            "bonappetitmag", "tasty", "buzzfeedtasty", "delish",
        ),
        "travel": (
            "beautifuldestinations", "earthpix", "wonderful_places", "passionpassport",
            "natgeotravel", "lonelyplanet", "travelchannel", "wanderlust",
        ),
        "tech": (
            "mkbhd", "ijustine", "unboxtherapy", "techcrunch",
            "theverge", "cnet", "wired", "engadget",
        ),
    },
    content_per_creator=30,
    sponsor_hashtags=SOCIAL_HASHTAGS,
    sponsor_phrases=SOCIAL_PHRASES,
)

TIKTOK = PlatformRules(
    platform=Platform.tiktok,
    fallback_creators={
        "fitness": (
            "kayla_itsines", "chloe_t", "pamela_rf", "daisy_keech",
            "madfit", "growingannanas", "keltie_oconnor", "caroline_girvan",
            "natacha.oceane", "blogilates", "whitney_simmons", "heather_robertson",
        ),
        "beauty": (
            "mikayla", "charlidamelio", "addisonre", "bretmanrock",
            "abbyroberts", "hyram", "mariaa.ojeda", "meredithdietz",
        ),
        "fashion": (
            "alix_earle", "emmawest", "styled.byliv", "oldloserinbrooklyn",
            "tinxsnacks", "overheardla", "thecottagefairy", "emmahill",
        ),
        "food": (
            "cookingwithshereen", "logan.moffitt", "jennaaraee", "feelgoodfoodie",
            "cooking_with_lynja", "emmastep", "tastesbetterfromscratch", "eatwithzoee",
        ),
        "travel": (
            "drewbinsky", "migrationology", "kylenutt", "charlesdeclare",
            "thecottagefairy", "earthpix", "wonderofscience", "voyaged",
        ),
        "tech": (
            "marques_brownlee", "iammarkian", "jerryrigeverything", "mrwhosetheboss",
            "linustech", "techgirl", "techlinked", "techburner",
        ),
    },
    content_per_creator=30,
    sponsor_hashtags=SOCIAL_HASHTAGS + (
        "tiktokmademebuyit", "tiktokshop", "tiktokfinds", "tiktokmademebuythis",
    ),
    sponsor_phrases=SOCIAL_PHRASES + (
        "#tiktokmademebuyit", "#tiktokshop", "shop my link", "gifted by",
        "pr package", "collab with", "discount code", "get it on tiktok shop",
        "shop link", "affiliate link",
    ),
    max_opportunities=25,
)

YOUTUBE = PlatformRules(
    platform=Platform.youtube,
    fallback_creators={
        "fitness": (
            "athleanx", "FitnessBlender", "ChloeTing", "PamelaReif",
            "MadFit", "GrowWithJo", "Blogilates", "SydneyCummings",
            "HeatherRobertson", "CarolineGirvan", "JeffNippard", "WillTennyson",
        ),
        "beauty": (
            "jamescharles", "NikkieTutorials", "MannyMua733", "PatrickStarrr",
            "jeffreestar", "jaclynnhill", "TatiBeauty", "MichellePhan",
        ),
        "tech": (
            "mkbhd", "LinusTechTips", "UnboxTherapy", "MrWhoseTheBoss",
            "Dave2D", "TechLinked", "JerryRigEverything", "iJustine",
        ),
        "food": (
            "bingingwithbabish", "joshuaweissman", "adamragusea", "NotAnotherCookingShow",
            "SortedFood", "ChefJohnFoodWishes", "EmmymadeinJapan",
        ),
        "travel": (
            "MarkWiens", "DrewBinsky", "LostLeBlanc", "KaraAndNate",
            "VagabrothersTravelGuide", "SamuelAndAudrey",
        ),
        "gaming": (
            "PewDiePie", "MrBeast", "Markiplier", "jacksepticeye",
            "Ninja", "Tfue", "Pokimane", "Valkyrae",
        ),
    },
    content_per_creator=10,
    sponsor_hashtags=("ad", "sponsored", "partner", "ambassador"),
    sponsor_phrases=(
        "sponsored by",
        "brought to you by",
        "is sponsoring",
        "special thanks to",
        "thanks to",
        "use code",
        "promo code",
        "discount code",
        "partnership with",
    ),
    brand_precedence=VIDEO_PRECEDENCE,
    engagement_from_views=True,
    rank_by=RankBy.mentions,
    require_corroboration=False,
)

RULES: Dict[Platform, PlatformRules] = {
    Platform.instagram: INSTAGRAM,
    Platform.tiktok: TIKTOK,
    Platform.youtube: YOUTUBE,
}


def rules_for(platform: Platform | str) -> PlatformRules:
    return RULES[Platform(platform)]
