"""Sponsorship signal extraction.

Pure functions that look at a single caption or video description and
decide whether it is sponsored, which brand it is sponsored by, which
discount code it advertises and which URL points at the sponsor.  Nothing
in this module performs I/O; the per-platform differences (which hashtags
and phrases count, and in which order brand sources are consulted) come in
through a :class:`~brandscout.pipeline.rules.PlatformRules` value.

Brand resolution tries, in the order given by ``rules.brand_precedence``:

* the first ``@mention`` in the text,
* the first tagged account supplied by the platform,
* the name captured after a phrase such as "sponsored by" or "thanks to",
* a brand-like token or domain within 150 characters of a discount code.

A source that yields nothing usable (for example an ``@mention`` that
cleans to a denylisted word) hands over to the next one.  Signals whose
brand cannot be resolved are still returned, with ``brand=None``; callers
drop them.
"""

from __future__ import annotations

import re
from typing import Callable, Dict, Iterable, List, Optional, Sequence, Tuple

from ..schemas import SignalKind, SponsorshipSignal
from .rules import CODE_WINDOW, INSTAGRAM, MENTION, PHRASE, TAGGED, PlatformRules

CODE_CONTEXT = 150
MAX_BRAND_LENGTH = 30

STOP_WORDS = frozenset({
    "the", "a", "an", "for", "and", "or", "but", "in", "on", "at", "to", "from",
    "of", "with", "by", "my", "our", "your", "you", "me", "us", "we", "i",
    "this", "that", "all", "everyone", "everybody", "them", "their",
})

# Generic words and well-known non-sponsor destinations that often land in
# a brand slot.
GENERIC_BRANDS = frozenset({
    "app store", "play store", "shop", "store", "app", "apps", "bio", "link",
    "links", "com", "http", "https", "www", "code", "here", "website", "site",
    "channel", "video", "sponsor", "sponsors", "promo", "discount", "checkout",
    "instagram", "tiktok", "youtube", "facebook", "twitter", "linkedin",
    "patreon", "discord", "snapchat", "twitch", "threads", "pinterest",
    "bit ly", "bitly", "tinyurl", "goo gl", "linktree", "linktr ee",
})

INVALID_BRAND_PATTERNS = tuple(re.compile(p, re.IGNORECASE) for p in (
    r"^apps?\b",
    r"^play\b",
    r"^store\b",
    r"\bstore$",
    r"^shop\b",
    r"\bapp$",
    r"^get\b",
    r"^visit\b",
    r"^click\b",
    r"^link\b",
    r"^pmc\b",
    r"\bpubmed\b",
    r"\bncbi\b",
    r"\bnlm nih\b",
    r"\bhttps?\b",
    r"\bwww\b",
))

EXCLUDED_DOMAINS = (
    # social platforms
    "youtube.com", "youtu.be", "instagram.com", "twitter.com", "x.com",
    "tiktok.com", "facebook.com", "fb.com", "linkedin.com", "patreon.com",
    "discord.gg", "discord.com", "twitch.tv", "snapchat.com", "threads.net",
    "pinterest.com",
    # app stores
    "apps.apple.com", "play.google.com",
    # shorteners and link hubs
    "bit.ly", "tinyurl.com", "goo.gl", "t.co", "ow.ly", "linktr.ee",
    # generic marketplaces
    "amazon.com", "amzn.to", "ebay.com", "etsy.com", "walmart.com",
    # research databases
    "ncbi.nlm.nih.gov", "nih.gov", "pubmed.com",
)

MENTION_RE = re.compile(r"(?<![\w.@])@([A-Za-z0-9_](?:[A-Za-z0-9_.]*[A-Za-z0-9_])?)")
HASHTAG_RE = re.compile(r"#(\w+)")
CODE_RE = re.compile(
    r"\b(?:use|promo|discount|coupon)\s+code\s*:?\s*[\"']?([A-Za-z0-9]{3,20})\b",
    re.IGNORECASE,
)
URL_RE = re.compile(
    r"(?<![\w@.])(?:https?://)?(?:www\.)?"
    r"((?:[A-Za-z0-9-]+\.)+(?-i:[a-z]{2,12}))"
    r"(?:/[^\s<>\"')\]]*)?",
    re.IGNORECASE,
)
BRAND_TLDS = (
    "com", "co", "io", "net", "org", "app", "shop", "store", "tv", "gg", "me", "us",
    "co.uk", "uk", "ca", "au", "de", "fr",
)
TLD_SUFFIX_RE = re.compile(r"\.(?:%s)$" % "|".join(re.escape(tld) for tld in BRAND_TLDS), re.IGNORECASE)
HONORIFICS = frozenset({"dr", "mr", "mrs", "ms", "st"})
LEAD_IN_RE = re.compile(r"(?:visit|go to|head to|check out|shop at|at)\s+$", re.IGNORECASE)
GET_AT_RE = re.compile(r"\bget (?:your |a |an )?([A-Za-z][A-Za-z ]{1,28}?) at\b", re.IGNORECASE)

_BRAND_CAPTURE = (
    r"(?P<brand>@?(?-i:(?:Dr|Mrs|Mr|Ms|St)\.[ \t]+)?[A-Za-z0-9][\w&'-]*(?-i:\.[a-z]{2,12})?"
    r"(?-i:(?:[ \t]+[A-Z0-9][\w&'-]*){0,2}))"
)
SPONSOR_CAPTURE_RES = tuple(
    re.compile(rf"\b(?:{phrase})\s+{_BRAND_CAPTURE}", re.IGNORECASE)
    for phrase in (
        r"(?:this (?:video|post) (?:is|was) )?sponsored by",
        r"brought to you by",
        r"(?:in )?partnership with",
        r"partnered with",
        r"special thanks to",
        r"thanks to",
        r"gifted by",
        r"(?:in )?collab(?:oration)? with",
    )
)
SPONSORING_RE = re.compile(r"\b(?P<brand>[A-Za-z0-9][\w&'-]*) (?:is|are) sponsoring\b", re.IGNORECASE)


# ---------------------------------------------------------------------------
# Brand names
# ---------------------------------------------------------------------------

def normalize_brand(name: str) -> str:
    """Identity key of a brand: case-folded, punctuation collapsed to spaces,
    leading honorifics dropped ("Dr. Squatch" and "Squatch" share a key).

    ``normalize_brand(normalize_brand(x)) == normalize_brand(x)``.
    """
    words = re.sub(r"[\W_]+", " ", (name or "").casefold()).split()
    while words and words[0] in HONORIFICS:
        words.pop(0)
    return " ".join(words)


def _is_generic(brand: str) -> bool:
    if normalize_brand(brand) in GENERIC_BRANDS:
        return True
    return any(pattern.search(brand) for pattern in INVALID_BRAND_PATTERNS)


def clean_brand_name(raw: Optional[str]) -> Optional[str]:
    """Turn a raw capture (``@nobull.project``, ``nobull.com``, ``the Ridge``)
    into a display name, or ``None`` when nothing brand-like is left."""
    if not raw:
        return None
    text = raw.strip().lstrip("@")
    text = TLD_SUFFIX_RE.sub("", text)
    text = re.sub(r"[_.\-/]+", " ", text)
    text = re.sub(r"[^\w\s]|_", "", text)
    words = [word for word in text.split() if word.casefold() not in STOP_WORDS]
    cleaned = " ".join(words)
    if len(cleaned) < 2 or len(cleaned) > MAX_BRAND_LENGTH:
        return None
    if all(word.casefold() in HONORIFICS for word in words):
        return None
    brand = " ".join(word[:1].upper() + word[1:].lower() for word in words)
    if _is_generic(brand):
        return None
    return brand


# ---------------------------------------------------------------------------
# URLs and domains
# ---------------------------------------------------------------------------

def _host(domain: str) -> str:
    host = domain.casefold()
    return host[4:] if host.startswith("www.") else host


def is_excluded_domain(domain: str) -> bool:
    host = _host(domain)
    return any(host == excluded or host.endswith("." + excluded) for excluded in EXCLUDED_DOMAINS)


def _registrable_label(domain: str) -> str:
    labels = _host(domain).split(".")
    if len(labels) >= 3 and labels[-2] in {"co", "com", "org", "net"} and len(labels[-1]) == 2:
        return labels[-3]
    return labels[-2] if len(labels) >= 2 else labels[0]


def _has_url_markers(url: str, domain: str) -> bool:
    return url.casefold().startswith(("http://", "https://", "www.")) or url[len(domain):].startswith("/")


def _candidate_urls(context: str) -> List[Tuple[int, str, str]]:
    """``(offset, url, domain)`` for every non-excluded URL in ``context``.

    A bare ``word.word`` with no scheme, ``www.`` or path only counts when it
    ends in a common brand TLD, so run-together sentences are not domains.
    """
    found = []
    for match in URL_RE.finditer(context):
        domain = match.group(1)
        if is_excluded_domain(domain):
            continue
        if not (_has_url_markers(match.group(0), domain) or TLD_SUFFIX_RE.search(domain)):
            continue
        found.append((match.start(), match.group(0).rstrip(".,!?;:"), domain))
    return found


def find_sponsor_url(context: str, brand: Optional[str] = None, anchor: Optional[int] = None) -> Optional[str]:
    """Pick the sponsor URL in ``context`` closest to where the brand is named.

    The brand's position is its first case-insensitive occurrence in the
    context; ``anchor`` is used when the name does not occur verbatim.  With
    neither available the first URL wins.
    """
    candidates = _candidate_urls(context)
    if not candidates:
        return None
    position = _brand_offset(context, brand)
    if position is None:
        position = anchor
    if position is None:
        return candidates[0][1]
    return min(candidates, key=lambda candidate: abs(candidate[0] - position))[1]


def _brand_offset(context: str, brand: Optional[str]) -> Optional[int]:
    if not brand:
        return None
    haystack = context.casefold()
    for needle in (brand.casefold(), brand.casefold().replace(" ", "")):
        index = haystack.find(needle)
        if index >= 0:
            return index
    return None


def brand_from_context(window: str) -> Optional[str]:
    """Find a brand-like token in the text surrounding a discount code.

    Domains introduced by "visit", "go to" and similar are preferred over
    bare domains, which are preferred over "get X at".
    """
    candidates = _candidate_urls(window)
    introduced = [c for c in candidates if LEAD_IN_RE.search(window[max(0, c[0] - 12):c[0]])]
    for _, _, domain in introduced + candidates:
        brand = clean_brand_name(_registrable_label(domain))
        if brand:
            return brand
    match = GET_AT_RE.search(window)
    if match:
        return clean_brand_name(match.group(1))
    return None


# ---------------------------------------------------------------------------
# Detection
# ---------------------------------------------------------------------------

def _looks_like_code(token: str) -> bool:
    return token.isupper() or any(ch.isdigit() for ch in token)


def inline_hashtags(text: str) -> List[str]:
    return HASHTAG_RE.findall(text or "")


def is_sponsored(
    text: str,
    hashtags: Iterable[str] = (),
    *,
    sponsor_hashtags: Sequence[str] = INSTAGRAM.sponsor_hashtags,
    sponsor_phrases: Sequence[str] = INSTAGRAM.sponsor_phrases,
) -> bool:
    """True when the content carries any sponsorship indicator."""
    lowered = (text or "").casefold()
    if any(phrase in lowered for phrase in sponsor_phrases):
        return True
    tags = [tag.casefold().lstrip("#") for tag in hashtags] + [t.casefold() for t in inline_hashtags(text)]
    return any(marker in tag for tag in tags for marker in sponsor_hashtags)


def _first_mention(text: str) -> Optional[str]:
    match = MENTION_RE.search(text)
    return match.group(1) if match else None


def _captures(text: str) -> List[Tuple[int, str, str]]:
    """``(offset, span, raw brand)`` for each sponsor-phrase capture, in text order."""
    found = []
    for pattern in SPONSOR_CAPTURE_RES + (SPONSORING_RE,):
        for match in pattern.finditer(text):
            found.append((match.start(), match.group(0), match.group("brand")))
    found.sort(key=lambda capture: capture[0])
    return found


def _code_matches(text: str) -> List[Tuple[int, str, str, str]]:
    """``(offset, span, code, window)`` for each discount code."""
    found = []
    for match in CODE_RE.finditer(text):
        code = match.group(1)
        if not _looks_like_code(code):
            continue
        window = text[max(0, match.start() - CODE_CONTEXT): match.end() + CODE_CONTEXT]
        found.append((match.start(), match.group(0), code.upper(), window))
    return found


def _resolve(precedence: Sequence[str], sources: Dict[str, Callable[[], Optional[str]]]) -> Optional[str]:
    for name in precedence:
        brand = clean_brand_name(sources[name]())
        if brand:
            return brand
    return None


def detect_signals(
    text: str,
    hashtags: Iterable[str] = (),
    tagged_accounts: Iterable[str] = (),
    *,
    rules: PlatformRules = INSTAGRAM,
) -> List[SponsorshipSignal]:
    """Return every sponsorship signal found in one content item.

    Unsponsored content yields an empty list.  Each sponsor-phrase capture
    and each discount code becomes its own signal; when there are none, a
    single signal for the first matching hashtag or phrase indicator is
    returned so that ``@mentions`` and tagged accounts can still name the
    brand.
    """
    text = text or ""
    hashtags = list(hashtags)
    if not is_sponsored(
        text, hashtags, sponsor_hashtags=rules.sponsor_hashtags, sponsor_phrases=rules.sponsor_phrases
    ):
        return []

    tagged = [account for account in tagged_accounts if account]
    captures = _captures(text)
    codes = _code_matches(text)

    def mention() -> Optional[str]:
        return _first_mention(text)

    def first_tagged() -> Optional[str]:
        return tagged[0] if tagged else None

    def first_capture() -> Optional[str]:
        return captures[0][2] if captures else None

    def first_window() -> Optional[str]:
        return brand_from_context(codes[0][3]) if codes else None

    signals: List[SponsorshipSignal] = []
    for offset, span, raw in captures:
        kind = SignalKind.tagged_account if raw.startswith("@") else SignalKind.sponsor_phrase
        brand = _resolve(rules.brand_precedence, {
            MENTION: mention,
            TAGGED: first_tagged,
            PHRASE: lambda raw=raw: raw,
            CODE_WINDOW: first_window,
        })
        signals.append(SponsorshipSignal(
            kind=kind,
            span=span,
            brand=brand,
            sponsor_url=find_sponsor_url(text, brand, anchor=offset) if brand else None,
        ))

    for offset, span, code, window in codes:
        nearby = [raw for position, _, raw in captures if abs(position - offset) <= CODE_CONTEXT]
        brand = _resolve(rules.brand_precedence, {
            MENTION: mention,
            TAGGED: first_tagged,
            PHRASE: lambda nearby=nearby: nearby[0] if nearby else None,
            CODE_WINDOW: lambda window=window: brand_from_context(window),
        })
        signals.append(SponsorshipSignal(
            kind=SignalKind.discount_code,
            span=span,
            brand=brand,
            discount_code=code,
            sponsor_url=find_sponsor_url(window, brand, anchor=offset - max(0, offset - CODE_CONTEXT)),
        ))

    if not signals:
        indicator = _first_indicator(text, hashtags, rules)
        brand = _resolve(rules.brand_precedence, {
            MENTION: mention,
            TAGGED: first_tagged,
            PHRASE: first_capture,
            CODE_WINDOW: first_window,
        })
        signals.append(SponsorshipSignal(
            kind=indicator[0],
            span=indicator[1],
            brand=brand,
            sponsor_url=find_sponsor_url(text, brand) if brand else None,
        ))
    return signals


def _first_indicator(text: str, hashtags: Sequence[str], rules: PlatformRules) -> Tuple[SignalKind, str]:
    lowered = text.casefold()
    for phrase in rules.sponsor_phrases:
        if phrase in lowered:
            return SignalKind.sponsor_phrase, phrase
    for tag in list(hashtags) + inline_hashtags(text):
        folded = tag.casefold().lstrip("#")
        if any(marker in folded for marker in rules.sponsor_hashtags):
            return SignalKind.hashtag, "#" + tag.lstrip("#")
    return SignalKind.sponsor_phrase, ""
