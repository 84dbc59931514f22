"""
Scam Detection URL Analyzer
===========================

Decides whether the links in a message are authorized, deceptive,
shortened or obfuscated.

DESIGN:
    Allow-listed domains win over every heuristic. When a message carries
    protocol URLs and all of them are allow-listed, the deceptive and
    obfuscation checks report nothing. With a mix, each non-allow-listed
    URL is judged on its own text and the message-wide heuristics run on
    the content with the allow-listed URLs cut out, so a trusted link can
    neither hide nor trigger a bad one.
"""

import re
from dataclasses import dataclass, fields
from typing import List, Optional, Pattern, Tuple

from .constants import (
    DISCORD_DOMAINS,
    EXCESSIVE_LINE_BREAKS,
    SHORT_MESSAGE_LENGTH,
    URL_SHORTENERS,
)
from .models import MessageSnapshot
from .patterns import is_allowed_domain, is_url_shortener_domain, shortener_needs_path


# =============================================================================
# URL Extraction Patterns
# =============================================================================

URL_PATTERN: Pattern = re.compile(r"https?://([^/\s]+)(/[^\s]*)?", re.IGNORECASE)

# Bare domains such as "ghost.com"; lookbehind skips emails and subdomain tails
PLAIN_DOMAIN_PATTERN: Pattern = re.compile(
    r"(?<![.@\w])((?:\w+\.)+(?:com|org|net|io|finance|xyz|app|dev|info|co|gg|in|ca|us|uk|"
    r"edu|gov|biz|me|tv|ai|so|tech|store|shop|cloud|de|fr|jp|ru|cn|au|nl|se|br|it|es|eu|"
    r"nz|at|ch|pl|kr|za|crypto|eth|nft|dao|bitcoin|defi|chain|wallet))\b",
    re.IGNORECASE,
)

# Narrower TLD set for the pre-classification link check
UNAUTHORIZED_PLAIN_DOMAIN_PATTERN: Pattern = re.compile(
    r"(?<![.@\w])((?:\w+\.)+(?:com|org|network|ca|net|io|finance|xyz|app|dev|info|co|gg))\b",
    re.IGNORECASE,
)


# =============================================================================
# Deceptive URL Heuristics
# =============================================================================

HIDDEN_CHARS_PATTERN: Pattern = re.compile(
    r"https?://\S*[\u200B-\u200D\uFEFF\u2060\u180E]\S*", re.IGNORECASE
)
LOOKALIKE_DOMAIN_PATTERN: Pattern = re.compile(
    r"https?://(?:dlscord|d1scord|discorcl|discorb|discord\.(?!com|gg)|discordd|diamondhand|"
    r"gem-|airdr[o0]p-|nft-claim|crypto-|swap-|fomo-|claim-|web3-|dao-|seed-)\.?\w+",
    re.IGNORECASE,
)
SHORTENER_LINK_PATTERN: Pattern = re.compile(
    r"https?://(?:bit\.ly|tinyurl\.com|goo\.gl|t\.co|is\.gd|buff\.ly|ow\.ly|tr\.im|adf\.ly|"
    r"dub\.sh|cutt\.ly|soo\.gd|clck\.ru|qr\.ae|bc\.vc)(?:/|$|\s)",
    re.IGNORECASE,
)
IRREGULAR_INVITE_PATTERN: Pattern = re.compile(
    r"discord(?:\.gg|\.com/invite)/[a-zA-Z0-9]{8,}", re.IGNORECASE
)
SUSPICIOUS_DOMAIN_PATTERN: Pattern = re.compile(
    r"https?://(?:[a-z0-9-]+\.)*(?:claim|airdrop|fomo|diamond|hands|nft|crypto|web3|seed|free|reward)"
    r"[a-z0-9-]*\.[a-z]+",
    re.IGNORECASE,
)
HYPHENATED_DOMAIN_PATTERN: Pattern = re.compile(
    r"https?://[a-z0-9]+-[a-z0-9]+-[a-z0-9]+\.[a-z]+", re.IGNORECASE
)
TICKET_BEFORE_LINK_PATTERN: Pattern = re.compile(
    r"(?:ticket|support|help|query|assistance).*https?://", re.IGNORECASE
)
TICKET_IN_LINK_PATTERN: Pattern = re.compile(
    r"https?://.*(?:ticket|support|help|query|assistance)", re.IGNORECASE
)


# =============================================================================
# Obfuscation Heuristics
# =============================================================================

MARKDOWN_PATTERN: Pattern = re.compile(r"\*\*|__|\*|_|`|~~|>")
PERCENT_ENCODING_PATTERN: Pattern = re.compile(r"%[0-9A-Fa-f]{2}")
SPACED_SCHEME_PATTERN: Pattern = re.compile(
    r"h\s*t\s*t\s*p\s*s?\s*:\s*[/@\s]*[/@]", re.IGNORECASE
)
BARE_SCHEME_PATTERN: Pattern = re.compile(r"h\s*t\s*t\s*p\s*s?\s*:", re.IGNORECASE)
PROPER_SCHEME_PATTERN: Pattern = re.compile(r"https?://", re.IGNORECASE)
ALTERNATIVE_SLASHES_PATTERN: Pattern = re.compile(
    r"https?:\s*(?:[@#*\\]{2,}|/@|@/)", re.IGNORECASE
)
UNUSUAL_CHARS_PATTERN: Pattern = re.compile(
    r"https?://[^/\s]*[<>()\[\]{}\\|^`~]+[^/\s]*", re.IGNORECASE
)
SPACED_DISCORD_PATTERN: Pattern = re.compile(
    r"d\s*i\s*s\s*c\s*o\s*r\s*d\s*\.\s*(?:g\s*g|c\s*o\s*m)", re.IGNORECASE
)


# =============================================================================
# Extraction
# =============================================================================

@dataclass(frozen=True)
class ExtractedUrl:
    """One link found in message text."""
    domain: str
    path: str
    has_protocol: bool
    raw: str
    span: Tuple[int, int]

    @property
    def is_allowed(self) -> bool:
        return is_allowed_domain(self.domain)


def _inside(span: Tuple[int, int], spans: List[Tuple[int, int]]) -> bool:
    return any(start <= span[0] < end for start, end in spans)


def extract_urls(text: str, plain_pattern: Optional[Pattern] = PLAIN_DOMAIN_PATTERN) -> List[ExtractedUrl]:
    """
    Find protocol URLs and bare domain tokens.

    Bare domains that sit inside a protocol URL are not reported twice.
    Pass plain_pattern=None to get protocol URLs only.
    """
    if not text:
        return []

    urls: List[ExtractedUrl] = []
    for match in URL_PATTERN.finditer(text):
        urls.append(ExtractedUrl(
            domain=match.group(1).lower(),
            path=match.group(2) or "",
            has_protocol=True,
            raw=match.group(0),
            span=match.span(),
        ))

    if plain_pattern is None:
        return urls

    protocol_spans = [url.span for url in urls]
    for match in plain_pattern.finditer(text):
        if _inside(match.span(), protocol_spans):
            continue
        urls.append(ExtractedUrl(
            domain=match.group(1).lower(),
            path="",
            has_protocol=False,
            raw=match.group(1),
            span=match.span(),
        ))
    return urls


def _is_discord_domain(domain: str) -> bool:
    return domain in DISCORD_DOMAINS or domain.endswith(".discord.com")


def is_internal_link(url: ExtractedUrl, guild_id: int) -> bool:
    """True for discord.com/channels/<this guild>/... deep links."""
    if not (url.domain == "discord.com" or url.domain.endswith(".discord.com")):
        return False
    parts = url.path.split("/")
    if "channels" not in parts:
        return False
    index = parts.index("channels")
    return len(parts) > index + 1 and parts[index + 1] == str(guild_id)


def _without_allowed(text: str, urls: List[ExtractedUrl]) -> str:
    """Blank out allow-listed URLs, keeping everything else in place."""
    result = text
    for url in sorted((u for u in urls if u.is_allowed), key=lambda u: u.span[0], reverse=True):
        start, end = url.span
        result = result[:start] + " " + result[end:]
    return result


# =============================================================================
# Authorization
# =============================================================================

def is_allowed_url(text: str, guild_id: int) -> bool:
    """
    True when every link in the text is allow-listed or an internal deep link.

    A single disallowed link fails the whole message. Bare discord.com and
    discord.gg mentions are judged elsewhere and skipped here.
    """
    for url in extract_urls(text):
        if url.is_allowed:
            continue
        if url.has_protocol:
            if is_internal_link(url, guild_id):
                continue
            return False
        if url.domain in DISCORD_DOMAINS:
            continue
        return False
    return True


def find_url_shorteners(text: str) -> List[str]:
    """Return every shortener domain found, with or without a protocol."""
    if not text:
        return []

    found: List[str] = []
    for url in extract_urls(text, plain_pattern=None):
        if is_url_shortener_domain(url.domain) and url.domain not in found:
            found.append(url.domain)

    for shortener in URL_SHORTENERS:
        if shortener in found:
            continue
        escaped = re.escape(shortener)
        if shortener_needs_path(shortener):
            pattern = rf"(?:^|\s){escaped}/[^\s]+(?:\s|$)"
        else:
            pattern = rf"(?:^|\s){escaped}(?:/[^\s]+)?(?:\s|$)"
        if re.search(pattern, text, re.IGNORECASE):
            found.append(shortener)
    return found


def contains_url_shortener(text: str) -> bool:
    return bool(find_url_shorteners(text))


def is_media_only(message: MessageSnapshot) -> bool:
    """A sticker or a single gif with no text."""
    if (message.content or "").strip():
        return False
    if message.sticker_count > 0:
        return True
    return len(message.embed_types) == 1 and message.embed_types[0] == "gifv"


def unauthorized_domains(text: str, guild_id: int) -> List[str]:
    """
    Collect the domains that make a message fail the strict link check.

    Shorteners always count. Invite links count unless they point at this
    guild. Other discord.com links (support pages, channels) are tolerated.
    """
    domains = find_url_shorteners(text)

    for url in extract_urls(text, plain_pattern=UNAUTHORIZED_PLAIN_DOMAIN_PATTERN):
        if url.is_allowed or url.domain in domains:
            continue
        if url.has_protocol and _is_discord_domain(url.domain):
            if is_internal_link(url, guild_id):
                continue
            if url.domain == "discord.gg" or "/invite/" in url.path:
                domains.append(url.domain)
            continue
        if not url.has_protocol and url.domain in DISCORD_DOMAINS:
            continue
        domains.append(url.domain)
    return domains


def has_unauthorized_url(message: MessageSnapshot, guild_id: int, whitelisted: bool = False) -> bool:
    """Strict pre-classification check; whitelisted authors and media-only posts pass."""
    if whitelisted or is_media_only(message):
        return False
    return bool(unauthorized_domains(message.content or "", guild_id))


# =============================================================================
# Deceptive Links
# =============================================================================

def has_deceptive_url(text: str) -> bool:
    """
    Detect lookalike, hyphen-heavy, hidden-character, shortened and
    support-themed links.
    """
    if not text:
        return False

    urls = extract_urls(text, plain_pattern=None)
    if urls and all(url.is_allowed for url in urls):
        return False

    for url in urls:
        if url.is_allowed:
            continue
        if (
            HIDDEN_CHARS_PATTERN.search(url.raw)
            or LOOKALIKE_DOMAIN_PATTERN.search(url.raw)
            or SHORTENER_LINK_PATTERN.search(url.raw + " ")
            or SUSPICIOUS_DOMAIN_PATTERN.search(url.raw)
            or HYPHENATED_DOMAIN_PATTERN.search(url.raw)
        ):
            return True

    remaining = _without_allowed(text, urls)
    return bool(
        IRREGULAR_INVITE_PATTERN.search(remaining)
        or TICKET_BEFORE_LINK_PATTERN.search(remaining)
        or TICKET_IN_LINK_PATTERN.search(remaining)
    )


# =============================================================================
# Obfuscation
# =============================================================================

@dataclass(frozen=True)
class ObfuscationReport:
    """Which obfuscation tricks were found."""
    url_encoding: bool = False
    line_breaks_in_url: bool = False
    invisible_chars: bool = False
    unusual_chars: bool = False
    broken_scheme: bool = False
    alternative_slashes: bool = False
    obfuscated_discord: bool = False
    excessive_line_breaks: bool = False

    @property
    def is_obfuscated(self) -> bool:
        return any(getattr(self, f.name) for f in fields(self))

    @property
    def flags(self) -> List[str]:
        return [f.name for f in fields(self) if getattr(self, f.name)]


def _has_spaced_match(pattern: Pattern, text: str) -> bool:
    return any(re.search(r"\s", match.group(0)) for match in pattern.finditer(text))


def detect_url_obfuscation(text: str) -> ObfuscationReport:
    """Look for links that were encoded, split or decorated to dodge filters."""
    if not text:
        return ObfuscationReport()

    urls = extract_urls(text, plain_pattern=None)
    if urls and all(url.is_allowed for url in urls):
        return ObfuscationReport()

    clean = MARKDOWN_PATTERN.sub("", _without_allowed(text, urls))

    return ObfuscationReport(
        url_encoding=bool(PERCENT_ENCODING_PATTERN.search(clean)),
        line_breaks_in_url=_has_spaced_match(SPACED_SCHEME_PATTERN, clean),
        invisible_chars=bool(HIDDEN_CHARS_PATTERN.search(clean)),
        unusual_chars=bool(UNUSUAL_CHARS_PATTERN.search(clean)),
        broken_scheme=bool(BARE_SCHEME_PATTERN.search(clean)) and not PROPER_SCHEME_PATTERN.search(clean),
        alternative_slashes=bool(ALTERNATIVE_SLASHES_PATTERN.search(clean)),
        obfuscated_discord=_has_spaced_match(SPACED_DISCORD_PATTERN, clean),
        excessive_line_breaks=text.count("\n") > EXCESSIVE_LINE_BREAKS and len(text) < SHORT_MESSAGE_LENGTH,
    )


# =============================================================================
# Module Export
# =============================================================================

__all__ = [
    "ExtractedUrl",
    "ObfuscationReport",
    "extract_urls",
    "is_internal_link",
    "is_allowed_url",
    "find_url_shorteners",
    "contains_url_shortener",
    "is_media_only",
    "unauthorized_domains",
    "has_unauthorized_url",
    "has_deceptive_url",
    "detect_url_obfuscation",
]
