"""
Scam Detection Constants
========================

Thresholds, windows and domain lists for scam detection and escalation.
"""

from typing import FrozenSet, Tuple


# =============================================================================
# Suspicion Ledger
# =============================================================================

SUSPICION_WINDOW = 60 * 60  # seconds added per quarantine
MAX_MENTIONS = 4  # kick when mention count goes above this
MENTION_COOLDOWN = 10 * 60  # seconds since last mention before the count resets
MAX_SPAM_OCCURRENCES = 7  # kick at this many quarantines


# =============================================================================
# Multi-Channel Dedup
# =============================================================================

FLOOD_CHANNEL_THRESHOLD = 2  # more distinct channels than this = flood
SIGHTING_TTL = 60 * 60  # seconds a channel sighting is remembered


# =============================================================================
# Classification
# =============================================================================

RECENT_JOIN_WINDOW = 10 * 60  # seconds since join that count as "just joined"
PROCESSING_TIMEOUT = 30  # seconds before an in-flight claim is considered stale
OFFICIAL_INVITE_MARKER = "garden.finance"


# =============================================================================
# Obfuscation Heuristics
# =============================================================================

EXCESSIVE_LINE_BREAKS = 5
SHORT_MESSAGE_LENGTH = 200


# =============================================================================
# Impersonation
# =============================================================================

IMPERSONATION_THRESHOLD = 0.95


# =============================================================================
# Allowed Domains
# =============================================================================

# A domain is allowed when it equals an entry or is a subdomain of one.
ALLOWED_DOMAINS: FrozenSet[str] = frozenset({
    # Project
    "garden.finance",
    "dune.com",
    # Social
    "x.com",
    # GIF platforms
    "tenor.com",
    "giphy.com",
    "gfycat.com",
    "media.giphy.com",
    "media.tenor.com",
    # Discord CDN
    "media.discordapp.net",
    "cdn.discordapp.com",
    "images-ext-1.discordapp.net",
    "images-ext-2.discordapp.net",
    # Music
    "soundcloud.com",
    "i.scdn.co",
    "p.scdn.co",
    "spotify.com",
    # Video
    "youtube.com",
    "youtu.be",
    "www.youtube.com",
    "youtube-nocookie.com",
    "m.youtube.com",
})


# =============================================================================
# URL Shorteners
# =============================================================================

URL_SHORTENERS: Tuple[str, ...] = (
    "bit.ly", "tinyurl.com", "goo.gl", "t.co", "is.gd", "buff.ly", "ow.ly",
    "tr.im", "dsc.gg", "adf.ly", "tiny.cc", "shorten.me", "clck.ru", "cutt.ly",
    "rebrand.ly", "short.io", "bl.ink", "snip.ly", "lnk.to", "hive.am",
    "shor.by", "bc.vc", "v.gd", "qps.ru", "spoo.me", "x.co", "yourls.org",
    "shorturl.at", "tny.im", "u.to", "url.ie", "shrturi.com", "s.id",
    "tr.ee", "kutt.it", "dub.sh", "soo.gd", "qr.ae", "tothe.link",
    "san.aq", "kurzelinks.de", "lstu.fr", "bitly.pk",
)

# Shorteners whose first label is an everyday word only count with a path.
COMMON_WORD_LABELS: FrozenSet[str] = frozenset({"to", "is", "us", "id"})


# =============================================================================
# Discord Domains
# =============================================================================

DISCORD_DOMAINS: FrozenSet[str] = frozenset({"discord.com", "discord.gg"})
