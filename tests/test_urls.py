"""
GardenGuard - URL Analyzer Tests
================================

Tests for link extraction, authorization and the deceptive and
obfuscation heuristics.
"""

import pytest

from conftest import GUILD_ID, member, message
from src.services.scam_detection.urls import (
    contains_url_shortener,
    detect_url_obfuscation,
    extract_urls,
    find_url_shorteners,
    has_deceptive_url,
    has_unauthorized_url,
    is_allowed_url,
    is_media_only,
    unauthorized_domains,
)


# =============================================================================
# Extraction
# =============================================================================

class TestExtractUrls:
    """Tests for extract_urls."""

    def test_protocol_and_bare_domains(self):
        """Protocol URLs and bare domains are both found."""
        urls = extract_urls("see https://garden.finance/app and ghost.com")
        assert [(u.domain, u.path, u.has_protocol) for u in urls] == [
            ("garden.finance", "/app", True),
            ("ghost.com", "", False),
        ]

    def test_domain_inside_url_not_reported_twice(self):
        """The host of a protocol URL is not also reported as a bare domain."""
        assert len(extract_urls("https://evil.com/claim")) == 1

    def test_email_is_not_a_domain(self):
        """Addresses after @ are skipped."""
        assert extract_urls("mail bob@ghost.com") == []

    def test_protocol_only(self):
        """plain_pattern=None skips bare domains."""
        assert extract_urls("ghost.com", plain_pattern=None) == []


# =============================================================================
# Authorization
# =============================================================================

class TestIsAllowedUrl:
    """Tests for is_allowed_url."""

    def test_allowed_domain(self):
        """Allow-listed links pass."""
        assert is_allowed_url("https://garden.finance/swap", GUILD_ID)

    def test_internal_deep_link(self):
        """Links into this guild's channels pass."""
        assert is_allowed_url(f"https://discord.com/channels/{GUILD_ID}/5001/9", GUILD_ID)

    def test_other_guild_deep_link(self):
        """Links into another guild fail."""
        assert not is_allowed_url("https://discord.com/channels/2222/5001/9", GUILD_ID)

    def test_one_bad_link_fails_message(self):
        """A single disallowed link fails the whole message."""
        assert not is_allowed_url("https://garden.finance and https://evil.com", GUILD_ID)

    def test_bare_discord_domain_tolerated(self):
        """Bare discord.com mentions are judged elsewhere."""
        assert is_allowed_url("ask on discord.com", GUILD_ID)

    def test_no_links(self):
        """Plain text is allowed."""
        assert is_allowed_url("hello there", GUILD_ID)


class TestShorteners:
    """Tests for find_url_shorteners."""

    def test_with_protocol(self):
        """Protocol shortener links are found by host."""
        assert find_url_shorteners("go https://bit.ly/abc") == ["bit.ly"]

    def test_without_protocol(self):
        """Bare shortener links are found too."""
        assert find_url_shorteners("go bit.ly/abc now") == ["bit.ly"]

    def test_common_word_needs_path(self):
        """Everyday words that are also shortener labels do not count alone."""
        assert find_url_shorteners("this is great") == []
        assert find_url_shorteners("try is.gd/abc") == ["is.gd"]

    def test_allowed_lookalike(self):
        """x.com is not mistaken for the x.co shortener."""
        assert not contains_url_shortener("https://x.com/garden")


class TestMediaOnly:
    """Tests for is_media_only."""

    def test_sticker(self):
        """A sticker with no text is media only."""
        assert is_media_only(message("", sticker_count=1))

    def test_single_gif(self):
        """A lone gif embed is media only."""
        assert is_media_only(message("", embed_types=("gifv",)))

    def test_text(self):
        """Any text makes it a normal message."""
        assert not is_media_only(message("nice", sticker_count=1))


class TestUnauthorizedDomains:
    """Tests for the strict pre-classification link check."""

    def test_invite(self):
        """Foreign invites are unauthorized."""
        assert unauthorized_domains("join https://discord.gg/abc", GUILD_ID) == ["discord.gg"]

    def test_internal_link(self):
        """Deep links into this guild are authorized."""
        assert unauthorized_domains(f"https://discord.com/channels/{GUILD_ID}/1/2", GUILD_ID) == []

    def test_external_and_bare(self):
        """External hosts count with or without a protocol."""
        assert unauthorized_domains("https://evil.com", GUILD_ID) == ["evil.com"]
        assert unauthorized_domains("visit ghost.com", GUILD_ID) == ["ghost.com"]

    def test_allowed(self):
        """Allow-listed hosts are never reported."""
        assert unauthorized_domains("https://garden.finance", GUILD_ID) == []

    def test_shortener_reported_once(self):
        """A shortener is reported once even though it is also a URL."""
        assert unauthorized_domains("https://bit.ly/abc", GUILD_ID) == ["bit.ly"]

    def test_whitelisted_author_passes(self):
        """Whitelisted authors skip the check."""
        msg = message("https://evil.com", author=member())
        assert has_unauthorized_url(msg, GUILD_ID)
        assert not has_unauthorized_url(msg, GUILD_ID, whitelisted=True)

    def test_media_only_passes(self):
        """Sticker-only posts skip the check."""
        assert not has_unauthorized_url(message("", sticker_count=1), GUILD_ID)


# =============================================================================
# Deceptive Links
# =============================================================================

class TestDeceptiveUrl:
    """Tests for has_deceptive_url."""

    @pytest.mark.parametrize("text", [
        "https://dlscordnitro.com",
        "https://free-nitro-gift.com/claim",
        "https://bit.ly/abc",
        "https://evil.com/\u200bclaim",
    ])
    def test_deceptive(self, text):
        """Lookalike, hyphen-heavy, shortened and hidden-character links."""
        assert has_deceptive_url(text)

    def test_allowed_links_short_circuit(self):
        """Support words next to an allow-listed link alone are fine."""
        assert not has_deceptive_url("open a support ticket at https://garden.finance/help")

    def test_mixed_links_judge_the_rest(self):
        """An allow-listed link does not hide a bad one."""
        assert has_deceptive_url("https://garden.finance ticket https://evil.com")

    def test_plain_text(self):
        """No links, nothing deceptive."""
        assert not has_deceptive_url("hello")


# =============================================================================
# Obfuscation
# =============================================================================

class TestObfuscation:
    """Tests for detect_url_obfuscation."""

    def test_percent_encoding(self):
        """Percent-encoded bytes are flagged."""
        report = detect_url_obfuscation("https://evil.com/%68%74")
        assert report.url_encoding
        assert report.is_obfuscated

    def test_spaced_scheme(self):
        """A scheme split with spaces is flagged."""
        report = detect_url_obfuscation("h t t p s : / / evil.com")
        assert report.line_breaks_in_url
        assert report.broken_scheme

    def test_spaced_discord(self):
        """A spaced-out discord domain is flagged."""
        assert detect_url_obfuscation("d i s c o r d . g g/abc").obfuscated_discord

    def test_plain_invite_is_not_obfuscated(self):
        """An ordinary invite is not an obfuscation trick."""
        assert not detect_url_obfuscation("discord.gg/abc").is_obfuscated

    def test_excessive_line_breaks(self):
        """Many line breaks in a short message are flagged."""
        assert detect_url_obfuscation("a\nb\nc\nd\ne\nf\ng").excessive_line_breaks

    def test_allowed_links_short_circuit(self):
        """Encoded allow-listed links are not flagged."""
        assert detect_url_obfuscation("https://garden.finance/%20").flags == []

    def test_clean_text(self):
        """Ordinary chat has no flags."""
        assert not detect_url_obfuscation("Thanks for the update").is_obfuscated
