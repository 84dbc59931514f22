"""
GardenGuard - Scam Detection Service Tests
==========================================

Tests for the message pipeline, member joins and the periodic jobs,
wired end to end against a mocked platform adapter.
"""

from datetime import timedelta
from unittest.mock import MagicMock

import pytest

from conftest import (
    BASE_ROLE_ID,
    EXCLUDED_CHANNEL_ID,
    GUILD_ID,
    MEMBER_ROLE_ID,
    NOW,
    REPORT_CHANNEL_ID,
    STAFF_ROLE_ID,
    member,
    mention,
    message,
)
from src.services.scam_detection import ScamDetectionService
from src.services.scam_detection.models import (
    Allow,
    EscalateKick,
    Impersonation,
    Quarantine,
    ReasonTag,
    UnauthorizedUrl,
)


# =============================================================================
# Fixtures
# =============================================================================

@pytest.fixture
def whitelist():
    store = MagicMock()
    store.is_whitelisted = MagicMock(return_value=False)
    store.__len__ = MagicMock(return_value=0)
    return store


@pytest.fixture
def service(platform, config, whitelist):
    return ScamDetectionService(platform, config, whitelist=whitelist)


# =============================================================================
# Early Filters
# =============================================================================

class TestFilters:
    """Messages dropped before any detector runs."""

    @pytest.mark.asyncio
    @pytest.mark.parametrize("overrides", [
        {"author": member(is_bot=True)},
        {"is_direct": True},
        {"is_system": True},
    ])
    async def test_ignored(self, service, platform, overrides):
        """Bots, DMs and system messages are ignored."""
        verdict = await service.handle_message(message("verify your wallet", **overrides))

        assert verdict == Allow(note="ignored")
        platform.delete_message.assert_not_awaited()

    @pytest.mark.asyncio
    @pytest.mark.parametrize("overrides", [
        {"channel_id": EXCLUDED_CHANNEL_ID},
        {"parent_channel_id": EXCLUDED_CHANNEL_ID},
        {"channel_name": "ticket-0042"},
        {"parent_channel_name": "ticket-0042"},
    ])
    async def test_excluded_channels(self, service, platform, overrides):
        """Excluded channels, their threads and name matches are skipped."""
        verdict = await service.handle_message(message("verify your wallet", **overrides))

        assert verdict == Allow(note="excluded channel")
        platform.delete_message.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_in_flight(self, service, platform):
        """A message already being handled is not handled twice."""
        msg = message("verify your wallet")

        async with service.in_flight.claim(msg.id):
            verdict = await service.handle_message(msg)

        assert verdict == Allow(note="in flight")
        assert len(service.in_flight) == 0

    @pytest.mark.asyncio
    async def test_whitelisted(self, service, platform, whitelist):
        """Whitelisted authors skip even the link check."""
        whitelist.is_whitelisted.return_value = True

        assert await service.handle_message(message("https://evil.com")) == Allow(note="whitelisted")
        platform.delete_message.assert_not_awaited()


# =============================================================================
# Report Channel
# =============================================================================

class TestManualReports:
    """Staff activity in the report channel."""

    @pytest.mark.asyncio
    async def test_staff_mention_opens_report(self, service, platform, staff):
        """Staff mentioning a user in the report channel files a manual report."""
        msg = message(
            "<@42> sent me a wallet drainer",
            author=staff,
            channel_id=REPORT_CHANNEL_ID,
            mentions=(mention(member(user_id=42)),),
        )

        assert await service.handle_message(msg) == Allow(note="manual report")
        platform.send_report.assert_awaited_once()
        assert service.aggregator.manual_reports == 1

    @pytest.mark.asyncio
    async def test_staff_chat(self, service, platform, staff):
        """Staff chatting without mentions is left alone."""
        msg = message("looking into it", author=staff, channel_id=REPORT_CHANNEL_ID)

        assert await service.handle_message(msg) == Allow(note="protected")
        platform.send_report.assert_not_awaited()


# =============================================================================
# Pipeline
# =============================================================================

class TestPipeline:
    """Link check, classification and execution."""

    @pytest.mark.asyncio
    async def test_unauthorized_link(self, service, platform):
        """Disallowed links are removed before classification."""
        verdict = await service.handle_message(message("grab it https://bit.ly/abc"))

        assert isinstance(verdict, UnauthorizedUrl)
        assert verdict.has_shortener
        assert verdict.domains == ("bit.ly",)
        platform.delete_message.assert_awaited_once()
        assert len(service.dedup) == 0

    @pytest.mark.asyncio
    async def test_scam_text_quarantined(self, service, platform):
        """Scam wording from a base member is quarantined and reported."""
        verdict = await service.handle_message(message("verify your wallet"), now=NOW)

        assert isinstance(verdict, Quarantine)
        assert ReasonTag.SCAM_PATTERN in verdict.reasons
        platform.delete_message.assert_awaited()
        platform.send_report.assert_awaited_once()
        assert service.ledger.get(42) is not None

    @pytest.mark.asyncio
    async def test_clean_message(self, service, platform):
        """Ordinary chat is allowed and nothing is touched."""
        verdict = await service.handle_message(message("gm! check https://garden.finance/blog"), now=NOW)

        assert verdict == Allow()
        platform.delete_message.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_missing_guild_context(self, service, platform):
        """Without guild context nothing is classified."""
        platform.get_guild_context.return_value = None
        assert await service.handle_message(message("verify your wallet")) == Allow(note="no guild context")

    @pytest.mark.asyncio
    async def test_suspect_kicked(self, service, platform):
        """A suspected member who keeps mentioning people is kicked on the fifth message."""
        author = member(roles=(BASE_ROLE_ID, MEMBER_ROLE_ID))
        service.ledger.record_quarantine(author.id, NOW - timedelta(minutes=1))

        verdicts = []
        for i in range(5):
            msg = message("hey", author=author, message_id=10 + i, mentions=(mention(member(user_id=100 + i)),))
            verdicts.append(await service.handle_message(msg, now=NOW + timedelta(seconds=30 * i)))

        assert verdicts[:4] == [Allow()] * 4
        assert isinstance(verdicts[4], EscalateKick)
        platform.kick_member.assert_awaited_once()
        assert platform.kick_member.call_args.args[:2] == (GUILD_ID, 42)


# =============================================================================
# Members & Jobs
# =============================================================================

class TestLifecycle:
    """Member joins, report actions and periodic jobs."""

    @pytest.mark.asyncio
    async def test_join_before_start(self, service):
        """Joins are ignored until the scanner exists."""
        assert await service.handle_member_join(member()) is None

    @pytest.mark.asyncio
    async def test_start_join_stop(self, service, platform):
        """After start, an impersonating join is reported."""
        admin = member(user_id=900002, username="gardenadmin", display_name="Admin Team", roles=(STAFF_ROLE_ID,))
        platform.list_protected_members.return_value = [(admin, "Moderator")]

        service.start(GUILD_ID)
        try:
            verdict = await service.handle_member_join(member(user_id=77, display_name="Adm1n Team"))
        finally:
            await service.stop()

        assert isinstance(verdict, Impersonation)
        assert verdict.matched.user_id == admin.id
        platform.send_report.assert_awaited()
        assert service.scanner.guild_id == GUILD_ID

    @pytest.mark.asyncio
    async def test_ban_without_guild(self, service, platform, staff):
        """Ban clicks fail cleanly when the guild is gone."""
        platform.get_guild_context.return_value = None
        assert await service.ban_user(GUILD_ID, 42, staff) == (False, "Server is unavailable.")

    @pytest.mark.asyncio
    async def test_purge_ledger(self, service):
        """Long-expired suspects are purged, active ones kept."""
        service.ledger.record_quarantine(1, NOW - timedelta(days=30))
        service.ledger.record_quarantine(2, NOW)

        assert await service.purge_ledger(NOW) == 1
        assert 2 in service.ledger

    @pytest.mark.asyncio
    async def test_report_not_due(self, service, platform):
        """A fresh service has no report due."""
        assert not await service.check_report()
        platform.send_summary.assert_not_awaited()
