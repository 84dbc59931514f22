"""
GardenGuard - Impersonation Scanner Tests
=========================================

Tests for name normalization, similarity scoring and the join and
sweep checks.
"""

from datetime import timedelta
from unittest.mock import AsyncMock, MagicMock, patch

import pytest

from conftest import BASE_ROLE_ID, GUILD_ID, NOW, STAFF_ROLE_ID, member
from src.services.scam_detection.impersonation import ImpersonationScanner, normalize, similarity
from src.services.scam_detection.models import Impersonation


# =============================================================================
# Fixtures
# =============================================================================

@pytest.fixture
def admin():
    return member(user_id=900002, username="admin.team", display_name="Admin Team", roles=(STAFF_ROLE_ID,))


@pytest.fixture
def orchestrator():
    """Orchestrator stand-in recording executed verdicts."""
    orch = MagicMock()
    orch.execute = AsyncMock()
    orch.post_scan_summary = AsyncMock(return_value=True)
    return orch


@pytest.fixture
def scanner(platform, orchestrator, admin):
    platform.list_protected_members.return_value = [(admin, "Moderator")]
    return ImpersonationScanner(platform, orchestrator, GUILD_ID, protected_role_ids={STAFF_ROLE_ID})


def impostor(**kwargs):
    kwargs.setdefault("user_id", 77)
    kwargs.setdefault("username", "fresh_account")
    kwargs.setdefault("joined_at", NOW - timedelta(minutes=3))
    return member(**kwargs)


# =============================================================================
# Normalization & Scoring
# =============================================================================

class TestNormalize:
    """Tests for normalize."""

    def test_leet_and_separators(self):
        """Leet digits and separators collapse to the same form."""
        assert normalize("Adm1n_Team") == normalize("AdminTeam") == "adminteam"

    def test_whitespace_and_dots(self):
        """Spaces, dots and dashes are dropped."""
        assert normalize(" Garden.Mod - 5 ") == "gardenmods"

    def test_empty(self):
        """Missing names normalize to an empty string."""
        assert normalize(None) == ""
        assert normalize("") == ""


class TestSimilarity:
    """Tests for similarity."""

    def test_identical(self):
        assert similarity("adminteam", "adminteam") == 1.0

    def test_leet_variant_scores_high(self):
        """Leet variants of a name reach the impersonation threshold."""
        assert similarity(normalize("Adm1n_Team"), normalize("AdminTeam")) >= 0.95

    def test_containment(self):
        """Containment scores the length ratio."""
        assert similarity("admin", "adminteam") == pytest.approx(5 / 9)

    def test_positional(self):
        """Otherwise the share of matching positions is used."""
        assert similarity("abcd", "abxd") == 0.75

    def test_empty_never_matches(self):
        """Empty names never look like anyone."""
        assert similarity("", "admin") == 0.0
        assert similarity("", "") == 0.0


# =============================================================================
# Protected Cache
# =============================================================================

class TestProtectedCache:
    """Tests for the protected identity cache."""

    @pytest.mark.asyncio
    async def test_refresh(self, scanner, platform, admin):
        """Bots and duplicate entries are skipped."""
        bot = member(user_id=3, username="helper", roles=(STAFF_ROLE_ID,), is_bot=True)
        platform.list_protected_members.return_value = [(admin, "Moderator"), (admin, "Admin"), (bot, "Bots")]

        assert await scanner.refresh_cache(NOW) == 1
        identity = scanner.cache[admin.id]
        assert identity.display_name_normalized == "adminteam"
        assert identity.role_name == "Moderator"
        platform.list_protected_members.assert_awaited_once_with(GUILD_ID, [STAFF_ROLE_ID])

    @pytest.mark.asyncio
    async def test_needs_refresh(self, scanner):
        """The cache expires after the refresh interval."""
        assert scanner.needs_refresh(NOW)
        await scanner.refresh_cache(NOW)
        assert not scanner.needs_refresh(NOW + timedelta(hours=11))
        assert scanner.needs_refresh(NOW + timedelta(hours=12))


# =============================================================================
# Join Check
# =============================================================================

class TestCheckMember:
    """Tests for check_member."""

    @pytest.mark.asyncio
    async def test_new_member_copying_staff_name(self, scanner, orchestrator, admin):
        """A fresh base member named like a moderator is an impersonator."""
        candidate = impostor(display_name="Adm1n_Team", roles=(BASE_ROLE_ID,))

        verdict = await scanner.check_member(candidate, NOW)

        assert isinstance(verdict, Impersonation)
        assert verdict.similarity == 1.0
        assert verdict.matched.user_id == admin.id
        orchestrator.execute.assert_awaited_once_with(verdict)

    @pytest.mark.asyncio
    async def test_username_match(self, scanner):
        """Usernames are compared too."""
        verdict = await scanner.check_member(impostor(username="admin_team", display_name="Someone"), NOW)
        assert verdict is not None

    @pytest.mark.asyncio
    async def test_different_name(self, scanner, orchestrator):
        """Unrelated names raise nothing."""
        assert await scanner.check_member(impostor(display_name="Gardener"), NOW) is None
        orchestrator.execute.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_protected_members_skipped(self, scanner):
        """Staff sharing a name with each other are not impersonators."""
        other_mod = impostor(display_name="Admin Team", roles=(STAFF_ROLE_ID,))
        assert await scanner.check_member(other_mod, NOW) is None

    @pytest.mark.asyncio
    async def test_self_match_skipped(self, scanner, admin):
        """A protected member never matches their own cache entry."""
        await scanner.refresh_cache(NOW)
        assert scanner.find_match(member(user_id=admin.id, display_name="Admin Team")) is None

    @pytest.mark.asyncio
    async def test_threshold(self, platform, orchestrator, admin):
        """A lower threshold accepts near matches."""
        platform.list_protected_members.return_value = [(admin, "Moderator")]
        loose = ImpersonationScanner(platform, orchestrator, GUILD_ID, {STAFF_ROLE_ID}, threshold=0.8)

        assert await loose.check_member(impostor(display_name="Admin Tean"), NOW) is not None


# =============================================================================
# Full Sweep
# =============================================================================

class TestFullScan:
    """Tests for full_scan."""

    @pytest.mark.asyncio
    async def test_alerts_once_per_name(self, scanner, platform, orchestrator):
        """An unchanged impersonator is reported by the first sweep only."""
        platform.list_members.return_value = [
            impostor(user_id=77, display_name="Admin Team"),
            impostor(user_id=78, display_name="AdminTeam"),
            member(user_id=79, display_name="Gardener"),
        ]

        with patch("src.services.scam_detection.impersonation.asyncio.sleep", new=AsyncMock()) as sleep:
            first = await scanner.full_scan(NOW)
            second = await scanner.full_scan(NOW)

        assert [v.candidate.id for v in first] == [77, 78]
        assert second == []
        assert orchestrator.execute.await_count == 2
        sleep.assert_awaited_once()

        orchestrator.post_scan_summary.assert_awaited_once_with(2)

    @pytest.mark.asyncio
    async def test_renamed_impersonator_alerts_again(self, scanner, platform, orchestrator):
        """A new name on an already-reported member is reported again."""
        platform.list_members.return_value = [impostor(display_name="Admin Team")]
        await scanner.full_scan(NOW)

        platform.list_members.return_value = [impostor(display_name="Someone", username="admin_team")]
        assert len(await scanner.full_scan(NOW)) == 1

    @pytest.mark.asyncio
    async def test_quiet_when_clean(self, scanner, platform, orchestrator):
        """No summary is posted when nothing is found."""
        platform.list_members.return_value = [member(display_name="Gardener")]

        assert await scanner.full_scan(NOW) == []
        orchestrator.post_scan_summary.assert_not_awaited()
