"""
Scam Detection Embeds
=====================

Renders report cards and security summaries as Discord embeds.
"""

import random
from datetime import datetime
from typing import List, Optional

import discord

from src.core.config import NY_TZ, EmbedColors
from src.core.constants import EMBED_FIELD_LIMIT

from .models import MemberSnapshot, ReportCard, ScamType
from .reporting import ReportSummary


FOOTER_TEXT = "GardenGuard Security"

CATEGORY_LABELS = {
    ScamType.URL_SHORTENERS: "URL Shorteners",
    ScamType.DISCORD_INVITES: "Discord Invites",
    ScamType.ENCODED_URLS: "Encoded URLs",
    ScamType.OTHER_SCAMS: "Other Scams",
}

MEDALS = ["🥇", "🥈", "🥉"]


def _truncate(text: str, limit: int = EMBED_FIELD_LIMIT) -> str:
    if len(text) <= limit:
        return text
    return text[: limit - 3] + "..."


def _date(value: Optional[datetime]) -> str:
    return value.strftime("%a %b %d %Y") if value else "Unknown"


def _roles(member: MemberSnapshot) -> str:
    return ", ".join(member.role_names) or "None"


# =============================================================================
# Report Cards
# =============================================================================

def build_report_embed(card: ReportCard) -> discord.Embed:
    """Render a moderator report card."""
    subject = card.subject

    if card.impersonator:
        embed = discord.Embed(
            title=card.title,
            description="User is impersonating a protected member!",
            color=EmbedColors.ALERT,
            timestamp=datetime.now(NY_TZ),
        )
        embed.add_field(
            name="Impersonator",
            value=f"**{subject.display_name}**\n@{subject.username}\n<@{subject.id}>",
            inline=True,
        )
        for name, value in card.extra_fields:
            embed.add_field(name=name, value=_truncate(value), inline=True)
        if subject.created_at:
            age_days = (datetime.now(NY_TZ) - subject.created_at).days
            embed.add_field(name="Account Age", value=f"{age_days} days", inline=True)
        joined = f"<t:{int(subject.joined_at.timestamp())}:R>" if subject.joined_at else "Unknown"
        embed.add_field(name="Joined Server", value=joined, inline=True)
        embed.set_footer(text=FOOTER_TEXT)
        return embed

    embed = discord.Embed(
        title=card.title,
        description="Planting a 🌱 instead.",
        color=EmbedColors.ALERT,
        timestamp=datetime.now(NY_TZ),
    )
    embed.add_field(name="Account Created", value=_date(subject.created_at), inline=True)
    embed.add_field(name="Joined Server", value=_date(subject.joined_at), inline=True)
    embed.add_field(name="Display Name", value=subject.display_name or "Unknown", inline=True)
    embed.add_field(
        name="Username",
        value=f"[{subject.username}](https://discord.com/users/{subject.id})",
        inline=True,
    )
    embed.add_field(name="Roles", value=_truncate(_roles(subject)), inline=True)
    embed.add_field(name="Channels Affected", value=str(card.channel_count), inline=True)
    embed.add_field(name="Spam Occurrences", value=str(card.spam_occurrences), inline=True)

    if card.detections:
        embed.add_field(name="Detection Details", value=_truncate("\n".join(card.detections)), inline=False)
    for name, value in card.extra_fields:
        embed.add_field(name=name, value=_truncate(value), inline=False)
    if card.offending_text:
        embed.add_field(name="Original Message", value=_truncate(card.offending_text), inline=False)

    embed.set_footer(text=FOOTER_TEXT)
    return embed


# =============================================================================
# Security Summary
# =============================================================================

def build_summary_embeds(summary: ReportSummary) -> List[discord.Embed]:
    """Render the periodic report and, when anyone banned, the leaderboard."""
    date_label = summary.generated_at.strftime("%Y-%m-%d")
    footer = f"{FOOTER_TEXT} - Report Interval: {summary.interval_description}"

    if summary.is_empty:
        embed = discord.Embed(
            title=f"📊 Security Report - {date_label}",
            description=f"No scam attempts intercepted in the last {summary.interval_description}! 🎉",
            color=EmbedColors.SUCCESS,
            timestamp=summary.generated_at,
        )
        embed.set_footer(text=footer)
        return [embed]

    embed = discord.Embed(
        title=f"📊 Security Report - {date_label}",
        description=(
            f"Total interceptions in the last {summary.interval_description}: "
            f"**{summary.intercept_count}**"
        ),
        color=EmbedColors.ALERT,
        timestamp=summary.generated_at,
    )
    for category, label in CATEGORY_LABELS.items():
        embed.add_field(name=label, value=str(summary.category_counts.get(category, 0)), inline=True)
    embed.add_field(name="Manual Reports", value=str(summary.manual_reports), inline=True)

    if summary.top_offenders:
        lines = []
        for index, (user_id, stats) in enumerate(summary.top_offenders, start=1):
            name = stats.display_name or "Unknown"
            handle = f"@{stats.username}" if stats.username else str(user_id)[:8] + "..."
            plural = "" if stats.count == 1 else "s"
            lines.append(
                f"{index}. **{name}** ([{handle}](https://discord.com/users/{user_id})): "
                f"{stats.count} violation{plural}"
            )
        embed.add_field(name="🚨 Top Offenders", value=_truncate("\n".join(lines)), inline=False)
    else:
        embed.add_field(name="🚨 Top Offenders", value="No repeat offenders.", inline=False)
    embed.set_footer(text=footer)

    embeds = [embed]
    if summary.admin_bans:
        embeds.append(_build_leaderboard_embed(summary, date_label, footer))
    return embeds


def _build_leaderboard_embed(summary: ReportSummary, date_label: str, footer: str) -> discord.Embed:
    period = summary.leaderboard_period
    embed = discord.Embed(
        title=f"🏆 {period} Ban Leaderboard - {date_label}",
        description=f"Top moderators keeping the server safe this {period.lower()} period!",
        color=EmbedColors.LEADERBOARD,
        timestamp=summary.generated_at,
    )

    _, top_stats = summary.admin_bans[0]
    if top_stats.avatar_url:
        embed.set_thumbnail(url=top_stats.avatar_url)

    lines = []
    for index, (_, stats) in enumerate(summary.admin_bans):
        medal = MEDALS[index] if index < len(MEDALS) else "🏅"
        plural = "" if stats.count == 1 else "s"
        lines.append(f"{medal} **{stats.display_name}**: {stats.count} ban{plural}")
    embed.add_field(name="Top Defenders", value=_truncate("\n".join(lines)), inline=False)

    name = top_stats.display_name
    congrats = random.choice([
        f"🎉 Congrats to **{name}** for keeping our community safe!",
        f"🛡️ **{name}** leading the charge against scammers!",
        f"🌟 Shoutout to **{name}** for their vigilance!",
    ])
    embed.add_field(name="🎊 MVP", value=congrats, inline=False)
    embed.set_footer(text=footer)
    return embed


__all__ = ["build_report_embed", "build_summary_embeds", "CATEGORY_LABELS"]
