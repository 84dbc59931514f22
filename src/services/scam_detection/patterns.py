"""
Scam Detection Pattern Library
==============================

Compiled regular expressions and domain matchers. Pure data and pure
functions: nothing here holds state or touches the network.

Rules are declared as ordered (pattern, rule_id) pairs and evaluated in a
single pass, so adding a rule never means touching control flow.
"""

import re
from typing import List, Pattern, Tuple

from .constants import ALLOWED_DOMAINS, COMMON_WORD_LABELS, URL_SHORTENERS


Rule = Tuple[Pattern, str]


def _rule(pattern: str, rule_id: str, flags: int = re.IGNORECASE) -> Rule:
    return re.compile(pattern, flags), rule_id


# =============================================================================
# Scam Content Rules
# =============================================================================

SCAM_PATTERNS: List[Rule] = [
    # Fake support / ticket lures
    _rule(r"refer to the admin", "refer_to_admin"),
    _rule(r"\[OPEN-TICKET\]", "open_ticket_tag"),
    _rule(r"(?:SUBMIT|CREATE|OPEN)[\s-]*(?:(?:YOUR|A)\s+)?(?:QUERY|TICKET)", "submit_query"),
    _rule(r"to complain to team", "complain_to_team"),
    _rule(r"dsc\.gg/", "dsc_gg_link"),
    _rule(r"discord\.gg/[a-zA-Z0-9]+\s*@", "invite_with_mention"),
    _rule(r"https?://.*\s*@[a-zA-Z0-9]+", "url_with_mention"),
    _rule(r"server representative", "server_representative"),
    _rule(r"support representative", "support_representative"),
    _rule(r"create a ticket .* https://discord\.com/invite/", "ticket_invite"),
    _rule(r"create a ticket .* https://discord\.gg/", "ticket_invite_short"),
    _rule(r"\b(?:reach out to|contact) .* (?:live support|support desk)\b", "live_support"),
    _rule(r"\b(?:support_ticket|support ticket|ticket).+(?:discord\.gg|discord\.com/invite)", "ticket_then_invite"),
    _rule(r"\b(?:for all|for prompt|for any|for) (?:faq|questions|assistance|help|support).+(?:discord\.gg|discord\.com/invite)", "faq_then_invite"),
    _rule(r"(?:discord\.gg|discord\.com/invite).+(?:\[#[^\]]+\]|\(>\s*https)", "invite_with_channel_link"),
    _rule(r"create-?t!?cket.*https", "create_ticket_link"),
    _rule(r"check my ticket.*(?:https|discord\.com/invite)", "check_my_ticket"),
    _rule(r"submit query.*https", "submit_query_link"),
    _rule(r"request(?:_| )(?:support|assistance).*(?:https|discord\.com/invite)", "request_support"),
    _rule(r"(?:support|ticket|assistance).*discord\.com/invite", "support_invite"),
    _rule(r"discord\.com/invite/.*(?:submit|query|support|ticket)", "invite_then_support"),
    _rule(r"create.*ticket.*(?:https|discord\.gg)", "create_ticket_invite"),
    _rule(r"\b(?:dm|message|contact)\s+(?:me|us|admin|support)\s+(?:for|about|regarding)\s+(?:help|support|assistance|ticket)", "dm_for_support"),
    # Airdrop / giveaway lures
    _rule(r"airdrop is live now", "airdrop_live"),
    _rule(r"collaborated with opensea", "opensea_collab"),
    _rule(r"claim as soon as possible", "claim_asap"),
    _rule(r"this is an automatically generated announcement message", "fake_announcement"),
    _rule(r"JUICE AIR-DROP", "juice_airdrop"),
    _rule(r"live NOW", "live_now"),
    _rule(r"juice-foundation.org", "juice_foundation"),
    _rule(r"Get your free tokens", "free_tokens"),
    _rule(r"unclaimed airdrop.*https", "unclaimed_airdrop"),
    _rule(r"paper handed.*(?:claim|airdrop).*https", "paper_handed"),
    _rule(r"fomo-diamondhands", "fomo_diamondhands"),
    _rule(r"(?:👆|👇|👉).*https", "pointing_link"),
    _rule(r"https.*(?:👆|👇|👉)", "link_pointing"),
    # Get-rich-quick / job scams
    _rule(r"earn \$?\d+k or more within \d+ hours", "earn_within_hours"),
    _rule(r"you will pay me \d+% of your profit", "profit_share"),
    _rule(r"(only interested people should apply|drop a message|let's get started by asking)", "apply_now"),
    _rule(r"WhatsApp \+\d{1,3} \d{4,}", "whatsapp_number"),
    _rule(r"how to earn|how to make money|make \$\d+k", "how_to_earn"),
    _rule(r"I’ll teach \d+ people to earn", "teach_people_to_earn"),
    _rule(r"(?:[А-Яа-яЁё]|а|о|е|р|с|у|х|в|м){3,}", "cyrillic_homoglyphs"),
    _rule(r"\b(?:looking|hiring|seeking|need)\s+(?:for\s+)?(?:employees|staff|team members|workers)\b", "hiring"),
    _rule(r"(?:\$\d+(?:[-+]?\d+)?/(?:hour|hr|week|month|day)|(?:\d+[-+]?\d+)?\s*(?:USD|EUR)/(?:hour|hr|week|month|day))", "pay_rate"),
    _rule(r"(?:no|without)\s+(?:exp(?:erience)?|quals?|qualifications?)\s+(?:req(?:uired)?|needed)", "no_experience"),
    _rule(r"(?:reach|contact|message|dm)\s+(?:me|us|admin)\s+(?:via|through|by|using)\s+(?:dm|pm|telegram|discord|email)", "contact_off_platform"),
    _rule(r"send\s+(?:me|us)?\s+(?:a\s+)?friend\s+req(?:uest)?", "friend_request"),
    _rule(r"\b(?:dev(?:eloper)?s?|testers?|analysts?|writers?|moderators?|designers?)\s+(?:\$\d+[-+]?\d*[kK]?\+?\s*/\s*(?:week|month|year)|needed)", "roles_needed"),
    _rule(r"platform\s+(?:looking|hiring|searching|seeking)\s+for", "platform_hiring"),
    _rule(r"\b(?:AI|ML|DeFi|Crypto|NFT|Web3)\s+(?:platform|project|company)\s+(?:hiring|recruiting|looking)", "project_hiring"),
    # Developer self-promotion spam
    _rule(r"(?:developer|dev|engineer|programmer)\s+(?:who|with)\s+(?:enjoys|experience|expertise)", "developer_pitch"),
    _rule(r"(?:blockchain|web3|defi|smart contract|solidity|rust)\s+(?:developer|dev|engineer)", "web3_developer"),
    _rule(r"(?:full[\s-]?stack|fullstack).*(?:blockchain|web3)", "fullstack_web3"),
    _rule(r"(?:frontend|backend|full[\s-]?stack).*(?:react|vue|angular|node|django|express)", "stack_pitch"),
    _rule(r"(?:specializ(?:e|ing)|focus(?:ed|ing)|experience)\s+in\s+(?:building|developing|creating)", "specialize_in"),
    _rule(r"if\s+you(?:'re|\s+are)\s+(?:working on|interested in|looking for).*(?:ambitious|developer|development|team)", "if_you_are_looking"),
    _rule(r"(?:toolkit|skill(?:s|set)|tech stack|main skill).*(?:solidity|rust|web3|blockchain)", "tech_stack"),
    _rule(r"(?:8|5|10)\+?\s*years?\s+(?:of\s+)?experience", "years_experience"),
    _rule(r"please\s+(?:feel\s+free\s+to\s+)?contact\s+me", "contact_me"),
    _rule(r"(?:open\s+to|available\s+for|looking\s+for).*(?:collaboration|projects|opportunities|joining)", "open_to_work"),
    # Wallet phishing
    _rule(r"(?:verify|validate|sync|connect)\s+(?:your\s+)?wallet", "verify_wallet"),
    _rule(r"wallet\s+(?:verification|validation|sync|connection)\s+(?:required|needed)", "wallet_required"),
    _rule(r"your\s+account\s+(?:has\s+been\s+)?(?:flagged|suspended|locked|compromised)", "account_flagged"),
    _rule(r"recovery\s+tool", "recovery_tool"),
    _rule(r"claim\s+(?:your\s+)?(?:unclaimed\s+)?(?:rewards?|airdrop|tokens?)\s+here", "claim_here"),
]

SCAM_DISPLAY_NAME_PATTERNS: List[Rule] = [
    _rule(r"announcement", "announcement_name"),
    _rule(r"📢", "megaphone_name", 0),
    _rule(r"^PENDLE$", "pendle_name"),
]


# =============================================================================
# Targeted Scam Signals
# =============================================================================

SUPPORT_TERMS_PATTERN: Pattern = re.compile(
    r"\b(?:support|ticket|assistance|help desk|live support|faq|questions)\b", re.IGNORECASE
)
DM_REQUEST_PATTERN: Pattern = re.compile(
    r"\b(?:dm|message|reach out|contact)\s+(?:me|us|support|team)\b", re.IGNORECASE
)
ANY_INVITE_PATTERN: Pattern = re.compile(r"(?:discord\.gg|discord\.com/invite)", re.IGNORECASE)
DSC_GG_PATTERN: Pattern = re.compile(r"dsc\.gg/", re.IGNORECASE)

# Invite links, including ones split with dots, spaces or backslashes
DISCORD_INVITE_PATTERNS: List[Pattern] = [
    re.compile(r"discord\.gg[\\/]", re.IGNORECASE),
    re.compile(r"discord\.com/invite[\\/]", re.IGNORECASE),
    re.compile(r"discord[.\s]*(?:gg|com[.\s]*[\\/][.\s]*invite)[\\/:]", re.IGNORECASE),
]
STRICT_INVITE_PATTERN: Pattern = re.compile(r"discord\.gg[\\/]|discord\.com/invite[\\/]", re.IGNORECASE)

MENTION_MARKUP_PATTERN: Pattern = re.compile(r"<@!?\d+>")


# =============================================================================
# Matchers
# =============================================================================

def _matching_ids(rules: List[Rule], text: str) -> List[str]:
    return [rule_id for pattern, rule_id in rules if pattern.search(text)]


def match_scam_patterns(text: str) -> List[str]:
    """Return the ids of every scam rule that matches the text, in rule order."""
    if not text:
        return []
    return _matching_ids(SCAM_PATTERNS, text)


def match_scam_display_name(name: str) -> List[str]:
    """Return the ids of every scam display-name rule that matches."""
    if not name:
        return []
    return _matching_ids(SCAM_DISPLAY_NAME_PATTERNS, name)


def _domain_in(domain: str, candidates) -> bool:
    domain = (domain or "").lower().strip()
    if not domain:
        return False
    return any(domain == entry or domain.endswith("." + entry) for entry in candidates)


def is_allowed_domain(domain: str) -> bool:
    """True when the domain is, or is a subdomain of, an allow-listed domain."""
    return _domain_in(domain, ALLOWED_DOMAINS)


def is_url_shortener_domain(domain: str) -> bool:
    """True when the domain is, or is a subdomain of, a known URL shortener."""
    return _domain_in(domain, URL_SHORTENERS)


def has_discord_invite(text: str) -> bool:
    """Detect invite links, including dotted or spaced-out variants."""
    return any(pattern.search(text) for pattern in DISCORD_INVITE_PATTERNS)


def shortener_needs_path(shortener: str) -> bool:
    """Shorteners like "to" or "is" only count when followed by a path."""
    return shortener.split(".")[0] in COMMON_WORD_LABELS


def strip_mentions(text: str) -> str:
    return MENTION_MARKUP_PATTERN.sub("", text or "").strip()


# =============================================================================
# Module Export
# =============================================================================

__all__ = [
    "SCAM_PATTERNS",
    "SCAM_DISPLAY_NAME_PATTERNS",
    "SUPPORT_TERMS_PATTERN",
    "DM_REQUEST_PATTERN",
    "ANY_INVITE_PATTERN",
    "DSC_GG_PATTERN",
    "DISCORD_INVITE_PATTERNS",
    "STRICT_INVITE_PATTERN",
    "match_scam_patterns",
    "match_scam_display_name",
    "is_allowed_domain",
    "is_url_shortener_domain",
    "has_discord_invite",
    "shortener_needs_path",
    "strip_mentions",
]
