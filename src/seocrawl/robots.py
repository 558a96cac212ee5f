"""
robots.txt loading and longest-prefix rule resolution.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import List, Optional, Tuple

import requests

from seocrawl.fetcher import FetchError, fetch_page

logger = logging.getLogger(__name__)

ALLOW = "allow"
DISALLOW = "disallow"

# Cap on stored robots.txt content kept for reporting
CONTENT_PREVIEW_CHARS = 1000


@dataclass(frozen=True, slots=True)
class RobotsRule:
    type: str
    path: str


@dataclass(frozen=True, slots=True)
class RobotsRules:
    """Allow/disallow prefix rules for one user agent on one origin."""
    rules: Tuple[RobotsRule, ...] = ()
    content: Optional[str] = field(default=None, compare=False)

    @property
    def found(self) -> bool:
        return bool(self.content)

    def is_allowed(self, path: str) -> bool:
        """
        Resolve ``path`` against the rules; the longest matching prefix wins.

        On equal lengths the first rule in file order wins. No match means allowed.
        """
        best_type, best_len = ALLOW, 0
        for rule in self.rules:
            if path.startswith(rule.path) and len(rule.path) > best_len:
                best_type, best_len = rule.type, len(rule.path)
        return best_type == ALLOW


ALLOW_ALL = RobotsRules()


def _agent_applies(agent: str, user_agent: str) -> bool:
    if not agent:
        return False
    return agent == "*" or agent == user_agent or agent in user_agent


def parse_robots_txt(text: str, user_agent: str = "*") -> List[RobotsRule]:
    """
    Collect Allow/Disallow rules from every group that applies to ``user_agent``.

    Consecutive User-agent lines form one group; the group applies if any of
    its agents is "*", equals the user agent, or is a substring of it.
    """
    ua = user_agent.lower()
    rules: List[RobotsRule] = []
    capturing = False
    in_agent_lines = False

    for raw_line in text.splitlines():
        line = raw_line.split("#", 1)[0].strip()
        if not line or ":" not in line:
            continue

        key, value = line.split(":", 1)
        key = key.strip().lower()
        value = value.strip()

        if key == "user-agent":
            applies = _agent_applies(value.lower(), ua)
            capturing = (capturing or applies) if in_agent_lines else applies
            in_agent_lines = True
            continue

        in_agent_lines = False
        if not capturing or not value:
            continue

        if key == "disallow":
            rules.append(RobotsRule(DISALLOW, value))
        elif key == "allow":
            rules.append(RobotsRule(ALLOW, value))

    return rules


def load_robots(
    session: requests.Session,
    origin: str,
    user_agent: str,
    timeout_s: float,
) -> RobotsRules:
    """Fetch ``{origin}/robots.txt``; any failure yields allow-all rules."""
    robots_url = f"{origin}/robots.txt"
    try:
        page = fetch_page(session, robots_url, user_agent, timeout_s, read_any=True)
    except FetchError as e:
        logger.info("robots.txt unavailable at %s (%s); allowing all", robots_url, e.message)
        return ALLOW_ALL

    if not page.ok:
        logger.info("No robots.txt at %s (status %s)", robots_url, page.status_code)
        return ALLOW_ALL

    rules = parse_robots_txt(page.text, user_agent)
    logger.info("Loaded robots.txt from %s (%d applicable rules)", robots_url, len(rules))
    return RobotsRules(rules=tuple(rules), content=page.text[:CONTENT_PREVIEW_CHARS])
