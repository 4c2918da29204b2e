"""
AdminWorkBench feature flag.

Decides, per user, whether the new dashboard UI replaces the legacy executive
dashboard. Inputs come from the environment on every call (nothing is cached):

- ADMIN_WORKBENCH_ENABLED: global switch, only the exact string "true" enables it
- ADMIN_WORKBENCH_ROLLOUT_PERCENTAGE: 0-100, canary by stable user id hash
- ADMIN_WORKBENCH_TARGET_USERS: "all", "beta", "admins", a role or a comma-separated role list
- ADMIN_WORKBENCH_BETA_TESTERS: comma-separated user ids

A non-empty beta tester list is the sole determinant once the role gate has
passed: listed users get the feature and everyone else does not, whatever the
percentage gate said.
"""
from __future__ import annotations

import logging
import struct
from dataclasses import dataclass, field
from typing import Union

from app.portal.env import EnvironmentReader

logger = logging.getLogger(__name__)

ENABLED_KEY = "ADMIN_WORKBENCH_ENABLED"
ROLLOUT_PERCENTAGE_KEY = "ADMIN_WORKBENCH_ROLLOUT_PERCENTAGE"
TARGET_USERS_KEY = "ADMIN_WORKBENCH_TARGET_USERS"
BETA_TESTERS_KEY = "ADMIN_WORKBENCH_BETA_TESTERS"

DESCRIPTION = "New AdminWorkBench UI for user management dashboard"


@dataclass(frozen=True)
class AllUsers:
    def as_roles(self) -> tuple[str, ...] | None:
        return None

    def __str__(self) -> str:
        return "all"


@dataclass(frozen=True)
class BetaUsers:
    def as_roles(self) -> tuple[str, ...] | None:
        # No role is named "beta", so any caller that supplies a role is excluded.
        return ("beta",)

    def __str__(self) -> str:
        return "beta"


@dataclass(frozen=True)
class RoleList:
    roles: tuple[str, ...]

    def as_roles(self) -> tuple[str, ...] | None:
        return self.roles

    def __str__(self) -> str:
        return ",".join(self.roles)


TargetUsers = Union[AllUsers, BetaUsers, RoleList]


@dataclass(frozen=True)
class FeatureFlagConfig:
    enabled_globally: bool
    rollout_percentage: int
    target_users: TargetUsers
    beta_testers: tuple[str, ...] = field(default_factory=tuple)
    description: str = DESCRIPTION

    def to_dict(self) -> dict:
        return {
            "enabled": self.enabled_globally,
            "rollout_percentage": self.rollout_percentage,
            "target_users": str(self.target_users),
            "beta_testers": list(self.beta_testers),
            "description": self.description,
        }


@dataclass(frozen=True)
class RolloutVerdict:
    global_enabled: bool
    user_enabled: bool

    @property
    def enabled(self) -> bool:
        return self.global_enabled and self.user_enabled


def hash_user_id(user_id: str) -> int:
    """Stable bucket in [0, 100) for a user id (32-bit signed rolling hash over UTF-16 code units)."""
    raw = user_id.encode("utf-16-le", "surrogatepass")
    h = 0
    for unit in struct.unpack(f"<{len(raw) // 2}H", raw):
        h = (h * 31 + unit) & 0xFFFFFFFF
    if h >= 0x80000000:
        h -= 0x100000000
    return abs(h) % 100


def parse_target_users(raw: str) -> TargetUsers:
    value = (raw or "").strip()
    keyword = value.lower()
    if keyword in ("", "all"):
        return AllUsers()
    if keyword == "beta":
        return BetaUsers()
    if keyword == "admins":
        return RoleList(("ADMIN",))
    roles = tuple(r.strip().upper() for r in value.split(",") if r.strip())
    return RoleList(roles) if roles else AllUsers()


def parse_beta_testers(raw: str) -> tuple[str, ...]:
    if not raw:
        return ()
    return tuple(uid.strip() for uid in raw.split(",") if uid.strip())


def parse_rollout_percentage(raw: str) -> int:
    try:
        pct = int((raw or "").strip())
    except ValueError:
        logger.warning("Invalid %s=%r; treating as 100", ROLLOUT_PERCENTAGE_KEY, raw)
        return 100
    return max(0, min(100, pct))


def rollout_config_problems(reader: EnvironmentReader | None = None) -> list[str]:
    """
    Settings that parse, but not into what the operator most likely meant.

    At request time these fall back silently (a malformed percentage opens the
    feature to everyone), so the start script refuses to boot on them instead.
    """
    reader = reader or EnvironmentReader()
    problems: list[str] = []

    enabled = reader.get(ENABLED_KEY, "")
    if enabled not in ("", "true", "false"):
        problems.append(f'{ENABLED_KEY}={enabled!r} is neither "true" nor "false"; the feature stays off.')

    raw_pct = reader.get(ROLLOUT_PERCENTAGE_KEY, "").strip()
    if raw_pct:
        try:
            pct = int(raw_pct)
        except ValueError:
            problems.append(f"{ROLLOUT_PERCENTAGE_KEY}={raw_pct!r} is not an integer.")
        else:
            if not 0 <= pct <= 100:
                problems.append(f"{ROLLOUT_PERCENTAGE_KEY}={pct} is outside 0-100.")
    return problems


class WorkbenchRollout:
    def __init__(self, reader: EnvironmentReader | None = None) -> None:
        self.reader = reader or EnvironmentReader()

    def is_enabled_globally(self) -> bool:
        return self.reader.get(ENABLED_KEY, "false") == "true"

    def get_config(self) -> FeatureFlagConfig:
        return FeatureFlagConfig(
            enabled_globally=self.is_enabled_globally(),
            rollout_percentage=parse_rollout_percentage(self.reader.get(ROLLOUT_PERCENTAGE_KEY, "100")),
            target_users=parse_target_users(self.reader.get(TARGET_USERS_KEY, "all")),
            beta_testers=parse_beta_testers(self.reader.get(BETA_TESTERS_KEY, "")),
        )

    def is_enabled_for_user(self, user_id: str, role: str | None = None) -> bool:
        if not self.is_enabled_globally():
            return False

        config = self.get_config()

        target_roles = config.target_users.as_roles()
        if target_roles is not None and role:
            if role not in target_roles:
                logger.debug("workbench: role %s not targeted (user=%s)", role, user_id)
                return False

        in_rollout = True
        if config.rollout_percentage < 100:
            in_rollout = hash_user_id(user_id) < config.rollout_percentage

        if config.beta_testers:
            return user_id in config.beta_testers

        if not in_rollout:
            logger.debug("workbench: user %s outside %s%% rollout", user_id, config.rollout_percentage)
        return in_rollout

    def evaluate(self, user_id: str | None, role: str | None = None) -> RolloutVerdict:
        global_enabled = self.is_enabled_globally()
        user_enabled = self.is_enabled_for_user(user_id, role) if user_id else False
        return RolloutVerdict(global_enabled=global_enabled, user_enabled=user_enabled)
