"""
rankwell.engine.rewards — Level-based role rewards
===================================================

A guild can attach Discord roles to levels.  Two modes decide what a member
keeps as they climb:

- ``stack``   — every reward role earned so far is kept.
- ``replace`` — only the highest earned reward role is kept; lower ones are
  removed.

This module is pure: it decides which roles to add or remove given a
member's level and the roles they already hold.  Applying the plan to
Discord is done by :mod:`rankwell.services.role_reward_service`.
"""

from __future__ import annotations

import enum
from dataclasses import dataclass, field
from typing import Any

from rankwell.constants import MAX_LEVEL_REWARDS
from rankwell.engine.errors import ValidationError


class RewardMode(enum.StrEnum):
    STACK = "stack"
    REPLACE = "replace"


@dataclass(frozen=True, slots=True, order=True)
class LevelReward:
    """One role granted on reaching ``level``."""

    level: int
    role_id: int


@dataclass(frozen=True, slots=True)
class RolePlan:
    """Role changes to bring one member in line with their level."""

    add: tuple[LevelReward, ...] = ()
    remove: tuple[LevelReward, ...] = ()

    def __bool__(self) -> bool:
        return bool(self.add or self.remove)


@dataclass(frozen=True, slots=True)
class LevelRewardConfig:
    """A guild's reward table, kept sorted by level then role id."""

    mode: RewardMode = RewardMode.STACK
    rewards: tuple[LevelReward, ...] = field(default_factory=tuple)

    # -------------------------------------------------------------------
    # Serialization
    # -------------------------------------------------------------------
    def to_dict(self) -> dict[str, Any]:
        return {
            "mode": self.mode.value,
            "rewards": [{"level": r.level, "role_id": r.role_id} for r in self.rewards],
        }

    @classmethod
    def from_dict(cls, raw: dict[str, Any]) -> LevelRewardConfig:
        try:
            mode = RewardMode(raw.get("mode", RewardMode.STACK))
        except ValueError as exc:
            raise ValidationError(f"Unknown reward mode {raw.get('mode')!r}") from exc
        rewards = tuple(
            sorted(
                LevelReward(int(item["level"]), int(item["role_id"]))
                for item in raw.get("rewards", [])
            )
        )
        return cls(mode=mode, rewards=rewards)

    # -------------------------------------------------------------------
    # Edits (return new configs)
    # -------------------------------------------------------------------
    def with_reward(self, level: int, role_id: int) -> LevelRewardConfig:
        if level < 1:
            raise ValidationError(f"Reward level must be >= 1, got {level}")
        reward = LevelReward(level, role_id)
        if reward in self.rewards:
            raise ValidationError(
                f"A reward for level {level} with that role already exists."
            )
        if len(self.rewards) >= MAX_LEVEL_REWARDS:
            raise ValidationError(
                f"A server can have at most {MAX_LEVEL_REWARDS} level rewards."
            )
        return LevelRewardConfig(self.mode, tuple(sorted((*self.rewards, reward))))

    def without_reward(self, level: int, role_id: int) -> LevelRewardConfig:
        reward = LevelReward(level, role_id)
        if reward not in self.rewards:
            raise ValidationError(f"No reward found for level {level} with that role.")
        return LevelRewardConfig(
            self.mode, tuple(r for r in self.rewards if r != reward)
        )

    def with_mode(self, mode: RewardMode | str) -> LevelRewardConfig:
        try:
            mode = RewardMode(mode)
        except ValueError as exc:
            raise ValidationError(f"Unknown reward mode {mode!r}") from exc
        return LevelRewardConfig(mode, self.rewards)

    @property
    def role_ids(self) -> frozenset[int]:
        return frozenset(r.role_id for r in self.rewards)

    def earned(self, level: int) -> tuple[LevelReward, ...]:
        return tuple(r for r in self.rewards if r.level <= level)


# ---------------------------------------------------------------------------
# Planning
# ---------------------------------------------------------------------------
def _unique(rewards) -> tuple[LevelReward, ...]:
    """First reward per role id, in order."""
    seen: set[int] = set()
    out = []
    for r in rewards:
        if r.role_id not in seen:
            seen.add(r.role_id)
            out.append(r)
    return tuple(out)


def plan_level_up(
    cfg: LevelRewardConfig,
    level_before: int,
    level_after: int,
    held_role_ids: set[int] | frozenset[int],
) -> RolePlan:
    """Role changes after climbing from *level_before* to *level_after*.

    Nothing happens unless at least one reward lies in
    ``(level_before, level_after]``.  Stack mode adds each newly reached
    reward; replace mode adds the highest earned reward and strips the
    lower ones.
    """
    newly = [r for r in cfg.rewards if level_before < r.level <= level_after]
    if not newly:
        return RolePlan()

    if cfg.mode is RewardMode.STACK:
        return RolePlan(add=_unique(r for r in newly if r.role_id not in held_role_ids))

    earned = cfg.earned(level_after)
    top = earned[-1]
    add = (top,) if top.role_id not in held_role_ids else ()
    remove = _unique(
        r for r in earned[:-1]
        if r.role_id in held_role_ids and r.role_id != top.role_id
    )
    return RolePlan(add=add, remove=remove)


def plan_sync(
    cfg: LevelRewardConfig,
    level: int,
    held_role_ids: set[int] | frozenset[int],
) -> RolePlan:
    """Role changes that make a member's reward roles match *level* exactly.

    Used when a member rejoins or an admin changes XP directly.  Rewards above
    *level* are always removed, in both modes.
    """
    earned = cfg.earned(level)
    keep: set[int]
    if cfg.mode is RewardMode.STACK:
        keep = {r.role_id for r in earned}
        add = _unique(r for r in earned if r.role_id not in held_role_ids)
    else:
        keep = {earned[-1].role_id} if earned else set()
        add = (earned[-1],) if earned and earned[-1].role_id not in held_role_ids else ()

    remove = _unique(
        r for r in cfg.rewards if r.role_id in held_role_ids and r.role_id not in keep
    )
    return RolePlan(add=add, remove=remove)
