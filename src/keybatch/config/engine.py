"""Load engine tuning values."""

from __future__ import annotations

from dataclasses import dataclass, field

from .env import env_list, optional_positive_int

MAX_BATCH_SIZE_ENV = "KEYBATCH_MAX_BATCH_SIZE"
LOAD_GROUPS_ENV = "KEYBATCH_LOAD_GROUPS"


@dataclass(frozen=True, slots=True)
class EngineConfig:
    """Defaults applied to loaders built by the application layer.

    ``max_batch_size`` executes a round early once that many keys are pending;
    ``None`` lets a round grow until it is executed or forced.
    """

    max_batch_size: int | None = None
    load_groups: frozenset[str] = field(default_factory=frozenset[str])

    @classmethod
    def from_environment(cls) -> EngineConfig:
        return cls(
            max_batch_size=optional_positive_int(MAX_BATCH_SIZE_ENV),
            load_groups=frozenset(env_list(LOAD_GROUPS_ENV)),
        )


def get_engine_config() -> EngineConfig:
    return EngineConfig.from_environment()
