"""Remote record store configuration values."""

from __future__ import annotations

from dataclasses import dataclass

from .env import optional_env_var, optional_positive_float, optional_positive_int, require_env_vars
from .http_resilience import RateLimit, ResilienceConfig, RetryPolicy

REMOTE_URL_ENV = "KEYBATCH_REMOTE_URL"
REMOTE_TOKEN_ENV = "KEYBATCH_REMOTE_TOKEN"
REMOTE_TIMEOUT_ENV = "KEYBATCH_REMOTE_TIMEOUT"
REMOTE_RATE_LIMIT_ENV = "KEYBATCH_REMOTE_CALLS_PER_SECOND"
REMOTE_RETRIES_ENV = "KEYBATCH_REMOTE_RETRIES"
REMOTE_TIMEOUT_SECONDS = 15.0
LOOKUP_PATH = "lookup"


@dataclass(frozen=True)
class RemoteStoreConfig:
    """Where and how to reach a remote bulk-lookup endpoint."""

    lookup_path: str
    resilience: ResilienceConfig


def get_remote_store_config(*, resilience: ResilienceConfig | None = None) -> RemoteStoreConfig:
    if resilience is None:
        base_url = require_env_vars((REMOTE_URL_ENV,))[REMOTE_URL_ENV]
        attempts = optional_positive_int(REMOTE_RETRIES_ENV)
        resilience = ResilienceConfig(
            name="remote-store",
            base_url=base_url,
            timeout_seconds=optional_positive_float(REMOTE_TIMEOUT_ENV) or REMOTE_TIMEOUT_SECONDS,
            retry=RetryPolicy(attempts=attempts) if attempts else RetryPolicy(),
            ratelimit=RateLimit.per_second(optional_positive_int(REMOTE_RATE_LIMIT_ENV)),
            token=optional_env_var(REMOTE_TOKEN_ENV),
        )
    return RemoteStoreConfig(lookup_path=LOOKUP_PATH, resilience=resilience)
