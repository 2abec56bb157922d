"""Store configuration for woolstore."""

from __future__ import annotations

import dataclasses
import os
from typing import Any


def _env_bool(value: str | None, default: bool) -> bool:
    if value is None:
        return default
    normalized = value.strip().lower()
    if normalized in {"1", "true", "yes", "y", "on"}:
        return True
    if normalized in {"0", "false", "no", "n", "off"}:
        return False
    return default


@dataclasses.dataclass(frozen=True)
class StoreConfig:
    """Store configuration.

    Parameters
    ----------
    concurrent_fanout : bool
        Invoke the callbacks of one subscriber group together with
        ``asyncio.gather`` instead of one after the other.  Global
        subscribers are still notified before scoped ones.
    raise_callback_errors : bool
        Raise :class:`~woolstore.exceptions.NotificationError` once a
        fan-out completes if any callback failed.  When disabled, failures
        are only logged and reported to the ``on_callback_error`` hook.
    log_values : bool
        Include (redacted) values in DEBUG log records.  When disabled only
        the value's type name is logged.
    log_max_string : int
        Strings longer than this are truncated in log records.
    """

    concurrent_fanout: bool = False
    raise_callback_errors: bool = False
    log_values: bool = True
    log_max_string: int = 256

    @classmethod
    def from_env(cls, **overrides: Any) -> StoreConfig:
        """Create configuration from ``WOOLSTORE_*`` environment variables.

        Explicit keyword arguments override environment values.

        Parameters
        ----------
        **overrides
            Explicit field values that take precedence over env vars.

        Returns
        -------
        StoreConfig
            Populated configuration.
        """
        env = os.environ
        config_kwargs: dict[str, Any] = {}

        if "concurrent_fanout" not in overrides:
            config_kwargs["concurrent_fanout"] = _env_bool(env.get("WOOLSTORE_CONCURRENT_FANOUT"), False)

        if "raise_callback_errors" not in overrides:
            config_kwargs["raise_callback_errors"] = _env_bool(
                env.get("WOOLSTORE_RAISE_CALLBACK_ERRORS"),
                False,
            )

        if "log_values" not in overrides:
            config_kwargs["log_values"] = _env_bool(env.get("WOOLSTORE_LOG_VALUES"), True)

        max_string_env = env.get("WOOLSTORE_LOG_MAX_STRING")
        if max_string_env is not None and "log_max_string" not in overrides:
            config_kwargs["log_max_string"] = int(max_string_env)

        config_kwargs.update(overrides)

        return cls(**config_kwargs)
