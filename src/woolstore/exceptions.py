"""Exceptions raised by woolstore."""

from __future__ import annotations

import json
from typing import Any

from woolstore._constants import NOTIFICATION_FAILED


def _format_param(param: Any) -> str:
    if isinstance(param, (dict, list, tuple)):
        try:
            return json.dumps(param, default=repr)
        except (TypeError, ValueError):
            return repr(param)
    return str(param)


class StoreError(Exception):
    """A store operation was called with a violated precondition.

    ``code`` is a machine-readable reason (see :mod:`woolstore._constants`)
    and ``params`` holds the contextual arguments, typically the offending
    key.  The message renders as ``code(param1, param2)``.
    """

    def __init__(self, code: str, *params: Any) -> None:
        self.code = code
        self.params = params
        message = code
        if params:
            message += "(" + ", ".join(_format_param(p) for p in params) + ")"
        super().__init__(message)


class NotificationError(StoreError):
    """One or more subscriber callbacks failed during a fan-out.

    Only raised when ``StoreConfig.raise_callback_errors`` is enabled, and
    only after every callback of the fan-out has run.
    """

    def __init__(self, key: str, errors: list[BaseException]) -> None:
        self.errors = list(errors)
        super().__init__(NOTIFICATION_FAILED, key, len(self.errors))
