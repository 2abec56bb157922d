"""Reason codes carried by :class:`woolstore.exceptions.StoreError`."""

from __future__ import annotations

DELETE_KEY_NOT_EXISTS = "store.error.delete.key.not.exists"
PUB_KEY_NOT_EXISTS = "store.error.pub.key.not.exists"
SUB_KEY_NOT_EXISTS = "store.error.sub.key.not.exists"
UNSUB_KEY_NOT_EXISTS = "store.error.unsub.key.not.exists"
NOTIFICATION_FAILED = "store.error.notification.failed"

ERROR_CODES: frozenset[str] = frozenset(
    {
        DELETE_KEY_NOT_EXISTS,
        PUB_KEY_NOT_EXISTS,
        SUB_KEY_NOT_EXISTS,
        UNSUB_KEY_NOT_EXISTS,
        NOTIFICATION_FAILED,
    }
)
