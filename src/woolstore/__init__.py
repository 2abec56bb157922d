"""woolstore - Reactive in-memory key-value store with Pub/Sub."""

from importlib.metadata import PackageNotFoundError, version

try:
    __version__ = version("woolstore")
except PackageNotFoundError:
    __version__ = "0+local"
from woolstore.config import StoreConfig
from woolstore.events import Callback, Notification, PubSubType
from woolstore.exceptions import NotificationError, StoreError
from woolstore.pubsub import PubSub
from woolstore.store import Store

__all__ = [
    "__version__",
    "Callback",
    "Notification",
    "NotificationError",
    "PubSub",
    "PubSubType",
    "Store",
    "StoreConfig",
    "StoreError",
]
