r"""notecast -- Nostr client engine: publish and subscribe across many relays.

A user-facing front end hands the engine a secret key, a relay list, and
note text; the engine validates the key, builds and signs a NIP-01 event,
connects to the relays concurrently, fans the event out, and reports a
per-relay outcome. Subscriptions stream matching events back as async
iterators.

Architecture follows a **diamond DAG** dependency structure where imports
flow strictly downward:

```text
              services         Relay manager, publisher, subscriptions, client facade
             /   |   \
          core  nips  utils    Config/logging/errors, event signing, keys/wire/transport
             \   |   /
              models           Pure frozen dataclasses (zero I/O)
```

Note:
    For lightweight usage, import directly from subpackages::

        from notecast.models import Event
        from notecast.services import NostrClient

    Top-level imports (``from notecast import NostrClient``) use lazy loading
    and resolve on first access.
"""

import importlib
from importlib.metadata import version as _get_version


__version__ = _get_version("notecast")

__all__ = [
    "ClientConfig",
    "ConnectResult",
    "Event",
    "EventBuilder",
    "Filter",
    "Logger",
    "NostrClient",
    "PublishCoordinator",
    "PublishStatus",
    "RelayConnection",
    "RelayConnectionManager",
    "RelayEndpoint",
    "SubscriptionManager",
    "decode_secret",
    "derive_public",
    "sign_event",
    "verify_event",
]

_LAZY_IMPORTS: dict[str, tuple[str, str]] = {
    "ClientConfig": ("notecast.core", "ClientConfig"),
    "Logger": ("notecast.core", "Logger"),
    "ConnectResult": ("notecast.models", "ConnectResult"),
    "Event": ("notecast.models", "Event"),
    "Filter": ("notecast.models", "Filter"),
    "PublishStatus": ("notecast.models", "PublishStatus"),
    "RelayEndpoint": ("notecast.models", "RelayEndpoint"),
    "EventBuilder": ("notecast.nips", "EventBuilder"),
    "sign_event": ("notecast.nips", "sign_event"),
    "verify_event": ("notecast.nips", "verify_event"),
    "decode_secret": ("notecast.utils.keys", "decode_secret"),
    "derive_public": ("notecast.utils.keys", "derive_public"),
    "RelayConnection": ("notecast.utils.transport", "RelayConnection"),
    "NostrClient": ("notecast.services", "NostrClient"),
    "PublishCoordinator": ("notecast.services", "PublishCoordinator"),
    "RelayConnectionManager": ("notecast.services", "RelayConnectionManager"),
    "SubscriptionManager": ("notecast.services", "SubscriptionManager"),
}


def __getattr__(name: str) -> object:
    if name in _LAZY_IMPORTS:
        module_path, attr_name = _LAZY_IMPORTS[name]
        module = importlib.import_module(module_path)
        value = getattr(module, attr_name)
        globals()[name] = value  # Cache for subsequent access
        return value
    raise AttributeError(f"module 'notecast' has no attribute {name!r}")


def __dir__() -> list[str]:
    return __all__
