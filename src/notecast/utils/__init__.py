"""Key handling, the NIP-01 wire codec, and WebSocket transport.

The utils layer depends on [notecast.models][notecast.models] and the
exception/logging parts of [notecast.core][notecast.core]; it never imports
from [notecast.services][notecast.services].

Attributes:
    keys: Secret key decoding (hex or ``nsec1``) and public key derivation.
    protocol: Encoders for client frames and a decoder for relay frames.
    transport: One ``aiohttp`` WebSocket session per relay with frame routing.
"""
