"""Public interface for the media server client package."""

from .commands import CommandDispatcher, command_string
from .registry import Player, PlayerRegistry
from .rpc import RpcClient
from .session import SqueezeboxSession, StateCallback
from .state_machine import SubscriptionStateMachine
from .transport import CometDTransport, StreamDecoder, decode_chunk, decode_payload, encode_frame

__all__ = [
    "CometDTransport",
    "CommandDispatcher",
    "Player",
    "PlayerRegistry",
    "RpcClient",
    "SqueezeboxSession",
    "StateCallback",
    "StreamDecoder",
    "SubscriptionStateMachine",
    "command_string",
    "decode_chunk",
    "decode_payload",
    "encode_frame",
]
