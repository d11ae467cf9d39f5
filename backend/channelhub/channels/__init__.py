from .base import (
    ChannelAdapter,
    ChannelAdapterError,
    ChannelContext,
    ConnectionResult,
    RemoteOrder,
    RemoteOrderLine,
    RemoteProduct,
    RemoteStock,
    UnsupportedOperation,
)
from .registry import ChannelRegistry, build_default_registry

__all__ = [
    'ChannelAdapter', 'ChannelAdapterError', 'ChannelContext', 'ConnectionResult',
    'RemoteOrder', 'RemoteOrderLine', 'RemoteProduct', 'RemoteStock', 'UnsupportedOperation',
    'ChannelRegistry', 'build_default_registry',
]
