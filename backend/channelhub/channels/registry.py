# Overview: Channel type -> adapter lookup, built once at startup.

from __future__ import annotations

from .base import ChannelAdapter
from .erp import ErpAdapter
from .shopify import ShopifyAdapter
from .siigo import SiigoAdapter


class ChannelRegistry:
    """
    Maps a channel type string to its adapter.

    Populated in create_app and read-only afterwards; adapters are stateless,
    so one instance per type serves all requests and worker threads.
    """

    def __init__(self):
        self._adapters: dict[str, ChannelAdapter] = {}

    def register(self, adapter: ChannelAdapter) -> None:
        if not adapter.channel_type:
            raise ValueError("adapter has no channel_type")
        self._adapters[adapter.channel_type] = adapter

    def get(self, channel_type: str) -> ChannelAdapter | None:
        return self._adapters.get(channel_type)

    def types(self) -> list[str]:
        return sorted(self._adapters)

    def __contains__(self, channel_type: str) -> bool:
        return channel_type in self._adapters


def build_default_registry(config, transport=None) -> ChannelRegistry:
    """
    Register the built-in adapters using app config values.

    `transport` is handed to every adapter's httpx client; tests pass an
    httpx.MockTransport here.
    """
    timeout = float(config.get("CHANNEL_HTTP_TIMEOUT", 15))

    registry = ChannelRegistry()
    registry.register(ShopifyAdapter(
        api_version=config.get("SHOPIFY_API_VERSION", "2024-01"),
        timeout=timeout,
        transport=transport,
    ))
    registry.register(SiigoAdapter(
        default_base_url=config.get("SIIGO_API_BASE_URL", "https://api.siigo.com"),
        timeout=timeout,
        transport=transport,
    ))
    registry.register(ErpAdapter(
        default_base_url=config.get("ERP_API_BASE_URL") or "",
        timeout=timeout,
        transport=transport,
    ))
    return registry
