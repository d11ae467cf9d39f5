# Overview: Generic ERP adapter (Siigo-shaped REST API behind HTTP basic auth).

from __future__ import annotations

import httpx

from .base import ChannelAdapterError
from .siigo import SiigoAdapter


class ErpAdapter(SiigoAdapter):
    """
    Self-hosted ERP exposing the same /v1 resources as Siigo.

    Credential: config["username"] / config["password"] as HTTP basic auth.
    Base URL: config["base_url"] or ERP_API_BASE_URL.
    """

    channel_type = "erp"
    display_name = "ERP"
    invalid_credentials_message = "Invalid credentials"

    def base_url(self, ctx) -> str:
        url = ctx.config.get("base_url") or self.default_base_url
        if not url:
            raise ChannelAdapterError("ERP configuration missing")
        return url.rstrip("/")

    def auth_headers(self, ctx) -> dict:
        return {}

    def auth(self, ctx):
        username = ctx.config.get("username")
        password = ctx.config.get("password")
        if not username or not password:
            raise ChannelAdapterError("ERP configuration missing")
        return httpx.BasicAuth(username, password)
