"""Server and site registration against the dashboard."""
from __future__ import annotations

from .server import ServerRegistrar
from .sites import SitePayloadBuilder, SiteRegistrar

__all__ = ["ServerRegistrar", "SitePayloadBuilder", "SiteRegistrar"]
