"""Catalog service client."""

from __future__ import annotations

from ..core.catalog import ControlCatalog, parse_controls
from ..core.errors import CatalogUnavailable
from .base import BaseService


class CatalogService(BaseService):
    name = "catalog"

    async def load(self, device_subtype: str) -> ControlCatalog:
        """Fetch the ordered controls that apply to a device subtype."""
        data = await self.request_json(
            "GET",
            self.endpoint("controls"),
            CatalogUnavailable,
            params={"device_subtype": device_subtype},
        )
        return ControlCatalog(parse_controls(data))
