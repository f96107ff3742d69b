"""Saved-configuration service client."""

from __future__ import annotations

import logging

import pydantic

from ..core.draft import summarize_checks
from ..core.errors import SaveFailed
from ..models.configuration import ConfigurationDraft, SavedConfiguration, SavedConfigurationHandle
from .base import BaseService

logger = logging.getLogger(__name__)


class ConfigurationService(BaseService):
    name = "configuration"

    async def submit(
        self,
        draft: ConfigurationDraft,
        device_name: str = "",
        report_ready: bool = False,
    ) -> SavedConfigurationHandle:
        """Persist a draft. ``report_ready`` records the completion gate at save time."""
        data = await self.request_json(
            "POST",
            self.endpoint("configurations"),
            SaveFailed,
            json=draft.to_payload(),
        )
        if not isinstance(data, dict) or not data.get("save_id"):
            raise SaveFailed("Save response did not include a configuration id.")

        handle = SavedConfigurationHandle(
            save_id=str(data["save_id"]),
            name=data.get("name") or draft.name,
            device_id=data.get("device_id") or draft.device_id,
            device_name=device_name or draft.device_id,
            saved_at=data.get("saved_at") or "",
            total_checks=len(draft.checks),
            report_ready=report_ready,
            summary=summarize_checks(draft.checks),
        )
        logger.info("Saved configuration %s (%s)", handle.save_id, handle.name)
        return handle

    async def list_configurations(self) -> list[SavedConfiguration]:
        data = await self.request_json(
            "GET",
            self.endpoint("configurations"),
            SaveFailed,
            "Failed to load configurations.",
        )
        if not isinstance(data, list):
            raise SaveFailed("Failed to load configurations.")
        try:
            return [SavedConfiguration.from_api(item) for item in data]
        except (KeyError, TypeError, AttributeError, pydantic.ValidationError) as e:
            logger.warning("Malformed saved configuration record: %s", e)
            raise SaveFailed("Failed to load configurations.") from e

    async def delete_configuration(self, save_id: str) -> None:
        await self.request(
            "DELETE",
            f"{self.endpoint('configurations')}/{save_id}",
            SaveFailed,
            "Failed to delete configuration.",
        )
        logger.info("Deleted configuration %s", save_id)
