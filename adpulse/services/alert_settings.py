"""
Alert settings store

Thresholds and notification channels live in a JSON file beside the
metrics cache. Missing file means defaults (written on first read);
thresholds added to the defaults later are merged into older files.
"""
import os
from typing import Optional

from pydantic import ValidationError

from adpulse.models.alerts import (
    DEFAULT_ALERT_THRESHOLDS, AlertSettings, AlertThreshold, NotificationChannels
)
from adpulse.utils.json_store import read_json, write_json_atomic
from adpulse.utils.logger import log

SETTINGS_FILENAME = "alert-settings.json"


class AlertSettingsStore:
    def __init__(self, cache_dir: str, dashboard_url: str = ""):
        self.path = os.path.join(cache_dir, SETTINGS_FILENAME)
        self.dashboard_url = dashboard_url

    def defaults(self) -> AlertSettings:
        return AlertSettings(
            thresholds=[t.model_copy() for t in DEFAULT_ALERT_THRESHOLDS],
            notification_channels=NotificationChannels(),
            dashboard_url=self.dashboard_url,
        )

    def read(self) -> AlertSettings:
        if not os.path.exists(self.path):
            settings = self.defaults()
            self.write(settings)
            return settings

        try:
            settings = AlertSettings.model_validate(read_json(self.path))
        except (ValueError, OSError) as e:
            log.error(f"Error reading alert settings from {self.path}: {e}")
            return self.defaults()

        known = {t.id for t in settings.thresholds}
        missing = [t for t in self.defaults().thresholds if t.id not in known]
        if missing:
            settings.thresholds.extend(missing)
        return settings

    def write(self, settings: AlertSettings) -> bool:
        try:
            write_json_atomic(self.path, settings.to_json_dict())
            return True
        except (OSError, TypeError, ValueError) as e:
            log.error(f"Error writing alert settings to {self.path}: {e}")
            return False

    def update_threshold(
        self,
        threshold_id: str,
        enabled: Optional[bool] = None,
        threshold: Optional[float] = None,
    ) -> bool:
        """Patch one threshold. False when the id is unknown, a value is invalid or the write fails."""
        settings = self.read()
        index = next((i for i, t in enumerate(settings.thresholds) if t.id == threshold_id), None)
        if index is None:
            return False

        changes = {}
        if enabled is not None:
            changes["enabled"] = enabled
        if threshold is not None:
            changes["threshold"] = threshold

        try:
            updated = AlertThreshold.model_validate({**settings.thresholds[index].model_dump(), **changes})
        except ValidationError as e:
            log.warning(f"Rejected update for alert threshold {threshold_id}: {e.error_count()} invalid values")
            return False

        settings.thresholds[index] = updated
        return self.write(settings)

    def update_notification_channels(self, channels: NotificationChannels) -> bool:
        settings = self.read()
        settings.notification_channels = channels
        return self.write(settings)
