"""
Alert settings endpoints
"""
from typing import Any, Dict, Literal

from fastapi import APIRouter, Depends
from fastapi.responses import JSONResponse
from pydantic import BaseModel, ValidationError

from adpulse.dependencies import get_alert_settings_store
from adpulse.models.alerts import AlertSettings, NotificationChannels
from adpulse.services.alert_settings import AlertSettingsStore
from adpulse.utils.logger import log

router = APIRouter(prefix="/api/settings/alerts", tags=["alerts"])


class AlertSettingsAction(BaseModel):
    action: Literal["update-threshold", "update-notifications", "update-all"]
    data: Dict[str, Any] = {}


def _bad_request(error: str) -> JSONResponse:
    return JSONResponse(status_code=400, content={"success": False, "error": error})


@router.get("")
def get_alert_settings(store: AlertSettingsStore = Depends(get_alert_settings_store)):
    """Current thresholds and notification channels"""
    try:
        return {"success": True, "settings": store.read().to_json_dict()}
    except Exception as e:
        log.error(f"Error reading alert settings: {str(e)}")
        return JSONResponse(status_code=500, content={"success": False, "error": "Failed to read alert settings"})


@router.post("")
def update_alert_settings(
    body: Dict[str, Any],
    store: AlertSettingsStore = Depends(get_alert_settings_store),
):
    """
    Update alert settings.

    Actions:
    - update-threshold: {thresholdId, enabled?, threshold?}
    - update-notifications: {notificationChannels}
    - update-all: {settings}
    """
    try:
        request = AlertSettingsAction.model_validate(body)
    except ValidationError:
        return _bad_request("Invalid action")

    data = request.data
    try:
        if request.action == "update-threshold":
            if not store.update_threshold(
                data.get("thresholdId", ""),
                enabled=data.get("enabled"),
                threshold=data.get("threshold"),
            ):
                return _bad_request("Failed to update threshold")
            return {"success": True, "message": "Threshold updated successfully"}

        if request.action == "update-notifications":
            channels = NotificationChannels.model_validate(data.get("notificationChannels") or {})
            if not store.update_notification_channels(channels):
                return _bad_request("Failed to update notification channels")
            return {"success": True, "message": "Notification channels updated successfully"}

        settings = AlertSettings.model_validate(data.get("settings") or {})
        if not store.write(settings):
            return _bad_request("Failed to update settings")
        return {"success": True, "message": "Settings updated successfully"}

    except ValidationError as e:
        return _bad_request(f"Invalid settings payload: {e.error_count()} errors")
    except Exception as e:
        log.error(f"Error updating alert settings: {str(e)}")
        return JSONResponse(status_code=500, content={"success": False, "error": "Failed to update alert settings"})
