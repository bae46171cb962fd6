from pydantic import BaseModel, Field
from typing import Optional, Dict, Any, Type
from datetime import datetime
from enum import Enum


class SettingsKind(str, Enum):
    """Settings tabs; each maps to one per-user table"""
    ACCESSIBILITY = "accessibility"
    NOTIFICATIONS = "notifications"
    THEME = "theme"
    SECURITY = "security"


class AccessibilitySettings(BaseModel):
    text_scale_factor: float = Field(default=1.0, ge=0.8, le=2.0)
    bold_text_enabled: bool = False
    high_contrast_enabled: bool = False
    reduce_motion_enabled: bool = False
    larger_touch_targets: bool = False
    screen_reader_optimized: bool = False


class NotificationPreferences(BaseModel):
    event_enabled: bool = True
    workspace_enabled: bool = True
    organization_enabled: bool = True
    system_enabled: bool = True
    sound_enabled: bool = True
    vibration_enabled: bool = True
    chat_messages_enabled: bool = True
    message_previews_enabled: bool = True
    typing_indicators_enabled: bool = True
    read_receipts_enabled: bool = True
    chat_mute_until: Optional[str] = Field(None, description="Off, 1 hour, 8 hours, 1 day, 1 week, Forever")


class ChatThemeSettings(BaseModel):
    selected_theme: str = "system"
    accent_color: str = Field(default="#6366F1", pattern=r"^#[0-9A-Fa-f]{6}$")
    bubble_style: str = "rounded"
    font_size: int = Field(default=16, ge=12, le=24)
    reduced_motion: bool = False


class ChatSecuritySettings(BaseModel):
    app_lock_enabled: bool = False
    lock_timeout_minutes: int = Field(default=5, ge=0, le=60)
    require_biometric: bool = False
    screenshot_protection: bool = False
    screenshot_notify: bool = False
    incognito_keyboard: bool = False
    hide_typing_indicator: bool = False
    hide_read_receipts: bool = False


SETTINGS_TABLES: Dict[SettingsKind, str] = {
    SettingsKind.ACCESSIBILITY: "accessibility_settings",
    SettingsKind.NOTIFICATIONS: "notification_preferences",
    SettingsKind.THEME: "chat_theme_settings",
    SettingsKind.SECURITY: "chat_security_settings",
}

SETTINGS_MODELS: Dict[SettingsKind, Type[BaseModel]] = {
    SettingsKind.ACCESSIBILITY: AccessibilitySettings,
    SettingsKind.NOTIFICATIONS: NotificationPreferences,
    SettingsKind.THEME: ChatThemeSettings,
    SettingsKind.SECURITY: ChatSecuritySettings,
}


class SettingsView(BaseModel):
    kind: SettingsKind
    values: Dict[str, Any]
    updated_at: Optional[datetime] = None


class SettingsUpdateResult(BaseModel):
    """Outcome of a batch of per-field updates"""
    kind: SettingsKind
    values: Dict[str, Any]
    saved: Dict[str, Any] = {}
    errors: Dict[str, str] = {}
