import logging
from typing import Any, Dict, Optional
from datetime import datetime

from app.controllers.base import PageController
from app.models.settings import SettingsKind, SettingsView, SettingsUpdateResult
from app.services.settings_service import SettingsService, validate_field
from app.core.optimistic import optimistic_update, OptimisticResult
from app.core.exceptions import ValidationError

logger = logging.getLogger(__name__)


class SettingsController(PageController):
    """
    One settings tab.

    Each field is saved on its own. When a save fails only that field goes
    back to its last saved value; other fields keep theirs.
    """

    def __init__(self, settings_service: SettingsService, user_id: str, kind: SettingsKind):
        super().__init__()
        self.settings_service = settings_service
        self.user_id = user_id
        self.kind = kind
        self.values: Dict[str, Any] = {}
        self.saved: Dict[str, Any] = {}
        self.errors: Dict[str, str] = {}
        self.updated_at: Optional[datetime] = None

    async def load(self) -> SettingsView:
        view = await self.settings_service.load(self.kind, self.user_id)
        if not self.is_disposed:
            self.values = dict(view.values)
            self.saved = dict(view.values)
            self.updated_at = view.updated_at
            self.notify_listeners()
        return view

    async def update(self, field: str, value: Any) -> OptimisticResult:
        try:
            field, value = validate_field(self.kind, field, value)
        except ValidationError as e:
            self.errors[field] = e.message
            return OptimisticResult(ok=False, error=e.message, status_code=e.status_code)

        def apply():
            self.values[field] = value
            self.errors.pop(field, None)
            self.notify_listeners()

        def restore(last_saved):
            self.values[field] = last_saved
            self.notify_listeners()

        result = await optimistic_update(
            snapshot=lambda: self.saved.get(field),
            apply=apply,
            effect=lambda: self.settings_service.update_field(self.kind, self.user_id, field, value),
            restore=restore,
            operation=f"save {self.kind.value}.{field}"
        )

        if result.ok:
            stored = value if result.value is None else result.value
            self.saved[field] = stored
            self.values[field] = stored
        else:
            self.errors[field] = result.error
        self.notify_listeners()
        return result

    async def update_many(self, updates: Dict[str, Any]) -> SettingsUpdateResult:
        """Apply several fields one by one; a failure never rolls back a sibling"""
        saved = {}
        for field, value in updates.items():
            result = await self.update(field, value)
            if result.ok:
                saved[field] = self.saved[field]

        return SettingsUpdateResult(
            kind=self.kind,
            values=dict(self.values),
            saved=saved,
            errors={f: self.errors[f] for f in updates if f in self.errors}
        )
