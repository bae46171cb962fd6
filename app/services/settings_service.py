import logging
from typing import Any, Tuple
from pydantic import ValidationError as PydanticValidationError
from app.database import Database, row_to_dict
from app.models.settings import SettingsKind, SettingsView, SETTINGS_TABLES, SETTINGS_MODELS
from app.core.exceptions import ValidationError

logger = logging.getLogger(__name__)


class SettingsService:
    """
    Per-user settings tables, one row per user.

    Reads fill in model defaults when no row exists yet; writes touch a
    single column at a time so concurrent edits of sibling fields never
    overwrite each other.
    """

    def __init__(self, db: Database):
        self.db = db

    async def load(self, kind: SettingsKind, user_id: str) -> SettingsView:
        model = SETTINGS_MODELS[kind]
        table = SETTINGS_TABLES[kind]
        columns = ", ".join(model.model_fields)

        async with self.db.connection(as_user=user_id) as conn:
            row = await conn.fetchrow(
                f"SELECT {columns}, updated_at FROM {table} WHERE user_id = $1",
                user_id
            )

        values = model().model_dump()
        updated_at = None
        if row:
            data = row_to_dict(row)
            updated_at = data.pop('updated_at', None)
            values.update({k: v for k, v in data.items() if v is not None})

        return SettingsView(kind=kind, values=values, updated_at=updated_at)

    async def update_field(self, kind: SettingsKind, user_id: str, field: str, value: Any) -> Any:
        """Validate and persist one field; returns the stored value"""
        column, coerced = validate_field(kind, field, value)
        table = SETTINGS_TABLES[kind]

        async with self.db.connection(as_user=user_id) as conn:
            stored = await conn.fetchval(f"""
                INSERT INTO {table} (user_id, {column}, updated_at)
                VALUES ($1, $2, NOW())
                ON CONFLICT (user_id)
                DO UPDATE SET {column} = EXCLUDED.{column}, updated_at = NOW()
                RETURNING {column}
            """, user_id, coerced)

        logger.debug(f"Saved {kind.value}.{column}")
        return stored


def validate_field(kind: SettingsKind, field: str, value: Any) -> Tuple[str, Any]:
    """
    Check a single field against its settings model.

    Column names only ever come from the model's declared fields, never
    from the request.
    """
    model = SETTINGS_MODELS[kind]
    if field not in model.model_fields:
        raise ValidationError(f"Unknown {kind.value} setting: {field}", {"field": field})

    try:
        validated = model(**{field: value})
    except PydanticValidationError as e:
        message = e.errors()[0].get('msg', 'Invalid value')
        raise ValidationError(f"Invalid value for {field}: {message}", {"field": field})

    return field, getattr(validated, field)
