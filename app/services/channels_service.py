import logging
from typing import Dict, List, Type, TypeVar
from pydantic import BaseModel, ValidationError as PydanticValidationError
from app.models.social import ParticipantChannel, ChannelCategory, ChannelsPayload, UnreadCountsPayload
from app.services.edge_functions import EdgeFunctionClient
from app.core.exceptions import ServerRejectedError

logger = logging.getLogger(__name__)

CHANNELS_FUNCTION = "participant-channels-api"

CATEGORY_ORDER = ["ANNOUNCEMENTS", "GENERAL", "SESSIONS", "NETWORKING", "SUPPORT"]

PayloadT = TypeVar("PayloadT", bound=BaseModel)


def _parse(model: Type[PayloadT], data: dict, action: str) -> PayloadT:
    try:
        return model.model_validate(data)
    except PydanticValidationError as e:
        logger.error(f"{CHANNELS_FUNCTION} {action} returned a malformed body: {e.error_count()} errors")
        raise ServerRejectedError(
            f"{CHANNELS_FUNCTION} returned an invalid response", 502, {"function": CHANNELS_FUNCTION}
        )


class ChannelsService:
    """Participant chat channels, served by the participant-channels-api edge function"""

    def __init__(self, edge: EdgeFunctionClient):
        self.edge = edge

    async def list_channels(self, event_id: str, access_token: str) -> List[ParticipantChannel]:
        data = await self.edge.invoke(
            CHANNELS_FUNCTION,
            {"action": "list", "eventId": event_id},
            access_token
        )
        channels = _parse(ChannelsPayload, data, "list").channels or []
        logger.debug(f"Loaded {len(channels)} channels for event {event_id}")
        return channels

    async def unread_counts(self, event_id: str, access_token: str) -> Dict[str, int]:
        data = await self.edge.invoke(
            CHANNELS_FUNCTION,
            {"action": "unread-counts", "eventId": event_id},
            access_token
        )
        return _parse(UnreadCountsPayload, data, "unread-counts").counts or {}


def infer_category(channel: ParticipantChannel) -> str:
    name = channel.name.lower()

    if name.startswith("announce-") or channel.type == "announcement":
        return "ANNOUNCEMENTS"
    if name.startswith("session-"):
        return "SESSIONS"
    if "network" in name:
        return "NETWORKING"
    if name.startswith("help-") or "support" in name or "help" in name:
        return "SUPPORT"
    return "GENERAL"


def group_channels(channels: List[ParticipantChannel]) -> List[ChannelCategory]:
    """Group channels into categories in display order, empty categories omitted"""
    grouped: Dict[str, List[ParticipantChannel]] = {}
    for channel in channels:
        grouped.setdefault(infer_category(channel), []).append(channel)

    return [
        ChannelCategory(name=name, channels=grouped[name])
        for name in CATEGORY_ORDER
        if name in grouped
    ]
