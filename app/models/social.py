from pydantic import BaseModel
from typing import Optional, List, Dict


class ParticipantChannel(BaseModel):
    """Channel as returned by the participant-channels-api edge function"""
    id: str
    name: str
    type: Optional[str] = None
    description: Optional[str] = None
    is_private: bool = False
    member_count: int = 0

    class Config:
        extra = "ignore"


class ChannelsPayload(BaseModel):
    """participant-channels-api ``list`` response"""
    channels: Optional[List[ParticipantChannel]] = None


class UnreadCountsPayload(BaseModel):
    """participant-channels-api ``unread-counts`` response"""
    counts: Optional[Dict[str, int]] = None


class ChannelCategory(BaseModel):
    name: str
    channels: List[ParticipantChannel] = []


class ChannelListing(BaseModel):
    event_id: str
    categories: List[ChannelCategory] = []
    unread_counts: Dict[str, int] = {}
    total_unread: int = 0


class Circle(BaseModel):
    id: str
    name: str
    description: Optional[str] = None
    member_count: int = 0
    max_members: Optional[int] = None

    class Config:
        from_attributes = True

    @property
    def is_full(self) -> bool:
        return self.max_members is not None and self.member_count >= self.max_members


class JoinedCircles(BaseModel):
    circle_ids: List[str] = []


class MembershipToggleResult(BaseModel):
    """Membership after a join/leave attempt; rolled back on failure"""
    circle_id: str
    is_member: bool
    success: bool
    feedback: Optional[str] = None
    error: Optional[str] = None
