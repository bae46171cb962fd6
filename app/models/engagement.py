from pydantic import BaseModel, Field
from typing import Optional, List
from datetime import datetime, date
from decimal import Decimal, ROUND_HALF_UP


class EventCheckin(BaseModel):
    """One check-in row per (event, user, day)"""
    id: str
    event_id: str
    user_id: str
    checkin_date: date
    checkin_time: datetime
    checkout_time: Optional[datetime] = None
    location: Optional[str] = None

    class Config:
        from_attributes = True

    @property
    def is_active(self) -> bool:
        return self.checkout_time is None


class CheckinStatus(BaseModel):
    event_id: str
    is_checked_in: bool
    checkin: Optional[EventCheckin] = None


class CheckinRequest(BaseModel):
    location: Optional[str] = Field(None, max_length=200)


class PollOption(BaseModel):
    id: str
    text: str
    vote_count: int = 0


class EventPoll(BaseModel):
    """Poll with its options and the caller's own vote"""
    id: str
    event_id: str
    question: str
    options: List[PollOption] = []
    is_active: bool = True
    created_at: Optional[datetime] = None
    expires_at: Optional[datetime] = None
    user_vote: Optional[str] = None

    @property
    def total_votes(self) -> int:
        return sum(o.vote_count for o in self.options)

    def option(self, option_id: str) -> Optional[PollOption]:
        for o in self.options:
            if o.id == option_id:
                return o
        return None

    def percentage(self, option_id: str) -> Decimal:
        total = self.total_votes
        opt = self.option(option_id)
        if not opt or total == 0:
            return Decimal("0")
        return (Decimal(opt.vote_count) * 100 / Decimal(total)).quantize(Decimal("0.1"), rounding=ROUND_HALF_UP)


class PollOptionView(PollOption):
    percentage: Decimal = Decimal("0")


class PollView(BaseModel):
    """Poll as rendered, percentages derived from current counts"""
    id: str
    event_id: str
    question: str
    options: List[PollOptionView] = []
    is_active: bool = True
    expires_at: Optional[datetime] = None
    user_vote: Optional[str] = None
    total_votes: int = 0

    @classmethod
    def from_poll(cls, poll: EventPoll) -> "PollView":
        return cls(
            id=poll.id,
            event_id=poll.event_id,
            question=poll.question,
            options=[
                PollOptionView(**o.model_dump(), percentage=poll.percentage(o.id))
                for o in poll.options
            ],
            is_active=poll.is_active,
            expires_at=poll.expires_at,
            user_vote=poll.user_vote,
            total_votes=poll.total_votes,
        )


class PollCreate(BaseModel):
    question: str = Field(..., min_length=1, max_length=300)
    options: List[str] = Field(..., min_length=2, max_length=10)
    expires_at: Optional[datetime] = None


class PollVoteRequest(BaseModel):
    option_id: str


class PollVoteResponse(BaseModel):
    """Poll state after a vote attempt; on failure the vote is rolled back"""
    success: bool
    poll: PollView
    error: Optional[str] = None
    can_retry: bool = False


class EventSession(BaseModel):
    id: str
    event_id: str
    title: str
    description: Optional[str] = None
    speaker_name: Optional[str] = None
    room: Optional[str] = None
    start_time: datetime
    end_time: datetime

    class Config:
        from_attributes = True


class EventAnnouncement(BaseModel):
    id: str
    event_id: str
    title: str
    content: str
    type: str = "info"
    is_pinned: bool = False
    author_name: Optional[str] = None
    created_at: Optional[datetime] = None

    class Config:
        from_attributes = True


class ZoneOverview(BaseModel):
    """Content shown to an attendee inside the event zone"""
    event_id: str
    is_checked_in: bool
    attendee_count: int = 0
    live_sessions: List[EventSession] = []
    upcoming_sessions: List[EventSession] = []
    announcements: List[EventAnnouncement] = []
