from fastapi import Depends, Request
from app.core.middleware import get_session_context
from app.core.exceptions import AuthenticationError
from app.database import Database
from app.services.edge_functions import EdgeFunctionClient
from app.services.events_service import EventsService
from app.services.promotions_service import PromotionsService
from app.services.registrations_service import RegistrationsService
from app.services.checkin_service import CheckinService
from app.services.polls_service import PollsService
from app.services.zone_service import ZoneService
from app.services.circles_service import CirclesService
from app.services.settings_service import SettingsService
from app.services.channels_service import ChannelsService
from app.services.registration_flow import RegistrationFlowStore
import logging

logger = logging.getLogger(__name__)


class AuthenticatedUser:
    """
    Dependency class that provides the caller's identity.
    Use this for every endpoint that touches user data; row-level security
    does the rest.
    """
    def __init__(self, request: Request):
        self.session = get_session_context(request)

        if not self.session.is_valid:
            raise AuthenticationError("Authentication required")

    @property
    def user_id(self) -> str:
        return str(self.session.user_id)

    @property
    def email(self) -> str:
        return self.session.email

    @property
    def access_token(self) -> str:
        return self.session.access_token


def get_authenticated_user(request: Request) -> AuthenticatedUser:
    """Dependency to get the authenticated caller"""
    return AuthenticatedUser(request)


# Shared resources live on app.state, created in the lifespan

def get_database(request: Request) -> Database:
    return request.app.state.db


def get_edge_client(request: Request) -> EdgeFunctionClient:
    return request.app.state.edge_client


def get_flow_store(request: Request) -> RegistrationFlowStore:
    return request.app.state.flow_store


# Services, built per request around the shared resources

def get_events_service(db: Database = Depends(get_database)) -> EventsService:
    return EventsService(db)


def get_promotions_service(db: Database = Depends(get_database)) -> PromotionsService:
    return PromotionsService(db)


def get_registrations_service(db: Database = Depends(get_database)) -> RegistrationsService:
    return RegistrationsService(db)


def get_checkin_service(db: Database = Depends(get_database)) -> CheckinService:
    return CheckinService(db)


def get_polls_service(db: Database = Depends(get_database)) -> PollsService:
    return PollsService(db)


def get_zone_service(db: Database = Depends(get_database)) -> ZoneService:
    return ZoneService(db)


def get_circles_service(db: Database = Depends(get_database)) -> CirclesService:
    return CirclesService(db)


def get_settings_service(db: Database = Depends(get_database)) -> SettingsService:
    return SettingsService(db)


def get_channels_service(edge: EdgeFunctionClient = Depends(get_edge_client)) -> ChannelsService:
    return ChannelsService(edge)
