# Routers module for the participant API
from app.routers import events
from app.routers import registrations
from app.routers import zone
from app.routers import polls
from app.routers import channels
from app.routers import circles
from app.routers import user_settings
