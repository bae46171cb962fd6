from pydantic_settings import BaseSettings
from pydantic import Field

class Settings(BaseSettings):
    # Supabase Postgres (direct connection, RLS applied per request)
    database_url: str = Field(alias='DATABASE_URL')
    db_pool_min_size: int = Field(default=2, alias='DB_POOL_MIN_SIZE')
    db_pool_max_size: int = Field(default=20, alias='DB_POOL_MAX_SIZE')

    # Supabase project
    supabase_url: str = Field(alias='SUPABASE_URL')
    supabase_anon_key: str = Field(alias='SUPABASE_ANON_KEY')
    supabase_jwt_secret: str = Field(alias='SUPABASE_JWT_SECRET')
    supabase_jwt_audience: str = Field(default='authenticated', alias='SUPABASE_JWT_AUDIENCE')

    # Ticketing
    max_tickets_per_order: int = Field(default=10, alias='MAX_TICKETS_PER_ORDER')
    registration_flow_ttl_minutes: int = Field(default=30, alias='REGISTRATION_FLOW_TTL_MINUTES')
    currency_symbol: str = Field(default='₹', alias='CURRENCY_SYMBOL')

    # App settings
    app_env: str = Field(default="development", alias='APP_ENV')
    debug: bool = Field(default=True, alias='DEBUG')

    # FastAPI specific
    port: int = Field(default=8001, alias='FASTAPI_PORT')
    host: str = Field(default="0.0.0.0", alias='FASTAPI_HOST')

    # CORS configuration
    cors_origins: str = Field(default="*", alias='CORS_ORIGINS')

    class Config:
        env_file = ".env"
        extra = "ignore"

    @property
    def functions_url(self) -> str:
        return f"{self.supabase_url.rstrip('/')}/functions/v1"

    @property
    def is_development(self) -> bool:
        return self.app_env == "development"

    @property
    def is_production(self) -> bool:
        return self.app_env == "production"

settings = Settings()
