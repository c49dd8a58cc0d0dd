from pydantic_settings import BaseSettings
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker, declarative_base
from dotenv import load_dotenv
load_dotenv()


class Settings(BaseSettings):
    database_url: str = "sqlite:///./exam-prep.db"
    # JWT for the cookie session issued by /auth/login
    jwt_secret: str = "change-me-in-production"
    jwt_algorithm: str = "HS256"
    access_token_minutes: int = 30
    # Shared secret expected in the x-webhook-secret header on /api/webhooks/*
    webhook_secret: str = ""
    # Outbound events are POSTed under this URL; empty = log-only emitter
    webhook_base_url: str = ""
    webhook_timeout_seconds: float = 5.0
    rate_limit_max: int = 100
    rate_limit_window_seconds: int = 900
    max_write_retries: int = 3
    log_level: str = "INFO"
    log_dir: str = "logs"

    model_config = {"env_file": ".env", "env_file_encoding": "utf-8", "extra": "ignore"}


settings = Settings()

_connect_args = {"check_same_thread": False} if settings.database_url.startswith("sqlite") else {}
engine = create_engine(settings.database_url, connect_args=_connect_args)
SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)
Base = declarative_base()

def reset_db():
    Base.metadata.drop_all(bind=engine)
    create_db()

def create_db():
    # Import for side effect: registers every table on Base.metadata.
    import examprep.models  # noqa: F401
    Base.metadata.create_all(bind=engine)


def get_db():
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()
