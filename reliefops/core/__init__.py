from .config import settings
from .database import engine, SessionLocal, get_db, Base

__all__ = ["settings", "engine", "SessionLocal", "get_db", "Base"]
