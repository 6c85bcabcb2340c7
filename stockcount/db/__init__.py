from stockcount.db.base import Base, init_models
from stockcount.db.session import get_engine, get_session, get_session_maker

__all__ = ["Base", "init_models", "get_engine", "get_session", "get_session_maker"]
