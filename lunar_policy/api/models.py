"""
SQLAlchemy models for facilitators and games.
"""

from datetime import datetime
from sqlalchemy import Column, Integer, String, DateTime, Text, ForeignKey

from .database import Base


class Facilitator(Base):
    __tablename__ = "facilitators"

    id = Column(String(36), primary_key=True)  # uuid
    email = Column(String(255), unique=True, nullable=False, index=True)
    username = Column(String(64), unique=True, nullable=False, index=True)
    password_hash = Column(String(255), nullable=False)
    created_at = Column(DateTime, default=datetime.utcnow)


class Game(Base):
    __tablename__ = "games"

    id = Column(String(36), primary_key=True)  # uuid
    name = Column(String(128), nullable=False)
    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)
    created_by = Column(String(36), ForeignKey("facilitators.id"), nullable=True)
    status = Column(String(32), nullable=False, default="setup")  # setup | active | ended
    # Mirrors game_state.version; the compare-and-swap column
    version = Column(Integer, nullable=False, default=0)
    game_state = Column(Text, nullable=False)  # JSON string of full game state
