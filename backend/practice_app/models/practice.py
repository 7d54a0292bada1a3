"""Practice 도메인의 SQLAlchemy 모델 정의입니다."""

from sqlalchemy import (
    Column, Integer, String, Text, Date, DateTime, Boolean, Float, JSON, ForeignKey, Index,
)
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func
from practice_app.database import Base


class Practice(Base):
    __tablename__ = "practices"

    practice_id = Column(Integer, primary_key=True, autoincrement=True)
    title = Column(String(200), nullable=False)
    description = Column(Text)
    practice_type = Column(String(20), nullable=False, default="water")  # water/land/gym/meeting
    date = Column(Date, nullable=False)
    start_time = Column(String(10), nullable=False)  # HH:MM
    end_time = Column(String(10))                    # HH:MM
    location_name = Column(String(200))
    location_address = Column(String(300))
    location_lat = Column(Float)
    location_lng = Column(Float)
    max_capacity = Column(Integer, default=22)
    is_visible_to_members = Column(Boolean, default=True)
    rsvp_visibility_hours = Column(Integer)
    rsvp_deadline = Column(DateTime)
    food_location_name = Column(String(200))
    food_location_address = Column(String(300))
    status = Column(String(20), default="scheduled")
    # scheduled/cancelled/completed
    created_by = Column(Integer)

    # 반복 시리즈: 부모(첫 회차)가 자식 회차를 소유한다.
    parent_practice_id = Column(
        Integer, ForeignKey("practices.practice_id", ondelete="CASCADE"), nullable=True
    )
    is_recurring = Column(Boolean, default=False, nullable=False)
    is_exception = Column(Boolean, default=False, nullable=False)
    original_date = Column(Date)
    recurrence_pattern = Column(String(20))  # daily/weekly/biweekly/monthly
    recurrence_days = Column(JSON)           # 0=일요일 .. 6=토요일
    recurrence_end_date = Column(Date)
    recurrence_count = Column(Integer)

    created_at = Column(DateTime, server_default=func.now())
    updated_at = Column(DateTime, onupdate=func.now())

    parent = relationship("Practice", remote_side=[practice_id], back_populates="instances")
    instances = relationship(
        "Practice",
        back_populates="parent",
        cascade="all, delete-orphan",
        order_by="Practice.date",
    )

    __table_args__ = (
        Index("idx_practice_date", "date", "start_time"),
        Index("idx_practice_parent", "parent_practice_id", "is_exception", "date"),
    )
