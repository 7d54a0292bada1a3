"""SQLAlchemy 모델 패키지 초기화 모듈입니다."""

from practice_app.models.practice import Practice

__all__ = [
    "Practice",
]
