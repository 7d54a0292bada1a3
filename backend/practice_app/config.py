"""환경 변수 기반 애플리케이션 설정을 중앙에서 관리합니다."""

from pydantic_settings import BaseSettings
from typing import List
from pathlib import Path


class Settings(BaseSettings):
    DATABASE_URL: str = "sqlite:///./team_practices.db"
    DEBUG: bool = True
    ALLOWED_ORIGINS: List[str] = ["http://localhost:5173", "http://localhost:8000"]
    LOG_LEVEL: str = "INFO"

    # 반복 연습 생성 한도
    RECURRENCE_MAX_INSTANCES: int = 52  # 종료 조건이 없을 때의 상한
    RECURRENCE_MAX_COUNT: int = 52      # count 입력 허용 범위 1..N
    RECURRENCE_HORIZON_DAYS: int = 730  # 기준일로부터 최대 2년

    class Config:
        # 실행 cwd와 무관하게 backend/.env를 로드한다.
        env_file = str(Path(__file__).resolve().parents[1] / ".env")


settings = Settings()
