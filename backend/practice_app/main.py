"""FastAPI 애플리케이션 진입점. 미들웨어와 API 라우터를 등록합니다."""

import logging
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from practice_app.config import settings
from practice_app.database import Base, engine
import practice_app.models  # noqa: F401 - 모델 import로 metadata 등록
from practice_app.routers import practices
from practice_app.utils.schema_sync import sync_missing_schema_objects

logging.basicConfig(
    level=getattr(logging, settings.LOG_LEVEL.upper(), logging.INFO),
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)

app = FastAPI(
    title="Team Practice 관리 시스템",
    description="팀 연습 일정과 반복 연습 시리즈를 관리하는 백엔드",
    version="1.0.0",
    docs_url="/docs",
    redoc_url="/redoc",
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.ALLOWED_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(practices.router)


@app.on_event("startup")
def ensure_schema():
    # 신규 기능 배포 시 누락된 테이블/컬럼을 자동 생성합니다.
    Base.metadata.create_all(bind=engine)
    sync_missing_schema_objects(engine, Base.metadata)


@app.get("/api/health")
def health_check():
    return {"status": "ok", "service": "Team Practice 관리 시스템"}
