from sqlalchemy import create_engine
from sqlalchemy.orm import declarative_base, scoped_session, sessionmaker

from minicloud import config

# 데이터베이스 연결 문자열은 MINICLOUD_DB_URL 환경 변수로 지정합니다. (기본값: SQLite 파일)
SQLALCHEMY_DATABASE_URL = config.DATABASE_URL


def make_engine(url: str = SQLALCHEMY_DATABASE_URL, **kwargs):
    """URL에 맞는 엔진을 생성합니다. SQLite는 워커 스레드에서도 같은 연결을 쓰도록 check_same_thread를 끕니다."""
    if url.startswith("sqlite"):
        if url.startswith("sqlite:///") and not url.startswith("sqlite:///:memory:"):
            from pathlib import Path
            Path(url[len("sqlite:///"):]).parent.mkdir(parents=True, exist_ok=True)
        kwargs.setdefault("connect_args", {"check_same_thread": False})
    return create_engine(url, **kwargs)


engine = make_engine()

# 요청 스레드와 백그라운드 워커 스레드가 각자 세션을 갖도록 scoped_session 을 사용합니다.
# autocommit=False, autoflush=False 이므로 리포지토리가 명시적으로 commit 해야 DB에 반영됩니다.
SessionLocal = scoped_session(sessionmaker(autocommit=False, autoflush=False, bind=engine))

# 모든 모델 클래스가 상속받을 Base 클래스
Base = declarative_base()
