"""数据库会话管理。"""

from collections.abc import Generator, Iterator
from contextlib import contextmanager
import logging

from sqlalchemy import create_engine
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session, sessionmaker

from wsp_api.core.config import get_settings
from wsp_api.exceptions import HttpErrors

logger = logging.getLogger("wsp_api.db")

settings = get_settings()

# 进程级共享连接池，开启连接预检查以减少僵尸连接影响。
engine = create_engine(settings.database_url, future=True, pool_pre_ping=True)
SessionLocal = sessionmaker(bind=engine, autoflush=False, autocommit=False, expire_on_commit=False, class_=Session)


def get_db() -> Generator[Session, None, None]:
    """为每个请求提供独立数据库会话。"""
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


@contextmanager
def transaction(db: Session) -> Iterator[Session]:
    """在单个事务内完成多行写入，全部成功才提交。

    - 唯一约束冲突映射为 CONFLICT。
    - 其他数据库异常映射为 DATABASE_ERROR。
    - 业务异常原样抛出，事务同样回滚。
    """
    try:
        yield db
        db.commit()
    except IntegrityError as exc:
        db.rollback()
        logger.warning("transaction rolled back on integrity error: %s", exc.orig)
        raise HttpErrors.Conflict("Resource already exists") from exc
    except SQLAlchemyError as exc:
        db.rollback()
        logger.exception("transaction rolled back on database error")
        raise HttpErrors.DatabaseError() from exc
    except Exception:
        db.rollback()
        raise
