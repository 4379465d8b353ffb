
import os
import logging
from contextlib import contextmanager
from sqlalchemy import create_engine
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import scoped_session, sessionmaker, declarative_base
from circulation.configs import DB_URI, DB_PATH, DEBUG
from circulation.core.exceptions import CirculationError, DatabaseError

logger = logging.getLogger(__name__)

engine_kwargs = {'echo': DEBUG}
if DB_URI.startswith('sqlite'):
    # Callers run on their own threads; each thread gets its own scoped session
    engine_kwargs['connect_args'] = {'check_same_thread': False}
else:
    engine_kwargs['client_encoding'] = 'utf8'
engine = create_engine(DB_URI, **engine_kwargs)
session = scoped_session(sessionmaker(
    bind=engine, autocommit=False, autoflush=False))

class CirculationBase:
    @classmethod
    def get_many(cls, offset=None, limit=None):
        return session.query(cls).offset(offset).limit(limit).all()

Base = declarative_base(cls=CirculationBase)

@contextmanager
def transaction():
    """Scope for one all-or-nothing logical operation.

    Everything written through `session` inside the block is committed
    together when the block exits normally. Any exception rolls all of it
    back and propagates; storage failures surface as `DatabaseError`.
    """
    try:
        yield session
        session.commit()
    except CirculationError as e:
        session.rollback()
        logger.warning(f"Transaction rolled back ({e.kind}): {e}")
        raise
    except SQLAlchemyError as e:
        session.rollback()
        logger.error(f"Transaction rolled back, storage failure: {e}")
        raise DatabaseError(f"Storage failure: {e}") from e
    except Exception:
        session.rollback()
        logger.exception("Transaction rolled back after unexpected error")
        raise

def init():
    try:
        if DB_PATH:
            os.makedirs(os.path.dirname(DB_PATH), exist_ok=True)
        Base.metadata.create_all(bind=engine)
        return session
    except Exception as e:
        logger.warning(f"[WARNING] Database initialization failed: {e}")
