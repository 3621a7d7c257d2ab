from sqlalchemy import create_engine
from sqlalchemy.orm import declarative_base, sessionmaker

from . import config


def _engine_for(url: str):
    connect_args = {"check_same_thread": False} if url.startswith("sqlite") else {}
    return create_engine(url, connect_args=connect_args)


# 1) Academic store: enrollments, course links, invitations, sessions
academic_engine = _engine_for(config.ACADEMIC_DATABASE_URL)
AcademicSessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=academic_engine)

# 2) Room store: rooms and everything hanging off them
rooms_engine = _engine_for(config.ROOMS_DATABASE_URL)
RoomsSessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=rooms_engine)

# 3) One declarative base per store so each metadata maps to its own engine
AcademicBase = declarative_base()
RoomsBase = declarative_base()


def init_db():
    from . import models  # noqa: F401

    AcademicBase.metadata.create_all(bind=academic_engine)
    RoomsBase.metadata.create_all(bind=rooms_engine)


def get_academic_db():
    db = AcademicSessionLocal()
    try:
        yield db
    finally:
        db.close()


def get_rooms_db():
    db = RoomsSessionLocal()
    try:
        yield db
    finally:
        db.close()
