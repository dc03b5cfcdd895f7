from sqlalchemy.orm import Session

from brandguard.db.base import SessionLocal


def get_session():
    session: Session = SessionLocal()
    try:
        yield session
    finally:
        session.close()
