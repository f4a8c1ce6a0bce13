from collections.abc import Iterator

from sqlalchemy.orm import Session

from stockbook.db.session import SessionLocal


def get_db() -> Iterator[Session]:
    # One session per request; anything not committed by the router is rolled back on close.
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()
