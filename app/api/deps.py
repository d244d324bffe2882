from fastapi import Request

from app.db import SessionLocal
from app.services.kb_lifecycle import DocumentLifecycle


def get_db():
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


def get_lifecycle(request: Request) -> DocumentLifecycle:
    return request.app.state.lifecycle
