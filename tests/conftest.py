import os

os.environ.setdefault("DATABASE_URL", "sqlite://")

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine, event
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from app import models  # noqa: F401
from app.db import Base
from app.models.user import User, UserRole


@pytest.fixture()
def engine():
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )

    # pysqlite needs explicit BEGIN for SAVEPOINT to work
    @event.listens_for(engine, "connect")
    def _on_connect(dbapi_connection, connection_record):
        dbapi_connection.isolation_level = None
        cursor = dbapi_connection.cursor()
        cursor.execute("PRAGMA foreign_keys=ON")
        cursor.close()

    @event.listens_for(engine, "begin")
    def _on_begin(conn):
        conn.exec_driver_sql("BEGIN")

    Base.metadata.create_all(engine)
    yield engine
    engine.dispose()


@pytest.fixture()
def file_sessions(tmp_path):
    """Sessionmaker over a file database; each session gets its own connection."""
    engine = create_engine(f"sqlite:///{tmp_path / 'knowledge.db'}")
    Base.metadata.create_all(engine)
    yield sessionmaker(bind=engine, autoflush=False, autocommit=False)
    engine.dispose()


@pytest.fixture()
def db_session(engine):
    session = sessionmaker(bind=engine, autoflush=False, autocommit=False)()
    yield session
    session.close()


@pytest.fixture()
def make_user(db_session):
    counter = {"n": 0}

    def _make(role=UserRole.consultant, score=0, name=None, is_active=True):
        counter["n"] += 1
        n = counter["n"]
        user = User(
            name=name or f"{role.value} {n}",
            email=f"user{n}_{role.name}@example.com",
            role=role,
            score=score,
            is_active=is_active,
        )
        db_session.add(user)
        db_session.commit()
        db_session.refresh(user)
        return user

    return _make


@pytest.fixture()
def consultant(make_user):
    return make_user(UserRole.consultant, name="Casey Consultant")


@pytest.fixture()
def senior_consultant(make_user):
    return make_user(UserRole.senior_consultant, name="Sam Senior")


@pytest.fixture()
def knowledge_champion(make_user):
    return make_user(UserRole.knowledge_champion, name="Kim Champion")


@pytest.fixture()
def kgc_member(make_user):
    return make_user(UserRole.knowledge_governance_council, name="Gale Council")


@pytest.fixture()
def admin(make_user):
    return make_user(UserRole.admin, name="Ada Admin")


@pytest.fixture()
def it_user(make_user):
    return make_user(UserRole.it_infrastructure, name="Ira Infra")


@pytest.fixture()
def lifecycle():
    from app.services.kb_lifecycle import build_lifecycle

    return build_lifecycle()


@pytest.fixture()
def pending_document(db_session, consultant):
    from app.services.kb_document import knowledge_documents

    document = knowledge_documents.create(
        db_session,
        consultant.id,
        "Quarterly Finance Playbook",
        domain="Finance",
        file_urls=["/uploads/abc/playbook.pdf"],
    )
    db_session.commit()
    db_session.refresh(document)
    return document


@pytest.fixture()
def client(db_session):
    from app.api.deps import get_db
    from app.main import app

    def _override_get_db():
        yield db_session

    app.dependency_overrides[get_db] = _override_get_db
    with TestClient(app) as test_client:
        yield test_client
    app.dependency_overrides.clear()
