from collections.abc import Callable, Generator
from uuid import UUID

import pytest
from fastapi import FastAPI
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.engine import Engine
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool

from wsp_api.core.config import Settings
from wsp_api.core.identity import JwtIdentityProvider
from wsp_api.db.base import Base
from wsp_api.db.session import get_db
from wsp_api.main import create_app
from wsp_api.models.account import Account
from wsp_api.models.enums import AccountStatus, MembershipRole
from wsp_api.models.workspace import Membership, Profile, Workspace

TEST_SECRET = "test-secret-key-with-at-least-32-bytes!!"


@pytest.fixture
def settings() -> Settings:
    return Settings(
        auth_jwt_secret=TEST_SECRET,
        auth_jwt_algorithms="HS256",
        auth_password_hash_iterations=1000,
        rate_limit_standard_max=1000,
        rate_limit_admin_max=1000,
        rate_limit_auth_max=1000,
    )


@pytest.fixture
def engine() -> Generator[Engine, None, None]:
    engine = create_engine(
        "sqlite+pysqlite:///:memory:",
        future=True,
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(engine)
    yield engine
    engine.dispose()


@pytest.fixture
def session_factory(engine: Engine) -> sessionmaker:
    return sessionmaker(bind=engine, autoflush=False, autocommit=False, expire_on_commit=False, class_=Session)


@pytest.fixture
def db_session(session_factory: sessionmaker) -> Generator[Session, None, None]:
    session = session_factory()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture
def app(settings: Settings, session_factory: sessionmaker) -> FastAPI:
    application = create_app(settings)

    def _override_get_db() -> Generator[Session, None, None]:
        session = session_factory()
        try:
            yield session
        finally:
            session.close()

    application.dependency_overrides[get_db] = _override_get_db
    return application


@pytest.fixture
def client(app: FastAPI) -> Generator[TestClient, None, None]:
    with TestClient(app) as test_client:
        yield test_client


@pytest.fixture
def issue_token(settings: Settings) -> Callable[[Account], str]:
    provider = JwtIdentityProvider(settings)

    def _issue(account: Account) -> str:
        token, _ = provider.issue_access_token(subject=str(account.id), email=account.email, name=account.full_name)
        return token

    return _issue


def create_account(
    db: Session,
    *,
    email: str,
    full_name: str | None = None,
    is_super_admin: bool = False,
    status: str = AccountStatus.ACTIVE,
) -> Account:
    account = Account(email=email, full_name=full_name, is_super_admin=is_super_admin, status=status)
    db.add(account)
    db.commit()
    return account


def create_workspace_with_members(
    db: Session,
    *,
    owner: Account,
    name: str = "Research",
    members: dict[UUID, str] | None = None,
) -> Workspace:
    """直接落库一个工作空间：owner 为管理员，members 为 {账号 ID: 角色}。"""
    workspace = Workspace(name=name, account_id=owner.id)
    db.add(workspace)
    db.flush()
    roles = {owner.id: MembershipRole.ADMIN, **(members or {})}
    for account_id, role in roles.items():
        db.add(Membership(workspace_id=workspace.id, account_id=account_id, role=role))
        db.add(Profile(workspace_id=workspace.id, account_id=account_id, name=f"member-{str(account_id)[:8]}"))
    db.commit()
    return workspace


def auth_headers(token: str, workspace_id: UUID | str | None = None) -> dict[str, str]:
    headers = {"Authorization": f"Bearer {token}"}
    if workspace_id is not None:
        headers["x-workspace-id"] = str(workspace_id)
    return headers
