from __future__ import annotations

from collections.abc import Callable, Generator
from pathlib import Path

import pytest
from fastapi.testclient import TestClient
from sqlalchemy.engine import Engine
from sqlalchemy.pool import StaticPool
from sqlmodel import Session, SQLModel, create_engine

import mycine.models.achievements  # noqa: F401
import mycine.models.challenges  # noqa: F401
import mycine.models.moderation  # noqa: F401
import mycine.models.titles  # noqa: F401
import mycine.models.users  # noqa: F401
import mycine.models.xp  # noqa: F401
from mycine.core.db import enable_sqlite_savepoints, get_session
from mycine.models.achievements import Achievement, RequirementType
from mycine.models.challenges import Challenge, ChallengeType
from mycine.models.titles import Category, Title, TitleCategory, TitleType
from mycine.models.users import AppRole, UserRole


def _build_engine(url: str, **kwargs) -> Engine:
    engine = create_engine(url, connect_args={"check_same_thread": False}, **kwargs)
    enable_sqlite_savepoints(engine)
    SQLModel.metadata.create_all(engine)
    return engine


@pytest.fixture()
def engine() -> Generator[Engine, None, None]:
    engine = _build_engine("sqlite://", poolclass=StaticPool)
    yield engine
    engine.dispose()


@pytest.fixture()
def file_engine(tmp_path: Path) -> Generator[Engine, None, None]:
    """A file-backed engine so separate sessions get separate connections."""

    engine = _build_engine(f"sqlite:///{tmp_path / 'mycine-test.db'}")
    yield engine
    engine.dispose()


@pytest.fixture()
def session(engine: Engine) -> Generator[Session, None, None]:
    with Session(engine) as session:
        yield session


@pytest.fixture()
def client(engine: Engine) -> Generator[TestClient, None, None]:
    from mycine.main import app

    def get_session_override() -> Generator[Session, None, None]:
        with Session(engine) as session:
            yield session

    app.dependency_overrides[get_session] = get_session_override
    with TestClient(app) as client:
        yield client
    app.dependency_overrides.clear()


@pytest.fixture()
def make_title() -> Callable[..., Title]:
    def _make(session: Session, name: str, categories: tuple[str, ...] = ()) -> Title:
        title = Title(name=name, type=TitleType.MOVIE, release_year=2020)
        session.add(title)
        session.flush()
        for category_name in categories:
            category = Category(name=category_name)
            session.add(category)
            session.flush()
            session.add(TitleCategory(title_id=title.id, category_id=category.id))
        session.flush()
        return title

    return _make


@pytest.fixture()
def make_challenge() -> Callable[..., Challenge]:
    def _make(
        session: Session,
        challenge_type: ChallengeType = ChallengeType.UNIQUE,
        target_value: int = 5,
        xp_reward: int = 100,
        **kwargs,
    ) -> Challenge:
        challenge = Challenge(
            name=kwargs.pop("name", f"{challenge_type.value} challenge"),
            type=challenge_type,
            target_value=target_value,
            xp_reward=xp_reward,
            **kwargs,
        )
        session.add(challenge)
        session.flush()
        return challenge

    return _make


@pytest.fixture()
def make_achievement() -> Callable[..., Achievement]:
    def _make(
        session: Session,
        code: str,
        requirement_type: RequirementType,
        requirement_value: int,
        xp_reward: int = 50,
        is_active: bool = True,
    ) -> Achievement:
        achievement = Achievement(
            code=code,
            name=code.replace("_", " ").title(),
            requirement_type=requirement_type,
            requirement_value=requirement_value,
            xp_reward=xp_reward,
            is_active=is_active,
        )
        session.add(achievement)
        session.flush()
        return achievement

    return _make


@pytest.fixture()
def grant_admin() -> Callable[[Session, str], None]:
    def _grant(session: Session, user_id: str) -> None:
        session.add(UserRole(user_id=user_id, role=AppRole.ADMIN))
        session.flush()

    return _grant
