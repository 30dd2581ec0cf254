import pytest
from fastapi.testclient import TestClient
from sqlmodel import Session, SQLModel, create_engine
from sqlmodel.pool import StaticPool

from main import app
from quiniela.database import get_session
from quiniela.dependencies import require_admin
from quiniela.models import Season, Team, Match
from quiniela.placeholders import parse_placeholder_rule

# Create in-memory database for testing
TEST_DATABASE_URL = "sqlite:///:memory:"

engine = create_engine(
    TEST_DATABASE_URL,
    connect_args={"check_same_thread": False},
    poolclass=StaticPool,
)

@pytest.fixture(name="session")
def session_fixture():
    SQLModel.metadata.create_all(engine)
    with Session(engine) as session:
        yield session
    SQLModel.metadata.drop_all(engine)

@pytest.fixture(name="client")
def client_fixture(session: Session):
    def get_session_override():
        return session

    app.dependency_overrides[get_session] = get_session_override
    app.dependency_overrides[require_admin] = lambda: "test-token"
    client = TestClient(app)
    yield client
    app.dependency_overrides.clear()

@pytest.fixture(name="anonymous_client")
def anonymous_client_fixture(session: Session):
    """Client without the admin override, to exercise the token guard."""
    app.dependency_overrides[get_session] = lambda: session
    client = TestClient(app)
    yield client
    app.dependency_overrides.clear()


class SeasonBuilder:
    """Small helper to seed a season's teams and matches."""

    def __init__(self, session: Session, sport_slug: str = "futbol", quota=None):
        self.session = session
        self.season = Season(name=f"Test {sport_slug}", sport_slug=sport_slug, qualification_quota=quota)
        session.add(self.season)
        session.commit()
        session.refresh(self.season)
        self.teams = {}
        self.next_match = 1

    def team(self, name: str, group_code=None, code=None):
        team = Team(season_id=self.season.id, name=name, code=code or name[:3].upper(), group_code=group_code)
        self.session.add(team)
        self.session.commit()
        self.session.refresh(team)
        self.teams[name] = team
        return team

    def placeholder(self, rule: str, group_code=None):
        reference = parse_placeholder_rule(rule)
        team = Team(
            season_id=self.season.id,
            name=rule,
            code=None,
            group_code=group_code,
            is_placeholder=True,
            placeholder_rule=rule,
            placeholder_ref=reference.code if reference else None,
        )
        self.session.add(team)
        self.session.commit()
        self.session.refresh(team)
        self.teams[rule] = team
        return team

    def match(self, home, away, home_score=None, away_score=None, group_code=None,
              phase="group_stage", match_number=None, confirmed=True, advance=None):
        number = match_number if match_number is not None else self.next_match
        self.next_match = max(self.next_match, number) + 1
        match = Match(
            season_id=self.season.id,
            match_number=number,
            phase=phase,
            group_code=group_code,
            home_team_id=self.teams[home].id,
            away_team_id=self.teams[away].id,
            home_score=home_score,
            away_score=away_score,
            result_confirmed=confirmed and home_score is not None,
            advance_team_id=self.teams[advance].id if advance else None,
        )
        self.session.add(match)
        self.session.commit()
        self.session.refresh(match)
        return match

    def group(self, code: str, names, scores):
        """Seed a group; ``scores`` maps (home, away) -> (home_score, away_score)."""
        for name in names:
            self.team(name, group_code=code, code=f"{code}{name[:3].upper()}")
        for (home, away), (hs, as_) in scores.items():
            self.match(home, away, hs, as_, group_code=code)


@pytest.fixture(name="builder")
def builder_fixture(session: Session):
    return SeasonBuilder(session)


@pytest.fixture(name="make_season")
def make_season_fixture(session: Session):
    """Factory for seasons of a given sport and third-place quota."""
    def make(sport_slug="futbol", quota=None):
        return SeasonBuilder(session, sport_slug, quota)
    return make
