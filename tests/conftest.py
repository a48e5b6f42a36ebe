import pytest
import os
import sys
from pathlib import Path
from types import SimpleNamespace

# Add project root to Python path
project_root = Path(__file__).parent.parent
sys.path.insert(0, str(project_root))

# Set test environment variables before the app reads its settings
os.environ["NODE_ENV"] = "test"
os.environ["SQLALCHEMY_TEST_DATABASE_URL"] = "sqlite:///./test.db"
os.environ["SESSION_SECRET"] = "test-session-secret"
os.environ["AUDIO_ANALYSIS_URL"] = "http://audio.test"
os.environ["AUDIO_ANALYSIS_API_KEY"] = "test-audio-key"
os.environ["LOG_LEVEL"] = "WARNING"

from sqlalchemy.orm import sessionmaker
from fastapi.testclient import TestClient

from app import app
from db import engine, get_db
from models import Base, Language, SchoolClass, User, UserClass, UserRole
from schemas import AssignmentCreateRequest
from utils.assignments import create_assignment
from utils.auth import hash_password, session_manager

TEST_PASSWORD = "correct-horse-battery"


@pytest.fixture(scope="session")
def test_engine():
    """Create test database engine"""
    Base.metadata.create_all(bind=engine)
    yield engine
    # Cleanup
    Base.metadata.drop_all(bind=engine)
    engine.dispose()
    try:
        os.remove("./test.db")
    except FileNotFoundError:
        pass


@pytest.fixture(scope="function")
def test_db(test_engine):
    """Create test database session"""
    TestingSessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=test_engine)

    # Create fresh session for each test
    session = TestingSessionLocal()

    yield session

    # Cleanup after each test
    session.close()
    # Clear all tables
    with test_engine.begin() as connection:
        for table in reversed(Base.metadata.sorted_tables):
            connection.execute(table.delete())


@pytest.fixture(scope="function")
def client(test_db):
    """Create test client with test database"""

    def override_get_db():
        yield test_db

    app.dependency_overrides[get_db] = override_get_db

    with TestClient(app) as test_client:
        yield test_client

    # Clean up dependency override
    app.dependency_overrides.clear()


@pytest.fixture
def seed(test_db):
    """
    A small school:

    - class_a: alice and bob (students) plus the teacher
    - class_b: dave (student)
    - carol: a student in no class, reachable only through individual links
    """
    english = Language(language="ENGLISH", code="en-US")
    admin = User(username="admin", role=UserRole.ADMIN, confirmed=True)
    teacher = User(
        username="teacher", email="teacher@example.com", role=UserRole.TEACHER, password=hash_password(TEST_PASSWORD)
    )
    other_teacher = User(username="other_teacher", role=UserRole.TEACHER)
    alice = User(username="alice", role=UserRole.STUDENT)
    bob = User(username="bob", role=UserRole.STUDENT)
    carol = User(username="carol", role=UserRole.STUDENT)
    dave = User(username="dave", role=UserRole.STUDENT)
    class_a = SchoolClass(name="Class A")
    class_b = SchoolClass(name="Class B")
    test_db.add_all([english, admin, teacher, other_teacher, alice, bob, carol, dave, class_a, class_b])
    test_db.flush()

    test_db.add_all(
        [
            UserClass(user_id=alice.id, class_id=class_a.id),
            UserClass(user_id=bob.id, class_id=class_a.id),
            UserClass(user_id=teacher.id, class_id=class_a.id),
            UserClass(user_id=dave.id, class_id=class_b.id),
        ]
    )
    test_db.commit()

    return SimpleNamespace(
        english=english,
        admin=admin,
        teacher=teacher,
        other_teacher=other_teacher,
        alice=alice,
        bob=bob,
        carol=carol,
        dave=dave,
        class_a=class_a,
        class_b=class_b,
    )


@pytest.fixture
def auth_headers():
    """Bearer headers carrying a session token for the given user"""

    def _headers(user):
        token = session_manager.create_session_token(user)
        return {"Authorization": f"Bearer {token}"}

    return _headers


@pytest.fixture
def make_assignment(test_db, seed):
    """Create a standard assignment through the service layer"""

    def _make(
        questions: int = 2,
        teacher=None,
        class_ids=None,
        student_ids=None,
        **fields,
    ):
        payload = {
            "topic": fields.pop("topic", "Present Simple"),
            "type": fields.pop("type", "CLASS"),
            "classIds": [seed.class_a.id] if class_ids is None else class_ids,
            "studentIds": [seed.carol.id] if student_ids is None else student_ids,
            "evaluationSettings": {"type": "CUSTOM"},
            "questions": [
                {"textQuestion": f"Question {index + 1}", "textAnswer": f"Answer {index + 1}"}
                for index in range(questions)
            ],
            **fields,
        }
        return create_assignment(test_db, teacher or seed.teacher, AssignmentCreateRequest(**payload))

    return _make


@pytest.fixture
def sample_assignment_payload(seed):
    """Sample standard assignment payload for API tests"""
    return {
        "topic": "Irregular verbs",
        "type": "CLASS",
        "classIds": [seed.class_a.id],
        "studentIds": [seed.carol.id],
        "color": "#3B82F6",
        "evaluationSettings": {"type": "CUSTOM", "customPrompt": "Be kind"},
        "questions": [
            {"textQuestion": "Past of go?", "textAnswer": "went"},
            {"textQuestion": "Past of see?", "textAnswer": "saw"},
        ],
    }


@pytest.fixture
def teacher_password():
    """Plain text password of the seeded teacher"""
    return TEST_PASSWORD
