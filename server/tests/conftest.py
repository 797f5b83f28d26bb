import base64
import os
import tempfile
from io import BytesIO

import pytest

# Settings and the default engine are built at import time
_TMP_DIR = tempfile.mkdtemp(prefix="exam-portal-tests-")
os.environ["DATABASE_URL"] = f"sqlite:///{os.path.join(_TMP_DIR, 'app.db')}"
# Low-cost password hashing for tests
os.environ["PASSWORD_HASH_METHOD"] = "pbkdf2:sha256:1000"

from fastapi.testclient import TestClient  # noqa: E402
from PIL import Image  # noqa: E402
from sqlalchemy.orm import sessionmaker  # noqa: E402

from exam_portal.database import create_db_engine, init_db  # noqa: E402
from exam_portal.main import app  # noqa: E402
from exam_portal.services.exam_timer import AttemptManager  # noqa: E402
from exam_portal.storage import BlobStorage, ExamStore, get_store  # noqa: E402

TEACHER_LOGIN = {"username": "Admin Teacher", "password": "teacher123"}
STUDENT_LOGIN = {"roll_no": "211550001", "password": "student123"}


@pytest.fixture
def blob_storage(tmp_path):
    engine = create_db_engine(f"sqlite:///{tmp_path / 'store.db'}")
    init_db(bind=engine)
    yield BlobStorage(sessionmaker(bind=engine))
    engine.dispose()


@pytest.fixture
def store(blob_storage):
    exam_store = ExamStore(blob_storage, seed=True)
    exam_store.hydrate()
    return exam_store


@pytest.fixture
def attempts():
    return AttemptManager(tick_seconds=0.01)


@pytest.fixture
def client(store, attempts):
    previous = app.state.attempts
    app.dependency_overrides[get_store] = lambda: store
    app.state.attempts = attempts
    with TestClient(app) as test_client:
        yield test_client
    app.dependency_overrides.clear()
    app.state.attempts = previous


def auth_headers(client, path, payload):
    response = client.post(path, json=payload)
    assert response.status_code == 200, response.text
    return {"Authorization": f"Bearer {response.json()['token']}"}


@pytest.fixture
def teacher_headers(client):
    return auth_headers(client, "/login_teacher", TEACHER_LOGIN)


@pytest.fixture
def student_headers(client):
    return auth_headers(client, "/login_student", STUDENT_LOGIN)


def png_data_url(color=(200, 30, 30)) -> str:
    """Small canvas-like PNG as a data URL"""
    buffer = BytesIO()
    Image.new("RGB", (40, 30), color).save(buffer, format="PNG")
    return "data:image/png;base64," + base64.b64encode(buffer.getvalue()).decode("ascii")


def sample_exam_payload(**overrides):
    payload = {
        "title": "Physics Quiz",
        "subject": "Physics",
        "duration_minutes": 30,
        "is_active": True,
        "questions": [
            {"text": "State Newton's first law.", "difficulty": "easy"},
            {"text": "Define momentum.", "difficulty": "medium"},
            {"text": "Derive the work-energy theorem.", "difficulty": "hard"},
        ],
    }
    payload.update(overrides)
    return payload
