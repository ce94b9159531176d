import os
import tempfile

# Point the app at a throwaway database before anything imports db.py
_TMP_DIR = tempfile.mkdtemp(prefix="quiz-tests-")
os.environ["DATABASE_URL"] = f"sqlite:///{os.path.join(_TMP_DIR, 'test.db')}"
os.environ.setdefault("ADMIN_TOKEN", "secret")
os.environ.setdefault("QUIZ_API_KEY", "client-key")

import pytest  # noqa: E402

import models  # noqa: E402,F401
from db import Base, SessionLocal, engine  # noqa: E402


@pytest.fixture(scope="session", autouse=True)
def _schema():
    Base.metadata.create_all(engine)
    yield
    Base.metadata.drop_all(engine)


@pytest.fixture(autouse=True)
def _clean_tables(_schema):
    with engine.begin() as conn:
        for table in reversed(Base.metadata.sorted_tables):
            conn.execute(table.delete())
    yield


@pytest.fixture
def seed_questions():
    """Insert question rows; each kwarg dict overrides the defaults."""

    def _seed(*rows):
        with SessionLocal() as db:
            for i, r in enumerate(rows):
                data = {
                    "text": f"Question {r['id']}?",
                    "options": ["A", "B", "C", "D"],
                    "correct_answer": 0,
                    "category": "General",
                    "created_at": i + 1,
                }
                data.update(r)
                db.add(models.Question(**data))
            db.commit()

    return _seed
