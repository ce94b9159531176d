import pytest

from db import engine_options, normalize_database_url


@pytest.mark.parametrize(
    "raw, expected",
    [
        ("postgres://u:p@host/quiz", "postgresql+psycopg://u:p@host/quiz"),
        ("postgresql://u:p@host/quiz", "postgresql+psycopg://u:p@host/quiz"),
        ("postgresql+psycopg://u:p@host/quiz", "postgresql+psycopg://u:p@host/quiz"),
        ("  sqlite:///./quiz.db\n", "sqlite:///./quiz.db"),
    ],
)
def test_normalize_database_url(raw, expected):
    assert normalize_database_url(raw) == expected


def test_engine_options_per_backend():
    assert engine_options("sqlite:///./quiz.db") == {"connect_args": {"check_same_thread": False}}
    assert engine_options("postgresql+psycopg://h/quiz") == {"pool_size": 5, "max_overflow": 5}
