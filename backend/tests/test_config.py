from pathlib import Path

import pytest
from dotenv import dotenv_values

from apksure import config

BACKEND_DIR = Path(__file__).resolve().parent.parent
PROJECT_ROOT = BACKEND_DIR.parent


def test_default_database_is_absolute_backend_path():
    default = f"sqlite:///{config.BASE_DIR / 'apksure.db'}"

    assert config.BASE_DIR == BACKEND_DIR
    assert Path(default[len("sqlite:///"):]).is_absolute()


def test_env_example_has_no_relative_sqlite_path():
    values = dotenv_values(BACKEND_DIR / ".env.example")
    url = values.get("DATABASE_URL")

    if url is not None:
        assert not url.startswith("sqlite:///./")
        assert url.startswith("sqlite:////")


def test_direct_web_imports_are_declared():
    tomllib = pytest.importorskip("tomllib")
    with open(PROJECT_ROOT / "pyproject.toml", "rb") as f:
        deps = tomllib.load(f)["project"]["dependencies"]
    names = {d.split(">")[0].split("=")[0].split("<")[0].strip().lower() for d in deps}

    for name in ("fastapi", "starlette", "pydantic", "requests", "python-dotenv", "sqlalchemy", "werkzeug"):
        assert name in names
