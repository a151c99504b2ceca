from unittest.mock import patch

import pytest

from apksure import cli
from apksure.client import AuthError, AuthSession
from apksure.db import SessionLocal, User
from apksure.workflow import AppDetails


@pytest.mark.parametrize("size,expected", [
    (0, "0 Bytes"),
    (512, "512 Bytes"),
    (1024, "1 KB"),
    (1536, "1.5 KB"),
    (10 * 1024 * 1024, "10 MB"),
    (int(2.25 * 1024 ** 3), "2.25 GB"),
    (5 * 1024 ** 5, "5120 TB"),
])
def test_format_bytes(size, expected):
    assert cli.format_bytes(size) == expected


def test_render_app_details():
    text = cli.render_app_details(AppDetails("Foo", "com.foo", "1.0", 1, "abc123"))

    assert "Name:    Foo" in text
    assert "Package: com.foo" in text
    assert "Version: 1.0 (1)" in text
    assert "SHA256:  abc123" in text


def test_create_user_command(database, capsys):
    with patch.object(cli, "getpass") as mock_getpass, patch("apksure.db.init_engine"):
        mock_getpass.getpass.return_value = "hunter22"
        assert cli.main(["create-user", "New@Example.com"]) == 0

    assert "[OK] Created user new@example.com" in capsys.readouterr().out
    session = SessionLocal()
    try:
        assert session.query(User).filter(User.email == "new@example.com").count() == 1
    finally:
        session.close()


def test_create_user_command_rejects_short_password(database, capsys):
    with patch("apksure.db.init_engine"):
        assert cli.main(["create-user", "new@example.com", "--password", "abc"]) == 1
    assert "[FAIL]" in capsys.readouterr().out


def test_analyze_missing_file(tmp_path, capsys):
    rc = cli.main(["analyze", str(tmp_path / "missing.apk"), "--email", "a@b.com", "--password", "x"])

    assert rc == 1
    assert "not found" in capsys.readouterr().out


@patch("apksure.cli.ApiClient")
def test_analyze_login_failure(mock_client_cls, tmp_path, capsys):
    apk = tmp_path / "app.apk"
    apk.write_bytes(b"PK")
    mock_client_cls.return_value.signin.side_effect = AuthError("Invalid credentials.", status_code=401)

    rc = cli.main(["analyze", str(apk), "--email", "a@b.com", "--password", "x"])

    assert rc == 1
    assert "Login failed: Invalid credentials." in capsys.readouterr().out


@patch("apksure.cli.ApiClient")
def test_analyze_end_to_end(mock_client_cls, tmp_path, capsys):
    apk = tmp_path / "app.apk"
    apk.write_bytes(b"PK" * 100)
    api = mock_client_cls.return_value
    api.signin.return_value = AuthSession(email="a@b.com", token="tok")
    api.upload.return_value = "job-1"
    api.result.side_effect = [
        {"status": "pending"},
        {"status": "complete", "result": {"app": {
            "name": "Foo", "package": "com.foo", "version_name": "1.0",
            "version_code": 1, "apk_sha256": "abc123",
        }}},
    ]

    rc = cli.main(["analyze", str(apk), "--email", "a@b.com", "--password", "x", "--interval", "0.01"])

    out = capsys.readouterr().out
    assert rc == 0
    assert "app.apk (200 Bytes)" in out
    assert "Version: 1.0 (1)" in out
    api.signout.assert_called_once()
