import pytest

from tabledesk import cli
from tabledesk.model.schema import ColumnInfo


def test_format_column():
    col = ColumnInfo(name="email", data_type="character varying",
                     is_nullable=False, default=None, max_length=255,
                     position=2)
    assert cli.format_column(col) == "email: character varying(255) NOT NULL"

    pk = ColumnInfo(name="id", data_type="integer", is_nullable=False,
                    default="nextval('users_id_seq'::regclass)",
                    max_length=None, position=1, is_primary_key=True)
    assert cli.format_column(pk) == (
        "id: integer NOT NULL DEFAULT nextval('users_id_seq'::regclass) [PK]"
    )


def test_setup_admin_requires_email(monkeypatch, tmp_path):
    env = tmp_path / ".env"
    env.write_text("")
    monkeypatch.setenv("DATABASE_URL", "postgresql://u:p@localhost/db")
    monkeypatch.delenv("ADMIN_EMAIL", raising=False)
    with pytest.raises(SystemExit) as excinfo:
        cli.main(["--env-file", str(env), "setup-admin",
                  "--email", "not-an-email", "--password", "pw"])
    assert excinfo.value.code == 2


def test_missing_database_url(monkeypatch, tmp_path):
    env = tmp_path / ".env"
    env.write_text("")
    monkeypatch.delenv("DATABASE_URL", raising=False)
    with pytest.raises(RuntimeError, match="DATABASE_URL"):
        cli.main(["--env-file", str(env), "check-tables"])
