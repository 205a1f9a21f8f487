"""End-to-end tests for the command line interface."""

import pytest

from pocketbook.cli.main import cli


@pytest.fixture(autouse=True)
def clean_env(monkeypatch):
    for name in (
        "POCKETBOOK_DB_PATH",
        "POCKETBOOK_REMOTE_URL",
        "POCKETBOOK_OWNER_ID",
        "POCKETBOOK_MAX_ATTEMPTS",
        "POCKETBOOK_TOMBSTONE_RETENTION_DAYS",
    ):
        monkeypatch.delenv(name, raising=False)


@pytest.fixture
def run(cli_runner, db_path):
    """Invoke the CLI against the test database."""

    def invoke(*args, remote_url=None, input=None):
        options = ["--db-path", db_path]
        if remote_url:
            options += ["--remote-url", remote_url]
        return cli_runner.invoke(cli, options + list(args), input=input)

    return invoke


def _created_id(output):
    # "Created record <id>: ..." / "Created member 'X' (ID: <id>)"
    if "ID:" in output:
        return output.split("ID:")[1].strip().rstrip(")")
    return output.split("Created record ")[1].split(":")[0]


def test_help_does_not_touch_database(cli_runner, db_path):
    result = cli_runner.invoke(cli, ["--db-path", db_path, "--help"])
    assert result.exit_code == 0
    assert "member" in result.output
    assert "sync" in result.output


def test_member_lifecycle(run):
    result = run("member", "add", "beto")
    assert result.exit_code == 0
    assert "Created member 'BETO'" in result.output

    result = run("member", "add", "Beto")
    assert result.exit_code == 1
    assert "already exists" in result.output

    result = run("member", "rename", "beto", "Roberto")
    assert result.exit_code == 0
    assert "Renamed member 'BETO' to 'ROBERTO'" in result.output

    result = run("member", "list")
    assert "ROBERTO" in result.output

    result = run("member", "delete", "roberto", input="n\n")
    assert "Deletion cancelled." in result.output

    result = run("member", "delete", "roberto", "--yes")
    assert result.exit_code == 0
    assert "No members found." in run("member", "list").output


def test_protected_member_cannot_be_renamed(run):
    run("member", "add", "Casa", "--protected")

    result = run("member", "rename", "casa", "Hogar")

    assert result.exit_code == 1
    assert "protected" in result.output
    assert "[protected]" in run("member", "list").output


def test_unknown_member(run):
    result = run("member", "delete", "nadie", "--yes")
    assert result.exit_code == 1
    assert "Member 'nadie' not found" in result.output


def test_reason_commands(run):
    run("reason", "add", "Renta")
    run("reason", "add", "Comida", "--quick")

    result = run("reason", "list", "--quick-only")
    assert "COMIDA" in result.output
    assert "RENTA" not in result.output

    result = run("reason", "update", "renta", "--quick")
    assert result.exit_code == 0
    assert "RENTA" in run("reason", "list", "--quick-only").output

    result = run("reason", "update", "renta")
    assert result.exit_code == 1
    assert "Nothing to update" in result.output


def test_record_add_list_edit_delete(run):
    run("member", "add", "Beto")
    run("reason", "add", "Renta")

    result = run(
        "record", "add",
        "--date", "01/06/2024",
        "--member", "beto",
        "--reason", "renta",
        "--type", "expense",
        "--amount", "200",
        "--description", "Pago junio",
    )
    assert result.exit_code == 0
    assert "01/06/2024 -200.00" in result.output
    record_id = _created_id(result.output)

    result = run("record", "list", "--filter", "member", "-q", "bet")
    assert "-200.00" in result.output
    assert "Pago junio" in result.output
    assert "page 1 of 1, 1 total" in result.output

    result = run("record", "edit", record_id, "--type", "ingresos")
    assert result.exit_code == 0
    assert "200.00" in result.output
    assert "-200.00" not in result.output

    assert "01/06/2024  1" in run("record", "dates").output

    result = run("record", "delete", record_id, "--yes")
    assert result.exit_code == 0
    assert "No records found." in run("record", "list").output


def test_record_add_validation(run):
    run("member", "add", "Beto")
    run("reason", "add", "Renta")
    args = ["record", "add", "--member", "Beto", "--reason", "Renta", "--type", "gastos"]

    result = run(*args, "--amount", "0")
    assert result.exit_code == 1
    assert "non-zero" in result.output

    result = run(*args, "--amount", "abc")
    assert result.exit_code == 1
    assert "Invalid amount" in result.output

    result = run(*args, "--amount", "5", "--date", "not a date")
    assert result.exit_code == 1
    assert "Invalid date" in result.output


def test_record_list_rejects_period_with_bounds(run):
    result = run("record", "list", "--period", "this-month", "--from", "01/06/2024")
    assert result.exit_code == 1
    assert "cannot be combined" in result.output


def test_member_import_and_export(run, tmp_path):
    source = tmp_path / "integrantes.csv"
    source.write_text("nombre,isprotected\nAna,true\nBeto,false\nana,false\n", encoding="utf-8")

    result = run("member", "import", str(source))
    assert result.exit_code == 0
    assert "Imported 2 members (1 skipped, 0 removed)" in result.output

    result = run("member", "export")
    assert result.output == 'nombre,isprotected\n"ANA",true\n"BETO",false\n'

    target = tmp_path / "out.csv"
    run("member", "export", "-o", str(target))
    assert target.read_text(encoding="utf-8").startswith("nombre,isprotected\n")


def test_record_import_reports_every_problem(run, tmp_path):
    run("member", "add", "Beto")
    run("reason", "add", "Renta")
    source = tmp_path / "registros.csv"
    source.write_text(
        "fecha,integranteNombre,movimiento,razonDescripcion,descripcion,monto\n"
        "01/06/2024,Beto,GASTOS,Renta,,10\n"
        "01/06/2024,Nadie,GASTOS,Renta,,10\n"
        "01/06/2024,Beto,LOTERIA,Renta,,10\n",
        encoding="utf-8",
    )

    result = run("record", "import", str(source))

    assert result.exit_code == 1
    assert "import failed with 2 problems" in result.output
    assert "Line 3" in result.output
    assert "Line 4" in result.output
    assert "No records found." in run("record", "list").output


def test_sync_requires_remote(run):
    result = run("sync", "run")
    assert result.exit_code == 1
    assert "No remote store configured" in result.output


def test_sync_run_and_status(run, tmp_path):
    remote_url = f"sqlite:///{tmp_path / 'remote.db'}"
    run("member", "add", "Beto")
    run("reason", "add", "Renta")

    result = run("sync", "status")
    assert "Remote store:    not configured" in result.output
    assert "Pending changes: 2" in result.output
    assert "never synced" in result.output

    result = run("sync", "run", remote_url=remote_url)
    assert result.exit_code == 0
    assert "Sync success: pushed 2, pulled 2" in result.output

    result = run("sync", "status", remote_url=remote_url)
    assert "Remote store:    configured" in result.output
    assert "Pending changes: 0" in result.output
    assert "never synced" not in result.output

    result = run("sync", "run", remote_url=remote_url)
    assert "pushed 0, pulled 0, merged 0" in result.output


def test_sync_status_reports_configured_memory_remote(run):
    result = run("sync", "status", remote_url="memory://")

    assert result.exit_code == 0
    assert "Remote store:    configured" in result.output


def test_sync_requeue_and_compact(run):
    assert "Requeued 0 operations" in run("sync", "requeue").output
    result = run("sync", "compact", "--retention-days", "0")
    assert result.exit_code == 0
    assert "Removed 0 tombstones" in result.output
