import contextlib
import io
from dataclasses import dataclass

import pytest

from triage import config
from triage.core.models import Task
from triage.lib import ansi

T0 = 1_700_000_000_000
MINUTE = 60_000
DAY = 24 * 60 * MINUTE


def make_task(id: str, status: str = "captured", order: int = 1, **kw) -> Task:
    created = kw.pop("created_at", T0)
    return Task(
        id=id,
        title=kw.pop("title", f"task {id}"),
        status=status,  # type: ignore[arg-type]
        created_at=created,
        updated_at=kw.pop("updated_at", created),
        order=order,
        **kw,
    )


@dataclass
class CLIResult:
    exit_code: int
    stdout: str
    stderr: str


class FnCLIRunner:
    """Run triage commands in-process, capturing output."""

    def invoke(self, args: list[str]) -> CLIResult:
        from triage.cli import run

        out, err = io.StringIO(), io.StringIO()
        with contextlib.redirect_stdout(out), contextlib.redirect_stderr(err):
            try:
                code = run(args)
            except SystemExit as e:
                code = e.code if isinstance(e.code, int) else (0 if e.code is None else 1)
        return CLIResult(exit_code=code or 0, stdout=out.getvalue(), stderr=err.getvalue())


@pytest.fixture
def tmp_triage_dir(tmp_path, monkeypatch):
    triage_dir = tmp_path / ".triage"
    triage_dir.mkdir()
    monkeypatch.setattr(config, "TRIAGE_DIR", triage_dir)
    monkeypatch.setattr(config, "STATE_PATH", triage_dir / "state.json")
    monkeypatch.setattr(config, "CONFIG_PATH", triage_dir / "config.yaml")
    monkeypatch.setattr(config, "BACKUP_DIR", tmp_path / "backups")
    monkeypatch.delenv("TRIAGE_LOG_LEVEL", raising=False)
    config.Config().reload()
    ansi.use(ansi.PLAIN)
    yield triage_dir
    ansi.use(ansi.DEFAULT)
