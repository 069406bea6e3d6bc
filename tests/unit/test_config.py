from triage import config


def _write_config(text: str) -> None:
    config.CONFIG_PATH.write_text(text)
    config.Config().reload()


def test_defaults(tmp_triage_dir):
    assert config.get_log_level() == "WARNING"
    assert config.get_backup_keep() == 7
    assert config.get_stale_days() == (30, 60)
    assert config.get_watch_interval() == 1.0


def test_values_from_yaml(tmp_triage_dir):
    _write_config("log_level: debug\nbackup_keep: 3\nstale_deferred_days: 90\nwatch_interval: 0.5\n")

    assert config.get_log_level() == "DEBUG"
    assert config.get_backup_keep() == 3
    assert config.get_stale_days() == (30, 90)
    assert config.get_watch_interval() == 0.5


def test_env_overrides_log_level(tmp_triage_dir, monkeypatch):
    _write_config("log_level: info\n")
    monkeypatch.setenv("TRIAGE_LOG_LEVEL", "error")

    assert config.get_log_level() == "ERROR"


def test_invalid_values_fall_back(tmp_triage_dir):
    _write_config("log_level: loud\nbackup_keep: -2\nwatch_interval: fast\n")

    assert config.get_log_level() == "WARNING"
    assert config.get_backup_keep() == 7
    assert config.get_watch_interval() == 1.0


def test_broken_yaml_is_ignored(tmp_triage_dir):
    _write_config("key: [unclosed\n")

    assert config.get_backup_keep() == 7
