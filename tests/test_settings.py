import sys

from loguru import logger

from periodization.config.settings import Settings, get_database_url
from periodization.core.logger import configure_from_settings, setup_logger


def test_defaults():
    config = Settings()

    assert config.collector_timeout_s == 30.0
    assert config.load.ctl_time_constant_days == 42.0
    assert config.deload.max_days_without_deload == 42
    assert config.evaluator.progress_tolerance == 15.0


def test_log_level_is_normalized(monkeypatch):
    monkeypatch.setenv("PERIODIZATION_LOG_LEVEL", "debug")

    assert Settings().log_level == "DEBUG"


def test_invalid_log_level_falls_back_to_info(monkeypatch):
    monkeypatch.setenv("PERIODIZATION_LOG_LEVEL", "verbose")

    assert Settings().log_level == "INFO"


def test_non_positive_timeout_falls_back_to_default(monkeypatch):
    monkeypatch.setenv("PERIODIZATION_COLLECTOR_TIMEOUT_S", "-1")

    assert Settings().collector_timeout_s == 30.0


def test_nested_thresholds_from_environment(monkeypatch):
    monkeypatch.setenv("PERIODIZATION_DELOAD__TSB_THRESHOLD", "-20")
    monkeypatch.setenv("PERIODIZATION_EVALUATOR__LOW_COMPLIANCE", "0.75")

    config = Settings()

    assert config.deload.tsb_threshold == -20.0
    assert config.evaluator.low_compliance == 0.75
    assert config.deload.severe_tsb_threshold == -25.0


def test_database_url_from_environment(monkeypatch):
    monkeypatch.setenv("PERIODIZATION_DATABASE_URL", "postgresql://coach@localhost/plans")

    assert get_database_url() == "postgresql://coach@localhost/plans"


def test_database_url_defaults_to_local_sqlite(monkeypatch):
    monkeypatch.delenv("PERIODIZATION_DATABASE_URL", raising=False)

    url = get_database_url()

    assert url.startswith("sqlite:///")
    assert url.endswith("periodization.db")


def test_setup_logger_writes_to_file(tmp_path):
    log_file = tmp_path / "logs" / "engine.log"

    setup_logger(level="DEBUG", log_file=str(log_file))
    logger.debug("evaluation finished")
    logger.remove()
    logger.add(sys.stderr, level="WARNING")

    content = log_file.read_text()
    assert "Logger initialized with level=DEBUG" in content
    assert "evaluation finished" in content


def test_configure_from_settings_uses_configured_level(monkeypatch, capsys):
    monkeypatch.setattr("periodization.config.settings.settings.log_level", "ERROR")
    monkeypatch.setattr("periodization.config.settings.settings.log_file", None)

    configure_from_settings()
    logger.warning("below threshold")
    logger.error("plan store unreachable")

    err = capsys.readouterr().err
    assert "plan store unreachable" in err
    assert "below threshold" not in err
