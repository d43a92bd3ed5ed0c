from hireflow.config import load_config


def test_load_config_from_env_file(monkeypatch, tmp_path):
    cfg_file = tmp_path / "cfg.yaml"
    cfg_file.write_text(
        """
transport:
  backend: redis
  redis:
    host: queue.internal
worker:
  concurrency: 2
scheduler:
  poll_interval: 5
slack:
  webhook_url: https://hooks.slack.test/abc
"""
    )
    monkeypatch.setenv("HIREFLOW_CONFIG", str(cfg_file))
    monkeypatch.delenv("HIREFLOW_DATABASE_URL", raising=False)
    monkeypatch.delenv("DATABASE_URL", raising=False)
    cfg = load_config()
    assert cfg.transport.backend == "redis"
    assert cfg.transport.redis.host == "queue.internal"
    assert cfg.worker.concurrency == 2
    assert cfg.scheduler.poll_interval == 5
    assert cfg.slack.webhook_url == "https://hooks.slack.test/abc"
    assert cfg.database_url is None


def test_defaults_when_file_missing(monkeypatch, tmp_path):
    monkeypatch.setenv("HIREFLOW_CONFIG", str(tmp_path / "absent.yaml"))
    monkeypatch.delenv("HIREFLOW_DATABASE_URL", raising=False)
    monkeypatch.delenv("DATABASE_URL", raising=False)
    monkeypatch.delenv("HIREFLOW_LOG_LEVEL", raising=False)
    cfg = load_config()
    assert cfg.transport.backend == "inmemory"
    assert cfg.worker.topic == "workflow-executions"
    assert cfg.log_level == "INFO"


def test_env_overrides(monkeypatch, tmp_path):
    cfg_file = tmp_path / "cfg.yaml"
    cfg_file.write_text("database_url: sqlite:///tmp/file.db\n")
    monkeypatch.setenv("HIREFLOW_DATABASE_URL", "postgresql://db/hireflow")
    monkeypatch.setenv("HIREFLOW_LOG_LEVEL", "debug")
    cfg = load_config(str(cfg_file))
    assert cfg.database_url == "postgresql://db/hireflow"
    assert cfg.log_level == "DEBUG"
