"""Tests for configuration loading."""

from flowrun import RunEngine
from flowrun.config import load_config
from flowrun.contracts import AgentTaskStep
from flowrun.transports import get_transport
from flowrun.transports.redis import RedisTransport


def test_load_config_from_env(tmp_path, monkeypatch):
    config_path = tmp_path / "config.yaml"
    config_path.write_text(
        """
transport:
  backend: redis
  redis:
    host: testhost
    port: 1234
scheduler:
  timezone: Europe/Berlin
  interval_seconds: 30
executor:
  model: test
agents:
  - id: writer
    name: Writer
    skills: [blog-post]
"""
    )
    monkeypatch.setenv("FLOWRUN_CONFIG", str(config_path))
    monkeypatch.delenv("FLOWRUN_DATABASE_URL", raising=False)
    monkeypatch.delenv("DATABASE_URL", raising=False)

    config = load_config()
    assert config.transport.backend == "redis"
    assert config.transport.redis.host == "testhost"
    assert config.transport.redis.port == 1234
    assert config.scheduler.timezone == "Europe/Berlin"
    assert config.scheduler.interval_seconds == 30
    assert config.executor.model == "test"
    assert config.agents[0].skills == ["blog-post"]
    assert config.database_url is None


def test_database_url_env_overrides_file(tmp_path, monkeypatch):
    config_path = tmp_path / "config.yaml"
    config_path.write_text("database_url: sqlite:///from-file.db\n")
    monkeypatch.setenv("FLOWRUN_CONFIG", str(config_path))
    monkeypatch.setenv("FLOWRUN_DATABASE_URL", "sqlite:///from-env.db")

    assert load_config().database_url == "sqlite:///from-env.db"


def test_missing_file_gives_defaults(tmp_path, monkeypatch):
    monkeypatch.delenv("FLOWRUN_DATABASE_URL", raising=False)
    monkeypatch.delenv("DATABASE_URL", raising=False)

    config = load_config(str(tmp_path / "nope.yaml"))
    assert config.transport.backend == "inmemory"
    assert config.scheduler.timezone == "UTC"
    assert config.agents == []


def test_get_transport_uses_config(tmp_path, monkeypatch):
    config_path = tmp_path / "config.yaml"
    config_path.write_text(
        """
transport:
  backend: redis
  redis:
    host: confighost
    port: 6380
"""
    )
    monkeypatch.setenv("FLOWRUN_CONFIG", str(config_path))
    monkeypatch.delenv("FLOWRUN_TRANSPORT", raising=False)

    transport = get_transport()
    assert isinstance(transport, RedisTransport)
    assert transport.config.host == "confighost"
    assert transport.config.port == 6380


def test_engine_from_config_registers_configured_agents(tmp_path, monkeypatch, store, executor):
    config_path = tmp_path / "config.yaml"
    config_path.write_text(
        """
agents:
  - id: researcher
    name: Researcher
    capabilities: [web-research]
"""
    )
    monkeypatch.setenv("FLOWRUN_CONFIG", str(config_path))
    monkeypatch.delenv("FLOWRUN_TRANSPORT", raising=False)

    engine = RunEngine.from_config(store=store, executor=executor)

    handler = engine.machine._steps.handler_for(AgentTaskStep(title="x"))
    assert handler._agents.pick_agent("acme", "web-research").id == "researcher"
