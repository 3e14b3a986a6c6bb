import pytest
import aiosqlite
import pydantic_core

from widget_repo import RepoConfig, Widget, sqlite_repo_factory


def test_defaults():
    config = RepoConfig()
    assert config.db_path == ":memory:"
    assert config.pool_size == 10
    assert config.busy_timeout_ms == 5000


def test_from_env():
    config = RepoConfig.from_env(
        {
            "WIDGET_REPO_DB_PATH": "/tmp/widgets.db",
            "WIDGET_REPO_POOL_SIZE": "3",
            "WIDGET_REPO_BUSY_TIMEOUT_MS": "250",
            "UNRELATED": "ignored",
        }
    )
    assert config.db_path == "/tmp/widgets.db"
    assert config.pool_size == 3
    assert config.busy_timeout_ms == 250
    assert config.cache_size_kib == -16384


def test_from_env_reads_os_environ(monkeypatch):
    monkeypatch.setenv("WIDGET_REPO_POOL_SIZE", "2")
    assert RepoConfig.from_env().pool_size == 2


def test_invalid_pool_size():
    with pytest.raises(pydantic_core.ValidationError):
        RepoConfig.from_env({"WIDGET_REPO_POOL_SIZE": "0"})


@pytest.mark.asyncio
async def test_factory_accepts_config():
    config = RepoConfig(pool_size=2)
    async with sqlite_repo_factory(**config.model_dump()) as repo:
        created = await repo.create(Widget(id="w", value="a"))
        assert created.version == 1


@pytest.mark.asyncio
async def test_factory_requires_db_path():
    with pytest.raises(ValueError, match="`db_path` must be provided"):
        async with sqlite_repo_factory(""):
            pass


@pytest.mark.asyncio
async def test_factory_requires_positive_pool_size(tmp_path):
    with pytest.raises(ValueError, match="`pool_size` must be at least 1"):
        async with sqlite_repo_factory(str(tmp_path / "test.db"), pool_size=0):
            pass


@pytest.mark.asyncio
async def test_factory_closes_connection_when_setup_fails(tmp_path, monkeypatch):
    opened = []
    real_connect = aiosqlite.connect

    def tracking_connect(*args, **kwargs):
        conn = real_connect(*args, **kwargs)
        opened.append(conn)
        return conn

    monkeypatch.setattr(aiosqlite, "connect", tracking_connect)

    with pytest.raises(ValueError):
        async with sqlite_repo_factory(str(tmp_path / "test.db"), cache_size_kib="not a number"):
            pass

    assert len(opened) == 1
    with pytest.raises(ValueError, match="Connection closed"):
        await opened[0].execute("SELECT 1")
