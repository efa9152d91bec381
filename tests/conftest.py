import pytest
from fastapi.testclient import TestClient

from assets import AssetStore
from db import Settings
from inventory import InventoryService
from storage import SqliteBackend


@pytest.fixture()
def settings(tmp_path):
    # ---- テスト用DB / アップロード先 ----
    db_path = tmp_path / "test_tools.db"
    return Settings(
        database_url=f"sqlite:///{db_path.as_posix()}",
        upload_dir=tmp_path / "uploads",
        log_level="DEBUG",
    )


@pytest.fixture()
def backend(settings):
    b = SqliteBackend(settings.database_url).open()
    try:
        yield b
    finally:
        b.close()


@pytest.fixture()
def assets(settings):
    return AssetStore(settings.upload_dir)


@pytest.fixture()
def inventory(backend, assets):
    return InventoryService(backend, assets)


@pytest.fixture()
def db_session(backend):
    db = backend.session()
    try:
        yield db
    finally:
        db.close()


@pytest.fixture()
def client(settings):
    from main import create_app

    app = create_app(settings)
    with TestClient(app) as c:
        yield c
