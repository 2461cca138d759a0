"""Pytest configuration and fixtures."""

from collections.abc import Generator
from pathlib import Path

import pytest

from common.metrics.service import MetricsService
from common.tasks import TaskService
from inventory.config import Settings
from inventory.container import AppContainer, create_container
from inventory.database import InventoryDatabase
from inventory.services.item_dao import ItemDao
from inventory.viewmodels.inventory_view_model import InventoryViewModel
from tests.testing_utils import StubShutdownCoordinator


def _build_test_settings(database_path: Path) -> Settings:
    """Construct Settings pointing at a per-test database file."""
    return Settings(
        app_env="testing",
        database_name=database_path.name,
        database_url=f"sqlite:///{database_path.as_posix()}",
        db_echo=False,
        task_max_workers=2,
        query_max_workers=2,
        graceful_shutdown_timeout=5,
    )


@pytest.fixture
def test_settings(tmp_path: Path) -> Settings:
    return _build_test_settings(tmp_path / "item_database")


@pytest.fixture
def shutdown_coordinator() -> StubShutdownCoordinator:
    return StubShutdownCoordinator()


@pytest.fixture
def metrics_service(shutdown_coordinator: StubShutdownCoordinator) -> MetricsService:
    return MetricsService(shutdown_coordinator)


@pytest.fixture
def task_service(
    shutdown_coordinator: StubShutdownCoordinator, metrics_service: MetricsService
) -> Generator[TaskService, None, None]:
    service = TaskService(shutdown_coordinator, metrics_service, max_workers=2)
    try:
        yield service
    finally:
        service.shutdown()


@pytest.fixture
def database(test_settings: Settings) -> Generator[InventoryDatabase, None, None]:
    db = InventoryDatabase.open(test_settings)
    try:
        yield db
    finally:
        db.close()


@pytest.fixture
def item_dao(database: InventoryDatabase) -> ItemDao:
    return database.item_dao()


@pytest.fixture
def view_model(
    item_dao: ItemDao, task_service: TaskService
) -> Generator[InventoryViewModel, None, None]:
    vm = InventoryViewModel(item_dao, task_service)
    try:
        yield vm
    finally:
        vm.close()


@pytest.fixture
def container(test_settings: Settings) -> Generator[AppContainer, None, None]:
    app_container = create_container(test_settings)
    try:
        yield app_container
    finally:
        app_container.task_service().shutdown()
        app_container.database_holder().reset()
