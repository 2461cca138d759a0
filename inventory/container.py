"""Application dependency injection container."""

from dependency_injector import containers, providers

from common.core.shutdown import ShutdownCoordinator
from common.metrics.service import MetricsService
from common.tasks.service import TaskService
from inventory.config import Settings
from inventory.database import DatabaseHolder
from inventory.viewmodels.inventory_view_model import InventoryViewModel


class AppContainer(containers.DeclarativeContainer):
    """Application service container.

    config must be provided before anything is resolved. The database is
    created lazily on first use and shared for the container's lifetime;
    every inventory_view_model() call builds a fresh view-model with its own
    task scope.
    """

    config = providers.Dependency(instance_of=Settings)

    shutdown_coordinator = providers.Singleton(
        ShutdownCoordinator,
        graceful_shutdown_timeout=config.provided.graceful_shutdown_timeout,
    )

    metrics_service = providers.Singleton(
        MetricsService,
        shutdown_coordinator=shutdown_coordinator,
    )

    task_service = providers.Singleton(
        TaskService,
        shutdown_coordinator=shutdown_coordinator,
        metrics_service=metrics_service,
        max_workers=config.provided.task_max_workers,
    )

    database_holder = providers.ThreadSafeSingleton(
        DatabaseHolder,
        shutdown_coordinator=shutdown_coordinator,
    )
    database = database_holder.provided.get_database.call(config)
    item_dao = database.provided.item_dao.call()

    inventory_view_model = providers.Factory(
        InventoryViewModel,
        item_dao=item_dao,
        task_service=task_service,
    )


def create_container(settings: Settings | None = None) -> AppContainer:
    """Create the container for settings (loaded from the environment if omitted)."""
    if settings is None:
        settings = Settings.load()

    settings.validate_config()

    container = AppContainer()
    container.config.override(settings)
    return container
