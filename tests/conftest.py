"""Pytest configuration and fixtures."""

from __future__ import annotations

import sys
import threading
from pathlib import Path
from typing import Any, Dict, List

import pytest
from fastapi.testclient import TestClient

PACKAGE_ROOT = Path(__file__).resolve().parents[1]
if str(PACKAGE_ROOT) not in sys.path:
    sys.path.insert(0, str(PACKAGE_ROOT))

from export_service import (  # noqa: E402
    ExportedTypeDefinition,
    ExportSettings,
    InMemoryDataSource,
    create_app,
    initialize_state,
)
from export_service.datasource import PagedDataSource  # noqa: E402
from export_service.models import ExportPushNotification  # noqa: E402

CATALOG_PRODUCT = "Catalog.Product"
PRODUCT_PERMISSION = "catalog:export"

FULL_ACCESS_HEADERS = {
    "X-User-Name": "jane",
    "X-User-Permissions": "export:access,export:download,catalog:export",
}


def make_products(count: int = 250) -> List[Dict[str, Any]]:
    return [
        {"id": str(index), "name": f"Product {index}", "sku": f"SKU-{index:04d}", "price": index * 1.5}
        for index in range(1, count + 1)
    ]


def product_definition(records=None, **overrides) -> ExportedTypeDefinition:
    products = make_products() if records is None else records
    values = {
        "name": CATALOG_PRODUCT,
        "required_permission": PRODUCT_PERMISSION,
        "data_source_factory": lambda query: InMemoryDataSource(products, query),
        "metadata": ["id", "name", "sku", "price"],
    }
    values.update(overrides)
    return ExportedTypeDefinition(**values)


class GatedDataSource(PagedDataSource):
    """In-memory source whose fetches after the first wait for ``release``."""

    def __init__(self, records, query, first_page_done: threading.Event, release: threading.Event):
        super().__init__(query)
        self._records = records
        self.first_page_done = first_page_done
        self.release = release

    def _fetch(self, skip, take):
        if skip > 0:
            self.release.wait(timeout=5)
        page = self._records[skip : skip + take]
        self.first_page_done.set()
        return page

    def _count(self):
        return len(self._records)


class NotificationRecorder:
    """Channel subscriber keeping every update it receives."""

    def __init__(self) -> None:
        self.updates: List[ExportPushNotification] = []
        self._lock = threading.Lock()

    def __call__(self, notification: ExportPushNotification) -> None:
        with self._lock:
            self.updates.append(notification)

    def statuses(self, notification_id: str) -> List[str]:
        with self._lock:
            return [update.status.value for update in self.updates if update.id == notification_id]


@pytest.fixture
def settings(tmp_path) -> ExportSettings:
    return ExportSettings(export_dir=tmp_path / "exports", max_workers=2, default_page_size=50)


@pytest.fixture
def export_state(settings):
    state = initialize_state(settings, export_types=[product_definition()])
    yield state
    state.engine.shutdown()


@pytest.fixture
def engine(export_state):
    return export_state.engine


@pytest.fixture
def recorder(engine) -> NotificationRecorder:
    recorder = NotificationRecorder()
    engine.channel.subscribe(recorder)
    return recorder


@pytest.fixture
def client(export_state):
    """Create test client."""
    app = create_app(state=export_state)
    return TestClient(app)
