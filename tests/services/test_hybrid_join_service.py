"""
Tests for HybridJoinService: fetch, reconcile and query against fake sources.
"""

from unittest.mock import MagicMock

import pytest

from graph.api.graph_api import GraphAPIError
from reconciliation.exceptions import SnapshotNotPopulatedError, SourceFetchError
from reconciliation.models.device_record import DeviceRecord, DeviceSource
from services.hybrid_join_service import HybridJoinService


def directory_record(name):
    return DeviceRecord(source=DeviceSource.DIRECTORY, name=name)


def identity_record(name, device_id):
    return DeviceRecord(source=DeviceSource.IDENTITY_SERVICE, name=name, secondary_id=device_id)


def managed_record(name, device_id):
    return DeviceRecord(source=DeviceSource.DEVICE_MANAGEMENT, name=name, secondary_id=device_id)


@pytest.fixture
def directory():
    source = MagicMock()
    source.fetch_directory_devices.return_value = [directory_record("PC1"), directory_record("PC9")]
    return source


@pytest.fixture
def graph():
    source = MagicMock()
    source.fetch_identity_service_devices.return_value = [
        identity_record("PC1", "g1"),
        identity_record("PC3", "g3"),
    ]
    source.fetch_device_management_devices.return_value = [managed_record("PC1", "g1")]
    return source


@pytest.fixture
def service(directory, graph):
    return HybridJoinService(directory, graph)


class TestHybridJoinService:
    """Tests for HybridJoinService."""

    def test_query_before_refresh_fails(self, service):
        with pytest.raises(SnapshotNotPopulatedError):
            service.lookup("PC1")

    def test_refresh_populates_store(self, service, directory, graph):
        snapshot = service.refresh(scope_filter="OU=Labs,DC=example,DC=edu")

        directory.fetch_directory_devices.assert_called_once_with("OU=Labs,DC=example,DC=edu")
        graph.fetch_identity_service_devices.assert_called_once_with("Windows")
        graph.fetch_device_management_devices.assert_called_once_with()
        assert service.store.current() is snapshot
        assert snapshot.version == 1
        assert [record.name for record in snapshot.broken] == ["PC3"]

    def test_lookup_after_refresh(self, service):
        service.refresh()

        result = service.lookup("pc9")

        assert result.flags == (True, False, False)

    def test_operating_system_passed_to_identity_fetch(self, directory, graph):
        HybridJoinService(directory, graph, operating_system=None).refresh()

        graph.fetch_identity_service_devices.assert_called_once_with(None)

    def test_fetch_failure_leaves_snapshot_untouched(self, service, graph):
        first = service.refresh()
        graph.fetch_device_management_devices.side_effect = GraphAPIError("page 3 failed")

        with pytest.raises(SourceFetchError) as excinfo:
            service.refresh()

        assert excinfo.value.source == "Intune"
        assert isinstance(excinfo.value.__cause__, GraphAPIError)
        assert service.store.current() is first
        assert service.store.version == 1

    def test_fetch_failure_before_first_refresh(self, service, directory):
        directory.fetch_directory_devices.side_effect = RuntimeError("ldap down")

        with pytest.raises(SourceFetchError):
            service.refresh()

        assert not service.store.is_populated

    def test_fetch_sources_order(self, service):
        directory, identity, managed = service.fetch_sources()

        assert [record.source for record in directory] == [DeviceSource.DIRECTORY] * 2
        assert [record.source for record in identity] == [DeviceSource.IDENTITY_SERVICE] * 2
        assert [record.source for record in managed] == [DeviceSource.DEVICE_MANAGEMENT]
