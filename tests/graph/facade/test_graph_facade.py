import unittest
from datetime import datetime, timezone
from unittest.mock import MagicMock, patch

from graph.api.graph_api import GraphAPIError
from graph.facade.graph_facade import EMPTY_DEVICE_ID, GraphFacade
from reconciliation.models.device_record import DeviceSource, PresenceFlags


class TestGraphFacade(unittest.TestCase):
    """
    Unit tests for the GraphFacade class.

    Tests cover:
    - Construction from client credentials
    - Translation of Graph payloads into device records
    - Fetch error propagation
    """

    def setUp(self):
        self.mock_get_token = patch(
            'graph.facade.graph_facade.get_access_token', return_value="token123"
        ).start()
        self.mock_device_api = patch('graph.facade.graph_facade.DeviceAPI').start()
        self.mock_managed_api = patch('graph.facade.graph_facade.ManagedDeviceAPI').start()

        self.facade = GraphFacade("tenant", "client", "secret")

    def tearDown(self):
        patch.stopall()

    def test_initialization(self):
        """Test that both APIs share the bearer headers."""
        self.mock_get_token.assert_called_once_with("tenant", "client", "secret")
        base_url, headers = self.mock_device_api.call_args[0]
        self.assertEqual(base_url, "https://graph.microsoft.com/v1.0")
        self.assertEqual(headers["Authorization"], "Bearer token123")
        self.assertEqual(self.mock_managed_api.call_args[0][1], headers)

    def test_to_identity_record(self):
        record = GraphFacade.to_identity_record(
            {
                "id": "object-1",
                "deviceId": "g1",
                "displayName": "PC1",
                "trustType": "ServerAd",
                "approximateLastSignInDateTime": "2024-03-01T08:30:00Z",
            }
        )

        self.assertIs(record.source, DeviceSource.IDENTITY_SERVICE)
        self.assertEqual(record.name, "PC1")
        self.assertEqual(record.secondary_id, "g1")
        self.assertEqual(record.flags, PresenceFlags(False, True, False))
        self.assertEqual(record.attributes["trustType"], "ServerAd")
        self.assertEqual(
            record.attributes["approximateLastSignInDateTime"],
            datetime(2024, 3, 1, 8, 30, tzinfo=timezone.utc),
        )
        self.assertNotIn("displayName", record.attributes)

    def test_to_managed_record(self):
        record = GraphFacade.to_managed_record(
            {"id": "m1", "deviceName": "PC1", "azureADDeviceId": "g1", "complianceState": "compliant"}
        )

        self.assertIs(record.source, DeviceSource.DEVICE_MANAGEMENT)
        self.assertEqual(record.name, "PC1")
        self.assertEqual(record.secondary_id, "g1")
        self.assertEqual(record.attributes["complianceState"], "compliant")

    def test_to_managed_record_empty_device_id(self):
        """Test that the all-zero Entra id is treated as missing."""
        record = GraphFacade.to_managed_record({"deviceName": "PC1", "azureADDeviceId": EMPTY_DEVICE_ID})

        self.assertIsNone(record.secondary_id)

    def test_unparseable_timestamp_left_as_is(self):
        record = GraphFacade.to_managed_record({"deviceName": "PC1", "lastSyncDateTime": "never"})

        self.assertEqual(record.attributes["lastSyncDateTime"], "never")

    def test_fetch_identity_service_devices(self):
        self.facade.devices = MagicMock()
        self.facade.devices.get_devices.return_value = [
            {"deviceId": "g1", "displayName": "PC1"},
            {"deviceId": "g2", "displayName": "PC2"},
        ]

        records = self.facade.fetch_identity_service_devices("Windows")

        self.facade.devices.get_devices.assert_called_once_with("Windows")
        self.assertEqual([record.name for record in records], ["PC1", "PC2"])

    def test_fetch_device_management_devices(self):
        self.facade.managed_devices = MagicMock()
        self.facade.managed_devices.get_managed_devices.return_value = [
            {"deviceName": "PC1", "azureADDeviceId": "g1"},
            {"deviceName": "PC2", "azureADDeviceId": EMPTY_DEVICE_ID},
        ]

        records = self.facade.fetch_device_management_devices()

        self.assertEqual([record.secondary_id for record in records], ["g1", None])

    def test_fetch_failure_propagates(self):
        self.facade.devices = MagicMock()
        self.facade.devices.get_devices.side_effect = GraphAPIError("page 2 failed")

        with self.assertRaises(GraphAPIError):
            self.facade.fetch_identity_service_devices()


if __name__ == '__main__':
    unittest.main()
