"""
Tests for the plain-text report rendering.
"""

from datetime import datetime, timedelta, timezone

from reconciliation.engine import ReconciliationEngine
from reconciliation.models.device_record import DeviceRecord, DeviceSource
from reconciliation.models.lookup_result import LookupResult
from services.report_service import build_summary, render_devices, render_lookup, render_summary

CAPTURED_AT = datetime(2024, 3, 1, 12, 0, tzinfo=timezone.utc)


def build_snapshot():
    return ReconciliationEngine().reconcile(
        [
            DeviceRecord(source=DeviceSource.DIRECTORY, name="PC1"),
            DeviceRecord(source=DeviceSource.DIRECTORY, name="PC9"),
        ],
        [
            DeviceRecord(source=DeviceSource.IDENTITY_SERVICE, name="PC1", secondary_id="g1"),
            DeviceRecord(
                source=DeviceSource.IDENTITY_SERVICE,
                name="PC3",
                secondary_id="g3",
                attributes={"trustType": "Workplace"},
            ),
        ],
        [DeviceRecord(source=DeviceSource.DEVICE_MANAGEMENT, name="PC1", secondary_id="g1")],
        captured_at=CAPTURED_AT,
    )


class TestReportService:
    """Tests for build_summary and the render helpers."""

    def test_build_summary(self):
        summary = build_summary(build_snapshot())

        assert summary["directory"] == 2
        assert summary["identity_service"] == 2
        assert summary["device_management"] == 1
        assert summary["broken"] == 1
        assert summary["directory-only"] == 1
        assert summary["fully-registered"] == 1
        assert summary["identity-not-in-directory"] == 1

    def test_render_summary(self):
        text = render_summary(build_snapshot(), now=CAPTURED_AT + timedelta(minutes=12))

        assert "HYBRID JOIN AUDIT" in text
        assert "12 minutes ago" in text
        assert "directory-only" in text
        assert "Broken Entra ID devices" in text

    def test_render_devices(self):
        snapshot = build_snapshot()

        text = render_devices(snapshot.broken)

        assert "PC3" in text
        assert "trustType" in text
        assert text.endswith("1 devices")

    def test_render_devices_empty(self):
        assert render_devices([]) == "No devices found."

    def test_render_lookup(self):
        snapshot = build_snapshot()
        result = LookupResult(name="PC9", directory_matches=(snapshot.directory[1],))

        text = render_lookup(result)

        assert "✅ Active Directory (1)" in text
        assert "❌ Entra ID (0)" in text
        assert "❌ Intune (0)" in text
