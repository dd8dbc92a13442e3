"""
Unit tests for the cross-referencer.

Covers the tri-source join, the first-match tie-break among same-named identity
records, name normalization and the record filters.
"""

import pytest

from reconciliation.annotator import annotate
from reconciliation.config import NameMatcher
from reconciliation.cross_referencer import CrossReferencer
from reconciliation.models.device_record import DeviceRecord, DeviceSource, PresenceFlags


def directory_record(name):
    return DeviceRecord(source=DeviceSource.DIRECTORY, name=name)


def identity_record(name, device_id=None, **attributes):
    return DeviceRecord(
        source=DeviceSource.IDENTITY_SERVICE,
        name=name,
        secondary_id=device_id,
        attributes=attributes,
    )


def managed_record(name, device_id=None, **attributes):
    return DeviceRecord(
        source=DeviceSource.DEVICE_MANAGEMENT,
        name=name,
        secondary_id=device_id,
        attributes=attributes,
    )


ALL_PRESENT = PresenceFlags(True, True, True)


class TestCrossReferencer:
    """Tests for CrossReferencer.cross_reference."""

    def test_fully_consistent_device(self):
        directory, identity, managed = annotate(
            [directory_record("PC1")],
            [identity_record("PC1", "g1")],
            [managed_record("PC1", "g1")],
        )

        CrossReferencer().cross_reference(directory, identity, managed)

        assert directory[0].flags == ALL_PRESENT
        assert identity[0].flags == ALL_PRESENT
        assert managed[0].flags == ALL_PRESENT

    def test_directory_only_device_keeps_home_flag(self):
        directory, identity, managed = annotate(
            [directory_record("PC1")],
            [identity_record("PC2", "g2")],
            [],
        )

        CrossReferencer().cross_reference(directory, identity, managed)

        assert directory[0].flags == PresenceFlags(True, False, False)
        assert identity[0].flags == PresenceFlags(False, True, False)

    def test_identity_and_managed_link_without_directory(self):
        directory, identity, managed = annotate(
            [],
            [identity_record("PC2", "g2")],
            [managed_record("PC2", "g2")],
        )

        CrossReferencer().cross_reference(directory, identity, managed)

        assert identity[0].flags == PresenceFlags(False, True, True)
        assert managed[0].flags == PresenceFlags(False, True, True)

    def test_first_enrolled_candidate_wins(self):
        """Only the first same-named identity record with an enrollment is credited."""
        directory, identity, managed = annotate(
            [directory_record("PC")],
            [identity_record("PC", "a"), identity_record("PC", "b")],
            [managed_record("PC", "a"), managed_record("PC", "b")],
        )

        CrossReferencer().cross_reference(directory, identity, managed)

        first, second = identity
        managed_a, managed_b = managed
        assert directory[0].flags == ALL_PRESENT
        assert first.flags == ALL_PRESENT
        # The loop stops at the first candidate, so the second is never visited.
        assert second.in_directory is False
        assert second.in_device_management is True
        assert managed_a.in_directory is True
        assert managed_b.in_directory is False
        assert managed_b.in_identity_service is True

    def test_candidates_before_the_match_are_marked_in_directory(self):
        directory, identity, managed = annotate(
            [directory_record("PC")],
            [identity_record("PC", "stale"), identity_record("PC", "b")],
            [managed_record("PC", "b")],
        )

        CrossReferencer().cross_reference(directory, identity, managed)

        stale, working = identity
        assert stale.flags == PresenceFlags(True, True, False)
        assert working.flags == ALL_PRESENT
        assert directory[0].flags == ALL_PRESENT

    def test_unenrolled_candidates_all_marked_in_directory(self):
        directory, identity, managed = annotate(
            [directory_record("PC")],
            [identity_record("PC", "a"), identity_record("PC", "b")],
            [],
        )

        CrossReferencer().cross_reference(directory, identity, managed)

        assert directory[0].flags == PresenceFlags(True, True, False)
        assert all(record.flags == PresenceFlags(True, True, False) for record in identity)

    def test_missing_identifiers_never_join(self):
        directory, identity, managed = annotate(
            [directory_record("PC1")],
            [identity_record("PC1", None)],
            [managed_record("PC1", None)],
        )

        CrossReferencer().cross_reference(directory, identity, managed)

        assert directory[0].in_device_management is False
        assert identity[0].in_device_management is False
        assert managed[0].flags == PresenceFlags(False, False, True)

    def test_names_match_case_insensitively_by_default(self):
        directory, identity, managed = annotate(
            [directory_record("pc1")], [identity_record("PC1", "g1")], []
        )

        CrossReferencer().cross_reference(directory, identity, managed)

        assert directory[0].in_identity_service is True

    def test_case_sensitive_matching(self):
        directory, identity, managed = annotate(
            [directory_record("pc1")], [identity_record("PC1", "g1")], []
        )

        CrossReferencer(name_matcher=NameMatcher(case_sensitive=True)).cross_reference(
            directory, identity, managed
        )

        assert directory[0].in_identity_service is False
        assert identity[0].in_directory is False

    @pytest.mark.parametrize("strip,expected", [(False, False), (True, True)])
    def test_domain_suffix_stripping(self, strip, expected):
        directory, identity, managed = annotate(
            [directory_record("PC1")], [identity_record("PC1.contoso.com", "g1")], []
        )

        CrossReferencer(
            name_matcher=NameMatcher(strip_domain_suffix=strip)
        ).cross_reference(directory, identity, managed)

        assert directory[0].in_identity_service is expected

    def test_identity_filter_excludes_records_from_join(self):
        directory, identity, managed = annotate(
            [directory_record("MAC1")],
            [identity_record("MAC1", "g1", operatingSystem="MacMDM")],
            [managed_record("MAC1", "g1")],
        )

        CrossReferencer(
            identity_filter=lambda record: record.attributes.get("operatingSystem") == "Windows"
        ).cross_reference(directory, identity, managed)

        assert directory[0].flags == PresenceFlags(True, False, False)
        assert identity[0].flags == PresenceFlags(False, True, False)
        assert managed[0].flags == PresenceFlags(False, False, True)

    def test_device_management_filter_excludes_enrollments(self):
        directory, identity, managed = annotate(
            [directory_record("PC1")],
            [identity_record("PC1", "g1")],
            [managed_record("PC1", "g1", managementState="retirePending")],
        )

        CrossReferencer(
            device_management_filter=lambda record: record.attributes.get("managementState")
            == "managed"
        ).cross_reference(directory, identity, managed)

        assert directory[0].flags == PresenceFlags(True, True, False)
        assert identity[0].flags == PresenceFlags(True, True, False)
        assert managed[0].flags == PresenceFlags(False, False, True)

    def test_flags_only_accumulate(self):
        directory, identity, managed = annotate(
            [directory_record("PC1"), directory_record("PC2"), directory_record("PC3")],
            [
                identity_record("PC1", "g1"),
                identity_record("PC2", "g2"),
                identity_record("PC4", "g4"),
            ],
            [managed_record("PC1", "g1"), managed_record("PC4", "g4")],
        )
        records = directory + identity + managed
        before = [record.flags for record in records]

        CrossReferencer().cross_reference(directory, identity, managed)
        after_first = [record.flags for record in records]
        CrossReferencer().cross_reference(directory, identity, managed)
        after_second = [record.flags for record in records]

        for old, new in zip(before, after_first):
            assert all(new_flag or not old_flag for old_flag, new_flag in zip(old, new))
        assert after_second == after_first

    def test_home_flags_stay_true(self):
        directory, identity, managed = annotate(
            [directory_record("PC1")],
            [identity_record("PC2", "g2")],
            [managed_record("PC3", "g3")],
        )

        CrossReferencer().cross_reference(directory, identity, managed)

        assert all(record.in_directory for record in directory)
        assert all(record.in_identity_service for record in identity)
        assert all(record.in_device_management for record in managed)

    def test_empty_collections(self):
        CrossReferencer(progress_step=10).cross_reference([], [], [])
