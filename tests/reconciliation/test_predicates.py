"""
Unit tests for predicates and the filter expression parser.
"""

import pytest

from reconciliation.config import NameMatcher
from reconciliation.exceptions import PredicateSyntaxError
from reconciliation.models.device_record import DeviceRecord, DeviceSource
from reconciliation.predicates import (
    IN_DEVICE_MANAGEMENT,
    IN_DIRECTORY,
    IN_IDENTITY_SERVICE,
    STANDARD_QUERIES,
    Predicate,
    as_predicate,
    attribute_equals,
    attribute_matches,
    name_equals,
    parse_predicate,
)


def make_record(
    name="PC1",
    in_identity_service=False,
    in_device_management=False,
    **attributes,
):
    return DeviceRecord(
        source=DeviceSource.DIRECTORY,
        name=name,
        attributes=attributes,
        in_identity_service=in_identity_service,
        in_device_management=in_device_management,
    )


class TestPredicate:
    """Tests for Predicate composition and the built-in predicates."""

    def test_presence_predicates(self):
        record = make_record(in_identity_service=True)

        assert IN_DIRECTORY(record) is True
        assert IN_IDENTITY_SERVICE(record) is True
        assert IN_DEVICE_MANAGEMENT(record) is False

    def test_composition(self):
        record = make_record(in_identity_service=True)

        assert (IN_DIRECTORY & ~IN_DEVICE_MANAGEMENT)(record) is True
        assert (IN_DEVICE_MANAGEMENT | IN_IDENTITY_SERVICE)(record) is True
        assert (IN_DIRECTORY & IN_DEVICE_MANAGEMENT)(record) is False

    def test_composes_with_plain_callables(self):
        predicate = IN_DIRECTORY & (lambda record: record.name.startswith("PC"))

        assert predicate(make_record()) is True
        assert predicate(make_record(name="LAB1")) is False

    def test_description(self):
        predicate = IN_DIRECTORY & ~IN_IDENTITY_SERVICE

        assert predicate.description == "(in_directory and not in_identity_service)"
        assert "in_directory" in repr(predicate)

    def test_as_predicate_rejects_non_callables(self):
        with pytest.raises(TypeError):
            as_predicate("in_directory")

    def test_as_predicate_keeps_predicates(self):
        assert as_predicate(IN_DIRECTORY) is IN_DIRECTORY

    def test_attribute_equals_is_exact(self):
        record = make_record(trustType="ServerAd")

        assert attribute_equals("trustType", "ServerAd")(record) is True
        assert attribute_equals("trustType", "serverad")(record) is False
        assert attribute_equals("missing", None)(record) is True

    def test_attribute_matches_ignores_case(self):
        record = make_record(trustType="ServerAd", isCompliant=False)

        assert attribute_matches("trustType", "serverad")(record) is True
        assert attribute_matches("isCompliant", "false")(record) is True
        assert attribute_matches("missing", "none")(record) is False

    def test_name_equals(self):
        record = make_record(name="PC1.contoso.com")

        assert name_equals("pc1.CONTOSO.com")(record) is True
        assert name_equals("PC1")(record) is False
        assert name_equals("PC1", NameMatcher(strip_domain_suffix=True))(record) is True

    def test_standard_queries_read_one_collection_each(self):
        assert "directory-only" in STANDARD_QUERIES
        assert STANDARD_QUERIES["managed-not-in-identity"].source is DeviceSource.DEVICE_MANAGEMENT
        for query in STANDARD_QUERIES.values():
            assert isinstance(query.predicate, Predicate)
            assert query.description


class TestParsePredicate:
    """Tests for parse_predicate."""

    def test_directory_only_expression(self):
        predicate = parse_predicate("ad and not aad and not intune")

        assert predicate(make_record()) is True
        assert predicate(make_record(in_identity_service=True)) is False

    def test_aliases_are_case_insensitive(self):
        predicate = parse_predicate("AD AND NOT Entra")

        assert predicate(make_record()) is True

    def test_and_binds_tighter_than_or(self):
        predicate = parse_predicate("mdm or aad and not ad")

        # Parsed as mdm or (aad and not ad): false for an identity-only directory record.
        assert predicate(make_record(in_identity_service=True)) is False
        assert predicate(make_record(in_device_management=True)) is True

    def test_parentheses(self):
        predicate = parse_predicate("(mdm or aad) and ad")

        assert predicate(make_record(in_identity_service=True)) is True
        assert predicate(make_record()) is False

    def test_attribute_comparisons(self):
        record = make_record(trustType="ServerAd", operatingSystem="Windows 11")

        assert parse_predicate("trustType = serverad")(record) is True
        assert parse_predicate("trustType != Workplace")(record) is True
        assert parse_predicate('operatingSystem = "Windows 11"')(record) is True
        assert parse_predicate("operatingSystem='Windows 10'")(record) is False

    def test_name_comparison_uses_matcher(self):
        record = make_record(name="PC1.contoso.com")

        assert parse_predicate("name = pc1.contoso.com")(record) is True
        assert parse_predicate(
            "name = PC1", NameMatcher(strip_domain_suffix=True)
        )(record) is True

    @pytest.mark.parametrize(
        "expression",
        [
            "",
            "   ",
            "printer",
            "ad and",
            "(ad or aad",
            "ad aad",
            "ad )",
            "trustType =",
            "trustType = (",
            "not",
            "ad ! aad",
        ],
    )
    def test_malformed_expressions(self, expression):
        with pytest.raises(PredicateSyntaxError):
            parse_predicate(expression)

    def test_syntax_error_is_value_error(self):
        with pytest.raises(ValueError):
            parse_predicate("bogus")
