"""Tests for ordered and opaque component versions."""

import pytest

from versioning.models import (
    Ecosystem,
    OrderedVersion,
    TextVersion,
    parse_pep440,
    parse_semver,
    parse_version,
)


class TestParsing:
    """Ecosystem version parsing."""

    def test_semver_is_ordered(self):
        """Strict semver parses into an ordered version keeping its text."""
        v = parse_semver("1.2.3")
        assert isinstance(v, OrderedVersion)
        assert v.text == "1.2.3"

    def test_semver_leading_v_is_accepted(self):
        """A leading 'v' is tolerated but the original text is preserved."""
        v = parse_semver("v2.0.0")
        assert isinstance(v, OrderedVersion)
        assert v.text == "v2.0.0"
        assert v == parse_semver("2.0.0")

    def test_semver_non_version_is_opaque(self):
        """Git URLs and tags become opaque versions."""
        v = parse_semver("git+https://github.com/a/b.git#abc")
        assert isinstance(v, TextVersion)
        assert v.content == "git+https://github.com/a/b.git#abc"

    def test_pep440_versions(self):
        """PEP 440 versions are ordered; garbage is opaque."""
        assert isinstance(parse_pep440("1.0.post1"), OrderedVersion)
        assert isinstance(parse_pep440("../local/path"), TextVersion)

    def test_parse_version_dispatches_by_ecosystem(self):
        """npm uses semver, PyPI and NuGet use PEP 440."""
        assert isinstance(parse_version(Ecosystem.NPM, "1.0.0").value, type(parse_semver("1.0.0").value))
        assert parse_version(Ecosystem.PYPI, "1.0") == parse_version(Ecosystem.PYPI, "1.0.0")
        assert parse_version(Ecosystem.NUGET, "13.0.1").text == "13.0.1"


class TestOrdering:
    """Ordering contract between version variants."""

    def test_ordered_versions_sort(self):
        """Ordered versions of one scheme sort numerically."""
        versions = [parse_pep440("1.10"), parse_pep440("1.2"), parse_pep440("1.9")]
        assert [v.text for v in sorted(versions)] == ["1.2", "1.9", "1.10"]

    def test_ordered_vs_text_raises(self):
        """Ordering an ordered version against an opaque one is a contract violation."""
        with pytest.raises(TypeError):
            _ = parse_pep440("1.0") < TextVersion("abc")
        with pytest.raises(TypeError):
            _ = TextVersion("abc") < parse_pep440("1.0")

    def test_text_versions_have_no_order(self):
        """Opaque versions only support equality."""
        with pytest.raises(TypeError):
            _ = TextVersion("a") < TextVersion("b")

    def test_text_equality_is_case_sensitive(self):
        """Opaque equality is ordinal."""
        assert TextVersion("abc") == TextVersion("abc")
        assert TextVersion("abc") != TextVersion("ABC")

    def test_ordered_and_text_are_never_equal(self):
        """An ordered and an opaque version with the same text differ."""
        assert parse_semver("1.0.0") != TextVersion("1.0.0")

    def test_mixed_schemes_raise(self):
        """semver and PEP 440 versions cannot be ordered against each other."""
        with pytest.raises(TypeError):
            _ = parse_semver("1.0.0") < parse_pep440("2.0")

    def test_hash_consistent_with_equality(self):
        """Equal versions hash alike so they can key the graph."""
        assert hash(parse_pep440("1.0")) == hash(parse_pep440("1.0.0"))
        assert len({TextVersion("x"), TextVersion("x")}) == 1
