"""Tests for semantic version parsing and ordering."""

import pytest

from nerohost.semver import SemanticVersion


@pytest.mark.unit
class TestSemanticVersion:
    """Tests for SemanticVersion."""

    def test_parse(self):
        """Test parsing a plain triple."""
        assert SemanticVersion.parse("0.0.1") == SemanticVersion(0, 0, 1)
        assert SemanticVersion.parse("12.3.45") == SemanticVersion(12, 3, 45)

    def test_parse_leading_v_and_whitespace(self):
        """Test a leading 'v' and surrounding whitespace are accepted."""
        assert SemanticVersion.parse(" v1.2.3\n") == SemanticVersion(1, 2, 3)

    @pytest.mark.parametrize("text", ["", "1.2", "1.2.3.4", "1.2.x", "1.2.3-beta", "1.2.3+build"])
    def test_parse_invalid(self, text):
        """Test malformed versions are rejected."""
        with pytest.raises(ValueError):
            SemanticVersion.parse(text)

    def test_ordering_is_numeric(self):
        """Test versions compare numerically per component."""
        assert SemanticVersion(0, 0, 1) < SemanticVersion(0, 0, 2)
        assert SemanticVersion(0, 2, 0) > SemanticVersion(0, 1, 99)
        assert SemanticVersion(0, 10, 0) > SemanticVersion(0, 9, 0)
        assert SemanticVersion(1, 0, 0) > SemanticVersion(0, 99, 99)

    def test_str(self):
        """Test string form round-trips."""
        assert str(SemanticVersion(1, 2, 3)) == "1.2.3"
        assert SemanticVersion.parse(str(SemanticVersion(4, 5, 6))) == SemanticVersion(4, 5, 6)
