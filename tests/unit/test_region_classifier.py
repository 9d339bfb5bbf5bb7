"""
Unit tests for the southern region classifier.
"""
import pytest

from services.region_classifier import RegionClassifier, is_southern, normalize_region


class TestRegionClassifier:
    """Test southern region matching."""

    @pytest.fixture
    def classifier(self):
        return RegionClassifier()

    @pytest.mark.parametrize(
        "region",
        [
            "Tamil Nadu",
            "tamil nadu",
            "TAMIL NADU",
            "Tamil-Nadu",
            "Tamilnadu",
            "  Kerala ",
            "Kerela",
            "Karnataka",
            "Andhra Pradesh",
            "Andhra",
            "Telangana",
            "Telengana",
        ],
    )
    def test_southern_names(self, classifier, region):
        assert classifier.is_southern(region) is True

    @pytest.mark.parametrize("code", ["TN", "tn", "KL", "KA", "AP", "TG", "TS"])
    def test_southern_codes(self, classifier, code):
        assert classifier.is_southern(code) is True

    @pytest.mark.parametrize(
        "region",
        ["Delhi", "Maharashtra", "Madhya Pradesh", "West Bengal", "California", "Unknown"],
    )
    def test_other_regions(self, classifier, region):
        assert classifier.is_southern(region) is False

    @pytest.mark.parametrize("region", [None, "", "   "])
    def test_empty_region_is_not_southern(self, classifier, region):
        assert classifier.is_southern(region) is False

    def test_containment_in_longer_input(self, classifier):
        """A region string carrying extra text still matches."""
        assert classifier.is_southern("Tamil Nadu, India") is True
        assert classifier.canonical_name("State of Kerala") == "Kerala"

    def test_partial_input_contained_in_alias(self, classifier):
        assert classifier.canonical_name("Tamil") == "Tamil Nadu"
        assert classifier.canonical_name("Telang") == "Telangana"

    def test_short_fragments_do_not_match(self, classifier):
        """Fragments shorter than four characters only match exact codes."""
        assert classifier.is_southern("a") is False
        assert classifier.is_southern("Tam") is False

    def test_codes_require_exact_match(self, classifier):
        assert classifier.is_southern("TNX") is False
        assert classifier.is_southern("MP") is False

    def test_canonical_name(self, classifier):
        assert classifier.canonical_name("tn") == "Tamil Nadu"
        assert classifier.canonical_name("andhra-pradesh") == "Andhra Pradesh"
        assert classifier.canonical_name("Delhi") is None

    def test_custom_table(self):
        classifier = RegionClassifier({"Goa": ["GA"]})
        assert classifier.is_southern("goa") is True
        assert classifier.is_southern("GA") is True
        assert classifier.is_southern("Tamil Nadu") is False

    def test_module_level_helper(self):
        assert is_southern("Karnataka") is True
        assert is_southern("Punjab") is False


def test_normalize_region():
    assert normalize_region("  Tamil - Nadu ") == "tamilnadu"
    assert normalize_region("Andhra\tPradesh") == "andhrapradesh"
