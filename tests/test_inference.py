"""Tests for keyword-based relationship inference."""

import pytest

from holarchy.inference import classify
from holarchy.types import LinkType


class TestClassify:
    @pytest.mark.parametrize(
        "a, b, expected",
        [
            ("Garden", "Community Garden", LinkType.PARENT),
            ("Community Garden", "garden", LinkType.PARENT),
            ("Web Server", "Mobile App", LinkType.DEPENDS),
            ("Kitchen", "Support Desk", LinkType.DEPENDS),
            ("Vision Board", "Kitchen", LinkType.INSPIRED),
            ("Kitchen", "Library", LinkType.CHILD),
        ],
    )
    def test_rules(self, a, b, expected):
        assert classify(a, b) == expected

    def test_parent_wins_over_keywords(self):
        assert classify("Core", "Core Design") == LinkType.PARENT

    def test_depends_wins_over_inspired(self):
        assert classify("Design Studio", "Infra Team") == LinkType.DEPENDS

    def test_case_insensitive(self):
        assert classify("FOUNDATION", "kitchen") == LinkType.DEPENDS

    def test_pure(self):
        assert classify("Alpha", "Beta") == classify("Alpha", "Beta")
