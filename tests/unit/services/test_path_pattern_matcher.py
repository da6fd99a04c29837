"""Tests for path include/exclude filtering."""

import pytest

from lfs_scanner.services.path_pattern_matcher import (
    PathPatternMatcher,
    filename_passes_filter,
)


class TestPathPatternMatcher:
    """Test glob matching on repo-relative paths."""

    def test_extension_wildcard_matches_at_any_depth(self):
        matcher = PathPatternMatcher()

        assert matcher.matches_pattern("textures/wood.png", "*.png")
        assert matcher.matches_pattern("a/b/c/wood.png", "*.png")
        assert not matcher.matches_pattern("textures/wood.psd", "*.png")

    def test_directory_pattern_matches_contents(self):
        matcher = PathPatternMatcher()

        assert matcher.matches_pattern("assets/models/car.fbx", "assets")
        assert matcher.matches_pattern("assets/models/car.fbx", "assets/models/")
        assert not matcher.matches_pattern("assets2/car.fbx", "assets")

    def test_double_wildcard_matches_nested_directories(self):
        matcher = PathPatternMatcher()

        assert matcher.matches_pattern("vendor/lib/module.bin", "**/vendor/**")
        assert matcher.matches_pattern("src/vendor/deep/file.bin", "**/vendor/**")
        assert not matcher.matches_pattern("src/vendored/file.bin", "**/vendor/**")
        assert matcher.matches_pattern("data/a/b/c.bin", "data/**/*.bin")

    def test_single_wildcard_directory_component(self):
        matcher = PathPatternMatcher()

        assert matcher.matches_pattern("src/tests/data.bin", "*/tests/*")
        assert matcher.matches_pattern("tests/data.bin", "*/tests/*")
        assert not matcher.matches_pattern("src/testing.bin", "*/tests/*")

    def test_question_mark_and_sequences(self):
        matcher = PathPatternMatcher()

        assert matcher.matches_pattern("img/frame_1.png", "img/frame_?.png")
        assert not matcher.matches_pattern("img/frame_12.png", "img/frame_?.png")
        assert matcher.matches_pattern("clip2.mov", "clip[123].mov")
        assert not matcher.matches_pattern("clip4.mov", "clip[123].mov")

    def test_paths_are_normalized(self):
        matcher = PathPatternMatcher()

        assert matcher.matches_pattern("assets\\img\\a.png", "assets/img/*.png")
        assert matcher.matches_pattern("assets/./img/../img/a.png", "assets/img/a.png")

    def test_empty_pattern_never_matches(self):
        assert not PathPatternMatcher().matches_pattern("a.bin", "  ")

    def test_none_pattern_raises(self):
        with pytest.raises(TypeError):
            PathPatternMatcher().matches_pattern("a.bin", None)

    def test_matches_any_pattern(self):
        matcher = PathPatternMatcher()
        patterns = ["*.psd", "models"]

        assert matcher.matches_any_pattern("models/car.fbx", patterns)
        assert not matcher.matches_any_pattern("audio/theme.ogg", patterns)
        assert not matcher.matches_any_pattern("audio/theme.ogg", [])


class TestFilenamePassesFilter:
    """Test include/exclude decisions."""

    def test_no_patterns_includes_everything(self):
        assert filename_passes_filter("anything.bin", None, None)
        assert filename_passes_filter("anything.bin", [], [])

    def test_include_patterns_restrict(self):
        assert filename_passes_filter("assets/a.png", ["assets"], None)
        assert not filename_passes_filter("docs/a.png", ["assets"], None)

    def test_exclude_wins_over_include(self):
        assert not filename_passes_filter("assets/a.psd", ["assets"], ["*.psd"])
        assert filename_passes_filter("assets/a.png", ["assets"], ["*.psd"])

    def test_exclude_only(self):
        assert not filename_passes_filter("big/file.bin", None, ["big"])
        assert filename_passes_filter("small/file.bin", None, ["big"])
