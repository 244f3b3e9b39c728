"""Tests for offline typosquat candidate generation."""

from brandsentry.detectors.typosquat import permutations


def test_candidates_are_sorted_unique_and_exclude_domain():
    candidates = permutations("Example.com.")
    assert candidates == sorted(set(candidates))
    assert "example.com" not in candidates
    assert all(candidate.endswith(".com") for candidate in candidates)


def test_covers_each_permutation_family():
    candidates = set(permutations("example.com"))
    assert "example-login.com" in candidates
    assert "secure-example.com" in candidates
    assert "exmple.com" in candidates
    assert "examp1e.com" in candidates
    assert "exmaple.com" in candidates
    assert "wxample.com" in candidates


def test_locale_changes_keyboard_neighbours():
    us = set(permutations("zap.io", "us"))
    fr = set(permutations("zap.io", "fr"))
    assert "wap.io" not in us
    assert "wap.io" in fr
    assert us < fr


def test_bare_label_gets_hyphen_suffixes_only():
    assert permutations("brand") == sorted(
        ["brand-auth", "brand-billing", "brand-login", "brand-secure", "brand-support", "brand-update", "brand-verify"]
    )
