"""Tests for repository reference normalization."""
import pytest

from secflow.analyzers.source_reference import normalize_source_reference, parse_source_reference


@pytest.mark.parametrize("reference", [
    "projectdiscovery/nuclei",
    "projectdiscovery/nuclei.git",
    "https://github.com/projectdiscovery/nuclei",
    "https://github.com/projectdiscovery/nuclei.git",
    "https://www.github.com/projectdiscovery/nuclei/",
    "git@github.com:projectdiscovery/nuclei.git",
    "  github.com/projectdiscovery/nuclei  ",
])
def test_github_forms_share_a_canonical_reference(reference):
    ref = normalize_source_reference(reference)
    assert ref.canonical == "projectdiscovery/nuclei"
    assert ref.module_path == "github.com/projectdiscovery/nuclei"
    assert ref.name == "nuclei"


def test_other_hosts_stay_explicit():
    ref = normalize_source_reference("https://gitlab.com/acme/scanner.git")
    assert ref.host == "gitlab.com"
    assert ref.canonical == "gitlab.com/acme/scanner"


def test_owner_case_is_preserved():
    assert normalize_source_reference("OJ/gobuster").canonical == "OJ/gobuster"


@pytest.mark.parametrize("reference", ["", "nuclei", "not a repo", "https://github.com/only-owner"])
def test_invalid_references(reference):
    with pytest.raises(ValueError):
        normalize_source_reference(reference)


def test_parse_returns_nones_for_garbage():
    assert parse_source_reference("???") == (None, None, None)
