"""Tests for storage initialization and slug utilities."""

from storyloom import storage


def test_slugify_basic():
    assert storage.slugify("The Lighthouse") == "the-lighthouse"


def test_slugify_strips_quotes_and_accents():
    assert storage.slugify("The Keeper's Daughter") == "the-keepers-daughter"
    assert storage.slugify("Café Noir!") == "cafe-noir"


def test_slugify_empty_falls_back():
    assert storage.slugify("") == "untitled"
    assert storage.slugify("!!!") == "untitled"


def test_init_creates_layout(tmp_path):
    storage.init_storage(tmp_path / "fresh")
    assert storage.data_dir() == tmp_path / "fresh"
    assert storage.stories_dir().is_dir()
    assert storage.preview_path() == tmp_path / "fresh" / "preview.json"
