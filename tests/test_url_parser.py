import pytest

from crxfetch.url_parser import (
    ExtensionRef,
    parse_extension_ref,
    sanitize_name,
    validate_extension_id,
)

EXTENSION_ID = "iofjnhbihgjfhdldcnlmjbfmighljfob"


def test_bare_id():
    assert parse_extension_ref(EXTENSION_ID) == ExtensionRef(EXTENSION_ID, EXTENSION_ID)


@pytest.mark.parametrize("url,name", [
    (f"https://chromewebstore.google.com/detail/twitterx-feed-blocker/{EXTENSION_ID}", "twitterx-feed-blocker"),
    (f"https://chrome.google.com/webstore/detail/some-ext/{EXTENSION_ID}?hl=en", "some-ext"),
    (f"https://chromewebstore.google.com/detail/{EXTENSION_ID}/", EXTENSION_ID),
    (f"https://chromewebstore.google.com/detail/caf%C3%A9-t%C3%A4b/{EXTENSION_ID}", "cafC3A9-tC3A4b"),
    (f"https://chromewebstore.google.com/detail/%%%/{EXTENSION_ID}", EXTENSION_ID),
])
def test_store_urls(url, name):
    ref = parse_extension_ref(url)

    assert ref.extension_id == EXTENSION_ID
    assert ref.name == name


@pytest.mark.parametrize("value", [
    "",
    "   ",
    "not-an-id",
    "ftp://example.com/detail/x/" + EXTENSION_ID,
    "https://chromewebstore.google.com/detail/name/NOTANID",
    "https://chromewebstore.google.com/",
])
def test_invalid_references(value):
    with pytest.raises(ValueError):
        parse_extension_ref(value)


def test_validate_extension_id():
    assert validate_extension_id(EXTENSION_ID)
    assert not validate_extension_id(EXTENSION_ID.upper())
    assert not validate_extension_id("z" * 32)
    assert not validate_extension_id(EXTENSION_ID[:-1])
    assert not validate_extension_id(None)


def test_sanitize_name():
    assert sanitize_name("my ext/../name!") == "myextname"
