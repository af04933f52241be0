import pytest

from regroute.provider.errors import AttributeParseError
from regroute.provider.tags import (
    TagAccessor,
    get_tag,
    has_tag,
    parse_bool,
    parse_int,
    split_list,
    split_tag,
)


def test_has_tag_matches_bare_token_and_key_value() -> None:
    assert has_tag("management", ["management"]) is True
    assert has_tag("management", ["management=yes"]) is True


def test_has_tag_requires_exact_key() -> None:
    assert has_tag("management", ["managementx"]) is False
    assert has_tag("management", ["x.management=yes"]) is False
    assert has_tag("Management", ["management"]) is False
    assert has_tag("management", []) is False


def test_get_tag_returns_first_matching_value() -> None:
    tags = ["foo.bar=random", "traefik.backend.weight=42", "management"]
    assert get_tag("foo.bar", tags, "0") == "random"
    assert get_tag("traefik.backend.weight", tags, "0") == "42"


def test_get_tag_first_match_wins() -> None:
    assert get_tag("key", ["key=one", "key=two"], "") == "one"


def test_get_tag_falls_back_to_default() -> None:
    tags = ["foo.bar=random", "management"]
    assert get_tag("missing", tags, "fallback") == "fallback"
    assert get_tag("management", tags, "fallback") == "fallback"


def test_get_tag_splits_on_first_separator_only() -> None:
    assert get_tag("rule", ["rule=Headers:X=1"], "") == "Headers:X=1"
    assert get_tag("empty", ["empty="], "default") == ""


def test_malformed_tags_never_match() -> None:
    assert split_tag("") is None
    assert split_tag("=value") is None
    assert split_tag("flag") is None
    assert get_tag("", ["=value"], "default") == "default"


def test_get_attribute_with_prefix() -> None:
    accessor = TagAccessor(prefix="traefik")
    assert accessor.get_prefixed_name("foo") == "traefik.foo"
    assert (
        accessor.get_attribute(
            "backend.weight", ["foo.bar=ramdom", "traefik.backend.weight=42"], "0"
        )
        == "42"
    )
    assert (
        accessor.get_attribute(
            "backend.weight", ["foo.bar=ramdom", "traefik.backend.wei=42"], "0"
        )
        == "0"
    )


def test_get_attribute_with_empty_prefix() -> None:
    accessor = TagAccessor(prefix="")
    tags = ["foo.bar=ramdom", "backend.wei=42"]
    assert accessor.get_prefixed_name("foo") == "foo"
    assert accessor.get_attribute("backend.weight", ["backend.weight=42"], "0") == "42"
    assert accessor.get_attribute("backend.weight", tags, "0") == "0"
    assert accessor.get_attribute("foo.bar", tags, "random") == "ramdom"


def test_lookup_attribute_distinguishes_missing_from_empty() -> None:
    accessor = TagAccessor(prefix="traefik")
    assert accessor.lookup_attribute("frontend.rule", []) is None
    assert accessor.lookup_attribute("frontend.rule", ["traefik.frontend.rule="]) == ""


def test_typed_attributes() -> None:
    accessor = TagAccessor(prefix="traefik")
    tags = [
        "traefik.enable=true",
        "traefik.backend.weight=7",
        "traefik.frontend.entryPoints=http, https,",
    ]
    assert accessor.get_bool_attribute("enable", tags) is True
    assert accessor.get_bool_attribute("missing", tags) is None
    assert accessor.get_int_attribute("backend.weight", tags) == 7
    assert accessor.get_list_attribute("frontend.entryPoints", tags) == (
        "http",
        "https",
    )
    assert accessor.get_list_attribute("missing", tags) == ()


def test_typed_attributes_raise_parse_errors() -> None:
    accessor = TagAccessor(prefix="traefik")
    with pytest.raises(AttributeParseError) as excinfo:
        accessor.get_bool_attribute("enable", ["traefik.enable=bad"])
    assert excinfo.value.key == "traefik.enable"
    with pytest.raises(AttributeParseError):
        accessor.get_int_attribute("backend.weight", ["traefik.backend.weight=heavy"])


@pytest.mark.parametrize(
    ("value", "expected"),
    [("true", True), ("1", True), ("T", True), ("False", False), ("0", False)],
)
def test_parse_bool_spellings(value: str, expected: bool) -> None:
    assert parse_bool(value) is expected


def test_parse_bool_rejects_other_values() -> None:
    for value in ("yes", "", "on", "tRuE"):
        with pytest.raises(AttributeParseError):
            parse_bool(value)


def test_parse_int_and_split_list() -> None:
    assert parse_int(" 42 ") == 42
    with pytest.raises(AttributeParseError):
        parse_int("4.2")
    assert split_list("a:1,b:2") == ("a:1", "b:2")
    assert split_list("") == ()
