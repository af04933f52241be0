"""Key/value lookups over registry tag lists.

Registry tags are plain strings: either ``key=value`` pairs or bare flag
tokens. Everything here is a pure function over the tag sequence it is
given; malformed tags never raise, they simply do not match.
"""

from __future__ import annotations

from collections.abc import Iterable, Sequence
from dataclasses import dataclass

from regroute.datastructures.type_aliases import (
    AttributePrefix,
    Tag,
    TagKey,
    TagValue,
)

from .errors import AttributeParseError

TAG_SEPARATOR = "="
PREFIX_SEPARATOR = "."
LIST_SEPARATOR = ","

_TRUE_VALUES = frozenset({"1", "t", "T", "true", "TRUE", "True"})
_FALSE_VALUES = frozenset({"0", "f", "F", "false", "FALSE", "False"})


def split_tag(tag: Tag) -> tuple[TagKey, TagValue] | None:
    """Split ``key=value`` on the first separator; ``None`` for anything else."""
    key, separator, value = tag.partition(TAG_SEPARATOR)
    if not separator or not key:
        return None
    return key, value


def has_tag(name: TagKey, tags: Iterable[Tag]) -> bool:
    """True when a tag is exactly ``name`` or starts with ``name=``."""
    if not name:
        return False
    prefix = f"{name}{TAG_SEPARATOR}"
    return any(tag == name or tag.startswith(prefix) for tag in tags)


def get_tag(key: TagKey, tags: Iterable[Tag], default: TagValue) -> TagValue:
    """Value of the first ``key=value`` tag whose key is ``key``."""
    for tag in tags:
        pair = split_tag(tag)
        if pair is not None and pair[0] == key:
            return pair[1]
    return default


def parse_bool(value: str, *, key: str = "") -> bool:
    """Parse the boolean spellings accepted for tag values."""
    if value in _TRUE_VALUES:
        return True
    if value in _FALSE_VALUES:
        return False
    raise AttributeParseError(key, value, "boolean")


def parse_int(value: str, *, key: str = "") -> int:
    try:
        return int(value.strip(), 10)
    except ValueError:
        raise AttributeParseError(key, value, "integer") from None


def split_list(value: str) -> tuple[str, ...]:
    return tuple(item.strip() for item in value.split(LIST_SEPARATOR) if item.strip())


@dataclass(frozen=True, slots=True)
class TagAccessor:
    """Prefix-scoped attribute lookups.

    With ``prefix="traefik"`` the attribute ``backend.weight`` is read from
    the ``traefik.backend.weight`` tag. An empty prefix reads ``backend.weight``
    directly.
    """

    prefix: AttributePrefix = ""

    def get_prefixed_name(self, name: str) -> TagKey:
        if self.prefix:
            return f"{self.prefix}{PREFIX_SEPARATOR}{name}"
        return name

    def has_attribute(self, suffix: str, tags: Sequence[Tag]) -> bool:
        return has_tag(self.get_prefixed_name(suffix), tags)

    def get_attribute(
        self, suffix: str, tags: Sequence[Tag], default: TagValue
    ) -> TagValue:
        return get_tag(self.get_prefixed_name(suffix), tags, default)

    def lookup_attribute(self, suffix: str, tags: Sequence[Tag]) -> TagValue | None:
        """Attribute value, or ``None`` when no tag carries it."""
        key = self.get_prefixed_name(suffix)
        for tag in tags:
            pair = split_tag(tag)
            if pair is not None and pair[0] == key:
                return pair[1]
        return None

    def get_bool_attribute(self, suffix: str, tags: Sequence[Tag]) -> bool | None:
        """Boolean attribute; raises AttributeParseError for bad spellings."""
        value = self.lookup_attribute(suffix, tags)
        if value is None:
            return None
        return parse_bool(value, key=self.get_prefixed_name(suffix))

    def get_int_attribute(self, suffix: str, tags: Sequence[Tag]) -> int | None:
        """Integer attribute; raises AttributeParseError for bad numbers."""
        value = self.lookup_attribute(suffix, tags)
        if value is None:
            return None
        return parse_int(value, key=self.get_prefixed_name(suffix))

    def get_list_attribute(self, suffix: str, tags: Sequence[Tag]) -> tuple[str, ...]:
        value = self.lookup_attribute(suffix, tags)
        if value is None:
            return tuple()
        return split_list(value)
