"""Family descriptors: a named record type owning a target relation."""

from __future__ import annotations

import re
import unicodedata
from dataclasses import dataclass, field, replace
from typing import Final

from catalogist.domain.model.enums import AttributeType, FamilySource

TABLE_SUFFIX: Final[str] = "_specs"
BASE_COLUMNS: Final[frozenset[str]] = frozenset(
    {
        "id",
        "family",
        "brand",
        "brand_norm",
        "identifier",
        "identifier_norm",
        "series",
        "display_name",
        "identifier_source",
        "verified_in_doc",
        "doc_type",
        "source_ref",
        "run_id",
        "overflow",
        "created_at",
        "updated_at",
    }
)
_SLUG_INVALID = re.compile(r"[^a-z0-9]+")
_TABLE_NAME = re.compile(r"^[a-z_][a-z0-9_]{0,62}$")


def slugify_family(value: str) -> str:
    """Normalize a family hint to ``[a-z0-9_]`` slug form."""

    text = unicodedata.normalize("NFKC", value).strip().lower()
    return _SLUG_INVALID.sub("_", text).strip("_")


def default_table_name(slug: str) -> str:
    return f"{slug}{TABLE_SUFFIX}"


def is_valid_table_name(name: str) -> bool:
    return bool(_TABLE_NAME.match(name))


@dataclass(frozen=True, slots=True)
class Family:
    """A catalog item category with its own schema and storage relation.

    ``attributes`` holds the declared attribute types. ``allowed_keys`` is the
    ordered set of attribute names discovered by previous runs, and
    ``variant_keys`` the attributes whose combinations enumerate distinct items
    inside one document.
    """

    slug: str
    table_name: str
    attributes: dict[str, AttributeType] = field(default_factory=dict)
    allowed_keys: tuple[str, ...] = ()
    variant_keys: tuple[str, ...] = ()
    identifier_template: str | None = None
    keywords: tuple[str, ...] = ()
    brands: tuple[str, ...] = ()

    @classmethod
    def default_for(cls, slug: str) -> Family:
        return cls(slug=slug, table_name=default_table_name(slug))

    def declared_type(self, key: str) -> AttributeType:
        return self.attributes.get(key, AttributeType.TEXT)

    def vocabulary(self) -> tuple[str, ...]:
        seen: dict[str, None] = dict.fromkeys(self.attributes)
        seen.update(dict.fromkeys(self.allowed_keys))
        seen.update(dict.fromkeys(self.variant_keys))
        return tuple(seen)

    def with_discovered(
        self,
        *,
        allowed: tuple[str, ...] = (),
        variants: tuple[str, ...] = (),
    ) -> Family:
        new_allowed = tuple(dict.fromkeys((*self.allowed_keys, *allowed)))
        new_variants = tuple(dict.fromkeys((*self.variant_keys, *variants)))
        return replace(self, allowed_keys=new_allowed, variant_keys=new_variants)


@dataclass(frozen=True, slots=True)
class FamilyResolution:
    family: Family
    source: FamilySource
    confidence: float | None = None

    @property
    def uncertain(self) -> bool:
        return self.source is FamilySource.DEFAULT
