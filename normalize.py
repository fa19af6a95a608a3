"""
Product intake normalization

Product requests arrive as JSON or as multipart forms, and the same logical
field can be a JSON array, a JSON string, a comma separated string or a set
of indexed keys (`specifications[0][key]`). Everything here reduces those
shapes to one canonical list so handlers never branch on the wire format.
"""
import json
import re
from typing import Any, Dict, List, Optional

from bson import ObjectId

from database import collection
from helpers import parse_number, trim_or_none
from schemas import ALLOWED_BADGES

IMAGE_FIELDS = ("images", "existingImages", "keepImages")


def convert_to_array(value: Any) -> List[Any]:
    if value is None:
        return []
    if isinstance(value, list):
        return value
    if isinstance(value, str):
        trimmed = value.strip()
        if not trimmed:
            return []
        if trimmed.startswith("[") or trimmed.startswith("{"):
            try:
                parsed = json.loads(trimmed)
            except ValueError:
                parsed = None
            if isinstance(parsed, list):
                return parsed
            if isinstance(parsed, dict):
                return [parsed]
        return [part.strip() for part in trimmed.split(",") if part.strip()]
    if isinstance(value, dict):
        return [value]
    return []


def collect_indexed_objects(fields: Dict[str, Any], name: str) -> List[Dict[str, Any]]:
    """`name[<i>][<prop>]` keys grouped into one dict per index, ordered by index."""
    pattern = re.compile(rf"^{re.escape(name)}\[(\d+)\]\[(\w+)\]$")
    bucket: Dict[int, Dict[str, Any]] = {}
    for key, value in fields.items():
        match = pattern.match(key)
        if not match:
            continue
        if isinstance(value, list):
            value = value[-1] if value else None
        bucket.setdefault(int(match.group(1)), {})[match.group(2)] = value
    return [bucket[i] for i in sorted(bucket)]


def _first(entry: Dict[str, Any], *keys: str) -> Any:
    for key in keys:
        if entry.get(key) is not None:
            return entry[key]
    return None


def _upsert(records: List[Dict[str, Any]], record: Dict[str, Any], key: str) -> None:
    lower = record[key].lower()
    for i, existing in enumerate(records):
        if existing[key].lower() == lower:
            records[i] = record
            return
    records.append(record)


def normalize_specifications(raw: Any, fields: Dict[str, Any]) -> List[Dict[str, str]]:
    records: List[Dict[str, str]] = []

    def add(entry: Dict[str, Any]) -> None:
        key = trim_or_none(_first(entry, "key", "name"))
        value = trim_or_none(_first(entry, "value", "desc", "description"))
        if key and value:
            _upsert(records, {"key": key, "value": value}, "key")

    for entry in collect_indexed_objects(fields, "specifications"):
        add(entry)

    for entry in convert_to_array(raw):
        if not entry:
            continue
        if isinstance(entry, str):
            raw_key, sep, rest = entry.partition(":")
            if sep:
                add({"key": raw_key, "value": rest})
        elif isinstance(entry, dict):
            add(entry)
    return records


def normalize_color_variants(raw: Any, fields: Dict[str, Any]) -> List[Dict[str, Any]]:
    variants: List[Dict[str, Any]] = []

    def add(candidate: Any) -> None:
        if not candidate:
            return
        if isinstance(candidate, str):
            label = trim_or_none(candidate)
            if label and not any(v["name"].lower() == label.lower() for v in variants):
                variants.append({"name": label})
            return
        if not isinstance(candidate, dict):
            return
        name = trim_or_none(_first(candidate, "name", "label", "title"))
        if not name:
            return
        variant: Dict[str, Any] = {"name": name}
        code = trim_or_none(_first(candidate, "code", "hex", "colorCode", "color"))
        if code:
            variant["code"] = code
        stock = parse_number(candidate.get("stock"))
        if stock is not None and stock >= 0:
            variant["stock"] = stock
        _upsert(variants, variant, "name")

    for entry in collect_indexed_objects(fields, "colorVariants"):
        add(entry)
    for entry in convert_to_array(raw):
        add(entry)
    return variants


def normalize_badges(raw: Any, fields: Dict[str, Any]) -> List[str]:
    badges: List[str] = []

    def add(value: Any) -> None:
        normalized = trim_or_none(value)
        if not normalized:
            return
        lower = normalized.lower()
        if lower in ALLOWED_BADGES and lower not in badges:
            badges.append(lower)

    for entry in convert_to_array(raw):
        add(entry)
    for key, value in fields.items():
        if key.startswith("badges["):
            for item in value if isinstance(value, list) else [value]:
                add(item)
    return badges


def collect_body_images(fields: Dict[str, Any]) -> List[str]:
    images: List[str] = []

    def register(value: Any) -> None:
        normalized = trim_or_none(value) if isinstance(value, (str, int, float)) else None
        if normalized and normalized not in images:
            images.append(normalized)

    for field in IMAGE_FIELDS:
        value = fields.get(field)
        if isinstance(value, list):
            for item in value:
                register(item)
        elif value is not None:
            for item in convert_to_array(value):
                register(item)

    for key, value in fields.items():
        if key.startswith("images["):
            for item in value if isinstance(value, list) else [value]:
                register(item)
    return images


def merge_images(body_images: List[str], uploaded: List[str]) -> List[str]:
    merged: List[str] = []
    for url in body_images + uploaded:
        if url not in merged:
            merged.append(url)
    return merged


def resolve_category(value: Any) -> Optional[Dict[str, Any]]:
    """Active category by id, then slug, then case-insensitive exact name."""
    trimmed = trim_or_none(value)
    if not trimmed:
        return None
    categories = collection("category")
    if ObjectId.is_valid(trimmed):
        return categories.find_one({"_id": ObjectId(trimmed), "isActive": True})
    normalized = trimmed.lower()
    by_slug = categories.find_one({"slug": normalized, "isActive": True})
    if by_slug:
        return by_slug
    return categories.find_one({
        "name": {"$regex": f"^{re.escape(normalized)}$", "$options": "i"},
        "isActive": True,
    })
