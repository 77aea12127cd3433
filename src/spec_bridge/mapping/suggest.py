"""Field-similarity suggestions between platform fields and external API fields."""

import re

from loguru import logger
from pydantic import BaseModel

MIN_CONFIDENCE = 0.5

_PREFIXES = re.compile(r"^(ext_|external_|sf_|salesforce_)", re.IGNORECASE)
_CUSTOM_SUFFIX = re.compile(r"__c$", re.IGNORECASE)


class FieldSuggestion(BaseModel):
    target_field: str
    source_field: str
    confidence: float


def normalize_field_name(name: str) -> str:
    """Strip known prefixes and the custom-field suffix, lowercase, drop separators.

    ``AccountName``, ``account_name`` and ``ext_Account_Name__c`` all normalize
    to ``accountname``.
    """
    cleaned = _CUSTOM_SUFFIX.sub("", _PREFIXES.sub("", name))
    return re.sub(r"[^a-z0-9]", "", cleaned.lower())


def levenshtein(a: str, b: str) -> int:
    """Classic edit distance; insert, delete and substitute each cost 1."""
    if len(a) < len(b):
        a, b = b, a
    previous = list(range(len(b) + 1))
    for i, ca in enumerate(a, start=1):
        current = [i]
        for j, cb in enumerate(b, start=1):
            current.append(
                min(
                    previous[j] + 1,
                    current[j - 1] + 1,
                    previous[j - 1] + (ca != cb),
                )
            )
        previous = current
    return previous[-1]


def name_similarity(a: str, b: str) -> float:
    clean_a, clean_b = normalize_field_name(a), normalize_field_name(b)
    if clean_a == clean_b:
        return 1.0
    longest = max(len(clean_a), len(clean_b))
    return 1 - levenshtein(clean_a, clean_b) / longest


def suggest_field_mappings(target_fields: list[str], source_fields: list[str]) -> list[FieldSuggestion]:
    """Best target per source field, kept only above 0.5 confidence, highest first.

    Ties go to the first target in ``target_fields``; equal confidences keep
    source order.
    """
    suggestions = []
    for source in source_fields:
        best, best_score = None, 0.0
        for target in target_fields:
            score = name_similarity(target, source)
            if score > best_score and score > MIN_CONFIDENCE:
                best, best_score = target, score
        if best is not None:
            suggestions.append(FieldSuggestion(target_field=best, source_field=source, confidence=best_score))
    return sorted(suggestions, key=lambda s: s.confidence, reverse=True)


def suggest_for_object(source, object_name: str, external_fields: list[str]) -> list[FieldSuggestion]:
    """Suggest mappings from an object's described fields (via a MetadataSource)."""
    fields = source.describe_object(object_name)
    suggestions = suggest_field_mappings([f.name for f in fields], external_fields)
    logger.info("{} mapping suggestions for {}", len(suggestions), object_name)
    return suggestions
