"""Identifier rules for the Apex target."""

import re

from spec_bridge.errors import SpecValidationError

MAX_IDENTIFIER_LENGTH = 40

# Apex reserved keywords (case-insensitive), including SOQL words that cannot
# be used as identifiers.
APEX_RESERVED = frozenset(
    """
    abstract activate and any array as asc autonomous begin bigdecimal blob boolean break bulk by byte
    case cast catch char class collect commit const continue currency date datetime decimal default
    delete desc do double else end enum exception exit export extends false final finally float for
    from global goto group having hint if implements import in inner insert instanceof integer interface
    into int join last_90_days last_month last_n_days last_week like limit list long loop map merge new
    next_90_days next_month next_n_days next_week not null nulls number object of on or outer override
    package parallel pragma private protected public retrieve return rollback select set short sobject
    sort static string super switch synchronized system testmethod then this this_month this_week throw
    time today tolabel tomorrow transaction trigger true try type undelete update upsert using virtual
    void webservice when where while yesterday
    """.split()
)


def sanitize_class_name(name: str, max_length: int = MAX_IDENTIFIER_LENGTH) -> str:
    """Turn a free-form name into an Apex class identifier.

    Non-alphanumerics are dropped, a leading digit gets a ``C`` prefix and the
    result is cut to ``max_length``.
    """
    sanitized = re.sub(r"[^A-Za-z0-9]", "", name or "")
    if sanitized[:1].isdigit():
        sanitized = "C" + sanitized
    sanitized = sanitized[:max_length]
    if not sanitized:
        raise SpecValidationError(f"Invalid class name: {name!r}")
    return sanitized


def split_words(name: str) -> list[str]:
    """Split on non-alphanumerics and camelCase humps; all-caps words are lowered."""
    words = []
    for chunk in re.split(r"[^A-Za-z0-9]+", name or ""):
        for word in re.findall(r"[A-Z]+(?![a-z])|[A-Z]?[a-z]+|[0-9]+", chunk):
            words.append(word.lower() if word.isupper() else word)
    return words


def to_camel_case(name: str) -> str:
    words = split_words(name)
    if not words:
        return ""
    return words[0][0].lower() + words[0][1:] + "".join(w[0].upper() + w[1:] for w in words[1:])


def to_pascal_case(name: str) -> str:
    return "".join(w[0].upper() + w[1:] for w in split_words(name))


def method_name(name: str, convention: str = "camelCase") -> str:
    """Method identifier for an endpoint name such as ``GET /pets/{id}`` or ``listPets``."""
    converted = to_pascal_case(name) if convention == "PascalCase" else to_camel_case(name)
    if not converted:
        converted = "Call" if convention == "PascalCase" else "call"
    if converted[0].isdigit():
        converted = ("M" if convention == "PascalCase" else "m") + converted
    return escape_reserved(converted[:MAX_IDENTIFIER_LENGTH])


def variable_name(name: str) -> str:
    """Field / argument identifier; reserved words get an ``_x`` suffix."""
    converted = re.sub(r"[^A-Za-z0-9_]", "_", name or "").strip("_")
    converted = re.sub(r"_+", "_", converted)
    if not converted:
        converted = "value"
    if converted[0].isdigit():
        converted = "v" + converted
    return escape_reserved(converted[:MAX_IDENTIFIER_LENGTH])


def escape_reserved(identifier: str) -> str:
    if identifier.lower() in APEX_RESERVED:
        return identifier + "_x"
    return identifier


def capitalize_first(value: str) -> str:
    return value[:1].upper() + value[1:]


def unique_name(candidate: str, taken: set[str], max_length: int = MAX_IDENTIFIER_LENGTH) -> str:
    """Append 2, 3, ... until ``candidate`` is not in ``taken`` (case-insensitive), then reserve it."""
    lowered = {t.lower() for t in taken}
    name = candidate
    counter = 2
    while name.lower() in lowered:
        suffix = str(counter)
        name = candidate[: max_length - len(suffix)] + suffix
        counter += 1
    taken.add(name)
    return name
