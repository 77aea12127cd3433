"""Validates generated files for syntax and structural correctness."""

import re
import xml.etree.ElementTree as ET

from spec_bridge.generator.base import GeneratedFile

_PAIRS = {")": "(", "}": "{", "]": "["}

# <access> [virtual|override|static] <type> <name>(<params>) {
_METHOD = re.compile(
    r"^\s*(public|private|protected|global)\s+(?:(?:virtual|override|static|abstract)\s+)*([\w.<>, ]+?)\s+(\w+)\s*\(([^)]*)\)\s*\{",
    re.MULTILINE,
)


def validate_xml(files: dict[str, str]) -> dict[str, str]:
    """Check XML files parse.

    Returns dict of {filename: error_message} for files with errors.
    """
    errors = {}
    for filename, content in files.items():
        if not filename.endswith(".xml"):
            continue
        try:
            ET.fromstring(content)
        except ET.ParseError as e:
            errors[filename] = f"ParseError: {e}"
    return errors


def validate_apex(files: dict[str, str]) -> dict[str, str]:
    """Check Apex classes for balanced brackets outside strings and comments,
    and for top-level methods declared twice with the same name and arity.

    Returns dict of {filename: error_message} for files with errors.
    """
    errors = {}
    for filename, content in files.items():
        if not filename.endswith(".cls"):
            continue
        if not content.strip():
            errors[filename] = "Empty class file"
            continue
        problem = _bracket_problem(_strip_literals(content))
        if problem:
            errors[filename] = problem
            continue
        duplicates = duplicate_methods(content)
        if duplicates:
            errors[filename] = "Duplicate methods: " + ", ".join(duplicates)
    return errors


def validate_mock_parity(files: dict[str, str]) -> dict[str, str]:
    """Every public service method must exist in the mock with the same parameter count.

    Service/mock pairs are found by name: ``<X>Service.cls`` and ``<X>ServiceMock.cls``.
    """
    errors = {}
    for filename, content in files.items():
        if not filename.endswith("Service.cls"):
            continue
        mock_name = filename[: -len(".cls")] + "Mock.cls"
        if mock_name not in files:
            continue
        service_methods = public_methods(content)
        mock_methods = public_methods(files[mock_name])
        missing = [
            f"{name}/{count}"
            for name, count in service_methods.items()
            if mock_methods.get(name) != count
        ]
        if missing:
            errors[mock_name] = "Missing or mismatched methods: " + ", ".join(missing)
    return errors


def public_methods(source: str) -> dict[str, int]:
    """Public instance methods of the outermost class, mapped to their parameter count."""
    return {name: count for access, name, count in _top_level_methods(source) if access == "public"}


def duplicate_methods(source: str) -> list[str]:
    """Methods of the outermost class declared more than once with the same name and arity."""
    seen: set[tuple[str, int]] = set()
    duplicates = []
    for _, name, count in _top_level_methods(source):
        key = (name.lower(), count)
        if key in seen:
            duplicates.append(f"{name}/{count}")
        seen.add(key)
    return duplicates


def _top_level_methods(source: str):
    depth = 0
    for line in _strip_literals(source).splitlines():
        # methods of the top-level class sit at depth 1; inner classes are deeper
        if depth == 1:
            match = _METHOD.match(line)
            if match and match.group(2).split()[-1] != "class":
                params = match.group(4).strip()
                yield match.group(1), match.group(3), len(_split_params(params)) if params else 0
        depth += line.count("{") - line.count("}")


def validate_files(files: dict[str, str] | list[GeneratedFile]) -> dict[str, str]:
    """Run all validations on generated files.

    Accepts either {filename: content} or a list of GeneratedFile.
    Returns dict of {filename: error_message} for all files with errors.
    """
    if not isinstance(files, dict):
        files = {f.file_name: f.content for f in files}

    errors = {}
    errors.update(validate_xml(files))
    errors.update(validate_apex(files))

    if not errors:
        errors.update(validate_mock_parity(files))

    return errors


def _strip_literals(source: str) -> str:
    """Blank out string literals and comments, keeping line structure."""
    out = []
    i = 0
    n = len(source)
    while i < n:
        ch = source[i]
        if ch == "'":
            i += 1
            while i < n and source[i] != "'":
                i += 2 if source[i] == "\\" else 1
            out.append("''")
            i += 1
        elif source.startswith("//", i):
            while i < n and source[i] != "\n":
                i += 1
        elif source.startswith("/*", i):
            end = source.find("*/", i + 2)
            end = n if end == -1 else end + 2
            out.append("\n" * source.count("\n", i, end))
            i = end
        else:
            out.append(ch)
            i += 1
    return "".join(out)


def _bracket_problem(code: str) -> str | None:
    stack: list[tuple[str, int]] = []
    for lineno, line in enumerate(code.splitlines(), start=1):
        for ch in line:
            if ch in "({[":
                stack.append((ch, lineno))
            elif ch in _PAIRS:
                if not stack or stack[-1][0] != _PAIRS[ch]:
                    return f"Unbalanced '{ch}' (line {lineno})"
                stack.pop()
    if stack:
        ch, lineno = stack[-1]
        return f"Unclosed '{ch}' (line {lineno})"
    return None


def _split_params(params: str) -> list[str]:
    """Split on commas that are not inside generic brackets."""
    parts, depth, current = [], 0, []
    for ch in params:
        if ch == "<":
            depth += 1
        elif ch == ">":
            depth -= 1
        if ch == "," and depth == 0:
            parts.append("".join(current))
            current = []
        else:
            current.append(ch)
    parts.append("".join(current))
    return [p for p in parts if p.strip()]
