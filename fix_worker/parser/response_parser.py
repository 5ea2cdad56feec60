"""
Response Parser
===============
Turns raw model text into a structurally valid dict. Never raises.

Parsing Strategy (each tier only runs if the previous one failed):
    1. STRICT      — slice from the first ``{`` to the final ``}`` and json.loads it
    2. REPAIRED    — close a dangling string literal and unmatched ``[``/``{``,
                     then json.loads again
    3. EXTRACTED   — independent regex probes per expected field, assembled
                     into a best-effort object with explicit defaults
    Otherwise      — UNPARSEABLE (schema defaults only)

Sanitization runs on every outcome, whatever tier produced it:
    - boolean fields are coerced to bool
    - array fields default to [] when not a list
    - string fields default to an explanatory placeholder when absent

The schema declares which fields exist and what their defaults are, so every
consumer gets the same shape from a clean reply, a truncated reply, or prose.
"""
import json
import logging
import re
from dataclasses import dataclass, field
from typing import Any, Dict, Literal, Optional, Tuple

logger = logging.getLogger(__name__)

ParseStrategy = Literal["strict", "repaired", "extracted", "unparseable"]

_CLOSERS = {"{": "}", "[": "]"}
_CODE_BLOCK_RE = re.compile(r"```[a-zA-Z0-9_+-]*\n([\s\S]*?)```")
_PARTIAL_UNICODE_RE = re.compile(r"\\u[0-9a-fA-F]{0,3}$")
_TRAILING_SEPARATOR_RE = re.compile(r"[\s,:]+$")


# ---------------------------------------------------------------------------
# Schema / Result
# ---------------------------------------------------------------------------
@dataclass(frozen=True)
class ResponseSchema:
    """
    Expected fields of one kind of model reply.

    Attributes
    ----------
    booleans : dict
        Field name → default bool.
    strings : dict
        Field name → placeholder used when the field is absent.
    nullable_strings : tuple
        Fields that may legitimately be null (default None).
    string_arrays : tuple
        Arrays of free text.
    object_arrays : tuple
        Arrays of objects; only recoverable when the bracket content parses.
    """
    booleans: Dict[str, bool] = field(default_factory=dict)
    strings: Dict[str, str] = field(default_factory=dict)
    nullable_strings: Tuple[str, ...] = ()
    string_arrays: Tuple[str, ...] = ()
    object_arrays: Tuple[str, ...] = ()

    def defaults(self) -> Dict[str, Any]:
        data: Dict[str, Any] = {}
        data.update(self.booleans)
        data.update(self.strings)
        for name in self.nullable_strings:
            data[name] = None
        for name in self.string_arrays + self.object_arrays:
            data[name] = []
        return data


@dataclass
class ParsedResponse:
    """Sanitized reply plus the tier that produced it."""
    data: Dict[str, Any]
    strategy: ParseStrategy

    @property
    def ok(self) -> bool:
        return self.strategy != "unparseable"

    def get(self, key: str, default: Any = None) -> Any:
        return self.data.get(key, default)


FIX_RESPONSE_SCHEMA = ResponseSchema(
    booleans={"needsFix": False},
    strings={"explanation": "No explanation provided"},
    nullable_strings=("fixedCode",),
    string_arrays=("changes",),
    object_arrays=("lineChanges",),
)

FILE_GENERATION_SCHEMA = ResponseSchema(
    strings={"code": "", "explanation": "New file created as part of orchestrated implementation"},
    string_arrays=("dependencies",),
)

MODIFICATION_SCHEMA = ResponseSchema(
    strings={"explanation": "File modification for orchestrated integration", "summary": ""},
    nullable_strings=("fixedCode",),
    object_arrays=("changes",),
)

FEATURE_PLAN_SCHEMA = ResponseSchema(
    booleans={"needsNewFiles": False},
    strings={"reasoning": "", "summary": "", "estimatedFiles": "0"},
)


# ---------------------------------------------------------------------------
# Tier 1: strict
# ---------------------------------------------------------------------------
def strip_code_fences(text: str) -> str:
    """
    Remove a markdown fence wrapped around the whole reply.

    Only the opening fence line and a closing fence at the very end go;
    fences inside JSON string values (a ``newLine`` adding ```bash to a
    README) are content and stay untouched.
    """
    cleaned = text.strip()
    if cleaned.startswith("```"):
        first_newline = cleaned.find("\n")
        cleaned = cleaned[first_newline + 1:] if first_newline != -1 else cleaned[3:]
        if cleaned.rstrip().endswith("```"):
            cleaned = cleaned.rstrip()[:-3]
    return cleaned.strip()


def extract_json_candidate(text: str) -> Optional[str]:
    """
    Slice the JSON object candidate out of surrounding prose.

    Returns the text from the first ``{`` to the final ``}``. When the reply
    was cut off before any closing brace, the candidate runs to the end of
    the text so the repair tier can still close it.
    """
    start = text.find("{")
    if start == -1:
        return None
    end = text.rfind("}")
    if end < start:
        return text[start:]
    return text[start:end + 1]


def parse_strict(candidate: str) -> Optional[Dict[str, Any]]:
    try:
        data = json.loads(candidate)
    except (json.JSONDecodeError, ValueError):
        return None
    return data if isinstance(data, dict) else None


# ---------------------------------------------------------------------------
# Tier 2: bracket repair
# ---------------------------------------------------------------------------
def repair_truncated_json(text: str) -> str:
    """
    Complete a truncated JSON document.

    Scans character by character, tracking string-literal state (honouring
    backslash escapes) and the stack of unmatched ``{`` / ``[``. A string left
    open is closed; a dangling escape or partial ``\\uXXXX`` is dropped first
    so the added quote is not swallowed. Trailing commas/colons are trimmed,
    then closers are appended innermost first.
    """
    stack: list[str] = []
    in_string = False
    escaped = False

    for char in text:
        if escaped:
            escaped = False
            continue
        if char == "\\":
            if in_string:
                escaped = True
            continue
        if char == '"':
            in_string = not in_string
            continue
        if in_string:
            continue
        if char in _CLOSERS:
            stack.append(_CLOSERS[char])
        elif char in ("}", "]") and stack and stack[-1] == char:
            stack.pop()

    repaired = text
    if in_string:
        if escaped:
            repaired = repaired[:-1]
        repaired = _PARTIAL_UNICODE_RE.sub("", repaired)
        repaired += '"'
    else:
        repaired = _TRAILING_SEPARATOR_RE.sub("", repaired)

    return repaired + "".join(reversed(stack))


def parse_repaired(candidate: str) -> Optional[Dict[str, Any]]:
    repaired = repair_truncated_json(candidate)
    data = parse_strict(repaired)
    if data is None:
        # A key cut off before its value ({"a": 1, "b"}) is dropped
        trimmed = re.sub(r',\s*"(?:[^"\\]|\\.)*"\s*([}\]]+)$', r"\1", repaired)
        if trimmed != repaired:
            data = parse_strict(trimmed)
    return data


# ---------------------------------------------------------------------------
# Tier 3: field-level extraction
# ---------------------------------------------------------------------------
def _unescape(value: str) -> str:
    """Decode JSON string escapes, falling back to the common ones by hand."""
    try:
        return json.loads(f'"{value}"')
    except (json.JSONDecodeError, ValueError):
        return (
            value.replace("\\n", "\n")
            .replace("\\t", "\t")
            .replace("\\r", "\r")
            .replace('\\"', '"')
            .replace("\\\\", "\\")
        )


def extract_boolean(text: str, name: str) -> Optional[bool]:
    match = re.search(rf'"{re.escape(name)}"\s*:\s*(true|false)', text, re.IGNORECASE)
    if not match:
        return None
    return match.group(1).lower() == "true"


def extract_string(text: str, name: str) -> Optional[str]:
    match = re.search(rf'"{re.escape(name)}"\s*:\s*"((?:[^"\\]|\\.)*)"', text, re.DOTALL)
    if not match:
        return None
    return _unescape(match.group(1))


def _capture_brackets(text: str, start: int) -> Optional[str]:
    """Return the content between ``text[start] == '['`` and its matching ``]``."""
    depth = 0
    in_string = False
    escaped = False
    for index in range(start, len(text)):
        char = text[index]
        if escaped:
            escaped = False
            continue
        if char == "\\" and in_string:
            escaped = True
            continue
        if char == '"':
            in_string = not in_string
            continue
        if in_string:
            continue
        if char == "[":
            depth += 1
        elif char == "]":
            depth -= 1
            if depth == 0:
                return text[start + 1:index]
    return None


def extract_array(text: str, name: str, objects: bool = False) -> Optional[list]:
    """
    Capture ``"name": [ ... ]`` and re-parse it.

    String arrays fall back to splitting into individually unescaped quoted
    tokens; object arrays only survive a successful (possibly repaired) parse.
    """
    match = re.search(rf'"{re.escape(name)}"\s*:\s*\[', text)
    if not match:
        return None
    content = _capture_brackets(text, match.end() - 1)
    if content is None:
        if not objects:
            return None
        content = text[match.end():]

    candidate = f"[{content}]"
    try:
        parsed = json.loads(candidate)
    except (json.JSONDecodeError, ValueError):
        parsed = None
        if objects:
            try:
                parsed = json.loads(repair_truncated_json("[" + content))
            except (json.JSONDecodeError, ValueError):
                parsed = None
    if isinstance(parsed, list):
        return parsed

    if objects:
        return None
    tokens = re.findall(r'"((?:[^"\\]|\\.)*)"', content)
    return [_unescape(token) for token in tokens]


def extract_fields(text: str, schema: ResponseSchema) -> Optional[Dict[str, Any]]:
    """
    Probe each schema field independently.

    Returns None when not a single field could be found, so prose replies are
    reported as unparseable rather than as an all-defaults "extraction".
    """
    found: Dict[str, Any] = {}
    for name in schema.booleans:
        value = extract_boolean(text, name)
        if value is not None:
            found[name] = value
    for name in list(schema.strings) + list(schema.nullable_strings):
        value = extract_string(text, name)
        if value is not None:
            found[name] = value
    for name in schema.string_arrays:
        value = extract_array(text, name)
        if value is not None:
            found[name] = value
    for name in schema.object_arrays:
        value = extract_array(text, name, objects=True)
        if value is not None:
            found[name] = value

    if "code" in schema.strings and not found.get("code"):
        block = _CODE_BLOCK_RE.search(text)
        if block:
            found["code"] = block.group(1).strip()

    return found or None


# ---------------------------------------------------------------------------
# Sanitization
# ---------------------------------------------------------------------------
def _coerce_bool(value: Any) -> bool:
    if isinstance(value, str):
        return value.strip().lower() == "true"
    return bool(value)


def sanitize(data: Dict[str, Any], schema: ResponseSchema) -> Dict[str, Any]:
    """Force every schema field into its declared shape; unknown keys pass through."""
    clean = dict(data)
    for name, default in schema.booleans.items():
        clean[name] = _coerce_bool(clean[name]) if name in clean else default
    for name, placeholder in schema.strings.items():
        value = clean.get(name)
        if value is None or (isinstance(value, str) and not value.strip() and placeholder):
            clean[name] = placeholder
        elif not isinstance(value, str):
            clean[name] = str(value)
    for name in schema.nullable_strings:
        value = clean.get(name)
        if value is not None and not isinstance(value, str):
            clean[name] = str(value)
        else:
            clean[name] = value
    for name in schema.string_arrays:
        value = clean.get(name)
        clean[name] = [str(item) for item in value if item is not None] if isinstance(value, list) else []
    for name in schema.object_arrays:
        value = clean.get(name)
        clean[name] = value if isinstance(value, list) else []
    return clean


# ---------------------------------------------------------------------------
# Entry point
# ---------------------------------------------------------------------------
def parse_response(
    raw: Optional[str],
    schema: ResponseSchema,
    allow_extraction: bool = True,
) -> ParsedResponse:
    """
    Parse a model reply into a sanitized dict.

    Parameters
    ----------
    raw : str
        Raw model text (may be empty, prose, fenced, or truncated).
    schema : ResponseSchema
        Expected fields and their defaults.
    allow_extraction : bool
        Whether tier 3 may run. Callers that treat failure as "nothing to do"
        disable it.

    Returns
    -------
    ParsedResponse
        Always structurally valid; ``strategy`` names the tier that succeeded.
    """
    try:
        raw = raw or ""
        text = strip_code_fences(raw)
        candidate = extract_json_candidate(text)

        data: Optional[Dict[str, Any]] = None
        strategy: ParseStrategy = "unparseable"

        if candidate is not None:
            data = parse_strict(candidate)
            if data is not None:
                strategy = "strict"
            else:
                logger.warning("Strict JSON parse failed (%d chars), attempting repair", len(candidate))
                # A '}' inside a truncated string would end the candidate early,
                # so the whole tail is tried before the sliced candidate
                tail = text[text.find("{"):]
                data = parse_repaired(tail)
                if data is None and tail != candidate:
                    data = parse_repaired(candidate)
                if data is not None:
                    strategy = "repaired"

        if data is None and allow_extraction:
            data = extract_fields(raw, schema)
            if data is not None:
                strategy = "extracted"
                logger.info("Using field-level extraction: recovered %s", sorted(data))

        if data is None:
            logger.warning("Model reply could not be parsed (%d chars)", len(text))
            return ParsedResponse(data=schema.defaults(), strategy="unparseable")

        return ParsedResponse(data=sanitize(data, schema), strategy=strategy)

    except Exception as exc:  # the contract is "never raises"
        logger.error("Unexpected error while parsing model reply: %s", exc, exc_info=True)
        return ParsedResponse(data=schema.defaults(), strategy="unparseable")
