from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Dict, Iterable, List, Mapping, Optional, Sequence, Tuple
from urllib.parse import parse_qs, urlencode

STR = "str"
OPTIONAL_STR = "optional_str"
LIST = "list"
BOOL = "bool"

CHART_STYLES = ("line", "bar", "matrix")
DECIMALS = ("auto", "0", "1", "2", "3")

# A raw query as produced by parse_qs / Flask's request.args.to_dict(flat=False),
# or the simpler one-value-per-key mapping
RawQuery = Mapping[str, Any]


@dataclass(frozen=True)
class FieldSpec:
    """
    One state field with its query-string key and base default.

    view_scoped fields belong to the active view: switching views resets
    them to the new view's defaults and forgets any user override.
    """
    name: str
    key: str
    kind: str
    default: Any
    view_scoped: bool = False


FIELDS: Tuple[FieldSpec, ...] = (
    FieldSpec("countries", "c", LIST, ("USA", "SWE")),
    FieldSpec("type", "t", STR, "asmr"),
    FieldSpec("chart_type", "ct", STR, "fluseason"),
    FieldSpec("chart_style", "cs", STR, "line", view_scoped=True),
    FieldSpec("age_groups", "ag", LIST, ("all",)),
    FieldSpec("standard_population", "sp", STR, "who"),
    FieldSpec("date_from", "df", OPTIONAL_STR, None),
    FieldSpec("date_to", "dt", OPTIONAL_STR, None),
    FieldSpec("slider_start", "ss", OPTIONAL_STR, "2010"),
    FieldSpec("show_baseline", "sb", BOOL, True, view_scoped=True),
    FieldSpec("baseline_method", "bm", STR, "mean"),
    FieldSpec("baseline_date_from", "bdf", OPTIONAL_STR, None),
    FieldSpec("baseline_date_to", "bdt", OPTIONAL_STR, None),
    FieldSpec("show_prediction_interval", "pi", BOOL, True, view_scoped=True),
    FieldSpec("cumulative", "cum", BOOL, False, view_scoped=True),
    FieldSpec("show_total", "st", BOOL, False, view_scoped=True),
    FieldSpec("show_percentage", "p", BOOL, False, view_scoped=True),
    FieldSpec("show_logarithmic", "lg", BOOL, False, view_scoped=True),
    FieldSpec("maximize", "m", BOOL, False),
    FieldSpec("show_labels", "sl", BOOL, True),
    FieldSpec("decimals", "dec", STR, "auto"),
)

FIELDS_BY_NAME: Dict[str, FieldSpec] = {f.name: f for f in FIELDS}
FIELDS_BY_KEY: Dict[str, FieldSpec] = {f.key: f for f in FIELDS}
VIEW_SCOPED_FIELDS = frozenset(f.name for f in FIELDS if f.view_scoped)


def base_defaults() -> Dict[str, Any]:
    """Every field's base default. List fields hold tuples so state stays immutable."""
    return {f.name: f.default for f in FIELDS}


# ----------------------------------------------------------------------
# Scalar encoders
# ----------------------------------------------------------------------
def encode_bool(value: bool, default: bool) -> Optional[str]:
    """
    Booleans travel as presence flags relative to their default:
    a field that defaults to False is "1" or absent, one that defaults to
    True is "0" or absent.
    """
    if bool(value) == bool(default):
        return None
    return "1" if value else "0"


def decode_bool(raw: Optional[str], default: bool) -> bool:
    if raw is None:
        return default
    text = str(raw).strip().lower()
    if text in ("1", "true", "yes", "on"):
        return True
    if text in ("0", "false", "no", "off"):
        return False
    return default


# ----------------------------------------------------------------------
# Query (de)serialisation
# ----------------------------------------------------------------------
def parse_query_string(query: str) -> Dict[str, List[str]]:
    return parse_qs(query.lstrip("?"), keep_blank_values=True)


def normalize_query(query: RawQuery | str | None) -> Dict[str, List[str]]:
    """Coerce any accepted query shape into key -> list of values."""
    if query is None:
        return {}
    if isinstance(query, str):
        return parse_query_string(query)

    normalized: Dict[str, List[str]] = {}
    for key, raw in query.items():
        if raw is None:
            continue
        if isinstance(raw, (list, tuple)):
            normalized[key] = [str(v) for v in raw]
        else:
            normalized[key] = [str(raw)]
    return normalized


def _split_list(values: Sequence[str]) -> List[str]:
    out: List[str] = []
    for raw in values:
        out.extend(part.strip() for part in raw.split(",") if part.strip())
    return out


def decode_query(query: RawQuery | str | None) -> Dict[str, Any]:
    """
    Decode the known keys of a query into field values.

    Only fields whose key is present appear in the result; presence is what
    marks a field as a user override. Unknown keys are ignored.
    """
    normalized = normalize_query(query)
    decoded: Dict[str, Any] = {}
    for key, values in normalized.items():
        spec = FIELDS_BY_KEY.get(key)
        if spec is None or not values:
            continue
        last = values[-1]
        if spec.kind == LIST:
            decoded[spec.name] = _split_list(values)
        elif spec.kind == BOOL:
            decoded[spec.name] = decode_bool(last, spec.default)
        elif spec.kind == OPTIONAL_STR:
            decoded[spec.name] = last or None
        else:
            decoded[spec.name] = last
    return decoded


def encode_fields(
        values: Mapping[str, Any],
        fields: Iterable[str],
        defaults: Mapping[str, Any],
) -> List[Tuple[str, str]]:
    """
    Encode `fields` (in declaration order) as query pairs, skipping any
    whose value equals its default in `defaults`.
    """
    wanted = set(fields)
    pairs: List[Tuple[str, str]] = []
    for spec in FIELDS:
        if spec.name not in wanted:
            continue
        value = values.get(spec.name)
        default = defaults.get(spec.name, spec.default)

        if spec.kind == BOOL:
            encoded = encode_bool(bool(value), bool(default))
            if encoded is not None:
                pairs.append((spec.key, encoded))
        elif spec.kind == LIST:
            items = list(value or [])
            if items == list(default or []):
                continue
            pairs.extend((spec.key, str(item)) for item in items)
        else:
            if value is None or value == default:
                continue
            pairs.append((spec.key, str(value)))
    return pairs


def to_query_string(pairs: Sequence[Tuple[str, str]]) -> str:
    return urlencode(list(pairs), safe="/")
