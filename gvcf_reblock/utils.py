"""Small utility helpers used across the gvcf_reblock package.

This module intentionally keeps a tiny surface area of pure-Python helpers that
are easy to unit-test and have no heavy dependencies: VCF column parsing and
formatting, genotype string handling and phred arithmetic on PL lists.
"""
from typing import Dict, Iterable, List, Mapping, Optional, Tuple

MAX_GENOTYPE_QUALITY = 99
MISSING = "."


def parse_info_field(info: str) -> Dict[str, Optional[str]]:
    """Parse a VCF INFO column (key[=value];... ) into a dict.

    Values are returned as strings; flag keys (no value) map to None.
    An INFO field of '.' returns an empty dict.
    """
    out: Dict[str, Optional[str]] = {}
    if not info or info == MISSING:
        return out
    for token in info.split(";"):
        if not token:
            continue
        if "=" in token:
            k, v = token.split("=", 1)
            out[k] = v
        else:
            out[token] = None
    return out


def format_info_field(info: Mapping[str, Optional[str]]) -> str:
    """Inverse of :func:`parse_info_field`; insertion order is preserved."""
    if not info:
        return MISSING
    parts = []
    for k, v in info.items():
        parts.append(k if v is None else f"{k}={v}")
    return ";".join(parts)


def parse_format_sample(fmt: str, sample: str) -> Dict[str, Optional[str]]:
    """Parse FORMAT and a sample column into a dict mapping keys->values.

    Example: fmt='GT:AD:DP' sample='0/1:10,5:15' -> {'GT':'0/1','AD':'10,5','DP':'15'}
    Missing (or '.') fields are mapped to None.
    """
    keys = fmt.split(":") if fmt else []
    vals = sample.split(":") if sample else []
    out: Dict[str, Optional[str]] = {}
    for i, k in enumerate(keys):
        val = vals[i] if i < len(vals) else None
        out[k] = None if val in (None, "", MISSING) else val
    return out


def parse_int(value: Optional[str]) -> Optional[int]:
    """Parse an integer VCF value; '.', empty or malformed -> None."""
    if value is None or value in ("", MISSING):
        return None
    try:
        return int(value)
    except ValueError:
        try:
            return int(round(float(value)))
        except ValueError:
            return None


def parse_float(value: Optional[str]) -> Optional[float]:
    if value is None or value in ("", MISSING):
        return None
    try:
        return float(value)
    except ValueError:
        return None


def parse_int_list(value: Optional[str]) -> Optional[Tuple[int, ...]]:
    """Parse a comma-separated integer list (AD, PL, ...).

    Returns None if the field is missing or any entry is missing/malformed,
    since positional lists cannot be re-indexed with holes in them.
    """
    if value is None or value in ("", MISSING):
        return None
    out: List[int] = []
    for tok in value.split(","):
        parsed = parse_int(tok.strip())
        if parsed is None:
            return None
        out.append(parsed)
    return tuple(out)


def format_number(value: Optional[float]) -> str:
    """Format a QUAL-like float the way variant callers print them."""
    if value is None:
        return MISSING
    return f"{value:.2f}"


def join_values(values: Iterable[object], sep: str = ",") -> str:
    return sep.join(MISSING if v is None else str(v) for v in values)


def parse_gt(gt: Optional[str]) -> Tuple[Tuple[Optional[int], ...], bool]:
    """Split a GT string into allele indices and a phased flag.

    '0/1' -> ((0, 1), False); '1|0' -> ((1, 0), True); './.' -> ((None, None), False).
    A missing GT maps to a single missing call.
    """
    if gt is None or gt == "":
        return (None,), False
    phased = "|" in gt
    sep = "|" if phased else "/"
    calls: List[Optional[int]] = []
    for tok in gt.split(sep):
        calls.append(None if tok == MISSING else int(tok))
    return tuple(calls), phased


def format_gt(calls: Iterable[Optional[int]], phased: bool = False) -> str:
    sep = "|" if phased else "/"
    return sep.join(MISSING if c is None else str(c) for c in calls)


def pl_to_gq(pl_vals: Optional[Iterable[int]]) -> Optional[int]:
    """Convert a list of PL (phred-scaled likelihoods) into a GQ.

    GQ = difference between smallest PL and second-smallest PL, capped at 99
    per the VCF specification. Returns None for fewer than 2 values.
    """
    if pl_vals is None:
        return None
    vals = list(pl_vals)
    if len(vals) < 2:
        return None
    sorted_pl = sorted(vals)
    gq = sorted_pl[1] - sorted_pl[0]
    if gq < 0:
        gq = 0
    return int(min(gq, MAX_GENOTYPE_QUALITY))


def normalize_chrom(chrom: Optional[str]) -> str:
    """Lightweight normalization for chromosome names.

    Examples: 'chr1' -> '1', '1' -> '1', 'MT'->'MT'
    Only used to make region strings forgiving when the dictionary
    disagrees on the 'chr' prefix.
    """
    if chrom is None:
        return ""
    c = str(chrom)
    if c.lower().startswith("chr"):
        return c[3:]
    return c


__all__ = [
    "MAX_GENOTYPE_QUALITY",
    "MISSING",
    "parse_info_field",
    "format_info_field",
    "parse_format_sample",
    "parse_int",
    "parse_float",
    "parse_int_list",
    "format_number",
    "join_values",
    "parse_gt",
    "format_gt",
    "pl_to_gq",
    "normalize_chrom",
]
