"""
Canonicalization
================
Deterministic, order-independent serialization of request parameters.
"""

from typing import AbstractSet, Dict, Iterable, List, Mapping, Tuple, Union

from .config import DEFAULT_DELIMITER
from .models import DuplicatePolicy
from .params import RequestParameters, resolve_values

ParamsLike = Union[RequestParameters, Mapping[str, str], Iterable[Tuple[str, str]]]


def canonicalize(
    params: ParamsLike,
    excluded: AbstractSet[str] = frozenset(),
    delimiter: str = DEFAULT_DELIMITER,
    duplicate_policy: DuplicatePolicy = DuplicatePolicy.REJECT,
) -> str:
    """
    Build the canonical signing string.

    Names in ``excluded`` are dropped, the rest are sorted by their UTF-8
    bytes and rendered as ``name=value`` joined by ``delimiter``. Empty
    values are kept as ``name=``.

    Args:
        params: Request parameters (multi-mapping, mapping or pairs)
        excluded: Names left out of the signed string
        delimiter: Pair separator, fixed per deployment
        duplicate_policy: What to do when a name occurs more than once

    Returns:
        Canonical string

    Raises:
        DuplicateParameterError: On a repeated name under REJECT
    """
    if not isinstance(params, RequestParameters):
        params = RequestParameters(params)

    grouped: Dict[str, List[str]] = {}
    for name, value in params:
        if name in excluded:
            continue
        grouped.setdefault(name, []).append(value)

    names = sorted(grouped, key=_sort_key)
    return delimiter.join(
        f"{name}={resolve_values(name, grouped[name], duplicate_policy)}"
        for name in names
    )


def _sort_key(name: str) -> bytes:
    # Byte-wise order, independent of locale
    return name.encode("utf-8", "surrogatepass")
