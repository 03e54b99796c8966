"""
Request Parameter Sources
=========================
Typed access to named request parameters, one source per request location.
"""

import hashlib
from typing import Iterable, Iterator, List, Mapping, Optional, Protocol, Tuple, Union
from urllib.parse import parse_qsl

from starlette.datastructures import Headers, QueryParams

from .exceptions import DuplicateParameterError, MalformedBodyError
from .models import DuplicatePolicy

FORM_CONTENT_TYPE = "application/x-www-form-urlencoded"

Pair = Tuple[str, str]


class ParameterSource(Protocol):
    """Anything that provides named string parameters."""

    def multi_items(self) -> List[Pair]:
        ...

    def get_all(self, name: str) -> List[str]:
        ...


class RequestParameters:
    """
    Ordered multi-mapping of parameter name to string value.

    Order is only kept so a duplicate policy can pick the first or last
    occurrence; the canonical string never depends on it.
    """

    def __init__(self, items: Union[None, Mapping[str, str], Iterable[Pair]] = None):
        if items is None:
            pairs: List[Pair] = []
        elif hasattr(items, "multi_items"):
            pairs = [(str(k), str(v)) for k, v in items.multi_items()]
        elif isinstance(items, Mapping):
            pairs = [(str(k), str(v)) for k, v in items.items()]
        else:
            pairs = [(str(k), str(v)) for k, v in items]
        self._items = pairs

    @classmethod
    def from_sources(cls, *sources: ParameterSource) -> "RequestParameters":
        pairs: List[Pair] = []
        for source in sources:
            pairs.extend(source.multi_items())
        return cls(pairs)

    def multi_items(self) -> List[Pair]:
        return list(self._items)

    def get_all(self, name: str) -> List[str]:
        return [value for key, value in self._items if key == name]

    def resolve(self, name: str, policy: DuplicatePolicy) -> Optional[str]:
        """
        Return the single value for a name under the duplicate policy.

        Raises:
            DuplicateParameterError: If the name repeats and the policy is REJECT
        """
        return resolve_values(name, self.get_all(name), policy)

    def with_item(self, name: str, value: str) -> "RequestParameters":
        return RequestParameters(self._items + [(name, value)])

    def __contains__(self, name: object) -> bool:
        return any(key == name for key, _ in self._items)

    def __iter__(self) -> Iterator[Pair]:
        return iter(list(self._items))

    def __len__(self) -> int:
        return len(self._items)

    def __repr__(self) -> str:
        return f"RequestParameters({self._items!r})"


def resolve_values(
    name: str,
    values: List[str],
    policy: DuplicatePolicy,
) -> Optional[str]:
    """Pick one value from the occurrences of a name."""
    if not values:
        return None
    if len(values) == 1:
        return values[0]
    if policy is DuplicatePolicy.FIRST:
        return values[0]
    if policy is DuplicatePolicy.LAST:
        return values[-1]
    raise DuplicateParameterError(name)


class QueryParameterSource:
    """Parameters from the URL query string."""

    def __init__(self, query_params: QueryParams):
        self._params = query_params

    def multi_items(self) -> List[Pair]:
        return list(self._params.multi_items())

    def get_all(self, name: str) -> List[str]:
        return list(self._params.getlist(name))


class FormParameterSource:
    """Parameters from an application/x-www-form-urlencoded body."""

    def __init__(self, body: bytes, encoding: str = "utf-8"):
        try:
            self._pairs = parse_qsl(
                body.decode(encoding),
                keep_blank_values=True,
                strict_parsing=False,
                encoding=encoding,
                errors="strict",
            )
        except UnicodeDecodeError:
            raise MalformedBodyError() from None

    def multi_items(self) -> List[Pair]:
        return list(self._pairs)

    def get_all(self, name: str) -> List[str]:
        return [value for key, value in self._pairs if key == name]


class BodyDigestSource:
    """A non-form body, signed as the SHA-256 digest under a pseudo parameter."""

    def __init__(self, body: bytes, param_name: str):
        self._pairs: List[Pair] = []
        if body:
            self._pairs.append((param_name, hash_body(body)))

    def multi_items(self) -> List[Pair]:
        return list(self._pairs)

    def get_all(self, name: str) -> List[str]:
        return [value for key, value in self._pairs if key == name]


class HeaderSource:
    """
    Distinguished fields carried in request headers.

    Headers are never part of the signed parameters; multi_items is empty.
    """

    def __init__(self, headers: Headers):
        self._headers = headers

    def multi_items(self) -> List[Pair]:
        return []

    def get_all(self, name: str) -> List[str]:
        return list(self._headers.getlist(name))

    def resolve(self, name: str, policy: DuplicatePolicy) -> Optional[str]:
        return resolve_values(name, self.get_all(name), policy)


def is_form_body(content_type: Optional[str]) -> bool:
    if not content_type:
        return False
    return content_type.split(";", 1)[0].strip().lower() == FORM_CONTENT_TYPE


def body_source(body: bytes, content_type: Optional[str], body_param_name: str) -> ParameterSource:
    """Choose how a request body contributes to the signed parameters."""
    if is_form_body(content_type):
        return FormParameterSource(body)
    return BodyDigestSource(body, body_param_name)


def hash_body(body: bytes) -> str:
    """
    Compute SHA-256 hash of request body.

    Args:
        body: Raw request body bytes

    Returns:
        Hex-encoded SHA-256 hash
    """
    return hashlib.sha256(body).hexdigest()
