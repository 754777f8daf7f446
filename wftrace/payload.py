"""Build payloads from raw command-line input."""

from __future__ import annotations

import base64
import binascii
import json
from collections.abc import Iterable, Mapping
from dataclasses import dataclass, field


@dataclass
class Payload:
    """A single payload: raw data plus its metadata."""

    data: bytes
    metadata: dict[str, bytes] = field(default_factory=dict)


def _reject_constant(name: str) -> None:
    raise ValueError(f"invalid JSON constant {name}")


def _is_valid_json(data: bytes) -> bool:
    try:
        json.loads(
            data.decode("utf-8", errors="surrogateescape"),
            parse_constant=_reject_constant,
        )
    except ValueError:
        return False
    return True


def create_payloads(
    data: Iterable[bytes],
    metadata: Mapping[str, bytes],
    is_base64: bool,
) -> list[Payload]:
    """Create one payload per input.

    Inputs are checked as JSON when the ``encoding`` metadata starts with
    ``json/`` and are then base64-decoded (standard alphabet) if requested.
    Raises ``ValueError`` naming the 1-based position of a bad input.
    """
    meta = dict(metadata)
    encoding = meta.get("encoding", b"")
    check_json = bytes(encoding).startswith(b"json/")
    payloads = []
    for position, item in enumerate(data, start=1):
        raw = bytes(item)
        if check_json and not _is_valid_json(raw):
            raise ValueError(f"input #{position} is not valid JSON")
        if is_base64:
            try:
                raw = base64.b64decode(raw, validate=True)
            except (binascii.Error, ValueError):
                raise ValueError(f"input #{position} is not valid base64") from None
        payloads.append(Payload(data=raw, metadata=meta))
    return payloads