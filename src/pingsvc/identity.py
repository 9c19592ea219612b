"""Mapping between probe targets and systemd unit names.

A target identity (an IPv4 or IPv6 address typed by the operator) becomes a
unit name by replacing every ``.`` and ``:`` with ``-`` and wrapping the
result in the ``continuous-ping-`` / ``.service`` namespace. The ``%`` that
introduces an IPv6 zone is not a valid unit-name character and becomes
``_``::

    8.8.8.8       -> continuous-ping-8-8-8-8.service
    2001:db8::1   -> continuous-ping-2001-db8--1.service
    fe80::1%eth0  -> continuous-ping-fe80--1_eth0.service

Identities are limited to ASCII letters, digits, ``.``, ``:``, ``-`` and
``%``. Quotes, backslashes, slashes, whitespace and control characters are
rejected, so an identity always maps to a single file in the unit directory
and to a single argument on the probe command line.

The substitution is lossy, so :func:`decode` only produces a *display*
string. The unit name is the authoritative identifier once a unit exists.
"""
from __future__ import annotations

import ipaddress
import re

from .errors import InvalidIdentityError

UNIT_PREFIX = "continuous-ping-"
UNIT_SUFFIX = ".service"
UNIT_GLOB = f"{UNIT_PREFIX}*{UNIT_SUFFIX}"

_SEPARATORS = str.maketrans({".": "-", ":": "-", "%": "_"})
_IDENTITY_RE = re.compile(r"[A-Za-z0-9.:%-]+")
_UNIT_BODY_RE = re.compile(r"[A-Za-z0-9_-]+")


def normalize(identity: str | None) -> str:
    """Return *identity* without surrounding whitespace.

    Raises :class:`InvalidIdentityError` when the result is empty or holds a
    character outside the address alphabet.
    """
    text = (identity or "").strip()
    if not text:
        raise InvalidIdentityError("Target identity cannot be empty.")
    if not _IDENTITY_RE.fullmatch(text):
        raise InvalidIdentityError(
            f"Target identity {text!r} contains unsupported characters; "
            "use letters, digits, '.', ':', '-' or '%'."
        )
    return text


def encode(identity: str | None) -> str:
    """Return the unit name for *identity*."""
    body = normalize(identity).translate(_SEPARATORS)
    return f"{UNIT_PREFIX}{body}{UNIT_SUFFIX}"


def is_managed_unit(name: str) -> bool:
    """Return ``True`` when *name* lives in the continuous-ping namespace."""
    if not (name.startswith(UNIT_PREFIX) and name.endswith(UNIT_SUFFIX)):
        return False
    body = name[len(UNIT_PREFIX) : -len(UNIT_SUFFIX)]
    return bool(_UNIT_BODY_RE.fullmatch(body))


def unit_body(unit_name: str) -> str:
    """Strip the namespace prefix and ``.service`` suffix from *unit_name*."""
    body = unit_name
    if body.startswith(UNIT_PREFIX):
        body = body[len(UNIT_PREFIX) :]
    if body.endswith(UNIT_SUFFIX):
        body = body[: -len(UNIT_SUFFIX)]
    return body


def decode(unit_name: str) -> str:
    """Return a human-readable address for *unit_name*.

    Display only. Candidates are tried in order: dotted IPv4, colon IPv6,
    then IPv6 with a dotted-quad tail (``64:ff9b:0:0:0:0:1.2.3.4``). When
    nothing parses as an address the encoded body is returned unchanged.
    Different spellings can share one unit name (``::ffff:1.2.3.4`` and
    ``::ffff:1:2:3:4``); decode returns the first candidate that parses, so
    the result may differ from the typed identity in its separators.
    """
    body = unit_body(unit_name)
    if not body:
        return body

    zoned = body.replace("_", "%")
    candidates = [zoned.replace("-", "."), zoned.replace("-", ":")]
    head, sep, tail = _split_dotted_tail(zoned)
    if sep:
        candidates.append(f"{head.replace('-', ':')}:{tail.replace('-', '.')}")

    for candidate in candidates:
        if _is_address(candidate):
            return candidate
    return body


def _split_dotted_tail(body: str) -> tuple[str, str, str]:
    parts = body.split("-")
    if len(parts) < 5:
        return body, "", ""
    tail = parts[-4:]
    if not all(part.isdigit() for part in tail):
        return body, "", ""
    return "-".join(parts[:-4]), "-", "-".join(tail)


def _is_address(text: str) -> bool:
    try:
        ipaddress.ip_address(text)
    except ValueError:
        return False
    return True


__all__ = [
    "InvalidIdentityError",
    "UNIT_GLOB",
    "UNIT_PREFIX",
    "UNIT_SUFFIX",
    "decode",
    "encode",
    "is_managed_unit",
    "normalize",
    "unit_body",
]
