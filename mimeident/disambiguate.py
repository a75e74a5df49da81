"""Structural probes for container formats.

Many formats are ZIP archives underneath (OOXML, ODF, JAR, EPUB).  Their
leading bytes are those of any ZIP file, so telling them apart means
looking at the archive entries.  The probe here walks the local file
headers found in the look-ahead buffer only; it never needs the central
directory at the end of the stream.
"""

from __future__ import annotations

import struct
import zlib
from dataclasses import dataclass

from mimeident.repository import ContainerRule

ZIP_LOCAL_HEADER = b"PK\x03\x04"
ZIP_DATA_DESCRIPTOR = b"PK\x07\x08"
_LOCAL_HEADER = struct.Struct("<4sHHHHHIIIHH")

# Bytes the container probes may read.
CONTAINER_WINDOW = 65536

# Upper bound on entries walked per buffer.
MAX_ENTRIES = 64


@dataclass
class ZipEntry:
    """A local file header seen in the buffer."""

    name: str
    method: int
    data: bytes | None = None  # uncompressed payload, when fully inside the buffer


def _inflate(data: bytes) -> tuple[bytes | None, int]:
    """Inflate a raw deflate stream at the start of *data*.

    Returns the payload and the number of compressed bytes consumed, or
    ``(None, 0)`` when the stream is corrupt or runs past the buffer.
    """
    inflater = zlib.decompressobj(-zlib.MAX_WBITS)
    try:
        payload = inflater.decompress(data)
    except zlib.error:
        return None, 0
    if not inflater.eof:
        return None, 0
    return payload, len(data) - len(inflater.unused_data)


def _strip_descriptor(body: bytes) -> bytes | None:
    """Cut the trailing data descriptor off a stored entry body."""
    for size in (24, 16):  # zip64 and 32-bit descriptors with a signature
        if len(body) >= size and body[-size:-size + 4] == ZIP_DATA_DESCRIPTOR:
            return body[:-size]
    # the signature is optional
    return body[:-12] if len(body) >= 12 else None


def list_zip_entries(data: bytes) -> list[ZipEntry]:
    """Walk consecutive ZIP local file headers at the start of *data*.

    Entries written by streaming writers defer their sizes to a data
    descriptor; a deflated body is then measured by inflating it, and a
    stored one is skipped by searching for the next local header.
    Stops at the first header that is truncated or not a local header.
    """
    entries: list[ZipEntry] = []
    pos = 0
    while len(entries) < MAX_ENTRIES and pos + _LOCAL_HEADER.size <= len(data):
        (magic, _version, flags, method, _time, _date, _crc,
         csize, _usize, name_len, extra_len) = _LOCAL_HEADER.unpack_from(data, pos)
        if magic != ZIP_LOCAL_HEADER:
            break
        name_start = pos + _LOCAL_HEADER.size
        name_end = name_start + name_len
        if name_end > len(data):
            break
        name = data[name_start:name_end].decode("utf-8", errors="replace")
        body_start = name_end + extra_len
        deferred = bool(flags & 0x08) and csize == 0

        payload = None
        if deferred:
            if method == 8:
                payload, consumed = _inflate(data[body_start:])
                search_from = body_start + consumed
            else:
                search_from = body_start
            next_header = data.find(ZIP_LOCAL_HEADER, search_from)
            if method == 0 and next_header >= 0:
                payload = _strip_descriptor(data[body_start:next_header])
            entries.append(ZipEntry(name=name, method=method, data=payload))
            if next_header < 0:
                break
            pos = next_header
            continue

        body_end = body_start + csize
        if body_end <= len(data):
            if method == 0:
                payload = data[body_start:body_end]
            elif method == 8:
                payload, _consumed = _inflate(data[body_start:body_end])
        entries.append(ZipEntry(name=name, method=method, data=payload))
        pos = body_end
    return entries


def probe_container(data: bytes, rules: tuple[ContainerRule, ...]) -> list[tuple[ContainerRule, int]]:
    """Return container rules satisfied by *data* with their match length.

    The match length is the length of the matching entry name, or of the
    declared entry content for content rules.
    """
    if not rules or not data.startswith(ZIP_LOCAL_HEADER):
        return []
    entries = list_zip_entries(data)
    if not entries:
        return []

    matched: list[tuple[ContainerRule, int]] = []
    for rule in rules:
        if rule.format != "zip":
            continue
        for entry in entries:
            if not rule.regex.match(entry.name):
                continue
            if rule.content is None:
                matched.append((rule, len(entry.name)))
                break
            if entry.data is not None and entry.data.strip() == rule.content:
                matched.append((rule, len(rule.content)))
                break
    return matched
