"""Symbol normalization - canonical function names across compilations.

Coverage tools report function names as the compiler emitted them. The same
logical function compiled in two projects carries different mangled names
(the legacy Rust scheme appends a per-compilation hash, v0 symbols embed a
crate disambiguator), so records only merge once names are canonical.

``canonical_symbol`` scans a name for mangled tokens and replaces each one it
understands with its demangled, hash-free form, leaving surrounding text
(such as llvm-cov's ``path:`` prefix for local symbols) untouched. Tokens it
does not understand are left as they are; normalization never fails.

Supported:
- Rust legacy (``_ZN...E``): path segments, ``$LT$``-style escapes, hash dropped
- Rust v0 (``_R...``): crate roots and nested paths, closures/shims, back-refs.
  Generic arguments, impl paths and punycode identifiers are left mangled.
"""

from __future__ import annotations

import functools
import re
from dataclasses import dataclass, field

from coverplane.coverage.models import CoverageRecord, FileCoverage, FunctionCoverage

_TOKEN_RE = re.compile(r"(?<![A-Za-z0-9_$])(?:_{0,2}ZN|__?R)[A-Za-z0-9_$.]+")

_LEGACY_ESCAPES = {
    "SP": "@",
    "BP": "*",
    "RF": "&",
    "LT": "<",
    "GT": ">",
    "LP": "(",
    "RP": ")",
    "C": ",",
}

_BASE62 = "0123456789abcdefghijklmnopqrstuvwxyzABCDEFGHIJKLMNOPQRSTUVWXYZ"

_V0_SPECIAL_NAMESPACES = {"C": "closure", "S": "shim"}


class _Unsupported(Exception):
    """Token is outside the understood grammar."""


# =============================================================================
# Rust legacy mangling
# =============================================================================


def _is_rust_hash(segment: str) -> bool:
    return len(segment) == 17 and segment[0] == "h" and all(
        c in "0123456789abcdef" for c in segment[1:]
    )


def _unescape_legacy(segment: str) -> str:
    out: list[str] = []
    rest = segment
    if rest.startswith("_$"):
        rest = rest[1:]
    while rest:
        if rest.startswith(".."):
            out.append("::")
            rest = rest[2:]
        elif rest.startswith("."):
            out.append(".")
            rest = rest[1:]
        elif rest.startswith("$"):
            end = rest.find("$", 1)
            if end == -1:
                break
            escape = rest[1:end]
            char = _LEGACY_ESCAPES.get(escape)
            if char is None and escape.startswith("u"):
                char = _decode_hex_char(escape[1:])
            if char is None:
                break
            out.append(char)
            rest = rest[end + 1 :]
        else:
            stop = min((i for i in (rest.find("$"), rest.find(".")) if i != -1), default=-1)
            if stop == -1:
                out.append(rest)
                rest = ""
            else:
                out.append(rest[:stop])
                rest = rest[stop:]
    # Unknown escape: keep the remainder verbatim
    out.append(rest)
    return "".join(out)


def _decode_hex_char(digits: str) -> str | None:
    try:
        char = chr(int(digits, 16))
    except (ValueError, OverflowError):
        return None
    return None if not char.isprintable() else char


def demangle_legacy(token: str) -> str:
    """Demangle one legacy Rust symbol, dropping the trailing hash segment."""
    for prefix in ("__ZN", "_ZN", "ZN"):
        if token.startswith(prefix):
            body = token[len(prefix) :]
            break
    else:
        raise _Unsupported(token)

    segments: list[str] = []
    i = 0
    while True:
        if i >= len(body):
            raise _Unsupported(token)
        if body[i] == "E":
            i += 1
            break
        j = i
        while j < len(body) and body[j].isdigit():
            j += 1
        if j == i:
            raise _Unsupported(token)
        length = int(body[i:j])
        if length == 0 or j + length > len(body):
            raise _Unsupported(token)
        segments.append(body[j : j + length])
        i = j + length

    suffix = body[i:]
    if suffix and not suffix.startswith("."):
        # Itanium C++ parameter lists and the like
        raise _Unsupported(token)
    llvm = suffix.find(".llvm.")
    if llvm != -1:
        suffix = suffix[:llvm]
    if not segments:
        raise _Unsupported(token)
    if len(segments) > 1 and _is_rust_hash(segments[-1]):
        segments = segments[:-1]

    return "::".join(_unescape_legacy(s) for s in segments) + suffix


# =============================================================================
# Rust v0 mangling (path subset)
# =============================================================================


@dataclass
class _V0Parser:
    sym: str
    pos: int = 0
    depth: int = field(default=0)

    def peek(self) -> str | None:
        return self.sym[self.pos] if self.pos < len(self.sym) else None

    def next(self) -> str:
        if self.pos >= len(self.sym):
            raise _Unsupported(self.sym)
        ch = self.sym[self.pos]
        self.pos += 1
        return ch

    def eat(self, ch: str) -> bool:
        if self.peek() == ch:
            self.pos += 1
            return True
        return False

    def base62(self) -> int:
        if self.eat("_"):
            return 0
        value = 0
        while not self.eat("_"):
            digit = _BASE62.find(self.next())
            if digit == -1:
                raise _Unsupported(self.sym)
            value = value * 62 + digit
        return value + 1

    def disambiguator(self) -> int:
        return self.base62() + 1 if self.eat("s") else 0

    def decimal(self) -> int:
        start = self.pos
        while (ch := self.peek()) is not None and ch.isdigit():
            self.pos += 1
        digits = self.sym[start : self.pos]
        if not digits or (len(digits) > 1 and digits[0] == "0"):
            raise _Unsupported(self.sym)
        return int(digits)

    def ident(self) -> str:
        if self.peek() == "u":
            raise _Unsupported(self.sym)  # punycode
        length = self.decimal()
        self.eat("_")
        if self.pos + length > len(self.sym):
            raise _Unsupported(self.sym)
        name = self.sym[self.pos : self.pos + length]
        self.pos += length
        return name

    def path(self) -> str:
        self.depth += 1
        if self.depth > 64:
            raise _Unsupported(self.sym)
        try:
            tag = self.next()
            if tag == "C":
                self.disambiguator()
                return self.ident()
            if tag == "N":
                namespace = self.next()
                parent = self.path()
                dis = self.disambiguator()
                name = self.ident()
                if namespace.isupper():
                    label = _V0_SPECIAL_NAMESPACES.get(namespace, namespace)
                    inner = f"{label}:{name}" if name else label
                    return f"{parent}::{{{inner}#{dis}}}"
                if namespace.islower():
                    return f"{parent}::{name}" if name else parent
                raise _Unsupported(self.sym)
            if tag == "B":
                start = self.pos - 1
                target = self.base62()
                if target >= start:
                    raise _Unsupported(self.sym)
                saved = self.pos
                self.pos = target
                try:
                    return self.path()
                finally:
                    self.pos = saved
            raise _Unsupported(self.sym)
        finally:
            self.depth -= 1


def demangle_v0(token: str) -> str:
    """Demangle one v0 Rust symbol within the supported path subset."""
    for prefix in ("__R", "_R"):
        if token.startswith(prefix):
            body = token[len(prefix) :]
            break
    else:
        raise _Unsupported(token)

    suffix = ""
    dot = body.find(".")
    if dot != -1:
        body, suffix = body[:dot], body[dot:]
        llvm = suffix.find(".llvm.")
        if llvm != -1:
            suffix = suffix[:llvm]

    if not body or not body[0].isupper():
        raise _Unsupported(token)

    parser = _V0Parser(body)
    result = parser.path()
    if parser.pos < len(body):
        # Optional instantiating crate
        parser.path()
    if parser.pos != len(body):
        raise _Unsupported(token)
    return result + suffix


# =============================================================================
# Public API
# =============================================================================


def _demangle_token(token: str) -> str | None:
    demangler = demangle_v0 if token.lstrip("_").startswith("R") else demangle_legacy
    try:
        return demangler(token)
    except _Unsupported:
        return None


@functools.lru_cache(maxsize=65536)
def canonical_symbol(name: str) -> str:
    """Return the canonical display form of ``name``.

    Pure: the same input always yields the same output. Names without
    recognizable mangled tokens are returned unchanged.
    """

    def replace(match: re.Match[str]) -> str:
        demangled = _demangle_token(match.group(0))
        return match.group(0) if demangled is None else demangled

    return _TOKEN_RE.sub(replace, name)


class SymbolNormalizer:
    """Applies ``canonical_symbol`` to records and counts passthroughs.

    A passthrough is a function name that came out unchanged, either because
    it was already readable or because its format is not understood.
    """

    def __init__(self) -> None:
        self.normalized_count = 0
        self.passthrough_count = 0

    def normalize(self, name: str) -> str:
        canonical = canonical_symbol(name)
        if canonical == name:
            self.passthrough_count += 1
        else:
            self.normalized_count += 1
        return canonical

    def normalize_file(self, fc: FileCoverage) -> FileCoverage:
        """Return a copy of ``fc`` with canonical function names.

        Distinct mangled names that collapse to one canonical name are merged:
        hits summed, lowest start line kept.
        """
        functions: dict[str, FunctionCoverage] = {}
        for raw_name in sorted(fc.functions):
            func = fc.functions[raw_name]
            name = self.normalize(raw_name)
            existing = functions.get(name)
            if existing is None:
                functions[name] = FunctionCoverage(
                    name=name, start_line=func.start_line, hits=func.hits
                )
            else:
                functions[name] = FunctionCoverage(
                    name=name,
                    start_line=min(existing.start_line, func.start_line),
                    hits=existing.hits + func.hits,
                )
        return FileCoverage(
            path=fc.path,
            lines=dict(fc.lines),
            branches=dict(fc.branches),
            functions=functions,
        )

    def normalize_record(self, record: CoverageRecord) -> CoverageRecord:
        """Return a normalized copy of ``record``; the input is not modified."""
        return CoverageRecord(
            project=record.project,
            files={path: self.normalize_file(fc) for path, fc in record.files.items()},
            source_format=record.source_format,
        )
