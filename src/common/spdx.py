"""SPDX license identifiers, expression validation and license normalization.

Only the most common identifiers are bundled; anything else falls through to
the expression check or the "Unknown" record.
"""
from __future__ import annotations

import re
from typing import Dict, List, Optional, Tuple
from urllib.parse import urlparse

from bom.models import BomLicense
from constants import Constants

LICENSES: Dict[str, str] = {
    "0BSD": "BSD Zero Clause License",
    "AFL-3.0": "Academic Free License v3.0",
    "AGPL-3.0-only": "GNU Affero General Public License v3.0 only",
    "AGPL-3.0-or-later": "GNU Affero General Public License v3.0 or later",
    "Apache-1.1": "Apache License 1.1",
    "Apache-2.0": "Apache License 2.0",
    "Artistic-2.0": "Artistic License 2.0",
    "BlueOak-1.0.0": "Blue Oak Model License 1.0.0",
    "BSD-2-Clause": "BSD 2-Clause \"Simplified\" License",
    "BSD-3-Clause": "BSD 3-Clause \"New\" or \"Revised\" License",
    "BSL-1.0": "Boost Software License 1.0",
    "CC-BY-3.0": "Creative Commons Attribution 3.0 Unported",
    "CC-BY-4.0": "Creative Commons Attribution 4.0 International",
    "CC0-1.0": "Creative Commons Zero v1.0 Universal",
    "CDDL-1.0": "Common Development and Distribution License 1.0",
    "EPL-1.0": "Eclipse Public License 1.0",
    "EPL-2.0": "Eclipse Public License 2.0",
    "GPL-2.0": "GNU General Public License v2.0 only",
    "GPL-2.0-only": "GNU General Public License v2.0 only",
    "GPL-2.0-or-later": "GNU General Public License v2.0 or later",
    "GPL-3.0": "GNU General Public License v3.0 only",
    "GPL-3.0-only": "GNU General Public License v3.0 only",
    "GPL-3.0-or-later": "GNU General Public License v3.0 or later",
    "HPND": "Historical Permission Notice and Disclaimer",
    "ISC": "ISC License",
    "LGPL-2.1": "GNU Lesser General Public License v2.1 only",
    "LGPL-2.1-only": "GNU Lesser General Public License v2.1 only",
    "LGPL-2.1-or-later": "GNU Lesser General Public License v2.1 or later",
    "LGPL-3.0-only": "GNU Lesser General Public License v3.0 only",
    "LGPL-3.0-or-later": "GNU Lesser General Public License v3.0 or later",
    "MIT": "MIT License",
    "MIT-0": "MIT No Attribution",
    "MPL-1.1": "Mozilla Public License 1.1",
    "MPL-2.0": "Mozilla Public License 2.0",
    "MS-PL": "Microsoft Public License",
    "MS-RL": "Microsoft Reciprocal License",
    "OFL-1.1": "SIL Open Font License 1.1",
    "PSF-2.0": "Python Software Foundation License 2.0",
    "Python-2.0": "Python License 2.0",
    "Unlicense": "The Unlicense",
    "UPL-1.0": "Universal Permissive License v1.0",
    "WTFPL": "Do What The F*ck You Want To Public License",
    "Zlib": "zlib License",
}

EXCEPTIONS = {
    "Classpath-exception-2.0",
    "GCC-exception-3.1",
    "LLVM-exception",
    "OpenJDK-assembly-exception-1.0",
}

_BY_LOWER = {k.lower(): k for k in LICENSES}
_EXCEPTIONS_LOWER = {e.lower() for e in EXCEPTIONS}

# Trove classifier tail -> SPDX id
CLASSIFIERS: Dict[str, str] = {
    "MIT License": "MIT",
    "Apache Software License": "Apache-2.0",
    "BSD License": "BSD-3-Clause",
    "ISC License (ISCL)": "ISC",
    "Mozilla Public License 2.0 (MPL 2.0)": "MPL-2.0",
    "GNU General Public License v2 (GPLv2)": "GPL-2.0-only",
    "GNU General Public License v3 (GPLv3)": "GPL-3.0-only",
    "GNU Lesser General Public License v2 (LGPLv2)": "LGPL-2.1-only",
    "GNU Lesser General Public License v3 (LGPLv3)": "LGPL-3.0-only",
    "GNU Affero General Public License v3": "AGPL-3.0-only",
    "Python Software Foundation License": "PSF-2.0",
    "The Unlicense (Unlicense)": "Unlicense",
    "Eclipse Public License 2.0 (EPL-2.0)": "EPL-2.0",
    "Boost Software License 1.0 (BSL-1.0)": "BSL-1.0",
    "zlib/libpng License": "Zlib",
}

# First-lines signatures of common license texts; checked in order.
_TEXT_SIGNATURES: List[Tuple[re.Pattern, str]] = [
    (re.compile(r"apache license\s*,?\s*version 2\.0", re.I), "Apache-2.0"),
    (re.compile(r"mozilla public license,?\s*(version|v\.?)\s*2\.0", re.I), "MPL-2.0"),
    (re.compile(r"gnu affero general public license\s+version 3", re.I), "AGPL-3.0-only"),
    (re.compile(r"gnu lesser general public license\s+version 3", re.I), "LGPL-3.0-only"),
    (re.compile(r"gnu lesser general public license\s+version 2\.1", re.I), "LGPL-2.1-only"),
    (re.compile(r"gnu general public license\s+version 3", re.I), "GPL-3.0-only"),
    (re.compile(r"gnu general public license\s+version 2", re.I), "GPL-2.0-only"),
    (re.compile(r"^\s*(the\s+)?mit license", re.I | re.M), "MIT"),
    (re.compile(r"permission is hereby granted, free of charge, to any person", re.I), "MIT"),
    (re.compile(r"^\s*isc license", re.I | re.M), "ISC"),
    (re.compile(r"permission to use, copy, modify, and/or distribute this software", re.I), "ISC"),
    (re.compile(r"this is free and unencumbered software released into the public domain", re.I), "Unlicense"),
    (re.compile(r"boost software license\s*-?\s*version 1\.0", re.I), "BSL-1.0"),
    (re.compile(r"neither the name of", re.I), "BSD-3-Clause"),
    (re.compile(r"redistribution and use in source and binary forms", re.I), "BSD-2-Clause"),
]


def try_get_license(identifier: str) -> Optional[Tuple[str, str]]:
    """Return (canonical id, name) for a known SPDX identifier."""
    if not identifier:
        return None
    canonical = _BY_LOWER.get(identifier.strip().lower())
    if canonical is None:
        return None
    return canonical, LICENSES[canonical]


def _is_absolute_url(text: str) -> bool:
    parsed = urlparse(text.strip())
    return bool(parsed.scheme) and bool(parsed.netloc) and " " not in text.strip()


_TOKEN = re.compile(r"\s*(\(|\)|[A-Za-z0-9\.\-\+:]+)")


def _tokenize(expression: str) -> Optional[List[str]]:
    tokens: List[str] = []
    pos = 0
    text = expression.rstrip()
    while pos < len(text):
        m = _TOKEN.match(text, pos)
        if not m:
            return None
        tokens.append(m.group(1))
        pos = m.end()
    return tokens


class _ExpressionParser:
    """Recursive-descent validator for relaxed SPDX expressions.

    compound := and_expr ("OR" and_expr)*
    and_expr := term ("AND" term)*
    term     := "(" compound ")" | license ["WITH" exception]
    """

    def __init__(self, tokens: List[str]):
        self._tokens = tokens
        self._pos = 0

    def _peek(self) -> Optional[str]:
        return self._tokens[self._pos] if self._pos < len(self._tokens) else None

    def _next(self) -> Optional[str]:
        token = self._peek()
        self._pos += 1
        return token

    def _keyword(self, word: str) -> bool:
        token = self._peek()
        if token is not None and token.upper() == word:
            self._pos += 1
            return True
        return False

    def parse(self) -> bool:
        if not self._tokens or not self._compound():
            return False
        return self._pos == len(self._tokens)

    def _compound(self) -> bool:
        if not self._and_expr():
            return False
        while self._keyword("OR"):
            if not self._and_expr():
                return False
        return True

    def _and_expr(self) -> bool:
        if not self._term():
            return False
        while self._keyword("AND"):
            if not self._term():
                return False
        return True

    def _term(self) -> bool:
        token = self._next()
        if token is None:
            return False
        if token == "(":
            return self._compound() and self._next() == ")"
        if not _is_license_ref(token):
            return False
        if self._keyword("WITH"):
            exception = self._next()
            return exception is not None and exception.lower() in _EXCEPTIONS_LOWER
        return True


def _is_license_ref(token: str) -> bool:
    if token.upper() in ("AND", "OR", "WITH") or token in ("(", ")"):
        return False
    if token.startswith(("LicenseRef-", "DocumentRef-")):
        return True
    return try_get_license(token[:-1] if token.endswith("+") else token) is not None


def is_valid_expression(expression: str) -> bool:
    """Validate an SPDX license expression (case-insensitive operators)."""
    tokens = _tokenize(expression or "")
    if tokens is None:
        return False
    return _ExpressionParser(tokens).parse()


def parse_license(text: Optional[str]) -> BomLicense:
    """Normalize a raw license string into a BomLicense.

    Known identifier -> id/expression/name; absolute URL -> url; valid
    expression -> expression; anything else -> id with name "Unknown".
    Absent input yields id "None".
    """
    if text is None or not text.strip():
        return BomLicense(id=Constants.NO_LICENSE_ID)
    text = text.strip()

    known = try_get_license(text)
    if known:
        license_id, name = known
        return BomLicense(id=license_id, expression=license_id, name=name)
    if _is_absolute_url(text):
        return BomLicense(url=text)
    if is_valid_expression(text):
        return BomLicense(expression=text)
    return BomLicense(id=text, name=Constants.UNKNOWN_LICENSE_NAME)


def license_from_classifier(classifier: str) -> Optional[str]:
    """Map a ``License :: ...`` trove classifier to an SPDX id."""
    tail = classifier.split("::")[-1].strip()
    return CLASSIFIERS.get(tail)


def identify_license_text(text: Optional[str]) -> Optional[str]:
    """Pattern-match the head of a license file against known license texts."""
    if not text:
        return None
    head = text[:4000]
    for pattern, license_id in _TEXT_SIGNATURES:
        if pattern.search(head):
            return license_id
    return None
