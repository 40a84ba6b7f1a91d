# vecsync/ingest/chunking/languages.py
"""
Language detection and tree-sitter grammar loading.

Grammars are wrapped in a Language object on first use and cached for the
process. Parser objects are not safe to share between threads, so each
thread gets its own parser per language.
"""

from __future__ import annotations

import os
import threading
from functools import lru_cache
from typing import Callable, Dict, Optional

import tree_sitter_c_sharp
import tree_sitter_cpp
import tree_sitter_go
import tree_sitter_java
import tree_sitter_javascript
import tree_sitter_python
import tree_sitter_rust
import tree_sitter_typescript
from tree_sitter import Language, Parser

EXTENSION_LANGUAGES: Dict[str, str] = {
    ".py": "python",
    ".pyi": "python",
    ".js": "javascript",
    ".jsx": "javascript",
    ".mjs": "javascript",
    ".cjs": "javascript",
    ".ts": "typescript",
    ".mts": "typescript",
    ".tsx": "tsx",
    ".go": "go",
    ".rs": "rust",
    ".java": "java",
    ".kt": "kotlin",
    ".scala": "scala",
    ".c": "c",
    ".h": "c",
    ".cpp": "cpp",
    ".cc": "cpp",
    ".cxx": "cpp",
    ".hpp": "cpp",
    ".cs": "c_sharp",
    ".php": "php",
    ".rb": "ruby",
    ".swift": "swift",
    ".m": "objc",
    ".mm": "objc",
    ".md": "markdown",
    ".markdown": "markdown",
}

# C sources parse well enough with the C++ grammar
_GRAMMARS: Dict[str, Callable[[], object]] = {
    "python": tree_sitter_python.language,
    "javascript": tree_sitter_javascript.language,
    "typescript": tree_sitter_typescript.language_typescript,
    "tsx": tree_sitter_typescript.language_tsx,
    "go": tree_sitter_go.language,
    "rust": tree_sitter_rust.language,
    "java": tree_sitter_java.language,
    "cpp": tree_sitter_cpp.language,
    "c": tree_sitter_cpp.language,
    "c_sharp": tree_sitter_c_sharp.language,
}

_local = threading.local()


def language_for_path(path: str) -> str:
    """Language name for a file path, "text" when the extension is unknown."""
    ext = os.path.splitext(path)[1].lower()
    return EXTENSION_LANGUAGES.get(ext, "text")


def has_grammar(language: str) -> bool:
    return language in _GRAMMARS


@lru_cache(maxsize=None)
def get_language(language: str) -> Optional[Language]:
    """Tree-sitter Language for a name, or None when no grammar is bundled."""
    factory = _GRAMMARS.get(language)
    if factory is None:
        return None
    return Language(factory())


def get_parser(language: str) -> Optional[Parser]:
    """Thread-local parser for a language, or None when no grammar is bundled."""
    parsers = getattr(_local, "parsers", None)
    if parsers is None:
        parsers = _local.parsers = {}

    if language not in parsers:
        lang = get_language(language)
        parsers[language] = Parser(lang) if lang is not None else None
    return parsers[language]


__all__ = ["EXTENSION_LANGUAGES", "language_for_path", "has_grammar", "get_language", "get_parser"]
