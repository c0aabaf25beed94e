"""Tree-sitter captures per document, cached by document version."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from functools import cached_property
from pathlib import PurePosixPath
from typing import Callable
from urllib.parse import unquote, urlparse

from tree_sitter import Language, Parser, Query, QueryCursor, Tree
from tree_sitter_language_pack import get_language

from livelove.tokens import Capture, Token, resolve_line_tokens

logger = logging.getLogger(__name__)

LUA_QUERY = """
(identifier) @variable
(string) @string
(number) @number
(comment) @comment

(method_index_expression
  table: (identifier) @class
  method: (identifier) @method)

(function_declaration
  name: (identifier) @function)

(arguments
  (identifier) @parameter)
(parameters
  (identifier) @parameter)

(dot_index_expression
  table: (identifier)
  field: (identifier) @property)

[
  "function"
  "local"
  "return"
  "if"
  "then"
  "else"
  "elseif"
  "end"
  "do"
  "while"
  "for"
  "in"
  "repeat"
  "until"
] @keyword

[
  "+"
  "-"
  "*"
  "/"
  "%"
  "^"
  "#"
  "=="
  "~="
  "<="
  ">="
  "<"
  ">"
  "="
  "and"
  "or"
  "not"
  ".."
  ":"
] @operator
"""

GLSL_QUERY = """
[
  "break"
  "case"
  "const"
  "continue"
  "default"
  "do"
  "else"
  "enum"
  "for"
  "if"
  "return"
  "struct"
  "switch"
  "while"
] @keyword

[
  "in"
  "out"
  "inout"
  "uniform"
  "layout"
  "attribute"
  "varying"
  "precision"
  "highp"
  "mediump"
  "lowp"
  "flat"
  "smooth"
] @type.qualifier

[
  "-"
  "-="
  "="
  "!="
  "*"
  "&&"
  "+"
  "++"
  "+="
  "<"
  "=="
  ">"
  "||"
] @operator

(preproc_directive) @keyword
(number_literal) @number
(string_literal) @string
(comment) @comment

(call_expression
  function: (identifier) @function)
(function_declarator
  declarator: (identifier) @function)

(field_identifier) @property
(type_identifier) @type
(primitive_type) @type

((identifier) @variable.builtin
  (#match? @variable.builtin "^gl_"))

(identifier) @variable
"""


@dataclass(frozen=True)
class Grammar:
    name: str
    suffixes: tuple[str, ...]
    query_source: str
    loader: Callable[[], Language] | None = None

    def language(self) -> Language:
        if self.loader is not None:
            return self.loader()
        return get_language(self.name)


@dataclass
class _CompiledGrammar:
    grammar: Grammar

    @cached_property
    def language(self) -> Language:
        return self.grammar.language()

    @cached_property
    def parser(self) -> Parser:
        return Parser(self.language)

    @cached_property
    def query(self) -> Query:
        return Query(self.language, self.grammar.query_source)


@dataclass
class CaptureSet:
    version: int
    tree: Tree | None
    captures: list[Capture] = field(default_factory=list)


DEFAULT_GRAMMARS: tuple[Grammar, ...] = (
    Grammar("lua", (".lua",), LUA_QUERY),
    Grammar("glsl", (".glsl", ".vert", ".frag", ".vs", ".fs"), GLSL_QUERY),
)


def _uri_suffix(uri: str) -> str:
    parsed = urlparse(uri)
    path = unquote(parsed.path) if parsed.scheme else uri
    return PurePosixPath(path).suffix.lower()


def _char_offsets(text: str, data: bytes) -> Callable[[int], int]:
    if len(data) == len(text):
        return lambda offset: offset
    table = [0] * (len(data) + 1)
    byte_index = 0
    for char_index, char in enumerate(text):
        width = len(char.encode("utf-8"))
        for step in range(width):
            table[byte_index + step] = char_index
        byte_index += width
    table[len(data)] = len(text)
    return table.__getitem__


class Highlighter:
    def __init__(self, grammars: tuple[Grammar, ...] = DEFAULT_GRAMMARS) -> None:
        self._grammars: dict[str, _CompiledGrammar] = {}
        self._documents: dict[str, CaptureSet] = {}
        for grammar in grammars:
            self.register(grammar)

    def register(self, grammar: Grammar) -> None:
        compiled = _CompiledGrammar(grammar)
        for suffix in grammar.suffixes:
            self._grammars[suffix.lower()] = compiled

    def grammar_for(self, uri: str) -> Grammar | None:
        compiled = self._grammars.get(_uri_suffix(uri))
        return compiled.grammar if compiled is not None else None

    def captures(self, uri: str, version: int, text: str) -> CaptureSet:
        """Return the capture set for `uri`, re-parsing only on a version change."""
        cached = self._documents.get(uri)
        if cached is not None and cached.version == version:
            return cached
        compiled = self._grammars.get(_uri_suffix(uri))
        if compiled is None:
            entry = CaptureSet(version=version, tree=None)
        else:
            entry = self._parse(compiled, version, text)
        self._documents[uri] = entry
        return entry

    def _parse(self, compiled: _CompiledGrammar, version: int, text: str) -> CaptureSet:
        data = text.encode("utf-8")
        tree = compiled.parser.parse(data)
        to_char = _char_offsets(text, data)
        matches = QueryCursor(compiled.query).captures(tree.root_node)
        captures = [
            Capture(to_char(node.start_byte), to_char(node.end_byte), name)
            for name, nodes in matches.items()
            for node in nodes
        ]
        captures.sort(key=lambda capture: (capture.start, capture.end))
        logger.debug(
            "parsed %s grammar: %d capture(s)", compiled.grammar.name, len(captures)
        )
        return CaptureSet(version=version, tree=tree, captures=captures)

    def line_tokens(
        self, uri: str, version: int, text: str, line_start: int, line_text: str
    ) -> list[Token]:
        entry = self.captures(uri, version, text)
        return resolve_line_tokens(entry.captures, line_text, line_start)

    def forget(self, uri: str) -> None:
        self._documents.pop(uri, None)
