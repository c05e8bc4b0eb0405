"""
S-Expression Reader and Writer.

The parser and printer collaborators exchange trees with the core as
s-expressions, the canonical textual dump of a parser tree::

    ; Loads one article
    (send (const nil :Article) :find (int 1))

Grammar:

- ``( kind child* )`` is a node. ``kind!`` sets the force-call hint and
  ``kind.`` sets the force-property hint.
- ``:name`` or ``:"quoted name"`` is a symbol, ``"text"`` is a string; both read
  as ``str``.
- Numbers read as ``int``/``float``. ``nil``, ``true`` and ``false`` are scalars.
- ``;`` starts a comment running to end of line. Comments directly preceding a
  form are attached to that form in the returned :class:`CommentTable`.
"""

import json
import re
from dataclasses import dataclass
from enum import Enum
from typing import Any, Generator, List, Optional, Tuple

from rails2js.core.comments import CommentTable
from rails2js.core.node import Node


class SexpSyntaxError(SyntaxError):
  """Raised for malformed s-expression input."""

  def __init__(self, message: str, line: int = 0, col: int = 0):
    super().__init__(f"{message} (line {line}, column {col})")
    self.line = line
    self.col = col


class TokenKind(str, Enum):
  """Enumeration of Lexer Token Types."""

  COMMENT = "COMMENT"
  LPAREN = "LPAREN"
  RPAREN = "RPAREN"
  STRING = "STRING"
  SYMBOL = "SYMBOL"
  NUMBER = "NUMBER"
  ATOM = "ATOM"
  NEWLINE = "NEWLINE"
  WHITESPACE = "WHITESPACE"
  MISMATCH = "MISMATCH"
  EOF = "EOF"


@dataclass
class Token:
  kind: TokenKind
  text: str
  line: int
  col: int


# Kinds whose string children are payload text rather than names.
STRING_KINDS = frozenset({"str", "xstr", "jsraw", "comment"})

_SYMBOL_SAFE = re.compile(r'^[^\s()";:][^\s()";]*$')


class Tokenizer:
  PATTERN_DEFS = [
    (TokenKind.COMMENT, r";[^\n]*"),
    (TokenKind.LPAREN, r"\("),
    (TokenKind.RPAREN, r"\)"),
    (TokenKind.STRING, r'"(?:[^"\\]|\\.)*"'),
    (TokenKind.SYMBOL, r':"(?:[^"\\]|\\.)*"|:[^\s()";]+'),
    (TokenKind.NUMBER, r"-?\d+(?:\.\d+)?(?:[eE][-+]?\d+)?(?![^\s()])"),
    (TokenKind.ATOM, r"[^\s()\";:][^\s()\";]*"),
    (TokenKind.NEWLINE, r"\n"),
    (TokenKind.WHITESPACE, r"[ \t\r]+"),
    (TokenKind.MISMATCH, r"."),
  ]

  _REGEX = re.compile("|".join(f"(?P<{kind.value}>{pattern})" for kind, pattern in PATTERN_DEFS))

  def __init__(self, text: str):
    self.text = text

  def tokenize(self) -> Generator[Token, None, None]:
    line_num = 1
    line_start = 0
    for mo in self._REGEX.finditer(self.text):
      kind = TokenKind(mo.lastgroup)
      value = mo.group()
      col = mo.start() - line_start

      if kind == TokenKind.NEWLINE:
        line_num += 1
        line_start = mo.end()
      elif kind == TokenKind.WHITESPACE:
        continue
      elif kind == TokenKind.MISMATCH:
        raise SexpSyntaxError(f"Unexpected character {value!r}", line_num, col)
      else:
        yield Token(kind, value, line_num, col)
    yield Token(TokenKind.EOF, "", line_num, 0)


class SexpParser:
  """
  Recursive descent reader producing :class:`Node` trees.

  Args:
      text: The s-expression source.
  """

  def __init__(self, text: str):
    self.tokens = list(Tokenizer(text).tokenize())
    self.pos = 0
    self.comments = CommentTable()
    self._pending_comments: List[str] = []

  def peek(self) -> Token:
    return self.tokens[min(self.pos, len(self.tokens) - 1)]

  def consume(self) -> Token:
    token = self.peek()
    self.pos += 1
    return token

  def _absorb_comments(self) -> None:
    while self.peek().kind == TokenKind.COMMENT:
      self._pending_comments.append(self.consume().text[1:].strip())

  def parse(self) -> Node:
    """
    Reads exactly one top-level form.

    Returns:
        Node: The root node.

    Raises:
        SexpSyntaxError: If the input is empty, malformed, or has trailing forms.
    """
    self._absorb_comments()
    if self.peek().kind != TokenKind.LPAREN:
      tk = self.peek()
      raise SexpSyntaxError(f"Expected '(' at top level, got {tk.text!r}", tk.line, tk.col)
    root = self.parse_value()
    self._absorb_comments()
    self._pending_comments = []
    tk = self.peek()
    if tk.kind != TokenKind.EOF:
      raise SexpSyntaxError(f"Trailing input {tk.text!r}", tk.line, tk.col)
    return root

  def parse_value(self) -> Any:
    self._absorb_comments()
    tk = self.peek()
    if tk.kind == TokenKind.LPAREN:
      return self._parse_node()
    self.consume()
    if tk.kind == TokenKind.STRING:
      return json.loads(tk.text)
    if tk.kind == TokenKind.SYMBOL:
      body = tk.text[1:]
      return json.loads(body) if body.startswith('"') else body
    if tk.kind == TokenKind.NUMBER:
      return float(tk.text) if any(c in tk.text for c in ".eE") else int(tk.text)
    if tk.kind == TokenKind.ATOM:
      if tk.text == "nil":
        return None
      if tk.text == "true":
        return True
      if tk.text == "false":
        return False
      raise SexpSyntaxError(f"Bare word {tk.text!r} outside kind position", tk.line, tk.col)
    raise SexpSyntaxError(f"Unexpected token {tk.kind.value} ({tk.text!r})", tk.line, tk.col)

  def _parse_node(self) -> Node:
    open_tk = self.consume()
    leading = self._pending_comments
    self._pending_comments = []

    kind_tk = self.consume()
    if kind_tk.kind != TokenKind.ATOM:
      raise SexpSyntaxError(f"Expected node kind, got {kind_tk.text!r}", kind_tk.line, kind_tk.col)
    kind, force_call, force_property = _split_kind(kind_tk.text)

    children = []
    while True:
      self._absorb_comments()
      tk = self.peek()
      if tk.kind == TokenKind.RPAREN:
        self.consume()
        break
      if tk.kind == TokenKind.EOF:
        raise SexpSyntaxError("Unterminated node", open_tk.line, open_tk.col)
      children.append(self.parse_value())
    # Comments that trail the last child belong to nothing.
    self._pending_comments = []

    node = Node(kind, tuple(children), force_call, force_property, (open_tk.line, open_tk.col))
    if leading:
      self.comments.attach(node, leading)
    return node


def _split_kind(text: str) -> Tuple[str, bool, bool]:
  if len(text) > 1 and text.endswith("!"):
    return text[:-1], True, False
  if len(text) > 1 and text.endswith("."):
    return text[:-1], False, True
  return text, False, False


def read_sexp(text: str) -> Node:
  """Parses s-expression text into a Node tree."""
  return SexpParser(text).parse()


def read_sexp_with_comments(text: str) -> Tuple[Node, CommentTable]:
  """Parses s-expression text, also returning the comment side table."""
  parser = SexpParser(text)
  root = parser.parse()
  return root, parser.comments


def _format_scalar(value: Any, in_string_kind: bool) -> str:
  if value is None:
    return "nil"
  if value is True:
    return "true"
  if value is False:
    return "false"
  if isinstance(value, (int, float)):
    return repr(value)
  text = str(value)
  if in_string_kind:
    return json.dumps(text)
  if _SYMBOL_SAFE.match(text) and text not in ("nil", "true", "false"):
    return f":{text}"
  return ":" + json.dumps(text)


def _format_kind(node: Node) -> str:
  if node.force_call:
    return f"{node.kind}!"
  if node.force_property:
    return f"{node.kind}."
  return node.kind


def to_sexp(node: Any, indent: Optional[int] = None, comments: Optional[CommentTable] = None) -> str:
  """
  Renders a Node tree as s-expression text.

  Args:
      node: The tree (or scalar) to render.
      indent: If given, nested nodes go on their own lines with this many
          spaces per level. None renders on one line.
      comments: Optional side table; attached comments are emitted as ``;``
          lines before their node (only in indented mode).

  Returns:
      str: The rendering.
  """
  return _render(node, indent, comments, 0)


def _render(node: Any, indent: Optional[int], comments: Optional[CommentTable], depth: int) -> str:
  if not isinstance(node, Node):
    return _format_scalar(node, False)

  in_string_kind = node.kind in STRING_KINDS
  parts = []
  for child in node.children:
    if isinstance(child, Node):
      parts.append(_render(child, indent, comments, depth + 1))
    else:
      parts.append(_format_scalar(child, in_string_kind))

  head = _format_kind(node)
  if indent is None or not any(isinstance(c, Node) for c in node.children):
    text = "(" + " ".join([head, *parts]) + ")"
  else:
    pad = " " * (indent * (depth + 1))
    text = "(" + head + "".join(f"\n{pad}{p}" for p in parts) + ")"

  if indent is not None and comments is not None:
    lead = comments.get(node)
    if lead:
      pad = " " * (indent * depth)
      text = "".join(f"; {c}\n{pad}" for c in lead) + text
  return text
