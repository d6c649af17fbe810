"""
Lexer (tokenizer) for the nginx-like configuration syntax.

Supports:
- Identifiers (block names, directive names, bare words such as hostnames)
- Quoted strings (single or double quotes with escape sequences)
- Numbers, and durations with a unit (250ms, 1s, 2m, 1h)
- Bare dotted addresses (192.168.1.10) read as strings
- Braces and semicolons
- Single-line (#) and multi-line (/* */) comments
"""

from dataclasses import dataclass
from enum import Enum, auto
from typing import Iterator


class Duration(float):
    """Float number of seconds parsed from a value with a time unit."""


class TokenType(Enum):
    """Token types for the configuration syntax."""

    IDENTIFIER = auto()
    STRING = auto()
    NUMBER = auto()
    DURATION = auto()  # Duration, in seconds
    BOOLEAN = auto()

    LBRACE = auto()
    RBRACE = auto()
    SEMICOLON = auto()

    INCLUDE = auto()
    EOF = auto()


@dataclass
class Token:
    """A single token from the lexer."""

    type: TokenType
    value: str | int | float | bool
    line: int
    column: int

    def __repr__(self) -> str:
        return f"Token({self.type.name}, {self.value!r}, {self.line}:{self.column})"


class LexerError(Exception):
    """Exception raised for lexer errors."""

    def __init__(self, message: str, line: int, column: int):
        self.line = line
        self.column = column
        super().__init__(f"Line {line}, column {column}: {message}")


class Lexer:
    """
    Tokenizer for the configuration syntax.

    Example config:
        server {
            api_port 8080;
        }

        gps {
            host 192.168.1.10;
            interval 500ms;
            topic "vessel/gps" "bridge/gps";
        }
    """

    BOOLEAN_KEYWORDS = {"on": True, "off": False, "true": True, "false": False}

    # Duration units in seconds
    DURATION_UNITS = {
        "ms": 0.001,
        "s": 1,
        "m": 60,
        "h": 3600,
    }

    ESCAPES = {"n": "\n", "t": "\t", "r": "\r", "\\": "\\"}

    def __init__(self, source: str, filename: str = "<string>"):
        self.source = source
        self.filename = filename
        self.pos = 0
        self.line = 1
        self.column = 1

    def _current(self) -> str:
        return self.source[self.pos] if self.pos < len(self.source) else ""

    def _peek(self) -> str:
        pos = self.pos + 1
        return self.source[pos] if pos < len(self.source) else ""

    def _advance(self) -> str:
        char = self._current()
        if not char:
            return ""
        self.pos += 1
        if char == "\n":
            self.line += 1
            self.column = 1
        else:
            self.column += 1
        return char

    def _skip_ignored(self) -> None:
        """Skip whitespace and comments."""
        while True:
            char = self._current()
            if char and char in " \t\r\n":
                self._advance()
            elif char == "#":
                while self._current() and self._current() != "\n":
                    self._advance()
            elif char == "/" and self._peek() == "*":
                line, column = self.line, self.column
                self._advance()
                self._advance()
                while not (self._current() == "*" and self._peek() == "/"):
                    if not self._current():
                        raise LexerError("Unterminated multi-line comment", line, column)
                    self._advance()
                self._advance()
                self._advance()
            else:
                return

    def _read_string(self) -> Token:
        line, column = self.line, self.column
        quote = self._advance()
        chars: list[str] = []

        while True:
            char = self._current()
            if not char or char == "\n":
                raise LexerError("Unterminated string literal", line, column)
            self._advance()
            if char == quote:
                break
            if char == "\\":
                escaped = self._advance()
                if not escaped:
                    raise LexerError("Unexpected end of string", self.line, self.column)
                chars.append(self.ESCAPES.get(escaped, escaped))
            else:
                chars.append(char)

        return Token(TokenType.STRING, "".join(chars), line, column)

    def _read_number(self) -> Token:
        line, column = self.line, self.column
        start = self.pos

        while self._current() and (self._current().isdigit() or self._current() == "."):
            self._advance()
        number = self.source[start:self.pos]

        unit_start = self.pos
        while self._current() and self._current().isalpha():
            self._advance()
        unit = self.source[unit_start:self.pos].lower()

        dots = number.count(".")
        if dots > 1:
            # Dotted address such as 10.0.0.5
            if unit:
                raise LexerError(f"Invalid address: {number}{unit}", line, column)
            return Token(TokenType.STRING, number, line, column)

        try:
            value: int | float = float(number) if dots else int(number)
        except ValueError:
            raise LexerError(f"Invalid number: {number}", line, column)

        if not unit:
            return Token(TokenType.NUMBER, value, line, column)

        if unit not in self.DURATION_UNITS:
            raise LexerError(f"Unknown duration unit: {unit}", line, column)
        return Token(TokenType.DURATION, Duration(value * self.DURATION_UNITS[unit]), line, column)

    def _read_word(self) -> Token:
        line, column = self.line, self.column
        start = self.pos

        while self._current() and (self._current().isalnum() or self._current() in "_-.:/"):
            self._advance()

        raw = self.source[start:self.pos]
        lowered = raw.lower()

        if lowered in self.BOOLEAN_KEYWORDS:
            return Token(TokenType.BOOLEAN, self.BOOLEAN_KEYWORDS[lowered], line, column)
        if lowered == "include":
            return Token(TokenType.INCLUDE, raw, line, column)
        return Token(TokenType.IDENTIFIER, raw, line, column)

    def next_token(self) -> Token:
        """Get the next token from the source."""
        self._skip_ignored()

        char = self._current()
        line, column = self.line, self.column

        if not char:
            return Token(TokenType.EOF, "", line, column)

        single = {"{": TokenType.LBRACE, "}": TokenType.RBRACE, ";": TokenType.SEMICOLON}
        if char in single:
            self._advance()
            return Token(single[char], char, line, column)

        if char in "\"'":
            return self._read_string()
        if char.isdigit():
            return self._read_number()
        if char.isalpha() or char == "_":
            return self._read_word()

        raise LexerError(f"Unexpected character: {char!r}", line, column)

    def __iter__(self) -> Iterator[Token]:
        while True:
            token = self.next_token()
            yield token
            if token.type == TokenType.EOF:
                break


def tokenize(source: str, filename: str = "<string>") -> list[Token]:
    """Convenience function to tokenize a source string."""
    return list(Lexer(source, filename))
