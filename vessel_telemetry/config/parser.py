"""
Recursive descent parser for the nginx-like configuration syntax.

Grammar:
    document    := (block | directive | include)*
    block       := IDENTIFIER [value] '{' (block | directive | include)* '}'
    directive   := IDENTIFIER value* ';'
    value       := STRING | NUMBER | DURATION | BOOLEAN | IDENTIFIER
    include     := 'include' STRING ';'
"""

import glob as glob_module
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

from .lexer import Lexer, Token, TokenType


class ParseError(Exception):
    """Exception raised for parser errors."""

    def __init__(self, message: str, token: Token | None = None):
        self.token = token
        if token:
            super().__init__(f"Line {token.line}, column {token.column}: {message}")
        else:
            super().__init__(message)


VALUE_TOKENS = (
    TokenType.STRING,
    TokenType.NUMBER,
    TokenType.DURATION,
    TokenType.BOOLEAN,
    TokenType.IDENTIFIER,
)


@dataclass
class Directive:
    """
    A directive with a name and zero or more values.

    Examples:
        port 1883;                     -> Directive("port", [1883])
        topic "a/gps" "b/gps";         -> Directive("topic", ["a/gps", "b/gps"])
    """

    name: str
    values: list[Any] = field(default_factory=list)
    line: int = 0

    @property
    def value(self) -> Any:
        """First value or None."""
        return self.values[0] if self.values else None


@dataclass
class Block:
    """A block with a type, optional name, directives and nested blocks."""

    type: str
    name: str | None = None
    directives: list[Directive] = field(default_factory=list)
    blocks: list["Block"] = field(default_factory=list)
    line: int = 0

    def get_directive(self, name: str) -> Directive | None:
        """Get the last directive with the given name (later ones win)."""
        found = None
        for directive in self.directives:
            if directive.name == name:
                found = directive
        return found

    def get_value(self, name: str, default: Any = None) -> Any:
        directive = self.get_directive(name)
        if directive is None or directive.value is None:
            return default
        return directive.value

    def get_all_values(self, name: str) -> list[Any]:
        """
        Collect values of every directive with the given name.

        Repeated directives and multi-value directives are flattened:
            topic "a";
            topic "b" "c";
        Returns: ["a", "b", "c"]
        """
        values: list[Any] = []
        for directive in self.directives:
            if directive.name == name:
                values.extend(directive.values)
        return values

    def has(self, name: str) -> bool:
        return self.get_directive(name) is not None


@dataclass
class ConfigDocument:
    """Root document containing all top-level blocks and directives."""

    blocks: list[Block] = field(default_factory=list)
    directives: list[Directive] = field(default_factory=list)
    filename: str = "<string>"

    def get_block(self, type_name: str) -> Block | None:
        """Get the first block of a type."""
        for block in self.blocks:
            if block.type == type_name:
                return block
        return None

    def merge(self, other: "ConfigDocument") -> None:
        self.blocks.extend(other.blocks)
        self.directives.extend(other.directives)


class ConfigParser:
    """Recursive descent parser producing a ConfigDocument."""

    def __init__(
        self,
        source: str,
        filename: str = "<string>",
        base_path: Path | None = None,
        included_files: frozenset[str] = frozenset(),
    ):
        self.lexer = Lexer(source, filename)
        self.filename = filename
        self.base_path = base_path or Path.cwd()
        self.included_files = included_files
        self.current: Token = self.lexer.next_token()

    def _advance(self) -> Token:
        previous = self.current
        self.current = self.lexer.next_token()
        return previous

    def _expect(self, token_type: TokenType, message: str) -> Token:
        if self.current.type != token_type:
            raise ParseError(message, self.current)
        return self._advance()

    def parse(self) -> ConfigDocument:
        """Parse the entire document."""
        doc = ConfigDocument(filename=self.filename)
        self._parse_items(doc.blocks, doc.directives, until=TokenType.EOF)
        return doc

    def _parse_items(
        self,
        blocks: list[Block],
        directives: list[Directive],
        until: TokenType,
    ) -> None:
        while self.current.type != until:
            if self.current.type == TokenType.EOF:
                raise ParseError("Unexpected end of input, missing '}'", self.current)

            if self.current.type == TokenType.INCLUDE:
                included = self._parse_include()
                blocks.extend(included.blocks)
                directives.extend(included.directives)
            elif self.current.type == TokenType.IDENTIFIER:
                item = self._parse_block_or_directive()
                if isinstance(item, Block):
                    blocks.append(item)
                else:
                    directives.append(item)
            else:
                raise ParseError(
                    f"Expected block, directive or include; got {self.current.type.name}",
                    self.current,
                )

    def _parse_block_or_directive(self) -> Block | Directive:
        name_token = self._advance()
        name = str(name_token.value)

        values: list[Any] = []
        while self.current.type in VALUE_TOKENS:
            values.append(self._advance().value)

        if self.current.type == TokenType.SEMICOLON:
            self._advance()
            return Directive(name=name, values=values, line=name_token.line)

        if self.current.type != TokenType.LBRACE:
            raise ParseError(f"Expected '{{' or ';' after '{name}'", self.current)

        if len(values) > 1:
            raise ParseError(f"Block '{name}' takes at most one name argument", name_token)

        self._advance()  # {
        block = Block(
            type=name,
            name=str(values[0]) if values else None,
            line=name_token.line,
        )
        self._parse_items(block.blocks, block.directives, until=TokenType.RBRACE)
        self._advance()  # }
        return block

    def _parse_include(self) -> ConfigDocument:
        include_token = self._advance()
        path_token = self._expect(TokenType.STRING, "Expected file path after 'include'")
        self._expect(TokenType.SEMICOLON, "Expected ';' after include path")

        pattern = str(path_token.value)
        if not Path(pattern).is_absolute():
            pattern = str(self.base_path / pattern)

        merged = ConfigDocument()
        for path in sorted(glob_module.glob(pattern)):
            path_obj = Path(path)
            resolved = str(path_obj.resolve())
            if resolved in self.included_files:
                raise ParseError(f"Circular include detected: {path}", include_token)

            parser = ConfigParser(
                path_obj.read_text(),
                filename=path,
                base_path=path_obj.parent,
                included_files=self.included_files | {resolved},
            )
            merged.merge(parser.parse())

        return merged


def parse_config(source: str, filename: str = "<string>", base_path: Path | None = None) -> ConfigDocument:
    """Parse a configuration string."""
    return ConfigParser(source, filename, base_path).parse()


def parse_config_file(path: str | Path) -> ConfigDocument:
    """Parse a configuration file, resolving includes relative to it."""
    path = Path(path)
    return ConfigParser(
        path.read_text(),
        filename=str(path),
        base_path=path.parent,
        included_files=frozenset({str(path.resolve())}),
    ).parse()
