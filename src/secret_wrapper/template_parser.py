"""Template compiler for redaction templates.

A template is literal text with ``{{ ... }}`` blocks. A block holds one
expression:
- Variables: ``secret_type``, ``secret_length``, ``secret_string``
- String literals with single or double quotes
- Integer literals, optionally negative
- Calls into the function library with positional and/or named arguments,
  e.g. ``replicate(character='*', length=secret_length)``

Templates are compiled once into an AST. Compilation resolves every name and
checks argument counts and types against the function library, so rendering
a compiled template cannot fail on user input.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from functools import lru_cache
from typing import Any, List

from .exceptions import TemplateRuntimeError, TemplateSyntaxError
from .template_functions import CAPABILITY_NAMES, VARIABLES, FunctionSignature, get_function
from .types import RenderContext


class TokenType(Enum):
    """Token types for template parsing."""
    TEXT = "TEXT"
    OPEN = "OPEN"
    CLOSE = "CLOSE"
    STRING = "STRING"
    NUMBER = "NUMBER"
    IDENTIFIER = "IDENTIFIER"
    LPAREN = "LPAREN"
    RPAREN = "RPAREN"
    COMMA = "COMMA"
    EQUALS = "EQUALS"
    EOF = "EOF"


@dataclass
class Token:
    """A token in the template."""
    type: TokenType
    value: str
    position: int


class TemplateLexer:
    """Lexer for tokenizing template text.

    Outside ``{{ }}`` everything is literal text; inside, the lexer produces
    expression tokens until the matching ``}}``.
    """

    PUNCTUATION = {
        '(': TokenType.LPAREN,
        ')': TokenType.RPAREN,
        ',': TokenType.COMMA,
        '=': TokenType.EQUALS,
    }

    def __init__(self, text: str):
        self.text = text
        self.position = 0
        self.tokens: List[Token] = []

    def tokenize(self) -> List[Token]:
        """Tokenize the template into a list of tokens."""
        self.tokens = []
        self.position = 0

        while self.position < len(self.text):
            start = self.text.find('{{', self.position)
            if start == -1:
                self._add(TokenType.TEXT, self.text[self.position:], self.position)
                self.position = len(self.text)
                break
            if start > self.position:
                self._add(TokenType.TEXT, self.text[self.position:start], self.position)
            self._add(TokenType.OPEN, '{{', start)
            self.position = start + 2
            self._tokenize_expression(start)

        self.tokens.append(Token(TokenType.EOF, '', self.position))
        return self.tokens

    def _add(self, type_: TokenType, value: str, position: int):
        self.tokens.append(Token(type_, value, position))

    def _tokenize_expression(self, open_position: int):
        """Read expression tokens up to and including the closing braces."""
        while True:
            self._skip_whitespace()

            if self.position >= len(self.text):
                raise TemplateSyntaxError(open_position, "Unclosed '{{'")

            char = self.text[self.position]

            if self.text.startswith('}}', self.position):
                self._add(TokenType.CLOSE, '}}', self.position)
                self.position += 2
                return
            # String literals
            if char in ('"', "'"):
                self._read_string(char)
            # Numbers
            elif char.isdigit() or (char == '-' and self._peek().isdigit()):
                self._read_number()
            elif char in self.PUNCTUATION:
                self._add(self.PUNCTUATION[char], char, self.position)
                self.position += 1
            # Identifiers
            elif char.isalpha() or char == '_':
                self._read_identifier()
            else:
                raise TemplateSyntaxError(self.position, f"Unexpected character '{char}'")

    def _skip_whitespace(self):
        """Skip whitespace characters."""
        while self.position < len(self.text) and self.text[self.position].isspace():
            self.position += 1

    def _peek(self, offset: int = 1) -> str:
        """Peek at the next character without advancing position."""
        pos = self.position + offset
        return self.text[pos] if pos < len(self.text) else ''

    def _read_string(self, quote_char: str):
        """Read a string literal."""
        start_pos = self.position
        self.position += 1  # Skip opening quote
        value = ''

        while self.position < len(self.text):
            char = self.text[self.position]
            if char == quote_char:
                self.position += 1  # Skip closing quote
                self._add(TokenType.STRING, value, start_pos)
                return
            elif char == '\\' and self._peek() in (quote_char, '\\'):
                # Handle escaped quotes and backslashes
                self.position += 1
                value += self.text[self.position]
            else:
                value += char
            self.position += 1

        raise TemplateSyntaxError(start_pos, "Unterminated string literal")

    def _read_number(self):
        """Read an integer literal."""
        start_pos = self.position
        value = ''

        if self.text[self.position] == '-':
            value += '-'
            self.position += 1

        while self.position < len(self.text) and self.text[self.position].isdigit():
            value += self.text[self.position]
            self.position += 1

        if self.position < len(self.text) and self.text[self.position] == '.':
            raise TemplateSyntaxError(self.position, "Only integer literals are supported")

        self._add(TokenType.NUMBER, value, start_pos)

    def _read_identifier(self):
        """Read an identifier."""
        start_pos = self.position
        value = ''

        while self.position < len(self.text):
            char = self.text[self.position]
            if char.isalnum() or char == '_':
                value += char
                self.position += 1
            else:
                break

        self._add(TokenType.IDENTIFIER, value, start_pos)


class TemplateParser:
    """Recursive descent parser producing a type-checked AST."""

    def __init__(self, tokens: List[Token]):
        self.tokens = tokens
        self.position = 0
        self.current_token = self.tokens[0] if tokens else Token(TokenType.EOF, '', 0)

    def parse(self) -> List['TemplateNode']:
        """Parse the tokens into a list of top-level nodes."""
        nodes: List[TemplateNode] = []

        while self.current_token.type != TokenType.EOF:
            token = self.current_token
            if token.type == TokenType.TEXT:
                self._advance()
                nodes.append(TextNode(token.value, token.position))
            elif token.type == TokenType.OPEN:
                self._advance()
                if self.current_token.type == TokenType.CLOSE:
                    raise TemplateSyntaxError(token.position, "Empty expression")
                nodes.append(self._parse_expression())
                self._expect(TokenType.CLOSE, "Expected '}}'")
            else:
                raise TemplateSyntaxError(token.position, f"Unexpected token '{token.value}'")

        return nodes

    def _advance(self):
        """Move to the next token."""
        if self.position < len(self.tokens) - 1:
            self.position += 1
            self.current_token = self.tokens[self.position]

    def _expect(self, token_type: TokenType, message: str) -> Token:
        token = self.current_token
        if token.type != token_type:
            raise TemplateSyntaxError(token.position, message)
        self._advance()
        return token

    def _parse_expression(self) -> 'ExpressionNode':
        """Parse a literal, variable or function call."""
        token = self.current_token

        if token.type == TokenType.STRING:
            self._advance()
            return LiteralNode(token.value, token.position)
        elif token.type == TokenType.NUMBER:
            self._advance()
            return LiteralNode(int(token.value), token.position)
        elif token.type == TokenType.IDENTIFIER:
            self._advance()
            if self.current_token.type == TokenType.LPAREN:
                return self._parse_call(token)
            if token.value not in VARIABLES:
                raise TemplateSyntaxError(token.position, f"Undefined variable '{token.value}'")
            return VariableNode(token.value, token.position)
        else:
            raise TemplateSyntaxError(token.position, f"Unexpected token '{token.value}'")

    def _parse_call(self, name_token: Token) -> 'CallNode':
        """Parse ``name(args)`` and bind arguments to the function's parameters."""
        signature = get_function(name_token.value)
        if signature is None:
            raise TemplateSyntaxError(name_token.position, f"Unknown function '{name_token.value}'")

        self._expect(TokenType.LPAREN, "Expected '('")
        bound: dict[str, ExpressionNode] = {}
        seen_named = False
        index = 0

        while self.current_token.type != TokenType.RPAREN:
            if bound or index:
                self._expect(TokenType.COMMA, "Expected ',' or ')'")
            arg_token = self.current_token

            if arg_token.type == TokenType.IDENTIFIER and self._peek_type() == TokenType.EQUALS:
                self._advance()
                self._advance()
                param = signature.param(arg_token.value)
                if param is None:
                    raise TemplateSyntaxError(
                        arg_token.position,
                        f"{signature.name}() got an unexpected argument '{arg_token.value}'",
                    )
                seen_named = True
            else:
                if seen_named:
                    raise TemplateSyntaxError(
                        arg_token.position, "Positional argument follows named argument"
                    )
                if index >= len(signature.params):
                    raise TemplateSyntaxError(
                        arg_token.position,
                        f"{signature.name}() takes {len(signature.params)} argument(s)",
                    )
                param = signature.params[index]
                index += 1

            if param.name in bound:
                raise TemplateSyntaxError(
                    arg_token.position, f"{signature.name}() got multiple values for '{param.name}'"
                )
            value = self._parse_expression()
            if value.static_type is not param.type:
                raise TemplateSyntaxError(
                    arg_token.position,
                    f"{signature.name}() argument '{param.name}' must be {param.type.__name__}",
                )
            bound[param.name] = value

        self._expect(TokenType.RPAREN, "Expected ')'")

        for param in signature.params:
            if param.required and param.name not in bound:
                raise TemplateSyntaxError(
                    name_token.position, f"{signature.name}() missing argument '{param.name}'"
                )

        return CallNode(signature, bound, name_token.position)

    def _peek_type(self) -> TokenType:
        pos = self.position + 1
        return self.tokens[pos].type if pos < len(self.tokens) else TokenType.EOF


# AST Node classes
class TemplateNode:
    """Base class for template AST nodes."""

    def __init__(self, position: int):
        self.position = position

    def render(self, context: RenderContext) -> str:
        raise NotImplementedError

    def references(self) -> set[str]:
        """Names of variables and functions this node reaches."""
        return set()


class TextNode(TemplateNode):
    """Literal text outside of ``{{ }}``."""

    def __init__(self, text: str, position: int):
        super().__init__(position)
        self.text = text

    def render(self, context: RenderContext) -> str:
        return self.text


class ExpressionNode(TemplateNode):
    """Base class for nodes inside ``{{ }}``."""

    static_type: type = str

    def evaluate(self, context: RenderContext) -> Any:
        raise NotImplementedError

    def render(self, context: RenderContext) -> str:
        return str(self.evaluate(context))


class LiteralNode(ExpressionNode):
    """Node for literal values."""

    def __init__(self, value: Any, position: int):
        super().__init__(position)
        self.value = value
        self.static_type = type(value)

    def evaluate(self, context: RenderContext) -> Any:
        return self.value


class VariableNode(ExpressionNode):
    """Node for the render context's variables."""

    def __init__(self, name: str, position: int):
        super().__init__(position)
        self.name = name
        self.static_type = VARIABLES[name]

    def evaluate(self, context: RenderContext) -> Any:
        if self.name == "secret_type":
            return context.secret_type
        if self.name == "secret_length":
            # Kinds without a natural size render a zero length
            return context.secret_length or 0
        if self.name == "secret_string":
            return context.secret_string()
        raise TemplateRuntimeError(f"Undefined variable: {self.name}")

    def references(self) -> set[str]:
        return {self.name}


class CallNode(ExpressionNode):
    """Node for a function library call with bound arguments."""

    def __init__(self, signature: FunctionSignature, args: dict[str, ExpressionNode], position: int):
        super().__init__(position)
        self.signature = signature
        self.args = args
        self.static_type = signature.returns

    def evaluate(self, context: RenderContext) -> Any:
        kwargs = {name: node.evaluate(context) for name, node in self.args.items()}
        if self.signature.needs_context:
            return self.signature.impl(context, **kwargs)
        return self.signature.impl(**kwargs)

    def references(self) -> set[str]:
        names = {self.signature.name}
        for node in self.args.values():
            names |= node.references()
        return names


class Template:
    """A compiled redaction template. Owns no secret data."""

    def __init__(self, source: str, nodes: List[TemplateNode]):
        self.source = source
        self.nodes = nodes

    @property
    def references(self) -> frozenset[str]:
        names: set[str] = set()
        for node in self.nodes:
            names |= node.references()
        return frozenset(names)

    @property
    def literal_text(self) -> str:
        """Text the template emits regardless of the secret, used for policy checks."""
        parts = []
        for node in self.nodes:
            if isinstance(node, TextNode):
                parts.append(node.text)
            elif isinstance(node, LiteralNode) and isinstance(node.value, str):
                parts.append(node.value)
        return "".join(parts)

    @property
    def uses_secret_string(self) -> bool:
        """Whether rendering can reach the secret's content."""
        return bool(self.references & CAPABILITY_NAMES)

    def render(self, context: RenderContext) -> str:
        """Render the template against a context."""
        try:
            return ''.join(node.render(context) for node in self.nodes)
        except TemplateRuntimeError:
            raise
        except Exception as e:
            raise TemplateRuntimeError(f"Template rendering failed: {e}") from e

    def __repr__(self) -> str:
        return f"Template({self.source!r})"

    def __eq__(self, other: object) -> bool:
        if isinstance(other, Template):
            return self.source == other.source
        return NotImplemented

    def __hash__(self) -> int:
        return hash(self.source)


@lru_cache(maxsize=256)
def compile_template(text: str) -> Template:
    """Compile template text into a reusable ``Template``."""
    lexer = TemplateLexer(text)
    tokens = lexer.tokenize()

    parser = TemplateParser(tokens)
    return Template(text, parser.parse())


def render_template(text: str, context: RenderContext) -> str:
    """Compile (cached) and render template text."""
    return compile_template(text).render(context)
