"""Expression parsing for the Stencil parser.

Precedence climbing, lowest to highest:

    conditional   a if b else c      (else optional)
    or
    and
    not
    comparison    == != < <= > >= in, not in   (pairwise, left-assoc)
    concat        ~
    additive      + -
    multiplicative * / // %
    unary         - +
    power         **                 (right-assoc)
    filter        |
    test          is [not] name
    postfix       .attr  [key]  [a:b:c]  (args)
    primary       literals, names, (), [], {}
"""

from __future__ import annotations

from collections.abc import Iterator
from typing import TYPE_CHECKING

from stencil._types import Token, TokenType
from stencil.nodes import (
    BinOp,
    BoolOp,
    Compare,
    Concat,
    CondExpr,
    Const,
    Dict,
    Expr,
    Filter,
    FuncCall,
    Getattr,
    Getitem,
    List,
    Name,
    Slice,
    Test,
    Tuple,
    UnaryOp,
)

if TYPE_CHECKING:
    from stencil.parser.errors import ParseError

_COMPARE_OPS = {
    TokenType.EQ: "==",
    TokenType.NE: "!=",
    TokenType.LT: "<",
    TokenType.LE: "<=",
    TokenType.GT: ">",
    TokenType.GE: ">=",
}

_ADDITIVE_OPS = {TokenType.ADD: "+", TokenType.SUB: "-"}

_MULTIPLICATIVE_OPS = {
    TokenType.MUL: "*",
    TokenType.DIV: "/",
    TokenType.FLOORDIV: "//",
    TokenType.MOD: "%",
}

_CONSTANT_NAMES = {
    "true": True,
    "True": True,
    "false": False,
    "False": False,
    "none": None,
    "None": None,
}

# Names that end a bare test argument: ``x is divisibleby 3 and y``
_RESERVED = frozenset({"and", "or", "not", "in", "is", "if", "else", "recursive"})


class ExpressionParsingMixin:
    """Mixin for parsing expressions.

    Host attributes and cross-mixin dependencies are declared via inline
    TYPE_CHECKING blocks.

    """

    if TYPE_CHECKING:
        @property
        def _current(self) -> Token: ...
        def _advance(self) -> Token: ...
        def _peek(self, offset: int = 0) -> Token: ...
        def _expect(self, token_type: TokenType, what: str | None = None) -> Token: ...
        def _expect_name(self, value: str | None = None) -> Token: ...
        def _match(self, *types: TokenType) -> bool: ...
        def _at_name(self, *values: str) -> bool: ...
        def _skip_name(self, value: str) -> bool: ...
        def _loc(self, start: Token) -> dict: ...
        def _descend(self) -> None: ...
        def _ascend(self) -> None: ...
        def _error(
            self,
            message: str,
            token: Token | None = None,
            suggestion: str | None = None,
        ) -> ParseError: ...

    def _parse_expression(self, with_condexpr: bool = True) -> Expr:
        """Parse a full expression.

        ``with_condexpr=False`` is used where a trailing ``if`` belongs to
        the statement, as in ``for x in items if x``.
        """
        start = self._current
        self._descend()
        expr = self._parse_or()
        if with_condexpr:
            while self._at_name("if"):
                self._advance()
                test = self._parse_or()
                if_false = None
                if self._skip_name("else"):
                    if_false = self._parse_expression()
                expr = CondExpr(**self._loc(start), test=test, if_true=expr, if_false=if_false)
        self._ascend()
        return expr

    def _parse_or(self) -> Expr:
        start = self._current
        left = self._parse_and()
        if not self._at_name("or"):
            return left
        values = [left]
        while self._skip_name("or"):
            values.append(self._parse_and())
        return BoolOp(**self._loc(start), op="or", values=tuple(values))

    def _parse_and(self) -> Expr:
        start = self._current
        left = self._parse_not()
        if not self._at_name("and"):
            return left
        values = [left]
        while self._skip_name("and"):
            values.append(self._parse_not())
        return BoolOp(**self._loc(start), op="and", values=tuple(values))

    def _parse_not(self) -> Expr:
        if self._at_name("not"):
            start = self._advance()
            self._descend()
            operand = self._parse_not()
            self._ascend()
            return UnaryOp(**self._loc(start), op="not", operand=operand)
        return self._parse_compare()

    def _parse_compare(self) -> Expr:
        start = self._current
        left = self._parse_concat()
        while True:
            token = self._current
            if token.type in _COMPARE_OPS:
                self._advance()
                op = _COMPARE_OPS[token.type]
            elif self._at_name("in"):
                self._advance()
                op = "in"
            elif (
                self._at_name("not")
                and self._peek(1).type is TokenType.NAME
                and self._peek(1).value == "in"
            ):
                self._advance()
                self._advance()
                op = "not in"
            else:
                return left
            right = self._parse_concat()
            left = Compare(**self._loc(start), left=left, op=op, right=right)

    def _parse_concat(self) -> Expr:
        start = self._current
        first = self._parse_additive()
        if not self._match(TokenType.TILDE):
            return first
        nodes = [first]
        while self._match(TokenType.TILDE):
            self._advance()
            nodes.append(self._parse_additive())
        return Concat(**self._loc(start), nodes=tuple(nodes))

    def _parse_additive(self) -> Expr:
        start = self._current
        left = self._parse_multiplicative()
        while self._current.type in _ADDITIVE_OPS:
            op = _ADDITIVE_OPS[self._advance().type]
            right = self._parse_multiplicative()
            left = BinOp(**self._loc(start), op=op, left=left, right=right)
        return left

    def _parse_multiplicative(self) -> Expr:
        start = self._current
        left = self._parse_unary()
        while self._current.type in _MULTIPLICATIVE_OPS:
            op = _MULTIPLICATIVE_OPS[self._advance().type]
            right = self._parse_unary()
            left = BinOp(**self._loc(start), op=op, left=left, right=right)
        return left

    def _parse_unary(self) -> Expr:
        token = self._current
        if token.type in (TokenType.SUB, TokenType.ADD):
            self._advance()
            self._descend()
            operand = self._parse_unary()
            self._ascend()
            op = "-" if token.type is TokenType.SUB else "+"
            return UnaryOp(**self._loc(token), op=op, operand=operand)
        return self._parse_power()

    def _parse_power(self) -> Expr:
        start = self._current
        base = self._parse_filter_test()
        if self._match(TokenType.POW):
            self._advance()
            self._descend()
            exponent = self._parse_unary()
            self._ascend()
            return BinOp(**self._loc(start), op="**", left=base, right=exponent)
        return base

    def _parse_filter_test(self) -> Expr:
        start = self._current
        expr = self._parse_postfix(self._parse_primary(), start)
        while True:
            if self._match(TokenType.PIPE):
                expr = self._parse_filter(expr, start)
            elif self._at_name("is"):
                expr = self._parse_test(expr, start)
            else:
                return expr

    # ------------------------------------------------------------------
    # Filters and tests
    # ------------------------------------------------------------------

    def _parse_filter(self, value: Expr, start: Token) -> Filter:
        """Parse ``| name[(args)]`` applied to ``value``."""
        self._expect(TokenType.PIPE)
        return self._parse_filter_name_and_args(value, start)

    def _parse_filter_chain(self, value: Expr, start: Token) -> Expr:
        """Parse ``name(args) | name ...`` as used by filter and set blocks."""
        expr = self._parse_filter_name_and_args(value, start)
        while self._match(TokenType.PIPE):
            expr = self._parse_filter(expr, start)
        return expr

    def _parse_filter_name_and_args(self, value: Expr, start: Token) -> Filter:
        name = self._expect(TokenType.NAME, "filter name").value
        args: tuple[Expr, ...] = ()
        kwargs: tuple[tuple[str, Expr], ...] = ()
        if self._match(TokenType.LPAREN):
            args, kwargs = self._parse_call_args()
        return Filter(**self._loc(start), value=value, name=name, args=args, kwargs=kwargs)

    def _parse_test(self, value: Expr, start: Token) -> Test:
        """Parse ``is [not] name[(args) | arg]`` applied to ``value``."""
        self._expect_name("is")
        negated = self._skip_name("not")
        name = self._expect(TokenType.NAME, "test name").value
        args: tuple[Expr, ...] = ()
        kwargs: tuple[tuple[str, Expr], ...] = ()
        if self._match(TokenType.LPAREN):
            args, kwargs = self._parse_call_args()
        elif self._starts_bare_test_arg():
            arg_start = self._current
            args = (self._parse_postfix(self._parse_primary(), arg_start),)
        return Test(
            **self._loc(start), value=value, name=name, args=args, kwargs=kwargs, negated=negated
        )

    def _starts_bare_test_arg(self) -> bool:
        token = self._current
        if token.type in (TokenType.STRING, TokenType.INTEGER, TokenType.FLOAT, TokenType.LBRACKET):
            return True
        return token.type is TokenType.NAME and token.value not in _RESERVED

    # ------------------------------------------------------------------
    # Postfix and primaries
    # ------------------------------------------------------------------

    def _parse_postfix(self, expr: Expr, start: Token) -> Expr:
        """Parse ``.attr``, ``[key]``, ``[a:b]`` and ``(args)`` suffixes."""
        while True:
            token = self._current
            if token.type is TokenType.DOT:
                self._advance()
                attr = self._current
                if attr.type is TokenType.NAME:
                    self._advance()
                    expr = Getattr(**self._loc(start), obj=expr, attr=attr.value)
                elif attr.type is TokenType.INTEGER:
                    self._advance()
                    key = Const(**self._loc(attr), value=attr.value)
                    expr = Getitem(**self._loc(start), obj=expr, key=key)
                else:
                    raise self._error(f"expected attribute name after '.', found {attr.describe()}")
            elif token.type is TokenType.LBRACKET:
                expr = self._parse_subscript(expr, start)
            elif token.type is TokenType.LPAREN:
                args, kwargs = self._parse_call_args()
                expr = FuncCall(**self._loc(start), func=expr, args=args, kwargs=kwargs)
            else:
                return expr

    def _parse_subscript(self, obj: Expr, start: Token) -> Expr:
        bracket = self._expect(TokenType.LBRACKET)
        parts: list[Expr | None] = []
        current: Expr | None = None
        is_slice = False
        while not self._match(TokenType.RBRACKET):
            if self._match(TokenType.COLON):
                self._advance()
                parts.append(current)
                current = None
                is_slice = True
                if len(parts) > 2:
                    raise self._error("too many ':' in slice")
            else:
                if current is not None:
                    raise self._error(f"expected ']', found {self._current.describe()}")
                current = self._parse_expression()
        self._expect(TokenType.RBRACKET)
        if not is_slice:
            if current is None:
                raise self._error("expected subscript expression", bracket)
            return Getitem(**self._loc(start), obj=obj, key=current)
        parts.append(current)
        while len(parts) < 3:
            parts.append(None)
        key = Slice(**self._loc(bracket), start=parts[0], stop=parts[1], step=parts[2])
        return Getitem(**self._loc(start), obj=obj, key=key)

    def _parse_call_args(self) -> tuple[tuple[Expr, ...], tuple[tuple[str, Expr], ...]]:
        """Parse ``(pos, ..., name=value, ...)``; positional before keyword."""
        self._expect(TokenType.LPAREN)
        args: list[Expr] = []
        kwargs: list[tuple[str, Expr]] = []
        seen: set[str] = set()
        while not self._match(TokenType.RPAREN):
            if args or kwargs:
                self._expect(TokenType.COMMA, "',' or ')'")
                if self._match(TokenType.RPAREN):
                    break
            token = self._current
            if token.type is TokenType.NAME and self._peek(1).type is TokenType.ASSIGN:
                self._advance()
                self._advance()
                if token.value in seen:
                    raise self._error(f"duplicate keyword argument '{token.value}'", token)
                seen.add(token.value)
                kwargs.append((token.value, self._parse_expression()))
            else:
                if kwargs:
                    raise self._error("positional argument follows keyword argument", token)
                args.append(self._parse_expression())
        self._expect(TokenType.RPAREN)
        return tuple(args), tuple(kwargs)

    def _parse_primary(self) -> Expr:
        token = self._current
        ttype = token.type

        if ttype is TokenType.NAME:
            self._advance()
            if token.value in _CONSTANT_NAMES:
                return Const(**self._loc(token), value=_CONSTANT_NAMES[token.value])
            return Name(**self._loc(token), name=token.value)

        if ttype is TokenType.STRING:
            self._advance()
            parts = [token.value]
            while self._match(TokenType.STRING):
                parts.append(self._advance().value)
            return Const(**self._loc(token), value="".join(parts))

        if ttype in (TokenType.INTEGER, TokenType.FLOAT):
            self._advance()
            return Const(**self._loc(token), value=token.value)

        if ttype is TokenType.LPAREN:
            return self._parse_paren()

        if ttype is TokenType.LBRACKET:
            self._advance()
            items = list(self._parse_sequence_items(TokenType.RBRACKET))
            return List(**self._loc(token), items=tuple(items))

        if ttype is TokenType.LBRACE:
            return self._parse_dict()

        raise self._error(
            f"expected an expression, found {token.describe()}",
            suggestion="Check for a missing operand or an unbalanced bracket",
        )

    def _parse_paren(self) -> Expr:
        start = self._expect(TokenType.LPAREN)
        if self._match(TokenType.RPAREN):
            self._advance()
            return Tuple(**self._loc(start), items=())
        first = self._parse_expression()
        if not self._match(TokenType.COMMA):
            self._expect(TokenType.RPAREN)
            return first
        items = [first]
        while self._match(TokenType.COMMA):
            self._advance()
            if self._match(TokenType.RPAREN):
                break
            items.append(self._parse_expression())
        self._expect(TokenType.RPAREN)
        return Tuple(**self._loc(start), items=tuple(items))

    def _parse_sequence_items(self, closing: TokenType) -> Iterator[Expr]:
        first = True
        while not self._match(closing):
            if not first:
                self._expect(TokenType.COMMA, f"',' or {closing.value}")
                if self._match(closing):
                    break
            first = False
            yield self._parse_expression()
        self._expect(closing)

    def _parse_dict(self) -> Dict:
        start = self._expect(TokenType.LBRACE)
        keys: list[Expr] = []
        values: list[Expr] = []
        while not self._match(TokenType.RBRACE):
            if keys:
                self._expect(TokenType.COMMA, "',' or '}'")
                if self._match(TokenType.RBRACE):
                    break
            keys.append(self._parse_expression())
            self._expect(TokenType.COLON, "':'")
            values.append(self._parse_expression())
        self._expect(TokenType.RBRACE)
        return Dict(**self._loc(start), keys=tuple(keys), values=tuple(values))
