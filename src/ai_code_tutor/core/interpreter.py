"""Conservative interpreter for a narrow subset of Java and C.

Used as the terminal fallback when neither the sandbox nor the model gateway
is reachable. It performs a few structural checks, then walks the top-level
statements of ``main``:

- declarations of int/long/short/byte/double/float/char/boolean/String
- assignment, compound assignment and ``++``/``--``
- ``System.out.println/print/printf`` and C ``printf``/``puts``
- ``Scanner`` reads and C ``scanf`` fed from the supplied stdin values

Anything else, including every loop and conditional, is skipped. Skipping
never aborts the run, but every variable the skipped text may assign becomes
unknown, and any later statement reading it is skipped as well. Output from a
run that skipped anything carries a note saying it is partial.
"""

from __future__ import annotations

import math
import re
from collections import deque
from collections.abc import Iterator, Sequence
from dataclasses import dataclass
from decimal import Decimal
from typing import Any, Literal

import structlog

from ai_code_tutor.models.source import SourceDocument

log = structlog.get_logger()

Dialect = Literal["java", "c"]

NO_CLASS_MESSAGE = "Error: Could not find or load main class. Ensure you have a 'public class Main'."
NO_MAIN_MESSAGE = (
    "Error: Main method not found in class. "
    "Please define 'public static void main(String[] args)'."
)
SIMULATED_OUTPUT_MESSAGE = "(Output simulated: Program ran successfully)"
PARTIAL_OUTPUT_NOTE = (
    "(Output simulated: loops, conditionals and other unsupported statements were not run, "
    "so this output may be incomplete)"
)
NO_OUTPUT_MESSAGE = "Program executed. (No output)"

_FILE_NAMES: dict[Dialect, str] = {"java": "Main.java", "c": "main.c"}

_INT_BITS = {"int": 32, "long": 64, "short": 16, "byte": 8}


# =============================================================================
# Control signals
# =============================================================================


class _Unsupported(Exception):
    """The statement is outside the supported subset and is skipped."""


class _RuntimeFault(Exception):
    """The simulated program threw (e.g. ArithmeticException)."""


class _ProgramExit(Exception):
    def __init__(self, code: int) -> None:
        super().__init__(code)
        self.code = code


# =============================================================================
# Values
# =============================================================================


class JavaChar(str):
    """A ``char`` value. Behaves as a number in arithmetic, as text when printed."""


class _ScannerRef:
    """Marker value bound to a ``Scanner`` variable."""


def _wrap(value: int, bits: int) -> int:
    half = 1 << (bits - 1)
    return ((value + half) % (1 << bits)) - half


def java_string(value: Any) -> str:
    """Render a value the way ``String.valueOf`` would."""
    if value is None:
        return "null"
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, float):
        if math.isnan(value):
            return "NaN"
        if math.isinf(value):
            return "Infinity" if value > 0 else "-Infinity"
        if value == 0 or 1e-3 <= abs(value) < 1e7:
            return repr(value)
        # computerized scientific notation, e.g. 1.0E7 or 1.5E-5
        sign, digits, exponent = Decimal(repr(value)).normalize().as_tuple()
        text = "".join(str(d) for d in digits)
        power = len(text) - 1 + int(exponent)
        return f"{'-' if sign else ''}{text[0]}.{text[1:] or '0'}E{power}"
    return str(value)


def _number(value: Any) -> int | float:
    if isinstance(value, bool) or value is None:
        raise _Unsupported("not a number")
    if isinstance(value, JavaChar):
        return ord(value)
    if isinstance(value, (int, float)):
        return value
    raise _Unsupported("not a number")


def _truth(value: Any) -> bool:
    if isinstance(value, bool):
        return value
    # C conditions are integers
    if isinstance(value, (int, float)):
        return value != 0
    raise _Unsupported("not a boolean")


def _is_text(value: Any) -> bool:
    return isinstance(value, str) and not isinstance(value, JavaChar)


def _divide(a: int | float, b: int | float, op: str) -> int | float:
    if isinstance(a, int) and isinstance(b, int):
        if b == 0:
            raise _RuntimeFault("java.lang.ArithmeticException: / by zero")
        quotient = abs(a) // abs(b)
        if (a < 0) != (b < 0):
            quotient = -quotient
        return quotient if op == "/" else a - b * quotient
    a, b = float(a), float(b)
    if op == "%":
        return math.fmod(a, b) if b != 0 else math.nan
    if b == 0:
        return math.nan if a == 0 or math.isnan(a) else math.copysign(math.inf, a) * math.copysign(1, b)
    return a / b


def _binary(op: str, left: Any, right: Any) -> Any:
    if op == "+" and (_is_text(left) or _is_text(right)):
        return java_string(left) + java_string(right)
    if op in ("==", "!="):
        if _is_text(left) or _is_text(right) or left is None or right is None:
            equal = left == right
        elif isinstance(left, bool) or isinstance(right, bool):
            equal = left is right
        else:
            equal = _number(left) == _number(right)
        return equal if op == "==" else not equal

    a, b = _number(left), _number(right)
    if op == "+":
        return a + b
    if op == "-":
        return a - b
    if op == "*":
        return a * b
    if op in ("/", "%"):
        return _divide(a, b, op)
    if op == "<":
        return a < b
    if op == ">":
        return a > b
    if op == "<=":
        return a <= b
    if op == ">=":
        return a >= b
    raise _Unsupported(f"operator {op}")


def coerce(type_name: str, value: Any) -> Any:
    """Convert ``value`` for storage in a variable of ``type_name``."""
    if type_name in _INT_BITS:
        if isinstance(value, float):
            if math.isnan(value):
                return 0
            if math.isinf(value):
                limit = (1 << (_INT_BITS[type_name] - 1)) - 1
                return limit if value > 0 else -limit - 1
            value = int(value)
        return _wrap(int(_number(value)), _INT_BITS[type_name])
    if type_name in ("double", "float"):
        return float(_number(value))
    if type_name == "char":
        if isinstance(value, JavaChar):
            return value
        if isinstance(value, int) and not isinstance(value, bool):
            return JavaChar(chr(value & 0xFFFF))
        raise _Unsupported("not a char")
    if type_name == "boolean":
        if isinstance(value, bool):
            return value
        if isinstance(value, int):
            return value != 0
        raise _Unsupported("not a boolean")
    if type_name == "String":
        if value is None or _is_text(value):
            return value
        raise _Unsupported("not a String")
    raise _Unsupported(f"type {type_name}")


# =============================================================================
# Text helpers
# =============================================================================

_ESCAPES = {"n": "\n", "t": "\t", "r": "\r", "b": "\b", "f": "\f", "0": "\0",
            "\\": "\\", '"': '"', "'": "'"}
_ESCAPE = re.compile(r"\\(u[0-9a-fA-F]{4}|.)")


def _unescape(text: str) -> str:
    def replace(match: re.Match[str]) -> str:
        code = match.group(1)
        if code.startswith("u") and len(code) == 5:
            return chr(int(code[1:], 16))
        return _ESCAPES.get(code, code)

    return _ESCAPE.sub(replace, text)


def _literal_end(code: str, start: int) -> int:
    """Return the index just past the string or char literal opening at ``start``."""
    quote = code[start]
    i = start + 1
    while i < len(code) and code[i] not in (quote, "\n"):
        i += 2 if code[i] == "\\" else 1
    if i < len(code) and code[i] == quote:
        return i + 1
    return min(i, len(code))


def _blank(text: str) -> str:
    return re.sub(r"[^\n]", " ", text)


def mask(code: str, *, literals: bool = True) -> str:
    """Blank out comments (and literal contents when ``literals``).

    The result has the same length and line structure as ``code``.
    """
    out: list[str] = []
    i, n = 0, len(code)
    while i < n:
        if code.startswith("//", i):
            j = code.find("\n", i)
            j = n if j == -1 else j
            out.append(" " * (j - i))
            i = j
        elif code.startswith("/*", i):
            j = code.find("*/", i + 2)
            j = n if j == -1 else j + 2
            out.append(_blank(code[i:j]))
            i = j
        elif code[i] in "\"'":
            j = _literal_end(code, i)
            chunk = code[i:j]
            if literals:
                closed = len(chunk) >= 2 and chunk[-1] == chunk[0]
                inner = chunk[1:-1] if closed else chunk[1:]
                chunk = chunk[0] + _blank(inner) + (chunk[-1] if closed else "")
            out.append(chunk)
            i = j
        else:
            out.append(code[i])
            i += 1
    return "".join(out)


def _matching_brace(code: str, start: int) -> int:
    """Return the index just past the ``}`` closing the ``{`` at ``start``."""
    depth = 0
    i = start
    while i < len(code):
        c = code[i]
        if c in "\"'":
            i = _literal_end(code, i)
            continue
        if c == "{":
            depth += 1
        elif c == "}":
            depth -= 1
            if depth == 0:
                return i + 1
        i += 1
    return len(code)


def _split_top_level(text: str, separator: str = ",") -> list[str]:
    parts: list[str] = []
    depth = 0
    current: list[str] = []
    i = 0
    while i < len(text):
        c = text[i]
        if c in "\"'":
            j = _literal_end(text, i)
            current.append(text[i:j])
            i = j
            continue
        if c in "([{":
            depth += 1
        elif c in ")]}":
            depth -= 1
        elif c == separator and depth == 0:
            parts.append("".join(current).strip())
            current = []
            i += 1
            continue
        current.append(c)
        i += 1
    parts.append("".join(current).strip())
    return parts


class Compound(str):
    """Text of a compound statement (``if``, loop, nested block)."""


def statements(body: str) -> Iterator[str]:
    """Split a block body into top-level statements.

    Compound statements are yielded as ``Compound`` with their braces.
    The body must already have its comments masked.
    """
    buf: list[str] = []
    parens = 0
    i, n = 0, len(body)
    while i < n:
        c = body[i]
        if c in "\"'":
            j = _literal_end(body, i)
            buf.append(body[i:j])
            i = j
            continue
        if c == "(":
            parens += 1
        elif c == ")":
            parens -= 1
        elif c == ";" and parens <= 0:
            text = "".join(buf).strip()
            if text:
                yield text
            buf = []
            i += 1
            continue
        elif c == "{" and parens <= 0:
            head = "".join(buf).strip()
            end = _matching_brace(body, i)
            if head.endswith(("=", "]", "->")):
                # array initializer or lambda body: part of the statement
                buf.append(body[i:end])
            else:
                yield Compound(head + body[i:end])
                buf = []
            i = end
            continue
        elif c == "}":
            i += 1
            continue
        buf.append(c)
        i += 1
    if rest := "".join(buf).strip():
        yield Compound(rest)


# =============================================================================
# Formatting
# =============================================================================

_FORMAT_SPEC = re.compile(
    r"%([-#+ 0,(]*)(\d+)?(?:\.(\d+))?(?:hh|h|ll|l|L)?([diuoxXfFeEgGcsSbBn%])"
)


def format_printf(fmt: str, args: Sequence[Any]) -> str:
    """Apply a Java/C format string (``%d``, ``%5.2f``, ``%-10s``, ``%n``...)."""
    remaining = iter(args)

    def replace(match: re.Match[str]) -> str:
        flags, width, precision, conv = match.groups()
        if conv == "%":
            return "%"
        if conv == "n":
            return "\n"
        try:
            value = next(remaining)
        except StopIteration:
            raise _RuntimeFault(
                "java.util.MissingFormatArgumentException: "
                f"Format specifier '{match.group(0)}'"
            ) from None

        width = width or ""
        if conv in "sSbBc":
            if conv in "bB":
                text = java_string(bool(value) if value is not None else False)
            elif conv == "c":
                text = value if isinstance(value, str) else chr(int(_number(value)))
            else:
                text = java_string(value)
            if precision:
                text = text[: int(precision)]
            if conv in "SB":
                text = text.upper()
            align = "<" if "-" in flags else ">"
            return format(text, f"{align}{width}")

        spec = ""
        if "-" in flags:
            spec += "<"
        if "+" in flags:
            spec += "+"
        elif " " in flags:
            spec += " "
        if "0" in flags and "-" not in flags:
            spec += "0"
        spec += width
        if "," in flags and conv in "diufF":
            spec += ","
        if conv in "diu":
            return format(int(_number(value)), spec + "d")
        if conv in "oxX":
            return format(int(_number(value)), spec + conv)
        number = float(_number(value))
        return format(number, f"{spec}.{precision or 6}{conv}")

    return _FORMAT_SPEC.sub(replace, fmt)


# =============================================================================
# Stdin
# =============================================================================


class _Stdin:
    """Token and line reader over the supplied stdin values (one per line)."""

    def __init__(self, values: Sequence[str]) -> None:
        text = "\n".join(values)
        self._lines: deque[str] = deque(text.split("\n")) if values else deque()
        self._current: str | None = None

    def snapshot(self) -> tuple[tuple[str, ...], str | None]:
        return tuple(self._lines), self._current

    def restore(self, state: tuple[tuple[str, ...], str | None]) -> None:
        lines, self._current = state
        self._lines = deque(lines)

    def token(self) -> str | None:
        while True:
            if self._current is None:
                if not self._lines:
                    return None
                self._current = self._lines.popleft()
            parts = self._current.split(None, 1)
            if parts:
                self._current = parts[1] if len(parts) > 1 else ""
                return parts[0]
            self._current = None

    def line(self) -> str | None:
        if self._current is not None:
            rest, self._current = self._current, None
            return rest
        if not self._lines:
            return None
        return self._lines.popleft()


# =============================================================================
# Expressions
# =============================================================================

_TOKEN = re.compile(
    r"""\s*(?:
        (?P<num>0[xX][0-9a-fA-F]+[lL]?
            |(?:\d+\.\d*|\.\d+)(?:[eE][+-]?\d+)?[fFdD]?
            |\d+[eE][+-]?\d+[fFdD]?
            |\d+[fFdDlL]?)
      | (?P<str>"(?:[^"\\\n]|\\.)*")
      | (?P<char>'(?:[^'\\\n]|\\.)+')
      | (?P<name>[A-Za-z_$][\w$]*)
      | (?P<op>\+\+|--|&&|\|\||==|!=|<=|>=|<<|>>|[-+*/%<>!()?:,.&|^~\[\]])
    )""",
    re.VERBOSE,
)

_PRIMITIVES = frozenset({"int", "long", "short", "byte", "double", "float", "char", "boolean"})

_STATIC_FIELDS: dict[tuple[str, str], Any] = {
    ("Integer", "MAX_VALUE"): 2**31 - 1,
    ("Integer", "MIN_VALUE"): -(2**31),
    ("Long", "MAX_VALUE"): 2**63 - 1,
    ("Long", "MIN_VALUE"): -(2**63),
    ("Math", "PI"): math.pi,
    ("Math", "E"): math.e,
}

_STATIC_CLASSES = frozenset({"Math", "Integer", "Long", "Double", "String", "Character"})
_INTEGER_TEXT = re.compile(r"[+-]?\d+")


def _tokenize(text: str) -> list[tuple[str, str]]:
    tokens: list[tuple[str, str]] = []
    pos = 0
    text = text.rstrip()
    while pos < len(text):
        match = _TOKEN.match(text, pos)
        if not match or match.end() == pos:
            raise _Unsupported(f"cannot tokenize {text[pos:pos + 10]!r}")
        kind = match.lastgroup or ""
        tokens.append((kind, match.group(kind)))
        pos = match.end()
    return tokens


def _parse_number(text: str) -> int | float:
    lowered = text.lower()
    if lowered.startswith("0x"):
        return int(lowered.rstrip("l"), 16)
    if lowered.endswith("l"):
        return int(lowered[:-1])
    if lowered.endswith(("f", "d")) or "." in lowered or "e" in lowered:
        return float(lowered.rstrip("fd"))
    return int(lowered)


class _Expression:
    """Recursive-descent evaluator.

    Every level takes ``live``: when False the tokens are consumed without
    evaluating, which gives ``&&``, ``||`` and ``?:`` their short-circuit
    behavior.
    """

    def __init__(self, text: str, machine: _Machine) -> None:
        self._tokens = _tokenize(text)
        self._pos = 0
        self._machine = machine

    # -- token helpers -------------------------------------------------------

    def _peek(self, offset: int = 0) -> tuple[str, str] | None:
        index = self._pos + offset
        return self._tokens[index] if index < len(self._tokens) else None

    def _accept(self, *ops: str) -> str | None:
        token = self._peek()
        if token and token[0] == "op" and token[1] in ops:
            self._pos += 1
            return token[1]
        return None

    def _expect(self, op: str) -> None:
        if not self._accept(op):
            raise _Unsupported(f"expected {op!r}")

    def _name(self) -> str:
        token = self._peek()
        if not token or token[0] != "name":
            raise _Unsupported("expected a name")
        self._pos += 1
        return token[1]

    # -- entry points --------------------------------------------------------

    def value(self) -> Any:
        result = self._ternary(True)
        if self._pos != len(self._tokens):
            raise _Unsupported(f"unexpected {self._peek()}")
        return result

    def values(self) -> list[Any]:
        if not self._tokens:
            return []
        results = [self._ternary(True)]
        while self._accept(","):
            results.append(self._ternary(True))
        if self._pos != len(self._tokens):
            raise _Unsupported(f"unexpected {self._peek()}")
        return results

    # -- grammar -------------------------------------------------------------

    def _ternary(self, live: bool) -> Any:
        condition = self._or(live)
        if not self._accept("?"):
            return condition
        take = live and _truth(condition)
        first = self._ternary(take)
        self._expect(":")
        second = self._ternary(live and not take)
        if not live:
            return None
        return first if take else second

    def _or(self, live: bool) -> Any:
        left = self._and(live)
        while self._accept("||"):
            done = live and _truth(left)
            right = self._and(live and not done)
            if live:
                left = True if done else _truth(right)
        return left

    def _and(self, live: bool) -> Any:
        left = self._equality(live)
        while self._accept("&&"):
            done = live and not _truth(left)
            right = self._equality(live and not done)
            if live:
                left = False if done else _truth(right)
        return left

    def _left_assoc(self, operand: Any, ops: tuple[str, ...], live: bool) -> Any:
        left = operand(live)
        while op := self._accept(*ops):
            right = operand(live)
            if live:
                left = _binary(op, left, right)
        return left

    def _equality(self, live: bool) -> Any:
        return self._left_assoc(self._relational, ("==", "!="), live)

    def _relational(self, live: bool) -> Any:
        return self._left_assoc(self._additive, ("<", ">", "<=", ">="), live)

    def _additive(self, live: bool) -> Any:
        return self._left_assoc(self._multiplicative, ("+", "-"), live)

    def _multiplicative(self, live: bool) -> Any:
        return self._left_assoc(self._unary, ("*", "/", "%"), live)

    def _unary(self, live: bool) -> Any:
        if self._accept("-"):
            value = self._unary(live)
            return -_number(value) if live else None
        if self._accept("+"):
            value = self._unary(live)
            return _number(value) if live else None
        if self._accept("!"):
            value = self._unary(live)
            return (not _truth(value)) if live else None
        if self._accept("++", "--"):
            raise _Unsupported("increment inside expression")

        cast = self._cast()
        if cast:
            value = self._unary(live)
            return self._apply_cast(cast, value) if live else None
        return self._postfix(live)

    def _cast(self) -> str | None:
        opening, name, closing = self._peek(), self._peek(1), self._peek(2)
        if (
            opening == ("op", "(")
            and name is not None
            and name[0] == "name"
            and name[1] in _PRIMITIVES | {"String"}
            and closing == ("op", ")")
        ):
            self._pos += 3
            return name[1]
        return None

    @staticmethod
    def _apply_cast(type_name: str, value: Any) -> Any:
        if type_name == "char" and isinstance(value, float):
            value = int(value)
        return coerce(type_name, value)

    def _postfix(self, live: bool) -> Any:
        value = self._primary(live)
        while self._accept("."):
            method = self._name()
            self._expect("(")
            args = self._arguments(live)
            if live:
                value = self._machine.call_method(value, method, args)
        if self._accept("++", "--"):
            raise _Unsupported("increment inside expression")
        if self._accept("["):
            raise _Unsupported("array access")
        return value

    def _arguments(self, live: bool) -> list[Any]:
        args: list[Any] = []
        if self._accept(")"):
            return args
        args.append(self._ternary(live))
        while self._accept(","):
            args.append(self._ternary(live))
        self._expect(")")
        return args

    def _primary(self, live: bool) -> Any:
        token = self._peek()
        if token is None:
            raise _Unsupported("unexpected end of expression")
        kind, text = token
        self._pos += 1

        if kind == "num":
            return _parse_number(text)
        if kind == "str":
            return _unescape(text[1:-1])
        if kind == "char":
            value = _unescape(text[1:-1])
            if len(value) != 1:
                raise _Unsupported("bad char literal")
            return JavaChar(value)
        if kind == "op" and text == "(":
            value = self._ternary(live)
            self._expect(")")
            return value
        if kind != "name":
            raise _Unsupported(f"unexpected {text!r}")

        if text in ("true", "false"):
            return text == "true"
        if text == "null":
            return None
        if text in _STATIC_CLASSES and self._peek() == ("op", "."):
            self._pos += 1
            member = self._name()
            if self._accept("("):
                args = self._arguments(live)
                return self._machine.call_static(text, member, args) if live else None
            if (text, member) in _STATIC_FIELDS:
                return _STATIC_FIELDS[(text, member)]
            raise _Unsupported(f"{text}.{member}")
        if self._peek() == ("op", "("):
            raise _Unsupported(f"call to {text}")
        return self._machine.read(text) if live else None


# =============================================================================
# Statements
# =============================================================================

_TYPE = (
    r"(?:unsigned\s+|signed\s+)?"
    r"(?:long\s+long(?:\s+int)?|long\s+int|short\s+int|int|long|short|byte"
    r"|double|float|char|boolean|bool|String|unsigned)"
)
_DECLARATION = re.compile(rf"^(?:(?:final|const|static)\s+)*(?P<type>{_TYPE})\s+(?P<rest>.+)$", re.S)
_DECLARATOR = re.compile(r"^(?P<name>[A-Za-z_$][\w$]*)\s*(?:=\s*(?P<value>.+))?$", re.S)
_SCANNER_DECL = re.compile(
    r"^(?:java\.util\.)?Scanner\s+(\w+)\s*=\s*new\s+(?:java\.util\.)?Scanner\s*\(\s*System\s*\.\s*in\s*\)$"
)
_ASSIGNMENT = re.compile(r"^(?P<name>[A-Za-z_$][\w$]*)\s*(?P<op>[-+*/%]?=)(?!=)\s*(?P<value>.+)$", re.S)
_INCREMENT = re.compile(r"^(?:(?P<pre>\+\+|--)\s*(?P<a>\w+)|(?P<b>\w+)\s*(?P<post>\+\+|--))$")
_JAVA_PRINT = re.compile(
    r"^System\s*\.\s*out\s*\.\s*(?P<method>println|print|printf|format)\s*\((?P<args>.*)\)$", re.S
)
_C_PRINTF = re.compile(r"^printf\s*\((?P<args>.*)\)$", re.S)
_C_PUTS = re.compile(r"^puts\s*\((?P<args>.*)\)$", re.S)
_C_SCANF = re.compile(r'^scanf\s*\(\s*(?P<fmt>"(?:[^"\\]|\\.)*")\s*(?P<targets>(?:,\s*&?\s*\w+\s*)*)\)$')
_SCANF_SPEC = re.compile(r"%(?:\d+)?(?:hh|h|ll|l|L)?([diufFeEgGsc])")
_RETURN = re.compile(r"^return\b\s*(?P<value>.*)$", re.S)
_SYSTEM_EXIT = re.compile(r"^System\s*\.\s*exit\s*\((?P<value>.*)\)$", re.S)
_CONTROL = re.compile(
    r"^(?:if|else|for|while|do|switch|try|catch|finally|case|default|break|continue"
    r"|synchronized|throw|goto)\b"
)
_SCANF_CALL = re.compile(r"\bscanf\s*\(")


def assigns(text: str, name: str) -> bool:
    """Whether ``text`` may write ``name`` (assignment, ``++``/``--`` or ``&name``)."""
    name = re.escape(name)
    pattern = (
        rf"(?<![\w$.]){name}\s*(?:(?:<<|>>>?|[-+*/%&|^])?=(?!=)|\+\+|--)"
        rf"|(?:\+\+|--)\s*{name}(?![\w$])"
        rf"|(?<![&\w$)\]])&\s*{name}(?![\w$])"
    )
    return re.search(pattern, text) is not None


def _canonical_type(declared: str) -> str:
    words = declared.split()
    if "String" in words:
        return "String"
    if "long" in words:
        return "long"
    if "short" in words:
        return "short"
    if "bool" in words or "boolean" in words:
        return "boolean"
    for name in ("byte", "double", "float", "char"):
        if name in words:
            return name
    return "int"


@dataclass
class _Variable:
    type: str
    value: Any


class _Machine:
    """Execution state of one simulated run."""

    def __init__(self, dialect: Dialect, stdin: Sequence[str]) -> None:
        self.dialect = dialect
        self.variables: dict[str, _Variable] = {}
        self.output: list[str] = []
        self.stdin = _Stdin(stdin)
        self.executed = 0
        self.skipped = 0
        # variables whose value depends on skipped code
        self.unknown: set[str] = set()
        self.input_unknown = False

    # -- variables -----------------------------------------------------------

    def read(self, name: str) -> Any:
        if name not in self.variables:
            raise _Unsupported(f"unknown variable {name}")
        if name in self.unknown:
            raise _Unsupported(f"{name} depends on skipped code")
        return self.variables[name].value

    def _store(self, name: str, value: Any) -> None:
        variable = self.variables.get(name)
        if variable is None or variable.type == "Scanner":
            raise _Unsupported(f"cannot assign {name}")
        variable.value = coerce(variable.type, value)
        self.unknown.discard(name)

    def _skip(self, statement: str, reason: str) -> None:
        """Count a statement that was not run and forget what it may have changed."""
        self.skipped += 1
        text = mask(statement)
        for name, variable in self.variables.items():
            if variable.type == "Scanner":
                if re.search(rf"(?<![\w$.]){re.escape(name)}\s*\.", text):
                    self.input_unknown = True
            elif assigns(text, name):
                self.unknown.add(name)
        if _SCANF_CALL.search(text):
            self.input_unknown = True
        log.debug("statement_skipped", statement=statement[:80], reason=reason)

    # -- calls ---------------------------------------------------------------

    def call_static(self, owner: str, name: str, args: list[Any]) -> Any:
        nums = [_number(a) for a in args] if owner == "Math" else []
        if owner == "Math":
            if name == "abs" and len(nums) == 1:
                return abs(nums[0])
            if name in ("max", "min") and len(nums) == 2:
                result = max(nums) if name == "max" else min(nums)
                return float(result) if any(isinstance(n, float) for n in nums) else result
            if name == "pow" and len(nums) == 2:
                try:
                    return math.pow(nums[0], nums[1])
                except OverflowError:
                    return math.inf
                except ValueError:
                    return math.nan
            if name == "sqrt" and len(nums) == 1:
                return math.sqrt(nums[0]) if nums[0] >= 0 else math.nan
            if name in ("floor", "ceil") and len(nums) == 1:
                return float(math.floor(nums[0]) if name == "floor" else math.ceil(nums[0]))
            if name == "round" and len(nums) == 1:
                return math.floor(nums[0] + 0.5)
        if (owner, name) in (("Integer", "parseInt"), ("Long", "parseLong")) and len(args) == 1:
            text = java_string(args[0])
            if not _INTEGER_TEXT.fullmatch(text):
                raise _RuntimeFault(f'java.lang.NumberFormatException: For input string: "{text}"')
            return int(text)
        if owner == "Double" and name == "parseDouble" and len(args) == 1:
            try:
                return float(java_string(args[0]))
            except ValueError:
                raise _RuntimeFault(
                    f'java.lang.NumberFormatException: For input string: "{args[0]}"'
                ) from None
        if (owner == "String" and name == "valueOf") or (
            owner in ("Integer", "Long", "Double") and name == "toString"
        ):
            if len(args) == 1:
                return java_string(args[0])
        if owner == "String" and name == "format" and args:
            return format_printf(java_string(args[0]), args[1:])
        raise _Unsupported(f"{owner}.{name}")

    def call_method(self, target: Any, name: str, args: list[Any]) -> Any:
        if isinstance(target, _ScannerRef):
            return self._scanner_read(name, args)
        if target is None:
            raise _RuntimeFault("java.lang.NullPointerException")
        if not _is_text(target):
            raise _Unsupported(f"method {name} on {type(target).__name__}")

        if name == "length" and not args:
            return len(target)
        if name == "charAt" and len(args) == 1:
            index = int(_number(args[0]))
            if not 0 <= index < len(target):
                raise _RuntimeFault(
                    f"java.lang.StringIndexOutOfBoundsException: String index out of range: {index}"
                )
            return JavaChar(target[index])
        if name == "toUpperCase" and not args:
            return target.upper()
        if name == "toLowerCase" and not args:
            return target.lower()
        if name == "trim" and not args:
            return target.strip(" \t\n\r")
        if name == "isEmpty" and not args:
            return not target
        if name == "equals" and len(args) == 1:
            return _is_text(args[0]) and target == args[0]
        if name == "equalsIgnoreCase" and len(args) == 1:
            return _is_text(args[0]) and target.lower() == args[0].lower()
        if name == "contains" and len(args) == 1:
            return java_string(args[0]) in target
        if name in ("startsWith", "endsWith") and len(args) == 1:
            check = target.startswith if name == "startsWith" else target.endswith
            return check(java_string(args[0]))
        if name == "indexOf" and len(args) == 1:
            return target.find(java_string(args[0]))
        if name == "concat" and len(args) == 1:
            return target + java_string(args[0])
        if name == "substring" and args and len(args) <= 2:
            begin = int(_number(args[0]))
            end = int(_number(args[1])) if len(args) == 2 else len(target)
            if not 0 <= begin <= end <= len(target):
                raise _RuntimeFault(
                    f"java.lang.StringIndexOutOfBoundsException: begin {begin}, end {end}, "
                    f"length {len(target)}"
                )
            return target[begin:end]
        raise _Unsupported(f"String.{name}")

    def _scanner_read(self, name: str, args: list[Any]) -> Any:
        if args:
            raise _Unsupported(f"Scanner.{name} with arguments")
        if self.input_unknown and name != "close":
            raise _Unsupported("input position depends on skipped code")
        if name == "close":
            return None
        if name == "nextLine":
            line = self.stdin.line()
            if line is None:
                raise _RuntimeFault("java.util.NoSuchElementException: No line found")
            return line

        token = self.stdin.token()
        if token is None:
            raise _RuntimeFault("java.util.NoSuchElementException")
        if name == "next":
            return token
        if name in ("nextInt", "nextLong", "nextShort", "nextByte"):
            if not _INTEGER_TEXT.fullmatch(token):
                raise _RuntimeFault("java.util.InputMismatchException")
            return int(token)
        if name in ("nextDouble", "nextFloat"):
            try:
                return float(token)
            except ValueError:
                raise _RuntimeFault("java.util.InputMismatchException") from None
        if name == "nextBoolean":
            if token.lower() not in ("true", "false"):
                raise _RuntimeFault("java.util.InputMismatchException")
            return token.lower() == "true"
        raise _Unsupported(f"Scanner.{name}")

    # -- statements ----------------------------------------------------------

    def execute_block(self, body: str) -> None:
        for statement in statements(body):
            if isinstance(statement, Compound):
                self._skip(statement, "compound statement")
                continue
            saved = self.stdin.snapshot()
            try:
                self._execute(statement)
            except (_Unsupported, ArithmeticError, ValueError, TypeError, IndexError) as e:
                self.stdin.restore(saved)
                self._skip(statement, str(e))
            else:
                self.executed += 1

    def _execute(self, statement: str) -> None:
        if _CONTROL.match(statement):
            raise _Unsupported("control flow")

        if match := _JAVA_PRINT.match(statement):
            self._print(match.group("method"), match.group("args"))
            return
        if match := _C_PRINTF.match(statement):
            self._print("printf", match.group("args"))
            return
        if match := _C_PUTS.match(statement):
            self.output.append(java_string(_Expression(match.group("args"), self).value()) + "\n")
            return
        if match := _C_SCANF.match(statement):
            self._scanf(match.group("fmt"), match.group("targets"))
            return
        if match := _SCANNER_DECL.match(statement):
            self.variables[match.group(1)] = _Variable("Scanner", _ScannerRef())
            return
        if match := _RETURN.match(statement):
            value = match.group("value").strip()
            code = 0
            if value and self.dialect == "c":
                code = int(_number(_Expression(value, self).value()))
            raise _ProgramExit(code)
        if match := _SYSTEM_EXIT.match(statement):
            raise _ProgramExit(int(_number(_Expression(match.group("value"), self).value())))
        if match := _DECLARATION.match(statement):
            self._declare(_canonical_type(match.group("type")), match.group("rest"))
            return
        if match := _INCREMENT.match(statement):
            name = match.group("a") or match.group("b")
            op = match.group("pre") or match.group("post")
            self._store(name, _binary("+" if op == "++" else "-", self.read(name), 1))
            return
        if match := _ASSIGNMENT.match(statement):
            name, op = match.group("name"), match.group("op")
            value = _Expression(match.group("value"), self).value()
            if op != "=":
                value = _binary(op[0], self.read(name), value)
            self._store(name, value)
            return

        # bare expression statement, e.g. sc.nextLine();
        _Expression(statement, self).value()

    def _declare(self, type_name: str, rest: str) -> None:
        for part in _split_top_level(rest):
            match = _DECLARATOR.match(part)
            if not match:
                raise _Unsupported(f"declarator {part!r}")
            raw = match.group("value")
            if raw is None:
                value = coerce(type_name, None if type_name == "String" else 0)
            else:
                value = coerce(type_name, _Expression(raw, self).value())
            # later declarators may read earlier ones
            self.variables[match.group("name")] = _Variable(type_name, value)
            self.unknown.discard(match.group("name"))

    def _print(self, method: str, args_text: str) -> None:
        args = _Expression(args_text, self).values()
        if method == "println":
            if len(args) > 1:
                raise _Unsupported("println with several arguments")
            self.output.append((java_string(args[0]) if args else "") + "\n")
        elif method == "print":
            if len(args) != 1:
                raise _Unsupported("print arity")
            self.output.append(java_string(args[0]))
        else:
            if not args or not _is_text(args[0]):
                raise _Unsupported("printf without format string")
            self.output.append(format_printf(args[0], args[1:]))

    def _scanf(self, fmt_literal: str, targets_text: str) -> None:
        specs = _SCANF_SPEC.findall(_unescape(fmt_literal[1:-1]))
        targets = [t.strip().lstrip("&").strip() for t in targets_text.split(",") if t.strip()]
        if len(specs) != len(targets):
            raise _Unsupported("scanf arity")
        if self.input_unknown:
            raise _Unsupported("input position depends on skipped code")
        for conv, name in zip(specs, targets, strict=True):
            if name not in self.variables:
                raise _Unsupported(f"unknown variable {name}")
            token = self.stdin.token()
            if token is None:
                return
            if conv in "diu":
                if not _INTEGER_TEXT.fullmatch(token):
                    return
                value: Any = int(token)
            elif conv in "fFeEgG":
                try:
                    value = float(token)
                except ValueError:
                    return
            elif conv == "c":
                value = JavaChar(token[0])
            else:
                value = token
            self._store(name, value)


# =============================================================================
# Public API
# =============================================================================

_CLASS = re.compile(r"\bclass\s+\w+")
_JAVA_MAIN = re.compile(
    r"\b(?:public\s+static|static\s+public)\s+void\s+main\s*\(\s*(?:final\s+)?"
    r"String\s*(?:\[\s*\]\s*\w+|\w+\s*\[\s*\]|\.\.\.\s*\w+)\s*\)"
)
_C_MAIN = re.compile(r"\b(?:int|void)\s+main\s*\([^)]*\)")
_C_MARKER = re.compile(r"^\s*#\s*include\b", re.MULTILINE)
_JAVA_PRINT_LINE = re.compile(r"^\s*System\s*\.\s*out\s*\.\s*print(?:ln|f)?\s*\(.*\)\s*$")
_C_PRINT_LINE = re.compile(r"^\s*(?:printf|puts)\s*\(.*\)\s*$")


def detect_dialect(code: str) -> Dialect:
    """Return "c" for C sources (``#include`` or a bare ``int main``), else "java"."""
    masked = mask(code)
    if _CLASS.search(masked):
        return "java"
    if _C_MARKER.search(code) or _C_MAIN.search(masked):
        return "c"
    return "java"


@dataclass(frozen=True)
class SimulationOutcome:
    """What the interpreter produced for one run."""

    output: str
    exit_code: int
    executed: int = 0
    skipped: int = 0
    structural_error: bool = False


class MiniInterpreter:
    """Heuristic local runner for learner programs.

    Example:
        outcome = MiniInterpreter().run(source, stdin=["5"])
        print(outcome.output)
    """

    def check_structure(self, code: str, dialect: Dialect | None = None) -> str | None:
        """Return a compiler-style error message, or None when the shape looks valid."""
        dialect = dialect or detect_dialect(code)
        masked = mask(code)
        file_name = _FILE_NAMES[dialect]

        if dialect == "java":
            if not _CLASS.search(masked):
                return NO_CLASS_MESSAGE
            if not _JAVA_MAIN.search(masked):
                return NO_MAIN_MESSAGE
        elif not _C_MAIN.search(masked):
            return f"{file_name}: error: undefined reference to 'main'"

        print_line = _JAVA_PRINT_LINE if dialect == "java" else _C_PRINT_LINE
        for number, line in enumerate(masked.split("\n"), start=1):
            if print_line.match(line):
                if dialect == "java":
                    return f"{file_name}:{number}: error: ';' expected"
                return f"{file_name}:{number}: error: expected ';'"

        if masked.count("{") > masked.count("}"):
            last = code.count("\n") + 1
            if dialect == "java":
                return f"{file_name}:{last}: error: reached end of file while parsing"
            return f"{file_name}:{last}: error: expected declaration or statement at end of input"
        return None

    def run(self, source: SourceDocument | str, stdin: Sequence[str] = ()) -> SimulationOutcome:
        """Check and execute a program.

        Args:
            source: Program text.
            stdin: Input values, one per line.

        Returns:
            The simulated output and exit code. Never raises for bad programs.
        """
        code = source.text if isinstance(source, SourceDocument) else source
        dialect = detect_dialect(code)

        error = self.check_structure(code, dialect)
        if error is not None:
            return SimulationOutcome(output=error, exit_code=1, structural_error=True)

        machine = _Machine(dialect, stdin)
        exit_code = 0
        body = self._main_body(code, dialect)
        try:
            if body is not None:
                machine.execute_block(body)
        except _RuntimeFault as fault:
            prefix = 'Exception in thread "main" ' if dialect == "java" else "Runtime Error: "
            machine.output.append(prefix + str(fault))
            exit_code = 1
        except _ProgramExit as exit_:
            exit_code = exit_.code

        printed = "".join(machine.output).rstrip("\n")
        if printed and machine.skipped:
            output = f"{printed}\n{PARTIAL_OUTPUT_NOTE}"
        elif printed:
            output = printed
        elif machine.skipped:
            output = SIMULATED_OUTPUT_MESSAGE
        else:
            output = NO_OUTPUT_MESSAGE

        log.debug(
            "local_simulation_finished",
            dialect=dialect,
            executed=machine.executed,
            skipped=machine.skipped,
            exit_code=exit_code,
        )
        return SimulationOutcome(
            output=output,
            exit_code=exit_code,
            executed=machine.executed,
            skipped=machine.skipped,
        )

    @staticmethod
    def _main_body(code: str, dialect: Dialect) -> str | None:
        commented = mask(code, literals=False)
        masked = mask(code)
        match = (_JAVA_MAIN if dialect == "java" else _C_MAIN).search(masked)
        if not match:
            return None
        start = masked.find("{", match.end())
        if start == -1:
            return None
        end = _matching_brace(commented, start)
        return commented[start + 1 : end - 1]
