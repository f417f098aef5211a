"""Catalog of bug signatures for learner Java programs.

Each rule is a plain ``PatternRule`` value: a matcher function plus the
category and severity every hit is reported with. Rules look at text only.
They know nothing about Java grammar and tolerate false positives, since
they exist to teach, not to verify.

Matchers are evaluated once per line through a ``ScanContext``. A matcher
may yield hits for lines other than the one it is evaluated at (the array
rules scan forward from an allocation site to the loop or access that
overruns it).
"""

from __future__ import annotations

import math
import re
from collections.abc import Callable, Iterator
from dataclasses import dataclass
from enum import StrEnum

from ai_code_tutor.models.diagnostic import Diagnostic, ErrorCategory, Severity

INT_MAX = 2**31 - 1

# (1-indexed line, message)
Hit = tuple[int, str]


class RuleScope(StrEnum):
    """How much text a rule reads besides its own line."""

    LINE = "line"
    CONTEXT = "context"
    DOCUMENT = "document"


@dataclass(frozen=True)
class ScanContext:
    """One line of a document under scan, with access to its surroundings."""

    lines: tuple[str, ...]
    index: int  # 0-indexed
    code: str

    @property
    def line(self) -> str:
        return self.lines[self.index]

    @property
    def line_number(self) -> int:
        return self.index + 1

    def peek(self, offset: int) -> str:
        """Return the line ``offset`` lines away, or "" past either end."""
        i = self.index + offset
        if 0 <= i < len(self.lines):
            return self.lines[i]
        return ""

    def following(self) -> Iterator[tuple[int, str]]:
        """Yield ``(line_number, text)`` for every line after this one."""
        for i in range(self.index + 1, len(self.lines)):
            yield i + 1, self.lines[i]

    def first_line_matching(self, pattern: re.Pattern[str]) -> int | None:
        """Return the 0-indexed position of the first matching line."""
        for i, text in enumerate(self.lines):
            if pattern.search(text):
                return i
        return None


Matcher = Callable[[ScanContext], Iterator[Hit]]


@dataclass(frozen=True)
class PatternRule:
    """A single bug signature."""

    name: str
    scope: RuleScope
    category: ErrorCategory
    severity: Severity
    matcher: Matcher

    def evaluate(self, ctx: ScanContext) -> list[Diagnostic]:
        return [
            Diagnostic(line=line, message=message, severity=self.severity, category=self.category)
            for line, message in self.matcher(ctx)
        ]


# =============================================================================
# Loops
# =============================================================================

_INFINITE_LOOP = re.compile(r"while\s*\(\s*true\s*\)|for\s*\(\s*;\s*;\s*\)")
_BREAK = re.compile(r"\bbreak\b")


def _infinite_loop(ctx: ScanContext) -> Iterator[Hit]:
    if not _INFINITE_LOOP.search(ctx.line):
        return
    rest = "\n".join(ctx.lines[ctx.index :])
    if not _BREAK.search(rest):
        yield (
            ctx.line_number,
            "Potential infinite loop detected. 'while(true)' or 'for(;;)' logic "
            "with no obvious break.",
        )


_LOOP_SEMICOLON = re.compile(r"\b(for|while)\s*\([^)]*\)\s*;")


def _loop_semicolon(ctx: ScanContext) -> Iterator[Hit]:
    match = _LOOP_SEMICOLON.search(ctx.line)
    if not match:
        return
    stripped = ctx.line.strip()
    # tail of a do/while
    if stripped.startswith(("do", "}")):
        return
    yield (
        ctx.line_number,
        f"Possible logical error: Semicolon after '{match.group(1)}' loop. "
        "This makes the loop body empty.",
    )


_LOOP_FROM_ONE = re.compile(r"for\s*\(\s*int\s+\w+\s*=\s*1\s*;")


def _loop_from_one(ctx: ScanContext) -> Iterator[Hit]:
    if _LOOP_FROM_ONE.search(ctx.line) and ".length" in ctx.line:
        yield (
            ctx.line_number,
            "Loop starts at index 1. Arrays in Java are 0-indexed. "
            "You might be skipping the first element.",
        )


_DIGIT_LOOP = re.compile(r"while\s*\(\s*\w+\s*>\s*9\s*\)")
_MOD_TEN = re.compile(r"%\s*10\b")


def _digit_loop(ctx: ScanContext) -> Iterator[Hit]:
    if _DIGIT_LOOP.search(ctx.line) and _MOD_TEN.search(ctx.code):
        yield (
            ctx.line_number,
            "Logical Error in Loop detected. 'while(n > 9)' will skip the last digit "
            "processing. Use 'while(n > 0)' or 'while(n != 0)'.",
        )


_BINARY_SEARCH = re.compile(r"while\s*\(\s*(\w+)\s*<\s*(\w+)\s*\)")
_HALVING = re.compile(r"/\s*2\b")


def _binary_search(ctx: ScanContext) -> Iterator[Hit]:
    match = _BINARY_SEARCH.search(ctx.line)
    if not match:
        return
    low, high = match.groups()
    starts_at_zero = re.search(rf"\b{re.escape(low)}\s*=\s*0\b", ctx.code)
    high_assigned = re.search(rf"\b{re.escape(high)}\s*=(?!=)", ctx.code)
    if starts_at_zero and high_assigned and _HALVING.search(ctx.code):
        yield (
            ctx.line_number,
            f"Binary Search Logic: 'while({low} < {high})' determines the loop. "
            f"Usually '{low} <= {high}' is required to check the last element.",
        )


_FACTORIAL_UPDATE = re.compile(r"fact\s*=\s*fact\s*\*\s*i\b|fact\s*\*=\s*i\b")
_FACTORIAL_LOOP = re.compile(r"for\s*\([^;]+;\s*i\s*<\s*n\b")


def _factorial_range(ctx: ScanContext) -> Iterator[Hit]:
    if not _FACTORIAL_LOOP.search(ctx.line) or not _FACTORIAL_UPDATE.search(ctx.code):
        return
    if ctx.first_line_matching(_FACTORIAL_LOOP) == ctx.index:
        yield (
            ctx.line_number,
            "Potential loop range error for Factorial. 'i < n' stops before 'n'. "
            "Usually Factorial includes 'n' (i <= n).",
        )


_SORTED_FLAG = re.compile(r"if\s*\(.*\)\s*\{?\s*(\w+)\s*=\s*true\b")


def _sorted_flag(ctx: ScanContext) -> Iterator[Hit]:
    match = _SORTED_FLAG.search(ctx.line)
    if not match:
        return
    reset = re.compile(rf"\b{re.escape(match.group(1))}\s*=\s*false\b")
    window = ctx.line[match.end() :], ctx.peek(1), ctx.peek(2)
    if any(reset.search(text) for text in window):
        yield (
            ctx.line_number,
            "Flawed 'Is Sorted' Logic. Setting flag to true/false inside loop overwrites "
            "previous mismatch. Once 'false' is found, you should break or return.",
        )


# =============================================================================
# Arithmetic
# =============================================================================

_DIVISION_BY_ZERO = re.compile(r"(?<![/*])([/%])\s*0(?![.\w])")


def _division_by_zero(ctx: ScanContext) -> Iterator[Hit]:
    match = _DIVISION_BY_ZERO.search(ctx.line)
    if match:
        what = "Division" if match.group(1) == "/" else "Modulo"
        yield ctx.line_number, f"{what} by zero detected."


_PAREN_INT_DIVISION = re.compile(r"\([^)]+\)\s*/\s*\d+(?![.\dfFdD])")
_FLOATING_DECL = re.compile(r"\b(double|float)\b")
_FLOATING_CAST = re.compile(r"\(\s*(double|float)\s*\)")


def _integer_division(ctx: ScanContext) -> Iterator[Hit]:
    line = ctx.line
    if (
        _PAREN_INT_DIVISION.search(line)
        and _FLOATING_DECL.search(line)
        and not _FLOATING_CAST.search(line)
    ):
        yield (
            ctx.line_number,
            "Potential integer division loss. If operands are integers, the decimal part "
            "will be truncated before assigning to double/float. Use '2.0' or cast to double.",
        )


_EVEN_ODD = re.compile(r"/\s*2\s*==\s*0")


def _even_odd(ctx: ScanContext) -> Iterator[Hit]:
    if _EVEN_ODD.search(ctx.line):
        yield (
            ctx.line_number,
            "Logic Error: Using division '/ 2' checks if half the number is 0. "
            "To check for Even/Odd, use modulus '% 2'.",
        )


_SUM_PLUS_ONE = re.compile(r"\*\s*\(\s*\w+\s*\+\s*1\s*\)\s*/\s*2\s*\+\s*1")


def _sum_formula(ctx: ScanContext) -> Iterator[Hit]:
    if _SUM_PLUS_ONE.search(ctx.line):
        yield (
            ctx.line_number,
            "Formula Error. Sum of natural numbers is n*(n+1)/2. "
            "You added an extra '+ 1' at the end.",
        )


_BASE_EIGHT = re.compile(r"base\s*=\s*base\s*\*\s*8\b|base\s*\*=\s*8\b")
_MENTIONS_BINARY = re.compile(r"bin", re.IGNORECASE)


def _binary_base(ctx: ScanContext) -> Iterator[Hit]:
    if _BASE_EIGHT.search(ctx.line) and _MENTIONS_BINARY.search(ctx.code):
        yield (
            ctx.line_number,
            "Binary Conversion Error. Input is Binary (Base 2) but you are multiplying "
            "base by 8 (Octal). Use 'base * 2'.",
        )


_COUNT_FROM_ONE = re.compile(r"int\s+count\s*=\s*1\s*;")
_DIV_TEN = re.compile(r"/\s*10\b")


def _digit_count(ctx: ScanContext) -> Iterator[Hit]:
    if _COUNT_FROM_ONE.search(ctx.line) and _DIV_TEN.search(ctx.code):
        yield (
            ctx.line_number,
            "Initialization Error. 'count' starts at 1. If the loop counts digits, "
            "it might result in an extra count. Usually start from 0.",
        )


_ARMSTRONG_SQUARE = re.compile(r"sum\s*=\s*sum\s*\+\s*d\s*\*\s*d\s*;")


def _armstrong(ctx: ScanContext) -> Iterator[Hit]:
    if _ARMSTRONG_SQUARE.search(ctx.line):
        yield (
            ctx.line_number,
            "Logic Error: Armstrong number check usually requires cubing digits (d*d*d) "
            "for 3-digit numbers, or Math.pow().",
        )


_AVERAGE_IN_LOOP = re.compile(r"\+=\s*\w+\[\w+\]\s*/\s*\w+\.length")


def _precision_loss(ctx: ScanContext) -> Iterator[Hit]:
    if _AVERAGE_IN_LOOP.search(ctx.line) and "double" not in ctx.line:
        yield (
            ctx.line_number,
            "Precision Loss in Loop. Integer division 'a[i] / length' often results in 0. "
            "Sum all elements first, then divide the total sum by length.",
        )


_LITERAL_PRODUCT = re.compile(r"(?<![\w.])(\d+(?:\s*\*\s*\d+)+)(?![\w.])")
_LONG_OPERAND = re.compile(r"\b\d+[lL]\b|\(\s*long\s*\)")


def _integer_overflow(ctx: ScanContext) -> Iterator[Hit]:
    if _LONG_OPERAND.search(ctx.line):
        return
    for match in _LITERAL_PRODUCT.finditer(ctx.line):
        factors = [int(f) for f in re.split(r"\s*\*\s*", match.group(1))]
        product = math.prod(factors)
        if product > INT_MAX and all(f <= INT_MAX for f in factors):
            yield (
                ctx.line_number,
                f"Integer overflow. {match.group(1)} = {product} does not fit in a 32-bit "
                f"int (max {INT_MAX}). Use a long literal such as {factors[0]}L.",
            )
            return


# =============================================================================
# Assignment and references
# =============================================================================

_STRING_EQ_EXCLUDE = re.compile(r"\b(int|boolean|char|double|float|long|short|byte)\b")
_STRING_DECL = re.compile(r"\bString\s+\w+")
_EQ_AGAINST_LITERAL = re.compile(r'"\s*==\s*"|\w+\s*==\s*"|"\s*==\s*\w')


def _string_equality(ctx: ScanContext) -> Iterator[Hit]:
    line = ctx.line
    if '"' not in line or "==" not in line or _STRING_EQ_EXCLUDE.search(line):
        return
    if _STRING_DECL.search(ctx.code) or _EQ_AGAINST_LITERAL.search(line):
        yield (
            ctx.line_number,
            "String comparison using '=='. In Java, '==' compares object references. "
            "Use '.equals()' to compare string content.",
        )


_PLAIN_ASSIGN = re.compile(r"\b(\w+)\s*(?<![=!<>])=(?!=)\s*(\w+)\s*;")


def _swap_without_temp(ctx: ScanContext) -> Iterator[Hit]:
    match = _PLAIN_ASSIGN.search(ctx.line)
    if not match:
        return
    first, second = (re.escape(g) for g in match.groups())
    recompute = re.compile(
        rf"\b{second}\s*=\s*(?:{first}\s*\+\s*{second}|{second}\s*\+\s*{first})\b"
    )
    if recompute.search(ctx.peek(1)):
        a, b = match.groups()
        yield (
            ctx.line_number + 1,
            f"Fibonacci Logic Error. You updated '{a}' before calculating '{b}', "
            f"so '{b}' is using the WRONG '{a}'. Use a temporary variable.",
        )


_MATRIX_TRANSPOSED = re.compile(
    r"(\w+)\[(\w+)\]\[(\w+)\]\s*=\s*(\w+)\[\2\]\[\3\]\s*\+\s*(\w+)\[\3\]\[\2\]"
)


def _matrix_transpose(ctx: ScanContext) -> Iterator[Hit]:
    match = _MATRIX_TRANSPOSED.search(ctx.line)
    if match:
        _, i, j, a, b = match.groups()
        yield (
            ctx.line_number,
            f"Matrix Addition Logic Error. You are adding '{a}[{i}][{j}]' with "
            f"'{b}[{j}][{i}]'. This adds the Transpose of {b}, not {b} itself. "
            f"Use '{b}[{i}][{j}]'.",
        )


_ARRAY_ALIAS = re.compile(r"\b\w+\s*\[\s*\]\s+(\w+)\s*=\s*([A-Za-z_]\w*)\s*;")


def _shallow_copy(ctx: ScanContext) -> Iterator[Hit]:
    match = _ARRAY_ALIAS.search(ctx.line)
    if match and match.group(2) != "null":
        yield (
            ctx.line_number,
            "Shallow Copy Detected. Array assignment copies the reference, not the values. "
            "Modifying one will modify the other. Use 'val.clone()' or 'System.arraycopy'.",
        )


_THREAD_CLASS = re.compile(r"class\s+\w+\s+extends\s+Thread\b|implements\s+Runnable\b")
_STATIC_INT = re.compile(r"\bstatic\s+(?:volatile\s+)?int\s+(\w+)")


def _thread_race(ctx: ScanContext) -> Iterator[Hit]:
    if "++" not in ctx.line or not _THREAD_CLASS.search(ctx.code):
        return
    if "AtomicInteger" in ctx.code:
        return
    if "synchronized" in ctx.line or "synchronized" in ctx.peek(-1):
        return
    for name in _STATIC_INT.findall(ctx.code):
        escaped = re.escape(name)
        if re.search(rf"\b{escaped}\s*\+\+|\+\+\s*{escaped}\b", ctx.line):
            yield (
                ctx.line_number,
                "Potential Race Condition. Modifying shared static variable in a Thread "
                "without 'synchronized' or 'AtomicInteger' leads to unpredictable results.",
            )
            return


_MUTABLE_KEY = re.compile(r"Map\s*<\s*(StringBuilder|StringBuffer|int\[\]|ArrayList)")


def _mutable_map_key(ctx: ScanContext) -> Iterator[Hit]:
    match = _MUTABLE_KEY.search(ctx.line)
    if match:
        yield (
            ctx.line_number,
            f"Mutable Map Key Detected. Using mutable objects ({match.group(1)}) as Map keys "
            "is dangerous. If the object changes, the hash code changes, making retrieval "
            "impossible.",
        )


_RECURSE_WITH_MID = re.compile(r"return\s+\w+\s*\(.*,\s*mid\s*,.*\)")
_MID_MOVED = re.compile(r"mid\s*[+-]\s*1")


def _recursive_mid(ctx: ScanContext) -> Iterator[Hit]:
    if _RECURSE_WITH_MID.search(ctx.line) and not _MID_MOVED.search(ctx.line):
        yield (
            ctx.line_number,
            "Potential Infinite Recursion. Recursive call uses 'mid' directly. Usually "
            "Binary Search requires 'mid + 1' or 'mid - 1' to reduce the range.",
        )


_NULL_INIT = re.compile(r"\b[A-Z]\w*(?:<[^>]*>)?(?:\[\])?\s+(\w+)\s*=\s*null\s*;")


def _null_dereference(ctx: ScanContext) -> Iterator[Hit]:
    match = _NULL_INIT.search(ctx.line)
    if not match:
        return
    name = re.escape(match.group(1))
    use = re.compile(rf"\b{name}\s*\.\s*\w+")
    guarded = re.compile(rf"\b{name}\s*[!=]=\s*null\b")
    reassigned = re.compile(rf"\b{name}\s*=(?!=)")
    for number, text in ctx.following():
        if guarded.search(text):
            return
        if use.search(text):
            yield (
                number,
                f"Null Pointer Risk. '{match.group(1)}' was initialised to null and is "
                "used here before being assigned an object.",
            )
            return
        if reassigned.search(text):
            return


# =============================================================================
# Fixed-size arrays (forward scan from the allocation site)
# =============================================================================

_NEW_ARRAY = re.compile(r"\b(\w+)\s*=\s*new\s+\w+\s*\[\s*(\d+)\s*\]")
_ARRAY_LITERAL = re.compile(r"\b\w+\s*\[\s*\]\s*(\w+)\s*=\s*\{([^{}]*)\}")


@dataclass(frozen=True)
class _Allocation:
    name: str
    size: int
    end: int  # column just past the allocation on its own line


def _allocation(line: str) -> _Allocation | None:
    match = _NEW_ARRAY.search(line)
    if match:
        return _Allocation(match.group(1), int(match.group(2)), match.end())
    match = _ARRAY_LITERAL.search(line)
    if match:
        items = [item for item in match.group(2).split(",") if item.strip()]
        return _Allocation(match.group(1), len(items), match.end())
    return None


def _after_allocation(ctx: ScanContext, alloc: _Allocation) -> Iterator[tuple[int, str]]:
    yield ctx.line_number, ctx.line[alloc.end :]
    yield from ctx.following()


def _array_loop_bound(ctx: ScanContext) -> Iterator[Hit]:
    alloc = _allocation(ctx.line)
    if alloc is None:
        return
    bound = re.compile(
        rf"for\s*\([^;]*;\s*\w+\s*<=\s*(?:{alloc.size}|{re.escape(alloc.name)}\.length)\s*;"
    )
    for number, text in _after_allocation(ctx, alloc):
        if bound.search(text):
            yield (
                number,
                f"Potential off-by-one error. Loop runs up to index {alloc.size} (inclusive), "
                f"but array size is {alloc.size}. Last index is {alloc.size - 1}.",
            )


def _array_literal_index(ctx: ScanContext) -> Iterator[Hit]:
    alloc = _allocation(ctx.line)
    if alloc is None:
        return
    access = re.compile(rf"\b{re.escape(alloc.name)}\s*\[\s*(\d+)\s*\]")
    for number, text in _after_allocation(ctx, alloc):
        for match in access.finditer(text):
            index = int(match.group(1))
            if index >= alloc.size:
                yield (
                    number,
                    f"Array index out of bounds. Array size {alloc.size}, accessed index {index}.",
                )
                break


# =============================================================================
# Catalog
# =============================================================================

_W = Severity.WARNING
_E = Severity.ERROR
_C = ErrorCategory

PATTERN_RULES: tuple[PatternRule, ...] = (
    PatternRule("infinite-loop", RuleScope.CONTEXT, _C.INFINITE_RECURSION, _W, _infinite_loop),
    PatternRule("division-by-zero", RuleScope.LINE, _C.DIVISION_BY_ZERO, _E, _division_by_zero),
    PatternRule("string-equality", RuleScope.DOCUMENT, _C.STRING_EQUALITY, _W, _string_equality),
    PatternRule("integer-division", RuleScope.LINE, _C.OTHER_LOGICAL, _W, _integer_division),
    PatternRule("loop-semicolon", RuleScope.LINE, _C.OTHER_LOGICAL, _W, _loop_semicolon),
    PatternRule("loop-from-one", RuleScope.LINE, _C.OFF_BY_ONE, _W, _loop_from_one),
    PatternRule("even-odd-division", RuleScope.LINE, _C.OTHER_LOGICAL, _W, _even_odd),
    PatternRule("digit-loop", RuleScope.DOCUMENT, _C.OFF_BY_ONE, _W, _digit_loop),
    PatternRule("swap-without-temp", RuleScope.CONTEXT, _C.OTHER_LOGICAL, _E, _swap_without_temp),
    PatternRule("binary-search-bound", RuleScope.DOCUMENT, _C.OFF_BY_ONE, _W, _binary_search),
    PatternRule("matrix-transpose", RuleScope.LINE, _C.OTHER_LOGICAL, _E, _matrix_transpose),
    PatternRule("sum-formula", RuleScope.LINE, _C.OTHER_LOGICAL, _W, _sum_formula),
    PatternRule("binary-base", RuleScope.DOCUMENT, _C.OTHER_LOGICAL, _E, _binary_base),
    PatternRule("digit-count", RuleScope.DOCUMENT, _C.OFF_BY_ONE, _W, _digit_count),
    PatternRule("array-loop-bound", RuleScope.CONTEXT, _C.OFF_BY_ONE, _W, _array_loop_bound),
    PatternRule(
        "array-literal-index",
        RuleScope.CONTEXT,
        _C.ARRAY_INDEX_OUT_OF_BOUNDS,
        _E,
        _array_literal_index,
    ),
    PatternRule("factorial-range", RuleScope.DOCUMENT, _C.OFF_BY_ONE, _W, _factorial_range),
    PatternRule("armstrong-square", RuleScope.LINE, _C.OTHER_LOGICAL, _W, _armstrong),
    PatternRule("shallow-copy", RuleScope.LINE, _C.OTHER_LOGICAL, _W, _shallow_copy),
    PatternRule("sorted-flag", RuleScope.CONTEXT, _C.OTHER_LOGICAL, _W, _sorted_flag),
    PatternRule("thread-race", RuleScope.DOCUMENT, _C.OTHER_LOGICAL, _W, _thread_race),
    PatternRule("mutable-map-key", RuleScope.LINE, _C.OTHER_LOGICAL, _E, _mutable_map_key),
    PatternRule("recursive-mid", RuleScope.LINE, _C.INFINITE_RECURSION, _E, _recursive_mid),
    PatternRule("precision-loss", RuleScope.LINE, _C.OTHER_LOGICAL, _W, _precision_loss),
    PatternRule("integer-overflow", RuleScope.LINE, _C.INTEGER_OVERFLOW, _W, _integer_overflow),
    PatternRule("null-dereference", RuleScope.CONTEXT, _C.NULL_POINTER, _E, _null_dereference),
)
