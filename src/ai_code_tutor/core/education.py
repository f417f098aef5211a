"""Teaching material for each error category."""

from ai_code_tutor.models.diagnostic import ErrorCategory
from ai_code_tutor.models.explanation import EducationalContent

EDUCATION: dict[ErrorCategory, EducationalContent] = {
    ErrorCategory.INTEGER_OVERFLOW: EducationalContent(
        title="Integer Overflow Error",
        whats_wrong=(
            "A calculation produced a value larger than the variable type can hold, "
            "so it wrapped around to a wrong, possibly negative, number."
        ),
        why_it_matters="Results are silently wrong. Nothing crashes to warn you.",
        concept="Fixed-Width Integer Limits",
        prevention="Use 'long' (with an L suffix on literals) or check bounds before multiplying.",
        related_topics=("Binary Representation", "Two's Complement", "Data Types"),
    ),
    ErrorCategory.NULL_POINTER: EducationalContent(
        title="Null Pointer Dereference",
        whats_wrong="A method or field was used on a reference that is still null.",
        why_it_matters="The program stops with a NullPointerException at that line.",
        concept="References and Object Initialization",
        prevention="Assign a real object before use, or check 'if (x != null)' first.",
        related_topics=("Objects", "References", "Defensive Checks"),
    ),
    ErrorCategory.ARRAY_INDEX_OUT_OF_BOUNDS: EducationalContent(
        title="Array Index Out of Bounds",
        whats_wrong="An array is accessed outside its allocated size.",
        why_it_matters=(
            "Java throws ArrayIndexOutOfBoundsException. In C the same bug silently "
            "corrupts neighbouring memory."
        ),
        concept="Array Boundaries",
        prevention="Valid indexes run from 0 to length - 1. Loop with 'i < arr.length', not '<='.",
        related_topics=("Arrays", "0-based Indexing", "Buffer Overflow"),
    ),
    ErrorCategory.INFINITE_RECURSION: EducationalContent(
        title="Infinite Loop or Recursion",
        whats_wrong=(
            "A loop never reaches its exit condition, or a recursive method calls "
            "itself without ever hitting a base case."
        ),
        why_it_matters="The program hangs, or fills the call stack and dies with StackOverflowError.",
        concept="Termination and Base Cases",
        prevention="Make sure every loop changes its condition and every recursion shrinks toward a base case.",
        related_topics=("Recursion", "Loop Invariants", "Stack Frames"),
    ),
    ErrorCategory.OFF_BY_ONE: EducationalContent(
        title="Off-by-One Error",
        whats_wrong=(
            "A loop runs one time too many or too few, e.g. iterating 0 to N "
            "inclusive over an array of size N."
        ),
        why_it_matters="You either touch an element that does not exist or miss the last one.",
        concept="0-based Indexing",
        prevention="The standard loop is 'for (int i = 0; i < n; i++)'.",
        related_topics=("Loop Invariants", "Arrays"),
    ),
    ErrorCategory.DIVISION_BY_ZERO: EducationalContent(
        title="Division by Zero",
        whats_wrong="A number is divided by zero, which is undefined.",
        why_it_matters="Integer division by zero throws ArithmeticException and stops the program.",
        concept="Arithmetic Exceptions",
        prevention="Check 'if (divisor != 0)' before dividing.",
        related_topics=("Arithmetic Operations",),
    ),
    ErrorCategory.STRING_EQUALITY: EducationalContent(
        title="String Compared with ==",
        whats_wrong="'==' checks whether two references point to the same object, not whether the text is equal.",
        why_it_matters="Equal-looking strings can compare as different, so branches go the wrong way.",
        concept="Reference vs Value Equality",
        prevention="Compare text with 'a.equals(b)'.",
        related_topics=("Strings", "Object Equality"),
    ),
    ErrorCategory.OTHER_LOGICAL: EducationalContent(
        title="Logical Warning",
        whats_wrong="The code compiles but does something that is likely incorrect.",
        why_it_matters="May lead to unexpected behavior or wrong results.",
        concept="Program Logic",
        prevention="Trace the logic by hand with a small input.",
        related_topics=("Debugging", "Code Review"),
    ),
}


def educational_content(category: ErrorCategory) -> EducationalContent:
    """Return the teaching material for ``category``."""
    return EDUCATION.get(category, EDUCATION[ErrorCategory.OTHER_LOGICAL])
