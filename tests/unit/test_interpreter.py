"""Tests for the local Java/C interpreter."""

import pytest

from ai_code_tutor.core.interpreter import (
    NO_CLASS_MESSAGE,
    NO_MAIN_MESSAGE,
    NO_OUTPUT_MESSAGE,
    PARTIAL_OUTPUT_NOTE,
    SIMULATED_OUTPUT_MESSAGE,
    MiniInterpreter,
    assigns,
    detect_dialect,
    format_printf,
    java_string,
)


def java_main(body: str) -> str:
    """Wrap statements in a Java Main class."""
    return (
        "public class Main {\n"
        "    public static void main(String[] args) {\n"
        f"{body}\n"
        "    }\n"
        "}\n"
    )


@pytest.fixture
def interpreter() -> MiniInterpreter:
    return MiniInterpreter()


class TestStructure:
    """Test structural checks."""

    def test_valid_program(self, interpreter: MiniInterpreter, hello_world: str) -> None:
        """Test a correct program passes the checks."""
        assert interpreter.check_structure(hello_world) is None

    def test_missing_class(self, interpreter: MiniInterpreter) -> None:
        """Test code without a class."""
        outcome = interpreter.run("int x = 1;")
        assert outcome.output == NO_CLASS_MESSAGE
        assert outcome.exit_code == 1
        assert outcome.structural_error is True

    def test_missing_main(self, interpreter: MiniInterpreter) -> None:
        """Test a class without a main method."""
        outcome = interpreter.run("public class Main { }")
        assert outcome.output == NO_MAIN_MESSAGE
        assert outcome.exit_code == 1

    def test_print_without_semicolon(
        self, interpreter: MiniInterpreter, missing_semicolon_program: str
    ) -> None:
        """Test the missing semicolon is reported javac style."""
        outcome = interpreter.run(missing_semicolon_program)
        assert outcome.output == "Main.java:4: error: ';' expected"
        assert outcome.exit_code == 1

    def test_unclosed_brace(self, interpreter: MiniInterpreter) -> None:
        """Test an unbalanced brace at end of file."""
        code = (
            "public class Main {\n"
            "    public static void main(String[] args) {\n"
            "        int x = 1;\n"
            "    }"
        )
        outcome = interpreter.run(code)
        assert outcome.output == "Main.java:4: error: reached end of file while parsing"

    def test_c_missing_main(self, interpreter: MiniInterpreter) -> None:
        """Test a C file without main."""
        outcome = interpreter.run("#include <stdio.h>\nint helper() { return 1; }")
        assert outcome.output == "main.c: error: undefined reference to 'main'"


class TestExecution:
    """Test statement execution."""

    def test_hello_world(self, interpreter: MiniInterpreter, hello_world: str) -> None:
        """Test a single println."""
        outcome = interpreter.run(hello_world)
        assert outcome.output == "Hello, World!"
        assert outcome.exit_code == 0
        assert outcome.executed == 1
        assert outcome.skipped == 0

    def test_scanner_input(self, interpreter: MiniInterpreter) -> None:
        """Test Scanner reads consume stdin values in order."""
        code = "import java.util.Scanner;\n" + java_main(
            "        Scanner sc = new Scanner(System.in);\n"
            "        int a = sc.nextInt();\n"
            "        int b = sc.nextInt();\n"
            '        System.out.println("Sum: " + (a + b));'
        )
        outcome = interpreter.run(code, stdin=["3", "4"])
        assert outcome.output == "Sum: 7"
        assert outcome.exit_code == 0

    def test_missing_input_throws(self, interpreter: MiniInterpreter) -> None:
        """Test reading past the end of stdin."""
        code = java_main(
            "        Scanner sc = new Scanner(System.in);\n"
            "        int a = sc.nextInt();"
        )
        outcome = interpreter.run(code)
        assert outcome.output == 'Exception in thread "main" java.util.NoSuchElementException'
        assert outcome.exit_code == 1

    def test_integer_division_by_zero(self, interpreter: MiniInterpreter) -> None:
        """Test integer division by zero raises ArithmeticException."""
        code = java_main(
            "        int a = 5;\n"
            "        int b = 0;\n"
            '        System.out.println("before");\n'
            "        System.out.println(a / b);"
        )
        outcome = interpreter.run(code)
        assert outcome.output == (
            'before\nException in thread "main" java.lang.ArithmeticException: / by zero'
        )
        assert outcome.exit_code == 1

    def test_integer_wraparound(self, interpreter: MiniInterpreter) -> None:
        """Test int arithmetic wraps at 32 bits."""
        code = java_main(
            "        int big = 2147483647;\n"
            "        big++;\n"
            "        System.out.println(big);"
        )
        assert interpreter.run(code).output == "-2147483648"

    def test_integer_division_truncates(self, interpreter: MiniInterpreter) -> None:
        """Test int / int before widening to double."""
        code = java_main("        double d = 10 / 4;\n        System.out.println(d);")
        assert interpreter.run(code).output == "2.0"

    def test_printf(self, interpreter: MiniInterpreter) -> None:
        """Test formatted output."""
        code = java_main('        System.out.printf("%.2f%n", 3.14159);')
        assert interpreter.run(code).output == "3.14"

    def test_loops_are_skipped(self, interpreter: MiniInterpreter) -> None:
        """Test control flow is skipped and output is marked simulated."""
        code = java_main(
            "        for (int i = 0; i < 3; i++) {\n"
            "            System.out.println(i);\n"
            "        }"
        )
        outcome = interpreter.run(code)
        assert outcome.output == SIMULATED_OUTPUT_MESSAGE
        assert outcome.skipped == 1
        assert outcome.exit_code == 0

    def test_loop_accumulator_not_printed_stale(self, interpreter: MiniInterpreter) -> None:
        """Test a value built up inside a skipped loop is never printed."""
        code = java_main(
            "        int sum = 0;\n"
            "        for (int i = 1; i <= 3; i++) {\n"
            "            sum += i;\n"
            "        }\n"
            '        System.out.println("Sum: " + sum);\n'
            '        System.out.println("done");'
        )
        outcome = interpreter.run(code)
        assert outcome.output == f"done\n{PARTIAL_OUTPUT_NOTE}"
        assert "Sum: 0" not in outcome.output
        assert outcome.skipped == 2
        assert outcome.executed == 2

    def test_variable_reassigned_in_if(self, interpreter: MiniInterpreter) -> None:
        """Test a variable assigned inside a skipped conditional becomes unknown."""
        code = java_main(
            "        int x = 10;\n"
            "        if (x > 5) {\n"
            "            x = 1;\n"
            "        }\n"
            "        System.out.println(x);"
        )
        outcome = interpreter.run(code)
        assert outcome.output == SIMULATED_OUTPUT_MESSAGE
        assert outcome.exit_code == 0

    def test_untouched_variables_still_known(self, interpreter: MiniInterpreter) -> None:
        """Test variables the skipped block never writes keep their values."""
        code = java_main(
            "        int x = 10;\n"
            "        int y = 4;\n"
            "        while (x > 0) {\n"
            "            x--;\n"
            "        }\n"
            "        System.out.println(y);"
        )
        assert interpreter.run(code).output == f"4\n{PARTIAL_OUTPUT_NOTE}"

    def test_plain_assignment_makes_value_known(self, interpreter: MiniInterpreter) -> None:
        """Test assigning a fresh value after a skipped block restores the variable."""
        code = java_main(
            "        int x = 10;\n"
            "        if (x > 5) {\n"
            "            x = 1;\n"
            "        }\n"
            "        x = 3;\n"
            "        System.out.println(x);"
        )
        assert interpreter.run(code).output == f"3\n{PARTIAL_OUTPUT_NOTE}"

    def test_input_read_in_loop_stops_later_reads(self, interpreter: MiniInterpreter) -> None:
        """Test stdin reads inside a skipped block leave the input position unknown."""
        code = java_main(
            "        Scanner sc = new Scanner(System.in);\n"
            "        for (int i = 0; i < 2; i++) {\n"
            "            sc.nextInt();\n"
            "        }\n"
            "        int last = sc.nextInt();\n"
            "        System.out.println(last);"
        )
        outcome = interpreter.run(code, stdin=["1", "2", "3"])
        assert outcome.output == SIMULATED_OUTPUT_MESSAGE
        assert outcome.skipped == 3

    def test_empty_main(self, interpreter: MiniInterpreter) -> None:
        """Test a program that does nothing."""
        assert interpreter.run(java_main("")).output == NO_OUTPUT_MESSAGE

    def test_system_exit(self, interpreter: MiniInterpreter) -> None:
        """Test System.exit stops the program with its status."""
        code = java_main(
            '        System.out.println("bye");\n'
            "        System.exit(2);\n"
            '        System.out.println("unreachable");'
        )
        outcome = interpreter.run(code)
        assert outcome.output == "bye"
        assert outcome.exit_code == 2

    def test_c_program(self, interpreter: MiniInterpreter) -> None:
        """Test scanf and printf in a C program."""
        code = (
            "#include <stdio.h>\n"
            "int main() {\n"
            "    int n;\n"
            '    scanf("%d", &n);\n'
            '    printf("%d\\n", n * 2);\n'
            "    return 0;\n"
            "}\n"
        )
        outcome = interpreter.run(code, stdin=["21"])
        assert outcome.output == "42"
        assert outcome.exit_code == 0


class TestHelpers:
    """Test value formatting helpers."""

    @pytest.mark.parametrize(
        ("value", "expected"),
        [
            (None, "null"),
            (True, "true"),
            (0.5, "0.5"),
            (1e7, "1.0E7"),
            (1.5e-5, "1.5E-5"),
            (float("inf"), "Infinity"),
            (42, "42"),
        ],
    )
    def test_java_string(self, value: object, expected: str) -> None:
        """Test String.valueOf rendering."""
        assert java_string(value) == expected

    def test_format_printf_width_and_alignment(self) -> None:
        """Test width and left alignment flags."""
        assert format_printf("%5d|%-3s|", [42, "a"]) == "   42|a  |"

    @pytest.mark.parametrize(
        ("code", "dialect"),
        [
            ("public class Main {}", "java"),
            ("#include <stdio.h>\nint main() {}", "c"),
            ("int main(void) { return 0; }", "c"),
            ("print('hi')", "java"),
        ],
    )
    def test_detect_dialect(self, code: str, dialect: str) -> None:
        """Test Java and C detection."""
        assert detect_dialect(code) == dialect

    @pytest.mark.parametrize(
        ("text", "expected"),
        [
            ("x = 1", True),
            ("x += i", True),
            ("x >>= 1", True),
            ("x++", True),
            ("--x", True),
            ('scanf("%d", &x)', True),
            ("if (x > 5) { x = 1; }", True),
            ("x == 1", False),
            ("x <= 5", False),
            ("max = x", False),
            ("a && x", False),
            ("obj.x = 1", False),
            ("xs = 2", False),
        ],
    )
    def test_assigns(self, text: str, expected: bool) -> None:
        """Test detection of writes to a variable."""
        assert assigns(text, "x") is expected
