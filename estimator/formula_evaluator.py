"""
Formula evaluator: parameter substitution followed by arithmetic.

A formula is plain arithmetic text that references parameters by name,
e.g. "length * width * 1.15". Every whole-word parameter name is replaced
by the textual form of its value, and the resulting numeric text is
evaluated by a small recursive-descent parser that only understands
numbers, + - * /, unary signs and parentheses.

The evaluator never raises for bad input. Unknown parameters, malformed
syntax and non-finite results all evaluate to 0.0 and are logged.
"""

import logging
import math
import re

logger = logging.getLogger(__name__)

# Any word not starting with a digit. Non-ASCII names surface as unresolved.
IDENTIFIER = re.compile(r"(?<!\w)[^\W\d]\w*")
NUMERIC_LITERAL = re.compile(r"^[+-]?(?:\d+\.?\d*|\.\d+)(?:[eE][+-]?\d+)?$")

_TOKEN = re.compile(
    r"\s*(?:(?P<number>(?:\d+\.?\d*|\.\d+)(?:[eE][+-]?\d+)?)|(?P<op>[-+*/()]))"
)


class FormulaSyntaxError(ValueError):
    """Raised by the parser when substituted text is not valid arithmetic."""


def parameter_text(value) -> str | None:
    """
    Textual form of a parameter value for substitution.
    Returns None if the value is not a finite number or numeric string.
    """
    if isinstance(value, bool) or value is None:
        return None
    if isinstance(value, (int, float)):
        try:
            if not math.isfinite(float(value)):
                return None
        except OverflowError:
            return None
        return repr(value)
    text = str(value).strip()
    if NUMERIC_LITERAL.match(text):
        return text
    return None


def _name_and_value(parameter):
    if isinstance(parameter, dict):
        return parameter.get("name"), parameter.get("value")
    return getattr(parameter, "name", None), getattr(parameter, "value", None)


def substitute_parameters(formula: str, parameters) -> tuple[str, list[str], list[str]]:
    """
    Replace every whole-word parameter reference in one pass.

    Returns (substituted_text, unresolved_names, non_numeric_names).
    First occurrence wins when a name is listed more than once.
    """
    values: dict[str, object] = {}
    for parameter in parameters or []:
        name, value = _name_and_value(parameter)
        if name and name not in values:
            values[name] = value

    unresolved: list[str] = []
    non_numeric: list[str] = []

    def _replace(match: re.Match) -> str:
        name = match.group(0)
        if name not in values:
            if name not in unresolved:
                unresolved.append(name)
            return name
        text = parameter_text(values[name])
        if text is None:
            if name not in non_numeric:
                non_numeric.append(name)
            return name
        return text

    return IDENTIFIER.sub(_replace, formula), unresolved, non_numeric


class _ArithmeticParser:
    """
    Recursive-descent evaluator over a token list.

        expr    := term (('+' | '-') term)*
        term    := factor (('*' | '/') factor)*
        factor  := ('+' | '-') factor | primary
        primary := NUMBER | '(' expr ')'
    """

    def __init__(self, text: str):
        self.tokens = self._tokenize(text)
        self.pos = 0

    @staticmethod
    def _tokenize(text: str) -> list[tuple[str, str]]:
        tokens = []
        pos = 0
        end = len(text.rstrip())
        while pos < end:
            match = _TOKEN.match(text, pos)
            if not match or match.end() == pos:
                raise FormulaSyntaxError(f"Unexpected character {text[pos:].strip()[:1]!r} at {pos}")
            if match.group("number") is not None:
                tokens.append(("number", match.group("number")))
            else:
                tokens.append(("op", match.group("op")))
            pos = match.end()
        return tokens

    def _peek(self) -> tuple[str, str] | None:
        return self.tokens[self.pos] if self.pos < len(self.tokens) else None

    def _take(self) -> tuple[str, str]:
        token = self._peek()
        if token is None:
            raise FormulaSyntaxError("Unexpected end of expression")
        self.pos += 1
        return token

    def parse(self) -> float:
        if not self.tokens:
            raise FormulaSyntaxError("Empty expression")
        result = self._expr()
        if self._peek() is not None:
            raise FormulaSyntaxError(f"Unexpected token {self._peek()[1]!r}")
        return result

    def _expr(self) -> float:
        value = self._term()
        while self._peek() in (("op", "+"), ("op", "-")):
            _, op = self._take()
            right = self._term()
            value = value + right if op == "+" else value - right
        return value

    def _term(self) -> float:
        value = self._factor()
        while self._peek() in (("op", "*"), ("op", "/")):
            _, op = self._take()
            right = self._factor()
            value = value * right if op == "*" else value / right
        return value

    def _factor(self) -> float:
        if self._peek() in (("op", "+"), ("op", "-")):
            _, op = self._take()
            operand = self._factor()
            return operand if op == "+" else -operand
        return self._primary()

    def _primary(self) -> float:
        kind, text = self._take()
        if kind == "number":
            return float(text)
        if text == "(":
            value = self._expr()
            if self._take() != ("op", ")"):
                raise FormulaSyntaxError("Expected ')'")
            return value
        raise FormulaSyntaxError(f"Unexpected token {text!r}")


def evaluate_arithmetic(text: str) -> float:
    """Evaluate purely numeric arithmetic text. Raises on bad input."""
    return _ArithmeticParser(text).parse()


def evaluate_formula(formula: str | None, parameters=()) -> float:
    """
    Evaluate a formula against a set of named parameters.

    Example:
        evaluate_formula("length * width * 10",
                         [{"name": "length", "value": 5}, {"name": "width", "value": 3}])
        -> 150.0
    """
    if not formula or not formula.strip():
        return 0.0

    substituted, unresolved, non_numeric = substitute_parameters(formula, parameters)

    if unresolved:
        logger.warning(f"Formula contains undefined parameters: {', '.join(unresolved)} ({formula!r})")
        return 0.0
    if non_numeric:
        logger.warning(f"Formula references non-numeric parameters: {', '.join(non_numeric)} ({formula!r})")
        return 0.0

    try:
        result = evaluate_arithmetic(substituted)
    except ZeroDivisionError:
        logger.info(f"Division by zero in formula {formula!r}, treating as 0")
        return 0.0
    except (FormulaSyntaxError, ArithmeticError, RecursionError) as e:
        logger.error(f"Error evaluating formula {formula!r}: {e}")
        return 0.0

    if not math.isfinite(result):
        logger.info(f"Non-finite result for formula {formula!r}, treating as 0")
        return 0.0
    return result
