"""Arithmetic checking for generated tutor responses.

Finds arithmetic fragments in free text, evaluates them with a small
recursive-descent evaluator, and compares each against the answer the text
states for it. Symbolic algebra is out of scope: anything with variables is
reported as not evaluable rather than solved.
"""

import logging
import math
import re
from typing import Any, Callable, Dict, List, Optional, Tuple

from pydantic import BaseModel, ConfigDict, Field

from ..core.exceptions import ExpressionError

logger = logging.getLogger(__name__)

ANSWER_TOLERANCE = 1e-4

EXPRESSION_PATTERNS = (
    re.compile(r"\b(\d+\.?\d*)\s*([+\-*/^])\s*(\d+\.?\d*)\b"),  # number op number
    re.compile(r"\(([^)]+)\)"),  # parenthesized groups
    re.compile(r"(\d+\.?\d*)\s*\^\s*(\d+)"),  # exponents
)

_STATED_ANSWER = re.compile(r"=\s*(-?\d+(?:\.\d+)?)")
_DIGIT = re.compile(r"\d")

# Characters that can make up an arithmetic run ending at "="
_ARITHMETIC_CHARS = frozenset("0123456789.+-*/^()×÷ ")
_RUN_LEADING_JUNK = ".*/^+)×÷ "

_TOKEN = re.compile(r"\s*(?:(\d+\.?\d*|\.\d+)|([A-Za-z_]+)|(\*\*|[-+*/^(),]))")

_FUNCTIONS: Dict[str, Tuple[int, Callable[..., float]]] = {
    "sqrt": (1, lambda x: math.pow(x, 0.5)),
    "pow": (2, math.pow),
}

COMMON_FORMULAS = {
    "quadratic": "x = (-b ± √(b² - 4ac)) / 2a",
    "area_rectangle": "A = length × width",
    "area_circle": "A = πr²",
    "circumference": "C = 2πr",
    "pythagorean": "a² + b² = c²",
    "distance": "d = √((x₂-x₁)² + (y₂-y₁)²)",
    "slope": "m = (y₂-y₁)/(x₂-x₁)",
}


class MathValidationResult(BaseModel):
    """Outcome of checking the arithmetic in one piece of text."""

    valid: bool
    issues: List[str] = Field(default_factory=list)
    corrected_steps: Optional[str] = None
    calculated_values: Dict[str, float] = Field(default_factory=dict)

    @property
    def has_issues(self) -> bool:
        return bool(self.issues)


class MathStep(BaseModel):
    """One line of a step-by-step solution."""

    model_config = ConfigDict(frozen=True)

    description: str
    expression: str
    result: Any
    explanation: str = ""

    def __str__(self) -> str:
        suffix = f" ({self.explanation})" if self.explanation else ""
        return f"{self.description}: {self.expression} = {self.result}{suffix}"


# =============================================================================
# Evaluation
# =============================================================================

def _tokenize(expression: str) -> List[str]:
    normalized = expression.replace("×", "*").replace("÷", "/")
    tokens: List[str] = []
    position = 0
    while position < len(normalized):
        if normalized[position:].strip() == "":
            break
        match = _TOKEN.match(normalized, position)
        if match is None or match.end() == position:
            raise ExpressionError(f"Unexpected character in expression: {normalized[position:].strip()[:1]!r}")
        token = match.group(1) or match.group(2) or match.group(3)
        tokens.append("^" if token == "**" else token)
        position = match.end()
    if not tokens:
        raise ExpressionError("Empty expression")
    return tokens


class _Parser:
    """
    Recursive-descent evaluator.

    Grammar:
        expr   := term (("+" | "-") term)*
        term   := unary (("*" | "/") unary)*
        unary  := ("-" | "+") unary | power
        power  := factor ("^" factor)*
        factor := NUMBER | "(" expr ")" | NAME "(" expr ("," expr)* ")" | "-" factor

    Powers associate left to right, matching the operator-by-operator
    reduction tutors usually show in worked steps.
    """

    def __init__(self, tokens: List[str]):
        self.tokens = tokens
        self.position = 0

    def peek(self) -> Optional[str]:
        return self.tokens[self.position] if self.position < len(self.tokens) else None

    def take(self, expected: Optional[str] = None) -> str:
        token = self.peek()
        if token is None:
            raise ExpressionError("Unexpected end of expression")
        if expected is not None and token != expected:
            raise ExpressionError(f"Expected {expected!r} but found {token!r}")
        self.position += 1
        return token

    def parse(self) -> float:
        value = self.expr()
        if self.peek() is not None:
            raise ExpressionError(f"Unexpected token {self.peek()!r}")
        return value

    def expr(self) -> float:
        value = self.term()
        while self.peek() in ("+", "-"):
            op = self.take()
            right = self.term()
            value = value + right if op == "+" else value - right
        return value

    def term(self) -> float:
        value = self.unary()
        while self.peek() in ("*", "/"):
            op = self.take()
            right = self.unary()
            if op == "*":
                value = value * right
            else:
                if right == 0:
                    raise ExpressionError("Division by zero")
                value = value / right
        return value

    def unary(self) -> float:
        if self.peek() == "-":
            self.take()
            return -self.unary()
        if self.peek() == "+":
            self.take()
            return self.unary()
        return self.power()

    def power(self) -> float:
        value = self.factor()
        while self.peek() == "^":
            self.take()
            value = _apply(math.pow, value, self.factor())
        return value

    def factor(self) -> float:
        token = self.take()

        if token == "-":
            return -self.factor()

        if token == "(":
            value = self.expr()
            self.take(")")
            return value

        if token[0].isdigit() or token[0] == ".":
            return float(token)

        if token.isidentifier():
            if token not in _FUNCTIONS:
                raise ExpressionError(f"Unknown name {token!r}")
            arity, func = _FUNCTIONS[token]
            self.take("(")
            args = [self.expr()]
            while self.peek() == ",":
                self.take()
                args.append(self.expr())
            self.take(")")
            if len(args) != arity:
                raise ExpressionError(f"{token}() takes {arity} argument(s), got {len(args)}")
            return _apply(func, *args)

        raise ExpressionError(f"Unexpected token {token!r}")


def _apply(func: Callable[..., float], *args: float) -> float:
    try:
        return float(func(*args))
    except (ValueError, OverflowError) as e:
        raise ExpressionError(f"Cannot evaluate: {e}") from e


def evaluate_expression(expression: str) -> float:
    """
    Evaluate an arithmetic expression.

    Supports + - * / ^ (also ** and the × ÷ symbols), parentheses, unary
    minus, sqrt(x) and pow(x, y).

    Raises:
        ExpressionError: The expression is malformed, references unknown
            names, or divides by zero
    """
    return _Parser(_tokenize(expression)).parse()


def format_number(value: float) -> str:
    """Render a result the way it is shown to users ("4.0", "2.5")."""
    return str(float(value))


def answers_match(first: str, second: str) -> bool:
    """Numeric comparison within tolerance, else exact string comparison."""
    try:
        return abs(float(first) - float(second)) < ANSWER_TOLERANCE
    except ValueError:
        return first.strip() == second.strip()


# =============================================================================
# Text scanning
# =============================================================================

def extract_expressions(text: str) -> List[str]:
    """Candidate arithmetic fragments in order of discovery, de-duplicated."""
    expressions: List[str] = []
    for pattern in EXPRESSION_PATTERNS:
        for match in pattern.finditer(text):
            # Parenthesized groups are checked by their contents
            candidate = match.group(1) if pattern is EXPRESSION_PATTERNS[1] else match.group(0)
            candidate = candidate.strip()
            if candidate and candidate not in expressions:
                expressions.append(candidate)
    return expressions


def find_stated_answer(text: str, expression: str) -> Optional[str]:
    """The first number stated as ``= <n>`` after the first occurrence of ``expression``."""
    index = text.find(expression)
    if index == -1:
        return None
    match = _STATED_ANSWER.search(text, index + len(expression))
    return match.group(1) if match else None


def _arithmetic_run(text: str, end: int) -> Tuple[int, str]:
    """Start index and trimmed text of the arithmetic run ending at ``end``."""
    start = end
    while start > 0 and text[start - 1] in _ARITHMETIC_CHARS:
        start -= 1

    run = text[start:end].strip().lstrip(_RUN_LEADING_JUNK)
    while run.startswith("(") and run.count("(") > run.count(")"):
        run = run[1:].lstrip()
    return start, run


def find_stated_claim(text: str, expression: str) -> Optional[Tuple[str, str]]:
    """
    Locate the answer the text states for ``expression``.

    The answer is the first ``= <n>`` after the expression. What gets
    checked against it is the whole arithmetic run ending at that ``=``
    when the run contains the expression and evaluates, so "(2 + 3) * 4 = 20"
    checks "(2 + 3) * 4" rather than "2 + 3". Otherwise the expression itself
    is checked, unless other numbers sit between it and the ``=``.

    Returns:
        (checked expression, stated answer), or None if no answer applies
    """
    index = text.find(expression)
    if index == -1:
        return None
    expression_end = index + len(expression)
    match = _STATED_ANSWER.search(text, expression_end)
    if match is None:
        return None

    start, run = _arithmetic_run(text, match.start())
    if start <= index and expression in run:
        try:
            evaluate_expression(run)
            return run, match.group(1)
        except ExpressionError:
            pass

    # The answer belongs to some other arithmetic
    if _DIGIT.search(text, expression_end, match.start()):
        return None
    return expression, match.group(1)


class MathEngine:
    """Validates and explains arithmetic found in free text."""

    def validate_and_annotate(self, text: str) -> MathValidationResult:
        """
        Check every stated arithmetic answer in ``text``.

        Fragments that cannot be evaluated are skipped. An unexpected
        failure of the scan itself yields ``valid=True`` with the error
        recorded as an issue, so a parser bug never blocks a response.
        """
        try:
            expressions = extract_expressions(text)
            if not expressions:
                return MathValidationResult(valid=True)

            logger.debug(f"Found {len(expressions)} math expressions to validate")

            issues: List[str] = []
            calculations: Dict[str, float] = {}
            checked = set()
            lines = ["Mathematical Validation:", ""]

            for expr in expressions:
                try:
                    result = evaluate_expression(expr)
                except ExpressionError as e:
                    logger.debug(f"Skipping expression {expr!r}: {e}")
                    continue

                calculations[expr] = result
                claim = find_stated_claim(text, expr)
                if claim is None:
                    continue

                target, stated = claim
                # Fragments of one run share a single check
                if target in checked:
                    continue
                checked.add(target)
                if target != expr:
                    result = evaluate_expression(target)
                    calculations[target] = result

                calculated = format_number(result)
                if answers_match(stated, calculated):
                    lines.append(f"✓ {target} = {calculated}")
                else:
                    issues.append(
                        f'Expression "{target}": Text says "{stated}" but calculation gives "{calculated}"'
                    )
                    lines.extend([
                        f"❌ {target}",
                        f"   Text answer: {stated}",
                        f"   Correct answer: {calculated}",
                        "",
                    ])

            return MathValidationResult(
                valid=not issues,
                issues=issues,
                corrected_steps="\n".join(lines) + "\n" if issues else None,
                calculated_values=calculations,
            )
        except Exception as e:
            logger.error(f"Error in validate_and_annotate: {e}")
            return MathValidationResult(valid=True, issues=[f"Validation error: {e}"])

    def solve_and_show_steps(self, equation: str) -> List[MathStep]:
        """
        Evaluate an expression, or both sides of an equation, as display steps.

        Equations with unknowns are not solved; they produce an "Analysis"
        step instead.
        """
        parts = [part.strip() for part in equation.split("=")]
        steps: List[MathStep] = []

        if len(parts) == 1:
            try:
                result = evaluate_expression(parts[0])
            except ExpressionError as e:
                return [MathStep(
                    description="Error",
                    expression=equation,
                    result="Error",
                    explanation=f"Could not solve: {e}",
                )]
            steps.append(MathStep(
                description="Evaluate expression",
                expression=parts[0],
                result=result,
                explanation="Direct calculation",
            ))
            return steps

        if len(parts) != 2:
            return [_analysis_step(equation)]

        left, right = parts
        steps.append(MathStep(
            description="Original equation",
            expression=f"{left} = {right}",
            result=equation,
            explanation="Starting point",
        ))

        try:
            left_result = evaluate_expression(left)
            right_result = evaluate_expression(right)
        except ExpressionError:
            steps.append(_analysis_step(equation))
            return steps

        steps.append(MathStep(description="Evaluate left side", expression=left, result=left_result))
        steps.append(MathStep(description="Evaluate right side", expression=right, result=right_result))

        if answers_match(format_number(left_result), format_number(right_result)):
            steps.append(MathStep(
                description="Verification",
                expression=f"{format_number(left_result)} = {format_number(right_result)}",
                result=True,
                explanation="Both sides are equal ✓",
            ))
        else:
            steps.append(MathStep(
                description="Verification",
                expression=f"{format_number(left_result)} ≠ {format_number(right_result)}",
                result=False,
                explanation="Sides are not equal - equation may need solving for a variable",
            ))

        logger.debug(f"Generated {len(steps)} solution steps")
        return steps

    @staticmethod
    def validate_calculation(expression: str, expected: Any) -> bool:
        try:
            result = evaluate_expression(expression)
        except ExpressionError as e:
            logger.debug(f"Error validating calculation: {e}")
            return False
        return answers_match(format_number(result), str(expected))

    @staticmethod
    def common_formulas() -> Dict[str, str]:
        return dict(COMMON_FORMULAS)


def _analysis_step(equation: str) -> MathStep:
    return MathStep(
        description="Analysis",
        expression=equation,
        result="Cannot evaluate",
        explanation="May contain variables that need algebraic solving",
    )
