# src/ratesim/sde/expressions.py
"""
Restricted formula evaluator for time-dependent coefficients.

A formula is a scalar expression of the single variable ``t`` built from

    - numeric literals and the constants ``pi`` and ``e``
    - ``+ - * /`` and powers (``**`` or ``^``), unary sign
    - the functions in ALLOWED_FUNCTIONS

The text is first screened against that grammar, then parsed with sympy
and compiled with ``lambdify`` into a vectorised numpy function. The
compiled function is applied to the whole time grid at once.
"""

from __future__ import annotations

import ast
import logging
import math
from dataclasses import dataclass
from typing import Callable, Dict, Optional

import numpy as np
import sympy
from sympy.core.function import AppliedUndef
from sympy.parsing.sympy_parser import (
    convert_xor,
    parse_expr,
    standard_transformations,
)

from ratesim.sde.errors import EvaluationError
from ratesim.sde.schemas import (
    EquilibriumType,
    ModelConfig,
    ResolvedCoefficients,
    TimeGrid,
    VolatilityType,
)

LOGGER = logging.getLogger(__name__)

TIME = sympy.Symbol("t", real=True)

ALLOWED_FUNCTIONS: Dict[str, Callable] = {
    "sin": sympy.sin,
    "cos": sympy.cos,
    "tan": sympy.tan,
    "asin": sympy.asin,
    "acos": sympy.acos,
    "atan": sympy.atan,
    "sinh": sympy.sinh,
    "cosh": sympy.cosh,
    "tanh": sympy.tanh,
    "exp": sympy.exp,
    "log": sympy.log,
    "sqrt": sympy.sqrt,
    "abs": sympy.Abs,
    "floor": sympy.floor,
    "ceiling": sympy.ceiling,
}

ALLOWED_CONSTANTS = {"pi": sympy.pi, "e": sympy.E}

_ALLOWED_BINOPS = (ast.Add, ast.Sub, ast.Mult, ast.Div, ast.Pow)
_ALLOWED_UNARYOPS = (ast.UAdd, ast.USub)

_TRANSFORMATIONS = standard_transformations + (convert_xor,)


@dataclass(frozen=True)
class CompiledExpression:
    """A screened, parsed and compiled formula of t."""

    source: str
    expr: sympy.Expr
    func: Callable

    def __call__(self, t: np.ndarray) -> np.ndarray:
        t = np.asarray(t, dtype=float)
        with np.errstate(all="raise"):
            values = np.asarray(self.func(t))
        if np.iscomplexobj(values):
            raise EvaluationError(self.source, "non-real result")
        # constant formulas come back as scalars
        return np.broadcast_to(values.astype(float), t.shape).copy()


def _screen(node: ast.AST, source: str) -> None:
    if isinstance(node, ast.Expression):
        _screen(node.body, source)
    elif isinstance(node, ast.BinOp):
        if not isinstance(node.op, _ALLOWED_BINOPS):
            raise EvaluationError(
                source, f"operator {type(node.op).__name__} is not supported"
            )
        _screen(node.left, source)
        _screen(node.right, source)
    elif isinstance(node, ast.UnaryOp):
        if not isinstance(node.op, _ALLOWED_UNARYOPS):
            raise EvaluationError(
                source, f"operator {type(node.op).__name__} is not supported"
            )
        _screen(node.operand, source)
    elif isinstance(node, ast.Constant):
        if isinstance(node.value, bool) or not isinstance(node.value, (int, float)):
            raise EvaluationError(source, f"unsupported literal {node.value!r}")
    elif isinstance(node, ast.Name):
        if node.id != "t" and node.id not in ALLOWED_CONSTANTS:
            raise EvaluationError(source, f"unknown identifier '{node.id}'")
    elif isinstance(node, ast.Call):
        if not isinstance(node.func, ast.Name):
            raise EvaluationError(source, "only plain function calls are allowed")
        if node.func.id not in ALLOWED_FUNCTIONS:
            raise EvaluationError(source, f"unknown function '{node.func.id}'")
        if node.keywords or len(node.args) != 1:
            raise EvaluationError(
                source, f"'{node.func.id}' takes exactly one argument"
            )
        _screen(node.args[0], source)
    else:
        raise EvaluationError(
            source, f"unsupported syntax ({type(node).__name__})"
        )


_FLOAT_FUNCTIONS: Dict[str, Callable[[float], float]] = {
    "sin": math.sin,
    "cos": math.cos,
    "tan": math.tan,
    "asin": math.asin,
    "acos": math.acos,
    "atan": math.atan,
    "sinh": math.sinh,
    "cosh": math.cosh,
    "tanh": math.tanh,
    "exp": math.exp,
    "log": math.log,
    "sqrt": math.sqrt,
    "abs": abs,
    "floor": lambda x: float(math.floor(x)),
    "ceiling": lambda x: float(math.ceil(x)),
}

_FLOAT_CONSTANTS = {"pi": math.pi, "e": math.e}

# larger exponents on a constant base are computed exactly by sympy
_MAX_CONSTANT_EXPONENT = 1e4


def _fold(node: ast.AST, source: str) -> Optional[float]:
    """
    Value of a t-free subtree in float arithmetic, None if it depends on t
    or leaves the real domain.

    sympy evaluates constant integer powers exactly while parsing, so a
    constant that overflows a float, or a constant power with a huge
    exponent, is rejected before it reaches sympy.
    """
    if isinstance(node, ast.Expression):
        return _fold(node.body, source)
    if isinstance(node, ast.Constant):
        try:
            value = float(node.value)
        except OverflowError as e:
            raise EvaluationError(source, "constant value out of range") from e
    elif isinstance(node, ast.Name):
        if node.id == "t":
            return None
        value = _FLOAT_CONSTANTS[node.id]
    elif isinstance(node, ast.UnaryOp):
        operand = _fold(node.operand, source)
        if operand is None:
            return None
        value = -operand if isinstance(node.op, ast.USub) else operand
    elif isinstance(node, ast.Call):
        arg = _fold(node.args[0], source)
        if arg is None:
            return None
        try:
            value = _FLOAT_FUNCTIONS[node.func.id](arg)
        except OverflowError as e:
            raise EvaluationError(source, "constant value out of range") from e
        except ValueError:
            return None
    else:
        left = _fold(node.left, source)
        right = _fold(node.right, source)
        if left is None or right is None:
            return None
        if (
            isinstance(node.op, ast.Pow)
            and abs(right) > _MAX_CONSTANT_EXPONENT
            and abs(left) not in (0.0, 1.0)
        ):
            raise EvaluationError(source, "constant power out of range")
        try:
            if isinstance(node.op, ast.Add):
                value = left + right
            elif isinstance(node.op, ast.Sub):
                value = left - right
            elif isinstance(node.op, ast.Mult):
                value = left * right
            elif isinstance(node.op, ast.Div):
                value = left / right
            else:
                value = math.pow(left, right)
        except OverflowError as e:
            raise EvaluationError(source, "constant value out of range") from e
        except (ZeroDivisionError, ValueError):
            return None

    if not math.isfinite(value):
        raise EvaluationError(source, "constant value out of range")
    return value


def compile_expression(source: str) -> CompiledExpression:
    """
    Screen, parse and compile a formula of t.

    Raises EvaluationError for syntax errors, unknown identifiers or
    anything outside the restricted grammar.
    """
    if not isinstance(source, str) or not source.strip():
        raise EvaluationError(str(source), "empty expression")
    text = source.strip()

    try:
        tree = ast.parse(text.replace("^", "**"), mode="eval")
    except SyntaxError as e:
        raise EvaluationError(source, f"syntax error ({e.msg})") from e
    _screen(tree, source)
    _fold(tree, source)

    local_dict = {"t": TIME, **ALLOWED_FUNCTIONS, **ALLOWED_CONSTANTS}
    global_dict = {
        "__builtins__": {},
        "Integer": sympy.Integer,
        "Float": sympy.Float,
        "Rational": sympy.Rational,
        "Symbol": sympy.Symbol,
        "Function": sympy.Function,
    }
    try:
        expr = parse_expr(
            text,
            local_dict=local_dict,
            global_dict=global_dict,
            transformations=_TRANSFORMATIONS,
        )
    except (SyntaxError, TypeError, ValueError, sympy.SympifyError) as e:
        raise EvaluationError(source, str(e)) from e

    if not isinstance(expr, sympy.Expr):
        raise EvaluationError(source, "expression must be a scalar formula of t")
    if expr.atoms(AppliedUndef):
        raise EvaluationError(source, "unknown function")
    extra = expr.free_symbols - {TIME}
    if extra:
        names = ", ".join(sorted(str(s) for s in extra))
        raise EvaluationError(source, f"unknown identifier(s) {names}")

    func = sympy.lambdify(TIME, expr, modules="numpy")
    LOGGER.debug("Compiled expression %r -> %s", source, expr)
    return CompiledExpression(source=source, expr=expr, func=func)


def evaluate(expr: str, t: np.ndarray, role: str | None = None) -> np.ndarray:
    """
    Evaluate a formula of t on every grid point.

    Math domain errors (e.g. sqrt of a negative value, log(0)) and
    non-finite or complex results raise EvaluationError.
    """
    try:
        compiled = compile_expression(expr)
    except EvaluationError as e:
        raise EvaluationError(e.expr, e.reason, role=role) from e

    try:
        values = compiled(t)
    except EvaluationError as e:
        raise EvaluationError(expr, e.reason, role=role) from e
    except (FloatingPointError, ZeroDivisionError, OverflowError) as e:
        raise EvaluationError(expr, f"math error ({e})", role=role) from e

    if not np.all(np.isfinite(values)):
        raise EvaluationError(expr, "result is not finite on the time grid", role=role)
    return values


def resolve_coefficients(cfg: ModelConfig, grid: TimeGrid) -> ResolvedCoefficients:
    """
    Evaluate theta(t) and, for dynamic volatility, sigma(t) once on the grid.

    The volatility series is clamped to max(sigma(t), 0).
    """
    if cfg.equilibrium_type is EquilibriumType.DYNAMIC:
        theta = evaluate(cfg.theta_expr, grid.times, role="equilibrium")
    else:
        theta = np.full(grid.times.shape, cfg.r_bar, dtype=float)
    theta.setflags(write=False)

    sigma_series = None
    if cfg.volatility_type is VolatilityType.DYNAMIC:
        sigma_series = np.maximum(
            evaluate(cfg.sigma_expr, grid.times, role="volatility"), 0.0
        )
        sigma_series.setflags(write=False)

    return ResolvedCoefficients(theta=theta, sigma_series=sigma_series)
