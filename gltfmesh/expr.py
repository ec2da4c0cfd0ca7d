# gltfmesh/expr.py
from __future__ import annotations

import ast
import math
from dataclasses import dataclass
from typing import Callable, Dict, Optional, Sequence, Tuple

from .errors import InvalidArgumentError
from .topology import TopologyBuilder
from .vertex import hsb_color

"""
Parametric curves from user supplied math expressions:

      x = fx(t)
      y = fy(t)
      z = fz(t)

Expressions go through an AST whitelist before they are compiled, so they can
come straight from the command line. Only arithmetic, the functions in
_ALLOWED_FUNCS and the constants pi, e and tau are accepted.

Example:
    builder = TopologyBuilder("helix", TopologyMode.LINE_STRIP)
    curve_from_expressions(builder, "cos(t)", "sin(t)", "t / 10",
                           t_range=(0, 8 * pi), segments=400)
"""


_ALLOWED_FUNCS: Dict[str, Callable[..., float]] = {
    "sin": math.sin,
    "cos": math.cos,
    "tan": math.tan,
    "asin": math.asin,
    "acos": math.acos,
    "atan": math.atan,
    "atan2": math.atan2,
    "sinh": math.sinh,
    "cosh": math.cosh,
    "tanh": math.tanh,
    "sqrt": math.sqrt,
    "exp": math.exp,
    "log": math.log,
    "pow": pow,
    "abs": abs,
    "floor": lambda x: float(math.floor(x)),
    "ceil": lambda x: float(math.ceil(x)),
    "min": min,
    "max": max,
}

# (min, max) positional arguments, None for no upper bound
_FUNC_ARITY: Dict[str, Tuple[int, Optional[int]]] = {name: (1, 1) for name in _ALLOWED_FUNCS}
_FUNC_ARITY.update({"atan2": (2, 2), "pow": (2, 2), "log": (1, 2), "min": (2, None), "max": (2, None)})

_ALLOWED_CONSTS: Dict[str, float] = {
    "pi": math.pi,
    "e": math.e,
    "tau": math.tau,
}

_ALLOWED_NODE_TYPES = (
    ast.Expression,
    ast.BinOp,
    ast.UnaryOp,
    ast.Add,
    ast.Sub,
    ast.Mult,
    ast.Div,
    ast.Mod,
    ast.Pow,
    ast.USub,
    ast.UAdd,
    ast.Call,
    ast.Name,
    ast.Load,
    ast.Constant,
)


class _ExprValidator(ast.NodeVisitor):
    def __init__(self, allowed_vars: Sequence[str]) -> None:
        self.allowed_vars = set(allowed_vars)

    def generic_visit(self, node: ast.AST) -> None:
        if not isinstance(node, _ALLOWED_NODE_TYPES):
            raise InvalidArgumentError(f"Disallowed syntax: {type(node).__name__}")
        super().generic_visit(node)

    def visit_Call(self, node: ast.Call) -> None:
        if not isinstance(node.func, ast.Name) or node.func.id not in _ALLOWED_FUNCS:
            raise InvalidArgumentError(f"Function not allowed: {ast.unparse(node.func)}")
        if node.keywords:
            raise InvalidArgumentError("Keyword arguments are not allowed in function calls")
        lo, hi = _FUNC_ARITY[node.func.id]
        n = len(node.args)
        if n < lo or (hi is not None and n > hi):
            expected = str(lo) if lo == hi else (f"{lo} to {hi}" if hi is not None else f"at least {lo}")
            raise InvalidArgumentError(f"{node.func.id}() takes {expected} arguments (got {n})")
        self.generic_visit(node)

    def visit_Name(self, node: ast.Name) -> None:
        if (
            node.id not in self.allowed_vars
            and node.id not in _ALLOWED_FUNCS
            and node.id not in _ALLOWED_CONSTS
        ):
            raise InvalidArgumentError(f"Name not allowed: {node.id}")
        self.generic_visit(node)

    def visit_Constant(self, node: ast.Constant) -> None:
        if isinstance(node.value, bool) or not isinstance(node.value, (int, float)):
            raise InvalidArgumentError(f"Only numeric constants are allowed (got {node.value!r})")
        self.generic_visit(node)


class _FloatLiterals(ast.NodeTransformer):
    """Integer literals become floats so `**` cannot grow unbounded integers."""

    def visit_Constant(self, node: ast.Constant) -> ast.Constant:
        if isinstance(node.value, int):
            try:
                value = float(node.value)
            except OverflowError as e:
                raise InvalidArgumentError(f"Constant out of range: {node.value}") from e
            return ast.copy_location(ast.Constant(value), node)
        return node


@dataclass(frozen=True)
class CompiledMathExpr:
    """A validated expression, callable with its variables in declared order."""

    expr: str
    vars: Tuple[str, ...]
    _fn: Callable[..., float]

    def __call__(self, *args: float) -> float:
        if len(args) != len(self.vars):
            raise TypeError(f"Expected {len(self.vars)} args ({', '.join(self.vars)}), got {len(args)}")
        try:
            return float(self._fn(*(float(a) for a in args)))
        except (ArithmeticError, ValueError, TypeError):
            # domain errors, overflow and complex powers count as "no sample here"
            return math.nan


def compile_math_expr(expr: str, *, vars: Sequence[str] = ("t",)) -> CompiledMathExpr:
    try:
        tree = ast.parse(expr, mode="eval")
    except SyntaxError as e:
        raise InvalidArgumentError(f"Invalid expression {expr!r}: {e.msg}") from e
    _ExprValidator(vars).visit(tree)

    arglist = ", ".join(vars)
    scope: Dict[str, object] = {"__builtins__": {}}
    scope.update(_ALLOWED_FUNCS)
    scope.update(_ALLOWED_CONSTS)

    lam = ast.parse(f"lambda {arglist}: 0", mode="eval")
    lam.body.body = _FloatLiterals().visit(tree.body)
    ast.fix_missing_locations(lam)
    fn = eval(compile(lam, "<expr>", "eval"), scope, {})  # AST validated, no builtins
    return CompiledMathExpr(expr=expr, vars=tuple(vars), _fn=fn)


def curve_from_expressions(
    builder: TopologyBuilder,
    x_expr: str,
    y_expr: str,
    z_expr: str,
    *,
    t_range: Tuple[float, float] = (0.0, 1.0),
    segments: int = 200,
    hue_range: Optional[Tuple[float, float]] = None,
) -> TopologyBuilder:
    """
    Sample segments + 1 points of the curve into `builder`.

    With `hue_range` every vertex is colored by interpolating the HSB hue
    along the curve. A sample that is not finite raises InvalidArgumentError
    naming the offending t.
    """
    if segments < 1:
        raise InvalidArgumentError(f"segments must be >= 1 (got {segments})")

    fx = compile_math_expr(x_expr)
    fy = compile_math_expr(y_expr)
    fz = compile_math_expr(z_expr)

    # sample everything first so a bad sample leaves the builder untouched
    t0, t1 = t_range
    samples = []
    for i in range(segments + 1):
        part = i / segments
        t = t0 + (t1 - t0) * part
        p = (fx(t), fy(t), fz(t))
        if not all(math.isfinite(c) for c in p):
            raise InvalidArgumentError(f"curve is not finite at t={t}: {p}")
        samples.append((part, p))

    for part, p in samples:
        vertex = builder.new_vertex(p)
        if hue_range is not None:
            h0, h1 = hue_range
            vertex.set_color(hsb_color(h0 + (h1 - h0) * part, 0.6, 0.5))
    return builder
