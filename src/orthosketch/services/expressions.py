"""Parametric expression evaluation.

Vertex coordinates, arc radii, extrusion heights and parameter definitions
may be written as expressions such as ``"params.ancho * 0.5 + 2"``. Each
expression is parsed once with :mod:`ast` and compiled into a small tree of
allow-listed nodes (numbers, ``params.<name>`` references, ``+ - * /``,
unary sign, and a fixed set of ``Math.*`` functions and constants). Nothing
outside that grammar is ever executed.

Example:
    >>> evaluate_expression("params.longitud * 0.5", {"longitud": 80})
    40.0
    >>> evaluate_expression("Math.sqrt(params.a)", {"a": 16})
    4.0
"""

import ast
import math
import operator
import re
from dataclasses import dataclass
from functools import lru_cache
from graphlib import TopologicalSorter
from typing import Any, Callable, Dict, Iterator, List, Mapping, Optional, Tuple, Union

from ..exceptions import ExpressionError, CircularDependencyError
from ..logging import get_logger
from ..models import CycleReport, ExpressionValidation

logger = get_logger(__name__)

ExpressionSource = Union[int, float, str]

_NUMBER_RE = re.compile(r"^[+-]?(\d+(\.\d*)?|\.\d+)([eE][+-]?\d+)?$")
_PARAM_REF_RE = re.compile(r"params\.(\w+)")
_ALLOWED_CHARS_RE = re.compile(r"^[\w\s+\-*/().,]+$")


def _js_round(x: float) -> float:
    # Math.round rounds halves toward +infinity
    return float(math.floor(x + 0.5))


def _sign(x: float) -> float:
    return float((x > 0) - (x < 0))


# name -> (callable, min args, max args or None for variadic)
MATH_FUNCTIONS: Dict[str, Tuple[Callable[..., float], int, Optional[int]]] = {
    "sqrt": (math.sqrt, 1, 1),
    "pow": (math.pow, 2, 2),
    "abs": (abs, 1, 1),
    "min": (lambda *args: min(args), 1, None),
    "max": (lambda *args: max(args), 1, None),
    "floor": (math.floor, 1, 1),
    "ceil": (math.ceil, 1, 1),
    "round": (_js_round, 1, 1),
    "sign": (_sign, 1, 1),
    "exp": (math.exp, 1, 1),
    "log": (math.log, 1, 1),
    "log10": (math.log10, 1, 1),
    "sin": (math.sin, 1, 1),
    "cos": (math.cos, 1, 1),
    "tan": (math.tan, 1, 1),
    "asin": (math.asin, 1, 1),
    "acos": (math.acos, 1, 1),
    "atan": (math.atan, 1, 1),
    "atan2": (math.atan2, 2, 2),
    "hypot": (math.hypot, 1, None),
}

MATH_CONSTANTS: Dict[str, float] = {
    "PI": math.pi,
    "E": math.e,
}

_BINARY_OPS = {
    ast.Add: ("+", operator.add),
    ast.Sub: ("-", operator.sub),
    ast.Mult: ("*", operator.mul),
    ast.Div: ("/", operator.truediv),
}


# --- Expression tree ---

@dataclass(frozen=True)
class Literal:
    value: float

    def evaluate(self, values: Mapping[str, float]) -> float:
        return self.value

    def references(self) -> Iterator[str]:
        return iter(())


@dataclass(frozen=True)
class ParamRef:
    name: str

    def evaluate(self, values: Mapping[str, float]) -> float:
        return float(values[self.name])

    def references(self) -> Iterator[str]:
        yield self.name


@dataclass(frozen=True)
class Constant:
    name: str

    def evaluate(self, values: Mapping[str, float]) -> float:
        return MATH_CONSTANTS[self.name]

    def references(self) -> Iterator[str]:
        return iter(())


@dataclass(frozen=True)
class UnaryOp:
    op: str
    operand: Any

    def evaluate(self, values: Mapping[str, float]) -> float:
        value = self.operand.evaluate(values)
        return -value if self.op == "-" else value

    def references(self) -> Iterator[str]:
        return self.operand.references()


@dataclass(frozen=True)
class BinaryOp:
    op: str
    left: Any
    right: Any

    def evaluate(self, values: Mapping[str, float]) -> float:
        fn = next(f for symbol, f in _BINARY_OPS.values() if symbol == self.op)
        return fn(self.left.evaluate(values), self.right.evaluate(values))

    def references(self) -> Iterator[str]:
        yield from self.left.references()
        yield from self.right.references()


@dataclass(frozen=True)
class Call:
    name: str
    args: Tuple[Any, ...]

    def evaluate(self, values: Mapping[str, float]) -> float:
        fn = MATH_FUNCTIONS[self.name][0]
        return float(fn(*(arg.evaluate(values) for arg in self.args)))

    def references(self) -> Iterator[str]:
        for arg in self.args:
            yield from arg.references()


@dataclass(frozen=True)
class CompiledExpression:
    """A parsed expression, ready to evaluate against parameter values."""

    source: str
    root: Any
    references: Tuple[str, ...]

    def evaluate(self, values: Mapping[str, float]) -> float:
        """Evaluate strictly.

        Raises:
            ExpressionError: unknown parameter, arithmetic fault, or a result
                that is not a finite number
        """
        try:
            result = self.root.evaluate(values)
        except KeyError as e:
            raise ExpressionError(self.source, f"unknown parameter '{e.args[0]}'")
        except (ArithmeticError, ValueError, TypeError) as e:
            raise ExpressionError(self.source, str(e) or type(e).__name__)
        except RecursionError:
            raise ExpressionError(self.source, "expression is nested too deeply")
        if not math.isfinite(result):
            raise ExpressionError(self.source, f"result is not a finite number ({result})")
        return result


def _convert(node: ast.AST, source: str) -> Any:
    """Turn a Python AST node into an expression tree node."""
    if isinstance(node, ast.Expression):
        return _convert(node.body, source)

    if isinstance(node, ast.Constant):
        if isinstance(node.value, (int, float)) and not isinstance(node.value, bool):
            return Literal(float(node.value))
        raise ExpressionError(source, f"unsupported literal {node.value!r}")

    if isinstance(node, ast.UnaryOp) and isinstance(node.op, (ast.UAdd, ast.USub)):
        op = "-" if isinstance(node.op, ast.USub) else "+"
        return UnaryOp(op, _convert(node.operand, source))

    if isinstance(node, ast.BinOp) and type(node.op) in _BINARY_OPS:
        symbol = _BINARY_OPS[type(node.op)][0]
        return BinaryOp(symbol, _convert(node.left, source), _convert(node.right, source))

    if isinstance(node, ast.Attribute) and isinstance(node.value, ast.Name):
        owner = node.value.id
        if owner == "params":
            return ParamRef(node.attr)
        if owner == "Math" and node.attr in MATH_CONSTANTS:
            return Constant(node.attr)
        raise ExpressionError(source, f"unknown name '{owner}.{node.attr}'")

    if isinstance(node, ast.Call):
        func = node.func
        if not (
            isinstance(func, ast.Attribute)
            and isinstance(func.value, ast.Name)
            and func.value.id == "Math"
            and func.attr in MATH_FUNCTIONS
        ):
            raise ExpressionError(source, "only Math functions may be called")
        if node.keywords:
            raise ExpressionError(source, f"Math.{func.attr} takes no keyword arguments")
        _, min_args, max_args = MATH_FUNCTIONS[func.attr]
        count = len(node.args)
        if count < min_args or (max_args is not None and count > max_args):
            raise ExpressionError(source, f"wrong number of arguments for Math.{func.attr}")
        return Call(func.attr, tuple(_convert(arg, source) for arg in node.args))

    raise ExpressionError(source, f"unsupported syntax ({type(node).__name__})")


@lru_cache(maxsize=2048)
def compile_expression(source: str) -> CompiledExpression:
    """Parse an expression string into a compiled tree.

    Raises:
        ExpressionError: the text is not inside the arithmetic grammar
    """
    text = source.strip()
    if not text:
        raise ExpressionError(source, "empty expression")
    try:
        tree = ast.parse(text, mode="eval")
    except SyntaxError as e:
        raise ExpressionError(source, f"syntax error: {e.msg}")
    except (RecursionError, MemoryError):
        raise ExpressionError(source, "expression is nested too deeply")

    try:
        root = _convert(tree, source)
        refs = tuple(dict.fromkeys(root.references()))
    except RecursionError:
        raise ExpressionError(source, "expression is nested too deeply")
    return CompiledExpression(source=text, root=root, references=refs)


def _parse_number(text: str) -> Optional[float]:
    """Float value of a bare numeric literal, None otherwise."""
    if _NUMBER_RE.match(text):
        return float(text)
    return None


# --- Public operations ---

def evaluate_expression(expr: ExpressionSource, params: Optional[Mapping[str, float]] = None) -> float:
    """Evaluate a literal or expression to a number.

    Never raises: malformed expressions, unknown parameters, arithmetic
    faults and non-finite results all log a warning and return 0.

    Args:
        expr: number, numeric string, or expression string
        params: parameter name -> numeric value

    Returns:
        Evaluated value
    """
    if isinstance(expr, (int, float)) and not isinstance(expr, bool):
        value = float(expr)
        if math.isfinite(value):
            return value
        logger.warning("Non-finite literal replaced by 0", expression=expr)
        return 0.0

    text = str(expr).strip()
    if not text:
        return 0.0

    literal = _parse_number(text)
    if literal is not None:
        return literal

    try:
        return compile_expression(text).evaluate(params or {})
    except ExpressionError as e:
        logger.warning(
            "Expression evaluation failed, using 0",
            expression=text,
            reason=e.reason,
        )
        return 0.0


def evaluate_batch(
    expressions: Mapping[str, ExpressionSource],
    params: Optional[Mapping[str, float]] = None,
) -> Dict[str, float]:
    """Evaluate every entry of a name -> expression mapping.

    Example:
        >>> evaluate_batch({"x": "params.width * 0.5", "y": 10}, {"width": 100})
        {'x': 50.0, 'y': 10.0}
    """
    return {key: evaluate_expression(expr, params) for key, expr in expressions.items()}


def validate_expression(expr: ExpressionSource, available_params: List[str]) -> ExpressionValidation:
    """Check an expression without real parameter values.

    Every ``params.<name>`` must name an available parameter, only the
    arithmetic character set may appear, and the expression must compile and
    evaluate with every available parameter set to 1. Arithmetic faults at
    those placeholder values (say a division by ``params.a - 1``) do not make
    the expression invalid.
    """
    if isinstance(expr, (int, float)) and not isinstance(expr, bool):
        return ExpressionValidation(valid=True)

    text = str(expr).strip()
    if _parse_number(text) is not None:
        return ExpressionValidation(valid=True)

    available = set(available_params)
    for name in _PARAM_REF_RE.findall(text):
        if name not in available:
            return ExpressionValidation(valid=False, error=f"Parameter not found: {name}")

    if not _ALLOWED_CHARS_RE.match(text):
        return ExpressionValidation(valid=False, error="Expression contains characters that are not allowed")

    try:
        compiled = compile_expression(text)
    except ExpressionError as e:
        return ExpressionValidation(valid=False, error=f"Syntax error: {e.reason}")

    placeholders = {name: 1.0 for name in available}
    try:
        compiled.root.evaluate(placeholders)
    except (ArithmeticError, ValueError):
        pass
    except RecursionError:
        return ExpressionValidation(valid=False, error="Syntax error: expression is nested too deeply")
    return ExpressionValidation(valid=True)


def expression_references(expr: ExpressionSource) -> List[str]:
    """Parameter names an expression refers to, in first-use order.

    Falls back to a textual scan when the expression does not compile, so a
    cycle through a malformed definition is still seen.
    """
    if not isinstance(expr, str):
        return []
    text = expr.strip()
    if not text or _parse_number(text) is not None:
        return []
    try:
        return list(compile_expression(text).references)
    except ExpressionError:
        return list(dict.fromkeys(_PARAM_REF_RE.findall(text)))


def _dependency_graph(definitions: Mapping[str, ExpressionSource]) -> Dict[str, List[str]]:
    return {name: expression_references(expr) for name, expr in definitions.items()}


def detect_circular_dependencies(definitions: Mapping[str, ExpressionSource]) -> CycleReport:
    """Find a cycle in parameter definitions.

    Depth-first search with an explicit stack and three-colour marking, so
    each parameter and each reference is visited once. References to names
    that are not defined are ignored here (``validate_expression`` reports
    them).

    Example:
        >>> detect_circular_dependencies({"a": "params.b + 1", "b": "params.a + 1"}).cycle
        ['a', 'b', 'a']
    """
    graph = _dependency_graph(definitions)
    white, grey, black = 0, 1, 2
    color = {name: white for name in graph}

    for root in graph:
        if color[root] != white:
            continue
        color[root] = grey
        path = [root]
        stack = [iter(graph[root])]
        while stack:
            for neighbor in stack[-1]:
                state = color.get(neighbor)
                if state is None or state == black:
                    continue
                if state == grey:
                    start = path.index(neighbor)
                    cycle = path[start:] + [neighbor]
                    logger.info("Circular parameter dependency", cycle=cycle)
                    return CycleReport(circular=True, cycle=cycle)
                color[neighbor] = grey
                path.append(neighbor)
                stack.append(iter(graph[neighbor]))
                break
            else:
                color[path.pop()] = black
                stack.pop()

    return CycleReport(circular=False)


def resolve_parameters(definitions: Mapping[str, ExpressionSource]) -> Dict[str, float]:
    """Evaluate a parameter table whose entries may reference each other.

    Raises:
        CircularDependencyError: the definitions contain a cycle
    """
    report = detect_circular_dependencies(definitions)
    if report.circular:
        raise CircularDependencyError(report.cycle or [])

    graph = _dependency_graph(definitions)
    order = TopologicalSorter(
        {name: [ref for ref in refs if ref in graph] for name, refs in graph.items()}
    ).static_order()

    values: Dict[str, float] = {}
    for name in order:
        values[name] = evaluate_expression(definitions[name], values)
    return values


def trace_evaluation(expr: ExpressionSource, params: Mapping[str, float]) -> Dict[str, Any]:
    """Step-by-step account of an evaluation, for debugging templates."""
    refs = expression_references(expr)
    substitutions = {name: params.get(name) for name in refs}
    trace: Dict[str, Any] = {
        "expression": expr,
        "substitutions": substitutions,
        "missing": [name for name in refs if name not in params],
        "result": evaluate_expression(expr, params),
    }
    if isinstance(expr, str):
        try:
            compile_expression(expr)
        except ExpressionError as e:
            trace["error"] = e.reason
    return trace
