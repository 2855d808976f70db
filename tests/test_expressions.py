"""Unit tests for the expression evaluator."""

import math
import pytest

from orthosketch.exceptions import CircularDependencyError, ExpressionError
from orthosketch.services.expressions import (
    compile_expression,
    detect_circular_dependencies,
    evaluate_batch,
    evaluate_expression,
    expression_references,
    resolve_parameters,
    trace_evaluation,
    validate_expression,
)


class TestEvaluateExpression:
    """Tests for evaluate_expression."""

    @pytest.mark.parametrize("value", [0, 1, -3, 2.5, 1e6, -0.125])
    def test_literal_identity(self, value):
        """Test that literal numbers evaluate to themselves."""
        assert evaluate_expression(value, {}) == value

    def test_numeric_string(self):
        """Test that a bare numeric string is parsed directly."""
        assert evaluate_expression("12.5") == 12.5
        assert evaluate_expression(" -4 ") == -4.0

    def test_parameter_reference(self):
        """Test substitution of a parameter."""
        assert evaluate_expression("params.longitud * 0.5", {"longitud": 80}) == 40.0

    def test_name_prefix_safety(self):
        """Test that a name is never matched as a prefix of a longer one."""
        params = {"ancho": 50, "ancho_base": 60}
        assert evaluate_expression("params.ancho_base", params) == 60
        assert evaluate_expression("params.ancho", params) == 50
        assert evaluate_expression("params.ancho_base - params.ancho", params) == 10

    def test_operator_precedence(self):
        """Test arithmetic precedence and parentheses."""
        assert evaluate_expression("2 + 3 * 4") == 14
        assert evaluate_expression("(2 + 3) * 4") == 20
        assert evaluate_expression("-params.a + 1", {"a": 3}) == -2

    def test_idempotence(self):
        """Test that re-evaluating a result as a literal gives the same value."""
        params = {"a": 7, "b": 3}
        value = evaluate_expression("params.a / params.b", params)
        assert evaluate_expression(value, {}) == value

    def test_math_functions(self):
        """Test allow-listed Math functions and constants."""
        assert evaluate_expression("Math.sqrt(params.a)", {"a": 16}) == 4.0
        assert evaluate_expression("Math.pow(2, 3)") == 8.0
        assert evaluate_expression("Math.max(1, 5, 3)") == 5.0
        assert evaluate_expression("Math.min(4)") == 4.0
        assert evaluate_expression("Math.abs(-2)") == 2.0
        assert evaluate_expression("Math.PI") == pytest.approx(math.pi)
        assert evaluate_expression("Math.hypot(3, 4)") == 5.0

    def test_math_round_half_up(self):
        """Test that Math.round rounds halves toward +infinity."""
        assert evaluate_expression("Math.round(2.5)") == 3.0
        assert evaluate_expression("Math.round(-2.5)") == -2.0

    @pytest.mark.parametrize("expression", [
        "params.missing * 2",
        "1 / 0",
        "params.a +",
        "__import__('os')",
        "Math.sqrt(-1)",
        "Math.sqrt(1, 2)",
        "open('file')",
        "params.a ** 2",
        "",
    ])
    def test_invalid_evaluates_to_zero(self, expression):
        """Test that malformed or failing expressions give 0."""
        assert evaluate_expression(expression, {"a": 2}) == 0.0

    def test_non_finite_literal(self):
        """Test that infinity and NaN are replaced by 0."""
        assert evaluate_expression(float("inf")) == 0.0
        assert evaluate_expression(float("nan")) == 0.0

    def test_long_flat_sum_is_zero(self):
        """Test that an expression too long to compile evaluates to 0."""
        source = "+".join(["1"] * 1200)
        assert evaluate_expression(source, {}) == 0.0
        check = validate_expression(source, [])
        assert not check.valid
        assert "nested too deeply" in check.error

    def test_overflow_is_zero(self):
        """Test that a non-finite result is replaced by 0."""
        assert evaluate_expression("Math.exp(1000)") == 0.0

    def test_batch(self):
        """Test evaluating several named expressions."""
        result = evaluate_batch({"x": "params.width * 0.5", "y": 10}, {"width": 100})
        assert result == {"x": 50.0, "y": 10.0}


class TestCompileExpression:
    """Tests for compile_expression."""

    def test_references_in_first_use_order(self):
        """Test that references are collected once each."""
        compiled = compile_expression("params.a + params.b * params.a")
        assert compiled.references == ("a", "b")

    def test_evaluate_strict_unknown_parameter(self):
        """Test that strict evaluation raises on a missing parameter."""
        with pytest.raises(ExpressionError) as exc_info:
            compile_expression("params.q + 1").evaluate({})
        assert "unknown parameter 'q'" in exc_info.value.reason

    def test_rejects_attribute_access(self):
        """Test that arbitrary attributes are refused."""
        with pytest.raises(ExpressionError):
            compile_expression("Math.__class__")

    def test_rejects_wrong_arity(self):
        """Test that function arity is checked at compile time."""
        with pytest.raises(ExpressionError) as exc_info:
            compile_expression("Math.atan2(1)")
        assert "wrong number of arguments" in exc_info.value.reason

    def test_rejects_empty(self):
        """Test that a blank expression does not compile."""
        with pytest.raises(ExpressionError):
            compile_expression("   ")

    def test_long_flat_sum(self):
        """Test that a very long sum is rejected rather than overflowing the stack."""
        with pytest.raises(ExpressionError) as exc_info:
            compile_expression("+".join(["1"] * 1200))
        assert "nested too deeply" in exc_info.value.reason

    def test_cached(self):
        """Test that the same text compiles to the same object."""
        assert compile_expression("params.a * 2") is compile_expression("params.a * 2")


class TestValidateExpression:
    """Tests for validate_expression."""

    def test_valid(self):
        """Test a well-formed expression over known parameters."""
        result = validate_expression("params.w * 0.5 + 2", ["w"])
        assert result.valid
        assert result.error is None

    def test_literal_is_valid(self):
        """Test that numbers are always valid."""
        assert validate_expression(3, []).valid
        assert validate_expression("3.5", []).valid

    def test_unknown_parameter(self):
        """Test that an unknown reference is named."""
        result = validate_expression("params.x + params.w", ["w"])
        assert not result.valid
        assert result.error == "Parameter not found: x"

    def test_forbidden_characters(self):
        """Test that characters outside the arithmetic set are refused."""
        result = validate_expression("params.w; 1", ["w"])
        assert not result.valid
        assert "not allowed" in result.error

    def test_syntax_error(self):
        """Test that an incomplete expression is a syntax error."""
        result = validate_expression("params.w +", ["w"])
        assert not result.valid
        assert result.error.startswith("Syntax error")

    def test_non_math_call(self):
        """Test that calling anything but Math is a syntax error."""
        result = validate_expression("foo(1)", [])
        assert not result.valid
        assert result.error.startswith("Syntax error")

    def test_placeholder_division_by_zero_is_valid(self):
        """Test that faults at placeholder values do not invalidate."""
        assert validate_expression("params.w / (params.w - 1)", ["w"]).valid


class TestCircularDependencies:
    """Tests for detect_circular_dependencies and resolve_parameters."""

    def test_no_cycle(self):
        """Test an acyclic table."""
        report = detect_circular_dependencies({"a": 10, "b": "params.a * 2", "c": "params.b + params.a"})
        assert report.circular is False
        assert report.cycle is None

    def test_two_parameter_cycle(self):
        """Test a mutual reference."""
        report = detect_circular_dependencies({"a": "params.b+1", "b": "params.a+1"})
        assert report.circular is True
        assert report.cycle == ["a", "b", "a"]

    def test_self_reference(self):
        """Test a parameter referencing itself."""
        report = detect_circular_dependencies({"a": "params.a * 2"})
        assert report.cycle == ["a", "a"]

    def test_longer_cycle_after_acyclic_prefix(self):
        """Test that the cycle is reported without the path leading into it."""
        report = detect_circular_dependencies({
            "root": "params.x",
            "x": "params.y",
            "y": "params.z",
            "z": "params.x",
        })
        assert report.circular
        assert report.cycle == ["x", "y", "z", "x"]

    def test_undefined_reference_ignored(self):
        """Test that references to undefined names are not cycles."""
        assert not detect_circular_dependencies({"a": "params.nope"}).circular

    def test_malformed_definition_still_scanned(self):
        """Test that a cycle through a malformed definition is found."""
        report = detect_circular_dependencies({"a": "params.b +", "b": "params.a"})
        assert report.circular

    def test_resolve_in_dependency_order(self):
        """Test resolving definitions that reference each other."""
        values = resolve_parameters({"b": "params.a * 2", "c": "params.b + 1", "a": 10})
        assert values == {"a": 10.0, "b": 20.0, "c": 21.0}

    def test_resolve_cycle_raises(self):
        """Test that a cyclic table cannot be resolved."""
        with pytest.raises(CircularDependencyError) as exc_info:
            resolve_parameters({"a": "params.b", "b": "params.a"})
        assert set(exc_info.value.cycle) == {"a", "b"}


class TestTraceEvaluation:
    """Tests for trace_evaluation and expression_references."""

    def test_trace_lists_missing(self):
        """Test that missing parameters are reported."""
        trace = trace_evaluation("params.a + params.z", {"a": 1})
        assert trace["substitutions"] == {"a": 1, "z": None}
        assert trace["missing"] == ["z"]
        assert trace["result"] == 0.0
        assert "error" not in trace

    def test_trace_reports_compile_error(self):
        """Test that a syntax problem is explained."""
        trace = trace_evaluation("params.a *", {"a": 1})
        assert "error" in trace

    def test_references_of_literal(self):
        """Test that literals reference nothing."""
        assert expression_references(5) == []
        assert expression_references("5") == []
