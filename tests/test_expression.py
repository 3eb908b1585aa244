import math

import numpy as np
import pytest

from paramfit import ExpressionModel, PolynomialModel
from paramfit.expression import PLACEHOLDERS, replace_name


def _model(expression, names=(), values=(), variables=("x",), name="f"):
    model = ExpressionModel(name)
    model.set_parameters(list(names), list(values))
    assert model.set_expression(expression, list(variables))
    return model


def test_expression_round_trip_and_evaluation():
    model = _model("A*x+B", ["A", "B"], [2, 1])
    assert model.get_expression() == "A*x+B"
    assert model.expression == "A*" + PLACEHOLDERS[0] + "+B"
    assert model.evaluate(3) == pytest.approx(7.0)


def test_renaming_variable_keeps_canonical_form():
    model = _model("A*x+B", ["A", "B"], [2, 1])
    assert model.get_expression(["t"]) == "A*t+B"
    assert model.get_input_string() == "A*t+B"
    assert model.evaluate(3) == pytest.approx(7.0)


def test_parameter_named_like_function():
    model = _model("x*sin", ["sin"], [2])
    assert model.evaluate(3) == pytest.approx(6.0)
    model.set_expression("sin(x)*sin")
    assert model.evaluate(0.5) == pytest.approx(2 * math.sin(0.5))


def test_variable_inside_function_name_is_not_replaced():
    model = _model("exp(x)+max(x, 2)")
    assert model.get_expression() == "exp(x)+max(x, 2)"
    assert model.evaluate(0) == pytest.approx(3.0)


def test_parameter_containing_variable_name():
    model = _model("ax*x", ["ax"], [3])
    assert model.get_expression() == "ax*x"
    assert model.evaluate(2) == pytest.approx(6.0)


@pytest.mark.parametrize("name", ["xmax", "x_max", "maxx", "exps"])
def test_parameter_spanning_variable_and_function_name(name):
    model = _model(f"A*{name} + x", ["A", name], [2, 3])
    assert model.get_expression() == f"A*{name} + x"
    assert model.evaluate(1) == pytest.approx(7.0)
    assert model.get_expression(["t"]) == f"A*{name} + t"


def test_longer_variable_replaced_first():
    model = _model("x2+x", variables=["x", "x2"])
    assert model.evaluate([1, 10]) == pytest.approx(11.0)
    assert model.get_expression() == "x2+x"


def test_parse_failure_falls_back_to_zero():
    model = _model("A*x", ["A"], [2])
    assert not model.set_expression("A*x+")
    assert model.evaluate(5) == 0.0
    assert model.get_expression() == "0"
    assert model.get_input_string() == "A*x+"


def test_multiple_variables_and_vectorised_evaluation():
    model = _model("k*x*y", ["k"], [2], variables=["x", "y"])
    assert model.evaluate([2, 3]) == pytest.approx(12.0)
    result = model.evaluate_many(np.array([[2.0, 3.0], [1.0, 1.0]]))
    assert result.tolist() == pytest.approx([12.0, 2.0])


def test_too_many_variables():
    model = ExpressionModel("f")
    with pytest.raises(ValueError):
        model.set_expression("a", ["a", "b", "c", "d", "f", "g"])


def test_sub_model_reference_and_full_expression():
    sub = _model("2*x", name="g")
    main = ExpressionModel("f")
    main.set_references([sub])
    assert main.set_expression("g+1", ["x"])
    assert main.evaluate(3) == pytest.approx(7.0)
    assert main.get_full_expression() == "(2*x)+1"


def test_sub_models_share_parameters():
    sub = _model("A*x", ["A"], [1], name="g")
    main = ExpressionModel("f")
    main.set_references([sub])
    main.set_parameters(["A"], [3])
    assert main.set_expression("g", ["x"])
    main.update_reference_parameters()
    assert sub.parameter_value(0) == 3.0
    assert main.evaluate(2) == pytest.approx(6.0)

    main.set_parameter_value(0, 5)
    assert sub.parameter_value(0) == 5.0
    assert main.evaluate(2) == pytest.approx(10.0)


def test_rename_parameter_leaves_longer_names_alone():
    model = _model("a*x+ab", ["a", "ab"], [2, 1])
    assert model.rename_parameter("a", "c") == "c*x+ab"
    assert model.parameter_names == ("c", "ab")
    assert model.evaluate(3) == pytest.approx(7.0)
    assert model.rename_parameter("missing", "z") is None


def test_replace_name_shields_other_names():
    assert replace_name("tan(a)+ab", "a", "b", ["tan", "ab"]) == "tan(b)+ab"


def test_evaluated_to_nan_flag():
    model = _model("sqrt(x)")
    assert math.isnan(model.evaluate(-1))
    assert model.evaluated_to_nan()
    model.evaluate(4)
    assert not model.evaluated_to_nan()


def test_clone_is_independent():
    model = _model("A*x", ["A"], [2])
    copy = model.clone()
    copy.set_parameter_value(0, 10)
    assert model.parameter_value(0) == 2.0
    assert copy.get_expression() == model.get_expression()
    assert copy.evaluate(1) == pytest.approx(10.0)


def test_name_guarded_by_editability():
    model = ExpressionModel("f")
    model.name_editable = False
    model.name = "g"
    assert model.name == "f"


def test_from_polynomial_and_update():
    poly = PolynomialModel([2, 1], name="Line")
    model = ExpressionModel.from_polynomial(poly)
    assert model.get_expression() == "A*x + B"
    assert model.parameter_descriptions == ("slope", "intercept")
    assert model.evaluate(2) == pytest.approx(5.0)

    model.set_parameter_value(0, 3)
    assert model.update_polynomial()
    assert poly.coefficients == [3.0, 1.0]


def test_dict_round_trip_keeps_user_text():
    model = _model("A*exp(-x*B)", ["A", "B"], [1.5, 0.5], name="decay")
    model.description = "decay curve"
    restored = ExpressionModel.from_dict(model.to_dict())
    assert restored.name == "decay"
    assert restored.description == "decay curve"
    assert restored.parameter_values() == (1.5, 0.5)
    assert restored.get_expression() == "A*exp(-x*B)"
    assert restored.evaluate(2) == pytest.approx(model.evaluate(2))
