from .lexer import ExpressionSyntaxError, tokenize
from .parser import RESERVED_NAMES, ParsedExpression, parse
from .expression import ExpressionModel, MAX_VARIABLES, PLACEHOLDERS, replace_name
from .polynomial import PolynomialModel
from .regression import RegressionStats, compute_stats
from .events import ChangeEvent, ChangeSupport
from .parameters import Parameter, ParameterGraph, ParameterNameError
from .fitting import (
    FitAttempt,
    FitEngine,
    FitOptions,
    FitResult,
    deviation_squared,
    fit,
    fit_polynomial,
    get_fit_options,
    hessian_minimize,
    levmar_minimize,
    set_fit_options,
)
from .library import FitLibrary, default_fits, model_from_dict, model_to_dict

__all__ = [
    'ExpressionSyntaxError',
    'tokenize',
    'RESERVED_NAMES',
    'ParsedExpression',
    'parse',
    'ExpressionModel',
    'MAX_VARIABLES',
    'PLACEHOLDERS',
    'replace_name',
    'PolynomialModel',
    'RegressionStats',
    'compute_stats',
    'ChangeEvent',
    'ChangeSupport',
    'Parameter',
    'ParameterGraph',
    'ParameterNameError',
    'FitAttempt',
    'FitEngine',
    'FitOptions',
    'FitResult',
    'deviation_squared',
    'fit',
    'fit_polynomial',
    'get_fit_options',
    'hessian_minimize',
    'levmar_minimize',
    'set_fit_options',
    'FitLibrary',
    'default_fits',
    'model_from_dict',
    'model_to_dict',
]
