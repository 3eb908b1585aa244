import argparse
import json
import logging
import math
import sys
from pathlib import Path
from typing import List, Optional, Sequence, Tuple

import numpy as np

from paramfit import (
    ExpressionModel,
    FitEngine,
    FitLibrary,
    get_fit_options,
    model_from_dict,
    model_to_dict,
)

logger = logging.getLogger(__name__)


def _configure_logging(level: str) -> None:
    log_level = getattr(logging, level.upper(), logging.INFO)
    logging.basicConfig(
        level=log_level,
        format="%(levelname)s:%(name)s:%(message)s",
    )


def _parse_columns(value: str) -> Tuple[int, int]:
    parts = [part.strip() for part in value.split(",") if part.strip()]
    if len(parts) != 2:
        raise argparse.ArgumentTypeError("expected two column indices, e.g. 0,1")
    try:
        return int(parts[0]), int(parts[1])
    except ValueError:
        raise argparse.ArgumentTypeError(f"invalid column indices: {value!r}") from None


def _parse_param(value: str) -> Tuple[str, float]:
    name, sep, number = value.partition("=")
    if not sep or not name.strip():
        raise argparse.ArgumentTypeError(f"expected NAME=VALUE, got {value!r}")
    try:
        return name.strip(), float(number)
    except ValueError:
        raise argparse.ArgumentTypeError(f"invalid value for parameter {name.strip()!r}: {number!r}") from None


def _load_data(path: str, columns: Tuple[int, int], delimiter: Optional[str]) -> Tuple[np.ndarray, np.ndarray]:
    data = np.loadtxt(path, delimiter=delimiter, usecols=columns, ndmin=2, comments="#")
    return data[:, 0], data[:, 1]


def _build_model(args: argparse.Namespace, library: FitLibrary):
    if args.model_file:
        with open(args.model_file) as fin:
            return model_from_dict(json.load(fin))
    if args.expression:
        params: List[Tuple[str, float]] = args.param or []
        model = ExpressionModel("Custom")
        model.set_parameters([name for name, _ in params], [value for _, value in params])
        if not model.set_expression(args.expression, [args.variable]):
            raise ValueError(f"cannot parse expression {args.expression!r}")
        return model
    return library.create(args.model or "Line")


def main(argv: Optional[Sequence[str]] = None) -> None:
    parser = argparse.ArgumentParser(description="Fit a function to two columns of data")
    parser.add_argument("data", nargs="?", help="Path to a text file with the data columns")
    source = parser.add_mutually_exclusive_group()
    source.add_argument("--model", help="Name of a built-in fit (default: Line)")
    source.add_argument("--expression", help="Fit expression, e.g. 'A*exp(-x*B)'")
    source.add_argument("--model-file", help="JSON file holding a saved model")
    parser.add_argument(
        "--param",
        action="append",
        type=_parse_param,
        metavar="NAME=VALUE",
        help="Parameter of --expression and its starting value (repeatable)",
    )
    parser.add_argument("--variable", default="x", help="Independent variable name (default: x)")
    parser.add_argument(
        "--columns",
        type=_parse_columns,
        default=(0, 1),
        help="Zero-based x,y column indices (default: 0,1)",
    )
    parser.add_argument("--delimiter", default=None, help="Column delimiter (default: whitespace)")
    parser.add_argument("--max-iterations", type=int, help="Minimizer iteration budget (default: 20)")
    parser.add_argument("--tolerance", type=float, help="Minimizer tolerance (default: 1e-6)")
    parser.add_argument("--no-autofit", action="store_true", help="Evaluate the model without fitting")
    parser.add_argument("--save-model", help="Write the fitted model to this JSON file")
    parser.add_argument("--list-models", action="store_true", help="List the built-in fits and exit")
    parser.add_argument(
        "--log-level",
        default="INFO",
        help="Logging level (default: INFO)",
    )
    args = parser.parse_args(argv)

    _configure_logging(args.log_level)

    library = FitLibrary()
    if args.list_models:
        for model in library:
            print(f"{model.name}: y = {model.get_expression()}")
        return

    if not args.data:
        parser.error("the data file is required unless --list-models is given")

    try:
        x, y = _load_data(args.data, args.columns, args.delimiter)
    except (OSError, ValueError) as exc:
        logger.error("Cannot read data from %s: %s", args.data, exc)
        raise SystemExit(1)
    logger.info("Loaded %d point(s) from %s", x.size, args.data)

    try:
        model = _build_model(args, library)
    except (OSError, KeyError, ValueError) as exc:
        logger.error("Cannot build model: %s", exc)
        raise SystemExit(1)

    options = get_fit_options()
    if args.max_iterations is not None:
        options.max_iterations = args.max_iterations
    if args.tolerance is not None:
        options.tolerance = args.tolerance
    options.autofit = not args.no_autofit

    engine = FitEngine(model, options)
    result = engine.fit(model, x, y)

    if model.kind == "expression":
        equation = model.get_full_expression()
    else:
        equation = model.get_expression(args.variable)
    print(f"Model: {model.name}")
    print(f"y = {equation}")
    print("Parameters:")
    for i in range(model.parameter_count):
        line = f"  {model.parameter_name(i)} = {model.parameter_value(i):.6g}"
        uncertainty = engine.uncertainty_string(i)
        if uncertainty:
            line += f" {uncertainty}"
        print(line)

    if result.status == "no_data":
        print("RMS deviation: no data")
    elif result.status == "undefined":
        print("RMS deviation: undefined")
    else:
        print(f"RMS deviation: {result.rms_deviation:.3E}")
    if not math.isnan(engine.correlation):
        print(f"r^2: {engine.correlation:.6f}")
    if result.autofit_failed:
        logger.warning("Autofit could not improve the fit; starting parameters kept")

    if args.save_model:
        output_path = Path(args.save_model)
        output_path.parent.mkdir(parents=True, exist_ok=True)
        output_path.write_text(json.dumps(model_to_dict(model), indent=2), encoding="utf-8")
        logger.info("Wrote model to %s", output_path)


if __name__ == "__main__":
    main(sys.argv[1:])
