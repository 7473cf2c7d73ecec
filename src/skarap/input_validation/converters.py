"""Converters for arguments."""

import itertools
from functools import wraps
from inspect import isclass, signature
from types import UnionType
from typing import Union, get_args, get_origin, get_type_hints

import jaxtyping
import numpy as np
import torch

from ..globals import float_dtype, int_dtype


def detect_array_dtypes(t):
    """List the dtypes a jaxtyping annotation pins a tensor to."""
    if get_origin(t) in [Union, UnionType]:
        # If type is a Union, we iterate through the types
        # and return a list of acceptable dtypes, without duplicates
        return list(
            set(
                itertools.chain(*[detect_array_dtypes(a) for a in get_args(t)])
            )
        )

    # We only bother converting to the two dtypes used by the solver.
    # Vaguer annotations (e.g. "Float") are not affected.
    elif isclass(t) and issubclass(t, jaxtyping.AbstractArray):
        if len(t.dtypes) == 1 and t.dtypes[0] in ["float64", "int64"]:
            return list(t.dtypes)
        else:
            return []

    else:
        return []


def closest_dtype(dtype, target_dtypes):
    """Pick the target dtype matching the kind (float or int) of dtype."""
    if target_dtypes == ["float64"]:
        return float_dtype
    elif target_dtypes == ["int64"]:
        return int_dtype
    elif sorted(target_dtypes) == ["float64", "int64"]:
        if dtype.is_floating_point:
            return float_dtype
        elif dtype in [torch.int8, torch.int16, torch.int32, torch.int64]:
            return int_dtype
        else:
            return dtype
    else:
        msg = f"Unsupported target dtype: {target_dtypes}"
        raise NotImplementedError(msg)


def convert_inputs(func):
    """Convert array-like arguments to tensors of the annotated dtype.

    Lists, tuples, NumPy arrays and tensors of another dtype passed for a
    parameter annotated with a Float64 / Int64 jaxtyping type are converted
    before the call, so that the typechecker sees the expected dtype.
    """

    @wraps(func)
    def wrapper(*args, **kwargs):
        sig = signature(func)
        bound_args = sig.bind(*args, **kwargs)
        bound_args.apply_defaults()

        for param_name, param_type in get_type_hints(func).items():

            if param_name in bound_args.arguments:

                target_dtypes = detect_array_dtypes(param_type)
                if target_dtypes:  # is not []

                    value = bound_args.arguments[param_name]

                    if isinstance(value, list | tuple):
                        value = np.asarray(value)

                    if isinstance(value, np.ndarray):
                        value = torch.from_numpy(np.ascontiguousarray(value))

                    if isinstance(value, torch.Tensor):
                        if torch.is_complex(value):
                            msg = "Complex tensors are not supported"
                            raise ValueError(msg)

                        dtype = closest_dtype(value.dtype, target_dtypes)
                        bound_args.arguments[param_name] = value.to(
                            dtype=dtype
                        )
                    # Other types of "value" (e.g. None) are not converted

        return func(*bound_args.args, **bound_args.kwargs)

    return wrapper
