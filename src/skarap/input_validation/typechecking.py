"""Runtime type checking of the annotated functions."""

from beartype import beartype
from jaxtyping import jaxtyped


def typecheck(func):
    """Check the arguments and the return value of a function at runtime.

    Shapes and dtypes are read from the jaxtyping annotations (e.g.
    `Points3d`, `Rotations`) and checked by beartype. Named dimensions are
    bound for the duration of a call, so that two arguments annotated with
    the same dimension name must agree.

    Parameters
    ----------
    func
        The function to decorate.

    Returns
    -------
    callable
        The decorated function.
    """
    return jaxtyped(typechecker=beartype)(func)
