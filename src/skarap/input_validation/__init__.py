"""Input validation module

This module contains the input validation decorators used in the library:
`convert_inputs` turns array-likes into tensors of the annotated dtype and
`typecheck` checks the jaxtyping annotations at runtime.

Notes
-----
`convert_inputs` must be applied on top of `typecheck`, so that the
conversion happens before the type check.
"""

from .converters import convert_inputs
from .typechecking import typecheck
