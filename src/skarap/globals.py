"""This modules contains global variables for the skarap package"""

import os
from warnings import warn

import torch

# The solver checks residuals and SO(3) membership at 1e-6, which is out of
# reach in single precision: all floating point tensors are float64.
float_dtype = torch.float64

# int dtype is int64
int_dtype = torch.int64

# Numerical constants of the ADMM solver
matrix_diff_threshold = 1e-6
energy_tolerance = 0.02
perturbation_delta = 1e-3

# default assembly method is "direct_gradient", and can be switched to
# "normal_equations" using the SKARAP_ASSEMBLY environment variable (before
# importing skarap).
admissible_assembly_methods = ["direct_gradient", "normal_equations"]
default_assembly = os.environ.get("SKARAP_ASSEMBLY", "direct_gradient")

if default_assembly not in admissible_assembly_methods:
    warn(
        f"Unknown assembly method {default_assembly}. Possible values are"
        + f" {admissible_assembly_methods}. Using direct_gradient as default.",
        stacklevel=1,
    )
    default_assembly = "direct_gradient"
