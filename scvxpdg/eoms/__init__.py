"""Equations of motion library"""

from ._model import DynamicsModel, linear_interpolation
from ._linear import LinearModel, ZeroModel
from ._double_integrator import DoubleIntegrator
from ._rocket6dof import (
    Rocket6DoF,
    rhs_rocket6dof,
    state_jacobian_rocket6dof,
    control_jacobian_rocket6dof,
)
