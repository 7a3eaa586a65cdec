"""Dynamics model interface consumed by the SCvx core"""

import numpy as np


class DynamicsModel:
    """Base class for vehicle dynamics models

    Subclasses define `n_states` and `n_inputs` and implement the methods below.
    Time is normalized to `[0, 1]`, so `ode()` returns the derivative w.r.t. physical
    time and the propagator scales it by the total time `sigma`.
    """
    n_states = None
    n_inputs = None

    def ode(self, x, u):
        """Right-hand side `f(x, u)` of the equations of motion"""
        raise NotImplementedError("Dynamics model must implement `ode()`!")

    def state_jacobian(self, x, u):
        """Jacobian `df/dx`, shape `(n_states, n_states)`"""
        raise NotImplementedError("Dynamics model must implement `state_jacobian()`!")

    def control_jacobian(self, x, u):
        """Jacobian `df/du`, shape `(n_states, n_inputs)`"""
        raise NotImplementedError("Dynamics model must implement `control_jacobian()`!")

    def initialize(self, K):
        """Initial guess of the trajectory

        Args:
            K (int): number of samples

        Returns:
            (tuple): `K`-by-`n_states` states and `K`-by-`n_inputs` controls
        """
        raise NotImplementedError("Dynamics model must implement `initialize()`!")

    def total_time_guess(self):
        """Initial guess of the total time `sigma`"""
        raise NotImplementedError("Dynamics model must implement `total_time_guess()`!")

    def add_application_constraints(self, program, K):
        """Add boundary conditions and path constraints to a `ConicProgramModel`

        Called once before the program is compiled. The variables `X` (`K`-by-`n_states`)
        and `U` (`K`-by-`n_inputs`) and the parameters `X_ref`, `U_ref` and `sigma_ref`
        are already declared.
        """
        raise NotImplementedError("Dynamics model must implement `add_application_constraints()`!")


def linear_interpolation(x0, xf, K):
    """`K`-by-`len(x0)` array linearly interpolating between `x0` and `xf`"""
    x0 = np.asarray(x0, dtype=float)
    xf = np.asarray(xf, dtype=float)
    alphas = np.linspace(0.0, 1.0, K).reshape(-1, 1)
    return (1 - alphas) * x0 + alphas * xf
