"""Linear time-invariant dynamics"""

import numpy as np

from ._model import DynamicsModel, linear_interpolation


class LinearModel(DynamicsModel):
    """Linear dynamics `f(x, u) = M x + N u`

    Args:
        M (np.array): `n`-by-`n` state matrix
        N (np.array): `n`-by-`m` control matrix
        x0 (np.array): initial state, left free if `None`
        xf (np.array): final state, left free if `None`
        t_guess (float): initial guess of the total time
    """
    def __init__(self, M, N, x0=None, xf=None, t_guess=1.0):
        self.M = np.array(M, dtype=float)
        self.N = np.array(N, dtype=float)
        assert self.M.ndim == 2 and self.M.shape[0] == self.M.shape[1], f"M must be square, but got shape {self.M.shape}"
        assert self.N.ndim == 2 and self.N.shape[0] == self.M.shape[0], \
            f"N must have {self.M.shape[0]} rows, but got shape {self.N.shape}"
        self.n_states, self.n_inputs = self.N.shape
        self.x0 = None if x0 is None else np.array(x0, dtype=float)
        self.xf = None if xf is None else np.array(xf, dtype=float)
        for name, xb in [("x0", self.x0), ("xf", self.xf)]:
            if xb is not None:
                assert xb.shape == (self.n_states,), f"{name} must be of length {self.n_states}, but got {xb.shape}"
        self.t_guess = t_guess
        return

    def ode(self, x, u):
        return self.M @ x + self.N @ u

    def state_jacobian(self, x, u):
        return self.M.copy()

    def control_jacobian(self, x, u):
        return self.N.copy()

    def initialize(self, K):
        x0 = np.zeros(self.n_states) if self.x0 is None else self.x0
        xf = x0 if self.xf is None else self.xf
        return linear_interpolation(x0, xf, K), np.zeros((K, self.n_inputs))

    def total_time_guess(self):
        return self.t_guess

    def add_application_constraints(self, program, K):
        """Fix initial and final states, where given"""
        for i in range(self.n_states):
            if self.x0 is not None:
                program.add_constraint(program.var("X", 0, i) == self.x0[i])
            if self.xf is not None:
                program.add_constraint(program.var("X", K-1, i) == self.xf[i])
        return


class ZeroModel(LinearModel):
    """Trivial dynamics `f(x, u) = 0`"""
    def __init__(self, n_states, n_inputs, t_guess=1.0):
        super().__init__(np.zeros((n_states, n_states)), np.zeros((n_states, n_inputs)), t_guess=t_guess)
        return
