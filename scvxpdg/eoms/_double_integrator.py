"""One-dimensional double integrator"""

import numpy as np

from ._linear import LinearModel


class DoubleIntegrator(LinearModel):
    """Double integrator `x1' = x2`, `x2' = u` with a bounded control

    The minimum-time transfer from rest at `x1 = 1` to rest at the origin with
    `|u| <= 1` takes 2 time units (bang-bang).

    Args:
        x0 (tuple): initial position and velocity
        xf (tuple): final position and velocity
        u_max (float): control bound, unbounded if `None`
        t_guess (float): initial guess of the total time
    """
    def __init__(self, x0=(1.0, 0.0), xf=(0.0, 0.0), u_max=1.0, t_guess=3.0):
        super().__init__(
            M=np.array([[0.0, 1.0], [0.0, 0.0]]),
            N=np.array([[0.0], [1.0]]),
            x0=x0,
            xf=xf,
            t_guess=t_guess,
        )
        self.u_max = u_max
        return

    def add_application_constraints(self, program, K):
        super().add_application_constraints(program, K)
        if self.u_max is not None:
            for k in range(K):
                program.add_constraint(program.var("U", k, 0) <= self.u_max)
                program.add_constraint(program.var("U", k, 0) >= -self.u_max)
        return
