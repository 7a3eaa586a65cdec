"""6-DoF rocket powered landing dynamics

Non-dimensional model from Szmuk & Acikmese, "Successive Convexification for
6-DoF Mars Rocket Powered Landing with Free-Final-Time" (AIAA SciTech 2018).
The inertial x-axis points up.

State: `x = [m, r_I (3), v_I (3), q_B_I (4, scalar first), w_B (3)]`
Control: `u = T_B (3)`, thrust in the body frame
"""

import numpy as np
from numba import njit

from ._model import DynamicsModel, linear_interpolation
from .._conic import Derived, norm2
from .._misc import euler_to_quat


@njit
def _skew(v):
    S = np.zeros((3,3))
    S[0,1] = -v[2]
    S[0,2] = v[1]
    S[1,0] = v[2]
    S[1,2] = -v[0]
    S[2,0] = -v[1]
    S[2,1] = v[0]
    return S


@njit
def _dcm(q):
    """Body-to-inertial rotation matrix, homogeneous in `q`"""
    s = q[0]
    v = q[1:4].copy()
    C =(s**2 - np.dot(v, v)) * np.eye(3) + 2 * np.outer(v, v) + 2 * s * _skew(v)
    return C


@njit
def rhs_rocket6dof(x, u, alpha_m, g_I, J_B, J_B_inv, r_T_B):
    """Equations of motion of the 6-DoF rocket"""
    dx = np.zeros(14)
    m = x[0]
    q = x[7:11].copy()
    qv = x[8:11].copy()
    w = x[11:14].copy()
    dx[0] = -alpha_m * np.sqrt(np.dot(u, u))
    dx[1:4] = x[4:7]
    dx[4:7] = np.dot(_dcm(q), u) / m + g_I
    dx[7] = -0.5 * np.dot(qv, w)
    dx[8:11] = 0.5 * (q[0] * w + np.dot(_skew(qv), w))
    dx[11:14] = np.dot(J_B_inv, np.dot(_skew(r_T_B), u) - np.dot(_skew(w), np.dot(J_B, w)))
    return dx


@njit
def state_jacobian_rocket6dof(x, u, alpha_m, g_I, J_B, J_B_inv, r_T_B):
    """Jacobian of `rhs_rocket6dof` w.r.t. the state"""
    A = np.zeros((14,14))
    m = x[0]
    s = x[7]
    v = x[8:11].copy()
    w = x[11:14].copy()
    CT = np.dot(_dcm(x[7:11].copy()), u)
    dCT_ds = 2 * s * u + 2 * np.dot(_skew(v), u)
    dCT_dv = -2 * np.outer(u, v) + 2 * np.dot(v, u) * np.eye(3) + 2 * np.outer(v, u) - 2 * s * _skew(u)

    A[1:4,4:7] = np.eye(3)
    A[4:7,0] = -CT / m**2
    A[4:7,7] = dCT_ds / m
    A[4:7,8:11] = dCT_dv / m

    A[7,8:11] = -0.5 * w
    A[8:11,7] = 0.5 * w
    A[8:11,8:11] = -0.5 * _skew(w)
    A[7,11:14] = -0.5 * v
    A[8:11,11:14] = 0.5 * (s * np.eye(3) + _skew(v))

    A[11:14,11:14] = -np.dot(J_B_inv, np.dot(_skew(w), J_B) - _skew(np.dot(J_B, w)))
    return A


@njit
def control_jacobian_rocket6dof(x, u, alpha_m, g_I, J_B, J_B_inv, r_T_B):
    """Jacobian of `rhs_rocket6dof` w.r.t. the thrust"""
    B = np.zeros((14,3))
    T_norm = np.sqrt(np.dot(u, u))
    if T_norm > 1e-12:
        B[0,:] = -alpha_m * u / T_norm
    B[4:7,:] = _dcm(x[7:11].copy()) / x[0]
    B[11:14,:] = np.dot(J_B_inv, _skew(r_T_B))
    return B


class Rocket6DoF(DynamicsModel):
    """6-DoF powered landing of a gimbaled rocket

    Default parameters are non-dimensional, scaled from a 30 t vehicle.

    Args:
        x_init (np.array): initial state; drawn from `rng` if given, else a fixed nominal state
        rng (np.random.Generator): random generator for the initial state
        m_wet (float): initial mass
        m_dry (float): dry mass
        t_f_guess (float): initial guess of the flight time
        T_min (float): minimum thrust magnitude
        T_max (float): maximum thrust magnitude
        max_gimbal (float): maximum gimbal angle, in degrees
        max_angle (float): maximum tilt angle, in degrees
        glideslope_angle (float): glide slope cone half-angle measured from the ground, in degrees
        w_B_max (float): maximum angular rate, in degrees per unit time
        alpha_m (float): fuel consumption coefficient
        J_B (np.array): inertia tensor
        r_T_B (np.array): position of the thrust point w.r.t. the center of mass
        g_I (np.array): gravity vector
        maximize_final_mass (bool): whether to add `-m(t_f)` to the objective
    """
    n_states = 14
    n_inputs = 3

    def __init__(
        self,
        x_init = None,
        rng = None,
        m_wet: float = 3.0,
        m_dry: float = 2.2,
        t_f_guess: float = 10.0,
        T_min: float = 0.3,
        T_max: float = 5.0,
        max_gimbal: float = 20.0,
        max_angle: float = 90.0,
        glideslope_angle: float = 20.0,
        w_B_max: float = 60.0,
        alpha_m: float = 0.01,
        J_B = None,
        r_T_B = (-1e-2, 0.0, 0.0),
        g_I = (-1.0, 0.0, 0.0),
        maximize_final_mass: bool = False,
    ):
        self.m_wet = m_wet
        self.m_dry = m_dry
        self.t_f_guess = t_f_guess
        self.T_min = T_min
        self.T_max = T_max
        self.tan_delta_max = np.tan(np.deg2rad(max_gimbal))
        self.cos_theta_max = np.cos(np.deg2rad(max_angle))
        self.tan_gamma_gs = np.tan(np.deg2rad(glideslope_angle))
        self.w_B_max = np.deg2rad(w_B_max)
        self.alpha_m = alpha_m
        self.J_B = 1e-2 * np.eye(3) if J_B is None else np.array(J_B, dtype=float)
        self.J_B_inv = np.linalg.inv(self.J_B)
        self.r_T_B = np.array(r_T_B, dtype=float)
        self.g_I = np.array(g_I, dtype=float)
        self.maximize_final_mass = maximize_final_mass

        if x_init is None:
            x_init = self.initial_state(rng)
        self.x_init = np.array(x_init, dtype=float)
        assert self.x_init.shape == (self.n_states,), f"x_init must be of length {self.n_states}, but got {self.x_init.shape}"
        self.x_final = np.concatenate((
            [self.m_dry],
            [0.0, 0.0, 0.0],            # r_I
            [-1e-1, 0.0, 0.0],          # v_I
            euler_to_quat((0, 0, 0)),   # q_B_I
            [0.0, 0.0, 0.0],            # w_B
        ))
        return

    def initial_state(self, rng=None):
        """Initial state, randomized when `rng` is given"""
        if rng is None:
            r_I = np.array([4.0, 2.0, 1.0])
            v_I = np.array([-0.75, -0.5, -0.25])
            q_B_I = euler_to_quat((0, 10, 10))
            w_B = np.zeros(3)
        else:
            r_I = np.array([rng.uniform(3, 4), rng.uniform(-2, 2), rng.uniform(-2, 2)])
            v_I = np.array([rng.uniform(-1, -0.5), r_I[1] * rng.uniform(-0.5, -0.2), r_I[2] * rng.uniform(-0.5, -0.2)])
            q_B_I = euler_to_quat((0, rng.uniform(-30, 30), rng.uniform(-30, 30)))
            w_B = np.deg2rad(np.array([0, rng.uniform(-20, 20), rng.uniform(-20, 20)]))
        return np.concatenate(([self.m_wet], r_I, v_I, q_B_I, w_B))

    def _args(self, x, u):
        return (
            np.ascontiguousarray(x, dtype=np.float64),
            np.ascontiguousarray(u, dtype=np.float64),
            self.alpha_m, self.g_I, self.J_B, self.J_B_inv, self.r_T_B,
        )

    def ode(self, x, u):
        return rhs_rocket6dof(*self._args(x, u))

    def state_jacobian(self, x, u):
        return state_jacobian_rocket6dof(*self._args(x, u))

    def control_jacobian(self, x, u):
        return control_jacobian_rocket6dof(*self._args(x, u))

    def initialize(self, K):
        """Straight-line guess with level attitude and thrust balancing gravity"""
        X = linear_interpolation(self.x_init, self.x_final, K)
        X[:,7:11] = np.array([1.0, 0.0, 0.0, 0.0])
        U = X[:,0:1] * -self.g_I
        return X, U

    def total_time_guess(self):
        return self.t_f_guess

    def add_application_constraints(self, program, K):
        X = program.variable_refs("X")
        U = program.variable_refs("U")

        # boundary conditions; initial attitude is free, final mass is free
        for i in [0, 1, 2, 3, 4, 5, 6, 11, 12, 13]:
            program.add_constraint(X[0,i] == self.x_init[i])
        for i in range(1, self.n_states):
            program.add_constraint(X[K-1,i] == self.x_final[i])
        program.add_constraint(U[K-1,1] == 0.0)
        program.add_constraint(U[K-1,2] == 0.0)

        sin_half_theta_max = np.sqrt((1 - self.cos_theta_max) / 2)
        for k in range(K):
            # state constraints
            program.add_constraint(X[k,0] >= self.m_dry)
            program.add_constraint(norm2(X[k,2:4]) <= X[k,1] / self.tan_gamma_gs)
            program.add_constraint(norm2(X[k,9:11]) <= sin_half_theta_max)
            program.add_constraint(norm2(X[k,11:14]) <= self.w_B_max)

            # control constraints
            program.add_constraint(norm2(U[k,1:3]) <= self.tan_delta_max * U[k,0])
            program.add_constraint(norm2(U[k,:]) <= self.T_max)

            # minimum thrust, linearized about the reference thrust direction
            program.add_constraint(
                sum(Derived(_ThrustDirection(k, j), name=f"U_ref_dir[{k},{j}]") * U[k,j] for j in range(3)) >= self.T_min
            )

        if self.maximize_final_mass:
            program.add_objective_term(-1.0, X[K-1,0])
        return


class _ThrustDirection:
    """Component `j` of the unit reference thrust at sample `k`; body x-axis when the reference thrust vanishes"""
    def __init__(self, k, j):
        self.k = k
        self.j = j

    def __call__(self, values):
        u_ref = values["U_ref"][self.k]
        u_norm = np.linalg.norm(u_ref)
        if u_norm < 1e-6:
            return 1.0 if self.j == 0 else 0.0
        return u_ref[self.j] / u_norm
