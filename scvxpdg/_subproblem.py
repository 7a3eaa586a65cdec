"""Convex subproblem solved at each SCvx iteration"""

from typing import NamedTuple

import cvxpy as cp
import numpy as np

from ._conic import ConicProgramModel, Derived, norm2
from ._errors import SolverFailedError


class SCvxState(NamedTuple):
    """Reference trajectory of an SCvx iteration

    Attributes:
        X (np.array): `K`-by-`n_states` states
        U (np.array): `K`-by-`n_inputs` controls
        sigma (float): total time
    """
    X: np.ndarray
    U: np.ndarray
    sigma: float


def add_sigma_trust_region(program, sigma="sigma", Delta_sigma="Delta_sigma", sigma_ref="sigma_ref"):
    """Add the trust region `(sigma - sigma_ref)^2 <= Delta_sigma` as a second-order cone

    With `s0 = sigma_ref`, the quadratic bound is equivalent to

    ```
    norm2([-s0 sigma - 0.5 Delta_sigma + (0.5 + 0.5 s0^2), sigma]) <= s0 sigma + 0.5 Delta_sigma + (0.5 - 0.5 s0^2)
    ```

    since the difference of the squared sides is `Delta_sigma - (sigma - s0)^2` and the
    right-hand side is then at least 1/2. The coefficients depending on `s0` are
    re-evaluated from the parameter `sigma_ref` at every solve.

    Args:
        program (ConicProgramModel): program with scalar variables `sigma`, `Delta_sigma` and scalar parameter `sigma_ref`
        sigma (str): name of the total time variable
        Delta_sigma (str): name of the trust region variable
        sigma_ref (str): name of the reference total time parameter
    """
    s = program.var(sigma)
    ds = program.var(Delta_sigma)
    program.parameter_ref(sigma_ref)    # fail early if undeclared
    c1 = Derived(lambda p: -p[sigma_ref], name="-sigma_ref")
    c2 = Derived(lambda p: 0.5 + 0.5 * p[sigma_ref]**2, name="0.5 + 0.5 sigma_ref^2")
    c3 = Derived(lambda p: p[sigma_ref], name="sigma_ref")
    c4 = Derived(lambda p: 0.5 - 0.5 * p[sigma_ref]**2, name="0.5 - 0.5 sigma_ref^2")
    program.add_constraint(
        norm2([c1 * s - 0.5 * ds + c2, 1.0 * s]) <= c3 * s + 0.5 * ds + c4
    )
    return


class SCvxSubproblem:
    """Convex subproblem of free-final-time SCvx

    The program is built and compiled once; each call to `solve()` only updates the
    parameter values from the reference trajectory and its discretization.

    Variables: `X (K,n)`, `U (K,m)`, `nu (K-1,n)`, `norm2_nu`, `sigma`, `Delta_sigma`
    and, if the state/control trust region is enabled, `Delta_xu (K,)`.

    Objective:

    ```
    w_time sigma + w_virtual_control norm2_nu + w_trust_region_sigma Delta_sigma + w_trust_region_xu sum(Delta_xu)
    ```

    Args:
        model (DynamicsModel): dynamics model providing the application constraints
        K (int): number of samples
        weight_time (float): weight on the total time
        weight_virtual_control (float): weight on the virtual control norm
        weight_trust_region_sigma (float): weight on the sigma trust region
        weight_trust_region_xu (float): weight on the state/control trust region, disabled if `None`
        trust_region_radius_xu (float): hard bound on the state/control trust region, if given
        sigma_min (float): lower bound on the total time
        sigma_max (float): upper bound on the total time, if given
        solver (str): cvxpy solver
        verbose_solver (bool): whether to print solver output
    """
    def __init__(
        self,
        model,
        K: int,
        weight_time: float = 1.0,
        weight_virtual_control: float = 1e2,
        weight_trust_region_sigma: float = 1.0,
        weight_trust_region_xu: float = 1e-3,
        trust_region_radius_xu: float = None,
        sigma_min: float = 1e-3,
        sigma_max: float = None,
        solver = cp.CLARABEL,
        verbose_solver: bool = False,
    ):
        assert K >= 2, f"K must be at least 2, but got {K}"
        if trust_region_radius_xu is not None:
            assert weight_trust_region_xu is not None, "trust_region_radius_xu requires the state/control trust region"
        self.model = model
        self.K = K
        self.nx = model.n_states
        self.nu = model.n_inputs
        self.weight_time = weight_time
        self.weight_virtual_control = weight_virtual_control
        self.weight_trust_region_sigma = weight_trust_region_sigma
        self.weight_trust_region_xu = weight_trust_region_xu
        self.trust_region_radius_xu = trust_region_radius_xu
        self.sigma_min = sigma_min
        self.sigma_max = sigma_max
        self.verbose_solver = verbose_solver
        self.program = ConicProgramModel(solver=solver, name="scvx")
        self.cp_status = "not_solved"
        return

    @property
    def trust_region_xu(self):
        return self.weight_trust_region_xu is not None

    def build(self):
        """Declare and compile the convex program"""
        p = self.program
        K, nx, nu = self.K, self.nx, self.nu

        # variables
        p.declare_variable("X", (K,nx))
        p.declare_variable("U", (K,nu))
        p.declare_variable("nu", (K-1,nx))
        p.declare_variable("norm2_nu")
        p.declare_variable("sigma")
        p.declare_variable("Delta_sigma")
        if self.trust_region_xu:
            p.declare_variable("Delta_xu", K)

        # parameters
        p.declare_parameter("A_bar", (K-1,nx,nx))
        p.declare_parameter("B_bar", (K-1,nx,nu))
        p.declare_parameter("C_bar", (K-1,nx,nu))
        p.declare_parameter("Sigma_bar", (K-1,nx))
        p.declare_parameter("z_bar", (K-1,nx))
        p.declare_parameter("sigma_ref")
        p.declare_parameter("X_ref", (K,nx))
        p.declare_parameter("U_ref", (K,nu))
        p.declare_parameter("w_time")
        p.declare_parameter("w_virtual_control")
        p.declare_parameter("w_trust_region_sigma")
        if self.trust_region_xu:
            p.declare_parameter("w_trust_region_xu")

        X = p.variable_refs("X")
        U = p.variable_refs("U")
        nus = p.variable_refs("nu")
        sigma = p.var("sigma")

        # minimize total time
        p.add_objective_term(p.par("w_time"), sigma)

        # linearized dynamics with virtual control
        for k in range(K-1):
            for i in range(nx):
                eq = -X[k+1,i] + nus[k,i] + p.par("Sigma_bar",k,i) * sigma + p.par("z_bar",k,i)
                eq = eq + sum(p.par("A_bar",k,i,j) * X[k,j] for j in range(nx))
                eq = eq + sum(p.par("B_bar",k,i,j) * U[k,j] + p.par("C_bar",k,i,j) * U[k+1,j] for j in range(nu))
                p.add_constraint(eq == 0.0)

        # virtual control norm
        p.add_constraint(norm2(nus.flatten()) <= p.var("norm2_nu"))
        p.add_objective_term(p.par("w_virtual_control"), p.var("norm2_nu"))

        # trust region on sigma
        add_sigma_trust_region(p)
        p.add_objective_term(p.par("w_trust_region_sigma"), p.var("Delta_sigma"))

        # trust region on states and controls
        if self.trust_region_xu:
            Delta_xu = p.variable_refs("Delta_xu")
            for k in range(K):
                p.add_constraint(norm2(
                    [X[k,i] - p.par("X_ref",k,i) for i in range(nx)] +
                    [U[k,j] - p.par("U_ref",k,j) for j in range(nu)]
                ) <= Delta_xu[k])
                p.add_objective_term(p.par("w_trust_region_xu"), Delta_xu[k])
                if self.trust_region_radius_xu is not None:
                    p.add_constraint(Delta_xu[k] <= self.trust_region_radius_xu)

        # bounds on sigma
        p.add_constraint(sigma >= self.sigma_min)
        if self.sigma_max is not None:
            p.add_constraint(sigma <= self.sigma_max)

        self.model.add_application_constraints(p, K)
        p.compile()
        return

    def parameter_values(self, state, discretization):
        """Parameter values of the program for a reference trajectory and its discretization"""
        values = {
            "A_bar": discretization.A_bar,
            "B_bar": discretization.B_bar,
            "C_bar": discretization.C_bar,
            "Sigma_bar": discretization.Sigma_bar,
            "z_bar": discretization.z_bar,
            "sigma_ref": state.sigma,
            "X_ref": state.X,
            "U_ref": state.U,
            "w_time": self.weight_time,
            "w_virtual_control": self.weight_virtual_control,
            "w_trust_region_sigma": self.weight_trust_region_sigma,
        }
        if self.trust_region_xu:
            values["w_trust_region_xu"] = self.weight_trust_region_xu
        return values

    def solve(self, state, discretization):
        """Solve the subproblem about a reference trajectory

        Args:
            state (SCvxState): reference trajectory
            discretization (Discretization): linear models about `state`

        Returns:
            (tuple): new `SCvxState` and dictionary of scalar diagnostics
        """
        assert self.program.compiled, "subproblem must be built before solving"
        success = self.program.solve(
            self.parameter_values(state, discretization), verbose=self.verbose_solver
        )
        self.cp_status = self.program.status
        if not success:
            raise SolverFailedError(self.program.status)

        new_state = SCvxState(
            X = self.program.solution_array("X"),
            U = self.program.solution_array("U"),
            sigma = float(self.program.solution_array("sigma")),
        )
        info = {
            "norm2_nu": float(np.linalg.norm(self.program.solution_array("nu"))),
            "Delta_sigma": (new_state.sigma - state.sigma)**2,
            "Delta_xu": float(np.sum(np.sqrt(
                np.sum((new_state.X - state.X)**2, axis=1) + np.sum((new_state.U - state.U)**2, axis=1)
            ))),
            "objective": self.program.objective_value,
            "status": self.program.status,
            "t_solve": self.program.solve_time,
        }
        return new_state, info
