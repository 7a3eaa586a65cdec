"""SCvx algorithm for free-final-time trajectory optimization"""

import time

import cvxpy as cp
import numpy as np

from ._errors import SolverFailedError
from ._propagator import SensitivityPropagator
from ._subproblem import SCvxState, SCvxSubproblem


class Solution:
    """Solution returned by `SCvx.solve()`

    Args:
        X (np.array): `K`-by-`n_states` states
        U (np.array): `K`-by-`n_inputs` controls
        sigma (float): total time
        status (str): final status of the algorithm
        summary_dict (dict): per-iteration diagnostics
        X_history (list): states of the initial guess and of every iteration
        U_history (list): controls of the initial guess and of every iteration
    """
    def __init__(self, X, U, sigma, status, summary_dict, X_history, U_history):
        self.X = X
        self.U = U
        self.sigma = sigma
        self.status = status
        self.summary_dict = summary_dict
        self.X_history = X_history
        self.U_history = U_history
        return

    def times(self):
        """Dimensional time of each sample"""
        return self.sigma * np.linspace(0.0, 1.0, self.X.shape[0])


class SCvx:
    """Successive convexification for free-final-time optimal control

    Based on Szmuk & Acikmese, "Successive Convexification for 6-DoF Mars Rocket Powered
    Landing with Free-Final-Time" (doi: 10.2514/6.2018-0617). Each iteration discretizes
    the dynamics about the current reference with a first-order-hold control and solves
    a second-order cone program with virtual control and trust regions.

    Args:
        model (DynamicsModel): dynamics model
        K (int): number of samples
        iterations (int): maximum number of iterations
        weight_time (float): weight on the total time
        weight_virtual_control (float): weight on the virtual control norm
        weight_trust_region_sigma (float): weight on the sigma trust region
        weight_trust_region_xu (float): weight on the state/control trust region, disabled if `None`
        trust_region_radius_xu (float): hard bound on the state/control trust region, if given
        sigma_min (float): lower bound on the total time
        sigma_max (float): upper bound on the total time, if given
        tol_virtual_control (float): convergence tolerance on the virtual control norm, unchecked if `None`
        tol_delta_sigma (float): convergence tolerance on `(sigma - sigma_ref)^2`, unchecked if `None`
        reltol (float): relative tolerance of the propagation
        abstol (float): absolute tolerance of the propagation
        solver (str): cvxpy solver
        verbose_solver (bool): whether to print solver output
        executor (obj): optional executor used to discretize segments in parallel
    """
    def __init__(
        self,
        model,
        K: int = 50,
        iterations: int = 10,
        weight_time: float = 1.0,
        weight_virtual_control: float = 1e2,
        weight_trust_region_sigma: float = 1.0,
        weight_trust_region_xu: float = 1e-3,
        trust_region_radius_xu: float = None,
        sigma_min: float = 1e-3,
        sigma_max: float = None,
        tol_virtual_control: float = 1e-6,
        tol_delta_sigma: float = 1e-6,
        reltol: float = 1e-4,
        abstol: float = 1e-4,
        solver = cp.CLARABEL,
        verbose_solver: bool = False,
        executor = None,
    ):
        assert iterations >= 1, f"iterations must be at least 1, but got {iterations}"
        self.model = model
        self.K = K
        self.iterations = iterations
        self.tol_virtual_control = tol_virtual_control
        self.tol_delta_sigma = tol_delta_sigma
        self.executor = executor
        self.propagator = SensitivityPropagator(model, K, reltol=reltol, abstol=abstol)
        self.subproblem = SCvxSubproblem(
            model,
            K,
            weight_time = weight_time,
            weight_virtual_control = weight_virtual_control,
            weight_trust_region_sigma = weight_trust_region_sigma,
            weight_trust_region_xu = weight_trust_region_xu,
            trust_region_radius_xu = trust_region_radius_xu,
            sigma_min = sigma_min,
            sigma_max = sigma_max,
            solver = solver,
            verbose_solver = verbose_solver,
        )
        self.status = "Initializing"
        return

    def initialize(self):
        """Initial guess from the model; builds the convex subproblem on first call

        Returns:
            (SCvxState): initial reference trajectory
        """
        X, U = self.model.initialize(self.K)
        X = np.array(X, dtype=float)
        U = np.array(U, dtype=float)
        assert X.shape == (self.K, self.model.n_states), \
            f"initial states must have shape {(self.K, self.model.n_states)}, but got {X.shape}"
        assert U.shape == (self.K, self.model.n_inputs), \
            f"initial controls must have shape {(self.K, self.model.n_inputs)}, but got {U.shape}"
        if not self.subproblem.program.compiled:
            self.subproblem.build()
        self.status = "Initializing"
        return SCvxState(X, U, float(self.model.total_time_guess()))

    def step(self, state):
        """Perform one SCvx iteration

        Args:
            state (SCvxState): reference trajectory, left untouched

        Returns:
            (tuple): new `SCvxState` and dictionary of diagnostics of the iteration
        """
        tstart = time.time()
        discretization = self.propagator.discretize(state.X, state.U, state.sigma, executor=self.executor)
        t_discretization = time.time() - tstart

        new_state, info = self.subproblem.solve(state, discretization)
        info["t_discretization"] = t_discretization
        info["defect"] = float(np.max(np.abs(discretization.defects(state.X))))
        return new_state, info

    def converged(self, info):
        """Check convergence of an iteration; `False` if both tolerances are `None`"""
        checks = []
        if self.tol_virtual_control is not None:
            checks.append(info["norm2_nu"] <= self.tol_virtual_control)
        if self.tol_delta_sigma is not None:
            checks.append(info["Delta_sigma"] <= self.tol_delta_sigma)
        return (len(checks) > 0) and all(checks)

    def solve(self, state=None, verbose: bool = True):
        """Solve optimal control problem via SCvx

        Args:
            state (SCvxState): initial reference trajectory, taken from the model if `None`
            verbose (bool): whether to print verbose output

        Returns:
            (Solution): final trajectory and iteration history
        """
        header = f"|  Iter  |    sigma    | Delta sigma |  norm2 nu   |   defect    | t_disc [s] | t_solve [s] |"
        print_frequency = 10
        if state is None:
            state = self.initialize()
        elif not self.subproblem.program.compiled:
            self.subproblem.build()

        # initialize summary dictionary
        summary_dict = {
            "num_iter": 0,
            "status": "Iterating",
            "sigma": [],
            "Delta_sigma": [],
            "norm2_nu": [],
            "defect": [],
            "t_discretization": [],
            "t_solve": [],
            "objective": [],
        }
        X_history = [state.X]
        U_history = [state.U]

        self.status = "Iterating"
        for k in range(self.iterations):
            try:
                state, info = self.step(state)
            except SolverFailedError as e:
                self.status = "SolveFailed"
                summary_dict["status"] = self.status
                summary_dict["status_CP"] = e.status
                if verbose:
                    print(f"Convex problem did not converge to optimality (status = {e.status})!")
                raise SolverFailedError(e.status, iteration=k+1, summary_dict=summary_dict) from e

            # update storage
            X_history.append(state.X)
            U_history.append(state.U)
            summary_dict["num_iter"] = k + 1
            summary_dict["sigma"].append(state.sigma)
            for key in ["Delta_sigma", "norm2_nu", "defect", "t_discretization", "t_solve", "objective"]:
                summary_dict[key].append(info[key])

            if verbose:
                if np.mod(k, print_frequency) == 0:
                    print(f"\n{header}")
                print(f"   {k+1:3d}   | {state.sigma: 1.4e} | {info['Delta_sigma']:1.4e}  | {info['norm2_nu']:1.4e}  | {info['defect']:1.4e}  | {info['t_discretization']:1.4e} | {info['t_solve']:1.4e}  |")

            if self.converged(info):
                self.status = "Converged"
                break
        else:
            self.status = "IterationLimitReached"

        # print summary
        if verbose:
            tol_nu_msg = "unchecked" if self.tol_virtual_control is None else f"{self.tol_virtual_control:1.4e}"
            tol_sigma_msg = "unchecked" if self.tol_delta_sigma is None else f"{self.tol_delta_sigma:1.4e}"
            print("\n")
            print(f"    SCvx algorithm summary:")
            print(f"        Status                          : {self.status}")
            print(f"        Total time                      : {state.sigma:1.8e}")
            print(f"        Virtual control norm            : {summary_dict['norm2_nu'][-1]:1.8e} (tol: {tol_nu_msg})")
            print(f"        Squared change of total time    : {summary_dict['Delta_sigma'][-1]:1.8e} (tol: {tol_sigma_msg})")
            print(f"        Total iterations                : {summary_dict['num_iter']}")
            print("\n")

        summary_dict["status"] = self.status
        summary_dict["status_CP"] = self.subproblem.cp_status
        return Solution(state.X, state.U, state.sigma, self.status, summary_dict, X_history, U_history)

    def plot_virtual_control(self, ax, summary_dict):
        """Plot virtual control norm against iterations"""
        iters = np.arange(1, summary_dict["num_iter"] + 1)
        ax.semilogy(iters, np.maximum(summary_dict["norm2_nu"], 1e-16), marker="o", color="k", label="norm2 nu")
        ax.set(xlabel="Iteration", ylabel="Virtual control norm")
        return

    def plot_sigma(self, ax, summary_dict):
        """Plot total time against iterations"""
        iters = np.arange(1, summary_dict["num_iter"] + 1)
        ax.plot(iters, summary_dict["sigma"], marker="o", color="k", label="sigma")
        ax.set(xlabel="Iteration", ylabel="Total time")
        return
