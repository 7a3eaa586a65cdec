"""First-order-hold discretization by sensitivity propagation"""

import numpy as np
from scipy.integrate import solve_ivp

from ._errors import PropagationError, SingularTransitionMatrixError


class DiscretizationResult:
    """Discrete-time linear model of one segment

    The state at the end of the segment is approximated as

    ```
    x_{k+1} = A_bar x_k + B_bar u_k + C_bar u_{k+1} + Sigma_bar sigma + z_bar
    ```

    which is exact at the reference point, where it reproduces `x_end`.
    """
    def __init__(self, A_bar, B_bar, C_bar, Sigma_bar, z_bar, x_end):
        self.A_bar = A_bar
        self.B_bar = B_bar
        self.C_bar = C_bar
        self.Sigma_bar = Sigma_bar
        self.z_bar = z_bar
        self.x_end = x_end
        return

    def reconstruct(self, x_k, u_k, u_kp1, sigma):
        """Evaluate the linear model"""
        return self.A_bar @ x_k + self.B_bar @ u_k + self.C_bar @ u_kp1 + self.Sigma_bar * sigma + self.z_bar


class Discretization:
    """Discrete-time linear models of all `K-1` segments, stacked along the first axis"""
    def __init__(self, A_bar, B_bar, C_bar, Sigma_bar, z_bar, x_end):
        self.A_bar = A_bar
        self.B_bar = B_bar
        self.C_bar = C_bar
        self.Sigma_bar = Sigma_bar
        self.z_bar = z_bar
        self.x_end = x_end
        return

    @classmethod
    def from_results(cls, results):
        """Stack a sequence of `DiscretizationResult`"""
        return cls(*[
            np.array([getattr(res, attr) for res in results])
            for attr in ["A_bar", "B_bar", "C_bar", "Sigma_bar", "z_bar", "x_end"]
        ])

    def __len__(self):
        return self.A_bar.shape[0]

    def __getitem__(self, k):
        return DiscretizationResult(
            self.A_bar[k], self.B_bar[k], self.C_bar[k], self.Sigma_bar[k], self.z_bar[k], self.x_end[k]
        )

    def defects(self, X):
        """Nonlinear dynamics defects `X[k+1] - x_end[k]` of the trajectory about which the model was built"""
        assert X.shape[0] == len(self) + 1, f"X must have {len(self)+1} rows, but got {X.shape[0]}"
        return X[1:,:] - self.x_end


class SensitivityPropagator:
    """Discretize free-final-time dynamics with a first-order-hold control

    Time is normalized so that the trajectory spans `[0, 1]` with `K` samples and
    the physical duration is `sigma`. Over each segment of length `dt = 1/(K-1)`, the
    augmented state `V = [x, Phi, P_B, P_C, P_Sigma, P_z]` is integrated with

    ```
    x'       = sigma f(x,u)
    Phi'     = A(t) Phi
    P_B'     = Phi^-1 B(t) beta
    P_C'     = Phi^-1 B(t) alpha
    P_Sigma' = Phi^-1 f(x,u)
    P_z'     = Phi^-1 (-A(t) x - B(t) u)
    ```

    where `A = sigma df/dx`, `B = sigma df/du`, `alpha = t/dt`, `beta = 1 - alpha`
    and `u = beta u_k + alpha u_{k+1}`.

    Args:
        model (DynamicsModel): dynamics model
        K (int): number of samples
        method (str): integration method passed to `scipy.integrate.solve_ivp`
        reltol (float): relative tolerance
        abstol (float): absolute tolerance
        max_condition_number (float): largest admissible condition number of `Phi`
    """
    def __init__(self, model, K, method='RK45', reltol=1e-4, abstol=1e-4, max_condition_number=1e12):
        assert K >= 2, f"K must be at least 2, but got {K}"
        self.model = model
        self.K = K
        self.nx = model.n_states
        self.nu = model.n_inputs
        self.dt = 1.0 / (K - 1)
        self.method = method
        self.reltol = reltol
        self.abstol = abstol
        self.max_condition_number = max_condition_number

        # slices of the augmented state
        nx, nu = self.nx, self.nu
        i_Phi_end = nx + nx*nx
        i_PB_end = i_Phi_end + nx*nu
        i_PC_end = i_PB_end + nx*nu
        i_PSigma_end = i_PC_end + nx
        self.n_V = i_PSigma_end + nx
        self._i_x = slice(0, nx)
        self._i_Phi = slice(nx, i_Phi_end)
        self._i_PB = slice(i_Phi_end, i_PB_end)
        self._i_PC = slice(i_PB_end, i_PC_end)
        self._i_PSigma = slice(i_PC_end, i_PSigma_end)
        self._i_Pz = slice(i_PSigma_end, self.n_V)
        return

    def _check_transition_matrix(self, Phi, t):
        if not np.all(np.isfinite(Phi)):
            raise SingularTransitionMatrixError(f"state transition matrix has non-finite entries at t = {t:1.6e}")
        cond = np.linalg.cond(Phi)
        if not cond <= self.max_condition_number:
            raise SingularTransitionMatrixError(
                f"state transition matrix is singular at t = {t:1.6e} (condition number {cond:1.4e})"
            )
        return

    def control(self, t, u_k, u_kp1):
        """First-order-hold control at normalized time `t` within a segment"""
        alpha = t / self.dt
        return (1 - alpha) * u_k + alpha * u_kp1

    def rhs(self, t, V, u_k, u_kp1, sigma):
        """Right-hand side of the augmented dynamics"""
        nx, nu = self.nx, self.nu
        x = V[self._i_x]
        Phi = V[self._i_Phi].reshape(nx,nx)
        alpha = t / self.dt
        beta = 1 - alpha
        u = beta * u_k + alpha * u_kp1

        f = self.model.ode(x, u)
        A = sigma * self.model.state_jacobian(x, u)
        B = sigma * self.model.control_jacobian(x, u)

        # Phi^-1 applied to [B, f, -A x - B u] at once
        self._check_transition_matrix(Phi, t)
        try:
            Phi_inv_rhs = np.linalg.solve(Phi, np.column_stack((B, f, -A @ x - B @ u)))
        except np.linalg.LinAlgError as e:
            raise SingularTransitionMatrixError(f"state transition matrix is singular at t = {t:1.6e}") from e

        dV = np.zeros(self.n_V)
        dV[self._i_x] = sigma * f
        dV[self._i_Phi] = (A @ Phi).flatten()
        dV[self._i_PB] = (Phi_inv_rhs[:,0:nu] * beta).flatten()
        dV[self._i_PC] = (Phi_inv_rhs[:,0:nu] * alpha).flatten()
        dV[self._i_PSigma] = Phi_inv_rhs[:,nu]
        dV[self._i_Pz] = Phi_inv_rhs[:,nu+1]
        return dV

    def propagate_segment(self, x_k, u_k, u_kp1, sigma):
        """Discretize the dynamics over one segment

        Args:
            x_k (np.array): reference state at the start of the segment
            u_k (np.array): reference control at the start of the segment
            u_kp1 (np.array): reference control at the end of the segment
            sigma (float): reference total time

        Returns:
            (DiscretizationResult): linear model of the segment
        """
        assert len(x_k) == self.nx, f"x_k must be of length {self.nx}, but got {len(x_k)}"
        assert len(u_k) == self.nu, f"u_k must be of length {self.nu}, but got {len(u_k)}"
        assert len(u_kp1) == self.nu, f"u_kp1 must be of length {self.nu}, but got {len(u_kp1)}"
        nx, nu = self.nx, self.nu
        u_k = np.asarray(u_k, dtype=float)
        u_kp1 = np.asarray(u_kp1, dtype=float)

        V0 = np.zeros(self.n_V)
        V0[self._i_x] = x_k
        V0[self._i_Phi] = np.eye(nx).flatten()
        sol = solve_ivp(
            self.rhs, (0.0, self.dt), V0, method=self.method, rtol=self.reltol, atol=self.abstol,
            first_step=self.dt/10, args=(u_k, u_kp1, float(sigma)),
        )
        if sol.status < 0:
            raise PropagationError(f"Integration of segment failed: {sol.message}")

        V = sol.y[:,-1]
        A_bar = V[self._i_Phi].reshape(nx,nx)
        self._check_transition_matrix(A_bar, self.dt)
        return DiscretizationResult(
            A_bar = A_bar,
            B_bar = A_bar @ V[self._i_PB].reshape(nx,nu),
            C_bar = A_bar @ V[self._i_PC].reshape(nx,nu),
            Sigma_bar = A_bar @ V[self._i_PSigma],
            z_bar = A_bar @ V[self._i_Pz],
            x_end = V[self._i_x].copy(),
        )

    def discretize(self, X, U, sigma, executor=None):
        """Discretize the dynamics about a reference trajectory

        Segments are independent; if `executor` is given, they are mapped over with
        `executor.map`, e.g. a `concurrent.futures.ThreadPoolExecutor`.

        Args:
            X (np.array): `K`-by-`nx` reference states
            U (np.array): `K`-by-`nu` reference controls
            sigma (float): reference total time
            executor (obj): optional object with a `map` method

        Returns:
            (Discretization): stacked linear models of all segments
        """
        assert X.shape == (self.K, self.nx), f"X must have shape {(self.K, self.nx)}, but got {X.shape}"
        assert U.shape == (self.K, self.nu), f"U must have shape {(self.K, self.nu)}, but got {U.shape}"
        sigmas = [sigma] * (self.K - 1)
        if executor is None:
            results = list(map(self.propagate_segment, X[:-1], U[:-1], U[1:], sigmas))
        else:
            results = list(executor.map(self.propagate_segment, X[:-1], U[:-1], U[1:], sigmas))
        return Discretization.from_results(results)

    def rhs_state(self, t, x, u_k, u_kp1, sigma):
        """Right-hand side of the nonlinear dynamics in normalized time"""
        return sigma * self.model.ode(x, self.control(t, u_k, u_kp1))

    def simulate(self, x0, U, sigma, steps=None):
        """Propagate the nonlinear dynamics from `x0` under the first-order-hold control `U`

        Args:
            x0 (np.array): initial state
            U (np.array): `K`-by-`nu` controls
            sigma (float): total time
            steps (int): number of output points per segment, solver steps if `None`

        Returns:
            (tuple): dimensional times and states with shape `N-by-nx`
        """
        assert len(x0) == self.nx, f"x0 must be of length {self.nx}, but got {len(x0)}"
        assert U.shape == (self.K, self.nu), f"U must have shape {(self.K, self.nu)}, but got {U.shape}"
        assert (steps is None) or (steps >= 2), f"steps must be at least 2, but got {steps}"
        ts = [np.zeros(1)]
        xs = [np.asarray(x0, dtype=float).reshape(1,-1)]
        x = np.asarray(x0, dtype=float)
        for k in range(self.K - 1):
            t_eval = None if steps is None else np.linspace(0.0, self.dt, steps)
            sol = solve_ivp(
                self.rhs_state, (0.0, self.dt), x, t_eval=t_eval, method=self.method,
                rtol=self.reltol, atol=self.abstol, args=(U[k], U[k+1], float(sigma)),
            )
            if sol.status < 0:
                raise PropagationError(f"Integration of segment {k} failed: {sol.message}")
            ts.append(sigma * (k * self.dt + sol.t[1:]))
            xs.append(sol.y[:,1:].T)
            x = sol.y[:,-1]
        return np.concatenate(ts), np.concatenate(xs, axis=0)
