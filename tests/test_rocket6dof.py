"""Test 6-DoF rocket landing model"""

import matplotlib
matplotlib.use("Agg")
import matplotlib.pyplot as plt
import numpy as np

import os
import sys
sys.path.append(os.path.join(os.path.dirname(os.path.abspath(__file__)), ".."))

import scvxpdg


def get_test_point():
    model = scvxpdg.Rocket6DoF()
    x = model.x_init.copy()
    x[11:14] = np.deg2rad([5.0, -10.0, 15.0])
    u = np.array([2.0, 0.3, -0.2])
    return model, x, u


def finite_difference_jacobian(fun, z, h=1e-6):
    f0 = fun(z)
    jac = np.zeros((len(f0), len(z)))
    for i in range(len(z)):
        dz = np.zeros(len(z))
        dz[i] = h
        jac[:,i] = (fun(z + dz) - fun(z - dz)) / (2*h)
    return jac


def test_equations_of_motion():
    """Translational and rotational dynamics agree with the direction cosine matrix"""
    model, x, u = get_test_point()
    dx = model.ode(x, u)
    assert dx.shape == (14,)
    assert np.isclose(dx[0], -model.alpha_m * np.linalg.norm(u))
    assert np.allclose(dx[1:4], x[4:7])
    C = scvxpdg.dcm_body_to_inertial(x[7:11])
    assert np.allclose(dx[4:7], C @ u / x[0] + model.g_I)

    # isotropic inertia: torque only from the thrust offset
    assert np.allclose(dx[11:14], [0.0, u[2], -u[1]])

    # unit quaternion stays unit
    assert np.isclose(np.dot(x[7:11], dx[7:11]), 0.0, atol=1e-12)
    return


def test_jacobians():
    """Analytic Jacobians agree with central finite differences"""
    model, x, u = get_test_point()
    A = model.state_jacobian(x, u)
    B = model.control_jacobian(x, u)
    A_fd = finite_difference_jacobian(lambda z: model.ode(z, u), x)
    B_fd = finite_difference_jacobian(lambda z: model.ode(x, z), u)
    assert A.shape == (14,14)
    assert B.shape == (14,3)
    assert np.allclose(A, A_fd, rtol=1e-5, atol=1e-7)
    assert np.allclose(B, B_fd, rtol=1e-5, atol=1e-7)

    # non-isotropic inertia
    model = scvxpdg.Rocket6DoF(J_B=np.diag([1e-2, 2e-2, 3e-2]))
    A = model.state_jacobian(x, u)
    A_fd = finite_difference_jacobian(lambda z: model.ode(z, u), x)
    assert np.allclose(A, A_fd, rtol=1e-5, atol=1e-7)
    return


def test_reconstruction():
    """Linear model of a segment reproduces the propagated endpoint at the reference"""
    model = scvxpdg.Rocket6DoF()
    K = 10
    X, U = model.initialize(K)
    sigma = model.total_time_guess()
    propagator = scvxpdg.SensitivityPropagator(model, K, reltol=1e-10, abstol=1e-10)
    for k in [0, 4, K-2]:
        res = propagator.propagate_segment(X[k], U[k], U[k+1], sigma)
        assert np.allclose(res.reconstruct(X[k], U[k], U[k+1], sigma), res.x_end, rtol=0.0, atol=1e-6)
    return


def test_initial_guess():
    """Initial guess interpolates the boundary conditions with thrust balancing gravity"""
    model = scvxpdg.Rocket6DoF(rng=np.random.default_rng(0))
    X, U = model.initialize(15)
    assert X.shape == (15, 14)
    assert U.shape == (15, 3)
    assert np.allclose(X[0,0:7], model.x_init[0:7])
    assert np.allclose(X[-1,1:7], model.x_final[1:7])
    assert np.allclose(X[:,7:11], [1.0, 0.0, 0.0, 0.0])
    assert np.allclose(U[:,0], X[:,0])
    assert 3.0 <= model.x_init[1] <= 4.0
    return


def test_scvx_rocket6dof(get_plot=False):
    """A few SCvx iterations on the 6-DoF landing problem"""
    model = scvxpdg.Rocket6DoF()
    K = 15
    algo = scvxpdg.SCvx(
        model,
        K = K,
        iterations = 3,
        weight_virtual_control = 1e4,
        weight_trust_region_sigma = 1e-1,
        weight_trust_region_xu = 1e-3,
        tol_virtual_control = None,
        tol_delta_sigma = None,
    )
    solution = algo.solve(verbose=True)
    X, U = solution.X, solution.U

    assert solution.status == "IterationLimitReached"
    assert np.isfinite(solution.sigma) and solution.sigma > 0.0
    assert X.shape == (K, 14)
    assert U.shape == (K, 3)

    # boundary conditions
    assert np.allclose(X[0,0:7], model.x_init[0:7], atol=1e-5)
    assert np.allclose(X[-1,1:7], model.x_final[1:7], atol=1e-5)
    assert np.allclose(U[-1,1:3], 0.0, atol=1e-5)

    # path constraints
    assert np.all(X[:,0] >= model.m_dry - 1e-5)
    assert np.all(np.linalg.norm(U, axis=1) <= model.T_max + 1e-5)
    assert np.all(np.linalg.norm(U[:,1:3], axis=1) <= model.tan_delta_max * U[:,0] + 1e-5)
    assert np.all(np.linalg.norm(X[:,11:14], axis=1) <= model.w_B_max + 1e-5)
    assert np.all(np.linalg.norm(X[:,2:4], axis=1) <= X[:,1] / model.tan_gamma_gs + 1e-5)
    assert np.all(np.linalg.norm(X[:,9:11], axis=1) <= np.sqrt((1 - model.cos_theta_max) / 2) + 1e-5)

    # minimum thrust along the reference thrust direction of the last iteration
    U_ref = solution.U_history[-2]
    for k in range(K):
        u_norm = np.linalg.norm(U_ref[k])
        direction = U_ref[k] / u_norm if u_norm >= 1e-6 else np.array([1.0, 0.0, 0.0])
        assert np.dot(direction, U[k]) >= model.T_min - 1e-5

    if get_plot is True:
        fig = plt.figure(figsize=(10,5))
        ax = fig.add_subplot(1,2,1,projection='3d')
        scvxpdg.plot_landing_trajectory(ax, X, U)
        ax_T = fig.add_subplot(1,2,2)
        scvxpdg.plot_thrust_magnitude(ax_T, solution.times(), U, T_min=model.T_min, T_max=model.T_max)
        plt.close("all")
    return


def test_scvx_rocket6dof_convergence():
    """Dynamics defects shrink to a dynamically feasible landing with default weights"""
    model = scvxpdg.Rocket6DoF()
    algo = scvxpdg.SCvx(model, K=10, iterations=12, tol_virtual_control=None, tol_delta_sigma=None)
    solution = algo.solve(verbose=False)
    defect = solution.summary_dict["defect"]
    assert defect[-1] < defect[0]
    assert defect[-1] < 1e-3

    # defects of the returned trajectory itself
    discretization = algo.propagator.discretize(solution.X, solution.U, solution.sigma)
    assert np.max(np.abs(discretization.defects(solution.X))) < 1e-3
    assert 2.0 < solution.sigma < 10.0
    return


def test_subproblem_rocket6dof_K50():
    """The K = 50 landing subproblem compiles and solves once"""
    model = scvxpdg.Rocket6DoF()
    K = 50
    subproblem = scvxpdg.SCvxSubproblem(model, K)
    subproblem.build()
    X, U = model.initialize(K)
    state = scvxpdg.SCvxState(X, U, model.total_time_guess())
    discretization = scvxpdg.SensitivityPropagator(model, K).discretize(state.X, state.U, state.sigma)
    new_state, info = subproblem.solve(state, discretization)

    assert info["status"] in ["optimal", "optimal_inaccurate"]
    assert np.isfinite(new_state.sigma) and new_state.sigma > 0.0
    assert np.allclose(new_state.X[0,0:7], model.x_init[0:7], atol=1e-5)
    assert np.allclose(new_state.X[-1,1:7], model.x_final[1:7], atol=1e-5)
    return


if __name__ == "__main__":
    test_jacobians()
    test_scvx_rocket6dof(get_plot=True)
