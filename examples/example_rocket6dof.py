"""6-DoF powered landing with free final time"""

import matplotlib.pyplot as plt
import numpy as np

import os
import sys
sys.path.append(os.path.join(os.path.dirname(os.path.abspath(__file__)), ".."))

import scvxpdg


def example_rocket6dof(seed=None, maximize_final_mass=False, get_plot=False):
    """Land from a fixed (or random, if `seed` is given) initial state"""
    rng = None if seed is None else np.random.default_rng(seed)
    model = scvxpdg.Rocket6DoF(rng=rng, maximize_final_mass=maximize_final_mass)
    K = 50

    # setup algorithm & solve
    algo = scvxpdg.SCvx(
        model,
        K = K,
        iterations = 30,
        weight_time = 1.0,
        weight_virtual_control = 1e5,
        weight_trust_region_sigma = 1e-1,
        weight_trust_region_xu = 1e-3,
        tol_virtual_control = 1e-6,
        tol_delta_sigma = 1e-4,
    )
    solution = algo.solve(verbose=True)
    X, U, summary_dict = solution.X, solution.U, solution.summary_dict
    times = solution.times()
    print(f"Flight time: {solution.sigma:1.6f}, final mass: {X[-1,0]:1.6f}")

    # evaluate nonlinear violations
    ts, xs = algo.propagator.simulate(X[0,:], U, solution.sigma, steps=10)
    print(f"Landing position error after propagation: {np.linalg.norm(xs[-1,1:4] - X[-1,1:4]):1.4e}")

    if get_plot is True:
        fig = plt.figure(figsize=(12,7))
        ax = fig.add_subplot(2,3,1,projection='3d')
        for X_iter in solution.X_history[:-1]:
            ax.plot(X_iter[:,2], X_iter[:,3], X_iter[:,1], '--', color='grey', lw=0.5)
        scvxpdg.plot_landing_trajectory(ax, X, U)
        ax.plot(xs[:,2], xs[:,3], xs[:,1], 'b:', lw=0.8)

        ax_m = fig.add_subplot(2,3,2)
        ax_m.grid(True, alpha=0.5)
        ax_m.plot(times, X[:,0], marker='o', ms=2, color='k')
        ax_m.axhline(model.m_dry, color='r', linestyle='--')
        ax_m.set(xlabel="Time", ylabel="Mass")

        ax_T = fig.add_subplot(2,3,3)
        ax_T.grid(True, alpha=0.5)
        scvxpdg.plot_thrust_magnitude(ax_T, times, U, T_min=model.T_min, T_max=model.T_max)

        ax_tilt = fig.add_subplot(2,3,4)
        ax_tilt.grid(True, alpha=0.5)
        ax_tilt.plot(times, [np.rad2deg(scvxpdg.tilt_angle(q)) for q in X[:,7:11]], marker='o', ms=2, color='k')
        ax_tilt.set(xlabel="Time", ylabel="Tilt angle, deg")

        ax_nu = fig.add_subplot(2,3,5)
        ax_nu.grid(True, alpha=0.5)
        algo.plot_virtual_control(ax_nu, summary_dict)

        ax_sigma = fig.add_subplot(2,3,6)
        ax_sigma.grid(True, alpha=0.5)
        algo.plot_sigma(ax_sigma, summary_dict)
        plt.tight_layout()
    return


if __name__ == "__main__":
    example_rocket6dof(get_plot=True)
    plt.show()
