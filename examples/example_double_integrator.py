"""Minimum-time rest-to-rest transfer of a double integrator"""

import matplotlib.pyplot as plt
import numpy as np

import os
import sys
sys.path.append(os.path.join(os.path.dirname(os.path.abspath(__file__)), ".."))

import scvxpdg


def example_double_integrator(get_plot=False):
    """Bang-bang optimum has total time 2 for `|u| <= 1` from `x = (1, 0)` to the origin"""
    model = scvxpdg.DoubleIntegrator(x0=(1.0, 0.0), xf=(0.0, 0.0), u_max=1.0, t_guess=3.0)

    # setup algorithm & solve
    tol_virtual_control = 1e-6
    algo = scvxpdg.SCvx(model, K=50, iterations=30, tol_virtual_control=tol_virtual_control, tol_delta_sigma=1e-6)
    solution = algo.solve(verbose=True)
    summary_dict = solution.summary_dict
    print(f"Total time: {solution.sigma:1.6f} (status: {solution.status})")

    # evaluate nonlinear violations
    ts, xs = algo.propagator.simulate(solution.X[0,:], solution.U, solution.sigma, steps=10)
    print(f"Final state error after propagation: {np.max(np.abs(xs[-1,:] - solution.X[-1,:])):1.4e}")

    if get_plot is True:
        times = solution.times()
        fig, (ax_x, ax_u) = scvxpdg.plot_time_histories(
            times, solution.X, solution.U, state_labels=["x1", "x2"], input_labels=["u"],
        )
        ax_x.plot(ts, xs[:,0], 'k:', lw=0.8)
        ax_x.plot(ts, xs[:,1], 'k:', lw=0.8)
        ax_u.axhline(1.0, color='r', linestyle='--')
        ax_u.axhline(-1.0, color='r', linestyle='--')

        fig_iter, axs = plt.subplots(1, 2, figsize=(10,4))
        for ax in axs:
            ax.grid(True, alpha=0.5)
        algo.plot_virtual_control(axs[0], summary_dict)
        axs[0].axhline(tol_virtual_control, color='k', linestyle='--', label='tol')
        axs[0].legend()
        algo.plot_sigma(axs[1], summary_dict)
        axs[1].axhline(2.0, color='r', linestyle='--', label='Optimal')
        axs[1].legend()
        plt.tight_layout()
    return


if __name__ == "__main__":
    example_double_integrator(get_plot=True)
    plt.show()
