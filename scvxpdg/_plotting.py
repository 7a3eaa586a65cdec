"""Plotting functions"""

import matplotlib.pyplot as plt
import numpy as np

from ._misc import dcm_body_to_inertial


def plot_landing_trajectory(ax, X, U, thrust_scale=0.3, attitude_scale=0.3):
    """Plot a 6-DoF landing trajectory on a 3D axis, with the inertial x-axis (up) drawn vertically

    Red arrows show the exhaust plume direction (opposite to the thrust) and blue
    arrows show the body x-axis.

    Args:
        ax (Axes3D): 3D axis
        X (np.array): `K`-by-14 states
        U (np.array): `K`-by-3 thrust in the body frame
        thrust_scale (float): arrow length per unit thrust
        attitude_scale (float): length of the body-axis arrows
    """
    r = X[:,1:4]
    ax.plot(r[:,1], r[:,2], r[:,0], 'k-', lw=1.0)
    for k in range(X.shape[0]):
        C = dcm_body_to_inertial(X[k,7:11])
        thrust = C @ U[k,:]
        body_x = C[:,0]
        ax.quiver(r[k,1], r[k,2], r[k,0], -thrust[1], -thrust[2], -thrust[0], length=thrust_scale, color='r')
        ax.quiver(r[k,1], r[k,2], r[k,0], body_x[1], body_x[2], body_x[0], length=attitude_scale, color='b')
    ax.scatter(0.0, 0.0, 0.0, marker='x', color='k', label='Landing site')
    ax.set(xlabel="y", ylabel="z", zlabel="x (up)")
    return


def plot_time_histories(times, X, U, state_labels=None, input_labels=None, figsize=(10,6)):
    """Plot states and controls against time

    Args:
        times (np.array): time of each sample
        X (np.array): `K`-by-`nx` states
        U (np.array): `K`-by-`nu` controls
        state_labels (list): name of each state
        input_labels (list): name of each control

    Returns:
        (tuple): figure and axes for states and controls
    """
    _,nx = X.shape
    _,nu = U.shape
    if state_labels is None:
        state_labels = [f"x{i}" for i in range(nx)]
    if input_labels is None:
        input_labels = [f"u{i}" for i in range(nu)]
    fig, (ax_x, ax_u) = plt.subplots(2, 1, figsize=figsize, sharex=True)
    for i in range(nx):
        ax_x.plot(times, X[:,i], marker="o", ms=2, label=state_labels[i])
    for i in range(nu):
        ax_u.plot(times, U[:,i], marker="o", ms=2, label=input_labels[i])
    for ax in (ax_x, ax_u):
        ax.grid(True, alpha=0.5)
        ax.legend(loc="upper right", fontsize=8)
    ax_x.set(ylabel="States")
    ax_u.set(xlabel="Time", ylabel="Controls")
    return fig, (ax_x, ax_u)


def plot_thrust_magnitude(ax, times, U, T_min=None, T_max=None):
    """Plot thrust magnitude with optional bounds"""
    ax.plot(times, np.linalg.norm(U, axis=1), marker="o", ms=2, color="k", label="|T|")
    if T_min is not None:
        ax.axhline(T_min, color='r', linestyle='--', label='T_min')
    if T_max is not None:
        ax.axhline(T_max, color='r', linestyle=':', label='T_max')
    ax.grid(True, alpha=0.5)
    ax.set(xlabel="Time", ylabel="Thrust")
    return
