"""Miscellaneous functions"""

import numpy as np


def foh_control(times, us, t):
    """First-order hold control, i.e. linear interpolation between samples"""
    idx = np.searchsorted(times, t, side='right') - 1
    if idx < 0:
        return us[0]
    if idx >= len(times)-1:
        return us[-1]   # return last control if t >= times[-1]
    alpha = (t - times[idx]) / (times[idx+1] - times[idx])
    return (1 - alpha) * us[idx] + alpha * us[idx+1]


def foh_controls(times, us, t_eval):
    """First-order hold control evaluated at each time in `t_eval`"""
    _,nu = us.shape
    us_foh = np.zeros((len(t_eval),nu))
    for i,t in enumerate(t_eval):
        us_foh[i,:] = foh_control(times, us, t)
    return us_foh


def skew(v):
    """Skew-symmetric matrix such that `skew(a) @ b = cross(a, b)`"""
    return np.array([
        [0.0, -v[2], v[1]],
        [v[2], 0.0, -v[0]],
        [-v[1], v[0], 0.0],
    ])


def euler_to_quat(angles):
    """Scalar-first quaternion from roll, pitch, yaw angles in degrees"""
    a = np.deg2rad(angles)
    cy = np.cos(a[1] * 0.5)
    sy = np.sin(a[1] * 0.5)
    cr = np.cos(a[0] * 0.5)
    sr = np.sin(a[0] * 0.5)
    cp = np.cos(a[2] * 0.5)
    sp = np.sin(a[2] * 0.5)

    q = np.zeros(4)
    q[0] = cy * cr * cp + sy * sr * sp
    q[1] = cy * sr * cp - sy * cr * sp
    q[2] = sy * cr * cp - cy * sr * sp
    q[3] = cy * cr * sp + sy * sr * cp
    return q


def dcm_body_to_inertial(q):
    """Direction cosine matrix rotating body-frame vectors into the inertial frame

    Args:
        q (np.array): scalar-first quaternion `[q0, q1, q2, q3]`, assumed unit norm

    Returns:
        (np.array): 3-by-3 rotation matrix
    """
    q0, q1, q2, q3 = q
    return np.array([
        [1 - 2 * (q2**2 + q3**2), 2 * (q1*q2 - q0*q3),     2 * (q1*q3 + q0*q2)],
        [2 * (q1*q2 + q0*q3),     1 - 2 * (q1**2 + q3**2), 2 * (q2*q3 - q0*q1)],
        [2 * (q1*q3 - q0*q2),     2 * (q2*q3 + q0*q1),     1 - 2 * (q1**2 + q2**2)],
    ])


def tilt_angle(q):
    """Angle in radians between the body x-axis and the inertial x-axis (vertical)"""
    q = np.asarray(q)
    return np.arccos(np.clip(1 - 2 * (q[2]**2 + q[3]**2), -1.0, 1.0))
