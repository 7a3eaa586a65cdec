"""Exceptions raised by scvxpdg"""

import numpy as np


class SCvxError(Exception):
    """Base class for all errors raised by scvxpdg"""
    pass


class SingularTransitionMatrixError(SCvxError, np.linalg.LinAlgError):
    """State transition matrix became singular during propagation"""
    pass


class PropagationError(SCvxError, RuntimeError):
    """Numerical integration of a segment did not complete"""
    pass


class StructuralMisuseError(SCvxError, ValueError):
    """Invalid use of a `ConicProgramModel`, e.g. declaring after compilation"""
    pass


class SolutionNotAvailableError(StructuralMisuseError):
    """Solution requested before a successful solve"""
    pass


class SolverFailedError(SCvxError, RuntimeError):
    """Convex subproblem could not be solved to optimality

    Args:
        status (str): status string reported by the convex solver
        iteration (int): SCvx iteration at which the failure occurred, if known
        summary_dict (dict): summary of the SCvx iterations completed so far, if known
    """
    def __init__(self, status, iteration=None, summary_dict=None):
        self.status = status
        self.iteration = iteration
        self.summary_dict = summary_dict
        if iteration is None:
            msg = f"Convex problem did not converge to optimality (status = {status})"
        else:
            msg = f"Convex problem did not converge to optimality at iteration {iteration} (status = {status})"
        super().__init__(msg)
