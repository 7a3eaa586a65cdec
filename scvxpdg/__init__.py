"""scvxpdg: Successive Convexification for Powered Descent Guidance"""

# check for dependencies
_hard_dependencies = ("cvxpy", "numba", "numpy", "matplotlib", "scipy")
_missing_dependencies = []
for _dependency in _hard_dependencies:
    try:
        __import__(_dependency)
    except ImportError as _e:  # pragma: no cover
        _missing_dependencies.append(f"{_dependency}: {_e}")

if _missing_dependencies:  # pragma: no cover
    raise ImportError(
        "Unable to import required dependencies:\n" + "\n".join(_missing_dependencies)
    )
del _hard_dependencies, _dependency, _missing_dependencies

# errors
from ._errors import (
    SCvxError,
    SingularTransitionMatrixError,
    PropagationError,
    StructuralMisuseError,
    SolutionNotAvailableError,
    SolverFailedError,
)

# miscellaneous functions
from ._misc import foh_control, foh_controls, skew, euler_to_quat, dcm_body_to_inertial, tilt_angle

# parametric conic programs
from ._conic import (
    ConicProgramModel,
    VariableRef,
    ParameterRef,
    Derived,
    AffineExpression,
    Equality,
    Inequality,
    SecondOrderCone,
    norm2,
)

# dynamics models and their discretization
from .eoms import *
from ._propagator import SensitivityPropagator, DiscretizationResult, Discretization

# SCvx subproblem and algorithm
from ._subproblem import SCvxState, SCvxSubproblem, add_sigma_trust_region
from ._scvx import SCvx, Solution

# plotting
from ._plotting import plot_landing_trajectory, plot_time_histories, plot_thrust_magnitude
