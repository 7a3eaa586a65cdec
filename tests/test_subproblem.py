"""Test SCvx convex subproblem"""

import numpy as np

import os
import sys
sys.path.append(os.path.join(os.path.dirname(os.path.abspath(__file__)), ".."))

import scvxpdg


def get_sigma_trust_region_program(fix_Delta_sigma):
    program = scvxpdg.ConicProgramModel()
    program.declare_variable("sigma")
    program.declare_variable("Delta_sigma")
    program.declare_parameter("sigma_ref")
    program.declare_parameter("sigma_fix")
    program.add_constraint(program.var("sigma") == program.par("sigma_fix"))
    if fix_Delta_sigma:
        program.declare_parameter("Delta_sigma_fix")
        program.add_constraint(program.var("Delta_sigma") == program.par("Delta_sigma_fix"))
    else:
        program.add_objective_term(1.0, program.var("Delta_sigma"))
    scvxpdg.add_sigma_trust_region(program)
    program.compile()
    return program


def test_sigma_trust_region_minimum():
    """Smallest admissible Delta_sigma equals (sigma - sigma_ref)^2"""
    program = get_sigma_trust_region_program(fix_Delta_sigma=False)
    for sigma, sigma_ref in [(1.0, 3.0), (2.5, 2.0), (0.1, 7.0), (5.0, 5.0), (12.0, 0.5)]:
        assert program.solve({"sigma_ref": sigma_ref, "sigma_fix": sigma})
        Delta_sigma = program.solution_value(program.var("Delta_sigma"))
        assert np.isclose(Delta_sigma, (sigma - sigma_ref)**2, rtol=1e-5, atol=1e-6)
    return


def test_sigma_trust_region_feasibility():
    """Cone constraint is feasible exactly when the quadratic bound holds"""
    program = get_sigma_trust_region_program(fix_Delta_sigma=True)
    samples = [
        # sigma, sigma_ref, Delta_sigma
        (1.0, 3.0, 4.5),
        (1.0, 3.0, 3.5),
        (2.5, 2.0, 0.3),
        (2.5, 2.0, 0.2),
        (10.0, 4.0, 35.0),
        (10.0, 4.0, 37.0),
    ]
    for sigma, sigma_ref, Delta_sigma in samples:
        success = program.solve({"sigma_ref": sigma_ref, "sigma_fix": sigma, "Delta_sigma_fix": Delta_sigma})
        assert success == ((sigma - sigma_ref)**2 <= Delta_sigma)
    return


def test_subproblem_zero_dynamics():
    """Subproblem about a stationary reference only trades total time against its trust region"""
    model = scvxpdg.ZeroModel(2, 1)
    K = 3
    subproblem = scvxpdg.SCvxSubproblem(model, K)
    subproblem.build()
    assert subproblem.program.n_variables == K*2 + K*1 + (K-1)*2 + 3 + K

    state = scvxpdg.SCvxState(np.zeros((K,2)), np.zeros((K,1)), 1.0)
    disc = scvxpdg.SensitivityPropagator(model, K).discretize(state.X, state.U, state.sigma)
    new_state, info = subproblem.solve(state, disc)

    # minimize sigma + (sigma - 1)^2
    assert np.isclose(new_state.sigma, 0.5, atol=1e-5)
    assert np.isclose(info["Delta_sigma"], 0.25, atol=1e-5)
    assert np.allclose(new_state.X, 0.0, atol=1e-5)
    assert info["norm2_nu"] < 1e-6
    assert subproblem.cp_status in ["optimal", "optimal_inaccurate"]
    assert state.sigma == 1.0
    return


def test_subproblem_without_state_trust_region():
    """State/control trust region can be disabled"""
    model = scvxpdg.DoubleIntegrator()
    K = 10
    subproblem = scvxpdg.SCvxSubproblem(model, K, weight_trust_region_xu=None)
    subproblem.build()
    assert subproblem.program.n_variables == K*2 + K*1 + (K-1)*2 + 3
    values = subproblem.parameter_values(
        scvxpdg.SCvxState(*model.initialize(K), 3.0),
        scvxpdg.SensitivityPropagator(model, K).discretize(*model.initialize(K), 3.0),
    )
    assert "w_trust_region_xu" not in values
    assert values["A_bar"].shape == (K-1, 2, 2)
    return


if __name__ == "__main__":
    test_sigma_trust_region_minimum()
    test_sigma_trust_region_feasibility()
