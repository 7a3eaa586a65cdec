"""Test parametric conic program model"""

import numpy as np
import pytest

import os
import sys
sys.path.append(os.path.join(os.path.dirname(os.path.abspath(__file__)), ".."))

import scvxpdg
from scvxpdg import norm2


def test_reevaluation():
    """Two solves of one compiled program with different parameter values"""
    program = scvxpdg.ConicProgramModel()
    program.declare_variable("x", 2)
    program.declare_variable("y")
    program.declare_parameter("c", 2)
    program.declare_parameter("a")

    # x >= c, minimize sum(x)  ->  x = c
    for i in range(2):
        program.add_constraint(program.var("x", i) >= program.par("c", i))
        program.add_objective_term(1.0, program.var("x", i))

    # a y >= 1, minimize y  ->  y = 1/a
    program.add_constraint(program.par("a") * program.var("y") >= 1.0)
    program.add_constraint(program.var("y") <= 10.0)
    program.add_objective_term(1.0, program.var("y"))
    program.compile()
    assert program.n_variables == 3
    assert program.n_rows == 4

    assert program.solve({"c": np.array([1.0, 2.0]), "a": 2.0}) is True
    assert program.status == "optimal"
    assert np.allclose(program.solution_array("x"), [1.0, 2.0], atol=1e-6)
    assert np.isclose(program.solution_value(program.var("y")), 0.5, atol=1e-6)
    assert np.isclose(program.objective_value, 3.5, atol=1e-6)

    assert program.solve({"c": np.array([-3.0, 0.5]), "a": 4.0}) is True
    assert np.allclose(program.solution_array("x"), [-3.0, 0.5], atol=1e-6)
    assert np.isclose(program.solution_value(program.var("y")), 0.25, atol=1e-6)
    assert np.isclose(program.value(program.var("x", 0) + 2 * program.var("y") + program.par("c", 1)), -2.0, atol=1e-6)
    return


def test_second_order_cone():
    """Norm bound with a parametrized position"""
    program = scvxpdg.ConicProgramModel()
    program.declare_variable("r", 2)
    program.declare_variable("t")
    program.declare_parameter("r0", 2)
    r = program.variable_refs("r")
    program.add_constraint(norm2(r) <= program.var("t"))
    program.add_constraint(r[0] == program.par("r0", 0))
    program.add_constraint(r[1] == program.par("r0", 1))
    program.add_objective_term(1.0, program.var("t"))
    program.compile()

    assert program.solve({"r0": [3.0, 4.0]})
    assert np.isclose(program.solution_value(program.var("t")), 5.0, atol=1e-6)
    assert program.solve({"r0": [0.0, -4.0]})
    assert np.isclose(program.solution_value(program.var("t")), 4.0, atol=1e-6)
    return


def test_derived_coefficients():
    """Derived coefficients are evaluated once per solve"""
    calls = []
    def weight(values):
        calls.append(1)
        return 2.0 * values["a"]

    program = scvxpdg.ConicProgramModel()
    program.declare_variable("x", 2)
    program.declare_parameter("a", value=1.0)
    w = scvxpdg.Derived(weight, name="2a")
    for i in range(2):
        program.add_constraint(program.var("x", i) >= 1.0)
        program.add_objective_term(w, program.var("x", i))
    program.add_constraint(w * program.var("x", 0) - program.var("x", 1) <= 10.0)
    program.compile()

    assert program.solve()
    assert len(calls) == 1
    assert np.isclose(program.objective_value, 4.0, atol=1e-6)

    program.set_parameter_values({"a": 3.0})
    assert program.solve()
    assert len(calls) == 2
    assert np.isclose(program.objective_value, 12.0, atol=1e-6)
    return


def test_solution_before_solve():
    """Reading a solution before a successful solve fails"""
    program = scvxpdg.ConicProgramModel()
    program.declare_variable("x")
    x = program.var("x")
    with pytest.raises(scvxpdg.SolutionNotAvailableError):
        program.solution_value(x)

    program.add_constraint(x >= 1.0)
    program.add_objective_term(1.0, x)
    program.compile()
    with pytest.raises(scvxpdg.SolutionNotAvailableError):
        program.solution_value(x)
    with pytest.raises(scvxpdg.SolutionNotAvailableError):
        program.solution_array("x")
    assert issubclass(scvxpdg.SolutionNotAvailableError, scvxpdg.StructuralMisuseError)
    return


def test_failed_solve():
    """An infeasible program reports failure and exposes no solution"""
    program = scvxpdg.ConicProgramModel()
    program.declare_variable("x")
    program.declare_parameter("lb")
    x = program.var("x")
    program.add_constraint(x <= 0.0)
    program.add_constraint(x >= program.par("lb"))
    program.add_objective_term(1.0, x)
    program.compile()

    assert program.solve({"lb": -1.0}) is True
    assert np.isclose(program.solution_value(x), -1.0, atol=1e-6)
    assert program.solve({"lb": 1.0}) is False
    assert program.status not in ["optimal", "optimal_inaccurate"]
    with pytest.raises(scvxpdg.SolutionNotAvailableError):
        program.solution_value(x)
    return


def test_structural_misuse():
    """Invalid declarations, references and late modifications fail loudly"""
    program = scvxpdg.ConicProgramModel()
    program.declare_variable("X", (3,2))
    program.declare_parameter("p", 3)
    with pytest.raises(scvxpdg.StructuralMisuseError):
        program.declare_variable("X", 4)
    with pytest.raises(scvxpdg.StructuralMisuseError):
        program.var("Y", 0)
    with pytest.raises(scvxpdg.StructuralMisuseError):
        program.var("X", 3, 0)
    with pytest.raises(scvxpdg.StructuralMisuseError):
        program.var("X", 0)
    with pytest.raises(scvxpdg.StructuralMisuseError):
        program.par("p", 3)
    with pytest.raises(scvxpdg.StructuralMisuseError):
        program.var("X", 1.7, 0)
    with pytest.raises(scvxpdg.StructuralMisuseError):
        program.par("p", 1.0)
    with pytest.raises(scvxpdg.StructuralMisuseError):
        program.var("X", 0, 0) * program.var("X", 1, 0)
    with pytest.raises(scvxpdg.StructuralMisuseError):
        program.add_constraint(True)
    with pytest.raises(scvxpdg.StructuralMisuseError):
        program.set_parameter_values({"p": np.zeros(4)})
    with pytest.raises(scvxpdg.StructuralMisuseError):
        program.set_parameter_values({"q": 1.0})
    with pytest.raises(scvxpdg.StructuralMisuseError):
        program.solve()

    program.add_constraint(program.var("X", 2, 1) >= program.par("p", 2))
    program.add_objective_term(1.0, program.var("X", 2, 1))
    for i in range(3):
        for j in range(2):
            program.add_constraint(program.var("X", i, j) <= 5.0)
    program.compile()
    with pytest.raises(scvxpdg.StructuralMisuseError):
        program.compile()
    with pytest.raises(scvxpdg.StructuralMisuseError):
        program.declare_variable("Z")
    with pytest.raises(scvxpdg.StructuralMisuseError):
        program.declare_parameter("q")
    with pytest.raises(scvxpdg.StructuralMisuseError):
        program.add_constraint(program.var("X", 0, 0) <= 1.0)
    with pytest.raises(scvxpdg.StructuralMisuseError):
        program.add_objective_term(1.0, program.var("X", 0, 0))

    # missing parameter value
    with pytest.raises(scvxpdg.StructuralMisuseError):
        program.solve()
    assert program.solve({"p": [0.0, 1.0, 2.0]})
    assert np.isclose(program.solution_value(program.var("X", 2, 1)), 2.0, atol=1e-6)
    return


def test_large_program():
    """Program with many rows and one long cone, re-solved with new values"""
    n = 600
    program = scvxpdg.ConicProgramModel()
    program.declare_variable("x", n)
    program.declare_variable("t")
    program.declare_parameter("a", n)
    program.declare_parameter("p", n)
    x = program.variable_refs("x")

    # a_i x_i >= p_i, minimize sum(x) + t with norm2(x) <= t  ->  x = p/a
    for i in range(n):
        program.add_constraint(program.par("a", i) * x[i] >= program.par("p", i))
        program.add_objective_term(1.0, x[i])
    program.add_constraint(norm2(x) <= program.var("t"))
    program.add_objective_term(1.0, program.var("t"))
    program.compile()
    assert program.n_rows == 2*n + 1

    rng = np.random.default_rng(0)
    for _ in range(2):
        a = rng.uniform(0.5, 2.0, n)
        p = rng.uniform(0.1, 1.0, n)
        assert program.solve({"a": a, "p": p})
        assert np.allclose(program.solution_array("x"), p / a, atol=1e-5)
        assert np.isclose(program.solution_value(program.var("t")), np.linalg.norm(p / a), atol=1e-5)
    return


if __name__ == "__main__":
    test_reevaluation()
    test_derived_coefficients()
