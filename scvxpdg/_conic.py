"""Parametric conic program model

Decision variables and constraints are declared once and compiled into a
cvxpy problem whose numeric coefficients live in `cp.Parameter` objects.
Each call to `ConicProgramModel.solve()` re-evaluates the coefficients from a
mapping of parameter names to arrays, so the (DPP) canonicalization done by
cvxpy on the first solve is reused by every later solve.

Coefficients of affine expressions are one of:

- a plain number (constant),
- a `ParameterRef`, i.e. one entry of a named parameter array,
- a `Derived` object, i.e. a function of the whole parameter-value mapping.
"""

import numbers
import time
import types

import cvxpy as cp
import numpy as np
import scipy.sparse as sps

from ._errors import StructuralMisuseError, SolutionNotAvailableError


def _is_number(obj):
    return isinstance(obj, numbers.Real) and not isinstance(obj, bool)


def _normalize_shape(shape):
    if shape is None:
        return ()
    if isinstance(shape, numbers.Integral):
        return (int(shape),)
    return tuple(int(s) for s in shape)


def _normalize_indices(indices):
    if indices is None:
        return ()
    if not isinstance(indices, (tuple, list)):
        indices = (indices,)
    for i in indices:
        if not isinstance(i, numbers.Integral) or isinstance(i, bool):
            raise StructuralMisuseError(f"indices must be integers, but got {indices}")
    return tuple(int(i) for i in indices)


def _flat_index(kind, name, shape, indices):
    """Row-major position of `indices` within an array of `shape`"""
    if len(indices) != len(shape):
        raise StructuralMisuseError(
            f"{kind} '{name}' has shape {shape}, but got indices {indices}"
        )
    for i, n in zip(indices, shape):
        if i < 0 or i >= n:
            raise StructuralMisuseError(
                f"indices {indices} out of range for {kind} '{name}' with shape {shape}"
            )
    if len(shape) == 0:
        return 0
    return int(np.ravel_multi_index(indices, shape))


class _Expression:
    """Arithmetic and relational operators shared by the symbolic types"""
    __slots__ = ()
    __array_ufunc__ = None      # make numpy scalars defer to our reflected operators

    def _as_affine(self):
        raise NotImplementedError

    def __add__(self, other):
        other = _as_affine(other, strict=False)
        if other is None:
            return NotImplemented
        return self._as_affine()._add(other)

    __radd__ = __add__

    def __sub__(self, other):
        other = _as_affine(other, strict=False)
        if other is None:
            return NotImplemented
        return self._as_affine()._add(-other)

    def __rsub__(self, other):
        other = _as_affine(other, strict=False)
        if other is None:
            return NotImplemented
        return other._add(-self._as_affine())

    def __neg__(self):
        return self._as_affine()._scaled(_Coefficient(-1.0))

    def __pos__(self):
        return self._as_affine()

    def __eq__(self, other):
        other = _as_affine(other, strict=False)
        if other is None:
            return NotImplemented
        return Equality(self - other)

    def __le__(self, other):
        if isinstance(other, Norm2):
            return NotImplemented
        other = _as_affine(other, strict=False)
        if other is None:
            return NotImplemented
        return Inequality(self - other)

    def __ge__(self, other):
        if isinstance(other, Norm2):
            return NotImplemented
        other = _as_affine(other, strict=False)
        if other is None:
            return NotImplemented
        return Inequality(other - self)

    __hash__ = None


class _CoefficientLike(_Expression):
    """Objects usable as coefficients; on their own they act as affine constants"""
    __slots__ = ()

    def _as_coefficient(self):
        raise NotImplementedError

    def _as_affine(self):
        return AffineExpression(constants=(self._as_coefficient(),))

    def __mul__(self, other):
        coef = self._as_coefficient()
        if _is_number(other) or isinstance(other, _CoefficientLike):
            return coef._times(_as_coefficient(other))
        if isinstance(other, (VariableRef, AffineExpression)):
            return other._as_affine()._scaled(coef)
        return NotImplemented

    __rmul__ = __mul__

    def __truediv__(self, other):
        if not _is_number(other):
            return NotImplemented
        return self._as_coefficient()._times(_Coefficient(1.0 / other))

    def __neg__(self):
        return self._as_coefficient()._times(_Coefficient(-1.0))


class _Coefficient(_CoefficientLike):
    """Scaled coefficient source: `scale * value(source)`, with `source=None` meaning 1"""
    __slots__ = ("scale", "source")

    def __init__(self, scale, source=None):
        self.scale = float(scale)
        self.source = source

    def _as_coefficient(self):
        return self

    def _times(self, other):
        if self.source is None:
            return _Coefficient(self.scale * other.scale, other.source)
        if other.source is None:
            return _Coefficient(self.scale * other.scale, self.source)
        raise StructuralMisuseError(
            "a coefficient cannot be the product of two parameters; use `Derived` instead"
        )

    def evaluate(self, values, cache):
        if self.source is None:
            return self.scale
        return self.scale * _source_value(self.source, values, cache)

    def __repr__(self):
        return f"_Coefficient({self.scale}, {self.source!r})"


class ParameterRef(_CoefficientLike):
    """Handle to one scalar entry of a declared parameter array"""
    __slots__ = ("name", "indices", "flat_index")

    def __init__(self, name, indices, flat_index):
        self.name = name
        self.indices = indices
        self.flat_index = flat_index

    def _as_coefficient(self):
        return _Coefficient(1.0, self)

    def __repr__(self):
        return f"ParameterRef({self.name!r}, {self.indices})"


class Derived(_CoefficientLike):
    """Coefficient computed from the parameter values at every solve

    The function receives a read-only mapping `{name: np.ndarray}` holding the
    current values of all declared parameters and must return a float.

    Args:
        fn (callable): function of the parameter-value mapping
        name (str): label used in `repr`
    """
    __slots__ = ("fn", "name")

    def __init__(self, fn, name=None):
        self.fn = fn
        self.name = name

    def _as_coefficient(self):
        return _Coefficient(1.0, self)

    def evaluate(self, values):
        return float(self.fn(values))

    def __repr__(self):
        return f"Derived({self.name or self.fn!r})"


def _source_value(source, values, cache):
    if isinstance(source, ParameterRef):
        return float(values[source.name].flat[source.flat_index])
    key = id(source)
    if key not in cache:
        cache[key] = source.evaluate(values)
    return cache[key]


def _as_coefficient(obj):
    if _is_number(obj):
        return _Coefficient(obj)
    if isinstance(obj, _CoefficientLike):
        return obj._as_coefficient()
    raise StructuralMisuseError(f"cannot use object of type {type(obj).__name__} as a coefficient")


def _as_affine(obj, strict=True):
    if isinstance(obj, (AffineExpression, VariableRef, _CoefficientLike)):
        return obj._as_affine()
    if _is_number(obj):
        return AffineExpression(constants=(_Coefficient(obj),))
    if strict:
        raise StructuralMisuseError(f"cannot convert object of type {type(obj).__name__} to an affine expression")
    return None


class VariableRef(_Expression):
    """Handle to one scalar component of a declared decision variable"""
    __slots__ = ("name", "indices", "index")

    def __init__(self, name, indices, index):
        self.name = name
        self.indices = indices
        self.index = index

    def _as_affine(self):
        return AffineExpression(terms=((_Coefficient(1.0), self),))

    def __mul__(self, other):
        if _is_number(other) or isinstance(other, _CoefficientLike):
            return self._as_affine()._scaled(_as_coefficient(other))
        if isinstance(other, (VariableRef, AffineExpression)):
            raise StructuralMisuseError("product of two variables is not affine")
        return NotImplemented

    __rmul__ = __mul__

    def __truediv__(self, other):
        if not _is_number(other):
            return NotImplemented
        return self._as_affine()._scaled(_Coefficient(1.0 / other))

    def __repr__(self):
        return f"VariableRef({self.name!r}, {self.indices})"


class AffineExpression(_Expression):
    """Immutable sum of `coefficient * variable` terms plus constant terms"""
    __slots__ = ("terms", "constants")

    def __init__(self, terms=(), constants=()):
        self.terms = tuple(terms)
        self.constants = tuple(constants)

    def _as_affine(self):
        return self

    def _add(self, other):
        return AffineExpression(self.terms + other.terms, self.constants + other.constants)

    def _scaled(self, coef):
        return AffineExpression(
            tuple((coef._times(c), v) for c, v in self.terms),
            tuple(coef._times(c) for c in self.constants),
        )

    def __mul__(self, other):
        if _is_number(other) or isinstance(other, _CoefficientLike):
            return self._scaled(_as_coefficient(other))
        if isinstance(other, (VariableRef, AffineExpression)):
            raise StructuralMisuseError("product of two affine expressions is not affine")
        return NotImplemented

    __rmul__ = __mul__

    def __truediv__(self, other):
        if not _is_number(other):
            return NotImplemented
        return self._scaled(_Coefficient(1.0 / other))

    def __repr__(self):
        return f"AffineExpression({len(self.terms)} terms, {len(self.constants)} constants)"


class Equality:
    """Constraint `expr == 0`"""
    __slots__ = ("expr",)

    def __init__(self, expr):
        self.expr = _as_affine(expr)


class Inequality:
    """Constraint `expr <= 0`"""
    __slots__ = ("expr",)

    def __init__(self, expr):
        self.expr = _as_affine(expr)


class SecondOrderCone:
    """Constraint `norm2(args) <= bound`"""
    __slots__ = ("args", "bound")

    def __init__(self, args, bound):
        self.args = tuple(_as_affine(a) for a in args)
        self.bound = _as_affine(bound)
        if len(self.args) == 0:
            raise StructuralMisuseError("second-order cone needs at least one argument")


class Norm2:
    """Euclidean norm of a list of affine expressions, only usable as `norm2(...) <= expr`"""
    __slots__ = ("args",)
    __array_ufunc__ = None

    def __init__(self, exprs):
        self.args = tuple(_as_affine(e) for e in exprs)

    def __le__(self, other):
        return SecondOrderCone(self.args, other)

    def __ge__(self, other):
        raise StructuralMisuseError("a norm can only be bounded from above")

    __hash__ = None


def norm2(exprs):
    """Build the left-hand side of a second-order cone constraint `norm2(exprs) <= t`"""
    return Norm2(exprs)


class _CoefficientPlan:
    """Vectorized evaluation of a list of coefficients against parameter values"""
    def __init__(self, coefficients):
        self.size = len(coefficients)
        self.scales = np.array([c.scale for c in coefficients], dtype=float)
        self.fixed = np.array([i for i, c in enumerate(coefficients) if c.source is None], dtype=int)
        by_parameter = {}
        derived = {}
        for i, c in enumerate(coefficients):
            if isinstance(c.source, ParameterRef):
                by_parameter.setdefault(c.source.name, ([], []))
                by_parameter[c.source.name][0].append(i)
                by_parameter[c.source.name][1].append(c.source.flat_index)
            elif c.source is not None:
                derived.setdefault(id(c.source), (c.source, []))[1].append(i)
        self.by_parameter = {
            name: (np.array(entries, dtype=int), np.array(flat, dtype=int))
            for name, (entries, flat) in by_parameter.items()
        }
        self.derived = [(source, np.array(entries, dtype=int)) for source, entries in derived.values()]

    def evaluate(self, values, cache):
        data = np.zeros(self.size)
        data[self.fixed] = self.scales[self.fixed]
        for name, (entries, flat) in self.by_parameter.items():
            data[entries] = self.scales[entries] * values[name].ravel()[flat]
        for source, entries in self.derived:
            data[entries] = self.scales[entries] * _source_value(source, values, cache)
        return data


_BLOCK_SIZE = 256


class _RowBlock:
    """Affine rows `y = F x + f + R (d * (S x)) + R_c c`

    Terms with a constant coefficient go into the fixed matrix `F` and vector `f`;
    all other coefficients live in the cvxpy parameters `d` and `c`.
    """
    def __init__(self, rows, n_variables, name):
        self.n_rows = len(rows)
        self._n_variables = n_variables
        fixed_rows, fixed_cols, fixed_vals = [], [], []
        self.f = np.zeros(self.n_rows)
        row_ids, cols, coefs = [], [], []
        const_row_ids, const_coefs = [], []
        for r, expr in enumerate(rows):
            for coef, var in expr.terms:
                if coef.source is None:
                    fixed_rows.append(r)
                    fixed_cols.append(var.index)
                    fixed_vals.append(coef.scale)
                else:
                    row_ids.append(r)
                    cols.append(var.index)
                    coefs.append(coef)
            for coef in expr.constants:
                if coef.source is None:
                    self.f[r] += coef.scale
                else:
                    const_row_ids.append(r)
                    const_coefs.append(coef)
        self.F = sps.csc_matrix((fixed_vals, (fixed_rows, fixed_cols)), shape=(self.n_rows, n_variables))
        self.nnz = len(coefs)
        self.n_constants = len(const_coefs)
        self.plan = _CoefficientPlan(coefs)
        self.const_plan = _CoefficientPlan(const_coefs)
        self.d = cp.Parameter(self.nnz, name=f"{name}_coefficients") if self.nnz > 0 else None
        self.c = cp.Parameter(self.n_constants, name=f"{name}_constants") if self.n_constants > 0 else None
        self._row_ids = np.array(row_ids, dtype=int)
        self._cols = np.array(cols, dtype=int)
        self._const_row_ids = np.array(const_row_ids, dtype=int)

    def expression(self, x):
        """cvxpy expression of the rows"""
        expr = self.f
        if self.F.nnz > 0:
            expr = cp.Constant(self.F) @ x + expr
        if self.nnz > 0:
            S = sps.csc_matrix(
                (np.ones(self.nnz), (np.arange(self.nnz), self._cols)), shape=(self.nnz, self._n_variables)
            )
            R = sps.csc_matrix(
                (np.ones(self.nnz), (self._row_ids, np.arange(self.nnz))), shape=(self.n_rows, self.nnz)
            )
            expr = cp.Constant(R) @ cp.multiply(self.d, cp.Constant(S) @ x) + expr
        if self.n_constants > 0:
            Rc = sps.csc_matrix(
                (np.ones(self.n_constants), (self._const_row_ids, np.arange(self.n_constants))),
                shape=(self.n_rows, self.n_constants)
            )
            expr = cp.Constant(Rc) @ self.c + expr
        if not isinstance(expr, cp.Expression):
            expr = cp.Constant(expr)
        return expr

    def update(self, values, cache):
        if self.d is not None:
            self.d.value = self.plan.evaluate(values, cache)
        if self.c is not None:
            self.c.value = self.const_plan.evaluate(values, cache)


class _LinearMap:
    """Affine rows split into `_RowBlock`s of bounded size

    Each unit (a single row, or all rows of one cone) stays within one block, and a
    block is closed once it holds `block_size` coefficients, so every parametrized
    product cvxpy canonicalizes stays small.

    Args:
        units (list): lists of `AffineExpression` rows
        n_variables (int): length of the flat variable
        name (str): prefix of the cvxpy parameter names
        block_size (int): number of coefficients after which a block is closed
    """
    def __init__(self, units, n_variables, name, block_size=_BLOCK_SIZE):
        self.blocks = []
        self.block_units = []       # per block, (start, stop) rows of each unit
        rows, slices, size = [], [], 0
        for unit in units:
            slices.append((len(rows), len(rows) + len(unit)))
            rows.extend(unit)
            size += sum(len(expr.terms) + len(expr.constants) for expr in unit)
            if size >= block_size:
                self._add_block(rows, slices, n_variables, name)
                rows, slices, size = [], [], 0
        if rows:
            self._add_block(rows, slices, n_variables, name)

    def _add_block(self, rows, slices, n_variables, name):
        self.blocks.append(_RowBlock(rows, n_variables, f"{name}_{len(self.blocks)}"))
        self.block_units.append(slices)

    def update(self, values, cache):
        for block in self.blocks:
            block.update(values, cache)


class ConicProgramModel:
    """Second-order cone program with live-updatable coefficients

    Structure (variables, parameters, constraints, objective) is declared first,
    frozen by `compile()`, and then solved repeatedly with `solve()`.

    Args:
        solver (str): cvxpy solver used by `solve()` unless overridden
        name (str): name of the model, used to label cvxpy objects
    """
    def __init__(self, solver=cp.CLARABEL, name="program"):
        self.solver = solver
        self.name = name
        self._variables = {}            # name -> (offset, shape)
        self._parameters = {}           # name -> shape
        self._parameter_values = {}
        self._n_variables = 0
        self._equalities = []
        self._inequalities = []
        self._cones = []
        self._objective = AffineExpression()
        self.compiled = False
        self.status = "not_solved"
        self.objective_value = None
        self.solve_time = None
        self._solution = None
        self._problem = None
        return

    # ------------------------------------------------------------------ structure
    def _check_not_compiled(self, action):
        if self.compiled:
            raise StructuralMisuseError(f"cannot {action} after the model has been compiled")

    def declare_variable(self, name, shape=()):
        """Declare a tensor-shaped decision variable

        Args:
            name (str): unique variable name
            shape (int or tuple): shape of the variable, `()` for a scalar
        """
        self._check_not_compiled(f"declare variable '{name}'")
        if name in self._variables:
            raise StructuralMisuseError(f"variable '{name}' is already declared")
        shape = _normalize_shape(shape)
        if any(s <= 0 for s in shape):
            raise StructuralMisuseError(f"variable '{name}' must have a positive shape, got {shape}")
        self._variables[name] = (self._n_variables, shape)
        self._n_variables += int(np.prod(shape, dtype=int))
        return

    def variable_ref(self, name, indices=()):
        """Handle to one scalar component of variable `name`"""
        if name not in self._variables:
            raise StructuralMisuseError(f"variable '{name}' is not declared")
        offset, shape = self._variables[name]
        indices = _normalize_indices(indices)
        return VariableRef(name, indices, offset + _flat_index("variable", name, shape, indices))

    def var(self, name, *indices):
        """Shorthand for `variable_ref(name, indices)`"""
        return self.variable_ref(name, indices)

    def variable_refs(self, name):
        """Object array of handles with the shape of variable `name`"""
        if name not in self._variables:
            raise StructuralMisuseError(f"variable '{name}' is not declared")
        _, shape = self._variables[name]
        refs = np.empty(shape, dtype=object)
        for indices in np.ndindex(*shape):
            refs[indices] = self.variable_ref(name, indices)
        return refs

    def variable_shape(self, name):
        if name not in self._variables:
            raise StructuralMisuseError(f"variable '{name}' is not declared")
        return self._variables[name][1]

    def declare_parameter(self, name, shape=(), value=None):
        """Declare a named parameter array whose entries can be used as coefficients

        Args:
            name (str): unique parameter name
            shape (int or tuple): shape of the parameter array, `()` for a scalar
            value (array-like): optional initial value
        """
        self._check_not_compiled(f"declare parameter '{name}'")
        if name in self._parameters:
            raise StructuralMisuseError(f"parameter '{name}' is already declared")
        self._parameters[name] = _normalize_shape(shape)
        if value is not None:
            self.set_parameter_values({name: value})
        return

    def parameter_ref(self, name, indices=()):
        """Handle to one scalar entry of parameter `name`"""
        if name not in self._parameters:
            raise StructuralMisuseError(f"parameter '{name}' is not declared")
        shape = self._parameters[name]
        indices = _normalize_indices(indices)
        return ParameterRef(name, indices, _flat_index("parameter", name, shape, indices))

    def par(self, name, *indices):
        """Shorthand for `parameter_ref(name, indices)`"""
        return self.parameter_ref(name, indices)

    def set_parameter_values(self, values):
        """Assign values to declared parameters

        Args:
            values (dict): mapping from parameter name to array of the declared shape
        """
        for name, value in values.items():
            if name not in self._parameters:
                raise StructuralMisuseError(f"parameter '{name}' is not declared")
            arr = np.array(value, dtype=float)
            if arr.shape != self._parameters[name]:
                raise StructuralMisuseError(
                    f"parameter '{name}' has shape {self._parameters[name]}, but got value of shape {arr.shape}"
                )
            arr.flags.writeable = False
            self._parameter_values[name] = arr
        return

    def add_constraint(self, relation):
        """Add an `Equality`, `Inequality` or `SecondOrderCone` constraint"""
        self._check_not_compiled("add a constraint")
        if isinstance(relation, Equality):
            self._equalities.append(relation)
        elif isinstance(relation, Inequality):
            self._inequalities.append(relation)
        elif isinstance(relation, SecondOrderCone):
            self._cones.append(relation)
        else:
            raise StructuralMisuseError(f"expected a constraint, got object of type {type(relation).__name__}")
        return

    def add_objective_term(self, weight, expr):
        """Add `weight * expr` to the objective to be minimized"""
        self._check_not_compiled("add an objective term")
        self._objective = self._objective._add(_as_affine(expr)._scaled(_as_coefficient(weight)))
        return

    @property
    def n_variables(self):
        return self._n_variables

    @property
    def n_rows(self):
        return self._n_eq + self._n_ineq + self._n_cone if self.compiled else None

    def compile(self):
        """Freeze the structure and build the parametrized cvxpy problem"""
        self._check_not_compiled("compile")
        if self._n_variables == 0:
            raise StructuralMisuseError("cannot compile a model without variables")

        self._n_eq = len(self._equalities)
        self._n_ineq = len(self._inequalities)
        self._n_cone = sum(1 + len(c.args) for c in self._cones)

        # each cone is one unit (bound first, then arguments) and never spans two blocks
        n = self._n_variables
        self._x = cp.Variable(n, name=self.name)
        self._equality_map = _LinearMap([[c.expr] for c in self._equalities], n, f"{self.name}_eq")
        self._inequality_map = _LinearMap([[c.expr] for c in self._inequalities], n, f"{self.name}_ineq")
        self._cone_map = _LinearMap([[c.bound] + list(c.args) for c in self._cones], n, f"{self.name}_soc")
        self._objective_map = _LinearMap([[self._objective]], n, f"{self.name}_objective")

        constraints = []
        for block in self._equality_map.blocks:
            constraints.append(block.expression(self._x) == 0)
        for block in self._inequality_map.blocks:
            constraints.append(block.expression(self._x) <= 0)
        for block, slices in zip(self._cone_map.blocks, self._cone_map.block_units):
            y = block.expression(self._x)
            for start, stop in slices:
                constraints.append(cp.SOC(y[start], y[start + 1:stop]))
        objective = cp.sum(self._objective_map.blocks[0].expression(self._x))
        self._problem = cp.Problem(cp.Minimize(objective), constraints)
        assert self._problem.is_dpp(), "compiled problem must be DPP-compliant"
        self.compiled = True
        return

    # ------------------------------------------------------------------ numerics
    def _values(self):
        missing = [name for name in self._parameters if name not in self._parameter_values]
        if missing:
            raise StructuralMisuseError(f"no value assigned to parameter(s) {missing}")
        return types.MappingProxyType(self._parameter_values)

    def solve(self, parameter_values=None, solver=None, verbose=False, **solver_kwargs):
        """Solve the compiled problem with the current parameter values

        Args:
            parameter_values (dict): optional mapping of parameter values to assign before solving
            solver (str): cvxpy solver, defaults to `self.solver`
            verbose (bool): whether to print solver output
            solver_kwargs: passed on to `cvxpy.Problem.solve`

        Returns:
            (bool): `True` if the solver reported an optimal (or optimal inaccurate) solution
        """
        if not self.compiled:
            raise StructuralMisuseError("model must be compiled before solving")
        if parameter_values is not None:
            self.set_parameter_values(parameter_values)
        values = self._values()
        cache = {}
        for linear_map in (self._equality_map, self._inequality_map, self._cone_map, self._objective_map):
            linear_map.update(values, cache)

        self._solution = None
        self.objective_value = None
        tstart = time.time()
        try:
            self._problem.solve(solver=solver or self.solver, verbose=verbose, **solver_kwargs)
            self.status = self._problem.status
        except cp.error.SolverError:
            self.status = "solver_error"
        self.solve_time = time.time() - tstart

        if self.status not in ["optimal", "optimal_inaccurate"] or self._x.value is None:
            return False
        self._solution = np.array(self._x.value)
        self.objective_value = float(self._problem.value)
        return True

    def _require_solution(self):
        if self._solution is None:
            raise SolutionNotAvailableError(
                f"no solution available (status = {self.status}); call solve() successfully first"
            )

    def solution_value(self, ref):
        """Value of one variable component after a successful solve"""
        self._require_solution()
        if not isinstance(ref, VariableRef):
            raise StructuralMisuseError(f"expected a VariableRef, got object of type {type(ref).__name__}")
        return float(self._solution[ref.index])

    def solution_array(self, name):
        """Value of a whole variable, with its declared shape, after a successful solve"""
        self._require_solution()
        if name not in self._variables:
            raise StructuralMisuseError(f"variable '{name}' is not declared")
        offset, shape = self._variables[name]
        size = int(np.prod(shape, dtype=int))
        return self._solution[offset:offset + size].reshape(shape).copy()

    def value(self, expr):
        """Evaluate an affine expression at the solution and the current parameter values"""
        self._require_solution()
        expr = _as_affine(expr)
        values = self._values()
        cache = {}
        val = sum(c.evaluate(values, cache) * self._solution[v.index] for c, v in expr.terms)
        val += sum(c.evaluate(values, cache) for c in expr.constants)
        return float(val)
