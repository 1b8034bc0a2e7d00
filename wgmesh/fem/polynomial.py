"""wgmesh.fem.polynomial
Real polynomials over R^k backed by SymPy.

Variables are positional: a polynomial in k variables is a function of
(x1, ..., xk). Fixing one variable to a constant drops it and renumbers the
remaining variables in order, so a polynomial reduced along axis ``a`` lives
naturally on the (k-1)-dimensional face perpendicular to ``a``.
"""
import numbers
from dataclasses import dataclass
from functools import cached_property, lru_cache
from typing import Dict, Mapping, Sequence, Tuple, Union

import numpy as np
import sympy as sp

__all__ = [
    "Monomial", "Polynomial", "VectorMonomial", "VectorPolynomial",
    "coord_symbols", "monomial_value", "polynomial_value", "is_zero",
    "reduce_dim_by_fixing", "integral_on_rect_at_origin",
]


@lru_cache(maxsize=None)
def coord_symbols(nvars: int) -> Tuple[sp.Symbol, ...]:
    return tuple(sp.Symbol(f"x{i}") for i in range(1, nvars + 1))


class Polynomial:
    """
    Polynomial in ``nvars`` variables.

    For ``nvars >= 1`` the terms are held in a ``sympy.Poly`` over the reals;
    a polynomial in zero variables is just a constant.
    """
    __slots__ = ("nvars", "_poly", "_const", "_fn")

    def __init__(self, terms: Mapping[Tuple[int, ...], float], nvars: int):
        self.nvars = int(nvars)
        self._fn = None
        if self.nvars == 0:
            self._poly = None
            self._const = float(sum(terms.values()))
            return
        for exps in terms:
            if len(exps) != self.nvars:
                raise ValueError(f"exponent tuple {exps} does not match {self.nvars} variables")
        self._poly = sp.Poly.from_dict(dict(terms) or {(0,) * self.nvars: 0},
                                       *coord_symbols(self.nvars), domain="RR")
        self._const = 0.0

    @classmethod
    def constant(cls, c: float, nvars: int) -> "Polynomial":
        return cls({(0,) * nvars: float(c)}, nvars)

    @classmethod
    def zero(cls, nvars: int) -> "Polynomial":
        return cls({}, nvars)

    @classmethod
    def _from_poly(cls, poly, nvars: int) -> "Polynomial":
        if nvars == 0:
            return cls.constant(float(poly), 0)
        return cls({m: float(c) for m, c in poly.terms()}, nvars)

    # ------------------------------------------------------------------
    def terms(self) -> Dict[Tuple[int, ...], float]:
        if self._poly is None:
            return {(): self._const}
        return {m: float(c) for m, c in self._poly.terms()}

    @property
    def is_zero(self) -> bool:
        if self._poly is None:
            return self._const == 0.0
        return bool(self._poly.is_zero)

    def as_expr(self):
        return sp.Float(self._const) if self._poly is None else self._poly.as_expr()

    def as_polynomial(self) -> "Polynomial":
        return self

    # ------------------------------------------------------------------
    def value(self, x: Sequence[float]) -> float:
        if self._poly is None:
            return self._const
        if self._fn is None:
            self._fn = sp.lambdify(coord_symbols(self.nvars), self._poly.as_expr(), "numpy")
        return float(self._fn(*x))

    __call__ = value

    def reduce_dim_by_fixing(self, axis: int, value: float) -> "Polynomial":
        """Fix variable ``axis`` (1-based) to ``value``, yielding a polynomial in nvars-1 variables."""
        if not 1 <= axis <= self.nvars:
            raise IndexError(f"axis {axis} out of range 1..{self.nvars}")
        reduced = self._poly.eval(coord_symbols(self.nvars)[axis - 1], float(value))
        if self.nvars == 1:
            return Polynomial.constant(float(reduced), 0)
        return Polynomial({m: float(c) for m, c in reduced.terms()}, self.nvars - 1)

    def integral_on_rect_at_origin(self, dims: Sequence[float]) -> float:
        """Exact integral over the box [0, dims[0]] x ... x [0, dims[k-1]]."""
        if len(dims) != self.nvars:
            raise ValueError(f"box has {len(dims)} dimensions, polynomial has {self.nvars} variables")
        if self._poly is None:
            return self._const
        dims = np.asarray(dims, dtype=float)
        total = 0.0
        for exps, c in self._poly.terms():
            e = np.asarray(exps, dtype=float) + 1.0
            total += float(c) * float(np.prod(dims ** e / e))
        return total

    # ------------------------------------------------------------------
    def _check_compatible(self, other: "Polynomial"):
        if other.nvars != self.nvars:
            raise ValueError(f"cannot combine polynomials in {self.nvars} and {other.nvars} variables")

    def __mul__(self, other):
        if isinstance(other, numbers.Real):
            other = float(other)
            if self._poly is None:
                return Polynomial.constant(self._const * other, 0)
            return Polynomial._from_poly(self._poly * other, self.nvars)
        other = other.as_polynomial()
        self._check_compatible(other)
        if self._poly is None:
            return Polynomial.constant(self._const * other._const, 0)
        return Polynomial._from_poly(self._poly * other._poly, self.nvars)

    __rmul__ = __mul__

    def __add__(self, other):
        other = other.as_polynomial()
        self._check_compatible(other)
        if self._poly is None:
            return Polynomial.constant(self._const + other._const, 0)
        return Polynomial._from_poly(self._poly + other._poly, self.nvars)

    def __neg__(self):
        return self * -1.0

    def __sub__(self, other):
        return self + (-other.as_polynomial())

    def __eq__(self, other):
        if not isinstance(other, (Polynomial, Monomial)):
            return NotImplemented
        other = other.as_polynomial()
        return self.nvars == other.nvars and self.terms() == other.terms()

    def __hash__(self):
        return hash((self.nvars, tuple(sorted(self.terms().items()))))

    def __repr__(self):
        return f"Polynomial({self.as_expr()}, nvars={self.nvars})"


@dataclass(frozen=True)
class Monomial:
    """c * x1^e1 * ... * xk^ek."""
    exps: Tuple[int, ...]
    coef: float = 1.0

    def __post_init__(self):
        object.__setattr__(self, "exps", tuple(int(e) for e in self.exps))
        if any(e < 0 for e in self.exps):
            raise ValueError(f"negative exponent in {self.exps}")

    @classmethod
    def one(cls, nvars: int) -> "Monomial":
        return cls((0,) * nvars)

    @property
    def nvars(self) -> int:
        return len(self.exps)

    @property
    def is_zero(self) -> bool:
        return self.coef == 0.0

    @cached_property
    def poly(self) -> Polynomial:
        return Polynomial({self.exps: float(self.coef)}, self.nvars)

    def as_polynomial(self) -> Polynomial:
        return self.poly

    def value(self, x: Sequence[float]) -> float:
        if not self.exps:
            return float(self.coef)
        return float(self.coef * np.prod(np.power(np.asarray(x, dtype=float), self.exps)))

    __call__ = value

    def reduce_dim_by_fixing(self, axis: int, value: float) -> Polynomial:
        return self.poly.reduce_dim_by_fixing(axis, value)

    def integral_on_rect_at_origin(self, dims: Sequence[float]) -> float:
        return self.poly.integral_on_rect_at_origin(dims)

    def __mul__(self, other):
        if isinstance(other, Monomial):
            if other.nvars != self.nvars:
                raise ValueError(f"cannot multiply monomials in {self.nvars} and {other.nvars} variables")
            return Monomial(tuple(a + b for a, b in zip(self.exps, other.exps)), self.coef * other.coef)
        if isinstance(other, numbers.Real):
            return Monomial(self.exps, self.coef * float(other))
        return self.poly * other

    __rmul__ = __mul__


PolyLike = Union[Monomial, Polynomial]


class VectorPolynomial:
    """Vector of polynomials, one component per axis (components indexed 1..n)."""

    def __init__(self, components: Sequence[PolyLike]):
        self.components = tuple(c.as_polynomial() for c in components)

    def __len__(self):
        return len(self.components)

    def __getitem__(self, axis: int) -> Polynomial:
        if not 1 <= axis <= len(self.components):
            raise IndexError(f"component {axis} out of range 1..{len(self.components)}")
        return self.components[axis - 1]

    def value(self, x: Sequence[float]) -> np.ndarray:
        return np.array([c.value(x) for c in self.components])


class VectorMonomial(VectorPolynomial):
    """Vector whose only non-zero component ``nz_comp`` is the monomial ``mon``."""

    def __init__(self, mon: Monomial, nz_comp: int, ncomps: int = None):
        ncomps = mon.nvars if ncomps is None else ncomps
        if not 1 <= nz_comp <= ncomps:
            raise IndexError(f"non-zero component {nz_comp} out of range 1..{ncomps}")
        self.mon = mon
        self.nz_comp = nz_comp
        zero = Polynomial.zero(mon.nvars)
        super().__init__([mon if i == nz_comp else zero for i in range(1, ncomps + 1)])


# -------------------------------------------------------------------------
# Functional interface used by the integration engine
# -------------------------------------------------------------------------
def monomial_value(mon: Monomial, x: Sequence[float]) -> float:
    return mon.value(x)


def polynomial_value(p: PolyLike, x: Sequence[float]) -> float:
    return p.value(x)


def is_zero(p: PolyLike) -> bool:
    return p.is_zero


def reduce_dim_by_fixing(axis: int, value: float, p: PolyLike) -> Polynomial:
    return p.reduce_dim_by_fixing(axis, value)


def integral_on_rect_at_origin(p: PolyLike, dims: Sequence[float]) -> float:
    return p.integral_on_rect_at_origin(dims)
