# conekit

Building blocks for splitting-type conic optimization solvers, on top of numpy.

## What it provides

- `conekit.cones`: projections onto the zero, nonnegative, box, second-order,
  positive semidefinite, exponential and power cones. `Cone` describes a
  product of cones (`full_dim`, `boundaries`, `validate`, `header`, `copy`);
  `ConeWork` projects onto the dual of that product with `proj_dual_cone`,
  optionally in a norm weighted by `r_y` (see `set_r_y`). The single-cone
  projections `proj_soc`, `proj_power_cone`, `proj_box_cone` and
  `proj_semi_definite_cone` are available on their own. Invalid cone
  descriptions raise `ConeError`.
- `conekit.exp_cone`: `proj_pd_exp_cone(v0, primal)`, the projection onto the
  primal or dual exponential cone. It returns the projected point and its
  distance from `v0`.
- `conekit.matrix`: `CscMatrix`, a compressed-sparse-column matrix
  (`from_dense`, `to_dense`, `nnz`, `copy`), the products `accum_by_a`
  (`y + A x`), `accum_by_atrans` (`y + A' x`) and `accum_by_p` (`y + P x`
  with `P` stored as its upper triangle), `validate_lin_sys`, which raises
  `MatrixError` on malformed data, and `normalize_a_p`, the Ruiz/l2
  equilibration that returns scaled copies of `P` and `A` and a `Scaling`.
- `conekit.normalize`: `normalize_b_c`, `normalize_sol`, `un_normalize_sol`,
  `un_normalize_primal` and `un_normalize_dual`, which move vectors and
  solutions between the original and the scaled problem.
- `conekit.scaling`: the `Scaling` (diagonals `d`, `e` and the primal / dual
  scales) and `Solution` (`x`, `y`, `s`) data classes.
- `conekit.aa`: `AndersonAccelerator`, type-I and type-II Anderson
  acceleration of a fixed-point map, with safeguarding.
- `conekit.interrupt`: `InterruptListener`, a context manager that records
  Ctrl-C instead of raising `KeyboardInterrupt`, so a long loop can stop
  cleanly.
- `conekit.linalg`: small vector norms and reductions (`norm_2`, `norm_sq`,
  `norm_inf`, `norm_diff`, `norm_inf_diff`, `dot`, `mean`).

All functions return new arrays; the inputs are not modified.

## What it does not do

conekit is a set of components, not a solver. It has no iteration loop that
solves a conic problem, no linear-system solver, no reading or writing of
problem files and no command-line program.

## Installation

```
pip install .
```

To run the tests:

```
pip install .[test]
pytest
```

## Examples

Projecting onto a product cone and onto the exponential cone:

```python
import numpy as np
from conekit.cones import Cone, ConeWork
from conekit.exp_cone import proj_pd_exp_cone

cone = Cone(z=1, l=2, q=[3])
cone.validate(6)
work = ConeWork(cone, cone.full_dim())

x = np.array([1.0, -2.0, 3.0, 1.0, 2.0, 2.0])
y = work.proj_dual_cone(x)          # projection onto the dual cone

point, dist = proj_pd_exp_cone([1.0, 2.0, 3.0], True)
```

Equilibrating a matrix:

```python
from conekit.matrix import CscMatrix, normalize_a_p
from conekit.normalize import normalize_b_c

a = CscMatrix.from_dense([[1.0, 2.0], [0.0, 30.0], [4.0, 0.0]])
cone = Cone(l=3)
p_scaled, a_scaled, scaling = normalize_a_p(None, a, ConeWork(cone, 3))
b_scaled, c_scaled = normalize_b_c(scaling, [1.0, 2.0, 3.0], [1.0, -1.0])
```

Anderson acceleration of a fixed-point iteration `x <- g(x)`:

```python
import numpy as np
from conekit.aa import AndersonAccelerator

mat = np.array([[0.9, 0.05], [0.0, 0.8]])
shift = np.array([1.0, 2.0])

def g(x):
    return mat @ x + shift

aa = AndersonAccelerator(dim=2, mem=2)
x = np.zeros(2)
for _ in range(50):
    f, weight_norm = aa.apply(g(x), x)
    x = f
```

Stopping a loop on Ctrl-C:

```python
from conekit.interrupt import InterruptListener

with InterruptListener() as listener:
    while not listener.interrupted():
        ...
```