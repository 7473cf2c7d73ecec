"""Utils for the tests."""

from math import cos, sin

import torch

import skarap


def quad_mesh():
    """Unit square split along the diagonal (0, 2).

    ```
    3 -- 2
    |  / |
    | /  |
    0 -- 1
    ```
    """
    points = torch.tensor(
        [[0, 0, 0], [1, 0, 0], [1, 1, 0], [0, 1, 0]],
        dtype=skarap.float_dtype,
    )
    triangles = torch.tensor([[0, 1, 2], [0, 2, 3]], dtype=skarap.int_dtype)
    return points, triangles


def equilateral_triangle():
    """A single equilateral triangle with unit sides."""
    points = torch.tensor(
        [[0, 0, 0], [1, 0, 0], [0.5, 3**0.5 / 2, 0]],
        dtype=skarap.float_dtype,
    )
    triangles = torch.tensor([[0, 1, 2]], dtype=skarap.int_dtype)
    return points, triangles


def tetrahedron():
    """Regular tetrahedron, consistently oriented."""
    points = torch.tensor(
        [[1, 1, 1], [1, -1, -1], [-1, 1, -1], [-1, -1, 1]],
        dtype=skarap.float_dtype,
    )
    triangles = torch.tensor(
        [[0, 1, 2], [0, 3, 1], [0, 2, 3], [1, 3, 2]],
        dtype=skarap.int_dtype,
    )
    return points, triangles


def octahedron():
    """Regular octahedron with vertices +x, -x, +y, -y, +z, -z."""
    points = torch.tensor(
        [
            [1, 0, 0],
            [-1, 0, 0],
            [0, 1, 0],
            [0, -1, 0],
            [0, 0, 1],
            [0, 0, -1],
        ],
        dtype=skarap.float_dtype,
    )
    triangles = torch.tensor(
        [
            [0, 2, 4],
            [2, 1, 4],
            [1, 3, 4],
            [3, 0, 4],
            [2, 0, 5],
            [1, 2, 5],
            [3, 1, 5],
            [0, 3, 5],
        ],
        dtype=skarap.int_dtype,
    )
    return points, triangles


def grid_mesh(n: int = 4):
    """Regular n x n grid of the unit square, two triangles per cell."""
    x = torch.linspace(0, 1, n, dtype=skarap.float_dtype)
    X, Y = torch.meshgrid(x, x, indexing="ij")
    points = torch.stack(
        [X.reshape(-1), Y.reshape(-1), torch.zeros_like(X).reshape(-1)], dim=1
    )

    triangles = []
    for i in range(n - 1):
        for j in range(n - 1):
            a, b = i * n + j, (i + 1) * n + j
            c, d = (i + 1) * n + j + 1, i * n + j + 1
            triangles += [[a, b, c], [a, c, d]]

    return points, torch.tensor(triangles, dtype=skarap.int_dtype)


def rotation_matrix(angle: float, axis: int = 2):
    """Rotation of a given angle around one of the coordinate axes."""
    i, j = [k for k in range(3) if k != axis]
    Q = torch.eye(3, dtype=skarap.float_dtype)
    Q[i, i], Q[i, j] = cos(angle), -sin(angle)
    Q[j, i], Q[j, j] = sin(angle), cos(angle)
    return Q


def random_rotations(n: int, generator=None):
    """Random rotations from normalized quaternions."""
    q = torch.randn(n, 4, dtype=skarap.float_dtype, generator=generator)
    q = q / q.norm(dim=1, keepdim=True)
    w, x, y, z = q.unbind(dim=1)
    return torch.stack(
        [
            1 - 2 * (y**2 + z**2),
            2 * (x * y - z * w),
            2 * (x * z + y * w),
            2 * (x * y + z * w),
            1 - 2 * (x**2 + z**2),
            2 * (y * z - x * w),
            2 * (x * z - y * w),
            2 * (y * z + x * w),
            1 - 2 * (x**2 + y**2),
        ],
        dim=1,
    ).view(n, 3, 3)


def random_state(problem, fixed_vertices, seed: int = 0):
    """ADMM state with random R, S (in SO(3)) and T."""
    generator = torch.Generator().manual_seed(seed)
    n = problem.n_vertices
    state = skarap.AdmmState.initial(
        points=problem.points,
        fixed=problem.partition.fixed,
        fixed_vertices=fixed_vertices,
    )
    n_free = problem.partition.n_free
    state.vertices_updated[problem.partition.free] += 0.1 * torch.randn(
        n_free, 3, dtype=skarap.float_dtype, generator=generator
    )
    state.rotations = torch.randn(
        n, 3, 3, dtype=skarap.float_dtype, generator=generator
    )
    state.projected = random_rotations(n, generator=generator)
    state.dual = 0.1 * torch.randn(
        n, 3, 3, dtype=skarap.float_dtype, generator=generator
    )
    return state
