import numpy as np
import time
from numba import jit, prange
from tqdm import tqdm

from ..elements import GRID_KIND, RADIAL_KIND

K_ARGS = {'nopython': True, 'parallel': True, 'fastmath': True, 'cache': True}
# Single-point kernels are called from the tracer's worker threads
K_POINT_ARGS = {'nopython': True, 'parallel': False, 'fastmath': True, 'cache': True, 'nogil': True}


@jit(**K_POINT_ARGS)
def _field_at(x, y, kinds, cx, cy, cos2, sin2, lengths, decay):
    a, b = 0.0, 0.0
    for i in range(len(kinds)):
        dx = x - cx[i]
        dy = y - cy[i]
        d2 = dx*dx + dy*dy
        weight = np.exp(-decay * d2)

        if kinds[i] == GRID_KIND:
            if d2 <= lengths[i] * lengths[i]:
                a += weight * cos2[i]
                b += weight * sin2[i]
        elif kinds[i] == RADIAL_KIND:
            if d2 > 0.0:
                a += weight * (dy*dy - dx*dx) / d2
                b += weight * (-2.0 * dx * dy) / d2
    return a, b


@jit(**K_POINT_ARGS)
def _kernel_point(x, y, ox, oy, kinds, cx, cy, cos2, sin2, lengths, decay):
    num_samples = len(ox)
    a, b = 0.0, 0.0
    for s in range(num_samples):
        sa, sb = _field_at(x + ox[s], y + oy[s], kinds, cx, cy, cos2, sin2, lengths, decay)
        a += sa; b += sb
    return a / num_samples, b / num_samples


@jit(**K_ARGS)
def _kernel_cloud_flat(x_arr, y_arr, ox, oy, kinds, cx, cy, cos2, sin2, lengths, decay,
                       A_out, B_out):
    num_points = len(x_arr)
    num_samples = len(ox)

    for p in prange(num_points):
        a, b = 0.0, 0.0
        for s in range(num_samples):
            sa, sb = _field_at(x_arr[p] + ox[s], y_arr[p] + oy[s],
                               kinds, cx, cy, cos2, sin2, lengths, decay)
            a += sa; b += sb
        A_out[p] = a / num_samples
        B_out[p] = b / num_samples


@jit(**K_ARGS)
def _kernel_grid_rect(x_vec, y_vec, ox, oy, kinds, cx, cy, cos2, sin2, lengths, decay,
                      A_out, B_out):
    nx, ny = len(x_vec), len(y_vec)
    num_samples = len(ox)

    for iy in prange(ny):
        y = y_vec[iy]
        for ix in range(nx):
            x = x_vec[ix]
            a, b = 0.0, 0.0
            for s in range(num_samples):
                sa, sb = _field_at(x + ox[s], y + oy[s], kinds, cx, cy, cos2, sin2, lengths, decay)
                a += sa; b += sb
            A_out[iy, ix] = a / num_samples
            B_out[iy, ix] = b / num_samples


@jit(**K_POINT_ARGS)
def _segment_distance(px, py, x0, y0, x1, y1):
    ex, ey = x1 - x0, y1 - y0
    wx, wy = px - x0, py - y0
    seg_len2 = ex*ex + ey*ey
    t = 0.0
    if seg_len2 > 0.0:
        t = (wx*ex + wy*ey) / seg_len2
        t = min(1.0, max(0.0, t))
    rx, ry = wx - t*ex, wy - t*ey
    return rx*rx + ry*ry, t


@jit(**K_POINT_ARGS)
def _kernel_nearest_segment(px, py, sx0, sy0, sx1, sy1):
    best_d2, best_t = _segment_distance(px, py, sx0[0], sy0[0], sx1[0], sy1[0])
    best_idx = 0
    for i in range(1, len(sx0)):
        d2, t = _segment_distance(px, py, sx0[i], sy0[i], sx1[i], sy1[i])
        if d2 < best_d2:
            best_d2, best_idx, best_t = d2, i, t
    return best_d2, best_idx, best_t


@jit(**K_ARGS)
def _kernel_nearest_cloud(px, py, sx0, sy0, sx1, sy1, D_out):
    for p in prange(len(px)):
        best, _ = _segment_distance(px[p], py[p], sx0[0], sy0[0], sx1[0], sy1[0])
        for i in range(1, len(sx0)):
            d2, _ = _segment_distance(px[p], py[p], sx0[i], sy0[i], sx1[i], sy1[i])
            best = min(best, d2)
        D_out[p] = best


def nearest_segment(px, py, sx0, sy0, sx1, sy1):
    """
    Closest segment to a single point. Requires at least one segment.

    Returns (squared distance, segment index, clamped projection parameter).
    """
    d2, idx, t = _kernel_nearest_segment(float(px), float(py), sx0, sy0, sx1, sy1)
    return float(d2), int(idx), float(t)


def nearest_distance_cloud(px, py, sx0, sy0, sx1, sy1):
    """Squared distance from each query point to its closest segment."""
    px = np.ascontiguousarray(px, dtype=np.float64).ravel()
    py = np.ascontiguousarray(py, dtype=np.float64).ravel()
    out = np.empty(len(px))
    _kernel_nearest_cloud(px, py, sx0, sy0, sx1, sy1, out)
    return out


class NumbaMethods:
    def __init__(self, field, max_points_per_batch=250_000):
        self.kinds, self.cx, self.cy, self.cos2, self.sin2, self.lengths = field.packed
        self.decay = float(field.decay)
        self.ox = np.ascontiguousarray(field.kernel[:, 0])
        self.oy = np.ascontiguousarray(field.kernel[:, 1])
        self.center_only = np.zeros(1)
        self.max_batch_size = max_points_per_batch

    def _stencil(self, smoothed):
        if smoothed:
            return self.ox, self.oy
        return self.center_only, self.center_only

    def compute_cloud(self, x, y, smoothed=True, progress_bar=False):
        x = np.ascontiguousarray(x, dtype=np.float64).ravel()
        y = np.ascontiguousarray(y, dtype=np.float64).ravel()
        ox, oy = self._stencil(smoothed)
        total_points = len(x)
        batch_size = self.max_batch_size
        if progress_bar:
            batch_size = min(self.max_batch_size, max(1, total_points // 5))

        A = np.empty(total_points)
        B = np.empty(total_points)
        pbar = tqdm(total=total_points, disable=not progress_bar, desc="Cloud", unit="pts")

        for i in range(0, total_points, batch_size):
            end = min(i + batch_size, total_points)
            _kernel_cloud_flat(
                x[i:end], y[i:end], ox, oy,
                self.kinds, self.cx, self.cy, self.cos2, self.sin2, self.lengths, self.decay,
                A[i:end], B[i:end]
            )
            pbar.update(end - i)

        pbar.close()
        return A, B

    def compute_grid(self, x_vec, y_vec, smoothed=True, progress_bar=False):
        x_vec = np.ascontiguousarray(x_vec, dtype=np.float64)
        y_vec = np.ascontiguousarray(y_vec, dtype=np.float64)
        ox, oy = self._stencil(smoothed)
        nx, ny = len(x_vec), len(y_vec)
        rows_per_batch = max(1, self.max_batch_size // max(1, nx))
        if progress_bar:
            rows_per_batch = min(rows_per_batch, max(1, ny // 5))

        A = np.empty((ny, nx))
        B = np.empty((ny, nx))
        pbar = tqdm(total=ny, disable=not progress_bar, desc="Grid", unit="rows")

        for i in range(0, ny, rows_per_batch):
            end = min(i + rows_per_batch, ny)
            _kernel_grid_rect(
                x_vec, y_vec[i:end], ox, oy,
                self.kinds, self.cx, self.cy, self.cos2, self.sin2, self.lengths, self.decay,
                A[i:end, :], B[i:end, :]
            )
            pbar.update(end - i)

        pbar.close()
        return A, B

    def compute_point(self, x, y, smoothed=True):
        ox, oy = self._stencil(smoothed)
        a, b = _kernel_point(
            float(x), float(y), ox, oy,
            self.kinds, self.cx, self.cy, self.cos2, self.sin2, self.lengths, self.decay
        )
        return float(a), float(b)

    def nearest_segment(self, px, py, sx0, sy0, sx1, sy1):
        return nearest_segment(px, py, sx0, sy0, sx1, sy1)

    def nearest_distance_cloud(self, px, py, sx0, sy0, sx1, sy1):
        return nearest_distance_cloud(px, py, sx0, sy0, sx1, sy1)


def run_benchmark(grid_size=512):
    from ..elements import GridElement, RadialElement
    from ..tensor_field import TensorField

    field = TensorField(
        [GridElement((100.0, 100.0), angle=-2.0, length=500.0), RadialElement((200.0, 200.0))],
        decay=0.0004,
    )
    interface = NumbaMethods(field)

    x_vec = y_vec = np.arange(grid_size, dtype=float)
    X, Y = np.meshgrid(x_vec, y_vec)

    print(f"Numba Implementation | Elements: {len(field.elements)} | Points: {X.size:,}")

    # Warmups
    interface.compute_grid(x_vec[:2], y_vec[:2])
    interface.compute_cloud(X.ravel()[:4], Y.ravel()[:4])
    interface.compute_point(1.0, 1.0)

    print("\nStarting Grid benchmark...")
    t0 = time.perf_counter()
    interface.compute_grid(x_vec, y_vec, progress_bar=True)
    print(f"Grid time: {time.perf_counter() - t0:.4f}s")

    print("\nStarting Cloud benchmark...")
    t0 = time.perf_counter()
    interface.compute_cloud(X.ravel(), Y.ravel(), progress_bar=True)
    print(f"Cloud time: {time.perf_counter() - t0:.4f}s")

    print("\nStarting Point benchmark...")
    t0 = time.perf_counter()
    interface.compute_point(1.0, 1.0)
    print(f"point time: {time.perf_counter() - t0:.4f}s")


if __name__ == "__main__":
    run_benchmark()
