import numpy as np
import time
from tqdm import tqdm

from ..elements import GRID_KIND, RADIAL_KIND


def _kernel_field_flat(x_arr, y_arr, kinds, cx, cy, cos2, sin2, lengths, decay):
    """
    Vectorized field kernel. Returns the (a, b) components of the summed
    tensor [[a, b], [b, -a]] at every point.
    """
    dx = x_arr[None, :] - cx[:, None]
    dy = y_arr[None, :] - cy[:, None]
    d2 = dx * dx + dy * dy
    weight = np.exp(-decay * d2)

    grid = (kinds == GRID_KIND)[:, None]
    radial = (kinds == RADIAL_KIND)[:, None]

    # Grid: constant rotated basis, cut off beyond the element length
    in_reach = d2 <= (lengths * lengths)[:, None]
    grid_w = np.where(grid & in_reach, weight, 0.0)

    # Radial: unit-magnitude tensor, zero exactly at the center
    safe_d2 = np.where(d2 > 0.0, d2, 1.0)
    radial_w = np.where(radial & (d2 > 0.0), weight, 0.0)
    radial_a = (dy * dy - dx * dx) / safe_d2
    radial_b = -2.0 * dx * dy / safe_d2

    a = np.sum(grid_w * cos2[:, None] + radial_w * radial_a, axis=0)
    b = np.sum(grid_w * sin2[:, None] + radial_w * radial_b, axis=0)
    return a, b


def _kernel_smoothed_flat(x_arr, y_arr, ox, oy, kinds, cx, cy, cos2, sin2, lengths, decay):
    """Averages the field kernel over the smoothing stencil (ox, oy)."""
    k = len(ox)
    xs = (x_arr[:, None] + ox[None, :]).ravel()
    ys = (y_arr[:, None] + oy[None, :]).ravel()
    a, b = _kernel_field_flat(xs, ys, kinds, cx, cy, cos2, sin2, lengths, decay)
    return a.reshape(-1, k).mean(axis=1), b.reshape(-1, k).mean(axis=1)


def _kernel_segments(px, py, sx0, sy0, sx1, sy1):
    """
    Squared distance from every query point to every segment (clamped projection).
    Returns (d2, t) arrays of shape (num_points, num_segments).
    """
    ex = (sx1 - sx0)[None, :]
    ey = (sy1 - sy0)[None, :]
    wx = px[:, None] - sx0[None, :]
    wy = py[:, None] - sy0[None, :]

    seg_len2 = ex * ex + ey * ey
    safe_len2 = np.where(seg_len2 > 0.0, seg_len2, 1.0)
    t = np.where(seg_len2 > 0.0, (wx * ex + wy * ey) / safe_len2, 0.0)
    t = np.clip(t, 0.0, 1.0)

    rx = wx - t * ex
    ry = wy - t * ey
    return rx * rx + ry * ry, t


def nearest_segment(px, py, sx0, sy0, sx1, sy1):
    """
    Closest segment to a single point.

    Returns (squared distance, segment index, clamped projection parameter).
    """
    d2, t = _kernel_segments(
        np.array([px], dtype=float), np.array([py], dtype=float), sx0, sy0, sx1, sy1
    )
    idx = int(np.argmin(d2[0]))
    return float(d2[0, idx]), idx, float(t[0, idx])


def nearest_distance_cloud(px, py, sx0, sy0, sx1, sy1, max_batch_size=4096):
    """Squared distance from each query point to its closest segment."""
    px = np.asarray(px, dtype=float).ravel()
    py = np.asarray(py, dtype=float).ravel()
    out = np.empty(len(px))
    rows = max(1, max_batch_size // max(1, len(sx0)))
    for i in range(0, len(px), rows):
        end = min(i + rows, len(px))
        d2, _ = _kernel_segments(px[i:end], py[i:end], sx0, sy0, sx1, sy1)
        out[i:end] = d2.min(axis=1)
    return out


class NumpyMethods:
    def __init__(self, field, max_points_per_batch=4096):
        self.kinds, self.cx, self.cy, self.cos2, self.sin2, self.lengths = field.packed
        self.decay = field.decay
        self.ox, self.oy = field.kernel[:, 0], field.kernel[:, 1]
        self.max_batch_size = max_points_per_batch

    def _evaluate(self, x, y, smoothed):
        if smoothed:
            return _kernel_smoothed_flat(
                x, y, self.ox, self.oy,
                self.kinds, self.cx, self.cy, self.cos2, self.sin2, self.lengths, self.decay,
            )
        return _kernel_field_flat(
            x, y, self.kinds, self.cx, self.cy, self.cos2, self.sin2, self.lengths, self.decay
        )

    def compute_point(self, x, y, smoothed=True):
        a, b = self._evaluate(np.array([x], dtype=float), np.array([y], dtype=float), smoothed)
        return float(a[0]), float(b[0])

    def compute_cloud(self, x, y, smoothed=True, progress_bar=False):
        x = np.asarray(x, dtype=float).ravel()
        y = np.asarray(y, dtype=float).ravel()
        total_points = len(x)
        # Dynamic batch sizing to prevent OOM
        batch_size = max(1, self.max_batch_size // max(1, len(self.kinds)))

        A = np.zeros(total_points)
        B = np.zeros(total_points)
        pbar = tqdm(total=total_points, disable=not progress_bar, desc="Cloud (NP)", unit="pts")

        for i in range(0, total_points, batch_size):
            end = min(i + batch_size, total_points)
            A[i:end], B[i:end] = self._evaluate(x[i:end], y[i:end], smoothed)
            pbar.update(end - i)

        pbar.close()
        return A, B

    def compute_grid(self, x_vec, y_vec, smoothed=True, progress_bar=False):
        x_vec = np.asarray(x_vec, dtype=float)
        y_vec = np.asarray(y_vec, dtype=float)
        nx, ny = len(x_vec), len(y_vec)
        rows_per_batch = max(1, self.max_batch_size // max(1, nx))

        A = np.zeros((ny, nx))
        B = np.zeros((ny, nx))
        pbar = tqdm(total=ny, disable=not progress_bar, desc="Grid (NP)", unit="rows")

        for i in range(0, ny, rows_per_batch):
            end = min(i + rows_per_batch, ny)
            X, Y = np.meshgrid(x_vec, y_vec[i:end])
            a, b = self._evaluate(X.ravel(), Y.ravel(), smoothed)
            A[i:end, :] = a.reshape(end - i, nx)
            B[i:end, :] = b.reshape(end - i, nx)
            pbar.update(end - i)

        pbar.close()
        return A, B

    def nearest_segment(self, px, py, sx0, sy0, sx1, sy1):
        return nearest_segment(px, py, sx0, sy0, sx1, sy1)

    def nearest_distance_cloud(self, px, py, sx0, sy0, sx1, sy1):
        return nearest_distance_cloud(px, py, sx0, sy0, sx1, sy1, self.max_batch_size)


def run_benchmark(grid_size=256):
    from ..elements import GridElement, RadialElement
    from ..tensor_field import TensorField

    field = TensorField(
        [GridElement((100.0, 100.0), angle=-2.0, length=500.0), RadialElement((200.0, 200.0))],
        decay=0.0004,
    )
    interface = NumpyMethods(field)

    x_vec = y_vec = np.arange(grid_size, dtype=float)
    X, Y = np.meshgrid(x_vec, y_vec)

    print(f"NumPy Implementation | Elements: {len(field.elements)} | Points: {X.size:,}")

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
