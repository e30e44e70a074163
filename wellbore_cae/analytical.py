"""厚肉円筒の Lamé 解（坑井断面の検証用）.

内半径 a（坑壁）で内圧 p_i、外半径 b（遠方境界）で外圧 p_o を受ける
厚肉円筒の軸対称弾性解。圧力は圧縮を正とする。

== 応力 ==
  A = (p_i a² − p_o b²) / (b² − a²)
  B = (p_i − p_o) a² b² / (b² − a²)
  σ_rr = A − B / r²
  σ_θθ = A + B / r²
  σ_zz = 2νA（平面ひずみ） / 0（平面応力）

== 径方向変位 ==
  平面ひずみ: u_r = (1+ν)/E · [(1−2ν) A r + B / r]
  平面応力:   u_r = 1/E · [(1−ν) A r + (1+ν) B / r]

境界タグの法線表面力 val2[0]（外向き法線方向、負値で圧縮）とは
p = −val2[0] の関係にある。

参考文献:
  - Timoshenko, S.P. & Goodier, J.N. "Theory of Elasticity" §33
"""

from __future__ import annotations

from dataclasses import dataclass

import numpy as np

from wellbore_cae.materials.elastic import PlaneMode


@dataclass(frozen=True)
class LameCylinder:
    """厚肉円筒の Lamé 解.

    Attributes:
        r_inner: 内半径 a
        r_outer: 外半径 b
        p_inner: 内圧（圧縮正）
        p_outer: 外圧（圧縮正）
        E: ヤング率
        nu: ポアソン比
        plane_mode: 平面ひずみ / 平面応力
    """

    r_inner: float
    r_outer: float
    p_inner: float
    p_outer: float
    E: float
    nu: float
    plane_mode: PlaneMode = PlaneMode.PLANE_STRAIN

    def __post_init__(self) -> None:
        if self.r_inner <= 0 or self.r_outer <= self.r_inner:
            raise ValueError(f"内径 a={self.r_inner} < 外径 b={self.r_outer} > 0 が必要")
        if self.E <= 0:
            raise ValueError(f"ヤング率 E={self.E} は正値が必要")
        if not (-1.0 < self.nu < 0.5):
            raise ValueError(f"ポアソン比 nu={self.nu} は (-1, 0.5) の範囲が必要")
        object.__setattr__(self, "plane_mode", PlaneMode(self.plane_mode))

    @property
    def coefficients(self) -> tuple[float, float]:
        """(A, B)."""
        a2 = self.r_inner**2
        b2 = self.r_outer**2
        A = (self.p_inner * a2 - self.p_outer * b2) / (b2 - a2)
        B = (self.p_inner - self.p_outer) * a2 * b2 / (b2 - a2)
        return A, B

    def radial_displacement(self, r: np.ndarray | float) -> np.ndarray:
        """径方向変位 u_r(r)."""
        r = np.asarray(r, dtype=float)
        A, B = self.coefficients
        E, nu = self.E, self.nu
        if self.plane_mode is PlaneMode.PLANE_STRAIN:
            return (1.0 + nu) / E * ((1.0 - 2.0 * nu) * A * r + B / r)
        return ((1.0 - nu) * A * r + (1.0 + nu) * B / r) / E

    def polar_stress(self, r: np.ndarray | float) -> tuple[np.ndarray, np.ndarray, np.ndarray]:
        """(σ_rr, σ_θθ, σ_zz) を返す."""
        r = np.asarray(r, dtype=float)
        A, B = self.coefficients
        s_rr = A - B / r**2
        s_tt = A + B / r**2
        if self.plane_mode is PlaneMode.PLANE_STRAIN:
            s_zz = np.full_like(r, 2.0 * self.nu * A)
        else:
            s_zz = np.zeros_like(r)
        return s_rr, s_tt, s_zz

    def displacement(self, points: np.ndarray) -> np.ndarray:
        """直交座標の変位 (n, 2) を返す."""
        points = np.asarray(points, dtype=float)[:, :2]
        r = np.linalg.norm(points, axis=1)
        ur = self.radial_displacement(r)
        return points * (ur / r)[:, None]

    def stress(self, points: np.ndarray) -> np.ndarray:
        """直交座標の応力 (n, 4) [σxx, σyy, τxy, σzz] を返す."""
        points = np.asarray(points, dtype=float)[:, :2]
        r = np.linalg.norm(points, axis=1)
        c = points[:, 0] / r
        s = points[:, 1] / r
        s_rr, s_tt, s_zz = self.polar_stress(r)
        sxx = s_rr * c**2 + s_tt * s**2
        syy = s_rr * s**2 + s_tt * c**2
        txy = (s_rr - s_tt) * c * s
        return np.column_stack([sxx, syy, txy, s_zz])


def lame_from_tractions(
    r_inner: float,
    r_outer: float,
    wall_traction: float,
    far_field_traction: float,
    E: float,
    nu: float,
    plane_mode: PlaneMode | str = PlaneMode.PLANE_STRAIN,
) -> LameCylinder:
    """法線表面力（負値で圧縮）から Lamé 解を作る."""
    return LameCylinder(
        r_inner=r_inner,
        r_outer=r_outer,
        p_inner=-float(wall_traction),
        p_outer=-float(far_field_traction),
        E=E,
        nu=nu,
        plane_mode=PlaneMode(plane_mode),
    )


__all__ = ["LameCylinder", "lame_from_tractions"]
