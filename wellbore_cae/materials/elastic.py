from __future__ import annotations

from enum import Enum

import numpy as np


class PlaneMode(str, Enum):
    """2 次元弾性の仮定."""

    PLANE_STRAIN = "plane_strain"
    PLANE_STRESS = "plane_stress"


def constitutive_plane_strain(E: float, nu: float) -> np.ndarray:
    """平面歪みの弾性マトリクス D を返す。

    Args:
        E: ヤング率
        nu: ポアソン比

    Returns:
        D: (3,3) 弾性マトリクス
    """
    lam = E * nu / ((1.0 + nu) * (1.0 - 2.0 * nu))
    mu = E / (2.0 * (1.0 + nu))
    return np.array(
        [[lam + 2.0 * mu, lam, 0.0], [lam, lam + 2.0 * mu, 0.0], [0.0, 0.0, mu]],
        dtype=float,
    )


def constitutive_plane_stress(E: float, nu: float) -> np.ndarray:
    """平面応力の弾性マトリクス D を返す。

    Args:
        E: ヤング率
        nu: ポアソン比

    Returns:
        D: (3,3) 弾性マトリクス
    """
    c = E / (1.0 - nu * nu)
    return np.array(
        [[c, c * nu, 0.0], [c * nu, c, 0.0], [0.0, 0.0, c * (1.0 - nu) / 2.0]],
        dtype=float,
    )


class ElasticMaterialLaw:
    """2D 等方線形弾性の材料則（MaterialLawProtocol 適合）.

    応力は Voigt 表記 [σxx, σyy, τxy]、ひずみは工学せん断ひずみ [εxx, εyy, γxy]。
    平面ひずみでは σzz = ν(σxx + σyy)、平面応力では σzz = 0。

    Args:
        region_tag: 領域タグ
        E: ヤング率
        nu: ポアソン比
        plane_mode: 平面ひずみ / 平面応力
    """

    is_linear: bool = True
    scalar_fields: tuple[str, ...] = (
        "SigmaX",
        "SigmaY",
        "SigmaZ",
        "TauXY",
        "VonMises",
        "DisplacementX",
        "DisplacementY",
    )
    vector_fields: tuple[str, ...] = ("Displacement", "Stress")

    def __init__(
        self,
        region_tag: int,
        E: float,
        nu: float,
        plane_mode: PlaneMode | str = PlaneMode.PLANE_STRAIN,
    ) -> None:
        if not E > 0.0:
            raise ValueError(f"ヤング率は正値: E={E}")
        if not -1.0 < nu < 0.5:
            raise ValueError(f"ポアソン比は (-1, 0.5) の範囲: nu={nu}")
        self.region_tag = int(region_tag)
        self.E = float(E)
        self.nu = float(nu)
        self.plane_mode = PlaneMode(plane_mode)
        if self.plane_mode is PlaneMode.PLANE_STRAIN:
            self._D = constitutive_plane_strain(self.E, self.nu)
        else:
            self._D = constitutive_plane_stress(self.E, self.nu)
        self._D.setflags(write=False)

    def tangent(self, strain: np.ndarray | None = None) -> np.ndarray:
        """弾性テンソル D を返す（線形なのでstrainに依存しない）."""
        return self._D

    def stress(self, strain: np.ndarray) -> np.ndarray:
        return np.asarray(strain, dtype=float) @ self._D.T

    def out_of_plane_stress(self, stress: np.ndarray) -> np.ndarray:
        stress = np.asarray(stress, dtype=float)
        if self.plane_mode is PlaneMode.PLANE_STRESS:
            return np.zeros(stress.shape[:-1])
        return self.nu * (stress[..., 0] + stress[..., 1])

    def __repr__(self) -> str:
        return (
            f"ElasticMaterialLaw(region_tag={self.region_tag}, E={self.E:g}, "
            f"nu={self.nu:g}, plane_mode={self.plane_mode.value})"
        )


def von_mises_plane(stress: np.ndarray, sigma_z: np.ndarray) -> np.ndarray:
    """面内応力と σzz から von Mises 相当応力を返す.

    Args:
        stress: (..., 3) [σxx, σyy, τxy]
        sigma_z: (...,) σzz

    Returns:
        (...,) von Mises 相当応力
    """
    sx = stress[..., 0]
    sy = stress[..., 1]
    txy = stress[..., 2]
    return np.sqrt(
        0.5 * ((sx - sy) ** 2 + (sy - sigma_z) ** 2 + (sigma_z - sx) ** 2) + 3.0 * txy**2
    )
