"""例外クラス定義.

ドライバの各段（ジオメトリ読込・材料/境界モデル・計算メッシュ構築・
平衡反復・後処理）で送出される例外を一箇所にまとめる。

階層:
  WellboreCaeError              — 全例外の基底
    GeometryLoadError           — ジオメトリファイルの欠落・破損・要素ゼロ
    ModelError (ValueError)     — 材料/境界条件モデルの不整合
      DuplicateRegionError      — 同一タグへの二重登録
        DuplicateBoundaryError  — 同一境界タグへの二重登録
      UnresolvedTagError        — 未登録のタグを参照
      ModelFrozenError          — 凍結後のモデルへの登録
    InvalidOrderError           — 不正な近似次数
    AssemblyError               — 不良設定の離散系（剛体モード未拘束など）
    FactorizationError          — 選択した分解法で分解できない行列
    UnknownFieldError           — 計算できないフィールド名の要求
"""

from __future__ import annotations


class WellboreCaeError(Exception):
    """wellbore_cae の全例外の基底クラス."""


class GeometryLoadError(WellboreCaeError):
    """ジオメトリの読み込みに失敗した.

    Attributes:
        path: 読み込もうとしたファイルパス（不明なら None）
    """

    def __init__(self, message: str, *, path: str | None = None) -> None:
        super().__init__(message)
        self.path = path


class ModelError(WellboreCaeError, ValueError):
    """材料/境界条件モデルの不整合."""


class DuplicateRegionError(ModelError):
    """同一の領域タグに材料則を二重登録しようとした.

    Attributes:
        tag: 重複したタグ
    """

    def __init__(self, message: str, *, tag: int) -> None:
        super().__init__(message)
        self.tag = tag


class DuplicateBoundaryError(DuplicateRegionError):
    """同一の境界タグに境界条件を二重登録しようとした."""


class UnresolvedTagError(ModelError):
    """ジオメトリ上のタグに対応する登録が存在しない.

    Attributes:
        tag: 解決できなかったタグ
        entity: "region" / "boundary" / "material"
    """

    def __init__(self, message: str, *, tag: int, entity: str) -> None:
        super().__init__(message)
        self.tag = tag
        self.entity = entity


class ModelFrozenError(ModelError):
    """計算メッシュ構築後に材料/境界条件を変更しようとした."""


class InvalidOrderError(WellboreCaeError, ValueError):
    """不正な近似次数（order < 1 またはバックエンド未対応の次数）."""


class _SolveError(WellboreCaeError, RuntimeError):
    """反復中の失敗（反復番号と行列サイズを保持する）.

    Attributes:
        iteration: 失敗した反復番号（0始まり、不明なら None）
        n_dofs: 全体自由度数（不明なら None）
    """

    def __init__(
        self,
        message: str,
        *,
        iteration: int | None = None,
        n_dofs: int | None = None,
    ) -> None:
        super().__init__(message)
        self.iteration = iteration
        self.n_dofs = n_dofs

    def with_context(self, iteration: int, n_dofs: int) -> _SolveError:
        """反復番号と行列サイズを付与した同型の例外を返す."""
        err = type(self)(
            f"{self.args[0]} (iteration={iteration}, n_dofs={n_dofs})",
            iteration=iteration,
            n_dofs=n_dofs,
        )
        return err


class AssemblyError(_SolveError):
    """全体系の組み立てに失敗した（不良設定・特異な離散系）."""


class FactorizationError(_SolveError):
    """剛性行列の分解に失敗した（特異・非正定値）."""


class UnknownFieldError(WellboreCaeError, ValueError):
    """現在の材料モデルでは計算できないフィールド名が要求された.

    Attributes:
        name: 要求されたフィールド名
        available: 計算可能なフィールド名
    """

    def __init__(self, message: str, *, name: str, available: tuple[str, ...] = ()) -> None:
        super().__init__(message)
        self.name = name
        self.available = available


__all__ = [
    "WellboreCaeError",
    "GeometryLoadError",
    "ModelError",
    "DuplicateRegionError",
    "DuplicateBoundaryError",
    "UnresolvedTagError",
    "ModelFrozenError",
    "InvalidOrderError",
    "AssemblyError",
    "FactorizationError",
    "UnknownFieldError",
]
