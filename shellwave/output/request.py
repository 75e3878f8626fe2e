"""出力要求（Output Request）データモデル.

オブザーバーの記録内容を明示的な設定として与える。

HistoryOutputRequest: 時系列プロファイル出力（毎ステップ・注目 DOF）
FieldOutputRequest: 全自由度スナップショット出力（stride ステップごと）
"""

from __future__ import annotations

from dataclasses import dataclass, field

# 対応する出力変数
STATE_VARIABLES = {"U", "V"}


def _check_variables(variables: list[str]) -> None:
    if not variables:
        raise ValueError("variables が空")
    for var in variables:
        if var not in STATE_VARIABLES:
            raise ValueError(f"未対応の出力変数: {var}（対応: {STATE_VARIABLES}）")


@dataclass
class HistoryOutputRequest:
    """ヒストリ出力要求.

    名前付きの注目 DOF（荷重点・折れ線部など）の時系列を毎ステップ記録する。

    Attributes:
        points: 注目点 {名前: DOF インデックス}
        variables: 出力変数リスト ("U", "V")
    """

    points: dict[str, int]
    variables: list[str] = field(default_factory=lambda: ["U"])

    def __post_init__(self) -> None:
        if not self.points:
            raise ValueError("points が空")
        for name, dof in self.points.items():
            if int(dof) < 0:
                raise ValueError(f"DOF インデックスは非負: {name}={dof}")
        _check_variables(self.variables)


@dataclass
class FieldOutputRequest:
    """フィールド出力要求.

    step % stride == 0 のステップ（step=0 を含む）で全自由度のコピーを記録する。

    Attributes:
        stride: 記録間隔 [ステップ]
        variables: 出力変数リスト ("U", "V")
    """

    stride: int = 1
    variables: list[str] = field(default_factory=lambda: ["U"])

    def __post_init__(self) -> None:
        if self.stride < 1:
            raise ValueError(f"stride は1以上: {self.stride}")
        _check_variables(self.variables)

    @classmethod
    def from_count(
        cls,
        n_steps: int,
        num: int,
        variables: list[str] | None = None,
    ) -> FieldOutputRequest:
        """全 n_steps ステップを約 num 枚のスナップショットに等分割する."""
        if num < 1:
            raise ValueError(f"num は1以上: {num}")
        stride = max(1, int(round(n_steps / num)))
        return cls(stride=stride, variables=variables if variables is not None else ["U"])


__all__ = [
    "HistoryOutputRequest",
    "FieldOutputRequest",
    "STATE_VARIABLES",
]
