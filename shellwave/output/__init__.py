"""過渡応答の記録インターフェース.

積分器のオブザーバーとして動作する記録器と、その出力要求・初期条件を提供する。
ファイル形式へのエクスポートや可視化は外部の責務。

主要クラス:
    HistoryOutputRequest: 注目 DOF の時系列出力要求
    FieldOutputRequest: 全自由度スナップショット出力要求
    PointHistoryRecorder / SnapshotRecorder / EnergyRecorder / TimeHistoryRecorder
    ObserverChain: 複数オブザーバーの合成
    InitialConditions: 初期変位・初期速度の構築
"""

from shellwave.output.initial_conditions import (
    InitialConditionEntry,
    InitialConditions,
    InitialConditionType,
)
from shellwave.output.recorders import (
    EnergyRecorder,
    ObserverChain,
    PointHistoryRecorder,
    Snapshot,
    SnapshotRecorder,
    TimeHistoryRecorder,
)
from shellwave.output.request import (
    STATE_VARIABLES,
    FieldOutputRequest,
    HistoryOutputRequest,
)

__all__ = [
    # Output Requests
    "HistoryOutputRequest",
    "FieldOutputRequest",
    "STATE_VARIABLES",
    # Recorders
    "PointHistoryRecorder",
    "Snapshot",
    "SnapshotRecorder",
    "EnergyRecorder",
    "TimeHistoryRecorder",
    "ObserverChain",
    # Initial Conditions
    "InitialConditions",
    "InitialConditionEntry",
    "InitialConditionType",
]
