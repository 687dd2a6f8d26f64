"""grouping_eval -- compare, diagnose and calibrate sample groupings
-------------------------------------------------------------------
Public API:
    - compare_groupings: manual vs. automatic grouping -> ComparisonMetrics
    - KCalibrator / calibrate_labels: split/merge toward a target cluster count
    - auto_group / group_with_options / z_score_normalize: automatic grouping
    - GroupingSession + dumps/loads/save/load: session documents
    - render_report / analyze_session: console report and recommendations
"""

from .calibrate import CalibrationResult, CalibrationStep, KCalibrator, calibrate_labels
from .cancellation import CancelToken, OperationCancelled
from .config import DEFAULT_CONFIG, EngineConfig, load_config
from .contingency import ContingencyTable, build_contingency
from .grouping import (
    ClusteringMethod,
    ClusteringOptions,
    auto_group,
    group_with_options,
    optimal_cluster_count,
)
from .normalize import z_score_normalize
from .recommend import GroupingRecommendations, analyze_session
from .render import render_report
from .report import compare_groupings
from .session import GroupingSession, dumps, load, loads, save
from .types import (
    CalibrationConfigError,
    ClusteringState,
    ClusterQuality,
    ComparisonMetrics,
    DimensionMismatchError,
    GroupingConfigError,
    GroupingEvalError,
    Sample,
    SessionFormatError,
    invert_grouping,
)

__version__ = "0.1.0"

__all__ = [
    "CalibrationConfigError",
    "CalibrationResult",
    "CalibrationStep",
    "CancelToken",
    "ClusterQuality",
    "ClusteringMethod",
    "ClusteringOptions",
    "ClusteringState",
    "ComparisonMetrics",
    "ContingencyTable",
    "DEFAULT_CONFIG",
    "DimensionMismatchError",
    "EngineConfig",
    "GroupingConfigError",
    "GroupingEvalError",
    "GroupingRecommendations",
    "GroupingSession",
    "KCalibrator",
    "OperationCancelled",
    "Sample",
    "SessionFormatError",
    "analyze_session",
    "auto_group",
    "build_contingency",
    "calibrate_labels",
    "compare_groupings",
    "dumps",
    "group_with_options",
    "invert_grouping",
    "load",
    "load_config",
    "loads",
    "optimal_cluster_count",
    "render_report",
    "save",
    "z_score_normalize",
]
