"""Analysis run engine: status machine, target selection, orchestration."""

from geoprospector.engine.orchestrator import AnalysisOrchestrator
from geoprospector.engine.run import AnalysisRun
from geoprospector.engine.selection import TargetSelection
from geoprospector.engine.status import AnalysisStatus
