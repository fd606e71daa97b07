from .auditor import Auditor
from .settings import AuditSettings
from .commands.compare_dirs import ComparisonSummary
from .report.outcome import ComparisonOutcome, OutcomeKind
from .report.writer import ReportWriter
from .utils.processor import Processor, FileUnreadable
from .utils.timestamps import StalenessThreshold, TimeBasis, TimestampUnsupported
from .utils.walker import WalkAborted
