"""Cross-post orchestration: workflow, retries and polling."""

from pipeline.result import Err, Ok
from pipeline.retry import RetryPolicy, run_with_retry
from pipeline.workflow import BranchOutcome, CrossPostWorkflow, State, WorkflowResult

__all__ = [
    "BranchOutcome",
    "CrossPostWorkflow",
    "Err",
    "Ok",
    "RetryPolicy",
    "State",
    "WorkflowResult",
    "run_with_retry",
]
