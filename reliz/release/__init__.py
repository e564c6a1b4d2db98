"""Release engine: version bump, changelog, lifecycle, workflows, publication.

Usage:
    from reliz.release import ReleasePipeline

    pipeline = ReleasePipeline(cwd=cwd, console=console, prompts=prompts, repo=repo, http=http)
    match pipeline.run(["minor", "--yes"]):
        case Ok(result):
            print(result.outcome)
        case Err(error):
            print(error.message)
"""

from .changelog import changelog_text, format_commits, format_date, release_notes_body
from .model import ReleaseContext
from .pipeline import PipelineResult, ReleasePipeline
from .plugins import LifecyclePhase, Plugin
from .semver import next_version, parse_version, suggest_bump
from .workflow import GitFlowWorkflow, LinearWorkflow, WorkflowKind, select_workflow

__all__ = [
    "GitFlowWorkflow",
    "LifecyclePhase",
    "LinearWorkflow",
    "PipelineResult",
    "Plugin",
    "ReleaseContext",
    "ReleasePipeline",
    "WorkflowKind",
    "changelog_text",
    "format_commits",
    "format_date",
    "next_version",
    "parse_version",
    "release_notes_body",
    "select_workflow",
    "suggest_bump",
]
