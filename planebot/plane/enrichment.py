"""Join raw issues against reference data to produce display-ready issues."""

from collections.abc import Iterable, Mapping

from planebot.models import UNKNOWN_STATE, EnrichedIssue, Label, ProjectIdentity, RawIssue, WorkflowState


def format_issue_id(project: ProjectIdentity, sequence_number: int) -> str:
    """PROJ + 42 → PROJ-42"""
    return f"{project.identifier}-{sequence_number}"


def enrich(
    raw_issue: RawIssue,
    states: Mapping[str, WorkflowState],
    labels: Mapping[str, Label],
    project: ProjectIdentity,
) -> EnrichedIssue:
    """Resolve state and label references; never fails on a dangling id."""
    state_detail = states.get(raw_issue.state_id) if raw_issue.state_id else None
    label_details = [labels[label_id] for label_id in raw_issue.label_ids if label_id in labels]
    description = raw_issue.description_stripped or raw_issue.description_html or ""

    return EnrichedIssue(
        **raw_issue.model_dump(),
        state_detail=state_detail or UNKNOWN_STATE,
        label_details=label_details,
        formatted_id=format_issue_id(project, raw_issue.sequence_number),
        description=description,
    )


def enrich_all(
    raw_issues: Iterable[RawIssue],
    states: Mapping[str, WorkflowState],
    labels: Mapping[str, Label],
    project: ProjectIdentity,
) -> list[EnrichedIssue]:
    return [enrich(raw_issue, states, labels, project) for raw_issue in raw_issues]
