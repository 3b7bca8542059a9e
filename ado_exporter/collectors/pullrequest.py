"""
Pull request plug-in

Active pull requests of every repository of a project, their creation time,
reviewer vote summary and labels.
"""

import logging
from typing import Any

from ado_exporter.collectors.base import ApplyQueue, CollectorContext, ProjectMetricsCollector
from ado_exporter.domain import Project
from ado_exporter.utils.datetime_utils import parse_ado_timestamp

# Reviewer votes, most significant first
VOTE_STATUS = (
    (-10, "rejected"),
    (-5, "waitingForAuthor"),
    (10, "approved"),
    (5, "approvedWithSuggestions"),
)


def vote_status(pull_request: dict[str, Any]) -> str:
    """
    Summarize reviewer votes.

    Example:
        >>> vote_status({"reviewers": [{"vote": 10}, {"vote": -5}]})
        'waitingForAuthor'
    """
    votes = {reviewer.get("vote", 0) for reviewer in pull_request.get("reviewers") or []}
    for vote, status in VOTE_STATUS:
        if vote in votes:
            return status
    return "none"


class PullRequestCollector(ProjectMetricsCollector):
    """Active pull requests of every repository of a project."""

    def setup(self, context: CollectorContext) -> None:
        self.register(
            context,
            "azure_devops_pullrequest_info",
            "Azure DevOps pullrequest",
            [
                "projectID",
                "repositoryID",
                "pullrequestID",
                "pullrequestTitle",
                "sourceBranch",
                "targetBranch",
                "status",
                "isDraft",
                "voteStatus",
                "creator",
            ],
        )
        self.register(
            context,
            "azure_devops_pullrequest_status",
            "Azure DevOps pullrequest status",
            ["projectID", "pullrequestID", "type"],
        )
        self.register(
            context,
            "azure_devops_pullrequest_label",
            "Azure DevOps pullrequest labels",
            ["projectID", "pullrequestID", "label", "active"],
        )

    async def collect(self, context: CollectorContext, logger: logging.Logger, queue: ApplyQueue, resource: Project) -> None:
        pull_requests = await context.client.list_pull_requests(resource.id)

        for pull_request in pull_requests:
            pull_request_id = pull_request["pullRequestId"]
            batch = queue.new_batch()
            batch.add_info(
                "azure_devops_pullrequest_info",
                {
                    "projectID": resource.id,
                    "repositoryID": (pull_request.get("repository") or {}).get("id", ""),
                    "pullrequestID": pull_request_id,
                    "pullrequestTitle": pull_request.get("title", ""),
                    "sourceBranch": pull_request.get("sourceRefName", ""),
                    "targetBranch": pull_request.get("targetRefName", ""),
                    "status": pull_request.get("status", ""),
                    "isDraft": bool(pull_request.get("isDraft", False)),
                    "voteStatus": vote_status(pull_request),
                    "creator": (pull_request.get("createdBy") or {}).get("displayName", ""),
                },
            )
            batch.add_time(
                "azure_devops_pullrequest_status",
                {"projectID": resource.id, "pullrequestID": pull_request_id, "type": "created"},
                parse_ado_timestamp(pull_request.get("creationDate")),
            )

            for label in pull_request.get("labels") or []:
                batch.add_info(
                    "azure_devops_pullrequest_label",
                    {
                        "projectID": resource.id,
                        "pullrequestID": pull_request_id,
                        "label": label.get("name", ""),
                        "active": bool(label.get("active", True)),
                    },
                )

        logger.debug(f"project {resource.name}: {len(pull_requests)} active pull requests", extra={"projectID": resource.id})
