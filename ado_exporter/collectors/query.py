"""Query plug-in: number of work items matched by each configured saved query."""

import logging

from ado_exporter.collectors.base import ApplyQueue, CollectorContext, QueryMetricsCollector
from ado_exporter.domain import QueryTarget


class QueryCollector(QueryMetricsCollector):
    """Work item count returned by one saved query."""

    def setup(self, context: CollectorContext) -> None:
        self.register(
            context,
            "azure_devops_query_result",
            "Azure DevOps saved query result (work item count)",
            ["projectID", "queryID"],
        )

    async def collect(self, context: CollectorContext, logger: logging.Logger, queue: ApplyQueue, resource: QueryTarget) -> None:
        work_items = await context.client.query_work_items(resource.project_id, resource.query_id)
        batch = queue.new_batch()
        batch.add_gauge(
            "azure_devops_query_result",
            {"projectID": resource.project_id, "queryID": resource.query_id},
            len(work_items),
        )
