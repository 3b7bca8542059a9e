"""
Agent pool plug-in

Per discovered agent pool:
    - pool info, size, queue length and usage (running jobs / agents)
    - one info series per agent, its creation time and its current job
"""

import logging
from typing import Any

from ado_exporter.collectors.base import AgentPoolMetricsCollector, ApplyQueue, CollectorContext
from ado_exporter.domain import AgentPool
from ado_exporter.utils.datetime_utils import parse_ado_timestamp


class AgentPoolCollector(AgentPoolMetricsCollector):
    """Agent pool size, queue length, usage and the state of every agent."""

    def setup(self, context: CollectorContext) -> None:
        self.register(
            context,
            "azure_devops_agentpool_info",
            "Azure DevOps agentpool",
            ["agentPoolID", "agentPoolName", "agentPoolType", "isHosted"],
        )
        self.register(context, "azure_devops_agentpool_size", "Azure DevOps agentpool size", ["agentPoolID"])
        self.register(
            context,
            "azure_devops_agentpool_usage",
            "Azure DevOps agentpool usage (running jobs per agent)",
            ["agentPoolID"],
        )
        self.register(
            context,
            "azure_devops_agentpool_queue_length",
            "Azure DevOps agentpool queue length (jobs waiting for an agent)",
            ["agentPoolID"],
        )
        self.register(
            context,
            "azure_devops_agentpool_agent_info",
            "Azure DevOps agentpool agent",
            [
                "agentPoolID",
                "agentPoolAgentID",
                "agentPoolAgentName",
                "agentPoolAgentVersion",
                "agentPoolAgentOs",
                "provisioningState",
                "maxParallelism",
                "enabled",
                "status",
                "hasAssignedRequest",
            ],
        )
        self.register(
            context,
            "azure_devops_agentpool_agent_status",
            "Azure DevOps agentpool agent status",
            ["agentPoolAgentID", "type"],
        )
        self.register(
            context,
            "azure_devops_agentpool_agent_job",
            "Azure DevOps agentpool agent job (assign time)",
            ["agentPoolAgentID", "jobRequestID", "definitionID", "definitionName", "planType", "scopeID"],
        )

    async def collect(self, context: CollectorContext, logger: logging.Logger, queue: ApplyQueue, resource: AgentPool) -> None:
        agents = await context.client.list_agent_pool_agents(resource.id)
        jobs = await context.client.list_agent_pool_jobs(resource.id)

        pool_labels = {"agentPoolID": resource.id}
        running = [job for job in jobs if not job.get("result") and job.get("assignTime")]
        waiting = [job for job in jobs if not job.get("result") and not job.get("assignTime")]

        batch = queue.new_batch()
        batch.add_info(
            "azure_devops_agentpool_info",
            {
                "agentPoolID": resource.id,
                "agentPoolName": resource.name,
                "agentPoolType": resource.pool_type,
                "isHosted": resource.is_hosted,
            },
        )
        batch.add_gauge("azure_devops_agentpool_size", pool_labels, len(agents))
        batch.add_gauge("azure_devops_agentpool_queue_length", pool_labels, len(waiting))
        batch.add_gauge("azure_devops_agentpool_usage", pool_labels, len(running) / len(agents) if agents else 0)

        for agent in agents:
            self._add_agent(queue, resource, agent)

        logger.debug(
            f"agentpool {resource.name}: {len(agents)} agents, {len(running)} running, {len(waiting)} queued",
            extra={"agentPoolID": resource.id},
        )

    @staticmethod
    def _add_agent(queue: ApplyQueue, pool: AgentPool, agent: dict[str, Any]) -> None:
        agent_id = agent["id"]
        assigned = agent.get("assignedRequest")

        batch = queue.new_batch()
        batch.add_info(
            "azure_devops_agentpool_agent_info",
            {
                "agentPoolID": pool.id,
                "agentPoolAgentID": agent_id,
                "agentPoolAgentName": agent.get("name", ""),
                "agentPoolAgentVersion": agent.get("version", ""),
                "agentPoolAgentOs": agent.get("osDescription", ""),
                "provisioningState": agent.get("provisioningState", ""),
                "maxParallelism": agent.get("maxParallelism", ""),
                "enabled": bool(agent.get("enabled")),
                "status": agent.get("status", ""),
                "hasAssignedRequest": assigned is not None,
            },
        )
        batch.add_time(
            "azure_devops_agentpool_agent_status",
            {"agentPoolAgentID": agent_id, "type": "created"},
            parse_ado_timestamp(agent.get("createdOn")),
        )

        if assigned:
            definition = assigned.get("definition") or {}
            batch.add_time(
                "azure_devops_agentpool_agent_job",
                {
                    "agentPoolAgentID": agent_id,
                    "jobRequestID": assigned.get("requestId", ""),
                    "definitionID": definition.get("id", ""),
                    "definitionName": definition.get("name", ""),
                    "planType": assigned.get("planType", ""),
                    "scopeID": assigned.get("scopeId", ""),
                },
                parse_ado_timestamp(assigned.get("assignTime")),
            )
