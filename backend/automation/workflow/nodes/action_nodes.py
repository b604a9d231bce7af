"""
Action Nodes — the steps a workflow performs.

Only a handful of actions run inside the engine (delay, logger,
transform). The integration actions (HTTP, email, CRMs, OpenAI …)
are executed by their own services; the engine stores their
configuration and records them as skipped.
"""

from __future__ import annotations

from logging import getLogger
from typing import Any, Dict, List

from automation.workflow.nodes.base import (
    BaseNode,
    ExecutionContext,
    NodeCategory,
    OutputPort,
    register_node,
)

logger = getLogger(__name__)

_UNIT_SECONDS = {
    "milliseconds": 0.001,
    "seconds": 1,
    "minutes": 60,
    "hours": 3600,
    "days": 86400,
}

_CRM_ERROR_HANDLING = {"retryOnError": True, "retryCount": 3, "retryDelay": 1000}


# ============================================================================
# Built-in actions
# ============================================================================


@register_node
class DelayNode(BaseNode):
    """Pause the run, then pass the input through unchanged."""

    node_type = "action:delay"
    name = "Delay"
    description = "Pause the workflow for a specific amount of time."
    category = NodeCategory.ACTIONS
    icon = "⏳"
    executable = True
    defaults = {"label": "Delay", "delay": 1, "unit": "seconds"}

    async def execute(
        self,
        data: Dict[str, Any],
        node_input: Any,
        context: ExecutionContext,
    ) -> Any:
        unit = data.get("unit", "seconds")
        if unit not in _UNIT_SECONDS:
            raise ValueError(f"Unknown delay unit: {unit}")
        seconds = float(data.get("delay", 0)) * _UNIT_SECONDS[unit]
        if seconds < 0:
            raise ValueError("Delay must not be negative")
        await context.sleep(seconds)
        return node_input


@register_node
class LoggerNode(BaseNode):
    """Render a message template and write it to the run log."""

    node_type = "action:logger"
    name = "Logger"
    description = "Logs data to the workflow execution history."
    category = NodeCategory.ACTIONS
    icon = "🗒️"
    executable = True
    defaults = {"label": "Log Data", "logLevel": "info", "message": "Data: {{input}}"}

    async def execute(
        self,
        data: Dict[str, Any],
        node_input: Any,
        context: ExecutionContext,
    ) -> Dict[str, Any]:
        level = str(data.get("logLevel", "info")).lower()
        rendered = context.render(data.get("message", ""), node_input)
        message = rendered if isinstance(rendered, str) else str(rendered)
        if context.run_logger is not None:
            context.run_logger.log_message(context.current_node_id or "", level, message)
        else:
            logger.info(message)
        return {"level": level, "message": message}


@register_node
class TransformNode(BaseNode):
    """Build a new object from placeholders over earlier outputs.

    ``mappings`` is a list of ``{"target": key, "source": template}``;
    every key named in ``requireFields`` must resolve to a value.
    """

    node_type = "action:transform"
    name = "Transform"
    description = "Map fields from prior steps into a structured output; optional required fields validation."
    category = NodeCategory.ACTIONS
    icon = "🔧"
    executable = True
    defaults = {"label": "Transform", "mappings": [], "requireFields": []}

    async def execute(
        self,
        data: Dict[str, Any],
        node_input: Any,
        context: ExecutionContext,
    ) -> Dict[str, Any]:
        result: Dict[str, Any] = {}
        for mapping in data.get("mappings") or []:
            target = mapping.get("target")
            if not target:
                continue
            result[target] = context.render(mapping.get("source"), node_input)

        missing: List[str] = [
            field for field in data.get("requireFields") or []
            if result.get(field) in (None, "")
        ]
        if missing:
            raise ValueError(f"Missing required fields: {', '.join(missing)}")
        return result


# ============================================================================
# Integration actions (executed by external services)
# ============================================================================


@register_node
class HttpRequestNode(BaseNode):
    node_type = "action:httpRequest"
    name = "HTTP Request"
    description = "Make a GET, POST, PUT or other HTTP request to an external URL."
    icon = "🌐"
    defaults = {
        "label": "HTTP Request",
        "method": "POST",
        "url": "",
        "headers": [],
        "body": "",
        "auth": {"type": "none"},
    }


@register_node
class CodeNode(BaseNode):
    node_type = "action:code"
    name = "Code"
    description = "Run custom JavaScript code."
    icon = "💻"
    defaults = {
        "label": "Run Code",
        "code": (
            "// The return value of this script will be the output of the node.\n"
            "// You can access input data via the 'input' variable.\n\n"
            "return { result: 'Hello World' };"
        ),
    }


@register_node
class SendEmailNode(BaseNode):
    node_type = "action:email"
    name = "Send Email"
    description = "Send an email with dynamic content from previous workflow steps."
    icon = "📧"
    defaults = {"label": "Send Email", "to": "", "subject": "", "htmlBody": "", "attachments": []}


@register_node
class ApprovalNode(BaseNode):
    """Waits for a human decision; continues on ``approve`` or ``reject``."""

    node_type = "action:approval"
    name = "Approval"
    description = "Pauses the workflow and waits for a manual approval."
    icon = "✅"
    output_ports = [
        OutputPort(id="approve", label="Approve"),
        OutputPort(id="reject", label="Reject"),
    ]
    defaults = {
        "label": "Manual Approval",
        "instructions": "Please review the following data and approve or reject.",
    }


@register_node
class CsvParseNode(BaseNode):
    node_type = "action:csvParse"
    name = "CSV Parse"
    description = "Parse CSV content from URL or inline/context into rows/objects"
    icon = "📄"
    defaults = {
        "label": "CSV Parse",
        "mode": "context",
        "text": "",
        "url": "",
        "delimiter": ",",
        "hasHeader": True,
        "trim": True,
        "skipEmpty": True,
        "columns": "",
        "outputMode": "objects",
        "previewRows": 10,
    }


@register_node
class OpenAiNode(BaseNode):
    node_type = "action:openAi"
    name = "OpenAI Action"
    description = "Process data using an OpenAI model with a custom prompt."
    icon = "✨"
    defaults = {
        "label": "AI Action",
        "prompt": "The following is data from a previous step: {{input.data}}. Please summarize it.",
        "model": "gpt-3.5-turbo",
    }


@register_node
class TeamsNotifyNode(BaseNode):
    node_type = "action:teams:notify"
    name = "Teams Notify"
    description = "Send a message to a Microsoft Teams channel via Incoming Webhook."
    icon = "💬"
    defaults = {
        "label": "Teams Notify",
        "webhookUrl": "",
        "title": "",
        "message": "",
        "color": "#0078D4",
    }


@register_node
class HubSpotActionNode(BaseNode):
    node_type = "action:hubspot:record"
    name = "HubSpot Action"
    description = "Create, update, find, or associate HubSpot records."
    icon = "🏢"
    defaults = {
        "label": "HubSpot Action",
        "connection": {
            "accessToken": "",
            "baseUrl": "https://api.hubapi.com",
            "apiVersion": "v3",
        },
        "object": "contact",
        "operation": "create",
        "search": {"property": "email", "value": "", "createIfNotFound": False},
        "association": {
            "fromObject": "contact",
            "toObject": "company",
            "associationType": "contact_to_company",
        },
        "dataMapping": {"properties": {}},
        "errorHandling": dict(_CRM_ERROR_HANDLING),
    }


@register_node
class SalesforceActionNode(BaseNode):
    node_type = "action:salesforce:record"
    name = "Salesforce Record Action"
    description = "Create, update, upsert, find, or attach records in Salesforce."
    icon = "🏢"
    defaults = {
        "label": "Salesforce Record Action",
        "connection": {"accessToken": "", "instanceUrl": "", "apiVersion": "v58.0"},
        "operation": "create",
        "object": "Lead",
        "externalIdField": "",
        "recordId": "",
        "search": {"field": "", "value": "", "createIfNotFound": False},
        "dataMapping": {"fields": {}},
        "errorHandling": dict(_CRM_ERROR_HANDLING),
    }


@register_node
class CrmIntegrationNode(BaseNode):
    node_type = "action:crm:integration"
    name = "CRM Integration"
    description = "Send data to CRM systems like Salesforce, HubSpot, Pipedrive, or Dynamics."
    icon = "🔗"
    defaults = {
        "label": "CRM Integration",
        "crmType": "custom",
        "connection": {
            "baseURL": "",
            "accessToken": "",
            "apiToken": "",
            "username": "",
            "password": "",
            "timeout": 30000,
            "customHeaders": {},
        },
        "operation": "create",
        "dataMapping": {"fields": {}, "crmDefaults": {}, "includeMetadata": True},
        "batchSettings": {"enabled": False, "batchSize": 20, "batchDelay": 1000},
        "errorHandling": dict(_CRM_ERROR_HANDLING),
    }


@register_node
class ZoomInfoContactDiscoveryNode(BaseNode):
    node_type = "action:zoominfo:contactDiscovery"
    name = "ZoomInfo Contact Discovery"
    description = "Search for and enrich contact data from ZoomInfo."
    icon = "📇"
    defaults = {
        "label": "ZoomInfo Contact Discovery",
        "credentials": {
            "type": "apikey",
            "apiKey": "",
            "username": "",
            "password": "",
            "privateKey": "",
            "clientId": "",
        },
        "searchCriteria": {
            "companyDomain": "",
            "companyId": "",
            "companyName": "",
            "jobTitle": "",
            "seniority": "",
            "department": "",
            "location": "",
            "limit": 25,
            "offset": 0,
            "includeCompanyData": True,
        },
        "enrichmentOptions": {"customFields": {}},
        "outputFormat": "enriched",
    }
