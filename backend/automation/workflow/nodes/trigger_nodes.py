"""
Trigger Nodes — workflow entry points.

A workflow holds at most one trigger node. Webhook, form, email and
file triggers fire one-shot from an inbound event; the ``polling``
types are driven by the trigger manager on a recurring schedule.
Inside a run every trigger simply emits the event envelope it was
fired with, so downstream nodes can read ``{{input.data...}}``.
"""

from __future__ import annotations

from typing import Any, Dict

from automation.config.sub_config.workflow.trigger_config import DEFAULT_POLLING_INTERVAL_MS
from automation.workflow.nodes.base import (
    BaseNode,
    ExecutionContext,
    NodeCategory,
    register_node,
)


class TriggerNode(BaseNode):
    """Common behaviour of all trigger types."""

    category = NodeCategory.TRIGGERS
    inputs = 0
    executable = True

    async def execute(
        self,
        data: Dict[str, Any],
        node_input: Any,
        context: ExecutionContext,
    ) -> Dict[str, Any]:
        return dict(context.trigger)


_CREDENTIALS_TEMPLATE = {
    "type": "apikey",
    "apiKey": "",
    "username": "",
    "password": "",
    "privateKey": "",
    "clientId": "",
}


# ============================================================================
# One-shot triggers
# ============================================================================


@register_node
class WebhookTriggerNode(TriggerNode):
    node_type = "trigger:webhook"
    name = "Webhook"
    description = "Triggers the workflow when a webhook is received."
    icon = "🪝"
    defaults = {
        "label": "Webhook",
        "event": "catchHook",
        "httpMethod": "POST",
        "authType": "none",
        "headerName": "X-API-KEY",
        "apiKeyValue": "",
    }


@register_node
class ScheduleTriggerNode(TriggerNode):
    node_type = "trigger:schedule"
    name = "Scheduler"
    description = "Triggers the workflow on a schedule (e.g., every day at 5pm)."
    icon = "⏰"
    defaults = {
        "label": "Scheduler",
        "pattern": "0 5 * * *",
        "timezone": "America/New_York",
    }


@register_node
class FormTriggerNode(TriggerNode):
    node_type = "trigger:form"
    name = "Form Submission"
    description = "Triggers the workflow when a form is submitted."
    icon = "📝"
    defaults = {
        "label": "Form Submission",
        "formId": "",
        "redirectUrl": "",
        "passDataToRedirect": False,
    }


@register_node
class EmailTriggerNode(TriggerNode):
    node_type = "trigger:email"
    name = "Email"
    description = "Triggers the workflow when an email is received."
    icon = "📧"
    defaults = {"label": "Email Trigger", "emailAddress": ""}


@register_node
class FileTriggerNode(TriggerNode):
    node_type = "trigger:file"
    name = "File Upload"
    description = "Triggers the workflow when a file is uploaded."
    icon = "📤"
    defaults = {"label": "File Upload Trigger"}


@register_node
class SalesforceOutboundMessageTriggerNode(TriggerNode):
    node_type = "trigger:salesforce:outboundMessage"
    name = "Salesforce Outbound Message"
    description = "Triggers on Salesforce Outbound Message (SOAP webhook)."
    icon = "🪝"
    defaults = {
        "label": "Salesforce Outbound Message",
        "auth": {"type": "basic", "username": "", "password": ""},
        "allowedIPs": [],
        "requireTLS": True,
        "responseAck": True,
    }


# ============================================================================
# Polling triggers
# ============================================================================


@register_node
class DatabaseTriggerNode(TriggerNode):
    node_type = "trigger:database"
    name = "Database"
    description = "Triggers the workflow based on database events."
    icon = "🗄️"
    polling = True
    defaults = {
        "label": "Database Trigger",
        "eventType": "newRow",
        "connectionId": "",
        "database": "",
        "table": "",
        "dateColumn": "",
        "column": "",
        "cdcMode": False,
        "batchSize": 5000,
        "minInterval": 5000,
        "baseInterval": 30000,
        "maxInterval": 300000,
    }


@register_node
class S3BucketTriggerNode(TriggerNode):
    node_type = "trigger:s3Bucket"
    name = "S3 Bucket Monitor"
    description = "Monitors an S3 bucket for new files and triggers the workflow when files are uploaded."
    icon = "☁️"
    polling = True
    defaults = {
        "label": "S3 Bucket Monitor",
        "bucketName": "",
        "awsRegion": "us-east-1",
        "awsAccessKeyId": "",
        "awsSecretAccessKey": "",
        "filePattern": "*",
        "pollingInterval": 300000,
        "prefix": "",
        "maxFiles": 10,
        "moveAfterProcessing": False,
        "deleteAfterProcessing": False,
    }


@register_node
class HubSpotRecordTriggerNode(TriggerNode):
    node_type = "trigger:hubspot:record"
    name = "HubSpot Record Trigger"
    description = "Triggers when HubSpot records are created or updated."
    icon = "🧾"
    polling = True
    defaults = {
        "label": "HubSpot Record Trigger",
        "connection": {
            "accessToken": "",
            "baseUrl": "https://api.hubapi.com",
            "apiVersion": "v3",
        },
        "eventType": "new",
        "object": "contact",
        "pollingInterval": 300000,
        "propertiesToMonitor": [],
        "filters": "",
        "advanced": {"batchSize": 50, "includeAssociations": False},
    }


@register_node
class SalesforceRecordTriggerNode(TriggerNode):
    node_type = "trigger:salesforce:record"
    name = "Salesforce Record Trigger"
    description = "Triggers on new or updated Salesforce records for a chosen object."
    icon = "🏢"
    polling = True
    defaults = {
        "label": "Salesforce Record Trigger",
        "connection": {"accessToken": "", "instanceUrl": "", "apiVersion": "v58.0"},
        "eventType": "new",
        "object": "Lead",
        "pollingInterval": 300000,
        "fieldsToMonitor": [],
        "soqlWhere": "",
        "advanced": {"batchSize": 50, "includeSystemFields": False},
    }


@register_node
class ZoomInfoIntentTriggerNode(TriggerNode):
    """Fires when companies show purchase intent on the configured topics."""

    node_type = "trigger:zoominfo:intent"
    name = "ZoomInfo Intent Signals"
    description = "Triggers when companies show purchase intent signals in ZoomInfo."
    icon = "🏢"
    polling = True
    defaults = {
        "label": "ZoomInfo Intent Trigger",
        "credentials": dict(_CREDENTIALS_TEMPLATE),
        "intentTopics": [],
        "signalStrength": "moderate",
        "companyFilters": {
            "industry": "",
            "companySize": "",
            "location": "",
            "technologyStack": [],
        },
        "pollingInterval": DEFAULT_POLLING_INTERVAL_MS,
        "advancedSettings": {
            "batchSize": 50,
            "includeContactData": True,
            "minimumConfidenceScore": 0.7,
        },
    }
