"""Sales-assistant flows: lead scoring, email replies, job descriptions.

The engine never depends on these; they only fill in text and scores
that staff review before acting on.
"""

import logging
from dataclasses import dataclass

from luxe_crm.agent.client import AgentResponseError, LLMClient
from luxe_crm.agent.prompts import (
    EMAIL_RESPONSE_PROMPT,
    JOB_DESCRIPTION_PROMPT,
    LEAD_SCORING_PROMPT,
)
from luxe_crm.config import Config
from luxe_crm.database.repository import Repository
from luxe_crm.utils.constants import EMAIL_TONES

logger = logging.getLogger(__name__)


@dataclass
class LeadScore:
    lead_score: int
    reason: str
    is_qualified: bool


@dataclass
class JobDescription:
    job_description: str
    important_details: str


def _require(data: dict, key: str):
    if key not in data:
        raise AgentResponseError(f"Reply is missing '{key}'")
    return data[key]


def score_lead(client: LLMClient, initial_inquiry: str,
               website_activity: str = "") -> LeadScore:
    """Score a lead 0-100 from its inquiry and website activity."""
    prompt = LEAD_SCORING_PROMPT.format(
        company_description=Config.COMPANY_DESCRIPTION,
    )
    data = client.complete_json(
        prompt,
        f"Initial Inquiry: {initial_inquiry}\n"
        f"Website Activity: {website_activity or 'None recorded.'}",
    )
    try:
        score = int(_require(data, "lead_score"))
    except (TypeError, ValueError) as e:
        raise AgentResponseError(f"lead_score is not a number: {e}") from e
    return LeadScore(
        lead_score=max(0, min(100, score)),
        reason=str(data.get("reason", "")),
        is_qualified=bool(data.get("is_qualified", False)),
    )


def score_and_store_lead(repo: Repository, client: LLMClient,
                         lead_id: int, website_activity: str = "") -> LeadScore:
    """Score a stored lead's inquiry and save the result on the lead."""
    lead = repo.get_lead_by_id(lead_id)
    if not lead:
        raise ValueError("Lead not found")
    result = score_lead(client, lead.inquiry or "", website_activity)
    repo.record_lead_score(
        lead_id, result.lead_score, result.reason, result.is_qualified,
    )
    logger.info(f"Scored lead {lead_id}: {result.lead_score}")
    return result


def generate_email_response(client: LLMClient, email_content: str,
                            customer_details: str = "",
                            previous_conversation: str = "",
                            tone: str = "professional") -> str:
    """Draft a reply to a customer email in one of EMAIL_TONES."""
    tone = tone or "professional"
    if tone not in EMAIL_TONES:
        raise ValueError(f"Unknown tone: {tone}")
    data = client.complete_json(
        EMAIL_RESPONSE_PROMPT,
        f"Email Content:\n{email_content}\n\n"
        f"Customer Details:\n"
        f"{customer_details or 'No customer details provided.'}\n\n"
        f"Previous Conversation:\n"
        f"{previous_conversation or 'No previous conversation history provided.'}\n\n"
        f"Desired Tone: {tone}",
    )
    return str(_require(data, "response"))


def job_description_from_email(client: LLMClient,
                               customer_email: str) -> JobDescription:
    """Turn a customer's email into a technician-ready job description."""
    data = client.complete_json(
        JOB_DESCRIPTION_PROMPT, f"Customer Email: {customer_email}",
    )
    return JobDescription(
        job_description=str(_require(data, "job_description")),
        important_details=str(data.get("important_details", "")),
    )
