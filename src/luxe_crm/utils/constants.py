"""Application-wide constants."""

APP_NAME = "LUXE CRM"
APP_VERSION = "1.0.0"

# Document kinds that carry a reference number, and the field holding it
DOCUMENT_KINDS = ["estimate", "job", "invoice"]
REFERENCE_FIELDS = {
    "estimate": "estimate_number",
    "job": "job_number",
    "invoice": "invoice_number",
}

# Estimate statuses
ESTIMATE_DRAFT = "Draft"
ESTIMATE_SENT = "Sent"
ESTIMATE_ACCEPTED = "Accepted"
ESTIMATE_REJECTED = "Rejected"
ESTIMATE_EXPIRED = "Expired"
ESTIMATE_STATUSES = [
    ESTIMATE_DRAFT,
    ESTIMATE_SENT,
    ESTIMATE_ACCEPTED,
    ESTIMATE_REJECTED,
    ESTIMATE_EXPIRED,
]

# Job statuses
JOB_PENDING_SCHEDULE = "Pending Schedule"
JOB_SCHEDULED = "Scheduled"
JOB_DISPATCHED = "Dispatched"
JOB_IN_PROGRESS = "In Progress"
JOB_ON_HOLD = "On Hold"
JOB_COMPLETED = "Completed"
JOB_CANCELLED = "Cancelled"
JOB_REQUIRES_FOLLOW_UP = "Requires Follow-up"
JOB_STATUSES = [
    JOB_PENDING_SCHEDULE,
    JOB_SCHEDULED,
    JOB_DISPATCHED,
    JOB_IN_PROGRESS,
    JOB_ON_HOLD,
    JOB_COMPLETED,
    JOB_CANCELLED,
    JOB_REQUIRES_FOLLOW_UP,
]

# Invoice statuses
INVOICE_DRAFT = "Draft"
INVOICE_SENT = "Sent"
INVOICE_PAID = "Paid"
INVOICE_PARTIALLY_PAID = "Partially Paid"
INVOICE_OVERDUE = "Overdue"
INVOICE_VOID = "Void"
INVOICE_STATUSES = [
    INVOICE_DRAFT,
    INVOICE_SENT,
    INVOICE_PAID,
    INVOICE_PARTIALLY_PAID,
    INVOICE_OVERDUE,
    INVOICE_VOID,
]

STATUSES_BY_KIND = {
    "estimate": ESTIMATE_STATUSES,
    "job": JOB_STATUSES,
    "invoice": INVOICE_STATUSES,
}

# Lead statuses
LEAD_STATUSES = ["New", "Contacted", "Qualified", "Lost"]

# Notification severities
NOTIFICATION_SEVERITIES = ["info", "warning", "error"]

# Email reply tones offered to the sales team
EMAIL_TONES = ["professional", "friendly", "casual"]
