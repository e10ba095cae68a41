"""Command-line entry point for office staff and scripts."""

import argparse
import logging
import sys

from luxe_crm.config import Config
from luxe_crm.database.connection import DatabaseConnection
from luxe_crm.database.repository import Repository
from luxe_crm.database.schema import initialize_database
from luxe_crm.lifecycle.errors import SourceNotFound
from luxe_crm.lifecycle.sequence import kind_for_reference
from luxe_crm.lifecycle.service import StatusService
from luxe_crm.utils.constants import APP_NAME, APP_VERSION, DOCUMENT_KINDS
from luxe_crm.utils.formatters import format_currency, format_date

logger = logging.getLogger(__name__)


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="luxe-crm",
        description=f"{APP_NAME} {APP_VERSION}: estimates, jobs and invoices",
    )
    parser.add_argument(
        "--db", default=None,
        help="Database path (defaults to Config.DATABASE_PATH)",
    )
    sub = parser.add_subparsers(dest="command", required=True)

    sub.add_parser("init-db", help="Create or migrate the database")

    status = sub.add_parser("status", help="Change a document's status")
    status.add_argument("kind", choices=DOCUMENT_KINDS)
    status.add_argument("id", type=int)
    status.add_argument("new_status")

    show = sub.add_parser("show", help="Show a document")
    show.add_argument("kind", choices=DOCUMENT_KINDS)
    show.add_argument("id", type=int)

    find = sub.add_parser("find", help="Look up a document by reference number")
    find.add_argument("number")

    notes = sub.add_parser("notifications", help="List notifications")
    notes.add_argument("--unread", action="store_true")

    score = sub.add_parser("score-lead", help="Score a lead with the LLM")
    score.add_argument("id", type=int)
    score.add_argument("--activity", default="")

    return parser


def _print_document(kind: str, doc):
    number = getattr(doc, f"{kind}_number")
    print(f"{kind.title()} {number} (id {doc.id})")
    print(f"  Customer: {doc.customer_name or 'N/A'}")
    print(f"  Status:   {doc.status}")
    if kind == "job":
        print(f"  Description: {doc.description}")
        print(f"  Scheduled:   {format_date(doc.scheduled_date, with_time=True)}")
        print(f"  Completed:   {format_date(doc.completion_date, with_time=True)}")
        print(f"  Invoice created: {'yes' if doc.is_invoice_created else 'no'}")
        return
    for item in doc.line_item_list:
        print(f"  - {item.description}: {item.quantity:g} x "
              f"{format_currency(item.unit_price)} = "
              f"{format_currency(item.total_price)}")
    print(f"  Subtotal: {format_currency(doc.subtotal)}")
    print(f"  Tax ({doc.tax_rate:.2%}): {format_currency(doc.tax_amount)}")
    print(f"  Total:    {format_currency(doc.total_amount)}")
    if kind == "estimate":
        print(f"  Valid until: {format_date(doc.valid_until)}")
        print(f"  Job created: {'yes' if doc.is_job_created else 'no'}")
    else:
        print(f"  Paid:     {format_currency(doc.paid_amount or 0.0)}")
        print(f"  Balance:  {format_currency(doc.balance_due)}")
        print(f"  Due:      {format_date(doc.due_date)}")


def _cmd_status(repo: Repository, args) -> int:
    try:
        result = StatusService(repo).change_status(
            args.kind, args.id, args.new_status,
        )
    except (ValueError, SourceNotFound) as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1

    print(f"Status saved: {result.previous_status} -> {result.new_status}")
    for created in result.outcome.created:
        print(f"Created {created.derived_kind} {created.reference_number}")
    for failed in result.outcome.failures:
        print(f"Follow-up failed ({failed.action}): {failed.message}",
              file=sys.stderr)
    return 0


def _cmd_score_lead(repo: Repository, args) -> int:
    from luxe_crm.agent.client import AgentResponseError, LLMClient
    from luxe_crm.agent.flows import score_and_store_lead

    try:
        result = score_and_store_lead(
            repo, LLMClient(), args.id, args.activity,
        )
    except (ValueError, AgentResponseError) as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1
    verdict = "qualified" if result.is_qualified else "not qualified"
    print(f"Lead {args.id}: {result.lead_score}/100 ({verdict})")
    print(f"  {result.reason}")
    return 0


def main(argv=None) -> int:
    """Run the luxe-crm command line."""
    args = _build_parser().parse_args(argv)
    logging.basicConfig(
        level=getattr(logging, Config.LOG_LEVEL.upper(), logging.INFO),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    db = DatabaseConnection(args.db or Config.DATABASE_PATH)
    initialize_database(db)
    repo = Repository(db)
    logger.debug(f"Using database {db.db_path}")

    if args.command == "init-db":
        print(f"Database ready at {db.db_path}")
        return 0

    if args.command == "status":
        return _cmd_status(repo, args)

    if args.command == "show":
        doc = repo.get(args.kind, args.id)
        if doc is None:
            print(f"Error: {args.kind} {args.id} not found", file=sys.stderr)
            return 1
        _print_document(args.kind, doc)
        return 0

    if args.command == "find":
        number = args.number.strip().upper()
        kind = kind_for_reference(number)
        doc = None
        if kind:
            doc = getattr(repo, f"get_{kind}_by_number")(number)
        if doc is None:
            print(f"Error: no document numbered {args.number}", file=sys.stderr)
            return 1
        _print_document(kind, doc)
        return 0

    if args.command == "notifications":
        for n in repo.get_notifications(unread_only=args.unread):
            marker = " " if n.is_read else "*"
            print(f"{marker} [{n.severity}] {format_date(n.created_at, True)} "
                  f"{n.title}")
            if n.message:
                print(f"    {n.message}")
        return 0

    if args.command == "score-lead":
        return _cmd_score_lead(repo, args)

    return 1


if __name__ == "__main__":
    sys.exit(main())
