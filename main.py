import time
import logging
import signal
import json
import argparse
from datetime import datetime

from core.app_context import AppContext
from core.config_loader import load_config
from core.exceptions import ServiceException
from database.database import configure_database
from database.init_db import init_db
from database.uow import volunteer_uow

logger = logging.getLogger(__name__)

# Global flag for graceful shutdown
running = True


def signal_handler(sig, frame):
    global running
    logger.info("Shutdown signal received")
    running = False


def _print(payload):
    print(json.dumps(payload, indent=2, default=str))


def run_finalize_sweep(ctx: AppContext) -> int:
    """Finalize every event that has ended but was never finalized.

    Each event is finalized in its own unit of work so one failure does
    not block the rest.

    Returns:
        Number of events finalized
    """
    with volunteer_uow() as repo:
        event_ids = [e.id for e in repo.list_events_to_finalize(ctx.clock())]

    if not event_ids:
        logger.info("No ended events waiting for finalization")
        return 0

    logger.info(f"Finalizing {len(event_ids)} ended events")
    finalized = 0
    for event_id in event_ids:
        try:
            with volunteer_uow() as repo:
                result = ctx.attendance(repo).finalize_event(event_id, recorded_by='system')
            finalized += 1
            logger.info(f"Event {event_id}: {result.summary}")
        except ServiceException as e:
            logger.warning(f"Skipped event {event_id}: {e}")
        except Exception as e:
            logger.error(f"Failed to finalize event {event_id}: {e}", exc_info=True)
    return finalized


def run_sweep_loop(ctx: AppContext, interval: int) -> None:
    cycle_count = 0
    while running:
        cycle_count += 1
        cycle_start = time.time()
        logger.info(f"=== Starting Sweep #{cycle_count} ===")
        try:
            run_finalize_sweep(ctx)
        except Exception as e:
            logger.error(f"Error in sweep loop: {e}", exc_info=True)

        cycle_elapsed = time.time() - cycle_start
        if running:
            logger.info(f"=== Sweep #{cycle_count} completed in {cycle_elapsed:.2f}s. Sleeping for {interval} seconds... ===")
            # Sleep in chunks to allow responsive shutdown
            for _ in range(max(1, interval // 5)):
                if not running:
                    break
                time.sleep(5)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Volunteer Matching & Attendance Engine")
    parser.add_argument('--config', default='config.yaml')
    parser.add_argument('--verbose', action='store_true')
    sub = parser.add_subparsers(dest='command', required=True)

    sub.add_parser('init-db', help='Create tables')

    sweep = sub.add_parser('sweep', help='Finalize ended events')
    sweep.add_argument('--once', action='store_true', help='Run a single sweep and exit')

    finalize = sub.add_parser('finalize', help='Finalize one event')
    finalize.add_argument('event_id')
    finalize.add_argument('--admin', default=None)

    match_event = sub.add_parser('match-event', help='Rank volunteers for an event')
    match_event.add_argument('event_id')
    match_event.add_argument('--limit', type=int, default=None)
    match_event.add_argument('--min-score', type=int, default=0)
    match_event.add_argument('--include-assigned', action='store_true')

    match_volunteer = sub.add_parser('match-volunteer', help='Rank open events for a volunteer')
    match_volunteer.add_argument('volunteer_id')
    match_volunteer.add_argument('--limit', type=int, default=None)
    match_volunteer.add_argument('--min-score', type=int, default=0)

    suggestions = sub.add_parser('suggestions', help='Top candidates for every open event')
    suggestions.add_argument('--min-score', type=int, default=None)
    suggestions.add_argument('--max-per-event', type=int, default=None)

    stats = sub.add_parser('stats', help='Volunteer reliability statistics')
    stats.add_argument('--volunteer', default=None)
    stats.add_argument('--sort-by', choices=['total_hours', 'reliability_score'], default='total_hours')

    roster = sub.add_parser('roster', help='Attendance roster for an event')
    roster.add_argument('event_id')

    sub.add_parser('dashboard', help='Admin dashboard statistics')

    history = sub.add_parser('history', help="One page of a volunteer's participation history")
    history.add_argument('volunteer_id')
    history.add_argument('--status', default=None)
    history.add_argument('--from', dest='start_date', type=datetime.fromisoformat, default=None)
    history.add_argument('--to', dest='end_date', type=datetime.fromisoformat, default=None)
    history.add_argument('--page', type=int, default=1)
    history.add_argument('--limit', type=int, default=10)

    bulk = sub.add_parser('bulk-assign', help='Assign the best-matching volunteers to an event')
    bulk.add_argument('event_id')
    bulk.add_argument('--limit', type=int, default=None)
    bulk.add_argument('--min-score', type=int, default=0)
    bulk.add_argument('--no-auto-confirm', action='store_true')
    bulk.add_argument('--admin', default=None)

    return parser


def run_command(args, ctx: AppContext) -> int:
    if args.command == 'sweep':
        if args.once:
            run_finalize_sweep(ctx)
        else:
            run_sweep_loop(ctx, ctx.config.schedule.interval_seconds)
        return 0

    with volunteer_uow() as repo:
        if args.command == 'finalize':
            result = ctx.attendance(repo).finalize_event(args.event_id, recorded_by=args.admin)
            _print({'event_id': result.event_id, 'status': result.status,
                    'updates': result.updates, 'summary': result.summary})
        elif args.command == 'match-event':
            matches = ctx.matching(repo).find_volunteers_for_event(
                args.event_id, limit=args.limit, min_score=args.min_score,
                include_assigned=args.include_assigned
            )
            _print([m.to_dict() for m in matches])
        elif args.command == 'match-volunteer':
            matches = ctx.matching(repo).find_events_for_volunteer(
                args.volunteer_id, limit=args.limit, min_score=args.min_score
            )
            _print([m.to_dict() for m in matches])
        elif args.command == 'suggestions':
            _print(ctx.matching(repo).get_automatic_suggestions(
                min_score=args.min_score, max_per_event=args.max_per_event
            ))
        elif args.command == 'stats':
            reliability = ctx.reliability(repo)
            if args.volunteer:
                _print(reliability.get_performance_metrics(args.volunteer))
            else:
                _print(reliability.get_all_volunteer_stats(sort_by=args.sort_by))
        elif args.command == 'roster':
            _print(ctx.attendance(repo).get_event_roster(args.event_id))
        elif args.command == 'dashboard':
            _print(ctx.reliability(repo).get_dashboard_stats())
        elif args.command == 'history':
            filters = {k: getattr(args, k) for k in ('status', 'start_date', 'end_date') if getattr(args, k)}
            _print(ctx.reliability(repo).list_volunteer_history(
                args.volunteer_id, filters, page=args.page, limit=args.limit
            ))
        elif args.command == 'bulk-assign':
            matches = ctx.matching(repo).find_volunteers_for_event(
                args.event_id, limit=args.limit, min_score=args.min_score
            )
            _print(ctx.assignments(repo).bulk_assign(
                args.event_id, [m.to_dict() for m in matches],
                auto_confirm=not args.no_auto_confirm, assigned_by=args.admin
            ))
    return 0


def main(argv=None) -> int:
    args = build_parser().parse_args(argv)

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.INFO,
        format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
    )

    config = load_config(args.config)
    configure_database(config.database)

    if args.command == 'init-db':
        init_db()
        return 0

    signal.signal(signal.SIGINT, signal_handler)
    signal.signal(signal.SIGTERM, signal_handler)

    ctx = AppContext.build(config)
    try:
        return run_command(args, ctx)
    except ServiceException as e:
        logger.error(str(e))
        return 1


if __name__ == "__main__":
    raise SystemExit(main())
