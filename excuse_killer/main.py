"""Command line entry point for Excuse Killer"""
import argparse
import asyncio
import logging
import sys
from typing import Optional

from excuse_killer import config
from excuse_killer.config import validate_config, LOG_LEVEL
from excuse_killer.db.store import JsonFileKeyValueStore
from excuse_killer.exceptions import ExcuseKillerError, ValidationError
from excuse_killer.gamification.dashboards import format_achievement_display, format_stats_display
from excuse_killer.models.challenge import ChallengeStatus
from excuse_killer.services.container import ServiceContainer, bootstrap
from excuse_killer.services.timer import CompletionPrompt, TimerState
from excuse_killer.utils.sample_data import load_sample_data

logger = logging.getLogger(__name__)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="excuse-killer", description="Personal accountability tracker")
    sub = parser.add_subparsers(dest="command", required=True)

    create = sub.add_parser("create", help="Create a challenge")
    create.add_argument("task_text", help="What you commit to do")
    create.add_argument("--intensity", default="normal", help="chill, normal or hardcore (default: normal)")
    create.add_argument("--duration", help="Minutes (default depends on intensity)")
    create.add_argument("--target", default="today", help="today, this_week, this_month or custom_date")
    create.add_argument("--date", help="YYYY-MM-DD for --target custom_date")
    create.add_argument("--recurrence", default="once", help="once, daily, weekly or monthly")
    create.add_argument("--at", help="Schedule time HH:MM")
    create.add_argument("--timer", action="store_true", help="Use a countdown timer")
    create.add_argument("--notes", default="", help="Free-text notes")

    for name, help_text in (
        ("start", "Start a pending challenge"),
        ("complete", "Mark a challenge completed"),
        ("abandon", "Mark a challenge not completed (streak penalty)"),
        ("timer", "Run the countdown for an ongoing challenge"),
    ):
        cmd = sub.add_parser(name, help=help_text)
        cmd.add_argument("challenge_id", help="Challenge ID")

    sub.add_parser("list", help="List pending challenges")
    sub.add_parser("stats", help="Show streak, XP and recent completions")
    sub.add_parser("achievements", help="Show achievements")
    sub.add_parser("sample-data", help="Load sample data (overwrites collections)")
    sub.add_parser("storage-info", help="Show storage usage")
    return parser


def cmd_create(container: ServiceContainer, args: argparse.Namespace) -> int:
    try:
        challenge = container.challenge_service.create({
            "taskText": args.task_text,
            "intensity": args.intensity,
            "durationMinutes": args.duration,
            "targetType": args.target,
            "customDate": args.date,
            "recurrence": args.recurrence,
            "scheduleTime": args.at,
            "useTimer": args.timer,
            "notes": args.notes,
        })
    except ValidationError as e:
        for field_name, message in e.errors.items():
            print(f"  {field_name}: {message}")
        return 2

    print(f"Challenge created successfully! 🎯 {challenge.id} (target {challenge.target_date_iso})")
    return 0


def cmd_list(container: ServiceContainer, args: argparse.Namespace) -> int:
    service = container.challenge_service
    pending = service.get_pending()
    if not pending:
        print("No pending challenges.")
        return 0

    for challenge in pending:
        deadline = service.describe_deadline(challenge)
        timer = f" ⏱ {challenge.duration_minutes}m" if challenge.use_timer else ""
        line = (f"[{challenge.status.value}] {challenge.id}: {challenge.task_text} "
                f"({challenge.intensity.value}{timer}) - {deadline.label}")
        progress = service.describe_progress(challenge)
        if progress is not None:
            line += f" ⏱ {progress.format_remaining()} left ({progress.percent:.0f}%)"
        print(line)
    return 0


def print_completion(result) -> None:
    print(f"🎉 Challenge completed! +{result.xp_earned} XP")
    for achievement_id in result.unlocked_achievements:
        print(f"🏆 Achievement unlocked: {achievement_id}")


def print_abandon(result) -> None:
    print(result.notification.message)


async def run_timer(container: ServiceContainer, challenge_id: str) -> int:
    service = container.challenge_service
    challenge = service.get_challenge(challenge_id)
    if challenge.status != ChallengeStatus.ONGOING:
        challenge = service.start(challenge_id)

    expired = asyncio.Event()
    timer = container.create_timer(
        challenge,
        on_outcome=lambda completed: service.resolve_timer_outcome(challenge_id, completed),
    )
    timer.subscribe_tick(lambda remaining: print(f"\r⏱  {timer.format_remaining()}", end="", flush=True))
    timer.subscribe_expiry(lambda prompt: expired.set())

    if await timer.recover() == TimerState.IDLE:
        await timer.start()

    try:
        await expired.wait()
    finally:
        await timer.close()

    prompt: CompletionPrompt = timer.prompt
    loop = asyncio.get_running_loop()
    answer = await loop.run_in_executor(None, input, "\n⏰ Timer finished - Complete task? (yes/no): ")
    result = prompt.resolve(answer.strip().lower() in ("y", "yes"))
    if prompt.outcome:
        print_completion(result)
    else:
        print_abandon(result)
    return 0


def dispatch(container: ServiceContainer, args: argparse.Namespace) -> int:
    service = container.challenge_service

    if args.command == "create":
        return cmd_create(container, args)
    elif args.command == "start":
        challenge = service.start(args.challenge_id)
        print(f"Started {challenge.id}" + (" - run `excuse-killer timer` to count down" if challenge.use_timer else ""))
    elif args.command == "complete":
        print_completion(service.complete(args.challenge_id))
    elif args.command == "abandon":
        print_abandon(service.abandon(args.challenge_id))
    elif args.command == "timer":
        return asyncio.run(run_timer(container, args.challenge_id))
    elif args.command == "list":
        return cmd_list(container, args)
    elif args.command == "stats":
        gamification = container.gamification_service
        gamification.refresh_achievements()
        print(format_stats_display(gamification.get_stats(), gamification.get_recent_completions()))
    elif args.command == "achievements":
        print(format_achievement_display(container.gamification_service.load_achievements()))
    elif args.command == "sample-data":
        load_sample_data(container.store, now=container.clock())
        print("Sample data loaded successfully!")
    elif args.command == "storage-info":
        info = container.store.storage_info()
        for name, size in info["sizes"].items():
            print(f"{name:<14} {size} bytes")
        print(f"{'TOTAL':<14} {info['total_size_kb']} KB")
    return 0


def main(argv: Optional[list[str]] = None) -> int:
    """Main application entry point"""
    logging.basicConfig(
        format='%(asctime)s - %(name)s - %(levelname)s - %(message)s',
        level=getattr(logging, LOG_LEVEL.upper(), logging.INFO)
    )

    args = build_parser().parse_args(argv)

    try:
        validate_config()
        store = JsonFileKeyValueStore(config.STORE_FILE, quota_bytes=config.STORAGE_QUOTA_BYTES)
        container, _ = bootstrap(store)
        return dispatch(container, args)
    except KeyboardInterrupt:
        logger.info("Interrupted; a running timer keeps its recovery record")
        return 130
    except ExcuseKillerError as e:
        print(e.user_message, file=sys.stderr)
        return 1


if __name__ == "__main__":
    sys.exit(main())
