import argparse
import asyncio
import logging
import os
import sys

# Force UTF-8 output on Windows so Rich panels and umlauts render correctly
if sys.platform == "win32":
    os.environ.setdefault("PYTHONIOENCODING", "utf-8")
    if hasattr(sys.stdout, "reconfigure"):
        sys.stdout.reconfigure(encoding="utf-8")
    if hasattr(sys.stderr, "reconfigure"):
        sys.stderr.reconfigure(encoding="utf-8")

from rich.console import Console

from .config import CLASSIFIERS, load_settings
from .controller.scan_loop import LoopState, ScanLoopController
from .models.quota import Plan
from .output.history import HistoryWriter
from .output.terminal import TerminalOutput
from .quota.store import JsonQuotaStore
from .sources.frames import Frame, StaticFrameSource, open_source
from .vision.factory import build_classifier

logger = logging.getLogger(__name__)

EXIT_HALTED = 2


class _Notices:
    """Print transient controller signals once when they appear."""

    def __init__(self, output: TerminalOutput, halted: asyncio.Event):
        self.output = output
        self.halted = halted
        self._duplicate = False
        self._error = None

    def __call__(self, controller: ScanLoopController):
        if controller.duplicate_flag and not self._duplicate:
            self.output.display_notice("Duplicate of the last item, skipping...", style="dim")
        self._duplicate = controller.duplicate_flag

        if controller.error and controller.error != self._error:
            style = "bold red" if controller.state is LoopState.QUOTA_EXCEEDED else "yellow"
            self.output.display_notice(controller.error, style=style)
        self._error = controller.error

        if controller.state is LoopState.QUOTA_EXCEEDED:
            self.halted.set()


async def run(args) -> int:
    console = Console()
    settings = load_settings(args.settings)
    if args.interval_ms:
        settings.scan_interval_ms = args.interval_ms
    user_id = args.user or settings.user_id
    logger.debug(f"Settings: {settings}")

    store = JsonQuotaStore(settings.quota_path)
    if args.plan:
        store.set_plan(user_id, Plan(args.plan))

    classifier = build_classifier(settings, name=args.classifier, use_cache=not args.no_cache)
    output = TerminalOutput(console)
    history = HistoryWriter(settings.history_path)

    if args.image:
        source = StaticFrameSource([])
    else:
        source = open_source(args.frames)

    controller = ScanLoopController(
        classifier=classifier,
        source=source,
        quota_store=store,
        user_id=user_id,
        settings=settings,
    )
    halted = asyncio.Event()
    controller.subscribe(_Notices(output, halted))

    def on_result(result, frame, trigger):
        output.display_result(result, source_name=frame.name, trigger=trigger)
        if result.detected:
            history.append(result, frame, trigger)

    controller.on_result(on_result)

    console.print()
    console.print("[bold green]Werkaholic AI Scanner[/bold green]")
    quota = store.get(user_id)
    console.print(
        f"[dim]User {user_id} | Plan: {quota.plan.value} | "
        f"Scans used today: {quota.scans_used}[/dim]"
    )
    console.print()

    if args.image:
        result = await controller.analyze_image(Frame.from_path(args.image))
        if result is None and controller.state is not LoopState.QUOTA_EXCEEDED:
            console.print("[red]Analysis failed.[/red]")
    elif args.manual:
        await controller.capture_manual()
        controller.stop()
    else:
        interval = settings.scan_interval_ms / 1000
        console.print(
            f"[bold]Auto-scan:[/bold] every {interval:g}s from {args.frames} "
            f"[dim](Ctrl+C to stop)[/dim]"
        )
        await controller.start()
        # First capture right away instead of waiting a full interval
        await controller.tick()
        try:
            await asyncio.wait_for(halted.wait(), timeout=args.duration)
        except asyncio.TimeoutError:
            pass
        finally:
            controller.stop()
            await controller.wait_idle()

    output.display_summary(controller.stats, controller.quota, settings.free_scan_limit)
    return EXIT_HALTED if controller.state is LoopState.QUOTA_EXCEEDED else 0


def main():
    parser = argparse.ArgumentParser(
        description="Werkaholic AI Scanner: photograph an item, get a resale listing",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog=(
            "Examples:\n"
            "  werkaholic-scan --frames camera/ --duration 120\n"
            "  werkaholic-scan --frames shot.jpg --manual --classifier gemini\n"
            "  werkaholic-scan --image bohrmaschine.jpg --classifier mock\n"
        ),
    )
    source = parser.add_mutually_exclusive_group(required=True)
    source.add_argument("--frames", help="Image file or folder used as the live camera feed")
    source.add_argument("--image", help="Analyze a single uploaded image and exit")
    parser.add_argument(
        "--manual",
        action="store_true",
        help="Take one manual capture from --frames instead of auto-scanning",
    )
    parser.add_argument(
        "--duration",
        type=float,
        help="Stop auto-scanning after this many seconds (default: until Ctrl+C)",
    )
    parser.add_argument("--classifier", choices=CLASSIFIERS, help="Vision backend to use")
    parser.add_argument("--interval-ms", type=int, help="Auto-scan interval (default: 18000)")
    parser.add_argument(
        "--settings",
        default="config/settings.json",
        help="Path to settings config file",
    )
    parser.add_argument("--user", help="User id for quota tracking")
    parser.add_argument("--plan", choices=[p.value for p in Plan], help="Set the user's plan")
    parser.add_argument(
        "--no-cache",
        action="store_true",
        help="Always call the vision backend, even for identical frames",
    )
    parser.add_argument(
        "--verbose", "-v",
        action="store_true",
        help="Enable verbose logging",
    )

    args = parser.parse_args()
    if args.manual and not args.frames:
        parser.error("--manual needs --frames")

    # Set up logging
    level = logging.DEBUG if args.verbose else logging.INFO
    logging.basicConfig(
        level=level,
        format="%(asctime)s [%(name)s] %(levelname)s: %(message)s",
        datefmt="%H:%M:%S",
    )
    # Suppress noisy loggers
    logging.getLogger("botocore").setLevel(logging.WARNING)
    logging.getLogger("urllib3").setLevel(logging.WARNING)
    logging.getLogger("aiohttp").setLevel(logging.WARNING)

    try:
        sys.exit(asyncio.run(run(args)))
    except (ValueError, FileNotFoundError) as e:
        Console().print(f"[red]{e}[/red]")
        sys.exit(1)
    except KeyboardInterrupt:
        Console().print("\n[yellow]Scan stopped.[/yellow]")
        sys.exit(0)


if __name__ == "__main__":
    main()
