"""Main entry point for the media pipeline CLI."""

import argparse
import functools
import sys
from typing import Dict, List, Optional, Tuple

from .consumers import multithread_process_batch, run_consumer, serial_process_batch
from .consumers.common import ProcessBatchFn, log_configuration
from .core import PipelineConfig, get_logger, set_log_level
from .core.exceptions import MediaPipelineError
from .core.factories import PipelineFactory
from .core.maintenance import DEFAULT_RETENTION_DAYS, cleanup_stale_objects
from .core.models import Namespace, ProcessingType
from .core.observability import MetricsCollector

VERSION = "0.1.0"


def build_parser() -> argparse.ArgumentParser:
    parser: argparse.ArgumentParser = argparse.ArgumentParser(
        prog="media-pipeline",
        description="Media Pipeline - asynchronous media transformation over S3 and SQS",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  # Consume the work queue with a pool of threads
  media-pipeline worker --processor multithread --concurrency 8

  # Queue a thumbnail for an uploaded image
  media-pipeline submit --blob-name cat.jpg --type THUMBNAIL --param width=320

  # Run a request in-process and print the artifact reference
  media-pipeline submit --blob-name clip.mp4 --type VIDEO_COMPRESS --param quality=low --sync

  # Remove week-old objects from the temp bucket
  media-pipeline cleanup --namespace temp --retention-days 7
        """,
    )

    subparsers: argparse._SubParsersAction = parser.add_subparsers(
        dest="command", help="Available commands"
    )

    worker_parser = subparsers.add_parser("worker", help="Consume processing requests")
    worker_parser.add_argument(
        "--processor",
        type=str,
        default="serial",
        choices=["serial", "multithread"],
        help="Consumer strategy to use (default: serial)",
    )
    worker_parser.add_argument(
        "--concurrency", type=int, default=None, help="Threads for the multithread consumer"
    )
    worker_parser.add_argument(
        "--max-polls", type=int, default=None, help="Stop after this many queue polls"
    )
    worker_parser.add_argument(
        "--idle-polls",
        type=int,
        default=None,
        help="Stop after this many consecutive empty polls",
    )
    worker_parser.add_argument("--queue-url", default=None, help="Work queue URL")
    worker_parser.add_argument("--debug", action="store_true", help="Enable debug logging")

    submit_parser = subparsers.add_parser("submit", help="Submit a processing request")
    submit_parser.add_argument("--blob-name", required=True, help="Key of the source object")
    submit_parser.add_argument(
        "--type",
        required=True,
        dest="processing_type",
        help=f"Processing type, one of: {', '.join(t.value for t in ProcessingType)}",
    )
    submit_parser.add_argument(
        "--container",
        default=Namespace.ORIGINALS.value,
        help="Namespace (or bucket) holding the source (default: originals)",
    )
    submit_parser.add_argument(
        "--param",
        action="append",
        default=[],
        metavar="KEY=VALUE",
        help="Processing parameter; may be repeated",
    )
    submit_parser.add_argument("--media-id", default=None, help="Media id to correlate logs")
    submit_parser.add_argument(
        "--sync", action="store_true", help="Run in-process instead of queueing"
    )
    submit_parser.add_argument("--queue-url", default=None, help="Work queue URL")
    submit_parser.add_argument("--debug", action="store_true", help="Enable debug logging")

    cleanup_parser = subparsers.add_parser("cleanup", help="Delete stale objects")
    cleanup_parser.add_argument(
        "--namespace", default=Namespace.TEMP.value, help="Namespace to clean (default: temp)"
    )
    cleanup_parser.add_argument(
        "--retention-days",
        type=int,
        default=DEFAULT_RETENTION_DAYS,
        help=f"Keep objects younger than this (default: {DEFAULT_RETENTION_DAYS})",
    )
    cleanup_parser.add_argument("--debug", action="store_true", help="Enable debug logging")

    subparsers.add_parser("version", help="Show version information")

    return parser


def parse_params(pairs: List[str]) -> Dict[str, str]:
    """Turn repeated ``KEY=VALUE`` options into a parameter dict."""
    params: Dict[str, str] = {}
    for pair in pairs:
        key, sep, value = pair.partition("=")
        if not sep or not key:
            raise ValueError(f"Parameter '{pair}' is not in KEY=VALUE form")
        params[key.strip()] = value
    return params


def run_worker(args: argparse.Namespace) -> None:
    config = PipelineConfig.from_env(
        queue_url=args.queue_url, concurrency=args.concurrency, debug=args.debug
    )

    processors: Dict[str, Tuple[str, ProcessBatchFn]] = {
        "serial": ("Serial", serial_process_batch),
        "multithread": (
            "Multithreaded",
            functools.partial(multithread_process_batch, max_workers=config.concurrency),
        ),
    }
    processor_name, process_batch_fn = processors[args.processor]

    log_configuration(config, processor_name)
    metrics_collector = MetricsCollector()
    worker = PipelineFactory.create_worker(config, metrics_collector=metrics_collector)

    run_consumer(
        worker.queue,
        worker,
        process_batch_fn,
        batch_size=config.batch_size,
        max_polls=args.max_polls,
        idle_polls_limit=args.idle_polls,
        processor_name=processor_name,
    )

    logger = get_logger("cli")
    per_type = metrics_collector.get_summary_by("processing_type", "handle_request")
    for processing_type, summary in per_type.items():
        logger.info(
            f"{processing_type}: {summary['total_operations']} handled, "
            f"success rate {summary['success_rate']:.0%}, "
            f"avg {summary['avg_duration'] * 1000:.0f}ms"
        )


def run_submit(args: argparse.Namespace) -> int:
    config = PipelineConfig.from_env(queue_url=args.queue_url, debug=args.debug)
    payload = {
        "blobName": args.blob_name,
        "containerName": args.container,
        "processingType": args.processing_type,
        "parameters": args.params,
    }
    if args.media_id:
        payload["mediaId"] = args.media_id

    worker = PipelineFactory.create_worker(config) if args.sync else None
    intake = PipelineFactory.create_intake(config, worker=worker)
    response = intake.submit(payload, synchronous=args.sync)

    print(response.model_dump_json(indent=2, exclude_none=True))
    return 0 if response.status_code < 400 else 1


def run_cleanup(args: argparse.Namespace) -> None:
    config = PipelineConfig.from_env(debug=args.debug)
    store = PipelineFactory.create_store(config)
    deleted = cleanup_stale_objects(store, args.namespace, args.retention_days)
    print(f"Deleted {len(deleted)} stale object(s) from '{args.namespace}'")


def main(argv: Optional[List[str]] = None) -> None:
    """
    Entry point for the command-line interface (CLI) of the Media Pipeline.

    Dispatches to the ``worker``, ``submit``, ``cleanup`` and ``version``
    subcommands. Configuration comes from MEDIA_PIPELINE_* environment
    variables; command-line flags override them.
    """
    parser = build_parser()
    args: argparse.Namespace = parser.parse_args(argv)

    if args.command == "version":
        print("Media Pipeline CLI")
        print(f"Version {VERSION}")
        print("Asynchronous media transformation over S3 and SQS")
        sys.exit(0)

    if args.command not in ("worker", "submit", "cleanup"):
        parser.print_help()
        sys.exit(1)

    if args.command == "submit":
        try:
            args.params = parse_params(args.param)
        except ValueError as e:
            parser.error(str(e))

    logger = get_logger("cli")
    if args.debug:
        set_log_level("DEBUG")

    exit_code = 0
    try:
        if args.command == "worker":
            logger.info("Starting media pipeline worker")
            run_worker(args)
        elif args.command == "submit":
            exit_code = run_submit(args)
        else:
            run_cleanup(args)
    except KeyboardInterrupt:
        logger.warning("Interrupted by user.")
    except MediaPipelineError as e:
        logger.error(f"{args.command} failed: {e}")
        sys.exit(1)
    except Exception as e:
        logger.error(f"{args.command} failed: {e}", exc_info=True)
        sys.exit(1)

    if exit_code:
        sys.exit(exit_code)


if __name__ == "__main__":
    main()
