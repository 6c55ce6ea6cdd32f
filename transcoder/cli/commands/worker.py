# Worker command - run the queue consumer until SIGTERM/SIGINT

import logging

from rich.console import Console

from transcoder.core.config import settings

console = Console()


def configure_logging(level: str = None):
    logging.basicConfig(
        level=(level or settings.log_level).upper(),
        format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
    )


def run_worker(concurrency: int = None, queue: str = None, log_level: str = None):
    """
    Start the transcode worker in the foreground

    Args:
        concurrency: Parallel job slots (defaults to TRANSCODE_CONCURRENCY)
        queue: Queue to consume (defaults to QUEUE_NAME)
        log_level: Logging level (defaults to LOG_LEVEL)
    """
    from transcoder.worker import TranscodeWorker, install_shutdown_hook

    configure_logging(log_level)

    worker = TranscodeWorker(queue=queue, concurrency=concurrency, loglevel=log_level)
    install_shutdown_hook(worker)

    console.print(f"[bold green]🎬 Transcode worker[/bold green] consuming [cyan]{worker.queue}[/cyan] "
                  f"with {worker.concurrency} slot(s)")
    worker.start()
