"""Plain text listings of what a run executed, next to the log files."""

# Standard library imports
import datetime
import pathlib


REPORT_LISTINGS = (
    "executed_files",
    "failed_files",
    "ignored_files",
    "unprocessed_files",
)


def build_listings(summary, executed_files):
    """
    Groups file names by outcome. ``executed_files`` is the planned
    execution order after filtering; names with no result are unprocessed.
    """
    attempted = {result.file_name for result in summary.results}
    return {
        "executed_files": [r.file_name for r in summary.results if r.success],
        "failed_files": [
            f"{r.file_name}: {r.error.message if r.error else 'Unknown error'}"
            for r in summary.results
            if not r.success
        ],
        "ignored_files": list(summary.ignored_files),
        "unprocessed_files": [name for name in executed_files if name not in attempted],
    }


def write_run_report(summary, executed_files, log_directory, logger, timestamp=None):
    """
    Writes one listing file per outcome into ``log_directory``. Returns the
    written paths; a failure is logged and yields an empty list.
    """
    timestamp = timestamp or datetime.datetime.now().strftime("%Y%m%d_%H%M%S")
    listings = build_listings(summary, executed_files)
    status = "committed" if summary.committed else "not committed"
    common_header = f"Status: {status} | Run: {timestamp}"
    written = []

    try:
        log_dir = pathlib.Path(log_directory)
        log_dir.mkdir(parents=True, exist_ok=True)
        for suffix in REPORT_LISTINGS:
            log_file = log_dir / f"{suffix}.txt"
            with open(log_file, "w", encoding="utf-8") as f:
                file_header = f"Listing: '{suffix}' | " + common_header
                f.write(file_header)
                f.write(f"\n{'-' * len(file_header)}\n")
                f.write("\n".join(listings[suffix]) if listings[suffix] else "None")
            written.append(log_file)
        logger.info(f"Report files created in '{log_dir}'")
    except OSError as report_err:
        logger.error(f"Failed to write report files: {report_err}")
        return []

    return written
