"""
Runs the three stages of the prepayment test workflow against the files
named in the configuration. Each stage reads the previous stage's output
file, so any of them can be re-run on its own.
"""
import json
import logging
import random
from typing import Optional

from .config import ToolConfig
from .dispatcher import OrderApiClient, RequestDispatcher, dispatch_into, with_order_number_column
from .payloads import RenderResult, render_report, write_rendered
from .processor import RecordProcessor, iter_batches, load_sources, summarize
from .quota import QuotaTracker
from .remapper import ColumnRemapper, write_remapped
from .report import read_report, write_processing_report, write_report, write_trace_log

logger = logging.getLogger("PrepaymentToolLogger")


def run_assignment(config: ToolConfig, rng: Optional[random.Random] = None):
    """Stage 1: assigns all records and writes the report and trace log."""
    if rng is None:
        rng = random.Random(config.seed)

    logger.info("Loaded configuration:")
    logger.info(json.dumps(config.to_dict(), indent=2))

    sources = load_sources(config.path("LocalSource"), config.path("UsdSource"))
    # Materialize first so malformed input aborts before any quota is used
    batches = list(iter_batches(config.companies, sources))

    logger.info("Starting record processing...")
    processor = RecordProcessor(QuotaTracker.from_config(config), rng, config.max_one_to_many)
    run = processor.run(batches)

    summary = summarize(run)
    logger.info("=== Summary ===")
    logger.info(f"Total records processed: {summary['cases_used']}")
    logger.info(f"Total scenarios used: {summary['scenarios_used']}")
    if summary["unassigned"]:
        logger.warning(f"{summary['unassigned']} record(s) could not be assigned")

    write_processing_report(run.results, config.path("ProcessingReport"))
    write_trace_log(run.trace_lines, config.path("TraceLog"))
    return run


def run_render(config: ToolConfig) -> RenderResult:
    """Stage 2 without dispatch: renders payload files per company."""
    report_df = read_report(config.path("ProcessingReport"))
    logger.info(f"Processing {len(report_df)} records...")

    result = render_report(report_df, config.path("Templates"), config.test_id_prefix)
    write_rendered(result, config.path("OutputDir"))

    logger.info("=== Summary ===")
    logger.info(f"Total records processed: {len(report_df)}")
    logger.info(f"Total JSON bodies created: {result.payload_count}")
    if result.failed_companies:
        logger.warning(f"Companies skipped: {sorted(result.failed_companies)}")
    return result


def run_dispatch(config: ToolConfig, client=None, sleep=None):
    """Stage 2 with dispatch: renders, submits and writes the updated report."""
    report_df = read_report(config.path("ProcessingReport"))
    result = render_report(report_df, config.path("Templates"), config.test_id_prefix)
    write_rendered(result, config.path("OutputDir"))

    owns_client = client is None
    if owns_client:
        client = OrderApiClient.from_settings(config.api)

    dispatcher_kwargs = {"delay_seconds": config.api.delay_seconds}
    if sleep is not None:
        dispatcher_kwargs["sleep"] = sleep
    dispatcher = RequestDispatcher(client, **dispatcher_kwargs)

    # The updated report is written even when dispatch stops part way
    updated = with_order_number_column(report_df)
    try:
        dispatch_into(updated, result, dispatcher)
    finally:
        if owns_client:
            client.close()
        write_report(updated, config.path("UpdatedReport"))
    return updated


def run_remap(config: ToolConfig):
    """Stage 3: writes the business-layout spreadsheet.

    Dispatch is optional, so without an updated report the stage-1 report is
    remapped instead and the order number columns stay empty.
    """
    source = config.path("UpdatedReport")
    if not source.exists():
        logger.warning(f"{source.name} not found, remapping {config.path('ProcessingReport').name} instead")
        source = config.path("ProcessingReport")
    report_df = read_report(source)
    remapped = ColumnRemapper(config.company_profiles).remap_report(report_df)
    write_remapped(remapped, config.path("RemappedReport"))
    return remapped
