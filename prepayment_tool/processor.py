"""
Stage 1: assigns every billing record to a Case and Scenario and generates
its settlement amounts.

Records are taken from two source collections (local currency and USD), each
keyed by company code:

    {"SAC1": {"SoNumber": "1000123",
              "Records": [{"BillingNumber": "9000001",
                           "PrepaymentRequestnumber": "PR-001",
                           "Amount": 1500}]}}
"""
import json
import logging
import random
from dataclasses import dataclass, field
from pathlib import Path
from typing import Dict, Iterator, List, Optional, Sequence, Tuple

from .csv_utils import normalize_identifier
from .errors import InfeasibleAmountError, InputDataError
from .logger_config import log_with_context
from .models import (
    INFEASIBLE_LABEL,
    AssignmentResult,
    BillingRecord,
    Scenario,
)
from .quota import QuotaTracker
from .scenarios import assign, draw_cardinality, generate_amounts

logger = logging.getLogger("PrepaymentToolLogger")

SOURCE_LOCAL = "LOCAL"
SOURCE_USD = "USD"
SOURCE_ORDER = (SOURCE_LOCAL, SOURCE_USD)


@dataclass
class ProcessingRun:
    """Everything one assignment run produced, in input order."""

    results: List[AssignmentResult] = field(default_factory=list)
    trace_lines: List[str] = field(default_factory=list)
    initial_counters: Dict[str, int] = field(default_factory=dict)
    final_counters: Dict[str, int] = field(default_factory=dict)

    @property
    def assigned_count(self) -> int:
        return sum(1 for r in self.results if r.processed)

    @property
    def unassigned_count(self) -> int:
        return len(self.results) - self.assigned_count


def load_source(path) -> dict:
    """Reads one JSON source collection.

    Raises:
        InputDataError: If the file is missing or is not a JSON object.
    """
    path = Path(path)
    try:
        with open(path, "r", encoding="utf-8") as f:
            data = json.load(f)
    except FileNotFoundError as e:
        raise InputDataError(f"Input file '{path}' not found") from e
    except json.JSONDecodeError as e:
        raise InputDataError(f"Invalid JSON in input file '{path}': {e}") from e

    if not isinstance(data, dict):
        raise InputDataError(f"Input file '{path}' must contain an object keyed by company code")
    return data


def load_sources(local_path, usd_path) -> Dict[str, dict]:
    """Reads both source collections, keyed by source tag."""
    return {
        SOURCE_LOCAL: load_source(local_path),
        SOURCE_USD: load_source(usd_path),
    }


def _parse_amount(value, context: str):
    try:
        amount = float(value)
    except (TypeError, ValueError) as e:
        raise InputDataError(f"{context}: invalid Amount {value!r}") from e
    if amount <= 0:
        raise InputDataError(f"{context}: Amount must be positive, got {value!r}")
    return int(amount) if amount.is_integer() else amount


def parse_company_entry(company_code: str, source: str, entry: dict) -> Tuple[str, List[BillingRecord]]:
    """Converts one company entry of a source collection into BillingRecords.

    Returns:
        tuple: (so_number, records) with records numbered from 1.
    """
    context = f"{source}/{company_code}"
    if not isinstance(entry, dict) or not isinstance(entry.get("Records"), list):
        raise InputDataError(f"{context}: expected an object with a 'Records' list")

    so_number = normalize_identifier(entry.get("SoNumber"))
    records = []
    for index, raw in enumerate(entry["Records"], start=1):
        if not isinstance(raw, dict):
            raise InputDataError(f"{context}: record {index} is not an object")
        records.append(
            BillingRecord(
                company_code=company_code,
                source=source,
                so_number=so_number,
                index=index,
                billing_number=normalize_identifier(raw.get("BillingNumber")),
                prepayment_request_number=normalize_identifier(raw.get("PrepaymentRequestnumber")),
                amount=_parse_amount(raw.get("Amount"), f"{context} record {index}"),
            )
        )
    return so_number, records


def iter_batches(companies: Sequence[str], sources: Dict[str, dict]) -> Iterator[Tuple[str, str, str, List[BillingRecord]]]:
    """Yields (company, source, so_number, records) in processing order.

    Companies follow the configured order; within a company the local source
    comes before the USD one. Companies absent from a source are skipped.
    """
    for company_code in companies:
        for source in SOURCE_ORDER:
            entry = sources.get(source, {}).get(company_code)
            if entry is None:
                continue
            so_number, records = parse_company_entry(company_code, source, entry)
            yield company_code, source, so_number, records


def format_trace_line(result: AssignmentResult) -> str:
    record = result.record
    prefix = f"Record {record.index} ({record.billing_number})"
    if not result.processed:
        if result.reason == INFEASIBLE_LABEL:
            return f"{prefix}: No feasible amounts for amount {record.amount}"
        return f"{prefix}: No more cases or scenarios available"

    cardinality = f" ({result.cardinality})" if result.cardinality else ""
    return (
        f"{prefix}: {result.case.value} - {result.scenario.value}{cardinality}"
        f" - ZFSN: {result.amounts_text}"
    )


class RecordProcessor:
    """Drives quota tracking, assignment and amount generation over all records."""

    def __init__(self, tracker: QuotaTracker, rng: random.Random, max_one_to_many: int):
        self.tracker = tracker
        self.rng = rng
        self.max_one_to_many = max_one_to_many

    def process_record(self, record: BillingRecord) -> AssignmentResult:
        """Assigns a single record, consuming quota only on success."""
        available_cases = self.tracker.available_cases()
        available_scenarios = self.tracker.available_scenarios()
        if not available_cases or not available_scenarios:
            return AssignmentResult(record=record)

        case, scenario = assign(self.rng, available_cases, available_scenarios)

        cardinality: Optional[int] = None
        if scenario is Scenario.ONE_TO_MANY:
            cardinality = draw_cardinality(self.rng, case, record.amount, self.max_one_to_many)

        try:
            amounts = generate_amounts(self.rng, case, scenario, record.amount, cardinality)
        except InfeasibleAmountError as e:
            log_with_context(
                logger, logging.WARNING,
                f"Record {record.index} ({record.billing_number}) left unassigned: {e}",
                company_code=record.company_code, record_index=record.index,
            )
            return AssignmentResult(record=record, reason=INFEASIBLE_LABEL)

        self.tracker.consume(case)
        self.tracker.consume(scenario)

        return AssignmentResult(
            record=record,
            case=case,
            scenario=scenario,
            cardinality=cardinality,
            amounts=amounts,
        )

    def process_batch(self, company_code: str, source: str, so_number: str,
                      records: List[BillingRecord], run: ProcessingRun) -> None:
        header = [
            f"\n=== Processing {company_code} from {source} ===",
            f"SO Number: {so_number}",
            f"Total Records: {len(records)}",
            "---",
        ]
        for line in header:
            logger.info(line.strip())
        run.trace_lines.extend(header)

        for record in records:
            result = self.process_record(record)
            line = format_trace_line(result)
            log_with_context(logger, logging.INFO, line,
                             company_code=company_code, record_index=record.index)
            run.results.append(result)
            run.trace_lines.append(line)

    def run(self, batches) -> ProcessingRun:
        """Processes every batch in order and returns the collected run."""
        run = ProcessingRun(initial_counters=self.tracker.snapshot())
        logger.info(f"Initial counters: {json.dumps(run.initial_counters)}")

        for company_code, source, so_number, records in batches:
            self.process_batch(company_code, source, so_number, records, run)

        run.final_counters = self.tracker.snapshot()
        logger.info(f"Final counters: {json.dumps(run.final_counters)}")
        return run


def summarize(run: ProcessingRun) -> Dict[str, int]:
    """Counts how much of each quota family the run used."""
    scenario_labels = {s.value for s in Scenario}

    def used(labels_filter):
        return sum(
            count - run.final_counters.get(label, 0)
            for label, count in run.initial_counters.items()
            if labels_filter(label)
        )

    return {
        "records": len(run.results),
        "assigned": run.assigned_count,
        "unassigned": run.unassigned_count,
        "cases_used": used(lambda label: label not in scenario_labels),
        "scenarios_used": used(lambda label: label in scenario_labels),
    }
