"""
Stage 2: renders order-creation request bodies from per-company templates.

Every company has one JSON template in the templates directory
(`<templates>/<company>.json`) shaped like the order API expects:

    {"SalesOrder": [{"SalesOrderItemsSet": [...],
                     "SalesOrderItem": [{"PrepaymentRequestnumber": "",
                                         "YY1_SFDCLINEID_I": "",
                                         "YY1_SALESFORCEID_I": "",
                                         "YY1_BATCHID_I": "",
                                         "PricingElement": [{"ConditionType": "ZSFN",
                                                             "ConditionRateValue": 0}]}]}]}

One payload is produced per generated amount of a report row.
"""
import copy
import json
import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, List, Optional

import pandas as pd

from .config import DEFAULT_TEST_ID_PREFIX
from .csv_utils import normalize_identifier, split_list_cell
from .errors import TemplateNotFoundError
from .logger_config import log_with_context
from .models import (
    COL_AMOUNTS,
    COL_COMPANY,
    COL_GENERATED_PREPAYMENT,
    COL_ORIGINAL_PREPAYMENT,
    COL_PREPAYMENT_NUMBER,
    COL_RECORD_INDEX,
)
from .report import require_columns

logger = logging.getLogger("PrepaymentToolLogger")

PRICING_CONDITION_TYPE = "ZSFN"
TEST_ID_FIELDS = ("YY1_SFDCLINEID_I", "YY1_SALESFORCEID_I", "YY1_BATCHID_I")


@dataclass(frozen=True)
class PayloadTarget:
    """The values substituted into one template copy."""

    reference: str
    amount: Optional[str]
    test_id: str


@dataclass
class Payload:
    test_id: str
    body: Dict[str, Any]


@dataclass
class RenderedRecord:
    """All payloads of one report row."""

    row_index: int
    company_code: str
    record_index: str
    payloads: List[Payload] = field(default_factory=list)


@dataclass
class RenderResult:
    records: Dict[str, List[RenderedRecord]] = field(default_factory=dict)
    failed_companies: Dict[str, str] = field(default_factory=dict)

    @property
    def payload_count(self) -> int:
        return sum(len(r.payloads) for rows in self.records.values() for r in rows)

    def iter_records(self):
        for rows in self.records.values():
            yield from rows


def load_template(templates_dir, company_code: str) -> dict:
    """Loads the JSON template of one company.

    Raises:
        TemplateNotFoundError: If `<templates_dir>/<company_code>.json` does not exist.
    """
    template_path = Path(templates_dir) / f"{company_code}.json"
    if not template_path.exists():
        raise TemplateNotFoundError(company_code, template_path)
    with open(template_path, "r", encoding="utf-8") as f:
        return json.load(f)


def _to_rate(value) -> float:
    """Converts an amount cell to a number; unparseable values become 0."""
    try:
        number = float(value)
    except (TypeError, ValueError):
        return 0
    if number != number:  # NaN
        return 0
    return int(number) if number.is_integer() else number


def create_payload(template: dict, reference: Optional[str], amount, test_id: str) -> dict:
    """Builds one request body from a deep copy of the template.

    Sets the prepayment reference, the three test id fields, the line item
    set and, when an amount is given and the template has a ZSFN pricing
    element, that element's rate.
    """
    body = copy.deepcopy(template)
    sales_order = body["SalesOrder"][0]
    item = sales_order["SalesOrderItem"][0]

    item["PrepaymentRequestnumber"] = reference or ""
    for field_name in TEST_ID_FIELDS:
        item[field_name] = test_id

    sales_order["SalesOrderItemsSet"] = [test_id]

    pricing = next(
        (pe for pe in item.get("PricingElement", []) if pe.get("ConditionType") == PRICING_CONDITION_TYPE),
        None,
    )
    if pricing is not None and amount is not None:
        pricing["ConditionRateValue"] = _to_rate(amount)

    return body


def _row_value(row, *columns) -> str:
    """Returns the first of `columns` present in the row, normalized."""
    for column in columns:
        if column in row:
            return normalize_identifier(row[column])
    return ""


def resolve_payload_targets(row, test_id_prefix: str = DEFAULT_TEST_ID_PREFIX) -> List[PayloadTarget]:
    """Works out which payloads a report row produces.

    Precedence, on the generated prepayment reference:
    1. Empty: one payload per amount (at least one), blank reference, test
       ids built from the original reference plus the position.
    2. Comma-separated: if every non-empty part is the same value, one
       payload per amount reusing it with positional suffixes; if the parts
       differ, one payload per part with the part itself as reference and
       test id. Only commas is treated like case 1.
    3. A single value: one payload, or one per amount with positional
       suffixes when the row has several amounts.

    Amounts align by position; extra payloads reuse the first amount.
    """
    original = _row_value(row, COL_ORIGINAL_PREPAYMENT, COL_PREPAYMENT_NUMBER)
    reference = _row_value(row, COL_GENERATED_PREPAYMENT, COL_PREPAYMENT_NUMBER)
    amounts = split_list_cell(row.get(COL_AMOUNTS, ""))

    def amount_at(position):
        if position < len(amounts):
            return amounts[position]
        return amounts[0] if amounts else None

    def positional(ref_value, id_base, count):
        return [
            PayloadTarget(ref_value, amount_at(i), f"{test_id_prefix}{id_base}{i + 1}")
            for i in range(count)
        ]

    if not reference:
        return positional("", original, max(1, len(amounts)))

    if "," in reference:
        parts = [p.strip() for p in reference.split(",")]
        non_empty = [p for p in parts if p]
        if not non_empty:
            return positional("", original, max(len(amounts), len(parts)))
        if len(set(non_empty)) == 1:
            return positional(non_empty[0], non_empty[0], len(amounts) or len(non_empty))
        return [
            PayloadTarget(part, amount_at(i), f"{test_id_prefix}{part}")
            for i, part in enumerate(non_empty)
        ]

    if len(amounts) > 1:
        return positional(reference, reference, len(amounts))
    return [PayloadTarget(reference, amount_at(0), f"{test_id_prefix}{reference}")]


def render_row(template: dict, row, row_index: int, test_id_prefix: str = DEFAULT_TEST_ID_PREFIX) -> RenderedRecord:
    rendered = RenderedRecord(
        row_index=row_index,
        company_code=_row_value(row, COL_COMPANY),
        record_index=_row_value(row, COL_RECORD_INDEX),
    )
    for target in resolve_payload_targets(row, test_id_prefix):
        body = create_payload(template, target.reference, target.amount, target.test_id)
        rendered.payloads.append(Payload(test_id=target.test_id, body=body))
    return rendered


def render_report(report_df: pd.DataFrame, templates_dir, test_id_prefix: str = DEFAULT_TEST_ID_PREFIX) -> RenderResult:
    """Renders payloads for every row of a report, grouped by company.

    A company without a template is logged and skipped; the others are
    still rendered.

    Raises:
        InputDataError: If the report has no Company Code column.
    """
    require_columns(report_df, [COL_COMPANY])
    result = RenderResult()
    with_company = report_df[report_df[COL_COMPANY] != ""]

    for company_code, group in with_company.groupby(COL_COMPANY, sort=False):
        logger.info(f"Processing company: {company_code}")
        try:
            template = load_template(templates_dir, company_code)
        except (TemplateNotFoundError, json.JSONDecodeError) as e:
            log_with_context(logger, logging.ERROR, f"Error processing company {company_code}: {e}",
                             company_code=company_code)
            result.failed_companies[company_code] = str(e)
            continue

        rendered_rows = []
        for position, (row_index, row) in enumerate(group.iterrows(), start=1):
            rendered = render_row(template, row, row_index, test_id_prefix)
            rendered_rows.append(rendered)
            logger.info(f"  Record {position}: Generated {len(rendered.payloads)} JSON(s)")

        result.records[company_code] = rendered_rows
        logger.info(
            f"  Total JSONs created for {company_code}: "
            f"{sum(len(r.payloads) for r in rendered_rows)}"
        )

    return result


def write_rendered(result: RenderResult, output_dir) -> List[Path]:
    """Writes `<company>_generated.json` files holding each company's bodies."""
    output_dir = Path(output_dir)
    output_dir.mkdir(parents=True, exist_ok=True)

    written = []
    for company_code, rows in result.records.items():
        bodies = [payload.body for record in rows for payload in record.payloads]
        output_path = output_dir / f"{company_code}_generated.json"
        with open(output_path, "w", encoding="utf-8") as f:
            json.dump(bodies, f, indent=2, ensure_ascii=False)
        logger.info(f"  Output written to: {output_path}")
        written.append(output_path)
    return written
