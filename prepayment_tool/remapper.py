"""
Stage 3: reshapes the dispatch-augmented report into the business layout.

The output has 18 columns and two header rows (display names, then the
technical field paths of the order system). A OneToOne row becomes one
output row; a OneToMany row becomes one output row per generated line.
Unassigned rows are left out.
"""
import csv
import logging
from pathlib import Path
from typing import Dict, List, Optional

import pandas as pd

from .csv_utils import normalize_identifier, split_list_cell
from .models import (
    COL_AMOUNT,
    COL_AMOUNTS,
    COL_BILLING_NUMBER,
    COL_CARDINALITY,
    COL_CASE,
    COL_COMPANY,
    COL_GENERATED_PREPAYMENT,
    COL_ORDER_NUMBERS,
    COL_ORIGINAL_PREPAYMENT,
    COL_PREPAYMENT_NUMBER,
    COL_RECORD_INDEX,
    COL_SCENARIO,
    COL_SO_NUMBER,
    COL_SOURCE,
    Scenario,
)
from .report import require_columns

logger = logging.getLogger("PrepaymentToolLogger")

DISPLAY_HEADERS = [
    "Reference Number (Prepayment SO)",
    "Sold to Party",
    "Prepayment SO Number",
    "Prepayment SO Line Item Number",
    "Prepayment SO Amount",
    "Prepayment SO Currency",
    "Billing Document (Prepayment Tax Invoice)",
    "Reference Number (Delivery SO)",
    "Delivery SO Number",
    "Delivery SO Line Item Number",
    "Delivery SO Amount",
    "Delivery SO Currency",
    "Amount to Apply",
    "Sales Organization",
    "Data Source",
    "Assigned Case",
    "Assigned Scenario",
    "Number Of Case",
]

TECHNICAL_HEADERS = [
    "I_Salesdocument-YY1_PrepaymentReqNum",
    "I_Salesdocument - Soldtoparty",
    "I_Salesdocument-Salesdocument",
    "I_Salesdocumentitem-Salesdocumentitem",
    "I_Salesdocumentitem-Netamount",
    "I_Salesdocument-Currency",
    "I_Billingdocument-Billingdocument",
    "I_Salesdocument-YY1_PrepaymentReqNum",
    "I_Salesdocument-Salesdocument",
    "I_Salesdocumentitem-Salesdocumentitem",
    "I_Salesdocumentitem-Netamount",
    "I_Salesdocument-Currency",
    "Customzed field (refer to field I_Salesdocumentitem-Netamount)",
    "I_Salesdocument-SALESORGANIZATION",
    "Data Source",
    "Assigned Case",
    "Assigned Scenario",
    "Number Of Case",
]

CURRENCY_BY_COMPANY = {
    "SAC1": "SAR",
    "MAC1": "MAD",
    "EGC1": "EGP",
}
DEFAULT_CURRENCY = "USD"

SOLD_TO_PARTY_BY_COMPANY = {
    "SAC1": "HS58M1PTWJ",
    "MAC1": "4F32L8O0DG",
    "EGC1": "275554HENP",
}
DEFAULT_SOLD_TO_PARTY = "Unknown"

DELIVERY_LINE_ITEM = "10"


class ColumnRemapper:
    """Maps report rows onto the 18-column business layout.

    Args:
        company_profiles: Optional per-company overrides, e.g.
            {"SAC1": {"Currency": "SAR", "SoldToParty": "HS58M1PTWJ"}}.
    """

    def __init__(self, company_profiles: Optional[Dict[str, Dict[str, str]]] = None):
        self.currency_by_company = dict(CURRENCY_BY_COMPANY)
        self.sold_to_party_by_company = dict(SOLD_TO_PARTY_BY_COMPANY)
        for company_code, profile in (company_profiles or {}).items():
            if profile.get("Currency"):
                self.currency_by_company[company_code] = profile["Currency"]
            if profile.get("SoldToParty"):
                self.sold_to_party_by_company[company_code] = profile["SoldToParty"]

    def currency(self, company_code: str) -> str:
        return self.currency_by_company.get(company_code, DEFAULT_CURRENCY)

    def sold_to_party(self, company_code: str) -> str:
        return self.sold_to_party_by_company.get(company_code, DEFAULT_SOLD_TO_PARTY)

    @staticmethod
    def _line_item_number(record_index: str) -> str:
        try:
            return str(int(float(record_index)) * 10)
        except ValueError:
            return ""

    def remap_row(self, row) -> List[Dict[str, str]]:
        def value(column):
            return normalize_identifier(row.get(column, ""))

        scenario = value(COL_SCENARIO)
        if scenario not in (Scenario.ONE_TO_ONE.value, Scenario.ONE_TO_MANY.value):
            return []

        company_code = value(COL_COMPANY)
        currency = self.currency(company_code)
        original_reference = value(COL_ORIGINAL_PREPAYMENT) or value(COL_PREPAYMENT_NUMBER)
        references = split_list_cell(
            row.get(COL_GENERATED_PREPAYMENT, row.get(COL_PREPAYMENT_NUMBER, ""))
        ) or [""]
        amounts = split_list_cell(row.get(COL_AMOUNTS, "")) or [""]
        orders = split_list_cell(row.get(COL_ORDER_NUMBERS, "")) or [""]

        base = {
            "Reference Number (Prepayment SO)": original_reference,
            "Sold to Party": self.sold_to_party(company_code),
            "Prepayment SO Number": value(COL_SO_NUMBER),
            "Prepayment SO Line Item Number": self._line_item_number(value(COL_RECORD_INDEX)),
            "Prepayment SO Amount": value(COL_AMOUNT),
            "Prepayment SO Currency": currency,
            "Billing Document (Prepayment Tax Invoice)": value(COL_BILLING_NUMBER),
            "Sales Organization": company_code,
            "Data Source": value(COL_SOURCE),
            "Assigned Case": value(COL_CASE),
            "Assigned Scenario": scenario,
            "Number Of Case": "1" if scenario == Scenario.ONE_TO_ONE.value else value(COL_CARDINALITY),
        }

        line_count = 1
        if scenario == Scenario.ONE_TO_MANY.value:
            line_count = max(len(references), len(amounts), len(orders))

        def at(items, i):
            return items[i] if i < len(items) else ""

        # One distinct reference was sent with every payload of the row
        def reference_at(i):
            if len(set(references)) == 1:
                return references[0]
            return at(references, i)

        rows = []
        for i in range(line_count):
            rows.append({
                **base,
                "Reference Number (Delivery SO)": reference_at(i),
                "Delivery SO Number": at(orders, i),
                "Delivery SO Line Item Number": DELIVERY_LINE_ITEM,
                "Delivery SO Amount": at(amounts, i),
                "Delivery SO Currency": currency,
                "Amount to Apply": at(amounts, i),
            })
        return rows

    def remap_report(self, report_df: pd.DataFrame) -> pd.DataFrame:
        """Reshapes a whole report; the result has the display headers as columns.

        Raises:
            InputDataError: If the report lacks the company or scenario column.
        """
        require_columns(report_df, [COL_COMPANY, COL_SCENARIO])
        output_rows = []
        for _, row in report_df.iterrows():
            if not normalize_identifier(row.get(COL_COMPANY, "")):
                continue
            output_rows.extend(self.remap_row(row))

        logger.info(f"Processed {len(output_rows)} rows from {len(report_df)} original rows")
        return pd.DataFrame(output_rows, columns=DISPLAY_HEADERS).fillna("")


def write_remapped(remapped_df: pd.DataFrame, output_path) -> Path:
    """Writes the remapped report with both header rows, every cell quoted."""
    output_path = Path(output_path)
    output_path.parent.mkdir(parents=True, exist_ok=True)

    table = pd.DataFrame([DISPLAY_HEADERS, TECHNICAL_HEADERS], columns=DISPLAY_HEADERS)
    table = pd.concat([table, remapped_df[DISPLAY_HEADERS].astype(str)], ignore_index=True)
    table.to_csv(output_path, index=False, header=False, quoting=csv.QUOTE_ALL,
                 encoding="utf-8", lineterminator="\n")

    logger.info(f"CSV transformation completed! Output saved to: {output_path}")
    return output_path
