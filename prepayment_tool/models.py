"""
Core data types: assignment labels, billing records and assignment results.
"""
from dataclasses import dataclass, field
from enum import Enum
from typing import List, Optional, Union

# Stage-1 report columns, in output order
COL_COMPANY = "Company Code"
COL_SOURCE = "Data Source"
COL_SO_NUMBER = "SO Number"
COL_RECORD_INDEX = "Record Index"
COL_BILLING_NUMBER = "Billing Number"
COL_PREPAYMENT_NUMBER = "Prepayment Request Number"
COL_AMOUNT = "Amount"
COL_CASE = "Assigned Case"
COL_SCENARIO = "Assigned Scenario"
COL_CARDINALITY = "OneToMany Number"
COL_AMOUNTS = "ZFSN"
COL_PROCESSED = "Processed"

# Optional hand-edited columns between stage 1 and stage 2
COL_ORIGINAL_PREPAYMENT = "Original Prepayment Request Number"
COL_GENERATED_PREPAYMENT = "Generated Prepayment Request Number"

# Appended by the dispatcher
COL_ORDER_NUMBERS = "TransactionOrderNumbers"

REPORT_COLUMNS = [
    COL_COMPANY,
    COL_SOURCE,
    COL_SO_NUMBER,
    COL_RECORD_INDEX,
    COL_BILLING_NUMBER,
    COL_PREPAYMENT_NUMBER,
    COL_AMOUNT,
    COL_CASE,
    COL_SCENARIO,
    COL_CARDINALITY,
    COL_AMOUNTS,
    COL_PROCESSED,
]

AMOUNT_SEPARATOR = ", "

NO_CASE_LABEL = "N/A - No cases available"
NO_SCENARIO_LABEL = "N/A - No scenarios available"
INFEASIBLE_LABEL = "N/A - Infeasible amount"


class Delivery(Enum):
    UNDER = "UnderDelivery"
    OVER = "OverDelivery"


class Case(Enum):
    """Delivery direction x prepayment type, in canonical order."""

    UNDER_HAPPY = "UnderDelivery-Happy"
    UNDER_NO_PREPAYMENT = "UnderDelivery-NoPrepayment"
    UNDER_DIFF_PREPAYMENT = "UnderDelivery-DiffPrepayment"
    OVER_HAPPY = "OverDelivery-Happy"
    OVER_NO_PREPAYMENT = "OverDelivery-NoPrepayment"
    OVER_DIFF_PREPAYMENT = "OverDelivery-DiffPrepayment"

    @property
    def direction(self) -> Delivery:
        return Delivery(self.value.split("-", 1)[0])

    @property
    def prepayment_type(self) -> str:
        return self.value.split("-", 1)[1]

    def __str__(self):
        return self.value


class Scenario(Enum):
    ONE_TO_ONE = "OneToOne"
    ONE_TO_MANY = "OneToMany"

    def __str__(self):
        return self.value


Label = Union[Case, Scenario]


@dataclass(frozen=True)
class BillingRecord:
    """One input billing record, as read from a source collection."""

    company_code: str
    source: str
    so_number: str
    index: int
    billing_number: str
    prepayment_request_number: str
    amount: float


@dataclass
class AssignmentResult:
    """The outcome of assigning one billing record.

    `case` and `scenario` are None when the record could not be assigned;
    `reason` then holds the labels written to the report instead.
    """

    record: BillingRecord
    case: Optional[Case] = None
    scenario: Optional[Scenario] = None
    cardinality: Optional[int] = None
    amounts: List[int] = field(default_factory=list)
    reason: Optional[str] = None

    @property
    def processed(self) -> bool:
        return self.case is not None and self.scenario is not None

    @property
    def amounts_text(self) -> str:
        return AMOUNT_SEPARATOR.join(str(a) for a in self.amounts)

    def to_row(self) -> dict:
        """Build the stage-1 report row for this result."""
        if self.processed:
            case_label, scenario_label = self.case.value, self.scenario.value
        elif self.reason:
            case_label = scenario_label = self.reason
        else:
            case_label, scenario_label = NO_CASE_LABEL, NO_SCENARIO_LABEL

        return {
            COL_COMPANY: self.record.company_code,
            COL_SOURCE: self.record.source,
            COL_SO_NUMBER: self.record.so_number,
            COL_RECORD_INDEX: self.record.index,
            COL_BILLING_NUMBER: self.record.billing_number,
            COL_PREPAYMENT_NUMBER: self.record.prepayment_request_number,
            COL_AMOUNT: self.record.amount,
            COL_CASE: case_label,
            COL_SCENARIO: scenario_label,
            COL_CARDINALITY: self.cardinality if self.cardinality is not None else "",
            COL_AMOUNTS: self.amounts_text,
            COL_PROCESSED: "true" if self.processed else "false",
        }
