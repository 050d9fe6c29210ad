"""
Stage 2 (optional): submits rendered payloads to the order-creation API.

Payloads are sent strictly one at a time with a fixed pause between calls.
Each payload gets exactly one attempt; a failed call, whatever the error, is
recorded as FAILED for that payload only and the run continues.
"""
import logging
import time
from typing import Callable, Iterable, List, Optional

import pandas as pd
import requests

from .errors import DispatchError
from .logger_config import log_with_context
from .models import AMOUNT_SEPARATOR, COL_ORDER_NUMBERS
from .payloads import Payload, RenderResult

logger = logging.getLogger("PrepaymentToolLogger")

NO_ORDER_NUMBER = "NO_ORDER_NUMBER"
FAILED = "FAILED"


def extract_order_id(response_body, order_id_field: str = "SalesOrder") -> Optional[str]:
    """Finds the created order number in an API response body.

    Looks at the top level, inside an OData `d` wrapper, and at the first
    element when the field holds a list of objects.
    """
    if not isinstance(response_body, dict):
        return None

    candidates = [response_body]
    if isinstance(response_body.get("d"), dict):
        candidates.append(response_body["d"])

    for candidate in candidates:
        value = candidate.get(order_id_field)
        if isinstance(value, list) and value and isinstance(value[0], dict):
            value = value[0].get(order_id_field)
        if value not in (None, "") and not isinstance(value, (dict, list)):
            return str(value)
    return None


class OrderApiClient:
    """Thin wrapper around a requests.Session for the order-creation endpoint."""

    def __init__(self, url: str, username: Optional[str] = None, password: Optional[str] = None,
                 timeout: float = 30.0, order_id_field: str = "SalesOrder",
                 session: Optional[requests.Session] = None):
        if not url:
            raise DispatchError("No API URL configured (Api.Url or PREPAYMENT_API_URL)")
        self.url = url
        self.timeout = timeout
        self.order_id_field = order_id_field
        self.session = session or requests.Session()
        if username:
            self.session.auth = (username, password or "")
        self.session.headers.update({"Content-Type": "application/json", "Accept": "application/json"})

    @classmethod
    def from_settings(cls, api_settings) -> "OrderApiClient":
        return cls(
            url=api_settings.url,
            username=api_settings.username,
            password=api_settings.password,
            timeout=api_settings.timeout,
            order_id_field=api_settings.order_id_field,
        )

    def create_order(self, body: dict) -> Optional[str]:
        """POSTs one payload and returns the created order number, if any.

        Raises:
            DispatchError: On connection errors, non-2xx responses or a
                response that is not JSON.
        """
        try:
            response = self.session.post(self.url, json=body, timeout=self.timeout)
            response.raise_for_status()
        except requests.RequestException as e:
            raise DispatchError(f"Request to {self.url} failed: {e}") from e

        if not response.content:
            return None
        try:
            data = response.json()
        except ValueError as e:
            raise DispatchError(f"Response from {self.url} is not valid JSON") from e
        return extract_order_id(data, self.order_id_field)

    def close(self):
        self.session.close()


class RequestDispatcher:
    """Sends payloads sequentially, one attempt each, with a fixed delay."""

    def __init__(self, client, delay_seconds: float = 1.0, sleep: Callable[[float], None] = time.sleep):
        self.client = client
        self.delay_seconds = delay_seconds
        self.sleep = sleep
        self._sent = 0

    def dispatch_payload(self, payload: Payload, company_code: Optional[str] = None) -> str:
        if self._sent and self.delay_seconds > 0:
            self.sleep(self.delay_seconds)
        self._sent += 1

        try:
            order_id = self.client.create_order(payload.body)
        except DispatchError as e:
            log_with_context(logger, logging.ERROR, f"Dispatch failed for {payload.test_id}: {e}",
                             company_code=company_code, test_id=payload.test_id)
            return FAILED
        except Exception as e:
            # A failure stays local to this payload, whatever the client raised
            log_with_context(logger, logging.ERROR,
                             f"Dispatch failed for {payload.test_id}: {type(e).__name__}: {e}",
                             company_code=company_code, test_id=payload.test_id)
            return FAILED

        if order_id is None:
            log_with_context(logger, logging.WARNING, f"No order number returned for {payload.test_id}",
                             company_code=company_code, test_id=payload.test_id)
            return NO_ORDER_NUMBER

        log_with_context(logger, logging.INFO, f"Created order {order_id} for {payload.test_id}",
                         company_code=company_code, test_id=payload.test_id)
        return order_id

    def dispatch_payloads(self, payloads: Iterable[Payload], company_code: Optional[str] = None) -> List[str]:
        return [self.dispatch_payload(payload, company_code) for payload in payloads]


def join_outcomes(outcomes: List[str]) -> str:
    return AMOUNT_SEPARATOR.join(outcomes)


def with_order_number_column(report_df: pd.DataFrame) -> pd.DataFrame:
    """Returns a copy of the report with an empty TransactionOrderNumbers column."""
    updated = report_df.copy()
    updated[COL_ORDER_NUMBERS] = ""
    return updated


def dispatch_into(updated: pd.DataFrame, rendered: RenderResult, dispatcher: RequestDispatcher) -> pd.DataFrame:
    """Dispatches every rendered record, filling `updated` in place.

    The outcome cell of a row is rewritten after each payload, so if the run
    is interrupted the frame still holds every order number created so far.
    """
    for company_code, records in rendered.records.items():
        logger.info(f"Dispatching {sum(len(r.payloads) for r in records)} payload(s) for {company_code}")
        for record in records:
            outcomes = []
            for payload in record.payloads:
                outcomes.append(dispatcher.dispatch_payload(payload, company_code))
                updated.at[record.row_index, COL_ORDER_NUMBERS] = join_outcomes(outcomes)
    return updated


def dispatch_report(report_df: pd.DataFrame, rendered: RenderResult, dispatcher: RequestDispatcher) -> pd.DataFrame:
    """Dispatches every rendered record and appends the outcomes to the report.

    Rows of companies that could not be rendered keep an empty outcome cell.
    """
    return dispatch_into(with_order_number_column(report_df), rendered, dispatcher)
