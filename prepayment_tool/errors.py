"""Exception hierarchy shared by every stage of the prepayment tool.

Which stage aborts on which error:
    - ConfigError, InputDataError: the whole run stops.
    - TemplateNotFoundError: only the affected company's batch is skipped.
    - DispatchError: recorded as a failure marker for one payload.
    - InfeasibleAmountError: the record is reported as unassigned.
    - QuotaExhaustedError: never expected at runtime.
"""


class PrepaymentToolError(Exception):
    """Base exception for prepayment tool errors."""
    pass


class ConfigError(PrepaymentToolError):
    """Raised when the configuration file is missing or invalid."""
    pass


class InputDataError(PrepaymentToolError):
    """Raised when an input collection or report cannot be read."""
    pass


class TemplateNotFoundError(PrepaymentToolError):
    """Raised when a company has no JSON payload template."""

    def __init__(self, company_code, template_path):
        super().__init__(
            f"Template file not found for company code: {company_code} ({template_path})"
        )
        self.company_code = company_code
        self.template_path = template_path


class DispatchError(PrepaymentToolError):
    """Raised when the order API rejects or fails a single request."""
    pass


class QuotaExhaustedError(PrepaymentToolError):
    """Raised when consuming a label whose quota is already zero."""
    pass


class InfeasibleAmountError(PrepaymentToolError, ValueError):
    """Raised when no amount sequence can satisfy the requested constraint."""
    pass
