"""Domain-specific exceptions"""


class DomainException(Exception):
    """Base exception for domain layer"""

    pass


class MalformedInputError(DomainException):
    """A loan record cannot be scored because its inputs are inconsistent"""

    def __init__(self, loan_id: str, reason: str):
        super().__init__(f"Loan {loan_id}: {reason}")
        self.loan_id = loan_id
        self.reason = reason


class InvariantViolationError(DomainException):
    """A derived value broke a structural guarantee (formula or threshold defect)"""

    def __init__(self, check: str, detail: str):
        super().__init__(f"{check}: {detail}")
        self.check = check
        self.detail = detail
