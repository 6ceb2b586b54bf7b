"""
PDC engine errors.

Field-level input problems are reported with Django's ValidationError
(a field -> message dict), like the rest of the project. The classes
below cover the lifecycle-specific failures.
"""


class PDCError(Exception):
    """Base class for PDC lifecycle errors."""
    code = 'pdc_error'

    def as_dict(self):
        return {'error': self.__class__.__name__, 'message': str(self)}


class IllegalTransition(PDCError):
    """Requested status is not reachable from the current status."""
    code = 'illegal_transition'

    def __init__(self, from_status, attempted_to):
        self.from_status = from_status
        self.attempted_to = attempted_to
        super().__init__(f"Cannot move PDC from {from_status} to {attempted_to}.")

    def as_dict(self):
        data = super().as_dict()
        data.update({'from': str(self.from_status), 'attempted_to': str(self.attempted_to)})
        return data


class InvalidBankAccount(PDCError):
    """Deposit destination does not exist or is not active."""
    code = 'invalid_bank_account'

    def __init__(self, bank_account_id, reason='not found'):
        self.bank_account_id = bank_account_id
        super().__init__(f"Bank account {bank_account_id} cannot receive deposits: {reason}.")


class DuplicateInstrument(PDCError):
    """A live cheque with the same tenant, cheque number and bank already exists."""
    code = 'duplicate_instrument'

    def __init__(self, cheque_number, bank_name, existing_id=None):
        self.cheque_number = cheque_number
        self.bank_name = bank_name
        self.existing_id = existing_id
        super().__init__(
            f"Cheque {cheque_number} ({bank_name}) is already registered for this tenant."
        )

    def as_dict(self):
        data = super().as_dict()
        data.update({'cheque_number': self.cheque_number, 'existing_id': self.existing_id})
        return data


class ConcurrentModification(PDCError):
    """The PDC changed since it was read; re-read and retry."""
    code = 'concurrent_modification'

    def __init__(self, pdc_id, expected_version=None):
        self.pdc_id = pdc_id
        self.expected_version = expected_version
        super().__init__(f"PDC {pdc_id} was modified by another request.")


class BrokenChainReference(PDCError):
    """Replacement links are inconsistent. Indicates a failed earlier write."""
    code = 'broken_chain_reference'

    def __init__(self, pdc_id, detail):
        self.pdc_id = pdc_id
        super().__init__(f"Replacement chain broken at PDC {pdc_id}: {detail}")


class InvalidDateRange(PDCError):
    code = 'invalid_date_range'

    def __init__(self, date_from, date_to):
        self.date_from = date_from
        self.date_to = date_to
        super().__init__(f"End date {date_to} is before start date {date_from}.")
