"""
Errors raised while reconciling workload aliases and certificates

Anything raised from here aborts the request and is reported to cloudformation as FAILED.
Conditions that are safe to ignore (a record or certificate that is already gone) are
absorbed where they are detected and never raised.

"""


class ReconciliationError(Exception):
    """Base class for all reconciliation failures"""


class InvalidPropertyError(ReconciliationError):
    """A resource property could not be understood"""


class UnrecognizedDomainError(ReconciliationError):
    """An alias is not under the environment, application or root domain"""

    def __init__(self, alias):
        super().__init__(f'unrecognized domain type for {alias}')
        self.alias = alias


class HostedZoneNotFoundError(ReconciliationError):
    def __init__(self, domain):
        super().__init__(f"Couldn't find any Hosted Zone with DNS name {domain}.")
        self.domain = domain


class AliasInUseError(ReconciliationError):
    """The alias already has an A record that belongs to something else"""

    def __init__(self, alias, target=None):
        if target is None:
            message = f'Alias {alias} is already in use'
        else:
            message = f'Alias {alias} is already in use by {target}. This could be another load balancer of a different service.'

        super().__init__(message)
        self.alias = alias
        self.target = target


class RecordChangeError(ReconciliationError):
    """Changing a single DNS record failed"""

    def __init__(self, action, name, cause):
        super().__init__(f'{action.lower()} record {name}: {cause}')
        self.action = action
        self.name = name


class ValidationOptionsTimeoutError(ReconciliationError):
    def __init__(self, attempts):
        super().__init__(f'resource validation records are not ready after {attempts} tries')
        self.attempts = attempts


class CertificateStillInUseError(ReconciliationError):
    def __init__(self, arn, attempts):
        super().__init__(f'Certificate {arn} still in use after checking for {attempts} attempts.')
        self.arn = arn
        self.attempts = attempts


class DeadlineExceededError(ReconciliationError):
    def __init__(self, seconds, description):
        super().__init__(f'Lambda took longer than {seconds:.0f} seconds to {description}')
        self.seconds = seconds


class WorkflowCancelledError(ReconciliationError):
    """The workflow was abandoned, nothing more may be changed"""

    def __init__(self):
        super().__init__('The deadline has passed, not making any more changes')


class UnsupportedRequestTypeError(ReconciliationError):
    def __init__(self, request_type):
        super().__init__(f'Unsupported request type {request_type}')
        self.request_type = request_type


class ResponseDeliveryError(Exception):
    """The response could not be delivered to cloudformation"""
