"""
Issue a DNS validated certificate for a workload

Issuing a certificate goes through these states:

    REQUESTED -> AWAITING_VALIDATION_OPTIONS -> VALIDATION_RECORDS_UPSERTED -> AWAITING_ISSUANCE -> DONE

Any exception ends the state machine. Every step is safe to repeat: the certificate request carries an
idempotency token (derived from the service and its aliases, or from the request for the environment
certificate), and validation records are UPSERTed.

"""

import enum
import hashlib
import logging
import random
from typing import NamedTuple

from workload_domains.deadline import check_cancelled
from workload_domains.errors import ValidationOptionsTimeoutError
from workload_domains.properties import Limits
from workload_domains.providers import CertificateProvider, Clock
from workload_domains.records import RecordReconciler

logger = logging.getLogger(__name__)

# Certificates issued before this package existed carry the same keys
TAG_APPLICATION = 'copilot-application'
TAG_ENVIRONMENT = 'copilot-environment'
TAG_SERVICE = 'copilot-service'


class ValidationState(enum.Enum):
    REQUESTED = 'REQUESTED'
    AWAITING_VALIDATION_OPTIONS = 'AWAITING_VALIDATION_OPTIONS'
    VALIDATION_RECORDS_UPSERTED = 'VALIDATION_RECORDS_UPSERTED'
    AWAITING_ISSUANCE = 'AWAITING_ISSUANCE'
    DONE = 'DONE'


def environment_tags(app, env) -> dict:
    """Tags shared by every certificate in the environment"""
    return {
        TAG_APPLICATION: app,
        TAG_ENVIRONMENT: env,
    }


def ownership_tags(app, env, service) -> dict:
    return {
        TAG_APPLICATION: app,
        TAG_ENVIRONMENT: env,
        TAG_SERVICE: service,
    }


def canonical_names(names) -> frozenset:
    return frozenset(name.rstrip('.').lower() for name in names)


def idempotency_token(value) -> str:
    return hashlib.new('md5', value.encode()).hexdigest()


def request_token(request_id) -> str:
    """A token unique to one cloudformation request, so every request gets a new certificate"""
    return hashlib.sha256(request_id.encode()).hexdigest()[:32]


def validation_key(resource_record) -> tuple:
    return resource_record['Name'], resource_record['Type'], resource_record['Value']


class CertificateRequest(NamedTuple):
    domain: str
    sans: frozenset
    tags: dict
    idempotency_token: str

    @property
    def expected_names(self) -> frozenset:
        """Every name that needs a validation record"""
        return canonical_names(self.sans | {self.domain})


class CertificateValidator:
    def __init__(
        self,
        acm: CertificateProvider,
        records: RecordReconciler,
        clock: Clock,
        rng=None,
        limits=Limits(),
        cancelled=None,
    ):
        self._acm = acm
        self._cancelled = cancelled
        self._records = records
        self._clock = clock
        self._random = rng or random.Random()
        self._limits = limits

        self.state = None
        self.arn = None
        self._request = None
        self._options = []

    def validate(self, request: CertificateRequest, existing_arn=None, previous_sans=None) -> str:
        """
        Get an issued certificate for the request

        If the certificate would cover exactly the same names as the existing certificate,
        the existing certificate is used.

        :param request: The certificate to issue
        :param existing_arn: The certificate currently in use, if any
        :param previous_sans: The names the existing certificate was requested for
        :returns: The arn of the issued certificate

        """

        self._request = request
        self.arn = existing_arn

        if existing_arn is not None and previous_sans is not None and canonical_names(previous_sans) == canonical_names(request.sans):
            logger.info(f'Subject alternative names are unchanged, keeping {existing_arn}')
            self.state = ValidationState.DONE
        else:
            self.state = ValidationState.REQUESTED

        transitions = {
            ValidationState.REQUESTED: self._request_certificate,
            ValidationState.AWAITING_VALIDATION_OPTIONS: self._await_validation_options,
            ValidationState.VALIDATION_RECORDS_UPSERTED: self._upsert_validation_records,
            ValidationState.AWAITING_ISSUANCE: self._await_issuance,
        }

        while self.state is not ValidationState.DONE:
            check_cancelled(self._cancelled)
            logger.info(f'Certificate {self.arn or request.domain}: {self.state.value}')
            self.state = transitions[self.state]()

        return self.arn

    def _request_certificate(self):
        request = self._request

        self.arn = self._acm.request_certificate(
            request.domain,
            sorted(request.sans),
            [{'Key': key, 'Value': value} for key, value in request.tags.items()],
            request.idempotency_token,
        )

        logger.info(f'Requested certificate {self.arn}')
        return ValidationState.AWAITING_VALIDATION_OPTIONS

    def _await_validation_options(self):
        """
        Wait until ACM has a validation record for every name on the certificate

        Backs off exponentially from 200ms with jitter.

        """

        expected = self._request.expected_names
        attempts = self._limits.validation_options_attempts

        for attempt in range(attempts):
            check_cancelled(self._cancelled)
            certificate = self._acm.describe_certificate(self.arn)

            ready = [
                option for option in certificate.get('DomainValidationOptions', [])
                if 'ResourceRecord' in option and option['DomainName'].lower() in expected
            ]

            if canonical_names(option['DomainName'] for option in ready) == expected:
                self._options = ready
                return ValidationState.VALIDATION_RECORDS_UPSERTED

            if attempt + 1 < attempts:
                base = 2 ** attempt
                self._clock.sleep((self._random.random() * base * 50 + base * 150) / 1000)

        raise ValidationOptionsTimeoutError(attempts)

    def _upsert_validation_records(self):
        # The same record can validate more than one name, e.g. example.com and *.example.com
        upserted = set()

        for option in sorted(self._options, key=lambda option: option['DomainName']):
            key = validation_key(option['ResourceRecord'])
            if key in upserted:
                continue

            self._records.upsert_validation_record(option['DomainName'], option['ResourceRecord'])
            upserted.add(key)

        return ValidationState.AWAITING_ISSUANCE

    def _await_issuance(self):
        self._acm.wait_for_issuance(self.arn)
        logger.info(f'Certificate {self.arn} has been issued')
        return ValidationState.DONE
