"""
Delete a certificate and the validation records nothing else needs

Validation records are shared between certificates that cover the same name, and ACM uses them again
to renew a certificate. A record is only removed when no other certificate with the same tags uses it.
The environment certificate is tagged with just the application and environment, so every certificate
in the environment is counted when it is deleted.

"""

import collections
import logging

from botocore.exceptions import ClientError

from workload_domains.deadline import check_cancelled
from workload_domains.errors import CertificateStillInUseError, UnrecognizedDomainError
from workload_domains.properties import Limits
from workload_domains.providers import CertificateProvider, Clock, TaggingProvider
from workload_domains.records import RecordReconciler
from workload_domains.validator import validation_key

logger = logging.getLogger(__name__)

CERTIFICATE_RESOURCE_TYPE = 'acm:certificate'


def _not_found(exception) -> bool:
    return exception.response.get('Error', {}).get('Code') == 'ResourceNotFoundException'


def validation_records(certificate) -> dict:
    """
    The distinct validation records of a certificate

    :returns: A dict of record key to (domain name, ResourceRecord)

    """

    records = {}
    for option in sorted(certificate.get('DomainValidationOptions', []), key=lambda option: option['DomainName']):
        if 'ResourceRecord' in option:
            records.setdefault(validation_key(option['ResourceRecord']), (option['DomainName'], option['ResourceRecord']))
    return records


def unreferenced_records(owned, candidates) -> list:
    """
    Validation records of the owned certificate that no other candidate uses

    All candidates are counted before anything is chosen, and the owned certificate must be one of them.

    """

    references = collections.Counter()
    for certificate in candidates:
        references.update(validation_records(certificate).keys())

    owned_records = validation_records(owned)
    return [owned_records[key] for key in sorted(owned_records) if references[key] == 1]


class CertificateCollector:
    def __init__(
        self,
        acm: CertificateProvider,
        tagging: TaggingProvider,
        records: RecordReconciler,
        clock: Clock,
        limits=Limits(),
        cancelled=None,
    ):
        self._acm = acm
        self._cancelled = cancelled
        self._tagging = tagging
        self._records = records
        self._clock = clock
        self._limits = limits

    def collect(self, arn, tags, endpoint=None):
        """
        Remove a certificate

        :param str arn: The certificate to delete
        :param dict tags: The tags that identify every certificate belonging to the workload
        :param endpoint: The workload's own endpoint. A name pointing anywhere else is in use by something else.

        """

        candidates = self._candidates(tags)

        owned = next((certificate for certificate in candidates if certificate['CertificateArn'].lower() == arn.lower()), None)
        if owned is None:
            logger.info(f'Certificate {arn} is not among the workload certificates, it may already be deleted')
        else:
            for domain_name, resource_record in unreferenced_records(owned, candidates):
                if self._in_use_by_others(domain_name, endpoint):
                    logger.info(f'Keeping the validation record for {domain_name}, the name is in use by something else')
                    continue

                self._records.delete_validation_record(domain_name, resource_record)

        if self._wait_until_unused(arn):
            self._delete(arn)

    def _candidates(self, tags):
        candidates = []
        for candidate_arn in self._tagging.find_resources(tags, CERTIFICATE_RESOURCE_TYPE):
            check_cancelled(self._cancelled)
            try:
                candidates.append(self._acm.describe_certificate(candidate_arn))
            except ClientError as exception:
                if not _not_found(exception):
                    raise
                logger.info(f'Certificate {candidate_arn} no longer exists')

        return candidates

    def _in_use_by_others(self, domain_name, endpoint) -> bool:
        try:
            record = self._records.find_record(domain_name)
        except UnrecognizedDomainError:
            logger.warning(f'{domain_name} is not in the environment, application or root domain, assuming it is in use')
            return True

        if record is None or endpoint is None:
            return False

        alias_target = record.get('AliasTarget')
        return not (alias_target and endpoint.matches(alias_target['DNSName']))

    def _wait_until_unused(self, arn) -> bool:
        """
        Wait until nothing uses the certificate

        :returns: False if the certificate does not exist
        :raises CertificateStillInUseError: If it is still in use after all attempts

        """

        attempts = self._limits.certificate_not_in_use_attempts

        for attempt in range(attempts):
            check_cancelled(self._cancelled)
            try:
                certificate = self._acm.describe_certificate(arn)
            except ClientError as exception:
                if _not_found(exception):
                    logger.info(f'Certificate {arn} is already deleted')
                    return False
                raise

            if not certificate.get('InUseBy'):
                return True

            logger.info(f'Certificate {arn} is in use by {certificate["InUseBy"]}')
            if attempt + 1 < attempts:
                self._clock.sleep(self._limits.certificate_not_in_use_delay)

        raise CertificateStillInUseError(arn, attempts)

    def _delete(self, arn):
        check_cancelled(self._cancelled)

        try:
            self._acm.delete_certificate(arn)
        except ClientError as exception:
            if not _not_found(exception):
                raise
            logger.info(f'Certificate {arn} is already deleted')
            return

        logger.info(f'Deleted certificate {arn}')
