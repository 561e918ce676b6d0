"""
Create and remove DNS records in the workload's hosted zones

Changes are submitted one record at a time and each change is waited on before the next
is submitted, so a failure can always be traced to a single record.

"""

import enum
import logging
import re

from botocore.exceptions import ClientError, WaiterError

from workload_domains.deadline import check_cancelled
from workload_domains.domains import HostedZone, HostedZones
from workload_domains.errors import AliasInUseError, RecordChangeError

logger = logging.getLogger(__name__)

VALIDATION_RECORD_TTL = 60

# Route 53 has no error code for these, only the message.
_NOT_FOUND = re.compile(r'Tried to delete resource record set.*but it was not found', re.DOTALL)
_VALUES_MISMATCH = re.compile(
    r'Tried to delete resource record set.*but the values provided do not match the current values', re.DOTALL
)


class DeleteOutcome(enum.Enum):
    NOT_FOUND = 'not found'
    VALUES_MISMATCH = 'values mismatch'
    OTHER = 'other'


def classify_delete_error(error) -> DeleteOutcome:
    """
    Does a failed DELETE mean the record is already gone?

    NOT_FOUND and VALUES_MISMATCH both mean there is nothing of ours left to delete.

    :param Exception error: The error raised by ChangeResourceRecordSets
    :rtype: DeleteOutcome

    """

    message = str(error)

    if _NOT_FOUND.search(message):
        return DeleteOutcome.NOT_FOUND
    if _VALUES_MISMATCH.search(message):
        return DeleteOutcome.VALUES_MISMATCH
    return DeleteOutcome.OTHER


def alias_record(alias, endpoint):
    return {
        'Name': alias,
        'Type': 'A',
        'AliasTarget': {
            'DNSName': endpoint.dns_name,
            'EvaluateTargetHealth': True,
            'HostedZoneId': endpoint.hosted_zone_id,
        },
    }


def validation_record(resource_record):
    return {
        'Name': resource_record['Name'],
        'Type': resource_record['Type'],
        'TTL': VALIDATION_RECORD_TTL,
        'ResourceRecords': [{'Value': resource_record['Value']}],
    }


def _same_name(record_name, name, /) -> bool:
    return record_name.rstrip('.').lower() == name.rstrip('.').lower()


class RecordReconciler:
    def __init__(self, zones: HostedZones, cancelled=None):
        self.zones = zones
        self.cancelled = cancelled

    def find_record(self, name, record_type=None):
        """
        The record at exactly this name, if the first record at or after it has that name

        Only one record is listed, so a record of another type at the same name can hide the one we are after.

        """

        check_cancelled(self.cancelled)
        zone = self.zones.resolve(name)
        record = zone.dns.first_record(zone.zone_id, name, record_type)

        if record is None or not _same_name(record['Name'], name):
            return None
        return record

    def check_ownership(self, alias, allowed_targets=()):
        """
        Make sure we won't overwrite somebody else's A record

        :param str alias: The alias we want to point at our endpoint
        :param allowed_targets: Endpoints the alias may already point to
        :raises AliasInUseError: If the alias is an A record for anything else

        """

        record = self.find_record(alias, 'A')
        if record is None or record['Type'] != 'A':
            return

        alias_target = record.get('AliasTarget')
        if alias_target is None:
            raise AliasInUseError(alias)

        if any(endpoint.matches(alias_target['DNSName']) for endpoint in allowed_targets if endpoint is not None):
            return

        raise AliasInUseError(alias, alias_target['DNSName'])

    def check_ownership_all(self, aliases, allowed_targets=()):
        for alias in sorted(aliases):
            self.check_ownership(alias, allowed_targets)

    def apply(self, zone: HostedZone, action, record_set, comment) -> bool:
        """
        Submit a single change and wait for it to reach all Route 53 DNS servers

        A DELETE of a record that is already gone is not an error, and there is nothing to wait for.

        :returns: False if the change was skipped
        :raises RecordChangeError: If the change fails

        """

        check_cancelled(self.cancelled)

        name = record_set['Name']
        logger.info(f'{action} {record_set["Type"]} record {name} in hosted zone {zone.zone_id}')

        try:
            change_id = zone.dns.change(zone.zone_id, {'Action': action, 'ResourceRecordSet': record_set}, comment)
        except ClientError as exception:
            if action == 'DELETE':
                outcome = classify_delete_error(exception)
                if outcome is not DeleteOutcome.OTHER:
                    logger.warning(f'Not deleting record {name} ({outcome.value}): {exception}')
                    return False

            raise RecordChangeError(action, name, exception) from exception

        check_cancelled(self.cancelled)

        try:
            zone.dns.wait_for_change(change_id)
        except WaiterError as exception:
            raise RecordChangeError(action, name, exception) from exception

        return True

    def upsert_aliases(self, aliases, endpoint):
        for alias in sorted(aliases):
            self.apply(self.zones.resolve(alias), 'UPSERT', alias_record(alias, endpoint), f'Upsert A-record for alias {alias}')

    def delete_aliases(self, aliases, endpoint):
        for alias in sorted(aliases):
            self.apply(self.zones.resolve(alias), 'DELETE', alias_record(alias, endpoint), f'Delete the A-record for {alias}')

    def upsert_validation_record(self, domain_name, resource_record):
        self.apply(
            self.zones.resolve(domain_name),
            'UPSERT',
            validation_record(resource_record),
            f'Validate the certificate for the alias {domain_name}',
        )

    def delete_validation_record(self, domain_name, resource_record):
        self.apply(
            self.zones.resolve(domain_name),
            'DELETE',
            validation_record(resource_record),
            f'Delete the validation record for {domain_name}',
        )
