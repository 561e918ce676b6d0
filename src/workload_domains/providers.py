"""
The AWS services the reconciler talks to

Each service is described by a Protocol so the reconciler can be given something else in tests.
The boto3 implementations are thin; they only reshape requests and responses.

"""

import logging
import time
from typing import Optional, Protocol

import boto3
from botocore.config import Config

from workload_domains.properties import Limits

logger = logging.getLogger(__name__)

# Throttling and other transient errors are retried by botocore
BOTO_CONFIG = Config(retries={'mode': 'standard', 'max_attempts': 10})


class DNSProvider(Protocol):
    def find_hosted_zone(self, name: str) -> Optional[str]:
        ...

    def first_record(self, zone_id: str, name: str, record_type: Optional[str] = None) -> Optional[dict]:
        ...

    def change(self, zone_id: str, change: dict, comment: str) -> str:
        ...

    def wait_for_change(self, change_id: str) -> None:
        ...


class CertificateProvider(Protocol):
    def request_certificate(self, domain: str, sans: list, tags: list, idempotency_token: str) -> str:
        ...

    def describe_certificate(self, arn: str) -> dict:
        ...

    def delete_certificate(self, arn: str) -> None:
        ...

    def wait_for_issuance(self, arn: str) -> None:
        ...


class TaggingProvider(Protocol):
    def find_resources(self, tags: dict, resource_type: str) -> list:
        ...


class Clock(Protocol):
    def sleep(self, seconds: float) -> None:
        ...


class SystemClock:
    def sleep(self, seconds):
        time.sleep(seconds)


def client(service_name, /, region_name=None, credentials=None):
    credentials = credentials or {}
    return boto3.client(
        service_name,
        region_name=region_name,
        aws_access_key_id=credentials.get('AccessKeyId'),
        aws_secret_access_key=credentials.get('SecretAccessKey'),
        aws_session_token=credentials.get('SessionToken'),
        config=BOTO_CONFIG,
    )


def assume_role(role_arn, session_name, /):
    """
    Get temporary credentials for a role

    :param str role_arn: The role to assume
    :param str session_name: Name of the role session, truncated to 64 characters
    :returns: The Credentials from the AssumeRole response
    :rtype: dict

    """

    return client('sts').assume_role(
        RoleArn=role_arn,
        RoleSessionName=session_name[:64],
        DurationSeconds=900,
    )['Credentials']


class Route53:
    """
    Route 53 through the lambda's own credentials, or through role_arn if given

    The role is not assumed until the first call.

    """

    def __init__(self, route53=None, limits=Limits(), role_arn=None, session_name='WorkloadDomains'):
        self._client = route53
        self._limits = limits
        self._role_arn = role_arn
        self._session_name = session_name

    @property
    def _route53(self):
        if self._client is None:
            credentials = assume_role(self._role_arn, self._session_name) if self._role_arn is not None else None
            self._client = client('route53', credentials=credentials)
        return self._client

    def find_hosted_zone(self, name):
        response = self._route53.list_hosted_zones_by_name(DNSName=name, MaxItems='1')
        logger.info(response)

        zones = response.get('HostedZones', [])
        if not zones or zones[0]['Name'].rstrip('.').lower() != name.rstrip('.').lower():
            return None

        return zones[0]['Id'].split('/')[-1]

    def first_record(self, zone_id, name, record_type=None):
        request = {
            'HostedZoneId': zone_id,
            'StartRecordName': name,
            'MaxItems': '1',
        }
        if record_type is not None:
            request['StartRecordType'] = record_type

        records = self._route53.list_resource_record_sets(**request).get('ResourceRecordSets', [])
        return records[0] if records else None

    def change(self, zone_id, change, comment):
        response = self._route53.change_resource_record_sets(
            HostedZoneId=zone_id,
            ChangeBatch={
                'Comment': comment,
                'Changes': [change],
            },
        )
        logger.info(response)
        return response['ChangeInfo']['Id']

    def wait_for_change(self, change_id):
        self._route53.get_waiter('resource_record_sets_changed').wait(
            Id=change_id,
            WaiterConfig={
                'Delay': self._limits.record_change_delay,
                'MaxAttempts': self._limits.record_change_attempts,
            },
        )


class Acm:
    def __init__(self, acm, limits=Limits()):
        self._acm = acm
        self._limits = limits

    @classmethod
    def in_region(cls, region_name=None, limits=Limits()):
        return cls(client('acm', region_name=region_name), limits)

    def request_certificate(self, domain, sans, tags, idempotency_token):
        request = {
            'DomainName': domain,
            'ValidationMethod': 'DNS',
            'IdempotencyToken': idempotency_token,
            'Tags': tags,
        }
        if sans:
            request['SubjectAlternativeNames'] = list(sans)

        return self._acm.request_certificate(**request)['CertificateArn']

    def describe_certificate(self, arn):
        certificate = self._acm.describe_certificate(CertificateArn=arn)['Certificate']
        logger.info(certificate)
        return certificate

    def delete_certificate(self, arn):
        self._acm.delete_certificate(CertificateArn=arn)

    def wait_for_issuance(self, arn):
        self._acm.get_waiter('certificate_validated').wait(
            CertificateArn=arn,
            WaiterConfig={
                'Delay': self._limits.certificate_validated_delay,
                'MaxAttempts': self._limits.certificate_validated_attempts,
            },
        )


class ResourceTagging:
    def __init__(self, tagging):
        self._tagging = tagging

    @classmethod
    def in_region(cls, region_name=None):
        return cls(client('resourcegroupstaggingapi', region_name=region_name))

    def find_resources(self, tags, resource_type):
        tag_filters = [{'Key': key, 'Values': [value]} for key, value in tags.items()]

        arns = []
        for page in self._tagging.get_paginator('get_resources').paginate(
            TagFilters=tag_filters,
            ResourceTypeFilters=[resource_type],
        ):
            arns += [mapping['ResourceARN'] for mapping in page['ResourceTagMappingList']]

        return arns
