"""
Resource properties and tunable limits

"""

from typing import NamedTuple, Optional

from workload_domains.errors import InvalidPropertyError
from workload_domains.plan import aliases_from_property

CLOUDFRONT_REGION = 'us-east-1'


class Limits(NamedTuple):
    """
    How long to wait for things

    Delays are in seconds.

    """

    record_change_delay: int = 30
    record_change_attempts: int = 10
    validation_options_attempts: int = 10
    certificate_validated_delay: int = 30
    certificate_validated_attempts: int = 19
    certificate_not_in_use_delay: int = 30
    certificate_not_in_use_attempts: int = 12
    deadline_margin: int = 90


class Endpoint(NamedTuple):
    """Where the aliases point to, e.g. a load balancer"""

    dns_name: str
    hosted_zone_id: Optional[str] = None

    def matches(self, dns_name) -> bool:
        return self.dns_name.rstrip('.').lower() == dns_name.rstrip('.').lower()


class WorkloadProperties(NamedTuple):
    app: str
    env: str
    service: Optional[str]
    domain: str
    env_hosted_zone_id: Optional[str]
    root_dns_role: Optional[str]
    aliases: frozenset
    endpoint: Optional[Endpoint]
    is_cloudfront: bool = False
    acm_region: Optional[str] = None

    @property
    def region(self) -> Optional[str]:
        """ACM region for the certificate; CloudFront only accepts certificates from us-east-1"""
        return CLOUDFRONT_REGION if self.is_cloudfront else self.acm_region

    @property
    def environment_domain(self) -> str:
        return f'{self.env}.{self.app}.{self.domain}'

    @property
    def certificate_domain(self) -> str:
        if self.is_cloudfront:
            return f'{self.service}.{self.env}.{self.app}.{self.domain}'
        return f'{self.service}-nlb.{self.env}.{self.app}.{self.domain}'


def _required(props, key, /):
    value = props.get(key)
    if not value:
        raise InvalidPropertyError(f'{key} is a required property')
    return value


def _endpoint(props):
    if props.get('PublicAccessDNS'):
        hosted_zone_id = props.get('PublicAccessHostedZoneID') or props.get('PublicAccessHostedZone')
        return Endpoint(props['PublicAccessDNS'], hosted_zone_id)

    if props.get('LoadBalancerDNS'):
        return Endpoint(props['LoadBalancerDNS'], props.get('LoadBalancerHostedZoneID'))

    return None


def parse_properties(props, /, require_service=True) -> WorkloadProperties:
    """
    Read the resource properties sent by cloudformation

    :param dict props: ResourceProperties or OldResourceProperties from the request
    :param bool require_service: False for environment resources, which don't belong to a service
    :rtype: WorkloadProperties

    """

    return WorkloadProperties(
        app=_required(props, 'AppName'),
        env=_required(props, 'EnvName'),
        service=_required(props, 'ServiceName') if require_service else props.get('ServiceName'),
        domain=_required(props, 'DomainName').rstrip('.'),
        env_hosted_zone_id=props.get('EnvHostedZoneId'),
        root_dns_role=props.get('RootDNSRole') or props.get('AppDNSRole'),
        aliases=aliases_from_property(props.get('Aliases')),
        endpoint=_endpoint(props),
        is_cloudfront=str(props.get('IsCloudFrontCertificate', False)).lower() == 'true',
        acm_region=props.get('Region') or None,
    )


def parse_environment_properties(props) -> WorkloadProperties:
    return parse_properties(props, require_service=False)
