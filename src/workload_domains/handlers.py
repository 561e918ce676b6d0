"""
Lambda functions backing the workload and environment custom resources

Custom::WorkloadAlias points a workload's aliases at its endpoint with A records.
Custom::WorkloadCertificate issues a DNS validated certificate covering the aliases.
Custom::EnvironmentAlias points the aliases of every service in an environment at the environment's load balancer.
Custom::EnvironmentCertificate issues the environment's certificate, covering the aliases of every service.

All of them always send a response to cloudformation, unless the response itself can't be delivered.

"""

import logging
import random
from typing import NamedTuple

from workload_domains.collector import CertificateCollector
from workload_domains.deadline import Deadline
from workload_domains.domains import HostedZones
from workload_domains.errors import InvalidPropertyError, UnsupportedRequestTypeError
from workload_domains.plan import physical_resource_id, plan
from workload_domains.properties import Limits, parse_environment_properties, parse_properties
from workload_domains.providers import (
    Acm,
    CertificateProvider,
    Clock,
    DNSProvider,
    ResourceTagging,
    Route53,
    SystemClock,
    TaggingProvider,
)
from workload_domains.records import RecordReconciler
from workload_domains.response import FAILED, SUCCESS, send_response
from workload_domains.validator import (
    CertificateRequest,
    CertificateValidator,
    canonical_names,
    environment_tags,
    idempotency_token,
    ownership_tags,
    request_token,
)

logger = logging.getLogger()
logger.setLevel(logging.INFO)

log_info = logger.info
log_exception = logger.exception

REQUEST_TYPES = ('Create', 'Update', 'Delete')


class Services(NamedTuple):
    env_dns: DNSProvider
    app_dns: DNSProvider
    acm: CertificateProvider
    tagging: TaggingProvider
    clock: Clock
    rng: random.Random
    limits: Limits


def aws_services(props, logical_id, limits=Limits()) -> Services:
    """
    The real AWS services for a request

    The application and root hosted zones are in the account that owns the domain,
    and are reached through the RootDNSRole.

    """

    return Services(
        env_dns=Route53(limits=limits),
        app_dns=Route53(limits=limits, role_arn=props.root_dns_role, session_name='Workload' + logical_id),
        acm=Acm.in_region(props.region, limits),
        tagging=ResourceTagging.in_region(props.region),
        clock=SystemClock(),
        rng=random.Random(),
        limits=limits,
    )


class Outcome:
    """What to report back to cloudformation; updated as the workflow progresses"""

    def __init__(self, physical_resource_id=None):
        self.physical_resource_id = physical_resource_id
        self.data = None


def _reconcilers(props, services, cancelled=None):
    zones = HostedZones(props.domain, props.app, props.env, props.env_hosted_zone_id, services.env_dns, services.app_dns)
    return zones, RecordReconciler(zones, cancelled)


def _require_endpoint(props):
    if props.endpoint is None:
        raise InvalidPropertyError('PublicAccessDNS is a required property')


def reconcile_aliases(event, props, services, outcome, cancelled=None):
    request_type = event['RequestType']
    zones, records = _reconcilers(props, services, cancelled)

    if request_type == 'Create':
        _require_endpoint(props)
        zones.classify_all(props.aliases)
        records.check_ownership_all(props.aliases, [props.endpoint])

        # Until now nothing has been changed, and a failure leaves the physical id unset
        # so the Delete that follows it has nothing to do.
        outcome.physical_resource_id = physical_resource_id(props.service, props.aliases)
        records.upsert_aliases(props.aliases, props.endpoint)

    elif request_type == 'Update':
        # Keep the physical id so cloudformation never replaces the resource.
        # A replacement would be followed by a Delete of every old alias, including the ones we still want.
        old = parse_properties(event['OldResourceProperties'])
        work = plan(props.aliases, old.aliases, props.endpoint, old.endpoint)

        if work.is_empty:
            log_info('Aliases and endpoint are unchanged')
            return

        _require_endpoint(props)
        zones.classify_all(props.aliases | work.to_remove)
        records.check_ownership_all(work.to_upsert, [props.endpoint, old.endpoint])
        records.upsert_aliases(work.to_upsert, props.endpoint)
        records.delete_aliases(work.to_remove, old.endpoint or props.endpoint)

    elif request_type == 'Delete':
        if not str(outcome.physical_resource_id).startswith(f'/{props.service}/'):
            log_info('The resource was never created, there is nothing to delete')
            return

        _require_endpoint(props)
        zones.classify_all(props.aliases)
        records.delete_aliases(props.aliases, props.endpoint)


def reconcile_certificate(event, props, services, outcome, cancelled=None):
    request_type = event['RequestType']
    zones, records = _reconcilers(props, services, cancelled)
    tags = ownership_tags(props.app, props.env, props.service)

    if request_type in ('Create', 'Update'):
        previous_sans = None
        existing_arn = None

        if request_type == 'Update':
            previous_sans = parse_properties(event['OldResourceProperties']).aliases
            if str(outcome.physical_resource_id).startswith('arn:'):
                existing_arn = outcome.physical_resource_id

        zones.classify_all(props.aliases)

        if existing_arn is None or canonical_names(previous_sans) != canonical_names(props.aliases):
            records.check_ownership_all(props.aliases, [props.endpoint])

        validator = CertificateValidator(services.acm, records, services.clock, services.rng, services.limits, cancelled)
        request = CertificateRequest(
            domain=props.certificate_domain,
            sans=props.aliases,
            tags=tags,
            idempotency_token=idempotency_token(physical_resource_id(props.service, props.aliases)),
        )

        _validate(validator, request, outcome, existing_arn, previous_sans)

    elif request_type == 'Delete':
        _collect(services, records, outcome, tags, props.endpoint, cancelled)


def reconcile_environment_aliases(event, props, services, outcome, cancelled=None):
    request_type = event['RequestType']
    zones, records = _reconcilers(props, services, cancelled)

    if request_type == 'Create':
        _require_endpoint(props)
        aliases = zones.recognized(props.aliases)
        zones.resolve_all(aliases)

        outcome.physical_resource_id = event['LogicalResourceId']
        records.upsert_aliases(aliases, props.endpoint)

    elif request_type == 'Update':
        old = parse_environment_properties(event['OldResourceProperties'])
        work = plan(zones.recognized(props.aliases), zones.recognized(old.aliases), props.endpoint, old.endpoint)

        if work.is_empty:
            log_info('Aliases and endpoint are unchanged')
            return

        _require_endpoint(props)
        records.upsert_aliases(work.to_upsert, props.endpoint)
        records.delete_aliases(work.to_remove, old.endpoint or props.endpoint)

    elif request_type == 'Delete':
        if outcome.physical_resource_id != event['LogicalResourceId']:
            log_info('The resource was never created, there is nothing to delete')
            return

        _require_endpoint(props)
        records.delete_aliases(zones.recognized(props.aliases), props.endpoint)


def reconcile_environment_certificate(event, props, services, outcome, cancelled=None):
    """
    The environment certificate covers the environment domain, everything directly under it,
    and the aliases of every service that we can validate.

    Every Create and Update requests a new certificate. Cloudformation then deletes the old one,
    which removes only the validation records no remaining certificate in the environment uses.

    """

    request_type = event['RequestType']
    zones, records = _reconcilers(props, services, cancelled)
    tags = environment_tags(props.app, props.env)

    if request_type in ('Create', 'Update'):
        validator = CertificateValidator(services.acm, records, services.clock, services.rng, services.limits, cancelled)
        request = CertificateRequest(
            domain=props.environment_domain,
            sans=zones.recognized(props.aliases) | {f'*.{props.environment_domain}'},
            tags=tags,
            idempotency_token=request_token(event['RequestId']),
        )

        _validate(validator, request, outcome)

    elif request_type == 'Delete':
        _collect(services, records, outcome, tags, None, cancelled)


def _validate(validator, request, outcome, existing_arn=None, previous_sans=None):
    try:
        validator.validate(request, existing_arn, previous_sans)
    finally:
        # A certificate that was requested but failed to validate is still ours to clean up
        if validator.arn is not None:
            outcome.physical_resource_id = validator.arn

    outcome.data = {'Arn': validator.arn}


def _collect(services, records, outcome, tags, endpoint, cancelled):
    arn = outcome.physical_resource_id
    if not str(arn).startswith('arn:'):
        log_info('No certificate was created, there is nothing to delete')
        return

    collector = CertificateCollector(services.acm, services.tagging, records, services.clock, services.limits, cancelled)
    collector.collect(arn, tags, endpoint)


def handle(event, context, reconcile, description, services=None, parse=parse_properties):
    """
    Run a reconcile function for a cloudformation request and send the response

    :param event: lambda event payload
    :param context: lambda execution context
    :param reconcile: Function that does the work for the request
    :param description: What the function does, for the timeout message
    :param services: The AWS services to use, defaults to the real ones
    :param parse: Reads the resource properties

    """

    log_info(event)
    outcome = Outcome(event.get('PhysicalResourceId'))

    try:
        if event.get('RequestType') not in REQUEST_TYPES:
            raise UnsupportedRequestTypeError(event.get('RequestType'))

        props = parse(event['ResourceProperties'])
        services = services or aws_services(props, event['LogicalResourceId'])

        deadline = Deadline.from_context(context, services.limits.deadline_margin, description)
        deadline.run(lambda: reconcile(event, props, services, outcome, deadline.cancelled))

    except Exception as ex:
        log_exception('')
        return send_response(event, context, FAILED, outcome.physical_resource_id, reason=str(ex))

    return send_response(event, context, SUCCESS, outcome.physical_resource_id, outcome.data)


def alias_handler(event, context, /, services=None):
    """Custom::WorkloadAlias handler"""
    return handle(event, context, reconcile_aliases, 'update custom domain', services)


def certificate_handler(event, context, /, services=None):
    """Custom::WorkloadCertificate handler"""
    return handle(event, context, reconcile_certificate, 'validate the certificate', services)


def environment_alias_handler(event, context, /, services=None):
    """Custom::EnvironmentAlias handler"""
    return handle(event, context, reconcile_environment_aliases, 'update custom domain', services, parse_environment_properties)


def environment_certificate_handler(event, context, /, services=None):
    """Custom::EnvironmentCertificate handler"""
    return handle(
        event, context, reconcile_environment_certificate, 'validate the certificate', services, parse_environment_properties
    )
