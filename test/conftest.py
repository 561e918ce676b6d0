import json
import random

import pytest

from fakes import FakeAcm, FakeClock, FakeContext, FakeDNS, FakeTagging
from workload_domains.domains import HostedZones
from workload_domains.handlers import Services
from workload_domains.properties import Limits
from workload_domains.records import RecordReconciler

ENV_ZONE_ID = 'ZENV0000000000'
APP_ZONE_ID = 'ZAPP0000000000'
ROOT_ZONE_ID = 'ZROOT000000000'


@pytest.fixture()
def env_dns():
    """Route 53 in the environment account"""
    return FakeDNS()


@pytest.fixture()
def app_dns():
    """Route 53 in the account that owns the domain"""
    return FakeDNS(zones={
        'app.example.com': APP_ZONE_ID,
        'example.com': ROOT_ZONE_ID,
    })


@pytest.fixture()
def zones(env_dns, app_dns):
    return HostedZones('example.com', 'app', 'test', ENV_ZONE_ID, env_dns, app_dns)


@pytest.fixture()
def records(zones):
    return RecordReconciler(zones)


@pytest.fixture()
def acm():
    return FakeAcm()


@pytest.fixture()
def tagging(acm):
    return FakeTagging(acm)


@pytest.fixture()
def clock():
    return FakeClock()


@pytest.fixture()
def services(env_dns, app_dns, acm, tagging, clock):
    return Services(
        env_dns=env_dns,
        app_dns=app_dns,
        acm=acm,
        tagging=tagging,
        clock=clock,
        rng=random.Random(0),
        limits=Limits(),
    )


@pytest.fixture()
def context():
    return FakeContext()


@pytest.fixture()
def responses(monkeypatch):
    """The responses sent to cloudformation"""

    sent = []

    class Response:
        status = 200

    def urlopen(request):
        assert request.get_method() == 'PUT'
        sent.append(json.loads(request.data))
        return Response()

    monkeypatch.setattr('workload_domains.response.urlopen', urlopen)
    return sent


@pytest.fixture()
def workload_properties():
    return {
        'ServiceToken': 'arn:aws:lambda:eu-west-1:111111111111:function:WorkloadAliasLambda',
        'AppName': 'app',
        'EnvName': 'test',
        'ServiceName': 'frontend',
        'DomainName': 'example.com',
        'EnvHostedZoneId': ENV_ZONE_ID,
        'RootDNSRole': 'arn:aws:iam::111111111111:role/app-DNSDelegationRole',
    }


@pytest.fixture()
def make_event():
    def make_event(request_type, props, old_props=None, physical_resource_id=None):
        event = {
            'RequestType': request_type,
            'ResponseURL': 'https://cloudformation-custom-resource-response-euwest1.s3.amazonaws.com/response',
            'StackId': 'arn:aws:cloudformation:eu-west-1:111111111111:stack/TestStack/abc',
            'RequestId': 'f4e3b0f6-request',
            'LogicalResourceId': 'TestResource',
            'ResourceType': 'Custom::Test',
            'ResourceProperties': props,
        }
        if old_props is not None:
            event['OldResourceProperties'] = old_props
        if physical_resource_id is not None:
            event['PhysicalResourceId'] = physical_resource_id
        return event

    return make_event
