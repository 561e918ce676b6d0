import json

from template import COMMON_PROPERTIES, create_template, role_statements
from troposphere_workload_domains.resources import (
    ALIAS_LAMBDA,
    CERTIFICATE_LAMBDA,
    CODE_BUCKET,
    CODE_KEY,
    ENVIRONMENT_ALIAS_LAMBDA,
    ENVIRONMENT_CERTIFICATE_LAMBDA,
    LAMBDA_ROLE,
    EnvironmentAlias,
    EnvironmentCertificate,
    WorkloadAlias,
    WorkloadCertificate,
)

ROOT_DNS_ROLE = COMMON_PROPERTIES['RootDNSRole']
SERVICE_ALIASES = json.dumps({'frontend': ['web.app.example.com'], 'backend': ['api.example.com']})


def alias(title='Aliases', **kwargs):
    return WorkloadAlias(title, **{
        **COMMON_PROPERTIES,
        'Aliases': ['web.app.example.com'],
        'PublicAccessDNS': 'frontend-123.eu-west-1.elb.amazonaws.com',
        'PublicAccessHostedZoneID': 'Z32O12XQLNTSW2',
        **kwargs,
    })


def certificate(title='Certificate', **kwargs):
    return WorkloadCertificate(title, **{
        **COMMON_PROPERTIES,
        'Aliases': ['web.app.example.com'],
        'LoadBalancerDNS': 'frontend-123.eu-west-1.elb.amazonaws.com',
        **kwargs,
    })


def environment_properties(**kwargs):
    properties = {**COMMON_PROPERTIES, 'Aliases': SERVICE_ALIASES, **kwargs}
    del properties['ServiceName']
    return properties


def test_alias_adds_its_lambda():
    template = create_template(alias())

    assert set(template['Parameters']) == {CODE_BUCKET, CODE_KEY}
    assert set(template['Resources']) == {'Aliases', ALIAS_LAMBDA, LAMBDA_ROLE}

    function = template['Resources'][ALIAS_LAMBDA]['Properties']
    assert function['Handler'] == 'workload_domains.handlers.alias_handler'
    assert function['Code'] == {'S3Bucket': {'Ref': CODE_BUCKET}, 'S3Key': {'Ref': CODE_KEY}}
    assert function['Timeout'] == 900
    assert function['Role'] == {'Fn::GetAtt': [LAMBDA_ROLE, 'Arn']}

    resource = template['Resources']['Aliases']
    assert resource['Type'] == 'Custom::WorkloadAlias'
    assert resource['Properties']['ServiceToken'] == {'Fn::GetAtt': [ALIAS_LAMBDA, 'Arn']}
    assert resource['Properties']['Aliases'] == ['web.app.example.com']


def test_certificate_adds_its_lambda():
    template = create_template(certificate())

    assert set(template['Resources']) == {'Certificate', CERTIFICATE_LAMBDA, LAMBDA_ROLE}
    assert template['Resources'][CERTIFICATE_LAMBDA]['Properties']['Handler'] == 'workload_domains.handlers.certificate_handler'
    assert template['Resources']['Certificate']['Type'] == 'Custom::WorkloadCertificate'
    assert template['Resources']['Certificate']['Properties']['ServiceToken'] == {'Fn::GetAtt': [CERTIFICATE_LAMBDA, 'Arn']}

    actions = [action for statement in role_statements(template) for action in statement['Action']]
    assert 'acm:RequestCertificate' in actions
    assert 'acm:DeleteCertificate' in actions
    assert 'tag:GetResources' in actions


def test_alias_role_has_no_certificate_permissions():
    template = create_template(alias())

    actions = [action for statement in role_statements(template) for action in statement['Action']]
    assert 'route53:ChangeResourceRecordSets' in actions
    assert not any(action.startswith('acm:') for action in actions)


def test_helpers_are_shared():
    template = create_template(
        certificate(),
        alias(),
        alias('OtherAliases', ServiceName='backend', Aliases=['api.app.example.com']),
    )

    assert set(template['Resources']) == {
        'Certificate', 'Aliases', 'OtherAliases', ALIAS_LAMBDA, CERTIFICATE_LAMBDA, LAMBDA_ROLE,
    }

    assume_role = [statement for statement in role_statements(template) if statement['Action'] == ['sts:AssumeRole']]
    assert assume_role == [{'Effect': 'Allow', 'Action': ['sts:AssumeRole'], 'Resource': [ROOT_DNS_ROLE]}]


def test_each_dns_role_can_be_assumed():
    other_role = 'arn:aws:iam::222222222222:role/other-DNSDelegationRole'
    template = create_template(alias(), alias('OtherAliases', RootDNSRole=other_role))

    resources = [statement['Resource'] for statement in role_statements(template) if statement['Action'] == ['sts:AssumeRole']]
    assert resources == [[ROOT_DNS_ROLE], [other_role]]


def test_dns_role_is_optional():
    properties = dict(COMMON_PROPERTIES)
    del properties['RootDNSRole']

    template = create_template(WorkloadAlias(
        'Aliases',
        Aliases=['web.test.app.example.com'],
        PublicAccessDNS='frontend-123.eu-west-1.elb.amazonaws.com',
        PublicAccessHostedZoneID='Z32O12XQLNTSW2',
        **properties
    ))

    assert not any(statement['Action'] == ['sts:AssumeRole'] for statement in role_statements(template))


def test_environment_certificate_adds_its_lambda():
    template = create_template(EnvironmentCertificate('EnvironmentCertificate', **environment_properties(Region='us-east-1')))

    assert set(template['Resources']) == {'EnvironmentCertificate', ENVIRONMENT_CERTIFICATE_LAMBDA, LAMBDA_ROLE}
    function = template['Resources'][ENVIRONMENT_CERTIFICATE_LAMBDA]['Properties']
    assert function['Handler'] == 'workload_domains.handlers.environment_certificate_handler'

    resource = template['Resources']['EnvironmentCertificate']
    assert resource['Type'] == 'Custom::EnvironmentCertificate'
    assert resource['Properties']['Aliases'] == SERVICE_ALIASES
    assert resource['Properties']['Region'] == 'us-east-1'
    assert 'ServiceName' not in resource['Properties']

    actions = [action for statement in role_statements(template) for action in statement['Action']]
    assert 'acm:RequestCertificate' in actions
    assert 'tag:GetResources' in actions


def test_environment_alias_adds_its_lambda():
    template = create_template(EnvironmentAlias(
        'EnvironmentAliases',
        PublicAccessDNS='test-public-123.eu-west-1.elb.amazonaws.com',
        PublicAccessHostedZoneID='Z32O12XQLNTSW2',
        **environment_properties()
    ))

    function = template['Resources'][ENVIRONMENT_ALIAS_LAMBDA]['Properties']
    assert function['Handler'] == 'workload_domains.handlers.environment_alias_handler'
    assert template['Resources']['EnvironmentAliases']['Type'] == 'Custom::EnvironmentAlias'

    actions = [action for statement in role_statements(template) for action in statement['Action']]
    assert not any(action.startswith('acm:') for action in actions)


def test_certificate_permissions_are_granted_once():
    template = create_template(
        certificate(),
        EnvironmentCertificate('EnvironmentCertificate', **environment_properties()),
    )

    acm_statements = [statement for statement in role_statements(template) if 'acm:RequestCertificate' in statement['Action']]
    assert len(acm_statements) == 1
