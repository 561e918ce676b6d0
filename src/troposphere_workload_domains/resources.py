from importlib.metadata import PackageNotFoundError, version

import troposphere.awslambda as awslambda
import troposphere.iam as iam
from awacs.aws import Action, Allow, PolicyDocument, Principal, Statement
from troposphere import GetAtt, Parameter, Ref, Sub
from troposphere.cloudformation import CustomResource

from troposphere_workload_domains import TroposphereExtension

ALIAS_LAMBDA = 'WorkloadAliasLambda'
CERTIFICATE_LAMBDA = 'WorkloadCertificateLambda'
ENVIRONMENT_ALIAS_LAMBDA = 'EnvironmentAliasLambda'
ENVIRONMENT_CERTIFICATE_LAMBDA = 'EnvironmentCertificateLambda'
LAMBDA_ROLE = 'WorkloadDomainsLambdaExecutionRole'

CODE_BUCKET = 'WorkloadDomainsCodeBucket'
CODE_KEY = 'WorkloadDomainsCodeKey'

LAMBDA_RUNTIME = 'python3.12'


def _version():
    try:
        return version('troposphere-workload-domains')
    except PackageNotFoundError:
        return 'unknown'


def add_code_parameters(template):
    """
    Add the parameters that locate the lambda bundle in S3

    The bundle is built by :func:`troposphere_workload_domains.bundle.build_bundle`.

    """

    if CODE_BUCKET not in template.parameters:
        template.add_parameter(Parameter(
            CODE_BUCKET,
            Type='String',
            Description='S3 bucket containing the workload domains lambda bundle',
        ))

    if CODE_KEY not in template.parameters:
        template.add_parameter(Parameter(
            CODE_KEY,
            Type='String',
            Description='S3 key of the workload domains lambda bundle',
        ))


def lambda_role():
    return iam.Role(
        LAMBDA_ROLE,
        AssumeRolePolicyDocument=PolicyDocument(
            Version='2012-10-17',
            Statement=[
                Statement(
                    Effect=Allow,
                    Action=[Action('sts', 'AssumeRole')],
                    Principal=Principal('Service', 'lambda.amazonaws.com'),
                )
            ],
        ),
        ManagedPolicyArns=[
            'arn:aws:iam::aws:policy/service-role/AWSLambdaBasicExecutionRole',
        ],
        Policies=[
            iam.Policy(
                PolicyName=Sub('${AWS::StackName}WorkloadDomainsLambdaExecutionPolicy'),
                PolicyDocument=PolicyDocument(
                    Version='2012-10-17',
                    Statement=[
                        Statement(
                            Effect=Allow,
                            Action=[
                                Action('route53', 'ChangeResourceRecordSets'),
                                Action('route53', 'ListResourceRecordSets'),
                                Action('route53', 'GetChange'),
                                Action('route53', 'ListHostedZonesByName'),
                            ],
                            Resource=['*'],
                        ),
                    ],
                ),
            )
        ],
    )


def lambda_function(title, handler, description):
    return awslambda.Function(
        title,
        Code=awslambda.Code(S3Bucket=Ref(CODE_BUCKET), S3Key=Ref(CODE_KEY)),
        Runtime=LAMBDA_RUNTIME,
        Handler=handler,
        Timeout=900,
        Role=GetAtt(LAMBDA_ROLE, 'Arn'),
        Description=description,
        Metadata={
            'Version': _version(),
        },
    )


def certificate_statement():
    return Statement(
        Effect=Allow,
        Action=[
            Action('acm', 'RequestCertificate'),
            Action('acm', 'DescribeCertificate'),
            Action('acm', 'DeleteCertificate'),
            Action('acm', 'AddTagsToCertificate'),
            Action('tag', 'GetResources'),
        ],
        Resource=['*'],
    )


def add_policy(template, policy_statement):
    policy_document = template.resources[LAMBDA_ROLE].Policies[0].PolicyDocument

    if policy_statement.properties not in [statement.properties for statement in policy_document.Statement]:
        policy_document.Statement.append(policy_statement)


class WorkloadResource(CustomResource, TroposphereExtension):
    """Properties shared by the workload and environment resources"""

    lambda_title = None

    environment_props = {
        'ServiceToken': (str, True),
        'AppName': (str, True),
        'EnvName': (str, True),
        'DomainName': (str, True),
        'EnvHostedZoneId': (str, False),
        'RootDNSRole': (str, False),
    }

    common_props = {
        **environment_props,
        'ServiceName': (str, True),
        'Aliases': ([str], True),
    }

    def helper_resources(self, template):
        add_code_parameters(template)
        return [lambda_role(), self.lambda_function()]

    def lambda_function(self):
        raise NotImplementedError

    def extend_helpers(self, template):
        role_arn = self.properties.get('RootDNSRole', None)
        if role_arn is not None:
            add_policy(template, Statement(Effect=Allow, Action=[Action('sts', 'AssumeRole')], Resource=[role_arn]))

    def __init__(self, title, template=None, *args, **kwargs):
        super().__init__(
            title, template, *args, ServiceToken=GetAtt(self.lambda_title, 'Arn'), **kwargs
        )


class WorkloadAlias(WorkloadResource):
    resource_type = 'Custom::WorkloadAlias'
    lambda_title = ALIAS_LAMBDA

    props = {
        **WorkloadResource.common_props,
        'PublicAccessDNS': (str, True),
        'PublicAccessHostedZoneID': (str, True),
    }

    def lambda_function(self):
        return lambda_function(
            ALIAS_LAMBDA,
            'workload_domains.handlers.alias_handler',
            'Cloudformation custom resource for workload alias records',
        )


class WorkloadCertificate(WorkloadResource):
    resource_type = 'Custom::WorkloadCertificate'
    lambda_title = CERTIFICATE_LAMBDA

    props = {
        **WorkloadResource.common_props,
        'LoadBalancerDNS': (str, False),
        'IsCloudFrontCertificate': (bool, False),
    }

    def lambda_function(self):
        return lambda_function(
            CERTIFICATE_LAMBDA,
            'workload_domains.handlers.certificate_handler',
            'Cloudformation custom resource for DNS validated workload certificates',
        )

    def extend_helpers(self, template):
        super().extend_helpers(template)
        add_policy(template, certificate_statement())


class EnvironmentAlias(WorkloadResource):
    """
    A records for the aliases of every service in an environment

    Aliases is a JSON object mapping each service to its aliases.
    Aliases outside the environment, application and root domains are skipped.

    """

    resource_type = 'Custom::EnvironmentAlias'
    lambda_title = ENVIRONMENT_ALIAS_LAMBDA

    props = {
        **WorkloadResource.environment_props,
        'Aliases': (str, True),
        'PublicAccessDNS': (str, True),
        'PublicAccessHostedZoneID': (str, True),
    }

    def lambda_function(self):
        return lambda_function(
            ENVIRONMENT_ALIAS_LAMBDA,
            'workload_domains.handlers.environment_alias_handler',
            'Cloudformation custom resource for environment alias records',
        )


class EnvironmentCertificate(WorkloadResource):
    """
    The environment's certificate, for the environment domain and the aliases of every service

    Aliases is a JSON object mapping each service to its aliases.

    """

    resource_type = 'Custom::EnvironmentCertificate'
    lambda_title = ENVIRONMENT_CERTIFICATE_LAMBDA

    props = {
        **WorkloadResource.environment_props,
        'Aliases': (str, False),
        'Region': (str, False),
    }

    def lambda_function(self):
        return lambda_function(
            ENVIRONMENT_CERTIFICATE_LAMBDA,
            'workload_domains.handlers.environment_certificate_handler',
            'Cloudformation custom resource for DNS validated environment certificates',
        )

    def extend_helpers(self, template):
        super().extend_helpers(template)
        add_policy(template, certificate_statement())
