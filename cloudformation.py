import json

from troposphere import Template, Ref, Output

import troposphere_workload_domains.resources as resources
from troposphere_workload_domains.bundle import write_bundle


def create_template():
    template = Template(
        Description='Workload alias and certificate example'
    )
    template.set_version()

    environment = dict(
        AppName='app',
        EnvName='test',
        DomainName='example.com',
        EnvHostedZoneId='Z2KZ5YTUFZNC7H',
        RootDNSRole='arn:aws:iam::111111111111:role/app-DNSDelegationRole',
    )
    common = dict(environment, ServiceName='frontend')
    service_aliases = json.dumps({'frontend': ['frontend.app.example.com', 'www.example.com']})

    certificate = template.add_resource(resources.WorkloadCertificate(
        'FrontendCertificate',
        Aliases=['frontend.app.example.com', 'www.example.com'],
        LoadBalancerDNS='frontend-1234567890.eu-west-1.elb.amazonaws.com',
        **common
    ))

    template.add_resource(resources.WorkloadAlias(
        'FrontendAliases',
        Aliases=['frontend.app.example.com', 'www.example.com'],
        PublicAccessDNS='frontend-1234567890.eu-west-1.elb.amazonaws.com',
        PublicAccessHostedZoneID='Z32O12XQLNTSW2',
        **common
    ))

    environment_certificate = template.add_resource(resources.EnvironmentCertificate(
        'EnvironmentCertificate',
        Aliases=service_aliases,
        **environment
    ))

    template.add_resource(resources.EnvironmentAlias(
        'EnvironmentAliases',
        Aliases=service_aliases,
        PublicAccessDNS='test-public-1234567890.eu-west-1.elb.amazonaws.com',
        PublicAccessHostedZoneID='Z32O12XQLNTSW2',
        **environment
    ))

    template.add_output(Output(
        'CertificateARN',
        Value=Ref(certificate),
        Description='The ARN of the frontend certificate'
    ))

    template.add_output(Output(
        'EnvironmentCertificateARN',
        Value=Ref(environment_certificate),
        Description='The ARN of the environment certificate'
    ))

    return template


if __name__ == '__main__':
    template = create_template()

    with open('cloudformation.yaml', 'w') as f:
        f.write(template.to_yaml())

    with open('cloudformation.json', 'w') as f:
        f.write(template.to_json())

    write_bundle('dist/workload_domains.zip')
