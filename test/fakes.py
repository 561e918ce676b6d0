import hashlib

from botocore.exceptions import ClientError

ACCOUNT = '111111111111'


def client_error(code, message, operation):
    return ClientError({'Error': {'Code': code, 'Message': message}}, operation)


def validation_option(domain_name, status='PENDING_VALIDATION'):
    """The validation option ACM would give a name; the same name always gets the same record"""

    token = hashlib.new('md5', domain_name.lstrip('*.').encode()).hexdigest()
    return {
        'DomainName': domain_name,
        'ValidationMethod': 'DNS',
        'ValidationStatus': status,
        'ResourceRecord': {
            'Name': f'_{token[:8]}.{domain_name.lstrip("*.")}.',
            'Type': 'CNAME',
            'Value': f'_{token[8:16]}.acm-validations.aws.',
        },
    }


def certificate(arn, domain, sans=(), in_use_by=()):
    names = [domain] + [san for san in sans if san != domain]
    return {
        'CertificateArn': arn,
        'DomainName': domain,
        'SubjectAlternativeNames': names,
        'DomainValidationOptions': [validation_option(name) for name in names],
        'Status': 'PENDING_VALIDATION',
        'InUseBy': list(in_use_by),
    }


class FakeDNS:
    """One Route 53 account"""

    def __init__(self, zones=None, records=None):
        self.zones = zones or {}
        self.records = records or {}
        self.delete_errors = {}
        self.change_errors = {}
        self.calls = []
        self.changes = []

    def find_hosted_zone(self, name):
        self.calls.append(('find_hosted_zone', name))
        return self.zones.get(name)

    def first_record(self, zone_id, name, record_type=None):
        self.calls.append(('first_record', zone_id, name, record_type))
        return self.records.get((zone_id, name))

    def change(self, zone_id, change, comment):
        action = change['Action']
        name = change['ResourceRecordSet']['Name']
        self.calls.append(('change', zone_id, action, name))

        if action == 'DELETE' and name in self.delete_errors:
            raise client_error('InvalidChangeBatch', self.delete_errors[name], 'ChangeResourceRecordSets')
        if name in self.change_errors:
            raise client_error('InvalidChangeBatch', self.change_errors[name], 'ChangeResourceRecordSets')

        self.changes.append((zone_id, change))
        return f'/change/C{len(self.changes)}'

    def wait_for_change(self, change_id):
        self.calls.append(('wait_for_change', change_id))

    def api_calls(self, kind):
        return [call for call in self.calls if call[0] == kind]


class FakeAcm:
    def __init__(self, certificates=None):
        self.certificates = certificates or {}
        self.describe_responses = {}
        self.in_use_responses = {}
        self.calls = []
        self.requests = []
        self.deleted = []
        self.on_wait = None

    def request_certificate(self, domain, sans, tags, idempotency_token):
        arn = f'arn:aws:acm:eu-west-1:{ACCOUNT}:certificate/{idempotency_token}'
        self.calls.append(('request_certificate', domain))
        self.requests.append({'DomainName': domain, 'SubjectAlternativeNames': sans, 'Tags': tags, 'IdempotencyToken': idempotency_token})
        self.certificates.setdefault(arn, certificate(arn, domain, sans))
        return arn

    def describe_certificate(self, arn):
        self.calls.append(('describe_certificate', arn))

        responses = self.describe_responses.get(arn)
        if responses:
            return responses.pop(0) if len(responses) > 1 else responses[0]

        if arn not in self.certificates:
            raise client_error('ResourceNotFoundException', f'Could not find certificate {arn}.', 'DescribeCertificate')

        cert = dict(self.certificates[arn])
        in_use = self.in_use_responses.get(arn)
        if in_use:
            cert['InUseBy'] = in_use.pop(0) if len(in_use) > 1 else in_use[0]
        return cert

    def delete_certificate(self, arn):
        self.calls.append(('delete_certificate', arn))
        if arn not in self.certificates:
            raise client_error('ResourceNotFoundException', f'Could not find certificate {arn}.', 'DeleteCertificate')
        del self.certificates[arn]
        self.deleted.append(arn)

    def wait_for_issuance(self, arn):
        self.calls.append(('wait_for_issuance', arn))
        if self.on_wait is not None:
            self.on_wait()
        self.certificates[arn]['Status'] = 'ISSUED'


class FakeTagging:
    def __init__(self, acm):
        self.acm = acm
        self.calls = []

    def find_resources(self, tags, resource_type):
        self.calls.append(('find_resources', tags, resource_type))
        return list(self.acm.certificates)


class FakeClock:
    def __init__(self):
        self.sleeps = []

    def sleep(self, seconds):
        self.sleeps.append(seconds)


class FakeContext:
    log_group_name = '/aws/lambda/WorkloadDomains'
    log_stream_name = '2024/01/01/[$LATEST]abcdef'

    def __init__(self, remaining_millis=900_000):
        self.remaining_millis = remaining_millis

    def get_remaining_time_in_millis(self):
        return self.remaining_millis
