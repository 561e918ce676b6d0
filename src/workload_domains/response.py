"""
Send the result of a request back to cloudformation

"""

import json
import logging
from urllib.error import URLError
from urllib.request import Request, urlopen

from workload_domains.errors import ResponseDeliveryError

logger = logging.getLogger(__name__)

SUCCESS = 'SUCCESS'
FAILED = 'FAILED'


def response_body(event, context, status, physical_resource_id=None, data=None, reason=None) -> dict:
    body = {
        'Status': status,
        'PhysicalResourceId': physical_resource_id or context.log_stream_name,
        'StackId': event['StackId'],
        'RequestId': event['RequestId'],
        'LogicalResourceId': event['LogicalResourceId'],
    }

    if data is not None:
        body['Data'] = data

    if reason is not None:
        body['Reason'] = f'{reason} (Log: {context.log_group_name}/{context.log_stream_name})'

    return body


def send_response(event, context, status, physical_resource_id=None, data=None, reason=None):
    """
    PUT the response to the presigned ResponseURL

    If the response can't be delivered the exception propagates out of the lambda,
    so that lambda can retry the invocation.

    :raises ResponseDeliveryError: If the response was not accepted

    """

    body = response_body(event, context, status, physical_resource_id, data, reason)
    logger.info(body)

    request = Request(
        event['ResponseURL'],
        json.dumps(body, sort_keys=True).encode(),
        {'content-type': ''},
        method='PUT',
    )

    try:
        response = urlopen(request)
    except URLError as exception:
        raise ResponseDeliveryError(f'Failed to send response to cloudformation: {exception}') from exception

    if response.status != 200:
        raise ResponseDeliveryError(f'Failed to send response to cloudformation: HTTP {response.status}')
