"""
Reconcile workload aliases and DNS validated certificates for cloudformation custom resources

This package is deployed as the lambda code and only depends on boto3.

"""
