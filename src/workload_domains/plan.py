"""
Work out what has to change between the previous and the desired set of aliases

Nothing in this module talks to AWS.

"""

import json
from typing import NamedTuple

from workload_domains.errors import InvalidPropertyError


class ReconciliationPlan(NamedTuple):
    desired: frozenset
    to_add: frozenset
    to_remove: frozenset
    endpoint_changed: bool

    @property
    def is_empty(self) -> bool:
        return not (self.to_add or self.to_remove or self.endpoint_changed)

    @property
    def to_upsert(self) -> frozenset:
        """
        Aliases that need an UPSERT

        When the endpoint moves every desired alias has to be repointed, not just the new ones.

        """

        if self.endpoint_changed:
            return self.desired
        return self.to_add


def aliases_from_property(value) -> frozenset:
    """
    Normalise the Aliases resource property into a set of names

    The property may be a list (possibly containing duplicates), a JSON encoded list,
    or a JSON encoded object mapping each service to its list of aliases.

    :param value: The Aliases property, or None
    :rtype: frozenset

    """

    if value is None or value == '':
        return frozenset()

    if isinstance(value, str):
        try:
            value = json.loads(value)
        except ValueError:
            raise InvalidPropertyError(f'Cannot parse {value} into JSON format.') from None

    if isinstance(value, dict):
        names = [alias for aliases in value.values() for alias in aliases]
    elif isinstance(value, list):
        names = value
    else:
        raise InvalidPropertyError(f'Aliases must be a list of domain names, not {value!r}')

    return frozenset(name.rstrip('.') for name in names)


def diff(desired, previous, /):
    """
    Split two alias sets into the aliases to add and the aliases to remove

    :param desired: Aliases that should exist after this request
    :param previous: Aliases that existed before this request
    :returns: (to_add, to_remove)

    """

    desired = frozenset(desired)
    previous = frozenset(previous)
    return desired - previous, previous - desired


def plan(desired, previous, endpoint=None, previous_endpoint=None) -> ReconciliationPlan:
    desired = frozenset(desired)
    previous = frozenset(previous)

    endpoint_changed = endpoint != previous_endpoint
    if desired == previous and not endpoint_changed:
        return ReconciliationPlan(desired, frozenset(), frozenset(), False)

    to_add, to_remove = diff(desired, previous)
    return ReconciliationPlan(desired, to_add, to_remove, endpoint_changed)


def sorted_aliases(aliases) -> str:
    return ','.join(sorted(aliases))


def physical_resource_id(service, aliases) -> str:
    """
    A physical resource id that only changes when the set of aliases changes

    """

    return f'/{service}/{sorted_aliases(aliases)}'
