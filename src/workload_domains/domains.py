"""
Find the hosted zone an alias belongs in

A workload's aliases may live in one of three hosted zones:

 - the environment zone ``<env>.<app>.<domain>``, owned by the environment's account
 - the application zone ``<app>.<domain>``
 - the root zone ``<domain>``

The application and root zones are in the account that owns the domain and are managed through
the root DNS role. The environment zone id is usually given, otherwise it is looked up by name.

"""

import enum
import logging
from typing import NamedTuple

from workload_domains.errors import HostedZoneNotFoundError, UnrecognizedDomainError
from workload_domains.providers import DNSProvider

logger = logging.getLogger(__name__)


class Level(enum.Enum):
    ENV = 'env'
    APP = 'app'
    ROOT = 'root'


class HostedZone(NamedTuple):
    level: Level
    domain: str
    zone_id: str
    dns: DNSProvider


def _within(name, zone, /) -> bool:
    return name == zone or name.endswith('.' + zone)


def zone_names(root, app, env, /) -> dict:
    root = root.rstrip('.').lower()
    return {
        Level.ENV: f'{env}.{app}.{root}'.lower(),
        Level.APP: f'{app}.{root}'.lower(),
        Level.ROOT: root,
    }


def classify(alias, root, app, env, /) -> Level:
    """
    Which hosted zone does an alias belong in?

    The most specific zone wins.

    :param str alias: The domain name to classify
    :raises UnrecognizedDomainError: If the alias is not under the root domain

    """

    name = alias.rstrip('.').lower()

    for level, zone in zone_names(root, app, env).items():
        if _within(name, zone):
            return level

    raise UnrecognizedDomainError(alias)


class HostedZones:
    """
    Resolves aliases to hosted zones for one request

    Zone ids that need a lookup are remembered for the life of this object.

    """

    def __init__(self, root, app, env, env_zone_id, env_dns: DNSProvider, app_dns: DNSProvider):
        self._root = root
        self._app = app
        self._env = env
        self._names = zone_names(root, app, env)
        self._env_zone_id = env_zone_id
        self._providers = {
            Level.ENV: env_dns,
            Level.APP: app_dns,
            Level.ROOT: app_dns,
        }
        self._zone_ids = {}

    def classify(self, alias) -> Level:
        return classify(alias, self._root, self._app, self._env)

    def classify_all(self, aliases) -> dict:
        """
        Classify every alias before anything is changed

        One unrecognized alias fails the whole request.

        """

        return {alias: self.classify(alias) for alias in aliases}

    def recognized(self, aliases) -> frozenset:
        """
        The aliases in one of our hosted zones

        Environment resources are given the aliases of every service, including aliases in zones we
        can't change. Those are skipped rather than failing the request.

        """

        known = set()
        for alias in aliases:
            try:
                self.classify(alias)
            except UnrecognizedDomainError:
                logger.info(f'Skipping {alias}, it is not in the environment, application or root domain')
                continue
            known.add(alias)

        return frozenset(known)

    def zone_id(self, level) -> str:
        if level is Level.ENV and self._env_zone_id:
            return self._env_zone_id

        if level not in self._zone_ids:
            name = self._names[level]
            zone_id = self._providers[level].find_hosted_zone(name)
            if zone_id is None:
                raise HostedZoneNotFoundError(name)

            logger.info(f'Found hosted zone {zone_id} for {name}')
            self._zone_ids[level] = zone_id

        return self._zone_ids[level]

    def resolve(self, alias) -> HostedZone:
        level = self.classify(alias)
        return HostedZone(level, self._names[level], self.zone_id(level), self._providers[level])

    def resolve_all(self, aliases) -> dict:
        return {alias: self.resolve(alias) for alias in sorted(aliases)}
