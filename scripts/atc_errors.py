#!/usr/bin/env python3
"""
Exception hierarchy for lofiatc.

Catalog and lookup errors are user-facing: the CLI prints them and ends the
current resolution. FavoritesPersistenceFailure is recoverable and only ever
logged. AmbiguousFuzzyMatch means the label index is broken and is fatal.
"""


class LofiAtcError(Exception):
    """Base class for every error raised by lofiatc."""


class CatalogError(LofiAtcError):
    """The channel catalog could not be loaded."""


class CatalogNotFound(CatalogError):
    pass


class CatalogEmpty(CatalogError):
    pass


class CatalogFormatError(CatalogError):
    """Header row is missing a required column."""


class NoChannelsForRegion(LofiAtcError):
    pass


class IcaoNotFound(LofiAtcError):
    pass


class NoMatchSelected(LofiAtcError):
    """The fuzzy matcher returned nothing usable."""


class AmbiguousFuzzyMatch(LofiAtcError):
    """A fuzzy label regenerated from more than one channel."""


class SelectionCancelled(LofiAtcError):
    """Interactive input ended (EOF or Ctrl-C) before a choice was made."""


class MatcherUnavailable(LofiAtcError):
    pass


class FavoritesPersistenceFailure(LofiAtcError):
    pass


class PlayerUnavailable(LofiAtcError):
    pass
