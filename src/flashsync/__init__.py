"""flashsync: event-sourced spaced-repetition scheduling and progress sync."""

from flashsync.consts import VERSION

__version__ = VERSION
