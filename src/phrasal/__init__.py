"""phrasal: spaced-repetition study sessions for language-learning phrases."""

from phrasal.consts import VERSION

__version__ = VERSION
