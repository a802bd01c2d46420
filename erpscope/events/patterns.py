"""
Lexical Field Patterns
======================

Field-name patterns used by the Field Discovery Engine, and the matcher
that applies them.

Matching Rules:
--------------
Patterns are matched case-insensitively against field names.

- Patterns of 5 or more characters match as substrings
  ('trial' matches 'TrialNum' and 'trialnum').
- Shorter patterns match only as the prefix of a name token. Tokens are
  split at non-alphanumeric characters, letter/digit boundaries and
  camelCase humps, so 'rt' matches 'mffkey_RT' and 'rt_ms' but not
  'start', and 'age' matches 'age' but not 'image'.

The grouping priority table compares with plain substrings, the way a
human reads a field name when ranking it.

Author: EEG-ERP Analysis Team
Date: 2024
"""

from typing import List, Sequence
import re


# =============================================================================
# PATTERN TABLES
# =============================================================================

# Import-metadata names (device, channel, label, timing, demographics)
METADATA_PATTERNS = (
    'description', 'classid', 'label', 'sourcedevice', 'name',
    'tracktype', 'begintime', 'endtime', 'relativebegintime',
    'age', 'exp', 'hand', 'sex', 'subj', 'backup', 'urevent'
)

# Trial / observation / response / reaction-time / latency names
TRIAL_PATTERNS = (
    'trial', 'trl', 'obs', 'rep', 'response', 'rt', 'time', 'cel', 'latency'
)

# Condition / stimulus / task names
CONDITION_PATTERNS = ('cond', 'condition', 'stim', 'stimulus', 'task')

# Practice / training names
PRACTICE_FIELD_PATTERNS = ('practice', 'prac', 'training', 'train')

# Vendor prefix marking experimenter-defined keys (EGI/MFF exports)
VENDOR_PREFIX = 'mffkey_'

# Ordered (patterns, priority) rows; first matching row wins
VENDOR_PRIORITY_TABLE = (
    (('cond', 'condition'), 150),
    (('code', 'word', 'lex'), 140),
    (('verb', 'phon', 'sylb', 'freq', 'task'), 130),
)
VENDOR_DEFAULT_PRIORITY = 110

PRIORITY_TABLE = (
    (('cond', 'condition', 'stim', 'stimulus'), 100),
    (('code', 'word', 'lex', 'status'), 80),
    (('verb', 'phon', 'sylb', 'freq'), 70),
    (('task', 'type', 'category'), 60),
)
DEFAULT_PRIORITY = 50

# Value-mapping vocabularies, checked in order
LEXICAL_STATUS_PATTERNS = ('word', 'code', 'lex')
VERB_STATUS_PATTERNS = ('verb',)

# Values treated as "not applicable" for a grouping field
PLACEHOLDER_VALUES = ('?', '0', '', 'na', 'n/a', 'nan')

# Boolean vocabularies
POSITIVE_FLAGS = ('y', 'yes', 'true', '1')
NEGATIVE_FLAGS = ('n', 'no', 'false', 'none', '0')

_TOKEN_RE = re.compile(r'[A-Z]+(?![a-z])|[A-Z]?[a-z]+|\d+')
_SUBSTRING_MIN_LENGTH = 5


# =============================================================================
# MATCHING
# =============================================================================

def tokenize_name(name: str) -> List[str]:
    """
    Split a field name into lowercase tokens.

    Example:
        >>> tokenize_name('mffkey_TrialNum2')
        ['mffkey', 'trial', 'num', '2']
    """
    return [t.lower() for t in _TOKEN_RE.findall(name)]


def name_matches(name: str, pattern: str) -> bool:
    """Check one field name against one pattern."""
    name_lower = name.lower()
    pattern = pattern.lower()

    if len(pattern) >= _SUBSTRING_MIN_LENGTH:
        return pattern in name_lower

    return any(token.startswith(pattern) for token in tokenize_name(name))


def matches_any(name: str, patterns: Sequence[str]) -> bool:
    """Check a field name against a pattern list."""
    return any(name_matches(name, p) for p in patterns)


def contains_any(name: str, patterns: Sequence[str]) -> bool:
    """Case-insensitive plain substring test."""
    name_lower = name.lower()
    return any(p.lower() in name_lower for p in patterns)


def is_placeholder(value: str) -> bool:
    """Whether a value means "not applicable"."""
    return value.strip().lower() in PLACEHOLDER_VALUES


def base_priority(name: str) -> int:
    """
    Lexical grouping priority of a field name.

    Vendor-prefixed names outrank everything else; within each family
    condition-like names come first and generic names last.
    """
    name_lower = name.lower()

    if name_lower.startswith(VENDOR_PREFIX):
        for patterns, priority in VENDOR_PRIORITY_TABLE:
            if contains_any(name_lower, patterns):
                return priority
        return VENDOR_DEFAULT_PRIORITY

    for patterns, priority in PRIORITY_TABLE:
        if contains_any(name_lower, patterns):
            return priority
    return DEFAULT_PRIORITY
