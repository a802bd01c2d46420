"""
Shared Test Fixtures
====================

Synthetic event streams and signals used across the unit tests, and the
singleton resets that keep tests independent.

Author: EEG-ERP Analysis Team
Date: 2024
"""

import pytest
import numpy as np

from erpscope.core.config import ConfigManager
from erpscope.core.registry import ComponentRegistry
from erpscope.core.types.events import RawEvent


CODES = ['G23', 'SG23', 'G31', 'SG31', 'G47', 'SG47', 'G52', 'SG52']


@pytest.fixture(autouse=True)
def reset_singletons():
    """Fresh configuration and registry for every test."""
    ConfigManager.reset()
    ComponentRegistry.reset()
    yield
    ConfigManager.reset()
    ComponentRegistry.reset()


def make_bracket_events(n_events=261, spacing=250, first_onset=250, seed=0, practice=0):
    """
    Bracketed events with two condition fields and two trial fields.

    'code' cycles through 8 values, 'word' alternates y/n per block of 8,
    'obs' counts trials and 'rt' is a random reaction time. The first
    `practice` events carry the code 'Prac'.
    """
    rng = np.random.default_rng(seed)
    events = []
    for i in range(n_events):
        code = 'Prac' if i < practice else CODES[i % len(CODES)]
        word = 'y' if (i // len(CODES)) % 2 == 0 else 'n'
        rt = int(rng.integers(300, 900))
        label = f"[code: {code}, word: {word}, obs: {i + 1}, rt: {rt}]"
        events.append(RawEvent(label=label, latency=first_onset + i * spacing))
    return events


@pytest.fixture
def bracket_events():
    """261 bracketed events (end-to-end scenario A)."""
    return make_bracket_events()


@pytest.fixture
def unique_events():
    """Every event unique in every field."""
    return [
        RawEvent(label=f"[item: {i}, onset: {i * 17}]", latency=100 + i * 50)
        for i in range(120)
    ]


@pytest.fixture
def simple_events():
    """Opaque atomic codes, 3 distinct values."""
    codes = ['DIN1', 'DIN2', 'DIN3']
    return [RawEvent(label=codes[i % 3], latency=100 + i * 50) for i in range(90)]


@pytest.fixture
def delimiter_events():
    """'Stim_<code>_<lexicality>' labels."""
    events = []
    for i in range(64):
        code = CODES[i % len(CODES)]
        lex = 'word' if (i // len(CODES)) % 2 == 0 else 'nonword'
        events.append(RawEvent(label=f"Stim_{code}_{lex}", latency=100 + i * 50))
    return events


@pytest.fixture
def attribute_events():
    """Events whose fields were separated by the importer."""
    return [
        RawEvent(
            label='stim',
            latency=100 + i * 50,
            attributes={'cond': ['A', 'B'][i % 2], 'trialnum': i, 'latency': 100 + i * 50}
        )
        for i in range(40)
    ]


@pytest.fixture
def rng():
    """Seeded random generator."""
    return np.random.default_rng(42)


@pytest.fixture
def bracket_stream():
    """Factory for bracketed streams with custom size, spacing or practice block."""
    return make_bracket_events
