"""Shared vocabulary fixtures for ggtok tests."""

import pytest

import ggtok


# SPM vocabulary
# ---------------------------------------------------------------------------

SPM_TOKENS = [
    "<unk>",  # 0
    "<s>",  # 1
    "</s>",  # 2
    "h",  # 3
    "e",  # 4
    "l",  # 5
    "o",  # 6
    "he",  # 7
    "ll",  # 8
    "hell",  # 9
    "hello",  # 10
    " ",  # 11
    "w",  # 12
    "r",  # 13
    "d",  # 14
    "wo",  # 15
    "rld",  # 16
    "rl",  # 17
]
SPM_SCORES = [
    0.0, 0.0, 0.0,
    -5.0, -5.0, -5.0, -5.0,
    -2.0, -1.0, -3.0, -4.0,
    -5.0, -5.0, -5.0, -5.0,
    -2.0, -3.0, -2.5,
]


# BPE vocabulary
# ---------------------------------------------------------------------------

BPE_TOKENS = [
    "<unk>",  # 0
    "<s>",  # 1
    "</s>",  # 2
    "h",  # 3
    "e",  # 4
    "l",  # 5
    "o",  # 6
    " ",  # 7
    "w",  # 8
    "r",  # 9
    "d",  # 10
    "he",  # 11
    "ll",  # 12
    "hello",  # 13
    "wo",  # 14
    "rl",  # 15
    "rld",  # 16
    "'s",  # 17
    "1",  # 18
    "2",  # 19
    "12",  # 20
    "!",  # 21
]
BPE_MERGES = ["l l", "h e", "r l", "w o", "rl d", "1 2"]


@pytest.fixture
def spm_store():
    """Return an SPM vocabulary with bos=1, eos=2, unk=0."""
    return ggtok.build_store(SPM_TOKENS, scores=SPM_SCORES, bos_id=1, eos_id=2, unk_id=0)


@pytest.fixture
def spm_tokenizer(spm_store):
    """Return a tokenizer over the SPM vocabulary."""
    return ggtok.TextTokenizer(spm_store)


@pytest.fixture
def bpe_store():
    """Return a BPE vocabulary with bos=1, eos=2, unk=0."""
    return ggtok.build_store(BPE_TOKENS, merges=BPE_MERGES, bos_id=1, eos_id=2, unk_id=0)


@pytest.fixture
def bpe_tokenizer(bpe_store):
    """Return a tokenizer over the BPE vocabulary."""
    return ggtok.TextTokenizer(bpe_store)
