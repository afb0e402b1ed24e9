from monopool.merkletree import MerkleTree, calculate_steps, get_merkle_hashes, merkle_join
from monopool.encoding import sha256d


def test_new_merkle_tree():
    tree = MerkleTree([b"hello", b"world"])
    assert tree.with_first(b"first").hex() == (
        "11f206ce3848f46083c5f30d01b95a8dd75194ef5781b24202d34720b2b4c12f"
    )
    assert get_merkle_hashes(tree.steps)[0] == "776f726c64"


def test_single_leaf_has_no_steps():
    tree = MerkleTree([None])
    assert tree.steps == []
    assert tree.with_first(b"coinbase") == b"coinbase"


def test_odd_level_duplicates_last():
    a, b, c = b"a" * 32, b"b" * 32, b"c" * 32
    steps = calculate_steps([None, a, b, c])
    assert steps[0] == a
    assert steps[1] == merkle_join(b, c)
    assert len(steps) == 2


def test_three_leaves_duplicate_the_last():
    a, b = b"a" * 32, b"b" * 32
    steps = calculate_steps([None, a, b])
    assert steps == [a, merkle_join(b, b)]


def test_input_is_not_modified():
    data = [None, b"x", b"y"]
    calculate_steps(data)
    assert data == [None, b"x", b"y"]


def test_merkle_join_is_double_sha_of_concatenation():
    assert merkle_join(b"ab", b"cd") == sha256d(b"abcd")
    assert merkle_join(None, b"cd") == sha256d(b"cd")