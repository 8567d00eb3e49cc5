import pickle

from duco_miner.mining.errors import (ConfigError, DigestIOError, MiningErrorCode,
                                      ParseError, ServerConnectionError,
                                      StreamEndError, UnsupportedAlgorithm)


def test_defaults_carry_worker_actions():
    assert StreamEndError().action == "reconnect"
    assert ServerConnectionError().action == "reconnect"
    assert ParseError().action == "retry"
    assert DigestIOError().action == "refetch_job"
    assert UnsupportedAlgorithm(algorithm="scrypt").retryable is False
    assert ConfigError().retryable is False


def test_errors_survive_pickling():
    exc = DigestIOError(message="short write", context={"nonce": 7})
    back = pickle.loads(pickle.dumps(exc))
    assert isinstance(back, DigestIOError)
    assert back.message == "short write"
    assert back.context == {"nonce": 7}
    assert back.code == MiningErrorCode.DIGEST_IO
    assert back.action == "refetch_job"


def test_unsupported_algorithm_context():
    exc = UnsupportedAlgorithm(algorithm="scrypt")
    assert exc.context == {"algorithm": "scrypt"}
    assert exc.code == MiningErrorCode.UNSUPPORTED_ALGORITHM
    assert "unsupported algorithm" in str(exc)
