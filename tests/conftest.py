import socket

import pytest

from duco_miner.job import Algorithm, Job

# Known-good vectors captured from a live server.
SHA1_BLOCK = "416dc20fb261ec2dcf72147be57efc372fb765b1"
SHA1_TARGET = "dfa67daef0bbac93da38772c7bbd6e28b839bc43"
SHA1_NONCE = 175514
SHA1_DIFFICULTY = 7500

XX_BLOCK = "f48abd686b70ffd5615fbd8c6aa8156c0425b09b"
XX_TARGET = "74c5967877c25e22"
XX_NONCE = 4069510
XX_DIFFICULTY = 100000


def free_port() -> int:
    s = socket.socket()
    s.bind(("127.0.0.1", 0))
    _, port = s.getsockname()
    s.close()
    return port


@pytest.fixture
def sha1_job():
    return Job(
        algorithm=Algorithm.DUCOS1A,
        challenge_block=SHA1_BLOCK,
        target_digest=SHA1_TARGET,
        difficulty=SHA1_DIFFICULTY,
    )


@pytest.fixture
def xx_job():
    return Job(
        algorithm=Algorithm.XXHASH,
        challenge_block=XX_BLOCK,
        target_digest=XX_TARGET,
        difficulty=XX_DIFFICULTY,
    )
