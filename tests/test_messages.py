import json

import pytest

from sinkships.battleship import ShipKind
from sinkships.messages import (
    Chat,
    ProtocolError,
    Ready,
    Result,
    Role,
    Ships,
    Shot,
    Side,
    Turn,
    Win,
    decode,
    encode,
    to_dict,
)


def test_shot_wire_shape():
    assert to_dict(Shot(Side.JOINER, (3, 4))) == {"type": "shot", "from": "joiner", "coordinate": [3, 4]}


def test_result_omits_unset_sunk_kind():
    obj = json.loads(encode(Result(Side.HOST, (0, 0), False)))
    assert obj == {"type": "result", "from": "host", "coordinate": [0, 0], "hit": False}
    obj = json.loads(encode(Result(Side.HOST, (0, 4), True, ShipKind.CARRIER)))
    assert obj["sunkKind"] == "Carrier"


@pytest.mark.parametrize(
    "msg",
    [
        Ready(Side.HOST),
        Turn(Side.JOINER),
        Win(Side.HOST),
        Shot(Side.HOST, (9, 9)),
        Result(Side.JOINER, (2, 3), True, ShipKind.DESTROYER),
        Ships(Side.JOINER, ((ShipKind.DESTROYER, ((8, 0), (8, 1))),)),
        Chat(Role.SPECTATOR, "Ann", "hello"),
    ],
)
def test_every_kind_decodes_back(msg):
    assert decode(encode(msg)) == msg


def test_chat_name_defaults_to_anonymous():
    msg = decode(b'{"type":"chat","from":"joiner","text":"hi"}')
    assert msg == Chat(Role.JOINER, "Anonymous", "hi")


def test_decode_accepts_str():
    assert decode('{"type":"ready","who":"joiner"}') == Ready(Side.JOINER)


@pytest.mark.parametrize(
    "raw",
    [
        b"not json",
        b"\xff\xfe",
        b"[1, 2]",
        b'{"who": "host"}',
        b'{"type": ["ready"]}',
        b'{"type": "explode"}',
        b'{"type": "ready", "who": "referee"}',
        b'{"type": "ready"}',
        b'{"type": "shot", "from": "host", "coordinate": [10, 0]}',
        b'{"type": "shot", "from": "host", "coordinate": ["A", 1]}',
        b'{"type": "shot", "from": "host", "coordinate": [true, 1]}',
        b'{"type": "shot", "from": "host", "coordinate": [1]}',
        b'{"type": "result", "from": "host", "coordinate": [1, 1], "hit": "yes"}',
        b'{"type": "result", "from": "host", "coordinate": [1, 1], "hit": true, "sunkKind": "Canoe"}',
        b'{"type": "ships", "who": "host", "ships": {"kind": "Carrier"}}',
        b'{"type": "ships", "who": "host", "ships": [{"kind": "Carrier"}]}',
        b'{"type": "chat", "from": "solo", "text": "x"}',
        b'{"type": "chat", "from": "host", "text": 5}',
        b'{"type": "chat", "from": "nobody", "text": "x"}',
    ],
)
def test_malformed_messages_raise_protocol_error(raw):
    with pytest.raises(ProtocolError):
        decode(raw)


def test_side_other():
    assert Side.HOST.other is Side.JOINER
    assert Side.JOINER.other is Side.HOST
