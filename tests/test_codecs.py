import struct

import pytest

from sendspin.codecs import (
    CodecError,
    FLACDecoder,
    PCMDecoder,
    PCMEncoder,
    new_mp3_decoder,
)
from sendspin.samples import StreamFormat


def fmt(codec="pcm", rate=48000, channels=2, depth=16):
    return StreamFormat(codec=codec, sample_rate=rate, channels=channels, bit_depth=depth)


def test_pcm_decoder_created_with_bit_depth():
    decoder = PCMDecoder(fmt())
    assert decoder.bit_depth == 16


def test_pcm_decode_16bit():
    decoder = PCMDecoder(fmt())
    output = decoder.decode(bytes([0x00, 0x01, 0x02, 0x03]))
    assert output == [256 << 8, 770 << 8]


def test_pcm_decode_24bit():
    decoder = PCMDecoder(fmt(rate=192000, depth=24))
    output = decoder.decode(bytes([0x00, 0x01, 0x02, 0x03, 0x04, 0x05]))
    assert output == [0x020100, 0x050403]


def test_pcm_decode_24bit_negative():
    decoder = PCMDecoder(fmt(depth=24))
    assert decoder.decode(bytes([0x00, 0xFF, 0xFF])) == [-256]


def test_pcm_decode_ignores_partial_sample():
    decoder = PCMDecoder(fmt())
    assert decoder.decode(bytes([0x00, 0x01, 0x02])) == [256 << 8]


def test_pcm_decoder_invalid_codec():
    with pytest.raises(CodecError, match="^invalid codec for PCM decoder: opus$"):
        PCMDecoder(fmt(codec="opus"))


def test_pcm_decoder_unsupported_bit_depth():
    with pytest.raises(
        CodecError, match=r"^unsupported bit depth: 32 \(supported: 16, 24\)$"
    ):
        PCMDecoder(fmt(depth=32))


def test_pcm_decode_empty_input():
    decoder = PCMDecoder(fmt())
    assert decoder.decode(b"") == []


def test_flac_decoder_keeps_format():
    stream = fmt(codec="flac", depth=24)
    decoder = FLACDecoder(stream)
    assert decoder.format == stream


def test_flac_decoder_invalid_codec():
    with pytest.raises(CodecError, match="^invalid codec for FLAC decoder: opus$"):
        FLACDecoder(fmt(codec="opus", depth=24))


def test_flac_decode_raises():
    with FLACDecoder(fmt(codec="flac", depth=24)) as decoder:
        with pytest.raises(CodecError, match="FLAC"):
            decoder.decode(bytes([0x00, 0x01, 0x02, 0x03]))


def test_mp3_decoder_raises_for_mp3():
    with pytest.raises(CodecError, match="MP3"):
        new_mp3_decoder(fmt(codec="mp3", rate=44100))


def test_mp3_decoder_invalid_codec():
    with pytest.raises(CodecError, match="^invalid codec for MP3 decoder: opus$"):
        new_mp3_decoder(fmt(codec="opus", rate=44100))


@pytest.mark.parametrize("depth", [16, 24])
def test_pcm_encoder_valid(depth):
    encoder = PCMEncoder(fmt(depth=depth))
    assert encoder.bit_depth == depth


def test_pcm_encoder_invalid_codec():
    with pytest.raises(CodecError, match="invalid codec"):
        PCMEncoder(fmt(codec="opus"))


def test_pcm_encoder_unsupported_bit_depth():
    with pytest.raises(CodecError, match="unsupported bit depth"):
        PCMEncoder(fmt(depth=32))


def test_pcm_encode_16bit():
    samples = [0, 0x7FFF00, -0x800000, 0x123400, -0x567800]
    with PCMEncoder(fmt()) as encoder:
        output = encoder.encode(samples)
    assert len(output) == len(samples) * 2
    assert list(struct.unpack("<5h", output)) == [0, 32767, -32768, 0x1234, -0x5678]


def test_pcm_encode_24bit():
    samples = [0, 0x7FFFFF, -0x800000, 0x123456, -0x567890]
    with PCMEncoder(fmt(depth=24)) as encoder:
        output = encoder.encode(samples)
    assert len(output) == len(samples) * 3
    assert output == bytes(
        [
            0x00, 0x00, 0x00,
            0xFF, 0xFF, 0x7F,
            0x00, 0x00, 0x80,
            0x56, 0x34, 0x12,
            0x70, 0x87, 0xA9,
        ]
    )


def test_pcm_24bit_round_trip():
    samples = [0, 100000, -100000, 8388607, -8388608]
    encoded = PCMEncoder(fmt(depth=24)).encode(samples)
    assert PCMDecoder(fmt(depth=24)).decode(encoded) == samples


def test_pcm_16bit_round_trip():
    samples = [0, 100 << 8, -(100 << 8), 32767 << 8, -32768 << 8]
    encoded = PCMEncoder(fmt()).encode(samples)
    assert PCMDecoder(fmt()).decode(encoded) == samples