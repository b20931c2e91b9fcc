# sendspin

Building blocks for a Sendspin protocol audio player: clock
synchronisation with the server, 16- and 24-bit PCM sample handling,
PCM encoding and decoding, linear resampling, software volume and
sample packing, a text status view, and an asyncio WebSocket client
that speaks the Sendspin message set.

Install with the test extra to run the tests:

```
pip install .[test]
pytest
```

## Modules

| Module               | Contents                                                                 |
|----------------------|--------------------------------------------------------------------------|
| `sendspin.samples`   | `StreamFormat`, `AudioBuffer`, `MAX_24BIT`/`MIN_24BIT`, 16/24-bit conversions |
| `sendspin.clock`     | `ClockSync`, `Quality`, `set_global_clock_sync`, `server_micros_now`     |
| `sendspin.resample`  | `Resampler`, a linear-interpolation sample-rate converter                |
| `sendspin.codecs`    | `PCMDecoder`, `PCMEncoder`, `FLACDecoder`, `new_mp3_decoder`, `CodecError` |
| `sendspin.output`    | `RingBuffer`, `apply_volume`, `volume_multiplier`, `clamp_volume`, `pack_samples`, `ring_capacity` |
| `sendspin.messages`  | Protocol message dataclasses, `Message`, `to_wire`, `from_wire`, `default_device_info` |
| `sendspin.client`    | `Client`, `ClientConfig`, `AudioChunk`, `ProtocolError`, `parse_audio_chunk`, `build_hello` |
| `sendspin.ui`        | `Model`, `StatusMsg`, `VolumeChange`, `VolumeControl`, `render_bar`, `truncate`, `channel_name` |

Samples are plain Python integers in the signed 24-bit range. A 16-bit
value is shifted left by 8 bits to fit that range.

## Sample conversions

```python
from sendspin.samples import (
    sample_from_int16, sample_to_int16, sample_to_24bit, sample_from_24bit,
)

assert sample_from_int16(100) == 100 << 8
assert sample_to_int16(100 << 8) == 100
assert sample_to_24bit(0x123456) == bytes([0x56, 0x34, 0x12])
assert sample_from_24bit(bytes([0x00, 0x00, 0x80])) == -8388608
```

`sample_from_24bit` raises `ValueError` unless it is given exactly three bytes.

## Codecs

`PCMDecoder` and `PCMEncoder` take a `StreamFormat` with codec `"pcm"`
and a bit depth of 16 or 24. Any other codec or depth raises
`CodecError`. Decoders drop a trailing partial sample. All codecs can be
used as context managers.

```python
from sendspin.samples import StreamFormat
from sendspin.codecs import PCMDecoder, PCMEncoder

fmt = StreamFormat(codec="pcm", sample_rate=48000, channels=2, bit_depth=16)
with PCMDecoder(fmt) as dec:
    assert dec.decode(bytes([0x00, 0x01, 0x02, 0x03])) == [256 << 8, 770 << 8]
with PCMEncoder(fmt) as enc:
    data = enc.encode([0, 0x7FFF00])
```

`FLACDecoder` can be created for codec `"flac"`, but its `decode`
always raises `CodecError`. `new_mp3_decoder` checks the codec and then
raises `CodecError`, because chunked MP3 decoding is not supported.

## Resampling

```python
from sendspin.resample import Resampler

r = Resampler(44100, 48000, channels=2)
out = r.resample(interleaved_samples, None)   # or a maximum number of samples
```

The interpolation phase carries over between calls. Call `reset()` to
clear it. `output_samples_needed` and `input_samples_needed` estimate
the sizes.

## Volume and output packing

- `apply_volume(samples, volume, muted)` scales by `volume / 100` and
  clips to the 24-bit range. A muted stream becomes silence.
- `clamp_volume` limits a volume to 0–100.
- `pack_samples(samples, bit_depth)` produces little-endian frames for
  16, 24 or 32 bits. At 32 bits the 24-bit value sits in the upper bytes.
- `RingBuffer` is a thread-safe bounded FIFO. Its `read(count)` pads an
  underrun with zeros.
- `ring_capacity(rate, channels)` gives the size of an 80 ms buffer.

## Clock synchronisation

`ClockSync.process_sync_response(t1, t2, t3, t4)` takes the four
timestamps of a `client/time` / `server/time` exchange, in microseconds.
It reports the round-trip time and a `Quality`:

- Samples with an RTT above 100 ms are discarded.
- After the first accepted sample, quality is `Quality.GOOD` below 50 ms
  and `Quality.DEGRADED` otherwise.
- `check_quality()` returns `Quality.LOST` when no sync has arrived for
  five seconds.

```python
from sendspin.clock import ClockSync, set_global_clock_sync, server_micros_now

clock = ClockSync()
set_global_clock_sync(clock)
clock.process_sync_response(1_000_000, 1_000, 1_100, 1_025_000)
rtt, quality = clock.stats()
local = clock.server_to_local_time(5_000_000)   # UTC datetime
now_on_server = server_micros_now()
```

## Protocol messages

JSON messages are wrapped as `{"type": ..., "payload": ...}` by
`Message`. `Message.to_json()` serialises a dataclass payload.
`Message.from_json()` leaves the payload as decoded JSON, and
`from_wire(cls, payload)` turns it into a message dataclass.
Optional fields are left out of the wire form when they are empty.
`default_device_info()` describes this player as "Sendspin Go Player",
version 0.1.0.

## Client

```python
import asyncio
from sendspin.client import Client, ClientConfig
from sendspin.messages import default_device_info

async def run():
    config = ClientConfig(server_addr="localhost:8927", client_id="player-1",
                          name="Kitchen", device_info=default_device_info())
    async with Client(config) as client:
        chunk = await client.audio_chunks.get()
        print(chunk.timestamp, len(chunk.data))

asyncio.run(run())
```

`connect()` dials `ws://<server_addr>/sendspin`, sends `client/hello`,
and waits up to five seconds for `server/hello`. It then sends an
initial `client/state` and starts routing incoming traffic into queues:

- `audio_chunks`
- `control_msgs`
- `time_sync_resp`
- `stream_start`
- `stream_clear`
- `stream_end`
- `server_state`
- `group_update`

Failures raise `ProtocolError`. Binary frames carry one type byte (`4`
for audio), an 8-byte big-endian timestamp and the encoded audio.
`parse_audio_chunk` decodes such a frame. `send_state`, `send_goodbye`
and `send_time_sync` send the matching client messages.

## Status view

`Model` holds the player's display state:

- `apply_status` merges `StatusMsg` updates.
- `handle_key` handles the keys `up`, `down`, `m`, `d`, `q` and
  `ctrl+c`. It returns `True` on quit. Volume changes and quit requests
  go onto a `VolumeControl`'s queues.
- `view()` renders the boxed text screen once `resize` has set a width.

```python
from sendspin.ui import truncate, channel_name

assert truncate("this is longer than allowed", 10) == "this is..."
assert channel_name(1) == "Mono"
```

## What this package does not do

- There is no command-line player and no command to run.
- Nothing here opens a sound device. `sendspin.output` only prepares and
  buffers samples.
- Servers are not discovered on the network. The client needs an
  address.
- Opus is not supported. FLAC and MP3 data cannot be decoded.
- The status view renders strings but does not drive a terminal itself.