# greybus

A pure-Python toolkit for the Greybus protocol. It has no dependencies outside
the standard library. It provides:

- the operation message header;
- wire formats for the Lights, Audio and Loopback protocols;
- a loopback driver that keeps per-cport statistics;
- a thread-safe cport/device registry, with I2C and SPI controller bindings
  that register themselves in it;
- a store for TLS credentials;
- a transport that multiplexes every cport over one TCP connection;
- a transport that frames messages over a serial byte stream;
- a source for the manifest blob and its fragments.

## Installation

```
pip install .
```

To run the tests, install the `test` extra and run pytest:

```
pip install .[test]
pytest
```

## Modules

- `greybus.message`: `OperationHeader` is the eight-byte little-endian header,
  with `pack()`, `unpack()`, `payload_size()` and `is_response`.
  `OperationResult` holds the result codes. `make_message(op_type, payload,
  op_id)` builds a complete message. `split_message` splits one into header and
  payload. `response_type(op_type)` sets the response flag (0x80).
  `OperationFailed` carries a non-success result.
- `greybus.lights`: `LightsType`, plus `LightConfig`, `ChannelConfig`,
  `FlashConfig`, `BlinkRequest`, `ColorRequest` and `FadeRequest`. Each has
  `pack()` and `unpack()`. Names are limited to 31 bytes.
- `greybus.audio`: `AudioType`, `PcmFormat`, `PcmRate` and `WidgetType`,
  plus `Pcm`, `Dai`, `Route`, `SetPcmRequest` and `TopologyHeader`. Each has
  `pack()` and `unpack()`. `TopologyHeader.total_size` gives the size of the
  header together with its sections.
- `greybus.registry`: `CportRegistry` is a one-to-one mapping of cports to
  devices.
  - `add` raises `AlreadyMappedError` when the cport or the device is already
    mapped.
  - The lookups `device_to_cport` and `cport_to_device` raise `KeyError` when
    there is no mapping.
  - Module-level `add_cport_device_mapping`, `device_to_cport` and
    `cport_to_device` use one shared registry.
- `greybus.platform_i2c`: `I2cControl.init(registry, buses)` checks that the
  bus name is among `buses` and maps the cport to the controller. It raises
  `NoDeviceError` when the controller or the bus is missing.
- `greybus.spi`: `SpiControl` answers controller, peripheral and chip-select
  queries, using `SpiControllerConfig`, `SpiPeripheralConfig` and
  `CsControl`. `SpiDevicePairs` pairs Greybus SPI devices with physical ones.
  `init_spi_control(control, registry, pairs, buses)` does the pairing, checks
  the bus and maps the cport.
- `greybus.loopback`: `Loopback` covers both directions of the loopback
  protocol.
  - It answers incoming requests with `handle_request(op_type, payload)`.
  - It sends ping, transfer and sink requests through a `sender` callable with
    `send_request(cport, size, op_type)`.
  - It keeps `LoopbackStatistics` per registered cport: received and error
    counts, plus minimum, maximum and average latency, throughput and
    requests per second.
- `greybus.certificate`: `CredentialStore` files credentials by
  `CertificateTag` and `CredentialType`. `tls_init(store, server_cert,
  server_key, ca_cert, verify)` installs the server certificate and key. When
  `verify` is `PeerVerify.OPTIONAL` or `PeerVerify.REQUIRED`, it also installs
  the CA certificate.
- `greybus.transport_multiplex`: `MultiplexTransport` listens on one port,
  4242 by default, and serves one client at a time.
  - Each frame is a little-endian 16-bit cport followed by the message.
  - `serve_once(timeout)` accepts a client or passes one received message to
    `handler(cport, message)`.
  - An `ssl.SSLContext` may be given for TLS.
  - The module-level helpers are `read_exact`, `receive_message` and
    `encode_frame`.
- `greybus.transport_uart`: `UartTransport` works over a serial byte stream.
  - `send()` writes a message with its cport stored in the header's pad bytes.
  - Received bytes go to `feed()`. The oldest bytes are dropped on overflow.
  - `process()` takes out one complete message at a time.
  - `RingBuffer` is the fixed-capacity FIFO behind it.
- `greybus.manifest`: `ManifestSource` supplies the built-in manifest blob
  and its fragments, either built in or read from add-on boards.
  `manifest_size` reads the size a manifest header declares.
  `ManifestNotFound` is raised when nothing is available.

## Example

```python
from greybus.loopback import Loopback, LoopbackType
from greybus.message import OperationHeader, make_message, response_type
from greybus.transport_uart import UartTransport

# Answer a version request.
driver = Loopback()
result, payload = driver.handle_request(LoopbackType.PROTOCOL_VERSION, b"")
assert payload == bytes([0, 1])

# Send a transfer to a peer that echoes it back.
echo = Loopback(sender=lambda operation: operation.request)
echo.register(1)
assert echo.send_request(1, 16, LoopbackType.TRANSFER)
assert echo.get_stats(1).recv == 1

# Frame a message over a serial link and read it back.
wire = []
uart = UartTransport(wire.append)
uart.send(3, make_message(LoopbackType.PING, b"\x00", 0xABCD))
uart.feed(wire[0])
cport, message = uart.process()
assert cport == 3
assert OperationHeader.unpack(message).id == 0xABCD
assert response_type(LoopbackType.PING) == 0x82
```

## What the package does not do

- It has no payload formats for the GPIO and UART protocols.
- It has no GPIO controller binding that turns pin interrupts into IRQ event
  messages.
- It has no transport that opens one TCP port per cport. Only the multiplexed
  TCP transport and the serial transport are available.
- It does not parse manifests beyond their size field.
- It has no core that routes received messages to protocol drivers. Each
  transport hands messages to a handler you supply.
- It has no command-line program and no long-running service of its own.
  `serve_once` has to be called in your own loop or thread.